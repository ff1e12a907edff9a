import asyncio

import orjson

from skysocial.data import JsonFileStorage, MemoryStorage, SessionStore
from skysocial.domain import ProfileView, Session
from tests.fakes import profile_record, session_record


def test_json_file_storage_persists_across_instances(tmp_path) -> None:
    async def scenario() -> None:
        path = tmp_path / "state" / "session.json"
        storage = JsonFileStorage(path)
        await storage.set_item("a", "1")
        await storage.set_item("b", "2")
        await storage.remove_item("a")

        reopened = JsonFileStorage(path)
        assert await reopened.get_item("a") is None
        assert await reopened.get_item("b") == "2"
        assert orjson.loads(path.read_bytes()) == {"b": "2"}

    asyncio.run(scenario())


def test_json_file_storage_ignores_corrupt_file(tmp_path) -> None:
    async def scenario() -> None:
        path = tmp_path / "session.json"
        path.write_text("{not json", encoding="utf-8")
        storage = JsonFileStorage(path)

        assert await storage.get_item("anything") is None
        await storage.set_item("key", "value")
        assert orjson.loads(path.read_bytes()) == {"key": "value"}

    asyncio.run(scenario())


def test_session_store_round_trips_session_and_profile() -> None:
    async def scenario() -> None:
        store = SessionStore(MemoryStorage())
        session = Session.from_record({**session_record(), "expiresAt": "2024-05-01T10:00:00Z"})
        profile = ProfileView.from_record(profile_record("alice.test", following="at://follow/1"))

        await store.save(session, profile)
        stored = await store.get()

        assert stored.session == session
        assert stored.profile == profile

        await store.clear()
        assert await store.get() is None

    asyncio.run(scenario())


def test_session_store_ignores_malformed_records() -> None:
    async def scenario() -> None:
        storage = MemoryStorage({"@skysocial/auth_session": "{broken", "@skysocial/user_profile": "{}"})
        assert await SessionStore(storage).get() is None

        await storage.set_item("@skysocial/auth_session", orjson.dumps(session_record()).decode())
        stored = await SessionStore(storage).get()
        assert stored.session.handle == "alice.test"
        assert stored.profile is None

    asyncio.run(scenario())
