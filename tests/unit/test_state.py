import asyncio

from skysocial import AppState
from skysocial.data import RemoteResult
from skysocial.data.cache import keys
from skysocial.domain import Session, SessionEndReason
from skysocial.services import LikePost
from tests.fakes import FakeClient, build_context, feed_record, post_record, profile_record, session_record


def test_bootstrap_restores_session_and_starts_guardian() -> None:
    async def scenario() -> None:
        client = FakeClient().always("get_profile", RemoteResult.ok(profile_record("alice.test")))
        context = build_context(client)
        await context.store.save(Session.from_record(session_record()))
        state = AppState(context)

        assert await state.bootstrap() is True
        assert context.guardian.running
        await state.shutdown()
        assert not context.guardian.running

    asyncio.run(scenario())


def test_subscribers_see_mutations_applied_to_loaded_feeds() -> None:
    async def scenario() -> None:
        client = FakeClient()
        client.script("get_timeline", RemoteResult.ok(feed_record(post_record("at://p/1", likes=1))))
        client.script("like_post", RemoteResult.ok({"uri": "at://like/1"}))
        state = AppState(build_context(client))
        seen = []
        state.subscribe(keys.TIMELINE, lambda snapshot: seen.append(snapshot.items))

        await state.feeds.timeline()
        await state.execute(LikePost(uri="at://p/1", cid="cid-1"))

        counts = [items[0].post.like_count for items in seen if items]
        assert counts[0] == 1
        assert counts[-1] == 2
        assert state.read(keys.TIMELINE).items[0].post.viewer.like == "at://like/1"

    asyncio.run(scenario())


def test_on_session_ended_relays_guardian_events() -> None:
    async def scenario() -> None:
        context = build_context(FakeClient())
        context.gateway.set_session(Session.from_record(session_record()))
        state = AppState(context)
        events = []
        state.on_session_ended(events.append)

        await state.auth.sign_out()

        assert [event.reason for event in events] == [SessionEndReason.SIGNED_OUT]

    asyncio.run(scenario())


def test_app_becoming_active_validates_the_session() -> None:
    async def scenario() -> None:
        client = FakeClient().script("validate_session", RemoteResult.fail("Token expired", status=401))
        context = build_context(client)
        context.gateway.set_session(Session.from_record(session_record()))
        state = AppState(context)

        assert await state.on_app_active() is False
        assert context.gateway.is_authenticated()
        assert client.calls_to("refresh_session") == []

    asyncio.run(scenario())
