import asyncio

import pytest

from skysocial.data import RemoteResult
from skysocial.data.cache import FeedGeneratorPage, ProfilePage, keys
from skysocial.domain import FetchStatus, ValidationError
from skysocial.services import FeedService
from skysocial.services.feeds import is_valid_actor
from tests.fakes import FakeClient, build_context, feed_record, post_record, profile_record


def _service(client: FakeClient) -> FeedService:
    return FeedService(build_context(client))


@pytest.mark.parametrize(
    ("actor", "valid"),
    [
        ("alice.bsky.social", True),
        ("did:plc:abc123xyz", True),
        ("did:web:example.com", True),
        ("", False),
        ("   ", False),
        ("bad handle!", False),
    ],
)
def test_actor_validation(actor: str, valid: bool) -> None:
    assert is_valid_actor(actor) is valid


def test_timeline_loads_first_page_and_continues_from_cursor() -> None:
    async def scenario() -> None:
        client = FakeClient().script(
            "get_timeline",
            RemoteResult.ok(feed_record(post_record("at://p/1"), post_record("at://p/2"), cursor="c1")),
            RemoteResult.ok(feed_record(post_record("at://p/3"))),
        )
        feeds = _service(client)

        first = await feeds.timeline()
        more = await feeds.next_page(keys.TIMELINE)

        assert client.calls_to("get_timeline") == [((30,), {}), ((30,), {"cursor": "c1"})]
        assert [item.post.uri for item in first.items] == ["at://p/1", "at://p/2"]
        assert [item.post.uri for item in more.items] == ["at://p/1", "at://p/2", "at://p/3"]
        assert not more.has_next_page

    asyncio.run(scenario())


def test_profile_query_validates_and_loads_profile() -> None:
    async def scenario() -> None:
        client = FakeClient().script("get_profile", RemoteResult.ok(profile_record("bob.test", followers=99)))
        feeds = _service(client)

        with pytest.raises(ValidationError):
            await feeds.profile("not a handle")
        snapshot = await feeds.profile("bob.test")

        assert isinstance(snapshot.pages[0], ProfilePage)
        assert snapshot.items[0].followers_count == 99
        assert client.calls_to("get_profile") == [(("bob.test",), {})]

    asyncio.run(scenario())


def test_failed_profile_load_surfaces_error_status() -> None:
    async def scenario() -> None:
        client = FakeClient().script("get_profile", RemoteResult.fail("Profile not found", status=404))
        snapshot = await _service(client).profile("ghost.test")

        assert snapshot.status is FetchStatus.ERROR
        assert snapshot.pages == ()

    asyncio.run(scenario())


def test_search_rejects_blank_queries() -> None:
    async def scenario() -> None:
        client = FakeClient()
        feeds = _service(client)

        with pytest.raises(ValidationError):
            await feeds.search_posts("  ")
        with pytest.raises(ValidationError):
            await feeds.search_actors("")
        assert client.calls == []

    asyncio.run(scenario())


def test_search_posts_uses_search_page_size() -> None:
    async def scenario() -> None:
        client = FakeClient().script(
            "search_posts", RemoteResult.ok({"posts": [post_record("at://p/1")], "cursor": "next"})
        )
        snapshot = await _service(client).search_posts("cats")

        assert client.calls_to("search_posts") == [(("cats", 25), {})]
        assert snapshot.key == keys.search_posts("cats")
        assert [post.uri for post in snapshot.items] == ["at://p/1"]
        assert snapshot.has_next_page

    asyncio.run(scenario())


def test_followers_and_suggestions_parse_actor_lists() -> None:
    async def scenario() -> None:
        client = FakeClient()
        client.script("get_followers", RemoteResult.ok({"followers": [profile_record("carol.test")]}))
        client.script("get_suggested_follows", RemoteResult.ok({"actors": [profile_record("dave.test")]}))
        feeds = _service(client)

        followers = await feeds.followers("bob.test")
        suggested = await feeds.suggested_follows()

        assert [actor.handle for actor in followers.items] == ["carol.test"]
        assert [actor.handle for actor in suggested.items] == ["dave.test"]
        assert client.calls_to("get_suggested_follows") == [((50,), {})]

    asyncio.run(scenario())


def test_popular_feeds_parse_generators() -> None:
    async def scenario() -> None:
        generator = {"uri": "at://feed/1", "cid": "c", "did": "did:plc:gen", "displayName": "Cats", "likeCount": 5}
        client = FakeClient().script("get_popular_feed_generators", RemoteResult.ok({"feeds": [generator]}))
        snapshot = await _service(client).popular_feeds()

        assert isinstance(snapshot.pages[0], FeedGeneratorPage)
        assert snapshot.items[0].display_name == "Cats"
        assert snapshot.items[0].like_count == 5

    asyncio.run(scenario())


def test_post_thread_flattens_parents_anchor_and_replies() -> None:
    async def scenario() -> None:
        thread = {
            "post": post_record("at://p/anchor"),
            "parent": {"post": post_record("at://p/parent"), "parent": {"post": post_record("at://p/root")}},
            "replies": [
                {"post": post_record("at://p/r1"), "replies": [{"post": post_record("at://p/r1a")}]},
                {"post": post_record("at://p/r2")},
                {"notFound": True},
            ],
        }
        client = FakeClient().script("get_post_thread", RemoteResult.ok({"thread": thread}))
        snapshot = await _service(client).post_thread("at://p/anchor")

        uris = [item.post.uri for item in snapshot.items]
        assert uris == ["at://p/root", "at://p/parent", "at://p/anchor", "at://p/r1", "at://p/r1a", "at://p/r2"]
        assert snapshot.items[4].reply_parent.uri == "at://p/r1"

    asyncio.run(scenario())


def test_custom_feed_loads_by_descriptor() -> None:
    async def scenario() -> None:
        descriptor = "at://did:plc:gen/app.bsky.feed.generator/cats"
        client = FakeClient().script(
            "get_feed_by_descriptor", RemoteResult.ok(feed_record(post_record("at://p/1"), cursor="c1"))
        )
        feeds = _service(client)

        with pytest.raises(ValidationError):
            await feeds.feed("  ")
        snapshot = await feeds.feed(descriptor)

        assert client.calls_to("get_feed_by_descriptor") == [((descriptor, 30), {})]
        assert snapshot.key == keys.feed(descriptor)
        assert [item.post.uri for item in snapshot.items] == ["at://p/1"]
        assert snapshot.has_next_page

    asyncio.run(scenario())
