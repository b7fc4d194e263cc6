"""
Tests for posts, visibility, interactions and comments.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from api.services import connections as connection_service
from api.services import notifications as notification_service
from api.services import posts as post_service
from core.errors import NotFoundError, UnauthorizedError, ValidationError
from database.models.posts import PostVisibility
from tests.factories import create_company, create_user

pytestmark = pytest.mark.usefixtures("db")


@pytest.fixture(autouse=True)
def quiet_pushes():
    with patch.object(notification_service, "schedule_push") as push, \
            patch.object(notification_service, "_push_quietly", new=AsyncMock(return_value=True)):
        yield push


async def connect(a, b):
    request = await connection_service.send_connection_request(a.id, b.id)
    await connection_service.accept_connection_request(b.id, request["id"])


class TestCreatePost:
    @pytest.mark.asyncio
    async def test_create_with_tags(self):
        author = await create_user(full_name="Ada")
        friend = await create_user()
        company = await create_company()

        post = await post_service.create_post(
            author.id,
            "  Shipped it  ",
            tags=[
                {"type": "user", "id": friend.id},
                {"type": "company", "id": company.id},
                {"type": "user", "id": friend.id},
            ],
        )

        assert post["content"] == "Shipped it"
        assert post["author"]["full_name"] == "Ada"
        assert sorted(t["type"] for t in post["tags"]) == ["company", "user"]
        assert post["counts"] == {"likes": 0, "shares": 0, "saves": 0, "comments": 0}

    @pytest.mark.asyncio
    async def test_unknown_tag_target(self):
        author = await create_user()

        with pytest.raises(NotFoundError, match="Tagged user"):
            await post_service.create_post(author.id, "hi", tags=[{"type": "user", "id": 999}])

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", ["", "   ", "x" * 5001])
    async def test_invalid_content(self, content):
        author = await create_user()

        with pytest.raises(ValidationError):
            await post_service.create_post(author.id, content)

    @pytest.mark.asyncio
    async def test_media_upload(self):
        author = await create_user()
        storage = MagicMock()
        storage.upload = AsyncMock(return_value="https://cdn.example.com/post-media/abc.png")

        with patch("api.services.posts.get_storage", return_value=storage):
            post = await post_service.create_post(
                author.id, "look", media=b"png", media_content_type="image/png"
            )

        assert post["media_url"] == "https://cdn.example.com/post-media/abc.png"

    @pytest.mark.asyncio
    async def test_connections_are_notified(self):
        author = await create_user(full_name="Ada")
        friend = await create_user()
        await connect(author, friend)

        with patch.object(
            notification_service, "send_notifications_to_users", new=AsyncMock(return_value=1)
        ) as fan_out:
            await post_service.create_post(author.id, "news")
            await post_service.create_post(author.id, "secret", visibility=PostVisibility.PRIVATE)

        fan_out.assert_awaited_once()
        assert fan_out.await_args.args[0] == [friend.id]
        assert fan_out.await_args.args[2] == "Ada shared a new post"


class TestVisibility:
    @pytest.mark.asyncio
    async def test_rules(self):
        author = await create_user()
        friend = await create_user()
        stranger = await create_user()
        await connect(author, friend)

        public = await post_service.create_post(author.id, "public")
        circle = await post_service.create_post(
            author.id, "circle", visibility=PostVisibility.CONNECTIONS
        )
        private = await post_service.create_post(
            author.id, "private", visibility=PostVisibility.PRIVATE
        )

        assert (await post_service.get_post(stranger.id, public["id"]))["content"] == "public"
        assert (await post_service.get_post(friend.id, circle["id"]))["content"] == "circle"
        assert (await post_service.get_post(author.id, private["id"]))["content"] == "private"
        for viewer, post in ((stranger, circle), (friend, private)):
            with pytest.raises(NotFoundError, match="Post not found"):
                await post_service.get_post(viewer.id, post["id"])

    @pytest.mark.asyncio
    async def test_user_posts_listing(self):
        author = await create_user()
        friend = await create_user()
        stranger = await create_user()
        await connect(author, friend)
        for visibility in PostVisibility:
            await post_service.create_post(author.id, visibility.value, visibility=visibility)

        def contents(page):
            return sorted(item["content"] for item in page["items"])

        assert contents(await post_service.list_user_posts(stranger.id, author.id)) == ["public"]
        assert contents(await post_service.list_user_posts(friend.id, author.id)) == [
            "connections",
            "public",
        ]
        assert (await post_service.list_user_posts(author.id, author.id))["total"] == 3

    @pytest.mark.asyncio
    async def test_feed(self):
        me = await create_user()
        friend = await create_user()
        stranger = await create_user()
        await connect(me, friend)

        await post_service.create_post(me.id, "mine", visibility=PostVisibility.PRIVATE)
        await post_service.create_post(friend.id, "friend", visibility=PostVisibility.CONNECTIONS)
        await post_service.create_post(stranger.id, "stranger public")
        await post_service.create_post(
            stranger.id, "stranger circle", visibility=PostVisibility.CONNECTIONS
        )

        feed = await post_service.get_feed(me.id)

        assert [item["content"] for item in feed["items"]] == [
            "stranger public",
            "friend",
            "mine",
        ]


class TestEditing:
    @pytest.mark.asyncio
    async def test_update_and_delete_own_post(self):
        author = await create_user()
        other = await create_user()
        post = await post_service.create_post(author.id, "draft", tags=[{"type": "user", "id": other.id}])

        updated = await post_service.update_post(
            author.id, post["id"], content="final", tags=[{"type": "user", "id": other.id}]
        )
        with pytest.raises(UnauthorizedError):
            await post_service.update_post(other.id, post["id"], content="hijack")
        await post_service.delete_post(author.id, post["id"])

        assert updated["content"] == "final"
        assert len(updated["tags"]) == 1
        with pytest.raises(NotFoundError):
            await post_service.get_post(author.id, post["id"])

    @pytest.mark.asyncio
    async def test_toggle_visibility(self):
        author = await create_user()
        stranger = await create_user()
        post = await post_service.create_post(author.id, "soon hidden")

        result = await post_service.toggle_visibility(author.id, post["id"], PostVisibility.PRIVATE)

        assert result == {"id": post["id"], "visibility": "private"}
        with pytest.raises(NotFoundError):
            await post_service.get_post(stranger.id, post["id"])


class TestInteractions:
    @pytest.mark.asyncio
    async def test_like_toggles_and_notifies_author(self, quiet_pushes):
        author = await create_user()
        fan = await create_user(full_name="Fan")
        post = await post_service.create_post(author.id, "like me")

        liked = await post_service.toggle_like(fan.id, post["id"])
        user_id, _, payload = quiet_pushes.call_args.args
        unliked = await post_service.toggle_like(fan.id, post["id"])

        assert liked == {"post_id": post["id"], "kind": "like", "active": True, "count": 1}
        assert unliked["active"] is False and unliked["count"] == 0
        assert user_id == author.id
        assert payload["message"] == "Fan liked your post"

    @pytest.mark.asyncio
    async def test_saves_do_not_notify(self, quiet_pushes):
        author = await create_user()
        reader = await create_user()
        post = await post_service.create_post(author.id, "bookmark me")

        await post_service.toggle_save(reader.id, post["id"])
        await post_service.toggle_share(author.id, post["id"])

        quiet_pushes.assert_not_called()
        view = await post_service.get_post(reader.id, post["id"])
        assert view["counts"]["saves"] == 1 and view["counts"]["shares"] == 1
        assert view["viewer_interactions"] == ["save"]

    @pytest.mark.asyncio
    async def test_hidden_post_cannot_be_liked(self):
        author = await create_user()
        stranger = await create_user()
        post = await post_service.create_post(author.id, "x", visibility=PostVisibility.PRIVATE)

        with pytest.raises(NotFoundError):
            await post_service.toggle_like(stranger.id, post["id"])


class TestComments:
    @pytest.mark.asyncio
    async def test_comment_and_delete(self):
        author = await create_user()
        commenter = await create_user()
        outsider = await create_user()
        post = await post_service.create_post(author.id, "thoughts?")

        first = await post_service.add_comment(commenter.id, post["id"], "nice")
        second = await post_service.add_comment(commenter.id, post["id"], "really")

        with pytest.raises(UnauthorizedError):
            await post_service.delete_comment(outsider.id, first["id"])
        await post_service.delete_comment(commenter.id, first["id"])
        await post_service.delete_comment(author.id, second["id"])

        view = await post_service.get_post(author.id, post["id"])
        assert view["comments"] == []
        assert view["counts"]["comments"] == 0

    @pytest.mark.asyncio
    async def test_comment_too_long(self):
        author = await create_user()
        post = await post_service.create_post(author.id, "x")

        with pytest.raises(ValidationError):
            await post_service.add_comment(author.id, post["id"], "y" * 1001)
