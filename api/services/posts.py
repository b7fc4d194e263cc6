"""
Social feed service functions: posts, tags, comments and like/share/save
toggles.

Visibility: ``public`` posts are visible to everyone, ``connections`` posts to
the author and their accepted connections, ``private`` posts to the author
only. A post the caller cannot see is reported as not found.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.services import notifications as notification_service
from api.services.common import load_user, page_offset, paginated, timestamps, user_summary
from api.services.connections import are_connected, connected_user_ids
from core.errors import NotFoundError, UnauthorizedError, ValidationError
from core.storage.s3 import NamingStrategy, UploadFolder, get_storage
from core.utils.datetime import isoformat
from database.engine import AsyncSessionLocal
from database.models.companies import Company
from database.models.notifications import NotificationType
from database.models.posts import (
    Comment,
    InteractionKind,
    Post,
    PostInteraction,
    PostTag,
    PostVisibility,
    TagType,
)
from database.models.users import User

logger = logging.getLogger(__name__)

MAX_POST_LENGTH = 5000
MAX_COMMENT_LENGTH = 1000

INTERACTION_VERBS = {
    InteractionKind.LIKE: "liked",
    InteractionKind.SHARE: "shared",
}


def _clean_text(text: Optional[str], max_length: int, label: str) -> str:
    if not isinstance(text, str) or not text.strip():
        raise ValidationError(f"{label} cannot be empty")
    if len(text) > max_length:
        raise ValidationError(f"{label} cannot exceed {max_length} characters")
    return text.strip()


async def _counts(session: AsyncSession, post_id: int) -> Dict[str, int]:
    result = await session.execute(
        select(PostInteraction.kind, func.count(PostInteraction.id))
        .where(PostInteraction.post_id == post_id)
        .group_by(PostInteraction.kind)
    )
    counts = {f"{kind.value}s": 0 for kind in InteractionKind}
    for kind, count in result.all():
        counts[f"{kind.value}s"] = count
    counts["comments"] = await session.scalar(
        select(func.count(Comment.id)).where(Comment.post_id == post_id)
    ) or 0
    return counts


async def _viewer_interactions(session: AsyncSession, post_id: int, user_id: int) -> List[str]:
    result = await session.execute(
        select(PostInteraction.kind).where(
            PostInteraction.post_id == post_id, PostInteraction.user_id == user_id
        )
    )
    return sorted(kind.value for kind in result.scalars().all())


async def serialize_post(session: AsyncSession, post: Post, viewer_id: int) -> Dict[str, Any]:
    author = await session.scalar(
        select(User).where(User.id == post.author_id).execution_options(include_deleted=True)
    )
    return {
        "id": post.id,
        "author": user_summary(author),
        "content": post.content,
        "media_url": post.media_url,
        "visibility": post.visibility.value,
        "tags": [{"type": tag.tag_type.value, "id": tag.target_id} for tag in post.tags],
        "counts": await _counts(session, post.id),
        "viewer_interactions": await _viewer_interactions(session, post.id, viewer_id),
        **timestamps(post),
    }


def serialize_comment(comment: Comment) -> Dict[str, Any]:
    return {
        "id": comment.id,
        "post_id": comment.post_id,
        "author_id": comment.author_id,
        "content": comment.content,
        "created_at": isoformat(comment.created_at),
    }


async def can_view(session: AsyncSession, post: Post, viewer_id: int) -> bool:
    if post.author_id == viewer_id or post.visibility == PostVisibility.PUBLIC:
        return True
    if post.visibility == PostVisibility.CONNECTIONS:
        return await are_connected(session, post.author_id, viewer_id)
    return False


async def _load_post(session: AsyncSession, post_id: int) -> Post:
    post = await session.scalar(select(Post).where(Post.id == post_id))
    if post is None:
        raise NotFoundError("Post not found")
    return post


async def _load_visible_post(session: AsyncSession, post_id: int, viewer_id: int) -> Post:
    post = await _load_post(session, post_id)
    if not await can_view(session, post, viewer_id):
        raise NotFoundError("Post not found")
    return post


async def _load_own_post(session: AsyncSession, post_id: int, user_id: int) -> Post:
    post = await _load_post(session, post_id)
    if post.author_id != user_id:
        raise UnauthorizedError("Unauthorized: You can only modify your own posts")
    return post


async def _build_tags(session: AsyncSession, tags: List[Dict[str, Any]]) -> List[PostTag]:
    """Validate tag targets exist; duplicates collapse to one tag."""
    built: Dict[tuple, PostTag] = {}
    for tag in tags:
        tag_type = TagType(tag["type"])
        target_id = int(tag["id"])
        model = User if tag_type == TagType.USER else Company
        exists = await session.scalar(select(model.id).where(model.id == target_id))
        if exists is None:
            raise NotFoundError(f"Tagged {tag_type.value} not found")
        built[(tag_type, target_id)] = PostTag(tag_type=tag_type, target_id=target_id)
    return list(built.values())


async def create_post(
    user_id: int,
    content: str,
    visibility: PostVisibility = PostVisibility.PUBLIC,
    tags: Optional[List[Dict[str, Any]]] = None,
    media: Optional[bytes] = None,
    media_content_type: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Create a post with optional tags and a single media file.

    Accepted connections are notified of non-private posts.
    """
    content = _clean_text(content, MAX_POST_LENGTH, "Post content")

    async with AsyncSessionLocal() as session:
        author = await load_user(session, user_id)
        post_tags = await _build_tags(session, tags or [])

        media_url = None
        if media is not None:
            media_url = await get_storage().upload(
                media,
                UploadFolder.POST_MEDIA,
                media_content_type or "application/octet-stream",
                naming_strategy=NamingStrategy.UUID,
            )

        post = Post(
            author_id=user_id,
            content=content,
            media_url=media_url,
            visibility=visibility,
            tags=post_tags,
        )
        session.add(post)
        await session.commit()

        audience: List[int] = []
        if visibility != PostVisibility.PRIVATE:
            audience = await connected_user_ids(session, user_id)
        data = await serialize_post(session, post, user_id)
        author_name = author.full_name or "A connection"

    if audience:
        await notification_service.send_notifications_to_users(
            audience,
            NotificationType.NEW_POST,
            f"{author_name} shared a new post",
            related_id=data["id"],
        )
    return data


async def get_post(user_id: int, post_id: int) -> Dict[str, Any]:
    """A visible post with its comments, oldest comment first."""
    async with AsyncSessionLocal() as session:
        post = await _load_visible_post(session, post_id, user_id)
        data = await serialize_post(session, post, user_id)
        result = await session.execute(
            select(Comment).where(Comment.post_id == post.id).order_by(Comment.id.asc())
        )
        data["comments"] = [serialize_comment(c) for c in result.scalars().all()]
        return data


async def list_user_posts(
    viewer_id: int, author_id: int, page: int = 1, page_size: int = 20
) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        await load_user(session, author_id)

        visible = [PostVisibility.PUBLIC]
        if viewer_id == author_id:
            visible = list(PostVisibility)
        elif await are_connected(session, viewer_id, author_id):
            visible.append(PostVisibility.CONNECTIONS)

        conditions = [Post.author_id == author_id, Post.visibility.in_(visible)]
        total = await session.scalar(select(func.count(Post.id)).where(*conditions)) or 0
        result = await session.execute(
            select(Post)
            .where(*conditions)
            .order_by(Post.created_at.desc(), Post.id.desc())
            .limit(page_size)
            .offset(page_offset(page, page_size))
        )
        items = []
        for post in result.scalars().all():
            items.append(await serialize_post(session, post, viewer_id))

    return paginated(items, total, page, page_size)


async def update_post(
    user_id: int,
    post_id: int,
    content: Optional[str] = None,
    visibility: Optional[PostVisibility] = None,
    tags: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        post = await _load_own_post(session, post_id, user_id)
        if content is not None:
            post.content = _clean_text(content, MAX_POST_LENGTH, "Post content")
        if visibility is not None:
            post.visibility = visibility
        if tags is not None:
            new_tags = await _build_tags(session, tags)
            # old rows must be gone before re-inserting the same (type, target)
            post.tags = []
            await session.flush()
            post.tags = new_tags
        await session.commit()
        return await serialize_post(session, post, user_id)


async def delete_post(user_id: int, post_id: int) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        post = await _load_own_post(session, post_id, user_id)
        post.soft_delete()
        await session.commit()
    return {"message": "Post deleted successfully", "id": post_id}


async def toggle_visibility(
    user_id: int, post_id: int, visibility: PostVisibility
) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        post = await _load_own_post(session, post_id, user_id)
        post.visibility = visibility
        await session.commit()
    return {"id": post_id, "visibility": visibility.value}


async def _toggle_interaction(
    user_id: int, post_id: int, kind: InteractionKind
) -> Dict[str, Any]:
    """Add the caller's like/share/save, or remove it if present."""
    async with AsyncSessionLocal() as session:
        actor = await load_user(session, user_id)
        post = await _load_visible_post(session, post_id, user_id)

        existing = await session.scalar(
            select(PostInteraction).where(
                PostInteraction.post_id == post.id,
                PostInteraction.user_id == user_id,
                PostInteraction.kind == kind,
            )
        )
        notification = None
        if existing is not None:
            await session.delete(existing)
            active = False
        else:
            session.add(PostInteraction(post_id=post.id, user_id=user_id, kind=kind))
            active = True
            if kind in INTERACTION_VERBS and post.author_id != user_id:
                notification = notification_service.stage_notification(
                    session,
                    post.author_id,
                    NotificationType.POST_INTERACTION,
                    f"{actor.full_name or 'Someone'} {INTERACTION_VERBS[kind]} your post",
                    related_id=post.id,
                )
        await session.commit()

        count = await session.scalar(
            select(func.count(PostInteraction.id)).where(
                PostInteraction.post_id == post.id, PostInteraction.kind == kind
            )
        ) or 0

    if notification is not None:
        notification_service.publish([notification])
    return {"post_id": post_id, "kind": kind.value, "active": active, "count": count}


async def toggle_like(user_id: int, post_id: int) -> Dict[str, Any]:
    return await _toggle_interaction(user_id, post_id, InteractionKind.LIKE)


async def toggle_share(user_id: int, post_id: int) -> Dict[str, Any]:
    return await _toggle_interaction(user_id, post_id, InteractionKind.SHARE)


async def toggle_save(user_id: int, post_id: int) -> Dict[str, Any]:
    return await _toggle_interaction(user_id, post_id, InteractionKind.SAVE)


async def add_comment(user_id: int, post_id: int, content: str) -> Dict[str, Any]:
    content = _clean_text(content, MAX_COMMENT_LENGTH, "Comment")

    async with AsyncSessionLocal() as session:
        actor = await load_user(session, user_id)
        post = await _load_visible_post(session, post_id, user_id)

        comment = Comment(post_id=post.id, author_id=user_id, content=content)
        session.add(comment)
        notification = None
        if post.author_id != user_id:
            notification = notification_service.stage_notification(
                session,
                post.author_id,
                NotificationType.POST_INTERACTION,
                f"{actor.full_name or 'Someone'} commented on your post",
                related_id=post.id,
            )
        await session.commit()

    if notification is not None:
        notification_service.publish([notification])
    return serialize_comment(comment)


async def delete_comment(user_id: int, comment_id: int) -> Dict[str, Any]:
    """The comment's author or the post's author may delete a comment."""
    async with AsyncSessionLocal() as session:
        comment = await session.scalar(select(Comment).where(Comment.id == comment_id))
        if comment is None:
            raise NotFoundError("Comment not found")
        post_author_id = await session.scalar(
            select(Post.author_id)
            .where(Post.id == comment.post_id)
            .execution_options(include_deleted=True)
        )
        if user_id not in (comment.author_id, post_author_id):
            raise UnauthorizedError("Unauthorized: You cannot delete this comment")
        comment.soft_delete()
        await session.commit()
    return {"message": "Comment deleted successfully", "id": comment_id}


async def get_feed(user_id: int, page: int = 1, page_size: int = 20) -> Dict[str, Any]:
    """
    Own posts, public posts and connection-only posts from accepted
    connections, newest first.
    """
    async with AsyncSessionLocal() as session:
        connections = await connected_user_ids(session, user_id)
        visible = [
            Post.author_id == user_id,
            Post.visibility == PostVisibility.PUBLIC,
        ]
        if connections:
            visible.append(
                and_(
                    Post.visibility == PostVisibility.CONNECTIONS,
                    Post.author_id.in_(connections),
                )
            )
        condition = or_(*visible)

        total = await session.scalar(select(func.count(Post.id)).where(condition)) or 0
        result = await session.execute(
            select(Post)
            .where(condition)
            .order_by(Post.created_at.desc(), Post.id.desc())
            .limit(page_size)
            .offset(page_offset(page, page_size))
        )
        items = []
        for post in result.scalars().all():
            items.append(await serialize_post(session, post, user_id))

    return paginated(items, total, page, page_size)
