"""
Social feed endpoints: posts, interactions and comments.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Path, UploadFile, status
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from api.dependencies import get_current_user, get_pagination_params
from api.schemas.common import PaginationParams
from api.schemas.posts import CommentCreate, PostTagIn, PostUpdate, VisibilityUpdate
from api.services import posts as post_service
from core.errors import ValidationError
from database.models.posts import PostVisibility
from database.models.users import User

router = APIRouter(prefix="/posts", tags=["posts"])

_tags_adapter = TypeAdapter(list[PostTagIn])


def _parse_tags(raw: Optional[str]) -> list[dict]:
    if not raw:
        return []
    try:
        tags = _tags_adapter.validate_json(raw)
    except PydanticValidationError as e:
        raise ValidationError("Tags must be a JSON list of {type, id} objects") from e
    return [tag.model_dump() for tag in tags]


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create Post",
    description="Multipart form: content, visibility, tags as a JSON list and an optional media file.",
)
async def create_post(
    content: str = Form(..., min_length=1, max_length=5000),
    visibility: PostVisibility = Form(PostVisibility.PUBLIC),
    tags: Optional[str] = Form(None, description='JSON list, e.g. [{"type": "user", "id": 4}]'),
    media: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
):
    media_data = await media.read() if media is not None else None
    return await post_service.create_post(
        current_user.id,
        content,
        visibility=visibility,
        tags=_parse_tags(tags),
        media=media_data,
        media_content_type=media.content_type if media is not None else None,
    )


@router.get("/feed", summary="Feed")
async def feed(
    pagination: PaginationParams = Depends(get_pagination_params),
    current_user: User = Depends(get_current_user),
):
    return await post_service.get_feed(current_user.id, pagination.page, pagination.page_size)


@router.get("/users/{author_id}", summary="List User Posts")
async def list_user_posts(
    author_id: int = Path(..., description="Author user ID"),
    pagination: PaginationParams = Depends(get_pagination_params),
    current_user: User = Depends(get_current_user),
):
    return await post_service.list_user_posts(
        current_user.id, author_id, pagination.page, pagination.page_size
    )


@router.get("/{post_id}", summary="Get Post")
async def get_post(
    post_id: int = Path(..., description="Post ID"),
    current_user: User = Depends(get_current_user),
):
    return await post_service.get_post(current_user.id, post_id)


@router.patch("/{post_id}", summary="Update Post")
async def update_post(
    body: PostUpdate,
    post_id: int = Path(..., description="Post ID"),
    current_user: User = Depends(get_current_user),
):
    tags = [tag.model_dump() for tag in body.tags] if body.tags is not None else None
    return await post_service.update_post(
        current_user.id, post_id, content=body.content, tags=tags
    )


@router.delete("/{post_id}", summary="Delete Post")
async def delete_post(
    post_id: int = Path(..., description="Post ID"),
    current_user: User = Depends(get_current_user),
):
    return await post_service.delete_post(current_user.id, post_id)


@router.patch("/{post_id}/visibility", summary="Change Visibility")
async def change_visibility(
    body: VisibilityUpdate,
    post_id: int = Path(..., description="Post ID"),
    current_user: User = Depends(get_current_user),
):
    return await post_service.toggle_visibility(current_user.id, post_id, body.visibility)


# ==================== Interactions ===================== #
@router.post("/{post_id}/like", summary="Like Or Unlike")
async def like(
    post_id: int = Path(..., description="Post ID"),
    current_user: User = Depends(get_current_user),
):
    return await post_service.toggle_like(current_user.id, post_id)


@router.post("/{post_id}/share", summary="Share Or Unshare")
async def share(
    post_id: int = Path(..., description="Post ID"),
    current_user: User = Depends(get_current_user),
):
    return await post_service.toggle_share(current_user.id, post_id)


@router.post("/{post_id}/save", summary="Save Or Unsave")
async def save(
    post_id: int = Path(..., description="Post ID"),
    current_user: User = Depends(get_current_user),
):
    return await post_service.toggle_save(current_user.id, post_id)


@router.post(
    "/{post_id}/comments",
    status_code=status.HTTP_201_CREATED,
    summary="Add Comment",
)
async def add_comment(
    body: CommentCreate,
    post_id: int = Path(..., description="Post ID"),
    current_user: User = Depends(get_current_user),
):
    return await post_service.add_comment(current_user.id, post_id, body.content)


@router.delete("/comments/{comment_id}", summary="Delete Comment")
async def delete_comment(
    comment_id: int = Path(..., description="Comment ID"),
    current_user: User = Depends(get_current_user),
):
    return await post_service.delete_comment(current_user.id, comment_id)
