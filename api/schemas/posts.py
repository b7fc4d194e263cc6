"""Post, comment and chat message schemas."""

from typing import Optional

from pydantic import BaseModel, Field

from database.models.posts import PostVisibility, TagType


class PostTagIn(BaseModel):
    type: TagType = Field(description="Tag a user or a company")
    id: int = Field(gt=0, description="Tagged user or company id")


class PostUpdate(BaseModel):
    content: Optional[str] = Field(None, min_length=1, max_length=5000)
    tags: Optional[list[PostTagIn]] = None


class VisibilityUpdate(BaseModel):
    visibility: PostVisibility


class CommentCreate(BaseModel):
    content: str = Field(min_length=1, max_length=1000)


class ChatStart(BaseModel):
    user_id: int = Field(gt=0, description="The other participant")


class MessageContent(BaseModel):
    content: str = Field(min_length=1, description="Message plaintext")
