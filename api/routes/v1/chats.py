"""
Encrypted one-to-one chat endpoints.

Live events (newMessage, messageEdited, messageDeleted, messagesRead,
chatDeleted) are pushed over the ``/ws`` socket.
"""

from fastapi import APIRouter, Depends, Path, Query, status

from api.dependencies import get_current_user
from api.schemas.posts import ChatStart, MessageContent
from api.services import chats as chat_service
from database.models.users import User

router = APIRouter(prefix="/chats", tags=["chats"])


@router.post(
    "",
    summary="Start Chat",
    description="Open the chat with another user. Returns the existing chat when there is one.",
)
async def start_chat(body: ChatStart, current_user: User = Depends(get_current_user)):
    return await chat_service.start_chat(current_user.id, body.user_id)


@router.get("", summary="List Chats")
async def list_chats(current_user: User = Depends(get_current_user)):
    return await chat_service.get_user_chats(current_user.id)


@router.get("/{chat_id}/messages", summary="Chat History")
async def chat_history(
    chat_id: int = Path(..., description="Chat ID"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    current_user: User = Depends(get_current_user),
):
    return await chat_service.get_chat_history(current_user.id, chat_id, page, page_size)


@router.post(
    "/{chat_id}/messages",
    status_code=status.HTTP_201_CREATED,
    summary="Send Message",
)
async def send_message(
    body: MessageContent,
    chat_id: int = Path(..., description="Chat ID"),
    current_user: User = Depends(get_current_user),
):
    return await chat_service.send_message(current_user.id, chat_id, body.content)


@router.post("/{chat_id}/read", summary="Mark Messages Read")
async def mark_read(
    chat_id: int = Path(..., description="Chat ID"),
    current_user: User = Depends(get_current_user),
):
    return await chat_service.mark_messages_as_read(current_user.id, chat_id)


@router.delete("/{chat_id}", summary="Delete Chat")
async def delete_chat(
    chat_id: int = Path(..., description="Chat ID"),
    current_user: User = Depends(get_current_user),
):
    return await chat_service.delete_chat(current_user.id, chat_id)


@router.patch("/messages/{message_id}", summary="Edit Message")
async def edit_message(
    body: MessageContent,
    message_id: int = Path(..., description="Message ID"),
    current_user: User = Depends(get_current_user),
):
    return await chat_service.edit_message(current_user.id, message_id, body.content)


@router.delete("/messages/{message_id}", summary="Delete Message")
async def delete_message(
    message_id: int = Path(..., description="Message ID"),
    current_user: User = Depends(get_current_user),
):
    return await chat_service.delete_message(current_user.id, message_id)
