"""
Encrypted one-to-one messaging.

Each chat has its own AES-256 key, stored only wrapped under SERVER_SECRET.
Message bodies are stored only as ciphertext under the chat key. Plaintext
leaves this module only in responses to a participant and in live pushes to
the other participant.
"""

import logging
from functools import lru_cache
from typing import Any, Callable, Dict, List

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from api.services import notifications as notification_service
from api.services.common import load_user, page_offset, paginated, user_summary
from core.config import settings
from core.errors import NotFoundError, UnauthorizedError, ValidationError
from core.realtime import schedule_push
from core.utils.datetime import isoformat, now
from database.engine import AsyncSessionLocal
from database.models.chats import Chat, Message, MessageStatus
from database.models.notifications import NotificationType
from database.models.users import User
from database.security import ChatCipher

logger = logging.getLogger(__name__)

NOT_PARTICIPANT = "Unauthorized: You are not a participant in this chat"


@lru_cache(maxsize=1)
def get_cipher() -> ChatCipher:
    return ChatCipher(settings.server_secret)


def _ordered(a: int, b: int) -> tuple[int, int]:
    return (a, b) if a < b else (b, a)


def _clean_content(content: Any) -> str:
    if not isinstance(content, str) or not content.strip():
        raise ValidationError("Message must be a non-empty string")
    return content


def serialize_message(message: Message, decrypt: Callable[[str], str]) -> Dict[str, Any]:
    return {
        "id": message.id,
        "chat_id": message.chat_id,
        "sender_id": message.sender_id,
        "content": decrypt(message.ciphertext),
        "status": message.status.value,
        "created_at": isoformat(message.created_at),
        "edited_at": isoformat(message.edited_at),
    }


def serialize_chat(chat: Chat) -> Dict[str, Any]:
    return {
        "id": chat.id,
        "participant_ids": list(chat.participant_ids),
        "last_message_at": isoformat(chat.last_message_at),
        "created_at": isoformat(chat.created_at),
    }


async def _load_chat_for(session: AsyncSession, user_id: int, chat_id: int) -> Chat:
    chat = await session.scalar(select(Chat).where(Chat.id == chat_id))
    if chat is None:
        raise NotFoundError("Chat not found")
    if not chat.has_participant(user_id):
        raise UnauthorizedError(NOT_PARTICIPANT)
    return chat


async def _load_own_message(
    session: AsyncSession, user_id: int, message_id: int, action: str
) -> tuple[Message, Chat]:
    message = await session.scalar(select(Message).where(Message.id == message_id))
    if message is None:
        raise NotFoundError("Message not found")
    chat = await _load_chat_for(session, user_id, message.chat_id)
    if message.sender_id != user_id:
        raise UnauthorizedError(f"Unauthorized: You can only {action} your own messages")
    return message, chat


async def _find_chat(session: AsyncSession, low: int, high: int) -> Chat | None:
    return await session.scalar(
        select(Chat)
        .where(Chat.user_low_id == low, Chat.user_high_id == high)
        .execution_options(include_deleted=True)
    )


async def start_chat(user_id: int, target_user_id: int) -> Dict[str, Any]:
    """
    Open the chat between the caller and another user.

    Idempotent: the same pair always maps to the same chat. A chat deleted
    earlier is restored with an empty history.
    """
    if user_id == target_user_id:
        raise ValidationError("You cannot start a chat with yourself")

    low, high = _ordered(user_id, target_user_id)
    async with AsyncSessionLocal() as session:
        await load_user(session, target_user_id)

        chat = await _find_chat(session, low, high)
        created = False
        if chat is None:
            chat = Chat(
                user_low_id=low,
                user_high_id=high,
                encrypted_key=get_cipher().new_wrapped_key(),
            )
            session.add(chat)
            try:
                await session.commit()
                created = True
            except IntegrityError:
                # the same pair was created concurrently
                await session.rollback()
                chat = await _find_chat(session, low, high)
        elif chat.is_deleted:
            chat.restore()
            await session.commit()

        logger.info(f"Chat {chat.id} {'created' if created else 'opened'} by user {user_id}")
        return {"chat": serialize_chat(chat), "created": created}


async def send_message(user_id: int, chat_id: int, content: Any) -> Dict[str, Any]:
    """
    Encrypt and store a message, push it to the other participant, then mark
    it delivered.

    Delivered means handed to the push layer; the recipient does not
    acknowledge anything.
    """
    content = _clean_content(content)
    cipher = get_cipher()

    async with AsyncSessionLocal() as session:
        chat = await _load_chat_for(session, user_id, chat_id)
        recipient_id = chat.other_participant(user_id)
        sender = await load_user(session, user_id)

        message = Message(
            chat_id=chat.id,
            sender_id=user_id,
            ciphertext=cipher.encrypt_message(chat.encrypted_key, content),
            status=MessageStatus.SENT,
        )
        session.add(message)
        chat.last_message_at = now()
        notification = notification_service.stage_notification(
            session,
            recipient_id,
            NotificationType.NEW_MESSAGE,
            f"New message from {sender.full_name or 'a user'}",
            related_id=chat.id,
        )
        await session.commit()

        payload = serialize_message(message, lambda _: content)
        schedule_push(recipient_id, "newMessage", payload)
        notification_service.publish([notification])

        message.status = MessageStatus.DELIVERED
        await session.commit()

    return {**payload, "status": MessageStatus.DELIVERED.value}


async def get_chat_history(
    user_id: int, chat_id: int, page: int = 1, page_size: int = 50
) -> Dict[str, Any]:
    """Decrypted messages of a chat, oldest first."""
    async with AsyncSessionLocal() as session:
        chat = await _load_chat_for(session, user_id, chat_id)
        decrypt = get_cipher().decryptor(chat.encrypted_key)

        total = await session.scalar(
            select(func.count(Message.id)).where(Message.chat_id == chat.id)
        ) or 0
        result = await session.execute(
            select(Message)
            .where(Message.chat_id == chat.id)
            .order_by(Message.id.asc())
            .limit(page_size)
            .offset(page_offset(page, page_size))
        )
        items = [serialize_message(m, decrypt) for m in result.scalars().all()]

    response = paginated(items, total, page, page_size)
    response["chat"] = serialize_chat(chat)
    return response


async def get_user_chats(user_id: int) -> List[Dict[str, Any]]:
    """The caller's chats, most recently active first, with the last message."""
    cipher = get_cipher()
    async with AsyncSessionLocal() as session:
        result = await session.execute(
            select(Chat)
            .where(or_(Chat.user_low_id == user_id, Chat.user_high_id == user_id))
            .order_by(func.coalesce(Chat.last_message_at, Chat.created_at).desc())
        )
        chats = result.scalars().all()

        items = []
        for chat in chats:
            other_id = chat.other_participant(user_id)
            other = await session.scalar(
                select(User).where(User.id == other_id).execution_options(include_deleted=True)
            )
            last = await session.scalar(
                select(Message)
                .where(Message.chat_id == chat.id)
                .order_by(Message.id.desc())
                .limit(1)
            )
            unread = await session.scalar(
                select(func.count(Message.id)).where(
                    Message.chat_id == chat.id,
                    Message.sender_id == other_id,
                    Message.status != MessageStatus.READ,
                )
            ) or 0
            items.append({
                **serialize_chat(chat),
                "participant": user_summary(other),
                "last_message": serialize_message(last, cipher.decryptor(chat.encrypted_key))
                if last else None,
                "unread_count": unread,
            })

    return items


async def edit_message(user_id: int, message_id: int, content: Any) -> Dict[str, Any]:
    content = _clean_content(content)
    cipher = get_cipher()

    async with AsyncSessionLocal() as session:
        message, chat = await _load_own_message(session, user_id, message_id, "edit")
        message.ciphertext = cipher.encrypt_message(chat.encrypted_key, content)
        message.edited_at = now()
        await session.commit()

        payload = serialize_message(message, lambda _: content)

    schedule_push(chat.other_participant(user_id), "messageEdited", payload)
    return payload


async def delete_message(user_id: int, message_id: int) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        message, chat = await _load_own_message(session, user_id, message_id, "delete")
        message.soft_delete()
        await session.commit()

    schedule_push(
        chat.other_participant(user_id),
        "messageDeleted",
        {"chat_id": chat.id, "message_id": message_id},
    )
    return {"message": "Message deleted successfully", "id": message_id}


async def mark_messages_as_read(user_id: int, chat_id: int) -> Dict[str, Any]:
    """
    Mark every unread message from the other participant as read.

    The caller's own messages are never touched.

    Returns:
        Ids of the messages that changed
    """
    async with AsyncSessionLocal() as session:
        chat = await _load_chat_for(session, user_id, chat_id)
        other_id = chat.other_participant(user_id)

        result = await session.execute(
            select(Message).where(
                and_(
                    Message.chat_id == chat.id,
                    Message.sender_id == other_id,
                    Message.status != MessageStatus.READ,
                )
            )
        )
        messages = result.scalars().all()
        for message in messages:
            message.status = MessageStatus.READ
        await session.commit()

    changed = [m.id for m in messages]
    if changed:
        schedule_push(other_id, "messagesRead", {"chat_id": chat_id, "message_ids": changed})
    return {"chat_id": chat_id, "updated": changed}


async def delete_chat(user_id: int, chat_id: int) -> Dict[str, Any]:
    """Soft-delete a chat and its messages for both participants."""
    async with AsyncSessionLocal() as session:
        chat = await _load_chat_for(session, user_id, chat_id)
        result = await session.execute(select(Message).where(Message.chat_id == chat.id))
        for message in result.scalars().all():
            message.soft_delete()
        chat.soft_delete()
        await session.commit()

    schedule_push(chat.other_participant(user_id), "chatDeleted", {"chat_id": chat_id})
    logger.info(f"Chat {chat_id} deleted by user {user_id}")
    return {"message": "Chat deleted successfully", "id": chat_id}
