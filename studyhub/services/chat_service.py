"""One-to-one chat: append-only message log per conversation plus thread summaries."""
from __future__ import annotations

import logging
import time
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from studyhub import models
from studyhub.exceptions import ChatSendFailed, NotAuthorized, ValidationFailed
from studyhub.models.chat import ChatMessage, ChatSpace, ChatThread
from studyhub.realtime import broker, chat_topic
from studyhub.utils.identifiers import conversation_id, conversation_members

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 500
MAX_SEND_ATTEMPTS = 3


def _now_ms() -> int:
    return int(time.time() * 1000)


def validate_space(space: str) -> str:
    try:
        return ChatSpace(space).value
    except ValueError:
        raise ValidationFailed("space", f"Unknown chat space '{space}'")


def participant_ids(conversation: str) -> Tuple[int, int]:
    members = conversation_members(conversation)
    if len(members) != 2:
        raise ValidationFailed("conversation_id", "Malformed conversation id")
    try:
        first, second = (int(member) for member in members)
    except ValueError:
        raise ValidationFailed("conversation_id", "Malformed conversation id")
    if first == second or conversation_id(first, second) != conversation:
        raise ValidationFailed("conversation_id", "Malformed conversation id")
    return first, second


def ensure_participant(conversation: str, user_id: int) -> Tuple[int, int]:
    members = participant_ids(conversation)
    if user_id not in members:
        raise NotAuthorized("You are not a participant in this conversation")
    return members


def serialize_message(message: ChatMessage) -> dict:
    return {
        "id": message.id,
        "space": message.space,
        "conversation_id": message.conversation_id,
        "sender_id": message.sender_id,
        "sender_name": message.sender_name,
        "is_teacher": bool(message.is_teacher),
        "text": message.text,
        "timestamp": message.timestamp,
        "read": bool(message.read),
    }


def _next_timestamp(db: Session, space: str, conversation: str) -> int:
    last = db.query(func.max(ChatMessage.timestamp)).filter(
        ChatMessage.space == space,
        ChatMessage.conversation_id == conversation,
    ).scalar()
    now = _now_ms()
    if last is not None and now <= last:
        return last + 1
    return now


def _stage_message(
    db: Session,
    *,
    space: str,
    conversation_id: str,
    first_id: int,
    second_id: int,
    sender_id: int,
    sender_name: str,
    is_teacher: bool,
    text: str,
) -> ChatMessage:
    timestamp = _next_timestamp(db, space, conversation_id)
    message = ChatMessage(
        space=space,
        conversation_id=conversation_id,
        sender_id=sender_id,
        sender_name=sender_name,
        is_teacher=is_teacher,
        text=text,
        timestamp=timestamp,
        read=False,
    )
    db.add(message)

    thread = db.query(ChatThread).filter(
        ChatThread.space == space,
        ChatThread.conversation_id == conversation_id,
    ).first()
    if thread is None:
        thread = ChatThread(
            space=space,
            conversation_id=conversation_id,
            first_user_id=min(first_id, second_id),
            second_user_id=max(first_id, second_id),
        )
        db.add(thread)
    thread.last_message = text
    thread.last_message_time = timestamp
    thread.last_sender_id = sender_id
    return message


def send_message(
    db: Session,
    *,
    space: str,
    conversation_id: str,
    sender_id: int,
    sender_name: str,
    is_teacher: bool,
    text: str,
) -> ChatMessage:
    """Append one message and refresh the thread summary in a single commit.

    A concurrent send that took the same timestamp (or created the thread
    first) trips a unique constraint; the append is then retried on top of it.
    """
    space = validate_space(space)
    cleaned = (text or "").strip()
    if not cleaned:
        raise ValidationFailed("text", "Message text must not be blank")
    if len(cleaned) > MAX_MESSAGE_LENGTH:
        raise ValidationFailed("text", f"Messages are limited to {MAX_MESSAGE_LENGTH} characters")
    first_id, second_id = ensure_participant(conversation_id, sender_id)

    last_error: Optional[Exception] = None
    for attempt in range(1, MAX_SEND_ATTEMPTS + 1):
        try:
            message = _stage_message(
                db,
                space=space,
                conversation_id=conversation_id,
                first_id=first_id,
                second_id=second_id,
                sender_id=sender_id,
                sender_name=sender_name,
                is_teacher=is_teacher,
                text=cleaned,
            )
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            last_error = exc
            logger.info(
                "Concurrent chat append (conversation_id=%s, attempt %d), retrying",
                conversation_id,
                attempt,
            )
            continue
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error(
                "Chat send failed (space=%s, conversation_id=%s, sender_id=%s): %s",
                space,
                conversation_id,
                sender_id,
                exc,
            )
            raise ChatSendFailed(conversation_id, cleaned, exc) from exc

        db.refresh(message)
        broker.publish(chat_topic(space, conversation_id), {"event": "message", "data": serialize_message(message)})
        return message

    logger.error("Chat send gave up after %d attempts (conversation_id=%s)", MAX_SEND_ATTEMPTS, conversation_id)
    raise ChatSendFailed(conversation_id, cleaned, last_error)


def list_messages(
    db: Session,
    *,
    space: str,
    conversation_id: str,
    limit: int = 100,
    before: Optional[int] = None,
) -> List[ChatMessage]:
    """Most recent ``limit`` messages, returned oldest first."""
    space = validate_space(space)
    query = db.query(ChatMessage).filter(
        ChatMessage.space == space,
        ChatMessage.conversation_id == conversation_id,
    )
    if before is not None:
        query = query.filter(ChatMessage.timestamp < before)
    latest = query.order_by(ChatMessage.timestamp.desc(), ChatMessage.id.desc()).limit(limit).all()
    return list(reversed(latest))


def mark_conversation_read(
    db: Session,
    *,
    space: str,
    conversation_id: str,
    reader_id: int,
) -> int:
    """Mark the counterpart's messages read; the reader's own messages are untouched."""
    space = validate_space(space)
    ensure_participant(conversation_id, reader_id)
    updated = db.query(ChatMessage).filter(
        ChatMessage.space == space,
        ChatMessage.conversation_id == conversation_id,
        ChatMessage.sender_id != reader_id,
        ChatMessage.read.is_(False),
    ).update({"read": True}, synchronize_session=False)
    db.commit()
    if updated:
        broker.publish(
            chat_topic(space, conversation_id),
            {"event": "read", "data": {"reader_id": reader_id, "count": int(updated)}},
        )
    return int(updated)


def list_threads(db: Session, *, user_id: int, space: Optional[str] = None) -> List[dict]:
    query = db.query(ChatThread).filter(
        (ChatThread.first_user_id == user_id) | (ChatThread.second_user_id == user_id)
    )
    if space:
        query = query.filter(ChatThread.space == validate_space(space))
    threads = query.order_by(ChatThread.last_message_time.desc()).all()

    results = []
    for thread in threads:
        other_id = thread.second_user_id if thread.first_user_id == user_id else thread.first_user_id
        other = db.query(models.User).filter(models.User.id == other_id).first()
        unread = db.query(ChatMessage).filter(
            ChatMessage.space == thread.space,
            ChatMessage.conversation_id == thread.conversation_id,
            ChatMessage.sender_id != user_id,
            ChatMessage.read.is_(False),
        ).count()
        results.append({
            "space": thread.space,
            "conversation_id": thread.conversation_id,
            "other_user_id": other_id,
            "other_user_name": other.name if other else None,
            "last_message": thread.last_message,
            "last_message_time": thread.last_message_time,
            "last_sender_id": thread.last_sender_id,
            "unread_count": unread,
        })
    return results
