"""
Live feeds over WebSocket.

Routes:
    WS /ws/notifications?token=...                      unread snapshots + join prompts
    WS /ws/chats/{space}/{conversation_id}?token=...    appended messages

Server sends:
    {"event": "snapshot", "data": {"notifications": [...], "prompts": [...], "unread_count": n}}
    {"event": "history", "data": {"messages": [...]}}
    {"event": "message", "data": {...}}
    {"event": "read", "data": {"reader_id": ..., "count": ...}}
    {"event": "error", "data": {"code": ..., "message": ...}}
    {"event": "pong"}

Client sends:
    {"event": "ping"}
    {"event": "read", "data": {"notification_id": 1}}      (notifications feed)
    {"event": "send", "data": {"text": "..."}}             (chat feed)

Each connection owns one broker subscription, opened after authentication
and released when the connection closes. Database work runs in a fresh
session per step, so an idle feed holds no pooled connection.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from studyhub.api.notification import build_snapshot
from studyhub.database import get_session_factory
from studyhub.exceptions import ChatSendFailed, StudyHubException
from studyhub.realtime import Subscription, broker, chat_topic, notifications_topic
from studyhub.services import chat_service, notification_service
from studyhub.utils.security import resolve_user_from_token

logger = logging.getLogger(__name__)
router = APIRouter(tags=["realtime"])


async def _with_session(session_factory: sessionmaker, work: Callable[[Session], Any]) -> Any:
    """Run ``work`` in a worker thread inside its own short-lived session."""
    def call():
        with session_factory() as db:
            return work(db)

    return await run_in_threadpool(call)


def _identify(db: Session, token: str):
    user = resolve_user_from_token(db, token)
    if user is None:
        return None
    return user.id, user.name, user.is_teacher


async def _send_error(websocket: WebSocket, exc: StudyHubException) -> None:
    data = {"code": type(exc).__name__, "message": str(exc)}
    if isinstance(exc, ChatSendFailed):
        data.update({"text": exc.text, "retryable": True})
    await websocket.send_json({"event": "error", "data": data})


async def _pump(
    websocket: WebSocket,
    subscription: Subscription,
    on_update: Callable[[dict], Awaitable[None]],
    on_message: Callable[[dict], Awaitable[None]],
) -> None:
    """Serve broker events and client messages until the client disconnects."""
    next_update = asyncio.ensure_future(subscription.get())
    next_message = asyncio.ensure_future(websocket.receive_json())
    try:
        while True:
            done, _ = await asyncio.wait(
                {next_update, next_message}, return_when=asyncio.FIRST_COMPLETED
            )
            if next_message in done:
                message = next_message.result()
                next_message = asyncio.ensure_future(websocket.receive_json())
                if isinstance(message, dict) and message.get("event") == "ping":
                    await websocket.send_json({"event": "pong"})
                elif isinstance(message, dict):
                    await on_message(message)
            if next_update in done:
                event = next_update.result()
                next_update = asyncio.ensure_future(subscription.get())
                await on_update(event)
    finally:
        next_update.cancel()
        next_message.cancel()


@router.websocket("/ws/notifications")
async def notifications_feed(
    websocket: WebSocket,
    token: str = Query(...),
    session_factory: sessionmaker = Depends(get_session_factory),
) -> None:
    identity = await _with_session(session_factory, lambda db: _identify(db, token))
    if identity is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    user_id = identity[0]

    await websocket.accept()
    logger.info("Notification feed opened (user_id=%s)", user_id)

    async def send_snapshot(_event=None) -> None:
        snapshot = await _with_session(session_factory, lambda db: build_snapshot(db, user_id))
        await websocket.send_json({"event": "snapshot", "data": snapshot})

    async def handle_message(message: dict) -> None:
        if message.get("event") != "read":
            return
        try:
            notification_id = int((message.get("data") or {}).get("notification_id"))
        except (TypeError, ValueError):
            await websocket.send_json({
                "event": "error",
                "data": {"code": "ValidationFailed", "message": "notification_id is required"},
            })
            return
        try:
            # The resulting change comes back through the subscription.
            await _with_session(
                session_factory,
                lambda db: notification_service.mark_notification_read(
                    db, user_id=user_id, notification_id=notification_id
                ).id,
            )
        except StudyHubException as exc:
            await _send_error(websocket, exc)

    try:
        async with broker.subscribe(notifications_topic(user_id)) as subscription:
            await send_snapshot()
            await _pump(websocket, subscription, send_snapshot, handle_message)
    except WebSocketDisconnect:
        logger.info("Notification feed closed (user_id=%s)", user_id)


@router.websocket("/ws/chats/{space}/{conversation_id}")
async def chat_feed(
    websocket: WebSocket,
    space: str,
    conversation_id: str,
    token: str = Query(...),
    limit: int = Query(100, ge=1, le=500),
    session_factory: sessionmaker = Depends(get_session_factory),
) -> None:
    identity = await _with_session(session_factory, lambda db: _identify(db, token))
    if identity is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    user_id, user_name, is_teacher = identity
    try:
        space = chat_service.validate_space(space)
        chat_service.ensure_participant(conversation_id, user_id)
    except StudyHubException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    logger.info("Chat feed opened (user_id=%s, conversation_id=%s)", user_id, conversation_id)

    def load_history(db: Session) -> list:
        return [
            chat_service.serialize_message(m)
            for m in chat_service.list_messages(
                db, space=space, conversation_id=conversation_id, limit=limit
            )
        ]

    async def forward(event: dict) -> None:
        await websocket.send_json(event)

    async def handle_message(message: dict) -> None:
        if message.get("event") != "send":
            return
        text = (message.get("data") or {}).get("text", "")
        try:
            # The appended message comes back through the subscription.
            await _with_session(
                session_factory,
                lambda db: chat_service.send_message(
                    db,
                    space=space,
                    conversation_id=conversation_id,
                    sender_id=user_id,
                    sender_name=user_name,
                    is_teacher=is_teacher,
                    text=text,
                ).id,
            )
        except StudyHubException as exc:
            await _send_error(websocket, exc)

    try:
        async with broker.subscribe(chat_topic(space, conversation_id)) as subscription:
            history = await _with_session(session_factory, load_history)
            await websocket.send_json({"event": "history", "data": {"messages": history}})
            await _pump(websocket, subscription, forward, handle_message)
    except WebSocketDisconnect:
        logger.info("Chat feed closed (user_id=%s, conversation_id=%s)", user_id, conversation_id)
