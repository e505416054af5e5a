"""Live support chat between users and staff."""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from flask import current_app

from patronat.i18n import translate
from patronat.models import CHATS, MESSAGES, MessageSender
from patronat.services.store import (
    ASCENDING,
    SERVER_TIMESTAMP,
    DocumentSnapshot,
    NotFoundError,
    get_store,
)
from patronat.services.validation import ValidationError

if TYPE_CHECKING:
    from patronat.auth import SessionContext

SENDERS = {sender.value for sender in MessageSender}


def _messages(chat_id: str):
    return get_store().collection(f"{CHATS}/{chat_id}/{MESSAGES}")


def _as_message(snap: DocumentSnapshot) -> dict:
    return {'id': snap.id, **snap.to_dict()}


def get_chat(chat_id: str) -> dict:
    snap = get_store().document(f"{CHATS}/{chat_id}").get()
    if not snap.exists:
        raise NotFoundError(f"Chat {chat_id} not found")
    return {'id': snap.id, **snap.to_dict()}


def get_or_create_chat(ctx: SessionContext, user_info: dict | None = None) -> dict:
    """Return the user's active chat, opening one with a greeting when there is none."""
    store = get_store()
    existing = (
        store.collection(CHATS)
        .where('userId', '==', ctx.user_id)
        .where('isActive', '==', True)
        .limit(1)
        .get()
    )
    if existing:
        return {'id': existing[0].id, **existing[0].to_dict()}

    info = {'name': ctx.name, 'email': ctx.email, **(user_info or {})}
    ref = store.collection(CHATS).add({
        'userId': ctx.user_id,
        'userInfo': info,
        'createdAt': SERVER_TIMESTAMP,
        'isActive': True,
    })
    name = info.get('name') or info.get('email') or ''
    send_message(ref.id, translate('greeting', ctx.language, name=name), MessageSender.SUPPORT.value)
    current_app.logger.info(f"Opened chat {ref.id} for user {ctx.user_id}")
    return get_chat(ref.id)


def send_message(chat_id: str, text: str, sender: str) -> dict:
    if sender not in SENDERS:
        raise ValidationError({'sender': 'invalidSender'})
    text = (text or '').strip()
    if not text:
        raise ValidationError({'text': 'required'})
    chat = get_chat(chat_id)
    if not chat.get('isActive'):
        raise ValidationError({'chat': 'chatClosed'})

    store = get_store()
    batch = store.batch()
    message_ref = _messages(chat_id).document()
    batch.set(message_ref, {'text': text, 'sender': sender, 'createdAt': SERVER_TIMESTAMP, 'isRead': False})
    batch.update(store.document(f"{CHATS}/{chat_id}"), {'lastMessage': text, 'lastMessageAt': SERVER_TIMESTAMP})
    batch.commit()
    return _as_message(message_ref.get())


def list_messages(chat_id: str) -> list[dict]:
    get_chat(chat_id)
    return [_as_message(snap) for snap in _messages(chat_id).order_by('createdAt', ASCENDING).get()]


def mark_messages_read(chat_id: str, reader: str) -> int:
    """Mark the other side's unread messages as read; returns how many changed."""
    if reader not in SENDERS:
        raise ValidationError({'reader': 'invalidSender'})
    unread = _messages(chat_id).where('isRead', '==', False).where('sender', '!=', reader).get()
    if not unread:
        return 0
    batch = get_store().batch()
    for snap in unread:
        batch.update(snap.reference, {'isRead': True})
    return batch.commit()


def close_chat(chat_id: str) -> dict:
    get_chat(chat_id)
    get_store().document(f"{CHATS}/{chat_id}").update({'isActive': False, 'closedAt': SERVER_TIMESTAMP})
    return get_chat(chat_id)


def list_active_chats() -> list[dict]:
    """Open chats for the support side, newest activity first, with unread counts."""
    chats = []
    for snap in get_store().collection(CHATS).where('isActive', '==', True).get():
        unread = (
            snap.reference.collection(MESSAGES)
            .where('sender', '==', MessageSender.USER.value)
            .where('isRead', '==', False)
            .get()
        )
        chats.append({'id': snap.id, **snap.to_dict(), 'unreadCount': len(unread)})
    chats.sort(key=lambda chat: str(chat.get('lastMessageAt') or chat.get('createdAt') or ''), reverse=True)
    return chats


def watch_messages(chat_id: str, callback: Callable[[list[dict]], None]) -> Callable[[], None]:
    """
    Push the ordered message list to ``callback`` now and on every change.

    The caller owns the returned unsubscribe function and must call it when
    the view goes away.
    """
    query = _messages(chat_id).order_by('createdAt', ASCENDING)
    return get_store().on_snapshot(query, lambda snapshots: callback([_as_message(s) for s in snapshots]))


__all__ = [
    'close_chat',
    'get_chat',
    'get_or_create_chat',
    'list_active_chats',
    'list_messages',
    'mark_messages_read',
    'send_message',
    'watch_messages',
]
