"""Live chat routes, including the Server-Sent Events message stream."""

from __future__ import annotations

import queue

from flask import Response, current_app, jsonify, stream_with_context
from flask_login import login_required

from patronat.auth import SessionContext, admin_required
from patronat.blueprints.api import api_bp
from patronat.blueprints.api.helpers import json_body, require_context
from patronat.models import MessageSender
from patronat.services import chat
from patronat.services.store import PermissionDeniedError

KEEPALIVE_SECONDS = 15


def _chat_for(ctx: SessionContext, chat_id: str) -> dict:
    conversation = chat.get_chat(chat_id)
    if not ctx.is_admin and conversation.get('userId') != ctx.user_id:
        raise PermissionDeniedError(f"Chat {chat_id} does not belong to user {ctx.user_id}")
    return conversation


def _side(ctx: SessionContext, conversation: dict) -> str:
    if ctx.is_admin and conversation.get('userId') != ctx.user_id:
        return MessageSender.SUPPORT.value
    return MessageSender.USER.value


@api_bp.route('/chat', methods=['POST'])
@login_required
def open_chat_route():
    conversation = chat.get_or_create_chat(require_context(), json_body().get('userInfo'))
    return jsonify({'chat': conversation})


@api_bp.route('/chat/active', methods=['GET'])
@admin_required
def active_chats_route():
    return jsonify({'items': chat.list_active_chats()})


@api_bp.route('/chat/<chat_id>/messages', methods=['GET'])
@login_required
def list_messages_route(chat_id):
    _chat_for(require_context(), chat_id)
    return jsonify({'items': chat.list_messages(chat_id)})


@api_bp.route('/chat/<chat_id>/messages', methods=['POST'])
@login_required
def send_message_route(chat_id):
    ctx = require_context()
    conversation = _chat_for(ctx, chat_id)
    message = chat.send_message(chat_id, json_body().get('text'), _side(ctx, conversation))
    return jsonify({'message': message}), 201


@api_bp.route('/chat/<chat_id>/read', methods=['POST'])
@login_required
def mark_read_route(chat_id):
    ctx = require_context()
    conversation = _chat_for(ctx, chat_id)
    return jsonify({'updated': chat.mark_messages_read(chat_id, _side(ctx, conversation))})


@api_bp.route('/chat/<chat_id>/close', methods=['POST'])
@login_required
def close_chat_route(chat_id):
    _chat_for(require_context(), chat_id)
    return jsonify({'chat': chat.close_chat(chat_id)})


@api_bp.route('/chat/<chat_id>/stream', methods=['GET'])
@login_required
def stream_messages_route(chat_id):
    """Push the message list every time it changes until the client disconnects."""
    _chat_for(require_context(), chat_id)
    updates: queue.Queue = queue.Queue()
    unsubscribe = chat.watch_messages(chat_id, updates.put)
    encode = current_app.json.dumps

    @stream_with_context
    def generate():
        try:
            while True:
                try:
                    messages = updates.get(timeout=KEEPALIVE_SECONDS)
                except queue.Empty:
                    yield ': keep-alive\n\n'
                    continue
                yield f"data: {encode(messages)}\n\n"
        finally:
            unsubscribe()

    return Response(generate(), mimetype='text/event-stream', headers={'Cache-Control': 'no-cache'})
