"""
Chat API routes for messaging between a customer and a service provider.
Every persisted message is also pushed to the conversation's Socket.IO room.
"""

from flask import Blueprint, request, jsonify

from models import db, ChatMessage
from auth_routes import require_auth
from sanitize import accepts_raw_json
from messaging import (
    MessagingError, conversation_role, conversations_for, get_or_create_conversation,
    last_message, load_conversation, mark_read, post_message,
)
from socket_events import broadcast_chat_message, broadcast_messages_read
from utils import safe_int

chat_bp = Blueprint("chat", __name__, url_prefix="/api/conversations")


def _error(e):
    return jsonify({"error": e.message}), e.status


@chat_bp.route("", methods=["POST"])
@require_auth
def start_conversation(user_id):
    """
    Get or create the caller's conversation with a provider.
    Body: { provider_id }
    """
    provider_id = (request.get_json(silent=True) or {}).get("provider_id")
    if not provider_id or not isinstance(provider_id, str):
        return jsonify({"error": "provider_id is required"}), 400
    try:
        conversation, created = get_or_create_conversation(user_id, provider_id)
    except MessagingError as e:
        return _error(e)
    return jsonify({"success": True, "conversation": conversation.to_dict()}), 201 if created else 200


@chat_bp.route("", methods=["GET"])
@require_auth
def list_conversations(user_id):
    """Conversations the caller takes part in, most recent activity first."""
    conversations = conversations_for(user_id)
    return jsonify({
        "success": True,
        "conversations": [
            dict(c.to_dict(last_message(c)), role=conversation_role(c, user_id))
            for c in conversations
        ],
    }), 200


@chat_bp.route("/<conversation_id>/messages", methods=["GET"])
@require_auth
def get_messages(user_id, conversation_id):
    """
    Messages in chronological order.
    Supports pagination via ?before=<message_id>&limit=<n>.
    """
    try:
        conversation = load_conversation(conversation_id, user_id)
    except MessagingError as e:
        return _error(e)

    limit = min(max(safe_int(request.args.get("limit"), 50), 1), 100)
    before = request.args.get("before")

    query = ChatMessage.query.filter_by(conversation_id=conversation.id)
    if before:
        cursor_msg = db.session.get(ChatMessage, before)
        if cursor_msg:
            query = query.filter(ChatMessage.created_at < cursor_msg.created_at)

    messages = query.order_by(ChatMessage.created_at.desc()).limit(limit).all()
    messages.reverse()

    return jsonify({
        "success": True,
        "messages": [m.to_dict() for m in messages],
        "has_more": len(messages) == limit,
    }), 200


@chat_bp.route("/<conversation_id>/messages", methods=["POST"])
@accepts_raw_json
@require_auth
def send_message(user_id, conversation_id):
    """Body: { "message": "..." }"""
    try:
        conversation = load_conversation(conversation_id, user_id)
        msg = post_message(conversation, user_id, (request.get_json(silent=True) or {}).get("message"))
    except MessagingError as e:
        return _error(e)

    msg_dict = msg.to_dict()
    broadcast_chat_message(msg_dict)
    return jsonify({"success": True, "message": msg_dict}), 201


@chat_bp.route("/<conversation_id>/messages/read", methods=["PUT"])
@require_auth
def mark_messages_read(user_id, conversation_id):
    """Mark every message from the other participant as read."""
    try:
        conversation = load_conversation(conversation_id, user_id)
    except MessagingError as e:
        return _error(e)

    updated = mark_read(conversation, user_id)
    broadcast_messages_read(conversation.id, user_id, updated)
    return jsonify({"success": True, "marked_read": updated}), 200
