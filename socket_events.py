"""
Socket.IO event handlers for marketplace real-time features.
- Chat message delivery per conversation room
- Typing indicators
- Booking status pushes to the customer's and provider's personal rooms
"""

import logging

from flask_socketio import SocketIO, emit, join_room, leave_room
from flask import request

from models import db, User
from messaging import (
    MessagingError, load_conversation, post_message, room_name, user_room,
)

socketio = SocketIO()

logger = logging.getLogger(__name__)

# request.sid -> authenticated user id
_connected_users = {}


def _current_user_id():
    return _connected_users.get(request.sid)


@socketio.on("connect")
def handle_connect(auth=None):
    """Authenticate the socket with the same JWT the REST API uses."""
    from auth_routes import verify_token

    token = (auth or {}).get("token") if isinstance(auth, dict) else None
    if not token:
        token = request.args.get("token")
    user_id = verify_token(token)
    if not user_id or not db.session.get(User, user_id):
        logger.info("Rejected unauthenticated socket %s", request.sid)
        return False

    _connected_users[request.sid] = user_id
    join_room(user_room(user_id))
    logger.debug("Socket %s connected for user %s", request.sid, user_id)


@socketio.on("disconnect")
def handle_disconnect(*args):
    _connected_users.pop(request.sid, None)


@socketio.on("chat:join")
def handle_chat_join(data):
    """Join a conversation room. data = { conversation_id }"""
    user_id = _current_user_id()
    conversation_id = (data or {}).get("conversation_id")
    if not user_id or not conversation_id:
        emit("chat:error", {"error": "conversation_id is required"}, room=request.sid)
        return
    try:
        load_conversation(conversation_id, user_id)
    except MessagingError as e:
        emit("chat:error", {"error": e.message}, room=request.sid)
        return

    room = room_name(conversation_id)
    join_room(room)
    emit("chat:joined", {"room": room, "conversation_id": conversation_id}, room=request.sid)


@socketio.on("chat:leave")
def handle_chat_leave(data):
    conversation_id = (data or {}).get("conversation_id")
    if conversation_id:
        leave_room(room_name(conversation_id))


@socketio.on("chat:send")
def handle_chat_send(data):
    """
    Persist a chat message sent over the socket and broadcast it to the room.
    data = { conversation_id, message }
    """
    user_id = _current_user_id()
    data = data or {}
    try:
        conversation = load_conversation(data.get("conversation_id"), user_id)
        msg = post_message(conversation, user_id, data.get("message"))
    except MessagingError as e:
        emit("chat:error", {"error": e.message}, room=request.sid)
        return
    broadcast_chat_message(msg.to_dict())


@socketio.on("chat:typing")
def handle_chat_typing(data):
    """
    Broadcast typing indicator to the conversation room.
    data = { conversation_id, is_typing }
    """
    user_id = _current_user_id()
    conversation_id = (data or {}).get("conversation_id")
    if not user_id or not conversation_id:
        return
    try:
        load_conversation(conversation_id, user_id)
    except MessagingError:
        return
    emit("chat:typing", {
        "conversation_id": conversation_id,
        "sender_id": user_id,
        "is_typing": data.get("is_typing", True),
    }, room=room_name(conversation_id), include_self=False)


def broadcast_chat_message(msg_dict):
    """Push a persisted message to everyone joined to its conversation."""
    socketio.emit("chat:message", msg_dict, room=room_name(msg_dict["conversation_id"]))


def broadcast_messages_read(conversation_id, reader_id, count):
    socketio.emit("chat:read", {
        "conversation_id": conversation_id,
        "read_by": reader_id,
        "count": count,
    }, room=room_name(conversation_id))


def broadcast_booking_status(booking):
    """Utility called from REST routes to push booking changes to both parties."""
    payload = {
        "booking_id": booking.id,
        "status": booking.status,
        "booking_date": booking.booking_date.isoformat(),
        "booking_time": booking.booking_time,
    }
    socketio.emit("booking:status", payload, room=user_room(booking.customer_id))
    if booking.provider:
        socketio.emit("booking:status", payload, room=user_room(booking.provider.user_id))
