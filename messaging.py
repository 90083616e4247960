"""
Customer/provider conversations and their messages.

Persistence only; socket_events pushes the resulting payloads to rooms.
"""

from sqlalchemy.exc import IntegrityError

from models import db, User, ServiceProvider, Conversation, ChatMessage, utcnow
from sanitize import sanitize_string
from utils import is_unique_violation

MAX_MESSAGE_LENGTH = 2000


class MessagingError(Exception):
    def __init__(self, message, status=400):
        super().__init__(message)
        self.message = message
        self.status = status


def room_name(conversation_id):
    return "conversation:{}".format(conversation_id)


def user_room(user_id):
    return "user:{}".format(user_id)


def conversation_role(conversation, user_id):
    """'customer' or 'provider' for a participant, None for anyone else."""
    if conversation.customer_id == user_id:
        return "customer"
    if conversation.provider and conversation.provider.user_id == user_id:
        return "provider"
    return None


def load_conversation(conversation_id, user_id):
    """Fetch a conversation the user takes part in, raising MessagingError otherwise."""
    if not conversation_id or not isinstance(conversation_id, str):
        raise MessagingError("conversation_id is required")
    conversation = db.session.get(Conversation, conversation_id)
    if not conversation:
        raise MessagingError("Conversation not found", 404)
    if conversation_role(conversation, user_id) is None:
        raise MessagingError("You do not have access to this conversation", 403)
    return conversation


def get_or_create_conversation(customer_id, provider_id):
    provider = db.session.get(ServiceProvider, provider_id)
    if not provider:
        raise MessagingError("Provider not found", 404)
    if provider.user_id == customer_id:
        raise MessagingError("You cannot start a conversation with yourself")

    existing = Conversation.query.filter_by(customer_id=customer_id, provider_id=provider_id).first()
    if existing:
        return existing, False

    conversation = Conversation(customer_id=customer_id, provider_id=provider_id)
    db.session.add(conversation)
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        if not is_unique_violation(e):
            raise
        # Another request created it first.
        existing = Conversation.query.filter_by(customer_id=customer_id, provider_id=provider_id).first()
        return existing, False
    return conversation, True


def conversations_for(user_id):
    """All conversations where the user is the customer or the provider, newest activity first."""
    user = db.session.get(User, user_id)
    clauses = [Conversation.customer_id == user_id]
    if user and user.provider_profile:
        clauses.append(Conversation.provider_id == user.provider_profile.id)
    return (
        Conversation.query
        .filter(db.or_(*clauses))
        .order_by(Conversation.updated_at.desc())
        .all()
    )


def last_message(conversation):
    return conversation.messages.order_by(ChatMessage.created_at.desc()).first()


def post_message(conversation, sender_id, text):
    """Persist a message and bump the conversation's activity time.

    The length limit applies to the text as typed; it is stored HTML-escaped.
    """
    if text is not None and not isinstance(text, str):
        raise MessagingError("Message must be a string")
    text = (text or "").strip()
    if not text:
        raise MessagingError("Message is required")
    if len(text) > MAX_MESSAGE_LENGTH:
        raise MessagingError("Message must be 2000 characters or fewer")
    text = sanitize_string(text)

    now = utcnow()
    msg = ChatMessage(
        conversation_id=conversation.id,
        sender_id=sender_id,
        message=text,
        created_at=now,
    )
    conversation.updated_at = now
    db.session.add(msg)
    db.session.commit()
    return msg


def mark_read(conversation, reader_id):
    """Flag every message from the other participant as read. Returns the count."""
    updated = (
        ChatMessage.query
        .filter(
            ChatMessage.conversation_id == conversation.id,
            ChatMessage.sender_id != reader_id,
            ChatMessage.read.is_(False),
        )
        .update({"read": True}, synchronize_session=False)
    )
    db.session.commit()
    return updated
