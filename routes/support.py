"""
AI support chat API route.
POST /api/support/chat -- authenticated, rate-limited proxy to the assistant.
"""

from flask import Blueprint, request, jsonify

from auth_routes import require_auth
from extensions import limiter
from sanitize import accepts_raw_json
from ai_support import MAX_MESSAGE_LENGTH, SupportGatewayError, complete

support_bp = Blueprint("support", __name__)


@support_bp.route("/api/support/chat", methods=["POST"])
@accepts_raw_json
@require_auth
@limiter.limit("20 per minute")
def support_chat(user_id):
    """Ask the support assistant a question.

    Body: { message, conversation_history: [{role, content}, ...] }

    The text goes to the assistant as typed and is never stored or rendered
    as HTML here.
    """
    data = request.get_json(silent=True) or {}
    if data.get("message") is not None and not isinstance(data.get("message"), str):
        return jsonify({"error": "message must be a string"}), 400
    message = (data.get("message") or "").strip()
    history = data.get("conversation_history") or []

    if not message:
        return jsonify({"error": "message is required"}), 400
    if len(message) > MAX_MESSAGE_LENGTH:
        return jsonify({"error": "message must be 2000 characters or fewer"}), 400
    if not isinstance(history, list):
        return jsonify({"error": "conversation_history must be a list"}), 400

    try:
        reply = complete(message, history)
    except SupportGatewayError as e:
        return jsonify({"error": str(e)}), 502

    return jsonify({"success": True, "reply": reply}), 200
