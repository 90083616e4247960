"""
AI customer-support assistant.

Thin client for an OpenAI-compatible chat completions endpoint.
"""

import logging

import requests
from flask import current_app

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a helpful customer support agent for a platform that connects "
    "customers with service providers for beauty and wellness services.\n\n"
    "Your role is to:\n"
    "- Help customers with questions about bookings, orders, and rentals\n"
    "- Explain how to use the platform features\n"
    "- Assist with account and profile issues\n"
    "- Guide users on how to find and book services\n"
    "- Handle complaints and feedback professionally\n"
    "- Provide information about payment and cancellation policies\n\n"
    "Be friendly, professional, and helpful. If you don't know something, be "
    "honest and suggest contacting the support team directly.\n\n"
    "Key platform features:\n"
    "- Browse and book services from various providers\n"
    "- Purchase products from service providers\n"
    "- Rent equipment from service providers\n"
    "- Chat with service providers\n"
    "- View purchase history and manage bookings\n"
    "- Update profile and settings"
)

ALLOWED_HISTORY_ROLES = ("user", "assistant")
MAX_HISTORY_MESSAGES = 20
MAX_MESSAGE_LENGTH = 2000


class SupportGatewayError(Exception):
    """The upstream completion service failed or returned nothing usable."""


def build_messages(message, history=None):
    """System prompt, then the trimmed prior turns, then the new user message."""
    messages = [{"role": "system", "content": SYSTEM_PROMPT}]
    for turn in (history or [])[-MAX_HISTORY_MESSAGES:]:
        if not isinstance(turn, dict):
            continue
        role = turn.get("role")
        content = turn.get("content")
        if role in ALLOWED_HISTORY_ROLES and isinstance(content, str) and content.strip():
            messages.append({"role": role, "content": content[:MAX_MESSAGE_LENGTH]})
    messages.append({"role": "user", "content": message})
    return messages


def complete(message, history=None):
    """Ask the gateway for a reply and return its text."""
    config = current_app.config
    if not config.get("AI_API_KEY"):
        raise SupportGatewayError("AI support is not configured")

    try:
        response = requests.post(
            config["AI_GATEWAY_URL"],
            headers={
                "Authorization": "Bearer {}".format(config["AI_API_KEY"]),
                "Content-Type": "application/json",
            },
            json={
                "model": config["AI_MODEL"],
                "messages": build_messages(message, history),
                "temperature": 0.7,
                "max_tokens": 500,
            },
            timeout=config.get("AI_TIMEOUT_SECONDS", 30),
        )
    except requests.RequestException as e:
        logger.error("AI gateway request failed: %s", e)
        raise SupportGatewayError("AI gateway unreachable") from e

    if response.status_code != 200:
        logger.error("AI gateway error %s: %s", response.status_code, response.text[:200])
        raise SupportGatewayError("AI gateway error: {}".format(response.status_code))

    try:
        reply = response.json()["choices"][0]["message"]["content"]
    except (ValueError, KeyError, IndexError, TypeError) as e:
        raise SupportGatewayError("Malformed AI gateway response") from e
    if not reply:
        raise SupportGatewayError("Empty AI gateway response")
    return reply
