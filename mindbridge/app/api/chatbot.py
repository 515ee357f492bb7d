"""Scripted support chatbot endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter
from pydantic import BaseModel, Field, field_validator

from mindbridge.app.core.logging import get_logger
from mindbridge.app.services.chatbot import GREETING, generate_reply

logger = get_logger(__name__)

router = APIRouter(prefix="/api/chatbot", tags=["chatbot"])


class ChatMessage(BaseModel):
    message: str = Field(..., min_length=1, max_length=2000)

    @field_validator("message")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Message cannot be empty")
        return v


@router.get("/greeting")
async def greeting() -> dict:
    return {
        "reply": GREETING,
        "topic": "greeting",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.post("/messages")
async def send_message(data: ChatMessage) -> dict:
    """Reply to a user message using the keyword rules."""
    reply = generate_reply(data.message)
    if reply.is_emergency:
        # Message content is never logged.
        logger.warning("Chatbot returned crisis resources")
    return {
        "reply": reply.reply,
        "topic": reply.topic,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
