"""Chat endpoint."""

import logging
from typing import Any

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from gateway.dependencies import Chat

logger = logging.getLogger(__name__)
router = APIRouter()


class ChatRequest(BaseModel):
    """Request body for a chat message."""

    message: str = Field(..., description="User message")
    # Plan and username are recovered from bad values rather than rejected
    plan: Any = Field(None, description="Subscription plan id")
    username: Any = Field(None, description="Display name")
    agent: str | None = Field(None, description="Explicit agent id")


@router.post("")
async def chat(body: ChatRequest, request: Request, service: Chat) -> dict[str, Any]:
    """
    Answer a chat message.

    Args:
        body: Chat request.
        request: Incoming request (carries the client identity).
        service: Chat service.

    Returns:
        Response text, agent, plan and usage.
    """
    identity = getattr(request.state, "client_identity", None) or (
        request.client.host if request.client else "unknown"
    )
    result = await service.chat(
        body.message,
        plan=body.plan,
        username=body.username,
        agent=body.agent,
        identity=identity,
    )
    return result.to_dict()
