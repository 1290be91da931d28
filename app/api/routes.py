"""
API route aggregator: register endpoints; no logic, only delegate to handlers.
"""

import logging
import uuid

from fastapi import APIRouter, Depends, Path

from app.api.handlers import get_agent_runner, handle_chat
from app.core.config import MAX_THREAD_ID_LENGTH
from app.schemas.chat import ChatRequest, ChatResponse
from app.services.agent_service import AgentRunner

logger = logging.getLogger(__name__)
router = APIRouter()


# --- System ---

@router.get("/", tags=["system"])
def root():
    return {"status": "HR employee agent running"}


@router.get("/health", tags=["system"])
def health():
    return {"ok": True}


# --- Chat ---

@router.post(
    "/chat",
    response_model=ChatResponse,
    tags=["chat"],
    summary="Start a new conversation",
    description="Creates a new thread and answers the first message. 422 on invalid body, 504 on model timeout, 500 on workflow failure.",
)
async def start_conversation(body: ChatRequest, runner: AgentRunner = Depends(get_agent_runner)):
    thread_id = uuid.uuid4().hex
    logger.info("[api:start_conversation] IN  thread_id=%s message_len=%d", thread_id[:16], len(body.message))
    return await handle_chat(runner, thread_id, body.message)


@router.post(
    "/chat/{thread_id}",
    response_model=ChatResponse,
    tags=["chat"],
    summary="Continue a conversation",
    description="Answers a message on an existing thread; prior turns are loaded from the thread's checkpoint.",
)
async def continue_conversation(
    body: ChatRequest,
    thread_id: str = Path(..., min_length=1, max_length=MAX_THREAD_ID_LENGTH),
    runner: AgentRunner = Depends(get_agent_runner),
):
    logger.info("[api:continue_conversation] IN  thread_id=%s message_len=%d", thread_id[:16], len(body.message))
    return await handle_chat(runner, thread_id, body.message)
