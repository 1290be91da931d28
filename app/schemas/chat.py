"""Schemas for the chat endpoints."""

from pydantic import BaseModel, Field

from app.core.config import MAX_QUERY_LENGTH


class ChatRequest(BaseModel):
    """Request body for POST /chat and POST /chat/{thread_id}. History is stored server-side by thread id."""

    message: str = Field(..., min_length=1, max_length=MAX_QUERY_LENGTH, description="User message for the agent.")


class ChatResponse(BaseModel):
    """Response for the chat endpoints."""

    thread_id: str = Field(..., description="Thread ID; send it back to continue the conversation.")
    response: str = Field(..., description="Final answer from the agent (or a user-safe error message).")
    error: str | None = Field(None, description="Machine-readable error code when the turn failed, e.g. MODEL_TIMEOUT.")

    model_config = {
        "json_schema_extra": {
            "examples": [{"thread_id": "3f2c9a1e0b7d4c7e", "response": "Three employees list Python...", "error": None}]
        }
    }
