"""
API handlers: call the agent runner, map TurnResult errors to HTTP.

Responsibility: Bridge HTTP types and services. Lives in the API layer so
services stay free of FastAPI/HTTP types.
"""

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from app.core.errors import ErrorKind
from app.schemas.chat import ChatResponse
from app.services.agent_service import AgentRunner, build_agent_runner


def get_agent_runner(request: Request) -> AgentRunner:
    """Runner built at startup; built lazily if the lifespan did not run."""
    runner = getattr(request.app.state, "agent_runner", None)
    if runner is None:
        runner = build_agent_runner()
        request.app.state.agent_runner = runner
    return runner


async def handle_chat(runner: AgentRunner, thread_id: str, message: str) -> ChatResponse | JSONResponse:
    """
    Run one turn. Validation errors → 400; other failures keep the user-safe
    response and use the error kind's status code.
    """
    result = await runner.run_conversation_turn(thread_id, message)
    if result.error is None:
        return ChatResponse(thread_id=result.thread_id, response=result.response)
    if result.error.kind is ErrorKind.VALIDATION:
        raise HTTPException(status_code=400, detail=result.response)
    body = ChatResponse(thread_id=result.thread_id, response=result.response, error=result.error.code)
    return JSONResponse(status_code=result.error.status_code, content=body.model_dump())
