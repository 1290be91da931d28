"""
Agent: orchestrate one conversation turn.

Responsibility: Validate input, load the thread's checkpoint, drive the turn
state machine (model ⇄ employee lookup) under the turn-level timeout/retry
policy, save the checkpoint, and map failures to user-safe messages.
Called by the API; no HTTP here.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

from app.agent.graph import TurnState, build_turn_graph, run_turn
from app.agent.llm import ChatModel, get_chat_model
from app.agent.messages import assistant_message, user_message
from app.agent.tools import EmployeeLookupTool, ToolBox
from app.core.checkpoint_store import CheckpointStore, ConversationState, SQLiteCheckpointStore
from app.core.config import MAX_QUERY_LENGTH, MAX_THREAD_ID_LENGTH, RECURSION_LIMIT, TURN_BUDGET_RATIO
from app.core.errors import AgentError, ErrorKind, ModelTimeoutError, UnexpectedError, ValidationError, WorkflowError
from app.core.resilience import (
    MODEL_POLICY,
    TOOL_POLICY,
    WORKFLOW_POLICY,
    OperationTimeoutError,
    RetryPolicy,
    deadline_after,
    execute,
)
from app.services.employee_store import EmployeeStore
from app.services.vector_store import HFEmbeddingClient, MilvusEmployeeIndex

logger = logging.getLogger(__name__)

EMPTY_ANSWER = "I couldn't complete the request."


@dataclass(frozen=True)
class TurnResult:
    """Outcome of one turn. `response` is always a non-empty, user-safe string."""

    thread_id: str
    response: str
    error: AgentError | None = None
    message_count: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


def validate_inputs(message: str, thread_id: str) -> None:
    """Fail fast on bad input shape or length, before any external call."""
    if not isinstance(message, str) or not message.strip():
        raise ValidationError("Query must be a non-empty string")
    if len(message) > MAX_QUERY_LENGTH:
        raise ValidationError(f"Query too long. Maximum length is {MAX_QUERY_LENGTH} characters")
    if not isinstance(thread_id, str) or not thread_id.strip():
        raise ValidationError("Thread ID must be a non-empty string")
    if len(thread_id) > MAX_THREAD_ID_LENGTH:
        raise ValidationError(f"Thread ID too long. Maximum length is {MAX_THREAD_ID_LENGTH} characters")


class ThreadLocks:
    """One asyncio.Lock per thread id, dropped when nobody holds or waits on it."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, thread_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(thread_id, asyncio.Lock())
        self._users[thread_id] = self._users.get(thread_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[thread_id] -= 1
            if not self._users[thread_id]:
                del self._users[thread_id]
                del self._locks[thread_id]

    def __len__(self) -> int:
        return len(self._locks)


class AgentRunner:
    """Runs conversation turns against injected model, tools and checkpoint store."""

    def __init__(
        self,
        model: ChatModel,
        toolbox: ToolBox,
        checkpoints: CheckpointStore,
        *,
        max_round_trips: int = RECURSION_LIMIT,
        model_policy: RetryPolicy = MODEL_POLICY,
        tool_policy: RetryPolicy = TOOL_POLICY,
        workflow_policy: RetryPolicy = WORKFLOW_POLICY,
    ) -> None:
        self.model = model
        self.toolbox = toolbox
        self.checkpoints = checkpoints
        self.max_round_trips = max_round_trips
        self.model_policy = model_policy
        self.tool_policy = tool_policy
        self.workflow_policy = workflow_policy
        self._locks = ThreadLocks()

    async def run_conversation_turn(self, thread_id: str, message: str) -> TurnResult:
        """
        Run one turn on `thread_id`. Never raises: failures come back as
        TurnResult.error with a fixed user-safe response.
        """
        try:
            validate_inputs(message, thread_id)
        except ValidationError as e:
            logger.info("[agent_service] validation failed thread_id=%r: %s", str(thread_id)[:16], e.message)
            return TurnResult(thread_id=thread_id, response=e.user_message, error=e)

        logger.info("[agent_service] START thread_id=%s message_len=%d", thread_id[:16], len(message))
        try:
            async with self._locks.hold(thread_id):
                return await self._run_locked(thread_id, message)
        except Exception as e:
            error = e if isinstance(e, AgentError) else UnexpectedError(f"{type(e).__name__}: {e}")
            logger.exception("[agent_service] unexpected failure thread_id=%s kind=%s", thread_id[:16], error.kind.value)
            return TurnResult(thread_id=thread_id, response=error.user_message, error=error)

    async def _run_locked(self, thread_id: str, message: str) -> TurnResult:
        graph = build_turn_graph(
            self.model,
            self.toolbox,
            max_round_trips=self.max_round_trips,
            model_policy=self.model_policy,
            tool_policy=self.tool_policy,
        )

        async def attempt() -> TurnState:
            deadline = deadline_after(self.workflow_policy.timeout * TURN_BUDGET_RATIO)
            prior = await self.checkpoints.load(thread_id)
            start = prior.append(user_message(message))
            return await run_turn(graph, list(start.messages), self.max_round_trips, deadline)

        try:
            final = await execute(attempt, self.workflow_policy, label=f"turn:{thread_id[:16]}")
        except Exception as e:
            error = self._classify(e)
            logger.error(
                "[agent_service] turn failed thread_id=%s kind=%s attempts<=%d: %s: %s",
                thread_id[:16], error.kind.value, self.workflow_policy.max_retries + 1, type(e).__name__, e,
            )
            if isinstance(e, OperationTimeoutError):
                await self._save_timeout_answer(thread_id, message, error)
            return TurnResult(thread_id=thread_id, response=error.user_message, error=error)

        state = ConversationState(thread_id, tuple(final["messages"]))
        try:
            checkpoint = await self.checkpoints.save(state)
        except Exception as e:
            error = self._classify(e)
            logger.error("[agent_service] checkpoint save failed thread_id=%s kind=%s: %s", thread_id[:16], error.kind.value, e)
            return TurnResult(thread_id=thread_id, response=error.user_message, error=error)

        answer = (state.messages[-1].content or "").strip() or EMPTY_ANSWER
        error = self._absorbed_failure(final)
        if error is not None:
            logger.warning("[agent_service] turn ended on absorbed failure thread_id=%s kind=%s", thread_id[:16], error.kind.value)
        logger.info(
            "[agent_service] END thread_id=%s messages=%d version=%d answer_len=%d",
            thread_id[:16], len(state.messages), checkpoint.version, len(answer),
        )
        return TurnResult(thread_id=thread_id, response=answer, error=error, message_count=len(state.messages))

    async def _save_timeout_answer(self, thread_id: str, message: str, error: AgentError) -> None:
        """Record the user message and the timeout answer so the thread shows what happened."""
        try:
            prior = await self.checkpoints.load(thread_id)
            await self.checkpoints.save(prior.append(user_message(message), assistant_message(error.user_message)))
        except Exception as e:
            logger.error("[agent_service] timeout answer not saved thread_id=%s: %s: %s", thread_id[:16], type(e).__name__, e)

    @staticmethod
    def _classify(e: BaseException) -> AgentError:
        """Turn-level failure → AgentError. Timeouts map to MODEL_TIMEOUT, the rest to WORKFLOW."""
        if isinstance(e, AgentError):
            return e
        if isinstance(e, OperationTimeoutError):
            return ModelTimeoutError(str(e))
        return WorkflowError(f"{type(e).__name__}: {e}")

    @staticmethod
    def _absorbed_failure(final: TurnState) -> AgentError | None:
        failure = final.get("failure")
        if not failure:
            return None
        kind = ErrorKind(failure)
        if kind is ErrorKind.MODEL_TIMEOUT:
            return ModelTimeoutError()
        return WorkflowError()


def build_agent_runner() -> AgentRunner:
    """Wire real clients from configuration."""
    lookup = EmployeeLookupTool(
        embedder=HFEmbeddingClient(),
        index=MilvusEmployeeIndex(),
        documents=EmployeeStore(),
    )
    return AgentRunner(
        model=get_chat_model(),
        toolbox=ToolBox.of(lookup),
        checkpoints=SQLiteCheckpointStore(),
    )
