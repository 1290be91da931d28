"""
LangGraph turn state machine: agent ⇄ tools until the model answers without tool calls.

START → agent → (tools → agent)* → END. The number of tools visits per turn is
capped by max_round_trips; going past it raises RecursionLimitError.
"""

import logging
import operator
from datetime import datetime, timezone
from enum import Enum
from functools import partial
from typing import Annotated, Callable, TypedDict

from langgraph.errors import GraphRecursionError
from langgraph.graph import END, START, StateGraph

from app.agent.llm import ChatModel
from app.agent.messages import Message, assistant_message, pending_tool_calls, system_message, tool_message
from app.agent.tools import ToolBox, tool_error_result
from app.core.config import RECURSION_LIMIT
from app.core.errors import ErrorKind, RecursionLimitError
from app.core.resilience import MODEL_POLICY, TOOL_POLICY, RetryPolicy, execute

logger = logging.getLogger(__name__)

AGENT = "agent"
TOOLS = "tools"

SYSTEM_PROMPT = """You are a helpful AI assistant, collaborating with other assistants.
Use the provided tools to progress towards answering the question.
If you are unable to fully answer, that's OK, another assistant with different tools will help where you left off.
Execute what you can to make progress.
If you or any of the other assistants have the final answer or deliverable,
prefix your response with FINAL ANSWER so the team knows to stop.
You have access to the following tools: {tool_names}.
{system_message}
Current time: {time}."""

ROLE_DESCRIPTION = "You are helpful HR Chatbot Agent."


class TurnState(TypedDict):
    messages: Annotated[list[Message], operator.add]
    round_trips: int
    failure: str | None  # ErrorKind value of a failure absorbed by the agent node
    deadline: float | None  # event-loop time by which model and tool calls must finish


class Route(str, Enum):
    TOOLS = "tools"
    END = "end"


def render_system_prompt(tool_names: list[str], now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return SYSTEM_PROMPT.format(
        tool_names=", ".join(tool_names),
        system_message=ROLE_DESCRIPTION,
        time=now.isoformat(),
    )


def route_after_agent(state: TurnState, max_round_trips: int = RECURSION_LIMIT) -> Route:
    """Go to tools iff the latest assistant message has pending tool calls."""
    if not pending_tool_calls(state["messages"]):
        logger.info("[graph:route_after_agent] no tool calls -> end")
        return Route.END
    round_trips = state.get("round_trips") or 0
    if round_trips >= max_round_trips:
        logger.warning("[graph:route_after_agent] round_trips=%d reached limit=%d", round_trips, max_round_trips)
        raise RecursionLimitError(max_round_trips)
    logger.info("[graph:route_after_agent] round_trips=%d -> tools", round_trips)
    return Route.TOOLS


def build_turn_graph(
    model: ChatModel,
    toolbox: ToolBox,
    *,
    max_round_trips: int = RECURSION_LIMIT,
    model_policy: RetryPolicy = MODEL_POLICY,
    tool_policy: RetryPolicy = TOOL_POLICY,
    clock: Callable[[], datetime] | None = None,
):
    """Build and compile the two-node graph bound to `model` and `toolbox`."""

    async def agent_node(state: TurnState) -> dict:
        """Render the system prompt plus history, call the model, append its reply."""
        now = clock() if clock else None
        prompt = [system_message(render_system_prompt(toolbox.names, now)), *state["messages"]]
        logger.info("[graph:agent] IN  messages=%d", len(prompt))
        try:
            reply = await execute(
                lambda: model.invoke(prompt, toolbox.specs),
                model_policy,
                label="model",
                deadline=state.get("deadline"),
            )
        except Exception as e:
            kind = ErrorKind.MODEL_TIMEOUT if isinstance(e, TimeoutError) else ErrorKind.WORKFLOW
            logger.error("[graph:agent] model failed after retries kind=%s: %s: %s", kind.value, type(e).__name__, e)
            return {"messages": [assistant_message(kind.user_message)], "failure": kind.value}
        logger.info("[graph:agent] OUT tool_calls=%d content_len=%d", len(reply.tool_calls), len(reply.content))
        return {"messages": [reply]}

    async def tools_node(state: TurnState) -> dict:
        """Answer every pending tool call, in order, with one tool message each."""
        results: list[Message] = []
        for call in pending_tool_calls(state["messages"]):
            logger.info("[graph:tools] call id=%s name=%s arguments=%r", call.id, call.name, call.arguments)
            try:
                tool = toolbox.get(call.name)
                content = await execute(
                    partial(tool, call.arguments),
                    tool_policy,
                    label=f"tool:{call.name}",
                    deadline=state.get("deadline"),
                )
            except Exception as e:
                logger.error("[graph:tools] tool %s failed: %s: %s", call.name, type(e).__name__, e)
                content = tool_error_result(e, call)
            results.append(tool_message(call.id, content))
        round_trips = (state.get("round_trips") or 0) + 1
        logger.info("[graph:tools] OUT results=%d round_trips=%d", len(results), round_trips)
        return {"messages": results, "round_trips": round_trips}

    def route(state: TurnState) -> Route:
        return route_after_agent(state, max_round_trips)

    graph = StateGraph(TurnState)
    graph.add_node(AGENT, agent_node)
    graph.add_node(TOOLS, tools_node)
    graph.add_edge(START, AGENT)
    graph.add_conditional_edges(
        AGENT,
        route,
        {Route.TOOLS: TOOLS, Route.END: END},
    )
    graph.add_edge(TOOLS, AGENT)
    return graph.compile()


async def run_turn(
    graph,
    messages: list[Message],
    max_round_trips: int = RECURSION_LIMIT,
    deadline: float | None = None,
) -> TurnState:
    """
    Drive one turn from `messages` (history + new user message) to END.
    Model and tool calls stop retrying at `deadline` (event-loop time).
    """
    initial: TurnState = {"messages": list(messages), "round_trips": 0, "failure": None, "deadline": deadline}
    try:
        return await graph.ainvoke(initial, config={"recursion_limit": 2 * max_round_trips + 3})
    except GraphRecursionError as e:
        raise RecursionLimitError(max_round_trips) from e
