"""
Agent tools: definitions and execution for tool-calling mode.

Tools: employee_lookup (semantic search over employee summaries, enriched with
full records from the document store).

A tool never raises into the agent loop. Failures come back as a JSON object the
model can read and react to.
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable

from app.agent.messages import ToolCall
from app.core.config import LOOKUP_DEFAULT_LIMIT, LOOKUP_MAX_LIMIT
from app.core.errors import ToolExecutionError
from app.schemas.employee import project_employee
from app.services.employee_store import DocumentStore
from app.services.vector_store import EmbeddingService, SearchHit, VectorIndex

logger = logging.getLogger(__name__)

EMPLOYEE_LOOKUP = "employee_lookup"

# OpenAI function-calling format
EMPLOYEE_LOOKUP_SPEC: dict[str, Any] = {
    "type": "function",
    "function": {
        "name": EMPLOYEE_LOOKUP,
        "description": "Gathers employee details from the HR database. Semantic search over employee profiles (job, skills, reviews, location). Returns a JSON list of {score, summary, employee}.",
        "parameters": {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "The search query (e.g. 'Python skills', 'remote engineers in Berlin')",
                },
                "limit": {
                    "type": "integer",
                    "description": f"Number of results to return (default {LOOKUP_DEFAULT_LIMIT})",
                },
            },
            "required": ["query"],
        },
    },
}


def _clamp_limit(limit: Any) -> int:
    try:
        n = int(limit)
    except (TypeError, ValueError):
        return LOOKUP_DEFAULT_LIMIT
    return max(1, min(n, LOOKUP_MAX_LIMIT))


class EmployeeLookupTool:
    name = EMPLOYEE_LOOKUP
    spec = EMPLOYEE_LOOKUP_SPEC

    def __init__(self, embedder: EmbeddingService, index: VectorIndex, documents: DocumentStore) -> None:
        self._embedder = embedder
        self._index = index
        self._documents = documents

    async def __call__(self, arguments: dict[str, Any]) -> str:
        query = str(arguments.get("query") or "").strip()
        if not query:
            raise ToolExecutionError(self.name, "query is required")
        return await self.lookup(query, _clamp_limit(arguments.get("limit", LOOKUP_DEFAULT_LIMIT)))

    async def lookup(self, query: str, limit: int = LOOKUP_DEFAULT_LIMIT) -> str:
        """Embed → vector search → enrich each hit with its full record. Returns a JSON string."""
        logger.info("[tools:employee_lookup] IN  query=%r limit=%d", query, limit)
        try:
            vector = await self._embedder.embed(query)
            logger.debug("[tools:employee_lookup] embedded vector_len=%d", len(vector))
            hits = await self._index.search(vector, limit)
        except Exception as e:
            logger.error("[tools:employee_lookup] search failed query=%r: %s", query, e)
            return json.dumps({"error": str(e), "query": query})

        if not hits:
            await self._log_index_info()

        employees = await asyncio.gather(*(self._fetch(hit) for hit in hits))
        results = [
            {"score": hit.score, "summary": hit.summary, "employee": employee}
            for hit, employee in zip(hits, employees)
        ]
        logger.info("[tools:employee_lookup] OUT results=%d found=%d", len(results), sum(1 for e in employees if e))
        return json.dumps(results, default=str)

    async def _fetch(self, hit: SearchHit) -> dict[str, Any] | None:
        if not hit.employee_id:
            return None
        try:
            record = await self._documents.find_by_id(hit.employee_id)
        except Exception as e:
            logger.warning("[tools:employee_lookup] record fetch failed employee_id=%s: %s", hit.employee_id, e)
            return None
        return project_employee(record)

    async def _log_index_info(self) -> None:
        try:
            info = await self._index.describe()
            logger.info("[tools:employee_lookup] no hits; collection info=%s", info)
        except Exception as e:
            logger.warning("[tools:employee_lookup] no hits; collection info unavailable: %s", e)


Tool = Callable[[dict[str, Any]], Awaitable[str]]


class ToolBox:
    """Tools registered by name, plus their specs for binding to the model."""

    def __init__(self, tools: dict[str, Tool], specs: list[dict[str, Any]]) -> None:
        self._tools = tools
        self.specs = specs

    @classmethod
    def of(cls, *tools: Any) -> "ToolBox":
        return cls({t.name: t for t in tools}, [t.spec for t in tools])

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def get(self, name: str) -> Tool:
        tool = self._tools.get(name)
        if tool is None:
            raise ToolExecutionError(name, f"Unknown tool: {name}")
        return tool


def tool_error_result(error: BaseException, call: ToolCall) -> str:
    """Machine-readable result the model sees when a tool call fails."""
    message = error.message if isinstance(error, ToolExecutionError) else f"{type(error).__name__}: {error}"
    return json.dumps({"error": message, "tool": call.name, "arguments": call.arguments}, default=str)
