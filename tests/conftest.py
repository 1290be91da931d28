"""
Shared fakes for the agent: scripted model, embedding service, vector index and
document store. No network, Milvus or HF API needed.
"""

import asyncio
import json
from typing import Any

import pytest

from app.agent.messages import Message, ToolCall, assistant_message
from app.agent.tools import EMPLOYEE_LOOKUP
from app.services.vector_store import SearchHit

HANG = object()


def run(coro: Any) -> Any:
    """Drive a coroutine to completion from a sync test."""
    return asyncio.run(coro)


def lookup_call(query: str, call_id: str = "call_1") -> Message:
    return assistant_message("", [ToolCall(id=call_id, name=EMPLOYEE_LOOKUP, arguments={"query": query})])


class ScriptedModel:
    """
    Returns scripted replies in order. A reply may be a Message, an exception
    (raised), or HANG (never returns). The last reply repeats when the script runs out.
    """

    def __init__(self, *replies: Any) -> None:
        self.replies = list(replies)
        self.calls: list[list[Message]] = []

    async def invoke(self, messages: list[Message], tools: list[dict[str, Any]]) -> Message:
        self.calls.append(list(messages))
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if reply is HANG:
            await asyncio.sleep(3600)
        if isinstance(reply, BaseException):
            raise reply
        return reply


class FakeEmbedder:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.texts: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.texts.append(text)
        if self.error:
            raise self.error
        return [1.0, 0.0, 0.0]


class FakeIndex:
    def __init__(self, hits: list[SearchHit] | None = None, error: Exception | None = None) -> None:
        self.hits = hits or []
        self.error = error
        self.searches: list[int] = []
        self.describe_calls = 0

    async def search(self, vector: list[float], limit: int) -> list[SearchHit]:
        self.searches.append(limit)
        if self.error:
            raise self.error
        return self.hits[:limit]

    async def describe(self) -> dict[str, Any]:
        self.describe_calls += 1
        return {"collection_name": "employees", "exists": True, "row_count": 0}


class FakeDocuments:
    def __init__(self, records: dict[str, dict] | None = None, failing: set[str] | None = None) -> None:
        self.records = records or {}
        self.failing = failing or set()

    async def find_by_id(self, employee_id: str) -> dict | None:
        if employee_id in self.failing:
            raise RuntimeError(f"store unavailable for {employee_id}")
        return self.records.get(employee_id)


class EchoTool:
    """Stand-in for the lookup tool: records arguments, returns a fixed JSON result."""

    name = EMPLOYEE_LOOKUP
    spec = {"type": "function", "function": {"name": EMPLOYEE_LOOKUP, "parameters": {"type": "object"}}}

    def __init__(self, result: Any = None, error: Exception | None = None) -> None:
        self.result = result if result is not None else []
        self.error = error
        self.calls: list[dict[str, Any]] = []

    async def __call__(self, arguments: dict[str, Any]) -> str:
        self.calls.append(arguments)
        if self.error:
            raise self.error
        return json.dumps(self.result)


def employee(employee_id: str, first: str, last: str, department: str, skills: list[str]) -> dict:
    """Stored employee record as the document store returns it."""
    return {
        "employee_id": employee_id,
        "first_name": first,
        "last_name": last,
        "date_of_birth": "1990-01-01",
        "address": {"street": "1 Main St", "city": "Berlin", "state": "BE", "postal_code": "10115", "country": "Germany"},
        "contact_details": {"email": f"{first.lower()}@example.com", "phone_number": "+49-30-555-0100"},
        "job_details": {
            "job_title": "Engineer",
            "department": department,
            "hire_date": "2020-01-01",
            "employment_type": "Full-Time",
            "salary": 90000.0,
            "currency": "EUR",
        },
        "work_location": {"nearest_office": "Berlin", "is_remote": True},
        "reporting_manager": None,
        "skills": skills,
        "performance_reviews": [{"review_date": "2023-12-15", "rating": 4.5, "comments": "Strong delivery."}],
        "benefits": {"health_insurance": "Gold Plan", "retirement_plan": "401K", "paid_time_off": 25},
        "emergency_contact": {"name": "Sam", "relationship": "Spouse", "phone_number": "+49-30-555-0199"},
        "notes": "",
    }


@pytest.fixture
def records() -> dict[str, dict]:
    return {
        "E001": employee("E001", "Maya", "Okafor", "Engineering", ["Python", "Kubernetes"]),
        "E002": employee("E002", "Luis", "Fernandez", "Finance", ["SQL", "Python"]),
        "E003": employee("E003", "Priya", "Raman", "Engineering", ["Java"]),
    }


@pytest.fixture
def hits() -> list[SearchHit]:
    return [
        SearchHit(employee_id="E001", score=0.91, summary="Maya Okafor ... Skills: Python, Kubernetes."),
        SearchHit(employee_id="E002", score=0.84, summary="Luis Fernandez ... Skills: SQL, Python."),
    ]
