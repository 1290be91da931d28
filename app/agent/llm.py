"""
Agent LLM: OpenAI (primary) or Hugging Face router (fallback), both with tool calling.
When OPENAI_API_KEY is set, uses OpenAI chat completions; otherwise uses the HF router,
which speaks the same chat-completions format.
"""

import json
import logging
from typing import Any, Protocol

import httpx

from app.agent.messages import Message, ToolCall, assistant_message
from app.core.config import (
    AGENT_MAX_TOKENS,
    AGENT_TEMPERATURE,
    HF_API_KEY,
    HF_CHAT_URL,
    HF_LLM_MODEL,
    LLM_API_TIMEOUT,
    OPENAI_API_KEY,
    OPENAI_LLM_MODEL,
)

logger = logging.getLogger(__name__)


class ChatModel(Protocol):
    """Model service: given prompt messages and tool specs, return one assistant message."""

    async def invoke(self, messages: list[Message], tools: list[dict[str, Any]]) -> Message: ...


def _parse_arguments(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    try:
        args = json.loads(raw) if raw else {}
    except json.JSONDecodeError:
        args = {}
    return args if isinstance(args, dict) else {}


def _field(obj: Any, key: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def parse_chat_message(msg: Any) -> Message:
    """
    Turn an OpenAI-format assistant message (SDK object or plain dict) into a Message.
    Tool call arguments arrive JSON-encoded; malformed arguments become {}.
    """
    if msg is None:
        return assistant_message("")
    content = (_field(msg, "content") or "").strip()
    tool_calls: list[ToolCall] = []
    for tc in _field(msg, "tool_calls") or []:
        fn = _field(tc, "function")
        if not fn:
            continue
        tool_calls.append(
            ToolCall(
                id=_field(tc, "id") or "",
                name=_field(fn, "name") or "",
                arguments=_parse_arguments(_field(fn, "arguments")),
            )
        )
    return assistant_message(content, tool_calls)


class OpenAIChatModel:
    def __init__(
        self,
        api_key: str = OPENAI_API_KEY,
        model: str = OPENAI_LLM_MODEL,
        max_tokens: int = AGENT_MAX_TOKENS,
        temperature: float = AGENT_TEMPERATURE,
    ) -> None:
        from openai import AsyncOpenAI

        self._client = AsyncOpenAI(api_key=api_key, timeout=LLM_API_TIMEOUT, max_retries=0)
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature
        logger.info("[llm:openai] initialized model=%s", model)

    async def invoke(self, messages: list[Message], tools: list[dict[str, Any]]) -> Message:
        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": [m.to_openai() for m in messages],
            "max_tokens": self._max_tokens,
            "temperature": self._temperature,
        }
        if tools:
            kwargs["tools"] = tools
        response = await self._client.chat.completions.create(**kwargs)
        msg = response.choices[0].message if response.choices else None
        out = parse_chat_message(msg)
        _log_reply("openai", out)
        return out


class HFRouterChatModel:
    def __init__(
        self,
        api_key: str = HF_API_KEY,
        model: str = HF_LLM_MODEL,
        max_tokens: int = AGENT_MAX_TOKENS,
        temperature: float = AGENT_TEMPERATURE,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("HF_API_KEY must be set in .env when OPENAI_API_KEY is not set")
        self._api_key = api_key
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._transport = transport
        logger.info("[llm:hf] initialized model=%s", model)

    async def invoke(self, messages: list[Message], tools: list[dict[str, Any]]) -> Message:
        headers = {"Authorization": f"Bearer {self._api_key}", "Content-Type": "application/json"}
        payload: dict[str, Any] = {
            "model": self._model,
            "messages": [m.to_openai() for m in messages],
            "max_tokens": self._max_tokens,
            "temperature": self._temperature,
        }
        if tools:
            payload["tools"] = tools
        async with httpx.AsyncClient(timeout=LLM_API_TIMEOUT, transport=self._transport) as client:
            response = await client.post(HF_CHAT_URL, json=payload, headers=headers)
        if response.status_code != 200:
            logger.warning("[llm:hf] HF LLM error %s: %s", response.status_code, response.text[:200])
            response.raise_for_status()
        data = response.json()
        choices = data.get("choices") or []
        msg = choices[0].get("message") if choices and isinstance(choices[0], dict) else None
        out = parse_chat_message(msg)
        _log_reply("hf", out)
        return out


def _log_reply(provider: str, msg: Message) -> None:
    if msg.tool_calls:
        logger.info("[llm:%s] OUT tool_calls=%s", provider, [t.name for t in msg.tool_calls])
    logger.info("[llm:%s] OUT content_len=%d", provider, len(msg.content))


def get_chat_model() -> ChatModel:
    """OpenAI when OPENAI_API_KEY is set, else the Hugging Face router."""
    if OPENAI_API_KEY:
        return OpenAIChatModel()
    logger.info("[llm] OPENAI_API_KEY not set; using Hugging Face router")
    return HFRouterChatModel()
