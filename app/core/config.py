"""
Application configuration (env, settings, constants).

Responsibility: Centralize config loading, environment variables, and app-wide
constants. Keeps the rest of the app decoupled from how config is sourced.
"""

import os

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    return float(raw) if raw else default


# Logging
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"

# Milvus Cloud (from env)
MILVUS_URI: str = os.getenv("MILVUS_URI", "").strip()
MILVUS_TOKEN: str = os.getenv("MILVUS_TOKEN", "").strip()

# Hugging Face (embeddings / fallback chat)
HF_API_KEY: str = os.getenv("HF_API_KEY", "").strip()

# Vector collection: embedding dim of sentence-transformers/all-MiniLM-L6-v2
VECTOR_DIM: int = 384
EMPLOYEE_COLLECTION: str = os.getenv("EMPLOYEE_COLLECTION", "employees").strip() or "employees"
HF_EMBED_MODEL: str = "sentence-transformers/all-MiniLM-L6-v2"
EMBED_BATCH_SIZE: int = 32

# SQLite files (relative to project root unless absolute)
EMPLOYEE_DB_PATH: str = os.getenv("EMPLOYEE_DB_PATH", "data/hr_database.db").strip() or "data/hr_database.db"
CHECKPOINT_DB_PATH: str = os.getenv("CHECKPOINT_DB_PATH", "data/checkpoints.db").strip() or "data/checkpoints.db"
CHECKPOINT_NAMESPACE: str = os.getenv("CHECKPOINT_NAMESPACE", "hr_agent").strip() or "hr_agent"

# API timeouts (seconds) for the underlying HTTP clients
EMBED_API_TIMEOUT: float = 30.0
LLM_API_TIMEOUT: float = 60.0

# Hugging Face chat (fallback LLM)
HF_CHAT_URL: str = "https://router.huggingface.co/v1/chat/completions"

# OpenAI (agent LLM). When set, the agent uses OpenAI instead of Hugging Face.
OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "").strip()
OPENAI_LLM_MODEL: str = (
    os.getenv("OPENAI_LLM_MODEL", "gpt-4o-mini").strip() or "gpt-4o-mini"
)

# HF LLM for agent (fallback when OPENAI_API_KEY is not set). Must support tool calling.
HF_LLM_MODEL: str = (
    os.getenv("HF_LLM_MODEL", "meta-llama/Llama-3.3-70B-Instruct").strip()
    or "meta-llama/Llama-3.3-70B-Instruct"
)
AGENT_MAX_TOKENS: int = 1024
AGENT_TEMPERATURE: float = 0.0

# Resilience: model calls
MODEL_TIMEOUT: float = _env_float("MODEL_TIMEOUT", 10.0)
MAX_MODEL_RETRIES: int = _env_int("MAX_MODEL_RETRIES", 3)

# Resilience: tool calls. One model call plus one tool call must fit in a turn.
TOOL_TIMEOUT: float = _env_float("TOOL_TIMEOUT", 8.0)
MAX_TOOL_RETRIES: int = _env_int("MAX_TOOL_RETRIES", 0)

# Resilience: whole turn
WORKFLOW_TIMEOUT: float = _env_float("WORKFLOW_TIMEOUT", 30.0)
MAX_WORKFLOW_RETRIES: int = _env_int("MAX_WORKFLOW_RETRIES", 2)
# Share of each turn attempt that model and tool calls may use, so the agent node
# still writes its fallback answer before the turn timeout fires.
TURN_BUDGET_RATIO: float = 0.9

# Backoff shape shared by every policy
RETRY_FACTOR: float = 2.0
RETRY_MIN_TIMEOUT: float = 1.0
RETRY_MAX_TIMEOUT: float = 5.0

# Workflow limits
RECURSION_LIMIT: int = _env_int("AGENT_RECURSION_LIMIT", 5)
MAX_QUERY_LENGTH: int = 1000
MAX_THREAD_ID_LENGTH: int = 100

# Employee lookup tool
LOOKUP_DEFAULT_LIMIT: int = _env_int("LOOKUP_DEFAULT_LIMIT", 100)
LOOKUP_MAX_LIMIT: int = 200

# Variables the server refuses to start without
REQUIRED_ENV_VARS: tuple[str, ...] = ("MILVUS_URI", "MILVUS_TOKEN", "HF_API_KEY")


def missing_environment() -> list[str]:
    """Return required env vars that are unset (OPENAI_API_KEY is optional when HF_API_KEY is set)."""
    return [name for name in REQUIRED_ENV_VARS if not os.getenv(name, "").strip()]
