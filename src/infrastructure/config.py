"""
Agent configuration - module-level constants read from config/param.yaml.

Non-secret settings live in param.yaml; every key has a default here so a
missing file or key still yields a working setup.  Secrets (provider API
key, LangFuse keys) are read from the environment only; entry points load
``.env`` with python-dotenv before touching anything else.

Relative paths in param.yaml resolve against the project root.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from loguru import logger

# ── Locations ─────────────────────────────────────────────────────────────

# src/infrastructure/config.py -> project root
_PROJECT_ROOT = Path(__file__).resolve().parents[2]
_PARAM_FILE = _PROJECT_ROOT / "config" / "param.yaml"


def _read_params(path: Path) -> Dict[str, Any]:
    """Parsed param file, or ``{}`` when it doesn't exist."""
    if not path.is_file():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _get_nested(d: Dict, *keys, default=None):
    """``d[k1][k2]...`` or ``default`` when any level is missing or null."""
    for key in keys:
        if not isinstance(d, dict):
            return default
        d = d.get(key)
    return default if d is None else d


def _project_path(*keys, default: str) -> Path:
    return _PROJECT_ROOT / _get_nested(_PARAMS, *keys, default=default)


_PARAMS = _read_params(_PARAM_FILE)

# ── Completion provider (DeepSeek, OpenAI-compatible API) ──────────────────

PROVIDER = _get_nested(_PARAMS, "provider", "default", default="deepseek")
DEEPSEEK_BASE_URL = _get_nested(_PARAMS, "provider", "deepseek_base_url",
                                default="https://api.deepseek.com/v1")
CHAT_MODEL = _get_nested(_PARAMS, "provider", "model", default="deepseek-chat")

LLM_TEMPERATURE = _get_nested(_PARAMS, "llm", "temperature", default=0.7)
LLM_MAX_TOKENS = _get_nested(_PARAMS, "llm", "max_tokens", default=2000)
LLM_TIMEOUT_SECONDS = _get_nested(_PARAMS, "llm", "timeout_seconds", default=60)

# ── Memory ────────────────────────────────────────────────────────────────

ST_MAX_SIZE = _get_nested(_PARAMS, "memory", "short_term", "max_size", default=50)
ST_CONTEXT_TOP_K = _get_nested(_PARAMS, "memory", "short_term", "context_top_k", default=10)
ST_RECENT_WINDOW = _get_nested(_PARAMS, "memory", "short_term", "recent_window", default=5)
ST_SUMMARIZE_THRESHOLD = _get_nested(_PARAMS, "memory", "short_term",
                                     "summarize_threshold", default=10)

# Display timezone for memory stats
TIMEZONE = _get_nested(_PARAMS, "memory", "timezone", default="UTC")

# None = no token budget
CONTEXT_MAX_TOKENS = _get_nested(_PARAMS, "context", "max_tokens", default=None)
CONTEXT_INCLUDE_LEARNED = _get_nested(_PARAMS, "context", "include_learned", default=False)

# ── Files ─────────────────────────────────────────────────────────────────

DATA_DIR = _project_path("paths", "data_dir", default="data")
LONG_TERM_FILE = _project_path("paths", "long_term_file", default="memory.json")
KNOWLEDGE_BASE_FILE = _project_path("paths", "knowledge_base_file",
                                    default="data/knowledge_base.json")
KNOWLEDGE_DOCUMENT_FILE = _project_path("paths", "knowledge_document_file",
                                        default="data/knowledge_document.json")
CHARACTERS_DIR = _project_path("paths", "characters_dir", default="characters")
DEFAULT_CHARACTER = _get_nested(_PARAMS, "agent", "default_character", default="helpful")

# Conversation log; AGENT_DB_URL wins over param.yaml
DB_URL = os.getenv("AGENT_DB_URL") or _get_nested(
    _PARAMS, "database", "url", default=f"sqlite:///{DATA_DIR / 'agent.db'}")

# ── Helpers ───────────────────────────────────────────────────────────────

_API_KEY_ENV = {
    "deepseek": "DEEPSEEK_API_KEY",
    "openai": "OPENAI_API_KEY",
}


def get_api_key(provider: Optional[str] = None) -> Optional[str]:
    """API key for ``provider`` (default: the configured one) from the environment."""
    provider = provider or PROVIDER
    return os.getenv(_API_KEY_ENV.get(provider, f"{provider.upper()}_API_KEY"))


def validate() -> None:
    """
    Fail fast before the agent starts.

    Raises:
        ValueError: The provider API key is not set.
        OSError: The data directory can't be created.
    """
    if not get_api_key():
        env_var = _API_KEY_ENV.get(PROVIDER, f"{PROVIDER.upper()}_API_KEY")
        raise ValueError(f"Missing required secret {env_var}; add it to your .env file.")
    try:
        DATA_DIR.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OSError(f"Cannot create data directory {DATA_DIR}: {e}") from e


def dump() -> None:
    """Log every non-secret setting (debug aid)."""
    sections = {
        "Provider": {
            "provider": PROVIDER,
            "model": CHAT_MODEL,
            "temperature": LLM_TEMPERATURE,
            "timeout (s)": LLM_TIMEOUT_SECONDS,
        },
        "Memory": {
            "short-term max size": ST_MAX_SIZE,
            "context top-k": ST_CONTEXT_TOP_K,
            "recent window": ST_RECENT_WINDOW,
            "summarize every (turns)": ST_SUMMARIZE_THRESHOLD,
            "context token budget": CONTEXT_MAX_TOKENS or "unbounded",
            "include learned context": CONTEXT_INCLUDE_LEARNED,
        },
        "Storage": {
            "long-term snapshot": LONG_TERM_FILE,
            "knowledge base": KNOWLEDGE_BASE_FILE,
            "knowledge document": KNOWLEDGE_DOCUMENT_FILE,
            "conversation log backend": DB_URL.split("://")[0],
        },
    }
    for title, values in sections.items():
        logger.info("[{}]", title)
        for name, value in values.items():
            logger.info("  {:<26} {}", name, value)
