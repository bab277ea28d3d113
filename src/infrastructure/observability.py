"""
Tracing for the agent - LangFuse v3.

Traced spans: ``agent_turn`` (one per chat turn), ``completion``
(generation, one per provider call), ``context_assembly``,
``learn_from_interaction`` and ``conversation_summary``.

Tracing is on only when ``observability.enabled`` is true in
config/param.yaml AND both ``LANGFUSE_SECRET_KEY`` and
``LANGFUSE_PUBLIC_KEY`` are set (``LANGFUSE_BASE_URL`` optional).
Otherwise ``observe`` returns functions untouched and every helper here
is a no-op, so tests and offline runs never reach the network.

Tracing problems are never allowed to fail a turn: helper errors are
logged at DEBUG and dropped.
"""

import os
from typing import Any, Dict, List, Optional

from langfuse import Langfuse, get_client
from langfuse import observe as _langfuse_observe
from loguru import logger

DEFAULT_BASE_URL = "https://us.cloud.langfuse.com"

_enabled: Optional[bool] = None
_client: Optional[Langfuse] = None
_client_ready = False


def tracing_enabled() -> bool:
    """Config flag and credentials, evaluated once per process."""
    global _enabled
    if _enabled is None:
        from infrastructure.config import _PARAMS, _get_nested

        _enabled = bool(
            _get_nested(_PARAMS, "observability", "enabled", default=True)
            and os.getenv("LANGFUSE_SECRET_KEY")
            and os.getenv("LANGFUSE_PUBLIC_KEY")
        )
    return _enabled


def get_langfuse() -> Optional[Langfuse]:
    """
    The process-wide Langfuse client, created on first call.

    Call early at startup so spans opened later attach to it.
    Returns None when tracing is off or the client can't be built.
    """
    global _client, _client_ready
    if _client_ready:
        return _client
    _client_ready = True

    if not tracing_enabled():
        logger.info("Tracing off (disabled in config or LangFuse keys missing)")
        return None

    base_url = os.getenv("LANGFUSE_BASE_URL", DEFAULT_BASE_URL)
    try:
        _client = Langfuse(
            secret_key=os.getenv("LANGFUSE_SECRET_KEY"),
            public_key=os.getenv("LANGFUSE_PUBLIC_KEY"),
            host=base_url,
        )
    except Exception as exc:
        logger.error("LangFuse client could not be created: {}", exc)
        return None
    logger.info("Tracing to LangFuse at {}", base_url)
    return _client


def observe(*, name: Optional[str] = None, as_type: Optional[str] = None):
    """``langfuse.observe`` when tracing is on, identity decorator otherwise."""
    if not tracing_enabled():
        return lambda fn: fn
    options: Dict[str, Any] = {}
    if name is not None:
        options["name"] = name
    if as_type is not None:
        options["as_type"] = as_type
    return _langfuse_observe(**options)


def fetch_prompt(name: str, *, fallback: str, cache_ttl_seconds: int = 300, **variables: str) -> str:
    """
    Prompt ``name`` from LangFuse prompt management, compiled with
    ``variables`` (``{{var}}`` syntax).  When tracing is off or the prompt
    doesn't exist remotely, ``fallback`` is formatted instead (``{var}``).
    """
    client = get_langfuse()
    if client is not None:
        try:
            prompt = client.get_prompt(name, type="text", cache_ttl_seconds=cache_ttl_seconds)
            logger.debug("Using LangFuse prompt {} v{}", name, getattr(prompt, "version", "?"))
            return prompt.compile(**variables)
        except Exception as exc:
            logger.debug("LangFuse prompt {} unavailable ({}), using local template", name, exc)
    return fallback.format(**variables) if variables else fallback


def update_current_trace(
    *,
    session_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    tags: Optional[List[str]] = None,
) -> None:
    """Attach session, tags (e.g. personality) and metadata to the running trace."""
    fields = _present(session_id=session_id, metadata=metadata, tags=tags)
    if not fields or not tracing_enabled():
        return
    try:
        get_client().update_current_trace(**fields)
    except Exception as exc:
        logger.debug("Trace update dropped: {}", exc)


def update_current_observation(
    *,
    input: Optional[str] = None,
    output: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    model: Optional[str] = None,
) -> None:
    """
    Annotate the innermost open span.  Passing ``model`` marks it as the
    completion generation.
    """
    fields = _present(input=input, output=output, metadata=metadata)
    if not tracing_enabled() or not (fields or model):
        return
    try:
        client = get_client()
        if model is not None:
            client.update_current_generation(model=model, **fields)
        else:
            client.update_current_span(**fields)
    except Exception as exc:
        logger.debug("Observation update dropped: {}", exc)


def flush() -> None:
    """Send buffered events; call before the process exits."""
    if not tracing_enabled():
        return
    try:
        get_client().flush()
    except Exception as exc:
        logger.debug("LangFuse flush failed: {}", exc)


def _present(**fields: Any) -> Dict[str, Any]:
    return {key: value for key, value in fields.items() if value is not None}
