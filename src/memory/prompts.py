"""
Prompt text used by the memory layer.

The summary prompt can be edited without a deploy: if LangFuse tracing is
on and a text prompt named ``agent-conversation-summary`` exists (with a
``{{conversation}}`` variable), it replaces the local template below.
The per-turn prompt is plain string assembly and stays local.
"""

from infrastructure.observability import fetch_prompt


# Remote prompt names (LangFuse prompt management)


LANGFUSE_PROMPT_NAMES = {
    "summarize": "agent-conversation-summary",
}


# Fallback: Summary prompt


_SUMMARIZE_FALLBACK = """\
Summarize the following conversation in 3-5 sentences:
{conversation}"""


# Builders


def build_summary_prompt(conversation: str) -> str:
    """Build the conversation summary prompt (LangFuse → local fallback)."""
    return fetch_prompt(
        LANGFUSE_PROMPT_NAMES["summarize"],
        fallback=_SUMMARIZE_FALLBACK,
        conversation=conversation,
    )


def build_turn_prompt(context: str, user_input: str) -> str:
    """Append the current user message to the assembled memory context."""
    if not context:
        return f"User: {user_input}"
    return f"{context}\n\nUser: {user_input}"
