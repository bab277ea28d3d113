"""
Conversational agent - turn loop and personalities.

Public API:
    build_agent()        → ConversationAgent (fully wired, ready to chat)
    ConversationAgent    → per-turn orchestrator
    AgentResponse        → response dataclass
    PersonalityProfile   → typed character configuration
"""

from .orchestrator import AgentResponse, ConversationAgent, build_agent
from .personality import PersonalityProfile, list_characters, load_character

__all__ = [
    "AgentResponse",
    "ConversationAgent",
    "build_agent",
    "PersonalityProfile",
    "list_characters",
    "load_character",
]
