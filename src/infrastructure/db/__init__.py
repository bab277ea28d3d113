"""
Database clients for the conversational agent.

Storage:
     Relational - SQLAlchemy (SQLite by default) → conversation log
                  + key-value side table for learned insights
"""

from .sql_client import ConversationLog, conversations_table, knowledge_table, metadata

__all__ = [
    "ConversationLog",
    "conversations_table",
    "knowledge_table",
    "metadata",
]
