"""
SQL client - relational conversation log backed by SQLAlchemy.

Provides:
- SQLAlchemy table definitions (``conversations``, ``knowledge_base``)
- ``ConversationLog``: append-only conversation history plus a
  key-value side table used by the learning manager for the
  ``insight:`` and ``topic:`` namespaces.
"""

from datetime import datetime
from typing import List, Optional, Tuple

from loguru import logger
from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    MetaData,
    Table,
    Text,
    create_engine,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

# Metadata
metadata = MetaData()

# ============================================================================
# TABLES
# ============================================================================

# Append-only log of every exchange
conversations_table = Table(
    "conversations",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("timestamp", DateTime, nullable=False, server_default=func.current_timestamp()),
    Column("user_input", Text, nullable=False),
    Column("ai_response", Text, nullable=False),
    Column("personality", Text, nullable=False),
)

# Key-value side table (insight:{topic}:{ts}, topic:{topic})
knowledge_table = Table(
    "knowledge_base",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("key", Text, unique=True, nullable=False),
    Column("value", Text, nullable=False),
    Column("timestamp", DateTime, nullable=False, server_default=func.current_timestamp()),
)


class ConversationLog:
    """
    Relational conversation log.

    One engine per instance; tables are created on construction if
    they don't exist.  Write failures are logged and re-raised.
    """

    def __init__(self, db_url: Optional[str] = None, echo: bool = False) -> None:
        if db_url is None:
            from infrastructure.config import DB_URL
            db_url = DB_URL
        self.engine = create_engine(db_url, echo=echo, pool_pre_ping=True)
        self._session_factory = sessionmaker(
            bind=self.engine, autoflush=False)
        metadata.create_all(bind=self.engine)
        logger.info("Conversation log initialised ({})", self.engine.url.get_backend_name())

    def save_conversation(self, user_input: str, ai_response: str, personality: str) -> None:
        """Append one exchange to the conversation log."""
        session = self._session_factory()
        try:
            session.execute(
                insert(conversations_table).values(
                    user_input=user_input,
                    ai_response=ai_response,
                    personality=personality,
                )
            )
            session.commit()
            logger.debug("Logged conversation turn (personality={})", personality)
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("Failed to save conversation: {}", e)
            raise
        finally:
            session.close()

    def save_knowledge(self, key: str, value: str) -> None:
        """Insert or replace a side-table entry."""
        session = self._session_factory()
        try:
            result = session.execute(
                update(knowledge_table)
                .where(knowledge_table.c.key == key)
                .values(value=value, timestamp=func.current_timestamp())
            )
            if result.rowcount == 0:
                session.execute(insert(knowledge_table).values(key=key, value=value))
            session.commit()
            logger.debug("Saved knowledge key {}", key)
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("Failed to save knowledge {}: {}", key, e)
            raise
        finally:
            session.close()

    def get_knowledge(self, key: str) -> Optional[str]:
        """Return the side-table value for ``key`` or ``None``."""
        session = self._session_factory()
        try:
            return session.execute(
                select(knowledge_table.c.value).where(knowledge_table.c.key == key)
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Failed to read knowledge {}: {}", key, e)
            raise
        finally:
            session.close()

    # side-table interface used by the learning manager
    put = save_knowledge
    get = get_knowledge

    def get_recent_conversations(self, limit: int) -> List[Tuple[str, str, str, str]]:
        """
        Return up to ``limit`` conversations, newest first.

        Each row is ``(timestamp, user_input, ai_response, personality)``.
        Rows that can't be read are skipped.
        """
        session = self._session_factory()
        try:
            rows = session.execute(
                select(
                    conversations_table.c.timestamp,
                    conversations_table.c.user_input,
                    conversations_table.c.ai_response,
                    conversations_table.c.personality,
                )
                .order_by(conversations_table.c.timestamp.desc(), conversations_table.c.id.desc())
                .limit(limit)
            ).fetchall()
        finally:
            session.close()

        conversations = []
        for row in rows:
            try:
                ts = row.timestamp
                ts_str = ts.isoformat(sep=" ") if isinstance(ts, datetime) else str(ts)
                conversations.append(
                    (ts_str, str(row.user_input), str(row.ai_response), str(row.personality))
                )
            except (TypeError, ValueError) as e:
                logger.warning("Skipping malformed conversation row: {}", e)
        return conversations

    def close(self) -> None:
        """Dispose of the engine's connection pool."""
        self.engine.dispose()
