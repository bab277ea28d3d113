"""
Memory operations - assemble, summarize.

Two operations over the memory stores:
- Assemble: Build the per-turn prompt context (read path)
- Summarize: Fold short-term history into the long-term summary (write path)
"""

import threading
from typing import List, Optional

import tiktoken
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from infrastructure.llm.llm_provider import CompletionError
from infrastructure.observability import observe, update_current_observation
from memory.errors import MemoryPersistenceError
from memory.kb_store import KnowledgeBaseHandler
from memory.learning import LearningManager
from memory.lt_store import SUMMARY_KEY, LongTermMemoryStore
from memory.prompts import build_summary_prompt
from memory.schemas import Completer
from memory.st_store import ShortTermMemoryStore, render_conversations

SECTION_SEPARATOR = "\n\n"


# ═══════════════════════════════════════════════════════════════════════════════
# Assembler - read path
# ═══════════════════════════════════════════════════════════════════════════════


class ContextAssembler:
    """
    Composes the prompt context for one turn, in order:

      1. long-term ``conversation_summary`` (if any)
      2. short-term ranked context for the current input
      3. static knowledge-base keyword matches for the current input
      4. learned context (only when a ``LearningManager`` is attached)

    With ``max_tokens`` set, trailing material is dropped until the
    context fits: learned and knowledge-base sections first, then the
    least relevant short-term conversations.  The summary is never cut.
    """

    def __init__(
        self,
        st_store: ShortTermMemoryStore,
        lt_store: LongTermMemoryStore,
        knowledge_base: KnowledgeBaseHandler,
        learning: Optional[LearningManager] = None,
        max_tokens: Optional[int] = None,
    ) -> None:
        self.st_store = st_store
        self.lt_store = lt_store
        self.knowledge_base = knowledge_base
        self.learning = learning
        self.max_tokens = max_tokens
        self._tokenizer = None

    def count_tokens(self, text: str) -> int:
        if self._tokenizer is None:
            self._tokenizer = tiktoken.get_encoding("cl100k_base")
        return len(self._tokenizer.encode(text))

    @observe(name="context_assembly")
    def assemble(self, current_input: str) -> str:
        """Return the composed context string for ``current_input``."""
        summary = self.lt_store.retrieve(SUMMARY_KEY) or ""
        st_blocks = [render_conversations([c]) for c in self.st_store.ranked(current_input)]
        trailing = [self.knowledge_base.retrieve_information(current_input)]
        if self.learning is not None:
            trailing.append(self._learned_context(current_input))
        trailing = [t for t in trailing if t]

        context = self._compose(summary, st_blocks, trailing)
        if self.max_tokens is not None:
            while self.count_tokens(context) > self.max_tokens and (trailing or st_blocks):
                if trailing:
                    trailing.pop()
                else:
                    st_blocks.pop()
                context = self._compose(summary, st_blocks, trailing)

        update_current_observation(
            output=context[:500],
            metadata={
                "has_summary": bool(summary),
                "st_conversations": len(st_blocks),
                "trailing_sections": len(trailing),
            },
        )
        logger.debug(
            "Assembled context: summary={}, {} ST conversation(s), {} extra section(s)",
            bool(summary),
            len(st_blocks),
            len(trailing),
        )
        return context

    def _learned_context(self, current_input: str) -> str:
        """Learned context, or ``""`` when its stores can't be read this turn."""
        try:
            return "\n".join(self.learning.get_relevant_context(current_input))
        except (MemoryPersistenceError, SQLAlchemyError) as exc:
            logger.warning("Learned context skipped: {}", exc)
            return ""

    @staticmethod
    def _compose(summary: str, st_blocks: List[str], trailing: List[str]) -> str:
        sections = [summary, SECTION_SEPARATOR.join(st_blocks), *trailing]
        return SECTION_SEPARATOR.join(s for s in sections if s)


# ═══════════════════════════════════════════════════════════════════════════════
# Summarizer - write path
# ═══════════════════════════════════════════════════════════════════════════════


class ConversationSummarizer:
    """
    Every ``threshold`` recorded turns, summarizes the short-term history
    with the completion provider and stores it as the long-term
    ``conversation_summary``.

    The stores are read and written under ``lock`` (shared with the agent
    that owns them); the provider call runs outside it.
    """

    def __init__(
        self,
        completer: Completer,
        st_store: ShortTermMemoryStore,
        lt_store: LongTermMemoryStore,
        threshold: Optional[int] = None,
        lock: Optional[threading.Lock] = None,
    ) -> None:
        from infrastructure.config import ST_SUMMARIZE_THRESHOLD

        self.completer = completer
        self.st_store = st_store
        self.lt_store = lt_store
        self.threshold = ST_SUMMARIZE_THRESHOLD if threshold is None else threshold
        self.lock = lock or threading.Lock()
        self._turns_since_summary = 0

    def should_summarize(self) -> bool:
        return (
            self.threshold > 0
            and self._turns_since_summary >= self.threshold
            and self.st_store.conversation_count() > 0
        )

    def record_turn(self) -> Optional[str]:
        """Count one turn; summarize when due.  Returns the new summary, if any."""
        with self.lock:
            self._turns_since_summary += 1
            due = self.should_summarize()
        if not due:
            return None
        return self.summarize()

    @observe(name="conversation_summary")
    def summarize(self) -> Optional[str]:
        """
        Summarize now.  Provider failures are logged and leave the
        previous summary in place.
        """
        with self.lock:
            history = self.st_store.render_history()
        try:
            summary = self.completer.complete(build_summary_prompt(history))
        except CompletionError as e:
            logger.error("Failed to summarize conversation: {}", e)
            return None

        with self.lock:
            self.lt_store.store(SUMMARY_KEY, summary)
            self._turns_since_summary = 0
            retained = self.st_store.conversation_count()
        logger.info("Conversation summarized ({} conversations)", retained)
        return summary
