"""
Conversation agent - per-turn execution loop.

Flow:
  1. Assemble context (long-term summary + short-term ranked context
     + knowledge-base keyword matches).
  2. Ask the completion provider, in character.
  3. Record the exchange in short-term memory.
  4. Append the exchange to the conversation log (best effort).
  5. Learn from the exchange (best effort).
  6. Summarize short-term history into long-term memory when due.

Every turn is traced via LangFuse ``@observe``.
"""

import itertools
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from agents.personality import PersonalityProfile
from infrastructure.db.sql_client import ConversationLog
from infrastructure.llm.llm_provider import CompletionProvider
from infrastructure.observability import flush, observe, update_current_trace
from memory.errors import LearningError
from memory.kb_store import KnowledgeBaseHandler
from memory.learning import LearningManager
from memory.lt_store import LongTermMemoryStore
from memory.memory_ops import ContextAssembler, ConversationSummarizer
from memory.prompts import build_turn_prompt
from memory.st_store import ShortTermMemoryStore


@dataclass
class AgentResponse:
    """
    Result of one conversational turn.

    Attributes:
        answer: The assistant's reply.
        context: Memory context that was sent with the prompt.
        insights_learned: Insights persisted from this turn (0 if learning failed).
        summary_updated: Whether the long-term summary was refreshed.
        latency_ms: End-to-end processing time.
    """

    answer: str
    context: str = ""
    insights_learned: int = 0
    summary_updated: bool = False
    latency_ms: int = 0


class ConversationAgent:
    """
    Ties the completion provider, memory stores and learning together.

    Short- and long-term memory are owned here and only touched under
    ``_memory_lock``; the provider call happens outside it.
    Provider failures propagate typed (``CompletionError`` subclasses)
    and leave memory untouched.
    """

    def __init__(
        self,
        completer: CompletionProvider,
        personality: PersonalityProfile,
        st_store: ShortTermMemoryStore,
        lt_store: LongTermMemoryStore,
        knowledge_base: KnowledgeBaseHandler,
        learning: LearningManager,
        conversation_log: ConversationLog,
        summarizer: Optional[ConversationSummarizer] = None,
        assembler: Optional[ContextAssembler] = None,
        lt_path: Optional[Union[str, Path]] = None,
    ) -> None:
        self.completer = completer
        self.personality = personality
        self.st_store = st_store
        self.lt_store = lt_store
        self.knowledge_base = knowledge_base
        self.learning = learning
        self.conversation_log = conversation_log
        self.summarizer = summarizer or ConversationSummarizer(completer, st_store, lt_store)
        self.assembler = assembler or ContextAssembler(st_store, lt_store, knowledge_base)
        self.lt_path = lt_path
        # shared with the summarizer
        self._memory_lock = self.summarizer.lock
        self.session_id = uuid.uuid4().hex[:12]
        self._turn_ids = itertools.count(1)

    # public entry point

    def chat(self, user_input: str) -> AgentResponse:
        """Process one user message through the full turn pipeline."""
        turn = next(self._turn_ids)
        with logger.contextualize(turn=turn):
            return self._run_turn(user_input, turn)

    def switch_personality(self, personality: PersonalityProfile) -> None:
        self.personality = personality
        logger.info("Switched personality to {}", personality.name)

    def learning_summary(self) -> str:
        return self.learning.get_learning_summary().format()

    def memory_stats(self) -> str:
        with self._memory_lock:
            return self.st_store.memory_stats().format()

    def shutdown(self) -> None:
        """Save the long-term snapshot and flush traces."""
        if self.lt_path is not None:
            with self._memory_lock:
                self.lt_store.save(self.lt_path)
        flush()

    # internal steps

    @observe(name="agent_turn")
    def _run_turn(self, user_input: str, turn: int) -> AgentResponse:
        t0 = time.time()
        update_current_trace(
            session_id=self.session_id,
            tags=["agent", self.personality.name],
            metadata={"turn": turn},
        )

        with self._memory_lock:
            context = self.assembler.assemble(user_input)

        answer = self.completer.complete(
            build_turn_prompt(context, user_input),
            system_prompt=self.personality.generate_system_prompt(),
        )

        with self._memory_lock:
            self.st_store.add_interaction(user_input, answer)
            retained = self.st_store.conversation_count()

        self._log_conversation(user_input, answer)
        insights = self._learn(user_input, answer)
        summary = self.summarizer.record_turn()

        latency_ms = int((time.time() - t0) * 1000)
        logger.info(
            "Turn complete in {} ms ({} insights, {} conversations retained)",
            latency_ms,
            insights,
            retained,
        )
        return AgentResponse(
            answer=answer,
            context=context,
            insights_learned=insights,
            summary_updated=summary is not None,
            latency_ms=latency_ms,
        )

    def _log_conversation(self, user_input: str, answer: str) -> None:
        try:
            self.conversation_log.save_conversation(user_input, answer, self.personality.name)
        except SQLAlchemyError as exc:
            logger.warning("Conversation not logged: {}", exc)

    def _learn(self, user_input: str, answer: str) -> int:
        try:
            return len(self.learning.learn_from_interaction(user_input, answer).insights)
        except LearningError as exc:
            logger.warning("Learning skipped ({}): {}", exc.sink, exc)
            return 0


# Factory: build a fully-wired agent from config


def build_agent(character: Optional[str] = None) -> ConversationAgent:
    """
    Convenience factory that constructs and wires all components.

    Reads config / env for the API key, file paths and database URL.
    Exits the process if the static knowledge file is unusable.
    """
    from dotenv import load_dotenv

    load_dotenv()

    # Eagerly init LangFuse so child spans are captured
    from infrastructure.observability import get_langfuse

    get_langfuse()

    from agents.personality import load_character
    from infrastructure import config
    from infrastructure.llm import get_chat_llm
    from memory.kb_store import KnowledgeDocumentStore

    config.validate()

    personality = load_character(character or config.DEFAULT_CHARACTER)
    completer = CompletionProvider(get_chat_llm())
    logger.info("Completion model: {}", completer.model_name)

    st_store = ShortTermMemoryStore()
    lt_store = LongTermMemoryStore.load_or_empty(config.LONG_TERM_FILE)
    knowledge_base = KnowledgeBaseHandler(config.KNOWLEDGE_BASE_FILE)
    conversation_log = ConversationLog(config.DB_URL)
    learning = LearningManager(conversation_log, KnowledgeDocumentStore(config.KNOWLEDGE_DOCUMENT_FILE))

    return ConversationAgent(
        completer=completer,
        personality=personality,
        st_store=st_store,
        lt_store=lt_store,
        knowledge_base=knowledge_base,
        learning=learning,
        conversation_log=conversation_log,
        assembler=ContextAssembler(
            st_store,
            lt_store,
            knowledge_base,
            learning=learning if config.CONTEXT_INCLUDE_LEARNED else None,
            max_tokens=config.CONTEXT_MAX_TOKENS,
        ),
        lt_path=config.LONG_TERM_FILE,
    )
