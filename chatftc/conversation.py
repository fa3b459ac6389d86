"""Per-session conversation history and the retrieval-augmented chat service."""

from __future__ import annotations

import asyncio
from collections import OrderedDict, deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from .config import config
from .models import ConversationTurn, Role, Segment

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from .context import ContextAssembler
    from .context_store import ContextStore, Embedder
    from .retrieval import Retriever

logger = config.get_logger(__name__)


class LanguageModel(Protocol):
    """Language model collaborator."""

    async def complete(self, messages: list[dict[str, str]]) -> str: ...

    def stream(self, messages: list[dict[str, str]]) -> AsyncIterator[str]: ...


class ConversationHistory:
    """Most recent turns of one session, oldest evicted first."""

    def __init__(self, max_turns: int | None = None) -> None:
        self.max_turns = (
            max_turns if max_turns is not None else config.MAX_HISTORY_TURNS
        )
        self._turns: deque[ConversationTurn] = deque(maxlen=self.max_turns)
        self.lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._turns)

    def turns(self) -> list[ConversationTurn]:
        return list(self._turns)

    def append(self, role: Role, content: str) -> None:
        self._turns.append(ConversationTurn(role=role, content=content))

    def clear(self) -> None:
        self._turns.clear()


class SessionRegistry:
    """Conversation histories keyed by session id.

    Holds at most ``max_sessions`` histories. Using a session marks it as
    most recent; when the registry is full the least recently used idle
    session is forgotten.
    """

    def __init__(
        self, max_turns: int | None = None, max_sessions: int | None = None
    ) -> None:
        """Initialize an empty registry.

        Args:
            max_turns: Turns kept per session. If None, uses
                config.MAX_HISTORY_TURNS.
            max_sessions: Sessions kept before the least recently used is
                evicted. If None, uses config.MAX_SESSIONS.
        """
        self.max_turns = (
            max_turns if max_turns is not None else config.MAX_HISTORY_TURNS
        )
        self.max_sessions = max(
            1, max_sessions if max_sessions is not None else config.MAX_SESSIONS
        )
        self._histories: OrderedDict[str, ConversationHistory] = OrderedDict()

    def __len__(self) -> int:
        return len(self._histories)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._histories

    def get(self, session_id: str) -> ConversationHistory:
        """Return the session's history, creating it on first use."""  # noqa: DOC201
        history = self._histories.get(session_id)
        if history is not None:
            self._histories.move_to_end(session_id)
            return history

        history = ConversationHistory(self.max_turns)
        self._histories[session_id] = history
        self._evict(keep=session_id)
        return history

    def _evict(self, keep: str) -> None:
        # Sessions with a request in flight and the one just created are kept.
        excess = len(self._histories) - self.max_sessions
        if excess <= 0:
            return
        idle = [
            session_id
            for session_id, history in self._histories.items()
            if session_id != keep and not history.lock.locked()
        ]
        for session_id in idle[:excess]:
            del self._histories[session_id]
            logger.debug("Evicted idle session %s", session_id)

    def clear(self, session_id: str) -> None:
        """Forget a session's history."""
        self._histories.pop(session_id, None)
        logger.info("Conversation history cleared for session %s", session_id)


@dataclass
class ChatResult:
    """Answer text with the context it was grounded on."""

    answer: str
    retrieved: list[tuple[Segment, float]] = field(default_factory=list)


class ChatService:
    """Answers questions from one knowledge base with per-session history."""

    def __init__(  # noqa: PLR0913
        self,
        store: ContextStore,
        embedder: Embedder,
        retriever: Retriever,
        assembler: ContextAssembler,
        chat_model: LanguageModel,
        system_prompt: str,
        sessions: SessionRegistry | None = None,
        top_k: int | None = None,
    ) -> None:
        """Initialize the chat service.

        Args:
            store: Context store for the knowledge base.
            embedder: Embeds questions; must be the model the store uses.
            retriever: Ranks stored segments against the question.
            assembler: Builds the budgeted context and the message list.
            chat_model: Language model that writes the answer.
            system_prompt: Instructions sent ahead of every conversation.
            sessions: Conversation histories. A new registry if None.
            top_k: Segments retrieved per question. If None, uses
                config.RETRIEVAL_TOP_K.
        """
        self.store = store
        self.embedder = embedder
        self.retriever = retriever
        self.assembler = assembler
        self.chat_model = chat_model
        self.system_prompt = system_prompt
        self.sessions = sessions if sessions is not None else SessionRegistry()
        self.top_k = top_k if top_k is not None else config.RETRIEVAL_TOP_K

    async def prepare_messages(
        self,
        user_input: str,
        history: ConversationHistory,
    ) -> tuple[list[dict[str, str]], list[tuple[Segment, float]]]:
        """Retrieve context for a question and build the model payload.

        Returns:
            The messages for the model and the ranked segments used.

        Raises:
            ValueError: If the question is empty.
        """
        if not user_input.strip():
            msg = "userInput must not be empty"
            raise ValueError(msg)

        snapshot = await self.store.get_context()
        query_vector = await self.embedder.embed(user_input)
        ranked = self.retriever.rank(
            query_vector, snapshot, self.top_k, model=self.embedder.model
        )
        turns = history.turns()
        context = self.assembler.assemble([segment for segment, _ in ranked], turns)

        logger.info("Retrieved contexts:")
        for i, (segment, score) in enumerate(ranked):
            logger.info(
                "  Context %d: %s @%d (score: %.4f)",
                i + 1,
                segment.source_id,
                segment.offset,
                score,
            )

        messages = self.assembler.build_messages(
            user_input, context, turns, self.system_prompt
        )
        return messages, ranked

    async def answer(self, session_id: str, user_input: str) -> ChatResult:
        """Answer a question within a session.

        The session's history is locked for the whole cycle and both turns
        are recorded only after the model answers.

        Returns:
            The answer and the ranked segments it was grounded on.
        """
        history = self.sessions.get(session_id)
        async with history.lock:
            messages, ranked = await self.prepare_messages(user_input, history)
            answer = await self.chat_model.complete(messages)
            history.append("user", user_input)
            history.append("assistant", answer)
        return ChatResult(answer=answer, retrieved=ranked)

    async def stream_answer(
        self, session_id: str, user_input: str
    ) -> AsyncIterator[str]:
        """Yield answer fragments for a question within a session.

        Fragments are forwarded as they arrive and buffered; the turns are
        recorded once the stream completes. An abandoned or failed stream
        leaves the history unchanged.
        """
        history = self.sessions.get(session_id)
        async with history.lock:
            messages, _ranked = await self.prepare_messages(user_input, history)
            fragments: list[str] = []
            async for fragment in self.chat_model.stream(messages):
                fragments.append(fragment)
                yield fragment
            history.append("user", user_input)
            history.append("assistant", "".join(fragments))

    def clear_history(self, session_id: str) -> None:
        self.sessions.clear(session_id)
