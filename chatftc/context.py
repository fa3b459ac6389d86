"""Prompt context assembly."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .config import config

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .models import ConversationTurn, Segment

logger = config.get_logger(__name__)

SEGMENT_SEPARATOR = "\n\n"


class ContextAssembler:
    """Builds the context slice of a prompt under a character budget."""

    def __init__(self, budget: int | None = None) -> None:
        """Initialize the assembler.

        Args:
            budget: Default maximum context length in characters. If None,
                uses config.CONTEXT_CHAR_BUDGET.
        """
        self.budget = budget if budget is not None else config.CONTEXT_CHAR_BUDGET

    def assemble(
        self,
        retrieved: Sequence[Segment],
        history: Sequence[ConversationTurn] = (),
        budget: int | None = None,
    ) -> str:
        """Join retrieved segment texts in ranked order within the budget.

        Segments are separated by a blank line and added whole until the next
        one would overflow. If not even the first segment fits, it is cut to
        exactly ``budget`` characters.

        Args:
            retrieved: Segments, most relevant first.
            history: Turns of the conversation. They are not counted against
                the budget and not included in the result; ``build_messages``
                sends them as separate messages on top.
            budget: Maximum length of the result. If None, uses ``self.budget``.

        Returns:
            The context string, at most ``budget`` characters long.

        Raises:
            ValueError: If the budget is not positive.
        """
        budget = budget if budget is not None else self.budget
        if budget <= 0:
            msg = f"budget must be positive, got {budget}"
            raise ValueError(msg)

        parts: list[str] = []
        length = 0
        for segment in retrieved:
            added = len(segment.text) + (len(SEGMENT_SEPARATOR) if parts else 0)
            if length + added > budget:
                break
            parts.append(segment.text)
            length += added

        if not parts and retrieved:
            logger.debug(
                "Top segment (%d chars) exceeds budget %d; truncating",
                len(retrieved[0].text),
                budget,
            )
            return retrieved[0].text[:budget]

        logger.debug(
            "Assembled %d of %d segments (%d history turns added separately)",
            len(parts),
            len(retrieved),
            len(history),
        )
        return SEGMENT_SEPARATOR.join(parts)

    @staticmethod
    def build_messages(
        question: str,
        context: str,
        history: Sequence[ConversationTurn],
        system_prompt: str,
    ) -> list[dict[str, str]]:
        """Compose the chat payload: system prompt, history, then the question.

        Returns:
            Messages in the chat completions format.
        """
        messages = [{"role": "system", "content": system_prompt}]
        messages.extend({"role": turn.role, "content": turn.content} for turn in history)
        content = f"{context}\n\nUser: {question}" if context else f"User: {question}"
        messages.append({"role": "user", "content": content})
        return messages
