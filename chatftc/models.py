"""Data models for the retrieval pipeline."""

from dataclasses import dataclass, field
from typing import Literal

import numpy as np

Role = Literal["user", "assistant"]


@dataclass(frozen=True)
class Segment:
    """A contiguous slice of source text produced by the chunker."""

    text: str
    source_id: str
    offset: int


@dataclass(frozen=True)
class SourceDocument:
    """Raw text obtained from one source. Failed sources carry empty text."""

    source_id: str
    text: str


@dataclass(frozen=True)
class StoreEntry:
    """A segment paired with its embedding vector."""

    segment: Segment
    vector: np.ndarray


@dataclass(frozen=True)
class ContextSnapshot:
    """Fully populated state of a context store at one build.

    Snapshots are immutable and published whole, so a reader either sees the
    previous build or the new one, never a mix of both.
    """

    entries: tuple[StoreEntry, ...]
    model: str
    built_at: float
    failed_sources: tuple[str, ...] = ()
    _matrix: np.ndarray | None = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        """Stack entry vectors once so similarity search is a single matmul.

        Raises:
            ValueError: If the entry vectors do not share one dimensionality.
        """
        if not self.entries:
            object.__setattr__(self, "_matrix", np.empty((0, 0), dtype=np.float32))
            return
        dimensions = {entry.vector.shape for entry in self.entries}
        if len(dimensions) != 1:
            msg = f"Mixed vector shapes in snapshot: {sorted(dimensions)}"
            raise ValueError(msg)
        matrix = np.vstack([entry.vector for entry in self.entries]).astype(
            np.float32
        )
        object.__setattr__(self, "_matrix", matrix)

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def is_empty(self) -> bool:
        return not self.entries

    @property
    def segments(self) -> list[Segment]:
        return [entry.segment for entry in self.entries]

    @property
    def matrix(self) -> np.ndarray:
        """Stacked vectors, one row per entry, in store order."""
        return self._matrix

    @property
    def dimension(self) -> int | None:
        if not self.entries:
            return None
        return int(self._matrix.shape[1])


@dataclass(frozen=True)
class ConversationTurn:
    """Represents a single turn in the conversation."""

    role: Role
    content: str
