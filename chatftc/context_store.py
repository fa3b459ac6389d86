"""In-memory context store with age-based rebuilds."""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Protocol

from .config import config
from .errors import EmbeddingError
from .models import ContextSnapshot, StoreEntry

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    import numpy as np

    from .document_processing import TextChunker
    from .sources import Source, SourceLoader

logger = config.get_logger(__name__)


class Embedder(Protocol):
    """Embedding model collaborator."""

    model: str

    async def embed(self, text: str) -> np.ndarray: ...

    async def embed_batch(self, texts: list[str]) -> list[np.ndarray]: ...


class ContextStore:
    """Holds the embedded segments of one set of sources.

    The store is built lazily and rebuilt from scratch once older than
    ``max_age`` seconds. Only one rebuild runs at a time: concurrent callers
    that find the store stale await the same pending task. A rebuild publishes
    its snapshot in one assignment, so readers never see a partial store.
    """

    def __init__(  # noqa: PLR0913
        self,
        sources: Sequence[Source],
        source_loader: SourceLoader,
        chunker: TextChunker,
        embedder: Embedder,
        max_age: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize an empty store.

        Args:
            sources: Sources the store is built from.
            source_loader: Loads raw text for the sources.
            chunker: Splits loaded text into segments.
            embedder: Embeds segments; its ``model`` tags every snapshot.
            max_age: Seconds before a snapshot is stale. If None, uses
                config.CONTEXT_MAX_AGE_SECONDS.
            clock: Monotonic time source.
        """
        self.sources = tuple(sources)
        self.source_loader = source_loader
        self.chunker = chunker
        self.embedder = embedder
        self.max_age = (
            max_age if max_age is not None else config.CONTEXT_MAX_AGE_SECONDS
        )
        self.clock = clock
        self.rebuild_count = 0
        self._snapshot: ContextSnapshot | None = None
        self._pending: asyncio.Task[ContextSnapshot] | None = None
        # Bumped by invalidate(); a snapshot is current only if built from
        # the generation that was live when its rebuild started.
        self._generation = 0
        self._built_generation = 0

    @property
    def model(self) -> str:
        return self.embedder.model

    @property
    def snapshot(self) -> ContextSnapshot | None:
        return self._snapshot

    def is_stale(self) -> bool:
        """Check whether the current snapshot must be rebuilt before serving.

        Returns:
            True if nothing is built yet, the store was invalidated or the
            snapshot is older than ``max_age``.
        """
        if self._snapshot is None or self._built_generation != self._generation:
            return True
        return self.clock() - self._snapshot.built_at > self.max_age

    def invalidate(self) -> None:
        """Force the next ``get_context`` call to rebuild.

        A rebuild already in flight does not count: it loaded its sources
        before the invalidation, so the store stays stale after it publishes.
        """
        self._generation += 1

    async def get_context(self) -> ContextSnapshot:
        """Return the current snapshot, rebuilding first if it is stale.

        Returns:
            A fully populated snapshot.

        Raises:
            EmbeddingError: If a rebuild fails and there is no earlier
                snapshot to fall back on.
        """
        if not self.is_stale():
            return self._snapshot

        if self._pending is None:
            self._pending = asyncio.create_task(self._rebuild())
            self._pending.add_done_callback(self._clear_pending)
        else:
            logger.debug("Joining in-flight context rebuild")
        # Shielded so a cancelled request does not cancel other waiters' rebuild.
        return await asyncio.shield(self._pending)

    def _clear_pending(self, task: asyncio.Task[ContextSnapshot]) -> None:
        if self._pending is task:
            self._pending = None

    async def _rebuild(self) -> ContextSnapshot:
        generation = self._generation
        self.rebuild_count += 1
        logger.info(
            "Rebuilding context store from %d source(s) (rebuild #%d)",
            len(self.sources),
            self.rebuild_count,
        )
        report = await self.source_loader.load_all(self.sources)

        segments = []
        for document in report.documents:
            segments.extend(self.chunker.chunk_text(document.text, document.source_id))

        try:
            vectors = await self._embed_segments([s.text for s in segments])
        except EmbeddingError:
            if self._snapshot is None:
                raise
            logger.warning(
                "Context rebuild failed; keeping snapshot built at %.0f",
                self._snapshot.built_at,
            )
            return self._snapshot

        snapshot = ContextSnapshot(
            entries=tuple(
                StoreEntry(segment=segment, vector=vector)
                for segment, vector in zip(segments, vectors, strict=True)
            ),
            model=self.embedder.model,
            built_at=self.clock(),
            failed_sources=tuple(report.failed_sources),
        )
        self._snapshot = snapshot
        self._built_generation = generation
        logger.info(
            "Context store ready: %d segments from %d documents (model %s)",
            len(snapshot),
            len(report.documents),
            snapshot.model,
        )
        return snapshot

    async def _embed_segments(self, texts: list[str]) -> list[np.ndarray]:
        if not texts:
            return []
        vectors = await self.embedder.embed_batch(texts)
        if len(vectors) != len(texts):
            msg = f"Embedder returned {len(vectors)} vectors for {len(texts)} segments"
            raise EmbeddingError(msg)
        shapes = {vector.shape for vector in vectors}
        if len(shapes) != 1 or len(next(iter(shapes))) != 1:
            msg = f"Embedder returned vectors of inconsistent shape: {sorted(shapes)}"
            raise EmbeddingError(msg)
        return vectors
