"""Cosine-similarity ranking over a context snapshot."""

import math

import numpy as np

from .config import config
from .errors import RetrievalError
from .models import ContextSnapshot, Segment

logger = config.get_logger(__name__)


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Compute dot(a, b) / (|a| * |b|).

    Returns:
        Similarity in [-1, 1], or ``-inf`` if either vector has zero magnitude.
    """
    norm_a = float(np.linalg.norm(a))
    norm_b = float(np.linalg.norm(b))
    if norm_a == 0.0 or norm_b == 0.0:
        return -math.inf
    return float(np.dot(a, b) / (norm_a * norm_b))


class Retriever:
    """Ranks snapshot segments by cosine similarity to a query vector."""

    def __init__(self, require_results: bool = False) -> None:
        """Initialize the retriever.

        Args:
            require_results: Raise RetrievalError instead of returning nothing
                when the snapshot is empty.
        """
        self.require_results = require_results

    def score(self, query_vector: np.ndarray, snapshot: ContextSnapshot) -> np.ndarray:
        """Score every snapshot entry against the query, in store order.

        Returns:
            One similarity per entry; zero-magnitude vectors score ``-inf``.

        Raises:
            RetrievalError: If the query dimension differs from the snapshot's.
        """
        query = np.asarray(query_vector, dtype=np.float32).reshape(-1)
        if query.shape[0] != snapshot.dimension:
            msg = (
                f"Query vector has dimension {query.shape[0]}, "
                f"store has {snapshot.dimension}"
            )
            raise RetrievalError(msg)

        scores = np.full(len(snapshot), -np.inf, dtype=np.float64)
        query_norm = float(np.linalg.norm(query))
        if query_norm == 0.0:
            return scores

        matrix = snapshot.matrix
        row_norms = np.linalg.norm(matrix, axis=1)
        valid = row_norms > 0
        dots = matrix[valid] @ query
        scores[valid] = dots / (row_norms[valid] * query_norm)
        return scores

    def rank(
        self,
        query_vector: np.ndarray,
        snapshot: ContextSnapshot,
        k: int,
        *,
        model: str | None = None,
    ) -> list[tuple[Segment, float]]:
        """Return up to k segments with their scores, most similar first.

        Ties keep store order. Entries scoring ``-inf`` are never returned.

        Args:
            query_vector: Embedding of the query.
            snapshot: Snapshot to search.
            k: Maximum number of results.
            model: Embedding model of the query vector. When given it must
                match the model the snapshot was built with.

        Returns:
            (segment, similarity) pairs.

        Raises:
            ValueError: If k is less than 1.
            RetrievalError: If the snapshot is empty and results are required,
                or the query was embedded by a different model.
        """
        if k < 1:
            msg = f"k must be at least 1, got {k}"
            raise ValueError(msg)
        if model is not None and model != snapshot.model:
            msg = f"Query embedded with {model}, store built with {snapshot.model}"
            raise RetrievalError(msg)
        if snapshot.is_empty:
            if self.require_results:
                msg = "Context store is empty"
                raise RetrievalError(msg)
            return []

        scores = self.score(query_vector, snapshot)
        order = np.argsort(-scores, kind="stable")
        results = [
            (snapshot.entries[i].segment, float(scores[i]))
            for i in order[:k]
            if np.isfinite(scores[i])
        ]
        logger.debug("Selected %d of %d segments", len(results), len(snapshot))
        if not results and self.require_results:
            msg = "No stored segment is comparable with the query"
            raise RetrievalError(msg)
        return results

    def retrieve(
        self,
        query_vector: np.ndarray,
        snapshot: ContextSnapshot,
        k: int,
        *,
        model: str | None = None,
    ) -> list[Segment]:
        """Return up to k segments, most similar first."""  # noqa: DOC201
        return [
            segment
            for segment, _score in self.rank(query_vector, snapshot, k, model=model)
        ]
