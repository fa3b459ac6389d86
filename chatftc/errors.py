"""Exception types raised across the retrieval pipeline."""


class ChatFTCError(Exception):
    """Base class for ChatFTC errors."""


class LoadError(ChatFTCError):
    """A local document could not be read."""


class FetchError(ChatFTCError):
    """A remote page could not be fetched (network, timeout or HTTP status)."""


class EmbeddingError(ChatFTCError):
    """The embedding model call failed or returned an unusable result."""


class ModelError(ChatFTCError):
    """The language model call failed."""


class RetrievalError(ChatFTCError):
    """Retrieval could not produce context the caller requires."""
