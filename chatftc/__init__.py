"""ChatFTC - retrieval-augmented assistant for FTC teams."""

from .context import ContextAssembler
from .context_store import ContextStore
from .conversation import ChatResult, ChatService, ConversationHistory, SessionRegistry
from .document_processing import DocumentLoader, TextChunker, chunk
from .embeddings import EmbeddingService
from .errors import (
    ChatFTCError,
    EmbeddingError,
    FetchError,
    LoadError,
    ModelError,
    RetrievalError,
)
from .knowledge import KnowledgeBase, build_chat_services, default_knowledge_bases
from .llm import ChatModel
from .models import (
    ContextSnapshot,
    ConversationTurn,
    Segment,
    SourceDocument,
    StoreEntry,
)
from .retrieval import Retriever, cosine_similarity
from .scraping import PageFetcher, extract_links, extract_text
from .sources import Source, SourceLoader

__all__ = [
    "ChatFTCError",
    "ChatModel",
    "ChatResult",
    "ChatService",
    "ContextAssembler",
    "ContextSnapshot",
    "ContextStore",
    "ConversationHistory",
    "ConversationTurn",
    "DocumentLoader",
    "EmbeddingError",
    "EmbeddingService",
    "FetchError",
    "KnowledgeBase",
    "LoadError",
    "ModelError",
    "PageFetcher",
    "RetrievalError",
    "Retriever",
    "Segment",
    "SessionRegistry",
    "Source",
    "SourceDocument",
    "SourceLoader",
    "StoreEntry",
    "TextChunker",
    "build_chat_services",
    "chunk",
    "cosine_similarity",
    "default_knowledge_bases",
    "extract_links",
    "extract_text",
]
