"""Knowledge bases served by the chat routes and the wiring that builds them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .config import config
from .context import ContextAssembler
from .context_store import ContextStore
from .conversation import ChatService, SessionRegistry
from .document_processing import DocumentLoader, TextChunker
from .embeddings import EmbeddingService
from .llm import ChatModel
from .retrieval import Retriever
from .sources import Source, SourceLoader

if TYPE_CHECKING:
    from .scraping import PageFetcher

logger = config.get_logger(__name__)

MANUAL_PROMPT = (
    "You are a helpful assistant trained on the content of the game manual for "
    "Into the Deep. Please use the provided context to answer the user's "
    "questions. If you do not know the answer or if the question is unrelated "
    "to the context (specifically about robotics), don't make up an answer."
)

PROGRAMMING_PROMPT = (
    "You are a helpful assistant trained on the content of the game manual, FTC "
    "documentation, and Roadrunner. Answer user questions using this knowledge. "
    "If you don't know the answer or if the question is unrelated, don't make up "
    "an answer."
)


@dataclass(frozen=True)
class KnowledgeBase:
    """A named set of sources with the system prompt used to answer from them."""

    name: str
    sources: tuple[Source, ...]
    system_prompt: str


def default_knowledge_bases() -> list[KnowledgeBase]:
    """Build the manual and programming knowledge bases from config.

    Returns:
        The ``manual`` (game manual only) and ``programming`` (game manual
        plus the configured documentation index pages) knowledge bases.
    """
    manual = Source.document(config.MANUAL_PDF_PATH)
    return [
        KnowledgeBase(name="manual", sources=(manual,), system_prompt=MANUAL_PROMPT),
        KnowledgeBase(
            name="programming",
            sources=(
                manual,
                *(Source.index(url) for url in config.PROGRAMMING_INDEX_URLS),
            ),
            system_prompt=PROGRAMMING_PROMPT,
        ),
    ]


def build_chat_services(
    fetcher: PageFetcher,
    knowledge_bases: list[KnowledgeBase] | None = None,
    embedder: EmbeddingService | None = None,
    chat_model: ChatModel | None = None,
) -> dict[str, ChatService]:
    """Create one chat service per knowledge base.

    Services share the fetcher, embedder, chat model and retriever; each has
    its own context store and session registry.

    Returns:
        Chat services keyed by knowledge base name.
    """
    knowledge_bases = knowledge_bases or default_knowledge_bases()
    embedder = embedder or EmbeddingService()
    chat_model = chat_model or ChatModel()
    source_loader = SourceLoader(DocumentLoader(), fetcher)
    chunker = TextChunker(chunk_size=config.CHUNK_SIZE, overlap=config.CHUNK_OVERLAP)
    retriever = Retriever(require_results=config.REQUIRE_CONTEXT)
    assembler = ContextAssembler()

    services: dict[str, ChatService] = {}
    for knowledge_base in knowledge_bases:
        store = ContextStore(
            sources=knowledge_base.sources,
            source_loader=source_loader,
            chunker=chunker,
            embedder=embedder,
        )
        services[knowledge_base.name] = ChatService(
            store=store,
            embedder=embedder,
            retriever=retriever,
            assembler=assembler,
            chat_model=chat_model,
            system_prompt=knowledge_base.system_prompt,
            sessions=SessionRegistry(),
        )
        logger.info(
            "Configured knowledge base %s with %d source(s)",
            knowledge_base.name,
            len(knowledge_base.sources),
        )
    return services
