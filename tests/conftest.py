"""Test configuration and fixtures for ChatFTC tests.

This module provides reusable test fixtures organized by functionality:
- Constants and test data
- Deterministic fakes for the embedding, page and chat collaborators
- OpenAI API mocks
- Snapshot and store factories
"""

import asyncio
import hashlib
from unittest.mock import AsyncMock, Mock, patch

import numpy as np
import pytest

from chatftc import (
    ChatService,
    ContextAssembler,
    ContextSnapshot,
    ContextStore,
    DocumentLoader,
    EmbeddingError,
    EmbeddingService,
    FetchError,
    ModelError,
    Retriever,
    Segment,
    SessionRegistry,
    Source,
    SourceLoader,
    StoreEntry,
    TextChunker,
)


class TestConstants:
    """Centralized test constants to avoid repetition across test files."""

    TEST_API_KEY = "test-key"
    TEST_EMBEDDING_MODEL = "text-embedding-3-small"
    MOCK_EMBEDDING_MODEL = "mock-embedding"
    DEFAULT_EMBEDDING_DIMENSION = 64

    SMALL_CHUNK_SIZE = 100
    SMALL_CHUNK_OVERLAP = 20
    DEFAULT_CHUNK_SIZE = 500
    DEFAULT_CHUNK_OVERLAP = 100

    INDEX_URL = "https://docs.example.com/index.html"
    SYSTEM_PROMPT = "You answer questions about the game manual."


class MockEmbeddingService:
    """Mock embedding service for testing without API calls.

    Generates deterministic embeddings based on text content hash,
    ensuring consistent test results across runs. Counts calls so tests can
    assert how often the store re-embeds.
    """

    def __init__(
        self,
        dimension: int = TestConstants.DEFAULT_EMBEDDING_DIMENSION,
        model: str = TestConstants.MOCK_EMBEDDING_MODEL,
        delay: float = 0.0,
    ) -> None:
        self.dimension = dimension
        self.model = model
        self.delay = delay
        self.batch_calls = 0
        self.fail_batches = False

    def vector_for(self, text: str) -> np.ndarray:
        seed = int.from_bytes(
            hashlib.sha256(text.lower().encode("utf-8")).digest()[:8],
            byteorder="big",
            signed=False,
        )
        rng = np.random.default_rng(seed)
        embedding = rng.normal(0, 1, self.dimension)
        return (embedding / np.linalg.norm(embedding)).astype(np.float32)

    async def embed(self, text: str) -> np.ndarray:
        return self.vector_for(text)

    async def embed_batch(self, texts: list[str]) -> list[np.ndarray]:
        self.batch_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_batches:
            msg = "embedding backend unavailable"
            raise EmbeddingError(msg)
        return [self.vector_for(text) for text in texts]


class FakeFetcher:
    """Serves canned pages; exceptions in the mapping are raised as FetchError."""

    def __init__(self, pages: dict[str, str | Exception]) -> None:
        self.pages = pages
        self.requested: list[str] = []

    async def fetch(self, url: str, timeout: float | None = None) -> str:  # noqa: ARG002
        self.requested.append(url)
        page = self.pages.get(url)
        if page is None:
            msg = f"404 for {url}"
            raise FetchError(msg)
        if isinstance(page, Exception):
            raise page
        return page


class FakeChatModel:
    """Chat model returning a fixed answer, streamed as word fragments."""

    def __init__(self, answer: str = "Test answer", error: Exception | None = None):
        self.answer = answer
        self.error = error
        self.calls: list[list[dict[str, str]]] = []

    async def complete(self, messages: list[dict[str, str]]) -> str:
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        return self.answer

    async def stream(self, messages: list[dict[str, str]]):  # noqa: ANN201
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        for word in self.answer.split(" "):
            yield word + " "


class ManualClock:
    """Clock advanced by hand to control store staleness."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def create_mock_openai_response(embeddings: list[list[float]]) -> Mock:
    """Create a mock OpenAI embeddings API response."""  # noqa: DOC201
    mock_response = Mock()
    mock_response.data = [Mock(embedding=emb) for emb in embeddings]
    return mock_response


def create_mock_chat_response(content: str | None) -> Mock:
    """Create a mock OpenAI chat completion response."""  # noqa: DOC201
    mock_response = Mock()
    mock_response.choices = [Mock(message=Mock(content=content))]
    return mock_response


def create_mock_stream(fragments: list[str | None], error: Exception | None = None):  # noqa: ANN201
    """Create a mock streaming chat completion (an async iterator of chunks)."""

    async def _stream():  # noqa: ANN202
        for fragment in fragments:
            yield Mock(choices=[Mock(delta=Mock(content=fragment))])
        if error is not None:
            raise error

    return _stream()


def make_snapshot(
    vectors: list[list[float]],
    texts: list[str] | None = None,
    model: str = TestConstants.MOCK_EMBEDDING_MODEL,
) -> ContextSnapshot:
    """Build a snapshot with one segment per vector, in the given order."""  # noqa: DOC201
    texts = texts or [f"segment {i + 1}" for i in range(len(vectors))]
    entries = tuple(
        StoreEntry(
            segment=Segment(text=text, source_id="test", offset=i * 100),
            vector=np.asarray(vector, dtype=np.float32),
        )
        for i, (text, vector) in enumerate(zip(texts, vectors, strict=True))
    )
    return ContextSnapshot(entries=entries, model=model, built_at=0.0)


@pytest.fixture
def openai_embeddings_api_mock():
    """Patch the async OpenAI embeddings.create method."""
    with patch(
        "openai.resources.embeddings.AsyncEmbeddings.create",
        new_callable=AsyncMock,
    ) as mock_create:
        yield mock_create


@pytest.fixture
def embedding_service():
    """EmbeddingService with a test API key."""
    return EmbeddingService(
        api_key=TestConstants.TEST_API_KEY, model=TestConstants.TEST_EMBEDDING_MODEL
    )


@pytest.fixture
def text_chunker_factory():
    """Factory fixture that creates ``TextChunker`` instances on demand."""
    presets: dict[str, tuple[int, int]] = {
        "small": (TestConstants.SMALL_CHUNK_SIZE, TestConstants.SMALL_CHUNK_OVERLAP),
        "default": (
            TestConstants.DEFAULT_CHUNK_SIZE,
            TestConstants.DEFAULT_CHUNK_OVERLAP,
        ),
    }

    def _create_chunker(name: str = "default") -> TextChunker:
        chunk_size, overlap = presets[name]
        return TextChunker(chunk_size=chunk_size, overlap=overlap)

    return _create_chunker


@pytest.fixture
def mock_embedding_service():
    """Fresh MockEmbeddingService per test (it counts calls)."""
    return MockEmbeddingService()


@pytest.fixture
def manual_clock():
    return ManualClock()


@pytest.fixture
def sample_pages():
    """An index page linking two documentation pages."""
    return {
        TestConstants.INDEX_URL: (
            "<html><body>"
            '<a href="drive.html">Drive</a>'
            '<a href="https://docs.example.com/servo.html">Servo</a>'
            '<a href="about.pdf">PDF</a>'
            "</body></html>"
        ),
        "https://docs.example.com/drive.html": (
            "<html><head><title>x</title></head>"
            "<body><p>Mecanum drive uses four motors.</p></body></html>"
        ),
        "https://docs.example.com/servo.html": (
            "<html><body><p>Servos are set with setPosition.</p></body></html>"
        ),
    }


@pytest.fixture
def manual_file(tmp_path):
    """A small text manual on disk."""
    path = tmp_path / "manual.txt"
    path.write_text(
        "Robots must fit within an 18 inch sizing cube at the start of a match. "
        "Specimens are scored on the high chamber for ten points. " * 5,
        encoding="utf-8",
    )
    return path


@pytest.fixture
def store_factory(mock_embedding_service, manual_clock):
    """Factory for ContextStore instances over fake collaborators."""

    def _create_store(
        sources: list[Source],
        pages: dict[str, str | Exception] | None = None,
        embedder: MockEmbeddingService | None = None,
        max_age: float = 60.0,
    ) -> ContextStore:
        loader = SourceLoader(
            DocumentLoader(timeout=5.0), FakeFetcher(pages or {}), concurrency=4
        )
        return ContextStore(
            sources=sources,
            source_loader=loader,
            chunker=TextChunker(chunk_size=120, overlap=20),
            embedder=embedder or mock_embedding_service,
            max_age=max_age,
            clock=manual_clock,
        )

    return _create_store


@pytest.fixture
def chat_service_factory(store_factory, mock_embedding_service, manual_file):
    """Factory for ChatService instances over a text manual and fakes."""

    def _create_service(
        chat_model: FakeChatModel | None = None,
        max_turns: int = 10,
        budget: int = 2000,
        max_sessions: int = 100,
    ) -> ChatService:
        store = store_factory([Source.document(manual_file)])
        return ChatService(
            store=store,
            embedder=mock_embedding_service,
            retriever=Retriever(),
            assembler=ContextAssembler(budget=budget),
            chat_model=chat_model or FakeChatModel(),
            system_prompt=TestConstants.SYSTEM_PROMPT,
            sessions=SessionRegistry(max_turns=max_turns, max_sessions=max_sessions),
            top_k=3,
        )

    return _create_service


@pytest.fixture
def failing_chat_model():
    return FakeChatModel(error=ModelError("model unavailable"))


@pytest.fixture
def snapshot_factory():
    """Factory building snapshots from literal vectors."""
    return make_snapshot


@pytest.fixture
def chat_model_factory():
    """Factory for FakeChatModel instances."""
    return FakeChatModel


@pytest.fixture
def fetcher_factory():
    """Factory for FakeFetcher instances."""
    return FakeFetcher


@pytest.fixture
def embedder_factory():
    """Factory for MockEmbeddingService instances with custom settings."""
    return MockEmbeddingService


@pytest.fixture
def mock_openai_responses():
    """Builders for mocked OpenAI embeddings, completion and stream responses."""
    return {
        "embeddings": create_mock_openai_response,
        "chat": create_mock_chat_response,
        "stream": create_mock_stream,
    }
