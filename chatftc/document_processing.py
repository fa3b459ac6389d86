"""Document loading and text chunking functionality."""

import asyncio
from pathlib import Path

import pypdf
from pypdf.errors import PyPdfError

from .config import config
from .errors import LoadError
from .models import Segment

logger = config.get_logger(__name__)


class DocumentLoader:
    """Handles loading of PDF and TXT documents."""

    def __init__(self, timeout: float | None = None) -> None:
        """Initialize the loader.

        Args:
            timeout: Seconds allowed for one document. If None, uses
                config.LOAD_TIMEOUT.
        """
        self.timeout = timeout if timeout is not None else config.LOAD_TIMEOUT

    @staticmethod
    def read_pdf(file_path: Path) -> str:
        """Read text content from a PDF file.

        Returns:
            Page texts joined by newlines.

        Raises:
            LoadError: If the file is missing or is not a readable PDF.
        """
        try:
            with file_path.open("rb") as file:
                pdf_reader = pypdf.PdfReader(file)
                pages = [page.extract_text() or "" for page in pdf_reader.pages]
        except (OSError, PyPdfError) as exc:
            logger.exception("Error loading PDF %s", file_path)
            msg = f"Could not read PDF {file_path}: {exc}"
            raise LoadError(msg) from exc
        logger.info("Loaded %d pages from %s", len(pages), file_path.name)
        return "\n".join(pages)

    @staticmethod
    def read_txt(file_path: Path) -> str:
        """Read text content from a TXT file.

        Returns:
            The file contents.

        Raises:
            LoadError: If the file is missing or not valid UTF-8.
        """
        try:
            with file_path.open(encoding="utf-8") as file:
                text = file.read()
        except (OSError, UnicodeDecodeError) as exc:
            logger.exception("Error loading TXT %s", file_path)
            msg = f"Could not read text file {file_path}: {exc}"
            raise LoadError(msg) from exc
        return text

    async def load_document(self, file_path: Path) -> str:
        """Load a document based on file extension without blocking the loop.

        Args:
            file_path: Path to the document file.

        Returns:
            The text content of the document as a string.

        Raises:
            LoadError: If the file type is unsupported, the file is unreadable
                or loading exceeds the timeout.
        """
        file_path = Path(file_path)
        file_ext = file_path.suffix.lower()
        if file_ext == ".pdf":
            reader = self.read_pdf
        elif file_ext == ".txt":
            reader = self.read_txt
        else:
            msg = f"Unsupported file type: {file_ext}"
            raise LoadError(msg)

        try:
            return await asyncio.wait_for(
                asyncio.to_thread(reader, file_path), timeout=self.timeout
            )
        except TimeoutError as exc:
            msg = f"Timed out after {self.timeout}s loading {file_path}"
            raise LoadError(msg) from exc


class TextChunker:
    """Splits text into fixed-size windows with overlap."""

    def __init__(self, chunk_size: int = 1000, overlap: int = 200) -> None:
        """Initialize the TextChunker with chunk size and overlap.

        Args:
            chunk_size: Maximum number of characters per segment.
            overlap: Characters shared between consecutive segments.

        Raises:
            ValueError: If chunk_size is not positive or overlap is outside
                [0, chunk_size).
        """
        if chunk_size <= 0:
            msg = f"chunk_size must be positive, got {chunk_size}"
            raise ValueError(msg)
        if not 0 <= overlap < chunk_size:
            msg = f"overlap must be in [0, {chunk_size}), got {overlap}"
            raise ValueError(msg)
        self.chunk_size = chunk_size
        self.overlap = overlap

    @property
    def step(self) -> int:
        return self.chunk_size - self.overlap

    def chunk_text(self, text: str, source_id: str = "document") -> list[Segment]:
        """Split text into overlapping segments.

        The window starts at 0 and advances by ``chunk_size - overlap``; the
        scan stops once a window reaches the end of the text, so the final
        segment may be shorter than ``chunk_size``.

        Returns:
            Segments in source order. Empty text yields an empty list.
        """
        segments: list[Segment] = []
        start = 0

        while start < len(text):
            end = start + self.chunk_size
            segments.append(
                Segment(text=text[start:end], source_id=source_id, offset=start)
            )
            if end >= len(text):
                break
            start += self.step

        logger.info("Text from %s split into %d segments", source_id, len(segments))
        return segments


def chunk(
    text: str, chunk_size: int, overlap: int, source_id: str = "document"
) -> list[Segment]:
    """Chunk text with a one-off chunker.

    Returns:
        Segments produced by ``TextChunker(chunk_size, overlap)``.
    """
    return TextChunker(chunk_size=chunk_size, overlap=overlap).chunk_text(
        text, source_id=source_id
    )
