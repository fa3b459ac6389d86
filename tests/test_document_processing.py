"""Unit tests for document loading and chunking."""

import math
import time
from unittest.mock import Mock, patch

import pytest
from pypdf import PdfWriter

from chatftc import DocumentLoader, LoadError, TextChunker, chunk


def reconstruct(segments, overlap):
    """Rebuild the source text by dropping each later segment's overlap."""
    if not segments:
        return ""
    return segments[0].text + "".join(s.text[overlap:] for s in segments[1:])


@pytest.mark.parametrize(
    ("text_length", "chunk_size", "overlap"),
    [
        (1, 10, 0),
        (100, 50, 10),
        (90, 50, 10),
        (1000, 100, 20),
        (999, 100, 99),
        (37, 7, 3),
        (250, 500, 100),
    ],
)
def test_chunking_reconstructs_text_and_counts(text_length, chunk_size, overlap):
    text = "".join(chr(ord("a") + i % 26) for i in range(text_length))

    segments = chunk(text, chunk_size, overlap)

    assert reconstruct(segments, overlap) == text
    assert all(0 < len(s.text) <= chunk_size for s in segments)
    if text_length > overlap:
        expected = math.ceil((text_length - overlap) / (chunk_size - overlap))
        assert len(segments) == expected


def test_empty_text_chunking():
    assert chunk("", 100, 10) == []


def test_text_shorter_than_overlap_is_one_segment():
    segments = chunk("abc", 10, 5)

    assert [s.text for s in segments] == ["abc"]


def test_chunk_offsets_advance_by_step(text_chunker_factory):
    chunker = text_chunker_factory("small")
    text = "This is a test document. " * 20

    segments = chunker.chunk_text(text, source_id="test_doc")

    assert [s.offset for s in segments] == [
        i * chunker.step for i in range(len(segments))
    ]
    for segment in segments:
        assert segment.source_id == "test_doc"
        assert text[segment.offset : segment.offset + len(segment.text)] == segment.text


def test_chunking_keeps_whitespace():
    text = "  leading and trailing  " * 3

    segments = chunk(text, 10, 2)

    assert reconstruct(segments, 2) == text


def test_chunking_is_deterministic(text_chunker_factory):
    chunker = text_chunker_factory("default")
    text = "Specimens score on the high chamber. " * 40

    assert chunker.chunk_text(text, "a") == chunker.chunk_text(text, "a")


@pytest.mark.parametrize(
    ("chunk_size", "overlap"),
    [(0, 0), (-5, 0), (10, 10), (10, 11), (10, -1)],
)
def test_invalid_chunker_parameters(chunk_size, overlap):
    with pytest.raises(ValueError, match="must be"):
        TextChunker(chunk_size=chunk_size, overlap=overlap)


@pytest.mark.asyncio
async def test_load_txt_document(manual_file):
    text = await DocumentLoader().load_document(manual_file)

    assert "sizing cube" in text


@pytest.mark.asyncio
async def test_load_nonexistent_file_raises_load_error(tmp_path):
    with pytest.raises(LoadError):
        await DocumentLoader().load_document(tmp_path / "missing.txt")


@pytest.mark.asyncio
async def test_unsupported_file_type(tmp_path):
    with pytest.raises(LoadError, match="Unsupported file type"):
        await DocumentLoader().load_document(tmp_path / "manual.docx")


@pytest.mark.asyncio
async def test_load_corrupt_pdf_raises_load_error(tmp_path):
    path = tmp_path / "broken.pdf"
    path.write_bytes(b"this is not a pdf")

    with pytest.raises(LoadError):
        await DocumentLoader().load_document(path)


@pytest.mark.asyncio
async def test_load_blank_pdf(tmp_path):
    path = tmp_path / "blank.pdf"
    writer = PdfWriter()
    writer.add_blank_page(width=200, height=200)
    writer.add_blank_page(width=200, height=200)
    with path.open("wb") as file:
        writer.write(file)

    text = await DocumentLoader().load_document(path)

    assert isinstance(text, str)
    assert not text.strip()


@pytest.mark.asyncio
async def test_load_pdf_joins_pages(tmp_path):
    path = tmp_path / "manual.pdf"
    path.write_bytes(b"%PDF-1.4")
    pages = [Mock(extract_text=Mock(return_value=t)) for t in ("Page one", "Page two")]

    with patch("chatftc.document_processing.pypdf.PdfReader") as reader:
        reader.return_value.pages = pages
        text = await DocumentLoader().load_document(path)

    assert text == "Page one\nPage two"


@pytest.mark.asyncio
async def test_load_timeout_raises_load_error(manual_file):
    loader = DocumentLoader(timeout=0.01)

    def slow_read(_path):
        time.sleep(0.2)
        return "late"

    with (
        patch.object(DocumentLoader, "read_txt", staticmethod(slow_read)),
        pytest.raises(LoadError, match="Timed out"),
    ):
        await loader.load_document(manual_file)
