"""Knowledge sources and the loader that turns them into raw text."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from .config import config
from .errors import FetchError, LoadError
from .models import SourceDocument
from .scraping import extract_links, extract_text

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .document_processing import DocumentLoader
    from .scraping import PageFetcher

logger = config.get_logger(__name__)

SourceKind = Literal["document", "page", "index"]


@dataclass(frozen=True)
class Source:
    """Where a piece of context comes from.

    ``document`` is a local PDF/TXT file, ``page`` a single web page and
    ``index`` a web page whose ``.html`` links are each scraped as a page.
    """

    kind: SourceKind
    location: str

    @classmethod
    def document(cls, path: Path | str) -> Source:
        return cls("document", str(path))

    @classmethod
    def page(cls, url: str) -> Source:
        return cls("page", url)

    @classmethod
    def index(cls, url: str) -> Source:
        return cls("index", url)

    @property
    def source_id(self) -> str:
        return self.location


@dataclass
class LoadReport:
    """Outcome of loading a set of sources."""

    documents: list[SourceDocument] = field(default_factory=list)
    failed_sources: list[str] = field(default_factory=list)


class SourceLoader:
    """Loads every source concurrently, degrading failures to empty text."""

    def __init__(
        self,
        document_loader: DocumentLoader,
        fetcher: PageFetcher,
        concurrency: int | None = None,
        max_pages_per_index: int | None = None,
    ) -> None:
        """Initialize the loader.

        Args:
            document_loader: Reads local documents.
            fetcher: Fetches remote pages.
            concurrency: Maximum simultaneous fetches. If None, uses
                config.FETCH_CONCURRENCY.
            max_pages_per_index: Cap on pages scraped from one index page.
                If None, uses config.MAX_PAGES_PER_INDEX.
        """
        self.document_loader = document_loader
        self.fetcher = fetcher
        self.concurrency = max(1, concurrency or config.FETCH_CONCURRENCY)
        self.max_pages_per_index = (
            max_pages_per_index
            if max_pages_per_index is not None
            else config.MAX_PAGES_PER_INDEX
        )

    async def load_all(self, sources: Sequence[Source]) -> LoadReport:
        """Load all sources; one failing source never aborts the others.

        Returns:
            Documents in source order (index sources expand in link order)
            and the ids of sources that failed.
        """
        semaphore = asyncio.Semaphore(self.concurrency)
        report = LoadReport()
        results = await asyncio.gather(
            *(self._load_source(source, semaphore, report) for source in sources)
        )
        for documents in results:
            report.documents.extend(documents)
        if report.failed_sources:
            logger.warning(
                "%d source(s) failed to load and contribute no text: %s",
                len(report.failed_sources),
                ", ".join(report.failed_sources),
            )
        return report

    async def _load_source(
        self,
        source: Source,
        semaphore: asyncio.Semaphore,
        report: LoadReport,
    ) -> list[SourceDocument]:
        if source.kind == "index":
            return await self._load_index(source, semaphore, report)
        return [await self._load_one(source, semaphore, report)]

    async def _load_one(
        self,
        source: Source,
        semaphore: asyncio.Semaphore,
        report: LoadReport,
    ) -> SourceDocument:
        try:
            if source.kind == "document":
                text = await self.document_loader.load_document(
                    Path(source.location)
                )
            else:
                async with semaphore:
                    html = await self.fetcher.fetch(source.location)
                text = extract_text(html)
        except (LoadError, FetchError) as exc:
            logger.warning(
                "Degrading source %s to empty text: %s", source.source_id, exc
            )
            report.failed_sources.append(source.source_id)
            text = ""
        return SourceDocument(source_id=source.source_id, text=text)

    async def _load_index(
        self,
        source: Source,
        semaphore: asyncio.Semaphore,
        report: LoadReport,
    ) -> list[SourceDocument]:
        try:
            async with semaphore:
                html = await self.fetcher.fetch(source.location)
        except FetchError as exc:
            logger.warning(
                "Degrading index %s to empty text: %s", source.source_id, exc
            )
            report.failed_sources.append(source.source_id)
            return [SourceDocument(source_id=source.source_id, text="")]

        urls = extract_links(html, source.location)
        if len(urls) > self.max_pages_per_index:
            logger.info(
                "Index %s lists %d pages; keeping the first %d",
                source.location,
                len(urls),
                self.max_pages_per_index,
            )
            urls = urls[: self.max_pages_per_index]
        logger.info("Scraping %d pages linked from %s", len(urls), source.location)

        return list(
            await asyncio.gather(
                *(self._load_one(Source.page(url), semaphore, report) for url in urls)
            )
        )
