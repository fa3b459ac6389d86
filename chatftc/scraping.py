"""Remote page fetching and HTML text extraction."""

from urllib.parse import urldefrag, urljoin

import httpx
from bs4 import BeautifulSoup

from .config import config
from .errors import FetchError

logger = config.get_logger(__name__)


def extract_text(html: str) -> str:
    """Return the visible text of a page's body, stripped.

    Returns:
        Body text, or the whole document's text when there is no body.
    """
    soup = BeautifulSoup(html, "html.parser")
    root = soup.body or soup
    return root.get_text().strip()


def extract_links(html: str, base_url: str, suffix: str = ".html") -> list[str]:
    """Collect absolute links ending with ``suffix`` from a page.

    Args:
        html: Page markup.
        base_url: URL the page was fetched from, used to resolve relative hrefs.
        suffix: Only hrefs ending with this suffix are kept.

    Returns:
        De-duplicated absolute URLs in document order.
    """
    soup = BeautifulSoup(html, "html.parser")
    urls: list[str] = []
    for anchor in soup.find_all("a", href=True):
        url, _fragment = urldefrag(urljoin(base_url, anchor["href"].strip()))
        if url.endswith(suffix):
            urls.append(url)
    return list(dict.fromkeys(urls))


class PageFetcher:
    """Fetches remote pages over a shared async HTTP client."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            client: HTTP client to use. If None, one is created with the
                configured outbound headers and owned by this fetcher.
            timeout: Default per-request timeout in seconds. If None, uses
                config.FETCH_TIMEOUT.
        """
        self.timeout = timeout if timeout is not None else config.FETCH_TIMEOUT
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            headers=config.get_api_headers(),
            follow_redirects=True,
        )

    async def fetch(self, url: str, timeout: float | None = None) -> str:
        """Fetch a page and return its markup.

        Raises:
            FetchError: On network failure, timeout or a non-2xx status.
        """
        try:
            response = await self.client.get(
                url, timeout=timeout if timeout is not None else self.timeout
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Error fetching %s: %s", url, exc)
            msg = f"Could not fetch {url}: {exc}"
            raise FetchError(msg) from exc
        return response.text

    async def aclose(self) -> None:
        """Close the underlying client if this fetcher created it."""
        if self._owns_client:
            await self.client.aclose()
