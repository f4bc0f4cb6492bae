"""Website scraper service for reading the visible text of a submitted page."""

import logging
import re
from dataclasses import dataclass

import httpx
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

# Timeout for HTTP requests (seconds)
REQUEST_TIMEOUT = 10.0

# Maximum characters of page text kept for research
MAX_CONTENT_CHARS = 5000

USER_AGENT = "SolarpunkListBot/1.0"

# Elements whose text never describes the page subject
STRIP_TAGS = ["script", "style", "noscript", "svg", "iframe", "template"]


@dataclass
class ScrapedPage:
    """Title and visible text of a fetched page."""

    url: str
    title: str = ""
    text: str = ""


class WebsiteScraperService:
    """Fetches a page directly and reduces it to plain text."""

    def __init__(self) -> None:
        """Initialize the scraper service."""
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "WebsiteScraperService":
        """Enter async context and create HTTP client."""
        self._client = httpx.AsyncClient(
            timeout=REQUEST_TIMEOUT,
            follow_redirects=True,
            headers={
                "User-Agent": USER_AGENT,
                "Accept": "text/html,application/xhtml+xml",
            },
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        """Exit async context and close HTTP client."""
        if self._client:
            await self._client.aclose()

    async def fetch_page(self, url: str) -> ScrapedPage:
        """
        Fetch a page and extract its title and visible text.

        Args:
            url: Absolute http(s) URL.

        Returns:
            ScrapedPage with text truncated to MAX_CONTENT_CHARS.

        Raises:
            RuntimeError: if used outside the async context manager.
            httpx.HTTPError: if the page cannot be fetched.
        """
        if not self._client:
            raise RuntimeError(
                "Service not initialized. Use 'async with' context manager."
            )

        response = await self._client.get(url)
        response.raise_for_status()
        return self.parse_html(response.text, str(response.url))

    def parse_html(self, html: str, url: str) -> ScrapedPage:
        soup = BeautifulSoup(html, "html.parser")

        title = ""
        if soup.title and soup.title.string:
            title = soup.title.string.strip()

        for element in soup(STRIP_TAGS):
            element.decompose()

        text = soup.get_text(separator=" ", strip=True)
        text = re.sub(r"\s+", " ", text).strip()
        return ScrapedPage(url=url, title=title, text=text[:MAX_CONTENT_CHARS])


async def scrape_page(url: str) -> ScrapedPage:
    """Convenience wrapper that manages the scraper's HTTP client."""
    async with WebsiteScraperService() as scraper:
        return await scraper.fetch_page(url)
