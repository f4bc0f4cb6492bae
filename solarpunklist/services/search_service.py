"""Search gateway over the Exa neural search API.

Exa returns ranked documents for natural-language queries, optionally with
page text and image links, which makes it a good fit for finding small
community projects that keyword search ranks poorly.

Every method degrades to an empty result when the API key is missing or the
request fails; callers treat an empty result as "nothing found".
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any

import httpx

logger = logging.getLogger(__name__)

# API Configuration
EXA_API_KEY = os.getenv("EXA_API_KEY", "")
EXA_BASE_URL = os.getenv("EXA_BASE_URL", "https://api.exa.ai")

EXA_SEARCH_URL = f"{EXA_BASE_URL}/search"
EXA_CONTENTS_URL = f"{EXA_BASE_URL}/contents"

# Timeout for search requests (seconds)
REQUEST_TIMEOUT = 15.0

DEFAULT_RESULT_COUNT = 10
DEFAULT_TEXT_CHARS = 3000


@dataclass
class SearchDocument:
    """One ranked search hit."""

    title: str
    url: str
    text: str = ""
    image: str | None = None
    image_links: list[str] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "SearchDocument":
        extras = data.get("extras") or {}
        return cls(
            title=data.get("title") or "",
            url=data.get("url") or "",
            text=data.get("text") or "",
            image=data.get("image") or None,
            image_links=[u for u in (extras.get("imageLinks") or []) if isinstance(u, str)],
        )


class SearchService:
    """Thin async client for Exa search and page contents."""

    def __init__(self, api_key: str | None = None) -> None:
        self.api_key = (api_key or EXA_API_KEY or "").strip()
        self._http_client: httpx.AsyncClient | None = None

    @property
    def is_configured(self) -> bool:
        """Check if the API key is configured."""
        return bool(self.api_key)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=REQUEST_TIMEOUT)
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client and release resources."""
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()
            self._http_client = None

    async def _post(self, url: str, payload: dict[str, Any]) -> dict[str, Any] | None:
        if not self.api_key:
            logger.warning("EXA_API_KEY not set, skipping Exa request")
            return None

        try:
            client = await self._get_client()
            response = await client.post(
                url,
                json=payload,
                headers={"Content-Type": "application/json", "x-api-key": self.api_key},
            )
        except httpx.HTTPError as e:
            logger.error(f"Exa request error: {e}")
            return None

        if response.status_code >= 400:
            logger.error(f"Exa request failed: {response.status_code} {response.text[:200]}")
            return None

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Exa returned invalid JSON: {e}")
            return None

    async def search(
        self,
        query: str,
        num_results: int = DEFAULT_RESULT_COUNT,
        *,
        include_domains: list[str] | None = None,
        text_chars: int | None = DEFAULT_TEXT_CHARS,
        image_links: int = 0,
    ) -> list[SearchDocument]:
        """Run a neural search.

        Args:
            query: Natural-language query.
            num_results: Number of documents to request.
            include_domains: Restrict results to these hostnames.
            text_chars: Page text to include per document, None for no text.
            image_links: Image links to extract per document.

        Returns:
            Ranked documents, empty when unconfigured or on failure.
        """
        contents: dict[str, Any] = {
            "text": {"maxCharacters": text_chars} if text_chars else False,
        }
        if image_links:
            contents["extras"] = {"imageLinks": image_links}

        payload: dict[str, Any] = {
            "query": query,
            "type": "neural",
            "numResults": num_results,
            "contents": contents,
        }
        if include_domains:
            payload["includeDomains"] = include_domains

        data = await self._post(EXA_SEARCH_URL, payload)
        if not data:
            return []

        return [
            SearchDocument.from_api(r)
            for r in data.get("results") or []
            if isinstance(r, dict)
        ]

    async def get_contents(self, url: str, max_chars: int = 5000) -> SearchDocument | None:
        """Fetch the indexed text of a single page."""
        data = await self._post(
            EXA_CONTENTS_URL,
            {"urls": [url], "text": {"maxCharacters": max_chars}},
        )
        if not data:
            return None

        results = data.get("results") or []
        if not results or not isinstance(results[0], dict):
            return None
        return SearchDocument.from_api(results[0])


# Singleton
_search_service: SearchService | None = None


def get_search_service() -> SearchService:
    """Get the singleton SearchService instance."""
    global _search_service
    if _search_service is None:
        _search_service = SearchService()
    return _search_service
