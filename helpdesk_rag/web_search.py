"""Web search provider backed by the DuckDuckGo Instant Answer API."""

from typing import Any, Protocol

import httpx
from loguru import logger

from helpdesk_rag.models import WebResult

DUCKDUCKGO_API_URL = "https://api.duckduckgo.com/"
USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


class WebSearchProvider(Protocol):
    async def search(self, query: str, max_results: int = 3) -> list[WebResult]: ...


def _flatten_topics(topics: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Related topics may be grouped under a "Topics" key; yield the leaf entries."""
    flat = []
    for topic in topics:
        if "Topics" in topic:
            flat.extend(_flatten_topics(topic.get("Topics") or []))
        else:
            flat.append(topic)
    return flat


class DuckDuckGoSearch:
    """Free, keyless web search. Errors of any kind degrade to an empty list."""

    def __init__(
        self,
        timeout: float = 5.0,
        base_url: str = DUCKDUCKGO_API_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = timeout
        self.base_url = base_url
        self.transport = transport

    def _parse(self, query: str, data: dict[str, Any], max_results: int) -> list[WebResult]:
        results: list[WebResult] = []
        if data.get("AbstractText"):
            results.append(
                WebResult(
                    title=data.get("Heading") or query,
                    url=data.get("AbstractURL") or "",
                    snippet=data["AbstractText"],
                    source="DuckDuckGo Instant Answer",
                )
            )

        for topic in _flatten_topics(data.get("RelatedTopics") or []):
            text = topic.get("Text")
            if not text:
                continue
            results.append(
                WebResult(
                    title=text.split(" - ")[0] or text[:60],
                    url=topic.get("FirstURL") or "",
                    snippet=text,
                    source="DuckDuckGo Related Topics",
                )
            )

        unique: list[WebResult] = []
        seen_urls: set[str] = set()
        for result in results:
            if result.url and result.url in seen_urls:
                continue
            seen_urls.add(result.url)
            unique.append(result)
        return unique[:max_results]

    async def search(self, query: str, max_results: int = 3) -> list[WebResult]:
        if not query.strip() or max_results <= 0:
            return []
        params = {"q": query, "format": "json", "no_html": 1, "skip_disambig": 1}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(
                    self.base_url, params=params, headers={"User-Agent": USER_AGENT}
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            logger.warning(f"Web search failed: {e!r}")
            return []
        except ValueError as e:
            logger.warning(f"Web search returned invalid JSON: {e}")
            return []

        if not isinstance(data, dict):
            return []
        results = self._parse(query, data, max_results)
        logger.info(f"Web search returned {len(results)} results for: {query[:50]}")
        return results
