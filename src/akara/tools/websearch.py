# src/akara/tools/websearch.py

"""
Web search over two public providers, queried concurrently:
- Bing (mobile HTML results page, parsed with BeautifulSoup),
- Wikipedia (search API, JSON).

Each provider fails independently: an error is logged and that provider contributes nothing.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Literal
from urllib.parse import quote

import httpx
from bs4 import BeautifulSoup, Tag

logger = logging.getLogger(__name__)

# Mobile user agent gets the simpler HTML variant from Bing.
MOBILE_USER_AGENT = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 14_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/14.0 Mobile/15E148 Safari/604.1"
)

BING_URL = "https://www.bing.com/search"
WIKIPEDIA_API_URL = "https://en.wikipedia.org/w/api.php"
WIKIPEDIA_ARTICLE_URL = "https://en.wikipedia.org/wiki/"

HTML_PARSER = "html.parser"
NO_RESULTS_TEXT = "No search results found."
NO_DESCRIPTION_TEXT = "No description available."


@dataclass(slots=True, frozen=True)
class SearchResult:
    title: str
    link: str
    snippet: str
    source: Literal["Bing", "Wikipedia"]


def _text(node: Tag) -> str:
    return " ".join(node.get_text().split())


def strip_html(raw: str) -> str:
    """Visible text of an HTML fragment, entities decoded, whitespace collapsed."""
    if not raw:
        return ""
    return _text(BeautifulSoup(raw, HTML_PARSER))


def parse_bing_results(page: str) -> list[SearchResult]:
    soup = BeautifulSoup(page, HTML_PARSER)
    results: list[SearchResult] = []
    for item in soup.select("li.b_algo"):
        anchor = item.select_one("h2 a[href]") or item.find("a", href=True)
        if not isinstance(anchor, Tag):
            continue
        snippet_node = item.find("p") or item.select_one(".b_caption")
        snippet = _text(snippet_node) if isinstance(snippet_node, Tag) else ""
        results.append(
            SearchResult(
                title=_text(anchor),
                link=str(anchor["href"]),
                snippet=snippet or NO_DESCRIPTION_TEXT,
                source="Bing",
            )
        )
    return results


def parse_wikipedia_results(data: object) -> list[SearchResult]:
    if not isinstance(data, dict):
        return []
    items = (data.get("query") or {}).get("search") or []
    results: list[SearchResult] = []
    for item in items:
        title = str(item.get("title", "")).strip()
        if not title:
            continue
        results.append(
            SearchResult(
                title=title,
                link=WIKIPEDIA_ARTICLE_URL + quote(title.replace(" ", "_")),
                snippet=strip_html(str(item.get("snippet", ""))),
                source="Wikipedia",
            )
        )
    return results


def format_results_as_context(results: list[SearchResult]) -> str:
    """Numbered context block handed back to the engine as the tool result."""
    if not results:
        return NO_RESULTS_TEXT

    lines = ["--- Web Search Results (Real-time from Internet) ---"]
    for i, r in enumerate(results, start=1):
        lines.append("")
        lines.append(f"[{i}] {r.title}")
        lines.append(f"Source: {r.source} ({r.link})")
        lines.append(f"Snippet: {r.snippet}")
    lines.append("")
    lines.append("--- End of Search Results ---")
    return "\n".join(lines)


class WebSearch:
    """Combined Bing + Wikipedia search with de-duplication and a result cap."""

    def __init__(
        self,
        *,
        timeout_seconds: float = 10.0,
        max_results: int = 5,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._max_results = max(1, int(max_results))
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds, connect=min(5.0, timeout_seconds)),
            follow_redirects=True,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def search(self, query: str) -> list[SearchResult]:
        logger.info('Combined search: "%s"', query)

        outcomes = await asyncio.gather(
            self._search_bing(query),
            self._search_wikipedia(query),
            return_exceptions=True,
        )

        combined: list[SearchResult] = []
        for provider, outcome in zip(("Bing", "Wikipedia"), outcomes):
            if isinstance(outcome, BaseException):
                logger.error("%s search failed: %s", provider, outcome)
                continue
            combined.extend(outcome)

        seen: set[str] = set()
        unique: list[SearchResult] = []
        for r in combined:
            if r.link in seen:
                continue
            seen.add(r.link)
            unique.append(r)

        if not unique:
            logger.warning("No results found from any source for %r", query)
            return []

        capped = unique[: self._max_results]
        logger.info("Found %d unique results, using top %d", len(unique), len(capped))
        return capped

    async def search_as_context(self, query: str) -> str:
        return format_results_as_context(await self.search(query))

    async def _search_bing(self, query: str) -> list[SearchResult]:
        response = await self._client.get(
            BING_URL,
            params={"q": query},
            headers={
                "User-Agent": MOBILE_USER_AGENT,
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                "Accept-Language": "en-US,en;q=0.9",
            },
        )
        response.raise_for_status()
        results = parse_bing_results(response.text)
        logger.info("Bing returned %d results", len(results))
        return results

    async def _search_wikipedia(self, query: str) -> list[SearchResult]:
        response = await self._client.get(
            WIKIPEDIA_API_URL,
            params={
                "action": "query",
                "list": "search",
                "srsearch": query,
                "format": "json",
                "srlimit": str(self._max_results),
            },
        )
        response.raise_for_status()
        results = parse_wikipedia_results(response.json())
        logger.info("Wikipedia returned %d results", len(results))
        return results
