"""
Search capability: Perplexity or Tavily backends plus a deterministic offline fallback.

Usage:
    from research_network.core.search import SearchService, PerplexitySearchBackend

    search = SearchService(PerplexitySearchBackend(api_key="pplx-..."))
    result = await search.search_with_fallback("quantum computing")
"""

import asyncio
import logging
import re
import time
from typing import Any, List, Optional, Tuple

from .errors import SearchError
from .logger import log_llm_call
from .types import SearchResult
from .utils import URL_PATTERN

logger = logging.getLogger(__name__)

PERPLEXITY_BASE_URL = "https://api.perplexity.ai"

# Keyword -> canned paragraph. Checked in this order, case-insensitively.
FALLBACK_SEARCH_RESULTS = (
    ("AI", "Artificial Intelligence has evolved significantly with recent breakthroughs in large language models, computer vision, and autonomous systems. Key developments include GPT-4, DALL-E, and advances in reinforcement learning."),
    ("climate", "Climate change research shows increasing global temperatures, rising sea levels, and extreme weather events. Recent studies indicate urgent need for renewable energy adoption and carbon reduction strategies."),
    ("healthcare", "Healthcare technology is advancing rapidly with AI diagnostics, telemedicine platforms, and personalized medicine approaches. Recent innovations include AI-powered medical imaging and drug discovery."),
    ("cybersecurity", "Cybersecurity threats are becoming more sophisticated with ransomware attacks, data breaches, and nation-state cyber warfare. Recent developments focus on zero-trust architecture and AI-powered threat detection."),
    ("quantum", "Quantum computing research is progressing with companies like IBM, Google, and startups achieving quantum advantage in specific domains. Recent breakthroughs include error correction and qubit stability improvements."),
)
FALLBACK_SOURCES = ("Fallback research data", "Offline research knowledge base")


def _keyword_matches(keyword: str, text: str) -> bool:
    # Short keys ("AI") must stand alone, otherwise "maintain" would match.
    if len(keyword) <= 3:
        return re.search(rf"\b{re.escape(keyword.lower())}\b", text) is not None
    return keyword.lower() in text


def fallback_search(query: str) -> SearchResult:
    """Deterministic canned search result for a query."""
    lowered = (query or "").lower()
    text = None
    for keyword, paragraph in FALLBACK_SEARCH_RESULTS:
        if _keyword_matches(keyword, lowered):
            text = paragraph
            break
    if text is None:
        text = (
            f"Research on {query} shows various developments and current trends in the field. "
            "Recent studies indicate ongoing progress and new applications emerging."
        )
    return SearchResult(
        query=query,
        results_text=text,
        sources=list(FALLBACK_SOURCES),
        links=[],
        provider="fallback",
    )


def split_sources(text: str, links: List[str]) -> List[str]:
    """Pull a source list out of a "Sources:" trailer, falling back to the link list."""
    if "Sources:" in text:
        trailer = text.split("Sources:", 1)[1]
        sources = [line.strip(" -*\t") for line in trailer.splitlines()]
        sources = [s for s in sources if s]
        if sources:
            return sources
    return list(links)


class PerplexitySearchBackend:
    """Perplexity `sonar` through its OpenAI-compatible chat endpoint."""

    name = "perplexity"

    def __init__(self, api_key: str, model: str = "sonar", client: Optional[Any] = None):
        if client is None:
            from openai import AsyncOpenAI
            client = AsyncOpenAI(api_key=api_key, base_url=PERPLEXITY_BASE_URL)
        self.client = client
        self.model = model

    async def search(self, query: str) -> SearchResult:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[{
                "role": "user",
                "content": (
                    f"Search for current information about: {query}. "
                    "Provide recent, accurate, and comprehensive information with sources."
                ),
            }],
        )
        text = response.choices[0].message.content or ""
        links = self._extract_links(response, text)
        return SearchResult(
            query=query,
            results_text=text,
            sources=split_sources(text, links),
            links=links,
            provider=self.name,
        )

    @staticmethod
    def _extract_links(response: Any, text: str) -> List[str]:
        citations = getattr(response, "citations", None)
        if citations is None:
            extra = getattr(response, "model_extra", None) or {}
            citations = extra.get("citations")
        if citations:
            return [str(c) for c in citations]
        return [m.group(0).rstrip(".,;:") for m in URL_PATTERN.finditer(text)]


class TavilySearchBackend:
    """Tavily web search."""

    name = "tavily"

    def __init__(self, api_key: str, max_results: int = 5, search_depth: str = "advanced",
                 client: Optional[Any] = None):
        if client is None:
            from tavily import AsyncTavilyClient
            client = AsyncTavilyClient(api_key=api_key)
        self.client = client
        self.max_results = max_results
        self.search_depth = search_depth

    async def search(self, query: str) -> SearchResult:
        response = await self.client.search(
            query=query,
            search_depth=self.search_depth,
            max_results=self.max_results,
            include_answer=True,
        )
        text, sources, links = self._flatten(response)
        return SearchResult(
            query=query,
            results_text=text,
            sources=sources,
            links=links,
            provider=self.name,
        )

    @staticmethod
    def _flatten(response: dict) -> Tuple[str, List[str], List[str]]:
        parts = []
        if response.get("answer"):
            parts.append(response["answer"])
        sources, links = [], []
        for item in response.get("results", []):
            if item.get("content"):
                parts.append(item["content"])
            if item.get("title"):
                sources.append(item["title"])
            if item.get("url"):
                links.append(item["url"])
        return "\n\n".join(parts), sources, links


class SearchService:
    """
    The search capability.

    `search` raises SearchError when no backend is configured, the backend fails,
    times out, or returns no text. `search_with_fallback` never raises.
    """

    def __init__(self, backend: Optional[Any] = None, timeout_seconds: float = 30.0):
        self.backend = backend
        self.timeout_seconds = timeout_seconds

    @property
    def configured(self) -> bool:
        return self.backend is not None

    @property
    def provider_name(self) -> str:
        return getattr(self.backend, "name", "fallback") if self.backend else "fallback"

    async def search(self, query: str) -> SearchResult:
        if not self.configured:
            raise SearchError("Search provider not configured")

        start_time = time.time()
        try:
            result = await asyncio.wait_for(self.backend.search(query), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            log_llm_call(self.provider_name, "search", status="timeout",
                         error=f"Timeout after {self.timeout_seconds}s")
            raise SearchError(f"Search timed out after {self.timeout_seconds}s")
        except Exception as e:
            log_llm_call(self.provider_name, "search",
                         duration_ms=int((time.time() - start_time) * 1000), status="error", error=str(e))
            raise SearchError(f"Search call failed: {e}") from e

        if not result.results_text.strip():
            raise SearchError("Search provider returned no results")

        log_llm_call(self.provider_name, "search", duration_ms=int((time.time() - start_time) * 1000))
        return result

    async def search_with_fallback(self, query: str) -> SearchResult:
        try:
            return await self.search(query)
        except SearchError as e:
            logger.info("Using fallback search for %r: %s", query, e)
            return fallback_search(query)
