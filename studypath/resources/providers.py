"""Web resource providers with automatic failover.

Provider priority (highest to lowest):
  1. Serper.dev: Google results over a REST API; requires SERPER_API_KEY.
  2. DuckDuckGo: free, scraping-based; used when Serper is not configured
     or fails.

Every provider implements ``search(query) -> list[Resource]`` and raises
:class:`~studypath.errors.ResourceFetchFailed` when it cannot answer.  An
empty list means the provider worked but found nothing useful.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

import httpx
from duckduckgo_search import DDGS
from duckduckgo_search.exceptions import DuckDuckGoSearchException

from studypath.config import settings
from studypath.errors import ResourceFetchFailed
from studypath.models import Resource

logger = logging.getLogger(__name__)

SERPER_API_URL = "https://google.serper.dev/search"

_VIDEO_DOMAINS = ("youtube.com", "vimeo.com")
_SOCIAL_DOMAINS = ("twitter.com", "facebook.com", "instagram.com", "reddit.com")
_EDUCATIONAL_DOMAINS = (
    "developer.mozilla.org",
    "w3schools.com",
    "freecodecamp.org",
    "dev.to",
    "medium.com",
    "stackoverflow.com",
    "github.com",
)

MAX_WEB_RESULTS = 3


# ---------------------------------------------------------------------------
# Scoring helpers
# ---------------------------------------------------------------------------

def extract_domain(url: str) -> str:
    """Return the host of *url* without a leading ``www.``."""
    try:
        host = urlparse(url).hostname or ""
    except ValueError:
        return ""
    return host[4:] if host.startswith("www.") else host


def detect_resource_type(domain: str, title: str) -> str:
    domain = domain.lower()
    title = title.lower()
    if "docs" in domain or "documentation" in domain or "api" in domain:
        return "documentation"
    if "dev.to" in domain or "medium.com" in domain or "blog" in domain:
        return "article"
    if "tutorial" in title or "guide" in title or "course" in title:
        return "tutorial"
    return "article"


def truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


@dataclass
class _Candidate:
    link: str
    title: str
    snippet: str
    domain: str
    type: str
    score: int


def _score(query: str, link: str, title: str, snippet: str) -> _Candidate | None:
    """Score one search hit, or drop it (``None``) if it is not a web resource."""
    if not link or not title or not snippet:
        return None
    domain = extract_domain(link)
    if any(site in domain for site in _VIDEO_DOMAINS + _SOCIAL_DOMAINS):
        return None

    score = 0
    if "docs." in domain or "documentation" in domain or "official" in title.lower():
        score += 10
    if any(site in domain for site in _EDUCATIONAL_DOMAINS):
        score += 5
    title_lower = title.lower()
    score += sum(1 for word in query.lower().split(" ") if word and word in title_lower)
    if 50 <= len(snippet) <= 300:
        score += 1

    return _Candidate(
        link=link,
        title=title,
        snippet=snippet,
        domain=domain,
        type=detect_resource_type(domain, title),
        score=score,
    )


def select_web_resources(query: str, hits: list[dict[str, Any]]) -> list[Resource]:
    """Rank raw ``{link, title, snippet}`` hits and keep a varied top three.

    Official documentation goes first when present; after that one result
    per domain, topped up from repeated domains if fewer than two remain.
    """
    scored = [
        c
        for c in (
            _score(query, h.get("link", ""), h.get("title", ""), h.get("snippet", ""))
            for h in hits
        )
        if c is not None
    ]
    scored.sort(key=lambda c: c.score, reverse=True)

    selected: list[_Candidate] = []
    used_domains: set[str] = set()

    official = next((c for c in scored if c.type == "documentation" and c.score >= 10), None)
    if official is not None:
        selected.append(official)
        used_domains.add(official.domain)

    for cand in scored:
        if len(selected) >= MAX_WEB_RESULTS:
            break
        if cand.domain in used_domains:
            continue
        selected.append(cand)
        used_domains.add(cand.domain)

    if len(selected) < 2:
        for cand in scored:
            if len(selected) >= 2:
                break
            if cand not in selected:
                selected.append(cand)

    return [
        Resource(
            id=f"resource_web_{i}",
            type=cand.type,
            title=truncate(cand.title, 80),
            url=cand.link,
            description=cand.snippet[:200],
            source=cand.domain,
            metadata={},
        )
        for i, cand in enumerate(selected[:MAX_WEB_RESULTS], start=1)
    ]


# ---------------------------------------------------------------------------
# Abstract base
# ---------------------------------------------------------------------------

class ResourceProvider(ABC):
    """Abstract base class for a single resource provider."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable provider name."""

    @abstractmethod
    async def search(self, query: str) -> list[Resource]:
        """Return ranked resources for *query*.

        Raises:
            ResourceFetchFailed: If the provider could not be queried.
        """


# ---------------------------------------------------------------------------
# Serper provider
# ---------------------------------------------------------------------------

class SerperProvider(ResourceProvider):
    """Google search results through the Serper.dev API."""

    @property
    def name(self) -> str:
        return "Serper"

    async def search(self, query: str) -> list[Resource]:
        api_key = settings.serper_api_key
        if not api_key:
            raise ResourceFetchFailed("SERPER_API_KEY environment variable is not set")

        try:
            async with httpx.AsyncClient(timeout=settings.request_timeout) as client:
                resp = await client.post(
                    SERPER_API_URL,
                    headers={"X-API-KEY": api_key, "Content-Type": "application/json"},
                    json={
                        "q": f"{query} tutorial guide documentation",
                        "num": 20,
                        "gl": "us",
                        "hl": "en",
                    },
                )
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise ResourceFetchFailed(f"Serper request failed: {exc}") from exc

        resources = select_web_resources(query, data.get("organic") or [])
        logger.info("[Serper] %d resource(s) for %r", len(resources), query)
        return resources


# ---------------------------------------------------------------------------
# DuckDuckGo provider
# ---------------------------------------------------------------------------

class DuckDuckGoProvider(ResourceProvider):
    """Wrapper around ``duckduckgo_search.DDGS``, run off the event loop."""

    max_results = 10

    @property
    def name(self) -> str:
        return "DuckDuckGo"

    def _text_search(self, query: str) -> list[dict[str, Any]]:
        with DDGS() as ddgs:
            results = ddgs.text(f"{query} tutorial guide documentation", max_results=self.max_results)
        return [
            {"link": r.get("href", ""), "title": r.get("title", ""), "snippet": r.get("body", "")}
            for r in results or []
        ]

    async def search(self, query: str) -> list[Resource]:
        try:
            hits = await asyncio.to_thread(self._text_search, query)
        except DuckDuckGoSearchException as exc:
            raise ResourceFetchFailed(f"DuckDuckGo search failed: {exc}") from exc

        resources = select_web_resources(query, hits)
        logger.info("[DuckDuckGo] %d resource(s) for %r", len(resources), query)
        return resources


# ---------------------------------------------------------------------------
# Provider chain
# ---------------------------------------------------------------------------

class ProviderChain(ResourceProvider):
    """Try providers in order; return the first non-empty result list.

    Raises :class:`ResourceFetchFailed` only when every provider failed.
    """

    def __init__(self, providers: list[ResourceProvider]) -> None:
        self._providers = providers

    @property
    def name(self) -> str:
        return " → ".join(p.name for p in self._providers)

    async def search(self, query: str) -> list[Resource]:
        failures: list[str] = []
        for provider in self._providers:
            try:
                resources = await provider.search(query)
            except ResourceFetchFailed as exc:
                logger.warning("[%s] %s", provider.name, exc)
                failures.append(f"{provider.name}: {exc}")
                continue
            if resources:
                return resources
        if failures and len(failures) == len(self._providers):
            raise ResourceFetchFailed("; ".join(failures))
        return []


def build_web_chain() -> ProviderChain:
    """Serper (if key) → DuckDuckGo."""
    providers: list[ResourceProvider] = []
    if settings.serper_api_key:
        providers.append(SerperProvider())
    providers.append(DuckDuckGoProvider())
    return ProviderChain(providers)
