"""
MediaWiki Client
================

Search and download pages from MediaWiki sites (Fandom wikis, Wikipedia and
self-hosted MediaWiki installs) through their ``api.php`` endpoint.

API Notes:
- ``action=query&list=search`` for title search
- ``action=parse&prop=text`` returns rendered HTML, which is stripped to
  plain text with BeautifulSoup
- Fandom exposes the API at the domain root, Wikipedia under ``/w/``
"""

import re
from dataclasses import dataclass

import httpx
from bs4 import BeautifulSoup

from loresmith.utils.logger import Logger

logger = Logger("WikiClient")

DEFAULT_TIMEOUT = 30.0

# Elements that carry no article prose
_BOILERPLATE_SELECTORS = [
    "script", "style", "table.infobox", ".navbox", ".mw-editsection",
    ".reference", ".reflist", ".toc", ".mw-empty-elt", "sup.reference",
    ".noprint", ".mbox-small", ".ambox", ".metadata", ".sistersitebox",
    ".side-box", ".portal", "figure", ".thumb", ".gallery",
]

_CITATION_MARKER = re.compile(r"\[\d+\]")
_EXCESS_NEWLINES = re.compile(r"\n{3,}")
_RUNS_OF_SPACES = re.compile(r"[ \t]+")
_FANDOM_ROOT = re.compile(r"(https?://[^/]+\.fandom\.com)")


class WikiError(Exception):
    """Raised when a wiki request fails or returns something unusable."""


@dataclass(frozen=True)
class SearchResult:
    """A search hit."""
    pageid: int
    title: str
    snippet: str = ""


def normalize_wiki_url(url: str) -> str:
    """Add ``https://`` when the user (or model) gave a bare domain."""
    url = url.strip()
    if url and not url.startswith("http"):
        return f"https://{url}"
    return url


def get_api_url(wiki_url: str) -> str:
    """
    Derive the ``api.php`` endpoint from a wiki or article URL.

    Examples:
        https://typemoon.fandom.com/wiki/Saber -> https://typemoon.fandom.com/api.php
        https://en.wikipedia.org/wiki/Saber    -> https://en.wikipedia.org/w/api.php
        https://wiki.example.org               -> https://wiki.example.org/api.php
    """
    url = wiki_url.strip().rstrip("/")

    if "api.php" in url:
        return url

    if "fandom.com" in url:
        match = _FANDOM_ROOT.search(url)
        if match:
            return f"{match.group(1)}/api.php"

    if "/wiki/" in url:
        return url.split("/wiki/")[0] + "/w/api.php"

    return f"{url}/api.php"


def clean_html(html: str) -> str:
    """Strip markup and wiki boilerplate from rendered page HTML."""
    soup = BeautifulSoup(html, "html.parser")
    for selector in _BOILERPLATE_SELECTORS:
        for element in soup.select(selector):
            element.decompose()

    text = soup.get_text()
    text = _CITATION_MARKER.sub("", text)
    text = _EXCESS_NEWLINES.sub("\n\n", text)
    text = _RUNS_OF_SPACES.sub(" ", text)
    return text.strip()


class WikiClient:
    """
    Async MediaWiki API client.

    Example:
        client = WikiClient()
        api_url = get_api_url("https://typemoon.fandom.com")
        hits = await client.search(api_url, "Saber")
        text = await client.fetch_page_content(api_url, hits[0].pageid)
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, transport: httpx.AsyncBaseTransport | None = None):
        """
        Args:
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.timeout = timeout
        self._transport = transport

    async def _get(self, api_url: str, params: dict) -> dict:
        query = {**params, "format": "json", "origin": "*"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(api_url, params=query)
        except httpx.HTTPError as e:
            raise WikiError(f"Request to {api_url} failed: {e}") from e

        if response.status_code >= 400:
            raise WikiError(f"Wiki API Error: {response.status_code}")
        try:
            return response.json()
        except ValueError as e:
            raise WikiError(f"{api_url} did not return JSON; is this a MediaWiki site?") from e

    async def search(self, api_url: str, query: str, limit: int = 50) -> list[SearchResult]:
        """Full-text search; returns at most *limit* hits."""
        logger.debug(f"Searching {api_url} for {query!r}")
        data = await self._get(api_url, {
            "action": "query",
            "list": "search",
            "srsearch": query,
            "srlimit": str(limit),
        })
        hits = (data.get("query") or {}).get("search") or []
        return [
            SearchResult(pageid=int(h["pageid"]), title=h.get("title", ""), snippet=h.get("snippet", ""))
            for h in hits
            if "pageid" in h
        ]

    async def fetch_page_content(self, api_url: str, pageid: int) -> str:
        """Download a page and return its plain text."""
        logger.debug(f"Fetching page {pageid} from {api_url}")
        data = await self._get(api_url, {
            "action": "parse",
            "pageid": str(pageid),
            "prop": "text",
        })
        if "error" in data:
            raise WikiError(data["error"].get("info", "Unknown wiki error"))
        html = ((data.get("parse") or {}).get("text") or {}).get("*", "")
        return clean_html(html)
