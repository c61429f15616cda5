"""
Wiki research client (MediaWiki / Fandom).
"""

from loresmith.wiki.client import (
    SearchResult,
    WikiClient,
    WikiError,
    clean_html,
    get_api_url,
    normalize_wiki_url,
)

__all__ = [
    "SearchResult",
    "WikiClient",
    "WikiError",
    "clean_html",
    "get_api_url",
    "normalize_wiki_url",
]
