"""
Wiki Research Tools
===================

Tools for researching a character's source material on a MediaWiki site:

- wiki_search: find candidate pages
- read_page: download a page and store it in the Knowledge Base

The wiki comes from the ``wikiUrl`` argument when the model gives one,
otherwise from the context's research source. Bare domains such as
"typemoon.fandom.com" are accepted.
"""

import json
import uuid

from loresmith.agent.context import ToolContext
from loresmith.models import StoredDocument
from loresmith.tools import ToolDefinition, ToolRegistry, ToolResult
from loresmith.utils.logger import Logger
from loresmith.wiki.client import WikiClient, WikiError, get_api_url, normalize_wiki_url

logger = Logger("WikiTools")

PREVIEW_CHARS = 500

NO_WIKI_ERROR = (
    'No Wiki URL configured or provided. You MUST provide the "wikiUrl" parameter '
    '(e.g., "https://highschooldxd.fandom.com") to use this tool.'
)


def _resolve_wiki_url(args: dict, context: ToolContext) -> str:
    explicit = args.get("wikiUrl")
    url = explicit if isinstance(explicit, str) and explicit.strip() else context.research_source_url
    return normalize_wiki_url(url or "")


def _client(context: ToolContext) -> WikiClient:
    return context.wiki or WikiClient()


# ==============================================================================
# Tool: Search
# ==============================================================================

async def _wiki_search(args: dict, context: ToolContext) -> ToolResult:
    """Search the wiki and return matching titles with their page ids."""
    query = args.get("query")
    if not isinstance(query, str) or not query.strip():
        return ToolResult.fail('"query" is a required parameter.')

    wiki_url = _resolve_wiki_url(args, context)
    if not wiki_url:
        return ToolResult.fail(NO_WIKI_ERROR)

    try:
        results = await _client(context).search(get_api_url(wiki_url), query)
    except WikiError as e:
        return ToolResult.fail(f"Failed to search wiki: {e}")

    if not results:
        return ToolResult.ok(f'No results found for "{query}" on {wiki_url}.')

    listing = [{"title": r.title, "pageid": r.pageid} for r in results]
    return ToolResult.ok(json.dumps(listing, indent=2, ensure_ascii=False))


wiki_search_tool = ToolDefinition(
    name="wiki_search",
    description=(
        "Search for articles on a wiki (Fandom/Wikipedia). Provide the base URL of the wiki "
        '(e.g. "https://highschooldxd.fandom.com") if it differs from the current one.'
    ),
    parameters={
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": 'The search query (e.g., "Gilgamesh")'},
            "wikiUrl": {
                "type": "string",
                "description": (
                    "REQUIRED if current wiki URL is not configured or if you need to search a "
                    'different fandom. Example: "https://highschooldxd.fandom.com"'
                ),
            },
        },
        "required": ["query"],
    },
    execute=_wiki_search,
)


# ==============================================================================
# Tool: Read Page
# ==============================================================================

async def _read_page(args: dict, context: ToolContext) -> ToolResult:
    """
    Download a page into the Knowledge Base.

    The title is looked up through search first; an exact (case-insensitive)
    title match wins, otherwise the top hit is used.
    """
    title = args.get("title")
    if not isinstance(title, str) or not title.strip():
        return ToolResult.fail('"title" is a required parameter.')

    wiki_url = _resolve_wiki_url(args, context)
    if not wiki_url:
        return ToolResult.fail(NO_WIKI_ERROR)

    if context.add_document is None:
        logger.error("add_document callback missing; cannot store page")
        return ToolResult.fail("Knowledge Base is not available, the page cannot be stored.")

    client = _client(context)
    api_url = get_api_url(wiki_url)
    try:
        results = await client.search(api_url, title)
        page = next((r for r in results if r.title.lower() == title.lower()), None)
        if page is None and results:
            page = results[0]
        if page is None:
            return ToolResult.fail(f'Page "{title}" not found on {wiki_url}.')

        content = await client.fetch_page_content(api_url, page.pageid)
    except WikiError as e:
        return ToolResult.fail(f"Failed to read page: {e}")

    document = StoredDocument.from_text(
        name=f"{page.title}.txt",
        content=content,
        doc_id=f"wiki_{page.pageid}_{uuid.uuid4().hex[:8]}",
    )
    logger.info(f"Adding page to Knowledge Base: {page.title} ({document.tokens} tokens)")
    context.add_document(document)

    return ToolResult.ok(
        f'Successfully read page "{page.title}". Content added to Knowledge Base. '
        f"First {PREVIEW_CHARS} chars:\n{content[:PREVIEW_CHARS]}..."
    )


read_page_tool = ToolDefinition(
    name="read_page",
    description=(
        "Download and read the content of a wiki page. "
        "This adds the content to the project files (Knowledge Base)."
    ),
    parameters={
        "type": "object",
        "properties": {
            "title": {"type": "string", "description": "Exact title of the page to read (from search results)"},
            "wikiUrl": {
                "type": "string",
                "description": (
                    "REQUIRED if current wiki URL is not configured or if you need to read from a "
                    "different fandom."
                ),
            },
        },
        "required": ["title"],
    },
    execute=_read_page,
)


def register_wiki_tools(registry: ToolRegistry) -> None:
    """Register the research tools."""
    registry.register(wiki_search_tool)
    registry.register(read_page_tool)
