"""Tests for the MediaWiki client, using httpx.MockTransport."""

import httpx
import pytest

from loresmith.wiki.client import WikiClient, WikiError, clean_html, get_api_url, normalize_wiki_url

API = "https://typemoon.fandom.com/api.php"

PAGE_HTML = """
<div class="mw-parser-output">
  <table class="infobox"><tr><td>Class: Saber</td></tr></table>
  <p>Saber is a Servant<sup class="reference">[1]</sup> summoned in the Fifth Holy Grail War.[2]</p>
  <span class="mw-editsection">[edit]</span>
  <script>var tracking = 1;</script>
  <div class="navbox">Servants navigation</div>
  <p>She wields    Excalibur.</p>
</div>
"""


class TestUrlHelpers:
    """get_api_url and normalize_wiki_url."""

    @pytest.mark.parametrize("url,expected", [
        ("https://typemoon.fandom.com/api.php", "https://typemoon.fandom.com/api.php"),
        ("https://typemoon.fandom.com", "https://typemoon.fandom.com/api.php"),
        ("https://typemoon.fandom.com/wiki/Saber", "https://typemoon.fandom.com/api.php"),
        ("https://en.wikipedia.org/wiki/King_Arthur", "https://en.wikipedia.org/w/api.php"),
        ("https://wiki.example.org/", "https://wiki.example.org/api.php"),
    ])
    def test_get_api_url(self, url: str, expected: str) -> None:
        assert get_api_url(url) == expected

    def test_normalize_adds_scheme(self) -> None:
        assert normalize_wiki_url("typemoon.fandom.com") == "https://typemoon.fandom.com"
        assert normalize_wiki_url("http://wiki.local") == "http://wiki.local"
        assert normalize_wiki_url("  ") == ""


class TestCleanHtml:
    """Boilerplate removal."""

    def test_strips_boilerplate_and_citations(self) -> None:
        text = clean_html(PAGE_HTML)

        assert "Saber is a Servant summoned in the Fifth Holy Grail War." in text
        assert "She wields Excalibur." in text
        assert "Class: Saber" not in text
        assert "[edit]" not in text
        assert "tracking" not in text
        assert "navigation" not in text
        assert "[1]" not in text and "[2]" not in text


class TestWikiClient:
    """Search and page download against a mocked API."""

    @pytest.mark.asyncio
    async def test_search(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"query": {"search": [
                {"pageid": 1, "title": "Saber", "snippet": "<b>Saber</b> class"},
                {"title": "no id"},
            ]}})

        client = WikiClient(transport=httpx.MockTransport(handler))
        results = await client.search(API, "Saber", limit=5)

        assert [(r.pageid, r.title) for r in results] == [(1, "Saber")]
        params = seen[0].url.params
        assert params["action"] == "query"
        assert params["list"] == "search"
        assert params["srsearch"] == "Saber"
        assert params["srlimit"] == "5"
        assert params["format"] == "json"
        assert params["origin"] == "*"

    @pytest.mark.asyncio
    async def test_fetch_page_content(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["action"] == "parse"
            assert request.url.params["pageid"] == "1"
            return httpx.Response(200, json={"parse": {"text": {"*": PAGE_HTML}}})

        client = WikiClient(transport=httpx.MockTransport(handler))
        text = await client.fetch_page_content(API, 1)

        assert text.startswith("Saber is a Servant")

    @pytest.mark.asyncio
    async def test_api_error_payload(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"error": {"info": "There is no page with ID 99."}})

        client = WikiClient(transport=httpx.MockTransport(handler))

        with pytest.raises(WikiError, match="no page with ID 99"):
            await client.fetch_page_content(API, 99)

    @pytest.mark.asyncio
    async def test_http_status_error(self) -> None:
        client = WikiClient(transport=httpx.MockTransport(lambda request: httpx.Response(503)))

        with pytest.raises(WikiError, match="503"):
            await client.search(API, "Saber")

    @pytest.mark.asyncio
    async def test_non_json_response(self) -> None:
        client = WikiClient(transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<html>")))

        with pytest.raises(WikiError, match="did not return JSON"):
            await client.search(API, "Saber")

    @pytest.mark.asyncio
    async def test_connection_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = WikiClient(transport=httpx.MockTransport(handler))

        with pytest.raises(WikiError, match="failed"):
            await client.search(API, "Saber")
