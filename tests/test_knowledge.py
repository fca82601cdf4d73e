from pathlib import Path

import httpx
import pytest

from teller.knowledge import fetcher as fetcher_module
from teller.knowledge.fetcher import DocumentFetcher, FetchError, validate_url
from teller.knowledge.index import SqliteKnowledgeIndex, chunk_passages
from teller.knowledge.ingest import KnowledgeIngestor

PAGE = """
<html><head><title>Base Network Fees - Docs</title><script>var x = 1;</script></head>
<body>
<nav>Home | Docs</nav>
<h1>Base network fees</h1>
<p>Transactions on the Base network pay fees in ETH, usually a fraction of a cent per transfer.</p>
<p>USDC transfers on Base settle within a few seconds once the sequencer includes them.</p>
<footer>copyright</footer>
</body></html>
"""


def _allow_all(url: str) -> tuple[bool, str]:
    return True, ""


def _serving(pages: dict[str, str], content_type: str = "text/html; charset=utf-8"):
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        body = pages.get(str(request.url))
        if body is None:
            return httpx.Response(404)
        return httpx.Response(200, headers={"content-type": content_type}, text=body)

    return httpx.MockTransport(handler), calls


def _ingestor(tmp_path: Path, transport: httpx.MockTransport, **fetch_kwargs) -> tuple[KnowledgeIngestor, SqliteKnowledgeIndex]:
    index = SqliteKnowledgeIndex(tmp_path / "teller.db")
    fetcher = DocumentFetcher(transport=transport, url_guard=_allow_all, **fetch_kwargs)
    return KnowledgeIngestor(fetcher, index), index


def test_chunk_passages_drops_short_paragraphs_and_caps_length() -> None:
    content = "tiny\n\n" + "a" * 400 + "\n\n" + "a readable paragraph about fees"
    chunks = chunk_passages(content)
    assert [len(c) for c in chunks] == [300, len("a readable paragraph about fees")]


async def test_ingest_html_then_search(tmp_path: Path) -> None:
    transport, _ = _serving({"https://docs.example.org/fees": PAGE})
    ingestor, index = _ingestor(tmp_path, transport)

    result = await ingestor.ingest("https://docs.example.org/fees")

    assert result.created is True
    assert result.passages >= 2
    assert result.document.title == "Base Network Fees"
    assert result.document.source == "docs.example.org"
    excerpts = [p.excerpt for p in index.passages_for(result.document.id)]
    assert not any("var x" in e or "copyright" in e for e in excerpts)

    hits = index.search_terms("usdc sequencer", limit=3)
    assert hits and "sequencer" in hits[0].excerpt
    assert hits[0].url == "https://docs.example.org/fees"


async def test_ingest_dedups_by_url_and_by_content(tmp_path: Path) -> None:
    transport, calls = _serving(
        {
            "https://docs.example.org/fees": PAGE,
            "https://mirror.example.net/fees": PAGE,
        }
    )
    ingestor, index = _ingestor(tmp_path, transport)

    first = await ingestor.ingest("https://docs.example.org/fees")
    again = await ingestor.ingest("https://docs.example.org/fees")
    mirrored = await ingestor.ingest("https://mirror.example.net/fees")

    assert again.created is False and again.document.id == first.document.id
    assert mirrored.created is False and mirrored.document.id == first.document.id
    assert index.count_documents() == 1
    # Known URLs are answered from the index without a second fetch.
    assert calls == ["https://docs.example.org/fees", "https://mirror.example.net/fees"]


async def test_oversize_body_is_refused(tmp_path: Path) -> None:
    transport, _ = _serving({"https://docs.example.org/big": "<p>" + "x" * 5000 + "</p>"})
    ingestor, index = _ingestor(tmp_path, transport, max_bytes=1024)

    with pytest.raises(FetchError, match="too large"):
        await ingestor.ingest("https://docs.example.org/big")
    assert index.count_documents() == 0


async def test_disallowed_content_type_is_refused(tmp_path: Path) -> None:
    transport, _ = _serving({"https://docs.example.org/logo": "not really a png"}, content_type="image/png")
    ingestor, _ = _ingestor(tmp_path, transport)

    with pytest.raises(FetchError, match="Unsupported content type"):
        await ingestor.ingest("https://docs.example.org/logo")


async def test_http_error_status_is_refused(tmp_path: Path) -> None:
    transport, _ = _serving({})
    ingestor, _ = _ingestor(tmp_path, transport)

    with pytest.raises(FetchError, match="HTTP 404"):
        await ingestor.ingest("https://docs.example.org/missing")


async def test_guard_refusal_happens_before_any_request(tmp_path: Path) -> None:
    transport, calls = _serving({"http://localhost/admin": PAGE})
    fetcher = DocumentFetcher(transport=transport)

    with pytest.raises(FetchError, match="Blocked local host"):
        await fetcher.fetch("http://localhost/admin")
    assert calls == []


def test_validate_url_blocks_local_and_private_targets(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(fetcher_module, "_host_resolves_private", lambda host: False)

    assert validate_url("https://docs.example.org/page") == (True, "")
    assert validate_url("ftp://docs.example.org/file")[0] is False
    assert validate_url("http://localhost:8080/")[0] is False
    assert validate_url("http://printer.local/")[0] is False
    assert validate_url("http://127.0.0.1/")[0] is False
    assert validate_url("http://10.0.0.7/")[0] is False
    assert validate_url("http://[::1]/")[0] is False


def test_validate_url_blocks_names_resolving_to_private_ips(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(fetcher_module, "_host_resolves_private", lambda host: host == "internal.example.com")

    ok, reason = validate_url("https://internal.example.com/")
    assert ok is False
    assert "private-network DNS" in reason


def _redirecting(hops: dict[str, str], pages: dict[str, str]):
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        calls.append(url)
        if url in hops:
            return httpx.Response(302, headers={"location": hops[url]})
        if url in pages:
            return httpx.Response(200, headers={"content-type": "text/html"}, text=pages[url])
        return httpx.Response(404)

    return httpx.MockTransport(handler), calls


async def test_redirect_to_loopback_is_refused(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(fetcher_module, "_host_resolves_private", lambda host: False)
    transport, calls = _redirecting(
        {"http://93.184.216.34/start": "http://127.0.0.1:8080/admin"},
        {"http://127.0.0.1:8080/admin": "internal secret page"},
    )
    fetcher = DocumentFetcher(transport=transport)

    with pytest.raises(FetchError, match="Blocked private IP target: 127.0.0.1"):
        await fetcher.fetch("http://93.184.216.34/start")
    assert calls == ["http://93.184.216.34/start"]


async def test_relative_redirect_is_followed_and_rechecked() -> None:
    checked: list[str] = []

    def guard(url: str) -> tuple[bool, str]:
        checked.append(url)
        return True, ""

    transport, _ = _redirecting(
        {"https://docs.example.org/old": "/new"},
        {"https://docs.example.org/new": PAGE},
    )
    page = await DocumentFetcher(transport=transport, url_guard=guard).fetch("https://docs.example.org/old")

    assert page.url == "https://docs.example.org/new"
    assert checked == ["https://docs.example.org/old", "https://docs.example.org/new"]


async def test_redirect_loop_stops_at_the_hop_limit() -> None:
    transport, calls = _redirecting(
        {"https://a.example.org/": "https://b.example.org/", "https://b.example.org/": "https://a.example.org/"},
        {},
    )
    with pytest.raises(FetchError, match="Too many redirects"):
        await DocumentFetcher(transport=transport, url_guard=_allow_all).fetch("https://a.example.org/")
    assert len(calls) == fetcher_module.MAX_REDIRECTS + 1
