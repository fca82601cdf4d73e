"""Readable text extraction from fetched pages."""

from __future__ import annotations

import html
import json
import re
from dataclasses import dataclass
from urllib.parse import urlparse

_DROP_BLOCKS = ("script", "style", "nav", "header", "footer", "noscript")


@dataclass(frozen=True, slots=True)
class ExtractedPage:
    title: str
    content: str
    site: str


def _strip_block(body: str, tag: str) -> str:
    return re.sub(rf"<{tag}\b[^>]*>[\s\S]*?</{tag}>", "", body, flags=re.I)


def _html_to_text(body: str) -> str:
    body = re.sub(r"<h[1-6][^>]*>([\s\S]*?)</h[1-6]>", r"\n\n# \1\n\n", body, flags=re.I)
    body = re.sub(r"<p[^>]*>([\s\S]*?)</p>", r"\n\n\1\n\n", body, flags=re.I)
    body = re.sub(r"<li[^>]*>([\s\S]*?)</li>", r"\n- \1\n", body, flags=re.I)
    body = re.sub(r"</(div|section|article)>", "\n\n", body, flags=re.I)
    body = re.sub(r"<(br|hr)\s*/?>", "\n", body, flags=re.I)
    body = re.sub(r"<[^>]+>", " ", body)
    body = html.unescape(body)
    body = re.sub(r"[ \t]+", " ", body)
    body = re.sub(r" *\n *", "\n", body)
    return re.sub(r"\n{3,}", "\n\n", body).strip()


def extract_content(raw: str, url: str, content_type: str = "text/html") -> ExtractedPage:
    site = (urlparse(url).hostname or "").removeprefix("www.")
    ctype = content_type.lower()

    if "json" in ctype:
        try:
            content = json.dumps(json.loads(raw), indent=2, ensure_ascii=False)
        except json.JSONDecodeError:
            content = raw
        return ExtractedPage(title=site or url, content=content.strip(), site=site)

    if "html" not in ctype and "xml" not in ctype:
        return ExtractedPage(title=site or url, content=raw.strip(), site=site)

    from readability import Document

    cleaned = raw
    for tag in _DROP_BLOCKS:
        cleaned = _strip_block(cleaned, tag)
    doc = Document(cleaned)
    title = html.unescape(doc.title() or "").split(" - ")[0].strip()
    if title == "[no-title]":
        title = ""
    return ExtractedPage(title=title or site or url, content=_html_to_text(doc.summary()), site=site)
