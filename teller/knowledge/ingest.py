"""Fetch, extract, summarize and index one URL."""

from __future__ import annotations

from loguru import logger

from teller.knowledge.extractor import extract_content
from teller.knowledge.fetcher import DocumentFetcher
from teller.knowledge.index import SqliteKnowledgeIndex, content_hash
from teller.knowledge.models import IngestResult
from teller.knowledge.summarizer import summarize


class KnowledgeIngestor:
    def __init__(self, fetcher: DocumentFetcher, index: SqliteKnowledgeIndex) -> None:
        self._fetcher = fetcher
        self._index = index

    async def ingest(self, url: str) -> IngestResult:
        """Index *url*; an already-known URL or identical content returns the existing document.

        Raises:
            FetchError: the URL was refused or the response broke ingestion limits.
            ValueError: the page had no extractable text.
        """
        url = url.strip()
        existing = self._index.find_existing(url=url)
        if existing is not None:
            logger.debug("ingest skip, url already indexed: {}", url)
            return IngestResult(document=existing, created=False)

        page = await self._fetcher.fetch(url)
        extracted = extract_content(page.text, url, page.content_type)
        if not extracted.content.strip():
            raise ValueError(f"No readable text at {url}")

        duplicate = self._index.find_existing(digest=content_hash(extracted.content))
        if duplicate is not None:
            logger.debug("ingest skip, identical content already indexed as {}", duplicate.id)
            return IngestResult(document=duplicate, created=False)

        summary = summarize(extracted.content)
        document, created = self._index.add_document(
            title=extracted.title,
            content=extracted.content,
            source=extracted.site or "web",
            url=url,
            tldr=summary.tldr,
            bullets=summary.bullets,
            facts=summary.facts,
        )
        passages = len(self._index.passages_for(document.id)) if created else 0
        logger.info("ingested {} as {} ({} passages)", url, document.id, passages)
        return IngestResult(document=document, created=created, passages=passages)
