"""Knowledge indexing pipeline.

Crawls the configured knowledge base URLs, chunks the pages, embeds the chunks
and publishes an in-memory vector index.
"""

import argparse
import asyncio
import logging
import sys
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from indexer.embeddings import EmbeddingProvider
from indexer.vector_store import VectorIndex
from observability.logging import get_structured_logger, elapsed_ms
from .chunker import Document, DocumentChunker, chunk_documents
from .crawler import CrawledPage, WebCrawler

logger = logging.getLogger(__name__)
decision_log = get_structured_logger(__name__, component="Indexer")


class IndexBuildError(RuntimeError):
    """No index could be built from the knowledge base."""


class EmbeddingFailedError(IndexBuildError):
    """The embedding capability failed while indexing the chunks."""


class IndexBuildInProgressError(RuntimeError):
    """A build is already running."""


@dataclass(frozen=True)
class IndexSnapshot:
    """A built index together with the source URLs that fed it."""
    index: VectorIndex
    sources: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def chunk_count(self) -> int:
        return len(self.index)


def pages_to_documents(pages: Sequence[CrawledPage]) -> List[Document]:
    """One document per page, title first."""
    documents = []
    for page in pages:
        text = f"{page.title}\n\n{page.content}" if page.title else page.content
        documents.append(Document(source_url=page.url, title=page.title, text=text))
    return documents


async def build_index(urls: Sequence[str],
                      crawler: WebCrawler,
                      chunker: DocumentChunker,
                      embedder: EmbeddingProvider) -> IndexSnapshot:
    """Crawl, chunk and embed the knowledge base.

    Args:
        urls: Seed URLs of the knowledge base
        crawler: Crawler used for every seed
        chunker: Chunker with the configured window and overlap
        embedder: Embedding capability

    Returns:
        IndexSnapshot with one entry per chunk

    Raises:
        IndexBuildError: when no page could be retrieved from any URL
        EmbeddingFailedError: when the chunks could not be embedded
    """
    start = time.perf_counter()
    pages: List[CrawledPage] = []
    sources: List[str] = []

    for url in urls:
        try:
            url_pages = await crawler.crawl(url)
        except Exception as e:
            logger.error(f"Failed to crawl knowledge base URL {url}: {e}")
            continue

        if not url_pages:
            logger.warning(f"No usable pages retrieved from {url}")
            continue

        pages.extend(url_pages)
        sources.append(url)
        logger.info(f"Loaded {len(url_pages)} pages from {url}")

    documents = pages_to_documents(pages)
    if not documents:
        decision_log.record("index_build_failed", "No documents retrieved from the knowledge base",
                            level=logging.ERROR, execution_time_ms=elapsed_ms(start), urls=list(urls))
        raise IndexBuildError(f"No documents could be retrieved from {list(urls)}")

    chunks = chunk_documents(documents, chunker)
    try:
        vectors = await asyncio.to_thread(embedder.embed_documents, [chunk.text for chunk in chunks])
        index = VectorIndex.from_chunks(chunks, vectors)
    except Exception as e:
        decision_log.record("index_build_failed", f"Embedding {len(chunks)} chunks failed: {e}",
                            level=logging.ERROR, execution_time_ms=elapsed_ms(start),
                            error_type=type(e).__name__)
        raise EmbeddingFailedError(f"Embedding the knowledge base failed: {e}") from e

    decision_log.record("index_built", "Knowledge index built",
                        execution_time_ms=elapsed_ms(start), documents=len(documents),
                        chunks=len(index), sources=sources)
    return IndexSnapshot(index=index, sources=tuple(sources))


class KnowledgeBase:
    """Holds the published index snapshot.

    Readers take `snapshot` without locking; a rebuild replaces it with one
    reference assignment once the new index is complete, so a reader sees
    either the old or the new index.
    """

    def __init__(self, snapshot: Optional[IndexSnapshot] = None):
        self._snapshot = snapshot
        self._build_lock = asyncio.Lock()

    @property
    def snapshot(self) -> Optional[IndexSnapshot]:
        return self._snapshot

    @property
    def is_ready(self) -> bool:
        return self._snapshot is not None

    @property
    def is_building(self) -> bool:
        return self._build_lock.locked()

    async def rebuild(self,
                      urls: Sequence[str],
                      crawler: WebCrawler,
                      chunker: DocumentChunker,
                      embedder: EmbeddingProvider) -> IndexSnapshot:
        """Build a new index and publish it.

        Raises IndexBuildInProgressError if another build is running. On
        failure the previous snapshot stays published.
        """
        if self._build_lock.locked():
            raise IndexBuildInProgressError("A knowledge index build is already in progress")

        async with self._build_lock:
            snapshot = await build_index(urls, crawler, chunker, embedder)
            self._snapshot = snapshot
            return snapshot


async def _run_cli(args) -> int:
    from config.settings import load_settings
    from indexer.embeddings import create_embedding_provider

    settings = load_settings()
    urls = args.urls or settings.knowledge_base_urls
    embedder = create_embedding_provider(settings)
    if embedder is None:
        logger.error("No embedding provider available; set OPENAI_API_KEY or EMBEDDING_PROVIDER=local")
        return 1

    chunker = DocumentChunker(settings.knowledge_chunk_size, settings.knowledge_chunk_overlap)
    async with WebCrawler(max_pages=args.max_pages or settings.crawl_max_pages,
                          timeout_ms=settings.crawl_timeout_ms) as crawler:
        try:
            snapshot = await build_index(urls, crawler, chunker, embedder)
        except IndexBuildError as e:
            logger.error(str(e))
            return 1

    print(f"Indexed {snapshot.chunk_count} chunks (dimension {snapshot.index.dimension}) from:")
    for source in snapshot.sources:
        print(f"  {source}")

    if args.query:
        query_vector = embedder.embed_query(args.query)
        for rank, hit in enumerate(snapshot.index.search(query_vector, settings.knowledge_top_k), 1):
            print(f"\n{rank}. {hit.chunk.source_url} #{hit.chunk.ordinal} (score {hit.score:.4f})")
            print(f"   {hit.chunk.text[:200]}...")
    return 0


def main():
    """CLI for building the knowledge index"""
    from observability.logging import setup_logging

    parser = argparse.ArgumentParser(description="Crawl and index the knowledge base")
    parser.add_argument("urls", nargs="*", help="Seed URLs (defaults to KNOWLEDGE_BASE_URLS)")
    parser.add_argument("--max-pages", type=int, help="Page cap per seed URL")
    parser.add_argument("--query", help="Run a similarity search against the built index")
    args = parser.parse_args()

    setup_logging(level="INFO")
    sys.exit(asyncio.run(_run_cli(args)))


if __name__ == "__main__":
    main()
