"""Pipelines package for the helpdesk agents.

Provides crawling and chunking; index building lives in `pipelines.indexer`.
"""

from .crawler import WebCrawler, CrawledPage, CrawlContext, crawl_site, crawl_site_sync, normalize_url
from .chunker import DocumentChunker, DocumentChunk, Document, chunk_documents

__all__ = [
    # Crawler
    'WebCrawler',
    'CrawledPage',
    'CrawlContext',
    'crawl_site',
    'crawl_site_sync',
    'normalize_url',

    # Chunker
    'DocumentChunker',
    'DocumentChunk',
    'Document',
    'chunk_documents'
]
