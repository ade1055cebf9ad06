"""Same-origin web crawler for the knowledge base.

Walks a help site from a seed URL, follows links on the same origin and
returns the main text of every page worth indexing.
"""

import asyncio
import logging
import re
from typing import List, Optional, Set, Tuple
from urllib.parse import urljoin, urlparse, urlunparse
from dataclasses import dataclass, field

import aiohttp
from bs4 import BeautifulSoup

from observability.logging import get_structured_logger

logger = logging.getLogger(__name__)
decision_log = get_structured_logger(__name__, component="Crawler")

BROWSER_HEADERS = {
    'User-Agent': ('Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
                   '(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36'),
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8',
    'Accept-Language': 'pt-BR,pt;q=0.9,en-US;q=0.8,en;q=0.7',
}

# Checked in order; the first selector that matches provides the page text.
CONTENT_SELECTORS = [
    'article', '.article-content', '.article-body',
    '.documentation', '.knowledge-base', '.help-content',
    '.main-content', 'main', '.content',
]

NON_CONTENT_TAGS = ['script', 'style', 'meta', 'link', 'noscript', 'iframe', 'svg', 'img']

SKIPPED_EXTENSIONS = ('.pdf', '.jpg', '.png', '.gif')

MIN_CONTENT_LENGTH = 100

DEFAULT_PORTS = {'http': 80, 'https': 443}

Origin = Tuple[str, str, Optional[int]]


def normalize_url(url: str) -> str:
    """Canonical form used for the visited set.

    Lower-cases scheme and host, drops the fragment and default ports and
    turns an empty path into ``/``. Raises ValueError for anything that is not
    an absolute http(s) URL.
    """
    parsed = urlparse(url.strip())
    scheme = parsed.scheme.lower()
    if scheme not in DEFAULT_PORTS or not parsed.hostname:
        raise ValueError(f"Not an absolute http(s) URL: {url!r}")

    host = parsed.hostname.lower()
    port = parsed.port
    netloc = host if port in (None, DEFAULT_PORTS[scheme]) else f"{host}:{port}"
    if parsed.username:
        netloc = f"{parsed.username}@{netloc}"

    return urlunparse((scheme, netloc, parsed.path or '/', parsed.params, parsed.query, ''))


def origin_of(url: str) -> Origin:
    """Scheme, host and effective port of a URL."""
    parsed = urlparse(url)
    scheme = parsed.scheme.lower()
    return scheme, (parsed.hostname or '').lower(), parsed.port or DEFAULT_PORTS.get(scheme)


def clean_text(text: str) -> str:
    """Collapse whitespace runs into single spaces."""
    return re.sub(r'\s+', ' ', text).strip()


@dataclass(frozen=True)
class CrawledPage:
    """Main text of one crawled page."""
    url: str
    title: str
    content: str


@dataclass
class CrawlContext:
    """Traversal state of a single crawl call.

    Created per `WebCrawler.crawl` invocation and threaded through the
    recursion; it is never stored on the crawler, so concurrent crawls do not
    share a visited set.
    """
    origin: Origin
    max_pages: int
    visited: Set[str] = field(default_factory=set)
    page_count: int = 0
    pages: List[CrawledPage] = field(default_factory=list)
    failed: int = 0
    rejected: int = 0

    @property
    def exhausted(self) -> bool:
        return self.page_count >= self.max_pages

    def claim(self, url: str) -> bool:
        """Mark a URL visited if the cap allows and it was not seen before.

        Contains no await, so it is atomic with respect to other tasks on the
        event loop.
        """
        if self.exhausted or url in self.visited:
            return False
        self.visited.add(url)
        self.page_count += 1
        return True


class WebCrawler:
    """Asynchronous same-origin crawler with a hard page cap."""

    def __init__(self,
                 max_pages: int = 50,
                 timeout_ms: int = 10000,
                 headers: Optional[dict] = None):
        """Initialize crawler.

        Args:
            max_pages: Maximum pages fetched per crawl call
            timeout_ms: Per-request timeout in milliseconds
            headers: Request headers (defaults to a browser-like set)
        """
        if max_pages <= 0:
            raise ValueError("max_pages must be positive")
        self.max_pages = max_pages
        self.timeout_ms = timeout_ms
        self.headers = dict(headers or BROWSER_HEADERS)
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        """Async context manager entry."""
        timeout = aiohttp.ClientTimeout(total=self.timeout_ms / 1000.0)
        self.session = aiohttp.ClientSession(timeout=timeout, headers=self.headers)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def close(self):
        """Close the crawler session."""
        if self.session:
            await self.session.close()
            self.session = None

    async def _fetch_html(self, url: str) -> Tuple[Optional[str], str]:
        """Fetch a page, returning its HTML and the URL it resolved to.

        The HTML is None for non-HTML responses. Raises aiohttp.ClientError on
        transport or HTTP status errors and asyncio.TimeoutError when the
        timeout elapses.
        """
        async with self.session.get(url, allow_redirects=True) as response:
            final_url = str(response.url)
            response.raise_for_status()
            content_type = response.headers.get('Content-Type', '')
            if content_type and 'html' not in content_type.lower():
                logger.debug(f"Skipping non-HTML content at {url}: {content_type}")
                return None, final_url
            return await response.text(errors='replace'), final_url

    def _extract_main_text(self, soup: BeautifulSoup) -> str:
        """Text of the first matching content container, or of the body.

        The first selector that matches wins; the body is used only when no
        selector matches or the matched container holds no text.
        """
        for tag in soup.find_all(NON_CONTENT_TAGS):
            tag.decompose()

        container = None
        for selector in CONTENT_SELECTORS:
            container = soup.select_one(selector)
            if container is not None:
                break

        text = clean_text(container.get_text(' ')) if container is not None else ''
        if not text:
            text = clean_text((soup.body or soup).get_text(' '))
        return text

    def _should_follow_link(self, url: str, origin: Origin) -> bool:
        """Check if a normalized link stays on the origin and is an HTML page."""
        if origin_of(url) != origin:
            return False
        path = urlparse(url).path.lower()
        return not path.endswith(SKIPPED_EXTENSIONS)

    def _extract_links(self, soup: BeautifulSoup, base_url: str, origin: Origin) -> List[str]:
        """Followable links of a page in document order, without duplicates."""
        links = []
        seen = set()

        for anchor in soup.find_all('a', href=True):
            href = anchor['href'].strip()
            if not href or href.startswith('#'):
                continue
            try:
                link = normalize_url(urljoin(base_url, href))
            except ValueError:
                continue
            if link in seen or not self._should_follow_link(link, origin):
                continue
            seen.add(link)
            links.append(link)

        return links

    def _parse_page(self, html: str, url: str, origin: Origin,
                    base_url: Optional[str] = None) -> Tuple[Optional[CrawledPage], List[str]]:
        soup = BeautifulSoup(html, 'html.parser')
        title = soup.title.get_text(strip=True) if soup.title else ''
        # Links come from the whole document, before content cleanup mutates it.
        links = self._extract_links(soup, base_url or url, origin)
        content = self._extract_main_text(soup)

        if len(content) <= MIN_CONTENT_LENGTH:
            return None, links
        return CrawledPage(url=url, title=title, content=content), links

    async def _crawl_page(self, url: str, context: CrawlContext) -> None:
        if not context.claim(url):
            return

        logger.debug(f"Crawling page {context.page_count}/{context.max_pages}: {url}")

        try:
            html, final_url = await self._fetch_html(url)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            context.failed += 1
            decision_log.record("page_failed", f"Error crawling {url}: {e}",
                                level=logging.WARNING, url=url, error=str(e) or type(e).__name__)
            return

        if origin_of(final_url) != context.origin:
            context.rejected += 1
            decision_log.record("page_rejected", f"Redirected off origin: {url} -> {final_url}",
                                url=url, final_url=final_url)
            return

        if html is None:
            context.rejected += 1
            decision_log.record("page_rejected", f"Rejected non-HTML page {url}", url=url)
            return

        try:
            page, links = self._parse_page(html, url, context.origin, base_url=final_url)
        except Exception as e:
            context.failed += 1
            decision_log.record("page_failed", f"Failed to parse {url}: {e}",
                                level=logging.WARNING, url=url, error=str(e))
            return

        if page is not None:
            context.pages.append(page)
            decision_log.record("page_accepted", f"Added content from {url}",
                                url=url, content_length=len(page.content))
        else:
            context.rejected += 1
            decision_log.record("page_rejected", f"Too little content at {url}", url=url)

        for link in links:
            if context.exhausted:
                break
            if link not in context.visited:
                await self._crawl_page(link, context)

    async def crawl(self, seed_url: str) -> List[CrawledPage]:
        """Crawl the origin of `seed_url`.

        Args:
            seed_url: Absolute http(s) URL to start from

        Returns:
            Pages with more than 100 characters of text, in discovery order.
            An empty list is a valid result.
        """
        start_url = normalize_url(seed_url)
        context = CrawlContext(origin=origin_of(start_url), max_pages=self.max_pages)

        owns_session = self.session is None
        if owns_session:
            await self.__aenter__()

        logger.info(f"Starting crawl of {start_url} (max_pages={self.max_pages})")
        try:
            await self._crawl_page(start_url, context)
        finally:
            if owns_session:
                await self.close()

        logger.info(f"Crawl of {start_url} completed: {len(context.pages)} pages collected, "
                    f"{context.page_count} visited, {context.rejected} rejected, {context.failed} failed")
        return list(context.pages)


# Convenience functions
async def crawl_site(seed_url: str, max_pages: int = 50, timeout_ms: int = 10000) -> List[CrawledPage]:
    """Crawl one site with a short-lived crawler."""
    async with WebCrawler(max_pages=max_pages, timeout_ms=timeout_ms) as crawler:
        return await crawler.crawl(seed_url)


def crawl_site_sync(seed_url: str, max_pages: int = 50, timeout_ms: int = 10000) -> List[CrawledPage]:
    """Synchronous wrapper for crawl_site."""
    return asyncio.run(crawl_site(seed_url, max_pages, timeout_ms))
