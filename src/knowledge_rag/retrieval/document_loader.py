"""knowledge_rag.retrieval.document_loader

Content acquisition for remote sources.

This module provides helpers for acquiring raw content from:
- PDF documents reachable at a URL
- websites, crawled from a start page up to a bounded depth

Functions
---------
is_internal_link
    Check whether a hyperlink stays on the same host as a base URL.
remove_link_fragment
    Remove the fragment component (``#...``) from a URL.
is_excluded_path
    Check whether a URL's path falls under an excluded directory.
extract_links
    Extract the absolute ``<a href>`` targets of an HTML page.

Classes
-------
CrawledPage
    One fetched page with its extracted text.
WebCrawler
    Breadth-first, same-host crawler with depth, path and timeout bounds.
DocumentLoader
    Facade used by the ingestion pipeline to fetch PDF and web content.
"""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence
from urllib.parse import urljoin, urlparse, urlsplit, urlunsplit

import requests
from bs4 import BeautifulSoup

from knowledge_rag.common.errors import FetchError, ValidationError
from knowledge_rag.retrieval.document_preprocessor import (
    DEFAULT_SKIP_SELECTORS,
    html_to_text,
    pdf_bytes_to_text,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 3
DEFAULT_TIMEOUT_S = 10.0
DEFAULT_EXCLUDE_DIRS = ("/admin", "/login", "/api")
DEFAULT_MAX_PAGES = 200
DEFAULT_USER_AGENT = "knowledge-rag-crawler/0.1"


def is_internal_link(link: str,
                base_url: str,
                allow_subdomains: bool = False) -> bool:
    """Check whether a hyperlink is internal relative to a base URL.

    A link is internal if it resolves to the same host as ``base_url``. When
    ``allow_subdomains`` is ``True``, subdomains of the base host also count.
    Non-HTTP(S) schemes (``mailto:``, ``tel:``, ``javascript:`` ...) are external.

    Parameters
    ----------
    link : str
        The hyperlink URL to check. This may be relative or absolute.
    base_url : str
        Page URL used to resolve relative links and define the host boundary.
    allow_subdomains : bool, optional
        Whether subdomains of the base host are internal. Defaults to ``False``.

    Returns
    -------
    bool
        ``True`` if the resolved link is internal, otherwise ``False``.
    """
    resolved = urlparse(urljoin(base_url, link))
    base     = urlparse(base_url)

    if resolved.scheme not in ("http", "https"):
        return False

    if not resolved.hostname:
        return True

    if resolved.hostname == base.hostname:
        return True

    if allow_subdomains and base.hostname and resolved.hostname.endswith("." + base.hostname):
        return True

    return False


def remove_link_fragment(link: str) -> str:
    """Remove the fragment component from a URL."""
    parts = urlsplit(link)

    return urlunsplit(parts._replace(fragment=""))


def is_excluded_path(url: str, exclude_dirs: Sequence[str]) -> bool:
    """Return ``True`` if the path of ``url`` is ``d`` or lies below ``d`` for some ``d`` in ``exclude_dirs``.

    Examples
    --------
    >>> is_excluded_path("https://example.com/admin/users", ["/admin"])
    True
    >>> is_excluded_path("https://example.com/administrators", ["/admin"])
    False
    """
    path = urlparse(url).path or "/"
    for directory in exclude_dirs:
        prefix = "/" + directory.strip("/")
        if path == prefix or path.startswith(prefix + "/"):
            return True
    return False


def extract_links(html: str | bytes, page_url: str) -> list[str]:
    """Return the de-duplicated absolute targets of all ``<a href>`` tags, in document order.

    Fragments are removed, so ``/docs#intro`` and ``/docs`` are the same page.
    """
    soup = BeautifulSoup(html, "html.parser")
    seen: set[str] = set()
    links: list[str] = []
    for anchor in soup.find_all("a"):
        href = anchor.get("href")
        if not href:
            continue
        absolute = remove_link_fragment(urljoin(page_url, href.strip()))
        if absolute not in seen:
            seen.add(absolute)
            links.append(absolute)
    return links


@dataclass
class CrawledPage:
    url: str
    depth: int
    text: str


class WebCrawler:
    """Breadth-first crawler bounded by depth, host and excluded paths.

    The start page has depth ``0``; pages are fetched while their depth is
    below ``max_depth``, so ``max_depth=1`` fetches only the start page.
    Only links on the start page's host are followed, and links whose path
    falls under ``exclude_dirs`` are never fetched.

    Parameters
    ----------
    max_depth : int, optional
        Depth bound. Defaults to ``3``.
    exclude_dirs : Sequence[str], optional
        Path prefixes never followed. Defaults to ``/admin``, ``/login``, ``/api``.
    timeout : float, optional
        Per-request timeout in seconds. Defaults to ``10``.
    prevent_outside : bool, optional
        Refuse links to other hosts. Defaults to ``True``.
    max_pages : int or None, optional
        Upper bound on fetched pages. Defaults to ``200``.
    skip_selectors : Sequence[str], optional
        CSS selectors stripped from each page before text conversion.
    session : requests.Session or None, optional
        HTTP session; a new one is created when omitted.
    """

    def __init__(
            self,
            *,
            max_depth: int = DEFAULT_MAX_DEPTH,
            exclude_dirs: Sequence[str] = DEFAULT_EXCLUDE_DIRS,
            timeout: float = DEFAULT_TIMEOUT_S,
            prevent_outside: bool = True,
            max_pages: Optional[int] = DEFAULT_MAX_PAGES,
            skip_selectors: Sequence[str] = DEFAULT_SKIP_SELECTORS,
            session: Optional[requests.Session] = None,
        ):
        if max_depth < 1:
            raise ValueError(f"max_depth must be >= 1, got {max_depth}.")
        self.max_depth = int(max_depth)
        self.exclude_dirs = list(exclude_dirs)
        self.timeout = float(timeout)
        self.prevent_outside = prevent_outside
        self.max_pages = max_pages
        self.skip_selectors = list(skip_selectors)
        self.session = session or requests.Session()

    def crawl(self, start_url: str) -> list[CrawledPage]:
        """Crawl from ``start_url`` and return the fetched pages in crawl order.

        Raises
        ------
        FetchError
            If the start page cannot be fetched. Failures on other pages are
            logged and skipped.
        """
        start_url = remove_link_fragment(start_url)
        queue: deque[tuple[str, int]] = deque([(start_url, 0)])
        visited: set[str] = {start_url}
        pages: list[CrawledPage] = []

        while queue:
            if self.max_pages is not None and len(pages) >= self.max_pages:
                logger.info("Crawl of %s stopped at max_pages=%d", start_url, self.max_pages)
                break

            url, depth = queue.popleft()
            try:
                html = self._fetch_html(url)
            except FetchError:
                if url == start_url:
                    raise
                logger.warning("Skipping %s: fetch failed", url, exc_info=True)
                continue

            if html is None:
                logger.debug("Skipping non-HTML page %s", url)
                continue

            pages.append(CrawledPage(url=url, depth=depth, text=html_to_text(html, selectors=self.skip_selectors)))
            logger.debug("Crawled %s (depth %d)", url, depth)

            if depth + 1 >= self.max_depth:
                continue

            for link in extract_links(html, url):
                if link in visited or not self._should_follow(link, start_url):
                    continue
                visited.add(link)
                queue.append((link, depth + 1))

        return pages

    def crawl_text(self, start_url: str) -> str:
        """Crawl and return all page texts concatenated with newlines, in crawl order."""
        return "\n".join(page.text for page in self.crawl(start_url) if page.text)

    def _should_follow(self, link: str, start_url: str) -> bool:
        if self.prevent_outside and not is_internal_link(link, start_url):
            return False
        if urlparse(link).scheme not in ("http", "https"):
            return False
        return not is_excluded_path(link, self.exclude_dirs)

    def _fetch_html(self, url: str) -> Optional[bytes]:
        try:
            response = self.session.get(
                url,
                timeout=self.timeout,
                headers={"User-Agent": DEFAULT_USER_AGENT},
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise FetchError(f"Failed to fetch {url}", f"{type(exc).__name__}: {exc}") from exc

        content_type = response.headers.get("Content-Type", "")
        if content_type and "html" not in content_type.lower():
            return None
        return response.content


class DocumentLoader:
    """Fetch and extract text for ``pdf`` and ``url`` sources.

    Parameters
    ----------
    crawler : WebCrawler or None, optional
        Crawler used for ``url`` sources. Defaults to a crawler with the
        default bounds sharing this loader's session.
    timeout : float, optional
        Timeout in seconds for PDF downloads. Defaults to ``10``.
    session : requests.Session or None, optional
        HTTP session.
    """

    def __init__(
            self,
            *,
            crawler: Optional[WebCrawler] = None,
            timeout: float = DEFAULT_TIMEOUT_S,
            session: Optional[requests.Session] = None,
        ):
        self.session = session or requests.Session()
        self.timeout = float(timeout)
        self.crawler = crawler or WebCrawler(session=self.session, timeout=timeout)

    def fetch_pdf_text(self, location: str) -> str:
        """Download the PDF at ``location`` and return its text.

        Raises
        ------
        FetchError
            On transport errors or a non-success status.
        ValidationError
            If the downloaded bytes are not a readable PDF.
        """
        try:
            response = self.session.get(location, timeout=self.timeout)
        except requests.RequestException as exc:
            raise FetchError("Failed to fetch PDF", f"{type(exc).__name__}: {exc}") from exc

        if not 200 <= response.status_code < 300:
            raise FetchError("Failed to fetch PDF", f"GET {location} returned HTTP {response.status_code}")

        try:
            return pdf_bytes_to_text(response.content)
        except ValueError as exc:
            raise ValidationError("Invalid PDF document", str(exc)) from exc

    def crawl_text(self, start_url: str) -> str:
        return self.crawler.crawl_text(start_url)


def create_document_loader(
        config: Mapping[str, Any] | None = None,
        session: Optional[requests.Session] = None,
    ) -> DocumentLoader:
    """Create a :class:`DocumentLoader` from a ``crawler`` configuration section.

    Recognised keys: ``max_depth``, ``exclude_dirs``, ``timeout``,
    ``prevent_outside``, ``max_pages`` and ``skip_selectors``.
    """
    cfg = dict(config or {})
    session = session or requests.Session()
    timeout = float(cfg.get("timeout", DEFAULT_TIMEOUT_S))
    crawler = WebCrawler(
        max_depth=int(cfg.get("max_depth", DEFAULT_MAX_DEPTH)),
        exclude_dirs=cfg.get("exclude_dirs", DEFAULT_EXCLUDE_DIRS),
        timeout=timeout,
        prevent_outside=bool(cfg.get("prevent_outside", True)),
        max_pages=cfg.get("max_pages", DEFAULT_MAX_PAGES),
        skip_selectors=cfg.get("skip_selectors", DEFAULT_SKIP_SELECTORS),
        session=session,
    )
    return DocumentLoader(crawler=crawler, timeout=timeout, session=session)


__all__ = [
    "is_internal_link",
    "remove_link_fragment",
    "is_excluded_path",
    "extract_links",
    "CrawledPage",
    "WebCrawler",
    "DocumentLoader",
    "create_document_loader",
]
