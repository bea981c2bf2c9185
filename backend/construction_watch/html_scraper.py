# -*- coding: utf-8 -*-
"""
Article sources: where raw articles come from.

The orchestrator only needs something with a `config` and an async
`fetch_articles()`. Two generic implementations cover the configured sites:
RSS feeds (VnExpress, Tuổi Trẻ) and HTML listing pages (city government
portals). Both fetch the full article page and reduce it to plain text.
"""

import asyncio
import html
import logging
import random
import re
from datetime import datetime, timezone
from typing import List, Optional, Protocol
from urllib.parse import urljoin, urlsplit

import feedparser
import httpx
from bs4 import BeautifulSoup
from dateutil import parser as dtparser

from .schemas import RawArticle
from .settings import settings
from .sources import ScraperConfig

logger = logging.getLogger(__name__)

RSS_ACCEPT = "application/rss+xml, application/xml;q=0.9, */*;q=0.8"
HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"

# Body containers seen on the configured sites, most specific first
CONTENT_SELECTORS = [
    ".fck_detail", ".detail-content", ".detail-cmain", ".cms-body", ".article-body",
    ".content-detail", ".post-content", "#content_detail", "article",
]

# Article links on the government portals
ARTICLE_PATH_RE = re.compile(
    r"(?:/(?:tin-tuc|thong-bao|chi-tiet|ban-tin|van-ban|quyet-dinh|cong-van)/[^?#]{1,300}|-\d{1,12})\.html?$",
    re.IGNORECASE,
)


class ArticleSource(Protocol):
    config: ScraperConfig

    async def fetch_articles(self) -> List[RawArticle]:
        ...


def strip_html(fragment: str) -> str:
    if not fragment:
        return ""
    return BeautifulSoup(fragment, "html.parser").get_text(" ", strip=True)


def parse_article_html(page: str) -> dict:
    """Pull title, description and body text out of an article page."""
    soup = BeautifulSoup(page, "html.parser")

    title = None
    og_title = soup.find("meta", property="og:title")
    if og_title and og_title.get("content"):
        title = og_title["content"]
    elif soup.h1:
        title = soup.h1.get_text(strip=True)
    elif soup.title and soup.title.string:
        title = soup.title.string

    description = None
    og_desc = soup.find("meta", property="og:description") or soup.find("meta", attrs={"name": "description"})
    if og_desc and og_desc.get("content"):
        description = og_desc["content"]

    content_text = ""
    for selector in CONTENT_SELECTORS:
        container = soup.select_one(selector)
        if container:
            for unwanted in container.select("script, style, .sidebar, .ads, .comment"):
                unwanted.decompose()
            content_text = container.get_text(separator="\n", strip=True)
            if len(content_text) > 200:
                break

    if len(content_text) < 200:
        paragraphs = [p.get_text(strip=True) for p in soup.find_all("p") if len(p.get_text(strip=True)) > 40]
        content_text = "\n".join(paragraphs) or content_text

    return {
        "title": html.unescape(title).strip() if title else None,
        "description": html.unescape(description).strip() if description else None,
        "content": content_text,
    }


def _entry_published(entry) -> Optional[datetime]:
    tt = entry.get("published_parsed") or entry.get("updated_parsed")
    if tt:
        return datetime(*tt[:6], tzinfo=timezone.utc)
    raw = entry.get("published") or entry.get("updated")
    if raw:
        try:
            dt = dtparser.parse(raw)
        except (ValueError, OverflowError):
            return None
        return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
    return None


class HttpArticleSource:
    """Shared fetching machinery: one client per run, retries, UA rotation, politeness delay."""

    def __init__(self, config: ScraperConfig, timeout: int | None = None,
                 transport: httpx.AsyncBaseTransport | None = None):
        self.config = config
        self.timeout = timeout or settings.request_timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        timeout = httpx.Timeout(self.timeout, connect=10.0)
        limits = httpx.Limits(max_keepalive_connections=10, max_connections=20)
        return httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            limits=limits,
            transport=self._transport,
            headers={"User-Agent": settings.user_agent, "Accept-Language": "vi-VN,vi;q=0.9,en;q=0.5"},
        )

    async def _delay(self):
        if self.config.rate_limit_ms > 0:
            await asyncio.sleep(self.config.rate_limit_ms / 1000)

    async def _get_with_retry(self, client: httpx.AsyncClient, url: str, accept: str = HTML_ACCEPT) -> httpx.Response:
        """GET with 3 attempts and linear back-off. Re-raises the last httpx error."""
        for attempt in range(3):
            try:
                headers = {"Accept": accept}
                if settings.user_agents:
                    headers["User-Agent"] = random.choice(settings.user_agents)
                r = await client.get(url, headers=headers)
                r.raise_for_status()
                return r
            except httpx.HTTPError as e:
                if attempt == 2:
                    raise
                logger.debug(f"Retry {attempt + 1} for {url}: {e}")
                await asyncio.sleep(0.5 * (attempt + 1))

    async def fetch_article_page(self, client: httpx.AsyncClient, url: str) -> Optional[dict]:
        try:
            r = await self._get_with_retry(client, url)
        except httpx.HTTPError as e:
            logger.warning(f"[{self.config.source}] failed to fetch article {url}: {e}")
            return None
        return parse_article_html(r.text)

    def _mentions_region(self, text: str) -> bool:
        t = text.lower()
        return any(term.lower() in t for term in self.config.region_terms)

    def _has_keyword(self, text: str) -> bool:
        t = text.lower()
        return any(kw.lower() in t for kw in self.config.keywords)


class RssArticleSource(HttpArticleSource):
    """Reads the configured RSS feeds and keeps HCMC-related items."""

    async def fetch_articles(self) -> List[RawArticle]:
        articles: List[RawArticle] = []
        seen_urls = set()
        failures: List[Exception] = []
        limit = self.config.max_articles

        async with self._client() as client:
            for feed_url in self.config.feeds:
                if len(articles) >= limit:
                    break
                try:
                    r = await self._get_with_retry(client, feed_url, accept=RSS_ACCEPT)
                except httpx.HTTPError as e:
                    logger.error(f"[{self.config.source}] RSS fetch failed {feed_url}: {e}")
                    failures.append(e)
                    continue

                parsed = feedparser.parse(r.content)
                if parsed.bozo and not parsed.entries:
                    logger.warning(f"[{self.config.source}] malformed feed {feed_url}: {parsed.get('bozo_exception')}")

                for entry in parsed.entries:
                    if len(articles) >= limit:
                        break
                    link = (entry.get("link") or "").strip()
                    title = html.unescape(entry.get("title") or "").strip()
                    if not link or not title or link.lower() in seen_urls:
                        continue
                    summary = strip_html(entry.get("summary") or "")
                    if not self._mentions_region(f"{title} {summary}"):
                        continue
                    seen_urls.add(link.lower())

                    page = await self.fetch_article_page(client, link)
                    articles.append(RawArticle(
                        source=self.config.source,
                        source_url=link,
                        title=title,
                        description=summary or None,
                        content=(page or {}).get("content") or "",
                        published_at=_entry_published(entry),
                    ))
                    await self._delay()

                await self._delay()

        if failures and len(failures) == len(self.config.feeds):
            raise failures[-1]
        return articles[:limit]


class GovernmentPortalSource(HttpArticleSource):
    """Walks the news listing pages of the city portals and follows article links."""

    def extract_article_links(self, page: str, page_url: str) -> List[str]:
        host = urlsplit(page_url).hostname
        links = []
        soup = BeautifulSoup(page, "html.parser")
        for a in soup.find_all("a", href=True):
            href = a["href"].strip()
            if not href or href.startswith(("javascript:", "mailto:", "#")):
                continue
            url = urljoin(page_url, href)
            parts = urlsplit(url)
            if parts.hostname != host or not ARTICLE_PATH_RE.search(parts.path):
                continue
            if url not in links:
                links.append(url)
        return links

    async def fetch_articles(self) -> List[RawArticle]:
        articles: List[RawArticle] = []
        failures: List[Exception] = []
        limit = self.config.max_articles

        async with self._client() as client:
            for listing_url in self.config.listing_pages:
                if len(articles) >= limit:
                    break
                try:
                    r = await self._get_with_retry(client, listing_url)
                except httpx.HTTPError as e:
                    logger.error(f"[{self.config.source}] listing fetch failed {listing_url}: {e}")
                    failures.append(e)
                    continue

                for link in self.extract_article_links(r.text, listing_url):
                    if len(articles) >= limit:
                        break
                    if any(a.source_url.lower() == link.lower() for a in articles):
                        continue
                    page = await self.fetch_article_page(client, link)
                    await self._delay()
                    if not page or not page["title"]:
                        continue
                    text = f"{page['title']} {page['description'] or ''} {page['content']}"
                    if not self._has_keyword(text):
                        continue
                    articles.append(RawArticle(
                        source=self.config.source,
                        source_url=link,
                        title=page["title"],
                        description=page["description"],
                        content=page["content"],
                    ))

                await self._delay()

        if failures and len(failures) == len(self.config.listing_pages):
            raise failures[-1]
        return articles[:limit]


def build_article_sources(configs: List[ScraperConfig],
                          transport: httpx.AsyncBaseTransport | None = None) -> List[HttpArticleSource]:
    """One source per config: listing pages -> portal source, otherwise RSS."""
    sources: List[HttpArticleSource] = []
    for cfg in configs:
        if cfg.listing_pages:
            sources.append(GovernmentPortalSource(cfg, transport=transport))
        else:
            sources.append(RssArticleSource(cfg, transport=transport))
    return sources
