# -*- coding: utf-8 -*-
import asyncio

import httpx
import pytest

from construction_watch.html_scraper import (
    GovernmentPortalSource, RssArticleSource, build_article_sources, parse_article_html, strip_html,
)
from construction_watch.sources import ScraperConfig

FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"><channel><title>Thời sự</title>
<item>
  <title>Khởi công cầu Thủ Thiêm 4</title>
  <link>https://vnexpress.net/khoi-cong-cau-thu-thiem-4-1.html</link>
  <description>&lt;p&gt;Cây cầu nối Quận 7 với TP Thủ Đức, TP.HCM&lt;/p&gt;</description>
  <pubDate>Mon, 15 Jan 2024 08:00:00 +0700</pubDate>
</item>
<item>
  <title>Hà Nội mở rộng đường Vành đai 4</title>
  <link>https://vnexpress.net/vanh-dai-4-2.html</link>
  <description>Dự án đi qua nhiều huyện ngoại thành Hà Nội</description>
</item>
</channel></rss>"""

ARTICLE_BODY = "Cầu Thủ Thiêm 4 dài hơn 2 km, bắc qua sông Sài Gòn. " * 6

ARTICLE_PAGE = f"""<html><head>
<title>Khởi công cầu Thủ Thiêm 4 - VnExpress</title>
<meta property="og:title" content="Khởi công cầu Thủ Thiêm 4 &amp; đường dẫn">
<meta name="description" content="Cầu khởi công ngày 15/1/2024">
</head><body>
<div class="fck_detail"><p>{ARTICLE_BODY}</p><script>var x = 1;</script><div class="ads">Quảng cáo</div></div>
</body></html>"""

LISTING_PAGE = """<html><body>
<a href="/tin-tuc/khoi-cong-nut-giao-an-phu.html">Khởi công nút giao An Phú</a>
<a href="/tin-tuc/le-hoi-tet-123.html">Lễ hội Tết</a>
<a href="https://other.example.com/tin-tuc/x.html">Ngoài cổng</a>
<a href="/lien-he">Liên hệ</a>
<a href="javascript:void(0)">js</a>
<a href="/tin-tuc/khoi-cong-nut-giao-an-phu.html">trùng</a>
</body></html>"""

PORTAL_ARTICLE = """<html><head><meta property="og:title" content="Khởi công nút giao An Phú"></head>
<body><h1>Khởi công nút giao An Phú</h1><article>Sở Giao thông vận tải TP.HCM khởi công nút giao.</article></body></html>"""

FESTIVAL_ARTICLE = """<html><body><h1>Lễ hội Tết</h1><article>Chương trình nghệ thuật đón năm mới.</article></body></html>"""


def make_transport(routes, calls=None):
    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if calls is not None:
            calls.append(url)
        if url not in routes:
            return httpx.Response(404, text="not found")
        status, body = routes[url]
        return httpx.Response(status, text=body)
    return httpx.MockTransport(handler)


def rss_config(feeds, **kw):
    return ScraperConfig(source="vnexpress", name="VnExpress", base_url="https://vnexpress.net",
                         rate_limit_ms=0, feeds=tuple(feeds), **kw)


def test_parse_article_html():
    parsed = parse_article_html(ARTICLE_PAGE)
    assert parsed["title"] == "Khởi công cầu Thủ Thiêm 4 & đường dẫn"
    assert parsed["description"] == "Cầu khởi công ngày 15/1/2024"
    assert "Cầu Thủ Thiêm 4 dài hơn 2 km" in parsed["content"]
    assert "var x" not in parsed["content"]
    assert "Quảng cáo" not in parsed["content"]


def test_parse_article_html_falls_back_to_h1():
    parsed = parse_article_html("<html><body><h1>Tiêu đề</h1><p>ngắn</p></body></html>")
    assert parsed["title"] == "Tiêu đề"
    assert parsed["description"] is None


def test_strip_html():
    assert strip_html("<p>Quận <b>7</b></p>") == "Quận 7"
    assert strip_html("") == ""


def test_rss_source_keeps_hcmc_items():
    routes = {
        "https://vnexpress.net/rss/thoi-su.rss": (200, FEED),
        "https://vnexpress.net/khoi-cong-cau-thu-thiem-4-1.html": (200, ARTICLE_PAGE),
    }
    calls = []
    source = RssArticleSource(rss_config(["https://vnexpress.net/rss/thoi-su.rss"]),
                              transport=make_transport(routes, calls))

    articles = asyncio.run(source.fetch_articles())

    assert len(articles) == 1
    a = articles[0]
    assert a.source == "vnexpress"
    assert a.source_url == "https://vnexpress.net/khoi-cong-cau-thu-thiem-4-1.html"
    assert a.title == "Khởi công cầu Thủ Thiêm 4"
    assert "TP.HCM" in a.description
    assert "dài hơn 2 km" in a.content
    assert a.published_at is not None and a.published_at.year == 2024
    # the Hà Nội article page is never requested
    assert "https://vnexpress.net/vanh-dai-4-2.html" not in calls


def test_rss_source_respects_max_articles(monkeypatch):
    monkeypatch.setattr(asyncio, "sleep", _no_sleep)
    routes = {
        "https://vnexpress.net/rss/thoi-su.rss": (200, FEED),
        "https://vnexpress.net/rss/kinh-doanh.rss": (200, FEED),
    }
    source = RssArticleSource(
        rss_config(["https://vnexpress.net/rss/thoi-su.rss", "https://vnexpress.net/rss/kinh-doanh.rss"],
                   max_articles=1),
        transport=make_transport(routes),
    )
    articles = asyncio.run(source.fetch_articles())
    # article page 404s: item kept with empty content
    assert len(articles) == 1
    assert articles[0].content == ""


def test_rss_source_raises_when_every_feed_fails(monkeypatch):
    monkeypatch.setattr(asyncio, "sleep", _no_sleep)
    source = RssArticleSource(rss_config(["https://vnexpress.net/rss/thoi-su.rss"]),
                              transport=make_transport({}))
    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(source.fetch_articles())


def test_rss_source_partial_feed_failure(monkeypatch):
    monkeypatch.setattr(asyncio, "sleep", _no_sleep)
    routes = {"https://vnexpress.net/rss/kinh-doanh.rss": (200, FEED)}
    source = RssArticleSource(
        rss_config(["https://vnexpress.net/rss/thoi-su.rss", "https://vnexpress.net/rss/kinh-doanh.rss"]),
        transport=make_transport(routes),
    )
    assert len(asyncio.run(source.fetch_articles())) == 1


async def _no_sleep(_seconds):
    return None


def portal_config():
    return ScraperConfig(source="government", name="Portals", base_url="https://sxd.example.gov.vn",
                         rate_limit_ms=0, listing_pages=("https://sxd.example.gov.vn/tin-tuc",))


def test_extract_article_links():
    source = GovernmentPortalSource(portal_config())
    links = source.extract_article_links(LISTING_PAGE, "https://sxd.example.gov.vn/tin-tuc")
    assert links == [
        "https://sxd.example.gov.vn/tin-tuc/khoi-cong-nut-giao-an-phu.html",
        "https://sxd.example.gov.vn/tin-tuc/le-hoi-tet-123.html",
    ]


def test_portal_source_filters_by_keyword():
    routes = {
        "https://sxd.example.gov.vn/tin-tuc": (200, LISTING_PAGE),
        "https://sxd.example.gov.vn/tin-tuc/khoi-cong-nut-giao-an-phu.html": (200, PORTAL_ARTICLE),
        "https://sxd.example.gov.vn/tin-tuc/le-hoi-tet-123.html": (200, FESTIVAL_ARTICLE),
    }
    source = GovernmentPortalSource(portal_config(), transport=make_transport(routes))
    articles = asyncio.run(source.fetch_articles())

    assert [a.title for a in articles] == ["Khởi công nút giao An Phú"]
    assert articles[0].source == "government"
    assert "Sở Giao thông" in articles[0].content


def test_build_article_sources():
    rss = rss_config(["https://vnexpress.net/rss/thoi-su.rss"], enabled=False)
    sources = build_article_sources([rss, portal_config()])
    assert isinstance(sources[0], RssArticleSource)
    assert isinstance(sources[1], GovernmentPortalSource)
    assert sources[0].config.enabled is False
