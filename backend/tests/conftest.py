import asyncio

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from construction_watch import models  # noqa: F401  register tables
from construction_watch.database import Base
from construction_watch.dedup import content_hash
from construction_watch.schemas import (
    ExtractedDate, ExtractedLocation, ExtractionResult, RawArticle, ScraperResult,
)
from construction_watch.sources import ScraperConfig


class FakeGeocoder:
    def __init__(self, known=None, error=None):
        self.known = known or {}
        self.error = error
        self.calls = []

    async def resolve(self, location, region_hint):
        self.calls.append((location, region_hint))
        if self.error:
            raise self.error
        return self.known.get(location)


class FakeSource:
    def __init__(self, source="fake", articles=None, error=None, enabled=True, delay=0.0, max_articles=20,
                 keywords=None):
        extra = {"keywords": tuple(keywords)} if keywords is not None else {}
        self.config = ScraperConfig(
            source=source,
            name=source.title(),
            base_url="https://example.com",
            enabled=enabled,
            max_articles=max_articles,
            rate_limit_ms=0,
            **extra,
        )
        self.articles = articles or []
        self.error = error
        self.delay = delay
        self.calls = 0

    async def fetch_articles(self):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return list(self.articles)


class FakeStore:
    def __init__(self, existing=None, fail_urls=None):
        self.existing = set(existing or [])
        self.fail_urls = set(fail_urls or [])
        self.created = []
        self.lookups = []

    def find_existing_hashes(self, hashes):
        hashes = list(hashes)
        self.lookups.append(hashes)
        return {h for h in hashes if h in self.existing}

    def create(self, fields):
        if fields["source_url"] in self.fail_urls:
            raise RuntimeError("db down")
        self.created.append(fields)
        return fields


def make_article(url="https://vnexpress.net/a-1.html", title="Khởi công cầu mới tại TP.HCM",
                 description=None, content="", source="fake"):
    return RawArticle(source=source, source_url=url, title=title, description=description, content=content)


def make_result(url, title="Cầu Thủ Thiêm 4", locations=None, dates=None, description=None,
                confidence=0.5, source="fake"):
    return ScraperResult(
        source=source,
        source_url=url,
        content_hash=content_hash(url, title),
        title=title,
        description=description,
        raw_text=f"{title} nội dung bài viết",
        extracted_data=ExtractionResult(
            dates=dates or [],
            locations=locations or [],
            keywords=["cầu"],
        ),
        confidence=confidence,
    )


# A relevant article: keyword + HCMC mention, two cued dates, a district and a street
RELEVANT_CONTENT = (
    "UBND TP.HCM cho biết dự án khởi công ngày 15/3/2024 và theo kế hoạch sẽ dự kiến hoàn thành vào 30/6/2026. "
    "Công trình nằm trên đường Nguyễn Văn Linh, Quận 7. Cầu dài 1,2 km."
)


@pytest.fixture
def relevant_article():
    return make_article(
        url="https://vnexpress.net/khoi-cong-cau-thu-thiem-4-123.html",
        title="Khởi công cầu Thủ Thiêm 4 tại TP.HCM",
        content=RELEVANT_CONTENT,
    )


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    yield factory
    engine.dispose()


@pytest.fixture
def sample_locations():
    return [
        ExtractedLocation(text="Quận 7", district="Quận 7", confidence=0.7),
        ExtractedLocation(text="đường Nguyễn Văn Linh", confidence=0.7, coordinates=(106.70, 10.73)),
        ExtractedLocation(text="Quận 1", district="Quận 1", confidence=0.8, coordinates=(106.6953, 10.7769)),
        ExtractedLocation(text="Quận 3", district="Quận 3", confidence=0.8, coordinates=(106.6844, 10.7834)),
    ]


@pytest.fixture
def sample_dates():
    from datetime import date
    return [
        ExtractedDate(type="mentioned", date=date(2023, 1, 1), confidence=0.5),
        ExtractedDate(type="start", date=date(2024, 3, 15), confidence=0.8),
        ExtractedDate(type="start", date=date(2024, 9, 1), confidence=0.8),
        ExtractedDate(type="end", date=date(2026, 6, 30), confidence=0.8),
    ]
