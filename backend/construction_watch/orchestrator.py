#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Runs article sources through extraction and turns new results into suggestions.

Each source may run at most once at a time (non-blocking per-source lock); a
second caller gets ScraperAlreadyRunningError instead of waiting. Finished runs
go into a bounded in-memory history and, optionally, a JSONL run log.
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import threading
import time
from collections import deque
from pathlib import Path
from typing import Iterable, List

from .html_scraper import ArticleSource
from .log_utils import append_jsonl
from .nlp import ArticleExtractor
from .schemas import ProcessSummary, ScraperInfo, ScraperResult, ScraperRun, ScraperStatusOut, utcnow
from .settings import settings
from .store import SuggestionStore

logger = logging.getLogger(__name__)

DESCRIPTION_FALLBACK_CHARS = 500
STATUS_RECENT_RUNS = 20


class ScraperAlreadyRunningError(RuntimeError):
    def __init__(self, source: str):
        super().__init__(f"Scraper {source} is already running")
        self.source = source


class UnknownScraperSourceError(KeyError):
    def __init__(self, source: str):
        super().__init__(source)
        self.source = source

    def __str__(self):
        return f"Unknown scraper source: {self.source}"


def _first_date(result: ScraperResult, date_type: str) -> str | None:
    for d in result.extracted_data.dates:
        if d.type == date_type:
            return d.date.isoformat()
    return None


def build_suggestion_fields(result: ScraperResult) -> dict:
    """Map a ScraperResult onto the columns of a new pending suggestion."""
    data = result.extracted_data
    proposed = {
        "title": result.title,
        "description": result.description or result.raw_text[:DESCRIPTION_FALLBACK_CHARS],
    }
    for date_type, key in (("start", "start_date"), ("end", "expected_end_date"), ("announced", "announced_date")):
        value = _first_date(result, date_type)
        if value:
            proposed[key] = value
    if data.construction_type:
        proposed["construction_type"] = data.construction_type
    if data.status:
        proposed["construction_status"] = data.status

    geometry = None
    best = None
    for loc in data.locations:
        # strict '>' keeps the first of equally confident locations
        if loc.coordinates and (best is None or loc.confidence > best.confidence):
            best = loc
    if best is not None:
        geometry = {"type": "Point", "coordinates": [best.coordinates[0], best.coordinates[1]]}

    notes = (
        f"Auto-generated from {result.source} scraper.\n\n"
        f"Extracted keywords: {', '.join(data.keywords)}\n\n"
        f"Locations: {', '.join(loc.text for loc in data.locations)}"
    )

    return {
        "suggestion_type": "create",
        "status": "pending",
        "source_type": "scraper",
        "source_url": result.source_url,
        "source_confidence": result.confidence,
        "content_hash": result.content_hash,
        "proposed_data": proposed,
        "proposed_geometry": geometry,
        "moderator_notes": notes,
    }


class ScraperOrchestrator:
    def __init__(
        self,
        sources: Iterable[ArticleSource],
        extractor: ArticleExtractor,
        store: SuggestionStore | None = None,
        history_size: int | None = None,
        run_log_path: Path | None = None,
    ):
        self.sources = {s.config.source: s for s in sources}
        self.extractor = extractor
        # relevance keywords come from each source's config
        self._extractors = {
            source_id: extractor.with_keywords(s.config.keywords) for source_id, s in self.sources.items()
        }
        self.store = store
        self.run_log_path = run_log_path
        self._locks = {source_id: threading.Lock() for source_id in self.sources}
        self._history: deque[ScraperRun] = deque(maxlen=history_size or settings.run_history_size)

    def _get_source(self, source_id: str) -> ArticleSource:
        try:
            return self.sources[source_id]
        except KeyError:
            raise UnknownScraperSourceError(source_id) from None

    def is_running(self, source_id: str) -> bool:
        self._get_source(source_id)
        return self._locks[source_id].locked()

    async def run_one(self, source_id: str, process: bool = True) -> ScraperRun:
        """Run a single source. Raises ScraperAlreadyRunningError if it is busy."""
        source = self._get_source(source_id)
        lock = self._locks[source_id]
        if not lock.acquire(blocking=False):
            raise ScraperAlreadyRunningError(source_id)
        try:
            run = await self._scrape(source, process)
        finally:
            lock.release()

        self._record(run)
        return run

    async def run_all(self, process: bool = True) -> List[ScraperRun]:
        """Run enabled sources one after another; a crash in one becomes a failed run."""
        runs = []
        for source_id, source in self.sources.items():
            if not source.config.enabled:
                continue
            try:
                runs.append(await self.run_one(source_id, process=process))
            except Exception as e:
                logger.error(f"Scraper {source_id} failed: {e}")
                run = ScraperRun(
                    id=f"{source_id}-{int(time.time() * 1000)}",
                    source=source_id,
                    status="failed",
                    completed_at=utcnow(),
                    errors=[str(e)],
                )
                self._record(run)
                runs.append(run)
        return runs

    async def _scrape(self, source: ArticleSource, process: bool) -> ScraperRun:
        config = source.config
        run = ScraperRun(id=f"{config.source}-{int(time.time() * 1000)}", source=config.source)
        start = time.perf_counter()
        logger.info(f"[{config.source}] scraper run {run.id} started")

        try:
            articles = await source.fetch_articles()
        except Exception as e:
            logger.error(f"[{config.source}] fetching articles failed: {e}")
            run.errors.append(f"Scraper failed: {e}")
            run.status = "failed"
            run.completed_at = utcnow()
            return run

        articles = list(articles)[:config.max_articles]
        run.articles_found = len(articles)

        extractor = self._extractors[config.source]
        results: List[ScraperResult] = []
        for article in articles:
            try:
                result = await extractor.extract(article)
                if result is not None:
                    results.append(result)
                    run.articles_processed += 1
            except Exception as e:
                logger.exception(f"[{config.source}] error processing {article.source_url}")
                run.errors.append(f"Error processing article: {article.source_url} - {e}")
            finally:
                if config.rate_limit_ms > 0:
                    await asyncio.sleep(config.rate_limit_ms / 1000)

        if process and self.store is not None and results:
            # store calls are blocking; keep them off the event loop
            summary = await asyncio.to_thread(self.process_results, results)
            run.suggestions_created = summary.created
            run.duplicates_skipped = summary.duplicates
            run.errors.extend(summary.errors)

        run.status = "completed"
        run.completed_at = utcnow()
        logger.info(
            f"[{config.source}] run {run.id} done in {time.perf_counter() - start:.1f}s: "
            f"found={run.articles_found} processed={run.articles_processed} "
            f"created={run.suggestions_created} duplicates={run.duplicates_skipped} errors={len(run.errors)}"
        )
        return run

    def process_results(self, results: List[ScraperResult]) -> ProcessSummary:
        """Create pending suggestions for results whose content hash is new."""
        summary = ProcessSummary()
        if not results:
            return summary
        if self.store is None:
            raise RuntimeError("process_results requires a suggestion store")

        try:
            existing = set(self.store.find_existing_hashes([r.content_hash for r in results]))
        except Exception as e:
            logger.error(f"Hash lookup failed: {e}")
            summary.errors.append(f"Error checking existing hashes: {e}")
            return summary

        for result in results:
            if result.content_hash in existing:
                summary.duplicates += 1
                continue
            try:
                self.store.create(build_suggestion_fields(result))
            except Exception as e:
                logger.error(f"Failed to create suggestion for {result.source_url}: {e}")
                summary.errors.append(f"Error creating suggestion for {result.source_url}: {e}")
                continue
            # the same article can show up twice in one batch
            existing.add(result.content_hash)
            summary.created += 1

        return summary

    def _record(self, run: ScraperRun):
        snapshot = run.model_copy(deep=True)
        self._history.append(snapshot)
        if self.run_log_path is not None:
            append_jsonl(self.run_log_path, snapshot.model_dump(mode="json"))

    def get_run_history(self, source: str | None = None, limit: int = 20) -> List[ScraperRun]:
        """Most recent runs first, optionally for one source."""
        runs = [r for r in reversed(self._history) if source is None or r.source == source]
        return runs[:max(limit, 0)]

    def get_status(self) -> ScraperStatusOut:
        scrapers = [
            ScraperInfo(
                source=source_id,
                name=source.config.name,
                enabled=source.config.enabled,
                running=self._locks[source_id].locked(),
            )
            for source_id, source in self.sources.items()
        ]
        return ScraperStatusOut(scrapers=scrapers, recent_runs=self.get_run_history(limit=STATUS_RECENT_RUNS))


def build_default_orchestrator(run_log: bool = True) -> ScraperOrchestrator:
    """Wire the configured sources, the Mapbox geocoder and the SQL store."""
    from .geocoding import MapboxGeocoder
    from .html_scraper import build_article_sources
    from .sources import load_scraper_configs
    from .store import SqlSuggestionStore

    configs = load_scraper_configs(settings.sources_file)
    return ScraperOrchestrator(
        sources=build_article_sources(configs),
        extractor=ArticleExtractor(geocoder=MapboxGeocoder()),
        store=SqlSuggestionStore(),
        run_log_path=settings.run_log_file if run_log else None,
    )


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    parser = argparse.ArgumentParser()
    parser.add_argument("--once", action="store_true")
    parser.add_argument("--source", help="Run only this scraper (e.g. vnexpress)")
    parser.add_argument("--dry-run", action="store_true", help="Extract only, don't create suggestions")
    args = parser.parse_args()
    if not args.once:
        print("Use --once; scheduling is handled by the backend server.")
        return

    from .database import Base, engine
    Base.metadata.create_all(bind=engine)

    orchestrator = build_default_orchestrator()
    if args.source:
        runs = [asyncio.run(orchestrator.run_one(args.source, process=not args.dry_run))]
    else:
        runs = asyncio.run(orchestrator.run_all(process=not args.dry_run))
    for run in runs:
        print(run.model_dump_json(indent=2))


if __name__ == "__main__":
    main()
