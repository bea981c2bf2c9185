import json
from pathlib import Path

from construction_watch.sources import DEFAULT_SCRAPER_CONFIGS, load_scraper_configs

REPO_SOURCES = Path(__file__).resolve().parents[1] / "sources.json"


def test_shipped_sources_file_matches_defaults():
    configs = load_scraper_configs(REPO_SOURCES)
    assert [c.source for c in configs] == ["vnexpress", "tuoitre", "government"]
    assert configs == DEFAULT_SCRAPER_CONFIGS


def test_loader_reads_overrides(tmp_path):
    path = tmp_path / "sources.json"
    path.write_text(json.dumps({"scrapers": [{
        "source": "vnexpress",
        "base_url": "https://vnexpress.net",
        "enabled": False,
        "max_articles": 5,
        "keywords": ["metro"],
        "feeds": ["https://vnexpress.net/rss/thoi-su.rss"],
    }]}), encoding="utf-8")

    [cfg] = load_scraper_configs(path)
    assert cfg.name == "vnexpress"
    assert cfg.enabled is False
    assert cfg.max_articles == 5
    assert cfg.keywords == ("metro",)
    assert cfg.feeds == ("https://vnexpress.net/rss/thoi-su.rss",)
    assert cfg.rate_limit_ms == 1000


def test_missing_or_invalid_file_falls_back(tmp_path):
    assert load_scraper_configs(tmp_path / "nope.json") == DEFAULT_SCRAPER_CONFIGS

    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    assert load_scraper_configs(bad) == DEFAULT_SCRAPER_CONFIGS

    missing_key = tmp_path / "missing.json"
    missing_key.write_text(json.dumps({"scrapers": [{"name": "x"}]}), encoding="utf-8")
    assert load_scraper_configs(missing_key) == DEFAULT_SCRAPER_CONFIGS

    empty = tmp_path / "empty.json"
    empty.write_text(json.dumps({"scrapers": []}), encoding="utf-8")
    assert load_scraper_configs(empty) == DEFAULT_SCRAPER_CONFIGS
