from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict

from pydantic import Field

# This file is in backend/construction_watch/settings.py -> parent.parent is backend/
BASE_DIR = Path(__file__).resolve().parent.parent
# SQLite is the simple default, a PostgreSQL URL can be supplied via env var
DB_PATH = BASE_DIR / "data" / "app.db"
LOGS_DIR = BASE_DIR / "logs"

class Settings(BaseSettings):
    app_db_url: str = Field(
        default="sqlite:///" + str(DB_PATH),
        validation_alias="APP_DB_URL"
    )

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    crawl_interval_minutes: int = 360
    app_timezone: str = "Asia/Ho_Chi_Minh"
    user_agent: str = "Mozilla/5.0 (compatible; HCMCConstructionBot/1.0)"

    # List of rotate user agents
    user_agents: list[str] = [
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:109.0) Gecko/20100101 Firefox/121.0",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:109.0) Gecko/20100101 Firefox/121.0",
    ]

    # Geocoding (Mapbox forward geocoding). Without a token only the
    # built-in district table is used.
    mapbox_access_token: str | None = Field(default=None, validation_alias="MAPBOX_ACCESS_TOKEN")
    geocode_city: str = "Ho Chi Minh City"
    # min_lng, min_lat, max_lng, max_lat
    geocode_bbox: tuple[float, float, float, float] = (106.3, 10.3, 107.1, 11.2)
    geocode_timeout_seconds: float = 10.0

    # Keep timeouts short so one slow site doesn't stall a whole run
    request_timeout_seconds: int = 15

    raw_text_max_chars: int = 50_000
    run_history_size: int = 100
    run_log_max_lines: int = 1000

    sources_file: Path = BASE_DIR / "sources.json"
    run_log_file: Path = LOGS_DIR / "scraper_runs.jsonl"

settings = Settings()
