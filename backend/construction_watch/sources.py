from dataclasses import dataclass
from typing import Literal, List
import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

ScraperSource = Literal["vnexpress", "tuoitre", "government"]

# Construction related terms (Vietnamese). Matched case-insensitively.
CONSTRUCTION_KEYWORDS = [
    # General construction
    "xây dựng", "công trình", "thi công", "khởi công", "hoàn thành",
    # Road / infrastructure
    "đường", "cầu", "hầm", "cao tốc", "quốc lộ",
    # Metro / rail
    "metro", "tàu điện", "đường sắt", "ga",
    # Urban
    "dự án", "quy hoạch", "khu đô thị", "chung cư", "cao ốc",
    # Government
    "UBND", "Sở Giao thông", "Sở Xây dựng", "đầu tư công", "ngân sách",
    # Progress
    "chậm tiến độ", "đúng tiến độ", "tạm dừng",
]

# Canonical names and abbreviations of the city itself
HCMC_NAMES = ["hồ chí minh", "tp.hcm", "tp hcm", "tphcm", "sài gòn"]

HCMC_DISTRICTS = [
    # Urban districts
    "Quận 1", "Quận 3", "Quận 4", "Quận 5", "Quận 6", "Quận 7", "Quận 8",
    "Quận 10", "Quận 11", "Quận 12",
    "Bình Thạnh", "Gò Vấp", "Phú Nhuận", "Tân Bình", "Tân Phú",
    "Thủ Đức", "Bình Tân",
    # Suburban districts
    "Củ Chi", "Hóc Môn", "Bình Chánh", "Nhà Bè", "Cần Giờ",
    # Common abbreviations
    "Q1", "Q3", "Q4", "Q5", "Q6", "Q7", "Q8", "Q10", "Q11", "Q12",
]

# Order matters: ties in occurrence count go to the earlier category.
CONSTRUCTION_TYPE_KEYWORDS = {
    "road": ["đường", "cao tốc", "quốc lộ", "tỉnh lộ", "hương lộ", "đại lộ"],
    "bridge": ["cầu", "cầu vượt", "cầu đi bộ"],
    "metro": ["metro", "tàu điện", "đường sắt", "ga metro", "tuyến metro"],
    "building": ["cao ốc", "tòa nhà", "chung cư", "trung tâm thương mại"],
    "infrastructure": ["hạ tầng", "điện", "nước", "thoát nước", "chiếu sáng"],
    "utility": ["viễn thông", "cáp ngầm", "trạm biến áp"],
    "other": [],
}

# Priority order: the first status with any hit wins.
STATUS_KEYWORDS = {
    "planned": ["quy hoạch", "dự kiến", "đề xuất", "chuẩn bị"],
    "in_progress": ["đang thi công", "triển khai", "thực hiện", "tiến hành"],
    "delayed": ["chậm tiến độ", "đình trệ", "tạm dừng", "vướng mắc"],
    "completed": ["hoàn thành", "khánh thành", "đưa vào sử dụng", "nghiệm thu"],
    "cancelled": ["hủy bỏ", "dừng dự án", "chấm dứt"],
}


@dataclass(frozen=True)
class ScraperConfig:
    source: str
    name: str
    base_url: str
    enabled: bool = True
    keywords: tuple[str, ...] = tuple(CONSTRUCTION_KEYWORDS)
    max_articles: int = 20
    rate_limit_ms: int = 1000  # delay between requests
    # Fetch hints for the generic sources in html_scraper
    feeds: tuple[str, ...] = ()
    listing_pages: tuple[str, ...] = ()
    region_terms: tuple[str, ...] = tuple(HCMC_NAMES)


DEFAULT_SCRAPER_CONFIGS: List[ScraperConfig] = [
    ScraperConfig(
        source="vnexpress",
        name="VnExpress",
        base_url="https://vnexpress.net",
        feeds=(
            "https://vnexpress.net/rss/thoi-su.rss",
            "https://vnexpress.net/rss/kinh-doanh.rss",
            "https://vnexpress.net/rss/bat-dong-san.rss",
        ),
    ),
    ScraperConfig(
        source="tuoitre",
        name="Tuổi Trẻ Online",
        base_url="https://tuoitre.vn",
        feeds=(
            "https://tuoitre.vn/rss/thoi-su.rss",
            "https://tuoitre.vn/rss/kinh-doanh.rss",
            "https://tuoitre.vn/rss/bat-dong-san.rss",
            "https://tuoitre.vn/rss/xe.rss",
        ),
    ),
    ScraperConfig(
        source="government",
        name="HCMC Government Portals",
        base_url="https://www.hochiminhcity.gov.vn",
        rate_limit_ms=2000,
        listing_pages=(
            "https://www.hochiminhcity.gov.vn/tin-tuc",
            "https://sgtvt.hochiminhcity.gov.vn/tin-tuc",
            "https://sxd.hochiminhcity.gov.vn/tin-tuc",
            "https://dpi.hochiminhcity.gov.vn/tin-tuc",
        ),
    ),
]


def _config_from_dict(s: dict) -> ScraperConfig:
    extra = {}
    for key in ("keywords", "feeds", "listing_pages", "region_terms"):
        if s.get(key) is not None:
            extra[key] = tuple(s[key])
    return ScraperConfig(
        source=s["source"],
        name=s.get("name", s["source"]),
        base_url=s["base_url"],
        enabled=bool(s.get("enabled", True)),
        max_articles=int(s.get("max_articles", 20)),
        rate_limit_ms=int(s.get("rate_limit_ms", 1000)),
        **extra,
    )


def load_scraper_configs(file_path: str | Path) -> List[ScraperConfig]:
    """Read scraper configs from sources.json, falling back to the built-in set."""
    path = Path(file_path)
    if not path.exists():
        logger.info(f"{path} not found, using default scraper configs")
        return list(DEFAULT_SCRAPER_CONFIGS)

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        configs = [_config_from_dict(s) for s in data.get("scrapers", [])]
    except (ValueError, KeyError, TypeError) as e:
        logger.error(f"Invalid scraper config in {path}: {e}")
        return list(DEFAULT_SCRAPER_CONFIGS)

    return configs or list(DEFAULT_SCRAPER_CONFIGS)
