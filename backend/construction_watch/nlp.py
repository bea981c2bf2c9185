import copy
import logging
import re
import unicodedata
from dataclasses import dataclass
from datetime import date
from typing import Callable, Iterable, List

from .dedup import content_hash
from .geocoding import GeocodeResolver
from .schemas import (
    ExtractedDate, ExtractedLocation, ExtractionResult, RawArticle, ScraperResult,
)
from .settings import settings
from .sources import (
    CONSTRUCTION_KEYWORDS, CONSTRUCTION_TYPE_KEYWORDS, HCMC_DISTRICTS, HCMC_NAMES, STATUS_KEYWORDS,
)

logger = logging.getLogger(__name__)

# Look-back window (chars) scanned for date cues
DATE_CUE_WINDOW = 50

# (date type, cue phrases, confidence), checked in this order
DATE_CUES = [
    ("start", ["khởi công", "bắt đầu", "triển khai từ", "thi công từ"], 0.8),
    ("end", ["hoàn thành", "kết thúc", "dự kiến hoàn thành", "hoàn thành vào"], 0.8),
    ("announced", ["công bố", "thông báo", "quyết định"], 0.7),
]
DEFAULT_DATE_CONFIDENCE = 0.5

CONFIDENCE_WEIGHTS = {
    "title": 0.15,
    "description": 0.10,
    "dates": 0.15,
    "locations": 0.20,
    "type": 0.10,
    "status": 0.10,
    "coordinates": 0.20,
}

DISTRICT_CONFIDENCE = 0.7
DISTRICT_GEOCODED_CONFIDENCE = 0.8
STREET_CONFIDENCE = 0.5
STREET_GEOCODED_CONFIDENCE = 0.7


@dataclass(frozen=True)
class DatePattern:
    """A date matcher: compiled regex plus a converter that may raise ValueError."""
    name: str
    regex: re.Pattern
    to_date: Callable[[re.Match], date]


def _quarter_start(m: re.Match) -> date:
    q = int(m.group(1))
    if not 1 <= q <= 4:
        raise ValueError(f"invalid quarter {q}")
    return date(int(m.group(2)), (q - 1) * 3 + 1, 1)


DATE_PATTERNS = [
    # 15/3/2024, 15-03-2024
    DatePattern(
        "numeric",
        re.compile(r"(?<!\d)(\d{1,2})[/-](\d{1,2})[/-](\d{4})(?!\d)"),
        lambda m: date(int(m.group(3)), int(m.group(2)), int(m.group(1))),
    ),
    # tháng 6/2025
    DatePattern(
        "month",
        re.compile(r"tháng\s{1,3}(\d{1,2})[/-](\d{4})(?!\d)", re.IGNORECASE),
        lambda m: date(int(m.group(2)), int(m.group(1)), 1),
    ),
    # năm 2026
    DatePattern(
        "year",
        re.compile(r"năm\s{1,3}(\d{4})(?!\d)", re.IGNORECASE),
        lambda m: date(int(m.group(1)), 1, 1),
    ),
    # quý 2/2025
    DatePattern(
        "quarter",
        re.compile(r"quý\s{1,3}(\d)[/-](\d{4})(?!\d)", re.IGNORECASE),
        _quarter_start,
    ),
]

# "đường Nguyễn Huệ", "phố Đồng Khởi". Letters-only words, bounded length and count.
# The name sits in a lookahead so a rejected capture can't swallow the next "đường".
STREET_RE = re.compile(r"(?<!\w)(?i:(đường|phố))\s{1,5}(?=([^\W\d_]{1,20}(?:\s[^\W\d_]{1,20}){0,5}))")


def _compile_terms_regex(terms: Iterable[str]) -> re.Pattern:
    # Word boundaries, flexible (bounded) whitespace inside multi-word terms
    parts = [re.escape(t).replace(r"\ ", r"\s{1,3}") for t in terms]
    return re.compile(rf"(?<!\w)(?:{'|'.join(parts)})(?!\w)", re.IGNORECASE)


def prepare_text(text: str) -> str:
    """NFC-normalize so precomposed and combining-mark spellings match the same patterns."""
    return unicodedata.normalize("NFC", text or "")


def calculate_confidence(
    has_title: bool,
    has_description: bool,
    has_dates: bool,
    has_locations: bool,
    has_type: bool,
    has_status: bool,
    has_coordinates: bool,
) -> float:
    signals = {
        "title": has_title,
        "description": has_description,
        "dates": has_dates,
        "locations": has_locations,
        "type": has_type,
        "status": has_status,
        "coordinates": has_coordinates,
    }
    score = sum(CONFIDENCE_WEIGHTS[k] for k, present in signals.items() if present)
    return round(min(max(score, 0.0), 1.0), 2)


class ArticleExtractor:
    """
    Turns a RawArticle into a ScraperResult.

    Relevance filter -> dates -> locations (geocoded) -> type/status -> confidence.
    Returns None for articles that are untitled or not about construction in HCMC.
    """

    def __init__(
        self,
        geocoder: GeocodeResolver | None = None,
        keywords: Iterable[str] = CONSTRUCTION_KEYWORDS,
        region_names: Iterable[str] = HCMC_NAMES,
        districts: Iterable[str] = HCMC_DISTRICTS,
        date_patterns: List[DatePattern] = DATE_PATTERNS,
        type_keywords: dict[str, List[str]] = CONSTRUCTION_TYPE_KEYWORDS,
        status_keywords: dict[str, List[str]] = STATUS_KEYWORDS,
        region_hint: str | None = None,
        raw_text_max_chars: int | None = None,
    ):
        self.geocoder = geocoder
        self.keywords = list(dict.fromkeys(keywords))
        self.districts = list(dict.fromkeys(districts))
        self.date_patterns = list(date_patterns)
        self.region_hint = region_hint or settings.geocode_city
        self.raw_text_max_chars = raw_text_max_chars or settings.raw_text_max_chars

        self._keyword_res = [(kw, _compile_terms_regex([kw])) for kw in self.keywords]
        self._district_res = [(d, _compile_terms_regex([d])) for d in self.districts]
        self._region_re = _compile_terms_regex(list(region_names) + self.districts)
        self._type_res = [
            (ctype, _compile_terms_regex(kws)) for ctype, kws in type_keywords.items() if kws
        ]
        self._status_res = [
            (status, _compile_terms_regex(kws)) for status, kws in status_keywords.items() if kws
        ]

    def with_keywords(self, keywords: Iterable[str]) -> "ArticleExtractor":
        """Same extractor with a different relevance keyword list (per-source config)."""
        keywords = list(dict.fromkeys(keywords))
        if keywords == self.keywords:
            return self
        clone = copy.copy(self)
        clone.keywords = keywords
        clone._keyword_res = [(kw, _compile_terms_regex([kw])) for kw in keywords]
        return clone

    # --- relevance -------------------------------------------------------

    def extract_keywords(self, text: str) -> List[str]:
        return [kw for kw, rx in self._keyword_res if rx.search(text)]

    def mentions_region(self, text: str) -> bool:
        return self._region_re.search(text) is not None

    def is_relevant(self, text: str) -> bool:
        text = prepare_text(text)
        return bool(self.extract_keywords(text)) and self.mentions_region(text)

    # --- dates -----------------------------------------------------------

    @staticmethod
    def classify_date_context(context: str) -> tuple[str, float]:
        """First cue group (start, end, announced) with a hit wins; no cue -> 'mentioned'."""
        context = context.lower()
        for dtype, cues, conf in DATE_CUES:
            if any(c in context for c in cues):
                return dtype, conf
        return "mentioned", DEFAULT_DATE_CONFIDENCE

    def extract_dates(self, text: str) -> List[ExtractedDate]:
        text = prepare_text(text)
        dates = []
        for pattern in self.date_patterns:
            for m in pattern.regex.finditer(text):
                try:
                    value = pattern.to_date(m)
                except (ValueError, OverflowError):
                    # 31/02/2024 and the like
                    continue
                context = text[max(0, m.start() - DATE_CUE_WINDOW):m.start()]
                dtype, conf = self.classify_date_context(context)
                dates.append(ExtractedDate(type=dtype, date=value, confidence=conf))
        return dates

    # --- locations -------------------------------------------------------

    async def _geocode(self, query: str):
        if self.geocoder is None:
            return None
        try:
            return await self.geocoder.resolve(query, self.region_hint)
        except Exception as e:
            logger.warning(f"Geocoder error for '{query}': {e}")
            return None

    def find_streets(self, text: str) -> List[tuple[str, str]]:
        """(prefix, street name) pairs, keeping only the capitalised leading words."""
        streets = []
        for m in STREET_RE.finditer(prepare_text(text)):
            words = []
            for w in m.group(2).split():
                if not w[0].isupper():
                    break
                words.append(w)
            name = " ".join(words)
            if 2 < len(name) < 50:
                streets.append((m.group(1).lower(), name))
        return list(dict.fromkeys(streets))

    async def extract_locations(self, text: str) -> List[ExtractedLocation]:
        text = prepare_text(text)
        locations = []

        for district, rx in self._district_res:
            if not rx.search(text):
                continue
            loc = ExtractedLocation(text=district, district=district, confidence=DISTRICT_CONFIDENCE)
            coords = await self._geocode(district)
            if coords:
                loc.coordinates = coords
                loc.confidence = DISTRICT_GEOCODED_CONFIDENCE
            locations.append(loc)

        for prefix, name in self.find_streets(text):
            loc = ExtractedLocation(text=f"{prefix} {name}", confidence=STREET_CONFIDENCE)
            coords = await self._geocode(f"{name} street")
            if coords:
                loc.coordinates = coords
                loc.confidence = STREET_GEOCODED_CONFIDENCE
            locations.append(loc)

        return locations

    # --- classification --------------------------------------------------

    def detect_construction_type(self, text: str) -> str | None:
        text = prepare_text(text)
        best_type, best_count = None, 0
        for ctype, rx in self._type_res:
            count = len(rx.findall(text))
            # strict '>' keeps the earlier category on ties
            if count > best_count:
                best_type, best_count = ctype, count
        return best_type

    def detect_status(self, text: str) -> str | None:
        text = prepare_text(text)
        for status, rx in self._status_res:
            if rx.search(text):
                return status
        return None

    # --- main entry ------------------------------------------------------

    async def extract(self, article: RawArticle) -> ScraperResult | None:
        title = (article.title or "").strip()
        if not title:
            logger.debug(f"Dropping untitled article {article.source_url}")
            return None

        full_text = prepare_text(f"{title} {article.description or ''} {article.content}")
        keywords = self.extract_keywords(full_text)
        if not keywords or not self.mentions_region(full_text):
            return None

        dates = self.extract_dates(full_text)
        locations = await self.extract_locations(full_text)
        construction_type = self.detect_construction_type(full_text)
        status = self.detect_status(full_text)

        confidence = calculate_confidence(
            has_title=True,
            has_description=bool((article.description or "").strip()),
            has_dates=bool(dates),
            has_locations=bool(locations),
            has_type=construction_type is not None,
            has_status=status is not None,
            has_coordinates=any(loc.coordinates for loc in locations),
        )

        return ScraperResult(
            source=article.source,
            source_url=article.source_url,
            content_hash=content_hash(article.source_url, title),
            title=title,
            description=article.description,
            raw_text=full_text[:self.raw_text_max_chars],
            extracted_data=ExtractionResult(
                dates=dates,
                locations=locations,
                construction_type=construction_type,
                status=status,
                keywords=keywords,
            ),
            confidence=confidence,
            scraped_at=article.scraped_at,
        )
