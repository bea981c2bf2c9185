from datetime import date, datetime, timezone
from typing import Any, Literal
from pydantic import BaseModel, ConfigDict, Field

DateType = Literal["start", "end", "announced", "mentioned"]
ConstructionType = Literal["road", "bridge", "metro", "building", "infrastructure", "utility", "other"]
ConstructionStatus = Literal["planned", "in_progress", "delayed", "completed", "cancelled"]
RunStatus = Literal["running", "completed", "failed"]
SuggestionStatus = Literal[
    "pending", "under_review", "changes_requested", "approved", "rejected", "merged", "superseded"
]
WorkflowAction = Literal[
    "start_review", "approve", "reject", "request_changes", "resubmit", "merge", "supersede"
]
Role = Literal["contributor", "moderator", "admin"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RawArticle(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: str
    source_url: str
    title: str = ""
    description: str | None = None
    content: str = ""
    published_at: datetime | None = None
    scraped_at: datetime = Field(default_factory=utcnow)


class ExtractedDate(BaseModel):
    type: DateType
    date: date
    confidence: float


class ExtractedLocation(BaseModel):
    text: str
    confidence: float
    # (longitude, latitude)
    coordinates: tuple[float, float] | None = None
    district: str | None = None


class ExtractionResult(BaseModel):
    dates: list[ExtractedDate] = []
    locations: list[ExtractedLocation] = []
    construction_type: ConstructionType | None = None
    status: ConstructionStatus | None = None
    keywords: list[str] = []


class ScraperResult(BaseModel):
    source: str
    source_url: str
    content_hash: str
    title: str
    description: str | None = None
    raw_text: str
    extracted_data: ExtractionResult
    confidence: float
    scraped_at: datetime = Field(default_factory=utcnow)


class ScraperRun(BaseModel):
    id: str
    source: str
    status: RunStatus = "running"
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: datetime | None = None
    articles_found: int = 0
    articles_processed: int = 0
    suggestions_created: int = 0
    duplicates_skipped: int = 0
    errors: list[str] = []


class ProcessSummary(BaseModel):
    created: int = 0
    duplicates: int = 0
    errors: list[str] = []


class TransitionResult(BaseModel):
    success: bool
    new_status: SuggestionStatus | None = None
    error: str | None = None


class SuggestionOut(BaseModel):
    id: int
    suggestion_type: str
    status: SuggestionStatus
    source_type: str
    source_url: str | None = None
    source_confidence: float | None = None
    content_hash: str | None = None
    proposed_data: dict[str, Any] = {}
    proposed_geometry: dict[str, Any] | None = None
    moderator_notes: str | None = None
    submitted_by: str | None = None
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    review_notes: str | None = None
    created_at: datetime
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class WorkflowActionResult(BaseModel):
    success: bool
    suggestion: SuggestionOut | None = None
    error: str | None = None
    status_code: int | None = None


class ScraperRunRequest(BaseModel):
    source: str | None = None
    dry_run: bool = False


class WorkflowActionRequest(BaseModel):
    action: WorkflowAction
    role: Role | None = None
    user_id: str
    review_notes: str | None = None


class ScraperInfo(BaseModel):
    source: str
    name: str
    enabled: bool
    running: bool


class ScraperStatusOut(BaseModel):
    scrapers: list[ScraperInfo]
    recent_runs: list[ScraperRun]
