from sqlalchemy import String, Integer, DateTime, Text, Float, JSON
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime
from .database import Base
from .schemas import utcnow

class Suggestion(Base):
    """A moderation-queue item proposing a new or changed construction record."""
    __tablename__ = "suggestions"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    suggestion_type: Mapped[str] = mapped_column(String(32), default="create")
    status: Mapped[str] = mapped_column(String(32), index=True, default="pending")

    # where it came from: scraper / contributor / ...
    source_type: Mapped[str] = mapped_column(String(32), index=True, default="scraper")
    source_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    content_hash: Mapped[str | None] = mapped_column(String(64), index=True, nullable=True)

    proposed_data: Mapped[dict] = mapped_column(JSON, default=dict)
    # GeoJSON geometry, e.g. {"type": "Point", "coordinates": [lng, lat]}
    proposed_geometry: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    moderator_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    submitted_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    reviewed_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    review_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, onupdate=utcnow)
