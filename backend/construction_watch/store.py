import logging
from typing import Any, Callable, Iterable, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from .database import SessionLocal
from .models import Suggestion

logger = logging.getLogger(__name__)

# Keep IN (...) lists well under SQLite's bound-parameter limit
HASH_QUERY_CHUNK = 500


class SuggestionStore(Protocol):
    def find_existing_hashes(self, hashes: Iterable[str]) -> set[str]:
        ...

    def create(self, fields: dict[str, Any]) -> Suggestion:
        ...

    def get(self, suggestion_id: int) -> Suggestion | None:
        ...

    def update(self, suggestion_id: int, fields: dict[str, Any]) -> Suggestion | None:
        ...


class SqlSuggestionStore:
    """Suggestion persistence on top of SQLAlchemy sessions."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def find_existing_hashes(self, hashes: Iterable[str]) -> set[str]:
        wanted = list(dict.fromkeys(h for h in hashes if h))
        found: set[str] = set()
        if not wanted:
            return found
        with self.session_factory() as db:
            for i in range(0, len(wanted), HASH_QUERY_CHUNK):
                chunk = wanted[i:i + HASH_QUERY_CHUNK]
                rows = db.execute(
                    select(Suggestion.content_hash).where(Suggestion.content_hash.in_(chunk))
                ).scalars()
                found.update(rows)
        return found

    def create(self, fields: dict[str, Any]) -> Suggestion:
        with self.session_factory() as db:
            suggestion = Suggestion(**fields)
            db.add(suggestion)
            try:
                db.commit()
            except Exception:
                db.rollback()
                raise
            db.refresh(suggestion)
            logger.debug(f"Created suggestion {suggestion.id} ({suggestion.content_hash})")
            return suggestion

    def get(self, suggestion_id: int) -> Suggestion | None:
        with self.session_factory() as db:
            return db.get(Suggestion, suggestion_id)

    def update(self, suggestion_id: int, fields: dict[str, Any]) -> Suggestion | None:
        with self.session_factory() as db:
            suggestion = db.get(Suggestion, suggestion_id)
            if suggestion is None:
                return None
            for key, value in fields.items():
                setattr(suggestion, key, value)
            try:
                db.commit()
            except Exception:
                db.rollback()
                raise
            db.refresh(suggestion)
            return suggestion
