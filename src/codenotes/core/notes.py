"""Note model and its persisted record shape."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any

from codenotes.utils.time import utc_iso

RATING_MIN = 0
RATING_MAX = 10
UNRATEABLE = -1


@dataclass(frozen=True)
class Note:
    id: str
    repo_url: str
    rating: int | None
    description: str
    gemini_analysis: str | None
    created_at: str


def new_note_id() -> str:
    return f"note_{uuid.uuid4().hex}"


def is_valid_rating(value: int) -> bool:
    return UNRATEABLE <= value <= RATING_MAX


def note_to_record(note: Note) -> dict[str, Any]:
    record: dict[str, Any] = {
        "id": note.id,
        "repoUrl": note.repo_url,
        "rating": note.rating,
        "description": note.description,
        "createdAt": note.created_at,
    }
    if note.gemini_analysis is not None:
        record["geminiAnalysis"] = note.gemini_analysis
    return record


def note_from_record(record: dict[str, Any], default_created_at: str | None = None) -> Note:
    """Build a note from a stored record.

    Records written before ``createdAt`` existed receive ``default_created_at``
    (or the current time). Raises ``ValueError`` when ``id`` or ``repoUrl`` is
    missing.
    """
    if not isinstance(record, dict):
        raise ValueError(f"Note record must be an object, got {type(record).__name__}")
    note_id = record.get("id")
    repo_url = record.get("repoUrl")
    if not isinstance(note_id, str) or not note_id:
        raise ValueError("Note record is missing 'id'")
    if not isinstance(repo_url, str) or not repo_url:
        raise ValueError(f"Note {note_id} is missing 'repoUrl'")

    rating = record.get("rating")
    if isinstance(rating, bool) or not isinstance(rating, (int, float)):
        rating = None
    else:
        rating = int(rating)
        if not is_valid_rating(rating):
            rating = UNRATEABLE

    analysis = record.get("geminiAnalysis")
    created_at = record.get("createdAt")
    if not isinstance(created_at, str) or not created_at:
        created_at = default_created_at or utc_iso()

    return Note(
        id=note_id,
        repo_url=repo_url,
        rating=rating,
        description=str(record.get("description") or ""),
        gemini_analysis=analysis if isinstance(analysis, str) else None,
        created_at=created_at,
    )
