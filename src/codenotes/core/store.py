"""In-memory note collection with persistence after every mutation."""

from __future__ import annotations

import enum
import logging
from collections.abc import Iterable
from typing import Any, Protocol

from codenotes.core.notes import Note, note_from_record, note_to_record
from codenotes.utils.time import sort_key, utc_iso

logger = logging.getLogger(__name__)


class NotePersistenceLike(Protocol):
    def read(self) -> list[dict[str, Any]]: ...

    def write(self, notes: Iterable[Note]) -> None: ...


class SaveOutcome(enum.Enum):
    CREATED = "created"
    UPDATED = "updated"

    @property
    def message(self) -> str:
        if self is SaveOutcome.CREATED:
            return "New note saved."
        return "Note updated."


class NoteStore:
    """Owns the note collection.

    The collection is kept newest first by ``created_at`` after every insert
    or update. Deletes keep the relative order of the remaining notes. Every
    mutation writes the full collection through the persistence adapter.
    Operations are synchronous and must not be interleaved on one instance.
    """

    def __init__(self, persistence: NotePersistenceLike) -> None:
        self._persistence = persistence
        self._notes: list[Note] = []
        self._selected_id: str | None = None

    @property
    def notes(self) -> tuple[Note, ...]:
        return tuple(self._notes)

    @property
    def selected_id(self) -> str | None:
        return self._selected_id

    def __len__(self) -> int:
        return len(self._notes)

    def load(self) -> tuple[Note, ...]:
        try:
            records = self._persistence.read()
        except Exception:
            logger.exception("Failed to read stored notes; starting empty")
            records = []

        loaded_at = utc_iso()
        notes: list[Note] = []
        seen: set[str] = set()
        migrated = False
        for record in records:
            try:
                note = note_from_record(record, default_created_at=loaded_at)
            except ValueError as exc:
                logger.warning("Skipping unreadable note record: %s", exc)
                migrated = True
                continue
            if note.id in seen:
                logger.warning("Skipping duplicate note id %s", note.id)
                migrated = True
                continue
            seen.add(note.id)
            notes.append(note)
            if note_to_record(note) != record:
                migrated = True

        self._notes = _sorted(notes)
        self._selected_id = None
        if migrated:
            # Defaults such as createdAt are assigned once and kept.
            try:
                self._persist()
            except Exception:
                logger.exception("Failed to write migrated notes")
        return self.notes

    def get(self, note_id: str) -> Note | None:
        for note in self._notes:
            if note.id == note_id:
                return note
        return None

    def save(self, note: Note) -> SaveOutcome:
        index = self._index_of(note.id)
        if index is None:
            self._notes.insert(0, note)
            outcome = SaveOutcome.CREATED
        else:
            self._notes[index] = note
            outcome = SaveOutcome.UPDATED
        self._notes = _sorted(self._notes)
        self._selected_id = None
        self._persist()
        logger.info("Note %s %s", note.id, outcome.value)
        return outcome

    def delete(self, note_id: str) -> bool:
        """Remove a note. Confirmation is the caller's responsibility."""
        index = self._index_of(note_id)
        if index is None:
            return False
        del self._notes[index]
        if self._selected_id == note_id:
            self._selected_id = None
        self._persist()
        logger.info("Note %s deleted", note_id)
        return True

    def select(self, note_id: str) -> Note:
        note = self.get(note_id)
        if note is None:
            raise KeyError(note_id)
        self._selected_id = note_id
        return note

    def selected(self) -> Note | None:
        if self._selected_id is None:
            return None
        return self.get(self._selected_id)

    def clear_selection(self) -> None:
        self._selected_id = None

    def _index_of(self, note_id: str) -> int | None:
        for index, note in enumerate(self._notes):
            if note.id == note_id:
                return index
        return None

    def _persist(self) -> None:
        self._persistence.write(self._notes)


def _sorted(notes: Iterable[Note]) -> list[Note]:
    return sorted(notes, key=lambda note: sort_key(note.created_at), reverse=True)
