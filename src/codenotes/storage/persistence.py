"""Persist the note collection under one key."""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import Any

from codenotes.core.kv import KeyValueStore
from codenotes.core.notes import Note, note_to_record
from codenotes.core.settings import Settings
from codenotes.core.store import NoteStore
from codenotes.storage.db import initialize_db
from codenotes.storage.kv_store import SQLiteKeyValueStore

NOTES_KEY = "code_notes_v2"


class NotePersistence:
    def __init__(self, kv: KeyValueStore, key: str = NOTES_KEY) -> None:
        self._kv = kv
        self._key = key

    def read(self) -> list[dict[str, Any]]:
        raw = self._kv.get(self._key)
        if raw is None:
            return []
        data = json.loads(raw)
        if not isinstance(data, list):
            raise ValueError(
                f"Stored notes under {self._key!r} must be a JSON array, "
                f"got {type(data).__name__}"
            )
        return data

    def write(self, notes: Iterable[Note]) -> None:
        payload = [note_to_record(note) for note in notes]
        self._kv.set(self._key, json.dumps(payload, ensure_ascii=False))


def open_note_store(settings: Settings) -> NoteStore:
    store = NoteStore(NotePersistence(SQLiteKeyValueStore(initialize_db(settings))))
    store.load()
    return store
