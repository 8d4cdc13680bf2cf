"""Compose the TUI, note store and analysis client."""

from __future__ import annotations

from codenotes.app.tui import CodeNotesApp
from codenotes.core.analysis import build_analysis_client
from codenotes.core.settings import load_settings
from codenotes.storage.persistence import open_note_store


def run_app() -> None:
    settings = load_settings()
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    store = open_note_store(settings)
    client = build_analysis_client(settings)
    CodeNotesApp(store, client, export_path=settings.export_path).run()
