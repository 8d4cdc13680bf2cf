"""Typer CLI for codenotes."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from codenotes.app.main import run_app
from codenotes.core.analysis import (
    AnalysisClient,
    AnalysisResult,
    build_analysis_client,
    run_analysis,
)
from codenotes.core.errors import AnalysisValidationError
from codenotes.core.notes import Note
from codenotes.core.session import NoteForm
from codenotes.core.settings import Settings, load_settings
from codenotes.core.store import NoteStore
from codenotes.export import export_notes, rating_label
from codenotes.storage.db import db_path, initialize_db
from codenotes.storage.persistence import open_note_store

app = typer.Typer(help="Repository audit notes CLI")
console = Console()


notes_app = typer.Typer(help="Notes operations")
config_app = typer.Typer(help="Configuration")
db_app = typer.Typer(help="Database operations")


@app.callback()
def main() -> None:
    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.command()
def tui() -> None:
    """Run the Textual TUI."""
    run_app()


@app.command()
def analyze(repo_url: str, prompt_file: Path | None = None) -> None:
    """Analyze a repository without saving a note."""
    settings = load_settings()
    template = _read_template(prompt_file)
    outcome = asyncio.run(
        run_analysis(build_analysis_client(settings), repo_url, template)
    )
    if outcome.result is None:
        _fail(outcome.error or "Analysis failed.")
    _print_result(outcome.result)


@app.command("export")
def export_cmd(out_path: Path | None = typer.Argument(None)) -> None:
    """Export all notes to an .xlsx file."""
    settings, store = _services()
    try:
        outcome = export_notes(store.notes, out_path or settings.export_path)
    except OSError as exc:
        _fail(f"Export failed: {exc}")
    if not outcome.written:
        console.print(f"[yellow]{outcome.message}[/yellow]")
        return
    console.print(outcome.message)


@notes_app.command("list")
def notes_list() -> None:
    _settings, store = _services()
    table = Table("ID", "Repository", "Rating", "Created")
    for note in store.notes:
        table.add_row(note.id, note.repo_url, rating_label(note.rating), note.created_at)
    console.print(table)
    console.print(f"{len(store)} notes")


@notes_app.command("show")
def notes_show(note_id: str) -> None:
    _settings, store = _services()
    note = _get_note(store, note_id)
    console.print(f"id={note.id}")
    console.print(f"repo_url={note.repo_url}")
    console.print(f"rating={rating_label(note.rating)}")
    console.print(f"created_at={note.created_at}")
    console.print(f"description={note.description}", markup=False)
    console.print(f"analysis={note.gemini_analysis or ''}", markup=False)


@notes_app.command("add")
def notes_add(
    repo_url: str,
    description: str = "",
    prompt_file: Path | None = None,
) -> None:
    """Analyze a repository and save the note."""
    settings, store = _services()
    form = NoteForm(repo_url=repo_url, description=description)
    _apply_template(form, prompt_file)
    _run_form_analysis(form, build_analysis_client(settings))
    _save_form(store, form)


@notes_app.command("edit")
def notes_edit(
    note_id: str,
    url: str | None = None,
    description: str | None = None,
    reanalyze: bool = False,
    prompt_file: Path | None = None,
) -> None:
    settings, store = _services()
    _get_note(store, note_id)
    form = NoteForm()
    form.begin_edit(store.select(note_id))
    if description is not None:
        form.description = description
    if url is not None:
        form.set_repo_url(url)
    if reanalyze or not form.analyzed:
        _apply_template(form, prompt_file)
        _run_form_analysis(form, build_analysis_client(settings))
    _save_form(store, form)


@notes_app.command("delete")
def notes_delete(
    note_id: str,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    _settings, store = _services()
    note = _get_note(store, note_id)
    if not yes and not typer.confirm(f"Delete the note for {note.repo_url}?"):
        console.print("cancelled")
        return
    store.delete(note.id)
    console.print(f"deleted note {note.id}")


@config_app.command("show")
def config_show() -> None:
    settings = load_settings()
    console.print(f"data_dir={settings.data_dir}")
    console.print(f"gemini_api_key={'set' if settings.gemini_api_key else 'missing'}")
    console.print(f"gemini_base_url={settings.gemini_base_url}")
    console.print(f"gemini_model={settings.gemini_model}")
    console.print(f"gemini_timeout_s={settings.gemini_timeout_s}")
    console.print(f"gemini_search_grounding={settings.gemini_search_grounding}")
    console.print(f"export_path={settings.export_path}")
    console.print(f"log_level={settings.log_level}")


@db_app.command("init")
def db_init() -> None:
    settings = load_settings()
    initialize_db(settings)
    console.print(f"database initialized at {db_path(settings)}")


app.add_typer(notes_app, name="notes")
app.add_typer(config_app, name="config")
app.add_typer(db_app, name="db")


def _services() -> tuple[Settings, NoteStore]:
    settings = load_settings()
    return settings, open_note_store(settings)


def _get_note(store: NoteStore, note_id: str) -> Note:
    note = store.get(note_id)
    if note is None:
        _fail(f"note {note_id} not found")
    return note


def _read_template(prompt_file: Path | None) -> str | None:
    if prompt_file is None:
        return None
    return prompt_file.read_text(encoding="utf-8")


def _apply_template(form: NoteForm, prompt_file: Path | None) -> None:
    template = _read_template(prompt_file)
    if template is not None:
        form.custom_prompt_enabled = True
        form.prompt_template = template


def _run_form_analysis(form: NoteForm, client: AnalysisClient) -> None:
    outcome = asyncio.run(form.analyze(client))
    if outcome is None or outcome.result is None:
        _fail((outcome.error if outcome else None) or "Analysis failed.")
    _print_result(outcome.result)
    if form.error:
        console.print(f"[yellow]{escape(form.error)}[/yellow]", soft_wrap=True)


def _save_form(store: NoteStore, form: NoteForm) -> None:
    try:
        note = form.build_note()
    except AnalysisValidationError as exc:
        _fail(str(exc))
    outcome = store.save(note)
    console.print(f"[green]{outcome.message}[/green] {note.id}")


def _print_result(result: AnalysisResult) -> None:
    console.print(f"rating={rating_label(result.rating)}")
    console.print(result.analysis, markup=False)
    metadata = result.grounding_metadata
    if metadata is None:
        return
    if metadata.search_query:
        console.print(f"search_query={metadata.search_query}")
    for source in metadata.sources:
        console.print(f"- {source.title} <{source.uri}>")


def _fail(message: str) -> NoReturn:
    console.print(f"[red]{escape(message)}[/red]", soft_wrap=True)
    raise typer.Exit(code=1)
