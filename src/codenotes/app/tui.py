"""Textual-based TUI."""

from __future__ import annotations

from pathlib import Path
from typing import ClassVar

from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import (
    Button,
    Footer,
    Header,
    Input,
    Label,
    OptionList,
    Static,
    Switch,
    TextArea,
)
from textual.widgets.option_list import Option

from codenotes.core.analysis import AnalysisClient
from codenotes.core.errors import AnalysisValidationError
from codenotes.core.notes import RATING_MIN, Note
from codenotes.core.session import NoteForm
from codenotes.core.store import NoteStore
from codenotes.export import export_notes, format_created_at, rating_label


class ConfirmScreen(ModalScreen[bool]):
    DEFAULT_CSS = """
    ConfirmScreen {
        align: center middle;
    }
    #dialog {
        width: 60;
        height: auto;
        border: thick $error;
        padding: 1 2;
        background: $surface;
    }
    """

    BINDINGS: ClassVar[list[tuple[str, str, str]]] = [
        ("y", "confirm", "Yes"),
        ("n,escape", "cancel", "No"),
    ]

    def __init__(self, prompt: str) -> None:
        super().__init__()
        self._prompt = prompt

    def compose(self) -> ComposeResult:
        with Vertical(id="dialog"):
            yield Static(self._prompt)
            with Horizontal():
                yield Button("Delete", variant="error", id="confirm_yes")
                yield Button("Cancel", id="confirm_no")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "confirm_yes")

    def action_confirm(self) -> None:
        self.dismiss(True)

    def action_cancel(self) -> None:
        self.dismiss(False)


class CodeNotesApp(App):
    TITLE = "Code Audit Notes"
    CSS = """
    #form {
        height: 2fr;
        border: round $primary;
        padding: 0 1;
    }
    #prompt, #description {
        height: 8;
    }
    #prompt_toggle, #actions {
        height: auto;
    }
    #notes {
        height: 1fr;
    }
    """

    BINDINGS: ClassVar[list[tuple[str, str, str]]] = [
        ("ctrl+s", "save", "Save"),
        ("e", "edit_note", "Edit"),
        ("d", "delete_note", "Delete"),
        ("x", "export", "Export"),
    ]

    def __init__(
        self,
        store: NoteStore,
        client: AnalysisClient,
        export_path: Path,
    ) -> None:
        super().__init__()
        self._store = store
        self._client = client
        self._export_path = export_path
        self._form = NoteForm()

    @property
    def form(self) -> NoteForm:
        return self._form

    def compose(self) -> ComposeResult:
        yield Header()
        with VerticalScroll(id="form"):
            yield Static("", id="form_title")
            yield Input(placeholder="https://github.com/user/repo", id="repo_url")
            with Horizontal(id="prompt_toggle"):
                yield Switch(value=False, id="custom_prompt")
                yield Label("Custom analysis prompt ({{REPO_URL}} is replaced by the URL)")
            yield TextArea(self._form.prompt_template, id="prompt")
            yield Button("Analyze repository", id="analyze", variant="primary")
            yield Static("", id="result")
            yield TextArea("", id="description")
            with Horizontal(id="actions"):
                yield Button("Cancel edit", id="cancel")
                yield Button("Save note", id="save", variant="success")
        yield Static("", id="notes_title")
        yield OptionList(id="notes")
        yield Footer()

    def on_mount(self) -> None:
        self._refresh_notes()
        self._sync_form()

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id == "repo_url":
            self._form.set_repo_url(event.value)
            self._refresh_controls()

    def on_text_area_changed(self, event: TextArea.Changed) -> None:
        if event.text_area.id == "description":
            self._form.description = event.text_area.text
        elif event.text_area.id == "prompt":
            self._form.prompt_template = event.text_area.text

    def on_switch_changed(self, event: Switch.Changed) -> None:
        if event.switch.id == "custom_prompt":
            self._form.custom_prompt_enabled = event.value
            self.query_one("#prompt", TextArea).display = event.value

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "analyze":
            self.action_analyze()
        elif event.button.id == "save":
            self.action_save()
        elif event.button.id == "cancel":
            self.action_cancel_edit()

    def action_analyze(self) -> None:
        if self._form.busy or not self._form.repo_url.strip():
            return
        self.query_one("#analyze", Button).disabled = True
        self.query_one("#result", Static).update("Analyzing…")
        self.run_worker(self._run_analysis(), group="analysis")

    async def _run_analysis(self) -> None:
        try:
            outcome = await self._form.analyze(self._client)
        except AnalysisValidationError as exc:
            self.notify(str(exc), severity="warning")
            return
        finally:
            self._refresh_controls()

        if outcome is None:
            return
        if self._form.error:
            severity = "warning" if outcome.ok else "error"
            self.notify(self._form.error, severity=severity, timeout=8)

    def action_save(self) -> None:
        if not self._form.can_save:
            return
        try:
            note = self._form.build_note()
        except AnalysisValidationError as exc:
            self.notify(str(exc), severity="error")
            return
        outcome = self._store.save(note)
        self._form.reset()
        self.notify(outcome.message)
        self._refresh_notes()
        self._sync_form()

    def action_cancel_edit(self) -> None:
        self._form.reset()
        self._store.clear_selection()
        self._sync_form()

    def action_edit_note(self) -> None:
        note = self._highlighted_note()
        if note is None:
            return
        self._form.begin_edit(self._store.select(note.id))
        self._sync_form()
        self.query_one("#repo_url", Input).focus()

    def action_delete_note(self) -> None:
        note = self._highlighted_note()
        if note is None:
            return

        def _on_confirm(confirmed: bool | None) -> None:
            if not confirmed:
                return
            self._store.delete(note.id)
            if self._form.editing_id == note.id:
                self._form.reset()
                self._sync_form()
            self.notify("Note deleted.")
            self._refresh_notes()

        self.push_screen(
            ConfirmScreen(f"Delete the note for {note.repo_url}?"), _on_confirm
        )

    def action_export(self) -> None:
        try:
            outcome = export_notes(self._store.notes, self._export_path)
        except OSError as exc:
            self.notify(f"Export failed: {exc}", severity="error")
            return
        self.notify(outcome.message, severity="information" if outcome.written else "warning")

    def _highlighted_note(self) -> Note | None:
        option = self.query_one("#notes", OptionList).highlighted_option
        if option is None or option.id is None:
            return None
        return self._store.get(option.id)

    def _refresh_notes(self) -> None:
        notes = self._store.notes
        self.query_one("#notes_title", Static).update(f"Saved notes ({len(notes)})")
        option_list = self.query_one("#notes", OptionList)
        option_list.clear_options()
        option_list.add_options([Option(_note_label(note), id=note.id) for note in notes])

    def _sync_form(self) -> None:
        form = self._form
        url_input = self.query_one("#repo_url", Input)
        if url_input.value != form.repo_url:
            url_input.value = form.repo_url
        description = self.query_one("#description", TextArea)
        if description.text != form.description:
            description.load_text(form.description)
        prompt = self.query_one("#prompt", TextArea)
        if prompt.text != form.prompt_template:
            prompt.load_text(form.prompt_template)
        self.query_one("#custom_prompt", Switch).value = form.custom_prompt_enabled
        prompt.display = form.custom_prompt_enabled
        self._refresh_controls()

    def _refresh_controls(self) -> None:
        form = self._form
        editing = form.editing_id is not None
        self.query_one("#form_title", Static).update(
            "Edit note" if editing else "Analyze a repository and rate it"
        )
        self.query_one("#analyze", Button).disabled = form.busy or not form.repo_url.strip()
        self.query_one("#save", Button).disabled = not form.can_save
        self.query_one("#cancel", Button).display = editing
        self.query_one("#description", TextArea).display = form.analyzed
        self.query_one("#result", Static).update(_result_text(form))


def _note_label(note: Note) -> Text:
    return Text(
        f"[{rating_label(note.rating)}] {note.repo_url}  ·  "
        f"{format_created_at(note.created_at)}"
    )


def _result_text(form: NoteForm) -> Text:
    if form.busy:
        return Text("Analyzing…")
    if not form.analyzed:
        return Text("")
    text = Text()
    if form.rating is not None and form.rating >= RATING_MIN:
        text.append(f"Rating: {form.rating}/10\n", style="bold")
    if form.analysis:
        text.append(form.analysis)
    return text
