from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest
from typer.testing import CliRunner

from codenotes import cli
from codenotes.core.analysis import AnalysisClient, GeminiClient
from codenotes.core.settings import load_settings
from codenotes.storage.persistence import open_note_store

URL = "https://github.com/acme/shop"

runner = CliRunner()


def _client(analysis: str, rating: int, seen: list[str] | None = None) -> AnalysisClient:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(json.loads(request.content)["contents"][0]["parts"][0]["text"])
        text = json.dumps({"analysis": analysis, "rating": rating})
        return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": text}]}}]})

    return AnalysisClient(
        GeminiClient(
            api_key="k",
            base_url="https://gemini.test/v1beta",
            model="m",
            transport=httpx.MockTransport(handler),
        )
    )


@pytest.fixture(autouse=True)
def _data_dir(monkeypatch, tmp_path: Path) -> Path:
    monkeypatch.setenv("CODENOTES_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("CODENOTES_EXPORT_PATH", str(tmp_path / "report.xlsx"))
    monkeypatch.delenv("CODENOTES_LOG_LEVEL", raising=False)
    return tmp_path


def _use_client(monkeypatch, client: AnalysisClient) -> None:
    monkeypatch.setattr(cli, "build_analysis_client", lambda settings: client)


def _stored_notes():
    return open_note_store(load_settings()).notes


def test_notes_add_analyzes_and_saves(monkeypatch) -> None:
    _use_client(monkeypatch, _client("solid", 8))
    result = runner.invoke(cli.app, ["notes", "add", URL, "--description", "mine"])
    assert result.exit_code == 0, result.output
    assert "New note saved." in result.output
    assert "rating=8" in result.output

    notes = _stored_notes()
    assert len(notes) == 1
    assert notes[0].repo_url == URL
    assert notes[0].rating == 8
    assert notes[0].description == "mine"
    assert notes[0].gemini_analysis == "solid"


def test_notes_add_with_prompt_file(monkeypatch, tmp_path: Path) -> None:
    seen: list[str] = []
    _use_client(monkeypatch, _client("ok", 6, seen))
    prompt_file = tmp_path / "prompt.txt"
    prompt_file.write_text("Review {{REPO_URL}} for tests", encoding="utf-8")

    result = runner.invoke(cli.app, ["notes", "add", URL, "--prompt-file", str(prompt_file)])
    assert result.exit_code == 0, result.output
    assert seen[0].startswith(f"Review {URL} for tests")


def test_notes_add_reports_malformed_response(monkeypatch) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": "not json"}]}}]})

    client = AnalysisClient(
        GeminiClient(
            api_key="k",
            base_url="https://gemini.test/v1beta",
            model="m",
            transport=httpx.MockTransport(handler),
        )
    )
    _use_client(monkeypatch, client)
    result = runner.invoke(cli.app, ["notes", "add", URL])
    assert result.exit_code == 1
    assert "not json" in result.output
    assert _stored_notes() == ()


def test_notes_add_without_api_key_fails(monkeypatch) -> None:
    _use_client(monkeypatch, AnalysisClient(None))
    result = runner.invoke(cli.app, ["notes", "add", URL])
    assert result.exit_code == 1
    assert "GEMINI_API_KEY" in result.output


def test_notes_edit_keeps_identity(monkeypatch) -> None:
    _use_client(monkeypatch, _client("solid", 8))
    runner.invoke(cli.app, ["notes", "add", URL])
    (original,) = _stored_notes()

    result = runner.invoke(
        cli.app, ["notes", "edit", original.id, "--description", "updated"]
    )
    assert result.exit_code == 0, result.output
    assert "Note updated." in result.output

    (edited,) = _stored_notes()
    assert edited.id == original.id
    assert edited.created_at == original.created_at
    assert edited.description == "updated"
    assert edited.rating == 8


def test_notes_edit_new_url_reanalyzes(monkeypatch) -> None:
    _use_client(monkeypatch, _client("first", 8))
    runner.invoke(cli.app, ["notes", "add", URL])
    (original,) = _stored_notes()

    _use_client(monkeypatch, _client("second", 3))
    other = "https://github.com/acme/other"
    result = runner.invoke(cli.app, ["notes", "edit", original.id, "--url", other])
    assert result.exit_code == 0, result.output

    (edited,) = _stored_notes()
    assert edited.repo_url == other
    assert edited.gemini_analysis == "second"
    assert edited.rating == 3


def test_notes_delete_requires_confirmation(monkeypatch) -> None:
    _use_client(monkeypatch, _client("solid", 8))
    runner.invoke(cli.app, ["notes", "add", URL])
    (note,) = _stored_notes()

    result = runner.invoke(cli.app, ["notes", "delete", note.id], input="n\n")
    assert "cancelled" in result.output
    assert len(_stored_notes()) == 1

    result = runner.invoke(cli.app, ["notes", "delete", note.id], input="y\n")
    assert result.exit_code == 0, result.output
    assert _stored_notes() == ()


def test_notes_show_unknown_id_fails() -> None:
    result = runner.invoke(cli.app, ["notes", "show", "note_missing"])
    assert result.exit_code == 1
    assert "not found" in result.output


def test_export_empty_collection_is_rejected(_data_dir: Path) -> None:
    result = runner.invoke(cli.app, ["export"])
    assert result.exit_code == 0
    assert "No notes to export." in result.output
    assert not (_data_dir / "report.xlsx").exists()


def test_export_writes_file(monkeypatch, _data_dir: Path) -> None:
    _use_client(monkeypatch, _client("solid", 8))
    runner.invoke(cli.app, ["notes", "add", URL])
    out_path = _data_dir / "out.xlsx"
    result = runner.invoke(cli.app, ["export", str(out_path)])
    assert result.exit_code == 0, result.output
    assert out_path.exists()


def test_config_show_hides_api_key(monkeypatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "super-secret")
    result = runner.invoke(cli.app, ["config", "show"])
    assert result.exit_code == 0
    assert "gemini_api_key=set" in result.output
    assert "super-secret" not in result.output


def test_export_to_unwritable_path_fails(monkeypatch, _data_dir: Path) -> None:
    _use_client(monkeypatch, _client("solid", 8))
    runner.invoke(cli.app, ["notes", "add", URL])
    out_dir = _data_dir / "taken"
    out_dir.mkdir()

    result = runner.invoke(cli.app, ["export", str(out_dir)])
    assert result.exit_code == 1
    assert "Export failed" in result.output


def test_notes_add_reports_discarded_analysis(monkeypatch) -> None:
    async def discarded(self, client):
        return None

    _use_client(monkeypatch, _client("solid", 8))
    monkeypatch.setattr(cli.NoteForm, "analyze", discarded)
    result = runner.invoke(cli.app, ["notes", "add", URL])
    assert result.exit_code == 1
    assert "Analysis failed." in result.output
    assert _stored_notes() == ()
