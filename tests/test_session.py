from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from codenotes.core.analysis import AnalysisClient, GeminiClient
from codenotes.core.errors import AnalysisValidationError
from codenotes.core.notes import Note
from codenotes.core.prompts import DEFAULT_PROMPT_TEMPLATE, REPO_URL_PLACEHOLDER
from codenotes.core.session import UNRATEABLE_NOTICE, NoteForm

URL = "https://github.com/acme/shop"


def _payload(analysis: str, rating: int) -> dict:
    text = json.dumps({"analysis": analysis, "rating": rating})
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def _client(handler) -> AnalysisClient:
    return AnalysisClient(
        GeminiClient(
            api_key="k",
            base_url="https://gemini.test/v1beta",
            model="m",
            transport=httpx.MockTransport(handler),
        )
    )


def _fixed(analysis: str, rating: int) -> AnalysisClient:
    return _client(lambda request: httpx.Response(200, json=_payload(analysis, rating)))


@pytest.mark.asyncio
async def test_analyze_fills_form_and_enables_save() -> None:
    form = NoteForm(repo_url=URL, description="my notes")
    assert not form.can_save

    outcome = await form.analyze(_fixed("solid project", 8))

    assert outcome is not None and outcome.ok
    assert form.analysis == "solid project"
    assert form.rating == 8
    assert form.error is None
    assert not form.busy
    assert form.can_save


@pytest.mark.asyncio
async def test_unrateable_result_sets_notice() -> None:
    form = NoteForm(repo_url=URL)
    await form.analyze(_fixed("not a symfony project", -1))
    assert form.rating == -1
    assert form.error == UNRATEABLE_NOTICE
    assert form.can_save


@pytest.mark.asyncio
async def test_failure_keeps_user_input() -> None:
    form = NoteForm(repo_url=URL, description="keep me")
    form.custom_prompt_enabled = True
    form.prompt_template = f"Check {REPO_URL_PLACEHOLDER}"

    outcome = await form.analyze(
        _client(lambda request: httpx.Response(500, text="boom"))
    )

    assert outcome is not None and not outcome.ok
    assert form.error is not None and "HTTP 500" in form.error
    assert form.repo_url == URL
    assert form.description == "keep me"
    assert form.prompt_template == f"Check {REPO_URL_PLACEHOLDER}"
    assert form.rating is None
    assert not form.can_save


@pytest.mark.asyncio
async def test_custom_prompt_validation_is_reported_not_raised() -> None:
    form = NoteForm(repo_url=URL)
    form.custom_prompt_enabled = True
    form.prompt_template = "no placeholder"
    outcome = await form.analyze(_fixed("unused", 5))
    assert outcome is not None and not outcome.ok
    assert form.error is not None and REPO_URL_PLACEHOLDER in form.error


@pytest.mark.asyncio
async def test_second_analysis_is_rejected_while_busy() -> None:
    release = asyncio.Event()
    calls = 0

    async def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        await release.wait()
        return httpx.Response(200, json=_payload("done", 6))

    client = _client(handler)
    form = NoteForm(repo_url=URL)
    task = asyncio.create_task(form.analyze(client))
    await asyncio.sleep(0)
    assert form.busy
    assert not form.can_save

    with pytest.raises(AnalysisValidationError, match="already in progress"):
        await form.analyze(client)

    release.set()
    outcome = await task
    assert outcome is not None and outcome.ok
    assert calls == 1
    assert form.rating == 6
    assert not form.busy


@pytest.mark.asyncio
async def test_late_result_is_discarded_after_url_change() -> None:
    release = asyncio.Event()

    async def handler(request: httpx.Request) -> httpx.Response:
        await release.wait()
        return httpx.Response(200, json=_payload("stale", 9))

    form = NoteForm(repo_url=URL)
    task = asyncio.create_task(form.analyze(_client(handler)))
    await asyncio.sleep(0)

    form.set_repo_url("https://github.com/acme/other")
    assert not form.busy

    release.set()
    assert await task is None
    assert form.analysis is None
    assert form.rating is None
    assert form.repo_url == "https://github.com/acme/other"


def test_changing_url_clears_previous_analysis() -> None:
    form = NoteForm(repo_url=URL, analysis="old", rating=4)
    form.set_repo_url(URL)
    assert form.rating == 4
    form.set_repo_url("https://github.com/acme/new")
    assert form.rating is None
    assert form.analysis is None


def test_build_new_note_assigns_fresh_identity() -> None:
    form = NoteForm(repo_url=URL, description="d", analysis="a", rating=7)
    first = form.build_note()
    second = form.build_note()
    assert first.id != second.id
    assert first.id.startswith("note_")
    assert first.created_at
    assert (first.repo_url, first.rating, first.description, first.gemini_analysis) == (
        URL,
        7,
        "d",
        "a",
    )


def test_build_edited_note_reuses_identity() -> None:
    stored = Note(
        id="note_1",
        repo_url=URL,
        rating=5,
        description="before",
        gemini_analysis="analysis",
        created_at="2024-01-01T00:00:00+00:00",
    )
    form = NoteForm()
    form.begin_edit(stored)
    form.description = "after"
    note = form.build_note()
    assert note.id == "note_1"
    assert note.created_at == stored.created_at
    assert note.description == "after"
    assert note.rating == 5


def test_legacy_note_without_rating_can_be_saved() -> None:
    stored = Note(
        id="note_legacy",
        repo_url=URL,
        rating=None,
        description="before",
        gemini_analysis="older analysis",
        created_at="2023-06-01T00:00:00+00:00",
    )
    form = NoteForm()
    form.begin_edit(stored)
    assert form.analyzed
    assert form.can_save

    form.description = "after"
    note = form.build_note()
    assert note.rating is None
    assert note.gemini_analysis == "older analysis"
    assert note.created_at == stored.created_at


def test_build_note_requires_analysis() -> None:
    form = NoteForm(repo_url=URL)
    with pytest.raises(AnalysisValidationError):
        form.build_note()
    form = NoteForm(repo_url="  ", rating=3)
    with pytest.raises(AnalysisValidationError):
        form.build_note()


def test_reset_restores_defaults() -> None:
    form = NoteForm(repo_url=URL, description="x", analysis="a", rating=2)
    form.custom_prompt_enabled = True
    form.prompt_template = "custom"
    form.editing_id = "note_1"
    form.reset()
    assert form == NoteForm()
    assert form.prompt_template == DEFAULT_PROMPT_TEMPLATE
