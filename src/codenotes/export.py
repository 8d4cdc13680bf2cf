"""Spreadsheet export of saved notes."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Alignment, Font
from openpyxl.utils import get_column_letter

from codenotes.core.notes import UNRATEABLE, Note
from codenotes.utils.time import parse_iso

logger = logging.getLogger(__name__)

SHEET_NAME = "Code Audit Notes"
EMPTY_NOTICE = "No notes to export."
RATING_NOT_AVAILABLE = "N/A"
RATING_UNRATEABLE = "Unrateable"
EMPTY_PLACEHOLDER = "None"
DATE_FORMAT = "%d %B %Y %H:%M"

# (header, minimum width in characters)
COLUMNS: tuple[tuple[str, int], ...] = (
    ("ID", 25),
    ("Repository URL", 60),
    ("Rating", 20),
    ("Analysis", 80),
    ("User Notes", 80),
    ("Created", 25),
)

RowWriter = Callable[[list[list[str]], Path], None]


@dataclass(frozen=True)
class ExportOutcome:
    written: bool
    message: str
    path: Path | None = None


def rating_label(rating: int | None) -> str:
    if rating is None:
        return RATING_NOT_AVAILABLE
    if rating == UNRATEABLE:
        return RATING_UNRATEABLE
    return str(rating)


def format_created_at(value: str) -> str:
    parsed = parse_iso(value)
    if parsed is None:
        return value
    return parsed.astimezone().strftime(DATE_FORMAT)


def note_rows(notes: Sequence[Note]) -> list[list[str]]:
    return [
        [
            note.id,
            note.repo_url,
            rating_label(note.rating),
            note.gemini_analysis or EMPTY_PLACEHOLDER,
            note.description or EMPTY_PLACEHOLDER,
            format_created_at(note.created_at),
        ]
        for note in notes
    ]


def write_workbook(rows: list[list[str]], path: Path) -> None:
    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_NAME

    header_font = Font(bold=True)
    for col, (header, width) in enumerate(COLUMNS, 1):
        cell = ws.cell(row=1, column=col, value=header)
        cell.font = header_font
        ws.column_dimensions[get_column_letter(col)].width = width

    top_align = Alignment(wrap_text=True, vertical="top")
    for row_idx, values in enumerate(rows, 2):
        for col, value in enumerate(values, 1):
            # Control characters are not allowed in worksheet cells.
            cell = ws.cell(row=row_idx, column=col, value=ILLEGAL_CHARACTERS_RE.sub("", value))
            cell.alignment = top_align

    ws.freeze_panes = "A2"
    path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(path)


def export_notes(
    notes: Sequence[Note], path: Path, writer: RowWriter = write_workbook
) -> ExportOutcome:
    if not notes:
        logger.info("Export skipped: no notes")
        return ExportOutcome(written=False, message=EMPTY_NOTICE)
    writer(note_rows(notes), path)
    logger.info("Exported %d notes to %s", len(notes), path)
    return ExportOutcome(
        written=True, message=f"Exported {len(notes)} notes to {path}", path=path
    )
