"""Note entry form state shared by the CLI and the TUI."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from codenotes.core.analysis import AnalysisClient, AnalysisOutcome, run_analysis
from codenotes.core.errors import AnalysisValidationError
from codenotes.core.notes import UNRATEABLE, Note, new_note_id
from codenotes.core.prompts import DEFAULT_PROMPT_TEMPLATE
from codenotes.utils.time import utc_iso

logger = logging.getLogger(__name__)

UNRATEABLE_NOTICE = (
    "The service could not rate this repository. You can still add your own notes."
)


@dataclass
class NoteForm:
    repo_url: str = ""
    description: str = ""
    analysis: str | None = None
    rating: int | None = None
    custom_prompt_enabled: bool = False
    prompt_template: str = DEFAULT_PROMPT_TEMPLATE
    busy: bool = False
    error: str | None = None
    editing_id: str | None = None
    editing_created_at: str | None = None
    _generation: int = field(default=0, init=False, repr=False, compare=False)

    @property
    def analyzed(self) -> bool:
        return self.rating is not None or bool(self.analysis)

    @property
    def can_save(self) -> bool:
        return bool(self.repo_url.strip()) and self.analyzed and not self.busy

    def reset(self) -> None:
        self.repo_url = ""
        self.description = ""
        self.custom_prompt_enabled = False
        self.prompt_template = DEFAULT_PROMPT_TEMPLATE
        self.editing_id = None
        self.editing_created_at = None
        self._clear_analysis()

    def begin_edit(self, note: Note) -> None:
        # The prompt choice is kept across edit sessions.
        self.repo_url = note.repo_url
        self.description = note.description
        self.analysis = note.gemini_analysis
        self.rating = note.rating
        self.editing_id = note.id
        self.editing_created_at = note.created_at
        self.error = None
        self.busy = False
        self._generation += 1

    def set_repo_url(self, repo_url: str) -> None:
        if repo_url == self.repo_url:
            return
        self.repo_url = repo_url
        self._clear_analysis()

    def effective_template(self) -> str | None:
        if self.custom_prompt_enabled:
            return self.prompt_template
        return None

    async def analyze(self, client: AnalysisClient) -> AnalysisOutcome | None:
        """Run one analysis for the current URL.

        Rejected while another analysis is in flight. If the URL changes or
        the form is reset before the reply arrives, the reply is dropped and
        ``None`` is returned.
        """
        if self.busy:
            raise AnalysisValidationError("An analysis is already in progress.")

        self._clear_analysis()
        generation = self._generation
        self.busy = True
        try:
            outcome = await run_analysis(
                client, self.repo_url, self.effective_template()
            )
        finally:
            if generation == self._generation:
                self.busy = False

        if generation != self._generation:
            logger.info("Discarding late analysis result for %s", self.repo_url)
            return None

        if outcome.result is None:
            self.error = outcome.error
            return outcome

        self.analysis = outcome.result.analysis
        self.rating = outcome.result.rating
        if self.rating == UNRATEABLE:
            self.error = UNRATEABLE_NOTICE
        return outcome

    def build_note(self) -> Note:
        if not self.repo_url.strip():
            raise AnalysisValidationError("The repository URL is required.")
        if not self.analyzed:
            raise AnalysisValidationError(
                "Run an analysis before saving the note."
            )
        if self.editing_id is not None:
            note_id = self.editing_id
            created_at = self.editing_created_at or utc_iso()
        else:
            note_id = new_note_id()
            created_at = utc_iso()
        return Note(
            id=note_id,
            repo_url=self.repo_url,
            rating=self.rating,
            description=self.description,
            gemini_analysis=self.analysis,
            created_at=created_at,
        )

    def _clear_analysis(self) -> None:
        self.analysis = None
        self.rating = None
        self.error = None
        self.busy = False
        self._generation += 1
