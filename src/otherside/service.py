"""Application service for stage progression, answers, and the ending sequence."""

from __future__ import annotations

import logging
from pathlib import Path

from .catalog import definition_of, track_for
from .config import Settings
from .models import AnswerResult, Stage, StageDefinition
from .puzzle import WordPuzzle
from .storage import ProgressStore, open_progress_store
from .timers import Scheduler, TimerGroup

logger = logging.getLogger(__name__)

OVERRIDE_CODE = "0413"
WRONG_ANSWER_ERROR = "As palavras erradas ecoam no vazio. Há algo que você ainda não compreendeu…"
FINAL_ERROR_TEXT = (
    "CONEXÃO INTERROMPIDA...\n"
    "PÂNICO DE KERNEL INESPERADO EM 0x00...01E\n"
    "...SINAL PERDIDO...\n"
    " \n"
    "RECUPERANDO FRAGMENTO DE DADOS:\n"
    "> CONTACTE RAFAEL M. -> 45.79.147.21\n"
)


def normalize_answer(raw: str) -> str:
    """Canonical form used for answer comparison."""
    return raw.strip().upper()


class EnigmaService:
    """Coordinates the current stage, its puzzle, timers, and persistence.

    Every stage change and mute change is written through ``ProgressStore``
    before the call returns. Storage failures never stop the session.
    """

    def __init__(
        self,
        store: ProgressStore,
        *,
        settings: Settings | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        """Initialize the session from persisted progress."""
        self.store = store
        self.settings = settings or Settings()
        self.scheduler = scheduler or Scheduler()
        self._stage = store.load_stage()
        self._muted = store.load_muted()
        self._error: str | None = None
        self._puzzle: WordPuzzle | None = None
        self._stage_timers: TimerGroup
        self.is_glitching = False
        self.show_final_error = False
        logger.info("Session starts at stage %s (muted=%s)", self._stage.name, self._muted)
        self._enter_stage(self._stage)

    @classmethod
    def open(cls, db_path: Path | str, settings: Settings | None = None) -> EnigmaService:
        """Create a service backed by a database path."""
        return cls(open_progress_store(db_path), settings=settings)

    @property
    def stage(self) -> Stage:
        return self._stage

    @property
    def definition(self) -> StageDefinition:
        """Static definition of the current stage."""
        return definition_of(self._stage)

    @property
    def error(self) -> str | None:
        """Message for the last rejected answer."""
        return self._error

    @property
    def is_muted(self) -> bool:
        return self._muted

    @property
    def puzzle(self) -> WordPuzzle | None:
        """The live puzzle while on DRAG_PUZZLE, otherwise None."""
        return self._puzzle

    @property
    def accepts_answers(self) -> bool:
        """Whether the free-text answer form applies to the current stage."""
        return self._stage < Stage.DRAG_PUZZLE

    @property
    def current_track(self) -> str | None:
        """Music URL that should be playing now, or None while muted."""
        if self._muted:
            return None
        return track_for(self._stage)

    def submit_answer(self, raw: str) -> AnswerResult:
        """Evaluate one free-text answer against the current stage."""
        answer = normalize_answer(raw)

        if answer == OVERRIDE_CODE:
            logger.info("Override code entered at stage %s; restarting", self._stage.name)
            self.restart()
            return AnswerResult(advance=False, error=None, restart=True)

        if not self.accepts_answers:
            return AnswerResult(advance=False, error=self._error)

        definition = definition_of(self._stage)
        if answer == definition.correct_answer:
            self._error = None
            self._transition(definition.next_stage)
            return AnswerResult(advance=True)

        self._error = WRONG_ANSWER_ERROR
        return AnswerResult(advance=False, error=self._error)

    def on_puzzle_solved(self) -> None:
        """Advance from DRAG_PUZZLE to FINAL_CARD.

        Callers must only signal this while on DRAG_PUZZLE; the puzzle wired up
        by this service does so after its settling delay.
        """
        self._transition(Stage.FINAL_CARD)

    def set_muted(self, muted: bool) -> None:
        """Update and persist the mute preference."""
        self._muted = bool(muted)
        self.store.save_muted(self._muted)

    def toggle_mute(self) -> bool:
        """Flip the mute preference and return the new value."""
        self.set_muted(not self._muted)
        return self._muted

    def restart(self) -> None:
        """Forget persisted progress and reinitialize the session at START."""
        self.store.clear_stage()
        self._error = None
        self._leave_stage()
        self._stage = Stage.START
        self._enter_stage(self._stage)

    def tick(self) -> int:
        """Run due timers. Returns how many fired."""
        return self.scheduler.run_due()

    def close(self) -> None:
        """Cancel timers and close storage."""
        self._leave_stage()
        self.store.close()

    def _transition(self, stage: Stage) -> None:
        logger.info("Stage %s -> %s", self._stage.name, stage.name)
        self._leave_stage()
        self._stage = stage
        self.store.save_stage(stage)
        self._enter_stage(stage)

    def _leave_stage(self) -> None:
        self._stage_timers.close()
        if self._puzzle is not None:
            self._puzzle.close()
            self._puzzle = None
        self.is_glitching = False
        self.show_final_error = False

    def _enter_stage(self, stage: Stage) -> None:
        self._stage_timers = TimerGroup(self.scheduler, stage.name)
        if stage == Stage.DRAG_PUZZLE:
            self._puzzle = WordPuzzle(
                TimerGroup(self.scheduler, "puzzle"),
                on_solve=self.on_puzzle_solved,
                settle_delay=self.settings.settle_delay,
                reset_delay=self.settings.reset_delay,
            )
        elif stage == Stage.FINAL_CARD:
            self._stage_timers.call_later(self.settings.final_glitch_delay, self._start_glitch)

    def _start_glitch(self) -> None:
        self.is_glitching = True
        self._stage_timers.call_later(self.settings.glitch_duration, self._show_final_error)

    def _show_final_error(self) -> None:
        self.is_glitching = False
        self.show_final_error = True
