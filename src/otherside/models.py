"""Core domain models for the stage progression."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class Stage(IntEnum):
    """Ordered narrative stages. Ordinals are persisted and compared."""

    START = 0
    KNOWLEDGE = 1
    CONQUER = 2
    DRAG_PUZZLE = 3
    FINAL_CARD = 4


@dataclass(frozen=True)
class StageDefinition:
    """Static content and transition for one stage."""

    stage: Stage
    key: str
    prompt: str
    correct_answer: str
    next_stage: Stage
    music: str | None = None
    image: str | None = None
    download_name: str | None = None

    @property
    def is_terminal(self) -> bool:
        """Whether the stage transitions to itself."""
        return self.next_stage == self.stage


@dataclass(frozen=True)
class AnswerResult:
    """Outcome of one free-text answer submission."""

    advance: bool
    error: str | None = None
    restart: bool = False
