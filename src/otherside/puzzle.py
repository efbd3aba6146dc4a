"""Three-slot word ordering puzzle shown on the DRAG_PUZZLE stage."""

from __future__ import annotations

import logging
from collections.abc import Callable

from .timers import TimerGroup

logger = logging.getLogger(__name__)

INITIAL_WORDS: tuple[str, ...] = ("CONHECIMENTO", "CONQUISTAR", "BUSQUE")
CORRECT_SEQUENCE = "BUSQUE CONQUISTAR CONHECIMENTO"
SLOT_COUNT = 3
WRONG_ORDER_ERROR = "A sequência está incorreta. As palavras retornam ao caos."


class WordPuzzle:
    """Validate a user-built ordering of three fixed words.

    Words move between ``pool`` and ``slots`` and are never copied or dropped.
    Two input styles reach the same state: ``place_word`` for drag and drop,
    and ``select_word`` + ``place_selected`` for click/tap. Clicking a filled
    slot vacates it; dropping on a filled slot does nothing.

    A full, correct sequence marks the puzzle solved and calls ``on_solve``
    after ``settle_delay``. A full, wrong sequence sets ``error`` and restores
    the initial pool after ``reset_delay``. Input is ignored while either
    verdict is pending.
    """

    def __init__(
        self,
        timers: TimerGroup,
        on_solve: Callable[[], None],
        *,
        settle_delay: float = 1.0,
        reset_delay: float = 2.0,
    ) -> None:
        self.timers = timers
        self.on_solve = on_solve
        self.settle_delay = settle_delay
        self.reset_delay = reset_delay
        self.pool: list[str] = list(INITIAL_WORDS)
        self.slots: list[str | None] = [None] * SLOT_COUNT
        self.selection: str | None = None
        self.error: str | None = None
        self.solved = False
        self._pending_reset = False

    @property
    def locked(self) -> bool:
        """Whether a solve or reset is pending."""
        return self.solved or self._pending_reset

    @property
    def is_full(self) -> bool:
        return all(word is not None for word in self.slots)

    def place_word(self, word: str, slot_index: int) -> bool:
        """Drop ``word`` from the pool into an empty slot. Returns whether it moved."""
        self._check_slot(slot_index)
        if self.locked or word not in self.pool or self.slots[slot_index] is not None:
            logger.debug("Ignoring placement of %r into slot %d", word, slot_index)
            return False
        self.selection = None
        self._move_to_slot(word, slot_index)
        return True

    def select_word(self, word: str) -> None:
        """Toggle selection of a pool word for click placement."""
        if self.locked or word not in self.pool:
            return
        self.selection = None if self.selection == word else word

    def place_selected(self, slot_index: int) -> bool:
        """Handle a click on a slot. Returns whether the pool/slots changed."""
        self._check_slot(slot_index)
        if self.locked:
            return False
        if self.selection is not None and self.slots[slot_index] is None:
            word = self.selection
            self.selection = None
            self._move_to_slot(word, slot_index)
            return True
        if self.slots[slot_index] is not None:
            return self.vacate_slot(slot_index)
        return False

    def vacate_slot(self, slot_index: int) -> bool:
        """Return a slot's word to the end of the pool."""
        self._check_slot(slot_index)
        word = self.slots[slot_index]
        if self.locked or word is None:
            return False
        self.slots[slot_index] = None
        self.pool.append(word)
        self.selection = None
        return True

    def reset(self) -> None:
        """Restore the initial pool order and empty every slot."""
        self.pool = list(INITIAL_WORDS)
        self.slots = [None] * SLOT_COUNT
        self.selection = None
        self.error = None
        self._pending_reset = False

    def close(self) -> None:
        """Cancel pending solve/reset timers."""
        self.timers.close()

    def sequence(self) -> str:
        """Slot contents joined the way they are validated."""
        return " ".join(word or "" for word in self.slots).upper()

    def _move_to_slot(self, word: str, slot_index: int) -> None:
        self.pool.remove(word)
        self.slots[slot_index] = word
        self._check_completion()

    def _check_completion(self) -> None:
        if not self.is_full:
            return
        if self.sequence() == CORRECT_SEQUENCE:
            logger.info("Puzzle solved")
            self.error = None
            self.solved = True
            self.timers.call_later(self.settle_delay, self.on_solve)
            return
        logger.info("Puzzle sequence rejected: %s", self.sequence())
        self.error = WRONG_ORDER_ERROR
        self._pending_reset = True
        self.timers.call_later(self.reset_delay, self.reset)

    @staticmethod
    def _check_slot(slot_index: int) -> None:
        if not 0 <= slot_index < SLOT_COUNT:
            raise IndexError(f"Slot index {slot_index} out of range 0..{SLOT_COUNT - 1}.")
