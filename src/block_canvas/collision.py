"""
Collision detection for system envelopes.

Envelopes are axis-aligned rectangles.  Two envelopes collide only when
their interiors intersect. Rectangles that merely share an edge or a
corner do not collide.

A ``DragSession`` tracks one interactive move of a system:

  1. start: the current origin becomes ``last_valid``
  2. move:  every collision-free candidate becomes ``last_valid``; the
             visual position follows the pointer regardless
  3. end:   a colliding final candidate snaps back to ``last_valid``;
             otherwise the candidate is committed.  The commit callback is
             called exactly once.
  4. cancel: the session closes and the system keeps its start origin.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Union

from .errors import DragSessionError
from .models import Position, Size

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in canvas coordinates."""
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def at(cls, origin: Position, size: Size) -> "Rect":
        return cls(x=origin.x, y=origin.y, width=size.width, height=size.height)

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def moved_to(self, position: Position) -> "Rect":
        return Rect(x=position.x, y=position.y, width=self.width, height=self.height)


def rects_overlap(a: Rect, b: Rect) -> bool:
    """Strict (open-interval) overlap test."""
    return (
        a.x < b.right
        and a.right > b.x
        and a.y < b.bottom
        and a.bottom > b.y
    )


def collides_with_any(rect: Rect, others: Iterable[Rect]) -> bool:
    """True if ``rect`` overlaps any rectangle in ``others``."""
    return any(rects_overlap(rect, other) for other in others)


@dataclass(frozen=True)
class DragOutcome:
    """Result of ending a drag session."""
    system_id: str
    committed: Position
    snapped_back: bool


class DragSession:
    """One drag of one system envelope.

    ``obstacles`` are the envelopes of every other system: either a fixed
    list or a callable returning the current envelopes, re-read on every
    collision test.  ``commit`` receives ``(system_id, position)`` once, when
    the session ends.  A cancelled session commits nothing.
    """

    def __init__(
        self,
        system_id: str,
        start: Position,
        size: Size,
        obstacles: Union[Iterable[Rect], Callable[[], Iterable[Rect]]],
        commit: Callable[[str, Position], None],
        on_close: Optional[Callable[["DragSession"], None]] = None,
    ):
        self.system_id = system_id
        self.start_position = Position(x=start.x, y=start.y)
        self.last_valid = Position(x=start.x, y=start.y)
        self.visual_position = Position(x=start.x, y=start.y)
        self._rect = Rect.at(start, size)
        if callable(obstacles):
            self._obstacles = obstacles
        else:
            fixed = list(obstacles)
            self._obstacles = lambda: fixed
        self._commit = commit
        self._on_close = on_close
        self.closed = False

    def collides_at(self, candidate: Position) -> bool:
        return collides_with_any(self._rect.moved_to(candidate), self._obstacles())

    def move(self, candidate: Position) -> bool:
        """Record a pointer tick.  Returns True if ``candidate`` is valid."""
        self._ensure_open()
        self.visual_position = Position(x=candidate.x, y=candidate.y)
        if self.collides_at(candidate):
            return False
        self.last_valid = Position(x=candidate.x, y=candidate.y)
        return True

    def end(self, candidate: Position) -> DragOutcome:
        """Close the session and commit the final position."""
        self._ensure_open()
        self.closed = True

        snapped_back = self.collides_at(candidate)
        if snapped_back:
            committed = Position(x=self.last_valid.x, y=self.last_valid.y)
            logger.info(
                f"Drag of {self.system_id} collided at ({candidate.x}, {candidate.y}); "
                f"snapping back to ({committed.x}, {committed.y})"
            )
        else:
            committed = Position(x=candidate.x, y=candidate.y)

        # Closed before the commit notifies anyone
        if self._on_close is not None:
            self._on_close(self)
        self._commit(self.system_id, committed)

        return DragOutcome(system_id=self.system_id, committed=committed, snapped_back=snapped_back)

    def cancel(self) -> None:
        """Close the session without committing.  No-op once closed."""
        if self.closed:
            return
        self.closed = True
        logger.info(f"Drag of {self.system_id} cancelled")
        if self._on_close is not None:
            self._on_close(self)

    def _ensure_open(self) -> None:
        if self.closed:
            raise DragSessionError(f"Drag session for {self.system_id} has already ended")
