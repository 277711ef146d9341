"""Guided tour over ranked gas hotspots.

States: idle → active (stepping) → ended. A finished tour cannot be resumed;
``start`` always begins a fresh one.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from gaslens.core.errors import ErrorCode, TourError
from gaslens.core.events import EventHub, EventType
from gaslens.core.types import GasHotspot

logger = logging.getLogger(__name__)

NOT_STARTED = -1


@dataclass(frozen=True)
class TourStep:
    """Position payload for step-changed events (1-based for display)."""
    current: int
    total: int
    hotspot: GasHotspot


@dataclass(frozen=True)
class TourNotice:
    level: str  # "info" | "warning"
    message: str


def tour_order(hotspots: Iterable[GasHotspot]) -> list[GasHotspot]:
    """Critical first, then by descending gas."""
    return sorted(hotspots, key=lambda h: (h.severity.rank, -h.gas_used))


class GasTour:
    """Steps a user through hotspots one at a time.

    Owned by a single session; a new analysis replaces the instance instead of
    mutating one mid-navigation.
    """

    def __init__(self, hub: EventHub | None = None) -> None:
        self.hub = hub or EventHub()
        self._hotspots: list[GasHotspot] = []
        self._index = NOT_STARTED
        self._active = False

    # ── State ───────────────────────────────────────────────────────────

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def hotspots(self) -> list[GasHotspot]:
        return list(self._hotspots)

    def current(self) -> GasHotspot | None:
        if 0 <= self._index < len(self._hotspots):
            return self._hotspots[self._index]
        return None

    def progress(self) -> tuple[int, int]:
        return self._index + 1, len(self._hotspots)

    # ── Navigation ──────────────────────────────────────────────────────

    def start(self, hotspots: Iterable[GasHotspot]) -> TourStep | None:
        """Begin a fresh tour. An empty list leaves the tour idle."""
        ordered = tour_order(hotspots)
        if not ordered:
            self._notice("info", "No gas optimization opportunities found.")
            return None

        self._hotspots = ordered
        self._index = 0
        self._active = True
        logger.info("Gas tour started with %d hotspots", len(ordered))
        self._notice(
            "info",
            f"Gas Optimization Tour: Found {len(ordered)} optimization opportunities.",
        )
        return self._emit_step()

    def next(self) -> TourStep | None:
        if not self._require_active():
            return None
        if self._index >= len(self._hotspots) - 1:
            self._notice("info", "You have reached the last optimization opportunity.")
            return self._step()
        self._index += 1
        return self._emit_step()

    def previous(self) -> TourStep | None:
        if not self._require_active():
            return None
        if self._index <= 0:
            self._notice("info", "You are at the first optimization opportunity.")
            return self._step()
        self._index -= 1
        return self._emit_step()

    def jump_to(self, index: int) -> TourStep | None:
        """Move to a zero-based *index*.

        Raises:
            TourError: *index* is negative.
        """
        if index < 0:
            raise TourError(ErrorCode.TOUR_INVALID_INDEX, f"Tour index must be >= 0, got {index}")
        if not self._active:
            logger.debug("jump_to(%d) ignored: tour inactive", index)
            return None
        if index >= len(self._hotspots):
            self._notice("warning", f"No optimization opportunity at position {index + 1}.")
            return None
        self._index = index
        return self._emit_step()

    def finish(self) -> bool:
        """End the tour. Returns False when there was no active tour."""
        if not self._active:
            return False
        self._active = False
        self._index = NOT_STARTED
        self._hotspots = []
        logger.info("Gas tour finished")
        self.hub.fire(EventType.TOUR_ENDED)
        self._notice("info", "Gas optimization tour completed.")
        return True

    # ── Internals ───────────────────────────────────────────────────────

    def _require_active(self) -> bool:
        if self._active:
            return True
        self._notice("warning", "No active gas tour. Start a tour first.")
        return False

    def _step(self) -> TourStep:
        return TourStep(
            current=self._index + 1,
            total=len(self._hotspots),
            hotspot=self._hotspots[self._index],
        )

    def _emit_step(self) -> TourStep:
        step = self._step()
        self.hub.fire(EventType.TOUR_STEP_CHANGED, step)
        return step

    def _notice(self, level: str, message: str) -> None:
        self.hub.fire(EventType.TOUR_NOTICE, TourNotice(level, message))
