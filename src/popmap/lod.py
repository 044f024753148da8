"""Level-of-detail selection from zoom and selection events."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Union

from .models import Level


DEFAULT_THRESHOLDS = (4.0, 7.0)

_LOGGER = logging.getLogger("popmap.lod")


@dataclass(frozen=True, slots=True)
class ZoomChanged:
    zoom: float


@dataclass(frozen=True, slots=True)
class RegionSelected:
    code: str | None


LodEvent = Union[ZoomChanged, RegionSelected]
ExpandPredicate = Callable[[str], bool]


@dataclass(frozen=True, slots=True)
class LevelTransition:
    previous: Level
    current: Level
    trigger: str


def derive_level(zoom: float, thresholds: tuple[float, float] = DEFAULT_THRESHOLDS) -> Level:
    """Map a continuous zoom to a level; both thresholds are exclusive lower bounds."""
    region_above, subregion_above = thresholds
    if zoom > subregion_above:
        return Level.SUBREGION
    if zoom > region_above:
        return Level.REGION
    return Level.COUNTRY


def expand_codes_predicate(codes: Iterable[str]) -> ExpandPredicate:
    accepted = {code.strip().casefold() for code in codes if code and code.strip()}

    def _predicate(code: str) -> bool:
        return code.strip().casefold() in accepted

    return _predicate


def next_level(
    current: Level,
    event: LodEvent,
    *,
    thresholds: tuple[float, float] = DEFAULT_THRESHOLDS,
    should_expand: ExpandPredicate | None = None,
) -> Level:
    """Single transition function for zoom-driven and selection-driven changes."""
    if isinstance(event, ZoomChanged):
        return derive_level(event.zoom, thresholds)
    if isinstance(event, RegionSelected):
        if event.code is None or should_expand is None:
            return current
        return current.finer() if should_expand(event.code) else current
    raise TypeError(f"Unsupported level-of-detail event: {event!r}")


class LevelOfDetailManager:
    """Tracks the active level and reports only real level changes."""

    def __init__(
        self,
        initial_zoom: float,
        *,
        thresholds: tuple[float, float] = DEFAULT_THRESHOLDS,
        should_expand: ExpandPredicate | None = None,
    ) -> None:
        self.thresholds = thresholds
        self.should_expand = should_expand
        self._active = derive_level(initial_zoom, thresholds)

    @property
    def active(self) -> Level:
        return self._active

    def handle(self, event: LodEvent) -> LevelTransition | None:
        target = next_level(
            self._active,
            event,
            thresholds=self.thresholds,
            should_expand=self.should_expand,
        )
        if target is self._active:
            return None
        trigger = "zoom" if isinstance(event, ZoomChanged) else "selection"
        transition = LevelTransition(previous=self._active, current=target, trigger=trigger)
        self._active = target
        _LOGGER.debug(
            "Level %s -> %s (%s)", transition.previous.code, transition.current.code, trigger
        )
        return transition
