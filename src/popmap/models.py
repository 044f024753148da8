"""Domain models shared across map modules."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Mapping


class DatasetError(Exception):
    """A dataset component could not be made available for a level."""


class RetrievalError(DatasetError):
    """Raised when the transport fails to deliver a dataset file."""


class DecodeError(DatasetError, ValueError):
    """Raised when a boundary or population file is malformed."""


class Level(enum.Enum):
    """Administrative granularity, coarsest first."""

    COUNTRY = "ADM0"
    REGION = "ADM1"
    SUBREGION = "ADM2"

    @property
    def code(self) -> str:
        return self.value

    @property
    def rank(self) -> int:
        return _LEVEL_ORDER.index(self)

    def finer(self) -> Level:
        """Next finer level; the finest level maps to itself."""
        idx = min(self.rank + 1, len(_LEVEL_ORDER) - 1)
        return _LEVEL_ORDER[idx]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Level):
            return NotImplemented
        return self.rank < other.rank

    @classmethod
    def parse(cls, raw: str) -> Level:
        normalized = raw.strip().upper()
        for level in cls:
            if normalized in (level.name, level.code):
                return level
        raise ValueError(f"Unknown level '{raw}'")


_LEVEL_ORDER = (Level.COUNTRY, Level.REGION, Level.SUBREGION)


class Component(enum.Enum):
    BOUNDARY = "boundary"
    POPULATION = "population"


@dataclass(frozen=True, slots=True)
class Region:
    """Named areal feature at one level, joined to population by `key`."""

    key: str
    geometry: Any
    display_name: str
    properties: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class PopulationDataset:
    """Population counts keyed by region key, with the observed [min, max] domain."""

    population: Mapping[str, float]
    domain: tuple[float, float]

    @classmethod
    def from_counts(cls, counts: Mapping[str, float]) -> PopulationDataset:
        if not counts:
            raise DecodeError("Population dataset has no numeric entries")
        values = list(counts.values())
        return cls(population=dict(counts), domain=(min(values), max(values)))

    def get(self, key: str) -> float | None:
        return self.population.get(key)


@dataclass(frozen=True, slots=True)
class Viewport:
    center_lat: float
    center_lon: float
    zoom: float

    @property
    def center(self) -> tuple[float, float]:
        """Center as an (x, y) = (lon, lat) pair."""
        return (self.center_lon, self.center_lat)


@dataclass(frozen=True, slots=True)
class Style:
    fill_color: str
    stroke_color: str
    opacity: float
    fill_opacity: float
    weight: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "fillColor": self.fill_color,
            "color": self.stroke_color,
            "opacity": self.opacity,
            "fillOpacity": self.fill_opacity,
            "weight": self.weight,
        }


@dataclass(frozen=True, slots=True)
class StyledRegion:
    region: Region
    style: Style
    label: str


@dataclass(frozen=True, slots=True)
class LevelStatus:
    """Outcome of making one level available."""

    level: Level
    ready: bool
    errors: tuple[DatasetError, ...] = ()

    @property
    def ok(self) -> bool:
        return self.ready and not self.errors
