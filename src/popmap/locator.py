"""Point-in-region lookup for the active region collection."""

from __future__ import annotations

from typing import Sequence

from shapely.geometry import Point
from shapely.strtree import STRtree

from .models import Region


class RegionIndex:
    """Spatial index over one level's regions.

    Containment uses closed boundaries, so a point on an edge belongs to the
    region. When regions overlap or share an edge the first one in input
    order wins.
    """

    def __init__(self, regions: Sequence[Region]) -> None:
        self.regions = tuple(regions)
        self._tree = STRtree([r.geometry for r in self.regions]) if self.regions else None

    def __len__(self) -> int:
        return len(self.regions)

    def locate(self, lon: float, lat: float) -> Region | None:
        if self._tree is None:
            return None
        hits = self._tree.query(Point(lon, lat), predicate="intersects")
        if len(hits) == 0:
            return None
        return self.regions[int(min(hits))]


def locate(point: tuple[float, float], regions: Sequence[Region]) -> Region | None:
    """Region containing `point`, given as (lon, lat); None when outside all regions."""
    lon, lat = point
    return RegionIndex(regions).locate(lon, lat)
