"""Shared fakes and fixture builders for the test suite."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Iterable, Mapping

import yaml
from shapely.geometry import Polygon

from popmap.cache import ComponentSource, DatasetCache
from popmap.lod import LevelOfDetailManager, expand_codes_predicate
from popmap.models import Component, Level, PopulationDataset, Region, Viewport
from popmap.session import MapSession
from popmap.styling import ChoroplethStyler
from popmap.viewport import ViewportController


def square(x0: float, y0: float, size: float = 1.0) -> Polygon:
    return Polygon([(x0, y0), (x0, y0 + size), (x0 + size, y0 + size), (x0 + size, y0)])


def region(key: str, geometry: Any, **props: Any) -> Region:
    return Region(key=key, geometry=geometry, display_name=key, properties=props)


class FakeRetriever:
    """In-memory retriever; locators listed in `gated` wait until released."""

    def __init__(self, payloads: Mapping[str, Any], *, gated: Iterable[str] = ()) -> None:
        self.payloads = dict(payloads)
        self.gated = set(gated)
        self.calls: list[str] = []
        self._gates: dict[str, asyncio.Event] = {}

    def gate(self, locator: str) -> asyncio.Event:
        return self._gates.setdefault(locator, asyncio.Event())

    def release(self, locator: str) -> None:
        self.gate(locator).set()

    async def __call__(self, locator: str) -> Any:
        self.calls.append(locator)
        if locator in self.gated:
            await self.gate(locator).wait()
        value = self.payloads[locator]
        if isinstance(value, Exception):
            raise value
        return value


class RecordingSink:
    def __init__(self) -> None:
        self.draws: list[tuple[Level, list[Any]]] = []
        self.centers: list[tuple[Level, Region | None]] = []
        self.notices: list[str] = []

    def draw(self, level: Level, styled: Any) -> None:
        self.draws.append((level, list(styled)))

    def center_region(self, level: Level, region: Region | None) -> None:
        self.centers.append((level, region))

    def notice(self, message: str) -> None:
        self.notices.append(message)


def locator_for(level: Level, component: Component) -> str:
    return f"{level.code}-{component.value}.json"


def identity_sources(levels: Iterable[Level] = tuple(Level)) -> dict[tuple[Level, Component], ComponentSource]:
    """Sources whose payloads are already decoded values."""
    sources: dict[tuple[Level, Component], ComponentSource] = {}
    for level in levels:
        sources[(level, Component.BOUNDARY)] = ComponentSource(
            locator=locator_for(level, Component.BOUNDARY),
            decode=list,
        )
        sources[(level, Component.POPULATION)] = ComponentSource(
            locator=locator_for(level, Component.POPULATION),
            decode=PopulationDataset.from_counts,
        )
    return sources


def standard_payloads() -> dict[str, Any]:
    """Country: one big square; region: west/east halves; subregion: four quarters."""
    return {
        locator_for(Level.COUNTRY, Component.BOUNDARY): [region("Land", square(0, 0, 2), **{"Alpha-2": "US"})],
        locator_for(Level.COUNTRY, Component.POPULATION): {"Land": 300.0},
        locator_for(Level.REGION, Component.BOUNDARY): [
            region("West", square(0, 0)),
            region("East", square(1, 0)),
        ],
        locator_for(Level.REGION, Component.POPULATION): {"West": 100.0, "East": 200.0},
        locator_for(Level.SUBREGION, Component.BOUNDARY): [
            region("West-1", square(0, 0, 0.5)),
            region("West-2", square(0.5, 0, 0.5)),
        ],
        locator_for(Level.SUBREGION, Component.POPULATION): {"West-1": 40.0, "West-2": 60.0},
    }


def make_session(
    retriever: FakeRetriever,
    sink: RecordingSink,
    *,
    zoom: float = 5.0,
    center: tuple[float, float] = (0.5, 0.5),
    expand_codes: Iterable[str] = ("US",),
) -> MapSession:
    lat, lon = center
    return MapSession(
        cache=DatasetCache(retriever, identity_sources()),
        styler=ChoroplethStyler(),
        sink=sink,
        viewport=ViewportController(Viewport(center_lat=lat, center_lon=lon, zoom=zoom)),
        lod=LevelOfDetailManager(zoom, should_expand=expand_codes_predicate(expand_codes)),
    )


async def drain(rounds: int = 20) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


def _feature(name: str, ring: list[list[float]], **props: Any) -> dict[str, Any]:
    return {
        "type": "Feature",
        "properties": {"shapeName": name, **props},
        "geometry": {"type": "Polygon", "coordinates": [ring]},
    }


def write_project(root: Path, **overrides: Any) -> Path:
    """Write a config plus a small three-level data directory; returns the config path."""
    data_dir = root / "public"
    data_dir.mkdir(parents=True, exist_ok=True)
    files: dict[str, Any] = {
        "countries.geojson": {
            "type": "FeatureCollection",
            "features": [_feature("Land", [[0, 0], [2, 0], [2, 1], [0, 1], [0, 0]], **{"Alpha-2": "US"})],
        },
        "population_country.json": [{"country": "Land", "population": 3500}],
        "states.topojson": {
            "type": "Topology",
            "arcs": [
                [[1, 0], [1, 1]],
                [[1, 1], [0, 1], [0, 0], [1, 0]],
                [[1, 0], [2, 0], [2, 1], [1, 1]],
            ],
            "objects": {
                "states": {
                    "type": "GeometryCollection",
                    "geometries": [
                        {"type": "Polygon", "arcs": [[0, 1]], "properties": {"shapeName": "West"}},
                        {"type": "Polygon", "arcs": [[2, -1]], "properties": {"shapeName": "East"}},
                    ],
                }
            },
        },
        "population_state.json": [
            {"STATE": "West", "POPESTIMATE2019": 1000},
            {"STATE": "East", "POPESTIMATE2019": "2,500"},
        ],
        "counties.geojson": {
            "type": "FeatureCollection",
            "features": [
                _feature("West-1", [[0, 0], [0.5, 0], [0.5, 1], [0, 1], [0, 0]]),
                _feature("West-2", [[0.5, 0], [1, 0], [1, 1], [0.5, 1], [0.5, 0]]),
            ],
        },
        "population.json": [
            {"region": "West", "subregion": "West-1", "population": 400},
            {"region": "West", "subregion": "West-2", "population": 600},
        ],
    }
    for name, payload in files.items():
        (data_dir / name).write_text(json.dumps(payload), encoding="utf-8")

    config: dict[str, Any] = {
        "paths": {"data_dir": "public", "logs_dir": "build/logs", "snapshot_png": "build/map.png"},
        "viewport": {"center_lat": 0.5, "center_lon": 0.5, "zoom": 5},
        "levels": {
            "ADM0": {
                "boundary": {"locator": "countries.geojson", "format": "geojson"},
                "population": {"locator": "population_country.json", "key_fields": ["country"]},
            },
            "ADM1": {
                "boundary": {"locator": "states.topojson"},
                "population": {
                    "locator": "population_state.json",
                    "key_fields": ["STATE"],
                    "value_field": "POPESTIMATE2019",
                },
            },
            "ADM2": {
                "boundary": {"locator": "counties.geojson", "format": "geojson"},
                "population": {"locator": "population.json", "key_fields": ["subregion", "region"]},
            },
        },
    }
    config.update(overrides)
    cfg_path = root / "config.yaml"
    cfg_path.write_text(yaml.safe_dump(config, sort_keys=False), encoding="utf-8")
    return cfg_path
