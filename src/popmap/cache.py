"""Per-level dataset store with lazy, concurrent loading.

The store maps `(level, component)` to a decoded value. Each retrieval
completion writes only its own key, so completions that race (boundary and
population of one level, or components of different levels) never overwrite
each other regardless of the order in which they resolve. Loaded values are
kept for the whole session.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from .boundaries import decoder_for
from .config import LevelSourcesConfig
from .models import (
    Component,
    DatasetError,
    DecodeError,
    Level,
    LevelStatus,
    PopulationDataset,
    Region,
    RetrievalError,
)
from .population import PopulationFormat, decode_population
from .retrieval import Retriever


_LOGGER = logging.getLogger("popmap.cache")

StoreKey = tuple[Level, Component]
ErrorCallback = Callable[[Level, Component, DatasetError], None]


@dataclass(frozen=True, slots=True)
class ComponentSource:
    """Where one dataset component lives and how to decode it."""

    locator: str
    decode: Callable[[Any], Any]


def sources_from_config(levels: Mapping[Level, LevelSourcesConfig]) -> dict[StoreKey, ComponentSource]:
    sources: dict[StoreKey, ComponentSource] = {}
    for level, level_cfg in levels.items():
        if level_cfg.boundary is not None:
            decoder = decoder_for(level_cfg.boundary.format, level_cfg.boundary.key_properties)
            sources[(level, Component.BOUNDARY)] = ComponentSource(
                locator=level_cfg.boundary.locator,
                decode=decoder.decode,
            )
        if level_cfg.population is not None:
            fmt = PopulationFormat.from_source(level_cfg.population)
            sources[(level, Component.POPULATION)] = ComponentSource(
                locator=level_cfg.population.locator,
                decode=lambda raw, fmt=fmt: decode_population(raw, fmt),
            )
    return sources


class DatasetCache:
    """Lazy per-level cache of boundary and population datasets."""

    def __init__(
        self,
        retriever: Retriever,
        sources: Mapping[StoreKey, ComponentSource],
        *,
        on_error: ErrorCallback | None = None,
    ) -> None:
        self._retriever = retriever
        self._on_error = on_error
        self._sources = dict(sources)
        self._store: dict[StoreKey, Any] = {}
        self._in_flight: dict[StoreKey, asyncio.Task[DatasetError | None]] = {}
        self.retrieval_count = 0

    def has(self, level: Level, component: Component) -> bool:
        return (level, component) in self._store

    def is_ready(self, level: Level) -> bool:
        return all(self.has(level, component) for component in Component)

    def boundaries(self, level: Level) -> list[Region] | None:
        return self._store.get((level, Component.BOUNDARY))

    def population(self, level: Level) -> PopulationDataset | None:
        return self._store.get((level, Component.POPULATION))

    def missing(self, level: Level) -> tuple[Component, ...]:
        return tuple(c for c in Component if not self.has(level, c))

    async def ensure_level(self, level: Level) -> LevelStatus:
        """Load whatever `level` is missing; present components are never re-fetched."""
        missing = self.missing(level)
        if not missing:
            return LevelStatus(level=level, ready=True)

        results = await asyncio.gather(*(self._ensure_component(level, c) for c in missing))
        errors = tuple(err for err in results if err is not None)
        return LevelStatus(level=level, ready=self.is_ready(level), errors=errors)

    async def _ensure_component(self, level: Level, component: Component) -> DatasetError | None:
        key = (level, component)
        task = self._in_flight.get(key)
        if task is None or task.done():
            task = asyncio.ensure_future(self._load(level, component))
            self._in_flight[key] = task
            task.add_done_callback(lambda done, key=key: self._forget(key, done))
        # a caller giving up must not cancel a load other callers share
        return await asyncio.shield(task)

    def _forget(self, key: StoreKey, task: asyncio.Future[Any]) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]

    async def _load(self, level: Level, component: Component) -> DatasetError | None:
        source = self._sources.get((level, component))
        if source is None:
            return self._fail(
                level,
                component,
                DatasetError(f"No {component.value} source configured for {level.code}"),
            )

        self.retrieval_count += 1
        _LOGGER.debug("Retrieving %s %s from %s", level.code, component.value, source.locator)
        try:
            raw = await self._retriever(source.locator)
        except DatasetError as exc:
            return self._fail(level, component, exc)
        except Exception as exc:
            return self._fail(
                level,
                component,
                RetrievalError(f"Retrieving {source.locator} failed: {exc}"),
            )

        try:
            value = source.decode(raw)
        except DatasetError as exc:
            return self._fail(level, component, exc)
        except Exception as exc:
            return self._fail(level, component, DecodeError(f"Decoding {source.locator} failed: {exc}"))

        self._store[(level, component)] = value
        _LOGGER.info("Loaded %s %s from %s", level.code, component.value, source.locator)
        return None

    def _fail(self, level: Level, component: Component, error: DatasetError) -> DatasetError:
        _LOGGER.warning("%s %s unavailable: %s", level.code, component.value, error)
        if self._on_error is not None:
            self._on_error(level, component, error)
        return error
