"""Map session: wires viewport events to level loading, styling, and lookup."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from .cache import DatasetCache, sources_from_config
from .config import AppConfig
from .locator import RegionIndex
from .lod import LevelOfDetailManager, RegionSelected, ZoomChanged, expand_codes_predicate
from .models import Level, LevelStatus, Region
from .render import LoggingRenderSink, RenderSink
from .retrieval import Retriever, build_retriever
from .styling import ChoroplethStyler
from .viewport import ViewportController


_LOGGER = logging.getLogger("popmap.session")


class MapSession:
    """One interactive map session.

    Zoom and selection events may change the active level; the level is then
    loaded through the cache and, once ready and still active, every region
    is styled and sent to the sink together with the region under the
    viewport center. Loads for levels that are no longer active still finish
    and stay cached, they are just not drawn.
    """

    def __init__(
        self,
        *,
        cache: DatasetCache,
        styler: ChoroplethStyler,
        sink: RenderSink,
        viewport: ViewportController,
        lod: LevelOfDetailManager,
        code_property: str = "Alpha-2",
    ) -> None:
        self.cache = cache
        self.styler = styler
        self.sink = sink
        self.viewport = viewport
        self.lod = lod
        self.code_property = code_property
        self._indexes: dict[Level, RegionIndex] = {}
        self._center_region: Region | None = None

    @classmethod
    def from_config(
        cls,
        cfg: AppConfig,
        *,
        retriever: Retriever | None = None,
        sink: RenderSink | None = None,
    ) -> MapSession:
        viewport = ViewportController.from_config(cfg.viewport)
        return cls(
            cache=DatasetCache(retriever or build_retriever(cfg), sources_from_config(cfg.levels)),
            styler=ChoroplethStyler.from_config(cfg.style),
            sink=sink or LoggingRenderSink(),
            viewport=viewport,
            lod=LevelOfDetailManager(
                viewport.viewport.zoom,
                thresholds=cfg.lod.thresholds,
                should_expand=expand_codes_predicate(cfg.navigation.expand_codes),
            ),
            code_property=cfg.navigation.code_property,
        )

    @property
    def active_level(self) -> Level:
        return self.lod.active

    @property
    def center_region(self) -> Region | None:
        """Region under the viewport center in the active level, if that level is ready."""
        return self._center_region

    async def start(self) -> LevelStatus:
        """Load and draw the level for the initial zoom."""
        return await self._activate(self.lod.active)

    async def on_zoom(self, zoom: float) -> LevelStatus | None:
        self.viewport.set_zoom(zoom)
        transition = self.lod.handle(ZoomChanged(zoom))
        if transition is None:
            return None
        self._center_region = None
        return await self._activate(transition.current)

    async def on_center(self, lat: float, lon: float) -> Region | None:
        self.viewport.set_center(lat, lon)
        level = self.lod.active
        if not self.cache.is_ready(level):
            self._center_region = None
            return None
        return self._locate_center(level)

    async def on_select(self, properties: Mapping[str, Any]) -> LevelStatus | None:
        """Selection shortcut: an expand code on the clicked feature descends one level."""
        raw_code = properties.get(self.code_property)
        code = str(raw_code).strip() if raw_code is not None else None
        transition = self.lod.handle(RegionSelected(code or None))
        if transition is None:
            return None
        _LOGGER.info("Selection %s expands to %s", code, transition.current.code)
        self._center_region = None
        return await self._activate(transition.current)

    async def _activate(self, level: Level) -> LevelStatus:
        status = await self.cache.ensure_level(level)
        for error in status.errors:
            self.sink.notice(f"{level.code} data unavailable: {error}")
        if status.ready and level is self.lod.active:
            self._render(level)
        return status

    def _render(self, level: Level) -> None:
        regions = self.cache.boundaries(level) or []
        population = self.cache.population(level)
        if population is None:
            return
        self.sink.draw(level, self.styler.style_all(regions, population))
        self._locate_center(level)

    def _locate_center(self, level: Level) -> Region | None:
        index = self._indexes.get(level)
        if index is None:
            index = RegionIndex(self.cache.boundaries(level) or [])
            self._indexes[level] = index
        vp = self.viewport.viewport
        region = index.locate(vp.center_lon, vp.center_lat)
        self._center_region = region
        self.sink.center_region(level, region)
        return region
