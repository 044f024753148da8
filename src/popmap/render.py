"""Render sinks that receive styled regions, center lookups, and notices."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol, Sequence

from .models import Level, Region, StyledRegion


_LOGGER = logging.getLogger("popmap.render")


class RenderSink(Protocol):
    def draw(self, level: Level, styled: Sequence[StyledRegion]) -> None: ...

    def center_region(self, level: Level, region: Region | None) -> None: ...

    def notice(self, message: str) -> None: ...


class LoggingRenderSink:
    """Sink that only logs what a drawing surface would receive."""

    def draw(self, level: Level, styled: Sequence[StyledRegion]) -> None:
        _LOGGER.info("Draw %s with %d regions", level.code, len(styled))
        for item in styled:
            _LOGGER.debug("  %s fill=%s", item.label, item.style.fill_color)

    def center_region(self, level: Level, region: Region | None) -> None:
        if region is None:
            _LOGGER.info("Center is outside every %s region", level.code)
        else:
            _LOGGER.info("Center is in %s (%s)", region.display_name, level.code)

    def notice(self, message: str) -> None:
        _LOGGER.warning("Map notice: %s", message)


@dataclass(slots=True)
class SnapshotRenderSink:
    """Keeps the latest draw and writes it as a PNG on demand."""

    width_px: int = 1200
    height_px: int = 800
    dpi: int = 100
    background: str = "white"
    level: Level | None = None
    styled: tuple[StyledRegion, ...] = ()
    center: Region | None = None
    notices: list[str] = field(default_factory=list)

    def draw(self, level: Level, styled: Sequence[StyledRegion]) -> None:
        self.level = level
        self.styled = tuple(styled)
        self.center = None

    def center_region(self, level: Level, region: Region | None) -> None:
        if level is self.level:
            self.center = region

    def notice(self, message: str) -> None:
        self.notices.append(message)

    def save(self, output_path: Path, *, marker: tuple[float, float] | None = None) -> Path:
        """Write the latest draw; `marker` is an optional (lon, lat) point."""
        plt = _require_matplotlib()
        fig, ax = plt.subplots(
            figsize=(self.width_px / self.dpi, self.height_px / self.dpi), dpi=self.dpi
        )
        fig.subplots_adjust(left=0.0, right=1.0, bottom=0.0, top=1.0)
        try:
            fig.patch.set_facecolor(self.background)
            ax.set_facecolor(self.background)
            for item in self.styled:
                highlighted = self.center is not None and item.region is self.center
                _draw_styled_region(ax=ax, item=item, highlighted=highlighted)
            if marker is not None:
                ax.plot([marker[0]], [marker[1]], marker="+", color="black", markersize=12, zorder=5)
            ax.set_aspect("equal", adjustable="datalim")
            ax.set_axis_off()
            output_path.parent.mkdir(parents=True, exist_ok=True)
            fig.savefig(output_path, dpi=self.dpi, format="png")
            return output_path
        finally:
            plt.close(fig)


def _draw_styled_region(*, ax: Any, item: StyledRegion, highlighted: bool) -> None:
    style = item.style
    for exterior, interiors in _iter_polygon_rings(item.region.geometry):
        ax.fill(
            [p[0] for p in exterior],
            [p[1] for p in exterior],
            facecolor=style.fill_color,
            alpha=style.fill_opacity,
            edgecolor="none",
            zorder=1,
        )
        for ring in (exterior, *interiors):
            ax.plot(
                [p[0] for p in ring],
                [p[1] for p in ring],
                color="black" if highlighted else style.stroke_color,
                linewidth=style.weight * (2.5 if highlighted else 1.0),
                alpha=1.0 if highlighted else style.opacity,
                zorder=3 if highlighted else 2,
                solid_joinstyle="round",
            )


def _iter_polygon_rings(
    geometry: Any,
) -> list[tuple[Sequence[tuple[float, float]], list[Sequence[tuple[float, float]]]]]:
    geom_type = getattr(geometry, "geom_type", "")
    if geom_type == "Polygon":
        exterior = [(float(x), float(y)) for x, y in geometry.exterior.coords]
        interiors = [[(float(x), float(y)) for x, y in ring.coords] for ring in geometry.interiors]
        return [(exterior, interiors)]
    if geom_type in ("MultiPolygon", "GeometryCollection"):
        rings: list[tuple[Sequence[tuple[float, float]], list[Sequence[tuple[float, float]]]]] = []
        for part in geometry.geoms:
            rings.extend(_iter_polygon_rings(part))
        return rings
    return []


def _require_matplotlib() -> Any:
    try:
        import matplotlib

        matplotlib.use("Agg", force=False)
        import matplotlib.pyplot as plt
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("matplotlib is required for map snapshots") from exc
    return plt
