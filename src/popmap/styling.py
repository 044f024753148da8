"""Population-to-color mapping for choropleth fills."""

from __future__ import annotations

from typing import Iterable

from matplotlib.colors import to_rgb

from .config import StyleConfig
from .models import PopulationDataset, Region, Style, StyledRegion
from .util import format_count


Rgb = tuple[int, int, int]


def _parse_color(color: str) -> Rgb:
    try:
        r, g, b = to_rgb(color)
    except ValueError as exc:
        raise ValueError(f"Invalid color '{color}'") from exc
    return (int(round(r * 255)), int(round(g * 255)), int(round(b * 255)))


def _hex(rgb: Rgb) -> str:
    return "#{:02x}{:02x}{:02x}".format(*rgb)


def interpolate_rgb(low: Rgb, high: Rgb, t: float) -> Rgb:
    t = min(max(t, 0.0), 1.0)
    return tuple(int(round(lo + (hi - lo) * t)) for lo, hi in zip(low, high))  # type: ignore[return-value]


class ChoroplethStyler:
    """Linear two-color scale calibrated on a level's population domain."""

    def __init__(
        self,
        low_color: str = "white",
        high_color: str = "red",
        *,
        stroke_color: str = "red",
        opacity: float = 0.2,
        fill_opacity: float = 0.6,
        weight: float = 1.0,
    ) -> None:
        self._low = _parse_color(low_color)
        self._high = _parse_color(high_color)
        self.low_color = _hex(self._low)
        self.high_color = _hex(self._high)
        self.stroke_color = _hex(_parse_color(stroke_color))
        self.opacity = opacity
        self.fill_opacity = fill_opacity
        self.weight = weight

    @classmethod
    def from_config(cls, cfg: StyleConfig) -> ChoroplethStyler:
        return cls(
            cfg.low_color,
            cfg.high_color,
            stroke_color=cfg.stroke_color,
            opacity=cfg.opacity,
            fill_opacity=cfg.fill_opacity,
            weight=cfg.weight,
        )

    def color_for(self, value: float | None, domain: tuple[float, float]) -> str:
        if value is None:
            return self.low_color
        lo, hi = domain
        if hi <= lo:
            return self.low_color
        t = (value - lo) / (hi - lo)
        if t <= 0.0:
            return self.low_color
        if t >= 1.0:
            return self.high_color
        return _hex(interpolate_rgb(self._low, self._high, t))

    def style_for(self, region: Region, dataset: PopulationDataset) -> Style:
        return Style(
            fill_color=self.color_for(dataset.get(region.key), dataset.domain),
            stroke_color=self.stroke_color,
            opacity=self.opacity,
            fill_opacity=self.fill_opacity,
            weight=self.weight,
        )

    def label_for(self, region: Region, dataset: PopulationDataset) -> str:
        value = dataset.get(region.key)
        if value is None:
            return f"{region.display_name}: population unknown"
        return f"{region.display_name}: {format_count(value)}"

    def style_all(self, regions: Iterable[Region], dataset: PopulationDataset) -> list[StyledRegion]:
        return [
            StyledRegion(
                region=region,
                style=self.style_for(region, dataset),
                label=self.label_for(region, dataset),
            )
            for region in regions
        ]
