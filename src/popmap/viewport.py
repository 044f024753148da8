"""Viewport state and change notification."""

from __future__ import annotations

from dataclasses import replace
from typing import Callable

from .config import ViewportConfig
from .models import Viewport


ViewportListener = Callable[[Viewport, Viewport], None]


class ViewportController:
    """Holds the current viewport; only zoom and center events change it."""

    def __init__(self, initial: Viewport) -> None:
        self._viewport = initial
        self._listeners: list[ViewportListener] = []

    @classmethod
    def from_config(cls, cfg: ViewportConfig) -> ViewportController:
        return cls(Viewport(center_lat=cfg.center_lat, center_lon=cfg.center_lon, zoom=cfg.zoom))

    @property
    def viewport(self) -> Viewport:
        return self._viewport

    def subscribe(self, listener: ViewportListener) -> None:
        """Register `listener(previous, current)`."""
        self._listeners.append(listener)

    def set_zoom(self, zoom: float) -> Viewport:
        return self._update(replace(self._viewport, zoom=float(zoom)))

    def set_center(self, lat: float, lon: float) -> Viewport:
        return self._update(replace(self._viewport, center_lat=float(lat), center_lon=float(lon)))

    def _update(self, new: Viewport) -> Viewport:
        previous = self._viewport
        self._viewport = new
        if new != previous:
            for listener in self._listeners:
                listener(previous, new)
        return new
