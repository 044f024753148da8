"""Typed configuration loader for `config.yaml`."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, cast

import yaml

from .models import Level


BOUNDARY_FORMATS = ("topojson", "geojson")


def _mapping(value: Any, field_name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ValueError(f"Expected mapping for '{field_name}'")
    return cast(Mapping[str, Any], value)


def _optional_mapping(value: Any, field_name: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    return _mapping(value, field_name)


def _str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected non-empty string for '{field_name}'")
    return value.strip()


def _optional_str(value: Any, field_name: str) -> str | None:
    if value is None:
        return None
    return _str(value, field_name)


def _int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Expected integer for '{field_name}'")
    return value


def _float(value: Any, field_name: str) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    raise ValueError(f"Expected float for '{field_name}'")


def _str_list(value: Any, field_name: str) -> tuple[str, ...]:
    if not isinstance(value, list):
        raise ValueError(f"Expected list for '{field_name}'")
    out: list[str] = []
    for idx, item in enumerate(value):
        out.append(_str(item, f"{field_name}[{idx}]"))
    return tuple(out)


def _path_from_cfg(value: Any, field_name: str, root_dir: Path) -> Path:
    raw = _str(value, field_name)
    p = Path(raw)
    return p if p.is_absolute() else root_dir / p


@dataclass(frozen=True, slots=True)
class PathsConfig:
    data_dir: Path
    logs_dir: Path
    snapshot_png: Path

    @property
    def build_directories(self) -> tuple[Path, ...]:
        return (self.logs_dir, self.snapshot_png.parent)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], root_dir: Path) -> PathsConfig:
        return cls(
            data_dir=_path_from_cfg(raw.get("data_dir"), "paths.data_dir", root_dir),
            logs_dir=_path_from_cfg(raw.get("logs_dir", "build/logs"), "paths.logs_dir", root_dir),
            snapshot_png=_path_from_cfg(
                raw.get("snapshot_png", "build/map.png"), "paths.snapshot_png", root_dir
            ),
        )


@dataclass(frozen=True, slots=True)
class RetrievalConfig:
    base_url: str | None
    request_timeout_s: int
    user_agent: str
    max_retries: int
    retry_backoff_s: float

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> RetrievalConfig:
        max_retries = _int(raw.get("max_retries", 3), "retrieval.max_retries")
        retry_backoff_s = _float(raw.get("retry_backoff_s", 1.0), "retrieval.retry_backoff_s")
        if max_retries < 0:
            raise ValueError("retrieval.max_retries must be >= 0")
        if retry_backoff_s <= 0:
            raise ValueError("retrieval.retry_backoff_s must be > 0")
        return cls(
            base_url=_optional_str(raw.get("base_url"), "retrieval.base_url"),
            request_timeout_s=_int(raw.get("request_timeout_s", 30), "retrieval.request_timeout_s"),
            user_agent=_str(raw.get("user_agent", "popmap/0.1"), "retrieval.user_agent"),
            max_retries=max_retries,
            retry_backoff_s=retry_backoff_s,
        )


@dataclass(frozen=True, slots=True)
class LodConfig:
    region_above: float
    subregion_above: float

    @property
    def thresholds(self) -> tuple[float, float]:
        return (self.region_above, self.subregion_above)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> LodConfig:
        region_above = _float(raw.get("region_above", 4), "lod.region_above")
        subregion_above = _float(raw.get("subregion_above", 7), "lod.subregion_above")
        if subregion_above < region_above:
            raise ValueError("lod.subregion_above cannot be lower than lod.region_above")
        return cls(region_above=region_above, subregion_above=subregion_above)


@dataclass(frozen=True, slots=True)
class ViewportConfig:
    center_lat: float
    center_lon: float
    zoom: float

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ViewportConfig:
        center_lat = _float(raw.get("center_lat", 39.0), "viewport.center_lat")
        center_lon = _float(raw.get("center_lon", -100.0), "viewport.center_lon")
        if center_lat < -90.0 or center_lat > 90.0:
            raise ValueError("viewport.center_lat must be between -90 and 90")
        if center_lon < -180.0 or center_lon > 180.0:
            raise ValueError("viewport.center_lon must be between -180 and 180")
        return cls(
            center_lat=center_lat,
            center_lon=center_lon,
            zoom=_float(raw.get("zoom", 5), "viewport.zoom"),
        )


@dataclass(frozen=True, slots=True)
class StyleConfig:
    low_color: str
    high_color: str
    stroke_color: str
    opacity: float
    fill_opacity: float
    weight: float

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> StyleConfig:
        opacity = _float(raw.get("opacity", 0.2), "style.opacity")
        fill_opacity = _float(raw.get("fill_opacity", 0.6), "style.fill_opacity")
        for name, value in (("style.opacity", opacity), ("style.fill_opacity", fill_opacity)):
            if value < 0.0 or value > 1.0:
                raise ValueError(f"{name} must be between 0 and 1")
        return cls(
            low_color=_str(raw.get("low_color", "white"), "style.low_color"),
            high_color=_str(raw.get("high_color", "red"), "style.high_color"),
            stroke_color=_str(raw.get("stroke_color", "red"), "style.stroke_color"),
            opacity=opacity,
            fill_opacity=fill_opacity,
            weight=_float(raw.get("weight", 1.0), "style.weight"),
        )


@dataclass(frozen=True, slots=True)
class NavigationConfig:
    code_property: str
    expand_codes: tuple[str, ...]

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> NavigationConfig:
        return cls(
            code_property=_str(raw.get("code_property", "Alpha-2"), "navigation.code_property"),
            expand_codes=_str_list(raw.get("expand_codes", ["US"]), "navigation.expand_codes"),
        )


@dataclass(frozen=True, slots=True)
class BoundarySourceConfig:
    locator: str
    format: str
    key_properties: tuple[str, ...]

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], prefix: str) -> BoundarySourceConfig:
        fmt = _str(raw.get("format", "topojson"), f"{prefix}.format").casefold()
        if fmt not in BOUNDARY_FORMATS:
            raise ValueError(f"{prefix}.format must be one of: " + ", ".join(BOUNDARY_FORMATS))
        return cls(
            locator=_str(raw.get("locator"), f"{prefix}.locator"),
            format=fmt,
            key_properties=_str_list(
                raw.get("key_properties", ["shapeName", "name"]), f"{prefix}.key_properties"
            ),
        )


@dataclass(frozen=True, slots=True)
class PopulationSourceConfig:
    locator: str
    key_fields: tuple[str, ...]
    value_field: str

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], prefix: str) -> PopulationSourceConfig:
        return cls(
            locator=_str(raw.get("locator"), f"{prefix}.locator"),
            key_fields=_str_list(raw.get("key_fields"), f"{prefix}.key_fields"),
            value_field=_str(raw.get("value_field", "population"), f"{prefix}.value_field"),
        )


@dataclass(frozen=True, slots=True)
class LevelSourcesConfig:
    boundary: BoundarySourceConfig | None
    population: PopulationSourceConfig | None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], prefix: str) -> LevelSourcesConfig:
        boundary_raw = raw.get("boundary")
        population_raw = raw.get("population")
        return cls(
            boundary=(
                None
                if boundary_raw is None
                else BoundarySourceConfig.from_mapping(
                    _mapping(boundary_raw, f"{prefix}.boundary"), f"{prefix}.boundary"
                )
            ),
            population=(
                None
                if population_raw is None
                else PopulationSourceConfig.from_mapping(
                    _mapping(population_raw, f"{prefix}.population"), f"{prefix}.population"
                )
            ),
        )


def parse_levels(raw: Mapping[str, Any]) -> dict[Level, LevelSourcesConfig]:
    """Parse the `levels` section keyed by level name or ADM code."""
    levels: dict[Level, LevelSourcesConfig] = {}
    for key, value in raw.items():
        if not isinstance(key, str):
            raise ValueError("Level keys in 'levels' must be strings")
        level = Level.parse(key)
        if level in levels:
            raise ValueError(f"Duplicate level '{key}' in 'levels'")
        prefix = f"levels.{key}"
        levels[level] = LevelSourcesConfig.from_mapping(_mapping(value, prefix), prefix)
    return levels


@dataclass(frozen=True, slots=True)
class AppConfig:
    source_path: Path
    paths: PathsConfig
    retrieval: RetrievalConfig
    lod: LodConfig
    viewport: ViewportConfig
    style: StyleConfig
    navigation: NavigationConfig
    levels: Mapping[Level, LevelSourcesConfig]

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], source_path: Path) -> AppConfig:
        root_dir = source_path.parent.resolve()
        return cls(
            source_path=source_path.resolve(),
            paths=PathsConfig.from_mapping(_mapping(raw.get("paths"), "paths"), root_dir),
            retrieval=RetrievalConfig.from_mapping(
                _optional_mapping(raw.get("retrieval"), "retrieval")
            ),
            lod=LodConfig.from_mapping(_optional_mapping(raw.get("lod"), "lod")),
            viewport=ViewportConfig.from_mapping(_optional_mapping(raw.get("viewport"), "viewport")),
            style=StyleConfig.from_mapping(_optional_mapping(raw.get("style"), "style")),
            navigation=NavigationConfig.from_mapping(
                _optional_mapping(raw.get("navigation"), "navigation")
            ),
            levels=parse_levels(_mapping(raw.get("levels"), "levels")),
        )


def load_config(path: str | Path) -> AppConfig:
    """Load and validate the YAML config file into typed settings."""
    cfg_path = Path(path).resolve()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config file not found: {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if not isinstance(raw, Mapping):
        raise ValueError("Top-level config must be a YAML mapping")
    return AppConfig.from_mapping(cast(Mapping[str, Any], raw), cfg_path)
