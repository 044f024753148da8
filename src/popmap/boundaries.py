"""Boundary file decoding into normalized region collections.

Two input shapes are supported and selected explicitly per data source:

* TopoJSON topologies: every named object group is converted into features
  (arcs are stitched and de-quantized) and the groups are concatenated in
  object order.
* GeoJSON feature collections, used as-is.

Both produce the same `Region` records. Decoding is pure and does no I/O.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Protocol, Sequence

from shapely.geometry import MultiPolygon, Polygon, shape
from shapely.geometry.base import BaseGeometry

from .models import DecodeError, Region


DEFAULT_KEY_PROPERTIES = ("shapeName", "name")

_LOGGER = logging.getLogger("popmap.boundaries")

Coord = tuple[float, float]


class BoundaryDecoder(Protocol):
    def decode(self, raw: Any) -> list[Region]: ...


def _region_key(
    properties: Mapping[str, Any],
    feature_id: Any,
    key_properties: Sequence[str],
) -> str | None:
    for name in key_properties:
        value = properties.get(name)
        if value is None:
            continue
        key = str(value).strip()
        if key:
            return key
    if feature_id is not None and str(feature_id).strip():
        return str(feature_id).strip()
    return None


def _make_region(
    geometry: BaseGeometry | None,
    properties: Mapping[str, Any] | None,
    feature_id: Any,
    key_properties: Sequence[str],
) -> Region | None:
    if geometry is None or geometry.is_empty:
        return None
    props = dict(properties or {})
    key = _region_key(props, feature_id, key_properties)
    if key is None:
        return None
    return Region(key=key, geometry=geometry, display_name=key, properties=props)


def _polygonal(geometry: BaseGeometry) -> BaseGeometry | None:
    """Keep only the areal part of a geometry."""
    if isinstance(geometry, (Polygon, MultiPolygon)):
        return geometry
    parts = getattr(geometry, "geoms", None)
    if parts is None:
        return None
    polygons: list[Polygon] = []
    for part in parts:
        areal = _polygonal(part)
        if isinstance(areal, Polygon):
            polygons.append(areal)
        elif isinstance(areal, MultiPolygon):
            polygons.extend(areal.geoms)
    return MultiPolygon(polygons) if polygons else None


class FeatureCollectionDecoder:
    """GeoJSON `FeatureCollection` (or single `Feature`) decoder."""

    def __init__(self, key_properties: Sequence[str] = DEFAULT_KEY_PROPERTIES) -> None:
        self.key_properties = tuple(key_properties)

    def decode(self, raw: Any) -> list[Region]:
        if not isinstance(raw, Mapping):
            raise DecodeError("Expected GeoJSON object")
        kind = raw.get("type")
        if kind == "FeatureCollection":
            features = raw.get("features")
            if not isinstance(features, list):
                raise DecodeError("GeoJSON FeatureCollection has no 'features' list")
        elif kind == "Feature":
            features = [raw]
        else:
            raise DecodeError(f"Unsupported GeoJSON type '{kind}'")
        return self.decode_features(features)

    def decode_features(self, features: Iterable[Any]) -> list[Region]:
        regions: list[Region] = []
        skipped = 0
        for idx, feature in enumerate(features):
            if not isinstance(feature, Mapping):
                raise DecodeError(f"Expected GeoJSON feature at index {idx}")
            geometry = self._feature_geometry(feature, idx)
            region = _make_region(
                geometry,
                feature.get("properties"),
                feature.get("id"),
                self.key_properties,
            )
            if region is None:
                skipped += 1
                continue
            regions.append(region)
        if skipped:
            _LOGGER.warning("Skipped %d features without areal geometry or key", skipped)
        return regions

    @staticmethod
    def _feature_geometry(feature: Mapping[str, Any], idx: int) -> BaseGeometry | None:
        raw_geometry = feature.get("geometry")
        if raw_geometry is None:
            return None
        try:
            geometry = shape(raw_geometry)
        except Exception as exc:
            raise DecodeError(f"Invalid geometry in feature {idx}: {exc}") from exc
        return _polygonal(geometry)


class TopologyDecoder:
    """TopoJSON decoder; all named object groups become one region list."""

    def __init__(self, key_properties: Sequence[str] = DEFAULT_KEY_PROPERTIES) -> None:
        self.key_properties = tuple(key_properties)

    def decode(self, raw: Any) -> list[Region]:
        if not isinstance(raw, Mapping) or raw.get("type") != "Topology":
            raise DecodeError("Expected TopoJSON object with type 'Topology'")
        objects = raw.get("objects")
        if not isinstance(objects, Mapping):
            raise DecodeError("TopoJSON topology has no 'objects' mapping")
        arcs = _decode_arcs(raw.get("arcs"), raw.get("transform"))

        regions: list[Region] = []
        skipped = 0
        for name, obj in objects.items():
            if not isinstance(obj, Mapping):
                raise DecodeError(f"TopoJSON object '{name}' is not a mapping")
            for member in _object_members(obj):
                geometry = _topology_geometry(member, arcs)
                region = _make_region(
                    geometry,
                    member.get("properties"),
                    member.get("id"),
                    self.key_properties,
                )
                if region is None:
                    skipped += 1
                    continue
                regions.append(region)
        if skipped:
            _LOGGER.warning("Skipped %d topology geometries without areal shape or key", skipped)
        return regions


def decoder_for(fmt: str, key_properties: Sequence[str] = DEFAULT_KEY_PROPERTIES) -> BoundaryDecoder:
    normalized = fmt.strip().casefold()
    if normalized == "topojson":
        return TopologyDecoder(key_properties)
    if normalized == "geojson":
        return FeatureCollectionDecoder(key_properties)
    raise ValueError(f"Unknown boundary format '{fmt}'")


def _object_members(obj: Mapping[str, Any]) -> list[Mapping[str, Any]]:
    if obj.get("type") == "GeometryCollection":
        members = obj.get("geometries")
        if not isinstance(members, list):
            raise DecodeError("TopoJSON GeometryCollection has no 'geometries' list")
        return [m for m in members if isinstance(m, Mapping)]
    return [obj]


def _decode_arcs(raw_arcs: Any, transform: Any) -> list[list[Coord]]:
    """Absolute coordinates per arc; quantized arcs are delta-decoded."""
    if not isinstance(raw_arcs, list):
        raise DecodeError("TopoJSON topology has no 'arcs' list")

    scale: Sequence[float] | None = None
    translate: Sequence[float] | None = None
    if transform is not None:
        if not isinstance(transform, Mapping):
            raise DecodeError("TopoJSON 'transform' must be a mapping")
        scale = transform.get("scale")
        translate = transform.get("translate")
        if not _is_pair(scale) or not _is_pair(translate):
            raise DecodeError("TopoJSON 'transform' needs numeric 'scale' and 'translate' pairs")

    decoded: list[list[Coord]] = []
    for arc_idx, arc in enumerate(raw_arcs):
        if not isinstance(arc, list):
            raise DecodeError(f"TopoJSON arc {arc_idx} is not a list")
        points: list[Coord] = []
        x = 0.0
        y = 0.0
        for position in arc:
            if not isinstance(position, list) or len(position) < 2:
                raise DecodeError(f"Invalid position in TopoJSON arc {arc_idx}")
            if scale is not None and translate is not None:
                x += position[0]
                y += position[1]
                points.append((x * scale[0] + translate[0], y * scale[1] + translate[1]))
            else:
                points.append((float(position[0]), float(position[1])))
        decoded.append(points)
    return decoded


def _is_pair(value: Any) -> bool:
    return (
        isinstance(value, list)
        and len(value) == 2
        and all(isinstance(v, (int, float)) for v in value)
    )


def _stitch_ring(arc_indexes: Any, arcs: Sequence[Sequence[Coord]]) -> list[Coord]:
    """Join arcs into one ring; a negative index means the reversed arc ~idx."""
    if not isinstance(arc_indexes, list):
        raise DecodeError("TopoJSON ring must be a list of arc indexes")
    points: list[Coord] = []
    for idx in arc_indexes:
        if not isinstance(idx, int):
            raise DecodeError(f"Invalid TopoJSON arc index {idx!r}")
        try:
            arc = list(arcs[idx]) if idx >= 0 else list(reversed(arcs[~idx]))
        except IndexError as exc:
            raise DecodeError(f"TopoJSON arc index {idx} out of range") from exc
        # consecutive arcs share their junction point
        if points:
            points.pop()
        points.extend(arc)
    return points


def _topology_polygon(rings: Any, arcs: Sequence[Sequence[Coord]]) -> Polygon | None:
    if not isinstance(rings, list) or not rings:
        return None
    stitched = [_stitch_ring(ring, arcs) for ring in rings]
    shell = stitched[0]
    if len(shell) < 4:
        return None
    holes = [ring for ring in stitched[1:] if len(ring) >= 4]
    return Polygon(shell, holes)


def _topology_geometry(member: Mapping[str, Any], arcs: Sequence[Sequence[Coord]]) -> BaseGeometry | None:
    kind = member.get("type")
    if kind == "Polygon":
        return _topology_polygon(member.get("arcs"), arcs)
    if kind == "MultiPolygon":
        parts = member.get("arcs")
        if not isinstance(parts, list):
            return None
        polygons = [p for p in (_topology_polygon(part, arcs) for part in parts) if p is not None]
        return MultiPolygon(polygons) if polygons else None
    if kind == "GeometryCollection":
        polygons: list[Polygon] = []
        for child in member.get("geometries") or []:
            if not isinstance(child, Mapping):
                continue
            geometry = _topology_geometry(child, arcs)
            if isinstance(geometry, Polygon):
                polygons.append(geometry)
            elif isinstance(geometry, MultiPolygon):
                polygons.extend(geometry.geoms)
        return MultiPolygon(polygons) if polygons else None
    return None
