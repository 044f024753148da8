"""Tests for YAML config loading."""

import pytest
import yaml

from popmap.config import load_config
from popmap.models import Level


def _base_config():
    return {
        "paths": {"data_dir": "public"},
        "levels": {
            "ADM1": {
                "boundary": {"locator": "states.topojson"},
                "population": {
                    "locator": "population_state.json",
                    "key_fields": ["STATE"],
                    "value_field": "POPESTIMATE2019",
                },
            },
            "subregion": {
                "boundary": {"locator": "counties.geojson", "format": "GeoJSON", "key_properties": ["NAME"]},
                "population": {"locator": "population.json", "key_fields": ["subregion", "region"]},
            },
        },
    }


def _write(tmp_path, data):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


def test_defaults_and_relative_paths(tmp_path):
    cfg = load_config(_write(tmp_path, _base_config()))

    assert cfg.paths.data_dir == tmp_path.resolve() / "public"
    assert cfg.paths.snapshot_png == tmp_path.resolve() / "build" / "map.png"
    assert cfg.lod.thresholds == (4.0, 7.0)
    assert (cfg.viewport.center_lat, cfg.viewport.center_lon, cfg.viewport.zoom) == (39.0, -100.0, 5.0)
    assert cfg.style.low_color == "white" and cfg.style.high_color == "red"
    assert cfg.navigation.code_property == "Alpha-2"
    assert cfg.navigation.expand_codes == ("US",)
    assert cfg.retrieval.base_url is None


def test_levels_are_keyed_by_level(tmp_path):
    cfg = load_config(_write(tmp_path, _base_config()))

    assert set(cfg.levels) == {Level.REGION, Level.SUBREGION}
    region = cfg.levels[Level.REGION]
    assert region.boundary.format == "topojson"
    assert region.boundary.key_properties == ("shapeName", "name")
    assert region.population.value_field == "POPESTIMATE2019"
    subregion = cfg.levels[Level.SUBREGION]
    assert subregion.boundary.format == "geojson"
    assert subregion.population.key_fields == ("subregion", "region")
    assert subregion.population.value_field == "population"


@pytest.mark.parametrize(
    ("mutate", "message"),
    [
        (lambda d: d["levels"]["ADM1"]["boundary"].update(format="shapefile"), "format"),
        (lambda d: d["levels"].update(ADM9={}), "Unknown level"),
        (lambda d: d.update(lod={"region_above": 8, "subregion_above": 7}), "subregion_above"),
        (lambda d: d.update(style={"fill_opacity": 1.5}), "fill_opacity"),
        (lambda d: d.update(viewport={"center_lat": 120}), "center_lat"),
        (lambda d: d.pop("levels"), "levels"),
        (lambda d: d["levels"]["ADM1"]["population"].pop("key_fields"), "key_fields"),
    ],
)
def test_invalid_config_is_rejected(tmp_path, mutate, message):
    data = _base_config()
    mutate(data)
    with pytest.raises(ValueError, match=message):
        load_config(_write(tmp_path, data))


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")
