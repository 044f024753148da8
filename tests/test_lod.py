"""Tests for level-of-detail selection and transitions."""

import pytest

from popmap.lod import (
    LevelOfDetailManager,
    RegionSelected,
    ZoomChanged,
    derive_level,
    expand_codes_predicate,
    next_level,
)
from popmap.models import Level


@pytest.mark.parametrize(
    ("zoom", "expected"),
    [
        (0, Level.COUNTRY),
        (4, Level.COUNTRY),
        (4.01, Level.REGION),
        (5, Level.REGION),
        (7, Level.REGION),
        (7.01, Level.SUBREGION),
        (18, Level.SUBREGION),
    ],
)
def test_derive_level_thresholds(zoom, expected):
    assert derive_level(zoom) is expected


def test_derive_level_custom_thresholds():
    assert derive_level(3, (2, 6)) is Level.REGION
    assert derive_level(6, (2, 6)) is Level.REGION
    assert derive_level(6.5, (2, 6)) is Level.SUBREGION


class TestLevelOfDetailManager:
    def test_initial_level_follows_zoom(self):
        assert LevelOfDetailManager(5).active is Level.REGION

    def test_zoom_within_band_emits_nothing(self):
        manager = LevelOfDetailManager(5)
        assert manager.handle(ZoomChanged(6)) is None
        assert manager.handle(ZoomChanged(7)) is None
        assert manager.active is Level.REGION

    def test_zoom_across_threshold_emits_transition(self):
        manager = LevelOfDetailManager(5)
        transition = manager.handle(ZoomChanged(8))
        assert transition is not None
        assert transition.previous is Level.REGION
        assert transition.current is Level.SUBREGION
        assert transition.trigger == "zoom"
        assert manager.active is Level.SUBREGION

    def test_selection_of_expand_code_descends_one_level(self):
        manager = LevelOfDetailManager(2, should_expand=expand_codes_predicate(["US"]))
        transition = manager.handle(RegionSelected("us"))
        assert transition is not None
        assert transition.current is Level.REGION
        assert transition.trigger == "selection"

    def test_selection_of_other_code_is_ignored(self):
        manager = LevelOfDetailManager(2, should_expand=expand_codes_predicate(["US"]))
        assert manager.handle(RegionSelected("FR")) is None
        assert manager.handle(RegionSelected(None)) is None
        assert manager.active is Level.COUNTRY

    def test_selection_at_finest_level_stays(self):
        manager = LevelOfDetailManager(9, should_expand=expand_codes_predicate(["US"]))
        assert manager.handle(RegionSelected("US")) is None
        assert manager.active is Level.SUBREGION

    def test_zoom_after_selection_override_returns_to_zoom_level(self):
        manager = LevelOfDetailManager(2, should_expand=expand_codes_predicate(["US"]))
        manager.handle(RegionSelected("US"))
        transition = manager.handle(ZoomChanged(3))
        assert transition is not None
        assert transition.current is Level.COUNTRY


def test_next_level_without_predicate_keeps_level():
    assert next_level(Level.COUNTRY, RegionSelected("US")) is Level.COUNTRY


def test_next_level_rejects_unknown_event():
    with pytest.raises(TypeError):
        next_level(Level.COUNTRY, object())  # type: ignore[arg-type]


def test_level_order_and_finer():
    assert Level.COUNTRY < Level.REGION < Level.SUBREGION
    assert Level.COUNTRY.finer() is Level.REGION
    assert Level.SUBREGION.finer() is Level.SUBREGION
    assert Level.parse("adm2") is Level.SUBREGION
    assert Level.parse("region") is Level.REGION
