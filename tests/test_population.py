"""Tests for population table decoding."""

import pytest

from popmap.models import DecodeError
from popmap.population import (
    COUNTRY_FORMAT,
    STATE_FORMAT,
    SUBREGION_FORMAT,
    PopulationFormat,
    decode_population,
)


def test_country_records():
    dataset = decode_population(
        [
            {"country": "France", "population": 67000000},
            {"country": "Chile", "population": "19116201"},
        ],
        COUNTRY_FORMAT,
    )
    assert dataset.population == {"France": 67000000.0, "Chile": 19116201.0}
    assert dataset.domain == (19116201.0, 67000000.0)


def test_subregion_key_falls_back_to_region():
    dataset = decode_population(
        [
            {"region": "Alaska", "subregion": "Juneau", "population": 31974},
            {"region": "District of Columbia", "subregion": "", "population": 705749},
            {"region": "Texas", "subregion": None, "population": 100},
        ],
        SUBREGION_FORMAT,
    )
    assert set(dataset.population) == {"Juneau", "District of Columbia", "Texas"}


def test_state_estimate_field():
    dataset = decode_population(
        [
            {"STATE": "California", "POPESTIMATE2019": "39512223"},
            {"STATE": "Wyoming", "POPESTIMATE2019": "578759"},
        ],
        STATE_FORMAT,
    )
    assert dataset.get("California") == 39512223.0
    assert dataset.domain == (578759.0, 39512223.0)


def test_unusable_rows_are_skipped_and_duplicates_overwrite():
    fmt = PopulationFormat(key_fields=("name",), value_field="pop")
    dataset = decode_population(
        [
            {"name": "A", "pop": "n/a"},
            {"name": "B", "pop": 5},
            {"pop": 9},
            {"name": "B", "pop": 7},
            {"name": "C", "pop": "1,200"},
        ],
        fmt,
    )
    assert dataset.population == {"B": 7.0, "C": 1200.0}
    assert dataset.domain == (7.0, 1200.0)


@pytest.mark.parametrize("raw", [{"country": "x"}, [], [{"country": "A", "population": None}], ["row"]])
def test_malformed_tables_raise(raw):
    with pytest.raises(DecodeError):
        decode_population(raw, COUNTRY_FORMAT)
