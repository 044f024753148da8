"""Population table decoding for the per-level source formats."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from .config import PopulationSourceConfig
from .models import DecodeError, PopulationDataset
from .util import to_float_or_none


_LOGGER = logging.getLogger("popmap.population")


@dataclass(frozen=True, slots=True)
class PopulationFormat:
    """Which fields carry the join key and the count.

    `key_fields` are tried in order and the first non-empty one wins, so a
    subregion table can fall back to its region column.
    """

    key_fields: tuple[str, ...]
    value_field: str = "population"

    @classmethod
    def from_source(cls, source: PopulationSourceConfig) -> PopulationFormat:
        return cls(key_fields=source.key_fields, value_field=source.value_field)


COUNTRY_FORMAT = PopulationFormat(key_fields=("country",))
SUBREGION_FORMAT = PopulationFormat(key_fields=("subregion", "region"))
STATE_FORMAT = PopulationFormat(key_fields=("STATE",), value_field="POPESTIMATE2019")


def _row_key(row: Mapping[str, Any], key_fields: Sequence[str]) -> str | None:
    for field_name in key_fields:
        value = row.get(field_name)
        if value is None:
            continue
        key = str(value).strip()
        if key:
            return key
    return None


def decode_population(raw: Any, fmt: PopulationFormat) -> PopulationDataset:
    """Build a population mapping and its domain from a list of records."""
    if not isinstance(raw, list):
        raise DecodeError(f"Expected list of population records, got {type(raw).__name__}")

    counts: dict[str, float] = {}
    skipped = 0
    for idx, row in enumerate(raw):
        if not isinstance(row, Mapping):
            raise DecodeError(f"Expected mapping at population record {idx}")
        key = _row_key(row, fmt.key_fields)
        value = to_float_or_none(row.get(fmt.value_field))
        if key is None or value is None:
            skipped += 1
            continue
        counts[key] = value

    if skipped:
        _LOGGER.debug("Skipped %d population records without key or numeric value", skipped)
    if not counts:
        raise DecodeError(
            f"No usable population records (key fields {', '.join(fmt.key_fields)}, "
            f"value field {fmt.value_field})"
        )
    return PopulationDataset.from_counts(counts)
