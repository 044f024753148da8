"""Validation layer for config and dataset sources."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from .config import AppConfig, LevelSourcesConfig
from .models import Level


@dataclass(slots=True)
class ValidationReport:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    infos: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)

    def add_info(self, msg: str) -> None:
        self.infos.append(msg)


class Validator:
    """Checks that every level can be loaded with the configured sources."""

    def __init__(self, cfg: AppConfig) -> None:
        self.cfg = cfg

    def run(self) -> ValidationReport:
        report = ValidationReport()
        self._validate_levels(report)
        self._validate_thresholds(report)
        self._validate_local_files(report)
        self._validate_navigation(report)
        return report

    def _validate_levels(self, report: ValidationReport) -> None:
        for level in Level:
            sources = self.cfg.levels.get(level)
            if sources is None:
                report.add_warning(
                    f"No sources configured for {level.code}; the map stays blank at that zoom range."
                )
                continue
            if sources.boundary is None:
                report.add_error(f"{level.code} has population data but no boundary source")
            if sources.population is None:
                report.add_error(f"{level.code} has boundaries but no population source")

    def _validate_thresholds(self, report: ValidationReport) -> None:
        lod = self.cfg.lod
        if lod.subregion_above < lod.region_above:
            report.add_error(
                f"Zoom thresholds out of order: {Level.SUBREGION.code} above {lod.subregion_above:g} "
                f"is below {Level.REGION.code} above {lod.region_above:g}"
            )
            return
        report.add_info(
            "Level thresholds: "
            f"{Level.REGION.code} above zoom {lod.region_above:g}, "
            f"{Level.SUBREGION.code} above zoom {lod.subregion_above:g}"
        )

    def _validate_local_files(self, report: ValidationReport) -> None:
        if self.cfg.retrieval.base_url:
            report.add_info(f"Datasets are fetched from {self.cfg.retrieval.base_url}")
            return
        data_dir = self.cfg.paths.data_dir
        if not data_dir.is_dir():
            report.add_error(f"Data directory not found: {data_dir}")
            return
        missing: list[str] = []
        for level, sources in sorted(self.cfg.levels.items(), key=lambda item: item[0].rank):
            for locator in _locators(sources):
                if not (data_dir / locator.lstrip("/")).exists():
                    missing.append(f"{level.code}:{locator}")
        if missing:
            report.add_error(f"Missing dataset files in {data_dir}: {_format_code_list(missing)}")
        else:
            report.add_info(f"All dataset files present in {data_dir}")

    def _validate_navigation(self, report: ValidationReport) -> None:
        codes = self.cfg.navigation.expand_codes
        if not codes:
            report.add_info("Selection shortcut disabled (no expand codes)")
            return
        report.add_info(
            f"Selecting {', '.join(codes)} via '{self.cfg.navigation.code_property}' expands one level"
        )


def format_report_lines(report: ValidationReport) -> Sequence[str]:
    lines: list[str] = []
    lines.extend(f"[INFO] {msg}" for msg in report.infos)
    lines.extend(f"[WARN] {msg}" for msg in report.warnings)
    lines.extend(f"[ERROR] {msg}" for msg in report.errors)
    if report.ok:
        lines.append("[OK] Validation completed with no errors.")
    return lines


def _locators(sources: LevelSourcesConfig) -> list[str]:
    out: list[str] = []
    if sources.boundary is not None:
        out.append(sources.boundary.locator)
    if sources.population is not None:
        out.append(sources.population.locator)
    return out


def _format_code_list(values: list[str], limit: int = 12) -> str:
    if len(values) <= limit:
        return ", ".join(values)
    shown = ", ".join(values[:limit])
    return f"{shown}, ... (+{len(values) - limit} more)"
