"""CLI entrypoint for the popmap choropleth driver."""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Sequence

from .config import AppConfig, load_config
from .models import Viewport
from .render import SnapshotRenderSink
from .session import MapSession
from .util import ensure_directories, format_count, setup_logging, write_json
from .validate import Validator, format_report_lines

LOGGER = logging.getLogger("popmap.cli")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="popmap",
        description="Multi-resolution population choropleth driver.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", default="config.yaml", help="Path to YAML config.")
        p.add_argument("--verbose", action="store_true", help="Enable debug logs.")

    validate_p = subparsers.add_parser("validate", help="Validate config and dataset sources.")
    add_common(validate_p)

    render_p = subparsers.add_parser(
        "render",
        help="Replay viewport events and write a PNG snapshot of the active level.",
    )
    add_common(render_p)
    render_p.add_argument("--zoom", type=float, default=None, help="Zoom after start-up.")
    render_p.add_argument(
        "--center",
        type=_parse_center,
        default=None,
        metavar="LAT,LON",
        help="Viewport center after start-up.",
    )
    render_p.add_argument(
        "--select",
        action="append",
        default=[],
        metavar="CODE",
        help="Simulate selecting a feature with this code. Can be repeated.",
    )
    render_p.add_argument("--output", default=None, help="PNG path (defaults to paths.snapshot_png).")
    render_p.add_argument("--styles-json", default=None, help="Also write per-region styles as JSON.")

    locate_p = subparsers.add_parser("locate", help="Print the region containing a point.")
    add_common(locate_p)
    locate_p.add_argument("--lat", type=float, required=True)
    locate_p.add_argument("--lon", type=float, required=True)
    locate_p.add_argument("--zoom", type=float, default=None, help="Zoom selecting the level.")

    return parser


def _parse_center(raw: str) -> tuple[float, float]:
    parts = [p.strip() for p in raw.split(",")]
    if len(parts) != 2:
        raise argparse.ArgumentTypeError("Expected LAT,LON")
    try:
        return (float(parts[0]), float(parts[1]))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid LAT,LON '{raw}'") from exc


def _load_and_setup(args: argparse.Namespace) -> AppConfig:
    cfg = load_config(args.config)
    log_path = cfg.paths.logs_dir / "popmap.log"
    setup_logging(log_path, verbose=args.verbose)
    ensure_directories(cfg.paths.build_directories)
    return cfg


def _run_validate(cfg: AppConfig) -> int:
    report = Validator(cfg).run()
    for line in format_report_lines(report):
        LOGGER.info(line)
    return 0 if report.ok else 1


def _log_viewport_change(previous: Viewport, current: Viewport) -> None:
    LOGGER.debug(
        "Viewport zoom %.2f -> %.2f, center (%.4f, %.4f) -> (%.4f, %.4f)",
        previous.zoom,
        current.zoom,
        previous.center_lat,
        previous.center_lon,
        current.center_lat,
        current.center_lon,
    )


async def _replay_events(
    session: MapSession,
    *,
    zoom: float | None,
    center: tuple[float, float] | None,
    selections: Sequence[str],
) -> None:
    await session.start()
    if center is not None:
        await session.on_center(*center)
    if zoom is not None:
        await session.on_zoom(zoom)
    for code in selections:
        await session.on_select({session.code_property: code})


def _run_render(
    cfg: AppConfig,
    *,
    zoom: float | None,
    center: tuple[float, float] | None,
    selections: Sequence[str],
    output: Path,
    styles_json: Path | None,
) -> int:
    sink = SnapshotRenderSink()
    session = MapSession.from_config(cfg, sink=sink)
    session.viewport.subscribe(_log_viewport_change)
    asyncio.run(_replay_events(session, zoom=zoom, center=center, selections=selections))

    for notice in sink.notices:
        LOGGER.warning(notice)
    if sink.level is None:
        LOGGER.error("Level %s never became ready; nothing to render.", session.active_level.code)
        return 1

    vp = session.viewport.viewport
    sink.save(output, marker=vp.center)
    LOGGER.info("Snapshot of %s (%d regions) written to %s", sink.level.code, len(sink.styled), output)
    if sink.center is not None:
        LOGGER.info("Viewport center is in %s", sink.center.display_name)

    if styles_json is not None:
        write_json(
            styles_json,
            {
                "level": sink.level.code,
                "center_region": sink.center.key if sink.center is not None else None,
                "regions": [
                    {"key": item.region.key, "label": item.label, "style": item.style.to_dict()}
                    for item in sink.styled
                ],
            },
        )
        LOGGER.info("Region styles written to %s", styles_json)
    return 0


def _run_locate(cfg: AppConfig, *, lat: float, lon: float, zoom: float | None) -> int:
    session = MapSession.from_config(cfg)

    async def _locate() -> None:
        session.viewport.set_center(lat, lon)
        status = await session.on_zoom(zoom) if zoom is not None else None
        if status is None:
            await session.start()

    asyncio.run(_locate())
    level = session.active_level
    if not session.cache.is_ready(level):
        LOGGER.error("Level %s could not be loaded.", level.code)
        return 1
    region = session.center_region
    if region is None:
        print(f"{level.code}: no region contains ({lat}, {lon})")
        return 0
    population = session.cache.population(level)
    value = population.get(region.key) if population is not None else None
    count = format_count(value) if value is not None else "unknown"
    print(f"{level.code}: {region.display_name} (population {count})")
    return 0


def _dispatch(args: argparse.Namespace) -> int:
    cfg = _load_and_setup(args)
    command = str(args.command)
    if command == "validate":
        return _run_validate(cfg)
    if command == "render":
        output = Path(args.output) if args.output else cfg.paths.snapshot_png
        return _run_render(
            cfg,
            zoom=args.zoom,
            center=args.center,
            selections=[str(item) for item in args.select],
            output=output,
            styles_json=Path(args.styles_json) if args.styles_json else None,
        )
    if command == "locate":
        return _run_locate(cfg, lat=args.lat, lon=args.lon, zoom=args.zoom)
    raise ValueError(f"Unknown command: {command}")


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    return _dispatch(args)


if __name__ == "__main__":
    raise SystemExit(main())
