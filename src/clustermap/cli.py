"""CLI entrypoint for the clustermap engine."""

from __future__ import annotations

import argparse
import logging
import math
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Sequence

import yaml

from .config import AppConfig, load_config
from .controller import ControllerError, Event, ViewStateController
from .filters import parse_date_range
from .models import ALL_CATEGORIES, Coord, ViewState
from .records import load_records
from .snapshot import MemoryListView, SnapshotMapView, drive_event, render_pass_to_dict
from .util import ensure_directories, setup_logging, write_json
from .validate import Validator, format_report_lines

LOGGER = logging.getLogger("clustermap.cli")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clustermap",
        description="Cluster geotagged records for a map viewport.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", default="config.yaml", help="Path to YAML config.")
        p.add_argument("--verbose", action="store_true", help="Enable debug logs.")

    def add_view(p: argparse.ArgumentParser) -> None:
        p.add_argument("--zoom", type=int, default=None, help="Map zoom level.")
        p.add_argument(
            "--center",
            nargs=2,
            type=float,
            metavar=("LAT", "LNG"),
            default=None,
            help="Map center; defaults to map.center from config.",
        )
        p.add_argument("--category", default=ALL_CATEGORIES, help="Category filter.")
        p.add_argument(
            "--since",
            default=ALL_CATEGORIES,
            help="Date window such as 24h, 7d, 4w or 'all'.",
        )
        p.add_argument(
            "--individual",
            action="store_true",
            help="Force individual markers regardless of zoom.",
        )
        p.add_argument("--select", type=int, default=None, help="Record id to select.")

    validate_p = subparsers.add_parser("validate", help="Validate config and records file.")
    add_common(validate_p)

    cluster_p = subparsers.add_parser(
        "cluster",
        help="Run one render pass and write its JSON snapshot.",
    )
    add_common(cluster_p)
    add_view(cluster_p)

    render_p = subparsers.add_parser("render", help="Run one render pass and save a PNG map.")
    add_common(render_p)
    add_view(render_p)

    replay_p = subparsers.add_parser(
        "replay",
        help="Feed a YAML list of UI events through the controller.",
    )
    add_common(replay_p)
    replay_p.add_argument("--events", required=True, help="Path to events YAML.")

    return parser


def _load_and_setup(args: argparse.Namespace) -> AppConfig:
    cfg = load_config(args.config)
    log_path = cfg.paths.logs_dir / "clustermap.log"
    setup_logging(log_path, verbose=args.verbose)
    ensure_directories(cfg.paths.build_directories)
    return cfg


def _build_controller(
    cfg: AppConfig,
    *,
    zoom: int | None = None,
    center: Sequence[float] | None = None,
    state: ViewState | None = None,
) -> tuple[ViewStateController, SnapshotMapView, MemoryListView]:
    records = load_records(cfg.paths.records)
    LOGGER.info("Loaded %d records from %s", len(records), cfg.paths.records)

    map_view = SnapshotMapView.from_config(cfg.map)
    if zoom is not None or center is not None:
        target = (
            Coord(lat=float(center[0]), lng=float(center[1]))
            if center is not None
            else map_view.viewport.center
        )
        map_view.focus(target, zoom if zoom is not None else map_view.current_zoom())
    if state is not None:
        state.zoom = map_view.current_zoom()
        state.bounds = map_view.current_bounds()

    list_view = MemoryListView()
    controller = ViewStateController.from_config(records, map_view, list_view, cfg, state=state)
    return controller, map_view, list_view


def _view_state_from_args(args: argparse.Namespace) -> ViewState:
    return ViewState(
        zoom=0,
        force_individual=bool(args.individual),
        category=str(args.category),
        date_range=parse_date_range(str(args.since), datetime.now(timezone.utc)),
        selected_id=args.select,
    )


def _run_validate(cfg: AppConfig) -> int:
    report = Validator(cfg).run()
    for line in format_report_lines(report):
        LOGGER.info(line)
    return 0 if report.ok else 1


def _run_pass(cfg: AppConfig, args: argparse.Namespace, *, save_png: bool) -> int:
    try:
        state = _view_state_from_args(args)
        controller, map_view, _ = _build_controller(
            cfg,
            zoom=args.zoom,
            center=args.center,
            state=state,
        )
    except (OSError, ValueError) as exc:
        LOGGER.error("Could not prepare render pass: %s", exc)
        return 1

    render_pass = controller.refresh()
    LOGGER.info(
        "%s | %s mode | %d active, %d in view",
        controller.zoom_label(),
        "clustered" if render_pass.clustered else "individual",
        render_pass.active_count,
        render_pass.visible_count,
    )
    for row in render_pass.rows:
        marker = "*" if row.selected else " "
        LOGGER.info("%s [%s] %s %s", marker, row.row_id, row.title, row.subtitle)

    output_path = cfg.paths.output_dir / "render_pass.json"
    write_json(output_path, render_pass_to_dict(render_pass))
    LOGGER.info("Render pass written to %s", output_path)

    if save_png:
        map_view.save_png(cfg.paths.output_dir / f"map.{cfg.snapshot.format}", cfg.snapshot)
    return 0


def _run_replay(cfg: AppConfig, events_path: Path) -> int:
    try:
        events = _load_events(events_path)
        controller, map_view, _ = _build_controller(cfg)
    except (OSError, ValueError) as exc:
        LOGGER.error("Could not prepare replay: %s", exc)
        return 1

    entries: list[dict[str, Any]] = [
        {"index": -1, "event": "initial", "pass": render_pass_to_dict(controller.refresh())}
    ]
    for idx, event in enumerate(events):
        at = event.payload.get("at")
        if isinstance(at, (int, float)) and not isinstance(at, bool):
            settled = controller.flush_viewport(now=float(at))
            if settled is not None:
                entries.append(
                    {"index": idx, "event": "viewport_settled", "pass": render_pass_to_dict(settled)}
                )
        try:
            render_pass = drive_event(controller, map_view, event)
        except ControllerError as exc:
            LOGGER.error("Event %d (%s) rejected: %s", idx, event.kind.value, exc)
            return 1
        if render_pass is None:
            LOGGER.debug("Event %d (%s) deferred", idx, event.kind.value)
            continue
        entries.append(
            {
                "index": idx,
                "event": event.kind.value,
                "payload": dict(event.payload),
                "pass": render_pass_to_dict(render_pass),
            }
        )

    settled = controller.flush_viewport(now=math.inf)
    if settled is not None:
        entries.append(
            {"index": len(events), "event": "viewport_settled", "pass": render_pass_to_dict(settled)}
        )

    output_path = cfg.paths.output_dir / "replay.json"
    write_json(output_path, entries)
    LOGGER.info("Replayed %d events into %d passes; written to %s", len(events), len(entries), output_path)
    return 0


def _load_events(path: Path) -> list[Event]:
    if not path.exists():
        raise FileNotFoundError(f"Events file not found: {path}")
    with path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValueError(f"Expected list in {path}")
    events: list[Event] = []
    for idx, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ValueError(f"Expected mapping at index {idx} in {path}")
        events.append(Event.from_mapping(item))
    return events


def _dispatch(args: argparse.Namespace) -> int:
    cfg = _load_and_setup(args)
    command = str(args.command)
    if command == "validate":
        return _run_validate(cfg)
    if command == "cluster":
        return _run_pass(cfg, args, save_png=False)
    if command == "render":
        return _run_pass(cfg, args, save_png=True)
    if command == "replay":
        return _run_replay(cfg, Path(args.events))
    raise ValueError(f"Unknown command: {command}")


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    return _dispatch(args)


if __name__ == "__main__":
    raise SystemExit(main())
