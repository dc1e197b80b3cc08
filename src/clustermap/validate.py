"""Validation layer for config and record collections."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from .config import AppConfig
from .filters import categories_of
from .geometry import WebMercatorViewport
from .models import ComplaintMeta, Coord, Record, StationMeta, is_finite_coord
from .records import load_records


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
    """Checks the records file against what the clustering engine assumes."""

    def __init__(self, cfg: AppConfig) -> None:
        self.cfg = cfg

    def run(self) -> ValidationReport:
        report = ValidationReport()
        report.add_info(
            "Clustering: "
            f"min_zoom_for_individual={self.cfg.clustering.min_zoom_for_individual}, "
            f"cluster_radius_px={self.cfg.clustering.cluster_radius_px:g}, "
            f"max_cluster_size={self.cfg.clustering.max_cluster_size}"
        )
        records = self._validate_records_file(report)
        if records:
            self._validate_coordinates(report, records)
            self._validate_metadata(report, records)
            self._validate_initial_view(report, records)
        return report

    def _validate_records_file(self, report: ValidationReport) -> list[Record]:
        path = self.cfg.paths.records
        if not path.exists():
            report.add_error(f"Missing records file: {path}")
            return []
        try:
            records = load_records(path)
        except Exception as exc:
            report.add_error(f"Failed parsing records file '{path}': {exc}")
            return []
        if not records:
            report.add_warning(f"Records file is empty: {path}")
            return []
        report.add_info(f"Loaded {len(records)} records from {path}")
        report.add_info("Categories: " + ", ".join(categories_of(records)))
        return records

    def _validate_coordinates(self, report: ValidationReport, records: Sequence[Record]) -> None:
        bad: list[str] = []
        for record in records:
            if not is_finite_coord(record.coord):
                bad.append(str(record.id))
            elif not (-90.0 <= record.lat <= 90.0 and -180.0 <= record.lng <= 180.0):
                bad.append(str(record.id))
        if bad:
            report.add_error("Records with invalid coordinates: " + _format_code_list(bad))

    def _validate_metadata(self, report: ValidationReport, records: Sequence[Record]) -> None:
        stations = sum(1 for record in records if isinstance(record.meta, StationMeta))
        complaints = sum(1 for record in records if isinstance(record.meta, ComplaintMeta))
        if stations and complaints:
            report.add_warning(
                f"Collection mixes {stations} station and {complaints} complaint records"
            )
        bare = len(records) - stations - complaints
        if bare:
            report.add_info(f"{bare} records carry no station/complaint metadata")

    def _validate_initial_view(self, report: ValidationReport, records: Sequence[Record]) -> None:
        map_cfg = self.cfg.map
        viewport = WebMercatorViewport(
            center=Coord(lat=map_cfg.center_lat, lng=map_cfg.center_lng),
            zoom=map_cfg.zoom,
            width_px=map_cfg.width_px,
            height_px=map_cfg.height_px,
            tile_size_px=map_cfg.tile_size_px,
            min_zoom=map_cfg.min_zoom,
            max_zoom=map_cfg.max_zoom,
        )
        bounds = viewport.bounds()
        outside = [str(record.id) for record in records if not bounds.contains(record.coord)]
        if len(outside) == len(records):
            report.add_warning("No records fall inside the initial map view")
        elif outside:
            report.add_info(
                "Records outside the initial map view: " + _format_code_list(outside)
            )


def _format_code_list(values: Sequence[str], limit: int = 12) -> str:
    if len(values) <= limit:
        return ", ".join(values)
    shown = ", ".join(values[:limit])
    return f"{shown}, ... (+{len(values) - limit} more)"


def format_report_lines(report: ValidationReport) -> Sequence[str]:
    lines: list[str] = []
    lines.extend(f"[INFO] {msg}" for msg in report.infos)
    lines.extend(f"[WARN] {msg}" for msg in report.warnings)
    lines.extend(f"[ERROR] {msg}" for msg in report.errors)
    if report.ok:
        lines.append("[OK] Validation completed with no errors.")
    return lines
