"""Typed configuration loader for `config.yaml`."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, cast

import yaml


def _mapping(value: Any, field_name: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"Expected mapping for '{field_name}'")
    return cast(Mapping[str, Any], value)


def _str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected non-empty string for '{field_name}'")
    return value.strip()


def _int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Expected integer for '{field_name}'")
    return value


def _float(value: Any, field_name: str) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    raise ValueError(f"Expected float for '{field_name}'")


def _path_from_cfg(value: Any, field_name: str, root_dir: Path) -> Path:
    raw = _str(value, field_name)
    p = Path(raw)
    return p if p.is_absolute() else root_dir / p


@dataclass(frozen=True, slots=True)
class ProjectConfig:
    name: str
    record_noun: str

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ProjectConfig:
        return cls(
            name=_str(raw.get("name", "clustermap"), "project.name"),
            record_noun=_str(raw.get("record_noun", "incidents"), "project.record_noun"),
        )


@dataclass(frozen=True, slots=True)
class PathsConfig:
    records: Path
    output_dir: Path
    logs_dir: Path

    @property
    def build_directories(self) -> tuple[Path, ...]:
        return (self.output_dir, self.logs_dir)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], root_dir: Path) -> PathsConfig:
        return cls(
            records=_path_from_cfg(
                raw.get("records", "data/complaints.yaml"), "paths.records", root_dir
            ),
            output_dir=_path_from_cfg(raw.get("output_dir", "build"), "paths.output_dir", root_dir),
            logs_dir=_path_from_cfg(raw.get("logs_dir", "build/logs"), "paths.logs_dir", root_dir),
        )


@dataclass(frozen=True, slots=True)
class ClusterConfig:
    min_zoom_for_individual: int = 13
    cluster_radius_px: float = 80.0
    max_cluster_size: int = 50

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ClusterConfig:
        min_zoom = _int(raw.get("min_zoom_for_individual", 13), "clustering.min_zoom_for_individual")
        radius = _float(raw.get("cluster_radius_px", 80), "clustering.cluster_radius_px")
        max_size = _int(raw.get("max_cluster_size", 50), "clustering.max_cluster_size")
        if radius < 0:
            raise ValueError("clustering.cluster_radius_px must be >= 0")
        if max_size < 1:
            raise ValueError("clustering.max_cluster_size must be >= 1")
        return cls(
            min_zoom_for_individual=min_zoom,
            cluster_radius_px=radius,
            max_cluster_size=max_size,
        )


@dataclass(frozen=True, slots=True)
class MapConfig:
    center_lat: float
    center_lng: float
    zoom: int
    width_px: int
    height_px: int
    tile_size_px: int
    min_zoom: int
    max_zoom: int
    fit_padding_ratio: float
    focus_zoom: int
    viewport_settle_ms: int

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> MapConfig:
        center = _mapping(raw.get("center"), "map.center")
        center_lat = _float(center.get("lat", 42.3655), "map.center.lat")
        center_lng = _float(center.get("lng", -71.1018), "map.center.lng")
        if center_lat < -90.0 or center_lat > 90.0:
            raise ValueError("map.center.lat must be between -90 and 90")
        if center_lng < -180.0 or center_lng > 180.0:
            raise ValueError("map.center.lng must be between -180 and 180")

        min_zoom = _int(raw.get("min_zoom", 0), "map.min_zoom")
        max_zoom = _int(raw.get("max_zoom", 19), "map.max_zoom")
        if min_zoom < 0 or min_zoom > max_zoom:
            raise ValueError("map.min_zoom must be >= 0 and <= map.max_zoom")
        width_px = _int(raw.get("width_px", 1024), "map.width_px")
        height_px = _int(raw.get("height_px", 768), "map.height_px")
        if width_px <= 0 or height_px <= 0:
            raise ValueError("map.width_px and map.height_px must be > 0")
        fit_padding_ratio = _float(raw.get("fit_padding_ratio", 0.1), "map.fit_padding_ratio")
        if fit_padding_ratio < 0:
            raise ValueError("map.fit_padding_ratio must be >= 0")
        settle_ms = _int(raw.get("viewport_settle_ms", 0), "map.viewport_settle_ms")
        if settle_ms < 0:
            raise ValueError("map.viewport_settle_ms must be >= 0")

        return cls(
            center_lat=center_lat,
            center_lng=center_lng,
            zoom=_int(raw.get("zoom", 10), "map.zoom"),
            width_px=width_px,
            height_px=height_px,
            tile_size_px=_int(raw.get("tile_size_px", 256), "map.tile_size_px"),
            min_zoom=min_zoom,
            max_zoom=max_zoom,
            fit_padding_ratio=fit_padding_ratio,
            focus_zoom=_int(raw.get("focus_zoom", 15), "map.focus_zoom"),
            viewport_settle_ms=settle_ms,
        )


@dataclass(frozen=True, slots=True)
class ListConfig:
    empty_text: str

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], record_noun: str) -> ListConfig:
        return cls(
            empty_text=_str(
                raw.get("empty_text", f"No {record_noun} in current view"), "list.empty_text"
            ),
        )


@dataclass(frozen=True, slots=True)
class SnapshotConfig:
    dpi: int
    background: str
    cluster_color: str
    marker_color: str
    selected_color: str
    occupied_color: str
    format: str

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> SnapshotConfig:
        return cls(
            dpi=_int(raw.get("dpi", 100), "snapshot.dpi"),
            background=_str(raw.get("background", "#f8f9fb"), "snapshot.background"),
            cluster_color=_str(raw.get("cluster_color", "#2c5aa0"), "snapshot.cluster_color"),
            marker_color=_str(raw.get("marker_color", "#28a745"), "snapshot.marker_color"),
            selected_color=_str(raw.get("selected_color", "#ff6b35"), "snapshot.selected_color"),
            occupied_color=_str(raw.get("occupied_color", "#dc3545"), "snapshot.occupied_color"),
            format=_str(raw.get("format", "png"), "snapshot.format"),
        )


@dataclass(frozen=True, slots=True)
class AppConfig:
    source_path: Path | None
    project: ProjectConfig
    paths: PathsConfig
    clustering: ClusterConfig
    map: MapConfig
    listing: ListConfig
    snapshot: SnapshotConfig

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], source_path: Path | None) -> AppConfig:
        root_dir = source_path.parent.resolve() if source_path is not None else Path.cwd()
        project = ProjectConfig.from_mapping(_mapping(raw.get("project"), "project"))
        return cls(
            source_path=source_path.resolve() if source_path is not None else None,
            project=project,
            paths=PathsConfig.from_mapping(_mapping(raw.get("paths"), "paths"), root_dir),
            clustering=ClusterConfig.from_mapping(_mapping(raw.get("clustering"), "clustering")),
            map=MapConfig.from_mapping(_mapping(raw.get("map"), "map")),
            listing=ListConfig.from_mapping(_mapping(raw.get("list"), "list"), project.record_noun),
            snapshot=SnapshotConfig.from_mapping(_mapping(raw.get("snapshot"), "snapshot")),
        )

    @classmethod
    def default(cls) -> AppConfig:
        return cls.from_mapping({}, None)


def load_config(path: str | Path) -> AppConfig:
    """Load and validate the YAML config file into typed settings."""
    cfg_path = Path(path).resolve()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config file not found: {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise ValueError("Top-level config must be a YAML mapping")
    return AppConfig.from_mapping(cast(Mapping[str, Any], raw), cfg_path)
