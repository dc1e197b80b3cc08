"""Marker styling shared by map views."""

from __future__ import annotations

from dataclasses import dataclass

from .models import Cluster, Individual, Record, RenderUnit


INDIVIDUAL_MARKER_PX = 12
_CLUSTER_MIN_PX = 30
_CLUSTER_MAX_PX = 50


@dataclass(frozen=True, slots=True)
class MarkerSpec:
    lat: float
    lng: float
    size_px: int
    state: str
    label: str
    record_id: int | None


def cluster_marker_size(count: int) -> int:
    return min(_CLUSTER_MAX_PX, max(_CLUSTER_MIN_PX, 20 + count * 2))


def record_state(record: Record, selected_id: int | None) -> str:
    if selected_id is not None and record.id == selected_id:
        return "selected"
    if record.category.casefold() == "occupied":
        return "occupied"
    return "default"


def marker_for(unit: RenderUnit, selected_id: int | None) -> MarkerSpec:
    if isinstance(unit, Individual):
        record = unit.record
        return MarkerSpec(
            lat=record.lat,
            lng=record.lng,
            size_px=INDIVIDUAL_MARKER_PX,
            state=record_state(record, selected_id),
            label="",
            record_id=record.id,
        )
    if not isinstance(unit, Cluster):
        raise TypeError(f"Unsupported render unit: {type(unit).__name__}")
    return MarkerSpec(
        lat=unit.centroid.lat,
        lng=unit.centroid.lng,
        size_px=cluster_marker_size(unit.size),
        state="cluster",
        label=str(unit.size),
        record_id=unit.seed.id if unit.size == 1 else None,
    )
