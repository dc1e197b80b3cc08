"""Domain models shared across clustering, filtering and view-state modules."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping


ALL_CATEGORIES = "all"


def _require_str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected non-empty string for '{field_name}'")
    return value.strip()


def _require_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Expected integer for '{field_name}'")
    return value


def _require_number(value: Any, field_name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Expected numeric value for '{field_name}'")
    return float(value)


def _parse_timestamp(value: Any, field_name: str) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError as exc:
            raise ValueError(f"Invalid ISO timestamp for '{field_name}': '{value}'") from exc
    else:
        raise ValueError(f"Expected ISO timestamp for '{field_name}'")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True, slots=True)
class Coord:
    lat: float
    lng: float


@dataclass(frozen=True, slots=True)
class ScreenPoint:
    x: float
    y: float


@dataclass(frozen=True, slots=True)
class Bounds:
    """Geographic bounding box in degrees."""

    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    @classmethod
    def from_coord(cls, coord: Coord) -> Bounds:
        return cls(min_lat=coord.lat, max_lat=coord.lat, min_lng=coord.lng, max_lng=coord.lng)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Bounds:
        bounds = cls(
            min_lat=_require_number(data.get("min_lat"), "bounds.min_lat"),
            max_lat=_require_number(data.get("max_lat"), "bounds.max_lat"),
            min_lng=_require_number(data.get("min_lng"), "bounds.min_lng"),
            max_lng=_require_number(data.get("max_lng"), "bounds.max_lng"),
        )
        if bounds.min_lat > bounds.max_lat or bounds.min_lng > bounds.max_lng:
            raise ValueError("bounds minimum must not exceed maximum")
        return bounds

    @property
    def center(self) -> Coord:
        return Coord(
            lat=(self.min_lat + self.max_lat) / 2.0,
            lng=(self.min_lng + self.max_lng) / 2.0,
        )

    def contains(self, coord: Coord) -> bool:
        # Comparisons against NaN are always False, so NaN is never contained.
        return (
            self.min_lat <= coord.lat <= self.max_lat
            and self.min_lng <= coord.lng <= self.max_lng
        )

    def extended(self, coord: Coord) -> Bounds:
        return Bounds(
            min_lat=min(self.min_lat, coord.lat),
            max_lat=max(self.max_lat, coord.lat),
            min_lng=min(self.min_lng, coord.lng),
            max_lng=max(self.max_lng, coord.lng),
        )

    def padded(self, ratio: float) -> Bounds:
        """Grow every side by `ratio` of the span, like Leaflet's `pad`."""
        lat_pad = (self.max_lat - self.min_lat) * ratio
        lng_pad = (self.max_lng - self.min_lng) * ratio
        return Bounds(
            min_lat=self.min_lat - lat_pad,
            max_lat=self.max_lat + lat_pad,
            min_lng=self.min_lng - lng_pad,
            max_lng=self.max_lng + lng_pad,
        )

    def to_dict(self) -> dict[str, float]:
        return {
            "min_lat": self.min_lat,
            "max_lat": self.max_lat,
            "min_lng": self.min_lng,
            "max_lng": self.max_lng,
        }


@dataclass(frozen=True, slots=True)
class StationMeta:
    """Charging station capacity and occupancy."""

    charger_type: str
    ports: int
    available_ports: int
    distance: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> StationMeta:
        ports = _require_int(data.get("ports"), "station.ports")
        available = _require_int(data.get("available_ports"), "station.available_ports")
        if ports < 0 or available < 0:
            raise ValueError("station port counts must be >= 0")
        if available > ports:
            raise ValueError("station.available_ports cannot exceed station.ports")
        distance_raw = data.get("distance")
        return cls(
            charger_type=_require_str(data.get("type"), "station.type"),
            ports=ports,
            available_ports=available,
            distance=_require_str(distance_raw, "station.distance") if distance_raw is not None else None,
        )


@dataclass(frozen=True, slots=True)
class ComplaintMeta:
    """Municipal complaint type tag and report time."""

    type: str
    reported_at: datetime

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ComplaintMeta:
        return cls(
            type=_require_str(data.get("type"), "complaint.type"),
            reported_at=_parse_timestamp(data.get("reported_at"), "complaint.reported_at"),
        )


@dataclass(frozen=True, slots=True)
class Record:
    """One geotagged entity shown on the map and in the list."""

    id: int
    lat: float
    lng: float
    name: str
    address: str
    category: str
    meta: StationMeta | ComplaintMeta | None = None

    @property
    def coord(self) -> Coord:
        return Coord(lat=self.lat, lng=self.lng)

    @property
    def timestamp(self) -> datetime | None:
        if isinstance(self.meta, ComplaintMeta):
            return self.meta.reported_at
        return None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Record:
        record_id = _require_int(data.get("id"), "id")
        lat = _require_number(data.get("lat"), "lat")
        lng = _require_number(data.get("lng"), "lng")

        station_raw = data.get("station")
        complaint_raw = data.get("complaint")
        if station_raw is not None and complaint_raw is not None:
            raise ValueError(f"Record {record_id} cannot be both a station and a complaint")

        meta: StationMeta | ComplaintMeta | None
        if station_raw is not None:
            if not isinstance(station_raw, Mapping):
                raise ValueError("Expected mapping for 'station'")
            meta = StationMeta.from_mapping(station_raw)
        elif complaint_raw is not None:
            if not isinstance(complaint_raw, Mapping):
                raise ValueError("Expected mapping for 'complaint'")
            meta = ComplaintMeta.from_mapping(complaint_raw)
        else:
            meta = None

        category_raw = data.get("category")
        if category_raw is not None:
            category = _require_str(category_raw, "category")
        elif isinstance(meta, ComplaintMeta):
            category = meta.type
        else:
            raise ValueError(f"Record {record_id} needs a 'category'")

        return cls(
            id=record_id,
            lat=lat,
            lng=lng,
            name=_require_str(data.get("name"), "name"),
            address=_require_str(data.get("address"), "address"),
            category=category,
            meta=meta,
        )


@dataclass(frozen=True, slots=True)
class Individual:
    """A record rendered on its own at its own coordinate."""

    record: Record

    kind = "individual"

    @property
    def members(self) -> tuple[Record, ...]:
        return (self.record,)

    @property
    def coord(self) -> Coord:
        return self.record.coord


@dataclass(frozen=True, slots=True)
class Cluster:
    """Aggregate of one or more nearby records."""

    members: tuple[Record, ...]
    centroid: Coord
    bounds: Bounds

    kind = "cluster"

    def __post_init__(self) -> None:
        if not self.members:
            raise ValueError("Cluster requires at least one member")

    @property
    def seed(self) -> Record:
        return self.members[0]

    @property
    def size(self) -> int:
        return len(self.members)

    @property
    def coord(self) -> Coord:
        return self.centroid


RenderUnit = Individual | Cluster


@dataclass(frozen=True, slots=True)
class DateRange:
    """Half-open `[start, end)` window; `None` leaves a side unbounded."""

    start: datetime | None = None
    end: datetime | None = None

    def __post_init__(self) -> None:
        # Record timestamps are always aware; naive bounds cannot be compared to them.
        for name, moment in (("start", self.start), ("end", self.end)):
            if moment is not None and moment.tzinfo is None:
                raise ValueError(f"DateRange.{name} must be timezone-aware")

    @classmethod
    def last(cls, delta: timedelta, now: datetime) -> DateRange:
        return cls(start=now - delta, end=None)

    def contains(self, moment: datetime) -> bool:
        if self.start is not None and moment < self.start:
            return False
        if self.end is not None and moment >= self.end:
            return False
        return True


@dataclass(slots=True)
class ViewState:
    """Controller-owned view state. Selection is held by id only."""

    zoom: int
    bounds: Bounds | None = None
    force_individual: bool = False
    category: str = ALL_CATEGORIES
    date_range: DateRange | None = None
    selected_id: int | None = None


@dataclass(frozen=True, slots=True)
class ListRow:
    """One row of the list view, keyed by a stable `row_id`."""

    kind: str
    row_id: str
    title: str
    subtitle: str = ""
    detail: str = ""
    record_id: int | None = None
    member_ids: tuple[int, ...] = ()
    selected: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "row_id": self.row_id,
            "title": self.title,
            "subtitle": self.subtitle,
            "detail": self.detail,
            "record_id": self.record_id,
            "member_ids": list(self.member_ids),
            "selected": self.selected,
        }


@dataclass(frozen=True, slots=True)
class RenderPass:
    """One consistent snapshot published to the map and list views."""

    units: tuple[RenderUnit, ...]
    rows: tuple[ListRow, ...]
    selected_id: int | None
    clustered: bool
    zoom: int
    visible_count: int
    active_count: int
    summary: Mapping[str, int] = field(default_factory=dict)


def is_finite_coord(coord: Coord) -> bool:
    return math.isfinite(coord.lat) and math.isfinite(coord.lng)
