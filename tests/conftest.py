from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Sequence

import pytest

from clustermap.config import ClusterConfig
from clustermap.models import (
    Bounds,
    ComplaintMeta,
    Coord,
    ListRow,
    Record,
    RenderUnit,
    ScreenPoint,
    StationMeta,
)


NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class LinearProjection:
    """Equirectangular stand-in: a fixed number of pixels per degree."""

    def __init__(self, px_per_degree: float = 1000.0) -> None:
        self.px_per_degree = px_per_degree

    def __call__(self, coord: Coord) -> ScreenPoint:
        return ScreenPoint(x=coord.lng * self.px_per_degree, y=-coord.lat * self.px_per_degree)


class FakeMapView:
    def __init__(
        self,
        zoom: int = 10,
        bounds: Bounds | None = None,
        px_per_degree: float = 1000.0,
        fit_zoom: int = 15,
    ) -> None:
        self.zoom = zoom
        self.bounds = bounds
        self.projection = LinearProjection(px_per_degree)
        self.fit_zoom = fit_zoom
        self.renders: list[tuple[tuple[RenderUnit, ...], int | None]] = []
        self.fit_calls: list[Bounds] = []
        self.focus_calls: list[tuple[Coord, int]] = []

    def project(self, coord: Coord) -> ScreenPoint:
        return self.projection(coord)

    def current_zoom(self) -> int:
        return self.zoom

    def current_bounds(self) -> Bounds | None:
        return self.bounds

    def fit_bounds(self, bounds: Bounds) -> None:
        self.fit_calls.append(bounds)
        self.bounds = bounds
        self.zoom = self.fit_zoom

    def focus(self, coord: Coord, zoom: int) -> None:
        self.focus_calls.append((coord, zoom))
        self.zoom = zoom
        self.bounds = Bounds(
            min_lat=coord.lat - 0.01,
            max_lat=coord.lat + 0.01,
            min_lng=coord.lng - 0.01,
            max_lng=coord.lng + 0.01,
        )

    def render(self, units: Sequence[RenderUnit], selected_id: int | None) -> None:
        self.renders.append((tuple(units), selected_id))

    @property
    def last_units(self) -> tuple[RenderUnit, ...]:
        return self.renders[-1][0]


class FakeListView:
    def __init__(self) -> None:
        self.history: list[tuple[ListRow, ...]] = []

    def render_list(self, rows: Sequence[ListRow]) -> None:
        self.history.append(tuple(rows))

    @property
    def rows(self) -> tuple[ListRow, ...]:
        return self.history[-1]


def _make_record(
    record_id: int,
    lat: float,
    lng: float,
    *,
    category: str = "Graffiti",
    address: str = "1 Main St, Boston, MA 02110",
    name: str | None = None,
    meta: StationMeta | ComplaintMeta | None = None,
) -> Record:
    return Record(
        id=record_id,
        lat=lat,
        lng=lng,
        name=name or f"Record {record_id}",
        address=address,
        category=category,
        meta=meta,
    )


def _complaint(record_id: int, lat: float, lng: float, kind: str, reported_at: datetime, zipcode: str) -> Record:
    return _make_record(
        record_id,
        lat,
        lng,
        category=kind,
        address=f"{record_id} Test St, Boston, MA {zipcode}",
        name=f"{kind} report #{record_id}",
        meta=ComplaintMeta(type=kind, reported_at=reported_at),
    )


@pytest.fixture
def make_record() -> Callable[..., Record]:
    return _make_record


@pytest.fixture
def cluster_cfg() -> ClusterConfig:
    return ClusterConfig(min_zoom_for_individual=13, cluster_radius_px=80.0, max_cluster_size=50)


@pytest.fixture
def projection() -> LinearProjection:
    return LinearProjection(1000.0)


@pytest.fixture
def complaints() -> list[Record]:
    # With 1000 px/deg, records 1-3 sit within a few pixels of each other;
    # 4 is far away and 5 is ~98 px from record 1.
    return [
        _complaint(1, 42.360, -71.060, "Graffiti", datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc), "02110"),
        _complaint(2, 42.362, -71.062, "Rodent", datetime(2026, 10, 1, 9, 0, tzinfo=timezone.utc), "02116"),
        _complaint(3, 42.365, -71.058, "Graffiti", datetime(2026, 10, 15, 9, 0, tzinfo=timezone.utc), "02118"),
        _complaint(4, 42.500, -71.300, "Tree", datetime(2026, 9, 1, 9, 0, tzinfo=timezone.utc), "01803"),
        _complaint(5, 42.400, -71.150, "Rodent", datetime(2026, 10, 17, 9, 0, tzinfo=timezone.utc), "02138"),
    ]


@pytest.fixture
def stations() -> list[Record]:
    return [
        _make_record(
            11,
            42.3601,
            -71.0589,
            category="available",
            address="100 Summer St, Boston, MA 02110",
            name="Downtown Boston Station",
            meta=StationMeta(charger_type="DC Fast", ports=4, available_ports=2, distance="0.1 mi"),
        ),
        _make_record(
            12,
            42.3584,
            -71.0636,
            category="occupied",
            address="1 Charles St S, Boston, MA 02116",
            name="Boston Common Parking",
            meta=StationMeta(charger_type="Level 2", ports=8, available_ports=0, distance="0.3 mi"),
        ),
    ]


@pytest.fixture
def map_view() -> FakeMapView:
    return FakeMapView()


@pytest.fixture
def list_view() -> FakeListView:
    return FakeListView()
