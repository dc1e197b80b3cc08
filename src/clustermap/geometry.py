"""Distance helpers and a headless Web Mercator viewport."""

from __future__ import annotations

import math
from functools import lru_cache
from typing import Any, Callable

from .models import Bounds, Coord, ScreenPoint


EARTH_RADIUS_M = 6_371_000.0

# Half the EPSG:3857 world width in meters.
_MERCATOR_HALF_WORLD_M = 20_037_508.342789244

Projection = Callable[[Coord], ScreenPoint]


def great_circle_distance(a: Coord, b: Coord) -> float:
    """Haversine distance in meters."""
    phi1 = math.radians(a.lat)
    phi2 = math.radians(b.lat)
    d_phi = math.radians(b.lat - a.lat)
    d_lambda = math.radians(b.lng - a.lng)
    h = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def projected_pixel_distance(project: Projection, a: Coord, b: Coord) -> float:
    """Screen distance between two coordinates under the current projection.

    The result is only meaningful for the viewport `project` was taken from.
    """
    pa = project(a)
    pb = project(b)
    return math.hypot(pa.x - pb.x, pa.y - pb.y)


class WebMercatorViewport:
    """Slippy-map style viewport: integer zoom, pixel size, EPSG:3857 projection."""

    def __init__(
        self,
        *,
        center: Coord,
        zoom: int,
        width_px: int,
        height_px: int,
        tile_size_px: int = 256,
        min_zoom: int = 0,
        max_zoom: int = 19,
    ) -> None:
        if width_px <= 0 or height_px <= 0:
            raise ValueError("Viewport size must be positive")
        if min_zoom > max_zoom:
            raise ValueError("min_zoom cannot be greater than max_zoom")
        self.width_px = width_px
        self.height_px = height_px
        self.tile_size_px = tile_size_px
        self.min_zoom = min_zoom
        self.max_zoom = max_zoom
        self.center = center
        self.zoom = self._clamp_zoom(zoom)

    def set_view(self, center: Coord, zoom: int) -> None:
        self.center = center
        self.zoom = self._clamp_zoom(zoom)

    def project(self, coord: Coord) -> ScreenPoint:
        world_x, world_y = self._world_pixels(coord, self.zoom)
        center_x, center_y = self._world_pixels(self.center, self.zoom)
        return ScreenPoint(
            x=world_x - center_x + self.width_px / 2.0,
            y=world_y - center_y + self.height_px / 2.0,
        )

    def unproject(self, point: ScreenPoint) -> Coord:
        center_x, center_y = self._world_pixels(self.center, self.zoom)
        world_x = point.x - self.width_px / 2.0 + center_x
        world_y = point.y - self.height_px / 2.0 + center_y
        scale = self._world_size(self.zoom)
        mx = world_x / scale * 2 * _MERCATOR_HALF_WORLD_M - _MERCATOR_HALF_WORLD_M
        my = _MERCATOR_HALF_WORLD_M - world_y / scale * 2 * _MERCATOR_HALF_WORLD_M
        lng, lat = _require_pyproj_transformer().transform(mx, my, direction="INVERSE")
        return Coord(lat=float(lat), lng=float(lng))

    def bounds(self) -> Bounds:
        top_left = self.unproject(ScreenPoint(0.0, 0.0))
        bottom_right = self.unproject(ScreenPoint(float(self.width_px), float(self.height_px)))
        return Bounds(
            min_lat=bottom_right.lat,
            max_lat=top_left.lat,
            min_lng=top_left.lng,
            max_lng=bottom_right.lng,
        )

    def fit_bounds(self, bounds: Bounds) -> None:
        """Center on `bounds` at the largest zoom that still shows all of it."""
        sw_x, sw_y = self._mercator_meters(Coord(bounds.min_lat, bounds.min_lng))
        ne_x, ne_y = self._mercator_meters(Coord(bounds.max_lat, bounds.max_lng))
        span_x = abs(ne_x - sw_x)
        span_y = abs(ne_y - sw_y)

        zoom = self.max_zoom
        if span_x > 0 or span_y > 0:
            # Pixels per meter at zoom 0.
            base = self.tile_size_px / (2 * _MERCATOR_HALF_WORLD_M)
            ratios: list[float] = []
            if span_x > 0:
                ratios.append(self.width_px / (span_x * base))
            if span_y > 0:
                ratios.append(self.height_px / (span_y * base))
            zoom = int(math.floor(math.log2(min(ratios))))

        mid_x = (sw_x + ne_x) / 2.0
        mid_y = (sw_y + ne_y) / 2.0
        lng, lat = _require_pyproj_transformer().transform(mid_x, mid_y, direction="INVERSE")
        self.set_view(Coord(lat=float(lat), lng=float(lng)), zoom)

    def _clamp_zoom(self, zoom: int) -> int:
        return max(self.min_zoom, min(self.max_zoom, int(zoom)))

    def _world_size(self, zoom: int) -> float:
        return float(self.tile_size_px * (2**zoom))

    def _world_pixels(self, coord: Coord, zoom: int) -> tuple[float, float]:
        mx, my = self._mercator_meters(coord)
        scale = self._world_size(zoom)
        x = (mx + _MERCATOR_HALF_WORLD_M) / (2 * _MERCATOR_HALF_WORLD_M) * scale
        y = (_MERCATOR_HALF_WORLD_M - my) / (2 * _MERCATOR_HALF_WORLD_M) * scale
        return (x, y)

    @staticmethod
    def _mercator_meters(coord: Coord) -> tuple[float, float]:
        x, y = _require_pyproj_transformer().transform(float(coord.lng), float(coord.lat))
        return (float(x), float(y))


@lru_cache(maxsize=1)
def _require_pyproj_transformer() -> Any:
    try:
        from pyproj import Transformer
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("pyproj is required for Web Mercator projection") from exc
    return Transformer.from_crs("EPSG:4326", "EPSG:3857", always_xy=True)
