"""Headless map and list views plus PNG/JSON snapshots of a render pass."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Sequence

from .config import MapConfig, SnapshotConfig
from .controller import Event, EventKind, ViewStateController, viewport_from_payload
from .geometry import WebMercatorViewport
from .markers import marker_for
from .models import Bounds, Cluster, Coord, ListRow, RenderPass, RenderUnit, ScreenPoint

_LOGGER = logging.getLogger("clustermap.snapshot")


class SnapshotMapView:
    """Map view backed by a `WebMercatorViewport`; keeps the last rendered units."""

    def __init__(self, viewport: WebMercatorViewport) -> None:
        self.viewport = viewport
        self.units: tuple[RenderUnit, ...] = ()
        self.selected_id: int | None = None
        self.render_count = 0

    @classmethod
    def from_config(cls, cfg: MapConfig) -> SnapshotMapView:
        return cls(
            WebMercatorViewport(
                center=Coord(lat=cfg.center_lat, lng=cfg.center_lng),
                zoom=cfg.zoom,
                width_px=cfg.width_px,
                height_px=cfg.height_px,
                tile_size_px=cfg.tile_size_px,
                min_zoom=cfg.min_zoom,
                max_zoom=cfg.max_zoom,
            )
        )

    def project(self, coord: Coord) -> ScreenPoint:
        return self.viewport.project(coord)

    def current_zoom(self) -> int:
        return self.viewport.zoom

    def current_bounds(self) -> Bounds:
        return self.viewport.bounds()

    def fit_bounds(self, bounds: Bounds) -> None:
        self.viewport.fit_bounds(bounds)

    def focus(self, coord: Coord, zoom: int) -> None:
        self.viewport.set_view(coord, zoom)

    def set_viewport(self, zoom: int, bounds: Bounds | None) -> None:
        """Move the map as a user pan/zoom would; `None` bounds keeps the center."""
        center = bounds.center if bounds is not None else self.viewport.center
        self.viewport.set_view(center, zoom)

    def render(self, units: Sequence[RenderUnit], selected_id: int | None) -> None:
        self.units = tuple(units)
        self.selected_id = selected_id
        self.render_count += 1

    def save_png(self, path: Path, style: SnapshotConfig) -> Path:
        plt = _require_matplotlib()
        width_px = self.viewport.width_px
        height_px = self.viewport.height_px
        dpi = style.dpi
        fig, ax = plt.subplots(figsize=(width_px / dpi, height_px / dpi), dpi=dpi)
        fig.subplots_adjust(left=0.0, right=1.0, bottom=0.0, top=1.0)
        try:
            fig.patch.set_facecolor(style.background)
            ax.set_facecolor(style.background)
            ax.set_xlim(0, width_px)
            ax.set_ylim(height_px, 0)
            ax.set_axis_off()

            colors = {
                "cluster": style.cluster_color,
                "selected": style.selected_color,
                "occupied": style.occupied_color,
                "default": style.marker_color,
            }
            for unit in self.units:
                marker = marker_for(unit, self.selected_id)
                point = self.viewport.project(Coord(lat=marker.lat, lng=marker.lng))
                # Scatter sizes are in points squared.
                size_pt = marker.size_px * 72.0 / dpi
                ax.scatter(
                    [point.x],
                    [point.y],
                    s=[size_pt**2],
                    c=colors[marker.state],
                    edgecolors="white",
                    linewidths=1.5,
                    zorder=3 if marker.state == "selected" else 2,
                )
                if marker.label:
                    ax.text(
                        point.x,
                        point.y,
                        marker.label,
                        ha="center",
                        va="center",
                        color="white",
                        fontsize=max(6.0, size_pt * 0.4),
                        fontweight="bold",
                        zorder=4,
                    )

            path.parent.mkdir(parents=True, exist_ok=True)
            fig.savefig(path, dpi=dpi, format=style.format)
            _LOGGER.info("Map snapshot written to %s (%d markers)", path, len(self.units))
            return path
        finally:
            plt.close(fig)


class MemoryListView:
    """List view that keeps the last rendered rows."""

    def __init__(self) -> None:
        self.rows: tuple[ListRow, ...] = ()

    def render_list(self, rows: Sequence[ListRow]) -> None:
        self.rows = tuple(rows)


def drive_event(
    controller: ViewStateController,
    map_view: SnapshotMapView,
    event: Event,
) -> RenderPass | None:
    """Feed one scripted event to `controller` with a headless map behind it.

    Scripted viewport changes have no interactive map that already moved, so
    the map view is moved first and the controller is told the zoom the map
    actually shows (clamped to its zoom range).
    """
    if event.kind is EventKind.VIEWPORT_CHANGED:
        zoom, bounds = viewport_from_payload(event.payload)
        map_view.set_viewport(zoom, bounds)
        payload = dict(event.payload)
        payload["zoom"] = map_view.current_zoom()
        event = Event(kind=event.kind, payload=payload)
    return controller.handle_event(event)


def render_pass_to_dict(render_pass: RenderPass) -> dict[str, Any]:
    units: list[dict[str, Any]] = []
    for unit in render_pass.units:
        entry: dict[str, Any] = {
            "kind": unit.kind,
            "lat": unit.coord.lat,
            "lng": unit.coord.lng,
            "member_ids": [member.id for member in unit.members],
        }
        if isinstance(unit, Cluster):
            entry["bounds"] = unit.bounds.to_dict()
        units.append(entry)
    return {
        "zoom": render_pass.zoom,
        "clustered": render_pass.clustered,
        "selected_id": render_pass.selected_id,
        "active_count": render_pass.active_count,
        "visible_count": render_pass.visible_count,
        "summary": dict(render_pass.summary),
        "units": units,
        "rows": [row.to_dict() for row in render_pass.rows],
    }


def _require_matplotlib() -> Any:
    try:
        import matplotlib

        matplotlib.use("Agg", force=False)
        import matplotlib.pyplot as plt
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("matplotlib is required for map snapshots") from exc
    return plt
