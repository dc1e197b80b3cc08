"""View-state controller: filters, selection and viewport drive one render pass."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Mapping, Protocol, Sequence

from .clustering import cluster_records, is_clustered_mode, summarize_units
from .coalesce import ViewportCoalescer
from .config import AppConfig, ClusterConfig
from .filters import filter_records, parse_date_range, resolve_selection, visible_records
from .listing import build_list_rows, zoom_label
from .models import (
    ALL_CATEGORIES,
    Bounds,
    Cluster,
    Coord,
    DateRange,
    ListRow,
    Record,
    RenderPass,
    RenderUnit,
    ScreenPoint,
    ViewState,
)
from .records import record_index_by_id

_LOGGER = logging.getLogger("clustermap.controller")


class ControllerError(ValueError):
    """Raised for malformed events or references to unknown rows/clusters."""


class MapView(Protocol):
    def project(self, coord: Coord) -> ScreenPoint: ...

    def current_zoom(self) -> int: ...

    def current_bounds(self) -> Bounds: ...

    def fit_bounds(self, bounds: Bounds) -> None: ...

    def focus(self, coord: Coord, zoom: int) -> None: ...

    def render(self, units: Sequence[RenderUnit], selected_id: int | None) -> None: ...


class ListView(Protocol):
    def render_list(self, rows: Sequence[ListRow]) -> None: ...


class EventKind(StrEnum):
    VIEWPORT_CHANGED = "viewport_changed"
    FILTER_CLICKED = "filter_clicked"
    RECORD_CLICKED = "record_clicked"
    CLUSTER_CLICKED = "cluster_clicked"
    LIST_ROW_CLICKED = "list_row_clicked"


@dataclass(frozen=True, slots=True)
class Event:
    kind: EventKind
    payload: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Event:
        kind_raw = data.get("kind")
        try:
            kind = EventKind(str(kind_raw))
        except ValueError as exc:
            raise ControllerError(f"Unknown event kind: {kind_raw!r}") from exc
        payload = data.get("payload", {})
        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise ControllerError(f"Event payload must be a mapping for {kind.value}")
        return cls(kind=kind, payload=dict(payload))


class ViewStateController:
    """Owns the view state and republishes markers and list rows on every change.

    Every public mutator runs one full recompute: filter the collection,
    intersect with the viewport, cluster, derive list rows, re-resolve the
    selection by id and publish to both views. There is no partial update.
    """

    def __init__(
        self,
        records: Sequence[Record],
        map_view: MapView,
        list_view: ListView,
        cluster_cfg: ClusterConfig,
        *,
        record_noun: str = "incidents",
        empty_text: str | None = None,
        fit_padding_ratio: float = 0.1,
        focus_zoom: int = 15,
        coalescer: ViewportCoalescer | None = None,
        state: ViewState | None = None,
    ) -> None:
        self.map_view = map_view
        self.list_view = list_view
        self.cluster_cfg = cluster_cfg
        self.record_noun = record_noun
        self.empty_text = empty_text or f"No {record_noun} in current view"
        self.fit_padding_ratio = fit_padding_ratio
        self.focus_zoom = focus_zoom
        self.coalescer = coalescer
        self.state = state or ViewState(
            zoom=map_view.current_zoom(),
            bounds=map_view.current_bounds(),
        )
        self._records: tuple[Record, ...] = tuple(records)
        self._index = record_index_by_id(self._records)
        self._last_pass: RenderPass | None = None

    @classmethod
    def from_config(
        cls,
        records: Sequence[Record],
        map_view: MapView,
        list_view: ListView,
        cfg: AppConfig,
        *,
        state: ViewState | None = None,
    ) -> ViewStateController:
        coalescer = None
        if cfg.map.viewport_settle_ms > 0:
            coalescer = ViewportCoalescer(cfg.map.viewport_settle_ms / 1000.0)
        return cls(
            records,
            map_view,
            list_view,
            cfg.clustering,
            record_noun=cfg.project.record_noun,
            empty_text=cfg.listing.empty_text,
            fit_padding_ratio=cfg.map.fit_padding_ratio,
            focus_zoom=cfg.map.focus_zoom,
            coalescer=coalescer,
            state=state,
        )

    @property
    def records(self) -> tuple[Record, ...]:
        return self._records

    @property
    def last_pass(self) -> RenderPass | None:
        return self._last_pass

    def zoom_label(self) -> str:
        return zoom_label(self.state.zoom)

    def refresh(self) -> RenderPass:
        return self._recompute()

    def set_filter(self, category: str) -> RenderPass:
        self.state.category = category.strip() or ALL_CATEGORIES
        _LOGGER.info("Category filter set to '%s'", self.state.category)
        return self._recompute()

    def set_date_filter(self, date_range: DateRange | None) -> RenderPass:
        self.state.date_range = date_range
        _LOGGER.info("Date filter set to %s", date_range if date_range is not None else "all")
        return self._recompute()

    def set_force_individual_view(self, force_individual: bool) -> RenderPass:
        self.state.force_individual = force_individual
        _LOGGER.info("View mode: %s", "individual" if force_individual else "clustered")
        return self._recompute()

    def on_viewport_changed(self, zoom: int, bounds: Bounds | None) -> RenderPass:
        # A direct viewport is newer than anything still waiting to settle.
        self._discard_pending_viewport()
        self.state.zoom = int(zoom)
        self.state.bounds = bounds
        return self._recompute()

    def select_record(self, record_id: int | None) -> RenderPass:
        self.state.selected_id = record_id
        return self._recompute()

    def replace_records(self, records: Sequence[Record]) -> RenderPass:
        """Swap in a new collection snapshot; selection survives by id only."""
        self._records = tuple(records)
        self._index = record_index_by_id(self._records)
        _LOGGER.info("Record collection replaced (%d records)", len(self._records))
        return self._recompute()

    def click_cluster(self, seed_id: int) -> RenderPass:
        cluster = self._find_cluster(seed_id)
        if cluster.size == 1:
            return self.select_record(cluster.seed.id)
        self.map_view.fit_bounds(cluster.bounds.padded(self.fit_padding_ratio))
        return self._sync_viewport_from_map()

    def click_list_row(self, row_id: str) -> RenderPass:
        kind, _, raw_id = row_id.partition(":")
        if kind == "cluster":
            return self.click_cluster(_parse_id(raw_id, row_id))
        if kind != "record":
            raise ControllerError(f"List row '{row_id}' is not selectable")
        record = self._index.get(_parse_id(raw_id, row_id))
        if record is None:
            raise ControllerError(f"List row '{row_id}' refers to an unknown record")
        self.state.selected_id = record.id
        self.map_view.focus(record.coord, max(self.state.zoom, self.focus_zoom))
        return self._sync_viewport_from_map()

    def handle_event(self, event: Event) -> RenderPass | None:
        """Dispatch one UI event. Returns None when a viewport change was deferred."""
        payload = event.payload
        if event.kind is EventKind.VIEWPORT_CHANGED:
            zoom, bounds = viewport_from_payload(payload)
            at = _payload_time(payload, event.kind)
            if self.coalescer is not None and self.coalescer.settle_s > 0:
                self.coalescer.submit(zoom, bounds, now=at)
                return None
            return self.on_viewport_changed(zoom, bounds)
        if event.kind is EventKind.FILTER_CLICKED:
            return self._apply_filter_event(payload)
        if event.kind is EventKind.RECORD_CLICKED:
            return self.select_record(_require_payload_int(payload, "id", event.kind))
        if event.kind is EventKind.CLUSTER_CLICKED:
            return self.click_cluster(_require_payload_int(payload, "seed_id", event.kind))
        if event.kind is EventKind.LIST_ROW_CLICKED:
            row_id = payload.get("row_id")
            if not isinstance(row_id, str):
                raise ControllerError("list_row_clicked payload needs a string 'row_id'")
            return self.click_list_row(row_id)
        raise ControllerError(f"Unhandled event kind: {event.kind}")

    def flush_viewport(self, now: float | None = None) -> RenderPass | None:
        """Apply a deferred viewport change once it has settled."""
        if self.coalescer is None:
            return None
        pending = self.coalescer.poll(now)
        if pending is None:
            return None
        zoom, bounds = pending
        return self.on_viewport_changed(zoom, bounds)

    def _apply_filter_event(self, payload: Mapping[str, Any]) -> RenderPass:
        keys = {"category", "date_range", "force_individual"} & set(payload)
        if len(keys) != 1:
            raise ControllerError(
                "filter_clicked payload needs exactly one of category, date_range, force_individual"
            )
        key = keys.pop()
        value = payload[key]
        if key == "category":
            if not isinstance(value, str):
                raise ControllerError("filter_clicked category must be a string")
            return self.set_filter(value)
        if key == "force_individual":
            if not isinstance(value, bool):
                raise ControllerError("filter_clicked force_individual must be a bool")
            return self.set_force_individual_view(value)
        if value is None or isinstance(value, DateRange):
            return self.set_date_filter(value)
        if isinstance(value, str):
            now = payload.get("now")
            if not isinstance(now, datetime):
                now = datetime.now(timezone.utc)
            try:
                return self.set_date_filter(parse_date_range(value, now))
            except ValueError as exc:
                raise ControllerError(str(exc)) from exc
        raise ControllerError("filter_clicked date_range must be a token, DateRange or null")

    def _find_cluster(self, seed_id: int) -> Cluster:
        if self._last_pass is not None:
            for unit in self._last_pass.units:
                if isinstance(unit, Cluster) and unit.seed.id == seed_id:
                    return unit
        raise ControllerError(f"No cluster seeded by record {seed_id} in the current view")

    def _sync_viewport_from_map(self) -> RenderPass:
        self._discard_pending_viewport()
        self.state.zoom = self.map_view.current_zoom()
        self.state.bounds = self.map_view.current_bounds()
        return self._recompute()

    def _discard_pending_viewport(self) -> None:
        if self.coalescer is not None and self.coalescer.has_pending:
            _LOGGER.debug("Dropping unsettled viewport superseded by a newer one")
            self.coalescer.discard()

    def _recompute(self) -> RenderPass:
        state = self.state
        if self.coalescer is not None:
            # Any recompute publishes the latest viewport, settled or not.
            pending = self.coalescer.take()
            if pending is not None:
                state.zoom, state.bounds = pending
        active = filter_records(self._records, category=state.category, date_range=state.date_range)
        visible = visible_records(active, state.bounds)
        clustered = is_clustered_mode(state.zoom, state.force_individual, self.cluster_cfg)
        units = cluster_records(
            visible,
            state.zoom,
            state.force_individual,
            self.map_view.project,
            self.cluster_cfg,
        )

        previous = state.selected_id
        state.selected_id = resolve_selection(previous, active)
        if previous is not None and state.selected_id is None:
            _LOGGER.info("Selection %s cleared; record not in the active collection", previous)

        rows = build_list_rows(
            clustered=clustered,
            units=units,
            active_records=active,
            selected_id=state.selected_id,
            record_noun=self.record_noun,
            empty_text=self.empty_text,
        )
        summary = summarize_units(units)
        render_pass = RenderPass(
            units=tuple(units),
            rows=tuple(rows),
            selected_id=state.selected_id,
            clustered=clustered,
            zoom=state.zoom,
            visible_count=len(visible),
            active_count=len(active),
            summary=summary,
        )

        self.map_view.render(render_pass.units, render_pass.selected_id)
        self.list_view.render_list(render_pass.rows)
        self._last_pass = render_pass
        _LOGGER.debug(
            "Zoom %d: showing %d markers (%d clusters, %d individual)",
            state.zoom,
            summary["units"],
            summary["clusters"] + summary["singletons"],
            summary["individuals"],
        )
        return render_pass


def viewport_from_payload(payload: Mapping[str, Any]) -> tuple[int, Bounds | None]:
    """Validated `(zoom, bounds)` of a `viewport_changed` payload."""
    zoom = _require_payload_int(payload, "zoom", EventKind.VIEWPORT_CHANGED)
    return zoom, _payload_bounds(payload.get("bounds"))


def _parse_id(raw: str, row_id: str) -> int:
    try:
        return int(raw)
    except ValueError as exc:
        raise ControllerError(f"Malformed list row id '{row_id}'") from exc


def _require_payload_int(payload: Mapping[str, Any], key: str, kind: EventKind) -> int:
    value = payload.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ControllerError(f"{kind.value} payload needs an integer '{key}'")
    return value


def _payload_time(payload: Mapping[str, Any], kind: EventKind) -> float | None:
    value = payload.get("at")
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ControllerError(f"{kind.value} payload 'at' must be a number of seconds")
    return float(value)


def _payload_bounds(value: Any) -> Bounds | None:
    if value is None or isinstance(value, Bounds):
        return value
    if isinstance(value, Mapping):
        try:
            return Bounds.from_mapping(value)
        except ValueError as exc:
            raise ControllerError(f"Invalid viewport bounds: {exc}") from exc
    raise ControllerError("viewport_changed bounds must be a mapping or null")
