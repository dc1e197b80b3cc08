"""List-view row model derived from one render pass."""

from __future__ import annotations

import re
from typing import Sequence

from .models import Cluster, ComplaintMeta, Individual, ListRow, Record, RenderUnit, StationMeta


_ZIP_PATTERN = re.compile(r"\b\d{5}\b")


def zoom_label(zoom: int) -> str:
    return f"Zoom: {zoom}"


def extract_zipcode(address: str) -> str:
    match = _ZIP_PATTERN.search(address)
    return match.group(0) if match else "Unknown"


def build_list_rows(
    *,
    clustered: bool,
    units: Sequence[RenderUnit],
    active_records: Sequence[Record],
    selected_id: int | None,
    record_noun: str,
    empty_text: str,
) -> list[ListRow]:
    """Rows for the list view.

    Clustered mode lists the viewport's clusters and singletons. Individual
    mode lists the whole active collection, regardless of the viewport.
    """
    if clustered:
        return _clustered_rows(
            units,
            selected_id=selected_id,
            record_noun=record_noun,
            empty_text=empty_text,
        )
    return _individual_rows(
        active_records,
        selected_id=selected_id,
        record_noun=record_noun,
        empty_text=empty_text,
    )


def _clustered_rows(
    units: Sequence[RenderUnit],
    *,
    selected_id: int | None,
    record_noun: str,
    empty_text: str,
) -> list[ListRow]:
    if not units:
        return [_empty_row(empty_text)]

    body: list[ListRow] = []
    cluster_count = 0
    single_count = 0
    for unit in units:
        if isinstance(unit, Cluster) and unit.size > 1:
            cluster_count += 1
            body.append(_cluster_row(unit, record_noun=record_noun))
        else:
            single_count += 1
            record = unit.record if isinstance(unit, Individual) else unit.seed
            body.append(record_row(record, selected_id=selected_id))

    summary = ListRow(
        kind="summary",
        row_id="summary",
        title=f"Showing {cluster_count} clusters and {single_count} individual {record_noun}",
    )
    return [summary, *body]


def _individual_rows(
    records: Sequence[Record],
    *,
    selected_id: int | None,
    record_noun: str,
    empty_text: str,
) -> list[ListRow]:
    if not records:
        return [_empty_row(empty_text)]
    summary = ListRow(
        kind="summary",
        row_id="summary",
        title=f"Showing all {len(records)} individual {record_noun}",
    )
    return [summary, *(record_row(record, selected_id=selected_id) for record in records)]


def _empty_row(text: str) -> ListRow:
    return ListRow(kind="empty", row_id="empty", title=text)


def _cluster_row(cluster: Cluster, *, record_noun: str) -> ListRow:
    counts: dict[str, int] = {}
    for member in cluster.members:
        counts[member.category] = counts.get(member.category, 0) + 1
    breakdown = ", ".join(f"{count} {category}" for category, count in counts.items())

    zipcodes: dict[str, None] = {}
    for member in cluster.members:
        zipcodes.setdefault(extract_zipcode(member.address), None)

    return ListRow(
        kind="cluster",
        row_id=f"cluster:{cluster.seed.id}",
        title=f"{cluster.size} {record_noun}",
        subtitle=breakdown,
        detail="Zipcodes: " + ", ".join(zipcodes),
        member_ids=tuple(member.id for member in cluster.members),
    )


def record_row(record: Record, *, selected_id: int | None) -> ListRow:
    return ListRow(
        kind="record",
        row_id=f"record:{record.id}",
        title=record.name,
        subtitle=record.address,
        detail=_record_detail(record),
        record_id=record.id,
        member_ids=(record.id,),
        selected=selected_id is not None and record.id == selected_id,
    )


def _record_detail(record: Record) -> str:
    meta = record.meta
    if isinstance(meta, StationMeta):
        parts = [meta.charger_type]
        if meta.distance:
            parts.append(meta.distance)
        parts.append(f"{meta.available_ports}/{meta.ports} ports {record.category}")
        return " | ".join(parts)
    if isinstance(meta, ComplaintMeta):
        return f"{meta.type} | Reported {meta.reported_at:%Y-%m-%d %H:%M}"
    return record.category
