"""Greedy pixel-radius clustering of visible records."""

from __future__ import annotations

from typing import Sequence

from .config import ClusterConfig
from .geometry import Projection, projected_pixel_distance
from .models import Bounds, Cluster, Coord, Individual, Record, RenderUnit


def is_clustered_mode(zoom: int, force_individual: bool, cfg: ClusterConfig) -> bool:
    """Shared mode predicate for the map markers and the list."""
    return not force_individual and zoom < cfg.min_zoom_for_individual


def cluster_records(
    records: Sequence[Record],
    zoom: int,
    force_individual: bool,
    project: Projection,
    cfg: ClusterConfig,
) -> list[RenderUnit]:
    """Partition `records` into render units for one viewport.

    Below the individual-zoom threshold every unclaimed record, in input
    order, seeds a cluster and absorbs the later unclaimed records within
    `cluster_radius_px` of the seed (not of the other members) until the
    cluster holds `max_cluster_size` records. Grouping is therefore
    seed-order dependent and not transitive.
    """
    if not is_clustered_mode(zoom, force_individual, cfg):
        return [Individual(record=record) for record in records]

    units: list[RenderUnit] = []
    claimed = [False] * len(records)

    for idx, seed in enumerate(records):
        if claimed[idx]:
            continue
        claimed[idx] = True
        seed_coord = seed.coord
        members: list[Record] = [seed]
        bounds = Bounds.from_coord(seed_coord)

        for other_idx in range(idx + 1, len(records)):
            if len(members) >= cfg.max_cluster_size:
                break
            if claimed[other_idx]:
                continue
            other = records[other_idx]
            distance = projected_pixel_distance(project, seed_coord, other.coord)
            if distance <= cfg.cluster_radius_px:
                members.append(other)
                claimed[other_idx] = True
                bounds = bounds.extended(other.coord)

        units.append(
            Cluster(
                members=tuple(members),
                centroid=_centroid(members) if len(members) > 1 else seed_coord,
                bounds=bounds,
            )
        )
    return units


def _centroid(members: Sequence[Record]) -> Coord:
    count = len(members)
    return Coord(
        lat=sum(member.lat for member in members) / count,
        lng=sum(member.lng for member in members) / count,
    )


def summarize_units(units: Sequence[RenderUnit]) -> dict[str, int]:
    clusters = 0
    singletons = 0
    individuals = 0
    records = 0
    for unit in units:
        records += len(unit.members)
        if isinstance(unit, Individual):
            individuals += 1
        elif unit.size > 1:
            clusters += 1
        else:
            singletons += 1
    return {
        "units": len(units),
        "clusters": clusters,
        "singletons": singletons,
        "individuals": individuals,
        "records": records,
    }
