from __future__ import annotations

import math

import pytest

from clustermap.clustering import cluster_records, is_clustered_mode, summarize_units
from clustermap.config import ClusterConfig
from clustermap.models import Cluster, Coord, Individual, ScreenPoint


def _identity(coord: Coord) -> ScreenPoint:
    return ScreenPoint(x=coord.lng, y=coord.lat)


def _member_ids(units):
    return [[member.id for member in unit.members] for unit in units]


class TestClusteredMode:
    @pytest.mark.parametrize(
        ("zoom", "force", "expected"),
        [
            (0, False, True),
            (12, False, True),
            (13, False, False),
            (18, False, False),
            (5, True, False),
            (13, True, False),
        ],
    )
    def test_threshold_and_override(self, cluster_cfg, zoom, force, expected):
        assert is_clustered_mode(zoom, force, cluster_cfg) is expected


class TestClusterRecords:
    def test_three_nearby_and_one_distant(self, make_record, projection, cluster_cfg):
        records = [
            make_record(1, 0.0, 0.0),
            make_record(2, 0.0, 0.01),
            make_record(3, 0.01, 0.0),
            make_record(4, 1.0, 1.0),
        ]
        units = cluster_records(records, 10, False, projection, cluster_cfg)

        assert _member_ids(units) == [[1, 2, 3], [4]]
        big, lone = units
        assert isinstance(big, Cluster) and big.size == 3
        assert big.centroid.lat == pytest.approx(0.01 / 3)
        assert big.centroid.lng == pytest.approx(0.01 / 3)
        assert big.bounds.min_lat == 0.0 and big.bounds.max_lat == 0.01
        assert big.bounds.min_lng == 0.0 and big.bounds.max_lng == 0.01
        assert isinstance(lone, Cluster) and lone.size == 1
        assert lone.centroid == Coord(1.0, 1.0)

    def test_individual_zoom_bypasses_clustering(self, make_record, projection, cluster_cfg):
        records = [make_record(i, 0.0, i * 0.001) for i in range(1, 5)]
        units = cluster_records(records, 13, False, projection, cluster_cfg)

        assert all(isinstance(unit, Individual) for unit in units)
        assert [unit.record.id for unit in units] == [1, 2, 3, 4]

    def test_force_individual_bypasses_clustering(self, make_record, projection, cluster_cfg):
        records = [make_record(1, 0.0, 0.0), make_record(2, 0.0, 0.0)]
        units = cluster_records(records, 3, True, projection, cluster_cfg)

        assert [unit.kind for unit in units] == ["individual", "individual"]

    def test_empty_input(self, projection, cluster_cfg):
        assert cluster_records([], 5, False, projection, cluster_cfg) == []
        assert cluster_records([], 15, False, projection, cluster_cfg) == []

    def test_every_record_in_exactly_one_unit(self, make_record, projection, cluster_cfg):
        records = [
            make_record(row * 10 + col, row * 0.05, col * 0.05)
            for row in range(6)
            for col in range(6)
        ]
        units = cluster_records(records, 8, False, projection, cluster_cfg)

        seen = [member.id for unit in units for member in unit.members]
        assert sorted(seen) == sorted(record.id for record in records)
        assert len(seen) == len(set(seen))

    def test_max_cluster_size_is_enforced(self, make_record, projection):
        cfg = ClusterConfig(min_zoom_for_individual=13, cluster_radius_px=80.0, max_cluster_size=2)
        records = [make_record(i, 0.0, 0.0) for i in range(1, 6)]
        units = cluster_records(records, 4, False, projection, cfg)

        assert _member_ids(units) == [[1, 2], [3, 4], [5]]

    def test_radius_is_inclusive(self, make_record, cluster_cfg):
        records = [make_record(1, 0.0, 0.0), make_record(2, 0.0, 80.0), make_record(3, 0.0, 80.5)]
        units = cluster_records(records, 4, False, _identity, cluster_cfg)

        assert _member_ids(units) == [[1, 2], [3]]

    def test_zero_radius_only_merges_coincident_records(self, make_record, projection):
        cfg = ClusterConfig(min_zoom_for_individual=13, cluster_radius_px=0.0, max_cluster_size=50)
        records = [make_record(1, 1.0, 1.0), make_record(2, 1.0, 1.0), make_record(3, 1.0, 1.0001)]
        units = cluster_records(records, 4, False, projection, cfg)

        assert _member_ids(units) == [[1, 2], [3]]

    def test_distance_is_measured_from_the_seed(self, make_record, cluster_cfg):
        # 1-2 and 2-3 are both within 80 px, 1-3 is not.
        records = [make_record(1, 0.0, 0.0), make_record(2, 0.0, 60.0), make_record(3, 0.0, 120.0)]
        units = cluster_records(records, 4, False, _identity, cluster_cfg)

        assert _member_ids(units) == [[1, 2], [3]]

    def test_grouping_depends_on_input_order(self, make_record, cluster_cfg):
        a = make_record(1, 0.0, 0.0)
        b = make_record(2, 0.0, 60.0)
        c = make_record(3, 0.0, 120.0)

        forward = cluster_records([a, b, c], 4, False, _identity, cluster_cfg)
        backward = cluster_records([c, b, a], 4, False, _identity, cluster_cfg)

        assert _member_ids(forward) == [[1, 2], [3]]
        assert _member_ids(backward) == [[3, 2], [1]]

    def test_output_is_deterministic(self, complaints, projection, cluster_cfg):
        first = cluster_records(complaints, 10, False, projection, cluster_cfg)
        second = cluster_records(complaints, 10, False, projection, cluster_cfg)

        assert first == second

    def test_singleton_bounds_have_zero_span(self, make_record, projection, cluster_cfg):
        (unit,) = cluster_records([make_record(7, 42.0, -71.0)], 5, False, projection, cluster_cfg)

        assert unit.bounds.min_lat == unit.bounds.max_lat == 42.0
        assert unit.bounds.min_lng == unit.bounds.max_lng == -71.0

    def test_nan_coordinates_never_join_a_cluster(self, make_record, projection, cluster_cfg):
        records = [make_record(1, 0.0, 0.0), make_record(2, math.nan, 0.0), make_record(3, 0.0, 0.0)]
        units = cluster_records(records, 5, False, projection, cluster_cfg)

        assert _member_ids(units) == [[1, 3], [2]]


class TestSummarizeUnits:
    def test_counts_by_unit_kind(self, complaints, projection, cluster_cfg):
        units = cluster_records(complaints, 10, False, projection, cluster_cfg)
        summary = summarize_units(units)

        assert summary == {
            "units": 3,
            "clusters": 1,
            "singletons": 2,
            "individuals": 0,
            "records": 5,
        }

    def test_individual_mode(self, complaints, projection, cluster_cfg):
        units = cluster_records(complaints, 14, False, projection, cluster_cfg)

        assert summarize_units(units)["individuals"] == 5
