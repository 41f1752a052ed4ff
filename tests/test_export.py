"""
Tests for the export pass and the store it writes.
"""

import pytest

from gamecluster.errors import NotFound, UntrainedModel
from gamecluster.pipeline.clustering import SENTINEL_DISTANCE, ClusterAssignment
from gamecluster.pipeline.export import ExportWriter, pair_rows


@pytest.fixture
def writer(store):
    return ExportWriter(store, distance_precision=4)


class TestExportWriter:
    """Validation and upsert of cluster assignments."""

    def test_clustered_games_are_retrievable_both_ways(self, writer, store, make_snapshot, make_metadata):
        snapshot = make_snapshot([1, 2])
        rows = [
            (ClusterAssignment(1, 3, 0.25), make_metadata(1)),
            (ClusterAssignment(2, 3, 0.5), make_metadata(2)),
        ]

        summary = writer.write(snapshot, rows)

        assert summary.written == 2
        assert summary.training_run_id == "run_test"
        assert store.get_by_id(1).cluster_id == 3
        assert [r.app_id for r in store.range_query(3, 0.0)] == [1, 2]

    def test_unassigned_games_are_skipped(self, writer, store, make_snapshot, make_metadata):
        rows = [
            (ClusterAssignment(1, 0, 0.25), make_metadata(1)),
            (ClusterAssignment(2, 1, 0.5), make_metadata(2)),
        ]

        summary = writer.write(make_snapshot([1, 2]), rows)

        assert summary.written == 1
        assert summary.skipped_unclustered == 1
        with pytest.raises(NotFound):
            store.get_by_id(1)

    def test_flagged_assignment_is_exported_with_sentinel(self, writer, store, make_snapshot, make_metadata):
        rows = [(ClusterAssignment(1, 7, SENTINEL_DISTANCE, flagged=True), make_metadata(1))]

        summary = writer.write(make_snapshot([1]), rows)

        assert summary.flagged == 1
        assert store.get_by_id(1).distance_to_centroid > 1e30

    def test_distance_is_rounded(self, writer, store, make_snapshot, make_metadata):
        writer.write(make_snapshot([1]), [(ClusterAssignment(1, 2, 0.123456789), make_metadata(1))])

        assert store.get_by_id(1).distance_to_centroid == pytest.approx(0.1235)

    def test_reexport_keeps_latest_assignment(self, writer, store, make_snapshot, make_metadata):
        writer.write(make_snapshot([1], run_id="run_a"), [(ClusterAssignment(1, 2, 0.4), make_metadata(1))])
        writer.write(make_snapshot([1], run_id="run_b"), [(ClusterAssignment(1, 5, 0.1), make_metadata(1))])

        record = store.get_by_id(1)

        assert record.cluster_id == 5
        assert record.distance_to_centroid == pytest.approx(0.1)
        assert record.training_run_id == "run_b"
        assert store.count() == 1
        assert store.range_query(2, 0.0) == []

    def test_metadata_blob_round_trips(self, writer, store, make_snapshot, make_metadata):
        metadata = make_metadata(1, tags=(0.0, 1.0, 1.0), price=4.99, title="Portal")
        writer.write(make_snapshot([1]), [(ClusterAssignment(1, 1, 0.2), metadata)])

        record = store.get_by_id(1)

        assert record.metadata == metadata
        assert record.image_url == metadata.image_url

    def test_no_snapshot_is_untrained(self, writer, store, make_metadata):
        with pytest.raises(UntrainedModel):
            writer.write(None, [(ClusterAssignment(1, 1, 0.2), make_metadata(1))])

        assert store.count() == 0

    def test_game_outside_the_run_is_rejected(self, writer, store, make_snapshot, make_metadata):
        rows = [
            (ClusterAssignment(1, 1, 0.2), make_metadata(1)),
            (ClusterAssignment(99, 1, 0.3), make_metadata(99)),
        ]

        with pytest.raises(UntrainedModel):
            writer.write(make_snapshot([1]), rows)

        assert store.count() == 0

    def test_mismatched_metadata_is_rejected(self, writer, make_snapshot, make_metadata):
        with pytest.raises(ValueError):
            writer.write(make_snapshot([1]), [(ClusterAssignment(1, 1, 0.2), make_metadata(2))])


class TestPairRows:
    def test_missing_metadata(self, make_metadata):
        with pytest.raises(KeyError):
            pair_rows([ClusterAssignment(1, 1, 0.2)], {2: make_metadata(2)})


class TestPurge:
    """Retiring rows of earlier training runs."""

    def test_purge_except_keeps_only_the_given_run(self, seed, store):
        seed([(1, 1, 0.1), (2, 1, 0.2)], run_id="run_old")
        seed([(2, 1, 0.3), (3, 2, 0.1)], run_id="run_new")

        deleted = store.purge_except("run_new")
        store.db.commit()

        assert deleted == 1
        assert store.count() == 2
        with pytest.raises(NotFound):
            store.get_by_id(1)

    def test_cluster_sizes(self, seed, store):
        seed([(1, 1, 0.1), (2, 1, 0.2), (3, 2, 0.1)])

        assert store.cluster_sizes() == {1: 2, 2: 1}
