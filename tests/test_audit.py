from datetime import datetime, timezone

import pytest

from ecod_pg.db_lib_audit import PipelineAuditor, classify_sync_issue
from lib.types import SyncIssue


def _batch(**kw):
    base = {
        "batch_status": "completed",
        "expected_items": 100,
        "reported_completed": 100,
        "actual_proteins_in_partition": 100,
        "completed_at": datetime(2024, 5, 1),
    }
    base.update(kw)
    return base


@pytest.mark.parametrize(
    "batch,expected",
    [
        (_batch(actual_proteins_in_partition=0), SyncIssue.NO_PARTITION_DATA),
        (_batch(actual_proteins_in_partition=80), SyncIssue.MISSING_PARTITIONS),
        (_batch(batch_status="processing"), SyncIssue.STATUS_LAG),
        (_batch(batch_status="indexed", actual_proteins_in_partition=120), SyncIssue.STATUS_LAG),
        (_batch(reported_completed=130), SyncIssue.COUNT_OVERFLOW),
        (_batch(completed_at=None), SyncIssue.MISSING_COMPLETION_TIME),
        (_batch(actual_proteins_in_partition=95), SyncIssue.OK),
        (_batch(batch_status="processing", actual_proteins_in_partition=10), SyncIssue.OK),
    ],
)
def test_sync_issue_rules(batch, expected):
    assert classify_sync_issue(batch) == expected


def test_first_matching_rule_wins():
    # no partitions and an overflowing count: the partition rule comes first
    batch = _batch(actual_proteins_in_partition=0, reported_completed=500, completed_at=None)
    assert classify_sync_issue(batch) == SyncIssue.NO_PARTITION_DATA


def test_health_check_orders_issues_first(fake_adapter):
    rows = [
        dict(_batch(), id=1, created_at=datetime(2024, 1, 1)),
        dict(_batch(actual_proteins_in_partition=0), id=2, created_at=datetime(2024, 2, 1)),
        dict(_batch(), id=3, created_at=datetime(2024, 3, 1),
             first_partition_timestamp=datetime(2024, 3, 1, 0),
             last_partition_timestamp=datetime(2024, 3, 1, 6)),
        dict(_batch(completed_at=None), id=4, created_at=datetime(2023, 12, 1)),
    ]
    fake_adapter.on("AS actual_proteins_in_partition", rows)

    batches = PipelineAuditor(fake_adapter).batch_health_check()

    assert [b["id"] for b in batches] == [2, 4, 3, 1]
    assert batches[0]["sync_issue"] == "NO_PARTITION_DATA"
    assert batches[0]["protein_count_diff"] == -100
    assert batches[0]["completion_count_diff"] == 100
    assert batches[2]["processing_duration_hours"] == 6.0
    assert batches[3]["processing_duration_hours"] is None
    assert fake_adapter.transactions == ["read"]


def test_missing_partitions_passes_batch_filter(fake_adapter):
    PipelineAuditor(fake_adapter).missing_partitions(batch_id=31)
    (sql, params), = fake_adapter.calls
    assert params == {"batch_id": 31}
    assert "b.type = 'pdb_hhsearch'" in sql


def test_hit_level_files_restricted_to_evidence_types(fake_adapter):
    PipelineAuditor(fake_adapter).hit_level_files("5c3l", "B")
    (_, params), = fake_adapter.calls
    assert params["file_types"] == [
        "domain_summary",
        "chain_blast_result",
        "domain_blast_result",
        "hhsearch_result",
    ]


def test_health_check_sorts_aware_timestamps_with_missing_created_at(fake_adapter):
    rows = [
        dict(_batch(), id=1, created_at=datetime(2024, 1, 1, tzinfo=timezone.utc)),
        dict(_batch(), id=2, created_at=None),
        dict(_batch(), id=3, created_at=datetime(2024, 6, 1, tzinfo=timezone.utc)),
    ]
    fake_adapter.on("AS actual_proteins_in_partition", rows)

    batches = PipelineAuditor(fake_adapter).batch_health_check()

    assert [b["id"] for b in batches] == [3, 1, 2]
