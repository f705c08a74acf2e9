# ecod_pg/db_lib_audit.py
"""
Pipeline bookkeeping audits: batch listing and health, partition gaps,
evidence discrepancies and chain BLAST usage.
"""

from typing import Optional, List, Dict, Any

from loguru import logger

from api.config import settings
from ecod_pg.db_adapter import PostgresAdapter
from lib.types import (
    EVIDENCE_FILE_TYPES,
    PROPAGATED_VERSION,
    REPRESENTATIVE_VERSION,
    SyncIssue,
)

SAMPLE_SIZE = 10
MISSING_PARTITION_RATIO = 0.9


def classify_sync_issue(batch: Dict[str, Any]) -> SyncIssue:
    """First matching rule wins."""
    status = batch.get("batch_status")
    partitions = batch.get("actual_proteins_in_partition") or 0
    expected = batch.get("expected_items") or 0
    completed = batch.get("reported_completed") or 0

    if status == "completed" and partitions == 0:
        return SyncIssue.NO_PARTITION_DATA
    if status == "completed" and partitions < expected * MISSING_PARTITION_RATIO:
        return SyncIssue.MISSING_PARTITIONS
    if status in ("processing", "indexed") and partitions >= expected:
        return SyncIssue.STATUS_LAG
    if completed > expected:
        return SyncIssue.COUNT_OVERFLOW
    if status == "completed" and batch.get("completed_at") is None:
        return SyncIssue.MISSING_COMPLETION_TIME
    return SyncIssue.OK


class PipelineAuditor:
    def __init__(self, adapter: Optional[PostgresAdapter] = None) -> None:
        self.adapter = adapter or PostgresAdapter(
            settings.DATABASE_URL, settings.DB_MIN_CONN, settings.DB_MAX_CONN
        )

    def _read(self, query: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        with self.adapter.session() as session:
            return session.execute_read(lambda tx: tx.run(query, params or {}))

    # -------------------------------------------------------------------------
    # Batches
    # -------------------------------------------------------------------------

    def list_batches(self) -> List[Dict[str, Any]]:
        query = """
        SELECT
          b.id,
          b.batch_name,
          b.type AS batch_type,
          b.total_items,
          b.completed_items,
          b.status,
          b.ref_version,
          b.created_at,
          b.completed_at,
          COUNT(ps.id)::INTEGER AS actual_protein_count,
          COUNT(pp.id)::INTEGER AS partition_count
        FROM ecod_schema.batch b
        LEFT JOIN ecod_schema.process_status ps ON b.id = ps.batch_id
        LEFT JOIN ecod_schema.protein ep ON ps.protein_id = ep.id
        LEFT JOIN pdb_analysis.partition_proteins pp
          ON ep.source_id = pp.pdb_id || '_' || pp.chain_id
         AND pp.process_version = ANY(%(versions)s)
        WHERE b.type IN ('pdb_hhsearch', 'domain_analysis')
        GROUP BY b.id, b.batch_name, b.type, b.total_items, b.completed_items,
                 b.status, b.ref_version, b.created_at, b.completed_at
        ORDER BY b.id DESC
        """
        return self._read(query, {"versions": [REPRESENTATIVE_VERSION, PROPAGATED_VERSION]})

    def batch_health_check(self) -> List[Dict[str, Any]]:
        """
        Per-batch partition counts against what the batch table reports.
        Batches with a sync issue sort first, then newest first.
        """
        query = """
        SELECT
          b.id,
          b.batch_name,
          b.type,
          b.status AS batch_status,
          b.total_items AS expected_items,
          b.completed_items AS reported_completed,
          b.created_at,
          b.completed_at,
          COUNT(DISTINCT pp.id)::INTEGER AS actual_proteins_in_partition,
          COUNT(DISTINCT pd.id)::INTEGER AS actual_domains_in_partition,
          COUNT(DISTINCT CASE WHEN pp.is_classified THEN pp.id END)::INTEGER AS classified_count,
          COUNT(DISTINCT CASE WHEN pp.is_classified = false THEN pp.id END)::INTEGER AS unclassified_count,
          COUNT(DISTINCT CASE WHEN de.id IS NOT NULL THEN pp.id END)::INTEGER AS proteins_with_evidence,
          MIN(pp.timestamp) AS first_partition_timestamp,
          MAX(pp.timestamp) AS last_partition_timestamp
        FROM ecod_schema.batch b
        LEFT JOIN pdb_analysis.partition_proteins pp ON b.id = pp.batch_id
        LEFT JOIN pdb_analysis.partition_domains pd ON pp.id = pd.protein_id
        LEFT JOIN pdb_analysis.domain_evidence de ON pd.id = de.domain_id
        GROUP BY b.id, b.batch_name, b.type, b.status, b.total_items,
                 b.completed_items, b.created_at, b.completed_at
        """
        batches = []
        for row in self._read(query):
            partitions = row["actual_proteins_in_partition"]
            first, last = row.get("first_partition_timestamp"), row.get("last_partition_timestamp")
            row["sync_issue"] = classify_sync_issue(row).value
            row["protein_count_diff"] = partitions - (row.get("expected_items") or 0)
            row["completion_count_diff"] = (row.get("reported_completed") or 0) - partitions
            row["processing_duration_hours"] = (
                (last - first).total_seconds() / 3600.0 if first and last else None
            )
            batches.append(row)

        # Stable sorts: newest first, then issues ahead of OK
        batches.sort(key=lambda b: (b.get("created_at") is not None, b.get("created_at")), reverse=True)
        batches.sort(key=lambda b: b["sync_issue"] == SyncIssue.OK.value)

        issues = sum(1 for b in batches if b["sync_issue"] != SyncIssue.OK.value)
        if issues:
            logger.warning(f"Batch health check: {issues} of {len(batches)} batches out of sync")
        return batches

    # -------------------------------------------------------------------------
    # Partition audits
    # -------------------------------------------------------------------------

    def discrepancies(self) -> List[Dict[str, Any]]:
        query = f"""
        WITH discrepancy_analysis AS (
          SELECT
            'missing_domains' AS issue_type,
            pp.batch_id, pp.pdb_id, pp.chain_id,
            'Protein marked as classified but has no domains' AS description
          FROM pdb_analysis.partition_proteins pp
          LEFT JOIN pdb_analysis.partition_domains pd ON pp.id = pd.protein_id
          WHERE pp.is_classified = true
          GROUP BY pp.batch_id, pp.pdb_id, pp.chain_id, pp.id
          HAVING COUNT(pd.id) = 0

          UNION ALL

          SELECT
            'domains_without_evidence' AS issue_type,
            pp.batch_id, pp.pdb_id, pp.chain_id,
            'Domain exists but has no supporting evidence' AS description
          FROM pdb_analysis.partition_proteins pp
          JOIN pdb_analysis.partition_domains pd ON pp.id = pd.protein_id
          LEFT JOIN pdb_analysis.domain_evidence de ON pd.id = de.domain_id
          WHERE de.id IS NULL

          UNION ALL

          SELECT
            'classification_mismatch' AS issue_type,
            pp.batch_id, pp.pdb_id, pp.chain_id,
            'Protein classification status disagrees with domain classifications' AS description
          FROM pdb_analysis.partition_proteins pp
          LEFT JOIN pdb_analysis.partition_domains pd ON pp.id = pd.protein_id
          GROUP BY pp.batch_id, pp.pdb_id, pp.chain_id, pp.is_classified, pp.id
          HAVING (pp.is_classified = true AND COUNT(CASE WHEN pd.t_group IS NOT NULL THEN 1 END) = 0)
              OR (pp.is_classified = false AND COUNT(CASE WHEN pd.t_group IS NOT NULL THEN 1 END) > 0)
        )
        SELECT
          issue_type,
          batch_id,
          COUNT(*)::INTEGER AS affected_proteins,
          (ARRAY_AGG(pdb_id || '_' || chain_id ORDER BY pdb_id, chain_id))[1:{SAMPLE_SIZE}] AS sample_proteins,
          description
        FROM discrepancy_analysis
        GROUP BY issue_type, batch_id, description
        ORDER BY batch_id, issue_type
        """
        return self._read(query)

    def missing_partitions(self, batch_id: Optional[int] = None) -> List[Dict[str, Any]]:
        """Expected versus actual partitions per pdb_hhsearch batch, with gap types."""
        query = f"""
        WITH batch_expectations AS (
          SELECT
            b.id AS batch_id,
            b.batch_name,
            b.total_items AS expected_count,
            b.completed_items AS reported_completed,
            b.status AS batch_status
          FROM ecod_schema.batch b
          WHERE (%(batch_id)s::INTEGER IS NULL OR b.id = %(batch_id)s::INTEGER)
            AND b.type = 'pdb_hhsearch'
        ),
        processing_gaps AS (
          SELECT
            pp.batch_id,
            pp.pdb_id,
            pp.chain_id,
            pp.is_classified,
            COUNT(pd.id) AS domain_count,
            COUNT(de.id) AS evidence_count,
            CASE
              WHEN COUNT(pd.id) = 0 THEN 'NO_DOMAINS'
              WHEN COUNT(de.id) = 0 THEN 'NO_EVIDENCE'
              WHEN pp.is_classified = false AND COUNT(pd.id) > 0 THEN 'UNCLASSIFIED_WITH_DOMAINS'
              WHEN pp.is_classified = true
               AND COUNT(CASE WHEN pd.t_group IS NOT NULL THEN 1 END) = 0 THEN 'CLASSIFIED_WITHOUT_GROUPS'
              ELSE 'OK'
            END AS gap_type
          FROM pdb_analysis.partition_proteins pp
          LEFT JOIN pdb_analysis.partition_domains pd ON pp.id = pd.protein_id
          LEFT JOIN pdb_analysis.domain_evidence de ON pd.id = de.domain_id
          WHERE (%(batch_id)s::INTEGER IS NULL OR pp.batch_id = %(batch_id)s::INTEGER)
          GROUP BY pp.batch_id, pp.pdb_id, pp.chain_id, pp.is_classified, pp.id
        ),
        actual_partitions AS (
          SELECT
            batch_id,
            COUNT(*) AS actual_processed,
            COUNT(CASE WHEN is_classified THEN 1 END) AS actually_classified,
            COUNT(CASE WHEN domain_count > 0 THEN 1 END) AS with_domains,
            COUNT(CASE WHEN evidence_count > 0 THEN 1 END) AS with_evidence
          FROM processing_gaps
          GROUP BY batch_id
        )
        SELECT
          be.batch_id,
          be.batch_name,
          be.expected_count,
          be.reported_completed,
          COALESCE(ap.actual_processed, 0)::INTEGER AS actual_processed,
          COALESCE(ap.actually_classified, 0)::INTEGER AS actually_classified,
          COALESCE(ap.with_domains, 0)::INTEGER AS with_domains,
          COALESCE(ap.with_evidence, 0)::INTEGER AS with_evidence,
          (be.expected_count - COALESCE(ap.actual_processed, 0))::INTEGER AS missing_proteins,
          (be.reported_completed - COALESCE(ap.actual_processed, 0))::INTEGER AS reporting_gap,
          COUNT(CASE WHEN pg.gap_type = 'NO_DOMAINS' THEN 1 END)::INTEGER AS proteins_without_domains,
          COUNT(CASE WHEN pg.gap_type = 'NO_EVIDENCE' THEN 1 END)::INTEGER AS domains_without_evidence,
          COUNT(CASE WHEN pg.gap_type = 'UNCLASSIFIED_WITH_DOMAINS' THEN 1 END)::INTEGER AS classification_failures,
          COUNT(CASE WHEN pg.gap_type = 'CLASSIFIED_WITHOUT_GROUPS' THEN 1 END)::INTEGER AS assignment_failures,
          (ARRAY_AGG(pg.pdb_id || '_' || pg.chain_id || ' (' || pg.gap_type || ')')
            FILTER (WHERE pg.gap_type != 'OK'))[1:{SAMPLE_SIZE}] AS sample_issues
        FROM batch_expectations be
        LEFT JOIN actual_partitions ap ON be.batch_id = ap.batch_id
        LEFT JOIN processing_gaps pg ON be.batch_id = pg.batch_id
        GROUP BY be.batch_id, be.batch_name, be.expected_count, be.reported_completed,
                 ap.actual_processed, ap.actually_classified, ap.with_domains, ap.with_evidence
        ORDER BY missing_proteins DESC, reporting_gap DESC
        """
        return self._read(query, {"batch_id": batch_id})

    def chain_blast_diagnostic(self) -> List[Dict[str, Any]]:
        """Proteins whose chain BLAST evidence was missing, unused or conflicting."""
        query = f"""
        WITH chain_blast_analysis AS (
          SELECT
            pp.pdb_id,
            pp.chain_id,
            pp.sequence_length,
            COUNT(CASE WHEN de.evidence_type = 'chain_blast' THEN 1 END) AS chain_blast_hits,
            MAX(CASE WHEN de.evidence_type = 'chain_blast' THEN de.confidence END) AS max_chain_blast_conf,
            COUNT(CASE WHEN de.evidence_type = 'domain_blast' THEN 1 END) AS domain_blast_hits,
            MAX(CASE WHEN de.evidence_type = 'domain_blast' THEN de.confidence END) AS max_domain_blast_conf,
            CASE
              WHEN COUNT(CASE WHEN de.evidence_type = 'chain_blast' THEN 1 END) = 0
              THEN 'NO_CHAIN_BLAST_EVIDENCE'
              WHEN MAX(CASE WHEN de.evidence_type = 'chain_blast' THEN de.confidence END) > 0.9
               AND NOT COALESCE(BOOL_OR(pd.source = 'chain_blast'), false)
              THEN 'HIGH_CONF_CHAIN_BLAST_IGNORED'
              WHEN NOT COALESCE(BOOL_OR(pd.source = 'chain_blast'), false)
              THEN 'CHAIN_BLAST_NOT_USED'
              WHEN COUNT(DISTINCT CASE WHEN de.evidence_type = 'chain_blast' THEN de.t_group END) > 1
              THEN 'CONFLICTING_CHAIN_BLAST'
              ELSE 'CHAIN_BLAST_OK'
            END AS chain_blast_issue
          FROM pdb_analysis.partition_proteins pp
          LEFT JOIN pdb_analysis.partition_domains pd ON pp.id = pd.protein_id
          LEFT JOIN pdb_analysis.domain_evidence de ON pd.id = de.domain_id
          GROUP BY pp.pdb_id, pp.chain_id, pp.sequence_length, pp.id
        )
        SELECT
          chain_blast_issue,
          COUNT(*)::INTEGER AS protein_count,
          AVG(sequence_length) AS avg_sequence_length,
          AVG(chain_blast_hits) AS avg_chain_blast_hits,
          AVG(domain_blast_hits) AS avg_domain_blast_hits,
          AVG(max_chain_blast_conf) AS avg_max_chain_conf,
          AVG(max_domain_blast_conf) AS avg_max_domain_conf,
          (ARRAY_AGG(
            pdb_id || '_' || chain_id || ' (cb:' || chain_blast_hits
              || ',conf:' || COALESCE(max_chain_blast_conf::TEXT, 'null') || ')'
            ORDER BY max_chain_blast_conf DESC NULLS LAST
          ))[1:{SAMPLE_SIZE}] AS sample_proteins
        FROM chain_blast_analysis
        WHERE chain_blast_issue != 'CHAIN_BLAST_OK'
        GROUP BY chain_blast_issue
        ORDER BY protein_count DESC
        """
        return self._read(query)

    def hit_level_files(self, pdb_id: str, chain_id: str) -> List[Dict[str, Any]]:
        """Evidence files present on disk for one chain."""
        query = """
        SELECT
          ep.pdb_id,
          ep.chain_id,
          ps.sequence_length,
          pf.id AS file_id,
          pf.file_type,
          pf.file_path,
          pf.file_exists
        FROM ecod_schema.protein ep
        JOIN ecod_schema.process_status ps ON ep.id = ps.protein_id
        JOIN ecod_schema.process_file pf ON ps.id = pf.process_id
        WHERE ep.pdb_id = %(pdb_id)s AND ep.chain_id = %(chain_id)s
          AND pf.file_type = ANY(%(file_types)s)
          AND pf.file_exists = true
        """
        return self._read(
            query,
            {"pdb_id": pdb_id, "chain_id": chain_id, "file_types": EVIDENCE_FILE_TYPES[:4]},
        )


db_auditor = PipelineAuditor()
