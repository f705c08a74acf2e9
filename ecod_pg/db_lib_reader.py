# ecod_pg/db_lib_reader.py
"""
Database reader with typed query methods.
Uses the query builders for filter logic.
"""

import math
from collections import defaultdict
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Union, Tuple

from loguru import logger

from api.config import settings
from ecod_pg.db_adapter import PostgresAdapter, Transaction
from ecod_pg.models import (
    ArchitectureFilters,
    DomainFilters,
    DomainListResponse,
    DomainStatistics,
    FilterOption,
    FilterOptionsResponse,
    Pagination,
    PipelineSummaryFilters,
    ProteinFilters,
    ProteinListResponse,
    ProteinSearchRequest,
    ProteinStatistics,
    SortingInfo,
)
from ecod_pg.protein_query_builder import (
    PROTEIN_COLUMNS,
    ArchitectureQueryBuilder,
    DomainQueryBuilder,
    PipelineSummaryQueryBuilder,
    ProteinQueryBuilder,
    ProteinSearchQueryBuilder,
    _protein_base,
)
from lib.errors import NotFoundError
from lib.types import (
    ClassificationLevel,
    EVIDENCE_FILE_TYPES,
    HIGH_CONFIDENCE,
    LEGACY_VERSIONS,
    MEDIUM_CONFIDENCE,
    PROPAGATED_VERSION,
    RECENT_DAYS,
    REPRESENTATIVE_VERSION,
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _confidence_bucket(value: Optional[float]) -> str:
    """Row-level badge: missing confidence counts as low."""
    value = value or 0
    if value >= HIGH_CONFIDENCE:
        return "high"
    if value >= MEDIUM_CONFIDENCE:
        return "medium"
    return "low"


def _recency(days_since_processing: Optional[float]) -> Dict[str, Any]:
    days = days_since_processing
    return {
        "days_old": math.floor(days or 0),
        "is_recent": (999 if days is None else days) < RECENT_DAYS,
    }


def _ratio(part: Optional[float], whole: Optional[float]) -> float:
    return (part or 0) / whole if whole else 0


class EcodReader:
    """
    Read-only database operations with typed filters and responses.
    """

    def __init__(self, adapter: Optional[PostgresAdapter] = None) -> None:
        self.adapter = adapter or PostgresAdapter(
            settings.DATABASE_URL, settings.DB_MIN_CONN, settings.DB_MAX_CONN
        )

    # -------------------------------------------------------------------------
    # Protein Queries
    # -------------------------------------------------------------------------

    def list_proteins(self, filters: ProteinFilters) -> ProteinListResponse:
        """
        Paginated protein list with per-protein domain aggregates and
        statistics over the whole filtered set.
        """
        builder = ProteinQueryBuilder(filters)
        query, params = builder.build()
        stats_query, stats_params = builder.build_stats()

        with self.adapter.session() as session:

            def run_query(tx: Transaction):
                rows = tx.run(query, params)
                stats = tx.single(stats_query, stats_params) or {}

                data = [
                    {
                        **r,
                        **_recency(r.get("days_since_processing")),
                        "confidence_level": _confidence_bucket(r.get("best_confidence")),
                        "classification_completeness": _ratio(
                            r.get("fully_classified_domains"), r.get("domain_count")
                        ),
                    }
                    for r in rows
                ]

                statistics = ProteinStatistics(
                    totalProteins=stats.get("total_proteins") or 0,
                    classifiedProteins=stats.get("classified_proteins") or 0,
                    unclassifiedProteins=stats.get("unclassified_proteins") or 0,
                    avgDomainsPerProtein=stats.get("avg_domains_per_protein") or 0,
                    avgSequenceLength=stats.get("avg_sequence_length") or 0,
                    recentProteins=stats.get("recent_proteins") or 0,
                )

                return ProteinListResponse(
                    data=data,
                    pagination=Pagination.of(filters.page, filters.size, statistics.totalProteins),
                    statistics=statistics,
                    sorting=SortingInfo(
                        current_sort=filters.sort.value,
                        sort_direction=filters.sort_dir.value,
                    ),
                )

            return session.execute_read(run_query)

    def search_proteins(self, request: ProteinSearchRequest) -> Dict[str, Any]:
        query, params = ProteinSearchQueryBuilder(request).build()

        with self.adapter.session() as session:

            def run_query(tx: Transaction):
                data = tx.run(query, params)
                return {
                    "data": data,
                    "search": {
                        "term": request.search_term,
                        "fields": request.search_fields,
                        "total": len(data),
                    },
                }

            return session.execute_read(run_query)

    def get_protein(self, identifier: Union[Tuple[str, str], int]) -> Optional[Dict[str, Any]]:
        """Single protein by (pdb_id, chain_id) or numeric id."""
        qb = _protein_base().select(*PROTEIN_COLUMNS)
        if isinstance(identifier, tuple):
            pdb_id, chain_id = identifier
            qb.where("p.pdb_id = %(pdb_id)s", "p.chain_id = %(chain_id)s")
            qb.add_param("pdb_id", pdb_id).add_param("chain_id", chain_id)
        else:
            qb.where("p.id = %(protein_id)s").add_param("protein_id", identifier)
        query, params = qb.build()

        with self.adapter.session() as session:

            def run_query(tx: Transaction):
                row = tx.single(query, params)
                if not row:
                    return None
                if not row.get("source_id"):
                    row["source_id"] = f"{row['pdb_id']}_{row['chain_id']}"
                return row

            return session.execute_read(run_query)

    def get_protein_domains(self, pdb_id: str, chain_id: str) -> Optional[Dict[str, Any]]:
        """Partition domains with classification names and grouped evidence."""
        protein_query = """
        SELECT
          pp.id AS processing_id,
          pp.pdb_id,
          pp.chain_id,
          pp.pdb_id || '_' || pp.chain_id AS source_id,
          pp.batch_id,
          pp.reference_version,
          pp.timestamp AS processing_date,
          pp.sequence_length,
          pp.is_classified,
          pp.coverage
        FROM pdb_analysis.partition_proteins pp
        WHERE pp.pdb_id = %(pdb_id)s AND pp.chain_id = %(chain_id)s
        """
        domains_query = """
        SELECT
          pd.id, pd.protein_id, pd.domain_number, pd.domain_id,
          pd.start_pos, pd.end_pos, pd.range,
          pd.pdb_range, pd.pdb_start, pd.pdb_end,
          pd.source, pd.source_id, pd.confidence,
          pd.t_group, tc.name AS t_group_name,
          pd.h_group, hc.name AS h_group_name,
          pd.x_group, xc.name AS x_group_name,
          pd.a_group,
          pd.is_manual_rep, pd.is_f70, pd.is_f40, pd.is_f99,
          pd.length,
          'putative' AS domain_type
        FROM pdb_analysis.partition_domains pd
        JOIN pdb_analysis.partition_proteins pp ON pd.protein_id = pp.id
        LEFT JOIN pdb_analysis.t_classification tc ON pd.t_group = tc.t_id
        LEFT JOIN pdb_analysis.h_classification hc ON pd.h_group = hc.h_id
        LEFT JOIN pdb_analysis.x_classification xc ON pd.x_group = xc.x_id
        WHERE pp.pdb_id = %(pdb_id)s AND pp.chain_id = %(chain_id)s
        ORDER BY pd.domain_number
        """
        evidence_query = """
        SELECT
          de.id,
          de.domain_id,
          de.evidence_type,
          de.source_id,
          de.domain_ref_id,
          de.hit_id,
          de.pdb_id,
          de.chain_id,
          de.confidence,
          de.probability,
          de.evalue,
          de.score,
          de.hsp_count,
          de.is_discontinuous,
          de.t_group AS ref_t_group,
          de.h_group AS ref_h_group,
          de.x_group AS ref_x_group,
          de.a_group AS ref_a_group,
          de.query_range,
          de.hit_range,
          COUNT(*) OVER (PARTITION BY de.domain_id)::INTEGER AS domain_evidence_count
        FROM pdb_analysis.domain_evidence de
        JOIN pdb_analysis.partition_domains pd ON de.domain_id = pd.id
        JOIN pdb_analysis.partition_proteins pp ON pd.protein_id = pp.id
        WHERE pp.pdb_id = %(pdb_id)s AND pp.chain_id = %(chain_id)s
        ORDER BY de.domain_id, de.confidence DESC
        """
        params = {"pdb_id": pdb_id, "chain_id": chain_id}

        with self.adapter.session() as session:

            def run_query(tx: Transaction):
                protein = tx.single(protein_query, params)
                if not protein:
                    return None

                domains = tx.run(domains_query, params)
                by_domain: Dict[int, List[Dict[str, Any]]] = defaultdict(list)
                evidence = tx.run(evidence_query, params)
                for ev in evidence:
                    by_domain[ev["domain_id"]].append(ev)

                for d in domains:
                    d["evidence"] = by_domain.get(d["id"], [])
                    d["evidence_count"] = len(d["evidence"])

                return {
                    "protein": {
                        **protein,
                        "domain_count": len(domains),
                        "total_evidence_items": len(evidence),
                    },
                    "domains": domains,
                    "metadata": {
                        "source": "partition_domains_direct",
                        "data_architecture": "pipeline_native",
                        "total_domains": len(domains),
                        "total_evidence_items": len(evidence),
                        "includes_classification_names": True,
                    },
                }

            return session.execute_read(run_query)

    # -------------------------------------------------------------------------
    # Propagation
    # -------------------------------------------------------------------------

    # Per-partition domain aggregates, restricted to one sequence MD5
    _PD_STATS_JOIN = """
        LEFT JOIN (
          SELECT
            pp2.id AS partition_protein_id,
            COUNT(pd.id)::INTEGER AS domain_count,
            COUNT(CASE WHEN pd.t_group IS NOT NULL THEN 1 END)::INTEGER AS domains_classified,
            AVG(pd.confidence) AS avg_confidence,
            MAX(pd.confidence) AS best_confidence,
            CASE
              WHEN p2.length > 0 AND SUM(pd.length) > 0
              THEN LEAST(1.0, SUM(pd.length)::float / p2.length::float)
              ELSE 0.0
            END AS coverage,
            COALESCE(SUM(pd.length), 0)::INTEGER AS residues_assigned
          FROM pdb_analysis.partition_proteins pp2
          JOIN pdb_analysis.protein p2 ON pp2.pdb_id = p2.pdb_id AND pp2.chain_id = p2.chain_id
          LEFT JOIN pdb_analysis.partition_domains pd ON pp2.id = pd.protein_id
          WHERE pp2.sequence_md5 = %(md5)s
          GROUP BY pp2.id, p2.length
        ) pd_stats ON pp.id = pd_stats.partition_protein_id
    """

    _EV_STATS_JOIN = """
        LEFT JOIN (
          SELECT pp2.id AS partition_protein_id, COUNT(de.id)::INTEGER AS evidence_count
          FROM pdb_analysis.partition_proteins pp2
          LEFT JOIN pdb_analysis.partition_domains pd ON pp2.id = pd.protein_id
          LEFT JOIN pdb_analysis.domain_evidence de ON pd.id = de.domain_id
          WHERE pp2.sequence_md5 = %(md5)s
          GROUP BY pp2.id
        ) ev_stats ON pp.id = ev_stats.partition_protein_id
    """

    _PROPAGATED_FROM = """
        FROM pdb_analysis.partition_proteins pp
        JOIN pdb_analysis.protein p ON pp.pdb_id = p.pdb_id AND pp.chain_id = p.chain_id
    """

    # Representative itself excluded
    _PROPAGATED_WHERE = """
        WHERE pp.sequence_md5 = %(md5)s
          AND pp.process_version = %(propagated_version)s
          AND p.id != %(representative_id)s
    """

    def get_propagated(self, pdb_id: str, chain_id: str, page: int = 1, size: int = 20) -> Dict[str, Any]:
        """
        Propagated sequences (same sequence MD5) of a representative chain.

        Raises NotFoundError when the chain has no representative partition,
        ValueError when the representative carries no sequence MD5.
        """
        representative_query = """
        SELECT
          p.id, p.pdb_id, p.chain_id, p.source_id,
          pp.sequence_md5, pp.process_version, pp.batch_id,
          pp.reference_version, pp.timestamp
        FROM pdb_analysis.protein p
        JOIN pdb_analysis.partition_proteins pp ON p.pdb_id = pp.pdb_id AND p.chain_id = pp.chain_id
        WHERE p.pdb_id = %(pdb_id)s AND p.chain_id = %(chain_id)s
          AND pp.process_version = %(representative_version)s
        LIMIT 1
        """
        propagated_query = f"""
        SELECT
          p.id, p.pdb_id, p.chain_id, p.source_id,
          p.unp_acc, p.name, p.type, p.tax_id,
          p.length AS sequence_length,
          pp.sequence_md5, pp.batch_id, pp.reference_version,
          pp.timestamp AS processing_date, pp.process_version,
          pd_stats.domain_count, pd_stats.domains_classified,
          pd_stats.avg_confidence, pd_stats.best_confidence,
          pd_stats.coverage, pd_stats.residues_assigned,
          ev_stats.evidence_count,
          b.batch_name, b.type AS batch_type, b.status AS batch_status,
          EXTRACT(EPOCH FROM (CURRENT_TIMESTAMP - pp.timestamp)) / 86400.0 AS days_since_processing
        {self._PROPAGATED_FROM}
        LEFT JOIN ecod_schema.batch b ON pp.batch_id = b.id
        {self._PD_STATS_JOIN}
        {self._EV_STATS_JOIN}
        {self._PROPAGATED_WHERE}
        ORDER BY pp.timestamp DESC, p.pdb_id, p.chain_id
        LIMIT %(limit)s OFFSET %(offset)s
        """
        count_query = f"""
        SELECT COUNT(*)::INTEGER AS total
        {self._PROPAGATED_FROM}
        {self._PROPAGATED_WHERE}
        """
        summary_query = f"""
        SELECT
          COUNT(*)::INTEGER AS total_propagated,
          COUNT(CASE WHEN pd_stats.domain_count > 0 THEN 1 END)::INTEGER AS classified_propagated,
          AVG(pd_stats.best_confidence) AS avg_best_confidence,
          AVG(pd_stats.coverage) AS avg_coverage,
          COUNT(DISTINCT pp.batch_id)::INTEGER AS unique_batches,
          MIN(pp.timestamp) AS earliest_processing,
          MAX(pp.timestamp) AS latest_processing
        {self._PROPAGATED_FROM}
        {self._PD_STATS_JOIN}
        {self._PROPAGATED_WHERE}
        """

        with self.adapter.session() as session:

            def run_query(tx: Transaction):
                rep = tx.single(
                    representative_query,
                    {
                        "pdb_id": pdb_id,
                        "chain_id": chain_id,
                        "representative_version": REPRESENTATIVE_VERSION,
                    },
                )
                if not rep:
                    raise NotFoundError(f"Representative not found: {pdb_id}_{chain_id}")
                if not rep.get("sequence_md5"):
                    raise ValueError(
                        f"Representative {pdb_id}_{chain_id} has no sequence MD5 for propagation lookup"
                    )

                params = {
                    "md5": rep["sequence_md5"],
                    "propagated_version": PROPAGATED_VERSION,
                    "representative_id": rep["id"],
                }
                rows = tx.run(propagated_query, dict(params, limit=size, offset=(page - 1) * size))
                total = (tx.single(count_query, params) or {}).get("total") or 0
                summary = tx.single(summary_query, params) or {}
                return rep, rows, total, summary

            rep, rows, total, summary = session.execute_read(run_query)

        sequences = [
            {
                **r,
                **_recency(r.get("days_since_processing")),
                "is_classified": (r.get("domain_count") or 0) > 0,
                "confidence_level": _confidence_bucket(r.get("best_confidence")),
                "classification_completeness": _ratio(r.get("domains_classified"), r.get("domain_count")),
            }
            for r in rows
        ]

        total_propagated = summary.get("total_propagated") or 0
        classified = summary.get("classified_propagated") or 0
        earliest, latest = summary.get("earliest_processing"), summary.get("latest_processing")
        span_days = 0
        if earliest and latest:
            span_days = math.ceil((latest - earliest).total_seconds() / 86400)

        return {
            "representative": {
                "id": rep["id"],
                "pdb_id": rep["pdb_id"],
                "chain_id": rep["chain_id"],
                "source_id": rep["source_id"],
                "sequence_md5": rep["sequence_md5"],
                "process_version": rep["process_version"],
                "batch_id": rep["batch_id"],
                "reference_version": rep["reference_version"],
                "processing_date": rep["timestamp"],
            },
            "propagated_sequences": sequences,
            "pagination": Pagination.of(page, size, total).model_dump(),
            "summary": {
                "total_propagated": total_propagated,
                "classified_propagated": classified,
                "classification_rate": classified / total_propagated * 100 if total_propagated else 0,
                "avg_best_confidence": summary.get("avg_best_confidence") or 0,
                "avg_coverage": summary.get("avg_coverage") or 0,
                "unique_batches": summary.get("unique_batches") or 0,
                "earliest_processing": earliest,
                "latest_processing": latest,
                "processing_span_days": span_days,
            },
            "metadata": {
                "source": "propagated_sequences_by_md5",
                "sequence_md5": rep["sequence_md5"],
                "representative_source_id": rep["source_id"],
                "representative_batch": rep["batch_id"],
                "query_time": _now_iso(),
            },
        }

    # -------------------------------------------------------------------------
    # Filesystem evidence
    # -------------------------------------------------------------------------

    def get_filesystem_evidence(self, pdb_id: str, chain_id: str) -> Dict[str, Any]:
        """Pipeline process status, tracked evidence files and the latest audit."""
        files_query = """
        SELECT
          ep.id AS ecod_protein_id,
          ep.source_id AS ecod_source_id,
          ps.id AS process_status_id,
          ps.batch_id,
          ps.current_stage,
          ps.status AS process_status,
          ps.processing_path,
          ps.error_message,
          ps.updated_at AS process_updated_at,
          b.batch_name,
          b.ref_version,
          b.base_path AS batch_base_path,
          pf.id AS file_id,
          pf.file_type,
          pf.file_path,
          pf.file_exists,
          pf.file_size::BIGINT AS file_size,
          pf.last_checked
        FROM ecod_schema.protein ep
        JOIN ecod_schema.process_status ps ON ep.id = ps.protein_id
        LEFT JOIN ecod_schema.batch b ON ps.batch_id = b.id
        LEFT JOIN ecod_schema.process_file pf ON ps.id = pf.process_id
        WHERE ep.pdb_id = %(pdb_id)s AND ep.chain_id = %(chain_id)s
          AND (pf.file_type IS NULL OR pf.file_type = ANY(%(file_types)s))
        ORDER BY
          array_position(%(file_types)s, pf.file_type::TEXT) NULLS LAST,
          pf.last_checked DESC
        """
        audit_query = """
        SELECT
          da.id AS audit_id,
          da.audit_date,
          da.visualization_path,
          da.json_report_path,
          da.text_report_path,
          da.total_blast_hits,
          da.total_domains,
          da.has_short_alignments,
          da.max_domain_coverage,
          da.min_domain_coverage,
          da.avg_domain_coverage,
          da.notes
        FROM ecod_schema.protein ep
        JOIN ecod_schema.domain_audit da ON ep.id = da.protein_id
        WHERE ep.pdb_id = %(pdb_id)s AND ep.chain_id = %(chain_id)s
        ORDER BY da.audit_date DESC
        LIMIT 1
        """
        params = {"pdb_id": pdb_id, "chain_id": chain_id, "file_types": EVIDENCE_FILE_TYPES}

        with self.adapter.session() as session:

            def run_query(tx: Transaction):
                return tx.run(files_query, params), tx.single(audit_query, params)

            rows, audit = session.execute_read(run_query)

        files = [r for r in rows if r.get("file_type")]
        files_by_type: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        for f in files:
            files_by_type[f["file_type"]].append(f)

        process_info = None
        if rows:
            first = rows[0]
            process_info = {
                k: first.get(k)
                for k in (
                    "ecod_protein_id", "process_status_id", "batch_id", "batch_name",
                    "ref_version", "current_stage", "process_status", "processing_path",
                    "error_message", "process_updated_at", "batch_base_path",
                )
            }

        return {
            "protein_id": f"{pdb_id}_{chain_id}",
            "process_info": process_info,
            "audit_info": audit,
            "files": files,
            "files_by_type": dict(files_by_type),
            "file_counts": {
                "total": len(files),
                "existing": sum(1 for f in files if f.get("file_exists")),
                "missing": sum(1 for f in files if not f.get("file_exists")),
            },
            "metadata": {
                "query_time": _now_iso(),
                "source": "ecod_schema_filesystem_tracking",
            },
        }

    def get_process_file(self, file_id: int) -> Optional[Dict[str, Any]]:
        """Tracked file that the pipeline marked as present on disk."""
        query = """
        SELECT pf.file_path, pf.file_type, pf.file_exists
        FROM ecod_schema.process_file pf
        WHERE pf.id = %(file_id)s AND pf.file_exists = true
        """
        with self.adapter.session() as session:
            return session.execute_read(lambda tx: tx.single(query, {"file_id": file_id}))

    # -------------------------------------------------------------------------
    # Pipeline summary & architecture views
    # -------------------------------------------------------------------------

    def proteins_summary(self, filters: PipelineSummaryFilters) -> Dict[str, Any]:
        builder = PipelineSummaryQueryBuilder(filters)
        query, params = builder.build()
        count_query, count_params = builder.build_count()

        with self.adapter.session() as session:

            def run_query(tx: Transaction):
                rows = tx.run(query, params)
                total = (tx.single(count_query, count_params) or {}).get("total") or 0
                return rows, total

            rows, total = session.execute_read(run_query)

        data = []
        for r in rows:
            evidence_types = [
                name
                for name, flag in (
                    ("chain_blast", r.get("has_chain_blast")),
                    ("domain_blast", r.get("has_domain_blast")),
                    ("hhsearch", r.get("has_hhsearch")),
                )
                if flag
            ]
            data.append(
                {
                    **r,
                    "domain_count": int(r.get("domain_count") or 0),
                    "domains_classified": int(r.get("domains_classified") or 0),
                    "domains_unclassified": int(r.get("domains_unclassified") or 0),
                    "total_evidence_count": int(r.get("total_evidence_count") or 0),
                    **_recency(r.get("days_since_processing")),
                    "avg_confidence": r.get("avg_domain_confidence") or 0,
                    "best_confidence": r.get("best_domain_confidence") or 0,
                    "confidence_level": _confidence_bucket(r.get("best_domain_confidence")),
                    "residues_assigned": round((r.get("coverage") or 0) * (r.get("sequence_length") or 0)),
                    "evidence_types": ",".join(evidence_types),
                    "data_source": "pipeline_performance_filtered",
                    "architecture": "full_filter_support",
                }
            )

        return {
            "data": data,
            "pagination": Pagination.of(filters.page, filters.size, total).model_dump(),
            "filters": {"applied": filters.applied(), "count": builder.where_count},
            "sorting": {"sort": filters.sort.value, "direction": filters.sort_dir.value},
            "metadata": {
                "source": "pipeline_performance_summary",
                "classification_joins": builder.needs_domain_join,
                "query_complexity": "complex" if builder.where_count > 3 else "simple",
                "result_count": len(data),
                "filter_support": "complete",
            },
        }

    def proteins_by_architecture(self, filters: ArchitectureFilters) -> Dict[str, Any]:
        """Proteins grouped by ordered T-group architecture, most frequent first."""
        builder = ArchitectureQueryBuilder(filters)
        query, params = builder.build()
        stats_query, stats_params = builder.build_stats()
        per_group = ArchitectureQueryBuilder.PROTEINS_PER_ARCHITECTURE

        with self.adapter.session() as session:

            def run_query(tx: Transaction):
                return tx.run(query, params), tx.single(stats_query, stats_params) or {}

            rows, stats = session.execute_read(run_query)

        architectures = []
        for row in rows:
            proteins = [
                {
                    "protein_id": p.get("protein_id"),
                    "pdb_id": p.get("pdb_id"),
                    "chain_id": p.get("chain_id"),
                    "sequence_length": p.get("sequence_length"),
                    "processing_date": p.get("processing_date"),
                    "best_confidence": float(p.get("best_confidence") or 0),
                    "avg_confidence": float(p.get("avg_confidence") or 0),
                    "classification_completeness": float(p.get("classification_completeness") or 0),
                    "domains": p.get("domains") or [],
                }
                for p in (row.get("proteins") or [])[:per_group]
            ]
            architectures.append(
                {
                    "architecture_id": row["architecture_id"],
                    "pattern_name": row["pattern_name"],
                    "domain_count": row["domain_count"],
                    "t_groups": row["t_groups"],
                    "frequency": row["frequency"],
                    "avg_confidence": row.get("group_avg_confidence") or 0,
                    "classification_completeness": row.get("group_classification_completeness") or 0,
                    "proteins": proteins,
                    "pagination": {"page": 1, "size": per_group, "total": row["frequency"]},
                }
            )

        return {
            "architectures": architectures,
            "statistics": {
                "total_proteins": stats.get("total_proteins") or 0,
                "total_domains": stats.get("total_domains") or 0,
                "classified_chains": stats.get("classified_chains") or 0,
                "unclassified_chains": stats.get("unclassified_chains") or 0,
                "avg_domain_coverage": stats.get("avg_domain_coverage") or 0,
            },
        }

    # -------------------------------------------------------------------------
    # Domain Queries
    # -------------------------------------------------------------------------

    def list_domains(self, filters: DomainFilters) -> DomainListResponse:
        builder = DomainQueryBuilder(filters)
        query, params = builder.build()
        stats_query, stats_params = builder.build_stats()

        with self.adapter.session() as session:

            def run_query(tx: Transaction):
                rows = tx.run(query, params)
                stats = tx.single(stats_query, stats_params) or {}
                statistics = DomainStatistics(
                    totalDomains=stats.get("total_domains") or 0,
                    classifiedDomains=stats.get("classified_domains") or 0,
                    highConfidenceDomains=stats.get("high_confidence_domains") or 0,
                    avgConfidence=stats.get("avg_confidence") or 0,
                    domainsWithEvidence=stats.get("domains_with_evidence") or 0,
                )
                return DomainListResponse(
                    data=rows,
                    pagination=Pagination.of(filters.page, filters.size, statistics.totalDomains),
                    statistics=statistics,
                )

            return session.execute_read(run_query)

    def get_domain_evidence(self, domain_id: int) -> List[Dict[str, Any]]:
        query = """
        SELECT
          de.id, de.domain_id, de.evidence_type, de.source_id,
          de.domain_ref_id, de.hit_id, de.pdb_id, de.chain_id,
          de.confidence, de.probability, de.evalue, de.score,
          de.hsp_count, de.is_discontinuous,
          de.t_group, de.h_group, de.x_group, de.a_group,
          de.query_range, de.hit_range, de.created_at
        FROM pdb_analysis.domain_evidence de
        WHERE de.domain_id = %(domain_id)s
        ORDER BY de.evidence_type, de.confidence DESC
        """
        with self.adapter.session() as session:
            return session.execute_read(lambda tx: tx.run(query, {"domain_id": domain_id}))

    def get_domain_comparisons(self, domain_id: int) -> List[Dict[str, Any]]:
        """Reference comparisons for a partition domain, best Jaccard first."""
        query = """
        SELECT
          dc.id, dc.partition_domain_id,
          dc.reference_type, dc.reference_domain_id, dc.reference_domain_range,
          dc.jaccard_similarity, dc.overlap_residues, dc.union_residues,
          dc.precision, dc.recall, dc.f1_score,
          dc.t_group_match, dc.h_group_match, dc.x_group_match, dc.a_group_match,
          dc.created_at
        FROM pdb_analysis.domain_comparisons dc
        WHERE dc.partition_domain_id = %(domain_id)s
        ORDER BY dc.jaccard_similarity DESC
        """
        with self.adapter.session() as session:
            return session.execute_read(lambda tx: tx.run(query, {"domain_id": domain_id}))

    def get_evidence_reference(self, evidence_id: int) -> Optional[Dict[str, Any]]:
        """Reference chain and hit range of one evidence row."""
        query = """
        SELECT de.pdb_id, de.chain_id, de.hit_range, de.source_id
        FROM pdb_analysis.domain_evidence de
        WHERE de.id = %(evidence_id)s
        """
        with self.adapter.session() as session:
            return session.execute_read(lambda tx: tx.single(query, {"evidence_id": evidence_id}))

    # -------------------------------------------------------------------------
    # Filter facets
    # -------------------------------------------------------------------------

    def filter_options(
        self, level: ClassificationLevel, search: Optional[str] = None, limit: int = 20
    ) -> FilterOptionsResponse:
        """Distinct classification groups at one level, most used first."""
        column = ClassificationLevel(level).value
        params: Dict[str, Any] = {"limit": limit}
        search_clause = ""
        if search:
            search_clause = f"AND {column} ILIKE %(search_pattern)s"
            params["search_pattern"] = f"%{search}%"

        query = f"""
        SELECT {column} AS value, COUNT(*)::INTEGER AS domain_count
        FROM pdb_analysis.partition_domain_summary
        WHERE {column} IS NOT NULL
          {search_clause}
        GROUP BY {column}
        ORDER BY domain_count DESC, {column}
        LIMIT %(limit)s
        """

        with self.adapter.session() as session:
            rows = session.execute_read(lambda tx: tx.run(query, params))

        options = [
            FilterOption(value=r["value"], label=r["value"], count=r["domain_count"]) for r in rows
        ]
        return FilterOptionsResponse(options=options, total=len(options), hasMore=len(options) == limit)

    # -------------------------------------------------------------------------
    # Dashboard
    # -------------------------------------------------------------------------

    DASHBOARD_ZERO = {
        "total_proteins": 0,
        "total_domains": 0,
        "classified_chains": 0,
        "unclassified_chains": 0,
        "classified_domains": 0,
        "unclassified_domains": 0,
        "avg_domain_coverage": 0,
        "avg_confidence": 0,
        "domains_with_evidence": 0,
        "total_evidence_items": 0,
        "total_propagated_sequences": 0,
        "representatives_with_propagated": 0,
        "data_source": "representative_partition_analysis",
        "algorithm_version": REPRESENTATIVE_VERSION,
    }

    def dashboard_stats(self) -> Dict[str, Any]:
        """
        Aggregates over representative partitions only, with propagation
        counts per representative and derived percentage rates.
        """
        query = f"""
        WITH representative_stats AS (
          SELECT
            pp.id,
            pp.batch_id,
            pp.timestamp,
            COALESCE(ds.domains_found, 0) AS domains_found,
            COALESCE(ds.domains_classified, 0) AS domains_classified,
            COALESCE(ds.best_confidence, 0) AS best_confidence,
            COALESCE(ds.coverage, 0) AS coverage,
            COALESCE(es.evidence_count, 0) AS evidence_count,
            COALESCE(es.evidence_types, 0) AS evidence_types,
            (SELECT COUNT(*)
               FROM pdb_analysis.partition_proteins pp2
              WHERE pp2.sequence_md5 = pp.sequence_md5
                AND pp2.process_version = %(propagated_version)s
            ) AS propagated_count,
            EXTRACT(EPOCH FROM (CURRENT_TIMESTAMP - pp.timestamp)) / 86400.0 AS days_since_processing
          FROM pdb_analysis.partition_proteins pp
          LEFT JOIN (
            SELECT
              pd.protein_id,
              COUNT(pd.id) AS domains_found,
              COUNT(CASE WHEN pd.t_group IS NOT NULL THEN 1 END) AS domains_classified,
              MAX(pd.confidence) AS best_confidence,
              CASE
                WHEN p2.length > 0 AND SUM(pd.length) > 0
                THEN LEAST(1.0, SUM(pd.length)::float / p2.length::float)
                ELSE 0.0
              END AS coverage
            FROM pdb_analysis.partition_domains pd
            JOIN pdb_analysis.partition_proteins pp2 ON pd.protein_id = pp2.id
            JOIN pdb_analysis.protein p2 ON pp2.pdb_id = p2.pdb_id AND pp2.chain_id = p2.chain_id
            GROUP BY pd.protein_id, p2.length
          ) ds ON pp.id = ds.protein_id
          LEFT JOIN (
            SELECT
              pd.protein_id,
              COUNT(de.id) AS evidence_count,
              COUNT(DISTINCT de.evidence_type) AS evidence_types
            FROM pdb_analysis.partition_domains pd
            LEFT JOIN pdb_analysis.domain_evidence de ON pd.id = de.domain_id
            GROUP BY pd.protein_id
          ) es ON pp.id = es.protein_id
          WHERE pp.process_version = %(representative_version)s
        )
        SELECT
          COUNT(*)::INTEGER AS total_proteins,
          COUNT(CASE WHEN domains_found > 0 THEN 1 END)::INTEGER AS classified_chains,
          COUNT(CASE WHEN domains_found = 0 THEN 1 END)::INTEGER AS unclassified_chains,
          COALESCE(SUM(domains_found), 0)::INTEGER AS total_domains,
          COALESCE(SUM(domains_classified), 0)::INTEGER AS classified_domains,
          COALESCE(SUM(domains_found) - SUM(domains_classified), 0)::INTEGER AS unclassified_domains,
          AVG(coverage) AS avg_domain_coverage,
          AVG(best_confidence) AS avg_confidence,
          COUNT(CASE WHEN evidence_count > 0 THEN 1 END)::INTEGER AS domains_with_evidence,
          COALESCE(SUM(evidence_count), 0)::INTEGER AS total_evidence_items,
          COALESCE(SUM(propagated_count), 0)::INTEGER AS total_propagated_sequences,
          COUNT(CASE WHEN propagated_count > 0 THEN 1 END)::INTEGER AS representatives_with_propagated,
          AVG(propagated_count) AS avg_propagated_per_representative,
          MAX(propagated_count)::INTEGER AS max_propagated_sequences,
          COUNT(CASE WHEN domains_found > 0 AND domains_classified = domains_found THEN 1 END)::INTEGER
            AS fully_classified_proteins,
          COUNT(CASE WHEN evidence_types >= 2 THEN 1 END)::INTEGER AS proteins_with_multiple_evidence_types,
          COUNT(CASE WHEN best_confidence >= {HIGH_CONFIDENCE} THEN 1 END)::INTEGER AS high_confidence_proteins,
          COUNT(CASE WHEN days_since_processing <= {RECENT_DAYS} THEN 1 END)::INTEGER AS recent_processing,
          COUNT(CASE WHEN days_since_processing <= 30 THEN 1 END)::INTEGER AS processing_last_month,
          COUNT(CASE WHEN coverage >= 0.8 THEN 1 END)::INTEGER AS high_coverage_proteins,
          COUNT(CASE WHEN coverage >= 0.5 AND coverage < 0.8 THEN 1 END)::INTEGER AS medium_coverage_proteins,
          COUNT(CASE WHEN coverage > 0 AND coverage < 0.5 THEN 1 END)::INTEGER AS low_coverage_proteins,
          COUNT(DISTINCT batch_id)::INTEGER AS unique_batches,
          MIN(timestamp) AS earliest_processing,
          MAX(timestamp) AS latest_processing
        FROM representative_stats
        """
        params = {
            "representative_version": REPRESENTATIVE_VERSION,
            "propagated_version": PROPAGATED_VERSION,
        }

        with self.adapter.session() as session:
            stats = session.execute_read(lambda tx: tx.single(query, params))

        if not stats:
            return dict(self.DASHBOARD_ZERO, error="No representative data found")

        stats = {k: (0 if v is None and k not in ("earliest_processing", "latest_processing") else v)
                 for k, v in stats.items()}
        total = stats["total_proteins"]
        domains = stats["total_domains"]

        def pct(part: float, whole: float) -> int:
            return round(part / whole * 100) if whole else 0

        return {
            **stats,
            "classification_success_rate": pct(stats["classified_chains"], total),
            "domain_classification_rate": pct(stats["classified_domains"], domains),
            "propagation_rate": pct(stats["representatives_with_propagated"], total),
            "high_confidence_rate": pct(stats["high_confidence_proteins"], total),
            "propagation_coverage_ratio": stats["total_propagated_sequences"] / total if total else 0,
            "algorithm_version": REPRESENTATIVE_VERSION,
            "data_source": "representative_partition_analysis",
            "architecture": "representative_focused_with_propagation_tracking",
            "excluded_versions": list(LEGACY_VERSIONS),
            "query_complexity": "representative_only_with_propagation_stats",
        }

    # -------------------------------------------------------------------------
    # PDB metadata cache
    # -------------------------------------------------------------------------

    def get_cached_pdb_metadata(self, pdb_id: str) -> Optional[Dict[str, Any]]:
        query = """
        SELECT
          pe.pdb_id,
          pe.title,
          pe.experimental_method AS method,
          pe.resolution,
          pe.r_factor,
          pe.deposition_date,
          pe.release_date,
          pe.revision_date,
          pe.keywords,
          pe.organism,
          pi.resolution AS info_resolution,
          pd.method AS deposition_method,
          pd.release_date AS deposition_release_date
        FROM pdb_analysis.pdb_entries pe
        LEFT JOIN pdb_analysis.pdb_info pi ON pe.pdb_id = pi.pdb
        LEFT JOIN pdb_analysis.pdb_deposition pd ON pe.pdb_id = pd.pdb_id
        WHERE pe.pdb_id = %(pdb_id)s
        """
        citation_query = """
        SELECT pmid, doi, title, journal, year
        FROM pdb_analysis.pdb_citations
        WHERE pdb_id = %(pdb_id)s
        ORDER BY created_at
        LIMIT 1
        """
        params = {"pdb_id": pdb_id.lower()}

        with self.adapter.session() as session:

            def run_query(tx: Transaction):
                return tx.single(query, params), tx.single(citation_query, params)

            row, citation = session.execute_read(run_query)

        if not row:
            return None
        metadata = {
            "pdb_id": row["pdb_id"],
            "title": row.get("title"),
            "method": row.get("method") or row.get("deposition_method"),
            "resolution": row.get("resolution") or row.get("info_resolution"),
            "r_factor": row.get("r_factor"),
            "deposition_date": row.get("deposition_date"),
            "release_date": row.get("release_date") or row.get("deposition_release_date"),
            "revision_date": row.get("revision_date"),
            "structure_keywords": row.get("keywords"),
            "organism": row.get("organism"),
        }
        if citation:
            metadata["primary_citation"] = citation
        return metadata

    def cache_pdb_metadata(self, metadata: Dict[str, Any]) -> None:
        """Upsert entry metadata and its primary citation."""
        entry_query = """
        INSERT INTO pdb_analysis.pdb_entries (
          pdb_id, title, experimental_method, resolution, r_factor,
          deposition_date, release_date, revision_date, keywords, organism, last_updated
        ) VALUES (
          %(pdb_id)s, %(title)s, %(method)s, %(resolution)s, %(r_factor)s,
          %(deposition_date)s, %(release_date)s, %(revision_date)s,
          %(structure_keywords)s, %(organism)s, CURRENT_TIMESTAMP
        )
        ON CONFLICT (pdb_id) DO UPDATE SET
          title = EXCLUDED.title,
          experimental_method = EXCLUDED.experimental_method,
          resolution = EXCLUDED.resolution,
          r_factor = EXCLUDED.r_factor,
          deposition_date = EXCLUDED.deposition_date,
          release_date = EXCLUDED.release_date,
          revision_date = EXCLUDED.revision_date,
          keywords = EXCLUDED.keywords,
          organism = EXCLUDED.organism,
          last_updated = CURRENT_TIMESTAMP
        """
        citation_query = """
        INSERT INTO pdb_analysis.pdb_citations (pdb_id, pmid, doi, title, journal, year, created_at)
        VALUES (%(pdb_id)s, %(pmid)s, %(doi)s, %(title)s, %(journal)s, %(year)s, CURRENT_TIMESTAMP)
        ON CONFLICT (pdb_id, pmid) DO UPDATE SET
          doi = EXCLUDED.doi,
          title = EXCLUDED.title,
          journal = EXCLUDED.journal,
          year = EXCLUDED.year
        """
        fields = (
            "title", "method", "resolution", "r_factor", "deposition_date",
            "release_date", "revision_date", "structure_keywords", "organism",
        )
        params = {k: metadata.get(k) for k in fields}
        params["pdb_id"] = metadata["pdb_id"].lower()
        citation = metadata.get("primary_citation") or {}

        with self.adapter.session() as session:

            def run_query(tx: Transaction):
                tx.execute(entry_query, params)
                if citation.get("pmid"):
                    tx.execute(
                        citation_query,
                        {
                            "pdb_id": params["pdb_id"],
                            "pmid": citation["pmid"],
                            "doi": citation.get("doi"),
                            "title": citation.get("title"),
                            "journal": citation.get("journal"),
                            "year": citation.get("year"),
                        },
                    )

            session.execute_write(run_query)
        logger.info(f"Cached PDB metadata for {params['pdb_id']}")


db_reader = EcodReader()
