# ecod_pg/protein_query_builder.py
"""
SQL query builders for protein and domain listings.
Designed to be used standalone or via the API layer.

Every builder returns ``(query, params)`` with named psycopg2 parameters.
Only Enum-validated values (sort keys, directions) are formatted into the
SQL text; everything user supplied travels as a parameter.
"""
from typing import Dict, Any, Tuple, List

from ecod_pg.query_builder import SqlQueryBuilder
from ecod_pg.models import (
    ArchitectureFilters,
    DomainFilters,
    PipelineSummaryFilters,
    ProteinFilters,
    ProteinSearchRequest,
    ProteinSort,
    SummarySort,
)
from lib.types import HIGH_CONFIDENCE, RECENT_DAYS

PROTEIN_COLUMNS = [
    "p.id",
    "p.pdb_id",
    "p.chain_id",
    "COALESCE(p.source_id, p.pdb_id || '_' || p.chain_id) AS source_id",
    "p.unp_acc",
    "p.name",
    "p.type",
    "p.tax_id",
    "p.length AS sequence_length",
    "p.created_at",
    "p.updated_at",
    "COUNT(d.id)::INTEGER AS domain_count",
    "COUNT(CASE WHEN d.t_group IS NOT NULL THEN 1 END)::INTEGER AS fully_classified_domains",
    "COUNT(CASE WHEN de.id IS NOT NULL THEN 1 END)::INTEGER AS domains_with_evidence",
    """CASE
      WHEN p.length > 0 AND COUNT(d.id) > 0
      THEN COALESCE(SUM(d.end_pos - d.start_pos + 1)::float / p.length, 0)
      ELSE 0
    END AS coverage""",
    "COALESCE(SUM(d.end_pos - d.start_pos + 1), 0)::INTEGER AS residues_assigned",
    "COUNT(d.id) > 0 AS is_classified",
    "MAX(pp.batch_id) AS batch_id",
    "MAX(pp.reference_version) AS reference_version",
]

PROTEIN_RECENCY_COLUMNS = [
    "MAX(pp.timestamp) AS processing_date",
    "AVG(d.confidence) AS avg_confidence",
    "MAX(d.confidence) AS best_confidence",
    "EXTRACT(EPOCH FROM (CURRENT_TIMESTAMP - MAX(pp.timestamp))) / 86400.0 AS days_since_processing",
]

PROTEIN_JOINS = [
    "LEFT JOIN pdb_analysis.domain d ON p.id = d.protein_id",
    "LEFT JOIN pdb_analysis.domain_evidence de ON d.id = de.domain_id",
    "LEFT JOIN pdb_analysis.partition_proteins pp ON p.id = pp.id",
]

PROTEIN_GROUP_BY = [
    "p.id", "p.pdb_id", "p.chain_id", "p.source_id", "p.unp_acc",
    "p.name", "p.type", "p.tax_id", "p.length", "p.created_at", "p.updated_at",
]


def _protein_base() -> SqlQueryBuilder:
    qb = SqlQueryBuilder().from_("pdb_analysis.protein p")
    for j in PROTEIN_JOINS:
        qb.join(j)
    return qb.group_by(*PROTEIN_GROUP_BY)


class ProteinQueryBuilder:
    """
    Builds the paginated protein list with per-protein domain aggregates.

    Usage:
        builder = ProteinQueryBuilder(filters)
        query, params = builder.build()
        stats_query, stats_params = builder.build_stats()
    """

    def __init__(self, filters: ProteinFilters):
        self.filters = filters
        self._qb = _protein_base().select(*PROTEIN_COLUMNS, *PROTEIN_RECENCY_COLUMNS)
        self._processed = False

    def _process_filters(self):
        if self._processed:
            return
        f, qb = self.filters, self._qb

        if f.pdb_id:
            qb.where("p.pdb_id = %(pdb_id)s").add_param("pdb_id", f.pdb_id)
        if f.chain_id:
            qb.where("p.chain_id = %(chain_id)s").add_param("chain_id", f.chain_id)
        if f.unp_acc:
            qb.where("p.unp_acc = %(unp_acc)s").add_param("unp_acc", f.unp_acc)
        if f.min_length is not None:
            qb.where("p.length >= %(min_length)s").add_param("min_length", f.min_length)
        if f.max_length is not None:
            qb.where("p.length <= %(max_length)s").add_param("max_length", f.max_length)
        if f.batch_id is not None:
            qb.where("pp.batch_id = %(batch_id)s").add_param("batch_id", f.batch_id)

        if f.is_classified is not None:
            qb.having("COUNT(d.id) > 0" if f.is_classified else "COUNT(d.id) = 0")

        qb.order_by(*self._order())
        self._processed = True

    def _order(self) -> List[str]:
        direction = self.filters.sort_dir.sql
        tail = ["processing_date DESC NULLS LAST", "p.pdb_id", "p.chain_id"]
        sort = self.filters.sort
        if sort == ProteinSort.BATCH:
            return ["batch_id DESC NULLS LAST"] + tail
        if sort == ProteinSort.CONFIDENCE:
            return [f"best_confidence {direction} NULLS LAST"] + tail
        if sort == ProteinSort.COVERAGE:
            return [f"coverage {direction}"] + tail
        if sort == ProteinSort.DOMAINS:
            return [f"domain_count {direction}"] + tail
        if sort == ProteinSort.LENGTH:
            return [f"p.length {direction}"] + tail
        if sort == ProteinSort.ALPHABETIC:
            return ["p.pdb_id", "p.chain_id"]
        return ["processing_date DESC NULLS LAST", "batch_id DESC NULLS LAST", "p.pdb_id", "p.chain_id"]

    def build(self) -> Tuple[str, Dict[str, Any]]:
        self._process_filters()
        self._qb.limit(self.filters.size).offset(self.filters.offset)
        return self._qb.build()

    def build_stats(self) -> Tuple[str, Dict[str, Any]]:
        """Statistics over the whole filtered set, ignoring pagination."""
        self._process_filters()
        inner, params = self._qb.build(paginate=False, ordered=False)
        query = f"""
        SELECT
          COUNT(*)::INTEGER AS total_proteins,
          COUNT(CASE WHEN domain_count > 0 THEN 1 END)::INTEGER AS classified_proteins,
          COUNT(CASE WHEN domain_count = 0 THEN 1 END)::INTEGER AS unclassified_proteins,
          AVG(CASE WHEN domain_count > 0 THEN domain_count END) AS avg_domains_per_protein,
          AVG(sequence_length) AS avg_sequence_length,
          COUNT(CASE WHEN days_since_processing <= {RECENT_DAYS} THEN 1 END)::INTEGER AS recent_proteins
        FROM (
        {inner}
        ) AS protein_stats
        """
        stats_params = {k: v for k, v in params.items() if k not in ("limit", "offset")}
        return query, stats_params


class ProteinSearchQueryBuilder:
    """Free-text ILIKE search over whitelisted protein columns."""

    def __init__(self, request: ProteinSearchRequest):
        self.request = request

    def build(self) -> Tuple[str, Dict[str, Any]]:
        r = self.request
        qb = _protein_base().select(*PROTEIN_COLUMNS)

        if r.search_term and r.search_fields:
            clauses = [f"p.{field} ILIKE %(search_pattern)s" for field in r.search_fields]
            qb.where("(" + " OR ".join(clauses) + ")")
            qb.add_param("search_pattern", f"%{r.search_term}%")

        if r.filters.pdb_id:
            qb.where("p.pdb_id = %(pdb_id)s").add_param("pdb_id", r.filters.pdb_id)
        if r.filters.chain_id:
            qb.where("p.chain_id = %(chain_id)s").add_param("chain_id", r.filters.chain_id)
        if r.filters.unp_acc:
            qb.where("p.unp_acc = %(unp_acc)s").add_param("unp_acc", r.filters.unp_acc)

        qb.add_param("exact_term", r.search_term or "")
        qb.order_by(
            """CASE
          WHEN p.pdb_id = %(exact_term)s THEN 1
          WHEN p.pdb_id || '_' || p.chain_id = %(exact_term)s THEN 2
          ELSE 3
        END""",
            "p.pdb_id",
            "p.chain_id",
        )
        qb.limit(r.size).offset((r.page - 1) * r.size)
        return qb.build()


class PipelineSummaryQueryBuilder:
    """
    Listing over the pipeline_performance_summary view. Classification group
    and domain number filters need a join onto partition_domains, which can
    fan out rows, so those queries switch to DISTINCT.
    """

    SORTS = {
        SummarySort.RECENT: "pps.processing_date {dir} NULLS LAST",
        SummarySort.BATCH: "pps.batch_id {dir} NULLS LAST, pps.processing_date DESC NULLS LAST",
        SummarySort.CONFIDENCE: "pps.best_domain_confidence {dir} NULLS LAST",
        SummarySort.COVERAGE: "pps.coverage {dir} NULLS LAST",
        SummarySort.DOMAINS: "pps.domains_found {dir} NULLS LAST",
        SummarySort.PDB_ID: "pps.pdb_id {dir}, pps.chain_id {dir}",
        SummarySort.SEQUENCE_LENGTH: "pps.sequence_length {dir} NULLS LAST",
    }

    EVIDENCE_COLUMNS = {
        "blast": "pps.chain_blast_evidence > 0",
        "chain_blast": "pps.chain_blast_evidence > 0",
        "domain_blast": "pps.domain_blast_evidence > 0",
        "hhsearch": "pps.hhsearch_evidence > 0",
    }

    GROUP_FILTERS = [
        ("t_groups", "pd.t_group"),
        ("h_groups", "pd.h_group"),
        ("x_groups", "pd.x_group"),
        ("a_groups", "pd.a_group"),
    ]

    def __init__(self, filters: PipelineSummaryFilters):
        self.filters = filters
        self._where_clauses: List[str] = []
        self._params: Dict[str, Any] = {}
        self.needs_domain_join = False
        self._processed = False

    def _process_filters(self):
        if self._processed:
            return
        f = self.filters

        if f.pdb_id:
            self._where_clauses.append("pps.pdb_id ILIKE %(pdb_pattern)s")
            self._params["pdb_pattern"] = f"%{f.pdb_id}%"
        if f.chain_id:
            self._where_clauses.append("pps.chain_id = %(chain_id)s")
            self._params["chain_id"] = f.chain_id.upper()
        if f.batch_id is not None:
            self._where_clauses.append("pps.batch_id = %(batch_id)s")
            self._params["batch_id"] = f.batch_id

        ranges = [
            ("min_confidence", "pps.best_domain_confidence >= %(min_confidence)s"),
            ("max_confidence", "pps.best_domain_confidence <= %(max_confidence)s"),
            ("sequence_length_min", "pps.sequence_length >= %(sequence_length_min)s"),
            ("sequence_length_max", "pps.sequence_length <= %(sequence_length_max)s"),
            ("min_evidence_count", "pps.total_evidence_generated >= %(min_evidence_count)s"),
        ]
        for name, clause in ranges:
            value = getattr(f, name)
            if value is not None:
                self._where_clauses.append(clause)
                self._params[name] = value

        if f.evidence_types:
            conditions = []
            for t in f.evidence_types:
                cond = self.EVIDENCE_COLUMNS.get(t.strip().lower())
                if cond and cond not in conditions:
                    conditions.append(cond)
            if conditions:
                self._where_clauses.append("(" + " OR ".join(conditions) + ")")

        for name, column in self.GROUP_FILTERS:
            values = getattr(f, name)
            if values:
                self.needs_domain_join = True
                self._where_clauses.append(f"{column} = ANY(%({name})s)")
                self._params[name] = values

        if f.domain_number is not None:
            self.needs_domain_join = True
            self._where_clauses.append("pd.domain_number = %(domain_number)s")
            self._params["domain_number"] = f.domain_number

        self._processed = True

    @property
    def where_count(self) -> int:
        self._process_filters()
        return len(self._where_clauses)

    def _from(self) -> str:
        parts = ["FROM pdb_analysis.pipeline_performance_summary pps"]
        if self.needs_domain_join:
            parts.append("INNER JOIN pdb_analysis.partition_domains pd ON pps.processing_id = pd.protein_id")
        if self._where_clauses:
            parts.append("WHERE " + " AND ".join(self._where_clauses))
        return "\n".join(parts)

    def build(self) -> Tuple[str, Dict[str, Any]]:
        self._process_filters()
        f = self.filters
        order = self.SORTS[f.sort].format(dir=f.sort_dir.sql)
        select = "SELECT DISTINCT" if self.needs_domain_join else "SELECT"
        query = f"""
        {select}
          pps.processing_id AS id,
          pps.pdb_id,
          pps.chain_id,
          pps.source_id,
          pps.batch_id,
          pps.reference_version,
          pps.processing_date,
          pps.sequence_length,
          pps.is_classified,
          pps.coverage,
          pps.domains_found AS domain_count,
          pps.domains_classified,
          pps.domains_unclassified,
          pps.avg_domain_confidence,
          pps.best_domain_confidence,
          pps.worst_domain_confidence,
          pps.total_evidence_generated AS total_evidence_count,
          pps.chain_blast_evidence > 0 AS has_chain_blast,
          pps.domain_blast_evidence > 0 AS has_domain_blast,
          pps.hhsearch_evidence > 0 AS has_hhsearch,
          pps.classification_status,
          pps.evidence_quality,
          pps.days_since_processing
        {self._from()}
        ORDER BY {order}
        LIMIT %(limit)s OFFSET %(offset)s
        """
        params = dict(self._params, limit=f.size, offset=f.offset)
        return query, params

    def build_count(self) -> Tuple[str, Dict[str, Any]]:
        self._process_filters()
        counted = "DISTINCT pps.processing_id" if self.needs_domain_join else "*"
        return f"SELECT COUNT({counted})::INTEGER AS total\n{self._from()}", dict(self._params)


class DomainQueryBuilder:
    """Paginated partition_domain_summary listing."""

    def __init__(self, filters: DomainFilters):
        self.filters = filters
        self._where_clauses: List[str] = []
        self._params: Dict[str, Any] = {}
        self._processed = False

    def _process_filters(self):
        if self._processed:
            return
        f = self.filters
        if f.pdb_id:
            self._where_clauses.append("pds.pdb_id = %(pdb_id)s")
            self._params["pdb_id"] = f.pdb_id
        if f.chain_id:
            self._where_clauses.append("pds.chain_id = %(chain_id)s")
            self._params["chain_id"] = f.chain_id
        for name, column in (("t_groups", "t_group"), ("h_groups", "h_group"), ("x_groups", "x_group")):
            values = getattr(f, name)
            if values:
                self._where_clauses.append(f"pds.{column} = ANY(%({name})s)")
                self._params[name] = values
        if f.min_confidence is not None:
            self._where_clauses.append("pds.confidence >= %(min_confidence)s")
            self._params["min_confidence"] = f.min_confidence
        if f.max_confidence is not None:
            self._where_clauses.append("pds.confidence <= %(max_confidence)s")
            self._params["max_confidence"] = f.max_confidence
        self._processed = True

    def _where(self) -> str:
        return ("WHERE " + " AND ".join(self._where_clauses)) if self._where_clauses else ""

    def build(self) -> Tuple[str, Dict[str, Any]]:
        self._process_filters()
        query = f"""
        SELECT
          pds.id, pds.protein_id, pds.pdb_id, pds.chain_id,
          pds.batch_id, pds.reference_version, pds.timestamp,
          pds.domain_number, pds.domain_id,
          pds.start_pos, pds.end_pos, pds.range,
          pds.source, pds.source_id, pds.confidence,
          pds.t_group, pds.h_group, pds.x_group, pds.a_group,
          pds.evidence_count, pds.evidence_types,
          p.length AS protein_sequence_length
        FROM pdb_analysis.partition_domain_summary pds
        LEFT JOIN pdb_analysis.protein p ON pds.pdb_id = p.pdb_id AND pds.chain_id = p.chain_id
        {self._where()}
        ORDER BY pds.pdb_id, pds.chain_id, pds.domain_number
        LIMIT %(limit)s OFFSET %(offset)s
        """
        return query, dict(self._params, limit=self.filters.size, offset=self.filters.offset)

    def build_stats(self) -> Tuple[str, Dict[str, Any]]:
        self._process_filters()
        query = f"""
        SELECT
          COUNT(*)::INTEGER AS total_domains,
          COUNT(CASE WHEN pds.t_group IS NOT NULL THEN 1 END)::INTEGER AS classified_domains,
          COUNT(CASE WHEN pds.confidence >= {HIGH_CONFIDENCE} THEN 1 END)::INTEGER AS high_confidence_domains,
          AVG(pds.confidence) AS avg_confidence,
          COUNT(CASE WHEN pds.evidence_count > 0 THEN 1 END)::INTEGER AS domains_with_evidence
        FROM pdb_analysis.partition_domain_summary pds
        {self._where()}
        """
        return query, dict(self._params)


class ArchitectureQueryBuilder:
    """
    Groups proteins by their ordered T-group signature, e.g.
    ``2002.1.1|UNCLASSIFIED``. Returns the 50 most frequent architectures.
    """

    PROTEINS_PER_ARCHITECTURE = 20
    MAX_ARCHITECTURES = 50

    def __init__(self, filters: ArchitectureFilters):
        self.filters = filters
        self._where_clauses: List[str] = []
        self._params: Dict[str, Any] = {}
        self._processed = False

    def _process_filters(self):
        if self._processed:
            return
        f = self.filters
        if f.pdb_id:
            self._where_clauses.append("p.pdb_id ILIKE %(pdb_pattern)s")
            self._params["pdb_pattern"] = f"%{f.pdb_id}%"
        if f.chain_id:
            self._where_clauses.append("p.chain_id = %(chain_id)s")
            self._params["chain_id"] = f.chain_id
        if f.min_confidence is not None:
            self._where_clauses.append("d.confidence >= %(min_confidence)s")
            self._params["min_confidence"] = f.min_confidence
        if f.max_confidence is not None:
            self._where_clauses.append("d.confidence <= %(max_confidence)s")
            self._params["max_confidence"] = f.max_confidence
        for name, column in (("t_groups", "t_group"), ("h_groups", "h_group"), ("x_groups", "x_group")):
            values = getattr(f, name)
            if values:
                self._where_clauses.append(f"d.{column} = ANY(%({name})s)")
                self._params[name] = values
        if f.evidence_types:
            self._where_clauses.append("d.evidence_types ILIKE %(evidence_pattern)s")
            self._params["evidence_pattern"] = f"%{f.evidence_types}%"
        self._processed = True

    def _where(self) -> str:
        return ("WHERE " + " AND ".join(self._where_clauses)) if self._where_clauses else ""

    def build(self) -> Tuple[str, Dict[str, Any]]:
        self._process_filters()
        query = f"""
        WITH protein_architectures AS (
          SELECT
            p.id AS protein_id,
            p.pdb_id,
            p.chain_id,
            p.length AS sequence_length,
            p.created_at AS processing_date,
            STRING_AGG(COALESCE(d.t_group, 'UNCLASSIFIED'), '|' ORDER BY d.start_pos) AS architecture_id,
            COUNT(d.id)::INTEGER AS domain_count,
            AVG(COALESCE(d.confidence, 0)) AS avg_confidence,
            MAX(COALESCE(d.confidence, 0)) AS best_confidence,
            COUNT(CASE WHEN d.t_group IS NOT NULL THEN 1 END)::float / COUNT(d.id)::float
              AS classification_completeness,
            JSON_AGG(
              JSON_BUILD_OBJECT(
                'id', d.id,
                'domain_number', d.domain_number,
                'range', d.range,
                'start_position', d.start_pos,
                'end_position', d.end_pos,
                'confidence', d.confidence,
                't_group', d.t_group,
                'h_group', d.h_group,
                'x_group', d.x_group,
                'a_group', d.a_group,
                'evidence_count', d.evidence_count,
                'evidence_types', d.evidence_types
              ) ORDER BY d.start_pos
            ) AS domains
          FROM pdb_analysis.protein p
          JOIN pdb_analysis.domain d ON p.id = d.protein_id
          {self._where()}
          GROUP BY p.id, p.pdb_id, p.chain_id, p.length, p.created_at
        ),
        architecture_stats AS (
          SELECT
            architecture_id,
            domain_count,
            COUNT(*)::INTEGER AS frequency,
            CASE
              WHEN domain_count = 1 THEN 'Single domain'
              WHEN domain_count = 2 THEN 'Two-domain protein'
              WHEN domain_count = 3 THEN 'Three-domain protein'
              WHEN domain_count >= 4 THEN 'Complex multi-domain'
              ELSE 'Unknown architecture'
            END AS pattern_name,
            STRING_TO_ARRAY(architecture_id, '|') AS t_groups,
            AVG(avg_confidence) AS group_avg_confidence,
            AVG(classification_completeness) AS group_classification_completeness
          FROM protein_architectures
          GROUP BY architecture_id, domain_count
        )
        SELECT
          a.architecture_id,
          a.pattern_name,
          a.domain_count,
          a.t_groups,
          a.frequency,
          a.group_avg_confidence,
          a.group_classification_completeness,
          JSON_AGG(
            JSON_BUILD_OBJECT(
              'protein_id', pa.protein_id,
              'pdb_id', pa.pdb_id,
              'chain_id', pa.chain_id,
              'sequence_length', pa.sequence_length,
              'processing_date', pa.processing_date,
              'domains', pa.domains,
              'best_confidence', pa.best_confidence,
              'avg_confidence', pa.avg_confidence,
              'classification_completeness', pa.classification_completeness
            ) ORDER BY pa.avg_confidence DESC, pa.processing_date DESC
          ) AS proteins
        FROM architecture_stats a
        JOIN protein_architectures pa
          ON a.architecture_id = pa.architecture_id AND a.domain_count = pa.domain_count
        GROUP BY
          a.architecture_id, a.pattern_name, a.domain_count, a.t_groups,
          a.frequency, a.group_avg_confidence, a.group_classification_completeness
        ORDER BY a.frequency DESC, a.domain_count ASC
        LIMIT {self.MAX_ARCHITECTURES}
        """
        return query, dict(self._params)

    def build_stats(self) -> Tuple[str, Dict[str, Any]]:
        self._process_filters()
        query = f"""
        SELECT
          COUNT(DISTINCT p.id)::INTEGER AS total_proteins,
          COUNT(d.id)::INTEGER AS total_domains,
          COUNT(DISTINCT CASE WHEN d.t_group IS NOT NULL THEN p.id END)::INTEGER AS classified_chains,
          COUNT(DISTINCT CASE WHEN d.t_group IS NULL THEN p.id END)::INTEGER AS unclassified_chains,
          AVG(
            CASE
              WHEN p.length > 0
              THEN (d.end_pos - d.start_pos + 1)::float / p.length::float * 100
              ELSE 0
            END
          ) AS avg_domain_coverage
        FROM pdb_analysis.protein p
        JOIN pdb_analysis.domain d ON p.id = d.protein_id
        {self._where()}
        """
        return query, dict(self._params)
