# ecod_pg/db_lib_curation.py
"""
Curation workflow on top of the pipeline tables.

A session locks a batch of candidate proteins for one curator, collects
per-protein decisions, and is finally committed (curation_status updated),
discarded, or set aside for a revisit. Locks expire on their own so
abandoned sessions do not hold proteins forever.
"""

from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

from loguru import logger
from psycopg2.extras import Json

from api.config import settings
from ecod_pg.db_adapter import PostgresAdapter, Transaction
from ecod_pg.models import (
    AutoSaveRequest,
    CompletionAction,
    CurationDecisionRequest,
    SessionStatus,
)
from lib.errors import NotFoundError, SessionStateError
from lib.types import (
    CURATION_MAX_LENGTH,
    CURATION_MIN_CONFIDENCE,
    CURATION_MIN_LENGTH,
)

RESUMABLE_STATUSES = (SessionStatus.IN_PROGRESS.value, SessionStatus.PAUSED.value)
STATS_WINDOW_DAYS = 30

# Proteins with strong, structure-backed evidence and a curatable length
CURABLE_JOINS = """
    FROM pdb_analysis.protein p
    JOIN pdb_analysis.partition_proteins pp ON p.pdb_id = pp.pdb_id AND p.chain_id = pp.chain_id
    JOIN pdb_analysis.partition_domains pd ON pp.id = pd.protein_id
    JOIN pdb_analysis.domain_evidence de ON pd.id = de.domain_id
"""
CURABLE_WHERE = """
      de.source_id IS NOT NULL
  AND de.hit_range IS NOT NULL
  AND de.confidence > %(min_confidence)s
  AND p.length BETWEEN %(min_length)s AND %(max_length)s
"""
CURABLE_PARAMS = {
    "min_confidence": CURATION_MIN_CONFIDENCE,
    "min_length": CURATION_MIN_LENGTH,
    "max_length": CURATION_MAX_LENGTH,
}

EXTEND_LOCKS = """
    UPDATE pdb_analysis.protein_locks
    SET expires_at = CURRENT_TIMESTAMP + make_interval(hours => %(ttl)s)
    WHERE session_id = %(session_id)s
"""


class CurationStore:
    def __init__(self, adapter: Optional[PostgresAdapter] = None, lock_ttl_hours: Optional[int] = None) -> None:
        self.adapter = adapter or PostgresAdapter(
            settings.DATABASE_URL, settings.DB_MIN_CONN, settings.DB_MAX_CONN
        )
        self.lock_ttl_hours = lock_ttl_hours or settings.LOCK_TTL_HOURS

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    def start_session(self, curator_name: str, batch_size: int = 10) -> Dict[str, Any]:
        """
        Lock the next ``batch_size`` uncurated, unlocked candidates for a curator.
        Raises NotFoundError when nothing is available.
        """
        candidates_query = f"""
        SELECT
          p.id,
          COALESCE(p.source_id, p.pdb_id || '_' || p.chain_id) AS source_id,
          p.pdb_id,
          p.chain_id,
          p.length AS sequence_length,
          MAX(de.confidence) AS best_confidence,
          COUNT(DISTINCT de.id)::INTEGER AS evidence_count
        {CURABLE_JOINS}
        LEFT JOIN pdb_analysis.curation_status cs ON p.id = cs.protein_id
        LEFT JOIN pdb_analysis.protein_locks pl
          ON COALESCE(p.source_id, p.pdb_id || '_' || p.chain_id) = pl.source_id
        WHERE (cs.is_curated IS NULL OR cs.is_curated = false)
          AND pl.source_id IS NULL
          AND (p.is_nonident_rep = true OR p.is_nonident_rep IS NULL)
          AND {CURABLE_WHERE}
        GROUP BY p.id, p.source_id, p.pdb_id, p.chain_id, p.length
        HAVING COUNT(DISTINCT de.id) > 0
        ORDER BY best_confidence DESC, evidence_count DESC
        LIMIT %(batch_size)s
        """
        session_query = """
        INSERT INTO pdb_analysis.curation_session (curator_name, target_batch_size, locked_proteins, status)
        VALUES (%(curator_name)s, %(batch_size)s, %(locked)s, %(status)s)
        RETURNING id, curator_name, target_batch_size, locked_proteins, created_at
        """
        lock_query = """
        INSERT INTO pdb_analysis.protein_locks (source_id, curator_name, session_id, expires_at)
        VALUES (%(source_id)s, %(curator_name)s, %(session_id)s,
                CURRENT_TIMESTAMP + make_interval(hours => %(ttl)s))
        ON CONFLICT (source_id) DO NOTHING
        """

        with self.adapter.session() as session:

            def run_query(tx: Transaction):
                expired = tx.execute("DELETE FROM pdb_analysis.protein_locks WHERE expires_at < CURRENT_TIMESTAMP")
                if expired:
                    logger.info(f"Released {expired} expired protein locks")

                proteins = tx.run(candidates_query, dict(CURABLE_PARAMS, batch_size=batch_size))
                if not proteins:
                    raise NotFoundError(
                        "No proteins available for curation: all suitable proteins may be "
                        "curated, locked, or lack good evidence"
                    )

                source_ids = [p["source_id"] for p in proteins]
                created = tx.single(
                    session_query,
                    {
                        "curator_name": curator_name,
                        "batch_size": batch_size,
                        "locked": source_ids,
                        "status": SessionStatus.IN_PROGRESS.value,
                    },
                )
                for source_id in source_ids:
                    tx.execute(
                        lock_query,
                        {
                            "source_id": source_id,
                            "curator_name": curator_name,
                            "session_id": created["id"],
                            "ttl": self.lock_ttl_hours,
                        },
                    )
                return created, proteins

            created, proteins = session.execute_write(run_query)

        logger.info(f"Curator {curator_name} started session {created['id']} with {len(proteins)} proteins")
        return {
            "session": created,
            "proteins": proteins,
            "message": f"Created session with {len(proteins)} proteins for curation",
        }

    def save_decision(self, decision: CurationDecisionRequest) -> Dict[str, Any]:
        """Insert or replace the decision for one protein within a session."""
        query = """
        INSERT INTO pdb_analysis.curation_decision (
          session_id, protein_id, source_id,
          has_domain, domain_assigned_correctly, boundaries_correct,
          is_fragment, is_repeat_protein, confidence_level,
          review_time_seconds, notes, flagged_for_review,
          primary_evidence_type, primary_evidence_source_id,
          reference_domain_id, evidence_confidence, evidence_evalue
        ) VALUES (
          %(session_id)s, %(protein_id)s, %(source_id)s,
          %(has_domain)s, %(domain_assigned_correctly)s, %(boundaries_correct)s,
          %(is_fragment)s, %(is_repeat_protein)s, %(confidence_level)s,
          %(review_time_seconds)s, %(notes)s, %(flagged_for_review)s,
          %(primary_evidence_type)s, %(primary_evidence_source_id)s,
          %(reference_domain_id)s, %(evidence_confidence)s, %(evidence_evalue)s
        )
        ON CONFLICT (session_id, protein_id) DO UPDATE SET
          has_domain = EXCLUDED.has_domain,
          domain_assigned_correctly = EXCLUDED.domain_assigned_correctly,
          boundaries_correct = EXCLUDED.boundaries_correct,
          is_fragment = EXCLUDED.is_fragment,
          is_repeat_protein = EXCLUDED.is_repeat_protein,
          confidence_level = EXCLUDED.confidence_level,
          review_time_seconds = EXCLUDED.review_time_seconds,
          notes = EXCLUDED.notes,
          flagged_for_review = EXCLUDED.flagged_for_review,
          primary_evidence_type = EXCLUDED.primary_evidence_type,
          primary_evidence_source_id = EXCLUDED.primary_evidence_source_id,
          reference_domain_id = EXCLUDED.reference_domain_id,
          evidence_confidence = EXCLUDED.evidence_confidence,
          evidence_evalue = EXCLUDED.evidence_evalue,
          updated_at = CURRENT_TIMESTAMP
        """

        with self.adapter.session() as session:

            def run_query(tx: Transaction):
                protein = tx.single(
                    "SELECT id FROM pdb_analysis.protein WHERE source_id = %(source_id)s",
                    {"source_id": decision.protein_source_id},
                )
                if not protein:
                    raise NotFoundError(f"Protein not found: {decision.protein_source_id}")

                params = {
                    "session_id": decision.session_id,
                    "protein_id": protein["id"],
                    "source_id": decision.protein_source_id,
                    "review_time_seconds": decision.review_time_seconds,
                    **decision.decisions.model_dump(),
                    **decision.evidence_used.model_dump(),
                }
                tx.execute(query, params)
                return protein["id"]

            protein_id = session.execute_write(run_query)

        return {"success": True, "protein_id": protein_id}

    def auto_save(self, session_id: int, payload: AutoSaveRequest) -> Dict[str, Any]:
        """Persist in-progress UI state and keep the session's locks alive."""
        saved_at = datetime.now(timezone.utc).isoformat()
        auto_save_data = {
            "decisions": payload.decisions,
            "saved_at": saved_at,
            "notes": payload.notes,
            "completed_count": payload.completed_count,
        }
        update_query = """
        UPDATE pdb_analysis.curation_session
        SET
          current_protein_index = %(index)s,
          proteins_reviewed = %(reviewed)s,
          auto_save_data = %(data)s,
          notes = %(notes)s,
          updated_at = CURRENT_TIMESTAMP
        WHERE id = %(session_id)s
        RETURNING id, current_protein_index, proteins_reviewed, updated_at
        """

        with self.adapter.session() as session:

            def run_query(tx: Transaction):
                active = tx.single(
                    """SELECT id FROM pdb_analysis.curation_session
                       WHERE id = %(session_id)s AND status = %(status)s""",
                    {"session_id": session_id, "status": SessionStatus.IN_PROGRESS.value},
                )
                if not active:
                    raise NotFoundError("Session not found or not active")

                updated = tx.single(
                    update_query,
                    {
                        "index": payload.current_protein_index,
                        "reviewed": payload.completed_count,
                        "data": Json(auto_save_data),
                        "notes": payload.notes,
                        "session_id": session_id,
                    },
                )
                tx.execute(EXTEND_LOCKS, {"ttl": self.lock_ttl_hours, "session_id": session_id})
                return updated

            updated = session.execute_write(run_query)

        return {"success": True, "session": updated, "auto_saved_at": saved_at}

    def resume_session(self, session_id: int) -> Dict[str, Any]:
        session_query = """
        SELECT
          cs.id, cs.curator_name, cs.status, cs.target_batch_size,
          cs.proteins_reviewed, cs.current_protein_index, cs.locked_proteins,
          cs.auto_save_data, cs.notes, cs.created_at, cs.updated_at
        FROM pdb_analysis.curation_session cs
        WHERE cs.id = %(session_id)s
        """
        proteins_query = """
        SELECT p.id, p.source_id, p.pdb_id, p.chain_id, p.length AS sequence_length
        FROM pdb_analysis.protein p
        WHERE p.source_id = ANY(%(locked)s)
        ORDER BY array_position(%(locked)s, p.source_id::TEXT)
        """
        decisions_query = """
        SELECT
          cd.protein_id, cd.source_id,
          cd.has_domain, cd.domain_assigned_correctly, cd.boundaries_correct,
          cd.is_fragment, cd.is_repeat_protein, cd.confidence_level,
          cd.notes, cd.flagged_for_review, cd.review_time_seconds,
          cd.primary_evidence_type, cd.primary_evidence_source_id,
          cd.reference_domain_id, cd.evidence_confidence, cd.evidence_evalue,
          cd.created_at
        FROM pdb_analysis.curation_decision cd
        WHERE cd.session_id = %(session_id)s
        ORDER BY cd.created_at
        """
        params = {"session_id": session_id}

        with self.adapter.session() as session:

            def run_query(tx: Transaction):
                found = tx.single(session_query, params)
                if not found:
                    raise NotFoundError("Session not found")
                if found["status"] not in RESUMABLE_STATUSES:
                    raise SessionStateError(f"Session cannot be resumed (status: {found['status']})")
                locked = list(found.get("locked_proteins") or [])
                if not locked:
                    raise SessionStateError("No proteins locked to this session")

                proteins = tx.run(proteins_query, {"locked": locked})
                decisions = tx.run(decisions_query, params)
                tx.execute(EXTEND_LOCKS, {"ttl": self.lock_ttl_hours, "session_id": session_id})
                return found, proteins, decisions

            found, proteins, decisions = session.execute_write(run_query)

        return {
            "session": found,
            "proteins": proteins,
            "decisions": decisions,
            "can_resume": True,
            "message": "Session ready for resumption",
        }

    def complete_session(
        self, session_id: int, action: CompletionAction, final_notes: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Close a session. Locks are always released; committing also marks
        every decided protein as curated.
        """
        action = CompletionAction(action)
        final_status = action.final_status.value

        commit_query = """
        INSERT INTO pdb_analysis.curation_status (
          protein_id, source_id, is_curated, last_session_id, last_curated_at,
          last_curator, curation_count, has_domain, is_fragment, flagged_for_review
        )
        SELECT
          cd.protein_id, cd.source_id, true, cs.id, CURRENT_TIMESTAMP,
          cs.curator_name, 1, cd.has_domain, cd.is_fragment, cd.flagged_for_review
        FROM pdb_analysis.curation_decision cd
        JOIN pdb_analysis.curation_session cs ON cd.session_id = cs.id
        WHERE cs.id = %(session_id)s
        ON CONFLICT (protein_id) DO UPDATE SET
          is_curated = true,
          last_session_id = EXCLUDED.last_session_id,
          last_curated_at = CURRENT_TIMESTAMP,
          last_curator = EXCLUDED.last_curator,
          has_domain = EXCLUDED.has_domain,
          is_fragment = EXCLUDED.is_fragment,
          flagged_for_review = EXCLUDED.flagged_for_review,
          curation_count = curation_status.curation_count + 1
        """
        stats_query = """
        SELECT
          COUNT(*)::INTEGER AS total_decisions,
          COUNT(CASE WHEN has_domain = true THEN 1 END)::INTEGER AS has_domain_count,
          COUNT(CASE WHEN is_fragment = true THEN 1 END)::INTEGER AS fragment_count,
          COUNT(CASE WHEN flagged_for_review = true THEN 1 END)::INTEGER AS flagged_count,
          ROUND(AVG(confidence_level)::NUMERIC, 2)::FLOAT AS avg_confidence,
          ROUND(AVG(review_time_seconds)::NUMERIC, 1)::FLOAT AS avg_review_time
        FROM pdb_analysis.curation_decision
        WHERE session_id = %(session_id)s
        """
        params = {"session_id": session_id}

        with self.adapter.session() as session:

            def run_query(tx: Transaction):
                found = tx.single(
                    "SELECT id, curator_name, status FROM pdb_analysis.curation_session WHERE id = %(session_id)s",
                    params,
                )
                if not found:
                    raise NotFoundError("Session not found")

                tx.execute(
                    """UPDATE pdb_analysis.curation_session
                       SET status = %(status)s,
                           session_end = CURRENT_TIMESTAMP,
                           updated_at = CURRENT_TIMESTAMP,
                           notes = COALESCE(notes, '') || ' | ' || COALESCE(%(final_notes)s, '')
                       WHERE id = %(session_id)s""",
                    dict(params, status=final_status, final_notes=final_notes),
                )
                tx.execute("DELETE FROM pdb_analysis.protein_locks WHERE session_id = %(session_id)s", params)

                committed = 0
                if action == CompletionAction.COMMIT:
                    committed = tx.execute(commit_query, params)
                return committed, tx.single(stats_query, params) or {}

            committed, stats = session.execute_write(run_query)

        logger.info(f"Session {session_id} {final_status} ({committed} proteins committed)")
        return {
            "success": True,
            "action": action.value,
            "session_status": final_status,
            "session_id": session_id,
            "statistics": {
                "total_decisions": stats.get("total_decisions") or 0,
                "has_domain_count": stats.get("has_domain_count") or 0,
                "fragment_count": stats.get("fragment_count") or 0,
                "flagged_count": stats.get("flagged_count") or 0,
                "avg_confidence": stats.get("avg_confidence") or 0,
                "avg_review_time": stats.get("avg_review_time") or 0,
            },
            "committed_proteins": committed,
            "message": (
                f"Successfully committed {committed} protein decisions"
                if action == CompletionAction.COMMIT
                else f"Session {action.value}ed successfully"
            ),
        }

    # -------------------------------------------------------------------------
    # Reporting
    # -------------------------------------------------------------------------

    def list_sessions(
        self, curator: Optional[str] = None, status: Optional[str] = None, limit: int = 20
    ) -> Dict[str, Any]:
        conditions: List[str] = []
        params: Dict[str, Any] = {}
        if curator:
            conditions.append("cs.curator_name = %(curator)s")
            params["curator"] = curator
        if status:
            conditions.append("cs.status = %(status)s")
            params["status"] = status
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        sessions_query = f"""
        SELECT
          cs.id, cs.curator_name, cs.status, cs.target_batch_size,
          cs.proteins_reviewed, cs.current_protein_index,
          cs.created_at, cs.session_end, cs.updated_at,
          COUNT(cd.id)::INTEGER AS total_decisions,
          COUNT(CASE WHEN cd.has_domain = true THEN 1 END)::INTEGER AS domains_found,
          COUNT(CASE WHEN cd.is_fragment = true THEN 1 END)::INTEGER AS fragments_found,
          COUNT(CASE WHEN cd.flagged_for_review = true THEN 1 END)::INTEGER AS flagged_count,
          ROUND(COALESCE(AVG(cd.confidence_level), 0)::NUMERIC, 2)::FLOAT AS avg_confidence,
          ROUND(COALESCE(AVG(cd.review_time_seconds), 0)::NUMERIC, 1)::FLOAT AS avg_review_time,
          CASE
            WHEN cs.target_batch_size > 0
            THEN ROUND((cs.proteins_reviewed::NUMERIC / cs.target_batch_size::NUMERIC) * 100, 1)::FLOAT
            ELSE 0
          END AS completion_percentage
        FROM pdb_analysis.curation_session cs
        LEFT JOIN pdb_analysis.curation_decision cd ON cs.id = cd.session_id
        {where}
        GROUP BY cs.id, cs.curator_name, cs.status, cs.target_batch_size,
                 cs.proteins_reviewed, cs.current_protein_index, cs.created_at,
                 cs.session_end, cs.updated_at
        ORDER BY cs.created_at DESC
        LIMIT %(limit)s
        """
        summary_query = f"""
        SELECT
          COUNT(*)::INTEGER AS total_sessions,
          COUNT(CASE WHEN status = 'in_progress' THEN 1 END)::INTEGER AS active_sessions,
          COUNT(CASE WHEN status = 'committed' THEN 1 END)::INTEGER AS committed_sessions,
          COUNT(DISTINCT curator_name)::INTEGER AS unique_curators
        FROM pdb_analysis.curation_session cs
        {where}
        """

        with self.adapter.session() as session:

            def run_query(tx: Transaction):
                return tx.run(sessions_query, dict(params, limit=limit)), tx.single(summary_query, params)

            sessions, summary = session.execute_read(run_query)

        return {
            "sessions": sessions,
            "summary": summary,
            "filters": {"curator": curator, "status": status, "limit": limit},
        }

    def curation_stats(self) -> Dict[str, Any]:
        """Recent session and decision aggregates plus overall curation progress."""
        stats_query = f"""
        SELECT
          COUNT(DISTINCT cs.id)::INTEGER AS total_sessions,
          COUNT(DISTINCT CASE WHEN cs.status = 'committed' THEN cs.id END)::INTEGER AS committed_sessions,
          COUNT(DISTINCT CASE WHEN cs.status = 'in_progress' THEN cs.id END)::INTEGER AS active_sessions,
          COUNT(DISTINCT cs.curator_name)::INTEGER AS total_curators,
          COUNT(cd.id)::INTEGER AS total_decisions,
          COUNT(CASE WHEN cd.has_domain = true THEN 1 END)::INTEGER AS proteins_with_domains,
          COUNT(CASE WHEN cd.is_fragment = true THEN 1 END)::INTEGER AS fragments_identified,
          COUNT(CASE WHEN cd.is_repeat_protein = true THEN 1 END)::INTEGER AS repeat_proteins,
          COUNT(CASE WHEN cd.flagged_for_review = true THEN 1 END)::INTEGER AS flagged_for_review,
          COALESCE(ROUND(AVG(cd.confidence_level)::NUMERIC, 2), 0)::FLOAT AS avg_confidence_level,
          COALESCE(ROUND(AVG(cd.review_time_seconds)::NUMERIC, 1), 0)::FLOAT AS avg_review_time_seconds
        FROM pdb_analysis.curation_session cs
        LEFT JOIN pdb_analysis.curation_decision cd ON cs.id = cd.session_id
        WHERE cs.created_at >= CURRENT_DATE - make_interval(days => %(window)s)
        """
        curated_query = """
        SELECT COUNT(DISTINCT protein_id)::INTEGER AS proteins_curated
        FROM pdb_analysis.curation_status
        WHERE is_curated = true
        """
        curable_query = f"""
        SELECT COUNT(DISTINCT p.id)::INTEGER AS total_curable_proteins
        {CURABLE_JOINS}
        WHERE {CURABLE_WHERE}
          AND (p.is_nonident_rep = true OR p.is_nonident_rep IS NULL)
        """
        recent_query = """
        SELECT cs.id, cs.curator_name, cs.status, cs.proteins_reviewed,
               cs.target_batch_size, cs.created_at, cs.session_end
        FROM pdb_analysis.curation_session cs
        ORDER BY cs.created_at DESC
        LIMIT 10
        """

        with self.adapter.session() as session:

            def run_query(tx: Transaction):
                return (
                    tx.single(stats_query, {"window": STATS_WINDOW_DAYS}) or {},
                    (tx.single(curated_query) or {}).get("proteins_curated") or 0,
                    (tx.single(curable_query, CURABLE_PARAMS) or {}).get("total_curable_proteins") or 0,
                    tx.run(recent_query),
                )

            stats, curated, curable, recent = session.execute_read(run_query)

        statistics = {k: v or 0 for k, v in stats.items()}
        statistics.update(
            proteins_curated=curated,
            total_curable_proteins=curable,
            completion_percentage=round(curated / curable * 100, 1) if curable else 0,
            remaining_proteins=max(0, curable - curated),
        )
        return {"statistics": statistics, "recent_activity": recent}

    def cleanup(self, stale_hours: Optional[int] = None) -> Dict[str, Any]:
        """Drop expired locks and abandon sessions idle for too long."""
        stale_hours = stale_hours or settings.STALE_SESSION_HOURS

        with self.adapter.session() as session:

            def run_query(tx: Transaction):
                deleted = tx.execute("DELETE FROM pdb_analysis.protein_locks WHERE expires_at < CURRENT_TIMESTAMP")
                abandoned = tx.run(
                    """UPDATE pdb_analysis.curation_session
                       SET status = %(abandoned)s
                       WHERE status = %(in_progress)s
                         AND updated_at < CURRENT_TIMESTAMP - make_interval(hours => %(hours)s)
                       RETURNING id""",
                    {
                        "abandoned": SessionStatus.ABANDONED.value,
                        "in_progress": SessionStatus.IN_PROGRESS.value,
                        "hours": stale_hours,
                    },
                )
                return deleted, len(abandoned)

            deleted, abandoned = session.execute_write(run_query)

        logger.info(f"Curation cleanup: {deleted} locks released, {abandoned} sessions abandoned")
        return {
            "success": True,
            "deleted_locks": deleted,
            "abandoned_sessions": abandoned,
            "cleaned_at": datetime.now(timezone.utc).isoformat(),
        }

    def diagnostic(self) -> Dict[str, Any]:
        """Counts that explain why the candidate pool is as large as it is."""
        queries = {
            "total_proteins": "SELECT COUNT(*)::INTEGER AS total_proteins FROM pdb_analysis.protein",
            "representative_proteins": """
                SELECT COUNT(*)::INTEGER AS representative_proteins
                FROM pdb_analysis.protein WHERE is_nonident_rep = true""",
            "partition_proteins": "SELECT COUNT(*)::INTEGER AS partition_proteins FROM pdb_analysis.partition_proteins",
            "curable_without_rep_filter": f"""
                SELECT COUNT(DISTINCT p.id)::INTEGER AS curable_without_rep_filter
                {CURABLE_JOINS}
                WHERE {CURABLE_WHERE}""",
            "curable_with_rep_filter": f"""
                SELECT COUNT(DISTINCT p.id)::INTEGER AS curable_with_rep_filter
                {CURABLE_JOINS}
                WHERE {CURABLE_WHERE}
                  AND p.is_nonident_rep = true""",
            "join_duplication_check": f"""
                SELECT
                  COUNT(*)::INTEGER AS total_rows,
                  COUNT(DISTINCT p.id)::INTEGER AS unique_proteins,
                  (COUNT(*) - COUNT(DISTINCT p.id))::INTEGER AS duplicate_rows
                {CURABLE_JOINS}
                WHERE {CURABLE_WHERE}""",
        }
        distribution_query = """
        SELECT is_nonident_rep, COUNT(*)::INTEGER AS count
        FROM pdb_analysis.protein
        GROUP BY is_nonident_rep
        ORDER BY is_nonident_rep
        """

        with self.adapter.session() as session:

            def run_query(tx: Transaction):
                result = {name: tx.single(q, CURABLE_PARAMS) for name, q in queries.items()}
                result["rep_status_distribution"] = tx.run(distribution_query)
                return result

            return session.execute_read(run_query)


curation_store = CurationStore()
