# ecod_pg/db_adapter.py
"""
PostgreSQL access for the pipeline schemas (pdb_analysis, ecod_schema) and the
curation tables this application owns.

The adapter hands out sessions that run a unit of work inside one
transaction, the same read/write split the readers use everywhere:

    with adapter.session() as session:
        def run_query(tx: Transaction):
            return tx.run("SELECT ...", params)
        rows = session.execute_read(run_query)
"""

from contextlib import contextmanager
from decimal import Decimal
from threading import Lock
from typing import Any, Callable, Dict, Iterator, List, Optional, TypeVar

import psycopg2
from psycopg2.extras import RealDictCursor
from psycopg2.pool import ThreadedConnectionPool
from loguru import logger

T = TypeVar("T")

CURATION_TABLES = [
    """CREATE TABLE IF NOT EXISTS pdb_analysis.curation_session (
        id SERIAL PRIMARY KEY,
        curator_name TEXT NOT NULL,
        target_batch_size INTEGER NOT NULL DEFAULT 10,
        status TEXT NOT NULL DEFAULT 'in_progress',
        locked_proteins TEXT[] NOT NULL DEFAULT '{}',
        current_protein_index INTEGER DEFAULT 0,
        proteins_reviewed INTEGER DEFAULT 0,
        auto_save_data JSONB,
        notes TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        session_end TIMESTAMP
    );""",
    """CREATE TABLE IF NOT EXISTS pdb_analysis.curation_decision (
        id SERIAL PRIMARY KEY,
        session_id INTEGER NOT NULL REFERENCES pdb_analysis.curation_session(id) ON DELETE CASCADE,
        protein_id INTEGER NOT NULL,
        source_id TEXT NOT NULL,
        has_domain BOOLEAN,
        domain_assigned_correctly BOOLEAN,
        boundaries_correct BOOLEAN,
        is_fragment BOOLEAN DEFAULT FALSE,
        is_repeat_protein BOOLEAN DEFAULT FALSE,
        confidence_level INTEGER,
        primary_evidence_type TEXT,
        primary_evidence_source_id TEXT,
        reference_domain_id TEXT,
        evidence_confidence REAL,
        evidence_evalue DOUBLE PRECISION,
        notes TEXT,
        flagged_for_review BOOLEAN DEFAULT FALSE,
        review_time_seconds INTEGER,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        UNIQUE (session_id, protein_id)
    );""",
    """CREATE TABLE IF NOT EXISTS pdb_analysis.curation_status (
        protein_id INTEGER PRIMARY KEY,
        source_id TEXT NOT NULL,
        is_curated BOOLEAN DEFAULT FALSE,
        last_session_id INTEGER,
        last_curator TEXT,
        curation_count INTEGER DEFAULT 0,
        has_domain BOOLEAN,
        is_fragment BOOLEAN,
        flagged_for_review BOOLEAN DEFAULT FALSE,
        last_curated_at TIMESTAMP
    );""",
    """CREATE TABLE IF NOT EXISTS pdb_analysis.protein_locks (
        source_id TEXT PRIMARY KEY,
        curator_name TEXT,
        session_id INTEGER NOT NULL REFERENCES pdb_analysis.curation_session(id) ON DELETE CASCADE,
        locked_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        expires_at TIMESTAMP NOT NULL
    );""",
    """CREATE TABLE IF NOT EXISTS pdb_analysis.pdb_entries (
        pdb_id VARCHAR(4) PRIMARY KEY,
        title TEXT,
        deposition_date DATE,
        release_date DATE,
        revision_date DATE,
        experimental_method TEXT,
        resolution REAL,
        r_factor REAL,
        keywords TEXT[],
        organism TEXT,
        last_updated TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );""",
    """CREATE TABLE IF NOT EXISTS pdb_analysis.pdb_citations (
        pdb_id VARCHAR(4) NOT NULL REFERENCES pdb_analysis.pdb_entries(pdb_id) ON DELETE CASCADE,
        pmid TEXT NOT NULL,
        doi TEXT,
        title TEXT,
        journal TEXT,
        year INTEGER,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (pdb_id, pmid)
    );""",
    """CREATE INDEX IF NOT EXISTS idx_protein_locks_expires ON pdb_analysis.protein_locks (expires_at);""",
    """CREATE INDEX IF NOT EXISTS idx_curation_session_status ON pdb_analysis.curation_session (status, curator_name);""",
]


def _normalize(row: Dict[str, Any]) -> Dict[str, Any]:
    return {k: float(v) if isinstance(v, Decimal) else v for k, v in row.items()}


class Transaction:
    """Thin cursor wrapper returning plain dict rows."""

    def __init__(self, conn):
        self.conn = conn
        self.rowcount = 0

    def run(self, query: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            logger.debug(f"SQL: {' '.join(query.split())[:400]}")
            cur.execute(query, params)
            self.rowcount = cur.rowcount
            if cur.description is None:
                return []
            return [_normalize(dict(r)) for r in cur.fetchall()]

    def single(self, query: str, params: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        rows = self.run(query, params)
        return rows[0] if rows else None

    def execute(self, query: str, params: Optional[Dict[str, Any]] = None) -> int:
        """Run a statement and return the affected row count."""
        self.run(query, params)
        return self.rowcount


class Session:
    def __init__(self, conn):
        self.conn = conn

    def _run(self, work: Callable[[Transaction], T], readonly: bool) -> T:
        self.conn.set_session(readonly=readonly, autocommit=False)
        try:
            result = work(Transaction(self.conn))
            self.conn.commit()
            return result
        except Exception:
            self.conn.rollback()
            raise

    def execute_read(self, work: Callable[[Transaction], T]) -> T:
        return self._run(work, readonly=True)

    def execute_write(self, work: Callable[[Transaction], T]) -> T:
        return self._run(work, readonly=False)


class PostgresAdapter:
    dsn: str
    pool: Optional[ThreadedConnectionPool]

    def __init__(self, dsn: str, minconn: int = 1, maxconn: int = 10) -> None:
        self.dsn = dsn
        self.minconn = minconn
        self.maxconn = maxconn
        self.pool = None
        self._pool_lock = Lock()

    def _get_pool(self) -> ThreadedConnectionPool:
        if self.pool is None:
            with self._pool_lock:
                if self.pool is None:
                    try:
                        self.pool = ThreadedConnectionPool(self.minconn, self.maxconn, self.dsn)
                    except psycopg2.Error as e:
                        logger.error(f"Could not connect to database: {e}")
                        raise
        return self.pool

    @contextmanager
    def session(self) -> Iterator[Session]:
        pool = self._get_pool()
        conn = pool.getconn()
        try:
            yield Session(conn)
        finally:
            pool.putconn(conn)

    def ping(self) -> bool:
        with self.session() as session:
            return session.execute_read(lambda tx: tx.single("SELECT 1 AS ok"))["ok"] == 1

    def init_tables(self) -> None:
        with self.session() as session:
            for ddl in CURATION_TABLES:
                session.execute_write(lambda tx: tx.execute(ddl))
                logger.info(f"Ensured: {' '.join(ddl.split())[:80]}")

    def close(self) -> None:
        if self.pool is not None:
            self.pool.closeall()
            self.pool = None
