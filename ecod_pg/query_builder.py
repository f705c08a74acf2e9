# ecod_pg/query_builder.py
from typing import List, Dict, Any, Optional, Tuple


class SqlQueryBuilder:
    """Helper to build SELECT statements with named psycopg2 parameters"""

    def __init__(self):
        self._select: List[str] = []
        self._from: Optional[str] = None
        self._joins: List[str] = []
        self._where: List[str] = []
        self._group_by: List[str] = []
        self._having: List[str] = []
        self._order_by: List[str] = []
        self._distinct = False
        self._limit: Optional[str] = None
        self._offset: Optional[str] = None
        self.params: Dict[str, Any] = {}

    def select(self, *items: str):
        self._select.extend(items)
        return self

    def distinct(self, on: bool = True):
        self._distinct = on
        return self

    def from_(self, table: str):
        self._from = table
        return self

    def join(self, clause: str):
        """Full join clause, e.g. ``LEFT JOIN pdb_analysis.domain d ON p.id = d.protein_id``"""
        self._joins.append(clause)
        return self

    def where(self, *conditions: str):
        self._where.extend(c for c in conditions if c)
        return self

    def group_by(self, *fields: str):
        self._group_by.extend(fields)
        return self

    def having(self, *conditions: str):
        self._having.extend(c for c in conditions if c)
        return self

    def order_by(self, *fields: str):
        self._order_by.extend(fields)
        return self

    def limit(self, value: int, name: str = "limit"):
        self.params[name] = value
        self._limit = f"%({name})s"
        return self

    def offset(self, value: int, name: str = "offset"):
        self.params[name] = value
        self._offset = f"%({name})s"
        return self

    def add_param(self, key: str, value: Any):
        self.params[key] = value
        return self

    def where_sql(self) -> str:
        return ("WHERE " + " AND ".join(self._where)) if self._where else ""

    def build(self, paginate: bool = True, ordered: bool = True) -> Tuple[str, Dict[str, Any]]:
        parts = [("SELECT DISTINCT " if self._distinct else "SELECT ") + ",\n  ".join(self._select)]
        parts.append(f"FROM {self._from}")
        parts.extend(self._joins)
        if self._where:
            parts.append(self.where_sql())
        if self._group_by:
            parts.append("GROUP BY " + ", ".join(self._group_by))
        if self._having:
            parts.append("HAVING " + " AND ".join(self._having))
        if ordered and self._order_by:
            parts.append("ORDER BY " + ", ".join(self._order_by))
        if paginate and self._limit:
            parts.append(f"LIMIT {self._limit}")
        if paginate and self._offset:
            parts.append(f"OFFSET {self._offset}")
        return "\n".join(parts), self.params
