"""
Introspection queries against the Oracle data dictionary.

Each category query starts from a fixed SELECT over its catalog view and is
narrowed with an owner IN-list, an OR of LIKE patterns over the table name,
a deterministic ORDER BY and an OFFSET/FETCH page. All filter values travel
as named bind variables.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from schema_lineage.models import DiscoveryRequest


TABLES_SQL = """
    SELECT t.owner, t.table_name, t.table_type, t.tablespace_name, t.num_rows,
           t.blocks, t.avg_row_len, t.sample_size, t.compression, t.status,
           t.temporary
    FROM all_all_tables t
"""

COLUMNS_SQL = """
    SELECT c.owner, c.table_name, c.column_name, c.data_type, c.data_type_mod,
           c.data_type_owner, c.data_length, c.data_precision, c.data_scale,
           c.nullable, c.column_id, c.default_length, c.data_default,
           c.num_distinct, c.density, c.num_nulls, c.num_buckets,
           c.character_set_name, c.char_col_decl_length, c.global_stats,
           c.user_stats, c.avg_col_len, c.char_length, c.char_used
    FROM all_tab_columns c
"""

PROCEDURES_SQL = """
    SELECT p.owner, p.object_name, p.procedure_name, p.object_type, o.status,
           p.aggregate, p.pipelined, p.impltypeowner, p.impltypename,
           p.parallel, p.interface, p.deterministic, p.authid,
           p.result_cache, p.origin_con_id, p.polymorphic
    FROM all_procedures p
    LEFT JOIN all_objects o
        ON o.owner = p.owner
        AND o.object_name = p.object_name
        AND o.object_type = p.object_type
"""

CONSTRAINTS_SQL = """
    SELECT k.owner, k.constraint_name, k.constraint_type, k.table_name,
           k.search_condition_vc, k.r_owner, k.r_constraint_name,
           k.delete_rule, k.status, k.deferrable, k.deferred, k.validated,
           k.generated, k.bad, k.rely, k.last_change, k.index_owner,
           k.index_name, k.invalid, k.view_related, k.origin_con_id
    FROM all_constraints k
"""

TABLE_COMMENTS_SQL = """
    SELECT tc.owner, tc.table_name, tc.comments
    FROM all_tab_comments tc
"""

COLUMN_COMMENTS_SQL = """
    SELECT cc.owner, cc.table_name, cc.column_name, cc.comments
    FROM all_col_comments cc
"""

CONSTRAINT_COLUMNS_SQL = """
    SELECT kc.owner, kc.constraint_name, kc.table_name, kc.column_name, kc.position
    FROM all_cons_columns kc
"""

# Primary, referential, unique and check constraints
CONSTRAINT_TYPES = ("P", "R", "U", "C")


@dataclass(frozen=True)
class CatalogQuery:
    """A SQL statement and its named bind values."""
    sql: str
    params: Dict[str, Any] = field(default_factory=dict)


class CatalogQueryBuilder:
    """Accumulates filters, ordering and paging for one catalog query."""

    def __init__(self, select_sql: str):
        self._select_sql = select_sql.strip()
        self._conditions: List[str] = []
        self._params: Dict[str, Any] = {}
        self._order_by: List[str] = []
        self._page: Optional[tuple] = None

    def where(self, condition: str) -> CatalogQueryBuilder:
        self._conditions.append(condition)
        return self

    def where_in(self, column: str, values: Optional[Sequence[Any]], bind_prefix: str) -> CatalogQueryBuilder:
        """Add `column IN (...)`; skipped when values is empty or None."""
        if not values:
            return self
        names = []
        for i, value in enumerate(values):
            name = f"{bind_prefix}_{i}"
            self._params[name] = value
            names.append(f":{name}")
        self._conditions.append(f"{column} IN ({', '.join(names)})")
        return self

    def where_like_any(self, column: str, patterns: Optional[Sequence[str]], bind_prefix: str) -> CatalogQueryBuilder:
        """Add `(column LIKE p0 OR column LIKE p1 ...)`; skipped when patterns is empty or None."""
        if not patterns:
            return self
        clauses = []
        for i, pattern in enumerate(patterns):
            name = f"{bind_prefix}_{i}"
            self._params[name] = pattern
            clauses.append(f"{column} LIKE :{name}")
        self._conditions.append(f"({' OR '.join(clauses)})")
        return self

    def order_by(self, *columns: str) -> CatalogQueryBuilder:
        self._order_by.extend(columns)
        return self

    def paginate(self, offset: int, limit: int) -> CatalogQueryBuilder:
        self._page = (offset, limit)
        return self

    def build(self) -> CatalogQuery:
        parts = [self._select_sql]
        if self._conditions:
            parts.append("WHERE " + "\n      AND ".join(self._conditions))
        if self._order_by:
            parts.append("ORDER BY " + ", ".join(self._order_by))

        params = dict(self._params)
        if self._page is not None:
            offset, limit = self._page
            parts.append("OFFSET :row_offset ROWS FETCH NEXT :row_limit ROWS ONLY")
            params["row_offset"] = offset
            params["row_limit"] = limit

        return CatalogQuery(sql="\n".join(parts), params=params)


def tables_query(request: DiscoveryRequest) -> CatalogQuery:
    return (
        CatalogQueryBuilder(TABLES_SQL)
        .where_in("t.owner", request.schemas, "schema")
        .where_like_any("t.table_name", request.table_patterns, "pattern")
        .order_by("t.owner", "t.table_name")
        .paginate(request.offset, request.limit)
        .build()
    )


def columns_query(request: DiscoveryRequest) -> CatalogQuery:
    return (
        CatalogQueryBuilder(COLUMNS_SQL)
        .where_in("c.owner", request.schemas, "schema")
        .where_like_any("c.table_name", request.table_patterns, "pattern")
        .order_by("c.owner", "c.table_name", "c.column_id")
        .paginate(request.offset, request.limit)
        .build()
    )


def procedures_query(request: DiscoveryRequest) -> CatalogQuery:
    # Table-name patterns do not apply to routines
    return (
        CatalogQueryBuilder(PROCEDURES_SQL)
        .where_in("p.owner", request.schemas, "schema")
        .where_in("p.object_type", request.object_types, "object_type")
        .order_by("p.owner", "p.object_name", "p.procedure_name", "p.subprogram_id")
        .paginate(request.offset, request.limit)
        .build()
    )


def constraints_query(request: DiscoveryRequest) -> CatalogQuery:
    types = ", ".join(f"'{t}'" for t in CONSTRAINT_TYPES)
    return (
        CatalogQueryBuilder(CONSTRAINTS_SQL)
        .where(f"k.constraint_type IN ({types})")
        .where_in("k.owner", request.schemas, "schema")
        .where_like_any("k.table_name", request.table_patterns, "pattern")
        .order_by("k.owner", "k.table_name", "k.constraint_name")
        .paginate(request.offset, request.limit)
        .build()
    )


def table_comments_query(request: DiscoveryRequest) -> CatalogQuery:
    return (
        CatalogQueryBuilder(TABLE_COMMENTS_SQL)
        .where("tc.comments IS NOT NULL")
        .where_in("tc.owner", request.schemas, "schema")
        .where_like_any("tc.table_name", request.table_patterns, "pattern")
        .build()
    )


def column_comments_query(request: DiscoveryRequest) -> CatalogQuery:
    return (
        CatalogQueryBuilder(COLUMN_COMMENTS_SQL)
        .where("cc.comments IS NOT NULL")
        .where_in("cc.owner", request.schemas, "schema")
        .where_like_any("cc.table_name", request.table_patterns, "pattern")
        .build()
    )


def constraint_columns_query(request: DiscoveryRequest) -> CatalogQuery:
    return (
        CatalogQueryBuilder(CONSTRAINT_COLUMNS_SQL)
        .where_in("kc.owner", request.schemas, "schema")
        .where_like_any("kc.table_name", request.table_patterns, "pattern")
        .order_by("kc.owner", "kc.constraint_name", "kc.position")
        .build()
    )
