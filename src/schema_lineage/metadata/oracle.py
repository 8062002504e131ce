"""
Oracle metadata extractor using oracledb.

Discovers tables, columns, procedures and constraints from Oracle data
dictionary views over a single connection, merges descriptive comments in
a second pass and reports per-category counts and elapsed time.
"""

from __future__ import annotations

import logging
import time
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional

import oracledb

from schema_lineage.connection import ConnectionFactory
from schema_lineage.errors import IntrospectionFailure
from schema_lineage.metadata.catalog import (
    CatalogQuery,
    column_comments_query,
    columns_query,
    constraint_columns_query,
    constraints_query,
    procedures_query,
    table_comments_query,
    tables_query,
)
from schema_lineage.models import (
    CatalogColumn,
    CatalogConstraint,
    CatalogProcedure,
    CatalogTable,
    ConnectionDescriptor,
    DiscoveryRequest,
    DiscoveryResult,
    DiscoveryStatistics,
)

logger = logging.getLogger(__name__)


def _int_or_none(value: Any) -> Optional[int]:
    return int(value) if value is not None else None


def _float_or_none(value: Any) -> Optional[float]:
    return float(value) if value is not None else None


def _text_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


class OracleMetadataExtractor:
    """
    Extracts catalog metadata from an Oracle database.

    Uses Oracle data dictionary views:
    - ALL_ALL_TABLES / ALL_TAB_COMMENTS
    - ALL_TAB_COLUMNS / ALL_COL_COMMENTS
    - ALL_PROCEDURES / ALL_OBJECTS
    - ALL_CONSTRAINTS / ALL_CONS_COLUMNS

    A discovery call is all-or-nothing: if any enabled category fails the
    whole call raises IntrospectionFailure and nothing extracted earlier in
    the call is returned. The connection is closed on every exit path.
    """

    def __init__(self, connection_factory: Optional[ConnectionFactory] = None):
        self.connection_factory = connection_factory or ConnectionFactory()

    def discover(self, descriptor: ConnectionDescriptor, request: DiscoveryRequest) -> DiscoveryResult:
        """
        Run the enabled categories of a discovery request.

        Args:
            descriptor: Connection descriptor with decrypted secrets
            request: Categories, filters and page to extract

        Returns:
            DiscoveryResult; categories not requested are None

        Raises:
            ConfigurationError: invalid request or descriptor
            ConnectionFailure: connection could not be opened
            IntrospectionFailure: a catalog query failed
        """
        request.validate()
        started = time.perf_counter()

        tables = columns = procedures = constraints = None

        with self.connection_factory.connect(descriptor) as connection:
            with connection.cursor() as cursor:
                if request.include_tables:
                    tables = self._guarded("tables", self.extract_tables, cursor, request)
                if request.include_columns:
                    columns = self._guarded("columns", self.extract_columns, cursor, request)
                if request.include_procedures:
                    procedures = self._guarded("procedures", self.extract_procedures, cursor, request)
                if request.include_constraints:
                    constraints = self._guarded("constraints", self.extract_constraints, cursor, request)

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        statistics = DiscoveryStatistics(
            total_tables=len(tables) if tables is not None else 0,
            total_columns=len(columns) if columns is not None else 0,
            total_procedures=len(procedures) if procedures is not None else 0,
            total_constraints=len(constraints) if constraints is not None else 0,
            discovery_time_ms=elapsed_ms,
        )
        logger.info(
            f"Discovered {statistics.total_tables} tables, {statistics.total_columns} columns, "
            f"{statistics.total_procedures} procedures, {statistics.total_constraints} constraints "
            f"for connection {request.connection_id} in {elapsed_ms} ms"
        )

        return DiscoveryResult(
            connection_id=request.connection_id,
            tables=tables,
            columns=columns,
            procedures=procedures,
            constraints=constraints,
            statistics=statistics,
        )

    def _guarded(self, category: str, extract, cursor, request: DiscoveryRequest):
        try:
            return extract(cursor, request)
        except oracledb.Error as e:
            logger.error(f"Failed to extract {category} for connection {request.connection_id}: {e}")
            raise IntrospectionFailure(f"Catalog query for {category} failed: {e}") from e

    def _fetch(self, cursor, query: CatalogQuery) -> List[Dict[str, Any]]:
        """Execute a query and return rows as dicts keyed by lower-case column name."""
        logger.debug(f"Executing catalog query with binds {query.params}:\n{query.sql}")
        cursor.execute(query.sql, query.params)
        names = [d[0].lower() for d in cursor.description]
        return [dict(zip(names, row)) for row in cursor.fetchall()]

    def extract_tables(self, cursor, request: DiscoveryRequest) -> List[CatalogTable]:
        tables = [
            CatalogTable(
                owner=row["owner"],
                table_name=row["table_name"],
                connection_id=request.connection_id,
                table_type=row.get("table_type"),
                tablespace_name=row.get("tablespace_name"),
                num_rows=_int_or_none(row.get("num_rows")),
                blocks=_int_or_none(row.get("blocks")),
                avg_row_len=_int_or_none(row.get("avg_row_len")),
                sample_size=_int_or_none(row.get("sample_size")),
                compression=row.get("compression"),
                status=row.get("status"),
                temporary=row.get("temporary"),
            )
            for row in self._fetch(cursor, tables_query(request))
        ]

        if tables:
            self._merge_table_comments(cursor, request, tables)
        return tables

    def _merge_table_comments(self, cursor, request: DiscoveryRequest, tables: List[CatalogTable]) -> None:
        by_key: Dict[tuple, List[CatalogTable]] = defaultdict(list)
        for table in tables:
            by_key[(table.owner, table.table_name)].append(table)

        for row in self._fetch(cursor, table_comments_query(request)):
            for table in by_key.get((row["owner"], row["table_name"]), []):
                table.comments = row["comments"]

    def extract_columns(self, cursor, request: DiscoveryRequest) -> List[CatalogColumn]:
        columns = [
            CatalogColumn(
                owner=row["owner"],
                table_name=row["table_name"],
                column_name=row["column_name"],
                connection_id=request.connection_id,
                data_type=row.get("data_type"),
                data_type_mod=row.get("data_type_mod"),
                data_type_owner=row.get("data_type_owner"),
                data_length=_int_or_none(row.get("data_length")),
                data_precision=_int_or_none(row.get("data_precision")),
                data_scale=_int_or_none(row.get("data_scale")),
                nullable=row.get("nullable"),
                column_id=_int_or_none(row.get("column_id")),
                default_length=_int_or_none(row.get("default_length")),
                data_default=row["data_default"].strip() if row.get("data_default") else None,
                num_distinct=_int_or_none(row.get("num_distinct")),
                density=_float_or_none(row.get("density")),
                num_nulls=_int_or_none(row.get("num_nulls")),
                num_buckets=_int_or_none(row.get("num_buckets")),
                character_set_name=row.get("character_set_name"),
                char_col_decl_length=_int_or_none(row.get("char_col_decl_length")),
                global_stats=row.get("global_stats"),
                user_stats=row.get("user_stats"),
                avg_col_len=_float_or_none(row.get("avg_col_len")),
                char_length=_int_or_none(row.get("char_length")),
                char_used=row.get("char_used"),
            )
            for row in self._fetch(cursor, columns_query(request))
        ]

        if columns:
            self._merge_column_comments(cursor, request, columns)
        return columns

    def _merge_column_comments(self, cursor, request: DiscoveryRequest, columns: List[CatalogColumn]) -> None:
        by_key: Dict[tuple, List[CatalogColumn]] = defaultdict(list)
        for column in columns:
            by_key[(column.owner, column.table_name, column.column_name)].append(column)

        for row in self._fetch(cursor, column_comments_query(request)):
            key = (row["owner"], row["table_name"], row["column_name"])
            for column in by_key.get(key, []):
                column.comments = row["comments"]

    def extract_procedures(self, cursor, request: DiscoveryRequest) -> List[CatalogProcedure]:
        return [
            CatalogProcedure(
                owner=row["owner"],
                object_name=row["object_name"],
                connection_id=request.connection_id,
                procedure_name=row.get("procedure_name"),
                object_type=row.get("object_type"),
                status=row.get("status"),
                aggregate=row.get("aggregate"),
                pipelined=row.get("pipelined"),
                impl_type_owner=row.get("impltypeowner"),
                impl_type_name=row.get("impltypename"),
                parallel=row.get("parallel"),
                interface=row.get("interface"),
                deterministic=row.get("deterministic"),
                authid=row.get("authid"),
                result_cache=row.get("result_cache"),
                origin_con_id=_int_or_none(row.get("origin_con_id")),
                polymorphic=row.get("polymorphic"),
            )
            for row in self._fetch(cursor, procedures_query(request))
        ]

    def extract_constraints(self, cursor, request: DiscoveryRequest) -> List[CatalogConstraint]:
        constraints = [
            CatalogConstraint(
                owner=row["owner"],
                constraint_name=row["constraint_name"],
                table_name=row["table_name"],
                connection_id=request.connection_id,
                constraint_type=row.get("constraint_type"),
                search_condition=row.get("search_condition_vc"),
                r_owner=row.get("r_owner"),
                r_constraint_name=row.get("r_constraint_name"),
                delete_rule=row.get("delete_rule"),
                status=row.get("status"),
                deferrable=row.get("deferrable"),
                deferred=row.get("deferred"),
                validated=row.get("validated"),
                generated=row.get("generated"),
                bad=row.get("bad"),
                rely=row.get("rely"),
                last_change=_text_or_none(row.get("last_change")),
                index_owner=row.get("index_owner"),
                index_name=row.get("index_name"),
                invalid=row.get("invalid"),
                view_related=row.get("view_related"),
                origin_con_id=_int_or_none(row.get("origin_con_id")),
            )
            for row in self._fetch(cursor, constraints_query(request))
        ]

        if constraints:
            self._merge_constraint_columns(cursor, request, constraints)
        return constraints

    def _merge_constraint_columns(
        self,
        cursor,
        request: DiscoveryRequest,
        constraints: List[CatalogConstraint],
    ) -> None:
        """Attach constraint column names in key position order."""
        by_key: Dict[tuple, List[CatalogConstraint]] = defaultdict(list)
        for constraint in constraints:
            by_key[(constraint.owner, constraint.constraint_name)].append(constraint)

        for row in self._fetch(cursor, constraint_columns_query(request)):
            for constraint in by_key.get((row["owner"], row["constraint_name"]), []):
                constraint.columns.append(row["column_name"])
