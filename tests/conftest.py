"""Shared fixtures: an in-memory Oracle data dictionary and sample discovery results."""

import re
from typing import Any, Dict, List, Optional, Set

import oracledb
import pytest

from schema_lineage.connection import ConnectionFactory
from schema_lineage.models import (
    CatalogColumn,
    CatalogConstraint,
    CatalogProcedure,
    CatalogTable,
    ConnectionDescriptor,
    DirectCredentials,
    DiscoveryRequest,
    DiscoveryResult,
)


VIEW_COLUMNS = {
    "all_all_tables": [
        "owner", "table_name", "table_type", "tablespace_name", "num_rows", "blocks",
        "avg_row_len", "sample_size", "compression", "status", "temporary",
    ],
    "all_tab_columns": [
        "owner", "table_name", "column_name", "data_type", "data_type_mod", "data_type_owner",
        "data_length", "data_precision", "data_scale", "nullable", "column_id", "default_length",
        "data_default", "num_distinct", "density", "num_nulls", "num_buckets",
        "character_set_name", "char_col_decl_length", "global_stats", "user_stats",
        "avg_col_len", "char_length", "char_used",
    ],
    "all_procedures": [
        "owner", "object_name", "procedure_name", "object_type", "status", "aggregate",
        "pipelined", "impltypeowner", "impltypename", "parallel", "interface",
        "deterministic", "authid", "result_cache", "origin_con_id", "polymorphic",
    ],
    "all_constraints": [
        "owner", "constraint_name", "constraint_type", "table_name", "search_condition_vc",
        "r_owner", "r_constraint_name", "delete_rule", "status", "deferrable", "deferred",
        "validated", "generated", "bad", "rely", "last_change", "index_owner", "index_name",
        "invalid", "view_related", "origin_con_id",
    ],
    "all_tab_comments": ["owner", "table_name", "comments"],
    "all_col_comments": ["owner", "table_name", "column_name", "comments"],
    "all_cons_columns": ["owner", "constraint_name", "table_name", "column_name", "position"],
}


def _table(owner, name, num_rows=None):
    return {"owner": owner, "table_name": name, "tablespace_name": "USERS", "num_rows": num_rows,
            "status": "VALID", "temporary": "N"}


def _column(owner, table, name, position, data_type="VARCHAR2", nullable="Y", precision=None):
    return {"owner": owner, "table_name": table, "column_name": name, "column_id": position,
            "data_type": data_type, "nullable": nullable, "data_length": 22,
            "data_precision": precision}


CATALOG_ROWS: Dict[str, List[Dict[str, Any]]] = {
    "all_all_tables": [
        _table("HR", "DEPARTMENTS", 27),
        _table("HR", "EMPLOYEES", 107),
        _table("HR", "EMP_HISTORY"),
        _table("SALES", "EMP_TARGETS", 12),
    ],
    "all_tab_columns": [
        _column("HR", "DEPARTMENTS", "DEPARTMENT_ID", 1, "NUMBER", "N", 4),
        _column("HR", "DEPARTMENTS", "DEPARTMENT_NAME", 2),
        _column("HR", "EMPLOYEES", "EMPLOYEE_ID", 1, "NUMBER", "N", 6),
        _column("HR", "EMPLOYEES", "LAST_NAME", 2),
        _column("HR", "EMPLOYEES", "DEPARTMENT_ID", 3, "NUMBER", "Y", 4),
        _column("HR", "EMP_HISTORY", "EMPLOYEE_ID", 1, "NUMBER", "N", 6),
        _column("SALES", "EMP_TARGETS", "TARGET", 1, "NUMBER"),
    ],
    "all_procedures": [
        {"owner": "HR", "object_name": "ADD_JOB_HISTORY", "object_type": "PROCEDURE", "status": "VALID"},
        {"owner": "HR", "object_name": "EMP_PKG", "procedure_name": "HIRE", "object_type": "PACKAGE",
         "status": "VALID"},
        {"owner": "SALES", "object_name": "CALC_BONUS", "object_type": "FUNCTION", "status": "INVALID"},
    ],
    "all_constraints": [
        {"owner": "HR", "constraint_name": "DEPT_ID_PK", "constraint_type": "P", "table_name": "DEPARTMENTS",
         "status": "ENABLED"},
        {"owner": "HR", "constraint_name": "EMP_DEPT_FK", "constraint_type": "R", "table_name": "EMPLOYEES",
         "r_owner": "HR", "r_constraint_name": "DEPT_ID_PK", "delete_rule": "NO ACTION", "status": "ENABLED"},
        {"owner": "HR", "constraint_name": "EMP_EMP_ID_PK", "constraint_type": "P", "table_name": "EMPLOYEES",
         "status": "ENABLED"},
        {"owner": "HR", "constraint_name": "SYS_C0011", "constraint_type": "O", "table_name": "EMPLOYEES",
         "status": "ENABLED"},
    ],
    "all_tab_comments": [
        {"owner": "HR", "table_name": "EMPLOYEES", "comments": "Employee master data"},
        {"owner": "HR", "table_name": "DEPARTMENTS", "comments": None},
        {"owner": "SALES", "table_name": "EMPLOYEES", "comments": "Wrong owner"},
    ],
    "all_col_comments": [
        {"owner": "HR", "table_name": "EMPLOYEES", "column_name": "LAST_NAME", "comments": "Family name"},
        {"owner": "HR", "table_name": "DEPARTMENTS", "column_name": "LAST_NAME", "comments": "Wrong table"},
    ],
    "all_cons_columns": [
        {"owner": "HR", "constraint_name": "DEPT_ID_PK", "table_name": "DEPARTMENTS",
         "column_name": "DEPARTMENT_ID", "position": 1},
        {"owner": "HR", "constraint_name": "EMP_DEPT_FK", "table_name": "EMPLOYEES",
         "column_name": "DEPARTMENT_ID", "position": 1},
        {"owner": "HR", "constraint_name": "EMP_EMP_ID_PK", "table_name": "EMPLOYEES",
         "column_name": "EMPLOYEE_ID", "position": 1},
    ],
}


def like_to_regex(pattern: str) -> "re.Pattern":
    parts = []
    for ch in pattern:
        if ch == "%":
            parts.append(".*")
        elif ch == "_":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    return re.compile("^" + "".join(parts) + "$")


class FakeCursor:
    """
    Evaluates the extractor's bind variables against in-memory dictionary rows.

    Understands the owner IN-list, LIKE patterns on table_name, the object
    type filter, the constraint type restriction, comment null filtering and
    OFFSET/FETCH paging.
    """

    def __init__(self, connection: "FakeConnection"):
        self.connection = connection
        self.description = None
        self._rows: List[tuple] = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        pass

    def execute(self, sql: str, params: Optional[Dict[str, Any]] = None):
        params = params or {}
        view = re.search(r"FROM\s+(\w+)", sql, re.IGNORECASE).group(1).lower()
        self.connection.executed.append((view, sql, dict(params)))

        if view in self.connection.fail_on:
            raise oracledb.DatabaseError(f"ORA-00942: table or view does not exist ({view})")

        rows = list(self.connection.catalog.get(view, []))

        schemas = [v for k, v in params.items() if k.startswith("schema_")]
        if schemas:
            rows = [r for r in rows if r.get("owner") in schemas]

        patterns = [like_to_regex(v) for k, v in params.items() if k.startswith("pattern_")]
        if patterns:
            rows = [r for r in rows if any(p.match(r.get("table_name") or "") for p in patterns)]

        object_types = [v for k, v in params.items() if k.startswith("object_type_")]
        if object_types:
            rows = [r for r in rows if r.get("object_type") in object_types]

        if view == "all_constraints":
            rows = [r for r in rows if r.get("constraint_type") in ("P", "R", "U", "C")]

        if "comments IS NOT NULL" in sql:
            rows = [r for r in rows if r.get("comments") is not None]

        if "row_offset" in params:
            start = params["row_offset"]
            rows = rows[start:start + params["row_limit"]]

        columns = VIEW_COLUMNS[view]
        self.description = [(name.upper(), None, None, None, None, None, None) for name in columns]
        self._rows = [tuple(r.get(name) for name in columns) for r in rows]

    def fetchall(self):
        rows, self._rows = self._rows, []
        return rows


class FakeConnection:
    def __init__(self, catalog=None, fail_on: Optional[Set[str]] = None):
        self.catalog = catalog if catalog is not None else CATALOG_ROWS
        self.fail_on = set(fail_on or ())
        self.executed: List[tuple] = []
        self.closed = False
        self.call_timeout = 0

    def cursor(self):
        return FakeCursor(self)

    def close(self):
        self.closed = True


class StubConnectionFactory(ConnectionFactory):
    """Hands out a prepared fake connection instead of dialling Oracle."""

    def __init__(self, connection: FakeConnection):
        super().__init__()
        self.connection = connection

    def create_connection(self, descriptor):
        return self.connection


@pytest.fixture
def fake_connection():
    return FakeConnection()


@pytest.fixture
def descriptor():
    return ConnectionDescriptor(
        connection_id="conn-hr",
        host="db.example.com",
        port=1521,
        service_name="ORCLPDB1",
        credentials=DirectCredentials(username="scott", password="tiger"),
    )


@pytest.fixture
def request_all():
    return DiscoveryRequest(connection_id="conn-hr", limit=1000, offset=0)


@pytest.fixture
def hr_result():
    """One table HR.EMPLOYEES with two columns."""
    table = CatalogTable(owner="HR", table_name="EMPLOYEES", connection_id="conn-hr", id="t1")
    return DiscoveryResult(
        connection_id="conn-hr",
        tables=[table],
        columns=[
            CatalogColumn(owner="HR", table_name="EMPLOYEES", column_name="ID", connection_id="conn-hr", id="c1"),
            CatalogColumn(owner="HR", table_name="EMPLOYEES", column_name="NAME", connection_id="conn-hr", id="c2"),
        ],
    )


@pytest.fixture
def full_result():
    """Two HR tables with columns, a procedure and constraints including a foreign key."""
    return DiscoveryResult(
        connection_id="conn-hr",
        tables=[
            CatalogTable(owner="HR", table_name="DEPARTMENTS", connection_id="conn-hr", id="t-dept"),
            CatalogTable(owner="HR", table_name="EMPLOYEES", connection_id="conn-hr", id="t-emp"),
        ],
        columns=[
            CatalogColumn(owner="HR", table_name="DEPARTMENTS", column_name="DEPARTMENT_ID",
                          connection_id="conn-hr", id="c-dept-id"),
            CatalogColumn(owner="HR", table_name="EMPLOYEES", column_name="EMPLOYEE_ID",
                          connection_id="conn-hr", id="c-emp-id"),
            CatalogColumn(owner="HR", table_name="EMPLOYEES", column_name="DEPARTMENT_ID",
                          connection_id="conn-hr", id="c-emp-dept"),
            CatalogColumn(owner="HR", table_name="JOBS", column_name="JOB_ID",
                          connection_id="conn-hr", id="c-orphan"),
        ],
        procedures=[
            CatalogProcedure(owner="HR", object_name="ADD_JOB_HISTORY", connection_id="conn-hr",
                             id="p1", object_type="PROCEDURE"),
        ],
        constraints=[
            CatalogConstraint(owner="HR", constraint_name="DEPT_ID_PK", table_name="DEPARTMENTS",
                              connection_id="conn-hr", id="k-dept-pk", constraint_type="P"),
            CatalogConstraint(owner="HR", constraint_name="EMP_DEPT_FK", table_name="EMPLOYEES",
                              connection_id="conn-hr", id="k-emp-fk", constraint_type="R",
                              r_owner="HR", r_constraint_name="DEPT_ID_PK"),
        ],
    )
