"""
Projection of discovered catalog metadata into a lineage graph.

Pure transformation with no I/O. Catalog rows refer to their tables by the
(owner, table name) natural key; those keys are resolved through a
CatalogIndex built once per projection instead of object back-references.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Tuple

from schema_lineage.models import (
    CatalogColumn,
    CatalogConstraint,
    CatalogProcedure,
    CatalogTable,
    DiscoveryResult,
    EdgeType,
    GraphData,
    GraphEdge,
    GraphNode,
    GraphStatistics,
    NodeType,
)

logger = logging.getLogger(__name__)


def node_id(node_type: NodeType, source_id: str) -> str:
    return f"{node_type.value}-{source_id}"


def _compact(metadata: Dict[str, Any]) -> Dict[str, Any]:
    """Drop absent values so metadata only carries what the catalog reported."""
    return {k: v for k, v in metadata.items() if v is not None}


class CatalogIndex:
    """
    Natural-key lookups over the tables of one discovery result.

    When several tables share a key the first one encountered wins.
    """

    def __init__(self, tables: Iterable[CatalogTable]):
        self._by_key: Dict[Tuple[str, str], str] = {}
        self._by_owner: Dict[str, str] = {}
        for table in tables:
            table_node = node_id(NodeType.TABLE, table.id)
            self._by_key.setdefault((table.owner, table.table_name), table_node)
            self._by_owner.setdefault(table.owner, table_node)

    def table_node_id(self, owner: str, table_name: str) -> Optional[str]:
        return self._by_key.get((owner, table_name))

    def first_table_for_owner(self, owner: str) -> Optional[str]:
        return self._by_owner.get(owner)


class GraphProjector:
    """
    Turns a DiscoveryResult into nodes and typed edges.

    Containment edges run schema -> table, table -> column and
    schema -> procedure; tables link to their constraints with
    `relationship` edges, and referential constraints get a `foreign_key`
    edge to a table of the referenced owner.
    """

    def project(self, result: Optional[DiscoveryResult]) -> GraphData:
        """Project a whole discovery result. Always yields at least the schema node."""
        connection_id = result.connection_id if result is not None else ""
        tables = (result.tables if result is not None else None) or []
        columns = (result.columns if result is not None else None) or []
        procedures = (result.procedures if result is not None else None) or []
        constraints = (result.constraints if result is not None else None) or []

        nodes: List[GraphNode] = []
        edges: List[GraphEdge] = []

        schema_node = self._schema_node(connection_id, result)
        nodes.append(schema_node)

        index = CatalogIndex(tables)

        for table in tables:
            table_node = self._table_node(table)
            nodes.append(table_node)
            edges.append(GraphEdge(
                id=f"schema-table-{table.id}",
                source=schema_node.id,
                target=table_node.id,
                type=EdgeType.CONTAINS.value,
                metadata={"relationship": "schema contains table"},
            ))

        for column in columns:
            column_node = self._column_node(column)
            nodes.append(column_node)
            parent = index.table_node_id(column.owner, column.table_name)
            if parent is not None:
                edges.append(self._table_column_edge(parent, column, column_node))

        for procedure in procedures:
            procedure_node = self._procedure_node(procedure)
            nodes.append(procedure_node)
            edges.append(GraphEdge(
                id=f"schema-procedure-{procedure.id}",
                source=schema_node.id,
                target=procedure_node.id,
                type=EdgeType.CONTAINS.value,
                metadata={"relationship": "schema contains procedure"},
            ))

        for constraint in constraints:
            constraint_node = self._constraint_node(constraint)
            nodes.append(constraint_node)
            parent = index.table_node_id(constraint.owner, constraint.table_name)
            if parent is not None:
                edges.append(self._table_constraint_edge(parent, constraint, constraint_node))

            # Matches on the referenced owner only, not the referenced constraint,
            # so with several tables under one owner the first table is chosen.
            if constraint.is_referential and constraint.r_owner:
                referenced = index.first_table_for_owner(constraint.r_owner)
                if referenced is not None:
                    edges.append(GraphEdge(
                        id=f"fk-{constraint.id}",
                        source=constraint_node.id,
                        target=referenced,
                        type=EdgeType.FOREIGN_KEY.value,
                        metadata=_compact({
                            "relationship": "foreign key references",
                            "referencedOwner": constraint.r_owner,
                            "referencedConstraint": constraint.r_constraint_name,
                        }),
                    ))

        logger.debug(f"Projected {len(nodes)} nodes and {len(edges)} edges for connection {connection_id}")
        return GraphData(nodes=nodes, edges=edges, statistics=graph_statistics(nodes, edges))

    def project_table(
        self,
        result: Optional[DiscoveryResult],
        table_name: str,
        owner: Optional[str] = None,
    ) -> GraphData:
        """
        Project one table with its columns and constraints.

        Returns an empty graph when the table is not in the result. No
        foreign key inference is done here.
        """
        tables = (result.tables if result is not None else None) or []
        target = next(
            (t for t in tables if t.table_name == table_name and (owner is None or t.owner == owner)),
            None,
        )
        if target is None:
            return GraphData(statistics=graph_statistics([], []))

        def belongs(row) -> bool:
            return row.table_name == table_name and (owner is None or row.owner == owner)

        table_node = self._table_node(target)
        nodes: List[GraphNode] = [table_node]
        edges: List[GraphEdge] = []

        for column in (result.columns or []):
            if belongs(column):
                column_node = self._column_node(column)
                nodes.append(column_node)
                edges.append(self._table_column_edge(table_node.id, column, column_node))

        for constraint in (result.constraints or []):
            if belongs(constraint):
                constraint_node = self._constraint_node(constraint)
                nodes.append(constraint_node)
                edges.append(self._table_constraint_edge(table_node.id, constraint, constraint_node))

        return GraphData(nodes=nodes, edges=edges, statistics=graph_statistics(nodes, edges))

    def _table_column_edge(self, parent: str, column: CatalogColumn, column_node: GraphNode) -> GraphEdge:
        return GraphEdge(
            id=f"table-column-{column.id}",
            source=parent,
            target=column_node.id,
            type=EdgeType.CONTAINS.value,
            metadata={"relationship": "table contains column"},
        )

    def _table_constraint_edge(
        self,
        parent: str,
        constraint: CatalogConstraint,
        constraint_node: GraphNode,
    ) -> GraphEdge:
        return GraphEdge(
            id=f"table-constraint-{constraint.id}",
            source=parent,
            target=constraint_node.id,
            type=EdgeType.RELATIONSHIP.value,
            metadata={"relationship": "table has constraint"},
        )

    def _schema_node(self, connection_id: str, result: Optional[DiscoveryResult]) -> GraphNode:
        metadata: Dict[str, Any] = {"connectionId": connection_id, "type": "Oracle Schema"}
        if result is not None and result.statistics is not None:
            metadata["statistics"] = result.statistics.to_dict()
        return GraphNode(
            id=node_id(NodeType.SCHEMA, connection_id),
            label=f"Schema ({connection_id})",
            type=NodeType.SCHEMA.value,
            metadata=metadata,
        )

    def _table_node(self, table: CatalogTable) -> GraphNode:
        return GraphNode(
            id=node_id(NodeType.TABLE, table.id),
            label=table.full_name,
            type=NodeType.TABLE.value,
            metadata=_compact({
                "id": table.id,
                "owner": table.owner,
                "tableName": table.table_name,
                "tableType": table.table_type,
                "fullName": table.full_name,
                "type": "Oracle Table",
                "numRows": table.num_rows,
                "tablespace": table.tablespace_name,
                "status": table.status,
                "comments": table.comments,
            }),
        )

    def _column_node(self, column: CatalogColumn) -> GraphNode:
        return GraphNode(
            id=node_id(NodeType.COLUMN, column.id),
            label=column.column_name,
            type=NodeType.COLUMN.value,
            metadata=_compact({
                "id": column.id,
                "owner": column.owner,
                "tableName": column.table_name,
                "columnName": column.column_name,
                "dataType": column.data_type,
                "nullable": column.nullable,
                "fullName": column.full_name,
                "type": "Oracle Column",
                "dataLength": column.data_length,
                "dataPrecision": column.data_precision,
                "dataScale": column.data_scale,
                "comments": column.comments,
            }),
        )

    def _procedure_node(self, procedure: CatalogProcedure) -> GraphNode:
        return GraphNode(
            id=node_id(NodeType.PROCEDURE, procedure.id),
            label=procedure.full_name,
            type=NodeType.PROCEDURE.value,
            metadata=_compact({
                "id": procedure.id,
                "owner": procedure.owner,
                "objectName": procedure.object_name,
                "procedureName": procedure.procedure_name,
                "objectType": procedure.object_type,
                "fullName": procedure.full_name,
                "type": "Oracle Procedure",
                "status": procedure.status,
            }),
        )

    def _constraint_node(self, constraint: CatalogConstraint) -> GraphNode:
        return GraphNode(
            id=node_id(NodeType.CONSTRAINT, constraint.id),
            label=constraint.constraint_name,
            type=NodeType.CONSTRAINT.value,
            metadata=_compact({
                "id": constraint.id,
                "owner": constraint.owner,
                "constraintName": constraint.constraint_name,
                "constraintType": constraint.constraint_type,
                "tableName": constraint.table_name,
                "fullName": constraint.full_name,
                "type": "Oracle Constraint",
                "status": constraint.status,
                "referencedOwner": constraint.r_owner,
                "referencedConstraint": constraint.r_constraint_name,
                "columns": list(constraint.columns) if constraint.columns else None,
            }),
        )


def graph_statistics(nodes: List[GraphNode], edges: List[GraphEdge]) -> GraphStatistics:
    """Count nodes and edges, overall and per type tag."""
    return GraphStatistics(
        total_nodes=len(nodes),
        total_edges=len(edges),
        node_type_breakdown=dict(Counter(n.type for n in nodes)),
        edge_type_breakdown=dict(Counter(e.type for e in edges)),
    )
