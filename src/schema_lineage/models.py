"""
Core data models for the schema_lineage package.

Defines connection descriptors, discovery requests, the flat catalog records
returned by the extractor and the graph structures built from them.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from schema_lineage.errors import ConfigurationError


class AuthenticationType(str, Enum):
    """How a connection authenticates."""
    DIRECT = "DIRECT"
    TICKET = "TICKET"

    @classmethod
    def parse(cls, value: Union[str, AuthenticationType]) -> AuthenticationType:
        """Parse a tag case-insensitively; KERBEROS is an alias of TICKET."""
        if isinstance(value, cls):
            return value
        tag = str(value).strip().upper()
        if tag == "KERBEROS":
            return cls.TICKET
        try:
            return cls(tag)
        except ValueError:
            raise ConfigurationError(f"Unsupported authentication type: {value}") from None


class NodeType(str, Enum):
    SCHEMA = "schema"
    TABLE = "table"
    COLUMN = "column"
    PROCEDURE = "procedure"
    CONSTRAINT = "constraint"


class EdgeType(str, Enum):
    CONTAINS = "contains"
    RELATIONSHIP = "relationship"
    FOREIGN_KEY = "foreign_key"


# Constraint type tag for referential (foreign key) constraints
REFERENTIAL_CONSTRAINT = "R"


def _new_id() -> str:
    return str(uuid.uuid4())


def _record_from_dict(cls, data: Dict[str, Any]):
    """Build a flat record from a dict, ignoring keys the record does not know."""
    known = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in data.items() if k in known})


# ---------------------------------------------------------------------------
# Connection descriptor
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DirectCredentials:
    """Username/password credentials."""
    username: str
    password: str

    def validate(self) -> None:
        if not self.username:
            raise ConfigurationError("Direct authentication requires a username")
        if not self.password:
            raise ConfigurationError("Direct authentication requires a password")

    def __repr__(self) -> str:
        return f"DirectCredentials(username={self.username!r}, password='***')"


@dataclass(frozen=True)
class TicketCredentials:
    """Kerberos ticket login parameters."""
    realm: str
    kdc: str
    principal: Optional[str] = None
    keytab_path: Optional[str] = None

    def validate(self) -> None:
        if not self.realm:
            raise ConfigurationError("Ticket authentication requires a realm")
        if not self.kdc:
            raise ConfigurationError("Ticket authentication requires a KDC address")


Credentials = Union[DirectCredentials, TicketCredentials]


@dataclass(frozen=True)
class TlsSettings:
    """TLS transport settings, scoped to a single connection attempt."""
    trust_store_path: Optional[str] = None
    trust_store_password: Optional[str] = None
    server_dn_match: bool = True

    def __repr__(self) -> str:
        password = "'***'" if self.trust_store_password else "None"
        return (
            f"TlsSettings(trust_store_path={self.trust_store_path!r}, "
            f"trust_store_password={password}, server_dn_match={self.server_dn_match})"
        )


@dataclass(frozen=True)
class ConnectionDescriptor:
    """
    Everything needed to open one database connection.

    The credentials field is a tagged union: it holds either DirectCredentials
    or TicketCredentials, and the authentication type is derived from it.
    Secrets must already be decrypted.
    """
    connection_id: str
    host: str
    port: int
    service_name: str
    credentials: Credentials
    tls: Optional[TlsSettings] = None
    connection_timeout: Optional[int] = 30  # seconds
    read_timeout: Optional[int] = 60  # seconds

    @property
    def authentication_type(self) -> AuthenticationType:
        if isinstance(self.credentials, TicketCredentials):
            return AuthenticationType.TICKET
        return AuthenticationType.DIRECT

    @property
    def use_tls(self) -> bool:
        return self.tls is not None

    def validate(self) -> None:
        """Check the shared fields and the active credential branch only."""
        if not self.host:
            raise ConfigurationError("Connection descriptor requires a host")
        if not self.port or int(self.port) <= 0:
            raise ConfigurationError("Connection descriptor requires a positive port")
        if not self.service_name:
            raise ConfigurationError("Connection descriptor requires a service name")
        if not isinstance(self.credentials, (DirectCredentials, TicketCredentials)):
            raise ConfigurationError("Connection descriptor has no credentials")
        self.credentials.validate()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ConnectionDescriptor:
        """
        Create from a flat dictionary (e.g. a YAML connection profile).

        Only the fields belonging to the chosen authentication type are read.
        """
        auth_type = AuthenticationType.parse(data.get("authentication_type", "DIRECT"))

        credentials: Credentials
        if auth_type == AuthenticationType.TICKET:
            credentials = TicketCredentials(
                realm=data.get("realm") or "",
                kdc=data.get("kdc") or "",
                principal=data.get("principal"),
                keytab_path=data.get("keytab_path"),
            )
        else:
            credentials = DirectCredentials(
                username=data.get("username") or "",
                password=data.get("password") or "",
            )

        tls = None
        if data.get("use_tls"):
            tls = TlsSettings(
                trust_store_path=data.get("trust_store_path"),
                trust_store_password=data.get("trust_store_password"),
                server_dn_match=data.get("server_dn_match", True),
            )

        port = data.get("port", 1521)
        return cls(
            connection_id=str(data.get("connection_id") or ""),
            host=data.get("host") or "",
            port=int(port) if port is not None else 0,
            service_name=data.get("service_name") or "",
            credentials=credentials,
            tls=tls,
            connection_timeout=data.get("connection_timeout", 30),
            read_timeout=data.get("read_timeout", 60),
        )


# ---------------------------------------------------------------------------
# Discovery request
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DiscoveryRequest:
    """Which catalog categories to discover and how to filter and page them."""
    connection_id: str
    limit: int
    offset: int
    schemas: Optional[List[str]] = None
    table_patterns: Optional[List[str]] = None  # SQL LIKE patterns
    object_types: Optional[List[str]] = None  # procedure OBJECT_TYPE filter
    include_tables: bool = True
    include_columns: bool = True
    include_procedures: bool = True
    include_constraints: bool = True

    def validate(self) -> None:
        if self.limit is None or int(self.limit) <= 0:
            raise ConfigurationError(f"Discovery limit must be positive, got {self.limit}")
        if self.offset is None or int(self.offset) < 0:
            raise ConfigurationError(f"Discovery offset must be >= 0, got {self.offset}")


# ---------------------------------------------------------------------------
# Catalog records
# ---------------------------------------------------------------------------


@dataclass
class CatalogTable:
    """One row of the table catalog."""
    owner: str
    table_name: str
    connection_id: str
    id: str = field(default_factory=_new_id)
    table_type: Optional[str] = None
    tablespace_name: Optional[str] = None
    num_rows: Optional[int] = None
    blocks: Optional[int] = None
    avg_row_len: Optional[int] = None
    sample_size: Optional[int] = None
    compression: Optional[str] = None
    status: Optional[str] = None
    temporary: Optional[str] = None
    comments: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}.{self.table_name}"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CatalogTable:
        return _record_from_dict(cls, data)


@dataclass
class CatalogColumn:
    """One row of the column catalog, keyed to its table by (owner, table_name)."""
    owner: str
    table_name: str
    column_name: str
    connection_id: str
    id: str = field(default_factory=_new_id)
    data_type: Optional[str] = None
    data_type_mod: Optional[str] = None
    data_type_owner: Optional[str] = None
    data_length: Optional[int] = None
    data_precision: Optional[int] = None
    data_scale: Optional[int] = None
    nullable: Optional[str] = None
    column_id: Optional[int] = None
    default_length: Optional[int] = None
    data_default: Optional[str] = None
    num_distinct: Optional[int] = None
    density: Optional[float] = None
    num_nulls: Optional[int] = None
    num_buckets: Optional[int] = None
    character_set_name: Optional[str] = None
    char_col_decl_length: Optional[int] = None
    global_stats: Optional[str] = None
    user_stats: Optional[str] = None
    avg_col_len: Optional[float] = None
    char_length: Optional[int] = None
    char_used: Optional[str] = None
    comments: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}.{self.table_name}.{self.column_name}"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CatalogColumn:
        return _record_from_dict(cls, data)


@dataclass
class CatalogProcedure:
    """One row of the procedure catalog (standalone routine or package member)."""
    owner: str
    object_name: str
    connection_id: str
    id: str = field(default_factory=_new_id)
    procedure_name: Optional[str] = None
    object_type: Optional[str] = None
    status: Optional[str] = None
    aggregate: Optional[str] = None
    pipelined: Optional[str] = None
    impl_type_owner: Optional[str] = None
    impl_type_name: Optional[str] = None
    parallel: Optional[str] = None
    interface: Optional[str] = None
    deterministic: Optional[str] = None
    authid: Optional[str] = None
    result_cache: Optional[str] = None
    origin_con_id: Optional[int] = None
    polymorphic: Optional[str] = None

    @property
    def display_name(self) -> str:
        """Package members show as OBJECT.MEMBER, standalone routines as OBJECT."""
        if self.procedure_name:
            return f"{self.object_name}.{self.procedure_name}"
        return self.object_name

    @property
    def full_name(self) -> str:
        return f"{self.owner}.{self.display_name}"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CatalogProcedure:
        return _record_from_dict(cls, data)


@dataclass
class CatalogConstraint:
    """One row of the constraint catalog, keyed to its table by (owner, table_name)."""
    owner: str
    constraint_name: str
    table_name: str
    connection_id: str
    id: str = field(default_factory=_new_id)
    constraint_type: Optional[str] = None
    search_condition: Optional[str] = None
    r_owner: Optional[str] = None
    r_constraint_name: Optional[str] = None
    delete_rule: Optional[str] = None
    status: Optional[str] = None
    deferrable: Optional[str] = None
    deferred: Optional[str] = None
    validated: Optional[str] = None
    generated: Optional[str] = None
    bad: Optional[str] = None
    rely: Optional[str] = None
    last_change: Optional[str] = None
    index_owner: Optional[str] = None
    index_name: Optional[str] = None
    invalid: Optional[str] = None
    view_related: Optional[str] = None
    origin_con_id: Optional[int] = None
    columns: List[str] = field(default_factory=list)

    @property
    def is_referential(self) -> bool:
        return self.constraint_type == REFERENTIAL_CONSTRAINT

    @property
    def full_name(self) -> str:
        return f"{self.owner}.{self.constraint_name}"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CatalogConstraint:
        record = _record_from_dict(cls, data)
        record.columns = list(record.columns or [])
        return record


# ---------------------------------------------------------------------------
# Discovery result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DiscoveryStatistics:
    """Row counts and wall-clock time for one discovery run."""
    total_tables: int = 0
    total_columns: int = 0
    total_procedures: int = 0
    total_constraints: int = 0
    discovery_time_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalTables": self.total_tables,
            "totalColumns": self.total_columns,
            "totalProcedures": self.total_procedures,
            "totalConstraints": self.total_constraints,
            "discoveryTimeMs": self.discovery_time_ms,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> DiscoveryStatistics:
        return cls(
            total_tables=data.get("totalTables", 0),
            total_columns=data.get("totalColumns", 0),
            total_procedures=data.get("totalProcedures", 0),
            total_constraints=data.get("totalConstraints", 0),
            discovery_time_ms=data.get("discoveryTimeMs", 0),
        )


@dataclass
class DiscoveryResult:
    """
    Output of one discovery call.

    A category list is None when the category was not requested, and a
    (possibly empty) list when it was.
    """
    connection_id: str
    tables: Optional[List[CatalogTable]] = None
    columns: Optional[List[CatalogColumn]] = None
    procedures: Optional[List[CatalogProcedure]] = None
    constraints: Optional[List[CatalogConstraint]] = None
    statistics: Optional[DiscoveryStatistics] = None

    def to_dict(self) -> Dict[str, Any]:
        def dump(records):
            return [r.to_dict() for r in records] if records is not None else None

        return {
            "connectionId": self.connection_id,
            "tables": dump(self.tables),
            "columns": dump(self.columns),
            "procedures": dump(self.procedures),
            "constraints": dump(self.constraints),
            "statistics": self.statistics.to_dict() if self.statistics else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> DiscoveryResult:
        def load(key, record_cls):
            rows = data.get(key)
            return [record_cls.from_dict(r) for r in rows] if rows is not None else None

        stats = data.get("statistics")
        return cls(
            connection_id=data.get("connectionId", ""),
            tables=load("tables", CatalogTable),
            columns=load("columns", CatalogColumn),
            procedures=load("procedures", CatalogProcedure),
            constraints=load("constraints", CatalogConstraint),
            statistics=DiscoveryStatistics.from_dict(stats) if stats else None,
        )


# ---------------------------------------------------------------------------
# Graph
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GraphNode:
    id: str
    label: str
    type: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "label": self.label, "type": self.type, "metadata": dict(self.metadata)}


@dataclass(frozen=True)
class GraphEdge:
    id: str
    source: str
    target: str
    type: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "type": self.type,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class GraphStatistics:
    total_nodes: int = 0
    total_edges: int = 0
    node_type_breakdown: Dict[str, int] = field(default_factory=dict)
    edge_type_breakdown: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalNodes": self.total_nodes,
            "totalEdges": self.total_edges,
            "nodeTypeBreakdown": dict(self.node_type_breakdown),
            "edgeTypeBreakdown": dict(self.edge_type_breakdown),
        }


@dataclass(frozen=True)
class GraphData:
    """Node/edge graph handed to lineage visualizations."""
    nodes: List[GraphNode] = field(default_factory=list)
    edges: List[GraphEdge] = field(default_factory=list)
    statistics: GraphStatistics = field(default_factory=GraphStatistics)

    def nodes_of_type(self, node_type: str) -> List[GraphNode]:
        return [n for n in self.nodes if n.type == node_type]

    def edges_of_type(self, edge_type: str) -> List[GraphEdge]:
        return [e for e in self.edges if e.type == edge_type]

    def get_node(self, node_id: str) -> Optional[GraphNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
            "statistics": self.statistics.to_dict(),
        }
