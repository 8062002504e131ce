"""
Schema Lineage - Oracle catalog discovery for lineage graphs

Discovers structural metadata (tables, columns, stored procedures,
constraints) from an Oracle database and projects it into a labeled
node/edge graph for lineage visualization.

Features:
- Direct (username/password, optional TLS) and Kerberos ticket authentication
- Filtered, paginated introspection of data dictionary views
- Comment and constraint-column merge passes
- Graph projection with containment and foreign key edges
- AES-GCM encryption of connection secrets at rest
"""

__version__ = "0.1.0"

from schema_lineage.errors import (
    ConfigurationError,
    ConnectionFailure,
    EncryptionFailure,
    IntrospectionFailure,
    SchemaLineageError,
)
from schema_lineage.models import (
    AuthenticationType,
    CatalogColumn,
    CatalogConstraint,
    CatalogProcedure,
    CatalogTable,
    ConnectionDescriptor,
    DirectCredentials,
    DiscoveryRequest,
    DiscoveryResult,
    DiscoveryStatistics,
    GraphData,
    GraphEdge,
    GraphNode,
    GraphStatistics,
    TicketCredentials,
    TlsSettings,
)
from schema_lineage.vault import CredentialVault, generate_key
from schema_lineage.connection import ConnectionFactory
from schema_lineage.metadata import OracleMetadataExtractor
from schema_lineage.graph import GraphProjector

__all__ = [
    # Errors
    "SchemaLineageError",
    "EncryptionFailure",
    "ConnectionFailure",
    "IntrospectionFailure",
    "ConfigurationError",
    # Models
    "AuthenticationType",
    "ConnectionDescriptor",
    "DirectCredentials",
    "TicketCredentials",
    "TlsSettings",
    "DiscoveryRequest",
    "DiscoveryResult",
    "DiscoveryStatistics",
    "CatalogTable",
    "CatalogColumn",
    "CatalogProcedure",
    "CatalogConstraint",
    "GraphData",
    "GraphNode",
    "GraphEdge",
    "GraphStatistics",
    # Components
    "CredentialVault",
    "generate_key",
    "ConnectionFactory",
    "OracleMetadataExtractor",
    "GraphProjector",
]
