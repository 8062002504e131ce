"""
Catalog introspection for Oracle databases.

Builds filtered, paginated queries over data dictionary views and maps the
rows into catalog records.
"""

from schema_lineage.metadata.catalog import CatalogQuery, CatalogQueryBuilder
from schema_lineage.metadata.oracle import OracleMetadataExtractor

__all__ = [
    "CatalogQuery",
    "CatalogQueryBuilder",
    "OracleMetadataExtractor",
]
