"""
Exception hierarchy for schema_lineage.

Every failure raised by the vault, the connection factory and the catalog
extractor derives from SchemaLineageError so callers can catch one type.
"""

from __future__ import annotations


class SchemaLineageError(Exception):
    """Base class for all schema_lineage failures."""


class EncryptionFailure(SchemaLineageError):
    """A token could not be encrypted or decrypted (malformed, truncated, wrong key)."""


class ConnectionFailure(SchemaLineageError):
    """Authentication was rejected, the host was unreachable, or the ticket login failed."""


class IntrospectionFailure(SchemaLineageError):
    """A catalog query failed, including driver-level timeouts."""


class ConfigurationError(SchemaLineageError):
    """A descriptor, request or config file is missing a required value."""
