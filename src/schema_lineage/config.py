"""
Service configuration and connection profile loading.

Configuration is read from an optional YAML file; the encryption passphrase
can also come from the SCHEMA_LINEAGE_ENCRYPTION_KEY environment variable,
which takes precedence. The config is loaded once at startup and not
changed afterwards.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from schema_lineage.errors import ConfigurationError
from schema_lineage.models import AuthenticationType, ConnectionDescriptor, DiscoveryRequest
from schema_lineage.vault import CredentialVault

logger = logging.getLogger(__name__)

ENCRYPTION_KEY_ENV = "SCHEMA_LINEAGE_ENCRYPTION_KEY"

# Profile fields that hold vault tokens rather than plaintext
ENCRYPTED_PROFILE_FIELDS = ("password", "trust_store_password")


@dataclass(frozen=True)
class ServiceConfig:
    """Settings shared by every discovery run."""
    encryption_key: Optional[str] = None
    default_limit: int = 1000
    default_offset: int = 0
    connection_timeout: int = 30  # seconds
    read_timeout: int = 60  # seconds
    oracle_client_lib_dir: Optional[str] = None

    def require_encryption_key(self) -> str:
        if not self.encryption_key:
            raise ConfigurationError(
                f"No encryption key configured; set {ENCRYPTION_KEY_ENV} or 'encryption_key' in the config file"
            )
        return self.encryption_key

    def vault(self) -> CredentialVault:
        return CredentialVault(self.require_encryption_key())

    def discovery_request(
        self,
        connection_id: str,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        **options: Any,
    ) -> DiscoveryRequest:
        """Build a request, filling pagination from the configured defaults."""
        return DiscoveryRequest(
            connection_id=connection_id,
            limit=self.default_limit if limit is None else limit,
            offset=self.default_offset if offset is None else offset,
            **options,
        )


def _read_yaml(path: Path) -> Dict[str, Any]:
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Expected a mapping at the top of {path}")
    return data


def load_config(path: Optional[Union[str, Path]] = None) -> ServiceConfig:
    """
    Load service configuration.

    Args:
        path: Optional YAML file; keys match ServiceConfig field names

    Returns:
        ServiceConfig with the environment passphrase applied on top
    """
    data: Dict[str, Any] = {}
    if path:
        data = _read_yaml(Path(path))
        logger.info(f"Loaded configuration from {path}")

    known = {f.name for f in fields(ServiceConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        logger.warning(f"Ignoring unknown config keys: {', '.join(unknown)}")

    values = {k: v for k, v in data.items() if k in known}
    env_key = os.environ.get(ENCRYPTION_KEY_ENV)
    if env_key:
        values["encryption_key"] = env_key

    return ServiceConfig(**values)


def load_descriptor(
    path: Union[str, Path],
    vault: Optional[CredentialVault] = None,
    config: Optional[ServiceConfig] = None,
) -> ConnectionDescriptor:
    """
    Read a connection profile from YAML and build a descriptor.

    Secret fields are stored as vault tokens and decrypted here. Timeouts
    missing from the profile fall back to the service config.
    """
    data = _read_yaml(Path(path))
    config = config or ServiceConfig()

    # Only the active credential branch and an enabled TLS block are decrypted
    active = set()
    if AuthenticationType.parse(data.get("authentication_type", "DIRECT")) == AuthenticationType.DIRECT:
        active.add("password")
    if data.get("use_tls"):
        active.add("trust_store_password")

    for key in ENCRYPTED_PROFILE_FIELDS:
        if key in active and data.get(key):
            if vault is None:
                raise ConfigurationError(f"Profile {path} has an encrypted '{key}' but no vault is configured")
            data[key] = vault.decrypt(data[key])

    data.setdefault("connection_timeout", config.connection_timeout)
    data.setdefault("read_timeout", config.read_timeout)
    if not data.get("connection_id"):
        data["connection_id"] = Path(path).stem

    return ConnectionDescriptor.from_dict(data)


def split_option(value: Optional[str]) -> Optional[List[str]]:
    """Split a comma-separated CLI option into a list, or None when empty."""
    if not value:
        return None
    items = [v.strip() for v in value.split(",") if v.strip()]
    return items or None
