"""
Oracle connection factory with direct and Kerberos ticket authentication.

Every setting that influences a connection attempt (TLS trust material,
realm, KDC, principal) is carried by objects scoped to that attempt. Nothing
here writes environment variables or other process-wide settings, so
concurrent discoveries against different databases cannot interfere.
"""

from __future__ import annotations

import logging
import os
import ssl
import tempfile
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

import oracledb

from schema_lineage.errors import ConnectionFailure
from schema_lineage.models import (
    AuthenticationType,
    ConnectionDescriptor,
    TicketCredentials,
    TlsSettings,
)

logger = logging.getLogger(__name__)

DEFAULT_VALIDATION_TIMEOUT = 30  # seconds


def build_dsn(descriptor: ConnectionDescriptor, security: Optional[Dict[str, str]] = None) -> str:
    """
    Build an Oracle Net connect descriptor from host, port and service name.

    Entries in `security` become a SECURITY section, which scopes settings
    such as the Kerberos credential cache to this one connect descriptor.
    """
    protocol = "tcps" if descriptor.use_tls else "tcp"
    security_section = ""
    if security:
        security_section = "(SECURITY=" + "".join(f"({k}={v})" for k, v in security.items()) + ")"
    return (
        f"(DESCRIPTION=(ADDRESS=(PROTOCOL={protocol})(HOST={descriptor.host})"
        f"(PORT={descriptor.port}))(CONNECT_DATA=(SERVICE_NAME={descriptor.service_name}))"
        f"{security_section})"
    )


def build_tls_params(tls: TlsSettings) -> Dict[str, Any]:
    """
    Translate TLS settings into per-connection driver parameters.

    A trust store that is a directory is treated as an Oracle wallet; a file
    is treated as a PEM CA bundle and loaded into a dedicated SSLContext.
    With no trust store the system CA bundle is used.
    """
    params: Dict[str, Any] = {"ssl_server_dn_match": tls.server_dn_match}

    path = tls.trust_store_path
    if not path:
        return params

    if os.path.isdir(path):
        params["wallet_location"] = path
        if tls.trust_store_password:
            params["wallet_password"] = tls.trust_store_password
    else:
        context = ssl.create_default_context(cafile=path)
        context.minimum_version = ssl.TLSVersion.TLSv1_2
        params["ssl_context"] = context
    return params


class KerberosLogin:
    """
    Ticket-granting credential acquisition for one connection attempt.

    Reads the default ticket cache or the keytab without prompting, and
    writes the acquired ticket into a credential cache owned by the attempt.
    Realm and KDC live on this instance only; the KDC itself is resolved
    by the Kerberos library from the realm.
    """

    def __init__(
        self,
        realm: str,
        kdc: str,
        principal: Optional[str] = None,
        keytab_path: Optional[str] = None,
    ):
        self.realm = realm
        self.kdc = kdc
        self.principal = principal
        self.keytab_path = keytab_path

    @classmethod
    def from_credentials(cls, credentials: TicketCredentials) -> KerberosLogin:
        return cls(
            realm=credentials.realm,
            kdc=credentials.kdc,
            principal=credentials.principal,
            keytab_path=credentials.keytab_path,
        )

    @property
    def qualified_principal(self) -> Optional[str]:
        """Principal with the realm appended when it has none."""
        if not self.principal:
            return None
        if "@" in self.principal:
            return self.principal
        return f"{self.principal}@{self.realm}"

    def login(self, ccache_path: Optional[str] = None) -> Any:
        """
        Acquire initiator credentials from the ticket cache or keytab.

        Args:
            ccache_path: File credential cache to store the ticket in, so the
                Oracle client can pick it up for this connection

        Returns the gssapi Credentials object.
        """
        try:
            import gssapi
        except ImportError as e:
            raise ConnectionFailure(
                "Kerberos authentication requires the 'gssapi' package (install schema-lineage[kerberos])"
            ) from e

        name = None
        if self.qualified_principal:
            name = gssapi.Name(self.qualified_principal, gssapi.NameType.kerberos_principal)

        store = {"client_keytab": self.keytab_path} if self.keytab_path else None

        try:
            credentials = gssapi.Credentials(
                name=name,
                usage="initiate",
                mechs=[gssapi.MechType.kerberos],
                store=store,
            )
            lifetime = credentials.lifetime
        except gssapi.exceptions.GSSError as e:
            raise ConnectionFailure(f"Kerberos authentication failed for realm {self.realm}") from e

        if ccache_path:
            try:
                credentials.store(
                    store={"ccache": f"FILE:{ccache_path}"},
                    usage="initiate",
                    overwrite=True,
                )
            except (gssapi.exceptions.GSSError, NotImplementedError) as e:
                raise ConnectionFailure(f"Could not write Kerberos credential cache {ccache_path}") from e

        logger.info(
            f"Acquired Kerberos credentials for {credentials.name} "
            f"(realm={self.realm}, kdc={self.kdc}, lifetime={lifetime}s)"
        )
        return credentials


class ConnectionFactory:
    """
    Opens Oracle connections from connection descriptors.

    DIRECT connections use python-oracledb thin mode. TICKET connections use
    external authentication, which the driver only offers in thick mode; the
    Oracle client library is initialised on the first ticket connection.
    Thick mode cannot be switched off again, so once it is on, DIRECT
    connections that carry their own trust store are refused.
    """

    def __init__(self, oracle_client_lib_dir: Optional[str] = None):
        self.oracle_client_lib_dir = oracle_client_lib_dir

    def create_connection(self, descriptor: ConnectionDescriptor) -> oracledb.Connection:
        """
        Open a connection.

        Raises:
            ConfigurationError: descriptor lacks a field its authentication type needs
            ConnectionFailure: authentication or network failure
        """
        descriptor.validate()

        if descriptor.authentication_type == AuthenticationType.TICKET:
            connection = self._create_ticket_connection(descriptor)
        else:
            connection = self._create_direct_connection(descriptor)

        if descriptor.read_timeout:
            connection.call_timeout = int(descriptor.read_timeout) * 1000
        return connection

    def _connect(
        self,
        descriptor: ConnectionDescriptor,
        security: Optional[Dict[str, str]] = None,
        **params: Any,
    ) -> oracledb.Connection:
        if descriptor.connection_timeout:
            params["tcp_connect_timeout"] = float(descriptor.connection_timeout)

        try:
            connection = oracledb.connect(dsn=build_dsn(descriptor, security), **params)
        except oracledb.Error as e:
            raise ConnectionFailure(
                f"Could not connect to {descriptor.host}:{descriptor.port}/{descriptor.service_name}: {e}"
            ) from e

        logger.info(
            f"Connected to Oracle {descriptor.host}:{descriptor.port}/{descriptor.service_name} "
            f"({descriptor.authentication_type.value})"
        )
        return connection

    def _create_direct_connection(self, descriptor: ConnectionDescriptor) -> oracledb.Connection:
        credentials = descriptor.credentials
        params: Dict[str, Any] = {
            "user": credentials.username,
            "password": credentials.password,
        }
        if descriptor.tls is not None:
            # Thick mode ignores ssl_context and wallet_location and would fall
            # back to the process-wide sqlnet.ora wallet
            if descriptor.tls.trust_store_path and not oracledb.is_thin_mode():
                raise ConnectionFailure(
                    f"Cannot apply trust store {descriptor.tls.trust_store_path} to connection "
                    f"{descriptor.connection_id}: the driver is in thick mode (enabled by a Kerberos "
                    "connection in this process) and only supports the process-wide wallet"
                )
            try:
                params.update(build_tls_params(descriptor.tls))
            except (OSError, ssl.SSLError) as e:
                raise ConnectionFailure(
                    f"Could not load trust store {descriptor.tls.trust_store_path}"
                ) from e

        return self._connect(descriptor, **params)

    def _create_ticket_connection(self, descriptor: ConnectionDescriptor) -> oracledb.Connection:
        login = KerberosLogin.from_credentials(descriptor.credentials)

        # The cache only has to outlive the authentication handshake
        with tempfile.TemporaryDirectory(prefix="schema-lineage-krb5-") as ccache_dir:
            ccache_path = os.path.join(ccache_dir, "krb5cc")
            login.login(ccache_path)
            self._ensure_thick_mode()

            security = {"KERBEROS5_CC_NAME": ccache_path}
            if login.qualified_principal:
                security["KERBEROS5_PRINCIPAL"] = login.qualified_principal
            return self._connect(descriptor, security=security, externalauth=True)

    def _ensure_thick_mode(self) -> None:
        if not oracledb.is_thin_mode():
            return
        try:
            oracledb.init_oracle_client(lib_dir=self.oracle_client_lib_dir)
        except oracledb.Error as e:
            raise ConnectionFailure(
                "Kerberos authentication requires the Oracle client libraries (thick mode)"
            ) from e
        logger.debug("Initialised python-oracledb thick mode for external authentication")

    def test_connection(self, descriptor: ConnectionDescriptor) -> bool:
        """Open, ping and close a connection. Never raises."""
        connection = None
        try:
            connection = self.create_connection(descriptor)
            timeout = descriptor.connection_timeout or DEFAULT_VALIDATION_TIMEOUT
            connection.call_timeout = int(timeout) * 1000
            connection.ping()
            return True
        except Exception as e:
            logger.warning(f"Connection test failed for {descriptor.connection_id or descriptor.host}: {e}")
            return False
        finally:
            self.close_connection(connection)

    def close_connection(self, connection: Optional[oracledb.Connection]) -> None:
        """Close a connection, logging instead of raising on failure."""
        if connection is None:
            return
        try:
            connection.close()
        except Exception as e:
            logger.error(f"Error closing Oracle connection: {e}")

    @contextmanager
    def connect(self, descriptor: ConnectionDescriptor) -> Iterator[oracledb.Connection]:
        """Context manager that always closes the connection on exit."""
        connection = self.create_connection(descriptor)
        try:
            yield connection
        finally:
            self.close_connection(connection)
