"""Tests for configuration and connection profile loading."""

import pytest
import yaml

from schema_lineage.config import ENCRYPTION_KEY_ENV, ServiceConfig, load_config, load_descriptor, split_option
from schema_lineage.errors import ConfigurationError, EncryptionFailure
from schema_lineage.models import AuthenticationType
from schema_lineage.vault import CredentialVault


@pytest.fixture(autouse=True)
def no_env_key(monkeypatch):
    monkeypatch.delenv(ENCRYPTION_KEY_ENV, raising=False)


def write_yaml(path, data):
    with open(path, "w") as f:
        yaml.safe_dump(data, f)
    return path


class TestLoadConfig:
    """Tests for load_config and ServiceConfig."""

    def test_defaults(self):
        """Test defaults when no file is given."""
        config = load_config()

        assert config.default_limit == 1000
        assert config.default_offset == 0
        assert config.encryption_key is None

    def test_from_yaml(self, tmp_path):
        """Test loading known keys from YAML."""
        path = write_yaml(tmp_path / "config.yaml", {
            "encryption_key": "fileKey",
            "default_limit": 250,
            "read_timeout": 90,
            "unknown_key": True,
        })
        config = load_config(path)

        assert config.encryption_key == "fileKey"
        assert config.default_limit == 250
        assert config.read_timeout == 90

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        """Test that the environment passphrase wins over the file."""
        path = write_yaml(tmp_path / "config.yaml", {"encryption_key": "fileKey"})
        monkeypatch.setenv(ENCRYPTION_KEY_ENV, "envKey")

        assert load_config(path).encryption_key == "envKey"

    def test_missing_file(self, tmp_path):
        """Test a missing config file."""
        with pytest.raises(ConfigurationError):
            load_config(tmp_path / "nope.yaml")

    def test_non_mapping(self, tmp_path):
        """Test a YAML file that is not a mapping."""
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_vault_requires_key(self):
        """Test that a vault needs a configured key."""
        with pytest.raises(ConfigurationError):
            ServiceConfig().vault()

    def test_discovery_request_defaults(self):
        """Test that pagination defaults come from the config."""
        request = ServiceConfig(default_limit=500).discovery_request("c", schemas=["HR"])

        assert request.limit == 500
        assert request.offset == 0
        assert request.schemas == ["HR"]

    def test_discovery_request_explicit_page(self):
        """Test that explicit pagination is kept."""
        request = ServiceConfig().discovery_request("c", limit=10, offset=20)
        assert (request.limit, request.offset) == (10, 20)


class TestLoadDescriptor:
    """Tests for load_descriptor."""

    def test_decrypts_secrets(self, tmp_path):
        """Test that the password token is decrypted."""
        vault = CredentialVault("profileKey")
        path = write_yaml(tmp_path / "hr.yaml", {
            "host": "db.example.com",
            "port": 1521,
            "service_name": "ORCLPDB1",
            "authentication_type": "DIRECT",
            "username": "scott",
            "password": vault.encrypt("tiger"),
        })
        descriptor = load_descriptor(path, vault=vault, config=ServiceConfig(connection_timeout=5))

        assert descriptor.connection_id == "hr"
        assert descriptor.credentials.password == "tiger"
        assert descriptor.connection_timeout == 5
        assert descriptor.read_timeout == 60

    def test_ticket_profile_needs_no_vault(self, tmp_path):
        """Test a ticket profile without secrets."""
        path = write_yaml(tmp_path / "krb.yaml", {
            "connection_id": "krb",
            "host": "db.example.com",
            "service_name": "ORCLPDB1",
            "authentication_type": "TICKET",
            "realm": "EXAMPLE.COM",
            "kdc": "kdc.example.com",
        })
        descriptor = load_descriptor(path)

        assert descriptor.authentication_type == AuthenticationType.TICKET
        assert descriptor.connection_id == "krb"

    def test_encrypted_secret_without_vault(self, tmp_path):
        """Test an encrypted password with no vault."""
        path = write_yaml(tmp_path / "hr.yaml", {"host": "db", "password": "token"})
        with pytest.raises(ConfigurationError):
            load_descriptor(path)

    def test_wrong_key(self, tmp_path):
        """Test decrypting with the wrong key."""
        token = CredentialVault("rightKey").encrypt("tiger")
        path = write_yaml(tmp_path / "hr.yaml", {"host": "db", "password": token})
        with pytest.raises(EncryptionFailure):
            load_descriptor(path, vault=CredentialVault("wrongKey"))

    def test_ticket_profile_ignores_stale_password(self, tmp_path):
        """Test that a leftover password token on a ticket profile is never decrypted."""
        stale = CredentialVault("retiredKey").encrypt("old-secret")
        path = write_yaml(tmp_path / "krb.yaml", {
            "host": "db.example.com",
            "service_name": "ORCLPDB1",
            "authentication_type": "KERBEROS",
            "realm": "EXAMPLE.COM",
            "kdc": "kdc.example.com",
            "password": stale,
        })

        assert load_descriptor(path).authentication_type == AuthenticationType.TICKET
        descriptor = load_descriptor(path, vault=CredentialVault("currentKey"))
        assert descriptor.credentials.realm == "EXAMPLE.COM"

    def test_trust_store_password_ignored_without_tls(self, tmp_path):
        """Test that the trust-store token is only decrypted when TLS is on."""
        vault = CredentialVault("profileKey")
        path = write_yaml(tmp_path / "hr.yaml", {
            "host": "db",
            "service_name": "ORCL",
            "username": "scott",
            "password": vault.encrypt("tiger"),
            "trust_store_password": CredentialVault("retiredKey").encrypt("walletpw"),
        })
        descriptor = load_descriptor(path, vault=vault)

        assert descriptor.credentials.password == "tiger"
        assert descriptor.tls is None

    def test_trust_store_password_decrypted_with_tls(self, tmp_path):
        """Test that the trust-store token is decrypted when TLS is on."""
        vault = CredentialVault("profileKey")
        path = write_yaml(tmp_path / "hr.yaml", {
            "host": "db",
            "service_name": "ORCL",
            "username": "scott",
            "password": vault.encrypt("tiger"),
            "use_tls": True,
            "trust_store_path": "/etc/oracle/wallet",
            "trust_store_password": vault.encrypt("walletpw"),
        })

        assert load_descriptor(path, vault=vault).tls.trust_store_password == "walletpw"


def test_split_option():
    """Test splitting comma-separated options."""
    assert split_option(None) is None
    assert split_option("") is None
    assert split_option("HR, OE ,") == ["HR", "OE"]
