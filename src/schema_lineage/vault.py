"""
Symmetric encryption of connection secrets at rest.

Tokens are base64(nonce || ciphertext || tag) produced by AES-256-GCM with a
fresh random nonce per call, so encrypting the same secret twice yields two
different tokens and any tampering is detected on decrypt.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from schema_lineage.errors import ConfigurationError, EncryptionFailure

logger = logging.getLogger(__name__)

KEY_SIZE = 32  # AES-256
NONCE_SIZE = 12  # GCM standard nonce length
TAG_SIZE = 16


def derive_key(passphrase: str, length: int = KEY_SIZE) -> bytes:
    """Truncate or zero-pad the UTF-8 passphrase to the cipher key size."""
    raw = passphrase.encode("utf-8")
    if len(raw) >= length:
        return raw[:length]
    return raw + b"0" * (length - len(raw))


def generate_key() -> str:
    """Generate a fresh random 256-bit key, base64 encoded, for key rotation."""
    return base64.b64encode(AESGCM.generate_key(bit_length=KEY_SIZE * 8)).decode("ascii")


class CredentialVault:
    """
    Encrypts and decrypts secret strings with a configured passphrase.

    Empty or missing input passes through as None in both directions;
    any other string, whitespace included, is encrypted as given.
    """

    def __init__(self, passphrase: str):
        if not passphrase:
            raise ConfigurationError("An encryption passphrase is required")
        self._cipher = AESGCM(derive_key(passphrase))

    def encrypt(self, plaintext: Optional[str]) -> Optional[str]:
        if not plaintext:
            return None

        nonce = os.urandom(NONCE_SIZE)
        try:
            ciphertext = self._cipher.encrypt(nonce, plaintext.encode("utf-8"), None)
        except (ValueError, OverflowError) as e:
            raise EncryptionFailure("Error encrypting data") from e

        return base64.b64encode(nonce + ciphertext).decode("ascii")

    def decrypt(self, token: Optional[str]) -> Optional[str]:
        if not token:
            return None

        try:
            payload = base64.b64decode(token.strip(), validate=True)
        except (binascii.Error, ValueError) as e:
            raise EncryptionFailure("Encrypted token is not valid base64") from e

        if len(payload) < NONCE_SIZE + TAG_SIZE:
            raise EncryptionFailure("Encrypted token is truncated")

        nonce, ciphertext = payload[:NONCE_SIZE], payload[NONCE_SIZE:]
        try:
            plaintext = self._cipher.decrypt(nonce, ciphertext, None)
        except InvalidTag as e:
            logger.debug("Token failed authentication; wrong key or tampered payload")
            raise EncryptionFailure("Error decrypting data: key mismatch or corrupted token") from e

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise EncryptionFailure("Decrypted payload is not valid UTF-8") from e
