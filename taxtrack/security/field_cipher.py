"""
Field-Level Encryption (AES-256-GCM)

Encrypts individual text fields before they are stored and decrypts them on
read. Used for PII columns: client name, ABN, expense and income descriptions.

STORAGE FORMAT: `nonce:tag:ciphertext`, each part hex-encoded.
- nonce: 12 bytes (24 hex chars), fresh from os.urandom on every call
- tag: 16 bytes (32 hex chars), GCM authentication tag
- ciphertext: same byte length as the UTF-8 plaintext

The same plaintext never encrypts to the same stored value twice.

LEGACY DATA: A stored value that does not split into exactly three parts is
treated as unencrypted. It is returned unchanged and a warning is logged with
its length only. Pre-migration plaintext and corrupted values look the same
here and are logged the same way.

FAILURES: A value that is in triple format but does not authenticate raises
DecryptionError. Corrupted plaintext is never returned.
"""

import os
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Union

import structlog
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from taxtrack.config import get_settings
from taxtrack.exceptions import DecryptionError
from taxtrack.security.keys import EncryptionKey


logger = structlog.get_logger(__name__)

NONCE_LENGTH = 12  # GCM recommended nonce length
TAG_LENGTH = 16
SEPARATOR = ":"

# Whole bytes only; bytes.fromhex would also skip whitespace
_HEX_PATTERN = re.compile(r"(?:[0-9a-fA-F]{2})*")


@dataclass(frozen=True)
class EncryptedField:
    """A stored value in `nonce:tag:ciphertext` form, still hex-encoded."""

    nonce_hex: str
    tag_hex: str
    ciphertext_hex: str

    def serialize(self) -> str:
        return SEPARATOR.join((self.nonce_hex, self.tag_hex, self.ciphertext_hex))


@dataclass(frozen=True)
class LegacyValue:
    """A stored value that is not in encrypted form."""

    raw: str


StoredValue = Union[EncryptedField, LegacyValue]


def parse_stored_value(value: str) -> StoredValue:
    """
    Classify a stored value by its shape.

    Exactly three colon-separated parts means encrypted. Anything else is
    legacy plaintext. The hex content is not checked here.
    """
    parts = value.split(SEPARATOR)
    if len(parts) != 3:
        return LegacyValue(raw=value)
    nonce_hex, tag_hex, ciphertext_hex = parts
    return EncryptedField(
        nonce_hex=nonce_hex,
        tag_hex=tag_hex,
        ciphertext_hex=ciphertext_hex,
    )


class FieldCipher:
    """
    AES-256-GCM codec for single text fields.

    The key is injected and validated before construction (see
    EncryptionKey), so encrypt/decrypt never read configuration.

    Usage:
        cipher = FieldCipher(EncryptionKey.from_hex(hex_key))
        stored = cipher.encrypt("Acme Pty Ltd")
        cipher.decrypt(stored)  # "Acme Pty Ltd"
    """

    def __init__(self, key: EncryptionKey):
        self._key = key
        self._aesgcm = AESGCM(key.key_bytes)

    @property
    def key_variable(self) -> str:
        return self._key.variable

    def encrypt(self, plaintext: Optional[str]) -> Optional[str]:
        """
        Encrypt a value for storage.

        Returns:
            `nonce:tag:ciphertext` in lowercase hex, or None for None.
        """
        if plaintext is None:
            return None

        nonce = os.urandom(NONCE_LENGTH)
        # cryptography appends the tag to the ciphertext
        sealed = self._aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]

        return EncryptedField(
            nonce_hex=nonce.hex(),
            tag_hex=tag.hex(),
            ciphertext_hex=ciphertext.hex(),
        ).serialize()

    def decrypt(self, serialized: Optional[str]) -> Optional[str]:
        """
        Decrypt a stored value.

        Returns:
            The original plaintext, the unchanged value for legacy data,
            or None for None.

        Raises:
            DecryptionError: If the value is in triple form but fails to
                decode or authenticate.
        """
        if serialized is None:
            return None

        stored = parse_stored_value(serialized)
        if isinstance(stored, LegacyValue):
            logger.warning(
                "unencrypted_field_value",
                expected_format="nonce:tag:ciphertext",
                value_length=len(stored.raw),
                hint="legacy plaintext or corrupted data; consider migrating to encrypted format",
            )
            return stored.raw

        return self._open(stored)

    def _open(self, field: EncryptedField) -> str:
        parts = (field.nonce_hex, field.tag_hex, field.ciphertext_hex)
        if not all(_HEX_PATTERN.fullmatch(part) for part in parts):
            raise DecryptionError(
                "Encrypted field is not valid hex",
                details={"reason": "invalid_hex"},
            )
        nonce, tag, ciphertext = (bytes.fromhex(part) for part in parts)

        if len(nonce) != NONCE_LENGTH or len(tag) != TAG_LENGTH:
            raise DecryptionError(
                f"Encrypted field has a {len(nonce)}-byte nonce and {len(tag)}-byte tag; "
                f"expected {NONCE_LENGTH} and {TAG_LENGTH}",
                details={"reason": "invalid_length"},
            )

        try:
            plaintext = self._aesgcm.decrypt(nonce, ciphertext + tag, None)
        except InvalidTag as e:
            raise DecryptionError(
                "Encrypted field failed authentication (tampered data or wrong key)",
                details={"reason": "authentication_failed"},
            ) from e

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionError(
                "Decrypted field is not valid UTF-8",
                details={"reason": "invalid_utf8"},
            ) from e


KeyInput = Union[EncryptionKey, str, None]


def _as_key(key: KeyInput) -> EncryptionKey:
    if isinstance(key, EncryptionKey):
        return key
    return EncryptionKey.from_hex(key)


def encrypt(plaintext: Optional[str], key: KeyInput) -> Optional[str]:
    """Encrypt one value. A hex-string key is validated on every call."""
    return FieldCipher(_as_key(key)).encrypt(plaintext)


def decrypt(serialized: Optional[str], key: KeyInput) -> Optional[str]:
    """Decrypt one value. A hex-string key is validated on every call."""
    return FieldCipher(_as_key(key)).decrypt(serialized)


@lru_cache()
def get_field_cipher() -> FieldCipher:
    """
    Get the process-wide cipher built from ENCRYPTION_KEY (cached).

    Raises ConfigurationError if the key is missing or malformed. Failures are
    not cached. Call get_field_cipher.cache_clear() after changing the key.
    """
    return FieldCipher(get_settings().encryption.get_key())
