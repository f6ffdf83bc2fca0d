"""Field encryption package."""

from taxtrack.security.field_cipher import (
    EncryptedField,
    FieldCipher,
    LegacyValue,
    decrypt,
    encrypt,
    get_field_cipher,
    parse_stored_value,
)
from taxtrack.security.keys import (
    ENCRYPTION_KEY_VARIABLE,
    KEY_GENERATION_HINT,
    EncryptionKey,
)

__all__ = [
    "ENCRYPTION_KEY_VARIABLE",
    "KEY_GENERATION_HINT",
    "EncryptedField",
    "EncryptionKey",
    "FieldCipher",
    "LegacyValue",
    "decrypt",
    "encrypt",
    "get_field_cipher",
    "parse_stored_value",
]
