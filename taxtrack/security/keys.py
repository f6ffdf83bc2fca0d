"""
Encryption Key Handling

The field cipher needs a 32-byte AES key. It is supplied once, as 64 hex
characters, through the ENCRYPTION_KEY environment variable.

DESIGN DECISION: The key is validated once, when an EncryptionKey is built,
and is immutable afterwards. Anything that holds an EncryptionKey holds a
key that is known to be well-formed.

Error messages name the variable and report the observed length. They never
include the key itself.
"""

import re
from dataclasses import dataclass, field
from typing import Optional

from taxtrack.exceptions import ConfigurationError


ENCRYPTION_KEY_VARIABLE = "ENCRYPTION_KEY"
KEY_BYTES = 32
KEY_HEX_LENGTH = KEY_BYTES * 2
KEY_GENERATION_HINT = "openssl rand -hex 32"

_HEX_KEY_PATTERN = re.compile(r"[0-9a-fA-F]{%d}" % KEY_HEX_LENGTH)


@dataclass(frozen=True)
class EncryptionKey:
    """
    A validated 256-bit AES key.

    Build it with `EncryptionKey.from_hex()`. The raw bytes are excluded from
    repr so the key cannot end up in a log line or a traceback.
    """

    key_bytes: bytes = field(repr=False)
    variable: str = ENCRYPTION_KEY_VARIABLE

    def __post_init__(self) -> None:
        if len(self.key_bytes) != KEY_BYTES:
            raise ConfigurationError(
                f"{self.variable} must decode to {KEY_BYTES} bytes. "
                f"Current length: {len(self.key_bytes)} bytes",
                details={"variable": self.variable},
            )

    @classmethod
    def from_hex(
        cls,
        value: Optional[str],
        variable: str = ENCRYPTION_KEY_VARIABLE,
    ) -> "EncryptionKey":
        """
        Validate a hex key and build an EncryptionKey.

        Args:
            value: The configured key (64 hex characters), or None if unset.
            variable: Name of the configuration source, used in messages.

        Raises:
            ConfigurationError: If the key is unset, has the wrong length,
                contains non-hex characters or contains whitespace.
        """
        if not value:
            raise ConfigurationError(
                f"{variable} environment variable is not set. "
                f"Generate a 32-byte key with: {KEY_GENERATION_HINT}",
                details={"variable": variable},
            )

        # fullmatch so that surrounding whitespace is rejected as well
        if not _HEX_KEY_PATTERN.fullmatch(value):
            raise ConfigurationError(
                f"{variable} must be {KEY_HEX_LENGTH} hex characters "
                f"({KEY_BYTES} bytes). Current length: {len(value)}",
                details={"variable": variable, "length": len(value)},
            )

        return cls(key_bytes=bytes.fromhex(value), variable=variable)
