"""
Tests for field-level encryption.

The codec must round-trip, never reuse a nonce, reject tampering and
wrong keys, validate the key up front, and pass legacy plaintext through
with a warning.
"""

import pytest
from structlog.testing import capture_logs

from taxtrack.exceptions import ConfigurationError, DecryptionError
from taxtrack.security import (
    EncryptedField,
    EncryptionKey,
    FieldCipher,
    LegacyValue,
    decrypt,
    encrypt,
    get_field_cipher,
    parse_stored_value,
)


TEST_KEY = "a" * 64
OTHER_KEY = "b" * 64


def _flip_bit(hex_value: str, byte_index: int = 0) -> str:
    raw = bytearray(bytes.fromhex(hex_value))
    raw[byte_index] ^= 0x01
    return raw.hex()


class TestRoundTrip:
    """Encrypt then decrypt returns the original value."""

    @pytest.mark.parametrize("plaintext", [
        "Acme Pty Ltd",
        "51824753556",
        "Café Nguyễn 東京 🚀",
        "x" * 5000,
        "",
    ])
    def test_round_trip(self, cipher, plaintext):
        """Test that any string survives encryption."""
        assert cipher.decrypt(cipher.encrypt(plaintext)) == plaintext

    def test_none_passes_through(self, cipher):
        """Test that None is not encrypted or decrypted."""
        assert cipher.encrypt(None) is None
        assert cipher.decrypt(None) is None

    def test_empty_string_has_empty_ciphertext_part(self, cipher):
        """Test that "" encrypts to nonce:tag: with nothing after the last colon."""
        stored = cipher.encrypt("")
        nonce_hex, tag_hex, ciphertext_hex = stored.split(":")
        assert len(nonce_hex) == 24
        assert len(tag_hex) == 32
        assert ciphertext_hex == ""

    def test_uppercase_hex_is_accepted(self, cipher):
        """Test that stored values decode regardless of hex case."""
        stored = cipher.encrypt("Acme Pty Ltd")
        assert cipher.decrypt(stored.upper()) == "Acme Pty Ltd"

    def test_module_functions_accept_hex_key(self):
        """Test encrypt/decrypt with a raw hex key string."""
        stored = encrypt("secret", TEST_KEY)
        assert decrypt(stored, TEST_KEY) == "secret"

    def test_module_functions_accept_encryption_key(self, key):
        """Test encrypt/decrypt with an EncryptionKey."""
        assert decrypt(encrypt("secret", key), key) == "secret"


class TestStorageFormat:
    """The stored value is nonce:tag:ciphertext in lowercase hex."""

    def test_format_lengths(self, cipher):
        """Test 24/32/2n hex characters for nonce, tag and ciphertext."""
        plaintext = "Officeworks Pty Ltd"
        stored = cipher.encrypt(plaintext)
        parts = stored.split(":")

        assert len(parts) == 3
        assert len(parts[0]) == 24
        assert len(parts[1]) == 32
        assert len(parts[2]) == 2 * len(plaintext.encode("utf-8"))

    def test_output_is_lowercase_hex(self, cipher):
        """Test that every part is lowercase hex."""
        stored = cipher.encrypt("Some description")
        for part in stored.split(":"):
            assert part == part.lower()
            bytes.fromhex(part)

    def test_ciphertext_length_counts_utf8_bytes(self, cipher):
        """Test that multi-byte characters expand the ciphertext."""
        stored = cipher.encrypt("é")
        assert len(stored.split(":")[2]) == 4

    def test_same_plaintext_encrypts_differently(self, cipher):
        """Test that each call uses a fresh nonce."""
        first = cipher.encrypt("Acme Pty Ltd")
        second = cipher.encrypt("Acme Pty Ltd")
        assert first != second
        assert first.split(":")[0] != second.split(":")[0]

    def test_nonces_are_unique_over_many_calls(self, cipher):
        """Test that no nonce repeats across a batch of encryptions."""
        nonces = {cipher.encrypt("same").split(":")[0] for _ in range(500)}
        assert len(nonces) == 500


class TestParseStoredValue:
    """Format sniffing splits on colons only."""

    def test_three_parts_is_encrypted(self):
        """Test that a triple is recognised."""
        parsed = parse_stored_value("aa:bb:cc")
        assert parsed == EncryptedField(nonce_hex="aa", tag_hex="bb", ciphertext_hex="cc")

    @pytest.mark.parametrize("value", [
        "plain text",
        "one:colon",
        "a:b:c:d",
        "",
    ])
    def test_other_shapes_are_legacy(self, value):
        """Test that anything but three parts is legacy."""
        assert parse_stored_value(value) == LegacyValue(raw=value)

    def test_serialize_joins_with_colons(self):
        """Test EncryptedField.serialize()."""
        field = EncryptedField(nonce_hex="aa", tag_hex="bb", ciphertext_hex="")
        assert field.serialize() == "aa:bb:"


class TestTampering:
    """Authenticated encryption rejects any modification."""

    def test_flipped_tag_bit_fails(self, cipher):
        """Test that a single-bit change in the tag raises."""
        nonce, tag, ciphertext = cipher.encrypt("Acme Pty Ltd").split(":")
        with pytest.raises(DecryptionError) as exc_info:
            cipher.decrypt(f"{nonce}:{_flip_bit(tag)}:{ciphertext}")
        assert exc_info.value.details["reason"] == "authentication_failed"

    def test_flipped_ciphertext_bit_fails(self, cipher):
        """Test that a single-bit change in the ciphertext raises."""
        nonce, tag, ciphertext = cipher.encrypt("Acme Pty Ltd").split(":")
        with pytest.raises(DecryptionError):
            cipher.decrypt(f"{nonce}:{tag}:{_flip_bit(ciphertext, 3)}")

    def test_flipped_nonce_bit_fails(self, cipher):
        """Test that a single-bit change in the nonce raises."""
        nonce, tag, ciphertext = cipher.encrypt("Acme Pty Ltd").split(":")
        with pytest.raises(DecryptionError):
            cipher.decrypt(f"{_flip_bit(nonce)}:{tag}:{ciphertext}")

    def test_wrong_key_fails(self, cipher):
        """Test that a value encrypted under another key raises."""
        other = FieldCipher(EncryptionKey.from_hex(OTHER_KEY))
        stored = other.encrypt("Acme Pty Ltd")
        with pytest.raises(DecryptionError):
            cipher.decrypt(stored)

    def test_non_hex_triple_fails(self, cipher):
        """Test that a triple with non-hex content raises instead of passing through."""
        with pytest.raises(DecryptionError) as exc_info:
            cipher.decrypt("zz:yy:xx")
        assert exc_info.value.details["reason"] == "invalid_hex"

    @pytest.mark.parametrize("position", [0, 1, 2])
    def test_whitespace_inside_hex_fails(self, cipher, position):
        """Test that spaces inside any hex part are rejected, not skipped."""
        parts = cipher.encrypt("Acme Pty Ltd").split(":")
        parts[position] = parts[position][:2] + " " + parts[position][2:]
        with pytest.raises(DecryptionError) as exc_info:
            cipher.decrypt(":".join(parts))
        assert exc_info.value.details["reason"] == "invalid_hex"

    def test_odd_length_hex_fails(self, cipher):
        """Test that a half byte in the ciphertext is rejected."""
        stored = cipher.encrypt("Acme Pty Ltd") + "a"
        with pytest.raises(DecryptionError) as exc_info:
            cipher.decrypt(stored)
        assert exc_info.value.details["reason"] == "invalid_hex"

    def test_short_nonce_fails(self, cipher):
        """Test that a triple with a wrong-size nonce raises."""
        _, tag, ciphertext = cipher.encrypt("Acme").split(":")
        with pytest.raises(DecryptionError) as exc_info:
            cipher.decrypt(f"abcd:{tag}:{ciphertext}")
        assert exc_info.value.details["reason"] == "invalid_length"

    def test_error_does_not_contain_plaintext(self, cipher):
        """Test that the error message carries no field content."""
        nonce, tag, ciphertext = cipher.encrypt("Top Secret Client").split(":")
        with pytest.raises(DecryptionError) as exc_info:
            cipher.decrypt(f"{nonce}:{_flip_bit(tag)}:{ciphertext}")
        assert "Top Secret Client" not in str(exc_info.value)


class TestLegacyPassthrough:
    """Values stored before encryption are returned as they are."""

    def test_plaintext_is_returned_unchanged(self, cipher):
        """Test that a value with no colons passes through."""
        assert cipher.decrypt("Acme Pty Ltd") == "Acme Pty Ltd"

    @pytest.mark.parametrize("value", ["12:30 meeting", "a:b:c:d", ""])
    def test_wrong_colon_count_passes_through(self, cipher, value):
        """Test that one colon or three-plus colons pass through."""
        assert cipher.decrypt(value) == value

    def test_warning_logs_length_only(self, cipher):
        """Test that the warning carries the length and never the value."""
        with capture_logs() as logs:
            cipher.decrypt("Acme Pty Ltd")

        assert len(logs) == 1
        entry = logs[0]
        assert entry["event"] == "unencrypted_field_value"
        assert entry["log_level"] == "warning"
        assert entry["value_length"] == len("Acme Pty Ltd")
        assert "Acme Pty Ltd" not in str(entry)

    def test_encrypted_value_logs_nothing(self, cipher):
        """Test that a normal decrypt emits no warning."""
        stored = cipher.encrypt("Acme Pty Ltd")
        with capture_logs() as logs:
            cipher.decrypt(stored)
        assert logs == []


class TestKeyValidation:
    """Keys are validated before any cryptographic operation."""

    @pytest.mark.parametrize("value", [None, ""])
    def test_unset_key(self, value):
        """Test that a missing key names the variable and the generation hint."""
        with pytest.raises(ConfigurationError) as exc_info:
            EncryptionKey.from_hex(value)
        message = str(exc_info.value)
        assert "ENCRYPTION_KEY" in message
        assert "openssl rand -hex 32" in message

    @pytest.mark.parametrize("value", [
        "a" * 32,
        "a" * 128,
        "abc123",
    ])
    def test_wrong_length(self, value):
        """Test that a key of the wrong length reports its length."""
        with pytest.raises(ConfigurationError) as exc_info:
            EncryptionKey.from_hex(value)
        message = str(exc_info.value)
        assert "ENCRYPTION_KEY" in message
        assert "64 hex characters" in message
        assert f"Current length: {len(value)}" in message

    def test_non_hex_characters(self):
        """Test that 64 non-hex characters are rejected."""
        with pytest.raises(ConfigurationError) as exc_info:
            EncryptionKey.from_hex("g" * 64)
        assert "Current length: 64" in str(exc_info.value)

    @pytest.mark.parametrize("value", [
        " " + "a" * 64,
        "a" * 64 + "\n",
        "a" * 32 + " " + "a" * 31,
    ])
    def test_whitespace_is_rejected(self, value):
        """Test that surrounding or embedded whitespace is not stripped."""
        with pytest.raises(ConfigurationError):
            EncryptionKey.from_hex(value)

    def test_uppercase_hex_key_is_accepted(self):
        """Test that key hex is case-insensitive."""
        assert EncryptionKey.from_hex("A" * 64).key_bytes == bytes.fromhex("aa" * 32)

    def test_message_never_contains_key(self):
        """Test that a malformed key is not echoed back."""
        bad_key = "f00d" * 15
        with pytest.raises(ConfigurationError) as exc_info:
            EncryptionKey.from_hex(bad_key)
        assert bad_key not in str(exc_info.value)

    def test_repr_hides_key_bytes(self, key):
        """Test that repr() does not expose key material."""
        assert "aaaa" not in repr(key)
        assert "\\xaa" not in repr(key)

    def test_module_function_validates_key_for_none(self):
        """Test that a bad key fails even when there is nothing to encrypt."""
        with pytest.raises(ConfigurationError):
            encrypt(None, "short")
        with pytest.raises(ConfigurationError):
            decrypt(None, None)

    def test_custom_variable_name_in_message(self):
        """Test that the message names the configured variable."""
        with pytest.raises(ConfigurationError) as exc_info:
            EncryptionKey.from_hex("abc", variable="BACKUP_KEY")
        assert "BACKUP_KEY" in str(exc_info.value)
        assert exc_info.value.details["variable"] == "BACKUP_KEY"


class TestConfiguredCipher:
    """get_field_cipher() reads ENCRYPTION_KEY from the environment."""

    def test_builds_cipher_from_environment(self, monkeypatch):
        """Test that a valid ENCRYPTION_KEY yields a working cipher."""
        monkeypatch.setenv("ENCRYPTION_KEY", TEST_KEY)
        cipher = get_field_cipher()
        assert cipher.key_variable == "ENCRYPTION_KEY"
        assert cipher.decrypt(cipher.encrypt("hello")) == "hello"

    def test_cipher_is_cached(self, monkeypatch):
        """Test that repeated calls share one cipher."""
        monkeypatch.setenv("ENCRYPTION_KEY", TEST_KEY)
        assert get_field_cipher() is get_field_cipher()

    def test_missing_key_raises(self, monkeypatch, tmp_path):
        """Test that an unset key raises ConfigurationError."""
        monkeypatch.delenv("ENCRYPTION_KEY", raising=False)
        monkeypatch.chdir(tmp_path)  # no .env
        with pytest.raises(ConfigurationError):
            get_field_cipher()

    def test_malformed_key_raises(self, monkeypatch):
        """Test that a short key raises ConfigurationError."""
        monkeypatch.setenv("ENCRYPTION_KEY", "abc")
        with pytest.raises(ConfigurationError) as exc_info:
            get_field_cipher()
        assert "Current length: 3" in str(exc_info.value)

    def test_failures_are_not_cached(self, monkeypatch):
        """Test that fixing the key after a failure works without a reset."""
        monkeypatch.setenv("ENCRYPTION_KEY", "abc")
        with pytest.raises(ConfigurationError):
            get_field_cipher()
        monkeypatch.setenv("ENCRYPTION_KEY", TEST_KEY)
        assert get_field_cipher().encrypt("x") is not None
