"""Tests for payload encryption and decryption."""

import os

import pytest
from webpusher.codec import decode
from webpusher.crypto import (
    decrypt_message,
    decrypt_payload,
    encrypt_message,
    encrypt_payload,
    pad_plaintext,
    unpad_plaintext,
)
from webpusher.envelope import EnvelopeError, decode_body, encode_body
from webpusher.keys import generate_ephemeral_keypair, public_key_to_bytes
from webpusher.models import DerivedKeys, SubscriptionKey
from webpusher.types import (
    MAX_BODY_SIZE,
    ContentEncoding,
    DecryptionError,
    EncryptionError,
    InvalidKeyError,
    PayloadTooLargeError,
)
from .conftest import SequenceSource
from .test_vectors import (
    AS_PRIVATE_KEY_B64,
    AS_PUBLIC_KEY_B64,
    AUTH_SECRET_B64,
    BODY_HEADER_B64,
    CEK_B64,
    CIPHERTEXT_B64,
    NONCE_B64,
    PLAINTEXT,
    SALT_B64,
)

TEST_PAYLOADS = {
    "empty": b"",
    "single_byte": b"X",
    "json": b'{"title": "Hello", "body": "World"}',
    "utf8": "Café 👋 你好".encode("utf-8"),
    "trailing_zeros": b"data\x00\x00",
    "trailing_delimiter": b"data\x02",
    "binary": bytes(range(256)),
}


def _random_subscriber():
    private_key, public_key = generate_ephemeral_keypair()
    key = SubscriptionKey(p256dh=public_key_to_bytes(public_key), auth=os.urandom(16))
    return private_key, key


class TestRfc8291Vector:
    """Test against the RFC 8291 Appendix A example."""

    def test_encrypt_payload(self) -> None:
        """Sealing with the RFC key and nonce gives the RFC ciphertext."""
        keys = DerivedKeys(content_encryption_key=decode(CEK_B64), nonce=decode(NONCE_B64))
        assert encrypt_payload(PLAINTEXT, keys) == decode(CIPHERTEXT_B64)

    def test_encrypt_message(self, subscription_key) -> None:
        """Full encryption with the RFC salt and key gives the RFC body."""
        source = SequenceSource(decode(SALT_B64), decode(AS_PRIVATE_KEY_B64))

        message = encrypt_message(PLAINTEXT, subscription_key, random_source=source)

        assert message.salt == decode(SALT_B64)
        assert message.ephemeral_public_key == decode(AS_PUBLIC_KEY_B64)
        assert message.ciphertext == decode(CIPHERTEXT_B64)
        assert message.record_size == 4096
        assert encode_body(message) == decode(BODY_HEADER_B64) + decode(CIPHERTEXT_B64)

    def test_decrypt_rfc_body(self, ua_private_key) -> None:
        """The RFC body decrypts with the subscriber's private key."""
        body = decode(BODY_HEADER_B64) + decode(CIPHERTEXT_B64)
        message = decode_body(body)

        assert decrypt_message(message, ua_private_key, decode(AUTH_SECRET_B64)) == PLAINTEXT


class TestRoundTrip:
    """Test encrypt then decrypt as the subscriber."""

    @pytest.mark.parametrize("encoding", list(ContentEncoding))
    @pytest.mark.parametrize("payload_key,payload", TEST_PAYLOADS.items())
    def test_payload_round_trip(self, encoding, payload_key: str, payload: bytes) -> None:
        """Each payload decrypts back to the original bytes."""
        private_key, key = _random_subscriber()

        message = encrypt_message(payload, key, content_encoding=encoding)
        result = decrypt_message(message, private_key, key.auth)

        assert result == payload, f"Round trip mismatch for {payload_key}"

    @pytest.mark.parametrize("encoding", list(ContentEncoding))
    def test_padding_round_trip(self, encoding) -> None:
        """Padded messages grow by the padding and still decrypt."""
        private_key, key = _random_subscriber()

        plain = encrypt_message(b"hello", key, content_encoding=encoding)
        padded = encrypt_message(b"hello", key, content_encoding=encoding, padding=100)

        assert len(padded.ciphertext) == len(plain.ciphertext) + 100
        assert decrypt_message(padded, private_key, key.auth) == b"hello"

    def test_string_payload(self) -> None:
        """String payloads are UTF-8 encoded."""
        private_key, key = _random_subscriber()
        message = encrypt_message("Grüße", key)
        assert decrypt_message(message, private_key, key.auth) == "Grüße".encode("utf-8")

    def test_body_round_trip(self) -> None:
        """An encoded aes128gcm body decodes and decrypts."""
        private_key, key = _random_subscriber()
        message = encrypt_message(b"over the wire", key)

        decoded = decode_body(encode_body(message))

        assert decoded == message
        assert decrypt_message(decoded, private_key, key.auth) == b"over the wire"


class TestFreshness:
    """Test salt and key non-reuse."""

    def test_ciphertexts_differ(self) -> None:
        """Encrypting the same payload twice yields different output."""
        _, key = _random_subscriber()

        first = encrypt_message(b"same payload", key)
        second = encrypt_message(b"same payload", key)

        assert first.salt != second.salt
        assert first.ephemeral_public_key != second.ephemeral_public_key
        assert first.ciphertext != second.ciphertext


class TestFailures:
    """Test error handling."""

    def test_tampered_ciphertext(self) -> None:
        """Flipping a ciphertext bit fails authentication."""
        private_key, key = _random_subscriber()
        message = encrypt_message(b"integrity", key)
        tampered = bytearray(message.ciphertext)
        tampered[0] ^= 0x01

        body = encode_body(message)
        bad = decode_body(body[:86] + bytes(tampered))

        with pytest.raises(DecryptionError, match="tag"):
            decrypt_message(bad, private_key, key.auth)

    def test_wrong_auth_secret(self) -> None:
        """A different auth secret cannot decrypt."""
        private_key, key = _random_subscriber()
        message = encrypt_message(b"secret", key)

        with pytest.raises(DecryptionError):
            decrypt_message(message, private_key, os.urandom(16))

    def test_invalid_subscriber_key(self) -> None:
        """Malformed p256dh values are rejected when the key is built."""
        with pytest.raises(InvalidKeyError):
            SubscriptionKey(p256dh=b"\x04" + bytes(64), auth=os.urandom(16))

        with pytest.raises(InvalidKeyError, match="16 bytes"):
            SubscriptionKey.from_base64(AS_PUBLIC_KEY_B64, "c2hvcnQ")

    def test_negative_padding(self) -> None:
        """Negative padding is an encryption error."""
        _, key = _random_subscriber()
        with pytest.raises(EncryptionError):
            encrypt_message(b"x", key, content_encoding=ContentEncoding.AESGCM, padding=-1)

    def test_truncated_body(self) -> None:
        """Bodies shorter than the header are rejected."""
        with pytest.raises(EnvelopeError, match="too short"):
            decode_body(bytes(50))

    def test_invalid_sender_key_in_body(self) -> None:
        """A body carrying an off-curve sender key fails as a decryption error."""
        private_key, key = _random_subscriber()
        message = encrypt_message(b"hostile", key)
        forged = decode_body(encode_body(message)[:21] + b"\x04" + bytes(64) + message.ciphertext)

        with pytest.raises(DecryptionError, match="Key derivation"):
            decrypt_message(forged, private_key, key.auth)

    def test_wrong_auth_secret_length(self) -> None:
        """An auth secret of the wrong size fails as a decryption error."""
        private_key, key = _random_subscriber()
        message = encrypt_message(b"secret", key)

        with pytest.raises(DecryptionError, match="16 bytes"):
            decrypt_message(message, private_key, bytes(8))

    def test_unknown_content_encoding(self) -> None:
        """Unknown encodings are rejected before anything is encrypted."""
        _, key = _random_subscriber()
        source = SequenceSource()

        with pytest.raises(EncryptionError, match="content encoding"):
            encrypt_message(b"x", key, content_encoding="gzip", random_source=source)
        assert source.calls == []

    @pytest.mark.parametrize("encoding", list(ContentEncoding))
    def test_content_encoding_by_name(self, encoding) -> None:
        """Encodings given by name frame the message like the enum member."""
        private_key, key = _random_subscriber()

        by_name = encrypt_message(b"named", key, content_encoding=encoding.value)
        by_member = encrypt_message(b"named", key, content_encoding=encoding)

        assert by_name.content_encoding is encoding
        assert len(by_name.ciphertext) == len(by_member.ciphertext)
        assert decrypt_message(by_name, private_key, key.auth) == b"named"


class TestPayloadSize:
    """Test the push service body limit."""

    def test_largest_aes128gcm_payload(self) -> None:
        """3993 bytes is the largest payload fitting a 4096-byte body."""
        private_key, key = _random_subscriber()
        message = encrypt_message(bytes(3993), key)

        assert len(encode_body(message)) == MAX_BODY_SIZE
        assert decrypt_message(message, private_key, key.auth) == bytes(3993)

    def test_aes128gcm_too_large(self) -> None:
        """One byte more fails instead of truncating."""
        _, key = _random_subscriber()

        with pytest.raises(PayloadTooLargeError) as exc_info:
            encrypt_message(bytes(3994), key)

        assert exc_info.value.size == 4097
        assert exc_info.value.max_size == MAX_BODY_SIZE

    def test_aesgcm_limit(self) -> None:
        """aesgcm bodies carry no header, so the limit is 4078 bytes."""
        _, key = _random_subscriber()

        message = encrypt_message(bytes(4078), key, content_encoding=ContentEncoding.AESGCM)
        assert len(message.ciphertext) == MAX_BODY_SIZE

        with pytest.raises(PayloadTooLargeError):
            encrypt_message(bytes(4079), key, content_encoding=ContentEncoding.AESGCM)

    def test_padding_counts_towards_limit(self) -> None:
        """Padding is included in the size check."""
        _, key = _random_subscriber()
        with pytest.raises(PayloadTooLargeError):
            encrypt_message(bytes(3000), key, padding=1000)

    def test_configurable_limit(self) -> None:
        """A smaller service limit is honoured."""
        _, key = _random_subscriber()
        with pytest.raises(PayloadTooLargeError):
            encrypt_message(bytes(100), key, max_body_size=150)

    def test_limit_checked_before_randomness(self) -> None:
        """Oversized payloads fail without consuming random bytes."""
        _, key = _random_subscriber()
        source = SequenceSource()

        with pytest.raises(PayloadTooLargeError):
            encrypt_message(bytes(5000), key, random_source=source)

        assert source.calls == []


class TestFraming:
    """Test record padding layouts."""

    def test_aes128gcm_framing(self) -> None:
        """Plaintext, then the 0x02 delimiter, then zeros."""
        assert pad_plaintext(b"hi", ContentEncoding.AES128GCM, 3) == b"hi\x02\x00\x00\x00"

    def test_aesgcm_framing(self) -> None:
        """Big-endian pad length, zeros, then plaintext."""
        assert pad_plaintext(b"hi", ContentEncoding.AESGCM, 3) == b"\x00\x03\x00\x00\x00hi"
        assert pad_plaintext(b"hi", ContentEncoding.AESGCM) == b"\x00\x00hi"

    def test_invalid_framing(self) -> None:
        """Malformed records are rejected on the way back."""
        with pytest.raises(DecryptionError, match="delimiter"):
            unpad_plaintext(b"hi\x00\x00", ContentEncoding.AES128GCM)

        with pytest.raises(DecryptionError, match="padding"):
            unpad_plaintext(b"\x00\x05\x00", ContentEncoding.AESGCM)

        with pytest.raises(DecryptionError, match="padding"):
            unpad_plaintext(b"\x00\x01\x07hi", ContentEncoding.AESGCM)

    def test_short_ciphertext(self) -> None:
        """Ciphertexts shorter than the tag are rejected."""
        keys = DerivedKeys(content_encryption_key=bytes(16), nonce=bytes(12))
        with pytest.raises(DecryptionError, match="too short"):
            decrypt_payload(bytes(10), keys)
