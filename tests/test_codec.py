"""Tests for base64 key decoding and encoding."""

import os

import pytest
from webpusher.codec import Base64Variant, decode, encode, try_decode
from webpusher.types import DecodeError
from .test_vectors import AUTH_SECRET_B64, UA_PUBLIC_KEY_B64


class TestDecode:
    """Test ordered-attempt decoding."""

    @pytest.mark.parametrize(
        "text,variant",
        [
            ("+/8=", Base64Variant.STANDARD),
            ("+/8", Base64Variant.STANDARD_RAW),
            ("-_8=", Base64Variant.URL_SAFE),
            ("-_8", Base64Variant.URL_SAFE_RAW),
        ],
    )
    def test_variant_is_reported(self, text: str, variant: Base64Variant) -> None:
        """Each variant decodes to the same bytes and is tagged."""
        result = try_decode(text)

        assert result.ok
        assert result.variant is variant
        assert result.data == b"\xfb\xff"

    def test_standard_is_tried_first(self) -> None:
        """Text valid in every variant is tagged as standard."""
        result = try_decode("AAAA")
        assert result.variant is Base64Variant.STANDARD
        assert result.data == bytes(3)

    def test_subscription_keys(self) -> None:
        """Browser-issued URL-safe keys decode to the expected sizes."""
        assert len(decode(UA_PUBLIC_KEY_B64)) == 65
        assert len(decode(AUTH_SECRET_B64)) == 16

    def test_whitespace_is_ignored(self) -> None:
        """Surrounding whitespace from copy-pasted keys is tolerated."""
        assert decode("  AAAA\n") == bytes(3)

    @pytest.mark.parametrize("text", ["###", "+_8=", "A", "AA=A", "===="])
    def test_invalid_text(self, text: str) -> None:
        """Malformed text fails with DecodeError."""
        assert not try_decode(text).ok
        with pytest.raises(DecodeError):
            decode(text)

    def test_non_string_rejected(self) -> None:
        """Bytes input is rejected rather than guessed at."""
        with pytest.raises(DecodeError):
            decode(b"AAAA")


class TestEncode:
    """Test encoding."""

    def test_default_is_unpadded_url_safe(self) -> None:
        """Default output uses the URL-safe alphabet without padding."""
        assert encode(b"\xfb\xff") == "-_8"

    @pytest.mark.parametrize("variant", list(Base64Variant))
    def test_round_trip(self, variant: Base64Variant) -> None:
        """decode(encode(data)) returns the original bytes for every variant."""
        for size in (0, 1, 2, 3, 16, 32, 65):
            data = os.urandom(size)
            assert decode(encode(data, variant)) == data

    def test_padded_variants_keep_padding(self) -> None:
        """Padded variants emit '=' padding."""
        assert encode(b"\xfb\xff", Base64Variant.STANDARD) == "+/8="
        assert encode(b"\xfb\xff", Base64Variant.URL_SAFE) == "-_8="
