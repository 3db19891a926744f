"""
Base64 decoding and encoding for subscription and VAPID keys.

Browsers and server-side stores hand out key material in every base64 flavour
(standard or URL-safe alphabet, with or without padding). Decoding walks the
variants in a fixed order and reports which one matched.
"""

import base64
import binascii
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .types import DecodeError


class Base64Variant(Enum):
    """Supported base64 flavours, in decode attempt order."""
    STANDARD = "standard"
    STANDARD_RAW = "standard-raw"
    URL_SAFE = "url-safe"
    URL_SAFE_RAW = "url-safe-raw"


_ALTCHARS = {
    Base64Variant.STANDARD: None,
    Base64Variant.STANDARD_RAW: None,
    Base64Variant.URL_SAFE: b"-_",
    Base64Variant.URL_SAFE_RAW: b"-_",
}

_UNPADDED = (Base64Variant.STANDARD_RAW, Base64Variant.URL_SAFE_RAW)


@dataclass(frozen=True)
class DecodeResult:
    """Outcome of an ordered decode attempt."""
    variant: Optional[Base64Variant]
    data: bytes = b""

    @property
    def ok(self) -> bool:
        """Whether any variant decoded the text."""
        return self.variant is not None


def _decode_variant(text: str, variant: Base64Variant) -> Optional[bytes]:
    """Decode with a single variant, or return None if it does not apply."""
    if variant in _UNPADDED:
        if "=" in text:
            return None
        text += "=" * (-len(text) % 4)

    altchars = _ALTCHARS[variant]
    if altchars is not None and ("+" in text or "/" in text):
        return None

    try:
        return base64.b64decode(text, altchars=altchars, validate=True)
    except (binascii.Error, ValueError):
        return None


def try_decode(text: str) -> DecodeResult:
    """
    Decode base64 text, trying each variant in order.

    Order: standard padded, standard unpadded, URL-safe padded, URL-safe
    unpadded.

    Args:
        text: Base64 text (surrounding whitespace is ignored)

    Returns:
        DecodeResult tagged with the matching variant, or with variant None
        if nothing matched
    """
    text = text.strip()
    for variant in Base64Variant:
        data = _decode_variant(text, variant)
        if data is not None:
            return DecodeResult(variant=variant, data=data)
    return DecodeResult(variant=None)


def decode(text: str) -> bytes:
    """
    Decode base64 text in any supported variant.

    Raises:
        DecodeError: If no variant parses the text
    """
    if not isinstance(text, str):
        raise DecodeError(f"Expected str, got {type(text).__name__}")

    result = try_decode(text)
    if not result.ok:
        raise DecodeError(f"Not valid base64 ({len(text)} characters)")
    return result.data


def encode(data: bytes, variant: Base64Variant = Base64Variant.URL_SAFE_RAW) -> str:
    """Encode bytes as base64 text; unpadded URL-safe unless told otherwise."""
    encoded = base64.b64encode(data, altchars=_ALTCHARS[variant]).decode("ascii")
    if variant in _UNPADDED:
        encoded = encoded.rstrip("=")
    return encoded
