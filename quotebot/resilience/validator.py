"""Heuristic classification of raw provider responses before JSON parsing.

Anti-bot layers in front of the primary provider like to answer API calls
with HTML challenge pages, truncated gzip streams, or bodies whose encoding
was mangled in transit.  ``classify`` decides whether a body is worth handing
to a JSON parser at all.  Rules are applied in this order:

1. blank body                                   -> EMPTY
2. starts with ``<`` (after leading whitespace)  -> HTML_ERROR_PAGE
3. control bytes, mostly high-bit leading text,
   or a compression magic prefix                -> BINARY_OR_CORRUPTED
4. first non-whitespace char is ``{`` or ``[``  -> VALID_JSON
5. anything else                                -> BINARY_OR_CORRUPTED
"""

from __future__ import annotations

import enum
import re


class PayloadKind(str, enum.Enum):
    """Outcome of classifying a response body."""

    VALID_JSON = "valid_json"
    HTML_ERROR_PAGE = "html_error_page"
    BINARY_OR_CORRUPTED = "binary_or_corrupted"
    EMPTY = "empty"


# Tab, LF and CR are the only control characters allowed in a text body.
_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")

_HIGH_BIT_WINDOW = 50
_HIGH_BIT_MAX_RATIO = 0.2

# gzip, zip, bzip2, zstd, zlib (default / fastest / best compression)
_COMPRESSION_MAGIC: tuple[str, ...] = tuple(
    magic.decode("latin-1")
    for magic in (
        b"\x1f\x8b",
        b"PK\x03\x04",
        b"BZh",
        b"\x28\xb5\x2f\xfd",
        b"\x78\x9c",
        b"\x78\x01",
        b"\x78\xda",
    )
)

_PREVIEW_LENGTH = 100

# Leading whitespace for the blank, HTML and JSON checks. Control bytes are never stripped.
_WHITESPACE = " \t\r\n"


def _as_text(body: str | bytes | None) -> str:
    """Map bytes one-to-one onto code points so byte-level heuristics still apply."""
    if body is None:
        return ""
    if isinstance(body, (bytes, bytearray)):
        return bytes(body).decode("latin-1")
    return body


def _high_bit_ratio(text: str) -> float:
    window = text[:_HIGH_BIT_WINDOW]
    if not window:
        return 0.0
    high = sum(1 for ch in window if ord(ch) > 127)
    return high / len(window)


def looks_binary(text: str) -> bool:
    """True if *text* carries control bytes, compression magic, or mostly high-bit characters."""
    if _CONTROL_RE.search(text):
        return True
    if text.startswith(_COMPRESSION_MAGIC):
        return True
    return _high_bit_ratio(text.lstrip(_WHITESPACE)) > _HIGH_BIT_MAX_RATIO


def classify(body: str | bytes | None) -> PayloadKind:
    """Classify a raw response body."""
    text = _as_text(body)
    stripped = text.lstrip(_WHITESPACE)

    if not stripped:
        return PayloadKind.EMPTY
    if stripped.startswith("<"):
        return PayloadKind.HTML_ERROR_PAGE
    if looks_binary(text):
        return PayloadKind.BINARY_OR_CORRUPTED
    if stripped[0] in "{[":
        return PayloadKind.VALID_JSON
    return PayloadKind.BINARY_OR_CORRUPTED


def preview(body: str | bytes | None, limit: int = _PREVIEW_LENGTH) -> str:
    """Short printable excerpt of *body* that is safe to put in a log line."""
    text = _as_text(body)[:limit]
    return "".join(ch if ch.isprintable() and ord(ch) < 128 else "?" for ch in text)
