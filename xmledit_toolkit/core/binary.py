from __future__ import annotations

"""Text encoding of binary element content.

Elements whose schema content type designates binary data store their
payload as base64 text, gzip-compressed first by default.
"""

import base64
import binascii
import gzip
import zlib

__all__ = ["encode_binary", "decode_binary"]


def encode_binary(raw: bytes, *, compress: bool = True) -> str:
    """Return *raw* as base64 text, gzip-compressed first when *compress* is set."""
    payload = gzip.compress(raw) if compress else raw
    return base64.b64encode(payload).decode("ascii")


def decode_binary(text: str, *, compress: bool = True) -> bytes:
    """Inverse of :func:`encode_binary` called with the same *compress* flag.

    Raises
    ------
    ValueError
        If *text* is not valid base64, or *compress* is set and the payload
        is not a valid gzip stream.
    """
    cleaned = "".join((text or "").split())
    try:
        payload = base64.b64decode(cleaned, validate=True)
    except binascii.Error as exc:
        raise ValueError(f"Content is not valid base64: {exc}") from exc
    if not compress:
        return payload
    try:
        return gzip.decompress(payload)
    except (OSError, EOFError, zlib.error) as exc:
        raise ValueError(f"Content is not a valid gzip stream: {exc}") from exc
