"""
Info payload codec — CBOR via ``cbor2``.

A mark never interprets its info payload. It only needs the payload
encoded deterministically, checked for well-formedness on decode, and
handed back to the caller on request.
"""

from __future__ import annotations

import io
from typing import Any

import cbor2


def encode_info(value: Any) -> bytes:
    """Encode ``value`` as canonical CBOR.

    ``None`` means no info and encodes to empty bytes.
    """
    if value is None:
        return b""
    try:
        return cbor2.dumps(value, canonical=True)
    except cbor2.CBOREncodeError as e:
        raise TypeError(f"Info value is not CBOR-encodable: {e}") from e


def decode_info(data: bytes) -> Any:
    """Decode a single CBOR item occupying all of ``data``.

    Raises ValueError on malformed input or trailing bytes.
    """
    if not data:
        return None
    fp = io.BytesIO(bytes(data))
    try:
        value = cbor2.CBORDecoder(fp).decode()
    except cbor2.CBORDecodeError as e:
        raise ValueError(f"Malformed CBOR: {e}") from e
    if fp.tell() != len(data):
        raise ValueError(f"Trailing bytes after CBOR item: {len(data) - fp.tell()}")
    return value


def validate_info(data: bytes) -> bool:
    """True if ``data`` is empty or exactly one well-formed CBOR item."""
    try:
        decode_info(data)
    except ValueError:
        return False
    return True
