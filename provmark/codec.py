"""
Transport adapters — moving a mark's message in and out of text.

    CBOR envelope:  tag(0x50524F56, [resolution_tag, message])
    URL:            <base>?provenance=<urlsafe base64 of the envelope, unpadded>
    Words:          any WordCodec (encode bytes -> str, decode str -> bytes)

The raw message does not say which resolution produced it, so every
transport either carries the tag (envelope, URL) or needs it supplied
(words).
"""

from __future__ import annotations

import base64
import binascii
from typing import Protocol
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import cbor2

from provmark import MARK_CBOR_TAG, URL_QUERY_PARAM
from provmark.errors import MarkError, ResolutionError
from provmark.info import decode_info
from provmark.mark import ProvenanceMark
from provmark.resolution import Resolution


class CodecError(ValueError):
    """A transport encoding could not be decoded into a mark."""


class WordCodec(Protocol):
    """Human-readable byte encoding supplied by the caller."""

    def encode(self, data: bytes) -> str: ...

    def decode(self, text: str) -> bytes: ...


# --- CBOR envelope ---


def to_cbor(mark: ProvenanceMark, tagged: bool = True) -> bytes:
    body = [int(mark.resolution), mark.message]
    if tagged:
        return cbor2.dumps(cbor2.CBORTag(MARK_CBOR_TAG, body))
    return cbor2.dumps(body)


def from_cbor(data: bytes) -> ProvenanceMark:
    """Decode a tagged or untagged envelope."""
    if not data:
        raise CodecError("Empty CBOR envelope")
    try:
        item = decode_info(data)
    except ValueError as e:
        raise CodecError(f"Invalid CBOR envelope: {e}") from e

    if isinstance(item, cbor2.CBORTag):
        if item.tag != MARK_CBOR_TAG:
            raise CodecError(f"Unexpected CBOR tag {item.tag:#x}")
        item = item.value

    # tag contents decode as tuples on newer cbor2
    if not isinstance(item, (list, tuple)) or len(item) != 2:
        raise CodecError("Envelope must be a two-element array")
    tag, message = item
    if not isinstance(tag, int) or isinstance(tag, bool) or not isinstance(message, bytes):
        raise CodecError("Envelope must be [int, bytes]")
    try:
        return ProvenanceMark.from_message(Resolution.from_tag(tag), message)
    except (MarkError, ResolutionError) as e:
        raise CodecError(f"Invalid mark in envelope: {e}") from e


# --- URL ---


def url_encoding(mark: ProvenanceMark) -> str:
    return base64.urlsafe_b64encode(to_cbor(mark)).rstrip(b"=").decode("ascii")


def from_url_encoding(text: str) -> ProvenanceMark:
    text = text.strip()
    padded = text + "=" * (-len(text) % 4)
    try:
        data = base64.urlsafe_b64decode(padded.encode("ascii"))
    except (binascii.Error, UnicodeEncodeError) as e:
        raise CodecError(f"Invalid URL encoding: {e}") from e
    return from_cbor(data)


def mark_url(mark: ProvenanceMark, base: str) -> str:
    """Append the mark to ``base`` as the ``provenance`` query parameter."""
    parts = urlsplit(base)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.append((URL_QUERY_PARAM, url_encoding(mark)))
    return urlunsplit(parts._replace(query=urlencode(query)))


def mark_from_url(url: str) -> ProvenanceMark:
    """Find the ``provenance`` query parameter (any case) and decode it."""
    for name, value in parse_qsl(urlsplit(url).query, keep_blank_values=True):
        if name.lower() == URL_QUERY_PARAM:
            return from_url_encoding(value)
    raise CodecError(f"No {URL_QUERY_PARAM!r} query parameter in URL")


# --- words ---


def to_words(mark: ProvenanceMark, codec: WordCodec) -> str:
    return codec.encode(mark.message)


def from_words(resolution: Resolution, text: str, codec: WordCodec) -> ProvenanceMark:
    try:
        message = codec.decode(text)
    except ValueError as e:
        raise CodecError(f"Invalid word encoding: {e}") from e
    try:
        return ProvenanceMark.from_message(resolution, message)
    except MarkError as e:
        raise CodecError(f"Invalid mark in word encoding: {e}") from e
