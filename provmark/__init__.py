"""
Provenance marks — self-verifying hash-chained records for published artifacts.

Architecture:
    Mark:       key || obfuscate(key, chainID || hash || seq || date || info)
    Chain:      mark N's hash commits to mark N+1's key; N+1 reveals it
    Generator:  single-writer state machine (seed, chainID, nextSeq, rngState)

Four resolutions trade message size for counter range, hash strength and
timestamp granularity:

    LOW       16 bytes   4-byte links, 2-byte seq, 2-byte day date
    MEDIUM    32 bytes   8-byte links, 4-byte seq, 4-byte second date
    QUARTILE  58 bytes  16-byte links, 4-byte seq, 6-byte millisecond date
    HIGH     106 bytes  32-byte links, 4-byte seq, 6-byte millisecond date
"""

from datetime import datetime, timezone
from pathlib import Path

__version__ = "0.1.0"

# Primitive sizes
SEED_LENGTH = 32
RNG_STATE_LENGTH = 32  # four little-endian uint64 words
EXTENDED_KEY_LENGTH = 32  # HKDF-SHA256 output, also the ChaCha20 key
OBFUSCATION_IV_LENGTH = 12  # IETF ChaCha20 nonce

# Date codecs
REFERENCE_EPOCH = datetime(2001, 1, 1, tzinfo=timezone.utc)
PACKED_DATE_BASE_YEAR = 2023  # 7-bit year offset: 2023..2150
MAX_MILLIS_6_BYTES = 0xE5940A78A7FF  # 9999-12-31T23:59:59.999Z

# Transport
MARK_CBOR_TAG = 0x50524F56  # "PROV"
URL_QUERY_PARAM = "provenance"
IDENTIFIER_LENGTH = 4  # leading hash bytes shown in str(mark)

# Generator state files
STATE_DIR = Path.home() / ".provmark"
STATE_FILE_MODE = 0o600

from provmark.resolution import Resolution  # noqa: E402
from provmark.mark import (  # noqa: E402
    ProvenanceMark,
    MarkError,
    ShapeError,
    RangeError,
    InfoError,
    is_sequence_valid,
)
from provmark.generator import ProvenanceMarkGenerator  # noqa: E402

__all__ = [
    "Resolution",
    "ProvenanceMark",
    "ProvenanceMarkGenerator",
    "MarkError",
    "ShapeError",
    "RangeError",
    "InfoError",
    "is_sequence_valid",
]
