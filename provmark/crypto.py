"""
Hash, key-extension and obfuscation primitives.

- Hash: SHA-256 (stdlib), optionally truncated to a link length
- Key extension: HKDF-SHA256, empty salt and info, 32-byte output
- Obfuscation: ChaCha20 keyed by the extended key, IV = reversed last
  12 bytes of the extended key, block counter 0

Obfuscation is a XOR with a keystream fully determined by the key, so
``obfuscate(key, obfuscate(key, m)) == m``. The key travels in the clear
as the message prefix: this hides field structure, not content.

The `cryptography` package is lazily imported, same pattern as the
optional layers that wrap third-party crypto.
"""

from __future__ import annotations

import hashlib

from provmark import EXTENDED_KEY_LENGTH, OBFUSCATION_IV_LENGTH


def _import_cryptography():
    """Lazily import the cryptography primitives.

    Raises ImportError with a helpful message if not installed.
    """
    try:
        from cryptography.hazmat.primitives import hashes
        from cryptography.hazmat.primitives.ciphers import Cipher, algorithms
        from cryptography.hazmat.primitives.kdf.hkdf import HKDF

        return hashes, Cipher, algorithms, HKDF
    except ImportError:
        raise ImportError(
            "cryptography is required for provenance marks. "
            "Install with: pip install provenance-mark"
        )


def sha256(*parts: bytes) -> bytes:
    """SHA-256 over the concatenation of ``parts``."""
    h = hashlib.sha256()
    for part in parts:
        h.update(part)
    return h.digest()


def sha256_prefix(length: int, *parts: bytes) -> bytes:
    """SHA-256 over ``parts``, truncated to the first ``length`` bytes."""
    if not 0 < length <= 32:
        raise ValueError(f"Prefix length must be in [1, 32], got {length}")
    return sha256(*parts)[:length]


def extend_key(data: bytes) -> bytes:
    """Stretch arbitrary key material to 32 bytes with HKDF-SHA256.

    Salt and info are empty. An absent HKDF salt is defined as a string of
    zeros the size of the hash output, which HMAC treats identically to an
    empty key.
    """
    hashes, _, _, HKDF = _import_cryptography()
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=EXTENDED_KEY_LENGTH,
        salt=None,
        info=None,
    )
    return hkdf.derive(bytes(data))


def obfuscate(key: bytes, message: bytes) -> bytes:
    """XOR ``message`` with the ChaCha20 keystream derived from ``key``.

    Self-inverse for a fixed key. Empty input is returned unchanged.
    """
    if not message:
        return bytes(message)

    _, Cipher, algorithms, _ = _import_cryptography()

    extended = extend_key(key)
    iv = extended[-OBFUSCATION_IV_LENGTH:][::-1]
    # cryptography takes a 16-byte nonce: 4-byte LE block counter + 12-byte IV
    nonce = (0).to_bytes(4, "little") + iv
    encryptor = Cipher(algorithms.ChaCha20(extended, nonce), mode=None).encryptor()
    return encryptor.update(bytes(message)) + encryptor.finalize()
