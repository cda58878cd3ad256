"""
DPF utilities — hashing and hex helpers

- Keccak-256 (Ethereum flavour, not NIST SHA3) via `pycryptodome`
- Hex helpers (`to_hex`, `from_hex`) with 0x-prefix handling

Trie node hashes, trie keys and policy roots are all keccak-256 digests.
"""

from __future__ import annotations

import binascii
from typing import Union

from Crypto.Hash import keccak as _keccak

BytesLike = Union[bytes, bytearray, memoryview]


def keccak_256(data: BytesLike) -> bytes:
    """Return Keccak-256(bytes(data))."""
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise TypeError("keccak_256 expects bytes-like input")
    h = _keccak.new(digest_bits=256)
    h.update(bytes(data))
    return h.digest()


def keccak_256_hex(data: BytesLike) -> str:
    """Return '0x' + lowercase hex of Keccak-256(bytes(data))."""
    return to_hex(keccak_256(data))


def to_hex(b: BytesLike, prefix: str = "0x") -> str:
    """
    Convert bytes to lower-case hex string with optional prefix (default `0x`).
    """
    if not isinstance(b, (bytes, bytearray, memoryview)):
        raise TypeError("to_hex expects bytes-like input")
    return (prefix or "") + binascii.hexlify(bytes(b)).decode("ascii")


def from_hex(s: Union[str, BytesLike]) -> bytes:
    """
    Parse hex into bytes. Accepts strings with/without 0x prefix and ignores
    leading/trailing whitespace. Odd-length input is rejected: every field we
    parse (addresses, selectors, roots) is whole bytes.
    """
    if isinstance(s, (bytes, bytearray, memoryview)):
        s = bytes(s).decode("ascii")
    if not isinstance(s, str):
        raise TypeError("from_hex expects str or bytes-like input")

    s = s.strip().lower()
    if s.startswith("0x"):
        s = s[2:]
    if len(s) % 2:
        raise ValueError(f"odd-length hex string: {s!r}")
    try:
        return binascii.unhexlify(s)
    except binascii.Error as e:
        raise ValueError(f"invalid hex string: {e}") from e


__all__ = ["BytesLike", "keccak_256", "keccak_256_hex", "to_hex", "from_hex"]
