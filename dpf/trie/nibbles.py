"""
DPF • Trie — nibble paths and hex-prefix encoding

Trie keys are walked four bits at a time. Partial paths stored in leaf and
extension nodes use Ethereum's hex-prefix (HP) encoding:

    flag nibble = 2 * is_leaf + is_odd
    odd  length -> [flag, n0], [n1, n2], ...
    even length -> [flag, 0],  [n0, n1], ...

The flag makes the encoding self-delimiting and binds the node kind into the
hashed bytes.
"""

from __future__ import annotations

from typing import Sequence, Tuple

Nibbles = Tuple[int, ...]


def to_nibbles(data: bytes) -> Nibbles:
    """Split bytes into high/low nibbles, most significant first."""
    out = []
    for b in data:
        out.append(b >> 4)
        out.append(b & 0x0F)
    return tuple(out)


def hp_encode(path: Sequence[int], leaf: bool) -> bytes:
    """Hex-prefix encode a nibble path."""
    odd = len(path) % 2
    flag = (2 if leaf else 0) + odd
    if odd:
        nibs = [flag] + list(path)
    else:
        nibs = [flag, 0] + list(path)
    return bytes((nibs[i] << 4) | nibs[i + 1] for i in range(0, len(nibs), 2))


def hp_decode(data: bytes) -> Tuple[Nibbles, bool]:
    """
    Decode hex-prefix bytes into (path, is_leaf).

    Raises:
        ValueError on an empty input, unknown flag or non-zero padding.
    """
    if not data:
        raise ValueError("empty hex-prefix path")
    nibs = to_nibbles(data)
    flag = nibs[0]
    if flag > 3:
        raise ValueError(f"invalid hex-prefix flag {flag}")
    leaf = bool(flag & 2)
    if flag & 1:
        return nibs[1:], leaf
    if nibs[1] != 0:
        raise ValueError("non-zero hex-prefix padding nibble")
    return nibs[2:], leaf


def common_prefix_length(a: Sequence[int], b: Sequence[int]) -> int:
    n = min(len(a), len(b))
    i = 0
    while i < n and a[i] == b[i]:
        i += 1
    return i


__all__ = ["Nibbles", "to_nibbles", "hp_encode", "hp_decode", "common_prefix_length"]
