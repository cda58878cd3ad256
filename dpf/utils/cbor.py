"""
DPF utilities — canonical CBOR

Thin wrappers around `cbor2` in canonical mode (RFC 8949 deterministic
encoding). Leaf encodings, trie nodes and proofs on the wire all go through
here so every byte that feeds a hash is produced the same way.
"""

from __future__ import annotations

from typing import Any

import cbor2

#: Errors `cbor2.loads` can raise on hostile input, besides CBORDecodeError.
DECODE_ERRORS = (cbor2.CBORDecodeError, ValueError, TypeError, RecursionError)


def dumps_canonical(obj: Any) -> bytes:
    """Deterministic CBOR encoding of `obj`."""
    return cbor2.dumps(obj, canonical=True)


def loads_canonical(data: bytes) -> Any:
    """
    Decode `data` and require that it re-encodes to the same bytes.

    Raises:
        ValueError if the input is not canonical CBOR.
    """
    try:
        obj = cbor2.loads(data)
    except DECODE_ERRORS as e:
        raise ValueError(f"invalid CBOR: {e}") from e
    if cbor2.dumps(obj, canonical=True) != bytes(data):
        raise ValueError("CBOR is not in canonical form")
    return obj


__all__ = ["DECODE_ERRORS", "dumps_canonical", "loads_canonical"]
