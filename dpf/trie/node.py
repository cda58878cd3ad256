"""
DPF • Trie — node types, encoding and hashing

Three node kinds, each encoded as a canonical CBOR array whose first element
is a kind tag:

    LeafNode       [0, hp(path, leaf=True),  leaf_bytes]
    ExtensionNode  [1, hp(path, leaf=False), child_hash]
    BranchNode     [2, [child_hash or b"", ... x16]]

Children are always referenced by keccak-256 hash (never inlined), so every
proof step is a fixed 32-byte link. Branches carry no value slot: all keys are
64 nibbles long, so no key ends at a branch.

`decode_node` is the strict inverse used by the verifier; it never trusts the
shape of its input.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import cached_property
from typing import Optional, Tuple, Union

from ..constants import ROOT_BYTES
from ..utils.cbor import dumps_canonical, loads_canonical
from ..utils.hash import keccak_256
from .nibbles import Nibbles, hp_decode, hp_encode

KIND_LEAF = 0
KIND_EXTENSION = 1
KIND_BRANCH = 2

#: Root of a trie without leaves: keccak-256 of the CBOR empty byte string.
EMPTY_ROOT: bytes = keccak_256(dumps_canonical(b""))


@dataclass(frozen=True)
class LeafNode:
    path: Nibbles
    value: bytes

    @cached_property
    def encoded(self) -> bytes:
        return dumps_canonical([KIND_LEAF, hp_encode(self.path, leaf=True), self.value])

    @cached_property
    def hash(self) -> bytes:
        return keccak_256(self.encoded)


@dataclass(frozen=True)
class ExtensionNode:
    path: Nibbles
    child: "Node"

    @cached_property
    def encoded(self) -> bytes:
        return dumps_canonical([KIND_EXTENSION, hp_encode(self.path, leaf=False), self.child.hash])

    @cached_property
    def hash(self) -> bytes:
        return keccak_256(self.encoded)


@dataclass(frozen=True)
class BranchNode:
    children: Tuple[Optional["Node"], ...]

    def __post_init__(self) -> None:
        if len(self.children) != 16:
            raise ValueError("branch node needs exactly 16 child slots")

    @cached_property
    def encoded(self) -> bytes:
        refs = [c.hash if c is not None else b"" for c in self.children]
        return dumps_canonical([KIND_BRANCH, refs])

    @cached_property
    def hash(self) -> bytes:
        return keccak_256(self.encoded)


Node = Union[LeafNode, ExtensionNode, BranchNode]


# --------------------------------------------------------------------------- #
# Decoding (verifier side)
# --------------------------------------------------------------------------- #


@dataclass(frozen=True)
class DecodedNode:
    """
    Shape-checked view of an encoded node. Exactly one of `value`, `child`
    and `children` is set, according to `kind`.
    """
    kind: int
    path: Nibbles = ()
    value: Optional[bytes] = None
    child: Optional[bytes] = None
    children: Optional[Tuple[bytes, ...]] = None


def decode_node(data: bytes) -> DecodedNode:
    """
    Decode one node encoding.

    Raises:
        ValueError on any framing, kind or width problem.
    """
    items = loads_canonical(data)
    if not isinstance(items, list) or not items:
        raise ValueError("node must be a non-empty array")
    kind = items[0]
    if isinstance(kind, bool) or not isinstance(kind, int):
        raise ValueError("node kind must be an integer tag")

    if kind == KIND_LEAF or kind == KIND_EXTENSION:
        if len(items) != 3:
            raise ValueError("leaf/extension node must have 3 elements")
        _, hp, payload = items
        if not isinstance(hp, bytes) or not isinstance(payload, bytes):
            raise ValueError("leaf/extension fields must be byte strings")
        path, is_leaf = hp_decode(hp)
        if is_leaf != (kind == KIND_LEAF):
            raise ValueError("hex-prefix flag disagrees with node kind")
        if kind == KIND_LEAF:
            return DecodedNode(kind=kind, path=path, value=payload)
        if not path:
            raise ValueError("extension node with empty path")
        if len(payload) != ROOT_BYTES:
            raise ValueError("extension child reference must be 32 bytes")
        return DecodedNode(kind=kind, path=path, child=payload)

    if kind == KIND_BRANCH:
        if len(items) != 2 or not isinstance(items[1], list) or len(items[1]) != 16:
            raise ValueError("branch node must carry 16 child slots")
        refs = items[1]
        for ref in refs:
            if not isinstance(ref, bytes) or len(ref) not in (0, ROOT_BYTES):
                raise ValueError("branch child reference must be empty or 32 bytes")
        return DecodedNode(kind=kind, children=tuple(refs))

    raise ValueError(f"unknown node kind {kind!r}")


__all__ = [
    "KIND_LEAF",
    "KIND_EXTENSION",
    "KIND_BRANCH",
    "EMPTY_ROOT",
    "LeafNode",
    "ExtensionNode",
    "BranchNode",
    "Node",
    "DecodedNode",
    "decode_node",
]
