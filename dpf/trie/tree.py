"""
DPF • Trie — Merkle-Patricia trie over policy leaves

The trie is a *secure* trie: a leaf is stored under the 64-nibble path
`keccak256(leaf)`, never under its raw bytes. Paths are therefore uniformly
distributed and fixed length, and the node layout is a pure function of the
leaf *set*:

  • insertion order never affects the root (nodes are rebuilt from the sorted
    key set, not mutated incrementally)
  • inserting an existing leaf is a no-op (set semantics)

Typical usage
-------------
    from dpf.trie import PatriciaTrie, verify

    t = PatriciaTrie(leaves)
    root = t.root()
    proof = t.prove(leaves[0])
    assert verify(proof, leaves[0], root)

Module-level `build_root` / `membership_proof` are the one-shot forms used by
publishers that hold the full leaf set.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from ..errors import ProofNotFound
from ..utils.hash import keccak_256, to_hex
from .nibbles import Nibbles, common_prefix_length, to_nibbles
from .node import EMPTY_ROOT, BranchNode, ExtensionNode, LeafNode, Node
from .proofs import MembershipProof

log = logging.getLogger(__name__)


def leaf_path(leaf: bytes) -> Nibbles:
    """Trie path of a leaf: the nibbles of keccak256(leaf)."""
    return to_nibbles(keccak_256(leaf))


class PatriciaTrie:
    """
    A set of leaves with a lazily (re)built Merkle-Patricia node structure.
    """

    def __init__(self, leaves: Iterable[bytes] = ()) -> None:
        self._entries: Dict[Nibbles, bytes] = {}
        self._root_node: Optional[Node] = None
        self._stale = True
        for leaf in leaves:
            self.insert(leaf)

    # ---------------- set operations ----------------

    def insert(self, leaf: bytes) -> bool:
        """Add a leaf. Returns False if it was already present."""
        leaf = _as_leaf(leaf)
        path = leaf_path(leaf)
        if path in self._entries:
            return False
        self._entries[path] = leaf
        self._stale = True
        return True

    def remove(self, leaf: bytes) -> bool:
        """Remove a leaf. Returns False if it was not present."""
        leaf = _as_leaf(leaf)
        if self._entries.pop(leaf_path(leaf), None) is None:
            return False
        self._stale = True
        return True

    def __contains__(self, leaf: object) -> bool:
        if not isinstance(leaf, (bytes, bytearray, memoryview)):
            return False
        return leaf_path(bytes(leaf)) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[bytes]:
        return iter(sorted(self._entries.values()))

    # ---------------- structure ----------------

    def root_node(self) -> Optional[Node]:
        if self._stale:
            self._root_node = _build(sorted(self._entries.items()), 0)
            self._stale = False
            log.debug("trie rebuilt", extra={"leaves": len(self._entries)})
        return self._root_node

    def root(self) -> bytes:
        node = self.root_node()
        return EMPTY_ROOT if node is None else node.hash

    def lookup(self, path: Sequence[int]) -> Optional[bytes]:
        """
        Walk the node structure along a nibble path and return the leaf stored
        there, or None.
        """
        path = tuple(path)
        node = self.root_node()
        i = 0
        while node is not None:
            if isinstance(node, LeafNode):
                return node.value if path[i:] == node.path else None
            if isinstance(node, ExtensionNode):
                end = i + len(node.path)
                if path[i:end] != node.path:
                    return None
                i = end
                node = node.child
                continue
            if i >= len(path):
                return None
            node = node.children[path[i]]
            i += 1
        return None

    def get(self, leaf: bytes) -> Optional[bytes]:
        """Lookup by leaf content (hashes the leaf into its path)."""
        return self.lookup(leaf_path(_as_leaf(leaf)))

    def prove(self, leaf: bytes) -> MembershipProof:
        """
        Build a membership proof for `leaf`.

        Raises:
            ProofNotFound if the leaf is not in the trie.
        """
        leaf = _as_leaf(leaf)
        path = leaf_path(leaf)
        nodes: List[bytes] = []
        node = self.root_node()
        i = 0
        while node is not None:
            nodes.append(node.encoded)
            if isinstance(node, LeafNode):
                if path[i:] == node.path and node.value == leaf:
                    return MembershipProof(nodes=tuple(nodes))
                break
            if isinstance(node, ExtensionNode):
                end = i + len(node.path)
                if path[i:end] != node.path:
                    break
                i = end
                node = node.child
                continue
            node = node.children[path[i]]
            i += 1
        raise ProofNotFound(
            "leaf not present in trie",
            data={"leaf_hash": to_hex(keccak_256(leaf)), "root": to_hex(self.root())},
        )


# --------------------------------------------------------------------------- #
# Construction
# --------------------------------------------------------------------------- #


def _build(items: Sequence[Tuple[Nibbles, bytes]], depth: int) -> Optional[Node]:
    """
    Build the subtrie for `items` (sorted by path, all sharing path[:depth]).
    """
    if not items:
        return None
    if len(items) == 1:
        path, value = items[0]
        return LeafNode(path=path[depth:], value=value)

    # Sorted input: the prefix shared by all keys is the prefix of first & last.
    first, last = items[0][0], items[-1][0]
    shared = common_prefix_length(first[depth:], last[depth:])
    if shared:
        return ExtensionNode(path=first[depth:depth + shared], child=_build(items, depth + shared))

    buckets: List[List[Tuple[Nibbles, bytes]]] = [[] for _ in range(16)]
    for path, value in items:
        buckets[path[depth]].append((path, value))
    return BranchNode(children=tuple(_build(b, depth + 1) if b else None for b in buckets))


def _as_leaf(leaf: object) -> bytes:
    if isinstance(leaf, bytes):
        return leaf
    if isinstance(leaf, (bytearray, memoryview)):
        return bytes(leaf)
    raise TypeError(f"leaf must be bytes, got {type(leaf).__name__}")


# --------------------------------------------------------------------------- #
# One-shot helpers
# --------------------------------------------------------------------------- #


def build_root(leaves: Iterable[bytes]) -> bytes:
    """Root of the trie holding exactly `leaves` (order and duplicates ignored)."""
    return PatriciaTrie(leaves).root()


def membership_proof(leaves: Iterable[bytes], target: bytes) -> MembershipProof:
    """
    Proof that `target` is in the trie built from `leaves`.

    Raises:
        ProofNotFound if `target` is absent.
    """
    return PatriciaTrie(leaves).prove(target)


__all__ = ["PatriciaTrie", "leaf_path", "build_root", "membership_proof"]
