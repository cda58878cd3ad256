"""
DPF • Sources — in-memory leaf-set proof source

Holds published leaf sets as Patricia tries keyed by root, and serves proofs
straight from them. Used by publishers that keep their own allow-lists, by
embedded deployments and by tests.

    src = LeafSetProofSource()
    root = src.publish(leaves)
    proof = src.fetch_proof(root, leaves[0], timeout=1.0)
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, List

from ..errors import ExternalSourceUnavailable
from ..trie.proofs import MembershipProof
from ..trie.tree import PatriciaTrie
from ..utils.hash import to_hex

log = logging.getLogger(__name__)


class LeafSetProofSource:
    def __init__(self) -> None:
        self._tries: Dict[bytes, PatriciaTrie] = {}
        self._lock = threading.Lock()

    def publish(self, leaves: Iterable[bytes]) -> bytes:
        """Index a leaf set and return its root."""
        trie = PatriciaTrie(leaves)
        root = trie.root()
        with self._lock:
            self._tries[root] = trie
        log.debug("published leaf set", extra={"root": to_hex(root), "leaves": len(trie)})
        return root

    def add_trie(self, trie: PatriciaTrie) -> bytes:
        root = trie.root()
        with self._lock:
            self._tries[root] = trie
        return root

    def forget(self, root: bytes) -> bool:
        with self._lock:
            return self._tries.pop(root, None) is not None

    def roots(self) -> List[bytes]:
        with self._lock:
            return sorted(self._tries)

    def __contains__(self, root: object) -> bool:
        return root in self._tries

    def fetch_proof(self, root: bytes, leaf: bytes, *, timeout: float) -> MembershipProof:
        """
        Raises:
            ProofNotFound if `leaf` is not in the set published under `root`.
            ExternalSourceUnavailable if `root` was never published here.
        """
        with self._lock:
            trie = self._tries.get(root)
        if trie is None:
            raise ExternalSourceUnavailable("unknown root", data={"root": to_hex(root)})
        return trie.prove(leaf)


__all__ = ["LeafSetProofSource"]
