"""
DPF • Trie — membership proof verification

Verifies that a proof links `target` to a trusted root without holding the
leaf set:

    expected = root
    path     = nibbles(keccak256(target))
    for node in proof:
        keccak256(node) must equal expected
        branch    -> expected = children[path[i]]; i += 1
        extension -> path[i:] must start with node.path; expected = child
        leaf      -> path[i:] == node.path and value == target; must be last

Proofs come from external, possibly hostile stores. `verify` is a pure
predicate: malformed, truncated, oversized, over-long or mismatching proofs
return False and never raise. Use `verify_checked` for a diagnostic.
"""

from __future__ import annotations

import hmac
import logging
from typing import Sequence, Union

from ..constants import MAX_NODE_BYTES_DEFAULT, MAX_PROOF_NODES_DEFAULT, ROOT_BYTES
from ..errors import ProofVerificationFailed
from ..utils.hash import keccak_256
from .nibbles import to_nibbles
from .node import KIND_BRANCH, KIND_EXTENSION, decode_node
from .proofs import MembershipProof

log = logging.getLogger(__name__)

ProofLike = Union[MembershipProof, Sequence[bytes]]


def verify_checked(
    proof: ProofLike,
    target: bytes,
    expected_root: bytes,
    *,
    max_nodes: int = MAX_PROOF_NODES_DEFAULT,
    max_node_bytes: int = MAX_NODE_BYTES_DEFAULT,
) -> None:
    """
    Raise ProofVerificationFailed describing why the proof does not hold.
    Returns None when it does.
    """
    nodes = proof.nodes if isinstance(proof, MembershipProof) else proof
    if isinstance(nodes, (bytes, bytearray, str)) or not isinstance(nodes, Sequence):
        raise ProofVerificationFailed("proof must be a sequence of node encodings")
    if not isinstance(target, bytes):
        raise ProofVerificationFailed("target leaf must be bytes")
    if not isinstance(expected_root, bytes) or len(expected_root) != ROOT_BYTES:
        raise ProofVerificationFailed("expected root must be 32 bytes")
    if not nodes:
        raise ProofVerificationFailed("empty proof")
    if len(nodes) > max_nodes:
        raise ProofVerificationFailed(
            "proof has too many nodes", data={"nodes": len(nodes), "max": max_nodes}
        )

    path = to_nibbles(keccak_256(target))
    expected = expected_root
    i = 0
    for depth, raw in enumerate(nodes):
        if not isinstance(raw, bytes):
            raise ProofVerificationFailed("proof node must be bytes", data={"depth": depth})
        if len(raw) > max_node_bytes:
            raise ProofVerificationFailed("proof node too large", data={"depth": depth, "size": len(raw)})
        if not hmac.compare_digest(keccak_256(raw), expected):
            raise ProofVerificationFailed("node hash does not match parent reference", data={"depth": depth})
        try:
            node = decode_node(raw)
        except ValueError as e:
            raise ProofVerificationFailed(f"malformed node: {e}", data={"depth": depth}) from e

        if node.kind == KIND_BRANCH:
            if i >= len(path):
                raise ProofVerificationFailed("path exhausted at branch", data={"depth": depth})
            expected = node.children[path[i]]
            i += 1
            if not expected:
                raise ProofVerificationFailed("branch has no child on the target path", data={"depth": depth})
            continue

        if node.kind == KIND_EXTENSION:
            end = i + len(node.path)
            if path[i:end] != node.path:
                raise ProofVerificationFailed("extension path diverges from target", data={"depth": depth})
            i = end
            expected = node.child
            continue

        # leaf node
        if depth != len(nodes) - 1:
            raise ProofVerificationFailed("trailing nodes after leaf", data={"depth": depth})
        if path[i:] != node.path:
            raise ProofVerificationFailed("leaf path does not match target", data={"depth": depth})
        if not hmac.compare_digest(node.value, target):
            raise ProofVerificationFailed("leaf value does not match target", data={"depth": depth})
        return

    raise ProofVerificationFailed("proof ends before reaching a leaf")


def verify(
    proof: ProofLike,
    target: bytes,
    expected_root: bytes,
    *,
    max_nodes: int = MAX_PROOF_NODES_DEFAULT,
    max_node_bytes: int = MAX_NODE_BYTES_DEFAULT,
) -> bool:
    """
    True iff `proof` shows `target` is a leaf of the trie with `expected_root`.
    """
    try:
        verify_checked(proof, target, expected_root, max_nodes=max_nodes, max_node_bytes=max_node_bytes)
    except ProofVerificationFailed as e:
        log.debug("proof rejected: %s", e.message, extra=e.data)
        return False
    return True


__all__ = ["verify", "verify_checked"]
