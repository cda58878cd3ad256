"""
DPF • Trie — membership proofs

A membership proof is the list of encoded nodes on the path from the root to
the leaf node holding the target, root first (the same shape as Ethereum's
`eth_getProof` account proofs). The verifier re-hashes each node and follows
the child reference selected by the next nibbles of `keccak256(target)`.

Wire form (what proof stores serve):

    proof_bytes = canonical_cbor([node_0, node_1, ..., node_n])

`decode_proof` only checks the outer framing. Whether the nodes actually
link the target to a root is `dpf.trie.verify`'s job.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from ..errors import ProofVerificationFailed
from ..utils.cbor import dumps_canonical, loads_canonical


@dataclass(frozen=True)
class MembershipProof:
    nodes: Tuple[bytes, ...]

    def __len__(self) -> int:
        return len(self.nodes)

    @property
    def size_bytes(self) -> int:
        return sum(len(n) for n in self.nodes)


def encode_proof(proof: MembershipProof) -> bytes:
    return dumps_canonical(list(proof.nodes))


def decode_proof(data: bytes) -> MembershipProof:
    """
    Parse the wire form of a proof.

    Raises:
        ProofVerificationFailed if the bytes are not an array of byte strings.
    """
    try:
        items = loads_canonical(bytes(data))
    except (ValueError, TypeError) as e:
        raise ProofVerificationFailed(f"proof is not canonical CBOR: {e}") from e
    if not isinstance(items, list) or not all(isinstance(n, bytes) for n in items):
        raise ProofVerificationFailed("proof must be an array of byte strings")
    return MembershipProof(nodes=tuple(items))


__all__ = ["MembershipProof", "encode_proof", "decode_proof"]
