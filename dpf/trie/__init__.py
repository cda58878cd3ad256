"""
DPF Merkle-Patricia trie: construction, root computation, membership proofs
and stand-alone proof verification.
"""

from .node import EMPTY_ROOT
from .proofs import MembershipProof, decode_proof, encode_proof
from .tree import PatriciaTrie, build_root, leaf_path, membership_proof
from .verify import verify, verify_checked

__all__ = [
    "EMPTY_ROOT",
    "MembershipProof",
    "decode_proof",
    "encode_proof",
    "PatriciaTrie",
    "build_root",
    "leaf_path",
    "membership_proof",
    "verify",
    "verify_checked",
]
