"""
DPF • Sources — proof source interface

A proof source answers "give me the membership proof of `leaf` under `root`".
It is the only collaborator the evaluator talks to while deciding, and it is
untrusted: whatever it returns is re-verified against the root.

Implementations raise exactly these for the failure modes the evaluator
distinguishes:

    ProofNotFound              leaf is not a member under that root
    ExternalSourceTimeout      no answer within `timeout`
    ExternalSourceUnavailable  source failed / does not know the root
    ProofVerificationFailed    answer was not a well-formed proof
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..trie.proofs import MembershipProof


@runtime_checkable
class ProofSource(Protocol):
    def fetch_proof(self, root: bytes, leaf: bytes, *, timeout: float) -> MembershipProof:
        ...


__all__ = ["ProofSource"]
