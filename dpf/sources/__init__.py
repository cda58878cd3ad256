"""
DPF proof sources: the interface the evaluator fetches proofs through, an
in-memory leaf-set source and an HTTP proof store client.
"""

from .base import ProofSource
from .http import HttpProofSource
from .memory import LeafSetProofSource

__all__ = ["ProofSource", "HttpProofSource", "LeafSetProofSource"]
