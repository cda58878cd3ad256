"""
DPF — dApp Permission Framework matching engine.

Public responsibilities:
- Model wallet interactions and allow-list patterns, with canonical leaf bytes.
- Expand a request into the 2^k wildcard probes a publisher could have used.
- Build Merkle-Patricia tries over policy leaves, prove and verify membership.
- Decide Allowed/Denied for an origin against its domain's policy roots,
  honouring the 72h revocation time-lock and the domain hierarchy.

Submodules:
- dpf.interaction  value types, validation, encoding, matching, expansion
- dpf.trie         trie construction, proofs, verification
- dpf.policy       records, store, evaluator, engine, publisher
- dpf.sources      proof sources (in-memory, HTTP)
- dpf.adapters     DNS TXT root discovery
"""

from __future__ import annotations

from .version import __version__, get_version

from .errors import (
    DPFError,
    ExternalSourceTimeout,
    ExternalSourceUnavailable,
    InvalidInteraction,
    InvalidTxtRecord,
    PolicyRecordCorrupt,
    ProofNotFound,
    ProofVerificationFailed,
)
from .interaction import ANY, Interaction, Method, Pattern, canonical_bytes, expand, matches, validate
from .policy import (
    Decision,
    PermissionEngine,
    PolicyRecord,
    PolicyStore,
    Reason,
    Verdict,
    evaluate,
    publish_patterns,
)
from .sources import HttpProofSource, LeafSetProofSource, ProofSource
from .trie import MembershipProof, PatriciaTrie, build_root, membership_proof, verify

__all__ = [
    "__version__",
    "get_version",
    "DPFError",
    "ExternalSourceTimeout",
    "ExternalSourceUnavailable",
    "InvalidInteraction",
    "InvalidTxtRecord",
    "PolicyRecordCorrupt",
    "ProofNotFound",
    "ProofVerificationFailed",
    "ANY",
    "Interaction",
    "Method",
    "Pattern",
    "canonical_bytes",
    "expand",
    "matches",
    "validate",
    "Decision",
    "PermissionEngine",
    "PolicyRecord",
    "PolicyStore",
    "Reason",
    "Verdict",
    "evaluate",
    "publish_patterns",
    "HttpProofSource",
    "LeafSetProofSource",
    "ProofSource",
    "MembershipProof",
    "PatriciaTrie",
    "build_root",
    "membership_proof",
    "verify",
]
