"""
DPF constants.

Protocol-level sizes, markers and defaults for the permission engine. These
values are dependency-free and safe to import from anywhere.

Note: runtime configuration (timeouts, proof limits, source URLs) lives in
`dpf.config`. The values here are the wire-level facts the config validates
against.
"""

from __future__ import annotations

from typing import Dict, Tuple

# ------------------------------- time-lock -----------------------------------

#: Grace window during which the previous root stays authoritative (seconds).
GRACE_WINDOW_SECONDS: int = 72 * 3600


# ------------------------------- field sizes ---------------------------------

#: Ethereum account address width.
ADDRESS_BYTES: int = 20
#: ABI function selector width.
SELECTOR_BYTES: int = 4
#: EIP-712 domain separator / type hash width.
TYPED_HASH_BYTES: int = 32
#: Largest value a transaction can carry (uint256).
MAX_UINT256: int = (1 << 256) - 1


# ------------------------------- leaf layout ---------------------------------

#: Version tag written as the first element of every leaf encoding.
LEAF_VERSION: int = 1

#: Wildcard-capable detail fields per method, in canonical order.
WILDCARD_FIELDS: Dict[str, Tuple[str, ...]] = {
    "SignMessage": (),
    "SignData": (),
    "SendTransaction": ("chain_id", "to_address", "value", "function_selector"),
    "SignTypedData": ("domain_separator", "type_hash"),
}


# ------------------------------- trie ----------------------------------------

#: Root and node hash width (keccak-256).
ROOT_BYTES: int = 32
#: Nibbles in a trie key (keccak-256 of the leaf).
KEY_NIBBLES: int = 2 * ROOT_BYTES
#: Longest well-formed proof: a branch per nibble, each possibly preceded by an
#: extension, plus the terminating leaf node.
MAX_PROOF_NODES_DEFAULT: int = 2 * KEY_NIBBLES + 1
#: Guard rail for a single encoded node inside a proof.
MAX_NODE_BYTES_DEFAULT: int = 4096


# ------------------------------- DNS -----------------------------------------

#: Version prefix of a DPF TXT record: "v=dpf1 <64 hex chars>".
TXT_RECORD_PREFIX: str = "v=dpf1"


def probe_count(method: str) -> int:
    """Number of probe leaves the expander produces for `method`."""
    return 1 << len(WILDCARD_FIELDS[method])


__all__ = [
    "GRACE_WINDOW_SECONDS",
    "ADDRESS_BYTES",
    "SELECTOR_BYTES",
    "TYPED_HASH_BYTES",
    "MAX_UINT256",
    "LEAF_VERSION",
    "WILDCARD_FIELDS",
    "ROOT_BYTES",
    "KEY_NIBBLES",
    "MAX_PROOF_NODES_DEFAULT",
    "MAX_NODE_BYTES_DEFAULT",
    "TXT_RECORD_PREFIX",
    "probe_count",
]
