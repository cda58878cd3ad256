"""
DPF interaction model: value types, validation, canonical leaf encoding,
pattern matching and wildcard expansion.
"""

from .codec import canonical_bytes, decode_leaf, leaf_bytes
from .expand import expand, probe_patterns
from .match import matches
from .types import (
    ANY,
    Details,
    Interaction,
    Method,
    Pattern,
    SendTransactionDetails,
    SignTypedDataDetails,
    Wildcard,
)
from .validate import is_valid, validate

__all__ = [
    "ANY",
    "Details",
    "Interaction",
    "Method",
    "Pattern",
    "SendTransactionDetails",
    "SignTypedDataDetails",
    "Wildcard",
    "canonical_bytes",
    "decode_leaf",
    "leaf_bytes",
    "expand",
    "probe_patterns",
    "matches",
    "is_valid",
    "validate",
]
