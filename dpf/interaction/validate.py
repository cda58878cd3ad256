"""
DPF • Interaction model — structural validation

`validate(x)` checks an Interaction (or, with `allow_wildcards=True`, a
Pattern) and raises `InvalidInteraction` describing the first problem found:

  • details variant must match the method (None for SignMessage/SignData)
  • chain_id: positive integer
  • to_address: exactly 20 bytes
  • value: integer in [0, 2^256 - 1]
  • function_selector: exactly 4 bytes, or b"" (empty calldata)
  • domain_separator / type_hash: exactly 32 bytes
  • `ANY` only where wildcards are allowed

`bool` is rejected wherever an integer is expected.
"""

from __future__ import annotations

from typing import Any, Optional

from ..constants import ADDRESS_BYTES, MAX_UINT256, SELECTOR_BYTES, TYPED_HASH_BYTES
from ..errors import InvalidInteraction
from .types import ANY, Interaction, Method, SendTransactionDetails, SignTypedDataDetails

_DETAILS_FOR = {
    Method.SIGN_MESSAGE: None,
    Method.SIGN_DATA: None,
    Method.SEND_TRANSACTION: SendTransactionDetails,
    Method.SIGN_TYPED_DATA: SignTypedDataDetails,
}


def validate(interaction: Any, *, allow_wildcards: bool = False) -> Interaction:
    """
    Validate `interaction` and return it unchanged.

    Raises:
        InvalidInteraction on any structural problem.
    """
    if not isinstance(interaction, Interaction):
        raise InvalidInteraction(f"expected Interaction, got {type(interaction).__name__}")

    method = interaction.method
    if not isinstance(method, Method):
        raise InvalidInteraction(f"unknown method {method!r}")

    expected = _DETAILS_FOR[method]
    details = interaction.details
    if expected is None:
        if details is not None:
            raise InvalidInteraction(
                f"{method.value} takes no details",
                data={"method": method.value, "details": type(details).__name__},
            )
        return interaction
    if type(details) is not expected:
        raise InvalidInteraction(
            f"{method.value} requires {expected.__name__}",
            data={"method": method.value, "details": type(details).__name__},
        )

    for name, value in interaction.field_values():
        if value is ANY:
            if not allow_wildcards:
                raise InvalidInteraction(
                    f"wildcard not allowed in concrete interaction ({name})",
                    data={"field": name},
                )
            continue
        problem = _FIELD_CHECKS[name](value)
        if problem:
            raise InvalidInteraction(f"{name}: {problem}", data={"field": name})
    return interaction


def is_valid(interaction: Any, *, allow_wildcards: bool = False) -> bool:
    try:
        validate(interaction, allow_wildcards=allow_wildcards)
    except InvalidInteraction:
        return False
    return True


# ------------------------------ field checks ---------------------------------


def _is_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def _check_chain_id(v: Any) -> Optional[str]:
    if not _is_int(v) or v <= 0:
        return "must be a positive integer"
    return None


def _check_value(v: Any) -> Optional[str]:
    if not _is_int(v) or v < 0:
        return "must be a non-negative integer or ANY"
    if v > MAX_UINT256:
        return "exceeds uint256"
    return None


def _fixed_bytes(width: int):
    def check(v: Any) -> Optional[str]:
        if not isinstance(v, bytes):
            return f"must be bytes, got {type(v).__name__}"
        if len(v) != width:
            return f"must be exactly {width} bytes, got {len(v)}"
        return None
    return check


def _check_selector(v: Any) -> Optional[str]:
    if not isinstance(v, bytes):
        return f"must be bytes, got {type(v).__name__}"
    if len(v) not in (0, SELECTOR_BYTES):
        return f"must be {SELECTOR_BYTES} bytes, empty calldata or ANY, got {len(v)} bytes"
    return None


_FIELD_CHECKS = {
    "chain_id": _check_chain_id,
    "to_address": _fixed_bytes(ADDRESS_BYTES),
    "value": _check_value,
    "function_selector": _check_selector,
    "domain_separator": _fixed_bytes(TYPED_HASH_BYTES),
    "type_hash": _fixed_bytes(TYPED_HASH_BYTES),
}


__all__ = ["validate", "is_valid"]
