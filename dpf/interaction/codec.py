"""
DPF • Interaction model — canonical leaf encoding

Every interaction (and every pattern) has exactly one byte encoding, the
*leaf*, which is what the Patricia trie indexes:

    leaf = canonical_cbor([LEAF_VERSION, method, field_1, ..., field_k])

Fields follow the declaration order of the details dataclass. Integers are
CBOR integers (bignums above 2^64), byte fields are CBOR byte strings, and a
wildcard slot is CBOR `null`. Because the array layout is fixed per method,
structurally equal values always produce identical bytes.

- canonical_bytes(interaction)  concrete interactions only (no ANY)
- leaf_bytes(pattern)           patterns; ANY slots become the null marker
- decode_leaf(data)             strict inverse, for inspection tools
"""

from __future__ import annotations

from typing import Any, List

from ..constants import LEAF_VERSION
from ..errors import InvalidInteraction
from ..utils.cbor import dumps_canonical, loads_canonical
from .types import ANY, Interaction, Method, SendTransactionDetails, SignTypedDataDetails
from .validate import validate

_WILDCARD_MARKER = None


def _encode(interaction: Interaction) -> bytes:
    items: List[Any] = [LEAF_VERSION, interaction.method.value]
    for _name, value in interaction.field_values():
        items.append(_WILDCARD_MARKER if value is ANY else value)
    return dumps_canonical(items)


def canonical_bytes(interaction: Interaction) -> bytes:
    """
    Canonical bytes of a fully concrete interaction.

    Raises:
        InvalidInteraction if the interaction is malformed or holds a wildcard.
    """
    validate(interaction)
    return _encode(interaction)


def leaf_bytes(pattern: Interaction) -> bytes:
    """
    Leaf bytes of a pattern; wildcard slots are written as the explicit
    marker, so the result is itself a concrete trie leaf.
    """
    validate(pattern, allow_wildcards=True)
    return _encode(pattern)


def decode_leaf(data: bytes) -> Interaction:
    """
    Parse leaf bytes back into a Pattern.

    Raises:
        InvalidInteraction on any framing or field problem.
    """
    try:
        items = loads_canonical(bytes(data))
    except (ValueError, TypeError) as e:
        raise InvalidInteraction(f"leaf is not canonical CBOR: {e}") from e

    if not isinstance(items, list) or len(items) < 2:
        raise InvalidInteraction("leaf must be an array [version, method, ...]")
    version, method_name, *values = items
    if version != LEAF_VERSION:
        raise InvalidInteraction(f"unsupported leaf version {version!r}")
    try:
        method = Method(method_name)
    except ValueError as e:
        raise InvalidInteraction(f"unknown method {method_name!r}") from e

    names = method.wildcard_fields
    if len(values) != len(names):
        raise InvalidInteraction(
            f"{method.value} leaf carries {len(values)} fields, expected {len(names)}"
        )
    kwargs = {n: (ANY if v is _WILDCARD_MARKER else v) for n, v in zip(names, values)}

    if method is Method.SEND_TRANSACTION:
        pattern = Interaction(method, SendTransactionDetails(**kwargs))
    elif method is Method.SIGN_TYPED_DATA:
        pattern = Interaction(method, SignTypedDataDetails(**kwargs))
    else:
        pattern = Interaction(method)
    return validate(pattern, allow_wildcards=True)


__all__ = ["canonical_bytes", "leaf_bytes", "decode_leaf"]
