"""
DPF • Interaction model — wildcard expansion

Given a concrete requested interaction, produce every leaf a publisher could
have used to allow it: each of the method's k wildcard-capable fields is
either kept at its requested value or replaced by `ANY`, giving exactly 2^k
distinct probe leaves.

    SendTransaction  k = 4  -> 16 probes
    SignTypedData    k = 2  ->  4 probes
    SignMessage      k = 0  ->  1 probe
    SignData         k = 0  ->  1 probe

The probes never collide because a concrete value never encodes to the
wildcard marker. k is fixed per method (see `dpf.constants.WILDCARD_FIELDS`),
so the enumeration stays bounded.
"""

from __future__ import annotations

import itertools
from dataclasses import replace
from typing import FrozenSet, List

from .codec import canonical_bytes, leaf_bytes
from .types import ANY, Interaction
from .validate import validate


def probe_patterns(interaction: Interaction) -> List[Interaction]:
    """
    The 2^k substituted interactions, concrete request first.

    Raises:
        InvalidInteraction if `interaction` is malformed or not concrete.
    """
    validate(interaction)
    names = interaction.method.wildcard_fields
    if not names:
        return [interaction]

    out: List[Interaction] = []
    for mask in itertools.product((False, True), repeat=len(names)):
        subst = {n: ANY for n, wild in zip(names, mask) if wild}
        details = replace(interaction.details, **subst) if subst else interaction.details
        out.append(Interaction(interaction.method, details))
    return out


def expand(interaction: Interaction) -> FrozenSet[bytes]:
    """
    Probe leaves for `interaction`; size is exactly 2^k for its method.

    Raises:
        InvalidInteraction if `interaction` is malformed or not concrete.
    """
    patterns = probe_patterns(interaction)
    if len(patterns) == 1:
        return frozenset({canonical_bytes(patterns[0])})
    return frozenset(leaf_bytes(p) for p in patterns)


__all__ = ["expand", "probe_patterns"]
