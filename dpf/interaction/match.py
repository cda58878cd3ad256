"""
DPF • Interaction model — pattern matching

`matches(pattern, interaction)` is the direct, in-memory form of the allow
rule: same method, and every detail field either equal or `ANY` in the
pattern. A wildcard selector also covers empty calldata (b"").

The evaluator never calls this; it probes the published trie with the
expansions from `dpf.interaction.expand` instead. The two are equivalent:

    matches(p, i)  <=>  leaf_bytes(p) in expand(i)
"""

from __future__ import annotations

from .types import ANY, Interaction
from .validate import validate


def matches(pattern: Interaction, interaction: Interaction) -> bool:
    """
    True if `pattern` covers the concrete `interaction`.

    Raises:
        InvalidInteraction if either argument is structurally malformed, or
        if `interaction` holds a wildcard.
    """
    validate(pattern, allow_wildcards=True)
    validate(interaction)

    if pattern.method is not interaction.method:
        return False

    for (name, want), (_n, got) in zip(pattern.field_values(), interaction.field_values()):
        if want is ANY:
            continue
        if want != got:
            return False
    return True


__all__ = ["matches"]
