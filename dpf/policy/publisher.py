"""
DPF • Policy — publisher helper

What a dApp operator runs to produce its policy: validate the allow-list
patterns, encode them as leaves, build the trie and render the TXT record
that announces the root.

    published = publish_patterns([
        Interaction.send_transaction(chain_id=1, to=ROUTER, value=ANY, selector=SWAP),
        Interaction.sign_message(),
    ])
    published.txt_record  # "v=dpf1 …"
    source.add_trie(published.trie)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Tuple

from ..adapters.dns_txt import format_txt_record
from ..interaction import Pattern, leaf_bytes
from ..trie.tree import PatriciaTrie


@dataclass(frozen=True)
class PublishedPolicy:
    root: bytes
    trie: PatriciaTrie
    txt_record: str

    @property
    def leaves(self) -> Tuple[bytes, ...]:
        return tuple(self.trie)


def publish_patterns(patterns: Iterable[Pattern]) -> PublishedPolicy:
    """
    Raises:
        InvalidInteraction if any pattern is malformed.
    """
    trie = PatriciaTrie(leaf_bytes(p) for p in patterns)
    root = trie.root()
    return PublishedPolicy(root=root, trie=trie, txt_record=format_txt_record(root))


__all__ = ["PublishedPolicy", "publish_patterns"]
