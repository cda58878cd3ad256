from __future__ import annotations

import itertools

import pytest
from hypothesis import given, strategies as st

from dpf.constants import probe_count
from dpf.errors import InvalidInteraction
from dpf.interaction import (
    ANY,
    Interaction,
    Method,
    canonical_bytes,
    expand,
    leaf_bytes,
    matches,
    probe_patterns,
)

ADDR = bytes.fromhex("7a250d5630b4cf539739df2c5dacb4c659f2488d")
SEL = bytes.fromhex("38ed1739")
DOMAIN_SEP = b"\x11" * 32
TYPE_HASH = b"\x22" * 32


def _tx(chain_id=1, to=ADDR, value=0, selector=SEL) -> Interaction:
    return Interaction.send_transaction(chain_id=chain_id, to=to, value=value, selector=selector)


def test_send_transaction_expands_to_16_distinct_leaves():
    leaves = expand(_tx())
    assert len(leaves) == 16 == probe_count("SendTransaction")
    assert canonical_bytes(_tx()) in leaves


def test_send_transaction_expansion_covers_every_wildcard_subset():
    req = _tx(chain_id=5, value=42)
    leaves = expand(req)
    names = ("chain_id", "to", "value", "selector")
    concrete = dict(chain_id=5, to=ADDR, value=42, selector=SEL)
    for mask in itertools.product((False, True), repeat=4):
        kw = {n: (ANY if wild else concrete[n]) for n, wild in zip(names, mask)}
        assert leaf_bytes(Interaction.send_transaction(**kw)) in leaves


def test_sign_typed_data_expands_to_4():
    req = Interaction.sign_typed_data(domain_separator=DOMAIN_SEP, type_hash=TYPE_HASH)
    leaves = expand(req)
    assert len(leaves) == 4
    assert leaf_bytes(Interaction.sign_typed_data(domain_separator=ANY, type_hash=ANY)) in leaves


@pytest.mark.parametrize("interaction", [Interaction.sign_message(), Interaction.sign_data()])
def test_detail_free_methods_expand_to_one(interaction):
    assert expand(interaction) == frozenset({canonical_bytes(interaction)})


def test_probe_patterns_start_with_the_request():
    req = _tx()
    patterns = probe_patterns(req)
    assert patterns[0] == req
    assert len(patterns) == 16
    assert patterns[-1].wildcards == Method.SEND_TRANSACTION.wildcard_fields


def test_expand_rejects_patterns_and_malformed_requests():
    with pytest.raises(InvalidInteraction):
        expand(_tx(selector=ANY))
    with pytest.raises(InvalidInteraction):
        expand(_tx(selector=b"\x00"))


# ---------------------------------------------------------------------------
# expansion and matching agree
# ---------------------------------------------------------------------------

_requests = st.builds(
    _tx,
    chain_id=st.sampled_from([1, 10, 137]),
    to=st.sampled_from([ADDR, b"\x01" * 20]),
    value=st.sampled_from([0, 1, 10**18]),
    selector=st.sampled_from([SEL, b"", b"\xde\xad\xbe\xef"]),
)


def _maybe_any(strategy):
    return st.one_of(st.just(ANY), strategy)


_patterns = st.builds(
    _tx,
    chain_id=_maybe_any(st.sampled_from([1, 10, 137])),
    to=_maybe_any(st.sampled_from([ADDR, b"\x01" * 20])),
    value=_maybe_any(st.sampled_from([0, 1, 10**18])),
    selector=_maybe_any(st.sampled_from([SEL, b"", b"\xde\xad\xbe\xef"])),
)


@given(pattern=_patterns, req=_requests)
def test_matches_iff_pattern_leaf_is_a_probe(pattern, req):
    assert matches(pattern, req) == (leaf_bytes(pattern) in expand(req))
