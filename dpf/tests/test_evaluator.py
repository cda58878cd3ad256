from __future__ import annotations

import itertools

from hypothesis import given, settings, strategies as st

from dpf.errors import ExternalSourceTimeout, ExternalSourceUnavailable, ProofVerificationFailed
from dpf.interaction import ANY, Interaction, leaf_bytes
from dpf.metrics import Metrics
from dpf.policy import Decision, PolicyRecord, Reason, evaluate
from dpf.sources import LeafSetProofSource
from dpf.trie import MembershipProof, build_root

HOUR = 3600.0
SEAPORT = bytes.fromhex("00000000000000adc04c56bf30ac9d3c0aaf14dc")


def tx(chain_id=1, to=SEAPORT, value=0, selector=b"") -> Interaction:
    return Interaction.send_transaction(chain_id=chain_id, to=to, value=value, selector=selector)


def publish(source: LeafSetProofSource, *patterns: Interaction) -> bytes:
    return source.publish(leaf_bytes(p) for p in patterns)


class _RaisingSource:
    def __init__(self, exc):
        self.exc = exc
        self.calls = 0

    def fetch_proof(self, root, leaf, *, timeout):
        self.calls += 1
        raise self.exc


class _BogusProofSource:
    def fetch_proof(self, root, leaf, *, timeout):
        return MembershipProof(nodes=(b"\x00" * 10,))


# ---------------------------------------------------------------------------
# scenarios
# ---------------------------------------------------------------------------


def test_exact_published_tuple_is_allowed_other_selector_denied(source):
    root = publish(source, tx(selector=b""))
    record = PolicyRecord(current_root=root, root_changed_at=0.0)

    denied = evaluate(tx(selector=bytes.fromhex("abcdef01")), record, 10.0, source)
    assert denied.decision is Decision.DENIED
    assert denied.reason is Reason.NO_MATCH

    allowed = evaluate(tx(selector=b""), record, 10.0, source)
    assert allowed.allowed
    assert allowed.reason is Reason.MATCHED
    assert allowed.root == root
    assert allowed.leaf == leaf_bytes(tx(selector=b""))


def test_wildcard_pattern_allows_any_selector(source):
    root = publish(source, tx(selector=ANY))
    record = PolicyRecord(current_root=root)
    assert evaluate(tx(selector=bytes.fromhex("abcdef01")), record, 0.0, source).allowed
    assert evaluate(tx(selector=b""), record, 0.0, source).allowed
    assert not evaluate(tx(chain_id=10, selector=b""), record, 0.0, source).allowed


def test_no_policy_allows_everything(source):
    v = evaluate(tx(value=10**30), None, 0.0, source)
    assert v.decision is Decision.ALLOWED
    assert v.reason is Reason.NO_POLICY


def test_invalid_interaction_is_denied_not_raised(source):
    root = publish(source, tx())
    bad = tx(selector=b"\x01\x02")
    v = evaluate(bad, PolicyRecord(current_root=root), 0.0, source)
    assert v.decision is Decision.DENIED
    assert v.reason is Reason.INVALID_INTERACTION
    assert "function_selector" in v.detail
    # even without a policy
    assert evaluate(bad, None, 0.0, source).reason is Reason.INVALID_INTERACTION


def test_sign_message_needs_its_single_leaf(source):
    root = publish(source, Interaction.sign_message())
    record = PolicyRecord(current_root=root)
    assert evaluate(Interaction.sign_message(), record, 0.0, source).allowed
    assert not evaluate(Interaction.sign_data(), record, 0.0, source).allowed


# ---------------------------------------------------------------------------
# time-lock
# ---------------------------------------------------------------------------


def _rotated(source, t_changed: float) -> PolicyRecord:
    old = publish(source, tx(value=1))
    new = publish(source, tx(value=2))
    return PolicyRecord(current_root=new, previous_root=old, root_changed_at=t_changed)


def test_grace_window_boundary(source):
    T = 1_000_000.0
    record = _rotated(source, T)
    only_old = tx(value=1)

    assert evaluate(only_old, record, T + 71 * HOUR + 59 * 60, source).allowed
    late = evaluate(only_old, record, T + 72 * HOUR + 1, source)
    assert late.decision is Decision.DENIED
    assert late.reason is Reason.NO_MATCH
    # exactly at the boundary the previous root is no longer authoritative
    assert not evaluate(only_old, record, T + 72 * HOUR, source).allowed


def test_current_root_is_honoured_throughout(source):
    T = 50.0
    record = _rotated(source, T)
    for now in (T, T + HOUR, T + 100 * HOUR):
        v = evaluate(tx(value=2), record, now, source)
        assert v.allowed and v.root == record.current_root


def test_custom_grace_window(source):
    record = _rotated(source, 0.0)
    assert evaluate(tx(value=1), record, 5.0, source, grace_window=10.0).allowed
    assert not evaluate(tx(value=1), record, 10.0, source, grace_window=10.0).allowed


# ---------------------------------------------------------------------------
# failing sources
# ---------------------------------------------------------------------------


def test_timeout_fails_closed_with_reason():
    src = _RaisingSource(ExternalSourceTimeout("slow"))
    v = evaluate(tx(), PolicyRecord(current_root=b"\x01" * 32), 0.0, src)
    assert v.decision is Decision.DENIED
    assert v.reason is Reason.SOURCE_TIMEOUT
    assert src.calls == 16


def test_unavailable_fails_closed_with_reason():
    src = _RaisingSource(ExternalSourceUnavailable("down"))
    v = evaluate(Interaction.sign_message(), PolicyRecord(current_root=b"\x01" * 32), 0.0, src)
    assert v.decision is Decision.DENIED
    assert v.reason is Reason.SOURCE_UNAVAILABLE


def test_unexpected_source_error_fails_closed():
    src = _RaisingSource(RuntimeError("boom"))
    v = evaluate(Interaction.sign_message(), PolicyRecord(current_root=b"\x01" * 32), 0.0, src)
    assert v.decision is Decision.DENIED
    assert v.reason is Reason.SOURCE_UNAVAILABLE
    assert src.calls == 1


def test_exhausted_deadline_counts_as_timeout():
    ticks = itertools.count(0.0, 5.0)
    src = _RaisingSource(ExternalSourceUnavailable("never reached"))
    v = evaluate(
        tx(), PolicyRecord(current_root=b"\x01" * 32), 0.0, src,
        timeout=1.0, clock=lambda: next(ticks),
    )
    assert v.reason is Reason.SOURCE_TIMEOUT
    assert src.calls == 0


def test_unknown_previous_root_does_not_block_match_on_current(source):
    root = publish(source, tx())
    record = PolicyRecord(current_root=root, previous_root=b"\x09" * 32, root_changed_at=0.0)
    assert evaluate(tx(), record, 1.0, source).allowed


def test_partial_outage_without_match_reports_unavailable(source):
    root = publish(source, tx(value=5))
    record = PolicyRecord(current_root=root, previous_root=b"\x09" * 32, root_changed_at=0.0)
    v = evaluate(tx(value=6), record, 1.0, source)
    assert v.reason is Reason.SOURCE_UNAVAILABLE


def test_bogus_or_undecodable_proofs_are_negative_answers():
    record = PolicyRecord(current_root=b"\x01" * 32)
    assert evaluate(tx(), record, 0.0, _BogusProofSource()).reason is Reason.NO_MATCH
    src = _RaisingSource(ProofVerificationFailed("garbage"))
    assert evaluate(tx(), record, 0.0, src).reason is Reason.NO_MATCH


def test_proof_for_a_different_root_is_rejected(source):
    real = publish(source, tx())

    class _WrongRoot:
        def fetch_proof(self, root, leaf, *, timeout):
            return source.fetch_proof(real, leaf, timeout=timeout)

    record = PolicyRecord(current_root=build_root([b"something else"]))
    assert not evaluate(tx(), record, 0.0, _WrongRoot()).allowed


# ---------------------------------------------------------------------------
# metrics
# ---------------------------------------------------------------------------


def test_verdicts_and_probes_are_counted(source):
    m = Metrics()
    root = publish(source, tx())
    evaluate(tx(), PolicyRecord(current_root=root), 0.0, source, metrics=m)
    evaluate(tx(value=3), PolicyRecord(current_root=root), 0.0, source, metrics=m)

    get = m.registry.get_sample_value
    assert get("dpf_verdicts_total", {"decision": "allowed", "reason": "matched"}) == 1.0
    assert get("dpf_verdicts_total", {"decision": "denied", "reason": "no_match"}) == 1.0
    assert get("dpf_probes_total", {"outcome": "matched"}) == 1.0
    assert get("dpf_probes_total", {"outcome": "not_found"}) >= 16.0


# ---------------------------------------------------------------------------
# monotonicity
# ---------------------------------------------------------------------------

_field = {
    "chain_id": st.sampled_from([1, 10]),
    "to": st.sampled_from([SEAPORT, b"\x02" * 20]),
    "value": st.sampled_from([0, 7]),
    "selector": st.sampled_from([b"", b"\xab\xcd\xef\x01"]),
}
_requests = st.builds(tx, **_field)
_patterns = st.builds(tx, **{k: st.one_of(st.just(ANY), v) for k, v in _field.items()})


@settings(max_examples=40, deadline=None)
@given(base=st.lists(_patterns, max_size=4), extra=_patterns, req=_requests)
def test_adding_a_pattern_never_revokes(base, extra, req):
    src = LeafSetProofSource()
    before = PolicyRecord(current_root=publish(src, *base))
    after = PolicyRecord(current_root=publish(src, *base, extra))
    if evaluate(req, before, 0.0, src).allowed:
        assert evaluate(req, after, 0.0, src).allowed


def test_corrupt_record_is_treated_as_missing(source):
    corrupt = PolicyRecord(current_root=b"\x01" * 32, previous_root=b"\x02" * 32)
    v = evaluate(tx(), corrupt, 0.0, source)
    assert v.decision is Decision.ALLOWED
    assert v.reason is Reason.NO_POLICY


def test_verdict_to_dict(source):
    root = publish(source, tx())
    d = evaluate(tx(), PolicyRecord(current_root=root), 0.0, source).to_dict()
    assert d["decision"] == "allowed"
    assert d["reason"] == "matched"
    assert d["root"] == "0x" + root.hex()
    assert d["detail"] is None
