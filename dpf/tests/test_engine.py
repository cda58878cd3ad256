from __future__ import annotations

from types import SimpleNamespace
from typing import Optional

import dns.exception
import dns.resolver
import pytest

from dpf.config import DPFConfig, DnsConfig, PolicyConfig
from dpf.errors import ExternalSourceTimeout, InvalidInteraction
from dpf.interaction import ANY, Interaction, decode_leaf, leaf_bytes
from dpf.policy import Decision, PermissionEngine, PolicyStore, PublishedPolicy, Reason, publish_patterns
from dpf.sources import LeafSetProofSource

HOUR = 3600.0
SEAPORT = bytes.fromhex("00000000000000adc04c56bf30ac9d3c0aaf14dc")
ROUTER = bytes.fromhex("7a250d5630b4cf539739df2c5dacb4c659f2488d")


def tx(chain_id=1, to=SEAPORT, value=0, selector=b"") -> Interaction:
    return Interaction.send_transaction(chain_id=chain_id, to=to, value=value, selector=selector)


def _publish(engine: PermissionEngine, domain: str, *patterns, at: Optional[float] = 0.0) -> PublishedPolicy:
    published = publish_patterns(patterns)
    engine.source.add_trie(published.trie)
    engine.observe(domain, published.root, observed_at=at)
    return published


class _TxtResolver:
    def __init__(self):
        self.records = {}
        self.error = None

    def resolve(self, name, rdtype):
        if self.error is not None:
            raise self.error
        if name not in self.records:
            raise dns.resolver.NXDOMAIN()
        return [SimpleNamespace(strings=(self.records[name].encode(),))]


# ---------------------------------------------------------------------------
# publisher
# ---------------------------------------------------------------------------


def test_publish_patterns():
    patterns = [tx(), tx(selector=ANY), Interaction.sign_message()]
    published = publish_patterns(patterns)
    assert published.txt_record == "v=dpf1 " + published.root.hex()
    assert published.trie.root() == published.root
    assert {decode_leaf(leaf) for leaf in published.leaves} == set(patterns)
    assert set(published.leaves) == {leaf_bytes(p) for p in patterns}


def test_publish_rejects_malformed_patterns():
    with pytest.raises(InvalidInteraction):
        publish_patterns([tx(selector=b"\x01")])


# ---------------------------------------------------------------------------
# check()
# ---------------------------------------------------------------------------


def test_opensea_selector_scenario(engine):
    _publish(engine, "opensea.io", tx(selector=b""))
    denied = engine.check("opensea.io", tx(selector=bytes.fromhex("abcdef01")), now=1.0)
    assert denied.decision is Decision.DENIED
    assert denied.reason is Reason.NO_MATCH
    assert engine.check("opensea.io", tx(selector=b""), now=1.0).allowed


def test_no_record_anywhere_is_allowed(engine):
    _publish(engine, "other.org", tx())
    v = engine.check("app.example.com", tx(to=ROUTER, value=10**21), now=1.0)
    assert v.decision is Decision.ALLOWED
    assert v.reason is Reason.NO_POLICY


def test_subdomain_inherits_parent_policy(engine):
    _publish(engine, "example.com", tx(chain_id=ANY))
    assert engine.check("app.example.com", tx(chain_id=10), now=1.0).allowed
    assert not engine.check("app.example.com", tx(to=ROUTER), now=1.0).allowed


def test_closest_record_wins_even_when_it_denies(engine):
    _publish(engine, "example.com", tx(to=ANY, value=ANY, selector=ANY, chain_id=ANY))
    _publish(engine, "app.example.com", Interaction.sign_message())
    assert engine.check("www.example.com", tx(), now=1.0).allowed
    v = engine.check("app.example.com", tx(), now=1.0)
    assert v.decision is Decision.DENIED


def test_root_rotation_through_engine(engine):
    _publish(engine, "x.com", tx(value=1), at=0.0)
    _publish(engine, "x.com", tx(value=2), at=100.0)
    assert engine.check("x.com", tx(value=1), now=100.0 + 71 * HOUR).allowed
    assert not engine.check("x.com", tx(value=1), now=100.0 + 73 * HOUR).allowed
    assert engine.check("x.com", tx(value=2), now=100.0 + 73 * HOUR).allowed
    assert engine.sweep(now=100.0 + 73 * HOUR) == 1
    assert engine.store.get("x.com").previous_root is None


def test_invalid_request_is_denied_but_bad_origin_raises(engine):
    _publish(engine, "x.com", tx())
    assert engine.check("x.com", tx(value=-5), now=0.0).reason is Reason.INVALID_INTERACTION
    with pytest.raises(InvalidInteraction):
        engine.check("bad..origin", tx(), now=0.0)


def test_unknown_root_fails_closed(engine):
    engine.observe("x.com", b"\x42" * 32, observed_at=0.0)
    v = engine.check("x.com", tx(), now=0.0)
    assert v.decision is Decision.DENIED
    assert v.reason is Reason.SOURCE_UNAVAILABLE


def test_engine_metrics(engine, metrics):
    _publish(engine, "x.com", tx())
    engine.check("x.com", tx(), now=0.0)
    engine.check("nobody.test", tx(), now=0.0)
    get = metrics.registry.get_sample_value
    assert get("dpf_verdicts_total", {"decision": "allowed", "reason": "matched"}) == 1.0
    assert get("dpf_verdicts_total", {"decision": "allowed", "reason": "no_policy"}) == 1.0
    assert get("dpf_evaluate_seconds_count") == 2.0


def test_clock_is_used_when_now_is_omitted(metrics):
    t = {"now": 0.0}
    engine = PermissionEngine(
        store=PolicyStore(grace_window=10.0),
        source=LeafSetProofSource(),
        config=DPFConfig(policy=PolicyConfig(grace_window_s=10.0)),
        metrics=metrics,
        clock=lambda: t["now"],
    )
    _publish(engine, "x.com", tx(value=1), at=None)
    t["now"] = 5.0
    _publish(engine, "x.com", tx(value=2), at=None)
    assert engine.store.get("x.com").root_changed_at == 5.0
    t["now"] = 14.0
    assert engine.is_allowed("x.com", tx(value=1))
    t["now"] = 15.0
    assert not engine.is_allowed("x.com", tx(value=1))


def test_engine_requires_a_source(clean_env):
    with pytest.raises(ValueError):
        PermissionEngine(config=DPFConfig())


def test_engine_builds_http_source_from_config(clean_env):
    clean_env.setenv("DPF_SOURCE_URL", "http://proofs.test")
    engine = PermissionEngine()
    try:
        assert engine.source.base_url == "http://proofs.test"
    finally:
        engine.source.close()


# ---------------------------------------------------------------------------
# refresh() via DNS
# ---------------------------------------------------------------------------


def _dns_engine(store, source, metrics, label=""):
    resolver = _TxtResolver()
    cfg = DPFConfig(dns=DnsConfig(label=label))
    return PermissionEngine(store=store, source=source, config=cfg, metrics=metrics, resolver=resolver), resolver


def test_refresh_ingests_published_root(store, source, metrics):
    engine, resolver = _dns_engine(store, source, metrics)
    published = publish_patterns([tx()])
    source.add_trie(published.trie)
    resolver.records["dapp.xyz"] = published.txt_record

    rec = engine.refresh("dapp.xyz", now=10.0)
    assert rec.current_root == published.root
    assert rec.root_changed_at == 10.0
    assert engine.check("dapp.xyz", tx(), now=11.0).allowed

    # same root again is a no-op
    assert engine.refresh("dapp.xyz", now=20.0).root_changed_at == 10.0


def test_refresh_with_label(store, source, metrics):
    engine, resolver = _dns_engine(store, source, metrics, label="_dpf")
    published = publish_patterns([tx()])
    resolver.records["_dpf.dapp.xyz"] = published.txt_record
    assert engine.refresh("dapp.xyz", now=0.0).current_root == published.root


def test_refresh_without_record_keeps_existing(store, source, metrics):
    engine, _resolver = _dns_engine(store, source, metrics)
    assert engine.refresh("dapp.xyz", now=0.0) is None
    engine.observe("dapp.xyz", b"\x01" * 32, observed_at=0.0)
    assert engine.refresh("dapp.xyz", now=5.0).current_root == b"\x01" * 32


def test_refresh_propagates_dns_timeouts(store, source, metrics):
    engine, resolver = _dns_engine(store, source, metrics)
    resolver.error = dns.exception.Timeout()
    with pytest.raises(ExternalSourceTimeout):
        engine.refresh("dapp.xyz", now=0.0)
