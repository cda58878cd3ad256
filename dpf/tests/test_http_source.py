from __future__ import annotations

import httpx
import pytest

from dpf.config import SourceConfig
from dpf.errors import (
    ExternalSourceTimeout,
    ExternalSourceUnavailable,
    ProofNotFound,
    ProofVerificationFailed,
)
from dpf.interaction import Interaction, canonical_bytes
from dpf.policy import PolicyRecord, Reason, evaluate
from dpf.sources import HttpProofSource, ProofSource
from dpf.trie import PatriciaTrie, encode_proof, verify
from dpf.utils.hash import from_hex

BASE = "http://proofs.test"
LEAVES = [b"alpha", b"beta", b"gamma"]
TRIE = PatriciaTrie(LEAVES)
ROOT = TRIE.root()


def _store_handler(calls):
    """A proof store serving TRIE."""

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        assert request.url.path == "/dpf/proof"
        root = from_hex(request.url.params["root"])
        leaf = from_hex(request.url.params["leaf"])
        if root != ROOT:
            return httpx.Response(503, text="unknown root")
        if leaf not in TRIE:
            return httpx.Response(404)
        return httpx.Response(
            200, content=encode_proof(TRIE.prove(leaf)), headers={"Content-Type": "application/cbor"}
        )

    return handler


def _source(handler, **kw) -> HttpProofSource:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    kw.setdefault("backoff_base", 0.0)
    return HttpProofSource(BASE, client=client, sleep=lambda s: None, **kw)


def test_implements_proof_source_protocol():
    assert isinstance(_source(lambda r: httpx.Response(404)), ProofSource)


def test_fetches_and_decodes_proof():
    calls = []
    src = _source(_store_handler(calls))
    proof = src.fetch_proof(ROOT, b"beta", timeout=1.0)
    assert verify(proof, b"beta", ROOT)
    assert calls[0].headers["accept"] == "application/cbor"
    assert calls[0].url.params["root"] == "0x" + ROOT.hex()


def test_missing_leaf_is_not_found():
    src = _source(_store_handler([]))
    with pytest.raises(ProofNotFound):
        src.fetch_proof(ROOT, b"delta", timeout=1.0)


def test_server_errors_are_retried_then_unavailable():
    calls = []
    src = _source(_store_handler(calls), retries=2)
    with pytest.raises(ExternalSourceUnavailable) as ei:
        src.fetch_proof(b"\x00" * 32, b"alpha", timeout=1.0)
    assert ei.value.data["status"] == 503
    assert len(calls) == 3


def test_transient_failure_recovers():
    state = {"n": 0}
    good = _store_handler([])

    def flaky(request):
        state["n"] += 1
        if state["n"] == 1:
            raise httpx.ConnectError("refused", request=request)
        return good(request)

    proof = _source(flaky, retries=1).fetch_proof(ROOT, b"alpha", timeout=1.0)
    assert verify(proof, b"alpha", ROOT)
    assert state["n"] == 2


def test_transport_error_exhausts_retries():
    def down(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(ExternalSourceUnavailable) as ei:
        _source(down, retries=1).fetch_proof(ROOT, b"alpha", timeout=1.0)
    assert ei.value.data["attempts"] == 2


def test_timeout_maps_to_external_timeout():
    def slow(request):
        raise httpx.ReadTimeout("too slow", request=request)

    with pytest.raises(ExternalSourceTimeout):
        _source(slow).fetch_proof(ROOT, b"alpha", timeout=1.0)


def test_zero_budget_is_a_timeout():
    calls = []
    with pytest.raises(ExternalSourceTimeout):
        _source(_store_handler(calls)).fetch_proof(ROOT, b"alpha", timeout=0.0)
    assert calls == []


def test_client_errors_are_not_retried():
    calls = []

    def forbidden(request):
        calls.append(request)
        return httpx.Response(403)

    with pytest.raises(ExternalSourceUnavailable):
        _source(forbidden, retries=3).fetch_proof(ROOT, b"alpha", timeout=1.0)
    assert len(calls) == 1


def test_garbage_body_is_a_verification_failure():
    with pytest.raises(ProofVerificationFailed):
        _source(lambda r: httpx.Response(200, content=b"<html>")).fetch_proof(ROOT, b"alpha", timeout=1.0)


def test_from_config():
    src = HttpProofSource.from_config(SourceConfig(base_url=BASE + "/", retries=4, backoff_base_s=0.5))
    try:
        assert src.base_url == BASE
        assert src.retries == 4
        assert src.backoff_base == 0.5
    finally:
        src.close()
    with pytest.raises(ValueError):
        HttpProofSource.from_config(SourceConfig())


def test_evaluator_over_http_store():
    sign = Interaction.sign_message()
    trie = PatriciaTrie([canonical_bytes(sign), b"gamma"])

    def handler(request):
        want = from_hex(request.url.params["leaf"])
        if from_hex(request.url.params["root"]) != trie.root() or want not in trie:
            return httpx.Response(404)
        return httpx.Response(200, content=encode_proof(trie.prove(want)))

    src = _source(handler)
    record = PolicyRecord(current_root=trie.root())
    assert evaluate(sign, record, 0.0, src).reason is Reason.MATCHED
    assert evaluate(Interaction.sign_data(), record, 0.0, src).reason is Reason.NO_MATCH


def test_evaluator_over_failing_http_store():
    def down(request):
        raise httpx.ConnectError("refused", request=request)

    record = PolicyRecord(current_root=ROOT)
    v = evaluate(Interaction.sign_message(), record, 0.0, _source(down, retries=0))
    assert v.reason is Reason.SOURCE_UNAVAILABLE


def _corrupt_gzip(request):
    return httpx.Response(200, headers={"Content-Encoding": "gzip"}, content=b"not gzip at all")


def test_undecodable_response_is_unavailable():
    with pytest.raises(ExternalSourceUnavailable):
        _source(_corrupt_gzip).fetch_proof(ROOT, b"alpha", timeout=1.0)


def test_evaluator_denies_on_undecodable_response():
    record = PolicyRecord(current_root=ROOT)
    v = evaluate(Interaction.sign_message(), record, 1.0, _source(_corrupt_gzip))
    assert not v.allowed
    assert v.reason is Reason.SOURCE_UNAVAILABLE
