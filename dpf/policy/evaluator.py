"""
DPF • Policy — permission evaluator

    evaluate(interaction, policy, now, source) -> Verdict

Algorithm
---------
1. Validate the interaction; a malformed request is Denied (INVALID_INTERACTION).
2. No policy record (or a corrupt one) -> Allowed (NO_POLICY).
3. Authoritative roots: the current root, plus the previous root while
   `now - root_changed_at < grace_window`.
4. Probe leaves: the 2^k expansions of the request.
5. For each (root, leaf): fetch a membership proof from `source` and verify it
   against that root. The first proof that verifies -> Allowed (MATCHED).
6. Otherwise Denied. The reason is SOURCE_TIMEOUT / SOURCE_UNAVAILABLE when
   some probe could not be determined, NO_MATCH when every probe was answered
   negatively.

A proof that is missing or fails verification is a negative answer for that
probe only; the search continues. All fetches of one evaluation share a
single deadline, and a fetch that would start after it counts as a timeout,
so a slow source always fails closed.

Any other exception from a source is treated like an unavailable source.
The evaluator holds no state and never raises for source or proof problems;
it is safe to call concurrently from any number of threads.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple

from ..constants import GRACE_WINDOW_SECONDS, MAX_NODE_BYTES_DEFAULT, MAX_PROOF_NODES_DEFAULT
from ..errors import (
    ExternalSourceTimeout,
    ExternalSourceUnavailable,
    InvalidInteraction,
    PolicyRecordCorrupt,
    ProofNotFound,
    ProofVerificationFailed,
)
from ..interaction import Interaction, expand, validate
from ..metrics import Metrics
from ..sources.base import ProofSource
from ..trie.verify import verify
from ..utils.hash import to_hex
from .record import PolicyRecord

log = logging.getLogger(__name__)


class Decision(str, Enum):
    ALLOWED = "allowed"
    DENIED = "denied"


class Reason(str, Enum):
    MATCHED = "matched"
    NO_POLICY = "no_policy"
    NO_MATCH = "no_match"
    INVALID_INTERACTION = "invalid_interaction"
    SOURCE_TIMEOUT = "source_timeout"
    SOURCE_UNAVAILABLE = "source_unavailable"


@dataclass(frozen=True)
class Verdict:
    """
    Outcome of one evaluation.

    root / leaf are set for MATCHED (the root and probe leaf that proved
    membership); detail carries a human-readable note for denials.
    """
    decision: Decision
    reason: Reason
    root: Optional[bytes] = None
    leaf: Optional[bytes] = None
    detail: str = ""

    @property
    def allowed(self) -> bool:
        return self.decision is Decision.ALLOWED

    @classmethod
    def allow(cls, reason: Reason, *, root: Optional[bytes] = None, leaf: Optional[bytes] = None) -> "Verdict":
        return cls(Decision.ALLOWED, reason, root=root, leaf=leaf)

    @classmethod
    def deny(cls, reason: Reason, detail: str = "") -> "Verdict":
        return cls(Decision.DENIED, reason, detail=detail)

    def to_dict(self) -> dict:
        return {
            "decision": self.decision.value,
            "reason": self.reason.value,
            "root": to_hex(self.root) if self.root is not None else None,
            "leaf": to_hex(self.leaf) if self.leaf is not None else None,
            "detail": self.detail or None,
        }


def evaluate(
    interaction: Interaction,
    policy: Optional[PolicyRecord],
    now: float,
    source: ProofSource,
    *,
    timeout: float = 2.0,
    grace_window: float = GRACE_WINDOW_SECONDS,
    max_nodes: int = MAX_PROOF_NODES_DEFAULT,
    max_node_bytes: int = MAX_NODE_BYTES_DEFAULT,
    metrics: Optional[Metrics] = None,
    clock: Callable[[], float] = time.monotonic,
) -> Verdict:
    """
    Decide whether `interaction` is allowed under `policy` at time `now`.

    `timeout` is the budget (seconds) for all proof fetches of this call;
    `clock` is the monotonic clock the budget is measured on.
    """
    verdict = _evaluate(
        interaction, policy, now, source,
        timeout=timeout, grace_window=grace_window,
        max_nodes=max_nodes, max_node_bytes=max_node_bytes,
        metrics=metrics, clock=clock,
    )
    if metrics is not None:
        metrics.observe_verdict(verdict.decision.value, verdict.reason.value)
    log.debug(
        "verdict %s (%s)", verdict.decision.value, verdict.reason.value,
        extra={"detail": verdict.detail} if verdict.detail else None,
    )
    return verdict


def _evaluate(
    interaction: Interaction,
    policy: Optional[PolicyRecord],
    now: float,
    source: ProofSource,
    *,
    timeout: float,
    grace_window: float,
    max_nodes: int,
    max_node_bytes: int,
    metrics: Optional[Metrics],
    clock: Callable[[], float],
) -> Verdict:
    try:
        validate(interaction)
    except InvalidInteraction as e:
        return Verdict.deny(Reason.INVALID_INTERACTION, e.message)

    if policy is not None:
        try:
            policy.check()
        except PolicyRecordCorrupt as e:
            log.warning("ignoring corrupt policy record", extra={"reason": e.message})
            policy = None
    if policy is None:
        return Verdict.allow(Reason.NO_POLICY)

    roots = policy.authoritative_roots(now, grace_window)
    probes = sorted(expand(interaction))
    pairs: List[Tuple[bytes, bytes]] = [(root, leaf) for root in roots for leaf in probes]

    deadline = clock() + timeout
    timed_out = False
    unavailable = False

    def _probe(outcome: str) -> None:
        if metrics is not None:
            metrics.observe_probe(outcome)

    for root, leaf in pairs:
        remaining = deadline - clock()
        if remaining <= 0:
            timed_out = True
            _probe("timeout")
            break
        try:
            proof = source.fetch_proof(root, leaf, timeout=remaining)
        except ProofNotFound:
            _probe("not_found")
            continue
        except ProofVerificationFailed as e:
            _probe("rejected")
            log.debug("malformed proof from source: %s", e.message)
            continue
        except ExternalSourceTimeout as e:
            timed_out = True
            _probe("timeout")
            log.warning("proof source timed out", extra={"root": to_hex(root), "reason": e.message})
            continue
        except ExternalSourceUnavailable as e:
            unavailable = True
            _probe("unavailable")
            log.warning("proof source unavailable", extra={"root": to_hex(root), "reason": e.message})
            continue
        except Exception:
            unavailable = True
            _probe("unavailable")
            log.warning("proof source failed", extra={"root": to_hex(root)}, exc_info=True)
            continue

        if verify(proof, leaf, root, max_nodes=max_nodes, max_node_bytes=max_node_bytes):
            _probe("matched")
            return Verdict.allow(Reason.MATCHED, root=root, leaf=leaf)
        _probe("rejected")

    if timed_out:
        return Verdict.deny(Reason.SOURCE_TIMEOUT, "proof source did not answer within the deadline")
    if unavailable:
        return Verdict.deny(Reason.SOURCE_UNAVAILABLE, "proof source could not be reached")
    return Verdict.deny(Reason.NO_MATCH, f"none of {len(pairs)} probes is a member of the policy")


__all__ = ["Decision", "Reason", "Verdict", "evaluate"]
