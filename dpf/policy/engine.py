"""
DPF • Policy — engine facade

Wires the policy store, a proof source, configuration, metrics and DNS root
discovery into the calls a wallet makes:

    engine = PermissionEngine(store=PolicyStore(), source=LeafSetProofSource())
    engine.observe("app.example.com", root, observed_at=time.time())
    verdict = engine.check("app.example.com", interaction)

check(origin, interaction)
    Resolve the governing record through the domain hierarchy
    (sub.example.com -> example.com -> com, first record wins). No record
    anywhere -> Allowed / NO_POLICY. Otherwise evaluate against that record.

refresh(domain)
    Read the domain's dpf1 TXT record and ingest the root it names. A domain
    that publishes no record keeps whatever record the store already holds.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

from ..adapters.dns_txt import resolve_root
from ..config import DPFConfig, get_config
from ..errors import InvalidInteraction
from ..interaction import Interaction
from ..logging import bind, trace_scope
from ..metrics import Metrics, get_metrics
from ..sources.base import ProofSource
from .evaluator import Reason, Verdict, evaluate
from .record import PolicyRecord
from .store import PolicyStore, normalize_domain

log = logging.getLogger(__name__)


class PermissionEngine:
    def __init__(
        self,
        store: Optional[PolicyStore] = None,
        source: Optional[ProofSource] = None,
        *,
        config: Optional[DPFConfig] = None,
        metrics: Optional[Metrics] = None,
        resolver: Optional[Any] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or get_config()
        self.metrics = metrics if metrics is not None else get_metrics()
        if store is None:
            store = PolicyStore(grace_window=self.config.policy.grace_window_s, metrics=self.metrics)
        self.store = store
        if source is None:
            if not self.config.source.base_url:
                raise ValueError("no proof source given and DPF_SOURCE_URL is not set")
            from ..sources.http import HttpProofSource

            source = HttpProofSource.from_config(self.config.source)
        self.source = source
        self._resolver = resolver
        self._clock = clock

    # ---------------- decisions ----------------

    def check(self, origin: str, interaction: Interaction, now: Optional[float] = None) -> Verdict:
        """
        Decide `interaction` requested by a page served from `origin`.

        Raises:
            InvalidInteraction if `origin` is not a usable domain name.
        """
        now = self._clock() if now is None else now
        try:
            resolved = self.store.resolve(origin)
        except (TypeError, ValueError) as e:
            raise InvalidInteraction(f"invalid origin: {e}", data={"origin": repr(origin)}) from e

        with trace_scope():
            domain: Optional[str] = None
            record: Optional[PolicyRecord] = None
            if resolved is not None:
                domain, record = resolved
                bind(domain=domain, component="engine")
            with self.metrics.time_evaluation():
                verdict = evaluate(
                    interaction,
                    record,
                    now,
                    self.source,
                    timeout=self.config.proofs.timeout_s,
                    grace_window=self.store.grace_window,
                    max_nodes=self.config.proofs.max_nodes,
                    max_node_bytes=self.config.proofs.max_node_bytes,
                    metrics=self.metrics,
                )
            if verdict.reason is Reason.NO_POLICY:
                log.debug("no policy published for origin", extra={"origin": origin})
            return verdict

    def is_allowed(self, origin: str, interaction: Interaction, now: Optional[float] = None) -> bool:
        return self.check(origin, interaction, now).allowed

    # ---------------- policy lifecycle ----------------

    def observe(self, domain: str, root: bytes, observed_at: Optional[float] = None) -> PolicyRecord:
        return self.store.ingest(domain, root, self._clock() if observed_at is None else observed_at)

    def refresh(self, domain: str, now: Optional[float] = None) -> Optional[PolicyRecord]:
        """
        Look up `domain`'s dpf1 TXT record and ingest its root.

        Returns the domain's record afterwards (None if it has none).

        Raises:
            ExternalSourceTimeout / ExternalSourceUnavailable on DNS failure.
            InvalidTxtRecord if the published record is malformed or ambiguous.
        """
        domain = normalize_domain(domain)
        root = resolve_root(
            domain,
            timeout=self.config.dns.timeout_s,
            label=self.config.dns.label,
            resolver=self._resolver,
        )
        if root is None:
            log.debug("no dpf1 record published", extra={"domain": domain})
            return self.store.get(domain)
        return self.observe(domain, root, now)

    def sweep(self, now: Optional[float] = None) -> int:
        return self.store.sweep_expired(self._clock() if now is None else now)


__all__ = ["PermissionEngine"]
