"""
DPF • Policy — keyed policy store with per-domain locking

Holds one `PolicyRecord` per domain and implements the time-lock lifecycle:

  • ingest(domain, new_root, observed_at)   root observation (from DNS)
  • sweep_expired(now)                      drop elapsed previous roots
  • resolve(origin)                         hierarchy lookup for an origin

Concurrency
-----------
Each stored domain has its own `threading.Lock`; ingest, sweep and reads of
that domain's record take it, so work on different domains proceeds in
parallel while work on one domain is serialized. Records are immutable and
replaced whole, so a reader holding a record never observes a half-applied
shift.

Locks exist only for domains that hold (or are about to hold) a record:
reads of unknown domains never create one, and `remove()` drops it. The
record map itself is only mutated under the registry lock, which is always
taken after (never before) a domain lock.

Domain hierarchy
----------------
`resolve("a.b.example.com")` tries a.b.example.com, b.example.com,
example.com, com and returns the first record present, even if that record
would deny the interaction. None means no domain in the chain publishes a
policy. Corrupt records are discarded on sight and treated as absent.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union

from ..constants import GRACE_WINDOW_SECONDS, ROOT_BYTES
from ..errors import PolicyRecordCorrupt
from ..metrics import Metrics
from ..utils.hash import to_hex
from .record import PolicyRecord

log = logging.getLogger(__name__)


def normalize_domain(domain: str) -> str:
    """Lower-case, strip surrounding whitespace and the trailing root dot."""
    if not isinstance(domain, str):
        raise TypeError("domain must be a string")
    d = domain.strip().lower().rstrip(".")
    if not d or ".." in d or d.startswith("."):
        raise ValueError(f"invalid domain {domain!r}")
    return d


def domain_chain(domain: str) -> List[str]:
    """['a.b.c', 'b.c', 'c'] for 'a.b.c'."""
    labels = normalize_domain(domain).split(".")
    return [".".join(labels[i:]) for i in range(len(labels))]


class PolicyStore:
    def __init__(
        self,
        *,
        grace_window: float = GRACE_WINDOW_SECONDS,
        metrics: Optional[Metrics] = None,
    ) -> None:
        self.grace_window = float(grace_window)
        self._metrics = metrics
        self._records: Dict[str, PolicyRecord] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    # ---------------- locking ----------------

    def _lock_for(self, domain: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(domain)
            if lock is None:
                lock = self._locks[domain] = threading.Lock()
            return lock

    @contextmanager
    def _locked(self, domain: str) -> Iterator[None]:
        """Hold the domain lock; retries if `remove()` retired it meanwhile."""
        while True:
            lock = self._lock_for(domain)
            with lock:
                with self._registry_lock:
                    current = self._locks.get(domain) is lock
                if current:
                    yield
                    return

    def _has(self, domain: str) -> bool:
        with self._registry_lock:
            return domain in self._records

    def _put(self, domain: str, record: PolicyRecord) -> None:
        with self._registry_lock:
            self._records[domain] = record

    def _publish_size(self) -> None:
        if self._metrics is not None:
            self._metrics.set_records(len(self))

    # ---------------- lifecycle ----------------

    def ingest(self, domain: str, new_root: bytes, observed_at: float) -> PolicyRecord:
        """
        Apply a root observation. Unchanged roots are a no-op and return the
        existing record; a new root shifts current → previous and restarts the
        grace window at `observed_at`.
        """
        domain = normalize_domain(domain)
        if not isinstance(new_root, bytes) or len(new_root) != ROOT_BYTES:
            raise ValueError("new_root must be 32 bytes")

        with self._locked(domain):
            existing = self._load(domain)
            if existing is None:
                record = PolicyRecord(current_root=new_root, previous_root=None, root_changed_at=observed_at)
                result = "created"
            else:
                record = existing.advanced(new_root, observed_at)
                result = "unchanged" if record is existing else "rotated"
            self._put(domain, record)

        if result != "unchanged":
            log.info(
                "policy root %s", result,
                extra={"domain": domain, "root": to_hex(new_root), "observed_at": observed_at},
            )
        if self._metrics is not None:
            self._metrics.observe_ingest(result)
        self._publish_size()
        return record

    def sweep_expired(self, now: float) -> int:
        """
        Clear previous roots whose grace window has elapsed. Returns how many
        records changed. Correctness of evaluation never depends on this.
        """
        swept = 0
        for domain in self.domains():
            with self._locked(domain):
                record = self._load(domain)
                if record is None:
                    continue
                updated = record.expired(now, self.grace_window)
                if updated is not record:
                    self._put(domain, updated)
                    swept += 1
        if swept:
            log.debug("swept expired previous roots", extra={"count": swept})
        self._publish_size()
        return swept

    # ---------------- reads ----------------

    def get(self, domain: str) -> Optional[PolicyRecord]:
        """Record for exactly `domain` (no hierarchy fallback)."""
        return self._read(normalize_domain(domain))

    def resolve(self, origin: str) -> Optional[Tuple[str, PolicyRecord]]:
        """
        (governing domain, record) for `origin`, walking up the hierarchy and
        stopping at the first domain holding a record.
        """
        for domain in domain_chain(origin):
            record = self._read(domain)
            if record is not None:
                return domain, record
        return None

    def remove(self, domain: str) -> bool:
        domain = normalize_domain(domain)
        if not self._has(domain):
            return False
        with self._locked(domain):
            with self._registry_lock:
                removed = self._records.pop(domain, None) is not None
                self._locks.pop(domain, None)
        self._publish_size()
        return removed

    def domains(self) -> List[str]:
        with self._registry_lock:
            return sorted(self._records)

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._records)

    def __iter__(self) -> Iterator[str]:
        return iter(self.domains())

    # ---------------- snapshot / restore ----------------

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        """JSON-friendly copy of every record."""
        out: Dict[str, Dict[str, Any]] = {}
        for domain in self.domains():
            record = self.get(domain)
            if record is not None:
                out[domain] = record.to_dict()
        return out

    def restore(self, records: Mapping[str, Union[PolicyRecord, Mapping[str, Any]]]) -> int:
        """
        Load records (e.g. from `snapshot()`); corrupt entries are discarded
        with a warning. Returns the number of records loaded.
        """
        loaded = 0
        for raw_domain, raw in records.items():
            domain = normalize_domain(raw_domain)
            try:
                record = raw.check() if isinstance(raw, PolicyRecord) else PolicyRecord.from_dict(raw)
            except PolicyRecordCorrupt as e:
                log.warning("discarding corrupt policy record", extra={"domain": domain, "reason": e.message})
                continue
            with self._locked(domain):
                self._put(domain, record)
            loaded += 1
        self._publish_size()
        return loaded

    # ---------------- internals ----------------

    def _load(self, domain: str) -> Optional[PolicyRecord]:
        """Fetch a record, discarding it if corrupt. Caller holds the domain lock."""
        with self._registry_lock:
            record = self._records.get(domain)
        if record is None:
            return None
        try:
            return record.check()
        except PolicyRecordCorrupt as e:
            log.warning("discarding corrupt policy record", extra={"domain": domain, "reason": e.message})
            with self._registry_lock:
                self._records.pop(domain, None)
            return None

    def _read(self, domain: str) -> Optional[PolicyRecord]:
        # unknown domains are answered without creating a lock for them
        if not self._has(domain):
            return None
        with self._locked(domain):
            return self._load(domain)


__all__ = ["PolicyStore", "normalize_domain", "domain_chain"]
