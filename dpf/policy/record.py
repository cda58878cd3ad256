"""
DPF • Policy — per-domain policy record

    PolicyRecord(current_root, previous_root, root_changed_at)

Lifecycle:

  • created on the first observed root:  current=new, previous=None, changed=t
  • root changes:                        previous=current, current=new, changed=t
  • grace window elapsed:                previous=None (sweep)

Records are immutable values. Updates produce a new record which the store
swaps in whole, so a reader never sees a half-applied shift.

While `now - root_changed_at < grace_window` both roots are authoritative;
afterwards only the current one is, whether or not a sweep has run.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Mapping, Optional, Tuple

from ..constants import GRACE_WINDOW_SECONDS, ROOT_BYTES
from ..errors import PolicyRecordCorrupt
from ..utils.hash import from_hex, to_hex


@dataclass(frozen=True)
class PolicyRecord:
    current_root: bytes
    previous_root: Optional[bytes] = None
    root_changed_at: Optional[float] = None

    # ---------------- invariants ----------------

    def check(self) -> "PolicyRecord":
        """
        Raise PolicyRecordCorrupt if the record violates its invariants.
        """
        if not isinstance(self.current_root, bytes) or len(self.current_root) != ROOT_BYTES:
            raise PolicyRecordCorrupt("current_root must be 32 bytes")
        if self.previous_root is not None:
            if not isinstance(self.previous_root, bytes) or len(self.previous_root) != ROOT_BYTES:
                raise PolicyRecordCorrupt("previous_root must be 32 bytes")
            if self.root_changed_at is None:
                raise PolicyRecordCorrupt("previous_root set without root_changed_at")
        if self.root_changed_at is not None and (
            isinstance(self.root_changed_at, bool) or not isinstance(self.root_changed_at, (int, float))
        ):
            raise PolicyRecordCorrupt("root_changed_at must be a timestamp")
        return self

    # ---------------- time-lock ----------------

    def in_grace(self, now: float, grace_window: float = GRACE_WINDOW_SECONDS) -> bool:
        return (
            self.previous_root is not None
            and self.root_changed_at is not None
            and now - self.root_changed_at < grace_window
        )

    def authoritative_roots(self, now: float, grace_window: float = GRACE_WINDOW_SECONDS) -> Tuple[bytes, ...]:
        """Roots an evaluation at `now` must honour, current first."""
        if self.in_grace(now, grace_window):
            return (self.current_root, self.previous_root)  # type: ignore[return-value]
        return (self.current_root,)

    def advanced(self, new_root: bytes, observed_at: float) -> "PolicyRecord":
        """The record after observing `new_root` (self if unchanged)."""
        if new_root == self.current_root:
            return self
        return PolicyRecord(current_root=new_root, previous_root=self.current_root, root_changed_at=observed_at)

    def expired(self, now: float, grace_window: float = GRACE_WINDOW_SECONDS) -> "PolicyRecord":
        """The record with an elapsed previous root cleared (self otherwise)."""
        if self.previous_root is None or self.in_grace(now, grace_window):
            return self
        return replace(self, previous_root=None)

    # ---------------- (de)serialization ----------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_root": to_hex(self.current_root),
            "previous_root": to_hex(self.previous_root) if self.previous_root is not None else None,
            "root_changed_at": self.root_changed_at,
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "PolicyRecord":
        """
        Raises:
            PolicyRecordCorrupt on missing fields, bad hex or broken invariants.
        """
        try:
            current = from_hex(d["current_root"])
            prev_raw = d.get("previous_root")
            previous = from_hex(prev_raw) if prev_raw is not None else None
        except (KeyError, TypeError, ValueError) as e:
            raise PolicyRecordCorrupt(f"unreadable policy record: {e}") from e
        return cls(current_root=current, previous_root=previous, root_changed_at=d.get("root_changed_at")).check()


__all__ = ["PolicyRecord"]
