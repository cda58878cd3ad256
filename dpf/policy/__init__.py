"""
DPF policy layer: per-domain records and their time-lock, the keyed store,
the permission evaluator, the engine facade and the publisher helper.
"""

from .engine import PermissionEngine
from .evaluator import Decision, Reason, Verdict, evaluate
from .publisher import PublishedPolicy, publish_patterns
from .record import PolicyRecord
from .store import PolicyStore, domain_chain, normalize_domain

__all__ = [
    "PermissionEngine",
    "Decision",
    "Reason",
    "Verdict",
    "evaluate",
    "PublishedPolicy",
    "publish_patterns",
    "PolicyRecord",
    "PolicyStore",
    "domain_chain",
    "normalize_domain",
]
