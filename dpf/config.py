"""
DPF configuration.

This module defines the configuration surface for the permission engine:
- Policy time-lock (grace window)
- Proof limits and the per-evaluation fetch budget
- HTTP proof source location, retries and backoff
- DNS TXT lookup timeout and label

All fields have sensible defaults and can be overridden via environment
variables. Nothing here imports heavy dependencies.

Environment variables (all optional):

  # Policy
  DPF_GRACE_WINDOW=72h                  # s/m/h/d suffixes, bare number = seconds

  # Proofs
  DPF_PROOF_TIMEOUT=2s                  # budget for all proof fetches of one evaluation
  DPF_MAX_PROOF_NODES=129
  DPF_MAX_NODE_BYTES=4096

  # HTTP proof source
  DPF_SOURCE_URL=https://policies.example.org
  DPF_HTTP_RETRIES=2
  DPF_HTTP_BACKOFF_BASE=0.25            # seconds

  # DNS
  DPF_DNS_TIMEOUT=3s
  DPF_DNS_LABEL=                        # e.g. "_dpf" to query _dpf.<domain>
"""

from __future__ import annotations

import os
import re
from dataclasses import asdict, dataclass, field
from functools import lru_cache
from typing import Dict, List, Optional

from .constants import GRACE_WINDOW_SECONDS, MAX_NODE_BYTES_DEFAULT, MAX_PROOF_NODES_DEFAULT

# ------------------------------- helpers ------------------------------------


_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([smhd]?)\s*$", re.IGNORECASE)


def _parse_duration(value: str) -> float:
    """
    Parse a tiny duration language into seconds.
      "30" -> 30s
      "250ms" -> 0.25s (ms supported)
      "2s", "5m", "72h", "3d"
    """
    v = value.strip().lower()
    if v.endswith("ms"):
        try:
            return float(v[:-2]) / 1000.0
        except ValueError as e:
            raise ValueError(f"Invalid duration: {value!r}") from e
    m = _DURATION_RE.match(v)
    if not m:
        raise ValueError(f"Invalid duration: {value!r}")
    num = float(m.group(1))
    unit = m.group(2).lower()
    mult = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}[unit]
    return num * mult


def _getenv(key: str, default: Optional[str] = None) -> Optional[str]:
    v = os.environ.get(key)
    return v if v is not None and v.strip() != "" else default


def _getenv_int(key: str, default: int) -> int:
    v = _getenv(key)
    if v is None:
        return default
    try:
        return int(v, 0)
    except Exception as e:
        raise ValueError(f"Invalid int for {key}: {v!r}") from e


def _getenv_float(key: str, default: float) -> float:
    v = _getenv(key)
    if v is None:
        return default
    try:
        return float(v)
    except Exception as e:
        raise ValueError(f"Invalid float for {key}: {v!r}") from e


def _getenv_duration(key: str, default: float) -> float:
    v = _getenv(key)
    return default if v is None else _parse_duration(v)


# ------------------------------- config -------------------------------------


@dataclass(frozen=True)
class PolicyConfig:
    """
    Time-lock settings.

    - grace_window_s: how long the previous root stays authoritative after a
      root change
    """
    grace_window_s: float = float(GRACE_WINDOW_SECONDS)

    def validate(self) -> None:
        if self.grace_window_s < 0:
            raise ValueError("grace_window_s must be >= 0")


@dataclass(frozen=True)
class ProofConfig:
    """
    Proof verification guard rails and fetch budget.
    """
    timeout_s: float = 2.0
    max_nodes: int = MAX_PROOF_NODES_DEFAULT
    max_node_bytes: int = MAX_NODE_BYTES_DEFAULT

    def validate(self) -> None:
        if self.timeout_s <= 0:
            raise ValueError("timeout_s must be > 0")
        if self.max_nodes < 1:
            raise ValueError("max_nodes must be >= 1")
        if self.max_node_bytes < 64:
            raise ValueError("max_node_bytes must be >= 64")


@dataclass(frozen=True)
class SourceConfig:
    """
    HTTP proof source.

    - base_url: None disables the HTTP source
    - retries / backoff_base_s: transport retry policy (timeouts are not retried
      past the evaluation budget)
    """
    base_url: Optional[str] = None
    retries: int = 2
    backoff_base_s: float = 0.25

    def validate(self) -> None:
        if self.base_url is not None and not re.match(r"^https?://", self.base_url):
            raise ValueError("base_url must be an http(s) URL")
        if self.retries < 0:
            raise ValueError("retries must be >= 0")
        if self.backoff_base_s < 0:
            raise ValueError("backoff_base_s must be >= 0")


@dataclass(frozen=True)
class DnsConfig:
    timeout_s: float = 3.0
    label: str = ""

    def validate(self) -> None:
        if self.timeout_s <= 0:
            raise ValueError("dns timeout_s must be > 0")
        if self.label and not re.fullmatch(r"[A-Za-z0-9_\-]+", self.label):
            raise ValueError("dns label must be a single DNS label")


@dataclass(frozen=True)
class DPFConfig:
    """
    Top-level DPF configuration.
    """
    policy: PolicyConfig = field(default_factory=PolicyConfig)
    proofs: ProofConfig = field(default_factory=ProofConfig)
    source: SourceConfig = field(default_factory=SourceConfig)
    dns: DnsConfig = field(default_factory=DnsConfig)

    def validate(self) -> None:
        self.policy.validate()
        self.proofs.validate()
        self.source.validate()
        self.dns.validate()

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


# ------------------------------- loader -------------------------------------


def _load_from_env() -> DPFConfig:
    policy_cfg = PolicyConfig(
        grace_window_s=_getenv_duration("DPF_GRACE_WINDOW", float(GRACE_WINDOW_SECONDS)),
    )
    proof_cfg = ProofConfig(
        timeout_s=_getenv_duration("DPF_PROOF_TIMEOUT", 2.0),
        max_nodes=_getenv_int("DPF_MAX_PROOF_NODES", MAX_PROOF_NODES_DEFAULT),
        max_node_bytes=_getenv_int("DPF_MAX_NODE_BYTES", MAX_NODE_BYTES_DEFAULT),
    )
    source_cfg = SourceConfig(
        base_url=_getenv("DPF_SOURCE_URL"),
        retries=_getenv_int("DPF_HTTP_RETRIES", 2),
        backoff_base_s=_getenv_float("DPF_HTTP_BACKOFF_BASE", 0.25),
    )
    dns_cfg = DnsConfig(
        timeout_s=_getenv_duration("DPF_DNS_TIMEOUT", 3.0),
        label=_getenv("DPF_DNS_LABEL", "") or "",
    )

    cfg = DPFConfig(policy=policy_cfg, proofs=proof_cfg, source=source_cfg, dns=dns_cfg)
    cfg.validate()
    return cfg


@lru_cache(maxsize=1)
def get_config() -> DPFConfig:
    """
    Load and validate configuration (cached). Clear the cache in tests
    via `get_config.cache_clear()` to observe env changes.
    """
    return _load_from_env()


def format_config(cfg: Optional[DPFConfig] = None) -> str:
    cfg = cfg or get_config()
    lines: List[str] = []
    for section, values in cfg.to_dict().items():
        for k, v in values.items():  # type: ignore[union-attr]
            lines.append(f"{section}.{k}: {v}")
    return "\n".join(lines)


__all__ = [
    "PolicyConfig",
    "ProofConfig",
    "SourceConfig",
    "DnsConfig",
    "DPFConfig",
    "get_config",
    "format_config",
]
