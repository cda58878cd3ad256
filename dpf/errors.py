"""
DPF errors.

Lightweight, typed exception hierarchy with structured metadata suitable for
API layers or internal callers.

Usage:

    from dpf.errors import ProofNotFound

    raise ProofNotFound("leaf not in trie", data={"root": root.hex()})

All errors expose:
- .code   : stable machine-readable code (snake_case)
- .status : suggested HTTP status (int)
- .data   : optional structured payload (dict-like)
- .to_problem() : RFC 7807-compatible dict for JSON responses

Only `InvalidInteraction` (the caller's own malformed request) and
`PolicyRecordCorrupt` are meant to reach callers of the engine; the other
kinds are resolved into an allow/deny verdict by the evaluator.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional


class DPFError(Exception):
    """
    Base class for DPF errors.

    Subclasses should set `default_code` and `default_status`.
    """
    default_code = "dpf_error"
    default_status = 400

    def __init__(
        self,
        message: str = "",
        *,
        code: Optional[str] = None,
        status: Optional[int] = None,
        data: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.status = int(status if status is not None else self.default_status)
        self.data: Dict[str, Any] = dict(data) if data else {}

    def __str__(self) -> str:  # pragma: no cover - trivial
        if self.message:
            return f"{self.code}: {self.message}"
        return self.code

    def to_problem(self) -> Dict[str, Any]:
        """
        Render as an RFC 7807 "problem detail" object.
        """
        return {
            "type": f"urn:dpf:{self.code}",
            "title": self.code.replace("_", " ").title(),
            "status": self.status,
            "detail": self.message or None,
            "data": self.data or None,
        }

    @classmethod
    def from_exc(cls, exc: BaseException, *, code: Optional[str] = None, status: Optional[int] = None) -> "DPFError":
        """
        Wrap an arbitrary exception into a DPFError with a best-effort message.
        """
        msg = f"{exc.__class__.__name__}: {exc}"
        return cls(msg, code=code, status=status)


class InvalidInteraction(DPFError):
    """
    Structurally malformed interaction or pattern (method/details mismatch,
    bad selector, bad value, wildcard where a concrete value is required).
    """
    default_code = "invalid_interaction"
    default_status = 400


class ProofNotFound(DPFError):
    """
    The leaf store has no membership proof for the probed leaf under the root.
    """
    default_code = "proof_not_found"
    default_status = 404


class ProofVerificationFailed(DPFError):
    """
    A proof was supplied but does not connect the leaf to the expected root.
    """
    default_code = "proof_verification_failed"
    default_status = 422


class ExternalSourceTimeout(DPFError):
    """
    An external collaborator (proof store, DNS) did not answer in time.
    """
    default_code = "external_source_timeout"
    default_status = 504


class ExternalSourceUnavailable(DPFError):
    """
    An external collaborator failed or does not serve the requested root.
    """
    default_code = "external_source_unavailable"
    default_status = 503


class PolicyRecordCorrupt(DPFError):
    """
    A policy record violates its internal invariants and must be discarded.
    """
    default_code = "policy_record_corrupt"
    default_status = 500


class InvalidTxtRecord(DPFError):
    """
    A DNS TXT record carries the dpf1 prefix but not a valid 32-byte root,
    or a domain publishes conflicting dpf1 records.
    """
    default_code = "invalid_txt_record"
    default_status = 422


__all__ = [
    "DPFError",
    "InvalidInteraction",
    "ProofNotFound",
    "ProofVerificationFailed",
    "ExternalSourceTimeout",
    "ExternalSourceUnavailable",
    "PolicyRecordCorrupt",
    "InvalidTxtRecord",
]
