"""
DPF • Adapters — DNS TXT root discovery

A domain publishes its current policy root as a TXT record:

    example.com.  TXT  "v=dpf1 9f2c…(64 hex chars)…"

Other TXT records on the name (SPF, site verification, …) are ignored. A
record that carries the `v=dpf1` prefix but no valid 32-byte root, or two
dpf1 records naming different roots, is an InvalidTxtRecord: a domain that
cannot say which root is current gets no new root ingested.

With `label="_dpf"` the query goes to `_dpf.example.com` instead of the
domain itself.

Lookups use dnspython. Outcomes:

    NXDOMAIN / NoAnswer / no dpf1 record   -> None
    resolver lifetime exceeded             -> ExternalSourceTimeout
    other resolver failures                -> ExternalSourceUnavailable
"""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable, List, Optional

import dns.exception
import dns.resolver

from ..constants import ROOT_BYTES, TXT_RECORD_PREFIX
from ..errors import ExternalSourceTimeout, ExternalSourceUnavailable, InvalidTxtRecord

log = logging.getLogger(__name__)

_ROOT_HEX_RE = re.compile(r"^(?:0x)?([0-9a-fA-F]{%d})$" % (2 * ROOT_BYTES))


# ----------------------------- record format --------------------------------


def format_txt_record(root: bytes) -> str:
    if not isinstance(root, bytes) or len(root) != ROOT_BYTES:
        raise ValueError("root must be 32 bytes")
    return f"{TXT_RECORD_PREFIX} {root.hex()}"


def parse_txt_record(text: str) -> Optional[bytes]:
    """
    Root carried by one TXT string, or None if it is not a dpf1 record.

    Raises:
        InvalidTxtRecord if the string has the dpf1 prefix but a bad payload.
    """
    rec = text.strip().strip('"').strip()
    parts = rec.split()
    if not parts or parts[0].lower() != TXT_RECORD_PREFIX:
        return None
    if len(parts) != 2:
        raise InvalidTxtRecord("dpf1 record must be 'v=dpf1 <root>'", data={"record": rec})
    m = _ROOT_HEX_RE.match(parts[1])
    if not m:
        raise InvalidTxtRecord("dpf1 root must be 32 bytes of hex", data={"record": rec})
    return bytes.fromhex(m.group(1))


def select_root(texts: Iterable[str]) -> Optional[bytes]:
    """
    The single root named by a set of TXT strings (None if none is dpf1).

    Raises:
        InvalidTxtRecord on a malformed dpf1 record or conflicting roots.
    """
    roots = {r for r in (parse_txt_record(t) for t in texts) if r is not None}
    if not roots:
        return None
    if len(roots) > 1:
        raise InvalidTxtRecord(
            "conflicting dpf1 records", data={"roots": sorted(r.hex() for r in roots)}
        )
    return roots.pop()


# ----------------------------- resolution -----------------------------------


def query_name(domain: str, label: str = "") -> str:
    d = domain.strip().rstrip(".")
    return f"{label}.{d}" if label else d


def _rr_text(rr: Any) -> str:
    # dnspython returns a sequence of strings per record; join them
    return "".join(t.decode("utf-8", "replace") if isinstance(t, (bytes, bytearray)) else str(t) for t in rr.strings)


def lookup_txt(name: str, *, timeout: float = 3.0, resolver: Optional[Any] = None) -> List[str]:
    """
    TXT strings published at `name` (empty when the name or record is absent).

    `resolver` is anything with dnspython's `resolve(name, rdtype)` signature;
    a fresh `dns.resolver.Resolver` is used when omitted.
    """
    if resolver is None:
        resolver = dns.resolver.Resolver()
        resolver.lifetime = timeout
    try:
        answers = resolver.resolve(name, "TXT")
    except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer):
        return []
    except dns.exception.Timeout as e:
        raise ExternalSourceTimeout(f"DNS lookup timed out: {name}", data={"name": name}) from e
    except dns.exception.DNSException as e:
        raise ExternalSourceUnavailable(f"DNS lookup failed: {e}", data={"name": name}) from e
    return [_rr_text(rr) for rr in answers]


def resolve_root(
    domain: str,
    *,
    timeout: float = 3.0,
    label: str = "",
    resolver: Optional[Any] = None,
) -> Optional[bytes]:
    """
    Current policy root published by `domain`, or None if it publishes none.
    """
    name = query_name(domain, label)
    root = select_root(lookup_txt(name, timeout=timeout, resolver=resolver))
    log.debug("dpf1 TXT lookup", extra={"name": name, "found": root is not None})
    return root


__all__ = [
    "format_txt_record",
    "parse_txt_record",
    "select_root",
    "query_name",
    "lookup_txt",
    "resolve_root",
]
