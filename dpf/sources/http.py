"""
DPF • Sources — HTTP proof source

Fetches membership proofs from a remote proof store.

Endpoint
--------
- GET {base}/dpf/proof?root=<0x hex>&leaf=<0x hex>
    200 : body is the proof wire form (canonical CBOR array of node bytes)
    404 : leaf is not a member under root
    5xx : store failure

Mapping to the error taxonomy:

    404                          -> ProofNotFound
    httpx.TimeoutException       -> ExternalSourceTimeout
    transport error / 5xx / 4xx  -> ExternalSourceUnavailable
    undecodable body             -> ProofVerificationFailed

Transport failures are retried with exponential backoff, never past the
caller's `timeout`.

Usage
-----
    with HttpProofSource("https://proofs.example.org") as src:
        proof = src.fetch_proof(root, leaf, timeout=2.0)

A pre-built `httpx.Client` may be injected (e.g. one using
`httpx.MockTransport` in tests); it is then not closed by this object.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Optional

import httpx

from ..config import SourceConfig
from ..errors import ExternalSourceTimeout, ExternalSourceUnavailable, ProofNotFound
from ..trie.proofs import MembershipProof, decode_proof
from ..utils.hash import to_hex

log = logging.getLogger(__name__)

PROOF_PATH = "/dpf/proof"


class HttpProofSource:
    """
    Synchronous proof store client with retries.
    """

    def __init__(
        self,
        base_url: str,
        *,
        retries: int = 2,
        backoff_base: float = 0.25,
        default_headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.retries = int(retries)
        self.backoff_base = float(backoff_base)
        self._sleep = sleep

        self._headers = {"Accept": "application/cbor"}
        if default_headers:
            self._headers.update(default_headers)

        self._own_client = client is None
        self._client = client if client is not None else httpx.Client()

    @classmethod
    def from_config(cls, cfg: SourceConfig, **kwargs) -> "HttpProofSource":
        if not cfg.base_url:
            raise ValueError("SourceConfig.base_url is not set")
        return cls(cfg.base_url, retries=cfg.retries, backoff_base=cfg.backoff_base_s, **kwargs)

    # --- context management

    def close(self) -> None:
        if self._own_client:
            self._client.close()

    def __enter__(self) -> "HttpProofSource":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --- ProofSource

    def fetch_proof(self, root: bytes, leaf: bytes, *, timeout: float) -> MembershipProof:
        params = {"root": to_hex(root), "leaf": to_hex(leaf)}
        resp = self._get_with_retries(params, timeout=timeout)

        if resp.status_code == 404:
            raise ProofNotFound("proof store has no proof for leaf", data={"root": params["root"]})
        if resp.status_code != 200:
            raise ExternalSourceUnavailable(
                f"proof store answered HTTP {resp.status_code}",
                data={"status": resp.status_code, "root": params["root"]},
            )
        return decode_proof(resp.content)

    # --- internals

    def _get_with_retries(self, params: Dict[str, str], *, timeout: float) -> httpx.Response:
        deadline = time.monotonic() + timeout
        attempt = 0
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ExternalSourceTimeout("proof fetch budget exhausted", data={"attempts": attempt})
            try:
                resp = self._client.get(
                    self.base_url + PROOF_PATH, params=params, headers=self._headers, timeout=remaining
                )
            except httpx.TimeoutException as e:
                raise ExternalSourceTimeout(f"proof store timed out: {e}", data={"attempts": attempt + 1}) from e
            except httpx.TransportError as e:
                if not self._may_retry(attempt, deadline):
                    raise ExternalSourceUnavailable(
                        f"proof store unreachable: {e}", data={"attempts": attempt + 1}
                    ) from e
                log.debug("proof fetch transport error, retrying", extra={"attempt": attempt, "err": str(e)})
            except httpx.HTTPError as e:
                # bad Content-Encoding, redirect loops, ...: the store answered but unusably
                raise ExternalSourceUnavailable(
                    f"proof store response unusable: {e}", data={"attempts": attempt + 1}
                ) from e
            else:
                if resp.status_code < 500 or not self._may_retry(attempt, deadline):
                    return resp
                log.debug("proof store HTTP %d, retrying", resp.status_code, extra={"attempt": attempt})
            self._sleep(self._backoff(attempt))
            attempt += 1

    def _may_retry(self, attempt: int, deadline: float) -> bool:
        return attempt < self.retries and time.monotonic() + self._backoff(attempt) < deadline

    def _backoff(self, attempt: int) -> float:
        # attempt: 0,1,2,… -> base * 2^attempt
        return self.backoff_base * (2 ** attempt)


__all__ = ["HttpProofSource", "PROOF_PATH"]
