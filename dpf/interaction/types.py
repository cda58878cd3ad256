"""
DPF • Interaction model — value types

An *Interaction* is a wallet request a dApp asks the user to approve: a
`method` plus method-specific `details`. A *Pattern* is the same value in
which any wildcard-capable detail field may hold the `ANY` marker; patterns
are what a domain publishes in its allow-list.

    Method            details                       wildcard-capable fields
    ----------------  ----------------------------  ------------------------------------------
    SignMessage       None                          -
    SignData          None                          -
    SendTransaction   SendTransactionDetails        chain_id, to_address, value, function_selector
    SignTypedData     SignTypedDataDetails          domain_separator, type_hash

Values are plain frozen dataclasses and are not validated on construction, so
a malformed request is representable and can be denied with a reason. Use
`dpf.interaction.validate` to check them.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from typing import ClassVar, Optional, Tuple, Union

from ..constants import WILDCARD_FIELDS
from ..utils.hash import from_hex


class Method(str, Enum):
    SIGN_MESSAGE = "SignMessage"
    SIGN_DATA = "SignData"
    SEND_TRANSACTION = "SendTransaction"
    SIGN_TYPED_DATA = "SignTypedData"

    @property
    def wildcard_fields(self) -> Tuple[str, ...]:
        return WILDCARD_FIELDS[self.value]


class Wildcard(Enum):
    """The wildcard marker. A single member so identity checks are safe."""
    ANY = "*"

    def __repr__(self) -> str:
        return "ANY"


ANY = Wildcard.ANY

IntOrAny = Union[int, Wildcard]
BytesOrAny = Union[bytes, Wildcard]


@dataclass(frozen=True)
class SendTransactionDetails:
    """
    chain_id          : EIP-155 chain id
    to_address        : 20-byte target address
    value             : wei amount (uint256)
    function_selector : 4-byte ABI selector, or b"" for empty calldata
    """
    chain_id: IntOrAny
    to_address: BytesOrAny
    value: IntOrAny
    function_selector: BytesOrAny = b""

    method: ClassVar[Method] = Method.SEND_TRANSACTION


@dataclass(frozen=True)
class SignTypedDataDetails:
    """EIP-712 request: the domain separator and the primary type hash."""
    domain_separator: BytesOrAny
    type_hash: BytesOrAny

    method: ClassVar[Method] = Method.SIGN_TYPED_DATA


Details = Union[SendTransactionDetails, SignTypedDataDetails]


@dataclass(frozen=True)
class Interaction:
    method: Method
    details: Optional[Details] = None

    # ---------------- constructors ----------------

    @classmethod
    def sign_message(cls) -> "Interaction":
        return cls(Method.SIGN_MESSAGE)

    @classmethod
    def sign_data(cls) -> "Interaction":
        return cls(Method.SIGN_DATA)

    @classmethod
    def send_transaction(
        cls,
        *,
        chain_id: IntOrAny,
        to: Union[str, BytesOrAny],
        value: IntOrAny = 0,
        selector: Union[str, BytesOrAny] = b"",
    ) -> "Interaction":
        """
        Build a SendTransaction interaction. `to` and `selector` accept bytes,
        0x-hex strings or `ANY`.
        """
        return cls(
            Method.SEND_TRANSACTION,
            SendTransactionDetails(
                chain_id=chain_id,
                to_address=_bytes_or_any(to),
                value=value,
                function_selector=_bytes_or_any(selector),
            ),
        )

    @classmethod
    def sign_typed_data(
        cls,
        *,
        domain_separator: Union[str, BytesOrAny],
        type_hash: Union[str, BytesOrAny],
    ) -> "Interaction":
        return cls(
            Method.SIGN_TYPED_DATA,
            SignTypedDataDetails(
                domain_separator=_bytes_or_any(domain_separator),
                type_hash=_bytes_or_any(type_hash),
            ),
        )

    # ---------------- introspection ----------------

    def field_values(self) -> Tuple[Tuple[str, object], ...]:
        """(name, value) for every detail field in declaration order."""
        if self.details is None:
            return ()
        return tuple((f.name, getattr(self.details, f.name)) for f in fields(self.details))

    @property
    def wildcards(self) -> Tuple[str, ...]:
        """Names of the detail fields currently holding `ANY`."""
        return tuple(name for name, v in self.field_values() if v is ANY)

    @property
    def is_concrete(self) -> bool:
        return not self.wildcards


#: A declared allow-list entry. Same shape as Interaction; fields may be `ANY`.
Pattern = Interaction


def _bytes_or_any(v: Union[str, BytesOrAny]) -> BytesOrAny:
    if v is ANY:
        return ANY
    if isinstance(v, str):
        return from_hex(v)
    if isinstance(v, (bytearray, memoryview)):
        return bytes(v)
    return v


__all__ = [
    "Method",
    "Wildcard",
    "ANY",
    "SendTransactionDetails",
    "SignTypedDataDetails",
    "Details",
    "Interaction",
    "Pattern",
]
