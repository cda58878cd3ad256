"""
DPF utilities: keccak hashing, hex helpers and canonical CBOR.
"""

from .cbor import dumps_canonical, loads_canonical
from .hash import from_hex, keccak_256, keccak_256_hex, to_hex

__all__ = [
    "dumps_canonical",
    "loads_canonical",
    "from_hex",
    "keccak_256",
    "keccak_256_hex",
    "to_hex",
]
