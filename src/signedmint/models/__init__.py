"""Data models for SignedMint."""

from signedmint.models.allowlist import AllowlistEntry, MerkleProof
from signedmint.models.issuance import (
    IssuanceReceipt,
    MintMethod,
    SignedAuthorization,
    SigningResponse,
)

__all__ = [
    "AllowlistEntry",
    "MerkleProof",
    "IssuanceReceipt",
    "MintMethod",
    "SignedAuthorization",
    "SigningResponse",
]
