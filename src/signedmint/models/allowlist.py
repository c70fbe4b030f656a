"""Allowlist models: the committed (address, quantity) entries and their proofs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from signedmint.crypto.encoding import (
    AddressLike,
    entry_hash,
    normalize_address,
    to_hex,
    validate_quantity,
)


@dataclass(frozen=True)
class AllowlistEntry:
    """One address permitted to mint exactly `quantity` tokens."""
    address: str
    quantity: int

    @staticmethod
    def create(address: AddressLike, quantity: int) -> AllowlistEntry:
        """Create an entry with a checksummed address and a positive quantity."""
        checksummed = normalize_address(address)
        validate_quantity(quantity)
        if quantity == 0:
            raise ValueError(f"Allowlist quantity must be positive for {checksummed}")
        return AllowlistEntry(address=checksummed, quantity=quantity)

    @staticmethod
    def from_dict(data: dict[str, Any]) -> AllowlistEntry:
        if "address" not in data or "quantity" not in data:
            raise ValueError(f"Allowlist entry needs 'address' and 'quantity': {data!r}")
        return AllowlistEntry.create(data["address"], data["quantity"])

    @property
    def leaf(self) -> bytes:
        return entry_hash(self.address, self.quantity)

    def to_dict(self) -> dict[str, Any]:
        return {"address": self.address, "quantity": self.quantity}


@dataclass(frozen=True)
class MerkleProof:
    """An inclusion proof for a single allowlist entry.

    Siblings are ordered leaf to root. No left/right markers are needed
    because every internal node hashes its children in sorted order.
    """
    address: str
    quantity: int
    leaf: bytes
    siblings: tuple[bytes, ...]
    root: bytes

    def hex_siblings(self) -> list[str]:
        return [to_hex(s) for s in self.siblings]

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "quantity": self.quantity,
            "leaf": to_hex(self.leaf),
            "proof": self.hex_siblings(),
            "root": to_hex(self.root),
        }
