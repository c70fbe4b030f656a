"""Issuance models: signed authorizations, mint methods and receipts."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Optional

from signedmint.crypto.encoding import to_hex


class MintMethod(str, enum.Enum):
    """Which authorization path admitted a mint."""
    MEMBERSHIP = "membership"
    SIGNATURE = "signature"


@dataclass(frozen=True)
class SignedAuthorization:
    """A (message_hash, signature) pair issued by the trusted authority.

    Never persisted by the mint service. Both halves must be presented
    together at mint time.
    """
    message_hash: bytes
    signature: bytes

    def to_dict(self) -> dict[str, str]:
        return {
            "message_hash": to_hex(self.message_hash),
            "signature": to_hex(self.signature),
        }


@dataclass(frozen=True)
class SigningResponse:
    """Outcome of asking the authority to sign (address, quantity)."""
    ok: bool
    authorization: Optional[SignedAuthorization] = None
    reason: str = ""


@dataclass(frozen=True)
class IssuanceReceipt:
    """Tokens minted by one successful issuance call.

    Invariant: token_ids is a contiguous ascending run.
    """
    recipient: str
    token_ids: tuple[int, ...]
    payment: int

    @property
    def quantity(self) -> int:
        return len(self.token_ids)

    @property
    def first_token_id(self) -> int:
        return self.token_ids[0]

    @property
    def last_token_id(self) -> int:
        return self.token_ids[-1]

    def to_dict(self) -> dict[str, Any]:
        return {
            "recipient": self.recipient,
            "token_ids": list(self.token_ids),
            "payment": self.payment,
        }
