"""Mint rejection errors.

Every rejection aborts the whole call with no state change. Callers can
catch MintError for any rejection, or a specific subclass to tell the
failure modes apart.
"""

from __future__ import annotations


class MintError(Exception):
    """Base class for a rejected mint call."""


class InvalidProofError(MintError):
    """The Merkle proof does not place (caller, quantity) under the root."""


class InvalidSignatureError(MintError):
    """The signature was not produced by the trusted authority."""


class InvalidMessageBindingError(MintError):
    """The signed message hash does not encode the caller and quantity."""


class PaymentMismatchError(MintError):
    """Payment differs from price * quantity."""

    def __init__(self, expected: int, received: int) -> None:
        self.expected = expected
        self.received = received
        super().__init__(
            f"Payment must be exactly {expected} wei, received {received}"
        )


class InsufficientPaymentError(PaymentMismatchError):
    """Payment is below price * quantity."""


class OverPaymentError(PaymentMismatchError):
    """Payment is above price * quantity."""


class ZeroQuantityError(MintError):
    """Quantity must be a positive integer."""


class NullRecipientError(MintError):
    """Tokens cannot be minted to the null address."""


class DuplicateIdentifierError(MintError):
    """The ledger already holds the token ID being minted."""


class UnauthorizedIssuanceError(MintError):
    """Issuance was requested without a passing authorization check."""


class AuthorizationReplayError(MintError):
    """The signed authorization was already used (consumed-signature mode)."""
