"""Authority signature verification.

A signed authorization is accepted only if two independent checks pass:

1. Signer check: the address recovered from the signature over the
   EIP-191 digest of message_hash equals the trusted authority.
2. Binding check: message_hash equals the canonical hash of the caller's
   actual (address, quantity) for this call.

The signer check alone would let a caller replay someone else's signed
message with different call arguments; the binding check alone would
accept any well-formed hash without a signature.
"""

from __future__ import annotations

import logging
from typing import Optional

from eth_account import Account
from eth_account.messages import defunct_hash_message, encode_defunct
from eth_keys.exceptions import BadSignature, ValidationError

from signedmint.crypto.encoding import (
    AddressLike,
    HashLike,
    coerce_bytes,
    coerce_hash,
    entry_hash,
    normalize_address,
)
from signedmint.errors import InvalidMessageBindingError, InvalidSignatureError

logger = logging.getLogger(__name__)

SIGNATURE_BYTES = 65
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
SECP256K1_HALF_N = SECP256K1_N // 2


def signing_digest(message_hash: HashLike) -> bytes:
    """keccak256("\\x19Ethereum Signed Message:\\n32" || message_hash)."""
    return bytes(defunct_hash_message(primitive=coerce_hash(message_hash)))


def recover_signer(message_hash: HashLike, signature: HashLike) -> Optional[str]:
    """Recover the checksummed signer address, or None if unrecoverable.

    Only canonical 65-byte r || s || v signatures are accepted: v must be
    27 or 28 and s must lie in the lower half of the curve order.
    """
    try:
        digest_input = coerce_hash(message_hash)
        sig = coerce_bytes(signature)
    except ValueError as exc:
        logger.debug(f"Signature recovery rejected malformed input: {exc}")
        return None

    if len(sig) != SIGNATURE_BYTES:
        logger.debug(f"Signature must be {SIGNATURE_BYTES} bytes, got {len(sig)}")
        return None
    r = int.from_bytes(sig[0:32], "big")
    s = int.from_bytes(sig[32:64], "big")
    v = sig[64]
    if v not in (27, 28):
        return None
    if not (0 < r < SECP256K1_N) or not (0 < s <= SECP256K1_HALF_N):
        return None

    try:
        return Account.recover_message(encode_defunct(primitive=digest_input), signature=sig)
    except (BadSignature, ValidationError, ValueError) as exc:
        logger.debug(f"Signature recovery failed: {exc}")
        return None


class SignatureVerifier:
    """Verifies authorizations signed by a single trusted authority."""

    def __init__(self, trusted_authority: AddressLike) -> None:
        self._authority = normalize_address(trusted_authority)

    @property
    def trusted_authority(self) -> str:
        return self._authority

    def check_signer(self, message_hash: HashLike, signature: HashLike) -> bool:
        return recover_signer(message_hash, signature) == self._authority

    def check_binding(
        self, message_hash: HashLike, address: AddressLike, quantity: int
    ) -> bool:
        try:
            return coerce_hash(message_hash) == entry_hash(address, quantity)
        except (TypeError, ValueError):
            return False

    def verify(
        self,
        message_hash: HashLike,
        signature: HashLike,
        address: AddressLike,
        quantity: int,
    ) -> bool:
        """True iff both the signer check and the binding check pass."""
        return self.check_signer(message_hash, signature) and self.check_binding(
            message_hash, address, quantity
        )

    def authorize(
        self,
        message_hash: HashLike,
        signature: HashLike,
        address: AddressLike,
        quantity: int,
    ) -> None:
        """Raise the matching MintError unless verify() would pass."""
        if not self.check_signer(message_hash, signature):
            raise InvalidSignatureError("Signature is not from the trusted authority")
        if not self.check_binding(message_hash, address, quantity):
            raise InvalidMessageBindingError(
                "Signed message does not match caller and quantity"
            )
