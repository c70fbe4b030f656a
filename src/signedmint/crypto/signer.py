"""Authority signer: issues signed mint authorizations off-chain.

The signer holds the trusted authority's private key. For an
(address, quantity) request it hashes the canonical encoding and signs the
EIP-191 personal-message digest of that hash. Whether a request deserves a
signature is decided by a pluggable eligibility policy; the cryptographic
binding is the same regardless of policy.
"""

from __future__ import annotations

from typing import Callable, Iterable, Optional, Union

from eth_account import Account
from eth_account.messages import encode_defunct

from signedmint.crypto.encoding import AddressLike, entry_hash, normalize_address
from signedmint.models.issuance import SignedAuthorization, SigningResponse


EligibilityPolicy = Callable[[str, int], bool]


class AuthoritySigner:
    """Signs (address, quantity) authorizations with the authority key.

    Usage:
        signer = AuthoritySigner.with_allowlist(private_key, [alice, bob])
        response = signer.check_and_sign(alice, 3)
        if response.ok:
            auth = response.authorization
            service.mint_by_signature(alice, 3, auth.message_hash, auth.signature, payment)
    """

    def __init__(
        self,
        private_key: Union[str, bytes],
        policy: Optional[EligibilityPolicy] = None,
    ) -> None:
        self._account = Account.from_key(private_key)
        self._policy = policy

    @classmethod
    def with_allowlist(
        cls, private_key: Union[str, bytes], addresses: Iterable[AddressLike]
    ) -> AuthoritySigner:
        """Signer that only signs for the given addresses."""
        allowed = frozenset(normalize_address(a) for a in addresses)
        return cls(private_key, policy=lambda address, quantity: address in allowed)

    @property
    def address(self) -> str:
        return self._account.address

    def sign(self, address: AddressLike, quantity: int) -> SignedAuthorization:
        """Sign (address, quantity) unconditionally."""
        message_hash = entry_hash(address, quantity)
        signed = self._account.sign_message(encode_defunct(primitive=message_hash))
        return SignedAuthorization(
            message_hash=message_hash,
            signature=bytes(signed.signature),
        )

    def check_and_sign(self, address: AddressLike, quantity: int) -> SigningResponse:
        """Apply the eligibility policy, then sign if it allows the request."""
        checksummed = normalize_address(address)
        if self._policy is not None and not self._policy(checksummed, quantity):
            return SigningResponse(
                ok=False, reason=f"{checksummed} is not eligible for {quantity}"
            )
        return SigningResponse(ok=True, authorization=self.sign(checksummed, quantity))
