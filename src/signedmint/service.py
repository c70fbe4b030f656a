"""SignedMint service: the public mint surface.

Callers mint through exactly one of two authorization paths:
- mint_by_membership: a Merkle proof that (caller, quantity) is in the
  allowlist committed to by the root.
- mint_by_signature: a (message_hash, signature) pair from the trusted
  authority binding the caller to the quantity.

On success the issuance engine mints a contiguous block of token IDs. On
any failure a specific MintError is raised and nothing changes: no
counter movement, no ownership, no log entry.

Each mint call (verification, replay check, bookkeeping and log append)
runs under one lock. Receiver hooks run after the lock is released, once
the counter already reflects the call.

Signature replay: by default a valid authorization can be used again,
minting `quantity` more tokens each time. With consume_signatures=True
each message hash is accepted once.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

from signedmint.config import MintConfig
from signedmint.crypto.encoding import (
    AddressLike,
    HashLike,
    coerce_hash,
    to_hex,
)
from signedmint.crypto.merkle import MembershipVerifier, ProofLike
from signedmint.crypto.signature import SignatureVerifier
from signedmint.errors import (
    AuthorizationReplayError,
    InvalidProofError,
    MintError,
)
from signedmint.issuance.engine import IssuanceEngine
from signedmint.ledger.token_ledger import ReceiverHook, TokenLedger
from signedmint.models.issuance import IssuanceReceipt, MintMethod
from signedmint.persistence.issuance_log import IssuanceLog, IssuanceRecord

logger = logging.getLogger(__name__)


class SignedMintService:
    """Mint facade combining both verifiers, the engine and the ledger.

    Usage:
        service = SignedMintService(
            "SignedMint", "SMI", price_per_unit=10**16,
            root=tree.root, authority=owner_address,
        )
        service.mint_by_membership(alice, 1, proof, payment=10**16)
        service.mint_by_signature(bob, 3, auth.message_hash, auth.signature,
                                  payment=3 * 10**16)
        service.owner_of(0)

    Persistence (optional):
        service = SignedMintService(..., issuance_log=IssuanceLog(path))
        # Existing records are replayed on construction.
    """

    def __init__(
        self,
        name: str,
        symbol: str,
        price_per_unit: int,
        root: HashLike,
        authority: AddressLike,
        *,
        ledger: Optional[TokenLedger] = None,
        issuance_log: Optional[IssuanceLog] = None,
        consume_signatures: bool = False,
    ) -> None:
        self._ledger = ledger if ledger is not None else TokenLedger(name, symbol)
        self._engine = IssuanceEngine(price_per_unit, self._ledger)
        self._membership = MembershipVerifier(root)
        self._signatures = SignatureVerifier(authority)
        self._consume_signatures = consume_signatures
        self._consumed: set[bytes] = set()
        self._issuance_log = issuance_log
        self._lock = threading.Lock()

        if issuance_log is not None and issuance_log.count:
            self._replay(issuance_log)

    @classmethod
    def from_config(
        cls,
        config: MintConfig,
        issuance_log: Optional[IssuanceLog] = None,
        ledger: Optional[TokenLedger] = None,
    ) -> SignedMintService:
        return cls(
            config.name,
            config.symbol,
            config.price_per_unit,
            config.root,
            config.authority,
            ledger=ledger,
            issuance_log=issuance_log,
            consume_signatures=config.consume_signatures,
        )

    # ------------------------------------------------------------------
    # Read-only accessors
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._ledger.name

    @property
    def symbol(self) -> str:
        return self._ledger.symbol

    @property
    def authority(self) -> str:
        return self._signatures.trusted_authority

    @property
    def consume_signatures(self) -> bool:
        return self._consume_signatures

    @property
    def total_issued(self) -> int:
        return self._engine.total_issued

    @property
    def proceeds(self) -> int:
        return self._engine.proceeds

    def get_price(self) -> int:
        return self._engine.price_per_unit

    def get_root(self) -> bytes:
        return self._membership.root

    def owner_of(self, token_id: int) -> str:
        return self._ledger.owner_of(token_id)

    def balance_of(self, address: AddressLike) -> int:
        return self._ledger.balance_of(address)

    def tokens_of(self, address: AddressLike) -> list[int]:
        return self._ledger.tokens_of(address)

    def is_consumed(self, message_hash: HashLike) -> bool:
        return coerce_hash(message_hash) in self._consumed

    def register_receiver(self, address: AddressLike, hook: ReceiverHook) -> None:
        self._ledger.register_receiver(address, hook)

    def status(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "symbol": self.symbol,
            "price_wei": self.get_price(),
            "root": to_hex(self.get_root()),
            "authority": self.authority,
            "total_issued": self.total_issued,
            "proceeds_wei": self.proceeds,
            "consume_signatures": self._consume_signatures,
        }

    # ------------------------------------------------------------------
    # Mint paths
    # ------------------------------------------------------------------

    def mint_by_membership(
        self,
        caller: AddressLike,
        quantity: int,
        proof: ProofLike,
        payment: int,
    ) -> IssuanceReceipt:
        """Mint `quantity` tokens to caller on a valid allowlist proof."""
        with self._lock:
            try:
                if not self._membership.verify(caller, quantity, proof):
                    raise InvalidProofError("Merkle proof is invalid")
                receipt = self._engine.commit(caller, quantity, payment, authorized=True)
            except MintError as exc:
                logger.info(f"Rejected membership mint for {caller}: {type(exc).__name__}: {exc}")
                raise
            self._record(receipt, MintMethod.MEMBERSHIP)

        self._engine.notify(receipt)
        return receipt

    def mint_by_signature(
        self,
        caller: AddressLike,
        quantity: int,
        message_hash: HashLike,
        signature: HashLike,
        payment: int,
    ) -> IssuanceReceipt:
        """Mint `quantity` tokens to caller on a valid authority signature."""
        with self._lock:
            try:
                self._signatures.authorize(message_hash, signature, caller, quantity)
                digest = coerce_hash(message_hash)
                if self._consume_signatures and digest in self._consumed:
                    raise AuthorizationReplayError(
                        f"Authorization {to_hex(digest)} was already used"
                    )
                receipt = self._engine.commit(caller, quantity, payment, authorized=True)
            except MintError as exc:
                logger.info(f"Rejected signature mint for {caller}: {type(exc).__name__}: {exc}")
                raise
            self._record(receipt, MintMethod.SIGNATURE, message_hash=digest)
            if self._consume_signatures:
                self._consumed.add(digest)

        self._engine.notify(receipt)
        return receipt

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _record(
        self,
        receipt: IssuanceReceipt,
        method: MintMethod,
        message_hash: Optional[bytes] = None,
    ) -> None:
        """Write the committed issuance to the log, or undo it.

        Runs under the service lock before any hook fires, so a failed
        write leaves no trace of the call.
        """
        if self._issuance_log is None:
            return
        try:
            record = IssuanceRecord.from_receipt(
                self._issuance_log.count, receipt, method, message_hash=message_hash
            )
            self._issuance_log.append(record)
        except (OSError, ValueError) as exc:
            self._engine.rollback(receipt)
            logger.error(f"Issuance log write failed, mint undone: {exc}")
            raise

    def _replay(self, issuance_log: IssuanceLog) -> None:
        """Rebuild ownership, counter, proceeds and consumed set from the log."""
        for record in issuance_log.records():
            self._engine.restore(record.recipient, list(record.token_ids), record.payment)
            if self._consume_signatures and record.message_hash is not None:
                self._consumed.add(coerce_hash(record.message_hash))
        logger.info(
            f"Replayed {issuance_log.count} issuance record(s); next token ID {self.total_issued}"
        )
