"""Issuance engine: the payment gate and the single owner of the token counter.

On a successful authorization the engine mints a contiguous run of
`quantity` token IDs starting at the counter, then advances the counter
by `quantity`. Nothing else writes the counter.

Preconditions, checked in order, each aborting with no state change:
1. authorized is True
2. quantity > 0
3. recipient is not the null address
4. payment == price_per_unit * quantity (no tolerance either way)

Minting is all-or-nothing: if the ledger rejects any ID, the IDs already
minted by this call are revoked and the counter is left untouched.

Receiver hooks run only after the counter and ledger are final, so a hook
that re-enters the engine is handed the next free block, never an ID
that is still being assigned.
"""

from __future__ import annotations

import logging
import threading

from signedmint.crypto.encoding import AddressLike, NULL_ADDRESS, normalize_address
from signedmint.errors import (
    DuplicateIdentifierError,
    InsufficientPaymentError,
    NullRecipientError,
    OverPaymentError,
    UnauthorizedIssuanceError,
    ZeroQuantityError,
)
from signedmint.ledger.token_ledger import TokenLedger
from signedmint.models.issuance import IssuanceReceipt

logger = logging.getLogger(__name__)


class IssuanceEngine:
    """Mints sequential token IDs behind an exact-payment gate.

    Usage:
        engine = IssuanceEngine(price_per_unit=10**16, ledger=ledger)
        receipt = engine.issue(alice, 3, payment=3 * 10**16, authorized=True)
        receipt.token_ids   # (0, 1, 2)

    Invariants:
    1. Issued IDs are exactly 0..total_issued-1, no gaps, no repeats.
    2. The counter only moves forward, by the quantity of a successful call.
    3. price_per_unit never changes.
    """

    def __init__(self, price_per_unit: int, ledger: TokenLedger) -> None:
        if isinstance(price_per_unit, bool) or not isinstance(price_per_unit, int):
            raise ValueError(f"Price must be an integer amount of wei, got {price_per_unit!r}")
        if price_per_unit < 0:
            raise ValueError("Price must not be negative")
        self._price = price_per_unit
        self._ledger = ledger
        self._next_id = 0
        self._proceeds = 0
        self._lock = threading.Lock()

    @property
    def price_per_unit(self) -> int:
        return self._price

    @property
    def next_token_id(self) -> int:
        return self._next_id

    @property
    def total_issued(self) -> int:
        return self._next_id

    @property
    def proceeds(self) -> int:
        """Total payment collected by successful issuances."""
        return self._proceeds

    def required_payment(self, quantity: int) -> int:
        return self._price * quantity

    def issue(
        self,
        recipient: AddressLike,
        quantity: int,
        payment: int,
        authorized: bool,
    ) -> IssuanceReceipt:
        """Commit an issuance and notify the recipient's receiver hook."""
        receipt = self.commit(recipient, quantity, payment, authorized)
        self.notify(receipt)
        return receipt

    def commit(
        self,
        recipient: AddressLike,
        quantity: int,
        payment: int,
        authorized: bool,
    ) -> IssuanceReceipt:
        """Check preconditions, mint, and advance the counter.

        Does not run receiver hooks; call notify() once any outer lock
        has been released.
        """
        with self._lock:
            owner = self._check_preconditions(recipient, quantity, payment, authorized)
            token_ids = tuple(range(self._next_id, self._next_id + quantity))
            self._mint_all(owner, token_ids)
            self._next_id += quantity
            self._proceeds += payment

        logger.info(
            f"Issued tokens {token_ids[0]}..{token_ids[-1]} to {owner} for {payment} wei"
        )
        return IssuanceReceipt(recipient=owner, token_ids=token_ids, payment=payment)

    def notify(self, receipt: IssuanceReceipt) -> None:
        """Run the recipient's receiver hook for each issued token."""
        self._ledger.notify_received(receipt.recipient, list(receipt.token_ids))

    def rollback(self, receipt: IssuanceReceipt) -> None:
        """Undo the most recent commit before any hook has seen it.

        Only the latest block can be undone, so the counter never has a gap.
        """
        with self._lock:
            if receipt.last_token_id != self._next_id - 1:
                raise ValueError(
                    f"Can only roll back the latest issuance ending at {self._next_id - 1}, "
                    f"got {receipt.first_token_id}..{receipt.last_token_id}"
                )
            for token_id in reversed(receipt.token_ids):
                self._ledger.revoke(token_id)
            self._next_id -= receipt.quantity
            self._proceeds -= receipt.payment

        logger.warning(
            f"Rolled back tokens {receipt.first_token_id}..{receipt.last_token_id} "
            f"issued to {receipt.recipient}"
        )

    def restore(self, recipient: AddressLike, token_ids: list[int], payment: int) -> None:
        """Re-apply a previously committed issuance while rebuilding from a log.

        The IDs must continue the counter exactly.
        """
        with self._lock:
            expected = list(range(self._next_id, self._next_id + len(token_ids)))
            if not token_ids or list(token_ids) != expected:
                raise ValueError(
                    f"Restored token IDs {token_ids} do not continue counter at {self._next_id}"
                )
            self._mint_all(normalize_address(recipient), tuple(token_ids))
            self._next_id += len(token_ids)
            self._proceeds += payment

    def _check_preconditions(
        self,
        recipient: AddressLike,
        quantity: int,
        payment: int,
        authorized: bool,
    ) -> str:
        if authorized is not True:
            raise UnauthorizedIssuanceError("Issuance requires a passing authorization")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ZeroQuantityError(f"Quantity must be a positive integer, got {quantity!r}")
        try:
            owner = normalize_address(recipient)
        except ValueError as exc:
            raise NullRecipientError(f"Invalid recipient: {exc}") from exc
        if owner == NULL_ADDRESS:
            raise NullRecipientError("Cannot mint to the null address")
        if isinstance(payment, bool) or not isinstance(payment, int):
            raise ValueError(f"Payment must be an integer amount of wei, got {payment!r}")

        expected = self.required_payment(quantity)
        if payment < expected:
            raise InsufficientPaymentError(expected, payment)
        if payment > expected:
            raise OverPaymentError(expected, payment)
        return owner

    def _mint_all(self, owner: str, token_ids: tuple[int, ...]) -> None:
        minted: list[int] = []
        try:
            for token_id in token_ids:
                self._ledger.mint(owner, token_id)
                minted.append(token_id)
        except DuplicateIdentifierError:
            for token_id in reversed(minted):
                self._ledger.revoke(token_id)
            logger.warning(
                f"Rolled back {len(minted)} token(s) after ledger ID collision"
            )
            raise
