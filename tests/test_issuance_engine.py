"""Tests for the issuance engine: proves counter and payment invariants hold."""

import pytest

from signedmint.crypto.encoding import NULL_ADDRESS, normalize_address
from signedmint.errors import (
    DuplicateIdentifierError,
    InsufficientPaymentError,
    NullRecipientError,
    OverPaymentError,
    PaymentMismatchError,
    UnauthorizedIssuanceError,
    ZeroQuantityError,
)
from signedmint.issuance.engine import IssuanceEngine
from signedmint.ledger.token_ledger import TokenLedger


PRICE = 10**16
ALICE = normalize_address("0x" + "a1" * 20)
BOB = normalize_address("0x" + "b2" * 20)


def _engine(price: int = PRICE) -> tuple[IssuanceEngine, TokenLedger]:
    ledger = TokenLedger("SignedMint", "SMI")
    return IssuanceEngine(price, ledger), ledger


class TestIssue:
    def test_issues_contiguous_ids(self) -> None:
        engine, ledger = _engine()
        receipt = engine.issue(ALICE, 3, 3 * PRICE, authorized=True)
        assert receipt.token_ids == (0, 1, 2)
        assert receipt.recipient == ALICE
        assert receipt.quantity == 3
        assert [ledger.owner_of(i) for i in range(3)] == [ALICE] * 3
        assert engine.next_token_id == 3
        assert engine.proceeds == 3 * PRICE

    def test_counter_spans_callers(self) -> None:
        engine, ledger = _engine()
        engine.issue(ALICE, 2, 2 * PRICE, authorized=True)
        receipt = engine.issue(BOB, 3, 3 * PRICE, authorized=True)
        engine.issue(ALICE, 1, PRICE, authorized=True)
        assert receipt.token_ids == (2, 3, 4)
        assert engine.total_issued == 6
        assert ledger.total_supply == 6
        assert ledger.tokens_of(ALICE) == [0, 1, 5]

    def test_free_mint(self) -> None:
        engine, _ = _engine(price=0)
        assert engine.issue(ALICE, 2, 0, authorized=True).token_ids == (0, 1)

    def test_required_payment(self) -> None:
        engine, _ = _engine()
        assert engine.required_payment(4) == 4 * PRICE
        assert engine.price_per_unit == PRICE


class TestPreconditions:
    def test_unauthorized(self) -> None:
        engine, _ = _engine()
        with pytest.raises(UnauthorizedIssuanceError):
            engine.issue(ALICE, 1, PRICE, authorized=False)
        assert engine.total_issued == 0

    def test_zero_quantity(self) -> None:
        engine, _ = _engine()
        with pytest.raises(ZeroQuantityError):
            engine.issue(ALICE, 0, 0, authorized=True)
        with pytest.raises(ZeroQuantityError):
            engine.issue(ALICE, -1, -PRICE, authorized=True)

    def test_null_recipient(self) -> None:
        engine, _ = _engine()
        with pytest.raises(NullRecipientError):
            engine.issue(NULL_ADDRESS, 1, PRICE, authorized=True)
        with pytest.raises(NullRecipientError):
            engine.issue("not-an-address", 1, PRICE, authorized=True)

    def test_underpayment(self) -> None:
        engine, ledger = _engine()
        with pytest.raises(InsufficientPaymentError) as excinfo:
            engine.issue(ALICE, 2, 2 * PRICE - 1, authorized=True)
        assert excinfo.value.expected == 2 * PRICE
        assert engine.total_issued == 0
        assert ledger.total_supply == 0

    def test_overpayment(self) -> None:
        engine, ledger = _engine()
        with pytest.raises(OverPaymentError):
            engine.issue(ALICE, 2, 2 * PRICE + 1, authorized=True)
        assert engine.total_issued == 0
        assert engine.proceeds == 0

    def test_payment_errors_share_class(self) -> None:
        engine, _ = _engine()
        for payment in (0, PRICE * 10):
            with pytest.raises(PaymentMismatchError):
                engine.issue(ALICE, 1, payment, authorized=True)

    def test_authorization_checked_before_quantity(self) -> None:
        engine, _ = _engine()
        with pytest.raises(UnauthorizedIssuanceError):
            engine.issue(NULL_ADDRESS, 0, 1, authorized=False)

    def test_quantity_checked_before_recipient(self) -> None:
        engine, _ = _engine()
        with pytest.raises(ZeroQuantityError):
            engine.issue(NULL_ADDRESS, 0, 1, authorized=True)

    def test_negative_price_rejected(self) -> None:
        with pytest.raises(ValueError):
            IssuanceEngine(-1, TokenLedger("SignedMint", "SMI"))


class TestAtomicity:
    def test_ledger_collision_rolls_back(self) -> None:
        engine, ledger = _engine()
        ledger.mint(BOB, 2)  # planted out-of-band
        with pytest.raises(DuplicateIdentifierError):
            engine.issue(ALICE, 3, 3 * PRICE, authorized=True)
        assert engine.next_token_id == 0
        assert engine.proceeds == 0
        assert not ledger.exists(0)
        assert not ledger.exists(1)
        assert ledger.owner_of(2) == BOB
        assert ledger.balance_of(ALICE) == 0

    def test_hook_sees_advanced_counter(self) -> None:
        engine, ledger = _engine()
        seen: list[int] = []
        ledger.register_receiver(ALICE, lambda owner, token_id: seen.append(engine.next_token_id))
        engine.issue(ALICE, 2, 2 * PRICE, authorized=True)
        assert seen == [2, 2]

    def test_commit_defers_hooks(self) -> None:
        engine, ledger = _engine()
        received: list[int] = []
        ledger.register_receiver(ALICE, lambda owner, token_id: received.append(token_id))
        receipt = engine.commit(ALICE, 2, 2 * PRICE, authorized=True)
        assert received == []
        engine.notify(receipt)
        assert received == [0, 1]


class TestRestore:
    def test_restore_continues_counter(self) -> None:
        engine, ledger = _engine()
        engine.restore(ALICE, [0, 1], 2 * PRICE)
        assert engine.next_token_id == 2
        assert engine.proceeds == 2 * PRICE
        assert ledger.owner_of(1) == ALICE
        assert engine.issue(BOB, 1, PRICE, authorized=True).token_ids == (2,)

    def test_restore_rejects_gap(self) -> None:
        engine, _ = _engine()
        with pytest.raises(ValueError, match="continue"):
            engine.restore(ALICE, [1, 2], 2 * PRICE)


class TestRollback:
    def test_rollback_latest_issuance(self) -> None:
        engine, ledger = _engine()
        engine.issue(ALICE, 1, PRICE, authorized=True)
        receipt = engine.commit(BOB, 2, 2 * PRICE, authorized=True)

        engine.rollback(receipt)
        assert engine.next_token_id == 1
        assert engine.proceeds == PRICE
        assert not ledger.exists(1)
        assert not ledger.exists(2)
        assert ledger.balance_of(BOB) == 0
        assert engine.issue(BOB, 1, PRICE, authorized=True).token_ids == (1,)

    def test_only_latest_issuance_can_be_undone(self) -> None:
        engine, ledger = _engine()
        first = engine.commit(ALICE, 1, PRICE, authorized=True)
        engine.commit(BOB, 1, PRICE, authorized=True)
        with pytest.raises(ValueError, match="latest"):
            engine.rollback(first)
        assert engine.next_token_id == 2
        assert ledger.owner_of(0) == ALICE
