"""Token ownership ledger."""

from signedmint.ledger.token_ledger import ReceiverHook, TokenLedger

__all__ = ["ReceiverHook", "TokenLedger"]
