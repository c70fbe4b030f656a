"""Token ledger: the sequential-ID ownership registry tokens are minted into.

The ledger knows nothing about authorization, pricing or which ID comes
next; the issuance engine owns all of that. It enforces only the
registry rules: an ID can be minted once, and never to the null address.

Receivers may register a hook that is called once per token they receive.
Hooks run caller-controlled code, so the ledger never calls them from
mint(); the issuance engine triggers notify_received() after its own
bookkeeping is final.
"""

from __future__ import annotations

from typing import Callable, Dict, List

from signedmint.crypto.encoding import AddressLike, NULL_ADDRESS, normalize_address
from signedmint.errors import DuplicateIdentifierError, NullRecipientError


ReceiverHook = Callable[[str, int], None]  # (recipient, token_id)


class TokenLedger:
    """In-memory ownership mapping of token ID to owner address.

    Usage:
        ledger = TokenLedger("SignedMint", "SMI")
        ledger.mint(alice, 0)
        ledger.owner_of(0)      # alice
        ledger.transfer(alice, bob, 0)
    """

    def __init__(self, name: str, symbol: str) -> None:
        if not name or not symbol:
            raise ValueError("Ledger name and symbol must not be empty")
        self._name = name
        self._symbol = symbol
        self._owners: Dict[int, str] = {}
        self._holdings: Dict[str, set[int]] = {}
        self._receivers: Dict[str, ReceiverHook] = {}

    @property
    def name(self) -> str:
        return self._name

    @property
    def symbol(self) -> str:
        return self._symbol

    @property
    def total_supply(self) -> int:
        return len(self._owners)

    def mint(self, recipient: AddressLike, token_id: int) -> None:
        """Assign a new token ID to recipient."""
        owner = normalize_address(recipient)
        if owner == NULL_ADDRESS:
            raise NullRecipientError("Cannot mint to the null address")
        if token_id < 0:
            raise ValueError(f"Token ID must be non-negative, got {token_id}")
        if token_id in self._owners:
            raise DuplicateIdentifierError(f"Token ID already minted: {token_id}")
        self._owners[token_id] = owner
        self._holdings.setdefault(owner, set()).add(token_id)

    def revoke(self, token_id: int) -> None:
        """Undo a mint. Used only to roll back a failed issuance."""
        owner = self._owners.pop(token_id, None)
        if owner is None:
            raise KeyError(f"Unknown token ID: {token_id}")
        self._holdings[owner].discard(token_id)

    def transfer(self, sender: AddressLike, recipient: AddressLike, token_id: int) -> None:
        """Move a token between owners and notify the receiver."""
        current = self.owner_of(token_id)
        source = normalize_address(sender)
        target = normalize_address(recipient)
        if current != source:
            raise ValueError(f"{source} does not own token {token_id}")
        if target == NULL_ADDRESS:
            raise NullRecipientError("Cannot transfer to the null address")
        self._holdings[source].discard(token_id)
        self._owners[token_id] = target
        self._holdings.setdefault(target, set()).add(token_id)
        self.notify_received(target, [token_id])

    def owner_of(self, token_id: int) -> str:
        owner = self._owners.get(token_id)
        if owner is None:
            raise KeyError(f"Unknown token ID: {token_id}")
        return owner

    def exists(self, token_id: int) -> bool:
        return token_id in self._owners

    def balance_of(self, address: AddressLike) -> int:
        return len(self._holdings.get(normalize_address(address), ()))

    def tokens_of(self, address: AddressLike) -> List[int]:
        return sorted(self._holdings.get(normalize_address(address), ()))

    def register_receiver(self, address: AddressLike, hook: ReceiverHook) -> None:
        """Register a hook called for every token the address receives."""
        self._receivers[normalize_address(address)] = hook

    def notify_received(self, recipient: AddressLike, token_ids: List[int]) -> None:
        hook = self._receivers.get(normalize_address(recipient))
        if hook is None:
            return
        for token_id in token_ids:
            hook(normalize_address(recipient), token_id)
