"""Allowlist Merkle tree over (address, quantity) entries.

Uses keccak-256 as the hash function. Each leaf is the hash of an entry's
canonical encoding. Internal nodes hash their two children in ascending
byte order (sorted pairs), so a proof is just the list of sibling hashes
and the verifier needs no left/right flags.

Construction rules:
- Leaves are sorted before the first pairing, so the root does not depend
  on the order entries were added.
- An unpaired node at the end of a level is carried up unchanged.
- An empty tree has the all-zero root, which no proof can reach.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence, Union

from eth_utils import keccak

from signedmint.crypto.encoding import (
    AddressLike,
    HashLike,
    ZERO_HASH,
    coerce_hash,
    entry_hash,
    normalize_address,
    validate_quantity,
)
from signedmint.models.allowlist import AllowlistEntry, MerkleProof

logger = logging.getLogger(__name__)

# A sorted-pair tree over 2**256 leaves is never deeper than this.
MAX_PROOF_DEPTH = 256

ProofLike = Union[MerkleProof, Sequence[HashLike]]


class AllowlistTree:
    """A deterministic sorted-pair Merkle tree over allowlist entries.

    Usage:
        tree = AllowlistTree()
        tree.add_entry("0x7099...79C8", 1)
        tree.add_entry("0x3C44...93BC", 2)
        root = tree.compute_root()
        proof = tree.inclusion_proof("0x7099...79C8", 1)
    """

    def __init__(self) -> None:
        self._entries: list[AllowlistEntry] = []
        self._keys: set[tuple[str, int]] = set()
        self._levels: list[list[bytes]] = []
        self._computed = False

    @classmethod
    def from_entries(
        cls, entries: Iterable[Union[AllowlistEntry, tuple[AddressLike, int]]]
    ) -> AllowlistTree:
        """Build and compute a tree from entries or (address, quantity) tuples."""
        tree = cls()
        for entry in entries:
            if isinstance(entry, AllowlistEntry):
                tree.add_entry(entry.address, entry.quantity)
            else:
                address, quantity = entry
                tree.add_entry(address, quantity)
        tree.compute_root()
        return tree

    def add_entry(self, address: AddressLike, quantity: int) -> AllowlistEntry:
        """Add an entry. Must be called before compute_root."""
        if self._computed:
            raise RuntimeError("Tree already computed. Create a new tree.")
        entry = AllowlistEntry.create(address, quantity)
        key = (entry.address, entry.quantity)
        if key in self._keys:
            raise ValueError(
                f"Duplicate allowlist entry: {entry.address} x {entry.quantity}"
            )
        self._keys.add(key)
        self._entries.append(entry)
        return entry

    @property
    def entry_count(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> list[AllowlistEntry]:
        return list(self._entries)

    @property
    def root(self) -> bytes:
        if not self._computed:
            raise RuntimeError("Must call compute_root before reading the root")
        return self._levels[-1][0] if self._levels else ZERO_HASH

    @property
    def depth(self) -> int:
        """Number of hashing levels above the leaves."""
        return max(len(self._levels) - 1, 0)

    def compute_root(self) -> bytes:
        """Compute the Merkle root.

        Idempotent: once computed the tree is frozen and the same root
        is returned.
        """
        if self._computed:
            return self.root

        self._computed = True
        if not self._entries:
            self._levels = []
            return ZERO_HASH

        current_level = sorted(entry.leaf for entry in self._entries)
        self._levels = [current_level]
        while len(current_level) > 1:
            next_level: list[bytes] = []
            for i in range(0, len(current_level), 2):
                if i + 1 < len(current_level):
                    next_level.append(hash_pair(current_level[i], current_level[i + 1]))
                else:
                    next_level.append(current_level[i])  # carried up unchanged
            self._levels.append(next_level)
            current_level = next_level

        return current_level[0]

    def inclusion_proof(
        self, address: AddressLike, quantity: int
    ) -> Optional[MerkleProof]:
        """Generate an inclusion proof for (address, quantity).

        Returns None if the pair is not in the tree.
        Must call compute_root first.
        """
        if not self._computed:
            raise RuntimeError("Must call compute_root before generating proofs")

        try:
            checksummed = normalize_address(address)
            quantity = validate_quantity(quantity)
        except ValueError:
            return None
        if (checksummed, quantity) not in self._keys:
            return None

        leaf = entry_hash(checksummed, quantity)
        idx = self._levels[0].index(leaf)
        siblings: list[bytes] = []
        for level in self._levels[:-1]:
            sibling_idx = idx ^ 1
            if sibling_idx < len(level):
                siblings.append(level[sibling_idx])
            idx //= 2

        return MerkleProof(
            address=checksummed,
            quantity=quantity,
            leaf=leaf,
            siblings=tuple(siblings),
            root=self.root,
        )

    def proofs(self) -> list[MerkleProof]:
        """Inclusion proofs for every entry, in insertion order."""
        result: list[MerkleProof] = []
        for entry in self._entries:
            proof = self.inclusion_proof(entry.address, entry.quantity)
            if proof is None:
                raise RuntimeError(f"No proof for stored entry {entry.address} x {entry.quantity}")
            result.append(proof)
        return result


def hash_pair(a: bytes, b: bytes) -> bytes:
    """Hash two nodes in ascending byte order."""
    if a <= b:
        return keccak(a + b)
    return keccak(b + a)


def _siblings_of(proof: ProofLike) -> tuple[bytes, ...]:
    raw = proof.siblings if isinstance(proof, MerkleProof) else proof
    if isinstance(raw, (str, bytes, bytearray)):
        raise ValueError("Proof must be a sequence of hashes, not a single value")
    if len(raw) > MAX_PROOF_DEPTH:
        raise ValueError(f"Proof deeper than {MAX_PROOF_DEPTH} levels")
    return tuple(coerce_hash(s) for s in raw)


def verify_membership(
    address: AddressLike,
    quantity: int,
    proof: ProofLike,
    root: HashLike,
) -> bool:
    """Return True iff proof places (address, quantity) under root.

    Pure predicate: malformed input of any kind yields False.
    """
    try:
        expected_root = coerce_hash(root)
        siblings = _siblings_of(proof)
        node = entry_hash(address, quantity)
    except (TypeError, ValueError) as exc:
        logger.debug(f"Membership check rejected malformed input: {exc}")
        return False

    for sibling in siblings:
        node = hash_pair(node, sibling)
    return node == expected_root


class MembershipVerifier:
    """Membership verifier bound to one published root."""

    def __init__(self, root: HashLike) -> None:
        self._root = coerce_hash(root)

    @property
    def root(self) -> bytes:
        return self._root

    def verify(self, address: AddressLike, quantity: int, proof: ProofLike) -> bool:
        return verify_membership(address, quantity, proof, self._root)
