"""Canonical (address, quantity) encoding.

Layout: the 20 raw address bytes followed by the quantity as a 32-byte
big-endian unsigned integer, concatenated with no delimiter. This is the
same byte string Solidity produces for abi.encodePacked(address, uint256),
so hashes computed here match hashes computed on-chain.

Both authorization paths use entry_hash(): the Merkle leaf and the signed
message hash are the same value for the same (address, quantity).
"""

from __future__ import annotations

from typing import Union

from eth_utils import is_hex_address, keccak, to_checksum_address


ADDRESS_BYTES = 20
QUANTITY_BYTES = 32
HASH_BYTES = 32
MAX_QUANTITY = 2**256 - 1

NULL_ADDRESS = "0x" + "00" * ADDRESS_BYTES
ZERO_HASH = b"\x00" * HASH_BYTES

AddressLike = Union[str, bytes]
HashLike = Union[str, bytes]


def normalize_address(address: AddressLike) -> str:
    """Return the EIP-55 checksum form of a 20-byte address.

    Accepts a hex string (with or without 0x) or 20 raw bytes.
    Raises ValueError for anything else.
    """
    if isinstance(address, (bytes, bytearray)):
        if len(address) != ADDRESS_BYTES:
            raise ValueError(
                f"Address must be {ADDRESS_BYTES} bytes, got {len(address)}"
            )
        address = "0x" + bytes(address).hex()
    if not isinstance(address, str):
        raise ValueError(f"Invalid address: {address!r}")
    candidate = address.strip()
    if not candidate.startswith(("0x", "0X")):
        candidate = "0x" + candidate
    if not is_hex_address(candidate):
        raise ValueError(f"Invalid address: {address!r}")
    return to_checksum_address(candidate.lower())


def is_null_address(address: AddressLike) -> bool:
    return normalize_address(address) == NULL_ADDRESS


def validate_quantity(quantity: int) -> int:
    """Reject non-integers and values outside the uint256 range."""
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValueError(f"Quantity must be an integer, got {quantity!r}")
    if quantity < 0 or quantity > MAX_QUANTITY:
        raise ValueError(f"Quantity out of uint256 range: {quantity}")
    return quantity


def encode_entry(address: AddressLike, quantity: int) -> bytes:
    """Canonical byte encoding of (address, quantity)."""
    raw_address = bytes.fromhex(normalize_address(address)[2:])
    raw_quantity = validate_quantity(quantity).to_bytes(QUANTITY_BYTES, "big")
    return raw_address + raw_quantity


def entry_hash(address: AddressLike, quantity: int) -> bytes:
    """keccak256 of the canonical encoding. Used as leaf and message hash."""
    return keccak(encode_entry(address, quantity))


def coerce_hash(value: HashLike) -> bytes:
    """Return a 32-byte hash from raw bytes or a 0x-prefixed hex string."""
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    elif isinstance(value, str):
        text = value.strip()
        if text.startswith(("0x", "0X")):
            text = text[2:]
        try:
            raw = bytes.fromhex(text)
        except ValueError:
            raise ValueError(f"Hash is not valid hex: {value!r}") from None
    else:
        raise ValueError(f"Invalid hash: {value!r}")
    if len(raw) != HASH_BYTES:
        raise ValueError(f"Hash must be {HASH_BYTES} bytes, got {len(raw)}")
    return raw


def coerce_bytes(value: HashLike) -> bytes:
    """Raw bytes from bytes or a hex string of any length."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        text = value.strip()
        if text.startswith(("0x", "0X")):
            text = text[2:]
        try:
            return bytes.fromhex(text)
        except ValueError:
            raise ValueError(f"Value is not valid hex: {value!r}") from None
    raise ValueError(f"Expected bytes or hex string, got {value!r}")


def to_hex(value: bytes) -> str:
    return "0x" + bytes(value).hex()
