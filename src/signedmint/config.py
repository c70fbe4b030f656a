"""Mint configuration: immutable initialization parameters and key loading.

A mint is configured by a JSON file:

    {
        "name": "SignedMint",
        "symbol": "SMI",
        "price_ether": "0.01",          # or "price_wei": 10000000000000000
        "authority": "0xf39F...2266",
        "allowlist": "allowlist.json",  # and/or "root": "0x..."
        "consume_signatures": false
    }

When only an allowlist is given the root is computed from it. When both
are given they must agree. The authority's private key never lives in
the config file; it is read from AUTHORITY_PRIVATE_KEY in the
environment or a .env file.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from web3 import Web3

from signedmint.crypto.encoding import coerce_hash, normalize_address, to_hex
from signedmint.crypto.merkle import AllowlistTree
from signedmint.models.allowlist import AllowlistEntry


AUTHORITY_KEY_ENV = "AUTHORITY_PRIVATE_KEY"


@dataclass(frozen=True)
class MintConfig:
    """Initialization parameters for a SignedMintService."""
    name: str
    symbol: str
    price_per_unit: int
    root: bytes
    authority: str
    consume_signatures: bool = False
    allowlist_path: Optional[Path] = None

    @staticmethod
    def from_dict(data: dict[str, Any], base_dir: Optional[Path] = None) -> MintConfig:
        """Validate and build a config from parsed JSON.

        Relative allowlist paths resolve against base_dir.
        """
        for key in ("name", "symbol", "authority"):
            if not data.get(key):
                raise ValueError(f"Mint config missing '{key}' field")

        price = _parse_price(data)
        authority = normalize_address(data["authority"])

        allowlist_path: Optional[Path] = None
        computed_root: Optional[bytes] = None
        if data.get("allowlist"):
            allowlist_path = Path(data["allowlist"])
            if not allowlist_path.is_absolute() and base_dir is not None:
                allowlist_path = base_dir / allowlist_path
            computed_root = AllowlistTree.from_entries(load_allowlist(allowlist_path)).root

        if data.get("root"):
            root = coerce_hash(data["root"])
            if computed_root is not None and computed_root != root:
                raise ValueError(
                    f"Configured root {to_hex(root)} does not match allowlist root "
                    f"{to_hex(computed_root)}"
                )
        elif computed_root is not None:
            root = computed_root
        else:
            raise ValueError("Mint config needs a 'root' or an 'allowlist'")

        consume = data.get("consume_signatures", False)
        if not isinstance(consume, bool):
            raise ValueError("'consume_signatures' must be true or false")

        return MintConfig(
            name=data["name"],
            symbol=data["symbol"],
            price_per_unit=price,
            root=root,
            authority=authority,
            consume_signatures=consume,
            allowlist_path=allowlist_path,
        )

    @staticmethod
    def from_file(path: Path) -> MintConfig:
        if not path.exists():
            raise FileNotFoundError(f"Mint config not found: {path}")
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError("Mint config must be a JSON object")
        return MintConfig.from_dict(data, base_dir=path.parent)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "symbol": self.symbol,
            "price_wei": self.price_per_unit,
            "price_ether": str(Web3.from_wei(self.price_per_unit, "ether")),
            "root": to_hex(self.root),
            "authority": self.authority,
            "consume_signatures": self.consume_signatures,
        }


def load_allowlist(path: Path) -> list[AllowlistEntry]:
    """Read a JSON list of {"address", "quantity"} objects."""
    if not path.exists():
        raise FileNotFoundError(f"Allowlist not found: {path}")
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise ValueError("Allowlist must be a JSON list")
    return [AllowlistEntry.from_dict(item) for item in data]


def load_authority_key(env_path: Optional[Path] = None) -> str:
    """Return the authority private key from the environment or a .env file."""
    if env_path is not None:
        load_dotenv(env_path)
    else:
        load_dotenv()
    key = os.getenv(AUTHORITY_KEY_ENV)
    if not key:
        raise ValueError(f"Missing {AUTHORITY_KEY_ENV} in environment or .env")
    return key


def _parse_price(data: dict[str, Any]) -> int:
    if "price_wei" in data:
        price = data["price_wei"]
        if isinstance(price, bool) or not isinstance(price, int) or price < 0:
            raise ValueError(f"'price_wei' must be a non-negative integer, got {price!r}")
        return price
    if "price_ether" in data:
        try:
            ether = Decimal(str(data["price_ether"]))
        except InvalidOperation:
            raise ValueError(f"Invalid 'price_ether': {data['price_ether']!r}") from None
        if ether < 0:
            raise ValueError("'price_ether' must not be negative")
        return int(Web3.to_wei(ether, "ether"))
    raise ValueError("Mint config needs 'price_wei' or 'price_ether'")
