"""SignedMint CLI: allowlist tooling, authority signing and local minting.

Usage:
    python -m signedmint.cli status
    python -m signedmint.cli build-tree --out proofs.json
    python -m signedmint.cli proof --address 0x7099... --quantity 1
    python -m signedmint.cli sign --address 0x7099... --quantity 3 --env .env
    python -m signedmint.cli verify-proof --address 0x7099... --quantity 1 --proof 0xab.. 0xcd..
    python -m signedmint.cli verify-signature --address 0x7099... --quantity 3 --hash 0x.. --signature 0x..
    python -m signedmint.cli mint-membership --caller 0x7099... --quantity 1 --payment 10000000000000000 --proof 0x..
    python -m signedmint.cli mint-signature --caller 0x7099... --quantity 3 --payment 30000000000000000 --hash 0x.. --signature 0x..
    python -m signedmint.cli owner-of --token-id 0
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from signedmint.config import MintConfig, load_allowlist, load_authority_key
from signedmint.crypto.encoding import to_hex
from signedmint.crypto.merkle import AllowlistTree, verify_membership
from signedmint.crypto.signature import SignatureVerifier
from signedmint.crypto.signer import AuthoritySigner
from signedmint.errors import MintError
from signedmint.persistence.issuance_log import IssuanceLog
from signedmint.service import SignedMintService


DEFAULT_CONFIG = Path(__file__).resolve().parents[2] / "config"
DEFAULT_DATA = Path(__file__).resolve().parents[2] / "data"
CONFIG_FILE = "mint.json"


def _load_config(config_dir: Path) -> MintConfig:
    return MintConfig.from_file(config_dir / CONFIG_FILE)


def _make_service(config_dir: Path, data_dir: Path) -> SignedMintService:
    """Create a SignedMintService backed by the issuance log in data_dir."""
    data_dir.mkdir(parents=True, exist_ok=True)
    config = _load_config(config_dir)
    issuance_log = IssuanceLog(storage_path=data_dir / "issuance.jsonl")
    return SignedMintService.from_config(config, issuance_log=issuance_log)


def _load_tree(args: argparse.Namespace) -> AllowlistTree:
    path: Optional[Path] = args.allowlist
    if path is None:
        path = _load_config(args.config).allowlist_path
    if path is None:
        raise ValueError("No allowlist given and none configured")
    return AllowlistTree.from_entries(load_allowlist(path))


def _fail(message: str) -> int:
    print(f"Failed: {message}", file=sys.stderr)
    return 1


def cmd_status(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    print(json.dumps(service.status(), indent=2))
    return 0


def cmd_build_tree(args: argparse.Namespace) -> int:
    tree = _load_tree(args)
    output = {
        "root": to_hex(tree.root),
        "entries": tree.entry_count,
        "proofs": [proof.to_dict() for proof in tree.proofs()],
    }
    text = json.dumps(output, indent=2)
    if args.out:
        args.out.write_text(text + "\n", encoding="utf-8")
        print(f"Root: {output['root']} ({tree.entry_count} entries) -> {args.out}")
    else:
        print(text)
    return 0


def cmd_proof(args: argparse.Namespace) -> int:
    tree = _load_tree(args)
    proof = tree.inclusion_proof(args.address, args.quantity)
    if proof is None:
        return _fail(f"{args.address} x {args.quantity} is not in the allowlist")
    print(json.dumps(proof.to_dict(), indent=2))
    return 0


def cmd_sign(args: argparse.Namespace) -> int:
    signer = AuthoritySigner(load_authority_key(args.env))
    auth = signer.sign(args.address, args.quantity)
    output = auth.to_dict()
    output["signer"] = signer.address
    print(json.dumps(output, indent=2))
    return 0


def cmd_verify_proof(args: argparse.Namespace) -> int:
    root = args.root or to_hex(_load_config(args.config).root)
    ok = verify_membership(args.address, args.quantity, args.proof, root)
    print(json.dumps({"valid": ok}))
    return 0 if ok else 1


def cmd_verify_signature(args: argparse.Namespace) -> int:
    authority = args.authority or _load_config(args.config).authority
    verifier = SignatureVerifier(authority)
    result = {
        "signer_ok": verifier.check_signer(args.hash, args.signature),
        "binding_ok": verifier.check_binding(args.hash, args.address, args.quantity),
    }
    result["valid"] = result["signer_ok"] and result["binding_ok"]
    print(json.dumps(result))
    return 0 if result["valid"] else 1


def cmd_mint_membership(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    receipt = service.mint_by_membership(args.caller, args.quantity, args.proof, args.payment)
    print(json.dumps(receipt.to_dict(), indent=2))
    return 0


def cmd_mint_signature(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    receipt = service.mint_by_signature(
        args.caller, args.quantity, args.hash, args.signature, args.payment
    )
    print(json.dumps(receipt.to_dict(), indent=2))
    return 0


def cmd_owner_of(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    print(service.owner_of(args.token_id))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="signedmint",
        description="SignedMint: allowlist and signature gated token issuance",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help="Path to config directory holding mint.json (default: config/)",
    )
    parser.add_argument(
        "--data",
        type=Path,
        default=DEFAULT_DATA,
        help="Directory for the issuance log (default: data/)",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )
    sub = parser.add_subparsers(dest="command")

    # status
    sub.add_parser("status", help="Show mint configuration and issuance totals")

    # build-tree
    p_tree = sub.add_parser("build-tree", help="Compute the allowlist root and all proofs")
    p_tree.add_argument("--allowlist", type=Path, help="Allowlist JSON (default: from config)")
    p_tree.add_argument("--out", type=Path, help="Write proofs JSON to this file")

    # proof
    p_proof = sub.add_parser("proof", help="Print the proof for one allowlist entry")
    p_proof.add_argument("--allowlist", type=Path, help="Allowlist JSON (default: from config)")
    p_proof.add_argument("--address", required=True, help="Entry address")
    p_proof.add_argument("--quantity", type=int, required=True, help="Entry quantity")

    # sign
    p_sign = sub.add_parser("sign", help="Sign an (address, quantity) authorization")
    p_sign.add_argument("--address", required=True, help="Address to authorize")
    p_sign.add_argument("--quantity", type=int, required=True, help="Quantity to authorize")
    p_sign.add_argument("--env", type=Path, help=".env file with AUTHORITY_PRIVATE_KEY")

    # verify-proof
    p_vp = sub.add_parser("verify-proof", help="Check a Merkle proof against the root")
    p_vp.add_argument("--address", required=True)
    p_vp.add_argument("--quantity", type=int, required=True)
    p_vp.add_argument("--proof", nargs="*", default=[], help="Sibling hashes, leaf to root")
    p_vp.add_argument("--root", help="Root to check against (default: from config)")

    # verify-signature
    p_vs = sub.add_parser("verify-signature", help="Check a signed authorization")
    p_vs.add_argument("--address", required=True)
    p_vs.add_argument("--quantity", type=int, required=True)
    p_vs.add_argument("--hash", required=True, help="Signed message hash")
    p_vs.add_argument("--signature", required=True, help="65-byte signature hex")
    p_vs.add_argument("--authority", help="Trusted authority (default: from config)")

    # mint-membership
    p_mm = sub.add_parser("mint-membership", help="Mint with an allowlist proof")
    p_mm.add_argument("--caller", required=True)
    p_mm.add_argument("--quantity", type=int, required=True)
    p_mm.add_argument("--payment", type=int, required=True, help="Payment in wei")
    p_mm.add_argument("--proof", nargs="*", default=[], help="Sibling hashes, leaf to root")

    # mint-signature
    p_ms = sub.add_parser("mint-signature", help="Mint with an authority signature")
    p_ms.add_argument("--caller", required=True)
    p_ms.add_argument("--quantity", type=int, required=True)
    p_ms.add_argument("--payment", type=int, required=True, help="Payment in wei")
    p_ms.add_argument("--hash", required=True, help="Signed message hash")
    p_ms.add_argument("--signature", required=True, help="65-byte signature hex")

    # owner-of
    p_owner = sub.add_parser("owner-of", help="Print the owner of a token")
    p_owner.add_argument("--token-id", type=int, required=True)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level))

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "status": cmd_status,
        "build-tree": cmd_build_tree,
        "proof": cmd_proof,
        "sign": cmd_sign,
        "verify-proof": cmd_verify_proof,
        "verify-signature": cmd_verify_signature,
        "mint-membership": cmd_mint_membership,
        "mint-signature": cmd_mint_signature,
        "owner-of": cmd_owner_of,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    try:
        return handler(args)
    except MintError as exc:
        return _fail(f"{type(exc).__name__}: {exc}")
    except (KeyError, ValueError, FileNotFoundError) as exc:
        return _fail(str(exc))


if __name__ == "__main__":
    raise SystemExit(main())
