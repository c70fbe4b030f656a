"""Cryptographic components: canonical encoding, allowlist Merkle tree, authority signatures.

Submodules are imported directly (signedmint.crypto.merkle, ...) so the
models package can depend on the encoder without an import cycle.
"""
