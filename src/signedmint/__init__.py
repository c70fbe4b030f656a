"""SignedMint: sequential token issuance gated by Merkle allowlists or authority signatures."""

__version__ = "0.1.0"
