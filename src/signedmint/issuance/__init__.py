"""Issuance subsystem: counter ownership and payment gate."""

from signedmint.issuance.engine import IssuanceEngine

__all__ = ["IssuanceEngine"]
