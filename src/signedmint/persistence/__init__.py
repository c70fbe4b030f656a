"""Durable issuance log."""
