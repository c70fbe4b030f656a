"""Append-only issuance log: one record per committed mint.

The log is the restart source for the ledger, the counter, proceeds and
the consumed-signature set, so it is held to the same rules as the
engine: record N covers the token IDs immediately after record N-1, with
no gaps and no overlap. Every record carries a SHA-256 hash of its
canonical JSON, re-checked on load.

Rejected mints change no state and are never written here.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from signedmint.crypto.encoding import coerce_hash, normalize_address, to_hex
from signedmint.models.issuance import IssuanceReceipt, MintMethod


@dataclass(frozen=True)
class IssuanceRecord:
    """A committed mint as written to the log."""
    sequence: int
    method: MintMethod
    recipient: str
    token_ids: tuple[int, ...]
    payment: int
    message_hash: Optional[str]
    timestamp_utc: str
    record_hash: str

    @staticmethod
    def from_receipt(
        sequence: int,
        receipt: IssuanceReceipt,
        method: MintMethod,
        message_hash: Optional[bytes] = None,
        timestamp_utc: Optional[datetime] = None,
    ) -> IssuanceRecord:
        ts = (timestamp_utc or datetime.now(timezone.utc)).strftime("%Y-%m-%dT%H:%M:%SZ")
        body = {
            "sequence": sequence,
            "method": method.value,
            "recipient": receipt.recipient,
            "token_ids": list(receipt.token_ids),
            "payment": str(receipt.payment),
            "message_hash": to_hex(message_hash) if message_hash is not None else None,
            "timestamp_utc": ts,
        }
        return IssuanceRecord._from_body(body, record_hash=_record_digest(body))

    @staticmethod
    def from_dict(data: dict[str, Any]) -> IssuanceRecord:
        """Parse and validate a stored record. Raises ValueError if malformed."""
        if not isinstance(data, dict):
            raise ValueError("Issuance record must be a JSON object")
        body = {key: data.get(key) for key in _BODY_FIELDS}
        return IssuanceRecord._from_body(body, record_hash=str(data.get("record_hash")))

    @staticmethod
    def _from_body(body: dict[str, Any], record_hash: str) -> IssuanceRecord:
        sequence = body["sequence"]
        if isinstance(sequence, bool) or not isinstance(sequence, int) or sequence < 0:
            raise ValueError(f"Invalid record sequence: {sequence!r}")

        token_ids = body["token_ids"]
        if not isinstance(token_ids, list) or not token_ids:
            raise ValueError(f"Record {sequence} has no token IDs")
        for token_id in token_ids:
            if isinstance(token_id, bool) or not isinstance(token_id, int) or token_id < 0:
                raise ValueError(f"Record {sequence} has invalid token ID {token_id!r}")
        if token_ids != list(range(token_ids[0], token_ids[0] + len(token_ids))):
            raise ValueError(f"Record {sequence} token IDs are not contiguous: {token_ids}")

        payment = body["payment"]
        if not isinstance(payment, str) or not payment.isdigit():
            raise ValueError(f"Record {sequence} has invalid payment {payment!r}")

        message_hash = body["message_hash"]
        if message_hash is not None:
            message_hash = to_hex(coerce_hash(message_hash))

        return IssuanceRecord(
            sequence=sequence,
            method=MintMethod(body["method"]),
            recipient=normalize_address(body["recipient"]),
            token_ids=tuple(token_ids),
            payment=int(payment),
            message_hash=message_hash,
            timestamp_utc=str(body["timestamp_utc"]),
            record_hash=record_hash,
        )

    @property
    def first_token_id(self) -> int:
        return self.token_ids[0]

    @property
    def next_token_id(self) -> int:
        return self.token_ids[-1] + 1

    def to_receipt(self) -> IssuanceReceipt:
        return IssuanceReceipt(
            recipient=self.recipient, token_ids=self.token_ids, payment=self.payment
        )

    def body(self) -> dict[str, Any]:
        return {
            "sequence": self.sequence,
            "method": self.method.value,
            "recipient": self.recipient,
            "token_ids": list(self.token_ids),
            "payment": str(self.payment),
            "message_hash": self.message_hash,
            "timestamp_utc": self.timestamp_utc,
        }

    def to_dict(self) -> dict[str, Any]:
        data = self.body()
        data["record_hash"] = self.record_hash
        return data


class IssuanceLog:
    """Append-only issuance log with optional JSONL file persistence.

    Usage:
        log = IssuanceLog(storage_path=Path("data/issuance.jsonl"))
        log.append(IssuanceRecord.from_receipt(log.count, receipt, MintMethod.MEMBERSHIP))
        log.next_token_id   # where the engine must resume after a restart

    A record reaches the file before it is accepted in memory, so a failed
    write leaves the log unchanged.
    """

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        self._records: list[IssuanceRecord] = []
        self._storage_path = storage_path

        if storage_path and storage_path.exists():
            self._load(storage_path)

    @property
    def count(self) -> int:
        return len(self._records)

    @property
    def next_token_id(self) -> int:
        return self._records[-1].next_token_id if self._records else 0

    def records(self, method: Optional[MintMethod] = None) -> list[IssuanceRecord]:
        if method is None:
            return list(self._records)
        return [r for r in self._records if r.method == method]

    def append(self, record: IssuanceRecord) -> None:
        """Append a record that continues the log.

        Raises ValueError if the record is out of sequence or its token IDs
        do not start at next_token_id, and OSError if the file write fails.
        """
        self._check_continues(record)
        if self._storage_path:
            line = json.dumps(record.to_dict(), sort_keys=True) + "\n"
            with self._storage_path.open("a", encoding="utf-8") as f:
                f.write(line)
        self._records.append(record)

    def _check_continues(self, record: IssuanceRecord) -> None:
        if record.sequence != self.count:
            raise ValueError(
                f"Record sequence {record.sequence} does not follow {self.count - 1}"
            )
        if record.first_token_id != self.next_token_id:
            raise ValueError(
                f"Record {record.sequence} starts at token {record.first_token_id}, "
                f"expected {self.next_token_id}"
            )

    def _load(self, path: Path) -> None:
        """Read and validate every stored record. Fails closed on the first bad line."""
        with path.open("r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    record = IssuanceRecord.from_dict(json.loads(line))
                except (KeyError, ValueError) as exc:
                    raise ValueError(f"Malformed issuance record (line {line_num}): {exc}") from exc

                expected = _record_digest(record.body())
                if record.record_hash != expected:
                    raise ValueError(
                        f"Integrity check failed (line {line_num}): record "
                        f"{record.sequence} hash does not match its contents"
                    )
                try:
                    self._check_continues(record)
                except ValueError as exc:
                    raise ValueError(f"Broken issuance sequence (line {line_num}): {exc}") from exc
                self._records.append(record)


_BODY_FIELDS = (
    "sequence",
    "method",
    "recipient",
    "token_ids",
    "payment",
    "message_hash",
    "timestamp_utc",
)


def _record_digest(body: dict[str, Any]) -> str:
    canonical = json.dumps(body, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return "sha256:" + hashlib.sha256(canonical).hexdigest()
