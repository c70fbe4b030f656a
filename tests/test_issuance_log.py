"""Tests for the append-only issuance log."""

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from signedmint.crypto.encoding import normalize_address, to_hex
from signedmint.models.issuance import IssuanceReceipt, MintMethod
from signedmint.persistence.issuance_log import IssuanceLog, IssuanceRecord


ALICE = normalize_address("0x" + "a1" * 20)
BOB = normalize_address("0x" + "b2" * 20)
PRICE = 10**16
DIGEST = b"\x11" * 32


def _now() -> datetime:
    return datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


def _record(
    sequence: int = 0,
    token_ids: tuple[int, ...] = (0,),
    recipient: str = ALICE,
    method: MintMethod = MintMethod.MEMBERSHIP,
    message_hash: bytes | None = None,
) -> IssuanceRecord:
    receipt = IssuanceReceipt(
        recipient=recipient, token_ids=token_ids, payment=PRICE * len(token_ids)
    )
    return IssuanceRecord.from_receipt(
        sequence, receipt, method, message_hash=message_hash, timestamp_utc=_now()
    )


def _write_lines(path: Path, *records: dict) -> None:
    path.write_text("".join(json.dumps(r) + "\n" for r in records), encoding="utf-8")


class TestIssuanceRecord:
    def test_hash_is_deterministic(self) -> None:
        assert _record().record_hash == _record().record_hash
        assert _record().record_hash.startswith("sha256:")

    def test_contents_change_hash(self) -> None:
        assert _record(recipient=ALICE).record_hash != _record(recipient=BOB).record_hash

    def test_timestamp_format(self) -> None:
        assert _record().timestamp_utc == "2026-10-19T12:00:00Z"

    def test_receipt_round_trip(self) -> None:
        record = _record(token_ids=(3, 4, 5))
        receipt = record.to_receipt()
        assert receipt.recipient == ALICE
        assert receipt.token_ids == (3, 4, 5)
        assert receipt.payment == 3 * PRICE
        assert record.next_token_id == 6

    def test_signature_record_keeps_message_hash(self) -> None:
        record = _record(method=MintMethod.SIGNATURE, message_hash=DIGEST)
        assert record.message_hash == to_hex(DIGEST)
        assert record.to_dict()["method"] == "signature"

    def test_payment_stored_as_decimal_string(self) -> None:
        assert _record(token_ids=(0, 1)).to_dict()["payment"] == str(2 * PRICE)

    def test_from_dict_rejects_gapped_token_ids(self) -> None:
        data = _record().to_dict()
        data["token_ids"] = [0, 2]
        with pytest.raises(ValueError, match="contiguous"):
            IssuanceRecord.from_dict(data)

    def test_from_dict_rejects_invalid_recipient(self) -> None:
        data = _record().to_dict()
        data["recipient"] = "0x1234"
        with pytest.raises(ValueError, match="Invalid address"):
            IssuanceRecord.from_dict(data)

    @pytest.mark.parametrize("payment", [100, "-5", "1.5", None])
    def test_from_dict_rejects_non_integer_payment(self, payment: object) -> None:
        data = _record().to_dict()
        data["payment"] = payment
        with pytest.raises(ValueError, match="payment"):
            IssuanceRecord.from_dict(data)

    def test_from_dict_rejects_unknown_method(self) -> None:
        data = _record().to_dict()
        data["method"] = "airdrop"
        with pytest.raises(ValueError):
            IssuanceRecord.from_dict(data)


class TestIssuanceLog:
    def test_append_and_filter(self) -> None:
        log = IssuanceLog()
        log.append(_record(0, (0,)))
        log.append(_record(1, (1, 2), BOB, MintMethod.SIGNATURE, DIGEST))
        assert log.count == 2
        assert log.next_token_id == 3
        assert [r.sequence for r in log.records(MintMethod.SIGNATURE)] == [1]
        assert len(log.records()) == 2

    def test_empty_log_starts_at_zero(self) -> None:
        log = IssuanceLog()
        assert log.count == 0
        assert log.next_token_id == 0

    def test_out_of_sequence_rejected(self) -> None:
        log = IssuanceLog()
        log.append(_record(0, (0,)))
        with pytest.raises(ValueError, match="sequence"):
            log.append(_record(0, (1,)))
        assert log.count == 1

    def test_overlapping_token_ids_rejected(self) -> None:
        log = IssuanceLog()
        log.append(_record(0, (0, 1)))
        with pytest.raises(ValueError, match="expected 2"):
            log.append(_record(1, (1, 2)))
        assert log.next_token_id == 2

    def test_persists_and_reloads(self, tmp_path: Path) -> None:
        path = tmp_path / "issuance.jsonl"
        log = IssuanceLog(storage_path=path)
        log.append(_record(0, (0, 1)))
        log.append(_record(1, (2,), BOB, MintMethod.SIGNATURE, DIGEST))

        reloaded = IssuanceLog(storage_path=path)
        assert reloaded.count == 2
        assert reloaded.next_token_id == 3
        assert reloaded.records()[0].token_ids == (0, 1)
        assert reloaded.records()[1].message_hash == to_hex(DIGEST)
        assert reloaded.records()[1].record_hash == log.records()[1].record_hash

    def test_failed_write_leaves_log_unchanged(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        path = tmp_path / "issuance.jsonl"
        log = IssuanceLog(storage_path=path)

        def broken_open(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(Path, "open", broken_open)
        with pytest.raises(OSError):
            log.append(_record())
        assert log.count == 0
        assert log.next_token_id == 0

    def test_tampered_record_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "issuance.jsonl"
        IssuanceLog(storage_path=path).append(_record(0, (0,)))

        record = json.loads(path.read_text(encoding="utf-8"))
        record["recipient"] = BOB
        _write_lines(path, record)

        with pytest.raises(ValueError, match="Integrity"):
            IssuanceLog(storage_path=path)

    def test_repeated_record_rejected_on_reload(self, tmp_path: Path) -> None:
        path = tmp_path / "issuance.jsonl"
        data = _record(0, (0,)).to_dict()
        _write_lines(path, data, data)
        with pytest.raises(ValueError, match="Broken issuance sequence"):
            IssuanceLog(storage_path=path)

    def test_gap_between_records_rejected_on_reload(self, tmp_path: Path) -> None:
        path = tmp_path / "issuance.jsonl"
        _write_lines(path, _record(0, (0,)).to_dict(), _record(1, (5,)).to_dict())
        with pytest.raises(ValueError, match="expected 1"):
            IssuanceLog(storage_path=path)

    def test_malformed_line_rejected_on_reload(self, tmp_path: Path) -> None:
        path = tmp_path / "issuance.jsonl"
        path.write_text("[1, 2, 3]\n", encoding="utf-8")
        with pytest.raises(ValueError, match="Malformed issuance record"):
            IssuanceLog(storage_path=path)
