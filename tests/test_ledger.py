"""
Test suite for the ledger writer

Validates append-only entries, signed amounts and newest-first ordering.
"""

import pytest
from decimal import Decimal
from datetime import datetime, timezone, timedelta

from bank_ledger.storage import InMemoryStorage, SQLiteStorage
from bank_ledger.ledger import LedgerEntry, LedgerWriter, TransactionType


class TestLedgerEntry:
    """Test the immutable ledger entry"""

    def test_new_assigns_id_and_timestamp(self):
        entry = LedgerEntry.new(
            account_number="1234567890",
            transaction_type=TransactionType.DEPOSIT,
            amount=Decimal("10.00"),
            balance_after=Decimal("110.00"),
        )

        assert entry.id
        assert entry.timestamp.tzinfo is not None
        assert entry.is_credit
        assert not entry.is_debit

    def test_entries_are_immutable(self):
        entry = LedgerEntry.new("1234567890", TransactionType.WITHDRAWAL,
                                Decimal("-5.00"), Decimal("95.00"))
        assert entry.is_debit
        with pytest.raises(AttributeError):
            entry.amount = Decimal("1")

    def test_dict_round_trip(self):
        entry = LedgerEntry.new(
            account_number="1234567890",
            transaction_type=TransactionType.TRANSFER,
            amount=Decimal("-25.50"),
            balance_after=Decimal("74.50"),
            description="Transfer to 9876543210",
            related_account_number="9876543210",
        )
        data = entry.to_dict()

        assert data["amount"] == "-25.50"
        assert data["transaction_type"] == "TRANSFER"
        assert LedgerEntry.from_dict(data) == entry


class TestLedgerWriter:
    """Test ledger writer operations"""

    def setup_method(self):
        """Set up test fixtures"""
        self.storage = InMemoryStorage()
        self.ledger = LedgerWriter(self.storage)

    def append(self, account_number, amount, balance_after, timestamp=None):
        return self.ledger.append(LedgerEntry.new(
            account_number=account_number,
            transaction_type=TransactionType.DEPOSIT,
            amount=Decimal(amount),
            balance_after=Decimal(balance_after),
            timestamp=timestamp,
        ))

    def test_append_and_get(self):
        entry = self.append("1111111111", "10", "10")
        assert self.ledger.get(entry.id) == entry
        assert self.ledger.get("missing") is None

    def test_append_refuses_to_overwrite(self):
        entry = self.append("1111111111", "10", "10")
        with pytest.raises(KeyError):
            self.ledger.append(entry)

    def test_list_for_newest_first(self):
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.append("1111111111", "10", "10", base)
        self.append("1111111111", "5", "15", base + timedelta(seconds=2))
        self.append("1111111111", "1", "16", base + timedelta(seconds=1))
        self.append("2222222222", "99", "99", base)

        entries = self.ledger.list_for("1111111111")
        assert [e.balance_after for e in entries] == [Decimal("15"), Decimal("16"), Decimal("10")]

    def test_equal_timestamps_keep_later_insertion_first(self):
        stamp = datetime(2024, 1, 1, tzinfo=timezone.utc)
        first = self.append("1111111111", "10", "10", stamp)
        second = self.append("1111111111", "5", "15", stamp)

        assert [e.id for e in self.ledger.list_for("1111111111")] == [second.id, first.id]

    def test_limit(self):
        for i in range(5):
            self.append("1111111111", "1", str(i + 1))

        assert len(self.ledger.list_for("1111111111", limit=2)) == 2
        assert len(self.ledger.list_for("1111111111")) == 5

    def test_count_for(self):
        self.append("1111111111", "1", "1")
        self.append("1111111111", "1", "2")

        assert self.ledger.count_for("1111111111") == 2
        assert self.ledger.count_for("2222222222") == 0
        assert self.ledger.list_for("2222222222") == []

    def test_append_rolls_back_with_unit(self):
        with pytest.raises(ValueError):
            with self.storage.atomic():
                self.append("1111111111", "1", "1")
                raise ValueError("fail")

        assert self.ledger.count_for("1111111111") == 0


class TestLedgerWriterSQLite(TestLedgerWriter):
    """Same ledger behavior on SQLite"""

    def setup_method(self):
        self.storage = SQLiteStorage()
        self.ledger = LedgerWriter(self.storage)

    def teardown_method(self):
        self.storage.close()
