"""Tests for JSON/CSV export and JSON import."""

from __future__ import annotations

import json
from datetime import date

import pytest

import fidelis.errors as errors
import fidelis.ledger as ledger
import fidelis.models as models
import fidelis.transfer as transfer
from conftest import START, new_customer


@pytest.fixture
def dataset() -> models.Dataset:
    dataset = models.Dataset.empty()
    ayu = ledger.register_customer(
        dataset,
        new_customer("Ayu", dob=date(1995, 8, 17), entry_fee_paid=True),
        models.CardType.FIDELITY,
        START,
    )
    ledger.register_customer(dataset, new_customer("Budi", registered_by=None), models.CardType.VIP, START)
    ledger.record_transaction(dataset, ayu.card.id, 80000, START)
    ledger.record_transaction(dataset, ayu.card.id, 20000, START)
    return dataset


class TestExportJson:
    def test_pretty_printed_with_two_spaces(self, dataset) -> None:
        text = transfer.export_dataset(dataset, "json")

        assert text.startswith('{\n  "customers": [')
        assert set(json.loads(text)) == {"customers", "cards", "transactions"}

    def test_round_trip(self, dataset) -> None:
        restored = transfer.import_dataset(transfer.export_dataset(dataset, "json"))

        assert restored == dataset
        assert [c.points for c in restored.cards] == [c.points for c in dataset.cards]
        assert restored.transactions[0].date == START


class TestExportCsv:
    def test_three_tables_separated_by_blank_lines(self, dataset) -> None:
        sections = transfer.export_dataset(dataset, "csv").split("\n\n")

        assert len(sections) == 3
        assert sections[0].splitlines()[0] == transfer.CUSTOMER_HEADER
        assert sections[1].splitlines()[0] == transfer.CARD_HEADER
        assert sections[2].splitlines()[0] == transfer.TRANSACTION_HEADER
        assert len(sections[0].splitlines()) == 3
        assert len(sections[1].splitlines()) == 3
        assert len(sections[2].splitlines()) == 3

    def test_customer_row(self, dataset) -> None:
        ayu = next(c for c in dataset.customers if c.name == "Ayu")
        rows = transfer.export_dataset(dataset, "csv").split("\n\n")[0].splitlines()
        row = next(r for r in rows if r.startswith(ayu.id))

        assert row == (
            f'{ayu.id},Ayu,@ayu,"+62 812345678",2024-05-01T10:00:00Z,Dewi,1995-08-17,true'
        )

    def test_missing_optional_values_are_blank(self, dataset) -> None:
        budi = next(c for c in dataset.customers if c.name == "Budi")
        rows = transfer.export_dataset(dataset, "csv").split("\n\n")[0].splitlines()
        row = next(r for r in rows if r.startswith(budi.id))

        assert row.endswith("2024-05-01T10:00:00Z,,,")

    def test_card_and_transaction_rows(self, dataset) -> None:
        fid = next(c for c in dataset.cards if c.type == models.CardType.FIDELITY)
        txn = dataset.transactions[0]
        _, cards, transactions = transfer.export_dataset(dataset, "csv").split("\n\n")

        assert f"{fid.id},{fid.customer_id},Fidelity,1,2024-05-01T10:00:00Z" in cards.splitlines()
        assert f"{txn.id},{fid.id},20000,2024-05-01T10:00:00Z,0" in transactions.splitlines()

    def test_empty_dataset(self) -> None:
        text = transfer.export_dataset(models.Dataset.empty(), "csv")
        assert text == "\n\n".join(
            [transfer.CUSTOMER_HEADER, transfer.CARD_HEADER, transfer.TRANSACTION_HEADER]
        )


class TestExportFormat:
    def test_unknown_format(self, dataset) -> None:
        with pytest.raises(errors.InvalidFormatError) as exc_info:
            transfer.export_dataset(dataset, "xml")

        assert "xml" in exc_info.value.cause


class TestImport:
    def test_missing_transactions_is_invalid(self) -> None:
        with pytest.raises(errors.InvalidFormatError) as exc_info:
            transfer.import_dataset('{"customers": [], "cards": []}')

        assert exc_info.value.context == "Importing loyalty data"

    def test_not_json_is_invalid(self) -> None:
        with pytest.raises(errors.InvalidFormatError):
            transfer.import_dataset("customerId,name\n")
