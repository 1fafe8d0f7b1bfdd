"""Tests for the LoyaltyApp facade: unlock, persistence and sync wiring."""

from __future__ import annotations

import json

import httpx
import pytest

import fidelis.app as app_mod
import fidelis.errors as errors
import fidelis.ledger as ledger
import fidelis.models as models
from conftest import PASSCODE, START, new_customer, make_settings

URL = "https://sync.example.com/exec"


def _start(settings, endpoint=None, clock=None, sink=None) -> app_mod.LoyaltyApp:
    return app_mod.LoyaltyApp.start(
        settings,
        PASSCODE,
        transport=endpoint.transport if endpoint else None,
        error_sink=sink,
        clock=clock or (lambda: START),
    )


def _remote_dataset() -> models.Dataset:
    dataset = models.Dataset.empty()
    reg = ledger.register_customer(dataset, new_customer("Remote"), models.CardType.FIDELITY, START)
    ledger.record_transaction(dataset, reg.card.id, 90000, START)
    return dataset


class TestStart:
    def test_wrong_passcode_rejected(self, memory_settings) -> None:
        with pytest.raises(errors.AuthenticationError):
            app_mod.LoyaltyApp.start(memory_settings, "000000")

    def test_empty_passcode_rejected(self, memory_settings) -> None:
        with pytest.raises(errors.AuthenticationError):
            app_mod.LoyaltyApp.start(memory_settings, "")

    def test_start_seeds_empty_dataset(self, memory_settings) -> None:
        with _start(memory_settings) as loyalty:
            assert loyalty.dataset() == models.Dataset.empty()
            assert loyalty.startup_sync_error is None

    def test_pull_on_start_replaces_local_data(self, endpoint) -> None:
        remote = _remote_dataset()
        endpoint.document = remote.to_payload()
        settings = make_settings(url=URL, pull_on_start=True)

        with _start(settings, endpoint) as loyalty:
            assert loyalty.dataset() == remote

        assert endpoint.posts == []

    def test_pull_on_start_failure_keeps_local_data(self, endpoint) -> None:
        settings = make_settings(url=URL, pull_on_start=True)
        endpoint.fail_with = httpx.ConnectError("offline")

        with _start(settings, endpoint, sink=lambda e: None) as loyalty:
            assert isinstance(loyalty.startup_sync_error, errors.SyncFailureError)
            reg = loyalty.register_customer(new_customer(), models.CardType.VIP)
            assert loyalty.customers() == [reg.customer]

    def test_pull_on_start_skipped_without_url(self, endpoint) -> None:
        endpoint.fail_with = AssertionError("endpoint must not be called")
        settings = make_settings(url=None, pull_on_start=True)

        with _start(settings, endpoint) as loyalty:
            assert loyalty.startup_sync_error is None

    def test_malformed_url_does_not_block_unlock(self, endpoint) -> None:
        settings = make_settings(url="http://example.com:abc/exec", pull_on_start=True)
        failures = []

        with _start(settings, endpoint, sink=failures.append) as loyalty:
            assert isinstance(loyalty.startup_sync_error, errors.SyncFailureError)

            loyalty.register_customer(new_customer(), models.CardType.VIP)
            loyalty.sync.wait()
            assert len(failures) == 1

            loyalty.set_sync_url("")
            assert not loyalty.sync.enabled

        assert endpoint.posts == []


class TestMutations:
    def test_register_persists_and_pushes(self, endpoint) -> None:
        settings = make_settings(url=URL)

        with _start(settings, endpoint) as loyalty:
            reg = loyalty.register_customer(new_customer(), models.CardType.FIDELITY)
            loyalty.sync.wait()

            assert reg.card.id.startswith("FID-")
            assert loyalty.customer(reg.customer.id) == reg.customer
            assert len(endpoint.posts) == 1
            assert endpoint.posts[0]["customers"][0]["id"] == reg.customer.id

    def test_data_survives_restart(self, memory_settings) -> None:
        with _start(memory_settings) as loyalty:
            reg = loyalty.register_customer(new_customer(), models.CardType.FIDELITY)
            loyalty.record_transaction(reg.card.id, 80000)

        with _start(memory_settings) as loyalty:
            assert loyalty.card(reg.card.id).points == 1
            assert len(loyalty.transactions_for_card(reg.card.id)) == 1

    def test_close_waits_for_uploads(self, endpoint) -> None:
        settings = make_settings(url=URL)

        loyalty = _start(settings, endpoint)
        for name in ("Ayu", "Budi"):
            loyalty.register_customer(new_customer(name), models.CardType.VIP)
        loyalty.close()

        assert len(endpoint.posts) == 2
        assert len(endpoint.document["customers"]) == 2

    def test_push_failure_does_not_undo_write(self, endpoint) -> None:
        endpoint.fail_with = httpx.ConnectError("offline")
        failures = []

        with _start(make_settings(url=URL), endpoint, sink=failures.append) as loyalty:
            reg = loyalty.register_customer(new_customer(), models.CardType.FIDELITY)
            loyalty.sync.wait()

            assert len(failures) == 1
            assert loyalty.customers() == [reg.customer]

    def test_unknown_card_leaves_store_unchanged(self, memory_settings) -> None:
        with _start(memory_settings) as loyalty:
            loyalty.register_customer(new_customer(), models.CardType.FIDELITY)
            before = loyalty.dataset()

            with pytest.raises(errors.NotFoundError) as exc_info:
                loyalty.record_transaction("FID-MISSING", 80000)

            assert exc_info.value.kind == "card"
            assert loyalty.dataset() == before

    def test_cards_for_unknown_customer(self, memory_settings) -> None:
        with _start(memory_settings) as loyalty:
            with pytest.raises(errors.NotFoundError):
                loyalty.cards_for_customer("CUST-MISSING")

    def test_entry_fee_toggle(self, memory_settings) -> None:
        with _start(memory_settings) as loyalty:
            reg = loyalty.register_customer(new_customer(), models.CardType.VIP)

            loyalty.set_entry_fee(reg.customer.id, True)
            assert loyalty.customer(reg.customer.id).entry_fee_paid is True

            loyalty.set_entry_fee(reg.customer.id, False)
            assert loyalty.customer(reg.customer.id).entry_fee_paid is False

    def test_issue_additional_card(self, memory_settings) -> None:
        with _start(memory_settings) as loyalty:
            reg = loyalty.register_customer(new_customer(), models.CardType.FIDELITY)
            vip = loyalty.issue_card(reg.customer.id, models.CardType.VIP)

            cards = loyalty.cards_for_customer(reg.customer.id)
            assert {c.id for c in cards} == {reg.card.id, vip.id}

    def test_configured_threshold_applies(self) -> None:
        settings = make_settings().model_copy(
            update={"rewards": make_settings().rewards.model_copy(update={"points_threshold": 50000})}
        )

        with _start(settings) as loyalty:
            reg = loyalty.register_customer(new_customer(), models.CardType.FIDELITY)
            result = loyalty.record_transaction(reg.card.id, 60000)

            assert result.card is not None
            assert result.card.points == 1


class TestScenario:
    def test_fidelity_card_lifecycle(self, memory_settings, clock) -> None:
        with _start(memory_settings, clock=clock) as loyalty:
            reg = loyalty.register_customer(new_customer(), models.CardType.FIDELITY)
            card_id = reg.card.id

            first = loyalty.record_transaction(card_id, 80000)
            assert first.card.points == 1

            clock.advance(minutes=5)
            second = loyalty.record_transaction(card_id, 20000)
            assert second.card is None
            assert second.transaction.points_earned == 0

            clock.advance(minutes=5)
            revised = loyalty.revise_transaction(second.transaction.id, 90000)
            assert revised.card.points == 2
            assert revised.transaction.date == clock.now

            removal = loyalty.remove_transaction(first.transaction.id)
            assert removal.card.points == 1

            customer_removal = loyalty.remove_customer(reg.customer.id)
            assert customer_removal.deleted_card_ids == [card_id]
            assert customer_removal.deleted_transaction_ids == [second.transaction.id]
            assert loyalty.dataset() == models.Dataset.empty()

    def test_remove_card_cascades(self, memory_settings) -> None:
        with _start(memory_settings) as loyalty:
            reg = loyalty.register_customer(new_customer(), models.CardType.FIDELITY)
            txn = loyalty.record_transaction(reg.card.id, 80000).transaction

            removal = loyalty.remove_card(reg.card.id)

            assert removal.deleted_transaction_ids == [txn.id]
            assert loyalty.cards_for_customer(reg.customer.id) == []
            assert loyalty.customer(reg.customer.id) == reg.customer


class TestTransfer:
    def test_import_overwrites_and_pushes(self, endpoint) -> None:
        remote = _remote_dataset()

        with _start(make_settings(url=URL), endpoint) as loyalty:
            loyalty.register_customer(new_customer("Local"), models.CardType.VIP)
            imported = loyalty.import_data(remote.to_json())
            loyalty.sync.wait()

            assert imported == remote
            assert loyalty.dataset() == remote
            assert endpoint.document == remote.to_payload()

    def test_invalid_import_leaves_data(self, memory_settings) -> None:
        with _start(memory_settings) as loyalty:
            loyalty.register_customer(new_customer(), models.CardType.VIP)
            before = loyalty.dataset()

            with pytest.raises(errors.InvalidFormatError):
                loyalty.import_data('{"customers": [], "cards": []}')

            assert loyalty.dataset() == before

    def test_export_round_trip(self, memory_settings) -> None:
        with _start(memory_settings) as loyalty:
            reg = loyalty.register_customer(new_customer(), models.CardType.FIDELITY)
            loyalty.record_transaction(reg.card.id, 80000)
            exported = loyalty.export("json")

        other = make_settings()
        with _start(other) as loyalty:
            loyalty.import_data(exported)
            assert loyalty.card(reg.card.id).points == 1

    def test_import_without_offsets_mixes_with_new_records(self, memory_settings, clock) -> None:
        document = {
            "customers": [
                {
                    "id": "C1",
                    "name": "Ayu",
                    "phone": {"countryCode": "+62", "number": "812345678"},
                    "registeredAt": "2024-04-01T10:00:00",
                }
            ],
            "cards": [
                {
                    "id": "F1",
                    "customerId": "C1",
                    "type": "Fidelity",
                    "points": 0,
                    "createdAt": "2024-04-01T10:00:00",
                    "expiresAt": "2025-04-01T10:00:00",
                }
            ],
            "transactions": [
                {"id": "T1", "cardId": "F1", "amount": 80000, "date": "2024-04-30T10:00:00", "pointsEarned": 1}
            ],
        }

        with _start(memory_settings, clock=clock) as loyalty:
            loyalty.import_data(json.dumps(document))
            new = loyalty.record_transaction("F1", 100).transaction

            history = loyalty.transactions_for_card("F1")
            snapshot = loyalty.insights()

        assert [t.id for t in history] == [new.id, "T1"]
        assert sum(s.amount for s in snapshot.sales) == 80100
        assert snapshot.dormant_customers == []


class TestSyncUrl:
    def test_set_and_clear(self, endpoint) -> None:
        with _start(make_settings(url=URL), endpoint) as loyalty:
            assert loyalty.get_sync_url() == URL

            loyalty.set_sync_url("")
            assert loyalty.get_sync_url() == ""

            loyalty.register_customer(new_customer(), models.CardType.VIP)
            loyalty.sync.wait()
            assert endpoint.posts == []

    def test_manual_pull(self, endpoint) -> None:
        remote = _remote_dataset()

        with _start(make_settings(url=URL), endpoint) as loyalty:
            endpoint.document = remote.to_payload()

            assert loyalty.pull() is True
            assert loyalty.dataset() == remote


class TestInsights:
    def test_insights_use_clock_and_target(self, memory_settings) -> None:
        with _start(memory_settings) as loyalty:
            reg = loyalty.register_customer(new_customer(), models.CardType.FIDELITY)
            loyalty.record_transaction(reg.card.id, 80000)

            snapshot = loyalty.insights()

            assert snapshot.sales[-1].amount == 80000
            assert snapshot.top_staff == [("Dewi", 1)]
            assert snapshot.rewards_ready == []
