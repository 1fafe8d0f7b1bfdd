"""Application facade: settings, local store, sync manager and ledger wired together.

Each mutation loads the dataset, applies one ledger operation to the
in-memory copy and saves it with a single store write. The save hands the
dataset to the sync manager for a background push.

Example:
    settings = load_settings("fidelis.yaml")
    with LoyaltyApp.start(settings, passcode="060821") as app:
        reg = app.register_customer(
            NewCustomer(name="Ayu", phone=Phone(country_code="+62", number="812345")),
            CardType.FIDELITY,
        )
        app.record_transaction(reg.card.id, 80000)
"""

from __future__ import annotations

import hmac
from datetime import datetime, timezone
from typing import Callable

import httpx
from loguru import logger

import fidelis.errors as errors
import fidelis.insights as insights_mod
import fidelis.ledger as ledger
import fidelis.models as models
import fidelis.settings as settings_mod
import fidelis.store as store_mod
import fidelis.sync as sync_mod
import fidelis.transfer as transfer

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class LoyaltyApp:
    """One unlocked session against the local dataset."""

    def __init__(
        self,
        settings: settings_mod.FidelisSettings,
        *,
        transport: httpx.BaseTransport | None = None,
        error_sink: sync_mod.ErrorSink | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.settings = settings
        self.clock = clock
        self.driver = settings.store
        self.store = store_mod.LocalStore(self.driver)
        self.sync = sync_mod.SyncManager(
            driver=self.driver,
            store=self.store,
            default_url=settings.sync.url,
            timeout_seconds=settings.sync.timeout_seconds,
            transport=transport,
            error_sink=error_sink,
        )
        self.store.on_save = self.sync.push
        self.startup_sync_error: errors.SyncFailureError | None = None

    @classmethod
    def start(
        cls,
        settings: settings_mod.FidelisSettings,
        passcode: str,
        *,
        transport: httpx.BaseTransport | None = None,
        error_sink: sync_mod.ErrorSink | None = None,
        clock: Clock = utc_now,
    ) -> LoyaltyApp:
        """Unlock the register and prepare the local store.

        When ``sync.pull_on_start`` is set and an endpoint is configured, the
        remote dataset replaces the local one before anything is read. A
        failed pull is kept in ``startup_sync_error`` instead of aborting.

        Raises:
            AuthenticationError: If ``passcode`` does not match.
        """
        if not hmac.compare_digest(passcode.encode(), settings.passcode.encode()):
            raise errors.AuthenticationError()

        app = cls(settings, transport=transport, error_sink=error_sink, clock=clock)
        app.driver.initialize()

        if settings.sync.pull_on_start and app.sync.enabled:
            try:
                app.sync.pull()
            except errors.SyncFailureError as e:
                logger.warning(f"Initial sync failed: {e.cause}")
                app.startup_sync_error = e
        return app

    def close(self) -> None:
        """Wait for pending uploads and release resources."""
        self.sync.close()

    def __enter__(self) -> LoyaltyApp:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def dataset(self) -> models.Dataset:
        return self.store.load()

    def customers(self, search: str = "") -> list[models.Customer]:
        return ledger.search_customers(self.store.load(), search)

    def customer(self, customer_id: str) -> models.Customer:
        return ledger.find_customer(self.store.load(), customer_id)

    def cards_for_customer(self, customer_id: str) -> list[models.Card]:
        dataset = self.store.load()
        ledger.find_customer(dataset, customer_id)
        return ledger.cards_for_customer(dataset, customer_id)

    def card(self, card_id: str) -> models.Card:
        return ledger.find_card(self.store.load(), card_id)

    def transactions_for_card(self, card_id: str) -> list[models.Transaction]:
        dataset = self.store.load()
        ledger.find_card(dataset, card_id)
        return ledger.transactions_for_card(dataset, card_id)

    def insights(self) -> insights_mod.Insights:
        return insights_mod.compute_insights(
            self.store.load(),
            self.clock(),
            target=self.settings.rewards.points_for_reward,
        )

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def register_customer(
        self,
        new_customer: models.NewCustomer,
        card_type: models.CardType,
    ) -> ledger.Registration:
        dataset = self.store.load()
        result = ledger.register_customer(dataset, new_customer, card_type, self.clock())
        self.store.save(dataset)
        logger.debug(f"Registered customer {result.customer.id} with card {result.card.id}")
        return result

    def issue_card(self, customer_id: str, card_type: models.CardType) -> models.Card:
        dataset = self.store.load()
        card = ledger.issue_card(dataset, customer_id, card_type, self.clock())
        self.store.save(dataset)
        return card

    def set_entry_fee(self, customer_id: str, paid: bool) -> models.Customer:
        dataset = self.store.load()
        customer = ledger.set_entry_fee(dataset, customer_id, paid)
        self.store.save(dataset)
        return customer

    def record_transaction(self, card_id: str, amount: int) -> ledger.TransactionResult:
        dataset = self.store.load()
        result = ledger.record_transaction(
            dataset,
            card_id,
            amount,
            self.clock(),
            threshold=self.settings.rewards.points_threshold,
        )
        self.store.save(dataset)
        return result

    def revise_transaction(self, transaction_id: str, new_amount: int) -> ledger.TransactionResult:
        dataset = self.store.load()
        result = ledger.revise_transaction_amount(
            dataset,
            transaction_id,
            new_amount,
            self.clock(),
            threshold=self.settings.rewards.points_threshold,
        )
        self.store.save(dataset)
        return result

    def remove_transaction(self, transaction_id: str) -> ledger.TransactionRemoval:
        dataset = self.store.load()
        result = ledger.remove_transaction(dataset, transaction_id)
        self.store.save(dataset)
        return result

    def remove_card(self, card_id: str) -> ledger.CardRemoval:
        dataset = self.store.load()
        result = ledger.remove_card(dataset, card_id)
        self.store.save(dataset)
        return result

    def remove_customer(self, customer_id: str) -> ledger.CustomerRemoval:
        dataset = self.store.load()
        result = ledger.remove_customer(dataset, customer_id)
        self.store.save(dataset)
        return result

    # -------------------------------------------------------------------------
    # Transfer and sync
    # -------------------------------------------------------------------------

    def export(self, format: str) -> str:
        return transfer.export_dataset(self.store.load(), format)

    def import_data(self, text: str) -> models.Dataset:
        """Replace the local dataset with exported JSON.

        Raises:
            InvalidFormatError: If the text is not a valid dataset; nothing
                is overwritten in that case.
        """
        dataset = transfer.import_dataset(text)
        self.store.save(dataset)
        return dataset

    def pull(self) -> bool:
        return self.sync.pull()

    def get_sync_url(self) -> str:
        return self.sync.get_sync_url()

    def set_sync_url(self, url: str) -> None:
        self.sync.set_sync_url(url)
