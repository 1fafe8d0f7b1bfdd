"""Loyalty ledger: how transactions move card point balances.

Rule: a Fidelity card earns exactly 1 point for a transaction whose amount is
at least the points threshold (75000 by default); any other amount earns 0.
VIP cards never earn points.

Every function here works on an in-memory ``Dataset`` and finishes all
lookups before mutating it, so a ``NotFoundError`` leaves the dataset as it
was. Editing or deleting a transaction first reverses the points it earned,
then applies the new value; balances are clamped at zero.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

import fidelis.errors as errors
import fidelis.ids as ids
import fidelis.models as models


@dataclass
class Registration:
    """Result of registering a customer: the customer and their first card."""

    customer: models.Customer
    card: models.Card


@dataclass
class TransactionResult:
    """A created or revised transaction, plus the card when its balance was touched."""

    transaction: models.Transaction
    card: models.Card | None = None


@dataclass
class TransactionRemoval:
    deleted_transaction_id: str
    card: models.Card | None = None


@dataclass
class CardRemoval:
    deleted_card_id: str
    deleted_transaction_ids: list[str] = field(default_factory=list)


@dataclass
class CustomerRemoval:
    deleted_customer_id: str
    deleted_card_ids: list[str] = field(default_factory=list)
    deleted_transaction_ids: list[str] = field(default_factory=list)


def points_for(
    card_type: models.CardType,
    amount: int,
    threshold: int = models.FIDELITY_POINTS_THRESHOLD,
) -> int:
    """Points a single transaction earns on a card of ``card_type``."""
    if card_type == models.CardType.FIDELITY and amount >= threshold:
        return 1
    return 0


# =============================================================================
# Lookups
# =============================================================================


def find_customer(dataset: models.Dataset, customer_id: str) -> models.Customer:
    for customer in dataset.customers:
        if customer.id == customer_id:
            return customer
    raise errors.NotFoundError("customer", customer_id)


def find_card(dataset: models.Dataset, card_id: str) -> models.Card:
    for card in dataset.cards:
        if card.id == card_id:
            return card
    raise errors.NotFoundError("card", card_id)


def find_transaction(dataset: models.Dataset, transaction_id: str) -> models.Transaction:
    for transaction in dataset.transactions:
        if transaction.id == transaction_id:
            return transaction
    raise errors.NotFoundError("transaction", transaction_id)


def cards_for_customer(dataset: models.Dataset, customer_id: str) -> list[models.Card]:
    return [card for card in dataset.cards if card.customer_id == customer_id]


def transactions_for_card(dataset: models.Dataset, card_id: str) -> list[models.Transaction]:
    """Transactions on a card, newest first."""
    found = [t for t in dataset.transactions if t.card_id == card_id]
    return sorted(found, key=lambda t: t.date, reverse=True)


def search_customers(dataset: models.Dataset, term: str) -> list[models.Customer]:
    """Case-insensitive match on customer name or on any of their card ids."""
    if not term:
        return list(dataset.customers)
    needle = term.lower()
    matching_owners = {
        card.customer_id for card in dataset.cards if needle in card.id.lower()
    }
    return [
        customer
        for customer in dataset.customers
        if needle in customer.name.lower() or customer.id in matching_owners
    ]


# =============================================================================
# Customers and cards
# =============================================================================


def _new_card(customer_id: str, card_type: models.CardType, now: datetime) -> models.Card:
    return models.Card(
        id=ids.generate_unique_id(card_type.id_prefix),
        customer_id=customer_id,
        type=card_type,
        points=0,
        created_at=now,
        expires_at=models.one_year_after(now),
    )


def register_customer(
    dataset: models.Dataset,
    new_customer: models.NewCustomer,
    card_type: models.CardType,
    now: datetime,
) -> Registration:
    """Create a customer together with their first card (both newest-first)."""
    customer = models.Customer(
        **new_customer.model_dump(),
        id=ids.generate_unique_id("CUST"),
        registered_at=now,
    )
    card = _new_card(customer.id, card_type, now)
    dataset.customers.insert(0, customer)
    dataset.cards.insert(0, card)
    return Registration(customer=customer, card=card)


def issue_card(
    dataset: models.Dataset,
    customer_id: str,
    card_type: models.CardType,
    now: datetime,
) -> models.Card:
    """Issue an additional card to an existing customer."""
    find_customer(dataset, customer_id)
    card = _new_card(customer_id, card_type, now)
    dataset.cards.insert(0, card)
    return card


def set_entry_fee(dataset: models.Dataset, customer_id: str, paid: bool) -> models.Customer:
    customer = find_customer(dataset, customer_id)
    customer.entry_fee_paid = paid
    return customer


# =============================================================================
# Transactions
# =============================================================================


def record_transaction(
    dataset: models.Dataset,
    card_id: str,
    amount: int,
    now: datetime,
    threshold: int = models.FIDELITY_POINTS_THRESHOLD,
) -> TransactionResult:
    """Record a purchase on a card.

    Returns the new transaction, and the card only if its balance changed.

    Raises:
        NotFoundError: If the card does not exist.
    """
    card = find_card(dataset, card_id)
    earned = points_for(card.type, amount, threshold)

    transaction = models.Transaction(
        id=ids.generate_unique_id("TXN"),
        card_id=card_id,
        amount=amount,
        date=now,
        points_earned=earned,
    )
    dataset.transactions.insert(0, transaction)

    if earned > 0:
        card.points += earned
        return TransactionResult(transaction=transaction, card=card)
    return TransactionResult(transaction=transaction)


def revise_transaction_amount(
    dataset: models.Dataset,
    transaction_id: str,
    new_amount: int,
    now: datetime,
    threshold: int = models.FIDELITY_POINTS_THRESHOLD,
) -> TransactionResult:
    """Change a transaction's amount and re-apply the points rule.

    The timestamp is reset to ``now``. The card is returned for Fidelity
    cards even when the balance did not move.

    Raises:
        NotFoundError: If the transaction does not exist.
    """
    transaction = find_transaction(dataset, transaction_id)
    card = _owning_card(dataset, transaction)

    updated_card = None
    if card is not None and card.type == models.CardType.FIDELITY:
        earned = points_for(card.type, new_amount, threshold)
        card.points = max(0, card.points - transaction.points_earned + earned)
        transaction.points_earned = earned
        updated_card = card

    transaction.amount = new_amount
    transaction.date = now
    return TransactionResult(transaction=transaction, card=updated_card)


def remove_transaction(dataset: models.Dataset, transaction_id: str) -> TransactionRemoval:
    """Delete a transaction, taking back the points it earned.

    Raises:
        NotFoundError: If the transaction does not exist.
    """
    transaction = find_transaction(dataset, transaction_id)
    card = _owning_card(dataset, transaction)

    updated_card = None
    if card is not None and card.type == models.CardType.FIDELITY:
        card.points = max(0, card.points - transaction.points_earned)
        updated_card = card

    dataset.transactions = [t for t in dataset.transactions if t.id != transaction_id]
    return TransactionRemoval(deleted_transaction_id=transaction_id, card=updated_card)


def remove_card(dataset: models.Dataset, card_id: str) -> CardRemoval:
    """Delete a card and every transaction recorded on it.

    Raises:
        NotFoundError: If the card does not exist.
    """
    find_card(dataset, card_id)

    deleted_transaction_ids = [t.id for t in dataset.transactions if t.card_id == card_id]
    dataset.cards = [c for c in dataset.cards if c.id != card_id]
    dataset.transactions = [t for t in dataset.transactions if t.card_id != card_id]
    return CardRemoval(
        deleted_card_id=card_id,
        deleted_transaction_ids=deleted_transaction_ids,
    )


def remove_customer(dataset: models.Dataset, customer_id: str) -> CustomerRemoval:
    """Delete a customer, their cards, and the transactions on those cards.

    Raises:
        NotFoundError: If the customer does not exist.
    """
    find_customer(dataset, customer_id)

    card_ids = {c.id for c in dataset.cards if c.customer_id == customer_id}
    deleted_transaction_ids = [t.id for t in dataset.transactions if t.card_id in card_ids]

    dataset.customers = [c for c in dataset.customers if c.id != customer_id]
    dataset.cards = [c for c in dataset.cards if c.customer_id != customer_id]
    dataset.transactions = [t for t in dataset.transactions if t.card_id not in card_ids]
    return CustomerRemoval(
        deleted_customer_id=customer_id,
        deleted_card_ids=sorted(card_ids),
        deleted_transaction_ids=deleted_transaction_ids,
    )


def _owning_card(dataset: models.Dataset, transaction: models.Transaction) -> models.Card | None:
    # Imported data may hold transactions whose card is gone; those only
    # have their own fields updated.
    for card in dataset.cards:
        if card.id == transaction.card_id:
            return card
    return None
