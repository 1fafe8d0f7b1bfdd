"""Dashboard figures computed from the dataset."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, timedelta

import fidelis.models as models


@dataclass(frozen=True)
class DailySales:
    day: date
    amount: int


@dataclass(frozen=True)
class Insights:
    """Snapshot shown by ``fidelis insights``."""

    upcoming_birthdays: list[models.Customer]
    top_staff: list[tuple[str, int]]
    sales: list[DailySales]
    dormant_customers: list[models.Customer]
    rewards_ready: list[models.Card]


def upcoming_birthdays(customers: list[models.Customer], today: date) -> list[models.Customer]:
    """Customers whose birthday this year falls in the current Monday-start week."""
    week_start = today - timedelta(days=today.weekday())
    week_end = week_start + timedelta(days=6)
    found = []
    for customer in customers:
        if customer.dob is None:
            continue
        birthday = _birthday_in(customer.dob, today.year)
        if week_start <= birthday <= week_end:
            found.append(customer)
    return found


def top_staff(customers: list[models.Customer], limit: int = 3) -> list[tuple[str, int]]:
    """Staff names ranked by number of customers they registered."""
    counts = Counter(c.registered_by for c in customers if c.registered_by)
    return counts.most_common(limit)


def sales_last_days(
    transactions: list[models.Transaction],
    today: date,
    days: int = 7,
) -> list[DailySales]:
    """Summed amounts per day for the last ``days`` days, oldest first, zero-filled."""
    window = [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]
    totals = dict.fromkeys(window, 0)
    for transaction in transactions:
        day = transaction.date.date()
        if day in totals:
            totals[day] += transaction.amount
    return [DailySales(day=day, amount=totals[day]) for day in window]


def dormant_customers(
    dataset: models.Dataset,
    now: datetime,
    days: int = 30,
) -> list[models.Customer]:
    """Customers with no visit in the last ``days`` days.

    Customers who never transacted count as dormant once they have been
    registered for longer than the window.
    """
    cutoff = now - timedelta(days=days)
    owner_of = {card.id: card.customer_id for card in dataset.cards}
    last_visit: dict[str, datetime] = {}
    for transaction in dataset.transactions:
        customer_id = owner_of.get(transaction.card_id)
        if customer_id is None:
            continue
        previous = last_visit.get(customer_id)
        if previous is None or transaction.date > previous:
            last_visit[customer_id] = transaction.date

    return [
        customer
        for customer in dataset.customers
        if last_visit.get(customer.id, customer.registered_at) < cutoff
    ]


def rewards_ready(
    dataset: models.Dataset,
    target: int = models.FIDELITY_POINTS_FOR_REWARD,
) -> list[models.Card]:
    return [card for card in dataset.cards if card.reward_ready(target)]


def compute_insights(
    dataset: models.Dataset,
    now: datetime,
    target: int = models.FIDELITY_POINTS_FOR_REWARD,
) -> Insights:
    today = now.date()
    return Insights(
        upcoming_birthdays=upcoming_birthdays(dataset.customers, today),
        top_staff=top_staff(dataset.customers),
        sales=sales_last_days(dataset.transactions, today),
        dormant_customers=dormant_customers(dataset, now),
        rewards_ready=rewards_ready(dataset, target),
    )


def _birthday_in(dob: date, year: int) -> date:
    try:
        return dob.replace(year=year)
    except ValueError:
        # 29 Feb in a non-leap year
        return date(year, 3, 1)
