"""Loyalty data model: customers, cards, transactions and the dataset.

The dataset travels as one JSON document with camelCase keys and ISO-8601
date strings. ``Dataset.from_payload`` / ``Dataset.from_json`` are the only
place where that document is validated and its dates rehydrated; the local
store, the sync manager and import all go through them.

Example payload:
    {
      "customers": [{"id": "CUST...", "name": "Ayu", "instagram": "@ayu",
                     "phone": {"countryCode": "+62", "number": "812345"},
                     "registeredAt": "2024-05-01T10:00:00.000Z"}],
      "cards": [{"id": "FID-...", "customerId": "CUST...", "type": "Fidelity",
                 "points": 1, "createdAt": "...", "expiresAt": "..."}],
      "transactions": [{"id": "TXN...", "cardId": "FID-...", "amount": 80000,
                        "date": "...", "pointsEarned": 1}]
    }
"""

from __future__ import annotations

import json
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

import pydantic as pdt
from pydantic.alias_generators import to_camel

import fidelis.errors as errors

FIDELITY_POINTS_THRESHOLD = 75000
FIDELITY_POINTS_FOR_REWARD = 10

DATASET_FIELDS = ("customers", "cards", "transactions")


class CardType(str, Enum):
    """Loyalty card types."""

    FIDELITY = "Fidelity"
    VIP = "VIP"

    @property
    def id_prefix(self) -> str:
        """Prefix for card ids: first three letters upper-cased plus a dash."""
        return self.value.upper()[:3] + "-"


class FidelisBaseModel(pdt.BaseModel):
    model_config = pdt.ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
    )

    @pdt.field_validator("*", mode="after")
    @classmethod
    def assume_utc(cls, value: Any) -> Any:
        """Read timestamps without an offset as UTC."""
        if isinstance(value, datetime) and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class Phone(FidelisBaseModel):
    country_code: str
    number: str

    def __str__(self) -> str:
        return f"{self.country_code} {self.number}"


class NewCustomer(FidelisBaseModel):
    """Registration form data; id and registration time are assigned by the ledger."""

    name: str
    instagram: str = ""
    phone: Phone
    registered_by: str | None = None
    dob: date | None = None
    entry_fee_paid: bool | None = None

    @pdt.field_validator("dob", mode="before")
    @classmethod
    def parse_dob(cls, value: Any) -> Any:
        """Accept both ``YYYY-MM-DD`` and full timestamps for the birth date."""
        if isinstance(value, str):
            if not value:
                return None
            return date.fromisoformat(value[:10])
        if isinstance(value, datetime):
            return value.date()
        return value


class Customer(NewCustomer):
    """A registered customer."""

    id: str
    registered_at: datetime


class Card(FidelisBaseModel):
    """A loyalty card owned by exactly one customer.

    Points only accrue on Fidelity cards; VIP cards are always considered
    complete.
    """

    id: str
    customer_id: str
    type: CardType
    points: int = pdt.Field(default=0, ge=0)
    created_at: datetime
    expires_at: datetime

    @property
    def is_vip(self) -> bool:
        return self.type == CardType.VIP

    def progress_percent(self, target: int = FIDELITY_POINTS_FOR_REWARD) -> int:
        """Reward progress (0-100). VIP cards are always at 100."""
        if self.is_vip or target <= 0:
            return 100
        return min(100, int(self.points / target * 100))

    def points_to_reward(self, target: int = FIDELITY_POINTS_FOR_REWARD) -> int:
        if self.is_vip:
            return 0
        return max(0, target - self.points)

    def reward_ready(self, target: int = FIDELITY_POINTS_FOR_REWARD) -> bool:
        return not self.is_vip and self.points >= target

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class Transaction(FidelisBaseModel):
    """A purchase recorded on a card. Only amount, points and date change after creation."""

    id: str
    card_id: str
    amount: int
    date: datetime
    points_earned: int = pdt.Field(default=0, ge=0, le=1)


class Dataset(FidelisBaseModel):
    """All customers, cards and transactions, persisted and transferred as one unit."""

    customers: list[Customer] = pdt.Field(default_factory=list)
    cards: list[Card] = pdt.Field(default_factory=list)
    transactions: list[Transaction] = pdt.Field(default_factory=list)

    @classmethod
    def empty(cls) -> Dataset:
        return cls(customers=[], cards=[], transactions=[])

    @classmethod
    def from_payload(cls, payload: Any, context: str = "Reading loyalty data") -> Dataset:
        """Validate a decoded JSON document and rehydrate its dates.

        Raises:
            InvalidFormatError: If the payload is not an object with
                ``customers``, ``cards`` and ``transactions`` arrays, or if
                any record fails validation.
        """
        if not isinstance(payload, dict):
            raise errors.InvalidFormatError(
                f"Expected a JSON object, got {type(payload).__name__}", context=context
            )
        missing = [name for name in DATASET_FIELDS if not isinstance(payload.get(name), list)]
        if missing:
            raise errors.InvalidFormatError(
                f"Missing or non-array field(s): {', '.join(missing)}", context=context
            )
        try:
            return cls.model_validate({name: payload[name] for name in DATASET_FIELDS})
        except pdt.ValidationError as e:
            raise errors.InvalidFormatError(_format_validation_errors(e), context=context) from e

    @classmethod
    def from_json(cls, text: str | bytes, context: str = "Reading loyalty data") -> Dataset:
        """Parse JSON text into a Dataset (see ``from_payload``)."""
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            raise errors.InvalidFormatError(f"Not valid JSON: {e}", context=context) from e
        return cls.from_payload(payload, context=context)

    def to_payload(self) -> dict:
        """JSON-ready dict with camelCase keys and ISO date strings."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_json(self, indent: int | None = None) -> str:
        return json.dumps(self.to_payload(), indent=indent, ensure_ascii=False)


def one_year_after(moment: datetime) -> datetime:
    """Same calendar moment one year later (29 Feb rolls over to 1 Mar)."""
    try:
        return moment.replace(year=moment.year + 1)
    except ValueError:
        return moment.replace(year=moment.year + 1, month=3, day=1)


def _format_validation_errors(error: pdt.ValidationError) -> str:
    """Format Pydantic validation errors into readable messages."""
    messages = []
    for err in error.errors():
        loc = ".".join(str(x) for x in err["loc"])
        messages.append(f"  - {loc}: {err['msg']}")
    return "\n".join(messages)
