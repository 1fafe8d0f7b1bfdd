"""Export the dataset to JSON or CSV, and import it back from JSON.

The CSV export is three tables (customers, cards, transactions) separated by
blank lines. Values are written as-is; only the composite phone field is
quoted.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

import fidelis.errors as errors
import fidelis.models as models

ExportFormat = Literal["json", "csv"]

CUSTOMER_HEADER = "customerId,name,instagram,phone,registeredAt,registeredBy,dob,entryFeePaid"
CARD_HEADER = "cardId,customerId,type,points,createdAt"
TRANSACTION_HEADER = "transactionId,cardId,amount,date,pointsEarned"


def export_dataset(dataset: models.Dataset, format: str) -> str:
    """Serialize the dataset.

    Args:
        dataset: Dataset to export.
        format: "json" (2-space indented) or "csv".

    Raises:
        InvalidFormatError: If the format is not supported.
    """
    if format == "json":
        return dataset.to_json(indent=2)
    if format == "csv":
        return _to_csv(dataset)
    raise errors.InvalidFormatError(
        f"Unsupported export format '{format}' (expected 'json' or 'csv')",
        context="Exporting loyalty data",
    )


def import_dataset(text: str) -> models.Dataset:
    """Parse exported JSON back into a dataset.

    Raises:
        InvalidFormatError: If the text is not JSON or lacks the
            customers/cards/transactions arrays.
    """
    return models.Dataset.from_json(text, context="Importing loyalty data")


def _to_csv(dataset: models.Dataset) -> str:
    customer_rows = [
        ",".join(
            [
                c.id,
                c.name,
                c.instagram,
                f'"{c.phone}"',
                _iso(c.registered_at),
                c.registered_by or "",
                c.dob.isoformat() if c.dob else "",
                _flag(c.entry_fee_paid),
            ]
        )
        for c in dataset.customers
    ]
    card_rows = [
        f"{c.id},{c.customer_id},{c.type.value},{c.points},{_iso(c.created_at)}"
        for c in dataset.cards
    ]
    transaction_rows = [
        f"{t.id},{t.card_id},{t.amount},{_iso(t.date)},{t.points_earned}"
        for t in dataset.transactions
    ]

    sections = [
        "\n".join([CUSTOMER_HEADER, *customer_rows]),
        "\n".join([CARD_HEADER, *card_rows]),
        "\n".join([TRANSACTION_HEADER, *transaction_rows]),
    ]
    return "\n\n".join(sections)


def _iso(moment: datetime) -> str:
    return moment.isoformat().replace("+00:00", "Z")


def _flag(value: bool | None) -> str:
    if value is None:
        return ""
    return "true" if value else "false"
