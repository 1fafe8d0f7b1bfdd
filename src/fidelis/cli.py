"""Fidelis CLI: loyalty cards for a small shop.

Register customers, record purchases, and keep a copy of the register in the
cloud.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Annotated

import cyclopts
import pydantic as pdt
from loguru import logger
from rich.console import Console

import fidelis.app as app_mod
import fidelis.errors as errors
import fidelis.models as models
import fidelis.output as output
import fidelis.settings as settings

# Version is defined here and in pyproject.toml
__version__ = "0.1.0"

console = Console()

app = cyclopts.App(
    name="fidelis",
    help="Loyalty cards for a small shop. Register customers, record purchases, sync to the cloud.",
    version=__version__,
)

ConfigOption = Annotated[
    Path,
    cyclopts.Parameter(name="--config", help="Path to fidelis.yaml"),
]
PasscodeOption = Annotated[
    str,
    cyclopts.Parameter(name="--passcode", env_var="FIDELIS_PASSCODE", help="Shop passcode"),
]
YesOption = Annotated[
    bool,
    cyclopts.Parameter(name="--yes", help="Skip confirmation prompt"),
]


def _handle_error(e: errors.FidelisError) -> None:
    """Display a structured error message."""
    console.print(f"[bold red]Error:[/bold red] {e.context}\n")
    console.print(f"[yellow]Cause:[/yellow] {e.cause}\n")
    console.print(f"[green]Fix:[/green] {e.fix}")


def _open(config: Path, passcode: str) -> app_mod.LoyaltyApp:
    """Load settings and unlock the register."""
    fidelis_settings = settings.load_settings(config)

    t0 = time.perf_counter()
    loyalty = app_mod.LoyaltyApp.start(fidelis_settings, passcode)
    logger.debug(f"Startup: {(time.perf_counter() - t0) * 1000:.1f}ms")

    if loyalty.startup_sync_error is not None:
        console.print(
            f"[yellow]Sync failed:[/yellow] {loyalty.startup_sync_error.cause} "
            "[dim](working on local data)[/dim]"
        )
    return loyalty


@app.command
def register(
    name: Annotated[str, cyclopts.Parameter(help="Customer name")],
    phone: Annotated[str, cyclopts.Parameter(name="--phone", help="Phone number without country code")],
    country_code: Annotated[str, cyclopts.Parameter(name="--country-code", help="Phone country code")] = "+62",
    instagram: Annotated[str, cyclopts.Parameter(name="--instagram", help="Instagram handle")] = "",
    staff: Annotated[str | None, cyclopts.Parameter(name="--staff", help="Staff member registering")] = None,
    dob: Annotated[str | None, cyclopts.Parameter(name="--dob", help="Date of birth (YYYY-MM-DD)")] = None,
    card_type: Annotated[
        models.CardType,
        cyclopts.Parameter(name="--card-type", help="Card to issue (fidelity or vip)"),
    ] = models.CardType.FIDELITY,
    fee_paid: Annotated[bool, cyclopts.Parameter(name="--fee-paid", help="Entry fee already paid")] = False,
    config: ConfigOption = Path("fidelis.yaml"),
    passcode: PasscodeOption = "",
):
    """Register a customer and issue their first card."""
    try:
        new_customer = models.NewCustomer(
            name=name,
            instagram=instagram,
            phone=models.Phone(country_code=country_code, number=phone),
            registered_by=staff,
            dob=dob,
            entry_fee_paid=fee_paid,
        )
    except pdt.ValidationError as e:
        output.render_error(f"Invalid customer details: {e.errors()[0]['msg']}")
        raise SystemExit(1)

    try:
        with _open(config, passcode) as loyalty:
            result = loyalty.register_customer(new_customer, card_type)
            console.print(f"[green]✓[/green] Registered {result.customer.name} ({result.customer.id})")
            output.render_card(result.card, loyalty.settings.rewards.points_for_reward, loyalty.clock())
    except errors.FidelisError as e:
        _handle_error(e)
        raise SystemExit(1)


@app.command(name="issue-card")
def issue_card(
    customer_id: Annotated[str, cyclopts.Parameter(help="Customer id")],
    card_type: Annotated[
        models.CardType,
        cyclopts.Parameter(name="--card-type", help="Card to issue (fidelity or vip)"),
    ] = models.CardType.FIDELITY,
    config: ConfigOption = Path("fidelis.yaml"),
    passcode: PasscodeOption = "",
):
    """Issue an additional card to an existing customer."""
    try:
        with _open(config, passcode) as loyalty:
            card = loyalty.issue_card(customer_id, card_type)
            console.print(f"[green]✓[/green] Issued {card.type.value} card {card.id}")
    except errors.FidelisError as e:
        _handle_error(e)
        raise SystemExit(1)


@app.command
def customers(
    search: Annotated[
        str,
        cyclopts.Parameter(name="--search", help="Filter by name or card id"),
    ] = "",
    config: ConfigOption = Path("fidelis.yaml"),
    passcode: PasscodeOption = "",
):
    """List customers and their cards.

    Examples:
        fidelis customers
        fidelis customers --search ayu
    """
    try:
        with _open(config, passcode) as loyalty:
            dataset = loyalty.dataset()
            found = loyalty.customers(search)
            output.render_customers(found, dataset.cards)
    except errors.FidelisError as e:
        _handle_error(e)
        raise SystemExit(1)


@app.command
def show(
    customer_id: Annotated[str, cyclopts.Parameter(help="Customer id")],
    config: ConfigOption = Path("fidelis.yaml"),
    passcode: PasscodeOption = "",
):
    """Show a customer, their cards and recent transactions."""
    try:
        with _open(config, passcode) as loyalty:
            customer = loyalty.customer(customer_id)
            cards = loyalty.cards_for_customer(customer_id)
            target = loyalty.settings.rewards.points_for_reward
            output.render_customer(customer, cards, target, loyalty.clock())
            transactions = [t for card in cards for t in loyalty.transactions_for_card(card.id)]
            transactions.sort(key=lambda t: t.date, reverse=True)
            output.render_transactions(transactions)
    except errors.FidelisError as e:
        _handle_error(e)
        raise SystemExit(1)


@app.command
def record(
    card_id: Annotated[str, cyclopts.Parameter(help="Card id")],
    amount: Annotated[int, cyclopts.Parameter(help="Purchase amount")],
    config: ConfigOption = Path("fidelis.yaml"),
    passcode: PasscodeOption = "",
):
    """Record a purchase on a card (Fidelity cards earn a point at 75.000 or more)."""
    try:
        with _open(config, passcode) as loyalty:
            result = loyalty.record_transaction(card_id, amount)
            output.render_transaction_result(result, loyalty.settings.rewards.points_for_reward)
    except errors.FidelisError as e:
        _handle_error(e)
        raise SystemExit(1)


@app.command
def revise(
    transaction_id: Annotated[str, cyclopts.Parameter(help="Transaction id")],
    amount: Annotated[int, cyclopts.Parameter(help="Corrected amount")],
    config: ConfigOption = Path("fidelis.yaml"),
    passcode: PasscodeOption = "",
):
    """Correct the amount of a recorded transaction."""
    try:
        with _open(config, passcode) as loyalty:
            result = loyalty.revise_transaction(transaction_id, amount)
            output.render_transaction_result(result, loyalty.settings.rewards.points_for_reward)
    except errors.FidelisError as e:
        _handle_error(e)
        raise SystemExit(1)


@app.command
def void(
    transaction_id: Annotated[str, cyclopts.Parameter(help="Transaction id")],
    yes: YesOption = False,
    config: ConfigOption = Path("fidelis.yaml"),
    passcode: PasscodeOption = "",
):
    """Delete a transaction and take back the point it earned."""
    try:
        with _open(config, passcode) as loyalty:
            if not yes and not output.confirm(f"Delete transaction {transaction_id}?"):
                output.render_cancelled()
                return
            result = loyalty.remove_transaction(transaction_id)
            console.print(f"[red]-[/red] Deleted transaction {result.deleted_transaction_id}")
            if result.card is not None:
                console.print(f"  Balance of {result.card.id}: {result.card.points}")
    except errors.FidelisError as e:
        _handle_error(e)
        raise SystemExit(1)


@app.command(name="remove-card")
def remove_card(
    card_id: Annotated[str, cyclopts.Parameter(help="Card id")],
    yes: YesOption = False,
    config: ConfigOption = Path("fidelis.yaml"),
    passcode: PasscodeOption = "",
):
    """Delete a card and all of its transactions."""
    try:
        with _open(config, passcode) as loyalty:
            if not yes and not output.confirm(f"Delete card {card_id} and its transactions?"):
                output.render_cancelled()
                return
            result = loyalty.remove_card(card_id)
            console.print(
                f"[red]-[/red] Deleted card {result.deleted_card_id} "
                f"({len(result.deleted_transaction_ids)} transaction(s))"
            )
    except errors.FidelisError as e:
        _handle_error(e)
        raise SystemExit(1)


@app.command(name="remove-customer")
def remove_customer(
    customer_id: Annotated[str, cyclopts.Parameter(help="Customer id")],
    yes: YesOption = False,
    config: ConfigOption = Path("fidelis.yaml"),
    passcode: PasscodeOption = "",
):
    """Delete a customer with all of their cards and transactions."""
    try:
        with _open(config, passcode) as loyalty:
            if not yes and not output.confirm(f"Delete customer {customer_id} and everything they own?"):
                output.render_cancelled()
                return
            result = loyalty.remove_customer(customer_id)
            console.print(
                f"[red]-[/red] Deleted customer {result.deleted_customer_id} "
                f"({len(result.deleted_card_ids)} card(s), "
                f"{len(result.deleted_transaction_ids)} transaction(s))"
            )
    except errors.FidelisError as e:
        _handle_error(e)
        raise SystemExit(1)


@app.command
def fee(
    customer_id: Annotated[str, cyclopts.Parameter(help="Customer id")],
    unpaid: Annotated[bool, cyclopts.Parameter(name="--unpaid", help="Mark the fee as not paid")] = False,
    config: ConfigOption = Path("fidelis.yaml"),
    passcode: PasscodeOption = "",
):
    """Mark a customer's entry fee as paid (or not paid with --unpaid)."""
    try:
        with _open(config, passcode) as loyalty:
            customer = loyalty.set_entry_fee(customer_id, not unpaid)
            state = "paid" if customer.entry_fee_paid else "not paid"
            console.print(f"[green]✓[/green] Entry fee for {customer.name}: {state}")
    except errors.FidelisError as e:
        _handle_error(e)
        raise SystemExit(1)


@app.command
def export(
    format: Annotated[
        str,
        cyclopts.Parameter(name="--format", help="Export format (json or csv)"),
    ] = "json",
    output_path: Annotated[
        Path | None,
        cyclopts.Parameter(name="--output", help="Write to a file instead of stdout"),
    ] = None,
    config: ConfigOption = Path("fidelis.yaml"),
    passcode: PasscodeOption = "",
):
    """Export all customers, cards and transactions.

    Examples:
        fidelis export --output backup.json
        fidelis export --format csv --output backup.csv
    """
    try:
        with _open(config, passcode) as loyalty:
            text = loyalty.export(format)
    except errors.FidelisError as e:
        _handle_error(e)
        raise SystemExit(1)

    if output_path is None:
        print(text)
        return
    output_path.write_text(text, encoding="utf-8")
    console.print(f"[green]✓[/green] Exported to {output_path}")


@app.command(name="import")
def import_(
    path: Annotated[Path, cyclopts.Parameter(help="JSON file produced by 'fidelis export'")],
    yes: YesOption = False,
    config: ConfigOption = Path("fidelis.yaml"),
    passcode: PasscodeOption = "",
):
    """Replace all local data with an exported JSON backup."""
    if not path.exists():
        output.render_error(f"File not found: {path}")
        raise SystemExit(1)

    try:
        with _open(config, passcode) as loyalty:
            if not yes and not output.confirm("This overwrites all local data. Continue?"):
                output.render_cancelled()
                return
            dataset = loyalty.import_data(path.read_text(encoding="utf-8"))
            console.print(
                f"[green]✓[/green] Imported {len(dataset.customers)} customer(s), "
                f"{len(dataset.cards)} card(s), {len(dataset.transactions)} transaction(s)"
            )
    except errors.FidelisError as e:
        _handle_error(e)
        raise SystemExit(1)


@app.command
def pull(
    config: ConfigOption = Path("fidelis.yaml"),
    passcode: PasscodeOption = "",
):
    """Replace local data with the copy held by the sync endpoint."""
    try:
        fidelis_settings = settings.load_settings(config)
        # Pull explicitly below so failures are reported as errors
        fidelis_settings = fidelis_settings.model_copy(
            update={"sync": fidelis_settings.sync.model_copy(update={"pull_on_start": False})}
        )
        with app_mod.LoyaltyApp.start(fidelis_settings, passcode) as loyalty:
            if not loyalty.sync.enabled:
                console.print("[dim]Sync is disabled (no endpoint configured).[/dim]")
                return
            if loyalty.pull():
                console.print("[green]✓[/green] Data synced")
            else:
                console.print("[yellow]Remote copy is not a valid dataset; local data kept.[/yellow]")
    except errors.FidelisError as e:
        _handle_error(e)
        raise SystemExit(1)


@app.command(name="sync-url")
def sync_url(
    url: Annotated[str | None, cyclopts.Parameter(help="New endpoint URL")] = None,
    disable: Annotated[bool, cyclopts.Parameter(name="--disable", help="Turn sync off")] = False,
    config: ConfigOption = Path("fidelis.yaml"),
    passcode: PasscodeOption = "",
):
    """Show or change the sync endpoint.

    Examples:
        fidelis sync-url
        fidelis sync-url https://script.google.com/macros/s/.../exec
        fidelis sync-url --disable
    """
    try:
        with _open(config, passcode) as loyalty:
            if disable:
                loyalty.set_sync_url("")
                console.print("[green]✓[/green] Sync disabled")
            elif url is not None:
                loyalty.set_sync_url(url)
                console.print(f"[green]✓[/green] Sync endpoint set to {url}")
            else:
                current = loyalty.get_sync_url()
                console.print(f"[bold]Sync endpoint:[/bold] {current or '(disabled)'}")
    except errors.FidelisError as e:
        _handle_error(e)
        raise SystemExit(1)


@app.command
def insights(
    config: ConfigOption = Path("fidelis.yaml"),
    passcode: PasscodeOption = "",
):
    """Birthdays this week, top staff, recent sales, dormant customers and rewards due."""
    try:
        with _open(config, passcode) as loyalty:
            output.render_insights(loyalty.insights())
    except errors.FidelisError as e:
        _handle_error(e)
        raise SystemExit(1)
