"""Rich-based output formatting for the CLI."""

from __future__ import annotations

from datetime import datetime

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

import fidelis.insights as insights_mod
import fidelis.ledger as ledger
import fidelis.models as models


# Global console instance
console = Console()


def _date(moment: datetime) -> str:
    return moment.strftime("%d %B %Y")


def _amount(value: int) -> str:
    return f"{value:,}".replace(",", ".")


def _progress_bar(card: models.Card, target: int, width: int = 20) -> str:
    filled = round(card.progress_percent(target) / 100 * width)
    return f"[green]{'█' * filled}[/green][dim]{'░' * (width - filled)}[/dim]"


def render_customers(customers: list[models.Customer], cards: list[models.Card]) -> None:
    """Render the customer list with their card ids."""
    if not customers:
        console.print("[dim]No customers found.[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Customer")
    table.add_column("Name")
    table.add_column("Instagram", style="dim")
    table.add_column("Phone")
    table.add_column("Cards")
    table.add_column("Fee")

    for customer in customers:
        owned = [c for c in cards if c.customer_id == customer.id]
        fee = "[green]paid[/green]" if customer.entry_fee_paid else "[dim]-[/dim]"
        table.add_row(
            customer.id,
            customer.name,
            customer.instagram,
            str(customer.phone),
            ", ".join(f"{c.id} ({c.type.value})" for c in owned) or "[dim]none[/dim]",
            fee,
        )

    console.print(table)
    console.print(f"[dim]Total: {len(customers)} customer(s)[/dim]")


def render_card(card: models.Card, target: int, now: datetime) -> None:
    """Render a card with its reward progress."""
    if card.is_vip:
        body = "[bold magenta]VIP[/bold magenta] member card"
    else:
        remaining = card.points_to_reward(target)
        status = (
            "[bold green]Reward ready![/bold green]"
            if card.reward_ready(target)
            else f"{remaining} point(s) to reward"
        )
        body = f"{_progress_bar(card, target)} {card.points} / {target} points\n{status}"

    expiry = f"Expires: {_date(card.expires_at)}"
    if card.is_expired(now):
        expiry = f"[red]Expired: {_date(card.expires_at)}[/red]"

    console.print(
        Panel(
            f"{body}\n[dim]{expiry}[/dim]",
            title=f"{card.type.value} card {card.id}",
            expand=False,
        )
    )


def render_customer(
    customer: models.Customer,
    cards: list[models.Card],
    target: int,
    now: datetime,
) -> None:
    console.print(f"[bold]{customer.name}[/bold] [dim]({customer.id})[/dim]")
    console.print(f"  Phone: {customer.phone}")
    if customer.instagram:
        console.print(f"  Instagram: {customer.instagram}")
    if customer.dob:
        console.print(f"  Birthday: {customer.dob.strftime('%d %B')}")
    console.print(f"  Registered: {_date(customer.registered_at)}"
                  + (f" by {customer.registered_by}" if customer.registered_by else ""))
    console.print(f"  Entry fee: {'paid' if customer.entry_fee_paid else 'not paid'}")
    console.print()
    for card in cards:
        render_card(card, target, now)


def render_transactions(transactions: list[models.Transaction]) -> None:
    if not transactions:
        console.print("[dim]No transactions recorded.[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Transaction")
    table.add_column("Card", style="dim")
    table.add_column("Date")
    table.add_column("Amount", justify="right")
    table.add_column("Points", justify="right")

    for transaction in transactions:
        points = f"[green]+{transaction.points_earned}[/green]" if transaction.points_earned else "0"
        table.add_row(
            transaction.id,
            transaction.card_id,
            transaction.date.strftime("%Y-%m-%d %H:%M"),
            _amount(transaction.amount),
            points,
        )

    console.print(table)


def render_transaction_result(result: ledger.TransactionResult, target: int) -> None:
    transaction = result.transaction
    console.print(
        f"[green]✓[/green] {transaction.id}: {_amount(transaction.amount)} "
        f"on card {transaction.card_id} (+{transaction.points_earned} point)"
    )
    if result.card is not None and not result.card.is_vip:
        console.print(f"  Balance: {result.card.points} / {target}")
        if result.card.reward_ready(target):
            console.print("  [bold green]Reward ready![/bold green]")


def render_insights(snapshot: insights_mod.Insights) -> None:
    console.print("[bold]Birthdays this week[/bold]")
    if snapshot.upcoming_birthdays:
        for customer in snapshot.upcoming_birthdays:
            console.print(f"  🎂 {customer.name} ({customer.dob.strftime('%d %B')}) {customer.phone}")
    else:
        console.print("  [dim]None[/dim]")
    console.print()

    console.print("[bold]Top staff[/bold]")
    if snapshot.top_staff:
        for name, count in snapshot.top_staff:
            console.print(f"  {name}: {count} registration(s)")
    else:
        console.print("  [dim]None[/dim]")
    console.print()

    table = Table(title="Sales, last 7 days", show_header=True, header_style="bold")
    table.add_column("Day")
    table.add_column("Amount", justify="right")
    for entry in snapshot.sales:
        table.add_row(entry.day.strftime("%d/%m"), _amount(entry.amount))
    console.print(table)
    console.print()

    console.print(f"[bold]Dormant customers (30+ days):[/bold] {len(snapshot.dormant_customers)}")
    for customer in snapshot.dormant_customers:
        console.print(f"  {customer.name} ({customer.id})")
    console.print(f"[bold]Cards with reward ready:[/bold] {len(snapshot.rewards_ready)}")
    for card in snapshot.rewards_ready:
        console.print(f"  {card.id} ({card.points} points)")


def confirm(message: str) -> bool:
    """Prompt user to confirm. Returns True if confirmed."""
    response = console.input(f"[yellow]{message}[/yellow] [dim](y/N)[/dim] ")
    return response.lower() in ("y", "yes")


def render_cancelled() -> None:
    console.print("[dim]Cancelled.[/dim]")


def render_error(message: str) -> None:
    """Render error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")
