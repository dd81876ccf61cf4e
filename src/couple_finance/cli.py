"""CLI for couple-finance using Typer."""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from .config import load_settings
from .db import Database
from .exceptions import CoupleFinanceError, ValidationError
from .mapper import match_category, match_member
from .models import (
    CustomPercentages,
    EqualSplit,
    Member,
    RecurringTemplateInput,
    SingleAssignee,
    SplitPolicy,
    Transaction,
    TransactionInput,
)
from .service import LedgerService
from .splits import calculate_splits, policy_from_splits
from .ui import (
    category_label,
    confirm_action,
    prompt_percentages,
    select_category_interactive,
    select_member_interactive,
)

app = typer.Typer(
    name="couple-finance",
    help="Track shared expenses, splits, recurring payments and savings goals",
)
member_app = typer.Typer(help="Manage group members")
recurring_app = typer.Typer(help="Manage monthly recurring payments")
goal_app = typer.Typer(help="Manage savings goals")
comment_app = typer.Typer(help="Discuss transactions")
account_app = typer.Typer(help="Manage financial accounts")

app.add_typer(member_app, name="member")
app.add_typer(recurring_app, name="recurring")
app.add_typer(goal_app, name="goal")
app.add_typer(comment_app, name="comment")
app.add_typer(account_app, name="account")

console = Console()

SPLIT_HELP = "How to split: all (equal), one (single assignee) or custom (percentages)"
MEMBER_ROLES = ("OWNER", "ADMIN", "MEMBER")


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    # Downgrade httpx logging to DEBUG (OpenAI requests are too noisy at INFO)
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


@contextmanager
def open_service(verbose: bool = False) -> Iterator[LedgerService]:
    """Load settings, open the database and report errors the same way everywhere."""
    setup_logging(verbose)
    db = None

    try:
        settings = load_settings()
        db = Database(settings.database_path)
        yield LedgerService(settings, db)
    except CoupleFinanceError as e:
        console.print(f"\n[bold yellow]⚠️  {e}[/bold yellow]\n")
        if verbose:
            raise
        sys.exit(1)
    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)
    finally:
        if db is not None:
            db.close()


def format_money(amount: int, symbol: str = "$", use_color: bool = True) -> str:
    """
    Format money in accounting style with alignment.

    Negative amounts use parentheses: ($85,000)
    Positive amounts have spaces:      $85,000
    """
    abs_amount = abs(amount)
    if amount < 0:
        if use_color:
            return f"({symbol}[red]{abs_amount:,}[/red])"
        return f"({symbol}{abs_amount:,})"
    if use_color:
        return f" [green]{symbol}{abs_amount:,}[/green] "
    return f" {symbol}{abs_amount:,} "


# ============================================================================
# Option resolution
# ============================================================================


def _resolve_member(
    service: LedgerService, name: str | None, label: str = "Member"
) -> Member:
    """Find a member by name, prompting when no name was given."""
    members = service.list_members()
    if not members:
        raise ValidationError("No members yet. Add one with: couple-finance member add")

    if name is None:
        member_id = select_member_interactive(members, label=label)
        if member_id is None:
            raise ValidationError(f"No {label.lower()} selected")
        return next(m for m in members if m.id == member_id)

    member = match_member(name, members)
    if member is None:
        raise ValidationError(f"Unknown {label.lower()}: {name}")
    return member


def _resolve_actor(service: LedgerService, name: str | None) -> Member:
    """The acting member: the named one, or the group owner."""
    if name:
        return _resolve_member(service, name)
    members = service.list_members()
    if not members:
        raise ValidationError("No members yet. Add one with: couple-finance member add")
    return next((m for m in members if m.role == "OWNER"), members[0])


def _resolve_category_id(service: LedgerService, name: str | None) -> str:
    """Find a category by name, prompting when no name was given."""
    categories = service.list_categories()

    if name is None:
        category_id = select_category_interactive(categories)
        if category_id is None:
            raise ValidationError("No category selected")
        return category_id

    category = match_category(name, categories)
    if category is None:
        raise ValidationError(f"Unknown category: {name}")
    return category.id


def _parse_percent_options(
    service: LedgerService, percent: list[str]
) -> dict[str, float]:
    """Parse repeated NAME=PCT options into percentages by member ID."""
    members = service.list_members()
    percentages = {}
    for item in percent:
        name, sep, value = item.partition("=")
        if not sep:
            raise ValidationError(f"Expected NAME=PERCENT, got '{item}'")
        member = match_member(name, members)
        if member is None:
            raise ValidationError(f"Unknown member in split: {name}")
        try:
            percentages[member.id] = float(value)
        except ValueError as e:
            raise ValidationError(f"Invalid percentage for {name}: {value}") from e
    return percentages


def _build_policy(
    service: LedgerService,
    split: str,
    assignee: str | None,
    percent: list[str],
) -> SplitPolicy:
    """Turn --split/--assignee/--percent options into a split policy."""
    split = split.lower()
    if split == "all":
        return EqualSplit()
    if split == "one":
        return SingleAssignee(user_id=_resolve_member(service, assignee, "Assignee").id)
    if split == "custom":
        if percent:
            return CustomPercentages(percentages=_parse_percent_options(service, percent))
        console.print("[bold]Custom split percentages:[/bold]")
        return CustomPercentages(percentages=prompt_percentages(service.list_members()))
    raise ValidationError(f"Unknown split type '{split}' (use all, one or custom)")


def _names(service: LedgerService) -> dict[str, str]:
    # Removed members still appear in past transactions
    return {m.id: m.name for m in service.list_members(include_inactive=True)}


# ============================================================================
# Display
# ============================================================================


def display_transaction(service: LedgerService, transaction: Transaction):
    """Display a transaction with its splits."""
    symbol = service.settings.currency_symbol
    names = _names(service)

    console.print(f"\n[bold]{transaction.description}[/bold] [dim]({transaction.id})[/dim]")
    console.print(f"  Date: {transaction.date.date()}")
    console.print(f"  Type: {transaction.type} / {transaction.status}")
    console.print(f"  Paid by: {names.get(transaction.payer_id, transaction.payer_id)}")
    console.print(f"  Amount: {format_money(transaction.amount, symbol)}")

    if transaction.splits:
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Member", style="cyan")
        table.add_column("Share", justify="right")
        table.add_column("%", justify="right", style="dim")
        for split in transaction.splits:
            table.add_row(
                names.get(split.user_id, split.user_id),
                format_money(split.amount, symbol),
                f"{split.percentage:.1f}" if split.percentage is not None else "—",
            )
        console.print(table)


# ============================================================================
# Commands
# ============================================================================


@app.command()
def init(verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output")):
    """Create the database and the default categories."""
    with open_service(verbose) as service:
        categories = service.list_categories()
        console.print(
            f"[green]✓ Ledger '{service.settings.group_name}' ready at "
            f"{service.settings.database_path} with {len(categories)} categories[/green]"
        )


@member_app.command("add")
def member_add(
    name: str = typer.Argument(..., help="Member name"),
    email: str | None = typer.Option(None, "--email", help="Member email"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Add a member to the group."""
    with open_service(verbose) as service:
        member = service.add_member(name, email=email)
        console.print(f"[green]✓ Added {member.name} ({member.role})[/green]")


@member_app.command("list")
def member_list(
    show_all: bool = typer.Option(False, "--all", help="Include removed members"),
):
    """List group members in allocation order."""
    with open_service() as service:
        table = Table(title="Members", show_header=True, header_style="bold magenta")
        table.add_column("Name", style="cyan")
        table.add_column("Email")
        table.add_column("Role", style="dim")
        for member in service.list_members(include_inactive=show_all):
            role = member.role if member.active else f"{member.role} (removed)"
            table.add_row(member.name, member.email or "—", role)
        console.print(table)


@member_app.command("role")
def member_role(
    name: str = typer.Argument(..., help="Member name"),
    role: str = typer.Argument(..., help="OWNER, ADMIN or MEMBER"),
    actor: str | None = typer.Option(None, "--as", help="Member making the change"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Change a member's role (owner only)."""
    with open_service(verbose) as service:
        acting = _resolve_actor(service, actor)
        role = role.upper()
        if role not in MEMBER_ROLES:
            raise ValidationError(f"Unknown role '{role}' (use OWNER, ADMIN or MEMBER)")
        member = service.update_member_role(
            acting.id, _resolve_member(service, name).id, role
        )
        console.print(f"[green]✓ {member.name} is now {member.role}[/green]")


@member_app.command("remove")
def member_remove(
    name: str = typer.Argument(..., help="Member name"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
    actor: str | None = typer.Option(None, "--as", help="Member making the change"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Remove a settled-up member from the group (owner only)."""
    with open_service(verbose) as service:
        acting = _resolve_actor(service, actor)
        member = _resolve_member(service, name)
        if not yes and not confirm_action(f"Remove {member.name} from the group?"):
            console.print("[yellow]Cancelled.[/yellow]")
            return
        service.remove_member(acting.id, member.id)
        console.print(f"[green]✓ {member.name} removed from the group[/green]")


@app.command()
def add(
    amount: int = typer.Argument(..., help="Amount in minor currency units"),
    description: str = typer.Argument(..., help="What the money was spent on"),
    payer: str | None = typer.Option(None, "--payer", "-p", help="Who paid"),
    category: str | None = typer.Option(None, "--category", "-c", help="Category name"),
    type_: str = typer.Option("EXPENSE", "--type", "-t", help="Transaction type"),
    on: datetime | None = typer.Option(None, "--date", help="Transaction date"),
    split: str = typer.Option("all", "--split", "-s", help=SPLIT_HELP),
    assignee: str | None = typer.Option(None, "--assignee", help="Member for --split one"),
    percent: list[str] = typer.Option([], "--percent", help="NAME=PCT for --split custom"),
    goal: str | None = typer.Option(None, "--goal", help="Goal ID for SAVING transactions"),
    actor: str | None = typer.Option(None, "--as", help="Member recording the entry"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Record a completed transaction and split it between members."""
    with open_service(verbose) as service:
        acting = _resolve_actor(service, actor)
        payer_member = _resolve_member(service, payer, "Payer")
        category_id = _resolve_category_id(service, category)
        policy = _build_policy(service, split, assignee, percent)
        participants = [m.id for m in service.list_members()]

        data = TransactionInput(
            amount=amount,
            description=description,
            category_id=category_id,
            payer_id=payer_member.id,
            date=on or datetime.now(),
            type=type_.upper(),
            goal_id=goal,
            splits=calculate_splits(amount, policy, participants),
        )
        transaction = service.create_transaction(acting.id, data)

        display_transaction(service, transaction)
        console.print("\n[bold green]✓ Transaction recorded![/bold green]")


@app.command()
def edit(
    transaction_id: str = typer.Argument(..., help="Transaction ID"),
    amount: int | None = typer.Option(None, "--amount", "-a", help="New amount"),
    description: str | None = typer.Option(None, "--description", "-d", help="New description"),
    payer: str | None = typer.Option(None, "--payer", "-p", help="New payer"),
    category: str | None = typer.Option(None, "--category", "-c", help="New category"),
    split: str | None = typer.Option(None, "--split", "-s", help=SPLIT_HELP),
    assignee: str | None = typer.Option(None, "--assignee", help="Member for --split one"),
    percent: list[str] = typer.Option([], "--percent", help="NAME=PCT for --split custom"),
    actor: str | None = typer.Option(None, "--as", help="Member making the change"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Edit a transaction.

    Splits are recomputed when the amount or --split changes; the new splits
    replace the old ones entirely. Without --split the existing split
    (equal, single assignee or custom percentages) is kept.
    """
    with open_service(verbose) as service:
        acting = _resolve_actor(service, actor)
        existing = service.get_transaction(transaction_id)

        new_amount = amount if amount is not None else existing.amount
        splits = existing.splits
        if split is not None or new_amount != existing.amount:
            if split is not None:
                policy = _build_policy(service, split, assignee, percent)
            else:
                policy = policy_from_splits(existing.amount, existing.splits)
            participants = [m.id for m in service.list_members()]
            splits = calculate_splits(new_amount, policy, participants)

        data = TransactionInput(
            amount=new_amount,
            description=description or existing.description,
            category_id=(
                _resolve_category_id(service, category)
                if category
                else existing.category_id or ""
            ),
            payer_id=(
                _resolve_member(service, payer, "Payer").id
                if payer
                else existing.payer_id
            ),
            date=existing.date,
            type=existing.type,
            goal_id=existing.goal_id,
            splits=splits,
        )
        updated = service.update_transaction(acting.id, transaction_id, data)

        display_transaction(service, updated)
        console.print("\n[bold green]✓ Transaction updated![/bold green]")


@app.command()
def delete(
    transaction_id: str = typer.Argument(..., help="Transaction ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
    actor: str | None = typer.Option(None, "--as", help="Member making the change"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Delete a transaction."""
    with open_service(verbose) as service:
        acting = _resolve_actor(service, actor)
        if not yes and not confirm_action(f"Delete transaction {transaction_id}?"):
            console.print("[yellow]Cancelled.[/yellow]")
            return
        service.delete_transaction(acting.id, transaction_id)
        console.print("[green]✓ Transaction deleted[/green]")


@app.command("list")
def list_transactions(
    limit: int = typer.Option(20, "--limit", "-n", help="How many to show"),
):
    """List recent transactions, newest first."""
    with open_service() as service:
        symbol = service.settings.currency_symbol
        names = _names(service)
        categories = {c.id: category_label(c) for c in service.list_categories()}

        table = Table(title="Transactions", show_header=True, header_style="bold magenta")
        table.add_column("ID", style="dim", width=10)
        table.add_column("Date")
        table.add_column("Description", style="cyan", width=30)
        table.add_column("Category", style="yellow")
        table.add_column("Paid by")
        table.add_column("Amount", justify="right")
        table.add_column("Status", style="dim")

        for t in service.list_transactions()[:limit]:
            table.add_row(
                t.id[:8],
                str(t.date.date()),
                t.description[:30],
                categories.get(t.category_id or "", "—"),
                names.get(t.payer_id, t.payer_id),
                format_money(t.amount, symbol),
                f"⏳ {t.status}" if t.status == "PENDING" else t.status,
            )
        console.print(table)


@app.command()
def balance(
    actor: str | None = typer.Option(None, "--as", help="Member to compute the balance for"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show who owes whom, with the transactions behind the balance."""
    with open_service(verbose) as service:
        member = _resolve_actor(service, actor)
        symbol = service.settings.currency_symbol
        result = service.get_balance_breakdown(member.id)

        table = Table(
            title=f"Settlement for {member.name}",
            show_header=True,
            header_style="bold magenta",
        )
        table.add_column("Date")
        table.add_column("Description", style="cyan", width=40)
        table.add_column("Amount", justify="right")

        for entry in result.breakdown:
            signed = entry.amount if entry.type == "OWED" else -entry.amount
            table.add_row(str(entry.date.date()), entry.description, format_money(signed, symbol))
        console.print(table)

        if result.balance > 0:
            console.print(
                f"\n[bold green]You are owed {symbol}{result.balance:,}[/bold green]"
            )
        elif result.balance < 0:
            console.print(f"\n[bold red]You owe {symbol}{-result.balance:,}[/bold red]")
        else:
            console.print("\n[bold]You are settled up[/bold]")


@app.command()
def confirm(
    transaction_id: str = typer.Argument(..., help="Pending transaction ID"),
    amount: int | None = typer.Option(None, "--amount", "-a", help="Corrected amount"),
    split: str | None = typer.Option(None, "--split", "-s", help=SPLIT_HELP),
    assignee: str | None = typer.Option(None, "--assignee", help="Member for --split one"),
    percent: list[str] = typer.Option([], "--percent", help="NAME=PCT for --split custom"),
    actor: str | None = typer.Option(None, "--as", help="Member confirming"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Confirm a pending recurring payment and split it."""
    with open_service(verbose) as service:
        acting = _resolve_actor(service, actor)
        policy = _build_policy(service, split, assignee, percent) if split else None
        transaction = service.confirm_pending_transaction(
            acting.id, transaction_id, policy=policy, amount=amount
        )
        display_transaction(service, transaction)
        console.print("\n[bold green]✓ Payment confirmed![/bold green]")


@app.command()
def parse(
    text: str = typer.Argument(..., help='e.g. "Groceries 85000, I paid, split 60/40"'),
    actor: str | None = typer.Option(None, "--as", help="Member who wrote the text"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Record a transaction from free text using GPT."""
    with open_service(verbose) as service:
        acting = _resolve_actor(service, actor)
        console.print("[bold blue]Parsing with GPT...[/bold blue]")
        transaction = service.add_from_text(acting.id, text)
        display_transaction(service, transaction)
        console.print("\n[bold green]✓ Transaction recorded![/bold green]")


@app.command()
def alerts(
    dismiss: str | None = typer.Option(None, "--dismiss", help="Alert ID to mark as read"),
):
    """Show unread alerts."""
    with open_service() as service:
        if dismiss:
            service.mark_alert_read(dismiss)
            console.print("[green]✓ Alert dismissed[/green]")
            return

        pending = service.list_alerts()
        if not pending:
            console.print("[dim]No new alerts.[/dim]")
        for alert in pending:
            console.print(
                f"🔔 [bold]{alert.title}[/bold] [dim]({alert.id[:8]}, "
                f"{alert.created_at:%Y-%m-%d})[/dim]\n   {alert.body}"
            )


@app.command()
def audit(limit: int = typer.Option(50, "--limit", "-n", help="How many entries")):
    """Show recent changes to the ledger."""
    with open_service() as service:
        names = _names(service)
        table = Table(title="Audit Log", show_header=True, header_style="bold magenta")
        table.add_column("When")
        table.add_column("Who", style="cyan")
        table.add_column("Action")
        table.add_column("Entity", style="dim")
        for entry in service.list_audit_entries(limit=limit):
            table.add_row(
                f"{entry.changed_at:%Y-%m-%d %H:%M}",
                names.get(entry.changed_by, entry.changed_by),
                entry.action,
                f"{entry.entity_type} {entry.entity_id[:8]}",
            )
        console.print(table)


@app.command()
def report(
    actor: str | None = typer.Option(None, "--as", help="Member to report for"),
    no_ai: bool = typer.Option(False, "--no-ai", help="Skip the GPT analysis"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Summarize recent spending, optionally with a GPT-written analysis."""
    with open_service(verbose) as service:
        member = _resolve_actor(service, actor)
        symbol = service.settings.currency_symbol
        summary = service.generate_report(member.id, with_insight=not no_ai)

        console.print(
            f"\n[bold]Spending {summary.period_start} → {summary.period_end}[/bold]"
        )
        console.print(f"  Total: {format_money(summary.total_spent, symbol)}")
        console.print(
            f"  Balance: {format_money(summary.balance, symbol)} ({summary.balance_status})"
        )

        table = Table(title="Top Categories", show_header=True, header_style="bold magenta")
        table.add_column("Category", style="yellow")
        table.add_column("Total", justify="right")
        for c in summary.category_summary:
            table.add_row(c.name, format_money(c.total, symbol))
        console.print(table)

        if summary.insight:
            console.print(Markdown(summary.insight))


# ============================================================================
# Recurring templates
# ============================================================================


@recurring_app.command("add")
def recurring_add(
    name: str = typer.Argument(..., help="Template name, e.g. Rent"),
    amount: int = typer.Argument(..., help="Amount in minor currency units"),
    day: int = typer.Argument(..., min=1, max=31, help="Day of month it falls due"),
    payer: str | None = typer.Option(None, "--payer", "-p", help="Who pays"),
    category: str | None = typer.Option(None, "--category", "-c", help="Category name"),
    split: str = typer.Option("all", "--split", "-s", help=SPLIT_HELP),
    assignee: str | None = typer.Option(None, "--assignee", help="Member for --split one"),
    percent: list[str] = typer.Option([], "--percent", help="NAME=PCT for --split custom"),
    actor: str | None = typer.Option(None, "--as", help="Member creating the template"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Create a monthly recurring payment."""
    with open_service(verbose) as service:
        acting = _resolve_actor(service, actor)
        data = RecurringTemplateInput(
            name=name,
            amount=amount,
            day_of_month=day,
            category_id=_resolve_category_id(service, category),
            payer_id=_resolve_member(service, payer, "Payer").id,
            policy=_build_policy(service, split, assignee, percent),
        )
        template = service.create_recurring_template(acting.id, data)
        console.print(
            f"[green]✓ '{template.name}' scheduled, first due {template.next_run}[/green]"
        )


@recurring_app.command("list")
def recurring_list():
    """List recurring payments."""
    with open_service() as service:
        symbol = service.settings.currency_symbol
        names = _names(service)
        table = Table(title="Recurring", show_header=True, header_style="bold magenta")
        table.add_column("ID", style="dim", width=10)
        table.add_column("Name", style="cyan")
        table.add_column("Amount", justify="right")
        table.add_column("Day", justify="right")
        table.add_column("Next run")
        table.add_column("Paid by")
        table.add_column("Split", style="dim")
        table.add_column("Active")

        today = date.today()
        for t in service.list_templates():
            next_run = str(t.next_run)
            if t.active and t.next_run <= today:
                next_run = f"[bold red]{next_run}[/bold red]"
            table.add_row(
                t.id[:8],
                t.name,
                format_money(t.amount, symbol),
                str(t.day_of_month),
                next_run,
                names.get(t.payer_id, t.payer_id),
                t.policy.kind,
                "✓" if t.active else "—",
            )
        console.print(table)


@recurring_app.command("run")
def recurring_run(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Create pending transactions for every template that is due."""
    with open_service(verbose) as service:
        created = service.check_recurring_transactions()
        if not created:
            console.print("[dim]Nothing due.[/dim]")
            return
        for transaction in created:
            console.print(
                f"⏳ {transaction.description}: "
                f"{format_money(transaction.amount, service.settings.currency_symbol)} "
                f"[dim](confirm with: couple-finance confirm {transaction.id})[/dim]"
            )


@recurring_app.command("pay")
def recurring_pay(
    template_id: str = typer.Argument(..., help="Template ID"),
    actor: str | None = typer.Option(None, "--as", help="Member paying"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Pay a recurring template now and move it to next month."""
    with open_service(verbose) as service:
        acting = _resolve_actor(service, actor)
        transaction = service.confirm_recurring_payment(acting.id, template_id)
        display_transaction(service, transaction)
        console.print("\n[bold green]✓ Payment recorded![/bold green]")


@recurring_app.command("pause")
def recurring_pause(
    template_id: str = typer.Argument(..., help="Template ID"),
    resume: bool = typer.Option(False, "--resume", help="Resume instead of pausing"),
    actor: str | None = typer.Option(None, "--as", help="Member making the change"),
):
    """Pause (or resume) a recurring payment."""
    with open_service() as service:
        acting = _resolve_actor(service, actor)
        service.set_template_active(acting.id, template_id, active=resume)
        console.print(f"[green]✓ Template {'resumed' if resume else 'paused'}[/green]")


# ============================================================================
# Goals
# ============================================================================


@goal_app.command("add")
def goal_add(
    name: str = typer.Argument(..., help="Goal name"),
    target: int = typer.Argument(..., help="Target amount in minor currency units"),
    deadline: datetime | None = typer.Option(None, "--deadline", help="Target date"),
    actor: str | None = typer.Option(None, "--as", help="Member creating the goal"),
):
    """Create a savings goal."""
    with open_service() as service:
        acting = _resolve_actor(service, actor)
        goal = service.create_goal(
            acting.id, name, target, deadline.date() if deadline else None
        )
        console.print(f"[green]✓ Goal '{goal.name}' created ({goal.id})[/green]")


@goal_app.command("list")
def goal_list():
    """List savings goals and their progress."""
    with open_service() as service:
        symbol = service.settings.currency_symbol
        table = Table(title="Goals", show_header=True, header_style="bold magenta")
        table.add_column("ID", style="dim")
        table.add_column("Name", style="cyan")
        table.add_column("Saved", justify="right")
        table.add_column("Target", justify="right")
        table.add_column("Progress", justify="right")
        table.add_column("Deadline")
        for goal in service.list_goals():
            table.add_row(
                goal.id,
                goal.name,
                format_money(goal.current_amount, symbol),
                format_money(goal.target_amount, symbol),
                f"{goal.progress}%",
                str(goal.deadline) if goal.deadline else "—",
            )
        console.print(table)


@goal_app.command("update")
def goal_update(
    goal_id: str = typer.Argument(..., help="Goal ID"),
    name: str = typer.Argument(..., help="Goal name"),
    target: int = typer.Argument(..., help="Target amount in minor currency units"),
    deadline: datetime | None = typer.Option(None, "--deadline", help="Target date"),
    actor: str | None = typer.Option(None, "--as", help="Member making the change"),
):
    """Change a goal's name, target or deadline."""
    with open_service() as service:
        acting = _resolve_actor(service, actor)
        service.update_goal(
            acting.id, goal_id, name, target, deadline.date() if deadline else None
        )
        console.print("[green]✓ Goal updated[/green]")


@goal_app.command("delete")
def goal_delete(
    goal_id: str = typer.Argument(..., help="Goal ID"),
    actor: str | None = typer.Option(None, "--as", help="Member making the change"),
):
    """Delete a goal (its transactions are kept)."""
    with open_service() as service:
        acting = _resolve_actor(service, actor)
        service.delete_goal(acting.id, goal_id)
        console.print("[green]✓ Goal deleted[/green]")


# ============================================================================
# Comments
# ============================================================================


@comment_app.command("add")
def comment_add(
    transaction_id: str = typer.Argument(..., help="Transaction ID"),
    content: str = typer.Argument(..., help="Comment text"),
    actor: str | None = typer.Option(None, "--as", help="Member writing the comment"),
):
    """Comment on a transaction."""
    with open_service() as service:
        acting = _resolve_actor(service, actor)
        service.add_comment(acting.id, transaction_id, content)
        console.print("[green]✓ Comment added[/green]")


@comment_app.command("list")
def comment_list(transaction_id: str = typer.Argument(..., help="Transaction ID")):
    """Show a transaction's comments, oldest first."""
    with open_service() as service:
        names = _names(service)
        comments = service.list_comments(transaction_id)
        if not comments:
            console.print("[dim]No comments yet.[/dim]")
        for comment in comments:
            console.print(
                f"💬 [bold]{names.get(comment.author_id, comment.author_id)}[/bold] "
                f"[dim]{comment.created_at:%Y-%m-%d %H:%M}[/dim]\n   {comment.content}"
            )


# ============================================================================
# Accounts
# ============================================================================


@account_app.command("add")
def account_add(
    name: str = typer.Argument(..., help="Account name, e.g. Main checking"),
    type_: str = typer.Option("CHECKING", "--type", "-t", help="Account type"),
    privacy: str = typer.Option(
        "PERSONAL", "--privacy", help="SHARED, PERSONAL or PRIVATE"
    ),
    balance_: int = typer.Option(0, "--balance", help="Opening balance in minor units"),
    currency: str = typer.Option("COP", "--currency", help="Currency code"),
    actor: str | None = typer.Option(None, "--as", help="Account owner"),
):
    """Register a financial account."""
    with open_service() as service:
        acting = _resolve_actor(service, actor)
        account = service.create_account(
            acting.id,
            name,
            type_.upper(),
            privacy_level=privacy.upper(),
            balance=balance_,
            currency=currency.upper(),
        )
        console.print(
            f"[green]✓ Account '{account.name}' ({account.type}, "
            f"{account.privacy_level}) created[/green]"
        )


@account_app.command("list")
def account_list(
    actor: str | None = typer.Option(None, "--as", help="Member viewing the accounts"),
):
    """List your accounts and the accounts others share."""
    with open_service() as service:
        viewer = _resolve_actor(service, actor)
        names = _names(service)
        table = Table(title="Accounts", show_header=True, header_style="bold magenta")
        table.add_column("Name", style="cyan")
        table.add_column("Type")
        table.add_column("Owner")
        table.add_column("Balance", justify="right")
        table.add_column("Privacy", style="dim")
        for account in service.list_accounts(viewer.id):
            table.add_row(
                account.name,
                account.type,
                names.get(account.owner_id, account.owner_id),
                f"{format_money(account.balance, use_color=False)} {account.currency}",
                account.privacy_level,
            )
        console.print(table)


if __name__ == "__main__":
    app()
