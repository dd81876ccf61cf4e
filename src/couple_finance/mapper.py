"""Resolve AI-parsed names into ledger members, categories and split policies."""

import logging
from datetime import datetime, time
from decimal import ROUND_HALF_UP, Decimal

from .exceptions import ParsingError
from .models import (
    Category,
    CustomPercentages,
    EqualSplit,
    Member,
    ParsedSplit,
    ParsedTransaction,
    SingleAssignee,
    SplitPolicy,
    TransactionInput,
)
from .splits import calculate_splits

logger = logging.getLogger(__name__)

# Ways the parser refers to whoever sent the text
SELF_REFERENCES = {"me", "i", "myself", "yo"}


def normalize_name(name: str) -> str:
    """
    Normalize a name for consistent matching.

    Args:
        name: The raw name

    Returns:
        Normalized name (lowercase, stripped)
    """
    return name.lower().strip()


def match_category(name: str | None, categories: list[Category]) -> Category | None:
    """Find a category by case-insensitive name."""
    if not name:
        return None
    wanted = normalize_name(name)
    for category in categories:
        if normalize_name(category.name) == wanted:
            return category
    return None


def match_member(
    name: str | None, members: list[Member], actor_id: str | None = None
) -> Member | None:
    """
    Find a member by name.

    An exact (case-insensitive) match wins; otherwise the first member whose
    name contains the given name, or is contained in it, is used. "Me" and
    similar resolve to the acting member.

    Args:
        name: Name as written by the user or the parser
        members: Members of the ledger
        actor_id: The member who submitted the text

    Returns:
        The matched member, or None
    """
    if not name:
        return None
    wanted = normalize_name(name)

    if wanted in SELF_REFERENCES and actor_id:
        return next((m for m in members if m.id == actor_id), None)

    for member in members:
        if normalize_name(member.name) == wanted:
            return member

    for member in members:
        member_name = normalize_name(member.name)
        if wanted in member_name or member_name in wanted:
            return member

    return None


def resolve_policy(
    parsed_split: ParsedSplit | None,
    members: list[Member],
    actor_id: str | None = None,
) -> SplitPolicy:
    """
    Turn the parser's split instructions into a split policy.

    Falls back to an equal split whenever the names cannot be matched.

    Args:
        parsed_split: Split instructions from the parser
        members: Members of the ledger
        actor_id: The member who submitted the text

    Returns:
        A split policy keyed by member IDs
    """
    if parsed_split is None:
        return EqualSplit()

    if parsed_split.type == "ONE_PERSON":
        assignee = match_member(parsed_split.assignee_name, members, actor_id)
        if assignee:
            return SingleAssignee(user_id=assignee.id)
        logger.warning(
            f"Could not match assignee '{parsed_split.assignee_name}', "
            f"splitting equally"
        )

    if parsed_split.type == "CUSTOM" and parsed_split.percentages:
        percentages = {}
        for name, percentage in parsed_split.percentages.items():
            member = match_member(name, members, actor_id)
            if member and member.id not in percentages:
                percentages[member.id] = percentage
            else:
                logger.warning(f"Ignoring percentage for unknown member '{name}'")
        if percentages:
            return CustomPercentages(percentages=percentages)

    return EqualSplit()


def to_minor_units(amount: float) -> int:
    """Round a parsed amount to whole minor units (ROUND_HALF_UP)."""
    return int(Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def build_transaction_input(
    parsed: ParsedTransaction,
    members: list[Member],
    categories: list[Category],
    actor_id: str,
) -> TransactionInput:
    """
    Build a complete transaction from parser output.

    The category falls back to the first category and the payer to the
    acting member. Splits are allocated among all members so that they
    always add up to the amount.

    Args:
        parsed: Parser output
        members: Members of the ledger, in allocation order
        categories: Available categories
        actor_id: The member who submitted the text

    Returns:
        Validated transaction input

    Raises:
        ParsingError: If no positive amount was found or nothing to assign to
    """
    if parsed.amount is None or parsed.amount <= 0:
        raise ParsingError("Could not find a positive amount in the text")
    if not members or not categories:
        raise ParsingError("The ledger needs members and categories first")

    amount = to_minor_units(parsed.amount)
    if amount <= 0:
        raise ParsingError(f"Amount {parsed.amount} rounds to nothing")

    category = match_category(parsed.category_name, categories) or categories[0]
    payer = match_member(parsed.payer_name, members, actor_id)
    payer_id = payer.id if payer else actor_id

    policy = resolve_policy(parsed.split, members, actor_id)
    splits = calculate_splits(amount, policy, [m.id for m in members])

    when = (
        datetime.combine(parsed.transaction_date, time())
        if parsed.transaction_date
        else datetime.now()
    )

    return TransactionInput(
        amount=amount,
        description=parsed.description or "AI entry",
        category_id=category.id,
        payer_id=payer_id,
        date=when,
        type=parsed.type or "EXPENSE",
        splits=splits,
    )
