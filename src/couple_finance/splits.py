"""Split allocation: turn a total and a split policy into per-member amounts."""

import logging
import math
from collections.abc import Mapping, Sequence
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from .exceptions import SplitError
from .models import (
    CustomPercentages,
    EqualSplit,
    SingleAssignee,
    Split,
    SplitPolicy,
)

logger = logging.getLogger(__name__)

# Percentages are user input; allow for float noise like 3 x 33.333...
PERCENTAGE_TOLERANCE = Decimal("0.01")


def clamp_percentage(value: Any) -> float:
    """
    Sanitize a raw percentage into the range [0, 100].

    Non-numeric input (including NaN) becomes 0.

    Args:
        value: Raw percentage, e.g. from a form field or AI output

    Returns:
        Percentage as a float between 0 and 100
    """
    try:
        percentage = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(percentage):
        return 0.0
    return min(max(percentage, 0.0), 100.0)


def percentage_share(total: int, percentage: float) -> int:
    """
    Compute a percentage of a total in whole minor units.
    Uses ROUND_HALF_UP for consistency.

    Args:
        total: Amount in minor units
        percentage: Percentage between 0 and 100

    Returns:
        Rounded share in minor units
    """
    share = Decimal(total) * Decimal(str(percentage)) / 100
    return int(share.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def equal_percentages(participants: Sequence[str]) -> dict[str, float]:
    """Default percentages for a custom split: everyone gets 100 / n."""
    if not participants:
        return {}
    return {user_id: 100 / len(participants) for user_id in participants}


def set_percentage(
    percentages: Mapping[str, float],
    participants: Sequence[str],
    user_id: str,
    value: Any,
) -> dict[str, float]:
    """
    Update one participant's percentage while editing a custom split.

    The value is clamped to [0, 100]. With exactly two participants the
    other one is set to the complement, rounded to one decimal.

    Args:
        percentages: Current percentages by user ID
        participants: User IDs taking part in the split
        user_id: The participant being edited
        value: Raw input for that participant

    Returns:
        New percentages mapping (the input is not modified)
    """
    updated = dict(percentages)
    percentage = clamp_percentage(value)
    updated[user_id] = percentage

    if len(participants) == 2 and user_id in participants:
        other = next(p for p in participants if p != user_id)
        updated[other] = round(min(max(100 - percentage, 0.0), 100.0), 1)

    return updated


def _split_equal(total: int, participants: Sequence[str]) -> list[Split]:
    share, remainder = divmod(total, len(participants))
    return [
        Split(user_id=user_id, amount=share + (1 if i < remainder else 0))
        for i, user_id in enumerate(participants)
    ]


def _split_single(
    total: int, participants: Sequence[str], assignee_id: str
) -> list[Split]:
    if assignee_id not in participants:
        raise SplitError(f"Assignee {assignee_id} is not a participant")

    return [
        Split(
            user_id=user_id,
            amount=total if user_id == assignee_id else 0,
            percentage=100.0 if user_id == assignee_id else 0.0,
        )
        for user_id in participants
    ]


def _split_custom(
    total: int, participants: Sequence[str], percentages: Mapping[str, float]
) -> list[Split]:
    if not percentages:
        percentages = equal_percentages(participants)

    clamped = {
        user_id: clamp_percentage(percentages.get(user_id, 0))
        for user_id in participants
    }

    percentage_sum = sum(Decimal(str(p)) for p in clamped.values())
    if percentage_sum > 100 + PERCENTAGE_TOLERANCE:
        raise SplitError(
            f"Custom percentages add up to {percentage_sum}%, "
            f"which is more than 100%"
        )

    splits = []
    allocated = 0
    last_index = len(participants) - 1

    for i, user_id in enumerate(participants):
        if i == last_index:
            # Last participant takes whatever is left
            amount = total - allocated
            residual = amount - percentage_share(total, clamped[user_id])
            if residual != 0:
                logger.debug(
                    f"Residual participant {user_id} absorbed {residual} "
                    f"units of rounding"
                )
        else:
            amount = percentage_share(total, clamped[user_id])
            allocated += amount

        if amount < 0:
            raise SplitError(
                f"Rounding leaves a negative share for {user_id} "
                f"(total {total}, percentages {clamped})"
            )

        splits.append(
            Split(user_id=user_id, amount=amount, percentage=clamped[user_id])
        )

    return splits


def calculate_splits(
    total: int, policy: SplitPolicy, participants: Sequence[str]
) -> list[Split]:
    """
    Allocate a total among participants according to a split policy.

    The result has one entry per participant, in input order, and always
    sums exactly to ``total``:

    - Equal: ``total // n`` each, the first ``total % n`` participants get
      one extra unit.
    - Single assignee: the assignee gets the total, everyone else 0.
    - Custom: each participant but the last gets their rounded percentage;
      the last participant receives the residual.

    Args:
        total: Amount in minor units
        policy: The split policy to apply
        participants: User IDs, in allocation order

    Returns:
        List of splits

    Raises:
        SplitError: If there are no participants, participants repeat,
                    the total is negative, or the policy cannot be applied
    """
    if not participants:
        raise SplitError("Cannot split a transaction with no participants")
    if len(set(participants)) != len(participants):
        raise SplitError(f"Duplicate participants in {list(participants)}")
    if total < 0:
        raise SplitError(f"Cannot split a negative total ({total})")

    if isinstance(policy, EqualSplit):
        splits = _split_equal(total, participants)
    elif isinstance(policy, SingleAssignee):
        splits = _split_single(total, participants, policy.user_id)
    elif isinstance(policy, CustomPercentages):
        splits = _split_custom(total, participants, policy.percentages)
    else:
        raise SplitError(f"Unknown split policy: {policy!r}")

    # Final verification
    assert sum(s.amount for s in splits) == total, "Allocation failed"

    return splits


def policy_from_splits(total: int, splits: Sequence[Split]) -> SplitPolicy:
    """
    Recover the split policy behind a stored allocation.

    Used when a transaction is edited without choosing a new policy, so the
    existing split is kept rather than reset to an equal one. Stored
    percentages are trusted first; splits without percentages are matched
    against the equal allocation, and otherwise turned into percentages of
    the total.

    Args:
        total: The amount the splits were allocated from
        splits: Stored splits, in allocation order

    Returns:
        A policy that reproduces the allocation for the same participants
    """
    if not splits:
        return EqualSplit()

    if all(s.percentage is not None for s in splits):
        assignees = [s.user_id for s in splits if s.percentage == 100]
        others_zero = all(s.percentage == 0 for s in splits if s.percentage != 100)
        if len(assignees) == 1 and others_zero:
            return SingleAssignee(user_id=assignees[0])
        return CustomPercentages(
            percentages={s.user_id: float(s.percentage or 0) for s in splits}
        )

    participants = [s.user_id for s in splits]
    if total <= 0 or [s.amount for s in splits] == [
        s.amount for s in _split_equal(total, participants)
    ]:
        return EqualSplit()

    return CustomPercentages(
        percentages={s.user_id: s.amount / total * 100 for s in splits}
    )
