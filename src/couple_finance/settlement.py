"""Settlement balance computation.

Balances are derived from completed transactions on every call and never
stored. A positive balance means the user is owed money; a negative balance
means the user owes money.
"""

from collections.abc import Iterable

from .models import BalanceBreakdown, BreakdownEntry, Transaction


def transaction_impact(user_id: str, transaction: Transaction) -> int:
    """
    Compute how one transaction moves a user's balance.

    The payer fronted the full amount, so they are owed everything except
    their own share. Anyone else owes their share.

    Args:
        user_id: The user to compute the impact for
        transaction: The transaction (status is not checked here)

    Returns:
        Signed impact in minor units
    """
    my_share = transaction.share_of(user_id)

    if transaction.payer_id == user_id:
        return transaction.amount - my_share
    return -my_share


def calculate_balance(user_id: str, transactions: Iterable[Transaction]) -> int:
    """
    Calculate a user's net balance over all completed transactions.

    Args:
        user_id: The user to compute the balance for
        transactions: Transactions with their splits

    Returns:
        Signed balance in minor units
    """
    balance = 0

    for transaction in transactions:
        if transaction.status != "COMPLETED":
            continue
        balance += transaction_impact(user_id, transaction)

    return balance


def calculate_balance_breakdown(
    user_id: str, transactions: Iterable[Transaction]
) -> BalanceBreakdown:
    """
    Calculate the settlement balance with the transactions behind it.

    Savings are contributions to shared goals rather than debts between
    members, so SAVING transactions are left out along with anything not
    yet completed. Only transactions that move the balance are listed,
    newest first.

    Args:
        user_id: The user to compute the balance for
        transactions: Transactions with their splits

    Returns:
        Balance and itemized OWE/OWED entries
    """
    balance = 0
    breakdown = []

    for transaction in transactions:
        if transaction.status != "COMPLETED":
            continue
        if transaction.type == "SAVING":
            continue

        impact = transaction_impact(user_id, transaction)
        if impact == 0:
            continue

        balance += impact
        breakdown.append(
            BreakdownEntry(
                id=transaction.id,
                description=transaction.description,
                date=transaction.date,
                amount=abs(impact),
                type="OWED" if impact > 0 else "OWE",
            )
        )

    breakdown.sort(key=lambda entry: entry.date, reverse=True)

    return BalanceBreakdown(balance=balance, breakdown=breakdown)


def balance_status(balance: int) -> str:
    """Describe a balance in words."""
    if balance > 0:
        return "You are owed money"
    if balance < 0:
        return "You owe money"
    return "You are settled up"
