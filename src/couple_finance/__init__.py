"""couple-finance - Shared expenses, splits and settlements for couples and small groups."""

__version__ = "0.1.0"

from .config import Settings, load_settings
from .db import Database
from .models import (
    BalanceBreakdown,
    CustomPercentages,
    EqualSplit,
    RecurringTemplate,
    SingleAssignee,
    Split,
    Transaction,
)
from .recurring import first_run, next_run
from .service import LedgerService
from .settlement import calculate_balance, calculate_balance_breakdown
from .splits import calculate_splits

__all__ = [
    "Settings",
    "load_settings",
    "Database",
    "BalanceBreakdown",
    "CustomPercentages",
    "EqualSplit",
    "RecurringTemplate",
    "SingleAssignee",
    "Split",
    "Transaction",
    "first_run",
    "next_run",
    "LedgerService",
    "calculate_balance",
    "calculate_balance_breakdown",
    "calculate_splits",
]
