"""Pydantic domain models for couple-finance."""

import json
import uuid
from datetime import date, datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ValidationError

TransactionType = Literal["EXPENSE", "INCOME", "SAVING", "TRANSFER", "ADJUSTMENT"]
TransactionStatus = Literal["PENDING", "COMPLETED"]
AuditAction = Literal["CREATE", "UPDATE", "DELETE"]
MemberRole = Literal["OWNER", "ADMIN", "MEMBER"]
AccountType = Literal[
    "CHECKING", "SAVINGS", "CREDIT_CARD", "INVESTMENT", "LOAN", "CASH", "OTHER"
]
PrivacyLevel = Literal["SHARED", "PERSONAL", "PRIVATE"]


def new_id() -> str:
    """Generate a new record identifier."""
    return uuid.uuid4().hex


# ============================================================================
# Group Models
# ============================================================================


class Member(BaseModel):
    """A member of the shared ledger."""

    id: str = Field(default_factory=new_id)
    name: str
    email: str | None = None
    role: MemberRole = "MEMBER"
    active: bool = True  # False once removed from the group


class Account(BaseModel):
    """A member's financial account (bank, card, cash...)."""

    id: str = Field(default_factory=new_id)
    owner_id: str
    name: str = Field(min_length=1)
    type: AccountType
    balance: int = 0  # minor currency units
    currency: str = "COP"
    privacy_level: PrivacyLevel = "PERSONAL"
    created_at: datetime = Field(default_factory=datetime.now)


class Category(BaseModel):
    """A spending category."""

    id: str = Field(default_factory=new_id)
    name: str
    icon: str | None = None


class Goal(BaseModel):
    """A shared savings goal."""

    id: str = Field(default_factory=new_id)
    name: str
    target_amount: int = Field(gt=0)
    current_amount: int = 0
    deadline: date | None = None

    @property
    def progress(self) -> int:
        """Progress towards the target as a whole percentage."""
        return round(self.current_amount / self.target_amount * 100)


class Alert(BaseModel):
    """A user-facing notification, e.g. a recurring payment falling due."""

    id: str = Field(default_factory=new_id)
    title: str
    body: str
    is_read: bool = False
    created_at: datetime = Field(default_factory=datetime.now)


class Comment(BaseModel):
    """A note left by a member on a transaction."""

    id: str = Field(default_factory=new_id)
    transaction_id: str
    author_id: str
    content: str = Field(min_length=1)
    created_at: datetime = Field(default_factory=datetime.now)


class AuditLogEntry(BaseModel):
    """An append-only record of a change to the ledger."""

    id: int | None = None
    entity_type: str
    entity_id: str
    action: AuditAction
    before: dict[str, Any] | None = None
    after: dict[str, Any] | None = None
    changed_by: str
    changed_at: datetime = Field(default_factory=datetime.now)


# ============================================================================
# Split Policies
# ============================================================================


class EqualSplit(BaseModel):
    """Split the total equally among all participants."""

    kind: Literal["ALL"] = "ALL"


class SingleAssignee(BaseModel):
    """Assign the whole total to one participant."""

    kind: Literal["ONE_PERSON"] = "ONE_PERSON"
    user_id: str


class CustomPercentages(BaseModel):
    """Split the total by per-participant percentages."""

    kind: Literal["CUSTOM"] = "CUSTOM"
    percentages: dict[str, float] = Field(default_factory=dict)


SplitPolicy = Annotated[
    EqualSplit | SingleAssignee | CustomPercentages, Field(discriminator="kind")
]

_split_policy_adapter: TypeAdapter[SplitPolicy] = TypeAdapter(SplitPolicy)


def parse_split_policy(raw: Any) -> SplitPolicy:
    """
    Decode a stored or submitted split policy.

    Accepts a policy model, a dict, or its JSON text. Missing values decode
    to an equal split.

    Raises:
        ValidationError: If the value is not a known policy
    """
    if isinstance(raw, EqualSplit | SingleAssignee | CustomPercentages):
        return raw
    if raw is None or raw == "" or raw == {}:
        return EqualSplit()

    try:
        if isinstance(raw, str | bytes):
            return _split_policy_adapter.validate_json(raw)
        return _split_policy_adapter.validate_python(raw)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid split policy: {raw!r}") from e


def dump_split_policy(policy: SplitPolicy) -> str:
    """Encode a split policy as JSON for storage."""
    return json.dumps(policy.model_dump())


# ============================================================================
# Ledger Models
# ============================================================================


class Split(BaseModel):
    """A participant's share of a transaction."""

    user_id: str
    amount: int = Field(ge=0)
    percentage: float | None = None


class Transaction(BaseModel):
    """A ledger transaction with its splits."""

    id: str = Field(default_factory=new_id)
    amount: int  # minor currency units
    description: str = ""
    payer_id: str
    type: TransactionType = "EXPENSE"
    status: TransactionStatus = "COMPLETED"
    date: datetime = Field(default_factory=datetime.now)
    category_id: str | None = None
    goal_id: str | None = None
    template_id: str | None = None
    created_by: str | None = None
    splits: list[Split] = Field(default_factory=list)

    def split_for(self, user_id: str) -> Split | None:
        """Get the split belonging to a user, if any."""
        for split in self.splits:
            if split.user_id == user_id:
                return split
        return None

    def share_of(self, user_id: str) -> int:
        """Get the amount a user consumed (0 without a split entry)."""
        split = self.split_for(user_id)
        return split.amount if split else 0


class TransactionInput(BaseModel):
    """Validated input for creating or editing a transaction."""

    amount: int = Field(gt=0)
    description: str = Field(min_length=1)
    category_id: str = Field(min_length=1)
    payer_id: str = Field(min_length=1)
    date: datetime = Field(default_factory=datetime.now)
    type: TransactionType = "EXPENSE"
    goal_id: str | None = None
    splits: list[Split] = Field(default_factory=list)


class RecurringTemplate(BaseModel):
    """A monthly recurring payment."""

    id: str = Field(default_factory=new_id)
    name: str
    amount: int = Field(gt=0)
    day_of_month: int = Field(ge=1, le=31)
    payer_id: str
    category_id: str
    active: bool = True
    next_run: date
    policy: SplitPolicy = Field(default_factory=EqualSplit)


class RecurringTemplateInput(BaseModel):
    """Validated input for creating a recurring template."""

    name: str = Field(min_length=1)
    amount: int = Field(gt=0)
    day_of_month: int = Field(ge=1, le=31)
    category_id: str = Field(min_length=1)
    payer_id: str = Field(min_length=1)
    policy: SplitPolicy = Field(default_factory=EqualSplit)


# ============================================================================
# Settlement Models
# ============================================================================


class BreakdownEntry(BaseModel):
    """One transaction's contribution to a user's settlement balance."""

    id: str
    description: str
    date: datetime
    amount: int = Field(ge=0)
    type: Literal["OWE", "OWED"]


class BalanceBreakdown(BaseModel):
    """A signed settlement balance and the ledger lines behind it.

    Positive balance means the user is owed money, negative means they owe.
    """

    balance: int
    breakdown: list[BreakdownEntry] = Field(default_factory=list)


# ============================================================================
# AI Models
# ============================================================================


class ParsedSplit(BaseModel):
    """Split instructions as understood by the AI parser (names, not ids)."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["ALL", "CUSTOM", "ONE_PERSON"] = "ALL"
    percentages: dict[str, float] | None = None
    assignee_name: str | None = Field(default=None, alias="assigneeName")


class ParsedTransaction(BaseModel):
    """A transaction extracted from free text by the AI parser."""

    model_config = ConfigDict(populate_by_name=True)

    amount: float | None = None
    description: str | None = None
    category_name: str | None = Field(default=None, alias="categoryName")
    transaction_date: date | None = Field(default=None, alias="date")
    payer_name: str | None = Field(default=None, alias="payerName")
    type: TransactionType | None = None
    split: ParsedSplit | None = None


class CategoryTotal(BaseModel):
    """Spending total for one category."""

    name: str
    total: int


class ReportSummary(BaseModel):
    """Figures behind a spending report."""

    period_start: date
    period_end: date
    total_spent: int
    category_summary: list[CategoryTotal] = Field(default_factory=list)
    largest_transactions: list[Transaction] = Field(default_factory=list)
    balance: int
    balance_status: str
    goals: list[Goal] = Field(default_factory=list)
    insight: str | None = None
