"""Service layer that composes the ledger store and the pure finance core.

Every operation receives the acting member explicitly; nothing here reads
ambient session state.
"""

import logging
from collections import defaultdict
from datetime import date, datetime, time, timedelta
from typing import Any

from .clients.openai_client import TransactionParser
from .config import Settings
from .db import Database
from .exceptions import (
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from .mapper import build_transaction_input
from .models import (
    Account,
    AccountType,
    Alert,
    AuditAction,
    AuditLogEntry,
    BalanceBreakdown,
    Category,
    CategoryTotal,
    Comment,
    CustomPercentages,
    EqualSplit,
    Goal,
    Member,
    MemberRole,
    PrivacyLevel,
    RecurringTemplate,
    RecurringTemplateInput,
    ReportSummary,
    SingleAssignee,
    SplitPolicy,
    Transaction,
    TransactionInput,
)
from .recurring import due_templates, first_run, next_run
from .settlement import balance_status, calculate_balance, calculate_balance_breakdown
from .splits import calculate_splits

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "SYSTEM"


class LedgerService:
    """Service for recording shared expenses and settling up."""

    def __init__(
        self,
        settings: Settings,
        database: Database,
        parser: TransactionParser | None = None,
    ):
        """Initialize the ledger service."""
        self.settings = settings
        self.db = database
        self._parser = parser

    @property
    def parser(self) -> TransactionParser:
        """The AI parser, created on first use."""
        if self._parser is None:
            self._parser = TransactionParser(
                api_key=self.settings.require_openai_key(),
                model=self.settings.openai_model,
            )
        return self._parser

    # ========================================================================
    # Helpers
    # ========================================================================

    def _audit(
        self,
        entity_type: str,
        entity_id: str,
        action: AuditAction,
        actor_id: str,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
    ):
        self.db.save_audit_entry(
            AuditLogEntry(
                entity_type=entity_type,
                entity_id=entity_id,
                action=action,
                before=before,
                after=after,
                changed_by=actor_id,
            )
        )

    def _require_member(self, member_id: str, role: str = "Member") -> Member:
        member = self.db.get_member(member_id)
        if member is None or not member.active:
            raise ValidationError(f"{role} {member_id} is not in your group")
        return member

    def _require_owner(self, actor_id: str) -> Member:
        actor = self._require_member(actor_id)
        if actor.role != "OWNER":
            raise PermissionDeniedError("Only the group owner can manage members")
        return actor

    def _require_transaction(self, transaction_id: str) -> Transaction:
        transaction = self.db.get_transaction(transaction_id)
        if transaction is None:
            raise NotFoundError("Transaction", transaction_id)
        return transaction

    def _require_template(self, template_id: str) -> RecurringTemplate:
        template = self.db.get_template(template_id)
        if template is None:
            raise NotFoundError("RecurringTemplate", template_id)
        return template

    def _require_goal(self, goal_id: str) -> Goal:
        goal = self.db.get_goal(goal_id)
        if goal is None:
            raise NotFoundError("Goal", goal_id)
        return goal

    def _participants(self) -> list[str]:
        members = self.db.list_members()
        if not members:
            raise ValidationError("No members to split with")
        return [m.id for m in members]

    def _validate_transaction_input(self, data: TransactionInput):
        """
        Check references and split totals before anything is written.

        Raises:
            ValidationError: On the first problem found
        """
        self._require_member(data.payer_id, role="Payer")

        if self.db.get_category(data.category_id) is None:
            raise ValidationError(f"Invalid category: {data.category_id}")

        if data.goal_id and self.db.get_goal(data.goal_id) is None:
            raise ValidationError(f"Invalid goal: {data.goal_id}")

        if not data.splits:
            return

        # Past splits may still name members who have since left
        member_ids = {m.id for m in self.db.list_members(include_inactive=True)}
        seen = set()
        for split in data.splits:
            if split.user_id not in member_ids:
                raise ValidationError(f"Split user {split.user_id} is not in your group")
            if split.user_id in seen:
                raise ValidationError(f"Split user {split.user_id} appears twice")
            seen.add(split.user_id)

        split_total = sum(s.amount for s in data.splits)
        if split_total != data.amount:
            raise ValidationError(
                f"Splits add up to {split_total} but the amount is {data.amount}"
            )

    # ========================================================================
    # Members and categories
    # ========================================================================

    def add_member(
        self, name: str, email: str | None = None, role: str = "MEMBER"
    ) -> Member:
        """Add a member to the group. The first member becomes the owner."""
        if not self.db.list_members():
            role = "OWNER"
        member = self.db.save_member(Member(name=name, email=email, role=role))
        logger.info(f"Added member {member.name} ({member.role})")
        return member

    def list_members(self, include_inactive: bool = False) -> list[Member]:
        """Get group members, in allocation order."""
        return self.db.list_members(include_inactive=include_inactive)

    def update_member_role(
        self, actor_id: str, member_id: str, role: MemberRole
    ) -> Member:
        """
        Change a member's role.

        Only the owner can change roles, and never their own.

        Raises:
            PermissionDeniedError: If the actor is not the owner
            ValidationError: If the owner targets themselves
        """
        self._require_owner(actor_id)
        if member_id == actor_id:
            raise ValidationError("You cannot change your own role")
        member = self._require_member(member_id)

        self.db.set_member_role(member_id, role)
        updated = member.model_copy(update={"role": role})

        self._audit(
            "Member",
            member_id,
            "UPDATE",
            actor_id,
            before={"role": member.role},
            after={"role": role},
        )
        logger.info(f"Changed role of {member.name} from {member.role} to {role}")

        return updated

    def remove_member(self, actor_id: str, member_id: str) -> Member:
        """
        Remove a member from the group.

        The member is deactivated rather than deleted, so transactions they
        paid for or took part in keep their splits and history. A member can
        only leave once they are settled up and no pending transaction names
        them as payer.

        Recurring templates are rewritten so they keep working for the rest
        of the group:
            - templates the member pays for are paused
            - a SingleAssignee policy on the member becomes an equal split
            - the member's entry is dropped from CustomPercentages

        Raises:
            PermissionDeniedError: If the actor is not the owner
            ValidationError: If the member cannot leave yet
        """
        self._require_owner(actor_id)
        if member_id == actor_id:
            raise ValidationError("You cannot remove yourself from the group")
        member = self._require_member(member_id)

        balance = calculate_balance_breakdown(
            member_id, self.db.list_transactions(status="COMPLETED")
        ).balance
        if balance != 0:
            raise ValidationError(
                f"{member.name} has an open balance of {balance}; settle up first"
            )

        pending = [
            t
            for t in self.db.list_transactions(status="PENDING")
            if t.payer_id == member_id
        ]
        if pending:
            raise ValidationError(
                f"{member.name} is the payer of {len(pending)} pending "
                f"transaction(s); confirm or delete them first"
            )

        for template in self.db.list_templates():
            policy = template.policy
            if isinstance(policy, SingleAssignee) and policy.user_id == member_id:
                self.db.set_template_policy(template.id, EqualSplit())
            elif isinstance(policy, CustomPercentages) and member_id in policy.percentages:
                percentages = {
                    uid: pct
                    for uid, pct in policy.percentages.items()
                    if uid != member_id
                }
                self.db.set_template_policy(
                    template.id, CustomPercentages(percentages=percentages)
                )

            if template.payer_id == member_id and template.active:
                self.db.set_template_active(template.id, False)
                logger.info(f"Paused template '{template.name}' paid by {member.name}")

        self.db.set_member_active(member_id, False)

        self._audit(
            "Member",
            member_id,
            "DELETE",
            actor_id,
            before=member.model_dump(mode="json"),
        )
        logger.info(f"Removed member {member.name} from the group")

        return member.model_copy(update={"active": False})

    def list_categories(self) -> list[Category]:
        """Get all categories, seeding the defaults on first use."""
        self.db.seed_default_categories()
        return self.db.list_categories()

    # ========================================================================
    # Accounts
    # ========================================================================

    def create_account(
        self,
        actor_id: str,
        name: str,
        type: AccountType,
        privacy_level: PrivacyLevel = "PERSONAL",
        balance: int = 0,
        currency: str = "COP",
    ) -> Account:
        """Register a financial account owned by the actor."""
        self._require_member(actor_id)
        account = self.db.save_account(
            Account(
                owner_id=actor_id,
                name=name,
                type=type,
                balance=balance,
                currency=currency,
                privacy_level=privacy_level,
            )
        )
        self._audit(
            "Account", account.id, "CREATE", actor_id, after=account.model_dump(mode="json")
        )
        return account

    def list_accounts(self, viewer_id: str) -> list[Account]:
        """Get the viewer's own accounts plus the accounts others share."""
        return [
            a
            for a in self.db.list_accounts()
            if a.owner_id == viewer_id or a.privacy_level == "SHARED"
        ]

    # ========================================================================
    # Comments
    # ========================================================================

    def add_comment(self, actor_id: str, transaction_id: str, content: str) -> Comment:
        """Leave a comment on a transaction."""
        self._require_member(actor_id)
        self._require_transaction(transaction_id)

        content = content.strip()
        if not content:
            raise ValidationError("Comment cannot be empty")

        comment = self.db.save_comment(
            Comment(transaction_id=transaction_id, author_id=actor_id, content=content)
        )
        logger.info(f"Added comment {comment.id} to transaction {transaction_id}")
        return comment

    def list_comments(self, transaction_id: str) -> list[Comment]:
        """Get a transaction's comments, oldest first."""
        self._require_transaction(transaction_id)
        return self.db.list_comments(transaction_id)

    # ========================================================================
    # Transactions
    # ========================================================================

    def list_transactions(self) -> list[Transaction]:
        """Get all transactions, newest first."""
        return self.db.list_transactions()

    def get_transaction(self, transaction_id: str) -> Transaction:
        """Get a transaction with its splits."""
        return self._require_transaction(transaction_id)

    def create_transaction(
        self, actor_id: str, data: TransactionInput
    ) -> Transaction:
        """
        Record a completed transaction.

        A SAVING transaction linked to a goal also adds its amount to the goal.

        Args:
            actor_id: The member creating the transaction
            data: The transaction details and splits

        Returns:
            The stored transaction
        """
        self._validate_transaction_input(data)

        transaction = self.db.save_transaction(
            Transaction(
                amount=data.amount,
                description=data.description,
                payer_id=data.payer_id,
                type=data.type,
                status="COMPLETED",
                date=data.date,
                category_id=data.category_id,
                goal_id=data.goal_id,
                created_by=actor_id,
                splits=data.splits,
            )
        )

        if data.type == "SAVING" and data.goal_id:
            self.db.adjust_goal_amount(data.goal_id, data.amount)
            self._audit(
                "Goal",
                data.goal_id,
                "UPDATE",
                actor_id,
                after={"increment": data.amount},
            )

        self._audit(
            "Transaction",
            transaction.id,
            "CREATE",
            actor_id,
            after=transaction.model_dump(mode="json"),
        )

        logger.info(
            f"Created transaction {transaction.id}: {transaction.description} "
            f"({transaction.amount}, {len(transaction.splits)} splits)"
        )

        return transaction

    def update_transaction(
        self, actor_id: str, transaction_id: str, data: TransactionInput
    ) -> Transaction:
        """
        Edit a transaction, replacing all of its splits.

        Goal savings are kept in step: the old SAVING amount is taken back
        out of its goal before the new one is added.
        """
        old = self._require_transaction(transaction_id)
        self._validate_transaction_input(data)

        if old.type == "SAVING" and old.goal_id:
            self.db.adjust_goal_amount(old.goal_id, -old.amount)
        if data.type == "SAVING" and data.goal_id:
            self.db.adjust_goal_amount(data.goal_id, data.amount)

        updated = self.db.update_transaction(
            old.model_copy(
                update={
                    "amount": data.amount,
                    "description": data.description,
                    "payer_id": data.payer_id,
                    "type": data.type,
                    "date": data.date,
                    "category_id": data.category_id,
                    "goal_id": data.goal_id,
                    "splits": data.splits,
                }
            )
        )

        self._audit(
            "Transaction",
            transaction_id,
            "UPDATE",
            actor_id,
            before=old.model_dump(mode="json"),
            after=updated.model_dump(mode="json"),
        )

        logger.info(f"Updated transaction {transaction_id}")

        return updated

    def delete_transaction(self, actor_id: str, transaction_id: str):
        """Delete a transaction, taking SAVING amounts back out of their goal."""
        transaction = self._require_transaction(transaction_id)

        if transaction.type == "SAVING" and transaction.goal_id:
            self.db.adjust_goal_amount(transaction.goal_id, -transaction.amount)

        self.db.delete_transaction(transaction_id)

        self._audit(
            "Transaction",
            transaction_id,
            "DELETE",
            actor_id,
            before=transaction.model_dump(mode="json"),
        )

        logger.info(f"Deleted transaction {transaction_id}")

    def confirm_pending_transaction(
        self,
        actor_id: str,
        transaction_id: str,
        policy: SplitPolicy | None = None,
        amount: int | None = None,
    ) -> Transaction:
        """
        Confirm a PENDING transaction created by the recurring scheduler.

        Splits are allocated among all members using the given policy, or
        the originating template's policy, or an equal split.

        Args:
            actor_id: The member confirming
            transaction_id: The pending transaction
            policy: Optional split policy override
            amount: Optional corrected amount (e.g. a utility bill)

        Returns:
            The completed transaction

        Raises:
            InvalidStateError: If the transaction is already completed
        """
        transaction = self._require_transaction(transaction_id)
        if transaction.status != "PENDING":
            raise InvalidStateError(
                f"Transaction {transaction_id} is already {transaction.status}"
            )

        if policy is None and transaction.template_id:
            template = self.db.get_template(transaction.template_id)
            policy = template.policy if template else None
        policy = policy or EqualSplit()

        total = amount if amount is not None else transaction.amount
        if total <= 0:
            raise ValidationError("Confirm the transaction with a positive amount")

        splits = calculate_splits(total, policy, self._participants())

        confirmed = self.db.update_transaction(
            transaction.model_copy(
                update={"amount": total, "status": "COMPLETED", "splits": splits}
            )
        )

        self._audit(
            "Transaction",
            transaction_id,
            "UPDATE",
            actor_id,
            after={
                "status": "COMPLETED",
                "splits": [s.model_dump() for s in splits],
            },
        )

        logger.info(f"Confirmed pending transaction {transaction_id}")

        return confirmed

    def add_from_text(self, actor_id: str, text: str) -> Transaction:
        """
        Create a transaction from a free-text description using the AI parser.

        Args:
            actor_id: The member who wrote the text
            text: e.g. "Dinner 80000, I paid, split 70/30 with Ana"

        Returns:
            The stored transaction
        """
        self._require_member(actor_id)
        members = self.db.list_members()
        categories = self.list_categories()

        parsed = self.parser.parse_transaction(
            text,
            categories=[c.name for c in categories],
            members=[m.name for m in members],
        )
        data = build_transaction_input(parsed, members, categories, actor_id)

        return self.create_transaction(actor_id, data)

    # ========================================================================
    # Balances
    # ========================================================================

    def get_balance(self, user_id: str) -> int:
        """Net balance over all completed transactions."""
        return calculate_balance(user_id, self.db.list_transactions())

    def get_balance_breakdown(self, user_id: str) -> BalanceBreakdown:
        """Settlement balance (savings excluded) with its ledger lines."""
        return calculate_balance_breakdown(user_id, self.db.list_transactions())

    # ========================================================================
    # Recurring templates
    # ========================================================================

    def list_templates(self) -> list[RecurringTemplate]:
        """Get all recurring templates, soonest first."""
        return self.db.list_templates()

    def create_recurring_template(
        self,
        actor_id: str,
        data: RecurringTemplateInput,
        today: date | None = None,
    ) -> RecurringTemplate:
        """
        Create a monthly recurring template.

        Args:
            actor_id: The member creating the template
            data: Template details and split policy
            today: Creation date (defaults to today)

        Returns:
            The stored template with its first due date
        """
        today = today or date.today()

        self._require_member(data.payer_id, role="Payer")
        if self.db.get_category(data.category_id) is None:
            raise ValidationError(f"Invalid category: {data.category_id}")

        # Check the policy can be applied before storing it
        calculate_splits(data.amount, data.policy, self._participants())

        template = self.db.save_template(
            RecurringTemplate(
                name=data.name,
                amount=data.amount,
                day_of_month=data.day_of_month,
                payer_id=data.payer_id,
                category_id=data.category_id,
                next_run=first_run(data.day_of_month, today),
                policy=data.policy,
            )
        )

        self._audit(
            "RecurringTemplate",
            template.id,
            "CREATE",
            actor_id,
            after=template.model_dump(mode="json"),
        )

        logger.info(f"Created template '{template.name}', first run {template.next_run}")

        return template

    def set_template_active(self, actor_id: str, template_id: str, active: bool):
        """Pause or resume a template."""
        self._require_template(template_id)
        self.db.set_template_active(template_id, active)
        self._audit(
            "RecurringTemplate",
            template_id,
            "UPDATE",
            actor_id,
            after={"active": active},
        )

    def _advance(self, template: RecurringTemplate) -> date:
        upcoming = next_run(template.next_run, template.day_of_month)
        self.db.set_template_next_run(template.id, upcoming)
        logger.info(f"Advanced '{template.name}' from {template.next_run} to {upcoming}")
        return upcoming

    def check_recurring_transactions(
        self, today: date | None = None
    ) -> list[Transaction]:
        """
        Raise a PENDING transaction and an alert for every due template.

        Each due template produces one pending transaction per call and its
        next run moves one month forward.

        Args:
            today: The date to check against (defaults to today)

        Returns:
            The pending transactions that were created
        """
        today = today or date.today()
        templates = due_templates(self.db.list_templates(active_only=True), today)
        logger.info(f"Found {len(templates)} recurring templates due on {today}")

        created = []
        for template in templates:
            transaction = self.db.save_transaction(
                Transaction(
                    amount=template.amount,
                    description=f"Recurring: {template.name}",
                    payer_id=template.payer_id,
                    type="EXPENSE",
                    status="PENDING",
                    date=datetime.combine(today, time()),
                    category_id=template.category_id,
                    template_id=template.id,
                    created_by=SYSTEM_ACTOR,
                )
            )

            self.db.save_alert(
                Alert(
                    title="Recurring Payment Due",
                    body=(
                        f"Payment for {template.name} is due. "
                        f"Please confirm the amount."
                    ),
                )
            )

            self._advance(template)
            created.append(transaction)

        return created

    def confirm_recurring_payment(
        self, actor_id: str, template_id: str
    ) -> Transaction:
        """
        Pay a template right away: record a completed transaction with the
        template's split policy and move its next run forward.
        """
        template = self._require_template(template_id)

        splits = calculate_splits(template.amount, template.policy, self._participants())

        transaction = self.db.save_transaction(
            Transaction(
                amount=template.amount,
                description=template.name,
                payer_id=template.payer_id,
                type="EXPENSE",
                status="COMPLETED",
                date=datetime.now(),
                category_id=template.category_id,
                template_id=template.id,
                created_by=actor_id,
                splits=splits,
            )
        )

        upcoming = self._advance(template)

        self._audit(
            "RecurringTemplate",
            template_id,
            "UPDATE",
            actor_id,
            after={"next_run": upcoming.isoformat()},
        )

        return transaction

    # ========================================================================
    # Goals
    # ========================================================================

    def list_goals(self) -> list[Goal]:
        """Get all savings goals."""
        return self.db.list_goals()

    def create_goal(
        self,
        actor_id: str,
        name: str,
        target_amount: int,
        deadline: date | None = None,
    ) -> Goal:
        """Create a savings goal."""
        goal = self.db.save_goal(
            Goal(name=name, target_amount=target_amount, deadline=deadline)
        )
        self._audit("Goal", goal.id, "CREATE", actor_id, after=goal.model_dump(mode="json"))
        return goal

    def update_goal(
        self,
        actor_id: str,
        goal_id: str,
        name: str,
        target_amount: int,
        deadline: date | None = None,
    ) -> Goal:
        """Rename a goal or change its target and deadline."""
        existing = self._require_goal(goal_id)
        updated = self.db.update_goal(
            Goal(
                id=existing.id,
                name=name,
                target_amount=target_amount,
                current_amount=existing.current_amount,
                deadline=deadline,
            )
        )
        self._audit(
            "Goal",
            goal_id,
            "UPDATE",
            actor_id,
            before=existing.model_dump(mode="json"),
            after=updated.model_dump(mode="json"),
        )
        return updated

    def delete_goal(self, actor_id: str, goal_id: str):
        """Delete a goal; its transactions are kept but detached."""
        existing = self._require_goal(goal_id)
        self.db.delete_goal(goal_id)
        self._audit(
            "Goal", goal_id, "DELETE", actor_id, before=existing.model_dump(mode="json")
        )

    # ========================================================================
    # Alerts and audit
    # ========================================================================

    def list_alerts(self) -> list[Alert]:
        """Get unread alerts, newest first."""
        return self.db.list_alerts(unread_only=True)

    def mark_alert_read(self, alert_id: str):
        """Dismiss an alert."""
        if not self.db.mark_alert_read(alert_id):
            raise NotFoundError("Alert", alert_id)

    def list_audit_entries(self, limit: int = 50) -> list[AuditLogEntry]:
        """Get the most recent changes to the ledger."""
        return self.db.list_audit_entries(limit=limit)

    # ========================================================================
    # Reports
    # ========================================================================

    def generate_report(
        self,
        user_id: str,
        today: date | None = None,
        with_insight: bool = True,
    ) -> ReportSummary:
        """
        Summarize recent spending for a member.

        Uses completed EXPENSE transactions from the report window, plus the
        member's settlement balance over all time and goal progress.

        Args:
            user_id: The member the balance is computed for
            today: Last day of the report window (defaults to today)
            with_insight: Whether to ask the AI for a written analysis

        Returns:
            Report figures, with the AI insight when requested
        """
        today = today or date.today()
        period_start = today - timedelta(days=self.settings.report_window_days)

        balance = calculate_balance_breakdown(
            user_id, self.db.list_transactions()
        ).balance

        completed = self.db.list_transactions(
            status="COMPLETED", since=datetime.combine(period_start, time())
        )
        recent = [
            t for t in completed if t.type == "EXPENSE" and t.date.date() <= today
        ]

        category_names = {c.id: c.name for c in self.db.list_categories()}
        totals: dict[str, int] = defaultdict(int)
        for t in recent:
            totals[category_names.get(t.category_id or "", "Uncategorized")] += t.amount

        category_summary = sorted(
            (CategoryTotal(name=name, total=total) for name, total in totals.items()),
            key=lambda c: c.total,
            reverse=True,
        )[:5]

        summary = ReportSummary(
            period_start=period_start,
            period_end=today,
            total_spent=sum(t.amount for t in recent),
            category_summary=category_summary,
            largest_transactions=sorted(recent, key=lambda t: t.amount, reverse=True)[:3],
            balance=balance,
            balance_status=balance_status(balance),
            goals=self.db.list_goals(),
        )

        if with_insight and recent:
            summary.insight = self.parser.generate_insight(
                summary, currency=self.settings.currency_symbol
            )

        return summary
