"""SQLite database operations for couple-finance."""

import json
import sqlite3
from datetime import date, datetime
from pathlib import Path

from .models import (
    Account,
    Alert,
    AuditLogEntry,
    Category,
    Comment,
    Goal,
    Member,
    RecurringTemplate,
    Split,
    SplitPolicy,
    Transaction,
    TransactionStatus,
    dump_split_policy,
    parse_split_policy,
)

DEFAULT_CATEGORIES = [
    ("Groceries", "🛒"),
    ("Transport", "🚌"),
    ("Utilities", "💡"),
    ("Rent", "🏠"),
    ("Health", "💊"),
    ("Leisure", "🎉"),
    ("Restaurants", "🍽️"),
    ("Household", "🛋️"),
    ("Pets", "🐾"),
    ("Other", "📦"),
]


class Database:
    """SQLite database manager."""

    def __init__(self, db_path: Path):
        """Initialize database connection."""
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path))
        self.conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self):
        """Initialize database schema."""
        cursor = self.conn.cursor()

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS members (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL UNIQUE,
                email TEXT,
                role TEXT NOT NULL,
                active INTEGER NOT NULL DEFAULT 1,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS accounts (
                id TEXT PRIMARY KEY,
                owner_id TEXT NOT NULL,
                name TEXT NOT NULL,
                type TEXT NOT NULL,
                balance INTEGER NOT NULL DEFAULT 0,
                currency TEXT NOT NULL,
                privacy_level TEXT NOT NULL,
                created_at TIMESTAMP NOT NULL
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS categories (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL UNIQUE,
                icon TEXT
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS transactions (
                id TEXT PRIMARY KEY,
                amount INTEGER NOT NULL,
                description TEXT NOT NULL,
                payer_id TEXT NOT NULL,
                type TEXT NOT NULL,
                status TEXT NOT NULL,
                date TIMESTAMP NOT NULL,
                category_id TEXT,
                goal_id TEXT,
                template_id TEXT,
                created_by TEXT
            )
        """
        )

        # Splits are owned by their transaction and kept in allocation order
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS splits (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                transaction_id TEXT NOT NULL,
                position INTEGER NOT NULL,
                user_id TEXT NOT NULL,
                amount INTEGER NOT NULL,
                percentage REAL
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS comments (
                id TEXT PRIMARY KEY,
                transaction_id TEXT NOT NULL,
                author_id TEXT NOT NULL,
                content TEXT NOT NULL,
                created_at TIMESTAMP NOT NULL
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS recurring_templates (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                amount INTEGER NOT NULL,
                day_of_month INTEGER NOT NULL,
                payer_id TEXT NOT NULL,
                category_id TEXT NOT NULL,
                active INTEGER NOT NULL DEFAULT 1,
                next_run DATE NOT NULL,
                policy TEXT NOT NULL
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS goals (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                target_amount INTEGER NOT NULL,
                current_amount INTEGER NOT NULL DEFAULT 0,
                deadline DATE
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS alerts (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                body TEXT NOT NULL,
                is_read INTEGER NOT NULL DEFAULT 0,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS audit_log (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                entity_type TEXT NOT NULL,
                entity_id TEXT NOT NULL,
                action TEXT NOT NULL,
                before_json TEXT,
                after_json TEXT,
                changed_by TEXT NOT NULL,
                changed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

        self.conn.commit()

    def close(self):
        """Close database connection."""
        self.conn.close()

    # ========================================================================
    # Member operations
    # ========================================================================

    def save_member(self, member: Member) -> Member:
        """Save a new member."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO members (id, name, email, role, active)
            VALUES (?, ?, ?, ?, ?)
            """,
            (member.id, member.name, member.email, member.role, int(member.active)),
        )
        self.conn.commit()
        return member

    def _row_to_member(self, row: sqlite3.Row) -> Member:
        return Member(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            role=row["role"],
            active=bool(row["active"]),
        )

    def get_member(self, member_id: str) -> Member | None:
        """Get a member by ID, including removed members."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM members WHERE id = ?", (member_id,))
        row = cursor.fetchone()
        return self._row_to_member(row) if row else None

    def list_members(self, include_inactive: bool = False) -> list[Member]:
        """Get members in the order they joined."""
        query = "SELECT * FROM members"
        if not include_inactive:
            query += " WHERE active = 1"
        query += " ORDER BY rowid"

        cursor = self.conn.cursor()
        cursor.execute(query)
        return [self._row_to_member(row) for row in cursor.fetchall()]

    def set_member_role(self, member_id: str, role: str):
        """Change a member's role."""
        cursor = self.conn.cursor()
        cursor.execute("UPDATE members SET role = ? WHERE id = ?", (role, member_id))
        self.conn.commit()

    def set_member_active(self, member_id: str, active: bool):
        """Remove a member from the group (or bring them back)."""
        cursor = self.conn.cursor()
        cursor.execute(
            "UPDATE members SET active = ? WHERE id = ?", (int(active), member_id)
        )
        self.conn.commit()

    # ========================================================================
    # Account operations
    # ========================================================================

    def save_account(self, account: Account) -> Account:
        """Save a new financial account."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO accounts (
                id, owner_id, name, type, balance, currency, privacy_level,
                created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                account.id,
                account.owner_id,
                account.name,
                account.type,
                account.balance,
                account.currency,
                account.privacy_level,
                account.created_at.isoformat(),
            ),
        )
        self.conn.commit()
        return account

    def list_accounts(self) -> list[Account]:
        """Get all accounts, newest first."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM accounts ORDER BY created_at DESC, rowid DESC")
        return [
            Account(
                id=row["id"],
                owner_id=row["owner_id"],
                name=row["name"],
                type=row["type"],
                balance=row["balance"],
                currency=row["currency"],
                privacy_level=row["privacy_level"],
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in cursor.fetchall()
        ]

    # ========================================================================
    # Category operations
    # ========================================================================

    def seed_default_categories(self) -> int:
        """Create the default categories if there are none yet."""
        if self.list_categories():
            return 0

        for name, icon in DEFAULT_CATEGORIES:
            self.save_category(Category(name=name, icon=icon))
        return len(DEFAULT_CATEGORIES)

    def save_category(self, category: Category) -> Category:
        """Save a new category."""
        cursor = self.conn.cursor()
        cursor.execute(
            "INSERT INTO categories (id, name, icon) VALUES (?, ?, ?)",
            (category.id, category.name, category.icon),
        )
        self.conn.commit()
        return category

    def get_category(self, category_id: str) -> Category | None:
        """Get a category by ID."""
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT id, name, icon FROM categories WHERE id = ?", (category_id,)
        )
        row = cursor.fetchone()
        return Category(**dict(row)) if row else None

    def list_categories(self) -> list[Category]:
        """Get all categories."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT id, name, icon FROM categories ORDER BY rowid")
        return [Category(**dict(row)) for row in cursor.fetchall()]

    # ========================================================================
    # Transaction operations
    # ========================================================================

    def _insert_splits(
        self, cursor: sqlite3.Cursor, transaction_id: str, splits: list[Split]
    ):
        for position, split in enumerate(splits):
            cursor.execute(
                """
                INSERT INTO splits (
                    transaction_id, position, user_id, amount, percentage
                ) VALUES (?, ?, ?, ?, ?)
                """,
                (
                    transaction_id,
                    position,
                    split.user_id,
                    split.amount,
                    split.percentage,
                ),
            )

    def save_transaction(self, transaction: Transaction) -> Transaction:
        """Save a new transaction together with its splits."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO transactions (
                id, amount, description, payer_id, type, status, date,
                category_id, goal_id, template_id, created_by
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                transaction.id,
                transaction.amount,
                transaction.description,
                transaction.payer_id,
                transaction.type,
                transaction.status,
                transaction.date.isoformat(),
                transaction.category_id,
                transaction.goal_id,
                transaction.template_id,
                transaction.created_by,
            ),
        )
        self._insert_splits(cursor, transaction.id, transaction.splits)
        self.conn.commit()
        return transaction

    def update_transaction(self, transaction: Transaction) -> Transaction:
        """
        Update a transaction and replace all of its splits.

        Splits are deleted and recreated in the same commit rather than
        patched one by one.
        """
        cursor = self.conn.cursor()
        cursor.execute(
            """
            UPDATE transactions SET
                amount = ?, description = ?, payer_id = ?, type = ?,
                status = ?, date = ?, category_id = ?, goal_id = ?,
                template_id = ?, created_by = ?
            WHERE id = ?
            """,
            (
                transaction.amount,
                transaction.description,
                transaction.payer_id,
                transaction.type,
                transaction.status,
                transaction.date.isoformat(),
                transaction.category_id,
                transaction.goal_id,
                transaction.template_id,
                transaction.created_by,
                transaction.id,
            ),
        )
        cursor.execute(
            "DELETE FROM splits WHERE transaction_id = ?", (transaction.id,)
        )
        self._insert_splits(cursor, transaction.id, transaction.splits)
        self.conn.commit()
        return transaction

    def delete_transaction(self, transaction_id: str):
        """Delete a transaction with its splits and comments."""
        cursor = self.conn.cursor()
        cursor.execute(
            "DELETE FROM splits WHERE transaction_id = ?", (transaction_id,)
        )
        cursor.execute(
            "DELETE FROM comments WHERE transaction_id = ?", (transaction_id,)
        )
        cursor.execute("DELETE FROM transactions WHERE id = ?", (transaction_id,))
        self.conn.commit()

    def _get_splits(self, transaction_id: str) -> list[Split]:
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT user_id, amount, percentage FROM splits
            WHERE transaction_id = ?
            ORDER BY position
            """,
            (transaction_id,),
        )
        return [Split(**dict(row)) for row in cursor.fetchall()]

    def _row_to_transaction(self, row: sqlite3.Row) -> Transaction:
        return Transaction(
            id=row["id"],
            amount=row["amount"],
            description=row["description"],
            payer_id=row["payer_id"],
            type=row["type"],
            status=row["status"],
            date=datetime.fromisoformat(row["date"]),
            category_id=row["category_id"],
            goal_id=row["goal_id"],
            template_id=row["template_id"],
            created_by=row["created_by"],
            splits=self._get_splits(row["id"]),
        )

    def get_transaction(self, transaction_id: str) -> Transaction | None:
        """Get a transaction by ID, with its splits."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM transactions WHERE id = ?", (transaction_id,))
        row = cursor.fetchone()
        return self._row_to_transaction(row) if row else None

    def list_transactions(
        self,
        status: TransactionStatus | None = None,
        since: datetime | None = None,
    ) -> list[Transaction]:
        """Get transactions with their splits, newest first."""
        query = "SELECT * FROM transactions"
        clauses = []
        params: list[str] = []
        if status:
            clauses.append("status = ?")
            params.append(status)
        if since:
            clauses.append("date >= ?")
            params.append(since.isoformat())
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY date DESC"

        cursor = self.conn.cursor()
        cursor.execute(query, params)
        return [self._row_to_transaction(row) for row in cursor.fetchall()]

    # ========================================================================
    # Comment operations
    # ========================================================================

    def save_comment(self, comment: Comment) -> Comment:
        """Save a new comment on a transaction."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO comments (id, transaction_id, author_id, content, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                comment.id,
                comment.transaction_id,
                comment.author_id,
                comment.content,
                comment.created_at.isoformat(),
            ),
        )
        self.conn.commit()
        return comment

    def list_comments(self, transaction_id: str) -> list[Comment]:
        """Get a transaction's comments, oldest first."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT * FROM comments WHERE transaction_id = ?
            ORDER BY created_at, rowid
            """,
            (transaction_id,),
        )
        return [
            Comment(
                id=row["id"],
                transaction_id=row["transaction_id"],
                author_id=row["author_id"],
                content=row["content"],
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in cursor.fetchall()
        ]

    # ========================================================================
    # Recurring template operations
    # ========================================================================

    def save_template(self, template: RecurringTemplate) -> RecurringTemplate:
        """Save a new recurring template."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO recurring_templates (
                id, name, amount, day_of_month, payer_id, category_id,
                active, next_run, policy
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                template.id,
                template.name,
                template.amount,
                template.day_of_month,
                template.payer_id,
                template.category_id,
                int(template.active),
                template.next_run.isoformat(),
                dump_split_policy(template.policy),
            ),
        )
        self.conn.commit()
        return template

    def set_template_next_run(self, template_id: str, next_run: date):
        """Move a template's next due date."""
        cursor = self.conn.cursor()
        cursor.execute(
            "UPDATE recurring_templates SET next_run = ? WHERE id = ?",
            (next_run.isoformat(), template_id),
        )
        self.conn.commit()

    def set_template_active(self, template_id: str, active: bool):
        """Pause or resume a template."""
        cursor = self.conn.cursor()
        cursor.execute(
            "UPDATE recurring_templates SET active = ? WHERE id = ?",
            (int(active), template_id),
        )
        self.conn.commit()

    def set_template_policy(self, template_id: str, policy: SplitPolicy):
        """Replace a template's split policy."""
        cursor = self.conn.cursor()
        cursor.execute(
            "UPDATE recurring_templates SET policy = ? WHERE id = ?",
            (dump_split_policy(policy), template_id),
        )
        self.conn.commit()

    def _row_to_template(self, row: sqlite3.Row) -> RecurringTemplate:
        return RecurringTemplate(
            id=row["id"],
            name=row["name"],
            amount=row["amount"],
            day_of_month=row["day_of_month"],
            payer_id=row["payer_id"],
            category_id=row["category_id"],
            active=bool(row["active"]),
            next_run=date.fromisoformat(row["next_run"]),
            policy=parse_split_policy(row["policy"]),
        )

    def get_template(self, template_id: str) -> RecurringTemplate | None:
        """Get a recurring template by ID."""
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT * FROM recurring_templates WHERE id = ?", (template_id,)
        )
        row = cursor.fetchone()
        return self._row_to_template(row) if row else None

    def list_templates(self, active_only: bool = False) -> list[RecurringTemplate]:
        """Get recurring templates ordered by next due date."""
        query = "SELECT * FROM recurring_templates"
        if active_only:
            query += " WHERE active = 1"
        query += " ORDER BY next_run"

        cursor = self.conn.cursor()
        cursor.execute(query)
        return [self._row_to_template(row) for row in cursor.fetchall()]

    # ========================================================================
    # Goal operations
    # ========================================================================

    def save_goal(self, goal: Goal) -> Goal:
        """Save a new goal."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO goals (id, name, target_amount, current_amount, deadline)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                goal.id,
                goal.name,
                goal.target_amount,
                goal.current_amount,
                goal.deadline.isoformat() if goal.deadline else None,
            ),
        )
        self.conn.commit()
        return goal

    def update_goal(self, goal: Goal) -> Goal:
        """Update a goal's name, target and deadline."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            UPDATE goals SET name = ?, target_amount = ?, deadline = ?
            WHERE id = ?
            """,
            (
                goal.name,
                goal.target_amount,
                goal.deadline.isoformat() if goal.deadline else None,
                goal.id,
            ),
        )
        self.conn.commit()
        return goal

    def adjust_goal_amount(self, goal_id: str, delta: int):
        """Increment (or decrement, with a negative delta) a goal's savings."""
        cursor = self.conn.cursor()
        cursor.execute(
            "UPDATE goals SET current_amount = current_amount + ? WHERE id = ?",
            (delta, goal_id),
        )
        self.conn.commit()

    def delete_goal(self, goal_id: str):
        """Delete a goal, detaching any transactions that referenced it."""
        cursor = self.conn.cursor()
        cursor.execute(
            "UPDATE transactions SET goal_id = NULL WHERE goal_id = ?", (goal_id,)
        )
        cursor.execute("DELETE FROM goals WHERE id = ?", (goal_id,))
        self.conn.commit()

    def _row_to_goal(self, row: sqlite3.Row) -> Goal:
        return Goal(
            id=row["id"],
            name=row["name"],
            target_amount=row["target_amount"],
            current_amount=row["current_amount"],
            deadline=date.fromisoformat(row["deadline"]) if row["deadline"] else None,
        )

    def get_goal(self, goal_id: str) -> Goal | None:
        """Get a goal by ID."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM goals WHERE id = ?", (goal_id,))
        row = cursor.fetchone()
        return self._row_to_goal(row) if row else None

    def list_goals(self) -> list[Goal]:
        """Get all goals."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM goals ORDER BY rowid")
        return [self._row_to_goal(row) for row in cursor.fetchall()]

    # ========================================================================
    # Alert operations
    # ========================================================================

    def save_alert(self, alert: Alert) -> Alert:
        """Save a new alert."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO alerts (id, title, body, is_read, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                alert.id,
                alert.title,
                alert.body,
                int(alert.is_read),
                alert.created_at.isoformat(),
            ),
        )
        self.conn.commit()
        return alert

    def list_alerts(self, unread_only: bool = True) -> list[Alert]:
        """Get alerts, newest first."""
        query = "SELECT * FROM alerts"
        if unread_only:
            query += " WHERE is_read = 0"
        query += " ORDER BY created_at DESC"

        cursor = self.conn.cursor()
        cursor.execute(query)
        return [
            Alert(
                id=row["id"],
                title=row["title"],
                body=row["body"],
                is_read=bool(row["is_read"]),
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in cursor.fetchall()
        ]

    def mark_alert_read(self, alert_id: str) -> bool:
        """Mark an alert as read. Returns False if it does not exist."""
        cursor = self.conn.cursor()
        cursor.execute("UPDATE alerts SET is_read = 1 WHERE id = ?", (alert_id,))
        self.conn.commit()
        return cursor.rowcount > 0

    # ========================================================================
    # Audit log operations
    # ========================================================================

    def save_audit_entry(self, entry: AuditLogEntry) -> int:
        """Append an audit log entry."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO audit_log (
                entity_type, entity_id, action, before_json, after_json,
                changed_by, changed_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.entity_type,
                entry.entity_id,
                entry.action,
                json.dumps(entry.before) if entry.before is not None else None,
                json.dumps(entry.after) if entry.after is not None else None,
                entry.changed_by,
                entry.changed_at.isoformat(),
            ),
        )
        self.conn.commit()
        row_id = cursor.lastrowid
        if row_id is None:
            raise RuntimeError("Failed to insert audit log entry")
        return row_id

    def list_audit_entries(self, limit: int = 50) -> list[AuditLogEntry]:
        """Get the most recent audit log entries."""
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT * FROM audit_log ORDER BY id DESC LIMIT ?", (limit,)
        )
        return [
            AuditLogEntry(
                id=row["id"],
                entity_type=row["entity_type"],
                entity_id=row["entity_id"],
                action=row["action"],
                before=json.loads(row["before_json"]) if row["before_json"] else None,
                after=json.loads(row["after_json"]) if row["after_json"] else None,
                changed_by=row["changed_by"],
                changed_at=datetime.fromisoformat(row["changed_at"]),
            )
            for row in cursor.fetchall()
        ]
