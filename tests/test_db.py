"""Tests for the SQLite ledger store."""

from datetime import datetime

import pytest

from couple_finance.db import DEFAULT_CATEGORIES, Database
from couple_finance.models import Member, Split, Transaction


@pytest.fixture
def db(tmp_path):
    """Create a temporary database."""
    database = Database(tmp_path / "test.db")
    yield database
    database.close()


def make_transaction(amount=1000, **kwargs) -> Transaction:
    return Transaction(
        amount=amount,
        description=kwargs.pop("description", "Coffee"),
        payer_id="ana",
        splits=[Split(user_id="ana", amount=amount)],
        **kwargs,
    )


class TestCategories:
    """Test category seeding."""

    def test_seed_creates_defaults_once(self, db):
        """Defaults are only inserted into an empty table."""
        assert db.seed_default_categories() == len(DEFAULT_CATEGORIES)
        assert db.seed_default_categories() == 0

        names = [c.name for c in db.list_categories()]
        assert names == [name for name, _ in DEFAULT_CATEGORIES]


class TestListTransactions:
    """Test transaction filters."""

    @pytest.fixture
    def stored(self, db):
        db.save_transaction(
            make_transaction(description="old", date=datetime(2024, 2, 28))
        )
        db.save_transaction(
            make_transaction(description="start", date=datetime(2024, 3, 1))
        )
        db.save_transaction(
            make_transaction(
                description="pending", status="PENDING", date=datetime(2024, 3, 5, 12)
            )
        )
        db.save_transaction(
            make_transaction(description="recent", date=datetime(2024, 3, 10, 18, 30))
        )

    def test_newest_first(self, db, stored):
        descriptions = [t.description for t in db.list_transactions()]

        assert descriptions == ["recent", "pending", "start", "old"]

    def test_status_filter(self, db, stored):
        """Only transactions in the requested status are returned."""
        pending = db.list_transactions(status="PENDING")

        assert [t.description for t in pending] == ["pending"]

    def test_since_is_inclusive(self, db, stored):
        """Transactions on the boundary instant are included."""
        since = db.list_transactions(status="COMPLETED", since=datetime(2024, 3, 1))

        assert [t.description for t in since] == ["recent", "start"]

    def test_splits_loaded(self, db, stored):
        transaction = db.list_transactions(status="PENDING")[0]

        assert transaction.splits == [Split(user_id="ana", amount=1000)]


class TestMembers:
    """Test member activation."""

    def test_inactive_members_hidden_by_default(self, db):
        """Removed members are only listed on request."""
        ana = db.save_member(Member(name="Ana", role="OWNER"))
        luis = db.save_member(Member(name="Luis"))

        db.set_member_active(luis.id, False)

        assert [m.name for m in db.list_members()] == ["Ana"]
        assert [m.name for m in db.list_members(include_inactive=True)] == [
            "Ana",
            "Luis",
        ]
        assert db.get_member(luis.id).active is False
        assert db.get_member(ana.id).active is True

    def test_set_role(self, db):
        luis = db.save_member(Member(name="Luis"))

        db.set_member_role(luis.id, "ADMIN")

        assert db.get_member(luis.id).role == "ADMIN"
