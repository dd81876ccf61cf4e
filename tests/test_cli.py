"""Tests for the command-line interface."""

import pytest
from typer.testing import CliRunner

from couple_finance.cli import app, format_money
from couple_finance.db import Database


@pytest.fixture
def runner(tmp_path, monkeypatch):
    """A CLI runner using a temporary database and no .env file."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "cli.db"))
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    return CliRunner()


@pytest.fixture
def couple(runner):
    """Two members in the ledger."""
    for name in ("Ana", "Luis"):
        result = runner.invoke(app, ["member", "add", name])
        assert result.exit_code == 0, result.output
    return runner


class TestFormatMoney:
    """Test accounting-style money formatting."""

    def test_positive(self):
        """Positive amounts are padded with spaces."""
        assert format_money(85000, use_color=False) == " $85,000 "

    def test_negative(self):
        """Negative amounts are wrapped in parentheses."""
        assert format_money(-85000, use_color=False) == "($85,000)"

    def test_symbol(self):
        """The currency symbol is configurable."""
        assert format_money(1500, symbol="€", use_color=False) == " €1,500 "


class TestCommands:
    """Test commands end to end against a temporary database."""

    def test_init(self, runner):
        """Init seeds the default categories."""
        result = runner.invoke(app, ["init"])

        assert result.exit_code == 0, result.output
        assert "ready" in result.output

    def test_first_member_is_owner(self, runner):
        """The first member added owns the group."""
        result = runner.invoke(app, ["member", "add", "Ana"])

        assert result.exit_code == 0, result.output
        assert "OWNER" in result.output

    def test_add_custom_split_and_balance(self, couple):
        """A 40/60 split leaves Luis owing his share to Ana."""
        result = couple.invoke(
            app,
            [
                "add",
                "10000",
                "Groceries",
                "--payer",
                "Ana",
                "--category",
                "Groceries",
                "--split",
                "custom",
                "--percent",
                "Ana=40",
                "--percent",
                "Luis=60",
            ],
        )
        assert result.exit_code == 0, result.output

        result = couple.invoke(app, ["balance", "--as", "Luis"])

        assert result.exit_code == 0, result.output
        assert "You owe $6,000" in result.output

    def test_unknown_payer_exits_with_error(self, couple):
        """Validation errors are printed and exit with status 1."""
        result = couple.invoke(
            app, ["add", "100", "Coffee", "--payer", "Pedro", "--category", "Other"]
        )

        assert result.exit_code == 1
        assert "Unknown payer: Pedro" in result.output

    def test_bad_percent_option(self, couple):
        """Percent options must look like NAME=PCT."""
        result = couple.invoke(
            app,
            [
                "add",
                "100",
                "Coffee",
                "--payer",
                "Ana",
                "--category",
                "Other",
                "--split",
                "custom",
                "--percent",
                "Ana:50",
            ],
        )

        assert result.exit_code == 1
        assert "Expected NAME=PERCENT" in result.output

    def test_parse_without_openai_key(self, couple):
        """AI entry explains how to configure the key."""
        result = couple.invoke(app, ["parse", "coffee 500"])

        assert result.exit_code == 1
        assert "OPENAI_API_KEY" in result.output

    def test_recurring_run_with_nothing_due(self, couple):
        """Running the scheduler with no templates does nothing."""
        result = couple.invoke(app, ["recurring", "run"])

        assert result.exit_code == 0, result.output
        assert "Nothing due" in result.output

    def test_edit_amount_keeps_custom_split(self, couple, tmp_path):
        """Changing only the amount re-applies the existing 40/60 split."""
        couple.invoke(
            app,
            [
                "add",
                "10000",
                "Groceries",
                "--payer",
                "Ana",
                "--category",
                "Groceries",
                "--split",
                "custom",
                "--percent",
                "Ana=40",
                "--percent",
                "Luis=60",
            ],
        )
        transaction_id = _only_transaction_id(tmp_path)

        result = couple.invoke(app, ["edit", transaction_id, "--amount", "20000"])
        assert result.exit_code == 0, result.output

        result = couple.invoke(app, ["balance", "--as", "Luis"])
        assert "You owe $12,000" in result.output

    def test_member_role_and_remove(self, couple):
        """The owner can promote and remove members."""
        result = couple.invoke(app, ["member", "role", "Luis", "admin"])
        assert result.exit_code == 0, result.output
        assert "Luis is now ADMIN" in result.output

        couple.invoke(app, ["member", "add", "Marta"])
        result = couple.invoke(app, ["member", "remove", "Marta", "--yes"])
        assert result.exit_code == 0, result.output
        assert "Marta removed" in result.output

        assert "Marta" not in couple.invoke(app, ["member", "list"]).output
        assert "(removed)" in couple.invoke(app, ["member", "list", "--all"]).output

    def test_member_cannot_remove_owner(self, couple):
        """Permission errors exit with status 1."""
        result = couple.invoke(app, ["member", "remove", "Ana", "--yes", "--as", "Luis"])

        assert result.exit_code == 1
        assert "Only the group owner" in result.output

    def test_comments(self, couple, tmp_path):
        """Comments are added and listed in order."""
        couple.invoke(
            app, ["add", "5000", "Dinner", "--payer", "Ana", "--category", "Restaurants"]
        )
        transaction_id = _only_transaction_id(tmp_path)

        result = couple.invoke(
            app, ["comment", "add", transaction_id, "Tip included", "--as", "Luis"]
        )
        assert result.exit_code == 0, result.output

        result = couple.invoke(app, ["comment", "list", transaction_id])
        assert result.exit_code == 0, result.output
        assert "Luis" in result.output
        assert "Tip included" in result.output

    def test_shared_account_visible_to_partner(self, couple):
        """A SHARED account shows up for the other member."""
        result = couple.invoke(
            app,
            ["account", "add", "Joint", "--type", "checking", "--privacy", "shared"],
        )
        assert result.exit_code == 0, result.output

        result = couple.invoke(app, ["account", "list", "--as", "Luis"])

        assert result.exit_code == 0, result.output
        assert "Joint" in result.output


def _only_transaction_id(tmp_path) -> str:
    db = Database(tmp_path / "cli.db")
    try:
        (transaction,) = db.list_transactions()
        return transaction.id
    finally:
        db.close()
