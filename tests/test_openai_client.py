"""Tests for the OpenAI transaction parser."""

import json
from datetime import date
from unittest.mock import MagicMock, patch

import pytest
from openai import OpenAIError

from couple_finance.clients.openai_client import TransactionParser
from couple_finance.exceptions import OpenAIAPIError, ParsingError
from couple_finance.models import CategoryTotal, ReportSummary


def make_response(content: str | None) -> MagicMock:
    """Create a mock chat completion response."""
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


@pytest.fixture
def mock_openai():
    """Patch the OpenAI client class."""
    with patch("couple_finance.clients.openai_client.OpenAI") as mock_cls:
        yield mock_cls.return_value


@pytest.fixture
def parser(mock_openai):
    """Create a parser backed by the mock client."""
    return TransactionParser(api_key="test_key", model="gpt-4o-mini")


class TestParseTransaction:
    """Test parsing free text into transactions."""

    def test_parses_response(self, parser, mock_openai):
        """The JSON response is validated into a ParsedTransaction."""
        mock_openai.chat.completions.create.return_value = make_response(
            json.dumps(
                {
                    "amount": 80000,
                    "description": "Dinner",
                    "categoryName": "Restaurants",
                    "date": "2024-03-09",
                    "payerName": "Me",
                    "type": "EXPENSE",
                    "split": {"type": "CUSTOM", "percentages": {"Me": 70, "Ana": 30}},
                }
            )
        )

        parsed = parser.parse_transaction(
            "Dinner 80000, I paid, 70/30 with Ana",
            categories=["Groceries", "Restaurants"],
            members=["Ana", "Luis"],
        )

        assert parsed.amount == 80000
        assert parsed.category_name == "Restaurants"
        assert parsed.transaction_date == date(2024, 3, 9)
        assert parsed.split.percentages == {"Me": 70.0, "Ana": 30.0}

    def test_request_uses_json_mode(self, parser, mock_openai):
        """Parsing asks for a deterministic JSON object."""
        mock_openai.chat.completions.create.return_value = make_response('{"amount": 1}')

        parser.parse_transaction("x", categories=["Rent"], members=["Ana"])

        kwargs = mock_openai.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["temperature"] == 0
        assert kwargs["response_format"] == {"type": "json_object"}
        assert "Rent" in kwargs["messages"][1]["content"]
        assert "Ana" in kwargs["messages"][1]["content"]

    def test_invalid_json(self, parser, mock_openai):
        """Non-JSON output raises ParsingError."""
        mock_openai.chat.completions.create.return_value = make_response("sure! 80000")

        with pytest.raises(ParsingError):
            parser.parse_transaction("x", categories=[], members=[])

    def test_invalid_fields(self, parser, mock_openai):
        """JSON that does not fit the model raises ParsingError."""
        mock_openai.chat.completions.create.return_value = make_response(
            '{"amount": "a lot", "type": "GIFT"}'
        )

        with pytest.raises(ParsingError):
            parser.parse_transaction("x", categories=[], members=[])

    def test_empty_response(self, parser, mock_openai):
        """An empty completion is an API error."""
        mock_openai.chat.completions.create.return_value = make_response(None)

        with pytest.raises(OpenAIAPIError, match="No response"):
            parser.parse_transaction("x", categories=[], members=[])

    def test_api_failure_wrapped(self, parser, mock_openai):
        """SDK errors surface as OpenAIAPIError."""
        mock_openai.chat.completions.create.side_effect = OpenAIError("boom")

        with pytest.raises(OpenAIAPIError, match="boom"):
            parser.parse_transaction("x", categories=[], members=[])


class TestGenerateInsight:
    """Test report insight generation."""

    def test_returns_markdown(self, parser, mock_openai):
        """The completion text is returned unchanged."""
        mock_openai.chat.completions.create.return_value = make_response("## Summary")
        summary = ReportSummary(
            period_start=date(2024, 3, 1),
            period_end=date(2024, 3, 31),
            total_spent=11000,
            category_summary=[CategoryTotal(name="Groceries", total=8000)],
            balance=-2500,
            balance_status="You owe money",
        )

        report = parser.generate_insight(summary, currency="€")

        assert report == "## Summary"
        kwargs = mock_openai.chat.completions.create.call_args.kwargs
        prompt = kwargs["messages"][0]["content"]
        assert "€11,000" in prompt
        assert "Groceries: €8,000" in prompt
        assert "€2,500 (You owe money)" in prompt
        assert kwargs["temperature"] == 0.7
