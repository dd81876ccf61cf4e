"""OpenAI GPT client for transaction parsing and spending insights."""

import json
import logging

from openai import OpenAI, OpenAIError
from pydantic import ValidationError as PydanticValidationError

from ..exceptions import OpenAIAPIError, ParsingError
from ..models import ParsedTransaction, ReportSummary

logger = logging.getLogger(__name__)


class TransactionParser:
    """GPT-based parser that turns free text into transactions."""

    def __init__(self, api_key: str, model: str = "gpt-4o-mini"):
        """Initialize the parser."""
        self.client = OpenAI(api_key=api_key)
        self.model = model

    def _complete(self, messages: list[dict], temperature: float, **kwargs) -> str:
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                **kwargs,
            )
        except OpenAIError as e:
            raise OpenAIAPIError(f"OpenAI request failed: {e}") from e

        content = response.choices[0].message.content
        if not content:
            raise OpenAIAPIError("No response from OpenAI")
        return content

    def parse_transaction(
        self, text: str, categories: list[str], members: list[str]
    ) -> ParsedTransaction:
        """
        Parse a free-text description of a transaction.

        Args:
            text: What the user wrote, e.g. "paid 45000 for groceries, split 60/40"
            categories: Available category names
            members: Available member names

        Returns:
            The parsed transaction (names are not yet resolved to IDs)

        Raises:
            OpenAIAPIError: If the API call fails
            ParsingError: If the response is not a valid transaction
        """
        # System prompt
        system_prompt = """You are a financial assistant for a shared household ledger. Parse the user's text into a transaction.

Your response must be a JSON object with:
- amount: number
- description: string
- categoryName: one of the available categories, or null
- date: YYYY-MM-DD inferred from the text, or null
- payerName: who paid, if obvious from context ("I paid" -> "Me"), or null
- type: EXPENSE, SAVING, INCOME or TRANSFER. Default EXPENSE.
- split: optional object with
    - type: "ALL" (equal split, default), "CUSTOM" (percentages) or "ONE_PERSON" (assigned to one member)
    - percentages: if CUSTOM, an object mapping member name -> percentage (0-100)
    - assigneeName: if ONE_PERSON, the member's name"""

        # User prompt
        user_prompt = f"""Text: "{text}"

Available categories: {", ".join(categories)}
Available members: {", ".join(members)}"""

        content = self._complete(
            [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=0,
            response_format={"type": "json_object"},
        )

        try:
            parsed = ParsedTransaction.model_validate(json.loads(content))
        except (json.JSONDecodeError, PydanticValidationError) as e:
            raise ParsingError(f"Failed to parse AI response: {content}") from e

        logger.info(
            f"GPT parsed '{text}' -> amount={parsed.amount} "
            f"category={parsed.category_name} payer={parsed.payer_name}"
        )

        return parsed

    def generate_insight(self, summary: ReportSummary, currency: str = "$") -> str:
        """
        Write a short Markdown spending analysis from report figures.

        Args:
            summary: Totals, top categories, balance and goals for the period
            currency: Currency symbol for amounts

        Returns:
            Markdown report text

        Raises:
            OpenAIAPIError: If the API call fails
        """
        categories_text = "\n".join(
            f"- {c.name}: {currency}{c.total:,}" for c in summary.category_summary
        )
        largest_text = "\n".join(
            f"- {t.description} ({currency}{t.amount:,}) on {t.date.date()}"
            for t in summary.largest_transactions
        )
        goals_text = "\n".join(
            f"- {g.name}: {currency}{g.current_amount:,} / "
            f"{currency}{g.target_amount:,} ({g.progress}%)"
            for g in summary.goals
        )

        prompt = f"""Act as a personal finance analyst for a couple sharing expenses.

Period: {summary.period_start} to {summary.period_end}
Total spent: {currency}{summary.total_spent:,}
Settlement balance: {currency}{abs(summary.balance):,} ({summary.balance_status})

Top categories:
{categories_text}

Largest transactions:
{largest_text}

Savings goals:
{goals_text or "- none"}

Write a short Markdown report with these sections: an executive summary, where the money went, the state of debts between the members (settled, owes or is owed), progress on goals if there are any, two specific saving tips, and a one-line conclusion."""

        report = self._complete([{"role": "user", "content": prompt}], temperature=0.7)

        logger.info(f"Generated insight for {summary.period_start}..{summary.period_end}")

        return report
