"""Interactive prompts for entering transactions."""

import logging
from typing import Any

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from .models import Category, Member
from .splits import equal_percentages, set_percentage

logger = logging.getLogger(__name__)


class NameCompleter(Completer):
    """Fuzzy search completer over category or member names."""

    def __init__(self, names: dict[str, str]):
        """Initialize the completer with a display-name -> ID mapping."""
        self.name_to_id = names

    def get_completions(self, document: Document, complete_event: Any):
        """Get fuzzy-matched completions."""
        query = document.text.lower()

        for name in self.name_to_id:
            if not query:
                yield Completion(text=name, start_position=0, display=name)
            elif self._fuzzy_match(query, name.lower()):
                yield Completion(
                    text=name,
                    start_position=-len(document.text),
                    display=name,
                )

    def _fuzzy_match(self, query: str, text: str) -> bool:
        """
        Fuzzy match: all characters in query must appear in order in text.

        Example:
            query="gro" matches "Groceries"
            query="rst" matches "Restaurants"
        """
        query_idx = 0
        for char in text:
            if query_idx < len(query) and char == query[query_idx]:
                query_idx += 1
        return query_idx == len(query)


def category_label(category: Category) -> str:
    """Display name for a category, with its icon when it has one."""
    return f"{category.icon} {category.name}" if category.icon else category.name


def _select_interactive(label: str, names: dict[str, str]) -> str | None:
    completer = NameCompleter(names)
    session: PromptSession[str] = PromptSession(completer=completer)

    print("   Type to search, press Enter to confirm, Ctrl+C to skip\n")

    try:
        while True:
            result = session.prompt(f"{label}: ", complete_while_typing=True)

            if not result:
                return None

            selected_id = completer.name_to_id.get(result)
            if selected_id:
                logger.info(f"User selected {label.lower()}: {result}")
                return selected_id

            print(
                f"❌ Invalid {label.lower()}. Please select from the list "
                f"or press Tab to complete."
            )

    except KeyboardInterrupt:
        print("\n⏭️  Skipped")
        return None
    except EOFError:
        return None


def select_category_interactive(categories: list[Category]) -> str | None:
    """
    Interactive category selection with fuzzy search.

    Args:
        categories: Available categories

    Returns:
        Selected category ID, or None to skip
    """
    return _select_interactive(
        "Category", {category_label(c): c.id for c in categories}
    )


def select_member_interactive(members: list[Member], label: str = "Member") -> str | None:
    """
    Interactive member selection with fuzzy search.

    Args:
        members: Members of the group
        label: Prompt label, e.g. "Payer"

    Returns:
        Selected member ID, or None to skip
    """
    return _select_interactive(label, {m.name: m.id for m in members})


def prompt_percentages(members: list[Member]) -> dict[str, float]:
    """
    Ask for each member's percentage of a custom split.

    Starts from an equal split. With two members, entering one percentage
    fills in the other, so the second prompt can simply be accepted.

    Args:
        members: Members taking part in the split, in allocation order

    Returns:
        Percentages by member ID
    """
    participants = [m.id for m in members]
    percentages = equal_percentages(participants)

    for member in members:
        current = percentages.get(member.id, 0.0)
        raw = input(f"   {member.name} % [{current:g}]: ").strip()
        if raw:
            percentages = set_percentage(percentages, participants, member.id, raw)

    total = sum(percentages.values())
    print(f"   Total: {total:.1f}%")

    return percentages


def confirm_action(message: str) -> bool:
    """Simple yes/no confirmation, defaulting to no."""
    response = input(f"{message} [y/N] ").strip().lower()
    return response in ("y", "yes")
