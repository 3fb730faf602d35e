"""Local state behind the expense screen: the cached list, the form and transient flags."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel

from client.api_client import ExpenseApiClient, ExpenseApiError
from client.form import ExpenseDraft

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class Notice(BaseModel):
    """A user-visible message (the original UI showed these as toasts)."""
    title: str
    description: str
    variant: Literal["default", "destructive"] = "default"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parses an ISO-8601 date or date/time string into an aware datetime, or None."""
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def sort_expenses(expenses: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Newest first. Records whose date cannot be parsed sort as the epoch."""
    return sorted(expenses, key=lambda e: parse_timestamp(e.get("date")) or EPOCH, reverse=True)


def record_id(expense: Dict[str, Any]) -> Optional[str]:
    """The record's id, under ``id`` or the raw Mongo ``_id`` key."""
    return expense.get("id") or expense.get("_id")


def format_amount(amount: float) -> str:
    """USD currency, e.g. $1,234.50."""
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


def format_date(value: Any) -> str:
    """Short display date, e.g. Jan 5, 2024."""
    parsed = parse_timestamp(value)
    if parsed is None:
        return "Invalid Date"
    return f"{parsed:%b} {parsed.day}, {parsed.year}"


class ExpenseBoard:
    """
    Holds the expenses shown to the user and drives the API client.

    Every mutation either succeeds and updates the local list, or fails and
    leaves it exactly as it was; failures become notices, never exceptions.
    """

    def __init__(self, api: ExpenseApiClient):
        self._api = api
        self.expenses: List[Dict[str, Any]] = []
        self.draft = ExpenseDraft()
        self.form_errors: Dict[str, str] = {}
        self.notices: List[Notice] = []
        self.error: Optional[str] = None
        self.is_loading = False
        self.is_saving = False
        self.editing: Optional[Dict[str, Any]] = None
        self.deleting_id: Optional[str] = None

    @property
    def total_amount(self) -> float:
        return sum(float(expense.get("amount") or 0) for expense in self.expenses)

    def _notify(self, title: str, description: str, variant: str = "default") -> None:
        self.notices.append(Notice(title=title, description=description, variant=variant))

    def _fail(self, error: ExpenseApiError, fallback: str) -> str:
        message = error.message or fallback
        logger.warning(f"{fallback}: {message}")
        self._notify("Error", message, variant="destructive")
        return message

    async def load(self) -> None:
        self.is_loading = True
        self.error = None
        try:
            expenses = await self._api.list_expenses()
            self.expenses = sort_expenses(expenses)
        except ExpenseApiError as e:
            self.error = self._fail(e, "Failed to fetch expenses")
        finally:
            self.is_loading = False

    def start_edit(self, expense: Dict[str, Any]) -> None:
        self.editing = expense
        self.draft = ExpenseDraft.from_expense(expense)
        self.form_errors = {}

    def cancel_edit(self) -> None:
        self.editing = None
        self.draft = ExpenseDraft()
        self.form_errors = {}

    async def submit(self) -> bool:
        """Creates or updates from the draft. Returns True when the save went through."""
        self.form_errors = self.draft.validate_fields()
        if self.form_errors:
            return False

        payload = self.draft.to_payload()
        self.is_saving = True
        try:
            if self.editing is not None:
                editing_id = record_id(self.editing)
                updated = await self._api.update_expense(editing_id, payload)
                self.expenses = sort_expenses(
                    [updated if record_id(expense) == editing_id else expense for expense in self.expenses]
                )
                self.editing = None
                self._notify("Success", "Expense updated successfully!")
            else:
                created = await self._api.create_expense(payload)
                self.expenses = sort_expenses([created, *self.expenses])
                self._notify("Success", "Expense added successfully!")
        except ExpenseApiError as e:
            self._fail(e, "Failed to save expense")
            return False
        finally:
            self.is_saving = False

        self.draft = ExpenseDraft()
        return True

    async def delete(self, expense_id: str) -> bool:
        self.deleting_id = expense_id
        try:
            await self._api.delete_expense(expense_id)
        except ExpenseApiError as e:
            self._fail(e, "Failed to delete expense")
            return False
        finally:
            self.deleting_id = None

        self.expenses = [expense for expense in self.expenses if record_id(expense) != expense_id]
        if self.editing is not None and record_id(self.editing) == expense_id:
            self.cancel_edit()
        self._notify("Deleted", "Expense deleted successfully.")
        return True
