"""Draft state and validation for the add/edit expense form."""
import math
from typing import Any, Dict, Mapping

from pydantic import BaseModel

from models.expense import TITLE_MAX_LENGTH


class ExpenseDraft(BaseModel):
    """Raw form inputs, kept as the strings the user typed."""
    title: str = ""
    amount: str = ""
    category: str = ""
    date: str = ""
    notes: str = ""

    @classmethod
    def from_expense(cls, expense: Mapping[str, Any]) -> "ExpenseDraft":
        """Populates the form from a stored record; the date input only takes YYYY-MM-DD."""
        amount = expense.get("amount")
        return cls(
            title=expense.get("title") or "",
            amount="" if amount is None else str(amount),
            category=expense.get("category") or "",
            date=str(expense.get("date") or "").split("T")[0],
            notes=expense.get("notes") or "",
        )

    def validate_fields(self) -> Dict[str, str]:
        """Returns field -> message for every invalid input; empty when the draft can be sent."""
        errors: Dict[str, str] = {}

        if not self.title.strip():
            errors["title"] = "Title is required"
        elif len(self.title.strip()) > TITLE_MAX_LENGTH:
            errors["title"] = f"Title must be less than {TITLE_MAX_LENGTH} characters"

        if not self.amount.strip():
            errors["amount"] = "Amount is required"
        else:
            try:
                amount = float(self.amount)
            except ValueError:
                amount = math.nan
            if not math.isfinite(amount) or amount <= 0:
                errors["amount"] = "Amount must be a positive number"

        if not self.category:
            errors["category"] = "Category is required"

        if not self.date:
            errors["date"] = "Date is required"

        return errors

    def to_payload(self) -> Dict[str, Any]:
        """Request body for create/update. Call only on a draft that validated cleanly."""
        return {
            "title": self.title.strip(),
            "amount": float(self.amount),
            "category": self.category,
            "date": self.date,
            "notes": self.notes.strip(),
        }
