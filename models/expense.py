"""Pydantic models for Expense data"""
from pydantic import BaseModel, Field, field_validator, field_serializer
from datetime import date as date_type, datetime, time, timezone
from typing import Any, Dict, List, Literal, Optional, get_args

Category = Literal[
    'Food & Dining',
    'Transportation',
    'Shopping',
    'Entertainment',
    'Bills & Utilities',
    'Healthcare',
    'Education',
    'Travel',
    'Other',
]

CATEGORIES: List[str] = list(get_args(Category))

TITLE_MAX_LENGTH = 100


def parse_expense_date(value: Any) -> datetime:
    """
    Normalizes an incoming date into an aware UTC datetime.

    Accepts ``YYYY-MM-DD``, a full ISO-8601 timestamp (``Z`` suffix included),
    a ``date`` or a ``datetime``. Naive values are taken to be UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date_type):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(('Z', 'z')):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise ValueError(f"Invalid date '{value}'. Use YYYY-MM-DD or an ISO-8601 date/time.")
    else:
        raise ValueError("Date must be an ISO-8601 string.")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def reject_bool_amount(value: Any) -> Any:
    # JSON true/false would otherwise coerce to 1.0/0.0
    if isinstance(value, bool):
        raise ValueError("Amount must be a number")
    return value


def format_expense_date(value: datetime) -> str:
    """Renders a stored date the way the JSON API transmits it, e.g. 2024-01-05T00:00:00.000Z."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


class ExpenseCreate(BaseModel):
    """
    Body of a create request. Any ``id``/``_id`` sent by the client is ignored.
    """
    title: str = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH)
    amount: float = Field(..., gt=0, allow_inf_nan=False)
    category: Category
    date: datetime
    notes: str = ""

    @field_validator('amount', mode='before')
    @classmethod
    def _reject_bool(cls, value: Any) -> Any:
        return reject_bool_amount(value)

    @field_validator('date', mode='before')
    @classmethod
    def _parse_date(cls, value: Any) -> datetime:
        return parse_expense_date(value)

    @field_validator('notes', mode='before')
    @classmethod
    def _default_notes(cls, value: Any) -> Any:
        return "" if value is None else value

    class Config:
        str_strip_whitespace = True


class ExpenseUpdate(BaseModel):
    """
    Body of an update request. Only the fields that were sent are applied.
    """
    title: Optional[str] = Field(None, min_length=1, max_length=TITLE_MAX_LENGTH)
    amount: Optional[float] = Field(None, gt=0, allow_inf_nan=False)
    category: Optional[Category] = None
    date: Optional[datetime] = None
    notes: Optional[str] = None

    @field_validator('title', 'amount', 'category', 'date', mode='before')
    @classmethod
    def _reject_null(cls, value: Any) -> Any:
        # Required fields can be replaced but never cleared
        if value is None:
            raise ValueError("Field may not be null")
        return value

    @field_validator('amount', mode='before')
    @classmethod
    def _reject_bool(cls, value: Any) -> Any:
        return reject_bool_amount(value)

    @field_validator('date', mode='before')
    @classmethod
    def _parse_date(cls, value: Any) -> datetime:
        return parse_expense_date(value)

    @field_validator('notes', mode='before')
    @classmethod
    def _default_notes(cls, value: Any) -> Any:
        return "" if value is None else value

    class Config:
        str_strip_whitespace = True


class Expense(BaseModel):
    """
    Represents a single stored expense.
    """
    id: str
    title: str
    amount: float
    category: str
    date: datetime
    notes: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_serializer('date', 'created_at', 'updated_at')
    def _serialize_dates(self, value: Optional[datetime]) -> Optional[str]:
        return format_expense_date(value) if value is not None else None


class ExpenseListResponse(BaseModel):
    success: bool = True
    count: int
    data: List[Expense]


class ExpenseResponse(BaseModel):
    success: bool = True
    data: Expense


class DeleteResponse(BaseModel):
    success: bool = True
    data: Dict[str, Any] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
