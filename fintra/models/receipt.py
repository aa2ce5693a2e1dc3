"""
Receipt extraction models.

CRITICAL: ReceiptDetails is an advisory GUESS from an AI model. Every field
is independently nullable and nothing in it is validated. It only ever
prefills an ExpenseDraft, which the user edits and confirms before anything
reaches the remote data service.
"""

import datetime as dt
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from fintra.models.finance import NewExpense, NewExpenseItem


class ReceiptItem(BaseModel):
    """A purchased item as read from the receipt."""

    name: Optional[str] = None
    price: Optional[Decimal] = None
    quantity: Optional[Decimal] = None


class ReceiptDetails(BaseModel):
    """Best-effort structured reading of a receipt photo."""

    title: Optional[str] = None
    amount: Optional[Decimal] = None
    category: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    description: Optional[str] = None
    items: list[ReceiptItem] = Field(default_factory=list)


class ExpenseDraft(BaseModel):
    """
    Editable expense form state prefilled from a receipt.

    The draft is loose: amount may be zero and the category
    may be a suggestion outside the known list until the user confirms.
    """

    title: str = ""
    amount: Decimal = Decimal("0")
    category: str = "Other"
    suggested_category: Optional[str] = None
    date: Optional[dt.date] = None
    time: Optional[str] = None
    description: Optional[str] = None
    account_id: Optional[str] = None
    items: list[NewExpenseItem] = Field(default_factory=list)

    def to_new_expense(self) -> NewExpense:
        """Validate the confirmed draft into an expense payload."""
        return NewExpense(
            title=self.title,
            amount=self.amount,
            category=self.category,
            date=self.date,
            time=self.time,
            description=self.description,
            account_id=self.account_id,
            items=self.items,
        )
