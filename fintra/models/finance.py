"""
Core Financial Models for Fintra

These models define the schemas of every record the remote data service
returns and of every payload the client sends to it.

DESIGN DECISION: Read models (Account, Expense, ...) mirror server rows and
are lenient about optional columns. Write models (NewExpense, NewGoal, ...)
are strict: they are what a form produces, and they are validated before
any remote call is made.
"""

import datetime as dt
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


# =============================================================================
# CONSTANTS
# =============================================================================

EXPENSE_CATEGORIES = [
    "Groceries",
    "Utilities",
    "Transport",
    "Entertainment",
    "Healthcare",
    "Dining",
    "Shopping",
    "EMI",
    "Financial Goals",
    "Other",
]

ACCOUNT_TYPES = [
    "Checking",
    "Savings",
    "Credit Card",
    "Investment",
    "Loan",
    "Other",
]

# Balances of these account types count as liabilities, not assets.
LIABILITY_ACCOUNT_TYPES = frozenset({"Credit Card", "Loan"})


# =============================================================================
# ENUMS
# =============================================================================

class GoalStatus(str, Enum):
    """Progress state of a savings goal."""
    PENDING = "Pending"
    IN_PROGRESS = "In-progress"
    COMPLETED = "Completed"


class PaymentType(str, Enum):
    """How a goal or EMI payment was made."""
    ONE_TIME = "One-Time"
    SIP = "SIP"


class TimeInterval(str, Enum):
    """Bucket size for net-worth history."""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


# =============================================================================
# ACCOUNTS AND INCOME
# =============================================================================

class Account(BaseModel):
    """A money account (bank, card, loan, ...) owned by a workspace."""

    id: str
    created_at: Optional[datetime] = None
    name: str
    type: str = "Other"
    balance: Decimal = Decimal("0")
    icon_name: Optional[str] = None
    user_id: Optional[str] = None
    workspace_id: Optional[str] = None

    @property
    def is_liability(self) -> bool:
        return self.type in LIABILITY_ACCOUNT_TYPES


class NewAccount(BaseModel):
    """Payload for creating an account."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    type: str = Field(default="Checking")
    balance: Decimal = Decimal("0")
    icon_name: str = "Wallet"


class TopUp(BaseModel):
    """Money added to an account."""

    id: str
    created_at: Optional[datetime] = None
    user_id: Optional[str] = None
    account_id: str
    amount: Decimal
    name: str
    description: Optional[str] = None
    topup_time: datetime
    workspace_id: Optional[str] = None


class NewTopUp(BaseModel):
    """Payload for adding or editing a top-up."""
    model_config = ConfigDict(str_strip_whitespace=True)

    account_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    topup_time: datetime


class RecurringIncome(BaseModel):
    """Income credited to an account on a fixed day every month."""

    id: str
    created_at: Optional[datetime] = None
    user_id: Optional[str] = None
    account_id: str
    name: str
    amount: Decimal
    day_of_month: int = Field(..., ge=1, le=31)
    is_active: bool = True
    workspace_id: Optional[str] = None


class NewRecurringIncome(BaseModel):
    """Payload for adding or editing a recurring income."""
    model_config = ConfigDict(str_strip_whitespace=True)

    account_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., gt=0)
    day_of_month: int = Field(..., ge=1, le=31)
    is_active: bool = True


# =============================================================================
# EXPENSES
# =============================================================================

class ExpenseItem(BaseModel):
    """A line item of an expense."""

    id: Optional[str] = None
    created_at: Optional[datetime] = None
    expense_id: Optional[str] = None
    name: str
    price: Decimal
    quantity: Decimal = Decimal("1")

    @property
    def total(self) -> Decimal:
        return self.price * self.quantity


class Expense(BaseModel):
    """An expense with its line items."""

    id: str
    created_at: Optional[datetime] = None
    title: str
    amount: Decimal
    category: str = "Other"
    date: Optional[dt.date] = None
    time: Optional[str] = None
    description: Optional[str] = None
    expense_items: list[ExpenseItem] = Field(default_factory=list)
    user_id: Optional[str] = None
    account_id: Optional[str] = None
    workspace_id: Optional[str] = None
    verified: bool = False
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None


class NewExpenseItem(BaseModel):
    """Line item payload."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=200)
    price: Decimal = Field(..., ge=0)
    quantity: Decimal = Field(default=Decimal("1"), gt=0)


class NewExpense(BaseModel):
    """
    Payload for adding or editing an expense.

    The server recalculates the account balance; the client never
    patches balances itself.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., ge=0)
    category: str = Field(default="Other", min_length=1)
    date: dt.date
    time: Optional[str] = None
    description: Optional[str] = None
    account_id: Optional[str] = None
    items: list[NewExpenseItem] = Field(default_factory=list)

    @field_validator('time')
    @classmethod
    def blank_time_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    def rpc_items(self) -> list[dict]:
        """Line items in the shape the add/update RPCs expect."""
        return [item.model_dump(mode="json") for item in self.items]


# =============================================================================
# GOALS AND EMIS
# =============================================================================

class GoalPayment(BaseModel):
    """A contribution towards a savings goal."""

    id: str
    created_at: Optional[datetime] = None
    user_id: Optional[str] = None
    goal_id: str
    account_id: Optional[str] = None
    amount: Decimal
    payment_type: PaymentType = PaymentType.ONE_TIME
    payment_date: date


class Goal(BaseModel):
    """A savings goal with its payment history."""

    id: str
    created_at: Optional[datetime] = None
    title: str
    description: Optional[str] = None
    target_amount: Decimal
    current_amount: Decimal = Decimal("0")
    target_date: Optional[date] = None
    status: GoalStatus = GoalStatus.PENDING
    icon_name: Optional[str] = None
    user_id: Optional[str] = None
    workspace_id: Optional[str] = None
    goal_payments: list[GoalPayment] = Field(default_factory=list)


class NewGoal(BaseModel):
    """Payload for adding or editing a goal."""
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    target_amount: Decimal = Field(..., gt=0)
    current_amount: Decimal = Field(default=Decimal("0"), ge=0)
    target_date: date
    status: GoalStatus = GoalStatus.PENDING
    icon_name: str = "PiggyBank"


class NewPayment(BaseModel):
    """Payload for a goal or EMI payment."""

    account_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    payment_type: PaymentType = PaymentType.ONE_TIME
    payment_date: date


class EmiPayment(BaseModel):
    """An installment paid towards an EMI."""

    id: str
    created_at: Optional[datetime] = None
    user_id: Optional[str] = None
    emi_id: str
    account_id: Optional[str] = None
    amount: Decimal
    payment_date: date
    payment_type: PaymentType = PaymentType.ONE_TIME


class EMI(BaseModel):
    """An installment loan with its payment history."""

    id: str
    created_at: Optional[datetime] = None
    user_id: Optional[str] = None
    name: str
    total_amount: Decimal
    monthly_payment: Decimal
    due_date_of_month: int = Field(..., ge=1, le=31)
    start_date: date
    end_date: date
    workspace_id: Optional[str] = None
    emi_payments: list[EmiPayment] = Field(default_factory=list)


class NewEmi(BaseModel):
    """Payload for adding an EMI."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=200)
    total_amount: Decimal = Field(..., gt=0)
    monthly_payment: Decimal = Field(..., gt=0)
    due_date_of_month: int = Field(..., ge=1, le=31)
    start_date: date
    end_date: date

    @model_validator(mode='after')
    def validate_dates(self) -> 'NewEmi':
        if self.end_date < self.start_date:
            raise ValueError("End date cannot be before start date")
        return self


# =============================================================================
# BUDGETS AND ANALYTICS
# =============================================================================

class CategoryBudget(BaseModel):
    """Budget for one category in one month."""

    id: Optional[str] = None
    created_at: Optional[datetime] = None
    user_id: Optional[str] = None
    workspace_id: Optional[str] = None
    year: int
    month: int = Field(..., ge=1, le=12)
    category: str
    amount: Decimal


class BudgetInput(BaseModel):
    """A category amount entered on the budgeting form."""

    category: str = Field(..., min_length=1)
    amount: Decimal = Field(..., ge=0)


class PredictedBudget(BaseModel):
    """Server-side budget prediction for a category."""

    category: str
    predicted_amount: Decimal


class NetWorthPoint(BaseModel):
    """One point of the net-worth history."""

    snapshot_date: date
    net_worth: Decimal
