"""
Summaries

Map/reduce passes over the records of a page snapshot. These feed the
dashboard tiles, the accounts header, the budgeting table and the goal and
EMI cards. All functions are pure and work on parsed models.
"""

from collections import defaultdict
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from fintra.models.finance import (
    EMI,
    Account,
    CategoryBudget,
    Expense,
    Goal,
    RecurringIncome,
    TopUp,
)


ZERO = Decimal("0")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class AccountTotals:
    assets: Decimal
    liabilities: Decimal
    net_worth: Decimal


@dataclass(frozen=True)
class CategoryProgress:
    """Budget vs spend for one category in one month."""

    category: str
    budgeted: Decimal
    spent: Decimal

    @property
    def remaining(self) -> Decimal:
        return self.budgeted - self.spent

    @property
    def percent(self) -> Decimal:
        if self.budgeted <= 0:
            return ZERO
        return _percent(self.spent, self.budgeted)

    @property
    def over_budget(self) -> bool:
        return self.budgeted > 0 and self.spent > self.budgeted


@dataclass(frozen=True)
class BudgetProgress:
    categories: list[CategoryProgress]
    total_budgeted: Decimal
    total_spent: Decimal


@dataclass(frozen=True)
class CashFlow:
    """Income and spending of one calendar month ("YYYY-MM")."""

    month: str
    income: Decimal
    expense: Decimal

    @property
    def net(self) -> Decimal:
        return self.income - self.expense


def _percent(part: Decimal, whole: Decimal) -> Decimal:
    return (part / whole * HUNDRED).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def account_totals(accounts: Iterable[Account]) -> AccountTotals:
    """Credit Card and Loan balances are liabilities; everything else is an asset."""
    assets = ZERO
    liabilities = ZERO
    for account in accounts:
        if account.is_liability:
            liabilities += account.balance
        else:
            assets += account.balance
    return AccountTotals(assets=assets, liabilities=liabilities, net_worth=assets - liabilities)


def monthly_income_per_account(incomes: Iterable[RecurringIncome]) -> dict[str, Decimal]:
    """Sum of active recurring incomes, keyed by account id."""
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for income in incomes:
        if income.is_active:
            totals[income.account_id] += income.amount
    return dict(totals)


def spending_by_category(expenses: Iterable[Expense]) -> dict[str, Decimal]:
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for expense in expenses:
        totals[expense.category] += expense.amount
    return dict(totals)


def budget_progress(
    budgets: Iterable[CategoryBudget],
    expenses: Iterable[Expense],
) -> BudgetProgress:
    """
    Compare one month's budgets with that month's spending.

    Categories with spending but no budget are included with a zero budget.
    Budgeted categories come first in their given order.
    """
    spent = spending_by_category(expenses)
    budgeted: dict[str, Decimal] = {}
    for budget in budgets:
        budgeted[budget.category] = budget.amount

    categories = [
        CategoryProgress(category=name, budgeted=amount, spent=spent.get(name, ZERO))
        for name, amount in budgeted.items()
    ]
    categories.extend(
        CategoryProgress(category=name, budgeted=ZERO, spent=amount)
        for name, amount in spent.items()
        if name not in budgeted
    )
    return BudgetProgress(
        categories=categories,
        total_budgeted=sum(budgeted.values(), ZERO),
        total_spent=sum(spent.values(), ZERO),
    )


def goal_progress(goal: Goal) -> int:
    """Whole-number percent towards the target, capped at 100."""
    if goal.target_amount <= 0:
        return 0
    percent = (goal.current_amount / goal.target_amount * HUNDRED).quantize(
        Decimal("1"), rounding=ROUND_HALF_UP
    )
    return min(100, int(percent))


def emi_total_paid(emi: EMI) -> Decimal:
    return sum((payment.amount for payment in emi.emi_payments), ZERO)


def emi_is_completed(emi: EMI) -> bool:
    return emi.total_amount > 0 and emi_total_paid(emi) >= emi.total_amount


def monthly_cash_flow(
    expenses: Iterable[Expense],
    topups: Iterable[TopUp],
) -> list[CashFlow]:
    """Income (top-ups) vs spending per month, oldest month first."""
    income: dict[str, Decimal] = defaultdict(lambda: ZERO)
    spending: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for topup in topups:
        income[topup.topup_time.strftime("%Y-%m")] += topup.amount
    for expense in expenses:
        if expense.date is not None:
            spending[expense.date.strftime("%Y-%m")] += expense.amount

    months = sorted(set(income) | set(spending))
    return [
        CashFlow(month=month, income=income.get(month, ZERO), expense=spending.get(month, ZERO))
        for month in months
    ]


def convert_amount(amount: Decimal, rate: Optional[Decimal]) -> Optional[Decimal]:
    """Convert with a looked-up rate; None when no rate is available."""
    if rate is None:
        return None
    return (amount * rate).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
