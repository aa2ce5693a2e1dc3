"""
Budgeting Page

Category budgets for one calendar month next to that month's spending and
the server's predictions. Each month is cached under its own feature key.
"""

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from fintra.models.finance import (
    EXPENSE_CATEGORIES,
    BudgetInput,
    CategoryBudget,
    Expense,
    PredictedBudget,
)
from fintra.pages.base import WorkspacePage
from fintra.services.remote import RemoteDataService
from fintra.summaries import BudgetProgress, budget_progress
from fintra.sync import (
    BatchRead,
    MutationResult,
    SyncService,
    to_snapshot,
    with_collection,
)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First day of the month and first day of the next month."""
    start = date(year, month, 1)
    end = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    return start, end


def parse_budget_inputs(values: dict[str, Union[str, Decimal, None]]) -> list[BudgetInput]:
    """
    Turn the form's per-category fields into budget rows.

    Blank fields are skipped; unparseable or non-finite numbers count as 0.
    """
    budgets = []
    for category, raw in values.items():
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            continue
        try:
            amount = Decimal(str(raw).strip())
        except InvalidOperation:
            amount = Decimal("0")
        if not amount.is_finite():
            amount = Decimal("0")
        budgets.append(BudgetInput(category=category, amount=max(amount, Decimal("0"))))
    return budgets


class BudgetingPage(WorkspacePage):

    def __init__(
        self,
        sync: SyncService,
        remote: RemoteDataService,
        workspace_id: str,
        user_id: str,
        year: Optional[int] = None,
        month: Optional[int] = None,
    ):
        today = date.today()
        self.year = year or today.year
        self.month = month or today.month
        super().__init__(sync, remote, workspace_id, user_id)

    def feature_key(self) -> str:
        return f"budgeting_{self.year:04d}_{self.month:02d}"

    def reads(self) -> list[BatchRead]:
        ws = self.workspace_id
        start, end = month_bounds(self.year, self.month)
        return [
            BatchRead("budgets", lambda: self._remote.get_category_budgets(ws, self.year, self.month)),
            BatchRead("expenses", lambda: self._remote.get_expenses_between(ws, start, end)),
            BatchRead("predicted_budgets", lambda: self._remote.get_predicted_budgets(ws)),
        ]

    def budgets(self) -> list[CategoryBudget]:
        return self._collection("budgets", CategoryBudget)

    def expenses(self) -> list[Expense]:
        return self._collection("expenses", Expense)

    def predicted_budgets(self) -> list[PredictedBudget]:
        return self._collection("predicted_budgets", PredictedBudget)

    def form_values(self) -> dict[str, str]:
        """Current budget amounts keyed by category, for every known category."""
        values = {category: "" for category in EXPENSE_CATEGORIES}
        for budget in self.budgets():
            values[budget.category] = str(budget.amount)
        return values

    def progress(self) -> BudgetProgress:
        return budget_progress(self.budgets(), self.expenses())

    async def save_budgets(self, values: dict[str, Union[str, Decimal, None]]) -> MutationResult:
        """Replace the month's budgets with the form values, optimistically."""
        budgets = parse_budget_inputs(values)
        rows = [
            CategoryBudget(
                workspace_id=self.workspace_id,
                user_id=self.user_id,
                year=self.year,
                month=self.month,
                category=budget.category,
                amount=budget.amount,
            )
            for budget in budgets
        ]
        return await self.resource.mutate(
            lambda s: with_collection(s, "budgets", to_snapshot(rows)),
            lambda: self._remote.upsert_budgets(
                self.workspace_id, self.user_id, self.year, self.month, budgets
            ),
            f"save budgets for {self.year}-{self.month:02d}",
        )
