"""
Dashboard Page

Everything the landing page shows in one batch: accounts, goals, expenses,
top-ups, recurring incomes and the server's budget predictions.
"""

from decimal import Decimal

from fintra.models.finance import (
    Account,
    Expense,
    Goal,
    NewAccount,
    NewExpense,
    NewTopUp,
    PredictedBudget,
    RecurringIncome,
    TopUp,
)
from fintra.pages.base import WorkspacePage
from fintra.summaries import AccountTotals, account_totals
from fintra.sync import BatchRead, MutationResult, with_balance_adjusted, without_related


class DashboardPage(WorkspacePage):
    feature = "dashboard"

    def reads(self) -> list[BatchRead]:
        ws = self.workspace_id
        return [
            BatchRead("accounts", lambda: self._remote.get_accounts(ws)),
            BatchRead("goals", lambda: self._remote.get_goals(ws)),
            BatchRead("expenses", lambda: self._remote.get_expenses(ws)),
            BatchRead("topups", lambda: self._remote.get_topups(ws)),
            BatchRead("recurring_incomes", lambda: self._remote.get_recurring_incomes(ws)),
            BatchRead("predicted_budgets", lambda: self._remote.get_predicted_budgets(ws)),
        ]

    def accounts(self) -> list[Account]:
        return self._collection("accounts", Account)

    def goals(self) -> list[Goal]:
        return self._collection("goals", Goal)

    def expenses(self) -> list[Expense]:
        return self._collection("expenses", Expense)

    def recent_expenses(self, limit: int = 5) -> list[Expense]:
        return self.expenses()[:limit]

    def topups(self) -> list[TopUp]:
        return self._collection("topups", TopUp)

    def recurring_incomes(self) -> list[RecurringIncome]:
        return self._collection("recurring_incomes", RecurringIncome)

    def predicted_budgets(self) -> list[PredictedBudget]:
        return self._collection("predicted_budgets", PredictedBudget)

    def totals(self) -> AccountTotals:
        return account_totals(self.accounts())

    # Writes

    async def add_expense(self, expense: NewExpense) -> None:
        await self._create(
            lambda: self._remote.add_expense(self.workspace_id, self.user_id, expense),
            f"add expense {expense.title}",
        )

    async def update_expense(self, expense_id: str, expense: NewExpense) -> None:
        await self._create(
            lambda: self._remote.update_expense(expense_id, self.user_id, expense),
            f"update expense {expense_id}",
        )

    async def delete_expense(self, expense_id: str) -> MutationResult:
        """Remove the expense and credit its amount back to the account locally."""
        expense = self._find("expenses", expense_id) or {}
        account_id = expense.get("account_id")
        amount = expense.get("amount") or Decimal("0")

        def restore_balance(snapshot: dict) -> dict:
            if not account_id:
                return snapshot
            return with_balance_adjusted(snapshot, account_id, amount)

        return await self._delete_optimistically(
            "expenses",
            expense_id,
            lambda: self._remote.delete_expense(expense_id, self.user_id),
            f"delete expense {expense_id}",
            cascade=restore_balance,
        )

    async def add_account(self, account: NewAccount) -> None:
        await self._create(
            lambda: self._remote.add_account(self.workspace_id, self.user_id, account),
            f"add account {account.name}",
        )

    async def delete_account(self, account_id: str) -> MutationResult:
        """Remove the account and, locally, the records the server cascades."""

        def cascade(snapshot: dict) -> dict:
            for collection in ("expenses", "topups", "recurring_incomes"):
                snapshot = without_related(snapshot, collection, "account_id", account_id)
            return snapshot

        return await self._delete_optimistically(
            "accounts",
            account_id,
            lambda: self._remote.delete_account(account_id),
            f"delete account {account_id}",
            cascade=cascade,
        )

    async def add_topup(self, topup: NewTopUp) -> None:
        await self._create(
            lambda: self._remote.add_topup(self.workspace_id, self.user_id, topup),
            f"add top-up {topup.name}",
        )
