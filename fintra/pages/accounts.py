"""Accounts page: balances, net worth and recurring incomes."""

from decimal import Decimal

from fintra.models.finance import Account, NewAccount, NewRecurringIncome, RecurringIncome
from fintra.pages.base import WorkspacePage
from fintra.summaries import AccountTotals, account_totals, monthly_income_per_account
from fintra.sync import BatchRead, MutationResult, without_related


class AccountsPage(WorkspacePage):
    feature = "accounts_data"

    def reads(self) -> list[BatchRead]:
        ws = self.workspace_id
        return [
            BatchRead("accounts", lambda: self._remote.get_accounts(ws)),
            BatchRead("recurring_incomes", lambda: self._remote.get_recurring_incomes(ws)),
        ]

    def accounts(self) -> list[Account]:
        return self._collection("accounts", Account)

    def recurring_incomes(self) -> list[RecurringIncome]:
        return self._collection("recurring_incomes", RecurringIncome)

    def totals(self) -> AccountTotals:
        return account_totals(self.accounts())

    def monthly_income(self) -> dict[str, Decimal]:
        return monthly_income_per_account(self.recurring_incomes())

    async def add_account(self, account: NewAccount) -> None:
        await self._create(
            lambda: self._remote.add_account(self.workspace_id, self.user_id, account),
            f"add account {account.name}",
        )

    async def delete_account(self, account_id: str) -> MutationResult:
        """Delete an account; its recurring incomes disappear with it."""
        return await self._delete_optimistically(
            "accounts",
            account_id,
            lambda: self._remote.delete_account(account_id),
            f"delete account {account_id}",
            cascade=lambda s: without_related(s, "recurring_incomes", "account_id", account_id),
        )

    async def add_recurring_income(self, income: NewRecurringIncome) -> None:
        await self._create(
            lambda: self._remote.add_recurring_income(self.workspace_id, self.user_id, income),
            f"add recurring income {income.name}",
        )

    async def update_recurring_income(self, income_id: str, income: NewRecurringIncome) -> None:
        await self._create(
            lambda: self._remote.update_recurring_income(income_id, income),
            f"update recurring income {income_id}",
        )

    async def delete_recurring_income(self, income_id: str) -> MutationResult:
        return await self._delete_optimistically(
            "recurring_incomes",
            income_id,
            lambda: self._remote.delete_recurring_income(income_id),
            f"delete recurring income {income_id}",
        )
