"""
Transactions Page

Expenses and top-ups merged into one feed with type/period filters, search
and sorting, plus an item view that aggregates expense line items by name.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional, Union

from fintra.models.finance import Account, Expense, ExpenseItem, NewExpense, NewTopUp, TopUp
from fintra.pages.base import WorkspacePage
from fintra.sync import BatchRead, MutationResult, with_balance_adjusted


SORT_OPTIONS = ("date-desc", "date-asc", "amount-desc", "amount-asc")
ITEM_SORT_OPTIONS = (
    "spent-desc", "spent-asc", "quantity-desc", "quantity-asc", "alpha-asc", "alpha-desc",
)


@dataclass(frozen=True)
class TransactionEntry:
    """One row of the unified feed."""

    id: str
    kind: str
    title: str
    amount: Decimal
    when: Optional[date]
    created_at: Optional[datetime]
    category: Optional[str]
    description: Optional[str]
    record: Union[Expense, TopUp]


@dataclass
class AggregatedItem:
    """All purchases of one item name across expenses."""

    name: str
    total_quantity: Decimal = Decimal("0")
    total_spent: Decimal = Decimal("0")
    occurrences: list[tuple[str, ExpenseItem]] = field(default_factory=list)


def period_start(period: str, today: date) -> Optional[date]:
    if period == "week":
        return today - timedelta(days=7)
    if period == "month":
        return today.replace(day=1)
    if period == "year":
        return today.replace(month=1, day=1)
    return None


EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


def _sort_key_date(entry: TransactionEntry):
    created = entry.created_at
    if created is not None and created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return (entry.when or date.min, created or EARLIEST)


class TransactionsPage(WorkspacePage):
    feature = "transactions"

    def reads(self) -> list[BatchRead]:
        ws = self.workspace_id
        return [
            BatchRead("expenses", lambda: self._remote.get_expenses(ws)),
            BatchRead("topups", lambda: self._remote.get_topups(ws)),
            BatchRead("accounts", lambda: self._remote.get_accounts(ws)),
        ]

    def expenses(self) -> list[Expense]:
        return self._collection("expenses", Expense)

    def topups(self) -> list[TopUp]:
        return self._collection("topups", TopUp)

    def accounts(self) -> list[Account]:
        return self._collection("accounts", Account)

    def entries(self) -> list[TransactionEntry]:
        entries = [
            TransactionEntry(
                id=e.id, kind="expense", title=e.title, amount=e.amount, when=e.date,
                created_at=e.created_at, category=e.category, description=e.description, record=e,
            )
            for e in self.expenses()
        ]
        entries.extend(
            TransactionEntry(
                id=t.id, kind="topup", title=t.name, amount=t.amount, when=t.topup_time.date(),
                created_at=t.created_at, category="Income", description=t.description, record=t,
            )
            for t in self.topups()
        )
        return entries

    def feed(
        self,
        search: str = "",
        kind: str = "all",
        period: str = "all",
        sort: str = "date-desc",
        today: Optional[date] = None,
    ) -> list[TransactionEntry]:
        """
        Filtered and sorted feed.

        Args:
            search: Matches title, amount, category or an expense item name
            kind: "all", "expense" or "topup"
            period: "all", "week", "month" or "year"
            sort: One of SORT_OPTIONS
        """
        entries = self.entries()
        if kind != "all":
            entries = [e for e in entries if e.kind == kind]

        start = period_start(period, today or date.today())
        if start is not None:
            entries = [e for e in entries if e.when is not None and e.when >= start]

        needle = search.strip().lower()
        if needle:
            entries = [e for e in entries if self._matches(e, needle)]

        if sort == "date-asc":
            entries.sort(key=_sort_key_date)
        elif sort == "amount-desc":
            entries.sort(key=lambda e: e.amount, reverse=True)
        elif sort == "amount-asc":
            entries.sort(key=lambda e: e.amount)
        else:
            entries.sort(key=_sort_key_date, reverse=True)
        return entries

    @staticmethod
    def _matches(entry: TransactionEntry, needle: str) -> bool:
        if needle in entry.title.lower() or needle in str(entry.amount):
            return True
        if entry.category and needle in entry.category.lower():
            return True
        if isinstance(entry.record, Expense):
            return any(needle in item.name.lower() for item in entry.record.expense_items)
        return False

    def item_summary(self, search: str = "", sort: str = "spent-desc") -> list[AggregatedItem]:
        """Expense line items grouped by case-insensitive name."""
        grouped: dict[str, AggregatedItem] = {}
        for expense in self.feed(search=search, kind="expense"):
            for item in expense.record.expense_items:
                key = item.name.strip().lower()
                if not key:
                    continue
                entry = grouped.setdefault(key, AggregatedItem(name=item.name))
                entry.total_quantity += item.quantity
                entry.total_spent += item.total
                entry.occurrences.append((expense.id, item))

        items = list(grouped.values())
        if sort.startswith("alpha"):
            items.sort(key=lambda i: i.name.lower(), reverse=sort == "alpha-desc")
        elif sort.startswith("quantity"):
            items.sort(key=lambda i: i.total_quantity, reverse=sort == "quantity-desc")
        else:
            items.sort(key=lambda i: i.total_spent, reverse=sort != "spent-asc")
        return items

    # Writes

    async def update_expense(self, expense_id: str, expense: NewExpense) -> None:
        await self._create(
            lambda: self._remote.update_expense(expense_id, self.user_id, expense),
            f"update expense {expense_id}",
        )

    async def delete_expense(self, expense_id: str) -> MutationResult:
        expense = self._find("expenses", expense_id) or {}
        account_id = expense.get("account_id")
        amount = expense.get("amount") or 0
        return await self._delete_optimistically(
            "expenses",
            expense_id,
            lambda: self._remote.delete_expense(expense_id, self.user_id),
            f"delete expense {expense_id}",
            cascade=(lambda s: with_balance_adjusted(s, account_id, amount)) if account_id else None,
        )

    async def update_topup(self, topup_id: str, topup: NewTopUp) -> None:
        await self._create(
            lambda: self._remote.update_topup(topup_id, topup),
            f"update top-up {topup_id}",
        )

    async def delete_topup(self, topup_id: str) -> MutationResult:
        """Remove a top-up and take its amount back off the account locally."""
        topup = self._find("topups", topup_id) or {}
        account_id = topup.get("account_id")
        amount = topup.get("amount") or 0
        return await self._delete_optimistically(
            "topups",
            topup_id,
            lambda: self._remote.delete_topup(topup_id),
            f"delete top-up {topup_id}",
            cascade=(
                (lambda s: with_balance_adjusted(s, account_id, -Decimal(str(amount))))
                if account_id else None
            ),
        )
