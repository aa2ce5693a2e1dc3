"""Analytics page: spending breakdowns and a year of monthly net worth."""

from datetime import date
from decimal import Decimal
from typing import Optional

from fintra.models.finance import Expense, NetWorthPoint, TimeInterval, TopUp
from fintra.pages.base import WorkspacePage
from fintra.services.remote import RemoteDataService
from fintra.summaries import CashFlow, monthly_cash_flow, spending_by_category
from fintra.sync import BatchRead, SyncService


def year_ago(today: date) -> date:
    try:
        return today.replace(year=today.year - 1)
    except ValueError:
        # 29 February
        return today.replace(year=today.year - 1, day=28)


class AnalyticsPage(WorkspacePage):
    feature = "analytics"

    def __init__(
        self,
        sync: SyncService,
        remote: RemoteDataService,
        workspace_id: str,
        user_id: str,
        today: Optional[date] = None,
    ):
        self.today = today or date.today()
        super().__init__(sync, remote, workspace_id, user_id)

    def reads(self) -> list[BatchRead]:
        ws = self.workspace_id
        start = year_ago(self.today)
        return [
            BatchRead("expenses", lambda: self._remote.get_expenses(ws)),
            BatchRead("topups", lambda: self._remote.get_topups(ws)),
            BatchRead(
                "net_worth_history",
                lambda: self._remote.get_net_worth_history(ws, start, self.today, TimeInterval.MONTH),
                label="Net Worth History",
            ),
        ]

    def expenses(self, start: Optional[date] = None, end: Optional[date] = None) -> list[Expense]:
        return [
            e for e in self._collection("expenses", Expense)
            if e.date is not None and _within(e.date, start, end)
        ]

    def topups(self, start: Optional[date] = None, end: Optional[date] = None) -> list[TopUp]:
        return [
            t for t in self._collection("topups", TopUp)
            if _within(t.topup_time.date(), start, end)
        ]

    def net_worth_history(self, start: Optional[date] = None, end: Optional[date] = None) -> list[NetWorthPoint]:
        return [
            p for p in self._collection("net_worth_history", NetWorthPoint)
            if _within(p.snapshot_date, start, end)
        ]

    def category_breakdown(self, start: Optional[date] = None, end: Optional[date] = None) -> dict[str, Decimal]:
        return spending_by_category(self.expenses(start, end))

    def cash_flow(self, start: Optional[date] = None, end: Optional[date] = None) -> list[CashFlow]:
        return monthly_cash_flow(self.expenses(start, end), self.topups(start, end))


def _within(value: date, start: Optional[date], end: Optional[date]) -> bool:
    if start is not None and value < start:
        return False
    if end is not None and value > end:
        return False
    return True
