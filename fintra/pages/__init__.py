"""
Pages Package

Per-page data definitions: a feature key, a batch of reads and the page's
writes, each bound to one workspace.
"""

from fintra.pages.accounts import AccountsPage
from fintra.pages.analytics import AnalyticsPage
from fintra.pages.base import WorkspacePage
from fintra.pages.budgeting import BudgetingPage, month_bounds, parse_budget_inputs
from fintra.pages.dashboard import DashboardPage
from fintra.pages.emis import EmiPage
from fintra.pages.goals import GoalsPage
from fintra.pages.members import MembersPage
from fintra.pages.sharing import AccountSharing, ShareableAccount
from fintra.pages.transactions import AggregatedItem, TransactionEntry, TransactionsPage

__all__ = [
    "AccountSharing",
    "AccountsPage",
    "AggregatedItem",
    "AnalyticsPage",
    "BudgetingPage",
    "DashboardPage",
    "EmiPage",
    "GoalsPage",
    "MembersPage",
    "ShareableAccount",
    "TransactionEntry",
    "TransactionsPage",
    "WorkspacePage",
    "month_bounds",
    "parse_budget_inputs",
]
