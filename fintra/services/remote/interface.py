"""
Abstract Remote Data Service Interface

DESIGN DECISION: The backend is a black box reached through table reads and
named remote procedures. Every record lives in exactly one workspace and is
changed only through these operations; the client never patches fields and
merges them locally.

The interface lets us:
1. Run the sync layer against the Supabase implementation in production
2. Substitute mocks in tests
3. Keep pages free of transport details

Error messages raised from here are shown to the user verbatim, so
implementations must put the server's human-readable message in the
exception text.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Optional

from fintra.models.finance import (
    EMI,
    Account,
    BudgetInput,
    CategoryBudget,
    Expense,
    Goal,
    NetWorthPoint,
    NewAccount,
    NewEmi,
    NewExpense,
    NewGoal,
    NewPayment,
    NewRecurringIncome,
    NewTopUp,
    PredictedBudget,
    RecurringIncome,
    TimeInterval,
    TopUp,
)
from fintra.models.workspace import (
    OrganizationMember,
    UserProfile,
    Workspace,
    WorkspaceRole,
    WorkspaceType,
)


class RemoteDataService(ABC):
    """
    Abstract interface for the remote data service.

    All operations are coroutines; each one is a suspension point of the
    calling flow.
    """

    async def aclose(self) -> None:
        """Release transport resources. Safe to call more than once."""

    # -------------------------------------------------------------------------
    # Workspaces and membership
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_workspaces(self) -> list[Workspace]:
        """
        List the workspaces the signed-in user belongs to.

        Returns:
            Workspaces with the user's role in each

        Raises:
            RemoteServiceError: If the call fails
        """

    @abstractmethod
    async def create_workspace(self, name: str, workspace_type: WorkspaceType) -> str:
        """
        Create a workspace owned by the signed-in user.

        Returns:
            The new workspace's id
        """

    @abstractmethod
    async def delete_workspace(self, workspace_id: str) -> None:
        """Delete a workspace and everything in it."""

    @abstractmethod
    async def get_workspace_members(self, workspace_id: str) -> list[OrganizationMember]:
        """List members of an organization workspace."""

    @abstractmethod
    async def add_member(
        self,
        workspace_id: str,
        email: str,
        role: WorkspaceRole = WorkspaceRole.MEMBER,
    ) -> None:
        """
        Invite an existing user into an organization workspace.

        Args:
            workspace_id: Target organization workspace
            email: Email address of the user to add
            role: Initial role

        Raises:
            NotFoundError: If no user has that email
            PermissionDeniedError: If the caller is not an admin
        """

    @abstractmethod
    async def update_member_role(
        self,
        workspace_id: str,
        user_id: str,
        role: WorkspaceRole,
    ) -> None:
        """Change a member's role."""

    @abstractmethod
    async def remove_member(self, workspace_id: str, user_id: str) -> None:
        """Remove a member from an organization workspace."""

    # -------------------------------------------------------------------------
    # User profile
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_user_profile(self, user_id: str) -> Optional[UserProfile]:
        """Get the profile row of a user, or None if it does not exist."""

    @abstractmethod
    async def update_user_profile(self, user_id: str, changes: dict[str, Any]) -> None:
        """Update columns of the user's profile row."""

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_accounts(self, workspace_id: str) -> list[Account]:
        """
        List accounts visible in a workspace.

        Includes accounts shared into the workspace from the owner's
        personal workspaces.
        """

    @abstractmethod
    async def add_account(
        self,
        workspace_id: str,
        user_id: str,
        account: NewAccount,
    ) -> None:
        """Create an account in a workspace."""

    @abstractmethod
    async def delete_account(self, account_id: str) -> None:
        """
        Delete an account.

        The server cascades the deletion to the account's transactions and
        recurring incomes.
        """

    @abstractmethod
    async def get_accounts_in_workspaces(self, workspace_ids: list[str]) -> list[Account]:
        """List accounts owned by any of the given workspaces."""

    @abstractmethod
    async def get_account_workspaces(self, account_id: str) -> list[str]:
        """Ids of the workspaces an account is shared with."""

    @abstractmethod
    async def share_account_with_workspaces(
        self,
        account_id: str,
        workspace_ids: list[str],
    ) -> None:
        """
        Replace the set of workspaces an account is shared with.

        Args:
            account_id: Account to share
            workspace_ids: Complete new set of target workspaces
        """

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_expenses(self, workspace_id: str) -> list[Expense]:
        """
        List expenses with their line items.

        Returns:
            Expenses ordered by date descending, then creation time
            descending
        """

    @abstractmethod
    async def get_expenses_between(
        self,
        workspace_id: str,
        start: date,
        end: date,
    ) -> list[Expense]:
        """List expenses dated on or after `start` and before `end`."""

    @abstractmethod
    async def add_expense(
        self,
        workspace_id: str,
        user_id: str,
        expense: NewExpense,
    ) -> None:
        """Create an expense; the server debits the account."""

    @abstractmethod
    async def update_expense(
        self,
        expense_id: str,
        user_id: str,
        expense: NewExpense,
    ) -> None:
        """Replace an expense; the server rebalances affected accounts."""

    @abstractmethod
    async def delete_expense(self, expense_id: str, user_id: str) -> None:
        """Delete an expense; the server credits the account back."""

    # -------------------------------------------------------------------------
    # Top-ups and recurring incomes
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_topups(self, workspace_id: str) -> list[TopUp]:
        """List top-ups."""

    @abstractmethod
    async def add_topup(self, workspace_id: str, user_id: str, topup: NewTopUp) -> None:
        """Create a top-up; the server credits the account."""

    @abstractmethod
    async def update_topup(self, topup_id: str, topup: NewTopUp) -> None:
        """Replace a top-up."""

    @abstractmethod
    async def delete_topup(self, topup_id: str) -> None:
        """Delete a top-up; the server debits the account back."""

    @abstractmethod
    async def get_recurring_incomes(self, workspace_id: str) -> list[RecurringIncome]:
        """List recurring incomes ordered by creation time."""

    @abstractmethod
    async def add_recurring_income(
        self,
        workspace_id: str,
        user_id: str,
        income: NewRecurringIncome,
    ) -> None:
        """Create a recurring income."""

    @abstractmethod
    async def update_recurring_income(self, income_id: str, income: NewRecurringIncome) -> None:
        """Replace a recurring income."""

    @abstractmethod
    async def delete_recurring_income(self, income_id: str) -> None:
        """Delete a recurring income."""

    # -------------------------------------------------------------------------
    # Goals
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_goals(self, workspace_id: str) -> list[Goal]:
        """List goals with their payment history, newest first."""

    @abstractmethod
    async def add_goal(self, workspace_id: str, user_id: str, goal: NewGoal) -> None:
        """Create a goal."""

    @abstractmethod
    async def update_goal(self, goal_id: str, goal: NewGoal) -> None:
        """Replace a goal's editable fields."""

    @abstractmethod
    async def delete_goal(self, goal_id: str) -> None:
        """Delete a goal and its payments."""

    @abstractmethod
    async def add_goal_payment(
        self,
        goal_id: str,
        user_id: str,
        payment: NewPayment,
        expense_title: str,
    ) -> None:
        """
        Record a payment towards a goal.

        The server also books an expense titled `expense_title` against the
        paying account and raises the goal's current amount.
        """

    @abstractmethod
    async def update_goal_payment(self, payment_id: str, payment: NewPayment) -> None:
        """Replace a goal payment."""

    @abstractmethod
    async def delete_goal_payment(self, payment_id: str) -> None:
        """Delete a goal payment and its booked expense."""

    # -------------------------------------------------------------------------
    # EMIs
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_emis(self, workspace_id: str) -> list[EMI]:
        """List EMIs with their payments, ordered by due day."""

    @abstractmethod
    async def add_emi(self, workspace_id: str, user_id: str, emi: NewEmi) -> None:
        """Create an EMI."""

    @abstractmethod
    async def delete_emi(self, emi_id: str) -> None:
        """Delete an EMI and its payments."""

    @abstractmethod
    async def add_emi_payment(
        self,
        emi_id: str,
        user_id: str,
        payment: NewPayment,
        expense_title: str,
    ) -> None:
        """Record an installment; the server books a matching expense."""

    @abstractmethod
    async def update_emi_payment(self, payment_id: str, payment: NewPayment) -> None:
        """Replace an EMI payment."""

    @abstractmethod
    async def delete_emi_payment(self, payment_id: str) -> None:
        """Delete an EMI payment and its booked expense."""

    # -------------------------------------------------------------------------
    # Budgets and analytics
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_category_budgets(
        self,
        workspace_id: str,
        year: int,
        month: int,
    ) -> list[CategoryBudget]:
        """List category budgets for one month."""

    @abstractmethod
    async def upsert_budgets(
        self,
        workspace_id: str,
        user_id: str,
        year: int,
        month: int,
        budgets: list[BudgetInput],
    ) -> None:
        """Insert or replace the given category budgets for one month."""

    @abstractmethod
    async def get_predicted_budgets(self, workspace_id: str) -> list[PredictedBudget]:
        """Server-side predicted spend per category."""

    @abstractmethod
    async def get_net_worth_history(
        self,
        workspace_id: str,
        start_date: date,
        end_date: date,
        interval: TimeInterval,
    ) -> list[NetWorthPoint]:
        """
        Net worth sampled over a date range.

        Args:
            workspace_id: Workspace to report on
            start_date: First day of the range
            end_date: Last day of the range
            interval: Sampling bucket

        Returns:
            Points in ascending date order
        """


class RemoteServiceError(Exception):
    """
    Base exception for remote data service operations.

    `str(error)` is the server's message and is safe to show to the user.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[str] = None,
    ):
        self.code = code
        self.details = details
        super().__init__(message)


class NotFoundError(RemoteServiceError):
    """Entity not found."""
    pass


class PermissionDeniedError(RemoteServiceError):
    """The signed-in user may not perform the operation."""
    pass


class RemoteConnectionError(RemoteServiceError):
    """Could not reach the remote data service."""
    pass


class RemoteTimeoutError(RemoteServiceError):
    """The remote data service did not answer in time."""
    pass
