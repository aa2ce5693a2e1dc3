"""
Supabase Remote Data Service Implementation

Talks to the Supabase PostgREST endpoint over HTTP:
- RPCs:        POST   /rest/v1/rpc/<name>   with p_-prefixed JSON arguments
- Table reads: GET    /rest/v1/<table>?select=...&<column>=eq.<value>&order=...
- Writes:      POST / PATCH / DELETE on /rest/v1/<table> with the same filters

Balance updates, cascades and predictions all happen server side; this
module only moves arguments in and rows out.

TRADEOFFS:
- No automatic retry. A failed call is reported and the user retries.
- Every request carries a timeout; httpx raises and we translate.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from fintra.config import SupabaseSettings, get_settings
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
from fintra.services.remote.interface import (
    NotFoundError,
    PermissionDeniedError,
    RemoteConnectionError,
    RemoteDataService,
    RemoteServiceError,
    RemoteTimeoutError,
)


DEFAULT_TIMEOUT_SECONDS = 30.0

# PostgREST / Postgres error codes with a dedicated exception.
NOT_FOUND_CODES = {"PGRST116", "P0002"}
PERMISSION_CODES = {"42501", "PGRST301"}

Filters = list[tuple[str, str]]

ModelT = TypeVar("ModelT", bound=BaseModel)


def encode(value: Any) -> Any:
    """Convert models, decimals, dates and enums into JSON-ready values."""
    if isinstance(value, BaseModel):
        return encode(value.model_dump())
    if isinstance(value, dict):
        return {key: encode(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode(item) for item in value]
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


def error_from_response(response: httpx.Response) -> RemoteServiceError:
    """Build the exception for a failed PostgREST response."""
    message = None
    code = None
    details = None
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        message = body.get("message") or body.get("error_description") or body.get("error")
        code = body.get("code")
        details = body.get("details") or body.get("hint")

    if not message:
        message = response.text.strip() or f"HTTP {response.status_code}"

    if response.status_code == 404 or code in NOT_FOUND_CODES:
        return NotFoundError(message, code=code, details=details)
    if response.status_code in (401, 403) or code in PERMISSION_CODES:
        return PermissionDeniedError(message, code=code, details=details)
    return RemoteServiceError(message, code=code, details=details)


class SupabaseClient:
    """
    Low-level PostgREST client wrapper.

    Owns the httpx.AsyncClient. The client is created lazily and re-created
    if it was closed, because the Streamlit shell runs every interaction on
    a fresh event loop.
    """

    def __init__(
        self,
        settings: Optional[SupabaseSettings] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._settings = settings or get_settings().supabase
        self._timeout = timeout or DEFAULT_TIMEOUT_SECONDS
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def base_url(self) -> str:
        return f"{self._settings.url}/rest/v1"

    def _headers(self) -> dict[str, str]:
        token = self._settings.access_token or self._settings.anon_key
        return {
            "apikey": self._settings.anon_key,
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept-Profile": self._settings.schema_name,
            "Content-Profile": self._settings.schema_name,
        }

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._headers(),
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Filters] = None,
        payload: Any = None,
        prefer: Optional[str] = None,
    ) -> Any:
        headers = {"Prefer": prefer} if prefer else None
        try:
            response = await self._get_client().request(
                method,
                path,
                params=params,
                json=encode(payload) if payload is not None else None,
                headers=headers,
            )
        except httpx.TimeoutException as e:
            raise RemoteTimeoutError(
                f"Request timed out after {self._timeout:g} seconds"
            ) from e
        except httpx.TransportError as e:
            raise RemoteConnectionError(str(e) or "network error") from e

        if response.status_code >= 400:
            raise error_from_response(response)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise RemoteServiceError(
                f"Unexpected response from server (HTTP {response.status_code})"
            ) from e

    async def rpc(self, name: str, params: Optional[dict[str, Any]] = None) -> Any:
        """Invoke a named remote procedure."""
        return await self._request("POST", f"/rpc/{name}", payload=params or {})

    async def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: Optional[Filters] = None,
        order: Optional[str] = None,
    ) -> list[dict]:
        """Read rows from a table."""
        params: Filters = [("select", columns)]
        params.extend(filters or [])
        if order:
            params.append(("order", order))
        return await self._request("GET", f"/{table}", params=params) or []

    async def insert(self, table: str, rows: list[dict]) -> None:
        await self._request("POST", f"/{table}", payload=rows, prefer="return=minimal")

    async def update(self, table: str, values: dict, filters: Filters) -> None:
        await self._request(
            "PATCH", f"/{table}", params=filters, payload=values, prefer="return=minimal"
        )

    async def delete(self, table: str, filters: Filters) -> None:
        await self._request("DELETE", f"/{table}", params=filters, prefer="return=minimal")


def eq(column: str, value: Any) -> tuple[str, str]:
    return (column, f"eq.{encode(value)}")


def in_(column: str, values: list[str]) -> tuple[str, str]:
    return (column, f"in.({','.join(values)})")


def parse_rows(model: type[ModelT], rows: Any) -> list[ModelT]:
    """Parse table rows into read models. A malformed row fails the whole read."""
    try:
        return [model.model_validate(row) for row in rows or []]
    except ValidationError as e:
        raise RemoteServiceError(
            f"Unexpected {model.__name__} data from server", details=str(e)
        ) from e


class SupabaseDataService(RemoteDataService):
    """
    Supabase implementation of the remote data service.

    Table rows are parsed into the pydantic read models; nested relations
    (expense items, goal and EMI payments) are embedded through PostgREST
    resource embedding.
    """

    def __init__(self, client: Optional[SupabaseClient] = None):
        self._client = client or SupabaseClient()

    async def aclose(self) -> None:
        await self._client.aclose()

    # Workspaces and membership

    async def get_workspaces(self) -> list[Workspace]:
        rows = await self._client.rpc("get_workspaces_for_user")
        return parse_rows(Workspace, rows)

    async def create_workspace(self, name: str, workspace_type: WorkspaceType) -> str:
        new_id = await self._client.rpc(
            "create_workspace", {"p_name": name, "p_type": workspace_type}
        )
        return str(new_id)

    async def delete_workspace(self, workspace_id: str) -> None:
        await self._client.rpc("delete_workspace", {"p_workspace_id": workspace_id})

    async def get_workspace_members(self, workspace_id: str) -> list[OrganizationMember]:
        rows = await self._client.select(
            "workspace_members",
            columns="user_id,role,users(full_name,id)",
            filters=[eq("workspace_id", workspace_id)],
        )
        members = []
        for row in rows:
            user = row.get("users") or {}
            members.append(
                OrganizationMember(
                    id=row["user_id"],
                    display_name=user.get("full_name") or "Unknown User",
                    role=row.get("role") or WorkspaceRole.MEMBER,
                )
            )
        return members

    async def add_member(
        self,
        workspace_id: str,
        email: str,
        role: WorkspaceRole = WorkspaceRole.MEMBER,
    ) -> None:
        await self._client.rpc(
            "add_workspace_member",
            {"p_workspace_id": workspace_id, "p_user_email": email, "p_role": role},
        )

    async def update_member_role(
        self,
        workspace_id: str,
        user_id: str,
        role: WorkspaceRole,
    ) -> None:
        await self._client.rpc(
            "update_workspace_member_role",
            {"p_workspace_id": workspace_id, "p_user_id": user_id, "p_new_role": role},
        )

    async def remove_member(self, workspace_id: str, user_id: str) -> None:
        await self._client.rpc(
            "delete_workspace_member",
            {"p_workspace_id": workspace_id, "p_user_id": user_id},
        )

    # User profile

    async def get_user_profile(self, user_id: str) -> Optional[UserProfile]:
        rows = await self._client.select("users", filters=[eq("id", user_id)])
        profiles = parse_rows(UserProfile, rows[:1])
        return profiles[0] if profiles else None

    async def update_user_profile(self, user_id: str, changes: dict[str, Any]) -> None:
        await self._client.update("users", changes, [eq("id", user_id)])

    # Accounts

    async def get_accounts(self, workspace_id: str) -> list[Account]:
        rows = await self._client.rpc(
            "get_accounts_for_workspace", {"p_workspace_id": workspace_id}
        )
        return parse_rows(Account, rows)

    async def add_account(self, workspace_id: str, user_id: str, account: NewAccount) -> None:
        row = account.model_dump()
        row.update(workspace_id=workspace_id, user_id=user_id)
        await self._client.insert("accounts", [row])

    async def delete_account(self, account_id: str) -> None:
        await self._client.rpc("delete_account", {"p_account_id": account_id})

    async def get_accounts_in_workspaces(self, workspace_ids: list[str]) -> list[Account]:
        if not workspace_ids:
            return []
        rows = await self._client.select(
            "accounts", filters=[in_("workspace_id", workspace_ids)]
        )
        return parse_rows(Account, rows)

    async def get_account_workspaces(self, account_id: str) -> list[str]:
        rows = await self._client.select(
            "account_workspaces",
            columns="workspace_id",
            filters=[eq("account_id", account_id)],
        )
        return [row["workspace_id"] for row in rows]

    async def share_account_with_workspaces(
        self,
        account_id: str,
        workspace_ids: list[str],
    ) -> None:
        await self._client.rpc(
            "share_account_with_workspaces",
            {"p_account_id": account_id, "p_workspace_ids": workspace_ids},
        )

    # Expenses

    async def get_expenses(self, workspace_id: str) -> list[Expense]:
        rows = await self._client.select(
            "expenses",
            columns="*,expense_items(*)",
            filters=[eq("workspace_id", workspace_id)],
            order="date.desc.nullslast,created_at.desc",
        )
        return parse_rows(Expense, rows)

    async def get_expenses_between(
        self,
        workspace_id: str,
        start: date,
        end: date,
    ) -> list[Expense]:
        rows = await self._client.select(
            "expenses",
            filters=[
                eq("workspace_id", workspace_id),
                ("date", f"gte.{start.isoformat()}"),
                ("date", f"lt.{end.isoformat()}"),
            ],
        )
        return parse_rows(Expense, rows)

    async def add_expense(self, workspace_id: str, user_id: str, expense: NewExpense) -> None:
        await self._client.rpc(
            "add_expense",
            {
                "p_user_id": user_id,
                "p_account_id": expense.account_id,
                "p_title": expense.title,
                "p_amount": expense.amount,
                "p_category": expense.category,
                "p_date": expense.date,
                "p_time": expense.time,
                "p_description": expense.description,
                "p_items": expense.rpc_items(),
                "p_workspace_id": workspace_id,
            },
        )

    async def update_expense(self, expense_id: str, user_id: str, expense: NewExpense) -> None:
        await self._client.rpc(
            "update_expense",
            {
                "p_expense_id": expense_id,
                "p_user_id": user_id,
                "p_new_account_id": expense.account_id,
                "p_new_title": expense.title,
                "p_new_amount": expense.amount,
                "p_new_category": expense.category,
                "p_new_date": expense.date,
                "p_new_time": expense.time,
                "p_new_description": expense.description,
                "p_new_items": expense.rpc_items(),
            },
        )

    async def delete_expense(self, expense_id: str, user_id: str) -> None:
        await self._client.rpc(
            "delete_expense", {"p_expense_id": expense_id, "p_user_id": user_id}
        )

    # Top-ups and recurring incomes

    async def get_topups(self, workspace_id: str) -> list[TopUp]:
        rows = await self._client.select("topups", filters=[eq("workspace_id", workspace_id)])
        return parse_rows(TopUp, rows)

    async def add_topup(self, workspace_id: str, user_id: str, topup: NewTopUp) -> None:
        await self._client.rpc(
            "add_topup",
            {
                "p_account_id": topup.account_id,
                "p_amount": topup.amount,
                "p_name": topup.name,
                "p_description": topup.description,
                "p_topup_time": topup.topup_time,
                "p_user_id": user_id,
                "p_workspace_id": workspace_id,
            },
        )

    async def update_topup(self, topup_id: str, topup: NewTopUp) -> None:
        await self._client.update("topups", topup.model_dump(), [eq("id", topup_id)])

    async def delete_topup(self, topup_id: str) -> None:
        await self._client.rpc("delete_topup", {"p_topup_id": topup_id})

    async def get_recurring_incomes(self, workspace_id: str) -> list[RecurringIncome]:
        rows = await self._client.select(
            "recurring_incomes",
            filters=[eq("workspace_id", workspace_id)],
            order="created_at",
        )
        return parse_rows(RecurringIncome, rows)

    async def add_recurring_income(
        self,
        workspace_id: str,
        user_id: str,
        income: NewRecurringIncome,
    ) -> None:
        row = income.model_dump()
        row.update(workspace_id=workspace_id, user_id=user_id)
        await self._client.insert("recurring_incomes", [row])

    async def update_recurring_income(self, income_id: str, income: NewRecurringIncome) -> None:
        await self._client.update("recurring_incomes", income.model_dump(), [eq("id", income_id)])

    async def delete_recurring_income(self, income_id: str) -> None:
        await self._client.delete("recurring_incomes", [eq("id", income_id)])

    # Goals

    async def get_goals(self, workspace_id: str) -> list[Goal]:
        rows = await self._client.select(
            "goals",
            columns="*,goal_payments(*)",
            filters=[eq("workspace_id", workspace_id)],
            order="created_at.desc",
        )
        return parse_rows(Goal, rows)

    async def add_goal(self, workspace_id: str, user_id: str, goal: NewGoal) -> None:
        row = goal.model_dump()
        row.update(workspace_id=workspace_id, user_id=user_id)
        await self._client.insert("goals", [row])

    async def update_goal(self, goal_id: str, goal: NewGoal) -> None:
        await self._client.rpc(
            "update_goal",
            {
                "p_goal_id": goal_id,
                "p_title": goal.title,
                "p_description": goal.description,
                "p_target_amount": goal.target_amount,
                "p_current_amount": goal.current_amount,
                "p_target_date": goal.target_date,
                "p_status": goal.status,
                "p_icon_name": goal.icon_name,
            },
        )

    async def delete_goal(self, goal_id: str) -> None:
        await self._client.rpc("delete_goal", {"p_goal_id": goal_id})

    async def add_goal_payment(
        self,
        goal_id: str,
        user_id: str,
        payment: NewPayment,
        expense_title: str,
    ) -> None:
        await self._client.rpc(
            "add_goal_payment",
            {
                "p_goal_id": goal_id,
                "p_account_id": payment.account_id,
                "p_amount": payment.amount,
                "p_payment_type": payment.payment_type,
                "p_date": payment.payment_date,
                "p_expense_title": expense_title,
                "p_user_id": user_id,
            },
        )

    async def update_goal_payment(self, payment_id: str, payment: NewPayment) -> None:
        await self._client.rpc(
            "update_goal_payment",
            {
                "p_payment_id": payment_id,
                "p_new_account_id": payment.account_id,
                "p_new_amount": payment.amount,
                "p_new_payment_type": payment.payment_type,
                "p_new_date": payment.payment_date,
            },
        )

    async def delete_goal_payment(self, payment_id: str) -> None:
        await self._client.rpc("delete_goal_payment", {"p_payment_id": payment_id})

    # EMIs

    async def get_emis(self, workspace_id: str) -> list[EMI]:
        rows = await self._client.select(
            "emis",
            columns="*,emi_payments(*)",
            filters=[eq("workspace_id", workspace_id)],
            order="due_date_of_month",
        )
        return parse_rows(EMI, rows)

    async def add_emi(self, workspace_id: str, user_id: str, emi: NewEmi) -> None:
        row = emi.model_dump()
        row.update(workspace_id=workspace_id, user_id=user_id)
        await self._client.insert("emis", [row])

    async def delete_emi(self, emi_id: str) -> None:
        await self._client.rpc("delete_emi", {"p_emi_id": emi_id})

    async def add_emi_payment(
        self,
        emi_id: str,
        user_id: str,
        payment: NewPayment,
        expense_title: str,
    ) -> None:
        await self._client.rpc(
            "add_emi_payment",
            {
                "p_emi_id": emi_id,
                "p_account_id": payment.account_id,
                "p_amount": payment.amount,
                "p_payment_type": payment.payment_type,
                "p_date": payment.payment_date,
                "p_expense_title": expense_title,
                "p_user_id": user_id,
            },
        )

    async def update_emi_payment(self, payment_id: str, payment: NewPayment) -> None:
        await self._client.rpc(
            "update_emi_payment",
            {
                "p_payment_id": payment_id,
                "p_new_account_id": payment.account_id,
                "p_new_amount": payment.amount,
                "p_new_payment_type": payment.payment_type,
                "p_new_date": payment.payment_date,
            },
        )

    async def delete_emi_payment(self, payment_id: str) -> None:
        await self._client.rpc("delete_emi_payment", {"p_payment_id": payment_id})

    # Budgets and analytics

    async def get_category_budgets(
        self,
        workspace_id: str,
        year: int,
        month: int,
    ) -> list[CategoryBudget]:
        rows = await self._client.select(
            "category_budgets",
            filters=[eq("workspace_id", workspace_id), eq("year", year), eq("month", month)],
        )
        return parse_rows(CategoryBudget, rows)

    async def upsert_budgets(
        self,
        workspace_id: str,
        user_id: str,
        year: int,
        month: int,
        budgets: list[BudgetInput],
    ) -> None:
        rows = [
            {
                "user_id": user_id,
                "workspace_id": workspace_id,
                "year": year,
                "month": month,
                "category": budget.category,
                "amount": budget.amount,
            }
            for budget in budgets
        ]
        await self._client.rpc("upsert_category_budgets", {"budgets": rows})

    async def get_predicted_budgets(self, workspace_id: str) -> list[PredictedBudget]:
        rows = await self._client.rpc(
            "get_predicted_budgets", {"p_workspace_id": workspace_id}
        )
        return parse_rows(PredictedBudget, rows)

    async def get_net_worth_history(
        self,
        workspace_id: str,
        start_date: date,
        end_date: date,
        interval: TimeInterval,
    ) -> list[NetWorthPoint]:
        rows = await self._client.rpc(
            "get_net_worth_history",
            {
                "p_workspace_id": workspace_id,
                "p_start_date": start_date,
                "p_end_date": end_date,
                "p_time_interval": interval,
            },
        )
        return parse_rows(NetWorthPoint, rows)
