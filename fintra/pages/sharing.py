"""
Account Sharing

Lets the owner of personal accounts share them into organization
workspaces. This panel is not cached: it reads fresh every time it opens,
and each toggle is applied optimistically and reverted if the server
refuses it.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from fintra.models.finance import Account
from fintra.models.workspace import Workspace, WorkspaceType
from fintra.services.remote import RemoteDataService, RemoteServiceError
from fintra.sync import MutationResult, optimistic_mutate


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ShareableAccount:
    account: Account
    workspace_name: str

    @property
    def label(self) -> str:
        return f"{self.account.name} (from {self.workspace_name})"


class AccountSharing:
    """State and actions of the account sharing panel."""

    def __init__(self, remote: RemoteDataService, workspaces: list[Workspace]):
        self._remote = remote
        self._workspaces = list(workspaces)
        self.accounts: list[ShareableAccount] = []
        self.selected_account_id: Optional[str] = None
        self.shared_with: set[str] = set()
        self.loading = False
        self.toggling = False
        self.message: Optional[str] = None

    def organization_workspaces(self) -> list[Workspace]:
        return [w for w in self._workspaces if w.type == WorkspaceType.ORGANIZATION]

    async def load(self) -> None:
        """Fetch accounts of the user's personal workspaces and select the first."""
        personal = {w.id: w.name for w in self._workspaces if w.type == WorkspaceType.PERSONAL}
        if not personal:
            self.accounts = []
            return

        self.loading = True
        try:
            accounts = await self._remote.get_accounts_in_workspaces(list(personal))
        except RemoteServiceError as e:
            logger.error("shareable_accounts_fetch_failed", error=str(e))
            self.accounts = []
            self.message = f"Error: {e}"
            return
        finally:
            self.loading = False

        self.accounts = [
            ShareableAccount(account=a, workspace_name=personal.get(a.workspace_id or "", "Unknown Workspace"))
            for a in accounts
        ]
        if self.accounts and self.selected_account_id is None:
            await self.select_account(self.accounts[0].account.id)

    async def select_account(self, account_id: Optional[str]) -> None:
        self.selected_account_id = account_id
        self.message = None
        if not account_id:
            self.shared_with = set()
            return

        self.loading = True
        try:
            self.shared_with = set(await self._remote.get_account_workspaces(account_id))
        except RemoteServiceError as e:
            logger.error("sharing_status_fetch_failed", account_id=account_id, error=str(e))
            self.shared_with = set()
            self.message = "Error: Could not fetch sharing status."
        finally:
            self.loading = False

    async def toggle(self, workspace_id: str) -> Optional[MutationResult]:
        """Share or unshare the selected account with one workspace."""
        if not self.selected_account_id or self.toggling:
            return None
        account_id = self.selected_account_id

        def apply(current: set[str]) -> set[str]:
            return current ^ {workspace_id}

        def publish(value: set[str]) -> None:
            self.shared_with = value

        target = apply(self.shared_with)
        self.toggling = True
        self.message = None
        try:
            result = await optimistic_mutate(
                self.shared_with,
                apply,
                lambda: self._remote.share_account_with_workspaces(account_id, sorted(target)),
                publish,
            )
        finally:
            self.toggling = False

        self.message = "Settings updated!" if result.applied else f"Error: {result.error}"
        return result
