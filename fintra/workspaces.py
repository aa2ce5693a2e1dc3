"""
Workspace Manager

Knows which workspaces the user belongs to and which one is current. The
current workspace id is remembered in the user's preferences under
`fintra_current_workspace_id`.

Selection order on load:
1. The remembered id, if the user still belongs to it
2. The user's initial personal workspace
3. The first workspace returned

Switching does not touch any cache: every cache key already carries the
workspace id.
"""

from collections.abc import MutableMapping
from typing import Optional

import structlog

from fintra.audit import AuditLogger
from fintra.models.audit import AuditEventBuilder
from fintra.models.workspace import Workspace, WorkspaceRole, WorkspaceType
from fintra.services.remote import RemoteDataService, RemoteServiceError


logger = structlog.get_logger(__name__)

CURRENT_WORKSPACE_KEY = "fintra_current_workspace_id"


class WorkspaceManager:
    """Workspace list, current selection, creation and deletion."""

    def __init__(
        self,
        remote: RemoteDataService,
        preferences: MutableMapping[str, str],
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._remote = remote
        self._preferences = preferences
        self._audit = audit_logger or AuditLogger()
        self.workspaces: list[Workspace] = []
        self.current_id: Optional[str] = None
        self.error: Optional[str] = None

    @property
    def current(self) -> Optional[Workspace]:
        return self.get(self.current_id) if self.current_id else None

    @property
    def current_role(self) -> WorkspaceRole:
        current = self.current
        return current.role if current else WorkspaceRole.MEMBER

    @property
    def is_admin(self) -> bool:
        return self.current_role == WorkspaceRole.ADMIN

    def get(self, workspace_id: str) -> Optional[Workspace]:
        for workspace in self.workspaces:
            if workspace.id == workspace_id:
                return workspace
        return None

    async def load(self) -> Optional[Workspace]:
        """
        Fetch the user's workspaces and pick the current one.

        A failed fetch leaves no workspaces and sets `error`.
        """
        self.error = None
        try:
            self.workspaces = await self._remote.get_workspaces()
        except RemoteServiceError as e:
            logger.error("workspaces_fetch_failed", error=str(e))
            self.error = f"Database call failed: {e}"
            self.workspaces = []
            self.current_id = None
            return None

        self.current_id = self._select()
        return self.current

    def _select(self) -> Optional[str]:
        stored = self._preferences.get(CURRENT_WORKSPACE_KEY)
        if stored and self.get(stored) is not None:
            return stored
        if not self.workspaces:
            return None
        for workspace in self.workspaces:
            if workspace.type == WorkspaceType.PERSONAL and workspace.is_initial:
                return workspace.id
        return self.workspaces[0].id

    def switch(self, workspace_id: str) -> Workspace:
        """
        Make another workspace current.

        Raises:
            WorkspaceError: If the user does not belong to it
        """
        workspace = self.get(workspace_id)
        if workspace is None:
            raise WorkspaceError(f"Unknown workspace: {workspace_id}")

        previous = self.current_id
        self.current_id = workspace_id
        self._preferences[CURRENT_WORKSPACE_KEY] = workspace_id
        if previous != workspace_id:
            self._audit.log(AuditEventBuilder.workspace_switched(workspace_id, previous))
        return workspace

    async def create(self, name: str, workspace_type: WorkspaceType) -> Workspace:
        """Create a workspace, reload the list and switch to it."""
        name = name.strip()
        if not name:
            raise WorkspaceError("Workspace name is required")

        new_id = await self._remote.create_workspace(name, workspace_type)
        await self.load()
        if self.get(new_id) is None:
            raise WorkspaceError(f"Created workspace {new_id} is not visible to this user")
        return self.switch(new_id)

    async def delete(self, workspace_id: str) -> None:
        """Delete a workspace and reload; a deleted current workspace falls back."""
        await self._remote.delete_workspace(workspace_id)
        await self.load()


class WorkspaceError(Exception):
    """Workspace selection or creation was not possible."""
    pass
