"""
Members Page

Membership of an organization workspace. Personal workspaces have no
members to list, so their batch is empty and no remote read is made.
Changes are limited to admins.
"""

from fintra.models.workspace import OrganizationMember, Workspace, WorkspaceRole
from fintra.pages.base import WorkspacePage
from fintra.services.remote import PermissionDeniedError, RemoteDataService
from fintra.sync import BatchRead, MutationResult, SyncService


class MembersPage(WorkspacePage):
    feature = "members"

    def __init__(
        self,
        sync: SyncService,
        remote: RemoteDataService,
        workspace: Workspace,
        user_id: str,
    ):
        self.workspace = workspace
        super().__init__(sync, remote, workspace.id, user_id)

    def reads(self) -> list[BatchRead]:
        if not self.workspace.is_organization:
            return []
        ws = self.workspace_id
        return [BatchRead("members", lambda: self._remote.get_workspace_members(ws))]

    @property
    def can_manage(self) -> bool:
        return self.workspace.is_organization and self.workspace.is_admin

    def members(self) -> list[OrganizationMember]:
        return self._collection("members", OrganizationMember)

    def _require_admin(self) -> None:
        if not self.can_manage:
            raise PermissionDeniedError("Only workspace admins can manage members")

    async def add_member(self, email: str, role: WorkspaceRole = WorkspaceRole.MEMBER) -> None:
        self._require_admin()
        await self._create(
            lambda: self._remote.add_member(self.workspace_id, email.strip(), role),
            f"add member {email}",
        )

    async def update_role(self, user_id: str, role: WorkspaceRole) -> MutationResult:
        self._require_admin()
        return await self._update_optimistically(
            "members",
            user_id,
            {"role": role},
            lambda: self._remote.update_member_role(self.workspace_id, user_id, role),
            f"change role of {user_id} to {role.value}",
        )

    async def remove_member(self, user_id: str) -> MutationResult:
        self._require_admin()
        return await self._delete_optimistically(
            "members",
            user_id,
            lambda: self._remote.remove_member(self.workspace_id, user_id),
            f"remove member {user_id}",
        )
