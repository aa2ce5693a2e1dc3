"""
Workspace and user models.

A workspace is the tenant boundary for every financial record. Exactly one
workspace is current per client session; its id namespaces every cache key.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class WorkspaceType(str, Enum):
    """Kind of tenant."""
    PERSONAL = "personal"
    ORGANIZATION = "organization"


class WorkspaceRole(str, Enum):
    """Role of the signed-in user within a workspace."""
    ADMIN = "admin"
    MEMBER = "member"


class Workspace(BaseModel):
    """A workspace the signed-in user belongs to."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    type: WorkspaceType
    owner_id: str
    role: WorkspaceRole = WorkspaceRole.MEMBER
    is_initial: bool = False

    @property
    def is_organization(self) -> bool:
        return self.type == WorkspaceType.ORGANIZATION

    @property
    def is_admin(self) -> bool:
        return self.role == WorkspaceRole.ADMIN


class OrganizationMember(BaseModel):
    """
    A member of an organization workspace.

    The backend exposes the member's display name rather than an email
    address; `display_name` falls back to "Unknown User".
    """

    id: str
    display_name: str = "Unknown User"
    role: WorkspaceRole = WorkspaceRole.MEMBER


class UserProfile(BaseModel):
    """Profile row of the signed-in user."""

    id: str
    updated_at: Optional[datetime] = None
    full_name: Optional[str] = None
    currency: str = Field(default="USD", min_length=3, max_length=3)
    secondary_currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    default_expense_account_id: Optional[str] = None
    auto_transfer_savings: bool = False
