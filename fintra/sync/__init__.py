"""
Sync Package

Workspace-scoped caching, fetch orchestration, optimistic mutations and the
global refresh signal.
"""

from fintra.sync.cache import WorkspaceCache, to_snapshot
from fintra.sync.optimistic import MutationResult, optimistic_mutate
from fintra.sync.refresh import RefreshSignal
from fintra.sync.resource import (
    BatchRead,
    FetchError,
    MutationError,
    ResourceState,
    SyncedResource,
)
from fintra.sync.service import SyncService
from fintra.sync.transforms import (
    add_money,
    with_balance_adjusted,
    with_collection,
    with_item_replaced,
    with_nested_item_removed,
    without_item,
    without_related,
)

__all__ = [
    # Cache
    "WorkspaceCache",
    "to_snapshot",
    # Refresh
    "RefreshSignal",
    # Orchestration
    "BatchRead",
    "ResourceState",
    "SyncedResource",
    "SyncService",
    # Mutations
    "MutationResult",
    "optimistic_mutate",
    # Exceptions
    "FetchError",
    "MutationError",
    # Transforms
    "add_money",
    "with_balance_adjusted",
    "with_collection",
    "with_item_replaced",
    "with_nested_item_removed",
    "without_item",
    "without_related",
]
