"""
Workspace Page Base

A page is a feature key, a batch of reads and a set of writes, all bound to
one workspace and one user. The SyncedResource does the caching, loading,
rollback and revalidation; subclasses only name their remote calls.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Optional, TypeVar

from pydantic import BaseModel

from fintra.services.remote import RemoteDataService
from fintra.sync import (
    BatchRead,
    MutationResult,
    ResourceState,
    SyncService,
    SyncedResource,
    to_snapshot,
    with_item_replaced,
    without_item,
)
from fintra.sync.optimistic import ApplyFn, RemoteCall


ModelT = TypeVar("ModelT", bound=BaseModel)


class WorkspacePage(ABC):
    """Base class for every data-backed page."""

    feature: str = ""

    def __init__(
        self,
        sync: SyncService,
        remote: RemoteDataService,
        workspace_id: str,
        user_id: str,
    ):
        self._sync = sync
        self._remote = remote
        self.workspace_id = workspace_id
        self.user_id = user_id
        self.resource: SyncedResource = sync.resource(
            self.feature_key(), workspace_id, self.reads()
        )

    def feature_key(self) -> str:
        return self.feature

    @abstractmethod
    def reads(self) -> list[BatchRead]:
        """The required reads of this page's batch."""

    # -------------------------------------------------------------------------
    # Lifecycle (delegated)
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ResourceState:
        return self.resource.state

    def mount(self):
        return self.resource.mount()

    def unmount(self) -> None:
        self.resource.unmount()

    async def load(self, forced: bool = False) -> Optional[dict]:
        return await self.resource.load(forced)

    async def refresh(self) -> Optional[dict]:
        return await self.resource.refresh()

    async def settle(self) -> None:
        await self.resource.settle()

    def dismiss_mutation_error(self) -> None:
        self.resource.dismiss_mutation_error()

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _collection(self, name: str, model: type[ModelT]) -> list[ModelT]:
        data = self.state.data or {}
        return [model.model_validate(item) for item in data.get(name) or []]

    def _find(self, name: str, item_id: str) -> Optional[dict]:
        for item in (self.state.data or {}).get(name) or []:
            if item.get("id") == item_id:
                return item
        return None

    async def _delete_optimistically(
        self,
        collection: str,
        item_id: str,
        remote_call: RemoteCall,
        description: str,
        cascade: Optional[ApplyFn] = None,
    ) -> MutationResult:
        """Drop an item locally (plus any local cascade), then delete remotely."""

        def apply(snapshot: dict) -> dict:
            updated = without_item(snapshot, collection, item_id)
            return cascade(updated) if cascade else updated

        return await self.resource.mutate(apply, remote_call, description)

    async def _update_optimistically(
        self,
        collection: str,
        item_id: str,
        changes: Any,
        remote_call: RemoteCall,
        description: str,
    ) -> MutationResult:
        """Show `changes` on an item immediately, then update remotely."""
        item = {**to_snapshot(changes), "id": item_id}
        return await self.resource.mutate(
            lambda snapshot: with_item_replaced(snapshot, collection, item),
            remote_call,
            description,
        )

    async def _create(self, remote_call: Callable[[], Any], description: str) -> Any:
        return await self.resource.submit(remote_call, description)
