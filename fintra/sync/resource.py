"""
Synced Resource

One page's view of the remote data service for one workspace: the Fetch
Orchestrator and the Optimistic Mutation Coordinator in a single object.

DESIGN DECISION: Pages do not hand-roll fetch/cache/rollback logic. They
declare a feature key and a batch of reads, and route every write through
`mutate` (optimistic) or `submit` (create, then revalidate).

LOAD CONTRACT:
1. Not forced: paint from cache if present (no spinner)
2. No data at all: show a blocking loading state
3. Run every read concurrently; any failure fails the whole batch
4. Success: overwrite the cache and the state with the same snapshot
5. Failure: keep whatever is displayed and set `error`
6. Forced: skip the cache and flip `refreshing` instead of clearing data

Each fetch takes a generation number. A response whose generation is no
longer the latest is dropped, so a slow early fetch can never overwrite a
newer one.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import structlog

from fintra.audit import AuditLogger
from fintra.models.audit import AuditEventBuilder
from fintra.services.remote import RemoteServiceError, RemoteTimeoutError
from fintra.sync.cache import WorkspaceCache, to_snapshot
from fintra.sync.optimistic import ApplyFn, MutationResult, RemoteCall, optimistic_mutate
from fintra.sync.refresh import RefreshSignal


logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class BatchRead:
    """One required read of a page batch."""

    name: str
    fetch: Callable[[], Awaitable[Any]]
    label: Optional[str] = None

    @property
    def display_label(self) -> str:
        return self.label or self.name.replace("_", " ").title()


@dataclass
class ResourceState:
    """What a page renders."""

    data: Optional[dict] = None
    loading: bool = False
    refreshing: bool = False
    error: Optional[str] = None
    mutation_error: Optional[str] = None
    mutating: bool = False
    loaded: bool = False

    @property
    def blocking_error(self) -> Optional[str]:
        """Error to show full-page: nothing else can be displayed."""
        return self.error if self.data is None else None

    @property
    def error_banner(self) -> Optional[str]:
        """Error to show above stale data."""
        return self.error if self.data is not None else None


class SyncedResource:
    """
    Fetch, cache and mutate one feature's snapshot for one workspace.

    Lifecycle: `mount()` paints from cache and schedules the initial load,
    `unmount()` cancels in-flight loads. While mounted, every change of the
    refresh signal triggers exactly one forced fetch, provided the initial
    load has finished.

    When no event loop is running (the Streamlit shell between reruns),
    scheduled work is remembered and performed by `settle()`.
    """

    def __init__(
        self,
        feature: str,
        workspace_id: str,
        reads: list[BatchRead],
        cache: WorkspaceCache,
        refresh_signal: RefreshSignal,
        fetch_timeout: float = DEFAULT_TIMEOUT_SECONDS,
        mutation_timeout: float = DEFAULT_TIMEOUT_SECONDS,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._feature = feature
        self._workspace_id = workspace_id
        self._reads = list(reads)
        self._cache = cache
        self._refresh = refresh_signal
        self._fetch_timeout = fetch_timeout
        self._mutation_timeout = mutation_timeout
        self._audit = audit_logger or AuditLogger()

        self.state = ResourceState()
        self._generation = 0
        self._tasks: set[asyncio.Task] = set()
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._last_refresh = refresh_signal.value
        self._mounted = False
        self._pending_initial = False
        self._pending_refresh = False

    @property
    def feature(self) -> str:
        return self._feature

    @property
    def workspace_id(self) -> str:
        return self._workspace_id

    @property
    def mounted(self) -> bool:
        return self._mounted

    @property
    def generation(self) -> int:
        return self._generation

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def mount(self) -> Optional[asyncio.Task]:
        """
        Paint from cache and start the initial load.

        Returns:
            The load task, or None if no event loop is running (see `settle`)
            or the resource was already mounted
        """
        if self._mounted:
            return None
        self._mounted = True
        self._last_refresh = self._refresh.value
        self._unsubscribe = self._refresh.subscribe(self._on_refresh)

        cached = self._cache.read(self._feature, self._workspace_id)
        if cached is not None:
            self._hydrate(cached)
        else:
            self.state.loading = True
        return self._schedule(forced=False)

    def unmount(self) -> None:
        """Stop listening for refreshes and cancel in-flight loads."""
        if not self._mounted:
            return
        self._mounted = False
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        for task in list(self._tasks):
            task.cancel()
        self._pending_initial = False
        self._pending_refresh = False
        # Anything still awaited directly is now stale.
        self._generation += 1
        self.state.loading = False
        self.state.refreshing = False

    async def settle(self) -> None:
        """Run loads requested while no loop was running, then wait for in-flight ones."""
        if self._pending_refresh:
            self._pending_refresh = False
            self._pending_initial = False
            await self._fetch(forced=True)
        elif self._pending_initial:
            self._pending_initial = False
            await self._fetch(forced=False)
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _on_refresh(self, value: int) -> None:
        if value == self._last_refresh:
            return
        self._last_refresh = value
        if not self._mounted or not self.state.loaded:
            return
        self._schedule(forced=True)

    def _schedule(self, forced: bool) -> Optional[asyncio.Task]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if forced:
                self._pending_refresh = True
            else:
                self._pending_initial = True
            return None
        task = loop.create_task(self._fetch(forced))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    async def load(self, forced: bool = False) -> Optional[dict]:
        """
        Load the page snapshot.

        Args:
            forced: Skip the cache and keep current data visible while
                refetching

        Returns:
            The snapshot now displayed (possibly stale if the fetch failed)
        """
        if not forced:
            cached = self._cache.read(self._feature, self._workspace_id)
            if cached is not None:
                self._hydrate(cached)
        await self._fetch(forced)
        return self.state.data

    async def refresh(self) -> Optional[dict]:
        """Explicit page refresh."""
        return await self.load(forced=True)

    def _hydrate(self, snapshot: dict) -> None:
        self.state.data = snapshot
        self.state.loading = False
        self.state.loaded = True

    async def _fetch(self, forced: bool) -> None:
        self._generation += 1
        generation = self._generation
        self._audit.log(AuditEventBuilder.fetch_started(
            self._feature, self._workspace_id, generation, forced
        ))

        self.state.error = None
        if self.state.data is None:
            self.state.loading = True
        elif forced:
            self.state.refreshing = True

        try:
            snapshot = await asyncio.wait_for(self._run_batch(), timeout=self._fetch_timeout)
        except asyncio.TimeoutError:
            self._fail(generation, f"Request timed out after {self._fetch_timeout:g} seconds", True)
            return
        except FetchError as e:
            self._fail(generation, str(e), False)
            return
        except BaseException:
            if generation == self._generation:
                self.state.loading = False
                self.state.refreshing = False
            raise

        if not self._is_current(generation):
            return

        self._cache.write(self._feature, self._workspace_id, snapshot)
        self.state.data = snapshot
        self._finish()
        self._audit.log(AuditEventBuilder.fetch_committed(
            self._feature,
            self._workspace_id,
            generation,
            {name: len(value) for name, value in snapshot.items() if isinstance(value, list)},
        ))

    async def _run_batch(self) -> dict:
        tasks = [asyncio.ensure_future(self._run_read(read)) for read in self._reads]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise
        return to_snapshot({read.name: result for read, result in zip(self._reads, results)})

    async def _run_read(self, read: BatchRead) -> Any:
        try:
            return await read.fetch()
        except RemoteServiceError as e:
            raise FetchError(f"{read.display_label}: {e}", read.name) from e
        except Exception as e:
            # Cancellation is a BaseException and still propagates.
            logger.exception(
                "batch_read_failed",
                feature=self._feature,
                workspace_id=self._workspace_id,
                read=read.name,
            )
            raise FetchError(
                f"{read.display_label}: unexpected error ({type(e).__name__})", read.name
            ) from e

    def _fail(self, generation: int, message: str, timed_out: bool) -> None:
        if not self._is_current(generation):
            return
        self.state.error = message
        self._finish()
        self._audit.log(AuditEventBuilder.fetch_failed(
            self._feature, self._workspace_id, generation, message, timed_out=timed_out
        ))

    def _finish(self) -> None:
        self.state.loading = False
        self.state.refreshing = False
        self.state.loaded = True

    def _is_current(self, generation: int) -> bool:
        if generation == self._generation:
            return True
        self._audit.log(AuditEventBuilder.stale_response_discarded(
            self._feature, self._workspace_id, generation, self._generation
        ))
        return False

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def mutate(
        self,
        apply: ApplyFn,
        remote_call: RemoteCall,
        description: str,
    ) -> MutationResult:
        """
        Optimistically apply a change, confirm it remotely, then revalidate.

        On a remote failure the snapshot taken before `apply` is restored
        exactly and `state.mutation_error` carries the server's message.
        The optimistic snapshot is never written to the cache.
        """
        if self.state.data is None:
            raise RuntimeError(f"Cannot change {self._feature} before it has loaded")

        self.state.mutation_error = None
        self.state.mutating = True
        self._audit.log(AuditEventBuilder.mutation_applied(
            self._feature, self._workspace_id, description
        ))
        try:
            result = await optimistic_mutate(
                self.state.data,
                apply,
                lambda: self._call_with_timeout(remote_call),
                self._publish,
            )
        finally:
            self.state.mutating = False

        if not result.applied:
            self.state.mutation_error = result.error
            self._audit.log(AuditEventBuilder.mutation_rolled_back(
                self._feature, self._workspace_id, description, result.error or ""
            ))
            return result

        self._audit.log(AuditEventBuilder.mutation_confirmed(
            self._feature, self._workspace_id, description
        ))
        await self._fetch(forced=True)
        return result

    async def submit(self, remote_call: RemoteCall, description: str) -> Any:
        """
        Perform a non-optimistic write, then revalidate.

        Raises:
            MutationError: With the server's message if the write fails
        """
        self.state.mutating = True
        try:
            result = await self._call_with_timeout(remote_call)
        except RemoteServiceError as e:
            logger.warning(
                "write_failed",
                feature=self._feature,
                workspace_id=self._workspace_id,
                action=description,
                error=str(e),
            )
            raise MutationError(str(e)) from e
        finally:
            self.state.mutating = False

        self._audit.log(AuditEventBuilder.mutation_confirmed(
            self._feature, self._workspace_id, description
        ))
        await self._fetch(forced=True)
        return result

    def dismiss_mutation_error(self) -> None:
        self.state.mutation_error = None

    def _publish(self, snapshot: dict) -> None:
        self.state.data = snapshot

    async def _call_with_timeout(self, remote_call: RemoteCall) -> Any:
        try:
            return await asyncio.wait_for(remote_call(), timeout=self._mutation_timeout)
        except asyncio.TimeoutError as e:
            raise RemoteTimeoutError(
                f"Request timed out after {self._mutation_timeout:g} seconds"
            ) from e


class FetchError(Exception):
    """
    A required read of a page batch failed.

    The message is "<Label>: <server message>".
    """

    def __init__(self, message: str, read_name: Optional[str] = None):
        self.read_name = read_name
        super().__init__(message)


class MutationError(Exception):
    """A non-optimistic write failed; the message is the server's."""
    pass
