"""
Sync Service

Owns the pieces every page shares: the workspace-scoped cache, the refresh
signal, the timeouts and the audit logger. Pages receive this object
instead of reaching for ambient globals.
"""

from collections.abc import MutableMapping
from typing import Optional

from fintra.audit import AuditLogger
from fintra.config import SyncSettings, get_settings
from fintra.sync.cache import WorkspaceCache
from fintra.sync.refresh import RefreshSignal
from fintra.sync.resource import DEFAULT_TIMEOUT_SECONDS, BatchRead, SyncedResource


class SyncService:
    """Factory for SyncedResources sharing one cache and one refresh counter."""

    def __init__(
        self,
        cache: WorkspaceCache,
        refresh_signal: RefreshSignal,
        fetch_timeout: float = DEFAULT_TIMEOUT_SECONDS,
        mutation_timeout: float = DEFAULT_TIMEOUT_SECONDS,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._cache = cache
        self._refresh = refresh_signal
        self._fetch_timeout = fetch_timeout
        self._mutation_timeout = mutation_timeout
        self._audit = audit_logger or AuditLogger()

    @classmethod
    def from_settings(
        cls,
        storage: MutableMapping[str, str],
        settings: Optional[SyncSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ) -> "SyncService":
        settings = settings or get_settings().sync
        audit_logger = audit_logger or AuditLogger()
        return cls(
            cache=WorkspaceCache(storage, settings.cache_key_prefix, audit_logger),
            refresh_signal=RefreshSignal(audit_logger),
            fetch_timeout=settings.fetch_timeout_seconds,
            mutation_timeout=settings.mutation_timeout_seconds,
            audit_logger=audit_logger,
        )

    @property
    def cache(self) -> WorkspaceCache:
        return self._cache

    @property
    def refresh_signal(self) -> RefreshSignal:
        return self._refresh

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit

    def resource(
        self,
        feature: str,
        workspace_id: str,
        reads: list[BatchRead],
    ) -> SyncedResource:
        return SyncedResource(
            feature=feature,
            workspace_id=workspace_id,
            reads=reads,
            cache=self._cache,
            refresh_signal=self._refresh,
            fetch_timeout=self._fetch_timeout,
            mutation_timeout=self._mutation_timeout,
            audit_logger=self._audit,
        )

    def refresh_all(self) -> int:
        """Ask every mounted page to re-fetch. Returns the new counter value."""
        return self._refresh.increment()
