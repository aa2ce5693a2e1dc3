"""
Workspace-Scoped Cache

Per-feature, per-workspace snapshots kept in session storage so a page can
paint immediately before it revalidates.

Keys are `<prefix>_<feature>_<workspace_id>`. Including the workspace id is
what keeps one workspace's data out of another's view after a switch;
nothing is ever deleted on switch.

Entries have no TTL and no version. They are overwritten after every
successful fetch and disappear with the session. An entry is only ever a
real server response: optimistic state is never written here.
"""

import json
from collections.abc import MutableMapping
from typing import Any, Optional

from pydantic import TypeAdapter

from fintra.audit import AuditLogger
from fintra.models.audit import AuditEventBuilder


_JSON = TypeAdapter(Any)


def to_snapshot(value: Any) -> Any:
    """Convert models, decimals and dates into plain JSON values."""
    return _JSON.dump_python(value, mode="json")


class WorkspaceCache:
    """
    Cache-aside store over a string-to-string session storage.

    Reads never raise: an unreadable entry is treated as absent and removed.
    Writes replace the whole snapshot; there is no merge.
    """

    def __init__(
        self,
        storage: MutableMapping[str, str],
        prefix: str = "fintra",
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._prefix = prefix
        self._audit = audit_logger or AuditLogger()

    def cache_key(self, feature: str, workspace_id: str) -> str:
        return f"{self._prefix}_{feature}_{workspace_id}"

    def read(self, feature: str, workspace_id: str) -> Optional[dict]:
        """Return the cached snapshot, or None if absent or unreadable."""
        key = self.cache_key(feature, workspace_id)
        raw = self._storage.get(key)
        if raw is None:
            self._audit.log(AuditEventBuilder.cache_miss(feature, workspace_id))
            return None

        try:
            snapshot = json.loads(raw)
        except (TypeError, ValueError) as e:
            self._purge(key, str(e))
            return None

        if not isinstance(snapshot, dict):
            self._purge(key, "snapshot is not an object")
            return None

        self._audit.log(AuditEventBuilder.cache_hit(feature, workspace_id))
        return snapshot

    def write(self, feature: str, workspace_id: str, snapshot: dict) -> None:
        """Replace the snapshot for this feature and workspace."""
        key = self.cache_key(feature, workspace_id)
        self._storage[key] = json.dumps(to_snapshot(snapshot))

    def _purge(self, key: str, reason: str) -> None:
        self._storage.pop(key, None)
        self._audit.log(AuditEventBuilder.cache_entry_purged(key, reason))
