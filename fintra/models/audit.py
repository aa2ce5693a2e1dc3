"""
Audit Models for Fintra

Every decision the sync layer takes (serve from cache, commit a fetch,
drop a stale response, roll back a mutation) is recorded as an AuditEvent.
This provides:
1. Traceability of what the user was shown and why
2. Debugging information for stale-data and rollback reports
3. A feed for the application's activity panel

Audit events are append-only; they are never modified after creation.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Workspace-scoped cache
    CACHE_HIT = "cache_hit"
    CACHE_MISS = "cache_miss"
    CACHE_ENTRY_PURGED = "cache_entry_purged"

    # Fetch orchestration
    FETCH_STARTED = "fetch_started"
    FETCH_COMMITTED = "fetch_committed"
    FETCH_FAILED = "fetch_failed"
    FETCH_TIMED_OUT = "fetch_timed_out"
    STALE_RESPONSE_DISCARDED = "stale_response_discarded"

    # Optimistic mutations
    MUTATION_APPLIED = "mutation_applied"
    MUTATION_CONFIRMED = "mutation_confirmed"
    MUTATION_ROLLED_BACK = "mutation_rolled_back"

    # Shell
    REFRESH_TRIGGERED = "refresh_triggered"
    WORKSPACE_SWITCHED = "workspace_switched"

    # Receipt extraction
    RECEIPT_EXTRACTED = "receipt_extracted"
    RECEIPT_EXTRACTION_FAILED = "receipt_extraction_failed"

    # System events
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """A single audit event."""

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - which page data is this about?
    feature: Optional[str] = Field(
        default=None,
        description="Feature key of the page (e.g. 'dashboard')"
    )
    workspace_id: Optional[str] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "feature": self.feature,
            "workspace_id": self.workspace_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.cache_hit("dashboard", workspace_id)
        audit_logger.log(event)
    """

    @staticmethod
    def cache_hit(feature: str, workspace_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CACHE_HIT,
            severity=AuditSeverity.DEBUG,
            feature=feature,
            workspace_id=workspace_id,
            description=f"Painted {feature} from session cache",
        )

    @staticmethod
    def cache_miss(feature: str, workspace_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CACHE_MISS,
            severity=AuditSeverity.DEBUG,
            feature=feature,
            workspace_id=workspace_id,
            description=f"No cached {feature} snapshot; blocking on fetch",
        )

    @staticmethod
    def cache_entry_purged(key: str, reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CACHE_ENTRY_PURGED,
            severity=AuditSeverity.WARNING,
            description=f"Removed unreadable cache entry {key}",
            details={"key": key},
            error_message=reason,
        )

    @staticmethod
    def fetch_started(
        feature: str,
        workspace_id: str,
        generation: int,
        forced: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FETCH_STARTED,
            severity=AuditSeverity.DEBUG,
            feature=feature,
            workspace_id=workspace_id,
            description=f"Fetching {feature}" + (" (forced)" if forced else ""),
            details={"generation": generation, "forced": forced},
        )

    @staticmethod
    def fetch_committed(
        feature: str,
        workspace_id: str,
        generation: int,
        counts: dict[str, int],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FETCH_COMMITTED,
            feature=feature,
            workspace_id=workspace_id,
            description=f"Committed fresh {feature} snapshot",
            details={"generation": generation, "counts": counts},
        )

    @staticmethod
    def fetch_failed(
        feature: str,
        workspace_id: str,
        generation: int,
        error_message: str,
        timed_out: bool = False,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.FETCH_TIMED_OUT if timed_out
                else AuditEventType.FETCH_FAILED
            ),
            severity=AuditSeverity.ERROR,
            feature=feature,
            workspace_id=workspace_id,
            description=f"Failed to load {feature}",
            details={"generation": generation},
            error_message=error_message,
        )

    @staticmethod
    def stale_response_discarded(
        feature: str,
        workspace_id: str,
        generation: int,
        current_generation: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STALE_RESPONSE_DISCARDED,
            severity=AuditSeverity.DEBUG,
            feature=feature,
            workspace_id=workspace_id,
            description=f"Ignored out-of-order {feature} response",
            details={"generation": generation, "current_generation": current_generation},
        )

    @staticmethod
    def mutation_applied(feature: str, workspace_id: str, action: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MUTATION_APPLIED,
            severity=AuditSeverity.DEBUG,
            feature=feature,
            workspace_id=workspace_id,
            description=f"Optimistically applied: {action}",
            is_user_action=True,
        )

    @staticmethod
    def mutation_confirmed(feature: str, workspace_id: str, action: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MUTATION_CONFIRMED,
            feature=feature,
            workspace_id=workspace_id,
            description=f"Server confirmed: {action}",
            is_user_action=True,
        )

    @staticmethod
    def mutation_rolled_back(
        feature: str,
        workspace_id: str,
        action: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MUTATION_ROLLED_BACK,
            severity=AuditSeverity.WARNING,
            feature=feature,
            workspace_id=workspace_id,
            description=f"Rolled back: {action}",
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def refresh_triggered(value: int, subscribers: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REFRESH_TRIGGERED,
            description="Global refresh requested",
            details={"value": value, "subscribers": subscribers},
            is_user_action=True,
        )

    @staticmethod
    def workspace_switched(
        workspace_id: str,
        previous_workspace_id: Optional[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WORKSPACE_SWITCHED,
            workspace_id=workspace_id,
            description="Switched current workspace",
            details={"previous_workspace_id": previous_workspace_id},
            is_user_action=True,
        )

    @staticmethod
    def receipt_extracted(filename: str, fields_found: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_EXTRACTED,
            description=f"Extracted receipt details from {filename}",
            details={"fields_found": fields_found},
            is_user_action=True,
        )

    @staticmethod
    def receipt_extraction_failed(filename: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_EXTRACTION_FAILED,
            severity=AuditSeverity.ERROR,
            description=f"Could not read receipt {filename}",
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def external_service_error(service: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            details={"service": service},
            error_message=error_message,
        )
