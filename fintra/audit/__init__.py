"""Audit logging package."""

from fintra.audit.logger import AuditLogger, AuditSink, RecentEventsSink, configure_logging

__all__ = ["AuditLogger", "AuditSink", "RecentEventsSink", "configure_logging"]
