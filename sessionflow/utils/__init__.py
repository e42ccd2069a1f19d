"""Shared utility functions for the SessionFlow package.

Convenience re-exports so consumers can import directly from
``sessionflow.utils``.
"""

from sessionflow.utils.audit import AuditEvent, log_audit_event

__all__ = ["AuditEvent", "log_audit_event"]
