"""Audit infrastructure components.

This package provides the append-only audit trail, the asynchronous
dispatcher that forwards events to external consumers, and the sinks.
"""

from medregistry.infrastructure.audit.sinks import AuditSink, JsonLinesAuditSink, LoggingAuditSink
from medregistry.infrastructure.audit.dispatcher import AuditDispatcher
from medregistry.infrastructure.audit.audit_log import AuditLog

__all__ = ['AuditLog', 'AuditDispatcher', 'AuditSink', 'JsonLinesAuditSink', 'LoggingAuditSink']
