"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Traceability per data context
2. Debugging capability for storage and AI failures
3. A single place where errors that are "caught and swallowed"
   at the call site still leave a trace

The audit logger:
- Writes structured JSON logs through structlog
- Never raises (a logging failure must not break a user flow)
"""

from typing import Optional

import structlog

from family_finance.models.audit import AuditEvent, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def get_logger(name: Optional[str] = None):
    """Module-level structured logger."""
    return structlog.get_logger(name)


class AuditLogger:
    """
    Central audit logging service.
    
    Keeps the last events in memory so the UI (and tests) can show
    what just happened without reading log files.
    """
    
    def __init__(self, history_size: int = 200):
        self._logger = structlog.get_logger("family_finance.audit")
        self._history: list[AuditEvent] = []
        self._history_size = history_size
    
    def log(self, event: AuditEvent) -> None:
        """Emit an audit event. Never raises."""
        try:
            log_dict = event.to_log_dict()
            
            if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # Last resort: the event itself could not be rendered
            self._logger.error(
                "audit_log_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
        
        self._history.append(event)
        if len(self._history) > self._history_size:
            del self._history[: len(self._history) - self._history_size]
    
    @property
    def recent_events(self) -> list[AuditEvent]:
        """Most recent events, newest last."""
        return list(self._history)
