# Core Module - Analysis Audit Log
#
# Structured (JSON) audit trail of analytics runs: which detectors ran
# over how many incidents, what they found, which detectors failed, and
# which custom scoring models were built. Analysts use it to explain
# why a pattern appeared (or disappeared) between two runs.
#
# Uses structlog on top of the stdlib logging tree, so the trail goes
# wherever the host application routes ``vigil_analytics.audit``.

import logging
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4

import structlog


class EventType(str, Enum):
    """Types of analytics events recorded in the audit trail."""

    ANALYSIS_STARTED = "analysis.started"
    ANALYSIS_COMPLETED = "analysis.completed"
    DETECTOR_FAILED = "analysis.detector.failed"
    SCORING_MODEL_CREATED = "scoring.model.created"


class EventSeverity(str, Enum):
    """Severity of an audit event."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


_SEVERITY_METHOD = {
    EventSeverity.INFO: "info",
    EventSeverity.WARNING: "warning",
    EventSeverity.ERROR: "error",
}


class AnalysisAuditLogger:
    """
    Append-only audit logger for analytics runs.

    Args:
        log_dir: Optional directory for daily ``analytics_YYYY-MM-DD.log``
            files. Without it, events only flow through stdlib logging.
    """

    def __init__(self, log_dir: Optional[Path] = None):
        self.log_dir = Path(log_dir) if log_dir is not None else None

        # Leave a host application's structlog setup alone
        if not structlog.is_configured():
            self._configure_structlog()

        self._file_handler: Optional[logging.Handler] = None
        if self.log_dir is not None:
            self._setup_file_handler()

        self.logger = structlog.get_logger("vigil_analytics.audit")

    @staticmethod
    def _configure_structlog() -> None:
        structlog.configure(
            processors=[
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

    def _setup_file_handler(self) -> None:
        """Attach a daily log file to the audit logger."""
        self.log_dir.mkdir(parents=True, exist_ok=True)
        today = datetime.now().strftime("%Y-%m-%d")
        log_file = self.log_dir / f"analytics_{today}.log"

        handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        handler.setLevel(logging.INFO)
        handler.setFormatter(logging.Formatter("%(message)s"))  # structlog renders

        audit_logger = logging.getLogger("vigil_analytics.audit")
        audit_logger.addHandler(handler)
        audit_logger.setLevel(logging.INFO)
        self._file_handler = handler

    def close(self) -> None:
        if self._file_handler is not None:
            logging.getLogger("vigil_analytics.audit").removeHandler(self._file_handler)
            self._file_handler.close()
            self._file_handler = None

    def log_event(
        self,
        event_type: EventType,
        message: str,
        severity: EventSeverity = EventSeverity.INFO,
        details: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Record an analytics event.

        Returns:
            str: Event ID (UUID) for reference
        """
        event_id = str(uuid4())
        log = getattr(self.logger, _SEVERITY_METHOD[severity])
        log(
            "analytics_event",
            event_id=event_id,
            event_type=event_type.value,
            severity=severity.value,
            message=message,
            details=details or {},
        )
        return event_id

    def log_analysis_started(
        self,
        days: int,
        pattern_types: List[str],
        total_incidents: int,
    ) -> str:
        return self.log_event(
            EventType.ANALYSIS_STARTED,
            message=f"Pattern analysis over {total_incidents} incidents ({days} days)",
            details={
                "period_days": days,
                "pattern_types": list(pattern_types),
                "total_incidents": total_incidents,
            },
        )

    def log_analysis(self, summary: Dict[str, Any]) -> str:
        """Record the summary of a completed pattern analysis."""
        errors = summary.get("errors") or {}
        return self.log_event(
            EventType.ANALYSIS_COMPLETED,
            message=(
                f"Pattern analysis: {summary.get('patterns_found', 0)} patterns "
                f"from {summary.get('total_incidents', 0)} incidents"
            ),
            severity=EventSeverity.WARNING if errors else EventSeverity.INFO,
            details=summary,
        )

    def log_detector_failure(self, pattern_type: str, error: BaseException) -> str:
        return self.log_event(
            EventType.DETECTOR_FAILED,
            message=f"Detector {pattern_type} failed: {error}",
            severity=EventSeverity.ERROR,
            details={"pattern_type": pattern_type, "error": repr(error)},
        )

    def log_scoring_model(self, entity_kind: str, weights: Dict[str, float]) -> str:
        return self.log_event(
            EventType.SCORING_MODEL_CREATED,
            message=f"Custom scoring model for {entity_kind}",
            details={"entity_kind": entity_kind, "weights": dict(weights)},
        )


# Global logger instance
_audit_logger: Optional[AnalysisAuditLogger] = None


def get_audit_logger() -> AnalysisAuditLogger:
    """Get global audit logger (singleton pattern)."""
    global _audit_logger
    if _audit_logger is None:
        _audit_logger = AnalysisAuditLogger()
    return _audit_logger
