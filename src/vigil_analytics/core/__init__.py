# Core Module - Shared Utilities
#
# Core module provides functionality shared by the analytics engines:
# - Configuration (detector tunables, environment overrides)
# - Audit logging of analysis runs

from .audit_log import (
    AnalysisAuditLogger,
    EventSeverity,
    EventType,
    get_audit_logger,
)
from .config import AnalyticsConfig, get_config, set_config

__all__ = [
    # Configuration
    "AnalyticsConfig",
    "get_config",
    "set_config",
    # Audit Logging
    "AnalysisAuditLogger",
    "EventType",
    "EventSeverity",
    "get_audit_logger",
]
