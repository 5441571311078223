# Vigil Analytics - Main Package
#
# Threat analytics engine for the Vigil threat-intelligence dashboard:
# pattern detection over incident windows and multi-factor risk scoring.

__version__ = "0.3.0"
__author__ = "Vigil Team"
__description__ = "Threat analytics engine: pattern detection and risk scoring"

from .core import AnalyticsConfig, get_audit_logger, get_config
from .intel import (
    PatternType,
    RiskLevel,
    UnknownEntityKind,
    UnknownPatternType,
    analyze_patterns,
    create_scoring_model,
    detect_dormant_actors,
    detect_reactivated_actors,
    get_pattern_recommendations,
    score_actor,
    score_incident,
    score_ioc,
    score_vulnerability,
)

__all__ = [
    "__version__",
    "AnalyticsConfig",
    "get_audit_logger",
    "get_config",
    "PatternType",
    "RiskLevel",
    "UnknownEntityKind",
    "UnknownPatternType",
    "analyze_patterns",
    "create_scoring_model",
    "detect_dormant_actors",
    "detect_reactivated_actors",
    "get_pattern_recommendations",
    "score_actor",
    "score_incident",
    "score_ioc",
    "score_vulnerability",
]
