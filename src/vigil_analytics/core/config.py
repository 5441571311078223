# Core Module - Analytics Configuration
#
# Tunables for the pattern detectors. Defaults reproduce the dashboard's
# behaviour; any value can be overridden from the environment (or a
# ``.env`` file) using the ``VIGIL_`` prefix, e.g.:
#
#   VIGIL_MIN_PATTERN_OCCURRENCES=4
#   VIGIL_CLUSTER_WINDOW_HOURS=12
#   VIGIL_ANOMALY_THRESHOLD=2.5
#   VIGIL_DORMANCY_DAYS=120

import logging
import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

ENV_PREFIX = "VIGIL_"


class AnalyticsConfig(BaseModel):
    """Detector thresholds and windows."""

    model_config = {"frozen": True}

    min_pattern_occurrences: int = Field(
        3, ge=1, description="Minimum co-occurrences for a pattern to count"
    )
    cluster_window_hours: float = Field(
        24.0, gt=0, description="Forward window for temporal clustering"
    )
    campaign_gap_days: float = Field(
        7.0, gt=0, description="Max gap between chained campaign incidents"
    )
    anomaly_threshold: float = Field(
        2.0, gt=0, description="Absolute z-score above which a day is anomalous"
    )
    anomaly_baseline_days: int = Field(
        30, ge=1, description="Trailing baseline for anomaly detection"
    )
    default_analysis_days: int = Field(
        90, ge=1, description="Default analysis window for analyze_patterns"
    )
    dormancy_days: int = Field(
        90, ge=1, description="Silence after which an actor counts as dormant"
    )
    reactivation_days: int = Field(
        7, ge=1, description="Recent window in which a dormant actor counts as back"
    )

    @field_validator("anomaly_threshold")
    @classmethod
    def validate_threshold(cls, v):
        if v > 10:
            raise ValueError("anomaly_threshold above 10 standard deviations never fires")
        return v

    @classmethod
    def from_env(
        cls,
        env: Optional[Dict[str, str]] = None,
        dotenv_path: Optional[str] = None,
    ) -> "AnalyticsConfig":
        """Build a config from ``VIGIL_*`` variables.

        When ``env`` is not given, a ``.env`` file is loaded first (existing
        process variables win) and ``os.environ`` is read.
        """
        if env is None:
            load_dotenv(dotenv_path=dotenv_path, override=False)
            env = dict(os.environ)

        values: Dict[str, Any] = {}
        for name in cls.model_fields:
            raw = env.get(ENV_PREFIX + name.upper())
            if raw is not None and raw.strip():
                values[name] = raw.strip()
        if values:
            logger.debug("Analytics config overrides from environment: %s", sorted(values))
        return cls(**values)


# Global config instance
_config: Optional[AnalyticsConfig] = None


def get_config() -> AnalyticsConfig:
    """Get global analytics config (singleton pattern)."""
    global _config
    if _config is None:
        _config = AnalyticsConfig.from_env()
    return _config


def set_config(config: Optional[AnalyticsConfig]) -> None:
    """Replace the global config (``None`` re-reads the environment lazily)."""
    global _config
    _config = config
