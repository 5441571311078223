"""
Shared pytest fixtures for the Vigil Analytics test suite.

Autouse fixtures below isolate tests from the environment:
  - Audit logger -> temp directory   (no analytics_*.log files in the repo)
  - Config       -> built-in defaults (no VIGIL_* variables or .env files)
"""

from datetime import datetime, timedelta, timezone

import pytest

# Fixed reference time for every time-relative computation in tests
NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _isolate_audit_logger(tmp_path):
    """Point the global audit logger at a temp directory for every test."""
    import vigil_analytics.core.audit_log as audit_mod

    old_logger = audit_mod._audit_logger
    audit_mod._audit_logger = audit_mod.AnalysisAuditLogger(log_dir=tmp_path / "audit_logs")

    yield

    audit_mod._audit_logger.close()
    audit_mod._audit_logger = old_logger


@pytest.fixture(autouse=True)
def _isolate_config():
    """Use default detector tunables regardless of the host environment."""
    import vigil_analytics.core.config as config_mod

    old_config = config_mod._config
    config_mod._config = config_mod.AnalyticsConfig()

    yield

    config_mod._config = old_config


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_incident():
    """Factory for raw incident rows, timestamped relative to ``NOW``."""
    counter = {"n": 0}

    def _make(
        days_ago=0.0,
        actor=None,
        sector=None,
        countries=None,
        ttps=None,
        hours=0.0,
        **extra,
    ):
        counter["n"] += 1
        row = {
            "id": f"inc-{counter['n']}",
            "discovered_at": (NOW - timedelta(days=days_ago) + timedelta(hours=hours)).isoformat(),
            "sector": sector,
            "target_countries": countries or [],
            "ttps": ttps or [],
        }
        if actor is not None:
            row["threat_actor_id"] = f"actor-{actor.lower()}"
            row["threat_actor"] = {"id": f"actor-{actor.lower()}", "name": actor}
        row.update(extra)
        return row

    return _make
