# Tests for analytics configuration

import pytest
from pydantic import ValidationError

import vigil_analytics.core.config as config_mod
from vigil_analytics.core.config import AnalyticsConfig, get_config, set_config


class TestAnalyticsConfig:
    def test_defaults(self):
        cfg = AnalyticsConfig()
        assert cfg.min_pattern_occurrences == 3
        assert cfg.cluster_window_hours == 24.0
        assert cfg.campaign_gap_days == 7.0
        assert cfg.anomaly_threshold == 2.0
        assert cfg.anomaly_baseline_days == 30
        assert cfg.default_analysis_days == 90
        assert cfg.dormancy_days == 90
        assert cfg.reactivation_days == 7

    def test_from_env_mapping(self):
        cfg = AnalyticsConfig.from_env({
            "VIGIL_MIN_PATTERN_OCCURRENCES": "4",
            "VIGIL_ANOMALY_THRESHOLD": " 2.5 ",
            "VIGIL_CLUSTER_WINDOW_HOURS": "",
            "UNRELATED": "x",
        })
        assert cfg.min_pattern_occurrences == 4
        assert cfg.anomaly_threshold == 2.5
        assert cfg.cluster_window_hours == 24.0

    def test_dotenv_file(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("VIGIL_CAMPAIGN_GAP_DAYS=3\n", encoding="utf-8")
        # load_dotenv writes into os.environ; register the key so it is removed afterwards
        monkeypatch.setenv("VIGIL_CAMPAIGN_GAP_DAYS", "placeholder")
        monkeypatch.delenv("VIGIL_CAMPAIGN_GAP_DAYS")

        cfg = AnalyticsConfig.from_env(dotenv_path=str(env_file))
        assert cfg.campaign_gap_days == 3.0

    def test_process_env_wins_over_dotenv(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("VIGIL_ANOMALY_BASELINE_DAYS=10\n", encoding="utf-8")
        monkeypatch.setenv("VIGIL_ANOMALY_BASELINE_DAYS", "14")

        cfg = AnalyticsConfig.from_env(dotenv_path=str(env_file))
        assert cfg.anomaly_baseline_days == 14

    @pytest.mark.parametrize("env", [
        {"VIGIL_MIN_PATTERN_OCCURRENCES": "0"},
        {"VIGIL_ANOMALY_THRESHOLD": "25"},
        {"VIGIL_CLUSTER_WINDOW_HOURS": "soon"},
        {"VIGIL_DORMANCY_DAYS": "0"},
    ])
    def test_invalid_values(self, env):
        with pytest.raises(ValidationError):
            AnalyticsConfig.from_env(env)

    def test_frozen(self):
        cfg = AnalyticsConfig()
        with pytest.raises(ValidationError):
            cfg.anomaly_threshold = 3.0


class TestGlobalConfig:
    def test_set_and_get(self):
        custom = AnalyticsConfig(min_pattern_occurrences=5)
        set_config(custom)
        assert get_config() is custom

    def test_lazy_reload(self, monkeypatch):
        monkeypatch.setenv("VIGIL_DEFAULT_ANALYSIS_DAYS", "45")
        monkeypatch.setattr(config_mod, "load_dotenv", lambda **kwargs: False)
        set_config(None)
        assert get_config().default_analysis_days == 45
