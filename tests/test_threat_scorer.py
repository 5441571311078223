# Tests for the threat scorer
# Covers: per-kind scorers, skipped factors, tier boundaries,
#          org-profile relevance, custom weight renormalisation and
#          entity-kind parsing, and cleaning of records built directly.

from datetime import datetime, timedelta, timezone

import pytest

from vigil_analytics.intel.models import IOC, Incident, ThreatActor, TrendStatus, Vulnerability
from vigil_analytics.intel.threat_scorer import (
    DEFAULT_WEIGHTS,
    EntityKind,
    InvalidWeights,
    RiskLevel,
    RiskScore,
    UnknownEntityKind,
    create_scoring_model,
    map_risk_level,
    normalize_weights,
    parse_entity_kind,
    score_actor,
    score_incident,
    score_ioc,
    score_vulnerability,
)

NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


def _factor(result: RiskScore, name: str):
    return next((f for f in result.factors if f.factor == name), None)


# ── Risk tiers ───────────────────────────────────────────────────────

class TestRiskLevel:
    @pytest.mark.parametrize("score,level", [
        (100, RiskLevel.CRITICAL),
        (75, RiskLevel.CRITICAL),
        (74, RiskLevel.HIGH),
        (50, RiskLevel.HIGH),
        (49, RiskLevel.MEDIUM),
        (25, RiskLevel.MEDIUM),
        (24, RiskLevel.LOW),
        (0, RiskLevel.LOW),
    ])
    def test_boundaries(self, score, level):
        assert map_risk_level(score) == level

    def test_rank_orders_levels(self):
        low = RiskScore(score=10, level=RiskLevel.LOW)
        crit = RiskScore(score=90, level=RiskLevel.CRITICAL)
        assert crit.rank > low.rank


# ── Actors ───────────────────────────────────────────────────────────

class TestScoreActor:
    def test_activity_and_trend(self):
        result = score_actor({
            "name": "Akira",
            "incident_velocity": 2.5,
            "incidents_7d": 10,
            "trend_status": "ESCALATING",
        })
        assert result.score == 65
        assert result.level == RiskLevel.HIGH
        assert [f.factor for f in result.factors] == ["incident_velocity", "incidents_7d", "trend_status"]
        assert _factor(result, "incident_velocity").score == 50.0
        assert _factor(result, "trend_status").weight == 20

    def test_no_data_scores_zero(self):
        result = score_actor({"name": "X"})
        assert result.score == 0
        assert result.level == RiskLevel.LOW
        assert result.factors == []

    def test_saturation(self):
        result = score_actor({"incident_velocity": 12, "incidents_7d": 80})
        assert result.score == 100

    def test_unknown_trend_skipped(self):
        result = score_actor({"incidents_7d": 20, "trend_status": "SURGING"})
        assert _factor(result, "trend_status") is None
        assert result.score == 100

    def test_profile_relevance(self):
        actor = {
            "incidents_7d": 0,
            "target_sectors": ["Healthcare", "Education"],
            "target_countries": ["US", "GB"],
        }
        matched = score_actor(actor, {"sector": "healthcare", "country": "us"})
        assert _factor(matched, "sector_relevance").value is True
        assert _factor(matched, "geographic_relevance").value is True
        # (0*20 + 100*15 + 100*10) / 45
        assert matched.score == 56

        missed = score_actor(actor, {"sector": "energy", "country": "DE"})
        assert _factor(missed, "sector_relevance").score == 0
        assert _factor(missed, "geographic_relevance").score == 0
        assert missed.score == 0

    def test_profile_without_location_skips_geography(self):
        actor = {"target_countries": ["US"], "incidents_7d": 20}
        result = score_actor(actor, {"sector": "finance"})
        assert _factor(result, "geographic_relevance") is None


# ── Vulnerabilities ──────────────────────────────────────────────────

class TestScoreVulnerability:
    def test_critical_kev(self):
        result = score_vulnerability({
            "cve_id": "CVE-2026-0001",
            "cvss_score": 9.8,
            "epss_score": 0.5,
            "kev_date": "2026-02-20",
            "exploit_maturity": "weaponized",
            "published_date": NOW.isoformat(),
        }, now=NOW)
        assert result.score == 86
        assert result.level == RiskLevel.CRITICAL
        assert _factor(result, "kev_status").score == 100
        assert _factor(result, "recency").value == 1.0
        assert _factor(result, "vendor_relevance") is None

    def test_kev_explicitly_absent(self):
        result = score_vulnerability({"cvss_score": 5.0, "kev_date": None}, now=NOW)
        assert _factor(result, "kev_status").score == 0
        # (50*20 + 0*20) / 40
        assert result.score == 25

    def test_kev_unknown_is_skipped(self):
        result = score_vulnerability({"cvss_score": 5.0}, now=NOW)
        assert _factor(result, "kev_status") is None
        assert result.score == 50

    def test_recency_half_life(self):
        published = NOW - timedelta(days=90)
        result = score_vulnerability({"published_date": published.isoformat()}, now=NOW)
        recency = _factor(result, "recency")
        assert recency.value == 0.5
        assert recency.score == pytest.approx(50.0)

    def test_vendor_relevance(self):
        vuln = {"vendor": "Microsoft Corporation", "cvss_score": 10}
        hit = score_vulnerability(vuln, {"tech_vendors": ["microsoft"]}, now=NOW)
        miss = score_vulnerability(vuln, {"tech_vendors": ["Cisco"]}, now=NOW)
        assert _factor(hit, "vendor_relevance").score == 100
        assert _factor(miss, "vendor_relevance").score == 0
        assert hit.score > miss.score

    def test_unrecognised_maturity_skipped(self):
        result = score_vulnerability({"exploit_maturity": "rumoured"}, now=NOW)
        assert result.factors == []


# ── IOCs ─────────────────────────────────────────────────────────────

class TestScoreIOC:
    def test_weighted_mix(self):
        result = score_ioc({
            "value": "185.220.101.4",
            "type": "ip",
            "confidence": 80,
            "source": "abuse_ch",
            "first_seen": (NOW - timedelta(days=14)).isoformat(),
            "correlation_count": 5,
            "metadata": {"enriched": True, "reputation_level": "malicious"},
        }, now=NOW)
        # (80*25 + 80*20 + 50*15 + 50*20 + 75*20) / 100 = 68.5
        assert result.score == 69
        assert result.level == RiskLevel.HIGH
        assert _factor(result, "age").value == 0.5
        assert _factor(result, "enrichment_signals").value == 75

    def test_unknown_source(self):
        result = score_ioc({"source": "pastebin-scrape"}, now=NOW)
        assert _factor(result, "source_reputation").score == 40

    def test_enrichment_capped(self):
        result = score_ioc({
            "metadata": {
                "enriched": True,
                "has_vulns": True,
                "reputation_level": "Malicious",
                "suspicious_tld": True,
            },
        }, now=NOW)
        signals = _factor(result, "enrichment_signals")
        assert signals.value == 125
        assert signals.score == 100


# ── Incidents ────────────────────────────────────────────────────────

@pytest.fixture
def hot_incident():
    return {
        "discovered_at": NOW.isoformat(),
        "sector": "Healthcare",
        "victim_country": "US",
        "threat_actor": {"name": "Akira", "trend_status": "ESCALATING", "incidents_7d": 15},
    }


class TestScoreIncident:
    def test_everything_matches(self, hot_incident):
        profile = {"sector": "healthcare", "country": "us"}
        result = score_incident(hot_incident, profile, now=NOW)
        assert result.score == 100
        assert result.level == RiskLevel.CRITICAL
        assert _factor(result, "actor_severity").score == 100
        assert _factor(result, "data_impact") is None

    def test_sector_mismatch(self, hot_incident):
        result = score_incident(hot_incident, {"sector": "finance", "country": "US"}, now=NOW)
        # (100*25 + 100*25 + 0*20 + 100*15) / 85
        assert result.score == 76

    def test_actor_severity_baseline(self):
        result = score_incident({"threat_actor": {"name": "Quiet"}}, now=NOW)
        assert _factor(result, "actor_severity").score == 50
        assert result.score == 50

    def test_target_countries_count_for_geography(self):
        incident = {"target_countries": ["CA", "US"]}
        result = score_incident(incident, {"country": "US"}, now=NOW)
        assert _factor(result, "geographic_match").value is True

    def test_no_profile(self, hot_incident):
        result = score_incident(hot_incident, now=NOW)
        assert [f.factor for f in result.factors] == ["recency", "actor_severity"]


# ── Records built directly ───────────────────────────────────────────

NAN = float("nan")


class TestDataclassRecords:
    def test_naive_incident_time_read_as_utc(self):
        result = score_incident(Incident(discovered_at=datetime(2026, 3, 1)), now=NOW)
        assert _factor(result, "recency").score == 100
        assert result.score == 100

    def test_naive_reference_time(self):
        incident = Incident(discovered_at=NOW - timedelta(days=7))
        assert score_incident(incident, now=datetime(2026, 3, 1)).score == 50

    def test_naive_vulnerability_and_ioc_times(self):
        vuln = Vulnerability(published_date=datetime(2025, 12, 1))
        assert _factor(score_vulnerability(vuln, now=NOW), "recency").value == 0.5

        ioc = IOC(first_seen=datetime(2026, 2, 15))
        assert _factor(score_ioc(ioc, now=NOW), "age").value == 0.5

    @pytest.mark.parametrize("bad", [NAN, float("inf"), "high", [9.8]])
    def test_unusable_vulnerability_numbers_skipped(self, bad):
        result = score_vulnerability(Vulnerability(cvss_score=bad, epss_score=bad), now=NOW)
        assert result.factors == []
        assert result.score == 0
        assert result.level == RiskLevel.LOW

    def test_numeric_strings_coerced(self):
        result = score_vulnerability(Vulnerability(cvss_score="9.8", epss_score=" 0.5 "), now=NOW)
        assert _factor(result, "cvss_score").value == 9.8
        assert _factor(result, "epss_score").score == 50
        # (98*20 + 50*25) / 45
        assert result.score == 71

    @pytest.mark.parametrize("bad", [NAN, "many"])
    def test_unusable_actor_numbers_skipped(self, bad):
        result = score_actor(ThreatActor(name="Akira", incident_velocity=bad, incidents_7d=bad))
        assert result.factors == []
        assert result.score == 0

    def test_actor_string_counts_coerced(self):
        result = score_actor(ThreatActor(incident_velocity="2.5", incidents_7d="10", trend_status="escalating"))
        assert result.score == 65

    @pytest.mark.parametrize("bad", [NAN, "lots"])
    def test_unusable_ioc_numbers_skipped(self, bad):
        result = score_ioc(IOC(confidence=bad, correlation_count=bad), now=NOW)
        assert result.factors == []
        assert result.score == 0

    def test_ioc_metadata_mapping_and_string_confidence(self):
        result = score_ioc(IOC(confidence="80", metadata={"reputation_level": "malicious"}), now=NOW)
        assert _factor(result, "confidence").score == 80
        assert _factor(result, "enrichment_signals").value == 50

    def test_incident_actor_with_nan_counts(self):
        actor = ThreatActor(name="Akira", trend_status=TrendStatus.ESCALATING, incidents_7d=NAN)
        result = score_incident(Incident(actor=actor), now=NOW)
        assert _factor(result, "actor_severity").score == 90

    def test_actor_model_ignores_reference_time(self):
        model = create_scoring_model("actors")
        actor = ThreatActor(incidents_7d=20)
        assert model.score(actor, now=NOW).score == model.score(actor).score == 100


# ── Custom models ────────────────────────────────────────────────────

class TestEntityKind:
    @pytest.mark.parametrize("value,kind", [
        ("actors", EntityKind.ACTORS),
        ("actor", EntityKind.ACTORS),
        ("Vulnerabilities", EntityKind.VULNERABILITIES),
        ("ioc", EntityKind.IOCS),
        (EntityKind.INCIDENTS, EntityKind.INCIDENTS),
    ])
    def test_parse(self, value, kind):
        assert parse_entity_kind(value) == kind

    @pytest.mark.parametrize("value", ["assets", "", None, 3])
    def test_unknown(self, value):
        with pytest.raises(UnknownEntityKind):
            parse_entity_kind(value)


class TestCreateScoringModel:
    def test_default_weights_sum_to_100(self):
        for kind in EntityKind:
            model = create_scoring_model(kind)
            assert sum(model.weights.values()) == pytest.approx(100)
            assert set(model.weights) == set(DEFAULT_WEIGHTS[kind])

    def test_override_rebalances(self):
        model = create_scoring_model("vulnerabilities", {"cvss_score": 60})
        assert sum(model.weights.values()) == pytest.approx(100)
        assert model.weights["cvss_score"] == pytest.approx(60 / 140 * 100)
        assert model.weights["epss_score"] == pytest.approx(25 / 140 * 100)

    def test_weights_are_read_only(self):
        model = create_scoring_model("iocs")
        with pytest.raises(TypeError):
            model.weights["confidence"] = 99

    def test_model_scores_with_its_weights(self):
        model = create_scoring_model("actors", {"trend_status": 0})
        result = model.score({"incidents_7d": 20, "trend_status": "DECLINING"})
        assert _factor(result, "trend_status").weight == 0
        assert result.score == 100

    def test_score_batch_sorted(self):
        model = create_scoring_model("actor")
        scores = model.score_batch([
            {"incidents_7d": 2},
            {"incidents_7d": 20},
            {"incidents_7d": 10},
        ], now=NOW)
        assert [s.score for s in scores] == [100, 50, 10]

    def test_unknown_kind(self):
        with pytest.raises(UnknownEntityKind):
            create_scoring_model("assets")

    @pytest.mark.parametrize("weights", [
        {"cvss_score": -1},
        {"cvss_score": "heavy"},
        {k: 0 for k in DEFAULT_WEIGHTS[EntityKind.VULNERABILITIES]},
    ])
    def test_invalid_weights(self, weights):
        with pytest.raises(InvalidWeights):
            create_scoring_model("vulnerabilities", weights)

    def test_unknown_factor_names_warn(self, caplog):
        with caplog.at_level("WARNING"):
            model = create_scoring_model("iocs", {"vibes": 10})
        assert "vibes" in caplog.text
        assert "vibes" in model.weights

    def test_normalize_weights(self):
        assert normalize_weights({"a": 1, "b": 3}) == {"a": 25.0, "b": 75.0}
