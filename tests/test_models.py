# Tests for the threat record data models
# Covers: raw-row coercion for Incident, ThreatActor, Vulnerability,
#          IOC and OrgProfile, tolerant parsing and enum parsing.

from datetime import datetime, timedelta, timezone

import pytest

from vigil_analytics.intel.models import (
    IOC,
    ExploitMaturity,
    Incident,
    OrgProfile,
    ThreatActor,
    TrendStatus,
    Vulnerability,
    as_incident,
    as_incidents,
)


# ── Enums ────────────────────────────────────────────────────────────

class TestEnums:
    def test_trend_status_parse(self):
        assert TrendStatus.parse("escalating") == TrendStatus.ESCALATING
        assert TrendStatus.parse(" STABLE ") == TrendStatus.STABLE
        assert TrendStatus.parse(TrendStatus.DECLINING) == TrendStatus.DECLINING
        assert TrendStatus.parse("surging") is None
        assert TrendStatus.parse(None) is None

    def test_exploit_maturity_parse(self):
        assert ExploitMaturity.parse("Weaponized") == ExploitMaturity.WEAPONIZED
        assert ExploitMaturity.parse("poc") == ExploitMaturity.POC
        assert ExploitMaturity.parse("rumoured") is None


# ── Incident ─────────────────────────────────────────────────────────

class TestIncident:
    def test_from_row_with_joined_actor(self):
        inc = Incident.from_dict({
            "id": 42,
            "discovered_at": "2026-02-10T08:00:00Z",
            "threat_actor": {"id": "a1", "name": "Akira", "trend_status": "ESCALATING"},
            "sector": "healthcare",
            "target_countries": ["US", "CA"],
            "ttps": ["T1486", None, ""],
        })
        assert inc.id == "42"
        assert inc.actor_id == "a1"
        assert inc.actor_name == "Akira"
        assert inc.actor.trend_status == TrendStatus.ESCALATING
        assert inc.discovered_at == datetime(2026, 2, 10, 8, tzinfo=timezone.utc)
        assert inc.target_countries == ("US", "CA")
        assert inc.ttps == ("T1486",)

    def test_threat_actor_id_wins_over_join(self):
        inc = Incident.from_dict({"threat_actor_id": "a9", "threat_actor": {"id": "a1"}})
        assert inc.actor_id == "a9"

    def test_created_at_fallback(self):
        inc = Incident.from_dict({"discovered_at": None, "created_at": "2026-01-01T00:00:00"})
        assert inc.discovered_at == datetime(2026, 1, 1, tzinfo=timezone.utc)

    def test_malformed_fields_become_none(self):
        inc = Incident.from_dict({
            "discovered_at": "yesterday-ish",
            "target_countries": 17,
            "threat_actor": "not a mapping",
        })
        assert inc.discovered_at is None
        assert inc.target_countries == ()
        assert inc.actor is None
        assert inc.actor_name is None

    def test_as_incident_passthrough_and_garbage(self):
        inc = Incident(id="x")
        assert as_incident(inc) is inc
        assert as_incident(None) == Incident()
        assert len(as_incidents([inc, {"id": "y"}, 5])) == 3

    def test_to_dict(self):
        inc = Incident.from_dict({"id": "1", "discovered_at": "2026-02-10T08:00:00Z", "sector": "energy"})
        d = inc.to_dict()
        assert d["sector"] == "energy"
        assert d["discovered_at"].startswith("2026-02-10T08:00:00")
        assert d["threat_actor"] is None


# ── ThreatActor ──────────────────────────────────────────────────────

class TestThreatActor:
    def test_numeric_coercion(self):
        actor = ThreatActor.from_dict({
            "name": "LockBit",
            "incident_velocity": "2.5",
            "incidents_7d": 12.0,
            "target_sectors": "finance",
        })
        assert actor.incident_velocity == 2.5
        assert actor.incidents_7d == 12
        assert actor.target_sectors == ("finance",)

    def test_invalid_numbers_are_dropped(self):
        actor = ThreatActor.from_dict({"incident_velocity": "fast", "incidents_7d": True})
        assert actor.incident_velocity is None
        assert actor.incidents_7d is None

    def test_to_dict_serialises_trend(self):
        actor = ThreatActor(name="X", trend_status=TrendStatus.STABLE)
        assert actor.to_dict()["trend_status"] == "STABLE"


# ── Vulnerability ────────────────────────────────────────────────────

class TestVulnerability:
    def test_kev_date_means_exploited(self):
        vuln = Vulnerability.from_dict({"kev_date": "2025-11-01"})
        assert vuln.known_exploited is True

    def test_explicit_null_kev_date_means_not_exploited(self):
        vuln = Vulnerability.from_dict({"kev_date": None})
        assert vuln.known_exploited is False

    def test_absent_kev_date_is_unknown(self):
        vuln = Vulnerability.from_dict({"cvss_score": 5.0})
        assert vuln.known_exploited is None

    def test_published_date_fallback(self):
        vuln = Vulnerability.from_dict({"created_at": "2026-01-15T00:00:00Z"})
        assert vuln.published_date == datetime(2026, 1, 15, tzinfo=timezone.utc)


# ── IOC / OrgProfile ─────────────────────────────────────────────────

class TestIOC:
    def test_metadata(self):
        ioc = IOC.from_dict({
            "value": "evil.example.xyz",
            "type": "domain",
            "confidence": 90,
            "metadata": {"enriched": True, "reputation_level": "malicious"},
        })
        assert ioc.ioc_type == "domain"
        assert ioc.confidence == 90.0
        assert ioc.metadata.enriched is True
        assert ioc.metadata.has_vulns is False
        assert ioc.metadata.reputation_level == "malicious"

    def test_no_metadata(self):
        assert IOC.from_dict({"value": "1.2.3.4"}).metadata is None


class TestOrgProfile:
    def test_from_dict(self):
        profile = OrgProfile.from_dict({
            "sector": "healthcare",
            "country": "US",
            "tech_vendors": ["Microsoft", "Cisco"],
        })
        assert profile.sector == "healthcare"
        assert profile.region is None
        assert profile.tech_vendors == ("Microsoft", "Cisco")

    @pytest.mark.parametrize("vendors", [None, [], "Fortinet"])
    def test_vendor_shapes(self, vendors):
        profile = OrgProfile.from_dict({"tech_vendors": vendors})
        assert isinstance(profile.tech_vendors, tuple)


# ── Direct construction ──────────────────────────────────────────────

class TestDirectConstruction:
    def test_naive_timestamps_become_utc(self):
        inc = Incident(discovered_at=datetime(2026, 2, 20, 8, 30))
        assert inc.discovered_at == datetime(2026, 2, 20, 8, 30, tzinfo=timezone.utc)
        assert inc.discovered_at.tzinfo is not None

        vuln = Vulnerability(kev_date="2025-11-01", published_date=datetime(2025, 10, 1))
        assert vuln.kev_date == datetime(2025, 11, 1, tzinfo=timezone.utc)
        assert vuln.published_date.tzinfo is not None
        assert vuln.known_exploited is True

        ioc = IOC(first_seen=datetime(2026, 1, 1))
        assert ioc.first_seen == datetime(2026, 1, 1, tzinfo=timezone.utc)

    def test_offset_timestamps_normalised_to_utc(self):
        cet = timezone(timedelta(hours=1))
        inc = Incident(discovered_at=datetime(2026, 2, 20, 1, 0, tzinfo=cet))
        assert inc.discovered_at == datetime(2026, 2, 20, 0, 0, tzinfo=timezone.utc)
        assert inc.discovered_at.utcoffset() == timedelta(0)

    def test_non_finite_and_text_numbers_become_none(self):
        actor = ThreatActor(incident_velocity=float("nan"), incidents_7d="many")
        assert actor.incident_velocity is None
        assert actor.incidents_7d is None

        vuln = Vulnerability(cvss_score=float("inf"), epss_score="likely", kev_status="yes")
        assert vuln.cvss_score is None
        assert vuln.epss_score is None
        assert vuln.kev_status is None

        ioc = IOC(confidence=float("nan"), correlation_count="3")
        assert ioc.confidence is None
        assert ioc.correlation_count == 3

    def test_enum_and_sequence_fields(self):
        actor = ThreatActor(trend_status="escalating", target_sectors="finance")
        assert actor.trend_status == TrendStatus.ESCALATING
        assert actor.target_sectors == ("finance",)

        vuln = Vulnerability(exploit_maturity="WEAPONIZED")
        assert vuln.exploit_maturity == ExploitMaturity.WEAPONIZED

        assert Incident(ttps=["T1486"]).ttps == ("T1486",)

    def test_incident_actor_mapping_and_id(self):
        inc = Incident(actor={"id": "actor-akira", "name": "Akira"})
        assert isinstance(inc.actor, ThreatActor)
        assert inc.actor_id == "actor-akira"
        assert inc.actor_name == "Akira"

        assert Incident(actor="Akira").actor is None
        assert Incident(actor_id="actor-x", actor=ThreatActor(id="actor-y")).actor_id == "actor-x"

    def test_ioc_metadata_mapping(self):
        ioc = IOC(metadata={"has_vulns": 1})
        assert ioc.metadata.has_vulns is True
        assert IOC(metadata="enriched").metadata is None
