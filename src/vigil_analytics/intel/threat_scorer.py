# Intel Module - Threat Scorer (Risk Assessment)
#
# Weighted multi-factor risk scores for threat actors, vulnerabilities,
# IOCs and incidents. Every entity kind follows the same shape:
#
#   1. Each factor with source data gets a 0-100 sub-score (linear
#      range, categorical mapping, profile match, or time decay).
#      Factors without data are skipped, not scored as zero.
#   2. score = round(sum(sub * weight) / sum(weight)), 0 if nothing
#      was evaluated.
#   3. The score maps to a ``RiskLevel`` (LOW / MEDIUM / HIGH /
#      CRITICAL) and the full factor breakdown is returned so a score
#      can be explained to an analyst.
#
# ``create_scoring_model`` builds a reusable scorer with custom weights,
# renormalised to sum to 100.

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Type, TypeVar, Union

from ..core.audit_log import get_audit_logger
from .helpers import clamp, normalize, parse_timestamp, round_half_up, time_decay, to_number, utc_now
from .models import (
    IOC,
    AnalyticsError,
    ExploitMaturity,
    Incident,
    OrgProfile,
    ThreatActor,
    TrendStatus,
    Vulnerability,
)

logger = logging.getLogger(__name__)

E = TypeVar("E")


# ── Enums ────────────────────────────────────────────────────────────

class RiskLevel(str, Enum):
    """Final risk classification after scoring."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Numeric rank for sorting (higher = worse)
_RISK_RANK: Dict[RiskLevel, int] = {
    RiskLevel.LOW: 0,
    RiskLevel.MEDIUM: 1,
    RiskLevel.HIGH: 2,
    RiskLevel.CRITICAL: 3,
}

# Tier thresholds on the 0-100 scale: (medium, high, critical)
_RISK_THRESHOLDS = (25, 50, 75)


class EntityKind(str, Enum):
    """Entity kinds with a scoring model."""

    ACTORS = "actors"
    VULNERABILITIES = "vulnerabilities"
    IOCS = "iocs"
    INCIDENTS = "incidents"


_KIND_ALIASES: Dict[str, EntityKind] = {
    "actor": EntityKind.ACTORS,
    "threat_actor": EntityKind.ACTORS,
    "vulnerability": EntityKind.VULNERABILITIES,
    "ioc": EntityKind.IOCS,
    "incident": EntityKind.INCIDENTS,
}


class UnknownEntityKind(AnalyticsError):
    """Raised for an entity kind without a scoring model."""


class InvalidWeights(AnalyticsError):
    """Raised when a custom weight map cannot be normalised."""


def parse_entity_kind(value: Union[str, EntityKind]) -> EntityKind:
    if isinstance(value, EntityKind):
        return value
    if isinstance(value, str):
        key = value.strip().lower()
        try:
            return EntityKind(key)
        except ValueError:
            if key in _KIND_ALIASES:
                return _KIND_ALIASES[key]
    raise UnknownEntityKind(
        f"Unknown entity kind: {value!r} "
        f"(expected one of {', '.join(k.value for k in EntityKind)})"
    )


# ── Default models ───────────────────────────────────────────────────

DEFAULT_WEIGHTS: Mapping[EntityKind, Mapping[str, float]] = MappingProxyType({
    EntityKind.ACTORS: MappingProxyType({
        "incident_velocity": 25,     # incidents per day
        "incidents_7d": 20,          # recent activity volume
        "trend_status": 20,          # ESCALATING / STABLE / DECLINING
        "sector_relevance": 15,      # match with org profile
        "historical_impact": 10,     # past victim count
        "geographic_relevance": 10,  # target region match
    }),
    EntityKind.VULNERABILITIES: MappingProxyType({
        "cvss_score": 20,
        "epss_score": 25,
        "kev_status": 20,
        "exploit_maturity": 15,
        "vendor_relevance": 10,
        "recency": 10,
    }),
    EntityKind.IOCS: MappingProxyType({
        "confidence": 25,
        "source_reputation": 20,
        "age": 15,
        "correlation_count": 20,
        "enrichment_signals": 20,
    }),
    EntityKind.INCIDENTS: MappingProxyType({
        "recency": 25,
        "actor_severity": 25,
        "sector_match": 20,
        "geographic_match": 15,
        "data_impact": 15,
    }),
})

# Half-life (days) of the recency factor per entity kind
HALF_LIFE_DAYS: Mapping[EntityKind, float] = MappingProxyType({
    EntityKind.VULNERABILITIES: 90,
    EntityKind.IOCS: 14,
    EntityKind.INCIDENTS: 7,
})

_TREND_SCORES: Dict[TrendStatus, float] = {
    TrendStatus.ESCALATING: 100,
    TrendStatus.STABLE: 50,
    TrendStatus.DECLINING: 20,
}

_MATURITY_SCORES: Dict[ExploitMaturity, float] = {
    ExploitMaturity.WEAPONIZED: 100,
    ExploitMaturity.HIGH: 85,
    ExploitMaturity.FUNCTIONAL: 70,
    ExploitMaturity.POC: 50,
    ExploitMaturity.UNPROVEN: 25,
    ExploitMaturity.NOT_DEFINED: 0,
}

# Feeds whose indicators are curated / high signal
REPUTABLE_SOURCES = ("cisa_kev", "abuse_ch", "threatfox", "malwarebazaar", "feodo", "urlhaus")


# ── Data structures ──────────────────────────────────────────────────

@dataclass(frozen=True)
class ScoreFactor:
    """One evaluated factor of a score."""

    factor: str
    value: Any
    score: float       # 0 - 100
    weight: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "factor": self.factor,
            "value": self.value,
            "score": self.score,
            "weight": self.weight,
        }


@dataclass
class RiskScore:
    """A 0-100 risk score with its tier and explanation."""

    score: int = 0
    level: RiskLevel = RiskLevel.LOW
    factors: List[ScoreFactor] = field(default_factory=list)
    weights_used: Dict[str, float] = field(default_factory=dict)

    @property
    def rank(self) -> int:
        return _RISK_RANK[self.level]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "level": self.level.value,
            "factors": [f.to_dict() for f in self.factors],
            "weights_used": dict(self.weights_used),
        }


def map_risk_level(score: float) -> RiskLevel:
    med, high, crit = _RISK_THRESHOLDS
    if score >= crit:
        return RiskLevel.CRITICAL
    if score >= high:
        return RiskLevel.HIGH
    if score >= med:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


class _FactorSheet:
    """Accumulates evaluated factors into a weighted mean."""

    def __init__(self, weights: Mapping[str, float]):
        self._weights = weights
        self._factors: List[ScoreFactor] = []
        self._weighted_sum = 0.0
        self._total_weight = 0.0

    def add(self, name: str, value: Any, sub_score: float) -> None:
        weight = to_number(self._weights.get(name)) or 0.0
        sub_score = clamp(sub_score, 0.0, 100.0)
        self._factors.append(ScoreFactor(factor=name, value=value, score=sub_score, weight=weight))
        self._weighted_sum += sub_score * weight
        self._total_weight += weight

    def result(self) -> RiskScore:
        if self._total_weight > 0:
            final = int(round_half_up(self._weighted_sum / self._total_weight))
        else:
            final = 0
        return RiskScore(
            score=final,
            level=map_risk_level(final),
            factors=list(self._factors),
            weights_used=dict(self._weights),
        )


# ── Input coercion ───────────────────────────────────────────────────

def _coerce(entity: Any, cls: Type[E]) -> E:
    if isinstance(entity, cls):
        return entity
    if isinstance(entity, Mapping):
        return cls.from_dict(entity)
    return cls()


def _profile(org_profile: Any) -> Optional[OrgProfile]:
    if org_profile is None:
        return None
    return _coerce(org_profile, OrgProfile)


def _weights(kind: EntityKind, weights: Optional[Mapping[str, float]]) -> Mapping[str, float]:
    return weights if weights is not None else DEFAULT_WEIGHTS[kind]


def _contains_ci(haystack: str, needle: str) -> bool:
    return needle.lower() in haystack.lower()


def _decay_factor(
    sheet: _FactorSheet,
    name: str,
    when: Optional[datetime],
    kind: EntityKind,
    now: Optional[datetime],
) -> None:
    if when is None:
        return
    decay = time_decay(when, HALF_LIFE_DAYS[kind], now)
    sheet.add(name, round_half_up(decay, 2), decay * 100)


# ── Scorers ──────────────────────────────────────────────────────────

def score_actor(
    actor: Any,
    org_profile: Any = None,
    weights: Optional[Mapping[str, float]] = None,
) -> RiskScore:
    """Score a threat actor on activity, trend and relevance.

    No actor factor is time-decayed, so unlike the other scorers this one
    takes no reference time.
    """
    actor = _coerce(actor, ThreatActor)
    profile = _profile(org_profile)
    sheet = _FactorSheet(_weights(EntityKind.ACTORS, weights))

    if actor.incident_velocity is not None:
        # 5+ incidents per day saturates
        sheet.add("incident_velocity", actor.incident_velocity,
                  normalize(actor.incident_velocity, 0, 5))

    if actor.incidents_7d is not None:
        sheet.add("incidents_7d", actor.incidents_7d, normalize(actor.incidents_7d, 0, 20))

    if actor.trend_status is not None:
        sheet.add("trend_status", actor.trend_status.value, _TREND_SCORES[actor.trend_status])

    if profile and profile.sector and actor.target_sectors:
        match = any(s.lower() == profile.sector.lower() for s in actor.target_sectors)
        sheet.add("sector_relevance", match, 100 if match else 0)

    if profile and (profile.region or profile.country) and actor.target_countries:
        needles = [n for n in (profile.region, profile.country) if n]
        match = any(_contains_ci(c, n) for c in actor.target_countries for n in needles)
        sheet.add("geographic_relevance", match, 100 if match else 0)

    return sheet.result()


def score_vulnerability(
    vuln: Any,
    org_profile: Any = None,
    weights: Optional[Mapping[str, float]] = None,
    now: Optional[datetime] = None,
) -> RiskScore:
    """Score a vulnerability on severity, exploitation signals and recency."""
    vuln = _coerce(vuln, Vulnerability)
    profile = _profile(org_profile)
    now = parse_timestamp(now) or utc_now()
    sheet = _FactorSheet(_weights(EntityKind.VULNERABILITIES, weights))

    if vuln.cvss_score is not None:
        sheet.add("cvss_score", vuln.cvss_score, normalize(vuln.cvss_score, 0, 10))

    if vuln.epss_score is not None:
        sheet.add("epss_score", vuln.epss_score, vuln.epss_score * 100)

    exploited = vuln.known_exploited
    if exploited is not None:
        sheet.add("kev_status", exploited, 100 if exploited else 0)

    if vuln.exploit_maturity is not None:
        sheet.add("exploit_maturity", vuln.exploit_maturity.value,
                  _MATURITY_SCORES[vuln.exploit_maturity])

    if profile and profile.tech_vendors and vuln.vendor:
        match = any(_contains_ci(vuln.vendor, v) for v in profile.tech_vendors)
        sheet.add("vendor_relevance", match, 100 if match else 0)

    _decay_factor(sheet, "recency", vuln.published_date, EntityKind.VULNERABILITIES, now)

    return sheet.result()


def score_ioc(
    ioc: Any,
    weights: Optional[Mapping[str, float]] = None,
    now: Optional[datetime] = None,
) -> RiskScore:
    """Score an indicator on confidence, provenance, age and enrichment."""
    ioc = _coerce(ioc, IOC)
    now = parse_timestamp(now) or utc_now()
    sheet = _FactorSheet(_weights(EntityKind.IOCS, weights))

    if ioc.confidence is not None:
        sheet.add("confidence", ioc.confidence, normalize(ioc.confidence, 0, 100))

    if ioc.source:
        reputable = any(s in ioc.source.lower() for s in REPUTABLE_SOURCES)
        sheet.add("source_reputation", ioc.source, 80 if reputable else 40)

    _decay_factor(sheet, "age", ioc.first_seen, EntityKind.IOCS, now)

    if ioc.correlation_count is not None:
        # 10+ correlations saturates
        sheet.add("correlation_count", ioc.correlation_count,
                  normalize(ioc.correlation_count, 0, 10))

    if ioc.metadata is not None:
        meta = ioc.metadata
        signals = 0
        if meta.enriched:
            signals += 25
        if meta.has_vulns:
            signals += 25
        if meta.reputation_level and meta.reputation_level.lower() == "malicious":
            signals += 50
        if meta.suspicious_tld:
            signals += 25
        sheet.add("enrichment_signals", signals, min(signals, 100))

    return sheet.result()


def _actor_severity(actor: ThreatActor) -> float:
    severity = 50.0
    if actor.trend_status == TrendStatus.ESCALATING:
        severity = 90.0
    if actor.incidents_7d is not None and actor.incidents_7d > 10:
        severity = min(severity + 20, 100.0)
    return severity


def score_incident(
    incident: Any,
    org_profile: Any = None,
    weights: Optional[Mapping[str, float]] = None,
    now: Optional[datetime] = None,
) -> RiskScore:
    """Score an incident on recency, actor severity and relevance."""
    incident = _coerce(incident, Incident)
    profile = _profile(org_profile)
    now = parse_timestamp(now) or utc_now()
    sheet = _FactorSheet(_weights(EntityKind.INCIDENTS, weights))

    _decay_factor(sheet, "recency", incident.discovered_at, EntityKind.INCIDENTS, now)

    if incident.actor is not None:
        sheet.add("actor_severity", incident.actor.name, _actor_severity(incident.actor))

    if profile and profile.sector and incident.sector:
        match = incident.sector.lower() == profile.sector.lower()
        sheet.add("sector_match", match, 100 if match else 0)

    countries = [c for c in (incident.victim_country, *incident.target_countries) if c]
    if profile and profile.country and countries:
        match = any(c.lower() == profile.country.lower() for c in countries)
        sheet.add("geographic_match", match, 100 if match else 0)

    return sheet.result()


_SCORERS: Dict[EntityKind, Callable[..., RiskScore]] = {
    EntityKind.ACTORS: lambda e, p, w, now: score_actor(e, p, w),
    EntityKind.VULNERABILITIES: lambda e, p, w, now: score_vulnerability(e, p, w, now=now),
    EntityKind.IOCS: lambda e, p, w, now: score_ioc(e, w, now=now),
    EntityKind.INCIDENTS: lambda e, p, w, now: score_incident(e, p, w, now=now),
}


# ── Custom models ────────────────────────────────────────────────────

@dataclass(frozen=True)
class ScoringModel:
    """A scorer for one entity kind with fixed, normalised weights."""

    entity_kind: EntityKind
    weights: Mapping[str, float]

    def score(
        self,
        entity: Any,
        org_profile: Any = None,
        now: Optional[datetime] = None,
    ) -> RiskScore:
        return _SCORERS[self.entity_kind](entity, org_profile, self.weights, now)

    def score_batch(
        self,
        entities: List[Any],
        org_profile: Any = None,
        now: Optional[datetime] = None,
    ) -> List[RiskScore]:
        """Score several entities, highest risk first."""
        scores = [self.score(e, org_profile, now=now) for e in entities]
        scores.sort(key=lambda s: s.score, reverse=True)
        return scores


def normalize_weights(weights: Mapping[str, Any]) -> Dict[str, float]:
    """Rescale a weight map so its values sum to 100."""
    numeric: Dict[str, float] = {}
    for name, raw in weights.items():
        value = to_number(raw)
        if value is None or value < 0:
            raise InvalidWeights(f"Weight for {name!r} must be a non-negative number, got {raw!r}")
        numeric[name] = value
    total = sum(numeric.values())
    if total <= 0:
        raise InvalidWeights("Weights must not all be zero")
    return {name: value / total * 100 for name, value in numeric.items()}


def create_scoring_model(
    entity_kind: Union[str, EntityKind],
    custom_weights: Optional[Mapping[str, Any]] = None,
) -> ScoringModel:
    """Merge ``custom_weights`` over the kind's defaults and renormalise.

    Raises:
        UnknownEntityKind: ``entity_kind`` has no scoring model.
        InvalidWeights: a merged weight is not a non-negative number, or
            all weights are zero.
    """
    kind = parse_entity_kind(entity_kind)
    defaults = DEFAULT_WEIGHTS[kind]
    custom_weights = dict(custom_weights or {})

    unknown = sorted(set(custom_weights) - set(defaults))
    if unknown:
        logger.warning("Custom %s weights name unknown factors: %s", kind.value, unknown)

    merged = {**defaults, **custom_weights}
    weights = normalize_weights(merged)
    get_audit_logger().log_scoring_model(kind.value, weights)
    return ScoringModel(entity_kind=kind, weights=MappingProxyType(weights))
