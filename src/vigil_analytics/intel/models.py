# Intel Module - Threat Record Data Models
#
# Input records consumed by the analytics engine:
#   Incident       - a reported attack / victim disclosure
#   ThreatActor    - the group an incident is attributed to
#   Vulnerability  - CVE with exploitation signals (CVSS, EPSS, KEV)
#   IOC            - Indicator of Compromise with enrichment metadata
#   OrgProfile     - optional organisational context for relevance
#
# Records are immutable. ``from_dict`` accepts raw storage rows and never
# raises on malformed values: bad timestamps and numbers become ``None``.
# Records constructed directly get the same cleaning in ``__post_init__``
# (timestamps become aware UTC, non-finite numbers become ``None``).

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from .helpers import parse_timestamp, to_number


class AnalyticsError(ValueError):
    """Base class for caller-visible configuration errors."""


class TrendStatus(str, Enum):
    """Activity trend of a threat actor."""

    ESCALATING = "ESCALATING"
    STABLE = "STABLE"
    DECLINING = "DECLINING"

    @classmethod
    def parse(cls, value: Any) -> Optional["TrendStatus"]:
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None


class ExploitMaturity(str, Enum):
    """Exploit code maturity (CVSS temporal metric, extended)."""

    WEAPONIZED = "weaponized"
    HIGH = "high"
    FUNCTIONAL = "functional"
    POC = "poc"
    UNPROVEN = "unproven"
    NOT_DEFINED = "not_defined"

    @classmethod
    def parse(cls, value: Any) -> Optional["ExploitMaturity"]:
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


# ---------------------------------------------------------------------------
# Coercion helpers for raw rows
# ---------------------------------------------------------------------------


def _str_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _str_tuple(value: Any) -> Tuple[str, ...]:
    """Coerce a list-ish value to a tuple of non-empty strings."""
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, Iterable):
        return ()
    return tuple(str(v) for v in value if v is not None and str(v).strip())


def _int_or_none(value: Any) -> Optional[int]:
    num = to_number(value)
    return int(num) if num is not None else None


def _set(record: Any, name: str, value: Any) -> None:
    """Assign to a field of a frozen record during ``__post_init__``."""
    object.__setattr__(record, name, value)


# ---------------------------------------------------------------------------
# Data Models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ThreatActor:
    """A threat actor (ransomware crew, APT, etc.)."""

    id: Optional[str] = None
    name: Optional[str] = None
    trend_status: Optional[TrendStatus] = None
    incident_velocity: Optional[float] = None  # incidents per day
    incidents_7d: Optional[int] = None
    target_sectors: Tuple[str, ...] = ()
    target_countries: Tuple[str, ...] = ()
    sophistication: Optional[str] = None
    actor_type: Optional[str] = None

    def __post_init__(self):
        _set(self, "trend_status", TrendStatus.parse(self.trend_status))
        _set(self, "incident_velocity", to_number(self.incident_velocity))
        _set(self, "incidents_7d", _int_or_none(self.incidents_7d))
        _set(self, "target_sectors", _str_tuple(self.target_sectors))
        _set(self, "target_countries", _str_tuple(self.target_countries))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ThreatActor":
        return cls(
            id=_str_or_none(data.get("id")),
            name=_str_or_none(data.get("name")),
            trend_status=TrendStatus.parse(data.get("trend_status")),
            incident_velocity=to_number(data.get("incident_velocity")),
            incidents_7d=_int_or_none(data.get("incidents_7d")),
            target_sectors=_str_tuple(data.get("target_sectors")),
            target_countries=_str_tuple(data.get("target_countries")),
            sophistication=_str_or_none(data.get("sophistication")),
            actor_type=_str_or_none(data.get("actor_type")),
        )

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["trend_status"] = self.trend_status.value if self.trend_status else None
        return d


@dataclass(frozen=True)
class Incident:
    """A single security incident, optionally joined to its actor."""

    id: Optional[str] = None
    discovered_at: Optional[datetime] = None
    actor_id: Optional[str] = None
    actor: Optional[ThreatActor] = None
    sector: Optional[str] = None
    target_countries: Tuple[str, ...] = ()
    ttps: Tuple[str, ...] = ()
    victim_country: Optional[str] = None

    def __post_init__(self):
        _set(self, "discovered_at", parse_timestamp(self.discovered_at))
        if isinstance(self.actor, Mapping):
            _set(self, "actor", ThreatActor.from_dict(self.actor))
        elif not isinstance(self.actor, ThreatActor):
            _set(self, "actor", None)
        _set(self, "actor_id", _str_or_none(self.actor_id) or (self.actor.id if self.actor else None))
        _set(self, "target_countries", _str_tuple(self.target_countries))
        _set(self, "ttps", _str_tuple(self.ttps))
        _set(self, "sector", _str_or_none(self.sector))
        _set(self, "victim_country", _str_or_none(self.victim_country))

    @property
    def actor_name(self) -> Optional[str]:
        return self.actor.name if self.actor else None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Incident":
        raw_actor = data.get("threat_actor")
        actor = None
        if isinstance(raw_actor, ThreatActor):
            actor = raw_actor
        elif isinstance(raw_actor, Mapping):
            actor = ThreatActor.from_dict(raw_actor)

        actor_id = _str_or_none(data.get("threat_actor_id") or data.get("actor_id"))
        if actor_id is None and actor is not None:
            actor_id = actor.id

        discovered = parse_timestamp(data.get("discovered_at"))
        if discovered is None:
            discovered = parse_timestamp(data.get("discovered_date"))
        if discovered is None:
            discovered = parse_timestamp(data.get("created_at"))

        return cls(
            id=_str_or_none(data.get("id")),
            discovered_at=discovered,
            actor_id=actor_id,
            actor=actor,
            sector=_str_or_none(data.get("sector") or data.get("victim_sector")),
            target_countries=_str_tuple(data.get("target_countries")),
            ttps=_str_tuple(data.get("ttps")),
            victim_country=_str_or_none(data.get("victim_country")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "discovered_at": self.discovered_at.isoformat() if self.discovered_at else None,
            "threat_actor_id": self.actor_id,
            "threat_actor": self.actor.to_dict() if self.actor else None,
            "sector": self.sector,
            "target_countries": list(self.target_countries),
            "ttps": list(self.ttps),
            "victim_country": self.victim_country,
        }


@dataclass(frozen=True)
class Vulnerability:
    """A CVE with exploitation-likelihood signals.

    ``kev_status`` is tri-state: ``None`` when nothing is known about
    CISA KEV membership, ``False`` when the source row carried an
    explicit empty ``kev_date``. A ``kev_date`` always implies exploited.
    """

    cve_id: Optional[str] = None
    cvss_score: Optional[float] = None  # 0.0 - 10.0
    epss_score: Optional[float] = None  # 0.0 - 1.0
    kev_date: Optional[datetime] = None
    kev_status: Optional[bool] = None
    exploit_maturity: Optional[ExploitMaturity] = None
    vendor: Optional[str] = None
    published_date: Optional[datetime] = None

    def __post_init__(self):
        _set(self, "cvss_score", to_number(self.cvss_score))
        _set(self, "epss_score", to_number(self.epss_score))
        _set(self, "kev_date", parse_timestamp(self.kev_date))
        if not isinstance(self.kev_status, bool):
            _set(self, "kev_status", None)
        _set(self, "exploit_maturity", ExploitMaturity.parse(self.exploit_maturity))
        _set(self, "vendor", _str_or_none(self.vendor))
        _set(self, "published_date", parse_timestamp(self.published_date))

    @property
    def known_exploited(self) -> Optional[bool]:
        if self.kev_date is not None:
            return True
        return self.kev_status

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Vulnerability":
        kev_date = parse_timestamp(data.get("kev_date"))
        kev_status = data.get("kev_status")
        if not isinstance(kev_status, bool):
            kev_status = None
        if kev_status is None and "kev_date" in data:
            kev_status = bool(data.get("kev_date"))

        published = parse_timestamp(data.get("published_date"))
        if published is None:
            published = parse_timestamp(data.get("created_at"))

        return cls(
            cve_id=_str_or_none(data.get("cve_id")),
            cvss_score=to_number(data.get("cvss_score")),
            epss_score=to_number(data.get("epss_score")),
            kev_date=kev_date,
            kev_status=kev_status,
            exploit_maturity=ExploitMaturity.parse(data.get("exploit_maturity")),
            vendor=_str_or_none(data.get("vendor")),
            published_date=published,
        )


@dataclass(frozen=True)
class IOCMetadata:
    """Enrichment flags attached to an IOC."""

    enriched: bool = False
    has_vulns: bool = False
    reputation_level: Optional[str] = None
    suspicious_tld: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "IOCMetadata":
        return cls(
            enriched=bool(data.get("enriched")),
            has_vulns=bool(data.get("has_vulns")),
            reputation_level=_str_or_none(data.get("reputation_level")),
            suspicious_tld=bool(data.get("suspicious_tld")),
        )


@dataclass(frozen=True)
class IOC:
    """Indicator of Compromise (IP, domain, hash, URL ...)."""

    value: Optional[str] = None
    ioc_type: Optional[str] = None
    confidence: Optional[float] = None  # 0 - 100
    source: Optional[str] = None
    first_seen: Optional[datetime] = None
    correlation_count: Optional[int] = None
    metadata: Optional[IOCMetadata] = None

    def __post_init__(self):
        _set(self, "confidence", to_number(self.confidence))
        _set(self, "source", _str_or_none(self.source))
        _set(self, "first_seen", parse_timestamp(self.first_seen))
        _set(self, "correlation_count", _int_or_none(self.correlation_count))
        if isinstance(self.metadata, Mapping):
            _set(self, "metadata", IOCMetadata.from_dict(self.metadata))
        elif not isinstance(self.metadata, IOCMetadata):
            _set(self, "metadata", None)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "IOC":
        first_seen = parse_timestamp(data.get("first_seen"))
        if first_seen is None:
            first_seen = parse_timestamp(data.get("created_at"))

        raw_meta = data.get("metadata")
        metadata = None
        if isinstance(raw_meta, IOCMetadata):
            metadata = raw_meta
        elif isinstance(raw_meta, Mapping):
            metadata = IOCMetadata.from_dict(raw_meta)

        return cls(
            value=_str_or_none(data.get("value")),
            ioc_type=_str_or_none(data.get("type") or data.get("ioc_type")),
            confidence=to_number(data.get("confidence")),
            source=_str_or_none(data.get("source")),
            first_seen=first_seen,
            correlation_count=_int_or_none(data.get("correlation_count")),
            metadata=metadata,
        )


@dataclass(frozen=True)
class OrgProfile:
    """Organisation context used for relevance factors."""

    sector: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None
    tech_vendors: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        for name in ("sector", "region", "country"):
            _set(self, name, _str_or_none(getattr(self, name)))
        _set(self, "tech_vendors", _str_tuple(self.tech_vendors))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "OrgProfile":
        return cls(
            sector=_str_or_none(data.get("sector")),
            region=_str_or_none(data.get("region")),
            country=_str_or_none(data.get("country")),
            tech_vendors=_str_tuple(data.get("tech_vendors")),
        )


# ---------------------------------------------------------------------------
# Coercion entry points
# ---------------------------------------------------------------------------


def as_incident(record: Any) -> Incident:
    """Accept an ``Incident`` or a raw row mapping."""
    if isinstance(record, Incident):
        return record
    if isinstance(record, Mapping):
        return Incident.from_dict(record)
    return Incident()


def as_incidents(records: Iterable[Any]) -> Tuple[Incident, ...]:
    return tuple(as_incident(r) for r in records)
