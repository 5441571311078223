# Intel Module - Detected Pattern Types
#
# Output structures of the pattern detector. Each pattern type has its
# own dataclass; all share ``confidence`` (0.0 - 1.0, a heuristic
# strength, not a probability) and a human-readable ``description``.
#
# Patterns are recomputed on every analysis run. ``pattern_key`` gives
# consumers a stable identity so the same pattern can be recognised
# across runs (e.g. to count how often it recurs).

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Union

from .models import AnalyticsError


class PatternType(str, Enum):
    """Kinds of patterns the detector can produce."""

    ACTOR_SECTOR = "actor_sector"
    ACTOR_TECHNIQUE = "actor_technique"
    SECTOR_TECHNIQUE = "sector_technique"
    TEMPORAL_CLUSTER = "temporal_cluster"
    GEOGRAPHIC = "geographic"
    CAMPAIGN = "campaign"
    ANOMALY = "anomaly"
    DORMANT_ACTOR = "dormant_actor"
    REACTIVATED_ACTOR = "reactivated_actor"


class UnknownPatternType(AnalyticsError):
    """Raised when a pattern-type filter names an unknown type."""


def parse_pattern_type(value: Union[str, PatternType]) -> PatternType:
    if isinstance(value, PatternType):
        return value
    try:
        return PatternType(str(value).strip().lower())
    except ValueError:
        raise UnknownPatternType(
            f"Unknown pattern type: {value!r} "
            f"(expected one of {', '.join(t.value for t in PatternType)})"
        ) from None


def _iso(ts: Optional[datetime]) -> Optional[str]:
    return ts.isoformat() if ts else None


def _day(ts: Optional[datetime]) -> str:
    return ts.date().isoformat() if ts else ""


# ── Pattern variants ─────────────────────────────────────────────────

@dataclass(frozen=True)
class Pattern(ABC):
    """Fields common to every pattern."""

    type: ClassVar[PatternType]

    confidence: float = 0.0
    description: str = ""

    @property
    @abstractmethod
    def pattern_key(self) -> str:
        """Identity of the pattern that is stable across runs."""

    def _payload(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"type": self.type.value}
        d.update(self._payload())
        d["confidence"] = self.confidence
        d["description"] = self.description
        d["pattern_key"] = self.pattern_key
        return d


@dataclass(frozen=True)
class ActorSectorPattern(Pattern):
    type: ClassVar[PatternType] = PatternType.ACTOR_SECTOR

    actor_id: str = ""
    actor_name: str = ""
    sector: str = ""
    occurrences: int = 0

    @property
    def pattern_key(self) -> str:
        return f"{self.type.value}:{self.actor_id}:{self.sector}"

    def _payload(self) -> Dict[str, Any]:
        return {
            "actor_id": self.actor_id,
            "actor_name": self.actor_name,
            "sector": self.sector,
            "occurrences": self.occurrences,
        }


@dataclass(frozen=True)
class ActorTechniquePattern(Pattern):
    type: ClassVar[PatternType] = PatternType.ACTOR_TECHNIQUE

    actor_id: str = ""
    actor_name: str = ""
    technique: str = ""
    occurrences: int = 0

    @property
    def pattern_key(self) -> str:
        return f"{self.type.value}:{self.actor_id}:{self.technique}"

    def _payload(self) -> Dict[str, Any]:
        return {
            "actor_id": self.actor_id,
            "actor_name": self.actor_name,
            "technique": self.technique,
            "occurrences": self.occurrences,
        }


@dataclass(frozen=True)
class SectorTechniquePattern(Pattern):
    type: ClassVar[PatternType] = PatternType.SECTOR_TECHNIQUE

    sector: str = ""
    technique: str = ""
    occurrences: int = 0
    actors: List[str] = field(default_factory=list)

    @property
    def pattern_key(self) -> str:
        return f"{self.type.value}:{self.sector}:{self.technique}"

    def _payload(self) -> Dict[str, Any]:
        return {
            "sector": self.sector,
            "technique": self.technique,
            "occurrences": self.occurrences,
            "actors": list(self.actors),
        }


@dataclass(frozen=True)
class TemporalClusterPattern(Pattern):
    type: ClassVar[PatternType] = PatternType.TEMPORAL_CLUSTER

    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    incident_count: int = 0
    actors: List[str] = field(default_factory=list)
    sectors: List[str] = field(default_factory=list)

    @property
    def pattern_key(self) -> str:
        return f"{self.type.value}:{_day(self.start_time)}"

    def _payload(self) -> Dict[str, Any]:
        return {
            "start_time": _iso(self.start_time),
            "end_time": _iso(self.end_time),
            "incident_count": self.incident_count,
            "actors": list(self.actors),
            "sectors": list(self.sectors),
        }


@dataclass(frozen=True)
class GeographicPattern(Pattern):
    type: ClassVar[PatternType] = PatternType.GEOGRAPHIC

    country: str = ""
    occurrences: int = 0
    actors: List[str] = field(default_factory=list)

    @property
    def pattern_key(self) -> str:
        return f"{self.type.value}:{self.country}"

    def _payload(self) -> Dict[str, Any]:
        return {
            "country": self.country,
            "occurrences": self.occurrences,
            "actors": list(self.actors),
        }


@dataclass(frozen=True)
class CampaignPattern(Pattern):
    type: ClassVar[PatternType] = PatternType.CAMPAIGN

    actor_id: str = ""
    actor_name: str = ""
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    incident_count: int = 0
    sectors: List[str] = field(default_factory=list)
    techniques: List[str] = field(default_factory=list)

    @property
    def pattern_key(self) -> str:
        return f"{self.type.value}:{self.actor_id}:{_day(self.start_time)}"

    def _payload(self) -> Dict[str, Any]:
        return {
            "actor_id": self.actor_id,
            "actor_name": self.actor_name,
            "start_time": _iso(self.start_time),
            "end_time": _iso(self.end_time),
            "incident_count": self.incident_count,
            "sectors": list(self.sectors),
            "techniques": list(self.techniques),
        }


@dataclass(frozen=True)
class AnomalyPattern(Pattern):
    type: ClassVar[PatternType] = PatternType.ANOMALY

    date: str = ""                 # YYYY-MM-DD (UTC)
    actual_count: int = 0
    expected_count: int = 0
    z_score: float = 0.0
    direction: str = "spike"       # "spike" | "drop"
    actors: List[str] = field(default_factory=list)
    sectors: List[str] = field(default_factory=list)

    @property
    def pattern_key(self) -> str:
        return f"{self.type.value}:{self.date}:{self.direction}"

    def _payload(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "actual_count": self.actual_count,
            "expected_count": self.expected_count,
            "z_score": self.z_score,
            "direction": self.direction,
            "actors": list(self.actors),
            "sectors": list(self.sectors),
        }


@dataclass(frozen=True)
class DormantActorPattern(Pattern):
    type: ClassVar[PatternType] = PatternType.DORMANT_ACTOR

    actor_id: str = ""
    actor_name: str = ""
    last_seen: Optional[datetime] = None
    dormant_days: int = 0

    @property
    def pattern_key(self) -> str:
        return f"{self.type.value}:{self.actor_id}:{_day(self.last_seen)}"

    def _payload(self) -> Dict[str, Any]:
        return {
            "actor_id": self.actor_id,
            "actor_name": self.actor_name,
            "last_seen": _iso(self.last_seen),
            "dormant_days": self.dormant_days,
        }


@dataclass(frozen=True)
class ReactivatedActorPattern(Pattern):
    type: ClassVar[PatternType] = PatternType.REACTIVATED_ACTOR

    actor_id: str = ""
    actor_name: str = ""
    last_seen_before: Optional[datetime] = None
    reactivated_at: Optional[datetime] = None
    dormant_days: int = 0

    @property
    def pattern_key(self) -> str:
        return f"{self.type.value}:{self.actor_id}:{_day(self.reactivated_at)}"

    def _payload(self) -> Dict[str, Any]:
        return {
            "actor_id": self.actor_id,
            "actor_name": self.actor_name,
            "last_seen_before": _iso(self.last_seen_before),
            "reactivated_at": _iso(self.reactivated_at),
            "dormant_days": self.dormant_days,
        }


# ── Analysis result ──────────────────────────────────────────────────

@dataclass
class AnalysisSummary:
    """Counts describing one ``analyze_patterns`` run."""

    total_incidents: int = 0
    period_days: int = 0
    patterns_found: int = 0
    by_type: Dict[str, int] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_incidents": self.total_incidents,
            "period_days": self.period_days,
            "patterns_found": self.patterns_found,
            "by_type": dict(self.by_type),
            "errors": dict(self.errors),
        }


@dataclass
class AnalysisResult:
    """Flat pattern list plus summary."""

    patterns: List[Pattern] = field(default_factory=list)
    summary: AnalysisSummary = field(default_factory=AnalysisSummary)

    def of_type(self, pattern_type: Union[str, PatternType]) -> List[Pattern]:
        wanted = parse_pattern_type(pattern_type)
        return [p for p in self.patterns if p.type == wanted]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "patterns": [p.to_dict() for p in self.patterns],
            "summary": self.summary.to_dict(),
        }
