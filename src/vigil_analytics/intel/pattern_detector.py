# Intel Module - Pattern Detector
#
# Mines a window of incidents for recurring behaviour:
#   1. Actor → sector targeting (co-occurrence)
#   2. Actor → technique usage (co-occurrence within an actor)
#   3. Sector → technique usage (co-occurrence within a sector)
#   4. Temporal clusters (sliding forward window bursts)
#   5. Geographic targeting (per-country counts)
#   6. Campaigns (greedy time-gap chaining per actor)
#   7. Anomalies (daily-count z-score against a trailing baseline)
#
# Two actor-lifecycle detectors work over the full incident history
# rather than an analysis window:
#   - Dormant actors (no incident for ``dormancy_days``)
#   - Reactivated actors (back within ``reactivation_days`` after such
#     a silence)
#
# Every detector is a pure function over incidents and returns its
# patterns sorted strongest first. Records missing the attribute a
# detector needs are simply left out of that detector's counts.
#
# ``analyze_patterns`` runs a selection of detectors, isolating each one
# so a failing detector never suppresses the others.

import bisect
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from ..core.audit_log import get_audit_logger
from ..core.config import AnalyticsConfig, get_config
from .helpers import (
    count_co_occurrences,
    group_by,
    mean,
    parse_timestamp,
    round_half_up,
    std_dev,
    unique,
    utc_now,
)
from .models import AnalyticsError, Incident, as_incidents
from .patterns import (
    ActorSectorPattern,
    ActorTechniquePattern,
    AnalysisResult,
    AnalysisSummary,
    AnomalyPattern,
    CampaignPattern,
    DormantActorPattern,
    GeographicPattern,
    Pattern,
    PatternType,
    ReactivatedActorPattern,
    SectorTechniquePattern,
    TemporalClusterPattern,
    UnknownPatternType,
    parse_pattern_type,
)

logger = logging.getLogger(__name__)


# ── Tuning Constants ────────────────────────────────────────────────

MIN_PATTERN_OCCURRENCES = 3
CLUSTER_WINDOW = timedelta(hours=24)
CAMPAIGN_GAP = timedelta(days=7)
ANOMALY_THRESHOLD = 2.0
ANOMALY_BASELINE_DAYS = 30

# Caps on list fields carried by patterns
MAX_CAMPAIGN_TECHNIQUES = 5
MAX_ANOMALY_ACTORS = 5
MAX_ANOMALY_SECTORS = 5

# Actor lifecycle
DORMANCY_DAYS = 90
REACTIVATION_DAYS = 7
DORMANCY_CONFIDENCE_DAYS = 180  # dormancy at which confidence saturates
MAX_DORMANT_ACTORS = 50

IncidentSource = Union[Iterable[Any], Callable[[datetime], Iterable[Any]]]


# ── Shared helpers ──────────────────────────────────────────────────

def _actor_key(incident: Incident) -> Optional[str]:
    return incident.actor_id


def _actor_names(incidents: Iterable[Incident]) -> Dict[str, str]:
    """First joined actor name seen per actor id."""
    names: Dict[str, str] = {}
    for inc in incidents:
        if inc.actor_id and inc.actor_name and inc.actor_id not in names:
            names[inc.actor_id] = inc.actor_name
    return names


def _chronological(incidents: Iterable[Incident]) -> List[Incident]:
    """Timestamped incidents, oldest first (stable for equal times)."""
    dated = [i for i in incidents if i.discovered_at is not None]
    dated.sort(key=lambda i: i.discovered_at)
    return dated


def _by_occurrences(patterns: List[Pattern]) -> List[Pattern]:
    return sorted(patterns, key=lambda p: p.occurrences, reverse=True)


def _by_incident_count(patterns: List[Pattern]) -> List[Pattern]:
    return sorted(patterns, key=lambda p: p.incident_count, reverse=True)


# ── Co-occurrence detectors ─────────────────────────────────────────

def detect_actor_sector_patterns(
    incidents: Iterable[Any],
    min_occurrences: int = MIN_PATTERN_OCCURRENCES,
) -> List[ActorSectorPattern]:
    """Actors repeatedly hitting the same sector."""
    incidents = as_incidents(incidents)
    counts = count_co_occurrences(incidents, _actor_key, lambda i: i.sector)
    names = _actor_names(incidents)

    patterns = []
    for (actor_id, sector), count in counts.items():
        if count < min_occurrences:
            continue
        name = names.get(actor_id)
        patterns.append(ActorSectorPattern(
            actor_id=actor_id,
            actor_name=name or actor_id,
            sector=sector,
            occurrences=count,
            confidence=min(1.0, count / 10),
            description=f"{name or 'Unknown actor'} frequently targets {sector} sector",
        ))
    return _by_occurrences(patterns)


def _technique_counts(incidents: Iterable[Incident]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for inc in incidents:
        for ttp in unique(inc.ttps):
            counts[ttp] = counts.get(ttp, 0) + 1
    return counts


def detect_actor_technique_patterns(
    incidents: Iterable[Any],
    min_occurrences: int = MIN_PATTERN_OCCURRENCES,
) -> List[ActorTechniquePattern]:
    """Techniques an actor keeps coming back to."""
    incidents = as_incidents(incidents)
    names = _actor_names(incidents)

    patterns = []
    for actor_id, actor_incs in group_by(incidents, _actor_key).items():
        name = names.get(actor_id)
        for technique, count in _technique_counts(actor_incs).items():
            if count < min_occurrences:
                continue
            patterns.append(ActorTechniquePattern(
                actor_id=actor_id,
                actor_name=name or actor_id,
                technique=technique,
                occurrences=count,
                confidence=min(1.0, count / 5),
                description=f"{name or 'Unknown actor'} commonly uses {technique}",
            ))
    return _by_occurrences(patterns)


def detect_sector_technique_patterns(
    incidents: Iterable[Any],
    min_occurrences: int = MIN_PATTERN_OCCURRENCES,
) -> List[SectorTechniquePattern]:
    """Techniques repeatedly observed against one sector, across actors."""
    incidents = as_incidents(incidents)

    patterns = []
    for sector, sector_incs in group_by(incidents, lambda i: i.sector).items():
        for technique, count in _technique_counts(sector_incs).items():
            if count < min_occurrences:
                continue
            actors = unique(i.actor_name for i in sector_incs if technique in i.ttps)
            patterns.append(SectorTechniquePattern(
                sector=sector,
                technique=technique,
                occurrences=count,
                actors=actors,
                confidence=min(1.0, count / 10),
                description=f"{technique} observed {count} times against {sector} sector",
            ))
    return _by_occurrences(patterns)


def detect_geographic_patterns(
    incidents: Iterable[Any],
    min_occurrences: int = MIN_PATTERN_OCCURRENCES,
) -> List[GeographicPattern]:
    """Countries targeted repeatedly, with the actors behind them."""
    incidents = as_incidents(incidents)

    counts: Dict[str, int] = {}
    for inc in incidents:
        for country in unique(inc.target_countries):
            counts[country] = counts.get(country, 0) + 1

    patterns = []
    for country, count in counts.items():
        if count < min_occurrences:
            continue
        actors = unique(i.actor_name for i in incidents if country in i.target_countries)
        patterns.append(GeographicPattern(
            country=country,
            occurrences=count,
            actors=actors,
            confidence=min(1.0, count / 15),
            description=f"{country} targeted {count} times by {len(actors)} actors",
        ))
    return _by_occurrences(patterns)


# ── Time-based detectors ────────────────────────────────────────────

def detect_temporal_clusters(
    incidents: Iterable[Any],
    window: timedelta = CLUSTER_WINDOW,
    min_occurrences: int = MIN_PATTERN_OCCURRENCES,
) -> List[TemporalClusterPattern]:
    """Bursts of at least ``2 * min_occurrences`` incidents in one window.

    A forward window opens at every incident. Windows starting within
    half a window of an already reported cluster are skipped, so the
    earliest qualifying window of a burst wins.
    """
    ordered = _chronological(as_incidents(incidents))
    stamps = [i.discovered_at for i in ordered]
    min_cluster = min_occurrences * 2
    window_hours = round_half_up(window.total_seconds() / 3600)

    patterns: List[TemporalClusterPattern] = []
    for start in stamps:
        end = start + window
        lo = bisect.bisect_left(stamps, start)
        hi = bisect.bisect_right(stamps, end)
        count = hi - lo
        if count < min_cluster:
            continue
        if any(abs(p.start_time - start) < window / 2 for p in patterns):
            continue

        members = ordered[lo:hi]
        patterns.append(TemporalClusterPattern(
            start_time=start,
            end_time=end,
            incident_count=count,
            actors=unique(i.actor_name for i in members),
            sectors=unique(i.sector for i in members),
            confidence=min(1.0, count / 20),
            description=f"Activity spike: {count} incidents in {int(window_hours)}h",
        ))
    return _by_incident_count(patterns)


def _campaign(actor_id: str, name: Optional[str], chain: Sequence[Incident]) -> CampaignPattern:
    count = len(chain)
    sectors = unique(i.sector for i in chain)
    techniques = unique(t for i in chain for t in i.ttps)[:MAX_CAMPAIGN_TECHNIQUES]
    description = f"Potential {name or 'Unknown'} campaign: {count} incidents"
    if sectors:
        description += f" targeting {', '.join(sectors)}"
    return CampaignPattern(
        actor_id=actor_id,
        actor_name=name or actor_id,
        start_time=chain[0].discovered_at,
        end_time=chain[-1].discovered_at,
        incident_count=count,
        sectors=sectors,
        techniques=techniques,
        confidence=min(1.0, count / 10),
        description=description,
    )


def detect_campaigns(
    incidents: Iterable[Any],
    max_gap: timedelta = CAMPAIGN_GAP,
    min_incidents: int = MIN_PATTERN_OCCURRENCES,
) -> List[CampaignPattern]:
    """Chain each actor's incidents into campaigns.

    Single left-to-right pass: an incident joins the running chain when
    it follows the previous one by strictly less than ``max_gap``;
    otherwise the chain closes and a new one starts. Chains shorter than
    ``min_incidents`` are dropped.
    """
    incidents = as_incidents(incidents)
    names = _actor_names(incidents)

    campaigns: List[CampaignPattern] = []
    for actor_id, actor_incs in group_by(incidents, _actor_key).items():
        if len(actor_incs) < min_incidents:
            continue
        ordered = _chronological(actor_incs)
        if not ordered:
            continue

        chain = [ordered[0]]
        for prev, curr in zip(ordered, ordered[1:]):
            if curr.discovered_at - prev.discovered_at < max_gap:
                chain.append(curr)
                continue
            if len(chain) >= min_incidents:
                campaigns.append(_campaign(actor_id, names.get(actor_id), chain))
            chain = [curr]

        if len(chain) >= min_incidents:
            campaigns.append(_campaign(actor_id, names.get(actor_id), chain))

    return _by_incident_count(campaigns)


def detect_anomalies(
    incidents: Iterable[Any],
    baseline_days: int = ANOMALY_BASELINE_DAYS,
    threshold: float = ANOMALY_THRESHOLD,
    now: Optional[datetime] = None,
) -> List[AnomalyPattern]:
    """Days whose incident count deviates from the baseline mean.

    Only days with at least one incident form the sample. With zero
    variance every z-score is 0 and nothing is reported.
    """
    now = parse_timestamp(now) or utc_now()
    baseline_start = now - timedelta(days=baseline_days)
    baseline = [
        i for i in _chronological(as_incidents(incidents))
        if i.discovered_at >= baseline_start
    ]

    by_day = group_by(baseline, lambda i: i.discovered_at.date().isoformat())
    daily_counts = [len(v) for v in by_day.values()]
    avg = mean(daily_counts)
    sigma = std_dev(daily_counts)
    expected = int(round_half_up(avg))

    anomalies = []
    for day, day_incs in by_day.items():
        count = len(day_incs)
        z = (count - avg) / sigma if sigma > 0 else 0.0
        if abs(z) <= threshold:
            continue
        direction = "spike" if z > 0 else "drop"
        anomalies.append(AnomalyPattern(
            date=day,
            actual_count=count,
            expected_count=expected,
            z_score=round_half_up(z, 1),
            direction=direction,
            actors=unique(i.actor_name for i in day_incs)[:MAX_ANOMALY_ACTORS],
            sectors=unique(i.sector for i in day_incs)[:MAX_ANOMALY_SECTORS],
            confidence=min(1.0, abs(z) / 4),
            description=(
                f"Unusual {direction}: {count} incidents (expected ~{expected})"
            ),
        ))
    return sorted(anomalies, key=lambda a: abs(a.z_score), reverse=True)


# ── Actor lifecycle detectors ───────────────────────────────────────

def _actor_timelines(incidents: Iterable[Any]) -> Dict[str, List[Incident]]:
    """Dated incidents per actor, oldest first."""
    return group_by(_chronological(as_incidents(incidents)), _actor_key)


def detect_dormant_actors(
    incidents: Iterable[Any],
    dormancy_days: int = DORMANCY_DAYS,
    now: Optional[datetime] = None,
) -> List[DormantActorPattern]:
    """Actors with past incidents but none in the last ``dormancy_days``.

    Longest silence first, capped at ``MAX_DORMANT_ACTORS``.
    """
    now = parse_timestamp(now) or utc_now()
    cutoff = now - timedelta(days=dormancy_days)
    incidents = as_incidents(incidents)
    names = _actor_names(incidents)

    patterns = []
    for actor_id, timeline in _actor_timelines(incidents).items():
        last_seen = timeline[-1].discovered_at
        if last_seen >= cutoff:
            continue
        dormant = (now - last_seen).days
        name = names.get(actor_id)
        patterns.append(DormantActorPattern(
            actor_id=actor_id,
            actor_name=name or actor_id,
            last_seen=last_seen,
            dormant_days=dormant,
            confidence=min(1.0, dormant / DORMANCY_CONFIDENCE_DAYS),
            description=f"{name or 'Unknown actor'} has been dormant for {dormant} days",
        ))
    patterns.sort(key=lambda p: p.dormant_days, reverse=True)
    return patterns[:MAX_DORMANT_ACTORS]


def detect_reactivated_actors(
    incidents: Iterable[Any],
    dormancy_days: int = DORMANCY_DAYS,
    reactivation_days: int = REACTIVATION_DAYS,
    now: Optional[datetime] = None,
) -> List[ReactivatedActorPattern]:
    """Actors active in the last ``reactivation_days`` after a long silence.

    The silence runs from the actor's last incident before the recent
    window to its first incident inside it, and must last at least
    ``dormancy_days`` whole days. Actors with no earlier history are new,
    not reactivated.
    """
    now = parse_timestamp(now) or utc_now()
    recent_start = now - timedelta(days=reactivation_days)
    incidents = as_incidents(incidents)
    names = _actor_names(incidents)

    patterns = []
    for actor_id, timeline in _actor_timelines(incidents).items():
        stamps = [i.discovered_at for i in timeline]
        first_recent = bisect.bisect_left(stamps, recent_start)
        if first_recent == 0 or first_recent == len(stamps):
            continue
        last_before = stamps[first_recent - 1]
        reactivated_at = stamps[first_recent]
        dormant = (reactivated_at - last_before).days
        if dormant < dormancy_days:
            continue
        name = names.get(actor_id)
        patterns.append(ReactivatedActorPattern(
            actor_id=actor_id,
            actor_name=name or actor_id,
            last_seen_before=last_before,
            reactivated_at=reactivated_at,
            dormant_days=dormant,
            confidence=min(1.0, dormant / DORMANCY_CONFIDENCE_DAYS),
            description=f"{name or 'Unknown actor'} reactivated after {dormant} days of dormancy",
        ))
    patterns.sort(key=lambda p: p.dormant_days, reverse=True)
    return patterns


# ── Orchestration ───────────────────────────────────────────────────

# Fixed run order keeps the flat result list deterministic
DETECTOR_ORDER = (
    PatternType.ACTOR_SECTOR,
    PatternType.ACTOR_TECHNIQUE,
    PatternType.SECTOR_TECHNIQUE,
    PatternType.TEMPORAL_CLUSTER,
    PatternType.GEOGRAPHIC,
    PatternType.CAMPAIGN,
    PatternType.ANOMALY,
)


def _detectors(
    config: AnalyticsConfig,
    days: int,
    now: datetime,
) -> Dict[PatternType, Callable[[Sequence[Incident]], List[Pattern]]]:
    min_occ = config.min_pattern_occurrences
    return {
        PatternType.ACTOR_SECTOR: lambda incs: detect_actor_sector_patterns(incs, min_occ),
        PatternType.ACTOR_TECHNIQUE: lambda incs: detect_actor_technique_patterns(incs, min_occ),
        PatternType.SECTOR_TECHNIQUE: lambda incs: detect_sector_technique_patterns(incs, min_occ),
        PatternType.TEMPORAL_CLUSTER: lambda incs: detect_temporal_clusters(
            incs, timedelta(hours=config.cluster_window_hours), min_occ
        ),
        PatternType.GEOGRAPHIC: lambda incs: detect_geographic_patterns(incs, min_occ),
        PatternType.CAMPAIGN: lambda incs: detect_campaigns(
            incs, timedelta(days=config.campaign_gap_days), min_occ
        ),
        PatternType.ANOMALY: lambda incs: detect_anomalies(
            incs,
            baseline_days=min(days, config.anomaly_baseline_days),
            threshold=config.anomaly_threshold,
            now=now,
        ),
    }


def _load_incidents(source: IncidentSource, since: datetime) -> List[Incident]:
    """Materialise incidents from a list or a ``fetch(since)`` provider.

    Incidents older than ``since`` are dropped; undated ones are kept for
    the detectors that do not need a timestamp.
    """
    records = source(since) if callable(source) else source
    return [
        inc for inc in as_incidents(records or [])
        if inc.discovered_at is None or inc.discovered_at >= since
    ]


def analyze_patterns(
    source: IncidentSource,
    days: Optional[int] = None,
    include_types: Optional[Iterable[Union[str, PatternType]]] = None,
    now: Optional[datetime] = None,
    config: Optional[AnalyticsConfig] = None,
) -> AnalysisResult:
    """Run the selected detectors over the last ``days`` of incidents.

    Args:
        source: Incidents (``Incident`` objects or raw rows), or a callable
            ``fetch(since)`` returning them.
        days: Analysis window; defaults to the configured 90 days.
        include_types: Pattern types to detect (a single type or several);
            all window detectors when omitted.
        now: Reference time for the window and anomaly baseline.
        config: Detector tunables; defaults to the global config.

    Raises:
        UnknownPatternType: ``include_types`` names an unknown type or an
            actor-lifecycle type.
        AnalyticsError: ``days`` is not a positive integer.
    """
    config = config or get_config()
    days = config.default_analysis_days if days is None else days
    if isinstance(days, bool) or not isinstance(days, int) or days < 1:
        raise AnalyticsError(f"days must be a positive integer, got {days!r}")

    if include_types is None:
        selected = set(DETECTOR_ORDER)
    else:
        if isinstance(include_types, str):
            include_types = [include_types]
        selected = {parse_pattern_type(t) for t in include_types}
        lifecycle = sorted(t.value for t in selected.difference(DETECTOR_ORDER))
        if lifecycle:
            raise UnknownPatternType(
                f"{', '.join(lifecycle)} cannot be detected within an analysis window; "
                f"use detect_dormant_actors or detect_reactivated_actors"
            )

    now = parse_timestamp(now) or utc_now()
    since = now - timedelta(days=days)
    incidents = _load_incidents(source, since)
    detectors = _detectors(config, days, now)

    audit = get_audit_logger()
    audit.log_analysis_started(
        days=days,
        pattern_types=[t.value for t in DETECTOR_ORDER if t in selected],
        total_incidents=len(incidents),
    )

    patterns: List[Pattern] = []
    errors: Dict[str, str] = {}
    for pattern_type in DETECTOR_ORDER:
        if pattern_type not in selected:
            continue
        try:
            found = detectors[pattern_type](incidents)
        except Exception as exc:
            logger.exception("Pattern detector %s failed", pattern_type.value)
            errors[pattern_type.value] = f"{type(exc).__name__}: {exc}"
            audit.log_detector_failure(pattern_type.value, exc)
            continue
        logger.debug("Detector %s found %d patterns", pattern_type.value, len(found))
        patterns.extend(found)

    by_type = {t.value: 0 for t in DETECTOR_ORDER}
    for p in patterns:
        by_type[p.type.value] += 1

    summary = AnalysisSummary(
        total_incidents=len(incidents),
        period_days=days,
        patterns_found=len(patterns),
        by_type=by_type,
        errors=errors,
    )
    audit.log_analysis(summary.to_dict())
    return AnalysisResult(patterns=patterns, summary=summary)
