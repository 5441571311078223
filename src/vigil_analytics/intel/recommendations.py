# Intel Module - Pattern Recommendations
#
# Turns detector output into a short, prioritised action list for
# analysts: at most one item each for the top campaign, the top
# activity spike and the most targeted country.

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List

from .helpers import round_half_up
from .patterns import AnomalyPattern, CampaignPattern, GeographicPattern, Pattern

_PRIORITY_ORDER: Dict[str, int] = {"high": 0, "medium": 1, "low": 2}

CAMPAIGN_ACTIONS = ["Review related indicators", "Update detection rules", "Brief stakeholders"]
SPIKE_ACTIONS = ["Investigate root cause", "Check for new vulnerabilities", "Review affected sectors"]
GEOGRAPHIC_ACTIONS = ["Brief regional teams", "Review geofencing", "Update threat model"]


@dataclass
class Recommendation:
    priority: str = "low"
    category: str = ""
    title: str = ""
    description: str = ""
    actions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def get_pattern_recommendations(patterns: Iterable[Pattern]) -> List[Recommendation]:
    """Build recommendations from an ``analyze_patterns`` pattern list.

    Relies on each detector's own ordering: the first pattern of a kind
    is the strongest one.
    """
    patterns = list(patterns)
    recommendations: List[Recommendation] = []

    campaign = next((p for p in patterns if isinstance(p, CampaignPattern)), None)
    if campaign is not None:
        recommendations.append(Recommendation(
            priority="high",
            category="campaign",
            title=f"Active campaign detected: {campaign.actor_name}",
            description=(
                f"{campaign.incident_count} related incidents targeting "
                f"{', '.join(campaign.sectors) or 'multiple sectors'}"
            ),
            actions=list(CAMPAIGN_ACTIONS),
        ))

    spike = next(
        (p for p in patterns if isinstance(p, AnomalyPattern) and p.direction == "spike"),
        None,
    )
    if spike is not None:
        recommendations.append(Recommendation(
            priority="high",
            category="anomaly",
            title=f"Activity spike on {spike.date}",
            description=f"{spike.actual_count} incidents ({int(round_half_up(spike.z_score))}x normal)",
            actions=list(SPIKE_ACTIONS),
        ))

    geo = next((p for p in patterns if isinstance(p, GeographicPattern)), None)
    if geo is not None:
        recommendations.append(Recommendation(
            priority="medium",
            category="geographic",
            title=f"High targeting of {geo.country}",
            description=f"{geo.occurrences} incidents by {len(geo.actors)} actors",
            actions=list(GEOGRAPHIC_ACTIONS),
        ))

    return sorted(recommendations, key=lambda r: _PRIORITY_ORDER.get(r.priority, 3))
