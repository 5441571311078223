# Intel Module - Threat Analytics Engine
#
# Pattern detection over incident windows, risk scoring of actors,
# vulnerabilities, IOCs and incidents, and analyst recommendations.

from .models import (
    AnalyticsError,
    ExploitMaturity,
    IOC,
    IOCMetadata,
    Incident,
    OrgProfile,
    ThreatActor,
    TrendStatus,
    Vulnerability,
)
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
)
from .pattern_detector import (
    analyze_patterns,
    detect_actor_sector_patterns,
    detect_actor_technique_patterns,
    detect_anomalies,
    detect_campaigns,
    detect_dormant_actors,
    detect_geographic_patterns,
    detect_reactivated_actors,
    detect_sector_technique_patterns,
    detect_temporal_clusters,
)
from .recommendations import Recommendation, get_pattern_recommendations
from .threat_scorer import (
    DEFAULT_WEIGHTS,
    EntityKind,
    InvalidWeights,
    RiskLevel,
    RiskScore,
    ScoreFactor,
    ScoringModel,
    UnknownEntityKind,
    create_scoring_model,
    score_actor,
    score_incident,
    score_ioc,
    score_vulnerability,
)

__all__ = [
    # Input records
    "AnalyticsError",
    "ExploitMaturity",
    "IOC",
    "IOCMetadata",
    "Incident",
    "OrgProfile",
    "ThreatActor",
    "TrendStatus",
    "Vulnerability",
    # Patterns
    "ActorSectorPattern",
    "ActorTechniquePattern",
    "AnalysisResult",
    "AnalysisSummary",
    "AnomalyPattern",
    "CampaignPattern",
    "DormantActorPattern",
    "GeographicPattern",
    "Pattern",
    "PatternType",
    "ReactivatedActorPattern",
    "SectorTechniquePattern",
    "TemporalClusterPattern",
    "UnknownPatternType",
    # Pattern Detector
    "analyze_patterns",
    "detect_actor_sector_patterns",
    "detect_actor_technique_patterns",
    "detect_anomalies",
    "detect_campaigns",
    "detect_dormant_actors",
    "detect_geographic_patterns",
    "detect_reactivated_actors",
    "detect_sector_technique_patterns",
    "detect_temporal_clusters",
    # Recommendations
    "Recommendation",
    "get_pattern_recommendations",
    # Threat Scorer
    "DEFAULT_WEIGHTS",
    "EntityKind",
    "InvalidWeights",
    "RiskLevel",
    "RiskScore",
    "ScoreFactor",
    "ScoringModel",
    "UnknownEntityKind",
    "create_scoring_model",
    "score_actor",
    "score_incident",
    "score_ioc",
    "score_vulnerability",
]
