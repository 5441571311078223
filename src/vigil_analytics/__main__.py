# Main Entry Point - Analytics CLI
#
# Runs the analytics engine over JSON exports of dashboard records:
#
#   vigil-analytics patterns incidents.json --days 30 --recommendations
#   vigil-analytics score vulnerabilities vulns.json --profile org.json
#   vigil-analytics actors incidents.json --dormancy-days 120
#
# Results are printed to stdout as JSON.

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

from . import __version__
from .core import AnalyticsConfig
from .intel import (
    AnalyticsError,
    analyze_patterns,
    create_scoring_model,
    detect_dormant_actors,
    detect_reactivated_actors,
    get_pattern_recommendations,
)

logger = logging.getLogger("vigil_analytics")


def _load_json(path: str) -> Any:
    with Path(path).open("r", encoding="utf-8") as fh:
        return json.load(fh)


def _cmd_patterns(args: argparse.Namespace) -> int:
    records = _load_json(args.file)
    if not isinstance(records, list):
        raise AnalyticsError(f"{args.file} must contain a JSON array of incidents")

    include = [t for t in args.types.split(",") if t.strip()] if args.types else None
    result = analyze_patterns(
        records,
        days=args.days,
        include_types=include,
        config=AnalyticsConfig.from_env(),
    )
    output = result.to_dict()
    if args.recommendations:
        output["recommendations"] = [
            r.to_dict() for r in get_pattern_recommendations(result.patterns)
        ]
    print(json.dumps(output, indent=2))
    return 0


def _cmd_score(args: argparse.Namespace) -> int:
    weights = json.loads(args.weights) if args.weights else None
    if weights is not None and not isinstance(weights, dict):
        raise AnalyticsError("--weights must be a JSON object")
    model = create_scoring_model(args.kind, weights)
    profile = _load_json(args.profile) if args.profile else None

    entities = _load_json(args.file)
    if isinstance(entities, list):
        output = [model.score(e, profile).to_dict() for e in entities]
    else:
        output = model.score(entities, profile).to_dict()
    print(json.dumps(output, indent=2, default=str))
    return 0


def _cmd_actors(args: argparse.Namespace) -> int:
    records = _load_json(args.file)
    if not isinstance(records, list):
        raise AnalyticsError(f"{args.file} must contain a JSON array of incidents")

    config = AnalyticsConfig.from_env()
    dormancy = args.dormancy_days or config.dormancy_days
    reactivation = args.reactivation_days or config.reactivation_days
    output = {
        "dormant": [p.to_dict() for p in detect_dormant_actors(records, dormancy)],
        "reactivated": [
            p.to_dict() for p in detect_reactivated_actors(records, dormancy, reactivation)
        ],
    }
    print(json.dumps(output, indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vigil-analytics",
        description="Vigil threat analytics - pattern detection and risk scoring",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"Vigil Analytics v{__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log detector activity to stderr",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_patterns = sub.add_parser("patterns", help="Detect patterns in a JSON array of incidents")
    p_patterns.add_argument("file", help="JSON file with incident rows")
    p_patterns.add_argument("--days", type=int, default=None, help="Analysis window in days (default: 90)")
    p_patterns.add_argument(
        "--types",
        default=None,
        help="Comma-separated pattern types to run (default: all)",
    )
    p_patterns.add_argument(
        "--recommendations",
        action="store_true",
        help="Append analyst recommendations",
    )
    p_patterns.set_defaults(func=_cmd_patterns)

    p_score = sub.add_parser("score", help="Score one entity or a JSON array of entities")
    p_score.add_argument("kind", help="actors, vulnerabilities, iocs or incidents")
    p_score.add_argument("file", help="JSON file with the entity (or entities)")
    p_score.add_argument("--profile", default=None, help="JSON file with the organisation profile")
    p_score.add_argument("--weights", default=None, help="JSON object of custom factor weights")
    p_score.set_defaults(func=_cmd_score)

    p_actors = sub.add_parser("actors", help="List dormant and reactivated actors over full history")
    p_actors.add_argument("file", help="JSON file with incident rows")
    p_actors.add_argument("--dormancy-days", type=int, default=None, help="Silence that makes an actor dormant (default: 90)")
    p_actors.add_argument("--reactivation-days", type=int, default=None, help="Recent window for reactivation (default: 7)")
    p_actors.set_defaults(func=_cmd_actors)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        return args.func(args)
    except (AnalyticsError, ValueError, OSError) as exc:
        logger.error("%s", exc)
        print(f"error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
