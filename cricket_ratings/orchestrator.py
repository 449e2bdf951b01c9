"""
Player Ratings Orchestrator.

Main entry point that runs the full pipeline:
Data Ingestion -> Filters -> Aggregation -> Model Fits -> Normalization -> Composite

Usage:
    python -m cricket_ratings.orchestrator --data-dir data/cricsheet/odis/
    python -m cricket_ratings.orchestrator --data-dir data/cricsheet/odis/ --scheme phase
    python -m cricket_ratings.orchestrator --demo
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from cricket_ratings.config import FilterConfig, FitMethod, RatingsConfig, StratumScheme
from cricket_ratings.data.ball_event import Competitor, Role
from cricket_ratings.errors import RatingsError

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("cricket_ratings.orchestrator")


def run_ratings(config: RatingsConfig, data_dir: str, match_format: str | None, top: int) -> None:
    """Rate players from a directory of Cricsheet CSV files."""
    from cricket_ratings.data.cricsheet_loader import load_events_from_directory
    from cricket_ratings.data.filters import prepare_events
    from cricket_ratings.pipeline import rate_players

    logger.info("=" * 60)
    logger.info("PLAYER RATINGS")
    logger.info("=" * 60)
    logger.info("Data directory: %s", data_dir)
    logger.info("Format filter: %s", match_format or "all")
    logger.info("Strata: %s | Method: %s", config.stratum_scheme.value, config.optimizer.method.value)

    events = load_events_from_directory(Path(data_dir), match_format=match_format)
    if not events:
        logger.error("No deliveries loaded from %s", data_dir)
        sys.exit(1)

    events = prepare_events(events, config.filters)
    result = rate_players(events, config)
    print("\n" + result.summary_str(top))


def run_demo(config: RatingsConfig, top: int) -> None:
    """Fit synthetic deliveries with known abilities to verify the pipeline."""
    from cricket_ratings.data.synthetic import simulate_deliveries
    from cricket_ratings.pipeline import rate_players

    logger.info("=" * 60)
    logger.info("PLAYER RATINGS - DEMO MODE")
    logger.info("=" * 60)

    events, truth = simulate_deliveries()
    logger.info(
        "Simulated %d deliveries: %d batters x %d bowlers",
        len(events), len(truth.batting), len(truth.bowling),
    )
    result = rate_players(events, config)
    print("\n" + result.summary_str(top))

    fitted = result.wicket.normalized
    print("\nTrue vs fitted wicket abilities (batters):")
    for name, (true_w, _) in sorted(truth.batting.items()):
        print(f"  {name}: true {true_w:+.3f}  fitted {fitted.ability(Competitor(name, Role.BAT)):+.3f}")


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Bradley-Terry player ratings from ball-by-ball data",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m cricket_ratings.orchestrator --demo
  python -m cricket_ratings.orchestrator --data-dir data/cricsheet/odis/ --scheme phase
        """,
    )

    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument("--data-dir", type=str, help="Directory of Cricsheet CSV files")
    mode.add_argument("--demo", action="store_true", help="Run demo with synthetic data")

    parser.add_argument("--format", type=str, choices=["t20", "odi", "test"], help="Match format filter")
    parser.add_argument("--scheme", type=str, choices=[s.value for s in StratumScheme], help="Wicket-model strata")
    parser.add_argument("--method", type=str, choices=[m.value for m in FitMethod], help="Optimizer")
    parser.add_argument("--min-balls", type=int, help="Minimum balls faced and bowled")
    parser.add_argument("--parallel", action="store_true", help="Fit both models in parallel")
    parser.add_argument("--top", type=int, default=10, help="Rows per ranking table")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    config = RatingsConfig.from_env()
    logging.getLogger().setLevel(logging.DEBUG if args.verbose else config.log_level.upper())

    if args.scheme:
        config = replace(config, stratum_scheme=StratumScheme(args.scheme))
    if args.method:
        config = replace(config, optimizer=replace(config.optimizer, method=FitMethod(args.method)))
    if args.min_balls is not None:
        config = replace(config, filters=FilterConfig(args.min_balls, args.min_balls))
    if args.parallel:
        config = replace(config, parallel=True)

    try:
        if args.demo:
            run_demo(config, args.top)
        else:
            run_ratings(config, args.data_dir, args.format, args.top)
    except RatingsError as e:
        logger.error("Rating failed: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
