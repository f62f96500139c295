"""Recompute team aggregates for one or all sports."""

import argparse
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from neeko_stats.config import settings
from neeko_stats.db.session import SessionLocal
from neeko_stats.ops.pipeline import run_sport_step
from neeko_stats.stats.team import OPERATION, refresh_team_stats
from neeko_stats.utils.logging import get_logger

logger = get_logger(__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Compute team stats")
    parser.add_argument("--sport", choices=settings.sports, help="Single sport (default: all)")
    args = parser.parse_args(argv)

    failed = 0
    for sport in [args.sport] if args.sport else settings.sports:
        result = run_sport_step(
            SessionLocal,
            OPERATION,
            sport,
            lambda s, sport=sport: {"success": True, "records": refresh_team_stats(s, sport)},
            None,
        )
        if result["success"]:
            logger.info("%s: %d team stat rows", sport, result["records"])
        else:
            failed += 1
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
