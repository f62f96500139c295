"""Regenerate AI analysis blocks for one or all sports."""

import argparse
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from neeko_stats.config import settings
from neeko_stats.db.session import SessionLocal
from neeko_stats.insights.analysis import OPERATION, generate_sport_analysis
from neeko_stats.insights.gateway import AIGateway
from neeko_stats.ops.pipeline import run_sport_step
from neeko_stats.utils.logging import get_logger

logger = get_logger(__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Generate sport AI analysis")
    parser.add_argument("--sport", choices=settings.sports, help="Single sport (default: all)")
    args = parser.parse_args(argv)

    gateway = AIGateway.from_settings()
    failed = 0
    try:
        for sport in [args.sport] if args.sport else settings.sports:
            result = run_sport_step(
                SessionLocal,
                OPERATION,
                sport,
                lambda s, sport=sport: generate_sport_analysis(s, sport, gateway).to_dict(),
                None,
            )
            if result["success"]:
                logger.info("%s: %s", sport, result["message"])
            else:
                failed += 1
    finally:
        gateway.close()
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
