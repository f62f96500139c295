"""Drain pending AI analysis jobs (run from cron)."""

import argparse
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from neeko_stats.db.session import session_scope
from neeko_stats.insights.analysis import process_queue
from neeko_stats.insights.gateway import AIGateway
from neeko_stats.utils.logging import get_logger

logger = get_logger(__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Process the AI analysis queue")
    parser.add_argument("--limit", type=int, default=None, help="Max jobs to process")
    args = parser.parse_args(argv)

    gateway = AIGateway.from_settings()
    try:
        with session_scope() as session:
            run = process_queue(session, gateway, limit=args.limit)
    finally:
        gateway.close()

    logger.info("Processed %d jobs (%d failed)", run.processed, run.failed)
    return 0


if __name__ == "__main__":
    sys.exit(main())
