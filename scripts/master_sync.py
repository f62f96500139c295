"""Full refresh: sheet sync, team stats and AI analysis for every sport."""

import argparse
import json
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from neeko_stats.db.session import SessionLocal
from neeko_stats.ingestion.sheets import SheetsClient
from neeko_stats.insights.gateway import AIGateway
from neeko_stats.ops.pipeline import run_master_sync
from neeko_stats.utils.logging import get_logger

logger = get_logger(__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run the master sync pipeline")
    parser.add_argument("--sheet-id", help="Override SPORTS_SHEET_ID")
    args = parser.parse_args(argv)

    sheets = SheetsClient(sheet_id=args.sheet_id)
    gateway = AIGateway.from_settings()
    try:
        result = run_master_sync(SessionLocal, sheets.fetch_csv, gateway)
    finally:
        sheets.close()
        gateway.close()

    print(json.dumps(result, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
