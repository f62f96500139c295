"""Pull every Google Sheets tab into the database."""

import argparse
import json
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from neeko_stats.db.session import SessionLocal
from neeko_stats.ingestion.sheets import TAB_CONFIG, SheetsClient, sync_google_sheet
from neeko_stats.utils.logging import get_logger

logger = get_logger(__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Sync Google Sheets tabs into the database")
    parser.add_argument(
        "--tab",
        action="append",
        choices=sorted(TAB_CONFIG),
        help="Only sync this tab (repeatable; default: all)",
    )
    parser.add_argument("--sheet-id", help="Override SPORTS_SHEET_ID")
    parser.add_argument("--batch-size", type=int, default=None)
    args = parser.parse_args(argv)

    client = SheetsClient(sheet_id=args.sheet_id)
    try:
        result = sync_google_sheet(
            SessionLocal, client.fetch_csv, tabs=args.tab, batch_size=args.batch_size
        )
    finally:
        client.close()

    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
