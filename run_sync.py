"""Script to run a ShipStation sync and write the QuickBooks IIF file."""

import sys

from inventory_connector import open_store, run_inventory_sync
from inventory_connector.logger import setup_logger

if __name__ == "__main__":
    if len(sys.argv) < 3:
        print("Usage: python run_sync.py START_DATE END_DATE")
        print("Example: python run_sync.py 2025-01-01 2025-01-31")
        sys.exit(1)

    start_date, end_date = sys.argv[1], sys.argv[2]
    setup_logger("inventory_connector")
    print(f"Starting inventory sync for {start_date} to {end_date}\n")

    with open_store() as store:
        result = run_inventory_sync(store, start_date, end_date)

    print("\n=== Summary ===")
    print(result.message)
    if not result.success:
        sys.exit(2 if result.timed_out else 1)
    print(f"- IIF file: {result.data['path']}")
