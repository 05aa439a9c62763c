"""
Compare every room/service occupancy cache against the bookings collection.

Run after a ConsistencyError, or periodically as a self-check:
    python -m scripts.reconcile_occupancy          # report only
    python -m scripts.reconcile_occupancy --apply  # rewrite drifted caches
"""
import asyncio
import argparse

from sporti.config.database import db_config
from sporti.database.db_operations import db_ops
from sporti.services.occupancy import reconcile_occupancy


async def main(dry_run: bool = True):
    await db_config.connect_db()
    try:
        drift = await reconcile_occupancy(db_ops, repair=not dry_run)
        if not drift:
            print("✅ All occupancy caches match the bookings collection")
            return
        for entry in drift:
            print(f"- {entry['kind']} {entry['resource_id']}")
            print(f"    cached:   {entry['cached']}")
            print(f"    expected: {entry['expected']}")
        if dry_run:
            print(f"Dry run: {len(drift)} resource(s) drifted. Use --apply to repair.")
        else:
            print(f"Repaired {len(drift)} resource(s)")
    finally:
        await db_config.close_db()

if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Reconcile resource occupancy with bookings')
    parser.add_argument('--apply', dest='apply', action='store_true', help='Repair drifted caches (otherwise dry-run)')
    args = parser.parse_args()
    asyncio.run(main(dry_run=not args.apply))
