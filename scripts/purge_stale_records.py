"""
Retire records left over from earlier training runs

Export overwrites the rows of games it writes but never deletes games that a
newer run no longer contains. Run this after an export to keep only the rows
of one training run (the persisted snapshot's run by default).

Usage:
    python scripts/purge_stale_records.py [--run-id run_20261019_120000_ab12cd] [--dry-run]
"""

import argparse
import os
import sys

from dotenv import load_dotenv

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

load_dotenv()

from gamecluster.models.orm_models import GameClusterORM
from gamecluster.pipeline.snapshot import load_snapshot
from gamecluster.recommender.store import GameClusterStore
from gamecluster.utils.config_loader import config
from gamecluster.utils.database import SessionLocal
from gamecluster.utils.logger import get_logger

logger = get_logger(__name__)


def main():
    """Entry point"""
    parser = argparse.ArgumentParser(description="Delete store rows not written by the given training run")
    parser.add_argument("--run-id", default=None, help="run to keep (persisted snapshot's run by default)")
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        run_id = args.run_id or load_snapshot(config.settings.snapshot_path).run_id

        if args.dry_run:
            stale = db.query(GameClusterORM).filter(GameClusterORM.training_run_id != run_id).count()
            logger.info(f"[dry-run] {stale} records would be purged (keeping {run_id})")
            sys.exit(0)

        deleted = GameClusterStore(db).purge_except(run_id)
        db.commit()
        logger.info(f"Purge complete: {deleted} records removed, keeping {run_id}")
        sys.exit(0)

    except Exception as e:
        db.rollback()
        logger.error(f"Purge failed: {e}", exc_info=True)
        sys.exit(1)

    finally:
        db.close()


if __name__ == "__main__":
    main()
