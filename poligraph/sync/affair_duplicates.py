"""
Report affair duplicates awaiting an admin decision.

Read-only: merging and dismissing go through the admin API.
"""

import argparse
import asyncio
import logging

from poligraph import config
from poligraph.models.database import SessionLocal, init_db
from poligraph.services.affair_reconciliation import AffairReconciliationService

logger = logging.getLogger(__name__)


async def report(db, verbose: bool = False) -> dict:
    service = AffairReconciliationService()
    stats = await service.get_reconciliation_stats(db)

    logger.info("Unverified affairs: %d", stats.total_unverified)
    logger.info("Potential duplicates: %d %s", stats.total_duplicates, stats.duplicates_by_certainty)
    logger.info("Dismissed pairs: %d", stats.total_dismissed)

    if verbose:
        for duplicate in await service.find_potential_duplicates(db):
            logger.info(
                "  [%s %.2f %s] %s <-> %s",
                duplicate.confidence,
                duplicate.score,
                duplicate.matched_by,
                duplicate.affair_a.title,
                duplicate.affair_b.title,
            )
    return stats.model_dump()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Report potential affair duplicates")
    # Accepted for the sync runner; the report never writes
    parser.add_argument("--dry-run", action="store_true")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(level=config.LOG_LEVEL, format='%(asctime)s - %(levelname)s - %(message)s')

    init_db()
    db = SessionLocal()
    try:
        asyncio.run(report(db, verbose=args.verbose))
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
