"""
Apply press-analysis detections to the affairs table.

Input is a JSON file produced by the article analysis step: a list of
{"article": {...}, "affairs": [{...}, ...]} entries.

Usage:
    python -m poligraph.sync.press detections.json
    python -m poligraph.sync.press detections.json --dry-run
"""

import argparse
import asyncio
import json
import logging
from datetime import date
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from poligraph import config
from poligraph.models.database import SessionLocal, init_db
from poligraph.services.name_matching import build_party_index, build_politician_index
from poligraph.services.press_reconciliation import (
    DetectedAffair,
    PressArticle,
    PressReconciliationService,
    PressReconciliationStats,
)

logger = logging.getLogger(__name__)


class ArticleIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str
    title: str
    publisher: str
    published_at: Optional[date] = Field(default=None, alias="publishedAt")


class DetectedAffairIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    politician_name: str = Field(alias="politicianName")
    title: str
    category: str
    status: str
    involvement: str = "DIRECT"
    is_new_revelation: bool = Field(default=False, alias="isNewRevelation")
    description: str = ""
    facts_date: Optional[date] = Field(default=None, alias="factsDate")
    court: Optional[str] = None


class ArticleDetections(BaseModel):
    article: ArticleIn
    affairs: List[DetectedAffairIn] = []


def load_detections(path: str) -> List[ArticleDetections]:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    return [ArticleDetections.model_validate(entry) for entry in data]


async def apply_detections(db, entries: List[ArticleDetections], dry_run: bool = False) -> PressReconciliationStats:
    service = PressReconciliationService()
    index = build_politician_index(db)
    parties = build_party_index(db)
    stats = PressReconciliationStats()

    for entry in entries:
        await service.reconcile_article(
            db,
            PressArticle(**entry.article.model_dump()),
            [DetectedAffair(**a.model_dump()) for a in entry.affairs],
            index,
            dry_run=dry_run,
            stats=stats,
            parties=parties,
        )
    return stats


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Reconcile press detections with affairs")
    parser.add_argument("detections", help="JSON file of article detections")
    parser.add_argument("--dry-run", action="store_true", help="Compute actions without writing")
    args = parser.parse_args(argv)

    logging.basicConfig(level=config.LOG_LEVEL, format='%(asctime)s - %(levelname)s - %(message)s')

    try:
        entries = load_detections(args.detections)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        logger.error("Could not read %s: %s", args.detections, e)
        return 1

    init_db()
    db = SessionLocal()
    try:
        stats = asyncio.run(apply_detections(db, entries, dry_run=args.dry_run))
    finally:
        db.close()

    print(f"Detections processed: {stats.processed}")
    for action, count in stats.actions.items():
        print(f"  {action:<7} {count}")
    if stats.party_mentions:
        print("Party mentions:")
        for name, count in sorted(stats.party_mentions.items(), key=lambda item: -item[1]):
            print(f"  {name:<20} {count}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
