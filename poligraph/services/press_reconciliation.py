"""
Press-article -> affair reconciliation.

Takes affairs detected in a press article (by an upstream analysis step) and
decides, for each one, whether it enriches an existing affair, creates a new
"[À VÉRIFIER]" affair, is linked as a simple mention, or is rejected.
Press never changes the judicial status of an existing affair. Rejected
detections are kept with their payload so an admin can recover them later.
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from poligraph.errors import InvalidOperationError, NotFoundError
from poligraph.models.models import (
    Affair,
    AffairSource,
    PressAnalysisRejection,
    PublicationStatus,
)
from poligraph.services.affair_matching import CERTAIN, HIGH, AffairMatchingService, MatchCandidate
from poligraph.services.name_matching import (
    PartyName,
    PoliticianName,
    find_mentions,
    find_party_mentions,
    generate_slug,
)

logger = logging.getLogger(__name__)

SKIP = "skip"
ENRICH = "enrich"
CREATE = "create"
LINK = "link"
REJECT = "reject"

TO_VERIFY_PREFIX = "[À VÉRIFIER]"


@dataclass
class PressArticle:
    url: str
    title: str
    publisher: str
    published_at: Optional[date] = None


@dataclass
class DetectedAffair:
    politician_name: str
    title: str
    category: str
    status: str
    involvement: str = "DIRECT"
    is_new_revelation: bool = False
    description: str = ""
    facts_date: Optional[date] = None
    court: Optional[str] = None

    def to_json(self) -> dict:
        data = asdict(self)
        data["facts_date"] = self.facts_date.isoformat() if self.facts_date else None
        return data

    @classmethod
    def from_json(cls, data: dict) -> "DetectedAffair":
        data = dict(data)
        if data.get("facts_date"):
            data["facts_date"] = date.fromisoformat(data["facts_date"])
        return cls(**data)


@dataclass
class PressDecision:
    action: str
    politician_id: Optional[str] = None
    affair_id: Optional[str] = None
    reason: Optional[str] = None


@dataclass
class PressReconciliationStats:
    processed: int = 0
    actions: Dict[str, int] = field(default_factory=lambda: {SKIP: 0, ENRICH: 0, CREATE: 0, LINK: 0, REJECT: 0})
    decisions: List[PressDecision] = field(default_factory=list)
    # party name as matched in the article -> number of articles
    party_mentions: Dict[str, int] = field(default_factory=dict)


def resolve_politician(name: str, index: List[PoliticianName]) -> Optional[str]:
    mentions = find_mentions(name, index)
    return mentions[0].entity_id if mentions else None


class PressReconciliationService:
    def __init__(self):
        self.matching_service = AffairMatchingService()

    async def decide(self, db: Session, detected: DetectedAffair, index: List[PoliticianName]) -> PressDecision:
        """Pick the action for one detected affair without writing anything"""
        if detected.involvement == "MENTIONED_ONLY":
            return PressDecision(SKIP, reason="mentioned_only")

        politician_id = resolve_politician(detected.politician_name, index)
        if not politician_id:
            return PressDecision(REJECT, reason="politician_not_found")

        matches = await self.matching_service.find_matching_affairs(
            db,
            MatchCandidate(politician_id=politician_id, title=detected.title, category=detected.category),
        )
        best = matches[0] if matches else None

        if best and best.confidence in (CERTAIN, HIGH):
            return PressDecision(ENRICH, politician_id=politician_id, affair_id=best.affair_id)
        if detected.is_new_revelation:
            return PressDecision(CREATE, politician_id=politician_id)
        if best:
            return PressDecision(LINK, politician_id=politician_id, affair_id=best.affair_id)
        return PressDecision(REJECT, politician_id=politician_id, reason="no_matching_affair")

    async def reconcile_article(
        self,
        db: Session,
        article: PressArticle,
        detected_affairs: List[DetectedAffair],
        index: List[PoliticianName],
        dry_run: bool = False,
        stats: Optional[PressReconciliationStats] = None,
        parties: Optional[List[PartyName]] = None,
    ) -> PressReconciliationStats:
        """Apply the decisions for one article; counts accumulate into `stats`"""
        stats = stats or PressReconciliationStats()

        if parties:
            search_text = " ".join([article.title] + [d.description for d in detected_affairs if d.description])
            for mention in find_party_mentions(search_text, parties):
                stats.party_mentions[mention.matched_name] = stats.party_mentions.get(mention.matched_name, 0) + 1

        for detected in detected_affairs:
            decision = await self.decide(db, detected, index)
            stats.processed += 1
            stats.actions[decision.action] += 1
            stats.decisions.append(decision)

            if dry_run:
                logger.info("[DRY-RUN] %s: %s (%s)", decision.action, detected.title, detected.politician_name)
                continue

            if decision.action == ENRICH:
                self._attach_source(db, decision.affair_id, article, "PRESSE")
            elif decision.action == LINK:
                self._attach_source(db, decision.affair_id, article, "MENTION")
            elif decision.action == CREATE:
                decision.affair_id = self._create_affair(db, decision.politician_id, article, detected)
            elif decision.action == REJECT:
                db.add(
                    PressAnalysisRejection(
                        article_url=article.url,
                        article_title=article.title,
                        article_publisher=article.publisher,
                        article_published_at=article.published_at,
                        politician_id=decision.politician_id,
                        politician_name=detected.politician_name,
                        affair_title=detected.title,
                        category=detected.category,
                        detected_affair=detected.to_json(),
                        reason=decision.reason,
                    )
                )

        if not dry_run:
            db.commit()
        return stats

    async def list_rejections(self, db: Session, limit: int = 100) -> List[PressAnalysisRejection]:
        return (
            db.query(PressAnalysisRejection)
            .order_by(PressAnalysisRejection.created_at.desc())
            .limit(limit)
            .all()
        )

    async def recover_rejection(self, db: Session, rejection_id: str) -> Affair:
        """Turn a rejected detection into a DRAFT "[À VÉRIFIER]" affair and drop the rejection"""
        rejection = db.query(PressAnalysisRejection).filter(PressAnalysisRejection.id == rejection_id).first()
        if not rejection:
            raise NotFoundError(f"Press rejection not found: {rejection_id}")
        if not rejection.politician_id:
            raise InvalidOperationError("No linked politician, the rejection cannot be recovered")

        if rejection.detected_affair:
            detected = DetectedAffair.from_json(rejection.detected_affair)
        else:
            detected = DetectedAffair(
                politician_name=rejection.politician_name,
                title=rejection.affair_title,
                category=rejection.category or "AUTRE",
                status="ENQUETE_PRELIMINAIRE",
            )
        article = PressArticle(
            url=rejection.article_url,
            title=rejection.article_title,
            publisher=rejection.article_publisher or "",
            published_at=rejection.article_published_at,
        )

        try:
            affair_id = self._create_affair(db, rejection.politician_id, article, detected)
            db.delete(rejection)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info("Recovered press rejection %s as affair %s", rejection_id, affair_id)
        return db.query(Affair).filter(Affair.id == affair_id).one()

    def _attach_source(self, db: Session, affair_id: str, article: PressArticle, source_type: str) -> None:
        existing = (
            db.query(AffairSource)
            .filter(AffairSource.affair_id == affair_id, AffairSource.url == article.url)
            .first()
        )
        if existing:
            return
        db.add(
            AffairSource(
                affair_id=affair_id,
                url=article.url,
                title=article.title,
                publisher=article.publisher,
                published_at=article.published_at,
                source_type=source_type,
            )
        )

    def _create_affair(self, db: Session, politician_id: str, article: PressArticle, detected: DetectedAffair) -> str:
        title = f"{TO_VERIFY_PREFIX} {detected.title}"
        base_slug = generate_slug(title)
        slug = base_slug
        counter = 1
        while db.query(Affair.id).filter(Affair.slug == slug).first():
            slug = f"{base_slug}-{counter}"
            counter += 1

        affair = Affair(
            politician_id=politician_id,
            title=title,
            slug=slug,
            description=detected.description,
            status=detected.status,
            category=detected.category,
            involvement=detected.involvement,
            facts_date=detected.facts_date,
            court=detected.court,
            publication_status=PublicationStatus.DRAFT.value,
            case_numbers=[],
        )
        affair.sources.append(
            AffairSource(
                url=article.url,
                title=article.title,
                publisher=article.publisher,
                published_at=article.published_at,
                source_type="PRESSE",
            )
        )
        db.add(affair)
        db.flush()
        logger.info("Created press affair %s for politician %s", slug, politician_id)
        return affair.id
