"""
Affair reconciliation: duplicate detection, merge and dismissal.

Affairs imported by several sources (Judilibre, Wikidata, press) for the same
politician are compared pairwise; admins then merge true duplicates or dismiss
false positives so they are not proposed again.
"""

import logging
import re
import unicodedata
from datetime import date
from typing import Dict, List, Optional, Tuple

from sqlalchemy import or_, text
from sqlalchemy.orm import Session

from poligraph.errors import InvalidOperationError, NotFoundError
from poligraph.models.models import Affair, AffairEvent, AffairSource, AuditLog, DismissedDuplicate
from poligraph.models.schemas import (
    AffairSummary,
    DuplicateGroup,
    MergeResult,
    PotentialDuplicate,
    ReconciliationStats,
)
from poligraph.services.affair_matching import (
    CERTAIN,
    HIGH,
    POSSIBLE,
    AffairMatchingService,
    MatchCandidate,
)

logger = logging.getLogger(__name__)

TITLE_STOPWORDS = {
    "de", "du", "des", "le", "la", "les", "un", "une", "et", "en", "au", "aux",
    "pour", "par", "sur", "dans", "avec", "son", "sa", "ses", "ce", "cette",
    "qui", "que", "est", "a", "d", "l",
}

MIN_PAIR_SCORE = 40


def pair_key(a: str, b: str) -> Tuple[str, str]:
    return tuple(sorted((a, b)))


def title_words(title: str) -> List[str]:
    decomposed = unicodedata.normalize("NFD", title.lower())
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    cleaned = re.sub(r"[^a-z0-9\s]", " ", stripped)
    return [w for w in cleaned.split() if len(w) > 1 and w not in TITLE_STOPWORDS]


def _reference_date(affair: Affair) -> Optional[date]:
    return affair.facts_date or affair.start_date or affair.verdict_date


def calculate_pair_score(a: Affair, b: Affair) -> Optional[Tuple[int, List[str]]]:
    """Admin-facing similarity of two affairs of the same politician.

    Returns (score, reasons) or None when the pair scores below 40.
    """
    if a.ecli and b.ecli and a.ecli == b.ecli:
        return 100, ["ECLI identique"]

    if a.pourvoi_number and b.pourvoi_number and a.pourvoi_number == b.pourvoi_number:
        return 95, ["Numéro de pourvoi identique"]

    score = 0
    reasons = []

    case_a = a.case_numbers or []
    case_b = b.case_numbers or []
    overlap = [n for n in case_a if n in case_b]
    if overlap:
        score += 40
        reasons.append(f"Numéro(s) de dossier commun(s) : {', '.join(overlap)}")

    words_a = title_words(a.title)
    words_b = title_words(b.title)
    if words_a and words_b:
        common = [w for w in words_a if w in words_b]
        ratio = len(common) / max(len(words_a), len(words_b))
        if ratio >= 0.3:
            score += round(ratio * 50)
            reasons.append(f"Titres similaires ({round(ratio * 100)}% de mots communs)")

    if a.category == b.category:
        score += 15
        reasons.append("Même catégorie")

    date_a = _reference_date(a)
    date_b = _reference_date(b)
    if date_a and date_b:
        days = abs((date_a - date_b).days)
        if days <= 7:
            score += 20
            reasons.append("Dates très proches (< 7 jours)")
        elif days <= 30:
            score += 15
            reasons.append("Dates proches (< 30 jours)")
        elif days <= 90:
            score += 10
            reasons.append("Dates dans la même période (< 90 jours)")

    urls_a = {s.url for s in a.sources}
    common_urls = [s.url for s in b.sources if s.url in urls_a]
    if common_urls:
        score += 15
        reasons.append(f"{len(set(common_urls))} source(s) en commun")

    if score < MIN_PAIR_SCORE:
        return None
    return min(score, 100), reasons


def _summary(affair: Affair) -> AffairSummary:
    return AffairSummary(
        id=affair.id,
        title=affair.title,
        sources=sorted({s.source_type for s in affair.sources}),
    )


def _detail(affair: Affair) -> Dict:
    return {
        "id": affair.id,
        "title": affair.title,
        "status": affair.status,
        "category": affair.category,
        "involvement": affair.involvement,
        "publicationStatus": affair.publication_status,
        "ecli": affair.ecli,
        "pourvoiNumber": affair.pourvoi_number,
        "factsDate": affair.facts_date.isoformat() if affair.facts_date else None,
        "startDate": affair.start_date.isoformat() if affair.start_date else None,
        "verdictDate": affair.verdict_date.isoformat() if affair.verdict_date else None,
        "sourceCount": len(affair.sources),
        "sources": [{"url": s.url, "title": s.title, "publisher": s.publisher} for s in affair.sources],
    }


class AffairReconciliationService:
    def __init__(self):
        self.matching_service = AffairMatchingService()

    async def find_potential_duplicates(self, db: Session) -> List[PotentialDuplicate]:
        """Duplicate pairs among unverified affairs, most confident first"""
        affairs = db.query(Affair).filter(Affair.verified_at.is_(None)).all()
        dismissed = {pair_key(d.affair_id_a, d.affair_id_b) for d in db.query(DismissedDuplicate).all()}

        by_politician: Dict[str, List[Affair]] = {}
        for affair in affairs:
            by_politician.setdefault(affair.politician_id, []).append(affair)

        duplicates = []
        for group in by_politician.values():
            if len(group) < 2:
                continue
            for i, a in enumerate(group):
                for b in group[i + 1:]:
                    if pair_key(a.id, b.id) in dismissed:
                        continue

                    matches = await self.matching_service.find_matching_affairs(
                        db,
                        MatchCandidate(
                            politician_id=b.politician_id,
                            title=b.title,
                            ecli=b.ecli,
                            pourvoi_number=b.pourvoi_number,
                            case_numbers=b.case_numbers or [],
                            category=b.category,
                            verdict_date=b.verdict_date,
                        ),
                    )
                    match_for_a = next((m for m in matches if m.affair_id == a.id), None)
                    if match_for_a:
                        duplicates.append(
                            PotentialDuplicate(
                                affair_a=_summary(a),
                                affair_b=_summary(b),
                                confidence=match_for_a.confidence,
                                matched_by=match_for_a.matched_by,
                                score=match_for_a.score,
                            )
                        )

        duplicates.sort(key=lambda d: d.score, reverse=True)
        return duplicates

    async def detect_duplicates_for_politician(self, db: Session, politician_id: str) -> Dict:
        affairs = (
            db.query(Affair)
            .filter(Affair.politician_id == politician_id)
            .order_by(Affair.created_at.desc())
            .all()
        )
        groups: List[DuplicateGroup] = []
        for i, a in enumerate(affairs):
            for b in affairs[i + 1:]:
                scored = calculate_pair_score(a, b)
                if not scored:
                    continue
                score, reasons = scored
                groups.append(DuplicateGroup(score=score, reasons=reasons, affairs=[_detail(a), _detail(b)]))

        groups.sort(key=lambda g: g.score, reverse=True)
        return {"groups": groups, "total": len(affairs)}

    async def merge_affairs(self, db: Session, keep_id: str, remove_id: str) -> MergeResult:
        """Merge remove_id into keep_id and delete it.

        Sources (deduplicated by URL) and events are moved, missing judicial
        identifiers are copied over. Text fields are left for the admin to edit.
        """
        if keep_id == remove_id:
            raise InvalidOperationError("Les deux affaires sont identiques")

        keep = db.query(Affair).filter(Affair.id == keep_id).first()
        remove = db.query(Affair).filter(Affair.id == remove_id).first()
        if not keep:
            raise NotFoundError(f"Affair to keep not found: {keep_id}")
        if not remove:
            raise NotFoundError(f"Affair to remove not found: {remove_id}")

        try:
            existing_urls = {s.url for s in keep.sources}
            moved_sources = 0
            for source in list(remove.sources):
                if source.url not in existing_urls:
                    remove.sources.remove(source)
                    keep.sources.append(source)
                    existing_urls.add(source.url)
                    moved_sources += 1

            moved_events = (
                db.query(AffairEvent)
                .filter(AffairEvent.affair_id == remove.id)
                .update({AffairEvent.affair_id: keep.id}, synchronize_session=False)
            )

            merged = []
            for attr in ("ecli", "pourvoi_number", "court", "chamber"):
                if not getattr(keep, attr) and getattr(remove, attr):
                    value = getattr(remove, attr)
                    if attr == "ecli":
                        # Unique column: release it before the kept affair takes it
                        remove.ecli = None
                        db.flush()
                    setattr(keep, attr, value)
                    merged.append(attr)
            if remove.case_numbers:
                union = list(dict.fromkeys((keep.case_numbers or []) + remove.case_numbers))
                if union != (keep.case_numbers or []):
                    keep.case_numbers = union
                    merged.append("case_numbers")

            db.flush()
            db.expire(remove)
            db.delete(remove)
            db.query(DismissedDuplicate).filter(
                or_(DismissedDuplicate.affair_id_a == remove_id, DismissedDuplicate.affair_id_b == remove_id)
            ).delete(synchronize_session=False)

            db.add(
                AuditLog(
                    action="MERGE",
                    entity_type="Affair",
                    entity_id=keep.id,
                    changes={
                        "mergedFrom": remove_id,
                        "sourcesMoved": moved_sources,
                        "eventsMoved": moved_events,
                        "identifiersMerged": merged,
                    },
                )
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info("Merged affair %s into %s (%d sources, %d events)", remove_id, keep_id, moved_sources, moved_events)
        return MergeResult(sources_moved=moved_sources, events_moved=moved_events, identifiers_merged=merged)

    async def dismiss_duplicate(self, db: Session, affair_id_a: str, affair_id_b: str) -> None:
        """Mark a pair as "not a duplicate" so it is not proposed again"""
        id_a, id_b = pair_key(affair_id_a, affair_id_b)
        exists = (
            db.query(DismissedDuplicate)
            .filter(DismissedDuplicate.affair_id_a == id_a, DismissedDuplicate.affair_id_b == id_b)
            .first()
        )
        if not exists:
            db.add(DismissedDuplicate(affair_id_a=id_a, affair_id_b=id_b))
            db.commit()

    async def get_reconciliation_stats(self, db: Session) -> ReconciliationStats:
        row = db.execute(text("""
            SELECT
                (SELECT COUNT(*) FROM affairs WHERE verified_at IS NULL) AS total_unverified,
                (SELECT COUNT(*) FROM dismissed_duplicates) AS total_dismissed
        """)).fetchone()

        duplicates = await self.find_potential_duplicates(db)
        by_certainty = {CERTAIN: 0, HIGH: 0, POSSIBLE: 0}
        for duplicate in duplicates:
            by_certainty[duplicate.confidence] += 1

        return ReconciliationStats(
            total_unverified=row.total_unverified,
            total_duplicates=len(duplicates),
            duplicates_by_certainty=by_certainty,
            total_dismissed=row.total_dismissed,
        )
