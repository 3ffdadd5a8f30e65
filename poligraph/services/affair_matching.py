"""
Affair matching - deduplication of judicial affairs reported by several sources.

Judicial identifiers (ECLI, pourvoi number, case numbers) are tried first;
titles and category/date proximity are the fallback when they are missing.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List, Optional
import re

from sqlalchemy.orm import Session

from poligraph.models.models import Affair

CERTAIN = "CERTAIN"
HIGH = "HIGH"
POSSIBLE = "POSSIBLE"

_TO_VERIFY_PREFIX = re.compile(r"^\[À VÉRIFIER\]\s*", re.IGNORECASE)


@dataclass
class MatchResult:
    affair_id: str
    confidence: str
    score: float
    matched_by: str


@dataclass
class MatchCandidate:
    politician_id: str
    title: str
    ecli: Optional[str] = None
    pourvoi_number: Optional[str] = None
    case_numbers: List[str] = field(default_factory=list)
    category: Optional[str] = None
    verdict_date: Optional[date] = None


def normalize_affair_title(title: str) -> str:
    """Strip the "[À VÉRIFIER]" marker and lowercase"""
    return _TO_VERIFY_PREFIX.sub("", title).strip().lower()


class AffairMatchingService:
    async def find_matching_affairs(self, db: Session, candidate: MatchCandidate) -> List[MatchResult]:
        """Existing affairs matching the candidate, best first"""
        matches: List[MatchResult] = []

        if candidate.ecli:
            affair = db.query(Affair).filter(Affair.ecli == candidate.ecli).first()
            if affair:
                # ECLI is a unique European identifier, nothing else to check
                return [MatchResult(affair.id, CERTAIN, 1.0, "ecli")]

        same_politician = db.query(Affair).filter(Affair.politician_id == candidate.politician_id).all()
        matched_ids = set()

        def add(affair_id: str, confidence: str, score: float, matched_by: str) -> None:
            matches.append(MatchResult(affair_id, confidence, score, matched_by))
            matched_ids.add(affair_id)

        if candidate.pourvoi_number:
            for affair in same_politician:
                if affair.pourvoi_number == candidate.pourvoi_number:
                    add(affair.id, HIGH, 0.95, "pourvoiNumber")

        if candidate.case_numbers:
            wanted = set(candidate.case_numbers)
            for affair in same_politician:
                if affair.id not in matched_ids and wanted & set(affair.case_numbers or []):
                    add(affair.id, HIGH, 0.8, "caseNumbers")

        if candidate.title:
            normalized_candidate = normalize_affair_title(candidate.title)
            for affair in same_politician:
                if affair.id in matched_ids:
                    continue
                normalized_existing = normalize_affair_title(affair.title)

                if normalized_existing == normalized_candidate:
                    add(affair.id, HIGH, 0.85, "title-exact")
                elif normalized_candidate in normalized_existing or normalized_existing in normalized_candidate:
                    if candidate.category and affair.category == candidate.category:
                        add(affair.id, HIGH, 0.75, "title+category")
                    else:
                        add(affair.id, POSSIBLE, 0.5, "title-partial")

        if candidate.category and candidate.verdict_date:
            date_min = candidate.verdict_date - timedelta(days=30)
            date_max = candidate.verdict_date + timedelta(days=30)
            for affair in same_politician:
                if affair.id in matched_ids or affair.category != candidate.category:
                    continue
                if affair.verdict_date and date_min <= affair.verdict_date <= date_max:
                    add(affair.id, POSSIBLE, 0.4, "category+date")

        matches.sort(key=lambda m: m.score, reverse=True)
        return matches

    async def is_duplicate(self, db: Session, candidate: MatchCandidate) -> bool:
        matches = await self.find_matching_affairs(db, candidate)
        return any(m.confidence in (CERTAIN, HIGH) for m in matches)
