"""
IdentityService - attach records from external sources to politicians.

Pipeline for each incoming record (source, source_id, name, ...):
  1. Prior decisions: NOT_SAME blocks a politician, a confident SAME wins
  2. Deterministic match through an ExternalId link
  3. Candidate scoring on exact name, birth date (+/-1 day) and department
  4. Threshold decision: SAME (auto-match) / UNDECIDED (review) / NEW
  5. Every decision naming a politician is logged to identity_decisions
     under a SAVEPOINT; the caller owns the commit

Admins settle UNDECIDED rows through review(); the manual decision
supersedes the earlier ones for the same (source, source_id, politician).
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Set

from sqlalchemy import func
from sqlalchemy.orm import Session

from poligraph.errors import InvalidOperationError, NotFoundError
from poligraph.models.models import (
    ExternalId,
    IdentityDecision,
    Judgement,
    Mandate,
    MatchMethod,
    Politician,
)

logger = logging.getLogger(__name__)

AUTO_MATCH_THRESHOLD = 0.95
REVIEW_THRESHOLD = 0.70
BIRTHDATE_TOLERANCE_DAYS = 1

NEW = "NEW"


@dataclass
class ResolveInput:
    first_name: str
    last_name: str
    source: str
    source_id: str
    birth_date: Optional[date] = None
    department: Optional[str] = None
    context: Optional[Dict[str, Any]] = None


@dataclass
class CandidateMatch:
    politician_id: str
    first_name: str
    last_name: str
    birth_date: Optional[date]
    score: float
    method: str
    blocked: bool = False


@dataclass
class ResolveResult:
    politician_id: Optional[str]
    confidence: float
    method: str
    decision: str  # SAME, UNDECIDED or NEW
    candidates: List[CandidateMatch] = field(default_factory=list)
    blocked: bool = False


def score_candidate(
    birth_date: Optional[date],
    candidate_birth_date: Optional[date],
    department: Optional[str],
    candidate_departments: Set[str],
) -> tuple:
    """Score a same-name candidate. Returns (score, method)."""
    score = 0.5
    method = MatchMethod.NAME_ONLY.value

    if birth_date and candidate_birth_date:
        if abs((candidate_birth_date - birth_date).days) <= BIRTHDATE_TOLERANCE_DAYS:
            score = 0.9
            method = MatchMethod.BIRTHDATE.value
        else:
            # Different birth date: almost certainly a namesake
            score = 0.1

    if department and department in candidate_departments and score < 0.7:
        score = 0.7
        method = MatchMethod.DEPARTMENT.value

    return score, method


class IdentityService:
    async def resolve(self, db: Session, data: ResolveInput) -> ResolveResult:
        prior = (
            db.query(IdentityDecision)
            .filter(
                IdentityDecision.source_type == data.source,
                IdentityDecision.source_id == data.source_id,
                IdentityDecision.superseded_by.is_(None),
            )
            .order_by(IdentityDecision.decided_at.desc())
            .all()
        )

        blocked_ids = {d.politician_id for d in prior if d.judgement == Judgement.NOT_SAME.value}

        for decision in prior:
            if decision.judgement == Judgement.SAME.value and decision.confidence >= AUTO_MATCH_THRESHOLD:
                return ResolveResult(
                    politician_id=decision.politician_id,
                    confidence=decision.confidence,
                    method=decision.method,
                    decision=Judgement.SAME.value,
                )

        link = (
            db.query(ExternalId)
            .filter(
                ExternalId.source == data.source,
                ExternalId.external_id == data.source_id,
                ExternalId.politician_id.isnot(None),
            )
            .first()
        )
        if link and link.politician_id not in blocked_ids:
            result = ResolveResult(
                politician_id=link.politician_id,
                confidence=1.0,
                method=MatchMethod.EXTERNAL_ID.value,
                decision=Judgement.SAME.value,
            )
            self._log_decision(db, data, result)
            return result

        candidates = self._score_candidates(db, data, blocked_ids)
        active = sorted((c for c in candidates if not c.blocked), key=lambda c: c.score, reverse=True)
        best = active[0] if active else None

        if best is None or best.score < REVIEW_THRESHOLD:
            result = ResolveResult(
                politician_id=None,
                confidence=best.score if best else 0.0,
                method=best.method if best else MatchMethod.NAME_ONLY.value,
                decision=NEW,
                candidates=candidates,
                blocked=bool(candidates) and not active,
            )
        elif best.score >= AUTO_MATCH_THRESHOLD:
            result = ResolveResult(
                politician_id=best.politician_id,
                confidence=best.score,
                method=best.method,
                decision=Judgement.SAME.value,
                candidates=candidates,
            )
        else:
            result = ResolveResult(
                politician_id=best.politician_id,
                confidence=best.score,
                method=best.method,
                decision=Judgement.UNDECIDED.value,
                candidates=candidates,
            )

        self._log_decision(db, data, result)
        return result

    def _score_candidates(self, db: Session, data: ResolveInput, blocked_ids: Set[str]) -> List[CandidateMatch]:
        politicians = (
            db.query(Politician)
            .filter(
                func.lower(Politician.first_name) == data.first_name.lower(),
                func.lower(Politician.last_name) == data.last_name.lower(),
            )
            .all()
        )
        if not politicians:
            return []

        departments: Dict[str, Set[str]] = {p.id: set() for p in politicians}
        rows = (
            db.query(Mandate.politician_id, Mandate.department_code)
            .filter(
                Mandate.politician_id.in_(list(departments)),
                Mandate.department_code.isnot(None),
            )
            .all()
        )
        for politician_id, department_code in rows:
            departments[politician_id].add(department_code)

        candidates = []
        for p in politicians:
            score, method = score_candidate(data.birth_date, p.birth_date, data.department, departments[p.id])
            candidates.append(
                CandidateMatch(
                    politician_id=p.id,
                    first_name=p.first_name,
                    last_name=p.last_name,
                    birth_date=p.birth_date,
                    score=score,
                    method=method,
                    blocked=p.id in blocked_ids,
                )
            )
        return candidates

    def _log_decision(self, db: Session, data: ResolveInput, result: ResolveResult) -> None:
        # NEW results name no politician, there is nothing to log
        if not result.politician_id:
            return

        decision = IdentityDecision(
            source_type=data.source,
            source_id=data.source_id,
            politician_id=result.politician_id,
            judgement=result.decision,
            confidence=result.confidence,
            method=result.method,
            evidence={
                "firstName": data.first_name,
                "lastName": data.last_name,
                "birthDate": data.birth_date.isoformat() if data.birth_date else None,
                "department": data.department,
                "candidateCount": len(result.candidates),
                "context": data.context,
            },
            decided_by=f"system:sync-{data.source.lower()}",
        )
        # SAVEPOINT: a failed log row must not roll back the caller's pending work
        try:
            with db.begin_nested():
                db.add(decision)
        except Exception as e:
            logger.error("Failed to log identity decision for %s:%s: %s", data.source, data.source_id, e)

    async def list_pending(self, db: Session, limit: int = 100) -> List[IdentityDecision]:
        """Active UNDECIDED decisions awaiting a manual review"""
        return (
            db.query(IdentityDecision)
            .filter(
                IdentityDecision.judgement == Judgement.UNDECIDED.value,
                IdentityDecision.superseded_by.is_(None),
            )
            .order_by(IdentityDecision.decided_at.desc())
            .limit(limit)
            .all()
        )

    async def review(self, db: Session, decision_id: str, judgement: str, reviewer: str) -> IdentityDecision:
        """Record a manual SAME / NOT_SAME judgement on a logged decision"""
        if judgement not in (Judgement.SAME.value, Judgement.NOT_SAME.value):
            raise InvalidOperationError(f"Invalid judgement: {judgement}")

        decision = db.query(IdentityDecision).filter(IdentityDecision.id == decision_id).first()
        if not decision:
            raise NotFoundError(f"Identity decision not found: {decision_id}")
        if decision.superseded_by:
            raise InvalidOperationError(f"Identity decision {decision_id} is already superseded")

        manual = IdentityDecision(
            source_type=decision.source_type,
            source_id=decision.source_id,
            politician_id=decision.politician_id,
            judgement=judgement,
            confidence=1.0,
            method=MatchMethod.MANUAL.value,
            evidence={"reviewedDecision": decision.id},
            decided_by=f"admin:{reviewer}",
            decided_at=datetime.utcnow(),
        )
        db.add(manual)
        db.flush()

        (
            db.query(IdentityDecision)
            .filter(
                IdentityDecision.source_type == decision.source_type,
                IdentityDecision.source_id == decision.source_id,
                IdentityDecision.politician_id == decision.politician_id,
                IdentityDecision.superseded_by.is_(None),
                IdentityDecision.id != manual.id,
            )
            .update({IdentityDecision.superseded_by: manual.id}, synchronize_session=False)
        )

        if judgement == Judgement.SAME.value:
            link = (
                db.query(ExternalId)
                .filter(
                    ExternalId.source == decision.source_type,
                    ExternalId.external_id == decision.source_id,
                )
                .first()
            )
            if link:
                link.politician_id = decision.politician_id
            else:
                db.add(
                    ExternalId(
                        source=decision.source_type,
                        external_id=decision.source_id,
                        politician_id=decision.politician_id,
                    )
                )

        db.commit()
        db.refresh(manual)
        logger.info(
            "Identity decision %s reviewed as %s by %s", decision.id, judgement, reviewer
        )
        return manual
