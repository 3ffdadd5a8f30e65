"""
W3C Reconciliation Service API (v0.2) for French politicians.

Lets OpenRefine-style clients map free-text names to politician identifiers.
https://www.w3.org/community/reports/reconciliation/CG-FINAL-specs-0.2-20230410/
"""

import logging
from datetime import date
from typing import Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from poligraph import config
from poligraph.models.models import Politician, PublicationStatus
from poligraph.models.schemas import (
    ReconciliationManifest,
    ReconciliationQuery,
    ReconciliationResult,
    ReconciliationType,
)
from poligraph.services.name_matching import normalize_text

logger = logging.getLogger(__name__)

POLITICIAN_TYPE = ReconciliationType(id="Politician", name="Politicien")

DEFAULT_LIMIT = 5
MAX_LIMIT = 25
MATCH_THRESHOLD = 95
BIRTHDATE_TOLERANCE_DAYS = 1


def _parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        logger.warning("Unparseable birthDate property: %r", value)
        return None


def score_candidate(
    query: str,
    full_name: str,
    birth_date: Optional[date] = None,
    query_birth_date: Optional[date] = None,
    department_codes: Optional[List[str]] = None,
    query_department: Optional[str] = None,
    birth_date_given: Optional[bool] = None,
) -> int:
    """Raw (unclamped) reconciliation score for one candidate.

    birth_date_given flags a birthDate property that was supplied; when it
    could not be parsed (query_birth_date None) the candidate takes the
    mismatch penalty.
    """
    if birth_date_given is None:
        birth_date_given = query_birth_date is not None

    normalized_query = normalize_text(query)
    normalized_name = normalize_text(full_name)

    if normalized_name == normalized_query:
        score = 100
    elif normalized_query in normalized_name:
        score = 80
    else:
        score = 50

    if birth_date_given and birth_date:
        if query_birth_date and abs((birth_date - query_birth_date).days) <= BIRTHDATE_TOLERANCE_DAYS:
            score += 20
        else:
            score -= 30

    if query_department and query_department in (department_codes or []):
        score += 10

    return score


class ReconcileService:
    def manifest(self) -> ReconciliationManifest:
        return ReconciliationManifest(
            versions=["0.2"],
            name="Poligraph — French Politicians Reconciliation Service",
            identifier_space=f"{config.PUBLIC_BASE_URL}/politiques/",
            schema_space=f"{config.PUBLIC_BASE_URL}/schema/",
            default_types=[POLITICIAN_TYPE],
        )

    async def reconcile(
        self, db: Session, queries: Dict[str, ReconciliationQuery]
    ) -> Dict[str, Dict[str, List[ReconciliationResult]]]:
        """Answer a batch of reconciliation queries keyed by client ids"""
        return {key: {"result": await self.reconcile_one(db, q)} for key, q in queries.items()}

    async def reconcile_one(self, db: Session, query: ReconciliationQuery) -> List[ReconciliationResult]:
        text = query.query.strip()
        if not text:
            return []

        limit = min(DEFAULT_LIMIT if query.limit is None else query.limit, MAX_LIMIT)
        if limit <= 0:
            return []

        name_parts = text.split()
        props = {p.pid: p.v for p in query.properties}
        raw_birth_date = (props.get("birthDate") or "").strip()
        query_birth_date = _parse_date(raw_birth_date)
        query_department = props.get("department")

        conditions = [func.lower(Politician.full_name).contains(text.lower(), autoescape=True)]
        if len(name_parts) >= 2:
            conditions.append(
                (func.lower(Politician.last_name) == name_parts[-1].lower())
                & func.lower(Politician.first_name).startswith(name_parts[0].lower(), autoescape=True)
            )

        candidates = (
            db.query(Politician)
            .filter(
                or_(*conditions),
                Politician.publication_status == PublicationStatus.PUBLISHED.value,
            )
            .limit(limit * 2)
            .all()
        )

        results = []
        for candidate in candidates:
            current = [m for m in candidate.mandates if m.is_current][:3]
            score = score_candidate(
                text,
                candidate.full_name,
                birth_date=candidate.birth_date,
                query_birth_date=query_birth_date,
                department_codes=[m.department_code for m in current if m.department_code],
                query_department=query_department,
                birth_date_given=bool(raw_birth_date),
            )
            description = ", ".join(
                f"{m.type} ({m.constituency})" if m.constituency else m.type for m in current
            )
            results.append(
                ReconciliationResult(
                    id=candidate.public_id or candidate.slug,
                    name=candidate.full_name,
                    score=min(100, max(0, score)),
                    match=score >= MATCH_THRESHOLD,
                    type=[POLITICIAN_TYPE],
                    description=description or "Politicien français",
                )
            )

        results.sort(key=lambda r: r.score, reverse=True)
        return results[:limit]
