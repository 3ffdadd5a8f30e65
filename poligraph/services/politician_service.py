from sqlalchemy.orm import Session
from sqlalchemy import func, select
from typing import Optional
import math

from poligraph.models.models import Affair, Mandate, Politician, PublicationStatus
from poligraph.models.schemas import (
    MandateResponse,
    Pagination,
    PoliticianDetail,
    PoliticianList,
    PoliticianResponse,
)

MAX_PAGE_SIZE = 100


def paginate(page: int, limit: int, total: int) -> Pagination:
    return Pagination(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit) if limit else 0)


def clamp_paging(page: int, limit: int) -> tuple:
    return max(page, 1), min(max(limit, 1), MAX_PAGE_SIZE)


def politician_response(p: Politician) -> PoliticianResponse:
    return PoliticianResponse(
        id=p.id,
        slug=p.slug,
        public_id=p.public_id,
        first_name=p.first_name,
        last_name=p.last_name,
        full_name=p.full_name,
        birth_date=p.birth_date,
        death_date=p.death_date,
    )


class PoliticianService:
    async def get_politicians(
        self,
        db: Session,
        page: int = 1,
        limit: int = 20,
        search: Optional[str] = None,
        department: Optional[str] = None,
    ) -> PoliticianList:
        """Published politicians with optional name / department filtering"""
        page, limit = clamp_paging(page, limit)

        query = db.query(Politician).filter(Politician.publication_status == PublicationStatus.PUBLISHED.value)

        if search:
            query = query.filter(func.lower(Politician.full_name).contains(search.strip().lower(), autoescape=True))

        if department:
            with_mandate = (
                select(Mandate.politician_id)
                .where(Mandate.department_code == department, Mandate.is_current.is_(True))
            )
            query = query.filter(Politician.id.in_(with_mandate))

        total = query.count()
        rows = (
            query.order_by(Politician.last_name, Politician.first_name)
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

        return PoliticianList(data=[politician_response(p) for p in rows], pagination=paginate(page, limit, total))

    async def get_politician(self, db: Session, slug: str) -> Optional[PoliticianDetail]:
        """Get a single published politician by slug"""
        politician = (
            db.query(Politician)
            .filter(
                Politician.slug == slug,
                Politician.publication_status == PublicationStatus.PUBLISHED.value,
            )
            .first()
        )
        if not politician:
            return None

        affair_count = (
            db.query(Affair)
            .filter(
                Affair.politician_id == politician.id,
                Affair.publication_status == PublicationStatus.PUBLISHED.value,
            )
            .count()
        )
        mandates = sorted(
            politician.mandates,
            key=lambda m: (not m.is_current, -(m.start_date.toordinal() if m.start_date else 0)),
        )

        return PoliticianDetail(
            **politician_response(politician).model_dump(),
            mandates=[
                MandateResponse(
                    id=m.id,
                    type=m.type,
                    title=m.title,
                    constituency=m.constituency,
                    department_code=m.department_code,
                    start_date=m.start_date,
                    end_date=m.end_date,
                    is_current=m.is_current,
                )
                for m in mandates
            ],
            affair_count=affair_count,
        )
