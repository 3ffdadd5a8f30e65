from sqlalchemy.orm import Session
from typing import Optional

from poligraph.errors import InvalidOperationError
from poligraph.models.models import Affair, AffairCategory, AffairStatus, Politician, PublicationStatus
from poligraph.models.schemas import AffairList, AffairResponse
from poligraph.services.politician_service import clamp_paging, paginate


def _check_enum(enum_cls, value: str, label: str) -> None:
    if value not in enum_cls.__members__:
        raise InvalidOperationError(f"Invalid {label}: {value}")


class AffairService:
    async def get_affairs(
        self,
        db: Session,
        page: int = 1,
        limit: int = 20,
        status: Optional[str] = None,
        category: Optional[str] = None,
        politician: Optional[str] = None,
    ) -> AffairList:
        """Published affairs, newest first; `politician` is a politician slug"""
        page, limit = clamp_paging(page, limit)

        query = db.query(Affair).filter(Affair.publication_status == PublicationStatus.PUBLISHED.value)

        if status:
            _check_enum(AffairStatus, status, "status")
            query = query.filter(Affair.status == status)

        if category:
            _check_enum(AffairCategory, category, "category")
            query = query.filter(Affair.category == category)

        if politician:
            query = query.join(Politician, Affair.politician_id == Politician.id).filter(Politician.slug == politician)

        total = query.count()
        rows = (
            query.order_by(Affair.verdict_date.desc(), Affair.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

        return AffairList(
            data=[
                AffairResponse(
                    id=a.id,
                    politician_id=a.politician_id,
                    title=a.title,
                    slug=a.slug,
                    status=a.status,
                    category=a.category,
                    ecli=a.ecli,
                    pourvoi_number=a.pourvoi_number,
                    case_numbers=a.case_numbers or [],
                    facts_date=a.facts_date,
                    verdict_date=a.verdict_date,
                    source_count=len(a.sources),
                )
                for a in rows
            ],
            pagination=paginate(page, limit, total),
        )
