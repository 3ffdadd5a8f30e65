from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# Politicians

class MandateResponse(BaseModel):
    id: str
    type: str
    title: str
    constituency: Optional[str] = None
    department_code: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_current: bool


class PoliticianResponse(BaseModel):
    id: str
    slug: str
    public_id: Optional[str] = None
    first_name: str
    last_name: str
    full_name: str
    birth_date: Optional[date] = None
    death_date: Optional[date] = None


class PoliticianDetail(PoliticianResponse):
    mandates: List[MandateResponse] = []
    affair_count: int = 0


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int = Field(serialization_alias="totalPages")


class PoliticianList(BaseModel):
    data: List[PoliticianResponse]
    pagination: Pagination


# Affairs

class AffairResponse(BaseModel):
    id: str
    politician_id: str
    title: str
    slug: str
    status: str
    category: str
    ecli: Optional[str] = None
    pourvoi_number: Optional[str] = None
    case_numbers: List[str] = []
    facts_date: Optional[date] = None
    verdict_date: Optional[date] = None
    source_count: int = 0


class AffairList(BaseModel):
    data: List[AffairResponse]
    pagination: Pagination


class AffairSummary(BaseModel):
    id: str
    title: str
    sources: List[str]


class PotentialDuplicate(BaseModel):
    affair_a: AffairSummary = Field(serialization_alias="affairA")
    affair_b: AffairSummary = Field(serialization_alias="affairB")
    confidence: str
    matched_by: str = Field(serialization_alias="matchedBy")
    score: float


class ReconciliationStats(BaseModel):
    total_unverified: int = Field(serialization_alias="totalUnverified")
    total_duplicates: int = Field(serialization_alias="totalDuplicates")
    duplicates_by_certainty: Dict[str, int] = Field(serialization_alias="duplicatesByCertainty")
    total_dismissed: int = Field(serialization_alias="totalDismissed")


class DuplicateGroup(BaseModel):
    score: int
    reasons: List[str]
    affairs: List[Dict[str, Any]]


class AffairMerge(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    primary_id: str = Field(alias="primaryId", min_length=1)
    secondary_id: str = Field(alias="secondaryId", min_length=1)


class AffairDismiss(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    affair_id_a: str = Field(alias="affairIdA", min_length=1)
    affair_id_b: str = Field(alias="affairIdB", min_length=1)


class MergeResult(BaseModel):
    success: bool = True
    sources_moved: int = Field(serialization_alias="sourcesMoved")
    events_moved: int = Field(serialization_alias="eventsMoved")
    identifiers_merged: List[str] = Field(serialization_alias="identifiersMerged")


# Press rejections

class PressRejectionResponse(BaseModel):
    id: str
    article_url: str
    article_title: str
    politician_id: Optional[str] = None
    politician_name: str
    affair_title: str
    category: Optional[str] = None
    reason: str
    created_at: datetime


class RejectionRecover(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    rejection_id: str = Field(alias="rejectionId", min_length=1)


class RecoverResult(BaseModel):
    affair_id: str = Field(serialization_alias="affairId")
    title: str


# Identity decisions

class IdentityDecisionResponse(BaseModel):
    id: str
    source_type: str
    source_id: str
    politician_id: str
    judgement: str
    confidence: float
    method: str
    evidence: Optional[Dict[str, Any]] = None
    decided_by: str
    decided_at: datetime
    superseded_by: Optional[str] = None


class IdentityReview(BaseModel):
    judgement: str
    reviewer: str = Field(min_length=1)


# W3C Reconciliation Service API v0.2

class ReconciliationProperty(BaseModel):
    pid: str
    v: str


class ReconciliationQuery(BaseModel):
    query: str
    type: Optional[str] = None
    limit: Optional[int] = None
    properties: List[ReconciliationProperty] = []


class ReconciliationType(BaseModel):
    id: str
    name: str


class ReconciliationResult(BaseModel):
    id: str
    name: str
    score: int
    match: bool
    type: List[ReconciliationType]
    description: str


class ReconciliationManifest(BaseModel):
    versions: List[str]
    name: str
    identifier_space: str = Field(serialization_alias="identifierSpace")
    schema_space: str = Field(serialization_alias="schemaSpace")
    default_types: List[ReconciliationType] = Field(serialization_alias="defaultTypes")
