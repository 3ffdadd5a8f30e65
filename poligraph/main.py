from fastapi import FastAPI, HTTPException, Depends, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session
from typing import Dict, List, Optional
import json
import logging
import secrets
import uvicorn

from pydantic import ValidationError

from poligraph import config
from poligraph.errors import InvalidOperationError, NotFoundError
from poligraph.models.database import get_db
from poligraph.models.schemas import (
    AffairDismiss, AffairList, AffairMerge,
    DuplicateGroup, IdentityDecisionResponse, IdentityReview,
    MergeResult, PoliticianDetail, PoliticianList,
    PotentialDuplicate, PressRejectionResponse, ReconciliationQuery,
    ReconciliationStats, RecoverResult, RejectionRecover,
)
from poligraph.services.affair_reconciliation import AffairReconciliationService
from poligraph.services.affair_service import AffairService
from poligraph.services.identity_service import IdentityService
from poligraph.services.politician_service import PoliticianService
from poligraph.services.press_reconciliation import PressReconciliationService
from poligraph.services.reconcile_service import ReconcileService

app = FastAPI(
    title="Poligraph API",
    description="French politicians, mandates and judicial affairs",
    version="1.0.0"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Services
politician_service = PoliticianService()
affair_service = AffairService()
reconcile_service = ReconcileService()
identity_service = IdentityService()
affair_reconciliation_service = AffairReconciliationService()
press_service = PressReconciliationService()


def require_admin(authorization: Optional[str] = Header(None)):
    """Admin routes expect "Authorization: Bearer <ADMIN_PASSWORD>" """
    expected = config.ADMIN_PASSWORD
    if not expected or not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Non autorisé")
    if not secrets.compare_digest(authorization[len("Bearer "):].encode(), expected.encode()):
        raise HTTPException(status_code=401, detail="Non autorisé")


def parse_queries(raw) -> Dict[str, ReconciliationQuery]:
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            raise HTTPException(status_code=400, detail="Invalid JSON in queries parameter")
    if isinstance(raw, dict) and isinstance(raw.get("queries"), (dict, str)):
        return parse_queries(raw["queries"])
    if not isinstance(raw, dict):
        raise HTTPException(status_code=400, detail="queries must be a JSON object")
    try:
        return {key: ReconciliationQuery.model_validate(q) for key, q in raw.items()}
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid reconciliation query: {e.errors()[0]['msg']}")


@app.get("/")
async def root():
    return {"message": "Poligraph API"}

@app.get("/health")
async def health_check():
    return {"status": "healthy"}

# Politician endpoints
@app.get("/api/politiques", response_model=PoliticianList)
async def get_politicians(
    page: int = 1,
    limit: int = 20,
    search: Optional[str] = None,
    department: Optional[str] = None,
    db: Session = Depends(get_db)
):
    return await politician_service.get_politicians(db, page, limit, search, department)

@app.get("/api/politiques/{slug}", response_model=PoliticianDetail)
async def get_politician(slug: str, db: Session = Depends(get_db)):
    politician = await politician_service.get_politician(db, slug)
    if not politician:
        raise HTTPException(status_code=404, detail="Politician not found")
    return politician

# Affair endpoints
@app.get("/api/affaires", response_model=AffairList)
async def get_affairs(
    page: int = 1,
    limit: int = 20,
    status: Optional[str] = None,
    category: Optional[str] = None,
    politician: Optional[str] = None,
    db: Session = Depends(get_db)
):
    try:
        return await affair_service.get_affairs(db, page, limit, status, category, politician)
    except InvalidOperationError as e:
        raise HTTPException(status_code=400, detail=str(e))

# Reconciliation endpoints (W3C Reconciliation Service API v0.2)
@app.get("/api/reconcile")
async def reconcile_get(queries: Optional[str] = None, db: Session = Depends(get_db)):
    if queries is None:
        return reconcile_service.manifest().model_dump(by_alias=True)
    results = await reconcile_service.reconcile(db, parse_queries(queries))
    return {key: {"result": [r.model_dump() for r in value["result"]]} for key, value in results.items()}

@app.post("/api/reconcile")
async def reconcile_post(request: Request, db: Session = Depends(get_db)):
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/x-www-form-urlencoded") or content_type.startswith("multipart/form-data"):
        form = await request.form()
        if "queries" not in form:
            return reconcile_service.manifest().model_dump(by_alias=True)
        raw = form["queries"]
    else:
        body = await request.body()
        try:
            raw = json.loads(body) if body else None
        except json.JSONDecodeError:
            raise HTTPException(status_code=400, detail="Invalid JSON body")
        if raw is None:
            return reconcile_service.manifest().model_dump(by_alias=True)

    results = await reconcile_service.reconcile(db, parse_queries(raw))
    return {key: {"result": [r.model_dump() for r in value["result"]]} for key, value in results.items()}

# Admin endpoints
@app.get(
    "/api/admin/identity-decisions",
    response_model=List[IdentityDecisionResponse],
    dependencies=[Depends(require_admin)],
)
async def get_pending_identity_decisions(limit: int = 100, db: Session = Depends(get_db)):
    decisions = await identity_service.list_pending(db, min(max(limit, 1), 500))
    return [IdentityDecisionResponse.model_validate(d, from_attributes=True) for d in decisions]

@app.post(
    "/api/admin/identity-decisions/{decision_id}/review",
    response_model=IdentityDecisionResponse,
    dependencies=[Depends(require_admin)],
)
async def review_identity_decision(decision_id: str, review: IdentityReview, db: Session = Depends(get_db)):
    try:
        decision = await identity_service.review(db, decision_id, review.judgement, review.reviewer)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidOperationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return IdentityDecisionResponse.model_validate(decision, from_attributes=True)

@app.get("/api/admin/politiques/{politician_id}/detect-duplicates", dependencies=[Depends(require_admin)])
async def detect_politician_duplicates(politician_id: str, db: Session = Depends(get_db)):
    result = await affair_reconciliation_service.detect_duplicates_for_politician(db, politician_id)
    groups: List[DuplicateGroup] = result["groups"]
    return {"groups": [g.model_dump() for g in groups], "total": result["total"]}

@app.get(
    "/api/admin/affaires/duplicates",
    response_model=List[PotentialDuplicate],
    dependencies=[Depends(require_admin)],
)
async def get_potential_duplicates(db: Session = Depends(get_db)):
    return await affair_reconciliation_service.find_potential_duplicates(db)

@app.get(
    "/api/admin/affaires/reconciliation-stats",
    response_model=ReconciliationStats,
    dependencies=[Depends(require_admin)],
)
async def get_reconciliation_stats(db: Session = Depends(get_db)):
    return await affair_reconciliation_service.get_reconciliation_stats(db)

@app.post("/api/admin/affaires/merge", response_model=MergeResult, dependencies=[Depends(require_admin)])
async def merge_affairs(merge: AffairMerge, db: Session = Depends(get_db)):
    try:
        return await affair_reconciliation_service.merge_affairs(db, merge.primary_id, merge.secondary_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidOperationError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.post("/api/admin/affaires/dismiss", dependencies=[Depends(require_admin)])
async def dismiss_duplicate(dismiss: AffairDismiss, db: Session = Depends(get_db)):
    if dismiss.affair_id_a == dismiss.affair_id_b:
        raise HTTPException(status_code=400, detail="Les deux affaires sont identiques")
    await affair_reconciliation_service.dismiss_duplicate(db, dismiss.affair_id_a, dismiss.affair_id_b)
    return {"success": True}

@app.get(
    "/api/admin/press/rejections",
    response_model=List[PressRejectionResponse],
    dependencies=[Depends(require_admin)],
)
async def get_press_rejections(limit: int = 100, db: Session = Depends(get_db)):
    rejections = await press_service.list_rejections(db, min(max(limit, 1), 500))
    return [PressRejectionResponse.model_validate(r, from_attributes=True) for r in rejections]

@app.post(
    "/api/admin/press/rejections/recover",
    response_model=RecoverResult,
    status_code=201,
    dependencies=[Depends(require_admin)],
)
async def recover_press_rejection(recover: RejectionRecover, db: Session = Depends(get_db)):
    try:
        affair = await press_service.recover_rejection(db, recover.rejection_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidOperationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return RecoverResult(affair_id=affair.id, title=affair.title)

if __name__ == "__main__":
    logging.basicConfig(level=config.LOG_LEVEL)
    uvicorn.run("poligraph.main:app", host="0.0.0.0", port=8000, reload=True)
