# catalog/api/routes.py
from datetime import datetime, time
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from .. import crud, schemas, services
from ..attributes import AttributeName
from ..db import get_db
from ..deps import get_orchestrator, get_syncer, require_principal
from ..features import filters_from_params
from ..query import QueryOrchestrator, normalize_sort, resolve_pagination
from ..services import Forbidden, NotFound, Principal
from ..sync import IndexSyncer
from ..utils import logger

router = APIRouter()


def _run(fn, *args):
    try:
        return fn(*args)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Forbidden as e:
        raise HTTPException(status_code=403, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _parse_date(raw: Optional[str], field: str, end_of_day: bool = False) -> Optional[datetime]:
    if raw is None or not raw.strip():
        return None
    s = raw.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {field} value")
    # a bare date as upper bound covers the whole day
    if end_of_day and "T" not in s and " " not in s:
        dt = datetime.combine(dt.date(), time.max)
    return dt


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/resources", response_model=schemas.ResourcePage)
def list_resources(
    q: Optional[str] = Query(None),
    name: Optional[str] = Query(None),
    min_price: Optional[float] = Query(None, alias="minPrice"),
    max_price: Optional[float] = Query(None, alias="maxPrice"),
    date_from: Optional[str] = Query(None, alias="dateFrom"),
    date_to: Optional[str] = Query(None, alias="dateTo"),
    user_id: Optional[int] = Query(None),
    rooms: Optional[str] = Query(None),
    level: Optional[str] = Query(None),
    new: Optional[str] = Query(None),
    surface_min: Optional[str] = Query(None, alias="surfaceMin"),
    surface_max: Optional[str] = Query(None, alias="surfaceMax"),
    level_min: Optional[str] = Query(None, alias="levelMin"),
    level_max: Optional[str] = Query(None, alias="levelMax"),
    limit: Optional[int] = Query(None),
    offset: Optional[int] = Query(None),
    page: Optional[int] = Query(None),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    order: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    orchestrator: QueryOrchestrator = Depends(get_orchestrator),
):
    try:
        limit, offset = resolve_pagination(limit, offset, page)
        sort_by, order = normalize_sort(sort_by, order)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    text = (q or name or "").strip() or None
    filters = schemas.ResourceFilter(
        text=text,
        min_price=min_price,
        max_price=max_price,
        date_from=_parse_date(date_from, "dateFrom"),
        date_to=_parse_date(date_to, "dateTo", end_of_day=True),
        user_id=user_id,
        sort_by=sort_by,
        order=order,
    )
    attribute_filters = filters_from_params(
        exact={AttributeName.ROOMS: rooms, AttributeName.LEVEL: level, AttributeName.NEW: new},
        ranges={
            AttributeName.SURFACE: (surface_min, surface_max),
            AttributeName.LEVEL: (level_min, level_max),
        },
    )
    return orchestrator.filter_resources(db, filters, attribute_filters, limit=limit, offset=offset)


@router.get("/resources/suggest", response_model=schemas.SuggestionList)
def suggest(
    term: Optional[str] = Query(None),
    q: Optional[str] = Query(None),
    limit: int = Query(5),
    db: Session = Depends(get_db),
    orchestrator: QueryOrchestrator = Depends(get_orchestrator),
):
    return {"items": orchestrator.suggest(db, term or q or "", limit)}


@router.post("/resources/reindex-all", response_model=schemas.ReindexOut)
def reindex_all(
    principal: Principal = Depends(require_principal),
    syncer: IndexSyncer = Depends(get_syncer),
):
    if not principal.is_admin:
        raise HTTPException(status_code=403, detail="Admin role required")
    try:
        result = syncer.reindex_all()
    except Exception as e:
        logger.exception("Reindex failed: %s", e)
        return JSONResponse(status_code=500, content={"success": False, "message": "Reindex failed"})
    if result is None:
        return JSONResponse(status_code=503, content={"success": False, "message": "Search index is not configured"})
    if result.errors:
        return JSONResponse(
            status_code=500,
            content={"success": False, "count": result.count,
                     "message": f"Reindex finished with {len(result.errors)} failed documents"},
        )
    return {"success": True, "count": result.count}


@router.get("/resources/{resource_id}", response_model=schemas.ResourceDetail)
def get_resource(resource_id: int, db: Session = Depends(get_db)):
    obj = crud.get_resource(db, resource_id, comments=True)
    if not obj:
        raise HTTPException(status_code=404, detail="Resource not found")
    return obj


@router.post("/resources", response_model=schemas.ResourceOut, status_code=201)
def create_resource(
    payload: schemas.ResourceCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_principal),
    syncer: IndexSyncer = Depends(get_syncer),
):
    return _run(services.create_resource, db, syncer, principal, payload)


@router.put("/resources/{resource_id}", response_model=schemas.ResourceOut)
def update_resource(
    resource_id: int,
    payload: schemas.ResourceUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_principal),
    syncer: IndexSyncer = Depends(get_syncer),
):
    return _run(services.update_resource, db, syncer, principal, resource_id, payload)


@router.delete("/resources/{resource_id}")
def delete_resource(
    resource_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_principal),
    syncer: IndexSyncer = Depends(get_syncer),
):
    _run(services.delete_resource, db, syncer, principal, resource_id)
    return {"status": "deleted"}


@router.get("/resources/{resource_id}/items", response_model=List[schemas.ItemOut])
def list_items(resource_id: int, db: Session = Depends(get_db)):
    if not crud.get_resource(db, resource_id):
        raise HTTPException(status_code=404, detail="Resource not found")
    return crud.list_items(db, resource_id)


@router.post("/resources/{resource_id}/items", response_model=schemas.ItemOut, status_code=201)
def create_item(
    resource_id: int,
    payload: schemas.ItemIn,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_principal),
    syncer: IndexSyncer = Depends(get_syncer),
):
    return _run(services.add_item, db, syncer, principal, resource_id, payload)


@router.put("/resources/{resource_id}/items/{item_id}", response_model=schemas.ItemOut)
def update_item(
    resource_id: int,
    item_id: int,
    payload: schemas.ItemUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_principal),
    syncer: IndexSyncer = Depends(get_syncer),
):
    return _run(services.update_item, db, syncer, principal, resource_id, item_id, payload)


@router.delete("/resources/{resource_id}/items/{item_id}")
def delete_item(
    resource_id: int,
    item_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_principal),
    syncer: IndexSyncer = Depends(get_syncer),
):
    _run(services.delete_item, db, syncer, principal, resource_id, item_id)
    return {"status": "deleted"}


@router.get("/resources/{resource_id}/comments", response_model=List[schemas.CommentOut])
def list_comments(resource_id: int, db: Session = Depends(get_db)):
    if not crud.get_resource(db, resource_id):
        raise HTTPException(status_code=404, detail="Resource not found")
    return crud.list_comments(db, resource_id)


@router.post("/resources/{resource_id}/comments", response_model=schemas.CommentOut, status_code=201)
def create_comment(
    resource_id: int,
    payload: schemas.CommentIn,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_principal),
    syncer: IndexSyncer = Depends(get_syncer),
):
    return _run(services.add_comment, db, syncer, principal, resource_id, payload)


@router.put("/resources/{resource_id}/comments/{comment_id}", response_model=schemas.CommentOut)
def update_comment(
    resource_id: int,
    comment_id: int,
    payload: schemas.CommentIn,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_principal),
    syncer: IndexSyncer = Depends(get_syncer),
):
    return _run(services.update_comment, db, syncer, principal, resource_id, comment_id, payload)


@router.delete("/resources/{resource_id}/comments/{comment_id}")
def delete_comment(
    resource_id: int,
    comment_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_principal),
    syncer: IndexSyncer = Depends(get_syncer),
):
    _run(services.delete_comment, db, syncer, principal, resource_id, comment_id)
    return {"status": "deleted"}
