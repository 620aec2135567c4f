# catalog/crud.py
"""Storage-layer operations for resources and their child records.

Each public write helper runs as one transaction and commits before
returning, so callers can safely trigger index sync afterwards. Reads eager
load the children a resource is rendered with.
"""
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy import select, and_, or_, func
from sqlalchemy.orm import Session, selectinload
from typing import Any, Dict, Iterable, List, Optional
from .attributes import AttributeName
from .coordinates import Coordinates
from .models import (
    Resource, ResourceAttribute, ResourceCoordinate, ResourceImage, ResourceItem, ResourceComment,
)
from .schemas import ResourceFilter

SORT_COLUMNS = {
    "createdAt": Resource.created_at,
    "updatedAt": Resource.updated_at,
    "price": Resource.price,
    "name": Resource.name,
    "id": Resource.id,
}

_UPSERT_INSERTS = {"postgresql": pg_insert, "sqlite": sqlite_insert}

def _with_children(q, comments=False):
    opts = [
        selectinload(Resource.attributes),
        selectinload(Resource.coordinates),
        selectinload(Resource.images),
        selectinload(Resource.items),
    ]
    if comments:
        opts.append(selectinload(Resource.comments))
    return q.options(*opts)

def get_resource(db: Session, resource_id: int, comments: bool = False) -> Optional[Resource]:
    return _with_children(db.query(Resource), comments).filter(Resource.id == resource_id).first()

def get_resources_by_ids(db: Session, ids: Iterable[int]) -> List[Resource]:
    ids = list(ids)
    if not ids:
        return []
    return _with_children(db.query(Resource)).filter(Resource.id.in_(ids)).all()

def all_resources(db: Session, comments: bool = True) -> List[Resource]:
    return _with_children(db.query(Resource), comments).order_by(Resource.id.asc()).all()

def resource_conditions(filters: ResourceFilter) -> list:
    conds = []
    if filters.text:
        pattern = f"%{filters.text.strip()}%"
        conds.append(or_(Resource.name.ilike(pattern), Resource.description.ilike(pattern)))
    if filters.min_price is not None:
        conds.append(Resource.price >= filters.min_price)
    if filters.max_price is not None:
        conds.append(Resource.price <= filters.max_price)
    if filters.date_from is not None:
        conds.append(Resource.created_at >= filters.date_from)
    if filters.date_to is not None:
        conds.append(Resource.created_at <= filters.date_to)
    if filters.user_id is not None:
        conds.append(Resource.user_id == filters.user_id)
    return conds

def list_resources(db: Session, filters: ResourceFilter, ids=None, skip: int = 0, limit: int = 10):
    q = db.query(Resource)
    conds = resource_conditions(filters)
    if ids is not None:
        conds.append(Resource.id.in_(list(ids)))
    if conds:
        q = q.filter(and_(*conds))
    total = q.count()
    column = SORT_COLUMNS[filters.sort_by]
    if filters.order == "ASC":
        ordering = (column.asc(), Resource.id.asc())
    else:
        ordering = (column.desc(), Resource.id.desc())
    items = _with_children(q).order_by(*ordering).offset(skip).limit(limit).all()
    return {"total": total, "items": items}

def suggest_resources(db: Session, term: str, limit: int = 5) -> List[Resource]:
    return (
        db.query(Resource)
        .options(selectinload(Resource.images))
        .filter(Resource.name.ilike(f"%{term}%"))
        .order_by(Resource.created_at.desc(), Resource.id.desc())
        .limit(limit)
        .all()
    )

def upsert_attributes(db: Session, resource_id: int, values: Dict[AttributeName, str]):
    """Insert or overwrite one row per (resource, attribute name)."""
    if not values:
        return
    insert = _UPSERT_INSERTS.get(db.get_bind().dialect.name)
    if insert is None:
        existing = {
            a.name: a for a in db.query(ResourceAttribute).filter(ResourceAttribute.resource_id == resource_id)
        }
        for name, value in values.items():
            if name in existing:
                existing[name].value = value
            else:
                db.add(ResourceAttribute(resource_id=resource_id, name=name, value=value))
        db.flush()
        return
    rows = [{"resource_id": resource_id, "name": name, "value": value[:255]} for name, value in values.items()]
    stmt = insert(ResourceAttribute.__table__).values(rows)
    stmt = stmt.on_conflict_do_update(
        index_elements=["resource_id", "name"],
        set_={"value": stmt.excluded["value"], "updated_at": func.now()},
    )
    db.execute(stmt)

def set_coordinates(db: Session, resource_id: int, coords: Coordinates):
    existing = db.query(ResourceCoordinate).filter(ResourceCoordinate.resource_id == resource_id).first()
    if existing:
        existing.latitude = coords.latitude
        existing.longitude = coords.longitude
    else:
        db.add(ResourceCoordinate(resource_id=resource_id, latitude=coords.latitude, longitude=coords.longitude))

def create_resource(
    db: Session,
    owner_id: int,
    data: Dict[str, Any],
    attributes: Optional[Dict[AttributeName, str]] = None,
    image_urls: Iterable[str] = (),
    coords: Optional[Coordinates] = None,
) -> Resource:
    obj = Resource(user_id=owner_id, **data)
    db.add(obj)
    db.flush()
    for url in image_urls:
        db.add(ResourceImage(resource_id=obj.id, url=url))
    upsert_attributes(db, obj.id, attributes or {})
    if coords is not None:
        set_coordinates(db, obj.id, coords)
    db.commit()
    return get_resource(db, obj.id)

def update_resource(
    db: Session,
    obj: Resource,
    updates: Dict[str, Any],
    attributes: Optional[Dict[AttributeName, str]] = None,
    image_urls: Iterable[str] = (),
    delete_image_ids: Iterable[int] = (),
    coords: Optional[Coordinates] = None,
) -> Resource:
    for k, v in updates.items():
        setattr(obj, k, v)
    delete_image_ids = list(delete_image_ids)
    if delete_image_ids:
        (
            db.query(ResourceImage)
            .filter(ResourceImage.resource_id == obj.id, ResourceImage.id.in_(delete_image_ids))
            .delete(synchronize_session=False)
        )
    for url in image_urls:
        db.add(ResourceImage(resource_id=obj.id, url=url))
    upsert_attributes(db, obj.id, attributes or {})
    if coords is not None:
        set_coordinates(db, obj.id, coords)
    db.commit()
    return get_resource(db, obj.id)

def delete_resource(db: Session, obj: Resource):
    db.delete(obj)
    db.commit()

def list_items(db: Session, resource_id: int) -> List[ResourceItem]:
    return (
        db.query(ResourceItem)
        .filter(ResourceItem.resource_id == resource_id)
        .order_by(ResourceItem.created_at.desc(), ResourceItem.id.desc())
        .all()
    )

def get_item(db: Session, resource_id: int, item_id: int) -> Optional[ResourceItem]:
    return db.execute(
        select(ResourceItem).where(ResourceItem.id == item_id, ResourceItem.resource_id == resource_id)
    ).scalar_one_or_none()

def create_item(db: Session, resource_id: int, data: Dict[str, Any]) -> ResourceItem:
    obj = ResourceItem(resource_id=resource_id, **data)
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj

def update_item(db: Session, obj: ResourceItem, updates: Dict[str, Any]) -> ResourceItem:
    for k, v in updates.items():
        setattr(obj, k, v)
    db.commit()
    db.refresh(obj)
    return obj

def delete_item(db: Session, obj: ResourceItem):
    db.delete(obj)
    db.commit()

def list_comments(db: Session, resource_id: int) -> List[ResourceComment]:
    return (
        db.query(ResourceComment)
        .filter(ResourceComment.resource_id == resource_id)
        .order_by(ResourceComment.created_at.desc(), ResourceComment.id.desc())
        .all()
    )

def get_comment(db: Session, resource_id: int, comment_id: int) -> Optional[ResourceComment]:
    return db.execute(
        select(ResourceComment).where(ResourceComment.id == comment_id, ResourceComment.resource_id == resource_id)
    ).scalar_one_or_none()

def create_comment(db: Session, resource_id: int, user_id: int, message: str) -> ResourceComment:
    obj = ResourceComment(resource_id=resource_id, user_id=user_id, message=message)
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj

def update_comment(db: Session, obj: ResourceComment, message: str) -> ResourceComment:
    obj.message = message
    db.commit()
    db.refresh(obj)
    return obj

def delete_comment(db: Session, obj: ResourceComment):
    db.delete(obj)
    db.commit()
