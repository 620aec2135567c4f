# catalog/services.py
"""Mutation paths for resources and their children.

Each function validates its input, writes through `crud` (which commits) and
then hands the resource id to the syncer. Child edits re-sync the parent
because its document carries the child counts.
"""
from dataclasses import dataclass
from sqlalchemy.orm import Session
from . import crud, schemas
from .attributes import dedupe
from .coordinates import parse_coordinates
from .sync import IndexSyncer
from .utils import logger

_RESOURCE_FIELDS = {"name", "description", "price"}


class NotFound(LookupError):
    pass


class Forbidden(PermissionError):
    pass


@dataclass(frozen=True)
class Principal:
    id: int
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def _load(db: Session, resource_id: int):
    obj = crud.get_resource(db, resource_id)
    if obj is None:
        raise NotFound("Resource not found")
    return obj


def _require_owner(obj, principal: Principal):
    if not (principal.is_admin or obj.user_id == principal.id):
        raise Forbidden("Not allowed to modify this resource")


def create_resource(db: Session, syncer: IndexSyncer, principal: Principal, payload: schemas.ResourceCreate):
    coords = parse_coordinates(payload.latitude, payload.longitude, payload.coordinates)
    data = payload.model_dump(include=_RESOURCE_FIELDS)
    obj = crud.create_resource(
        db,
        principal.id,
        data,
        attributes=dedupe(payload.attributes),
        image_urls=[u for u in payload.images if u],
        coords=coords,
    )
    logger.info("Created resource %s for user %s", obj.id, principal.id)
    syncer.sync(obj.id)
    return obj


def update_resource(db: Session, syncer: IndexSyncer, principal: Principal, resource_id: int,
                    payload: schemas.ResourceUpdate):
    obj = _load(db, resource_id)
    _require_owner(obj, principal)
    coords = parse_coordinates(payload.latitude, payload.longitude, payload.coordinates, partial=True)
    updates = {
        k: v for k, v in payload.model_dump(exclude_unset=True, include=_RESOURCE_FIELDS).items()
        if v is not None
    }
    obj = crud.update_resource(
        db,
        obj,
        updates,
        attributes=dedupe(payload.attributes or []),
        image_urls=[u for u in payload.images if u],
        delete_image_ids=payload.delete_image_ids,
        coords=coords,
    )
    logger.info("Updated resource %s", resource_id)
    syncer.sync(resource_id)
    return obj


def delete_resource(db: Session, syncer: IndexSyncer, principal: Principal, resource_id: int):
    obj = _load(db, resource_id)
    _require_owner(obj, principal)
    crud.delete_resource(db, obj)
    logger.info("Deleted resource %s", resource_id)
    syncer.remove(resource_id)


def add_item(db: Session, syncer: IndexSyncer, principal: Principal, resource_id: int, payload: schemas.ItemIn):
    _require_owner(_load(db, resource_id), principal)
    item = crud.create_item(db, resource_id, payload.model_dump())
    syncer.sync(resource_id)
    return item


def _load_item(db: Session, resource_id: int, item_id: int):
    item = crud.get_item(db, resource_id, item_id)
    if item is None:
        raise NotFound("Item not found")
    return item


def update_item(db: Session, syncer: IndexSyncer, principal: Principal, resource_id: int, item_id: int,
                payload: schemas.ItemUpdate):
    _require_owner(_load(db, resource_id), principal)
    item = _load_item(db, resource_id, item_id)
    updates = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    item = crud.update_item(db, item, updates)
    syncer.sync(resource_id)
    return item


def delete_item(db: Session, syncer: IndexSyncer, principal: Principal, resource_id: int, item_id: int):
    _require_owner(_load(db, resource_id), principal)
    crud.delete_item(db, _load_item(db, resource_id, item_id))
    syncer.sync(resource_id)


def add_comment(db: Session, syncer: IndexSyncer, principal: Principal, resource_id: int,
                payload: schemas.CommentIn):
    _load(db, resource_id)
    comment = crud.create_comment(db, resource_id, principal.id, payload.message)
    syncer.sync(resource_id)
    return comment


def _load_comment(db: Session, resource_id: int, comment_id: int):
    comment = crud.get_comment(db, resource_id, comment_id)
    if comment is None:
        raise NotFound("Comment not found")
    return comment


def update_comment(db: Session, syncer: IndexSyncer, principal: Principal, resource_id: int, comment_id: int,
                   payload: schemas.CommentIn):
    _load(db, resource_id)
    comment = _load_comment(db, resource_id, comment_id)
    if comment.user_id != principal.id:
        raise Forbidden("Only the author can edit this comment")
    comment = crud.update_comment(db, comment, payload.message)
    syncer.sync(resource_id)
    return comment


def delete_comment(db: Session, syncer: IndexSyncer, principal: Principal, resource_id: int, comment_id: int):
    obj = _load(db, resource_id)
    comment = _load_comment(db, resource_id, comment_id)
    if not (principal.is_admin or comment.user_id == principal.id or obj.user_id == principal.id):
        raise Forbidden("Not allowed to delete this comment")
    crud.delete_comment(db, comment)
    syncer.sync(resource_id)
