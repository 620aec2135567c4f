# catalog/sync.py
"""Propagation of committed resource changes to the search index.

All mutation paths call `IndexSyncer.sync` / `IndexSyncer.remove` after their
transaction commits. The work runs as a background scheduler job with its own
session; failures are logged and never reach the request that triggered them.
"""
from typing import Any, Callable, Dict, Optional

from .config import resolve_upload_url
from .crud import all_resources, get_resource
from .search_index import ReindexResult, SearchIndexClient
from .utils import logger


def _iso(dt):
    return dt.isoformat() if dt is not None else None


def resource_to_document(resource, upload_url: Callable[[str], str] = resolve_upload_url) -> Dict[str, Any]:
    """Denormalized search document for one resource."""
    doc = {
        "id": resource.id,
        "name": resource.name,
        "description": resource.description,
        "price": float(resource.price) if resource.price is not None else None,
        "user_id": resource.user_id,
        "attributes": {a.name.value: a.value for a in resource.attributes},
        "primaryImage": upload_url(resource.images[0].url) if resource.images else None,
        "imagesCount": len(resource.images),
        "itemsCount": len(resource.items),
        "commentsCount": len(resource.comments),
        "createdAt": _iso(resource.created_at),
        "updatedAt": _iso(resource.updated_at),
    }
    c = resource.coordinates
    if c is not None and c.latitude is not None and c.longitude is not None:
        doc["location"] = {"lat": float(c.latitude), "lon": float(c.longitude)}
    return doc


class IndexSyncer:
    def __init__(self, session_factory, search_index: Optional[SearchIndexClient], scheduler=None,
                 upload_url: Callable[[str], str] = resolve_upload_url):
        self.session_factory = session_factory
        self.search_index = search_index
        self.scheduler = scheduler
        self.upload_url = upload_url

    @property
    def enabled(self) -> bool:
        return self.search_index is not None

    def rebind(self, search_index: Optional[SearchIndexClient]):
        self.search_index = search_index

    def sync(self, resource_id: int):
        if self.enabled:
            self._submit(self.sync_now, resource_id, label=f"sync resource {resource_id}")

    def remove(self, resource_id: int):
        if self.enabled:
            self._submit(self.remove_now, resource_id, label=f"remove resource {resource_id}")

    def _submit(self, fn, *args, label: str):
        if self.scheduler is not None:
            self.scheduler.add_job(fn, args=list(args), name=label)
            return
        try:
            fn(*args)
        except Exception:
            logger.exception("Index job failed: %s", label)

    def sync_now(self, resource_id: int):
        db = self.session_factory()
        try:
            resource = get_resource(db, resource_id, comments=True)
            if resource is None:
                logger.info("Resource %s no longer exists; skipping index sync", resource_id)
                return
            doc = resource_to_document(resource, self.upload_url)
        finally:
            db.close()
        self.search_index.upsert(doc)
        logger.debug("Indexed resource %s", resource_id)

    def remove_now(self, resource_id: int):
        self.search_index.delete(resource_id)
        logger.debug("Removed resource %s from index", resource_id)

    def reindex_all(self) -> Optional[ReindexResult]:
        """Rebuild the whole index from the store; None when indexing is disabled."""
        if not self.enabled:
            return None
        db = self.session_factory()
        try:
            docs = [resource_to_document(r, self.upload_url) for r in all_resources(db)]
        finally:
            db.close()
        result = self.search_index.bulk_reindex(docs)
        logger.info("Reindexed %d resources (%d errors)", result.count, len(result.errors))
        return result
