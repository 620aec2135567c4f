# catalog/query.py
"""Resource filtering across the search index and the relational store.

The index answers text relevance, price/date ranges, sorting and paging; the
store answers attribute filters (as an id allow-list) and hydrates the final
page. When the index is disabled, unreachable or failing, the same query runs
against the store alone with the same paging arithmetic.
"""
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from . import crud
from .config import resolve_upload_url
from .features import resolve_id_constraint
from .schemas import ResourceFilter
from .search_index import IndexQuery, MAX_SUGGESTIONS, SearchIndexClient
from .utils import logger

DEFAULT_LIMIT = 10
MAX_LIMIT = 100


def resolve_pagination(limit=None, offset=None, page=None) -> Tuple[int, int]:
    """(limit, offset) from either an explicit offset or a 1-based page."""
    limit = DEFAULT_LIMIT if limit is None else int(limit)
    if limit < 1 or limit > MAX_LIMIT:
        raise ValueError(f"limit must be between 1 and {MAX_LIMIT}")
    offset = 0 if offset is None else int(offset)
    if offset < 0:
        raise ValueError("offset must be >= 0")
    if page is not None:
        page = int(page)
        if page < 1:
            raise ValueError("page must be >= 1")
        offset = (page - 1) * limit
    return limit, offset


def page_number(limit: int, offset: int) -> int:
    return offset // limit + 1


def normalize_sort(sort_by: Optional[str], order: Optional[str]) -> Tuple[str, str]:
    sort_by = sort_by or "createdAt"
    if sort_by not in crud.SORT_COLUMNS:
        raise ValueError(f"sortBy must be one of: {', '.join(crud.SORT_COLUMNS)}")
    return sort_by, "ASC" if (order or "").strip().upper() == "ASC" else "DESC"


def _page(items, total, limit, offset):
    return {"items": items, "total": total, "limit": limit, "offset": offset, "page": page_number(limit, offset)}


class QueryOrchestrator:
    def __init__(self, search_index: Optional[SearchIndexClient] = None):
        self.search_index = search_index

    def filter_resources(self, db: Session, filters: ResourceFilter, attribute_filters: Iterable = (),
                         limit: int = DEFAULT_LIMIT, offset: int = 0):
        ids = resolve_id_constraint(db, attribute_filters)
        if ids is not None and not ids:
            return _page([], 0, limit, offset)

        hits = self._search_index(filters, ids, limit, offset)
        if hits is not None:
            if not hits.ids:
                return _page([], hits.total, limit, offset)
            rows = crud.get_resources_by_ids(db, hits.ids)
            by_id = {r.id: r for r in rows}
            ordered = [by_id[i] for i in hits.ids if i in by_id]
            if len(ordered) < len(hits.ids):
                logger.info("Dropped %d stale index hits", len(hits.ids) - len(ordered))
            return _page(ordered, hits.total, limit, offset)

        res = crud.list_resources(db, filters, ids=ids, skip=offset, limit=limit)
        return _page(res["items"], res["total"], limit, offset)

    def _search_index(self, filters: ResourceFilter, ids, limit, offset):
        if self.search_index is None:
            return None
        q = IndexQuery(
            text=filters.text,
            min_price=filters.min_price,
            max_price=filters.max_price,
            created_from=filters.date_from,
            created_to=filters.date_to,
            owner_id=filters.user_id,
            ids=ids,
            sort_by=filters.sort_by,
            order=filters.order,
            limit=limit,
            offset=offset,
        )
        try:
            return self.search_index.search(q)
        except Exception:
            logger.exception("Search index raised; falling back to store")
            return None

    def suggest(self, db: Session, term: str, limit: int = 5) -> List[dict]:
        term = (term or "").strip()
        if not term:
            return []
        limit = max(1, min(MAX_SUGGESTIONS, limit))
        if self.search_index is not None:
            try:
                items = self.search_index.suggest(term, limit)
            except Exception:
                logger.exception("Search index suggest raised; falling back to store")
                items = None
            if items is not None:
                return items
        return [
            {
                "id": r.id,
                "name": r.name,
                "price": float(r.price) if r.price is not None else None,
                "image": resolve_upload_url(r.images[0].url) if r.images else None,
            }
            for r in crud.suggest_resources(db, term, limit)
        ]
