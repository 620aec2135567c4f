# catalog/search_index.py
"""OpenSearch adapter for the denormalized resource index.

The index is a best-effort copy of the relational store. Read calls report an
unreachable or misconfigured cluster by returning None so the caller can fall
back to the store; write calls raise and leave the reporting to the syncer.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set

from opensearchpy import OpenSearch
from opensearchpy.exceptions import NotFoundError, OpenSearchException, RequestError

from .config import IndexSettings
from .utils import logger

INDEX_BODY = {
    "settings": {
        "number_of_shards": 1,
        "number_of_replicas": 0,
    },
    "mappings": {
        "properties": {
            "id": {"type": "keyword", "fields": {"num": {"type": "long"}}},
            "name": {"type": "text", "fields": {"keyword": {"type": "keyword"}}},
            "description": {"type": "text"},
            "price": {"type": "float"},
            "user_id": {"type": "long"},
            "attributes": {"type": "object", "dynamic": True},
            "location": {"type": "geo_point"},
            "primaryImage": {"type": "keyword"},
            "imagesCount": {"type": "integer"},
            "itemsCount": {"type": "integer"},
            "commentsCount": {"type": "integer"},
            "createdAt": {"type": "date"},
            "updatedAt": {"type": "date"},
        }
    },
}

# request sort key -> index field
SORT_FIELDS = {
    "createdAt": "createdAt",
    "updatedAt": "updatedAt",
    "price": "price",
    "name": "name.keyword",
    "id": "id.num",
}
ID_SORT_FIELD = SORT_FIELDS["id"]

MAX_SUGGESTIONS = 20


@dataclass
class IndexQuery:
    text: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    owner_id: Optional[int] = None
    ids: Optional[Set[int]] = None
    sort_by: str = "createdAt"
    order: str = "DESC"
    limit: int = 10
    offset: int = 0


@dataclass
class SearchHits:
    ids: List[int]
    total: int


@dataclass
class ReindexResult:
    count: int
    errors: List[Dict[str, Any]] = field(default_factory=list)


def _doc_id(raw):
    try:
        return int(raw)
    except (TypeError, ValueError):
        return raw


def _range(gte=None, lte=None) -> Dict[str, Any]:
    r = {}
    if gte is not None:
        r["gte"] = gte.isoformat() if isinstance(gte, datetime) else gte
    if lte is not None:
        r["lte"] = lte.isoformat() if isinstance(lte, datetime) else lte
    return r


class SearchIndexClient:
    def __init__(self, client: OpenSearch, index_name: str = "resources"):
        self.client = client
        self.index_name = index_name
        self._ready = False

    def ensure_index(self):
        """Create the index with its mapping unless it already exists."""
        if self._ready:
            return
        if not self.client.indices.exists(index=self.index_name):
            try:
                self.client.indices.create(index=self.index_name, body=INDEX_BODY)
                logger.info("Created search index %s", self.index_name)
            except RequestError as e:
                # another worker created it first
                if e.error != "resource_already_exists_exception":
                    raise
        self._ready = True

    def upsert(self, document: Dict[str, Any]):
        self.ensure_index()
        self.client.index(index=self.index_name, id=str(document["id"]), body=document, refresh=True)

    def delete(self, resource_id):
        try:
            self.client.delete(index=self.index_name, id=str(resource_id), refresh=True)
        except NotFoundError:
            logger.debug("Document %s already absent from %s", resource_id, self.index_name)

    def _drop_index(self):
        try:
            self.client.indices.delete(index=self.index_name)
            logger.info("Deleted search index %s", self.index_name)
        except NotFoundError:
            logger.info("Search index %s did not exist", self.index_name)

    def bulk_reindex(self, documents: Iterable[Dict[str, Any]]) -> ReindexResult:
        """Drop the index, re-create it and bulk-load every document."""
        self._ready = False
        self._drop_index()
        try:
            self.client.indices.create(index=self.index_name, body=INDEX_BODY)
        except RequestError as e:
            if e.error != "resource_already_exists_exception":
                raise
            # a write landed between delete and create and auto-created it with a dynamic mapping
            logger.warning("Search index %s reappeared during reindex; recreating", self.index_name)
            self._drop_index()
            self.client.indices.create(index=self.index_name, body=INDEX_BODY)
        logger.info("Created search index %s", self.index_name)
        self._ready = True

        ops = []
        count = 0
        for doc in documents:
            ops.append({"index": {"_index": self.index_name, "_id": str(doc["id"])}})
            ops.append(doc)
            count += 1
        if not ops:
            return ReindexResult(count=0)

        resp = self.client.bulk(body=ops, refresh=True)
        errors = []
        if resp.get("errors"):
            for item in resp.get("items", []):
                details = item.get("index") or {}
                if details.get("error"):
                    errors.append({"id": details.get("_id"), "error": details["error"]})
            logger.error("Bulk reindex had %d failed documents out of %d", len(errors), count)
        return ReindexResult(count=count, errors=errors)

    def build_search_body(self, q: IndexQuery) -> Dict[str, Any]:
        filters = []
        price = _range(q.min_price, q.max_price)
        if price:
            filters.append({"range": {"price": price}})
        created = _range(q.created_from, q.created_to)
        if created:
            filters.append({"range": {"createdAt": created}})
        if q.owner_id is not None:
            filters.append({"term": {"user_id": q.owner_id}})
        if q.ids is not None:
            filters.append({"terms": {"id": sorted(str(i) for i in q.ids)}})

        text = (q.text or "").strip()
        if text:
            must = [{
                "multi_match": {
                    "query": text,
                    "fields": ["name^3", "description"],
                    "type": "best_fields",
                    "fuzziness": "AUTO",
                    "prefix_length": 1,
                    "max_expansions": 50,
                    "operator": "and",
                }
            }]
        else:
            must = [{"match_all": {}}]

        direction = {"order": "asc" if q.order == "ASC" else "desc"}
        sort = [{SORT_FIELDS[q.sort_by]: direction}]
        # same tiebreaker as the store query
        if SORT_FIELDS[q.sort_by] != ID_SORT_FIELD:
            sort.append({ID_SORT_FIELD: dict(direction)})

        return {
            "query": {"bool": {"must": must, "filter": filters}},
            "sort": sort,
            "from": max(0, q.offset),
            "size": max(1, q.limit),
            "track_total_hits": True,
            "_source": ["id"],
        }

    def search(self, q: IndexQuery) -> Optional[SearchHits]:
        """Ordered page of matching ids, or None when the index can't answer."""
        if q.ids is not None and not q.ids:
            return SearchHits(ids=[], total=0)
        try:
            self.ensure_index()
            resp = self.client.search(index=self.index_name, body=self.build_search_body(q))
        except OpenSearchException as e:
            logger.warning("Search index query failed, using store: %s", e)
            return None
        hits = resp.get("hits", {})
        ids = [_doc_id((h.get("_source") or {}).get("id", h.get("_id"))) for h in hits.get("hits", [])]
        total = hits.get("total", {})
        total = total.get("value", 0) if isinstance(total, dict) else int(total or 0)
        return SearchHits(ids=ids, total=total)

    def suggest(self, term: str, limit: int = 5) -> Optional[List[Dict[str, Any]]]:
        term = (term or "").strip()
        if not term:
            return []
        body = {
            "query": {
                "bool": {
                    "should": [
                        {"match_phrase_prefix": {"name": {"query": term, "slop": 2, "boost": 3}}},
                        {
                            "multi_match": {
                                "query": term,
                                "fields": ["name^3", "description"],
                                "type": "best_fields",
                                "fuzziness": "AUTO",
                                "prefix_length": 1,
                                "operator": "or",
                            }
                        },
                    ],
                    "minimum_should_match": 1,
                }
            },
            "size": max(1, min(MAX_SUGGESTIONS, limit)),
            "_source": ["id", "name", "price", "primaryImage"],
        }
        try:
            self.ensure_index()
            resp = self.client.search(index=self.index_name, body=body)
        except OpenSearchException as e:
            logger.warning("Search index suggest failed, using store: %s", e)
            return None
        items = []
        for h in resp.get("hits", {}).get("hits", []):
            src = h.get("_source") or {}
            items.append({
                "id": _doc_id(src.get("id", h.get("_id"))),
                "name": src.get("name"),
                "price": src.get("price"),
                "image": src.get("primaryImage"),
            })
        return items


def build_search_index(settings: IndexSettings) -> Optional[SearchIndexClient]:
    """Client for the configured cluster, or None when no endpoint is set."""
    if not settings.enabled:
        logger.info("OPENSEARCH_URL not set; search index disabled")
        return None
    kwargs = {
        "hosts": [settings.url],
        "verify_certs": settings.verify_certs,
        "ssl_show_warn": settings.verify_certs,
        "timeout": settings.timeout,
        "max_retries": 0,
        "retry_on_timeout": False,
    }
    if settings.username and settings.password:
        kwargs["http_auth"] = (settings.username, settings.password)
    logger.info("Using search index %s at %s", settings.index_name, settings.url)
    return SearchIndexClient(OpenSearch(**kwargs), settings.index_name)
