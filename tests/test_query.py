# tests/test_query.py
import pytest
from catalog import crud
from catalog.attributes import AttributeName
from catalog.features import ExactAttributeFilter, RangeAttributeFilter
from catalog.query import QueryOrchestrator, normalize_sort, resolve_pagination
from catalog.schemas import ResourceFilter
from catalog.sync import IndexSyncer
from catalog.db import SessionLocal


@pytest.fixture
def seeded(db, search_index):
    rows = [
        ("Sunny loft", "bright flat downtown", 120, 1, {AttributeName.ROOMS: "2", AttributeName.SURFACE: "55"}),
        ("Garden house", "quiet house with a sunny garden", 300, 2, {AttributeName.ROOMS: "4", AttributeName.SURFACE: "140"}),
        ("Studio", "compact flat", 80, 1, {AttributeName.ROOMS: "1", AttributeName.SURFACE: "30"}),
        ("Penthouse", "top floor flat", 900, 3, {AttributeName.ROOMS: "2", AttributeName.SURFACE: "95"}),
    ]
    ids = []
    for name, desc, price, owner, attrs in rows:
        obj = crud.create_resource(db, owner, {"name": name, "description": desc, "price": price}, attributes=attrs)
        ids.append(obj.id)
    IndexSyncer(SessionLocal, search_index).reindex_all()
    return ids


def test_pagination():
    assert resolve_pagination() == (10, 0)
    assert resolve_pagination(10, None, 2) == (10, 10)
    assert resolve_pagination(5, 7) == (5, 7)
    assert resolve_pagination(5, 7, 1) == (5, 0)
    for bad in [dict(limit=0), dict(limit=101), dict(offset=-1), dict(page=0)]:
        with pytest.raises(ValueError):
            resolve_pagination(**bad)


def test_sort_normalization():
    assert normalize_sort(None, None) == ("createdAt", "DESC")
    assert normalize_sort("price", "asc") == ("price", "ASC")
    assert normalize_sort("name", "sideways") == ("name", "DESC")
    with pytest.raises(ValueError):
        normalize_sort("rating", "ASC")


CRITERIA = [
    (ResourceFilter(), []),
    (ResourceFilter(text="sunny"), []),
    (ResourceFilter(text="FLAT", max_price=500), []),
    (ResourceFilter(user_id=1), []),
    (ResourceFilter(min_price=100), [ExactAttributeFilter(AttributeName.ROOMS, "2")]),
    (ResourceFilter(), [RangeAttributeFilter(AttributeName.SURFACE, 50, 100)]),
]


@pytest.mark.parametrize("criteria,attrs", CRITERIA)
def test_both_paths_return_same_members(db, seeded, search_index, down_index, criteria, attrs):
    healthy = QueryOrchestrator(search_index).filter_resources(db, criteria, attrs, limit=100)
    down = QueryOrchestrator(down_index).filter_resources(db, criteria, attrs, limit=100)
    disabled = QueryOrchestrator(None).filter_resources(db, criteria, attrs, limit=100)
    ids = {r.id for r in healthy["items"]}
    assert ids == {r.id for r in down["items"]} == {r.id for r in disabled["items"]}
    assert healthy["total"] == down["total"] == len(ids)


def test_index_order_is_preserved(db, seeded, search_index):
    res = QueryOrchestrator(search_index).filter_resources(
        db, ResourceFilter(sort_by="price", order="ASC"), limit=10,
    )
    assert [float(r.price) for r in res["items"]] == [80, 120, 300, 900]


def test_fallback_sorting_and_paging(db, seeded):
    orch = QueryOrchestrator(None)
    res = orch.filter_resources(db, ResourceFilter(sort_by="price", order="DESC"), limit=2, offset=2)
    assert [float(r.price) for r in res["items"]] == [120, 80]
    assert res["total"] == 4
    assert res["page"] == 2


def test_page_field_same_on_both_paths(db, seeded, search_index):
    for orch in (QueryOrchestrator(search_index), QueryOrchestrator(None)):
        res = orch.filter_resources(db, ResourceFilter(), limit=3, offset=3)
        assert (res["limit"], res["offset"], res["page"]) == (3, 3, 2)
        assert len(res["items"]) == 1


@pytest.mark.parametrize("sort_by,order", [
    ("createdAt", "DESC"), ("createdAt", "ASC"), ("id", "ASC"), ("id", "DESC"), ("name", "ASC"),
])
def test_pages_match_across_paths_on_ties(db, search_index, sort_by, order):
    # same-second timestamps and same names tie; more than 10 ids to expose text ordering
    for i in range(14):
        crud.create_resource(db, 1, {"name": "twin", "description": "d", "price": 5})
    IndexSyncer(SessionLocal, search_index).reindex_all()
    criteria = ResourceFilter(sort_by=sort_by, order=order)
    for offset in (0, 5, 10):
        healthy = QueryOrchestrator(search_index).filter_resources(db, criteria, limit=5, offset=offset)
        fallback = QueryOrchestrator(None).filter_resources(db, criteria, limit=5, offset=offset)
        assert [r.id for r in healthy["items"]] == [r.id for r in fallback["items"]]


def test_date_bounds_are_normalized_to_utc():
    from datetime import datetime, timedelta, timezone

    f = ResourceFilter(
        date_from=datetime(2024, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=2))),
        date_to=datetime(2024, 1, 2, 8, 30),
    )
    assert f.date_from == datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)
    assert f.date_from.utcoffset() == timedelta(0)
    assert f.date_to == datetime(2024, 1, 2, 8, 30, tzinfo=timezone.utc)


def test_empty_intersection_skips_index(db, seeded, search_index, fake_os):
    before = len(fake_os.searches)
    res = QueryOrchestrator(search_index).filter_resources(
        db, ResourceFilter(), [ExactAttributeFilter(AttributeName.ROOMS, "7")],
    )
    assert res["items"] == [] and res["total"] == 0
    assert len(fake_os.searches) == before


def test_stale_index_hits_are_dropped(db, seeded, search_index):
    crud.delete_resource(db, crud.get_resource(db, seeded[0]))
    res = QueryOrchestrator(search_index).filter_resources(db, ResourceFilter(text="sunny loft"))
    assert res["items"] == []


def test_raising_index_falls_back(db, seeded):
    class Broken:
        def search(self, q):
            raise RuntimeError("boom")

    res = QueryOrchestrator(Broken()).filter_resources(db, ResourceFilter(text="studio"))
    assert [r.name for r in res["items"]] == ["Studio"]


def test_suggest_paths(db, seeded, search_index, down_index):
    assert [s["name"] for s in QueryOrchestrator(search_index).suggest(db, "loft")] == ["Sunny loft"]
    fallback = QueryOrchestrator(down_index).suggest(db, "loft")
    assert fallback == [{"id": seeded[0], "name": "Sunny loft", "price": 120.0, "image": None}]
    assert QueryOrchestrator(None).suggest(db, "  ") == []
