# tests/test_sync.py
import logging
from catalog import crud
from catalog.attributes import AttributeName
from catalog.coordinates import Coordinates
from catalog.db import SessionLocal
from catalog.scheduler import create_scheduler
from catalog.sync import IndexSyncer, resource_to_document


class RecordingScheduler:
    def __init__(self):
        self.jobs = []

    def add_job(self, fn, args=None, name=None):
        self.jobs.append((fn, args, name))


def _create(db, **kw):
    data = {"name": "Loft", "description": "open plan", "price": 99.5}
    data.update(kw)
    return crud.create_resource(
        db, 5, data,
        attributes={AttributeName.SURFACE: "70", AttributeName.NEW: "true"},
        image_urls=["front.jpg", "back.jpg"],
        coords=Coordinates(45.0, 25.0),
    )


def test_document_shape(db):
    obj = _create(db)
    crud.create_item(db, obj.id, {"name": "desk", "quantity": 1, "price": 10})
    crud.create_comment(db, obj.id, 9, "nice")
    doc = resource_to_document(crud.get_resource(db, obj.id, comments=True))
    assert doc["id"] == obj.id
    assert doc["price"] == 99.5
    assert doc["attributes"] == {"new": "true", "surface": "70"}
    assert doc["location"] == {"lat": 45.0, "lon": 25.0}
    assert doc["primaryImage"] == "/uploads/resources/front.jpg"
    assert (doc["imagesCount"], doc["itemsCount"], doc["commentsCount"]) == (2, 1, 1)
    assert doc["createdAt"]


def test_document_without_coordinates(db):
    obj = crud.create_resource(db, 1, {"name": "n", "description": "d", "price": 1})
    doc = resource_to_document(crud.get_resource(db, obj.id, comments=True))
    assert "location" not in doc
    assert doc["primaryImage"] is None


def test_sync_and_remove_inline(db, search_index, fake_os):
    syncer = IndexSyncer(SessionLocal, search_index)
    obj = _create(db)
    syncer.sync(obj.id)
    assert fake_os.docs("resources-test")[str(obj.id)]["name"] == "Loft"
    syncer.remove(obj.id)
    assert str(obj.id) not in fake_os.docs("resources-test")


def test_sync_of_vanished_resource_is_skipped(db, search_index, fake_os):
    IndexSyncer(SessionLocal, search_index).sync(12345)
    assert fake_os.docs("resources-test") == {}


def test_failures_are_logged_not_raised(db, down_index, caplog):
    obj = _create(db)
    syncer = IndexSyncer(SessionLocal, down_index)
    with caplog.at_level(logging.ERROR, logger="catalog-search"):
        syncer.sync(obj.id)
        syncer.remove(obj.id)
    assert "Index job failed" in caplog.text


def test_disabled_syncer_is_noop(db):
    scheduler = RecordingScheduler()
    syncer = IndexSyncer(SessionLocal, None, scheduler=scheduler)
    syncer.sync(1)
    syncer.remove(1)
    assert scheduler.jobs == []
    assert syncer.reindex_all() is None


def test_jobs_go_to_scheduler(search_index):
    scheduler = RecordingScheduler()
    syncer = IndexSyncer(SessionLocal, search_index, scheduler=scheduler)
    syncer.sync(3)
    syncer.remove(4)
    assert [(args, name) for _, args, name in scheduler.jobs] == [
        ([3], "sync resource 3"), ([4], "remove resource 4"),
    ]


def test_rebind(search_index):
    syncer = IndexSyncer(SessionLocal, None)
    assert not syncer.enabled
    syncer.rebind(search_index)
    assert syncer.enabled


def test_reindex_all(db, search_index, fake_os):
    a, b = _create(db), _create(db, name="Other")
    result = IndexSyncer(SessionLocal, search_index).reindex_all()
    assert result.count == 2
    assert sorted(fake_os.docs("resources-test")) == sorted([str(a.id), str(b.id)])


def test_create_scheduler_not_started():
    scheduler = create_scheduler(workers=2, start=False)
    assert not scheduler.running
