# tests/test_crud.py
from catalog import crud, models
from catalog.attributes import AttributeName
from catalog.coordinates import Coordinates


def _make(db, **attrs):
    return crud.create_resource(
        db, 1, {"name": "Test Flat", "description": "two rooms", "price": 1000},
        attributes={AttributeName(k): v for k, v in attrs.items()},
    )


def test_create_and_get(db):
    obj = _make(db, rooms="2")
    got = crud.get_resource(db, obj.id)
    assert got is not None
    assert got.name == "Test Flat"
    assert [(a.name, a.value) for a in got.attributes] == [(AttributeName.ROOMS, "2")]


def test_upsert_attributes_overwrites(db):
    obj = _make(db)
    crud.upsert_attributes(db, obj.id, {AttributeName.ROOMS: "2", AttributeName.LEVEL: "3"})
    crud.upsert_attributes(db, obj.id, {AttributeName.ROOMS: "5"})
    db.commit()
    rows = db.query(models.ResourceAttribute).filter_by(resource_id=obj.id).all()
    assert sorted((r.name.value, r.value) for r in rows) == [("level", "3"), ("rooms", "5")]


def test_update_images_and_coordinates(db):
    obj = crud.create_resource(
        db, 1, {"name": "n", "description": "d", "price": 5},
        image_urls=["a.jpg", "b.jpg"], coords=Coordinates(1.0, 2.0),
    )
    first = obj.images[0].id
    obj = crud.update_resource(
        db, obj, {"price": 7}, image_urls=["c.jpg"], delete_image_ids=[first], coords=Coordinates(3.0, 4.0),
    )
    assert float(obj.price) == 7
    assert [i.url for i in obj.images] == ["b.jpg", "c.jpg"]
    assert (obj.coordinates.latitude, obj.coordinates.longitude) == (3.0, 4.0)
    assert db.query(models.ResourceCoordinate).count() == 1


def test_delete_cascades(db):
    obj = crud.create_resource(
        db, 1, {"name": "n", "description": "d", "price": 5},
        attributes={AttributeName.NEW: "true"}, image_urls=["a.jpg"], coords=Coordinates(1.0, 2.0),
    )
    crud.create_item(db, obj.id, {"name": "chair", "quantity": 2, "price": 3})
    crud.create_comment(db, obj.id, 4, "hello")
    crud.delete_resource(db, crud.get_resource(db, obj.id, comments=True))
    for model in (models.ResourceAttribute, models.ResourceImage, models.ResourceCoordinate,
                  models.ResourceItem, models.ResourceComment):
        assert db.query(model).count() == 0


def test_suggest_resources(db):
    _make(db)
    crud.create_resource(db, 1, {"name": "Garden", "description": "x", "price": 1})
    assert [r.name for r in crud.suggest_resources(db, "flat")] == ["Test Flat"]
