import pytest

from lager_intake.storage.schema import IMAGES, INBOUND, ITEMS, SETTINGS
from lager_intake.storage.sqlite_store import SQLiteRecordStore
from lager_intake.storage.store_interface import (
    ConflictError,
    ConstraintViolation,
    RecordNotFound,
    StorageError,
)


def inbound(id, ls_nr="A100", date_doc="2025-03-01", status="awaiting_drawing"):
    return {
        "id": id,
        "ls_nr": ls_nr,
        "ls_nr_normalized": ls_nr,
        "supplier": "Würth",
        "date_doc": date_doc,
        "status": status,
        "created_at": "2025-03-01T08:00:00+00:00",
        "created_by": "tablet",
    }


def image(id, inbound_id, page_no, synced=False):
    return {
        "id": id,
        "inbound_id": inbound_id,
        "page_no": page_no,
        "content_hash": f"hash-{id}",
        "synced": synced,
    }


def test_add_get_delete(store):
    store.add(INBOUND, inbound("d1"))
    assert store.get(INBOUND, "d1")["ls_nr"] == "A100"
    assert store.get(INBOUND, "missing") is None

    assert store.delete(INBOUND, "d1") is True
    assert store.delete(INBOUND, "d1") is False
    assert store.get(INBOUND, "d1") is None


def test_add_existing_key_conflicts(store):
    store.add(INBOUND, inbound("d1"))
    with pytest.raises(ConflictError):
        store.add(INBOUND, inbound("d1", ls_nr="B200"))
    assert store.get(INBOUND, "d1")["ls_nr"] == "A100"


def test_put_upserts_and_keeps_position(store):
    store.add(INBOUND, inbound("d1"))
    store.add(INBOUND, inbound("d2"))
    store.put(INBOUND, inbound("d1", status="drawing_attached"))

    ids = [r["id"] for r in store.all(INBOUND)]
    assert ids == ["d1", "d2"]
    assert store.get(INBOUND, "d1")["status"] == "drawing_attached"
    assert store.query(INBOUND, "status", equals="drawing_attached")[0]["id"] == "d1"


def test_query_equality_and_range(store):
    store.add(INBOUND, inbound("d1", date_doc="2025-02-27"))
    store.add(INBOUND, inbound("d2", date_doc="2025-03-01"))
    store.add(INBOUND, inbound("d3", date_doc="2025-03-05"))

    assert [r["id"] for r in store.query(INBOUND, "date_doc", equals="2025-03-01")] == ["d2"]
    in_range = store.query(INBOUND, "date_doc", lower="2025-02-28", upper="2025-03-05")
    assert [r["id"] for r in in_range] == ["d2", "d3"]
    assert [r["id"] for r in store.query(INBOUND, "date_doc", upper="2025-02-28")] == ["d1"]


def test_composite_unique_index(store):
    store.add(IMAGES, image("p1", "d1", 1))
    store.add(IMAGES, image("p2", "d2", 1))
    with pytest.raises(ConstraintViolation):
        store.add(IMAGES, image("p3", "d1", 1))

    assert store.query(IMAGES, "inbound_page", equals=("d1", 1))[0]["id"] == "p1"
    assert store.count(IMAGES) == 2


def test_composite_index_rejects_range_and_bad_arity(store):
    with pytest.raises(ValueError):
        store.query(IMAGES, "inbound_page", lower=("d1", 1))
    with pytest.raises(ValueError):
        store.query(IMAGES, "inbound_page", equals="d1")


def test_count_on_boolean_index(store):
    store.add(IMAGES, image("p1", "d1", 1, synced=False))
    store.add(IMAGES, image("p2", "d1", 2, synced=True))
    store.add(IMAGES, image("p3", "d1", 3, synced=False))

    assert store.count(IMAGES, "synced", equals=False) == 2
    assert store.count(IMAGES, "synced", equals=True) == 1
    assert store.get(IMAGES, "p2")["synced"] is True


def test_transaction_rolls_back_everything(store):
    store.add(ITEMS, {"id": "i1", "zone": "inbound", "name": "Schraube", "note": "", "qty": 5})

    with pytest.raises(RuntimeError):
        with store.transaction():
            store.delete(ITEMS, "i1")
            store.add(ITEMS, {"id": "i2", "zone": "storage", "name": "Schraube", "note": "", "qty": 5})
            raise RuntimeError("power cut")

    assert store.get(ITEMS, "i1")["qty"] == 5
    assert store.get(ITEMS, "i2") is None


def test_failed_unique_insert_inside_transaction_leaves_no_partial_state(store):
    store.add(IMAGES, image("p1", "d1", 1))
    with pytest.raises(ConstraintViolation):
        with store.transaction():
            store.add(IMAGES, image("p2", "d1", 2))
            store.add(IMAGES, image("p3", "d1", 1))

    assert store.get(IMAGES, "p2") is None
    assert store.count(IMAGES) == 1


def test_nested_transactions_commit_once(store):
    with store.transaction():
        store.add(INBOUND, inbound("d1"))
        with store.transaction():
            store.add(INBOUND, inbound("d2"))
    assert store.count(INBOUND) == 2


def test_data_survives_reopen(tmp_path):
    path = str(tmp_path / "reopen.db")
    first = SQLiteRecordStore(path)
    first.add(INBOUND, inbound("d1"))
    first.put(SETTINGS, {"key": "sync_enabled", "value": False})
    first.close()

    second = SQLiteRecordStore(path)
    try:
        assert second.get(INBOUND, "d1")["id"] == "d1"
        assert second.get(SETTINGS, "sync_enabled")["value"] is False
        assert second.query(INBOUND, "ls_nr_normalized", equals="A100")[0]["id"] == "d1"
    finally:
        second.close()


def test_get_required_and_unknown_collection(store):
    with pytest.raises(RecordNotFound):
        store.get_required(INBOUND, "nope")
    with pytest.raises(KeyError):
        store.get("bogus", "x")


def test_unopenable_path_raises_storage_error(tmp_path):
    with pytest.raises(StorageError):
        SQLiteRecordStore(str(tmp_path))


def test_clear_and_storage_info(store):
    store.add(INBOUND, inbound("d1"))
    store.add(INBOUND, inbound("d2"))
    assert store.get_storage_info()["collections"][INBOUND] == 2
    assert store.clear(INBOUND) == 2
    assert store.count(INBOUND) == 0
