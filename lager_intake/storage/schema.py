"""Collection and index declarations for the intake store."""

from .store_interface import CollectionSpec, IndexSpec

INBOUND = "inbound"
IMAGES = "images"
ITEMS = "items"
CART = "cart"
LOG = "log"
SETTINGS = "settings"


COLLECTIONS = (
    CollectionSpec(
        name=INBOUND,
        indexes=(
            IndexSpec("status", ("status",)),
            IndexSpec("date_doc", ("date_doc",)),
            IndexSpec("ls_nr_normalized", ("ls_nr_normalized",)),
            IndexSpec("supplier", ("supplier",)),
            IndexSpec("created_at", ("created_at",)),
        ),
    ),
    CollectionSpec(
        name=IMAGES,
        indexes=(
            IndexSpec("inbound_id", ("inbound_id",)),
            IndexSpec("inbound_page", ("inbound_id", "page_no"), unique=True),
            IndexSpec("content_hash", ("content_hash",)),
            IndexSpec("synced", ("synced",)),
        ),
    ),
    CollectionSpec(
        name=ITEMS,
        indexes=(
            IndexSpec("zone", ("zone",)),
            IndexSpec("zone_name_note", ("zone", "name", "note"), unique=True),
        ),
    ),
    CollectionSpec(
        name=CART,
        indexes=(
            IndexSpec("name_note", ("name", "note"), unique=True),
        ),
    ),
    CollectionSpec(
        name=LOG,
        indexes=(
            IndexSpec("inbound_id", ("inbound_id",)),
            IndexSpec("ts", ("ts",)),
        ),
    ),
    CollectionSpec(name=SETTINGS, key_field="key"),
)
