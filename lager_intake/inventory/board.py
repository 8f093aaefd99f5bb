"""
Inventory Board
Movable stock items laid out over a fixed set of board zones
"""
import logging
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Dict, List, Optional, Union

from ..inbound.models import new_id
from ..storage.schema import ITEMS
from ..storage.store_interface import RecordStore

logger = logging.getLogger(__name__)


class BoardZone(Enum):
    """Board locations, left to right"""
    INBOUND = "inbound"         # just delivered
    STORAGE = "storage"         # shelved stock
    WORKSHOP = "workshop"       # in use / being processed
    OUTBOUND = "outbound"       # ready to leave

    def get_order(self) -> int:
        """Column position on the board"""
        order_map = {
            BoardZone.INBOUND: 1,
            BoardZone.STORAGE: 2,
            BoardZone.WORKSHOP: 3,
            BoardZone.OUTBOUND: 4,
        }
        return order_map[self]

    def get_label(self) -> str:
        labels = {
            BoardZone.INBOUND: "Wareneingang",
            BoardZone.STORAGE: "Lager",
            BoardZone.WORKSHOP: "Werkstatt",
            BoardZone.OUTBOUND: "Ausgang",
        }
        return labels[self]


@dataclass
class InventoryItem:
    """A quantity of one article in one zone. (zone, name, note) is unique."""
    id: str
    name: str
    zone: BoardZone
    qty: int
    note: str = ""

    def to_dict(self) -> dict:
        data = asdict(self)
        data['zone'] = self.zone.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'InventoryItem':
        data = dict(data)
        data['zone'] = BoardZone(data['zone'])
        return cls(**data)


def _clean(name: str, note: Optional[str]) -> tuple:
    name = (name or "").strip()
    if not name:
        raise ValueError("Item name must not be empty")
    return name, (note or "").strip()


def _check_qty(qty: int, allow_zero: bool = False) -> int:
    if isinstance(qty, bool) or not isinstance(qty, int):
        raise ValueError(f"Quantity must be an integer, got {qty!r}")
    if qty < 0 or (qty == 0 and not allow_zero):
        raise ValueError(f"Invalid quantity: {qty}")
    return qty


class InventoryBoard:
    """Places, moves and merges board items."""

    def __init__(self, store: RecordStore):
        self.store = store

    def _find(self, zone: BoardZone, name: str, note: str) -> Optional[InventoryItem]:
        records = self.store.query(ITEMS, "zone_name_note", equals=(zone.value, name, note))
        return InventoryItem.from_dict(records[0]) if records else None

    def _merge_into(self, zone: BoardZone, name: str, note: str, qty: int) -> InventoryItem:
        existing = self._find(zone, name, note)
        if existing:
            existing.qty += qty
            self.store.put(ITEMS, existing.to_dict())
            return existing
        item = InventoryItem(id=new_id(), name=name, zone=zone, qty=qty, note=note)
        self.store.add(ITEMS, item.to_dict())
        return item

    def get(self, item_id: str) -> InventoryItem:
        return InventoryItem.from_dict(self.store.get_required(ITEMS, item_id))

    def place(self, name: str, zone: Union[BoardZone, str], qty: int, note: str = "") -> InventoryItem:
        """Put qty of an article into a zone, merging with a matching item"""
        zone = BoardZone(zone)
        name, note = _clean(name, note)
        _check_qty(qty)
        with self.store.transaction():
            item = self._merge_into(zone, name, note, qty)
        logger.info(f"Placed {qty} x {name} in {zone.value} (now {item.qty})")
        return item

    def move(self, item_id: str, to_zone: Union[BoardZone, str], qty: Optional[int] = None) -> InventoryItem:
        """
        Move all or part of an item to another zone.

        Returns:
            The destination item (merged if one already matched)
        """
        to_zone = BoardZone(to_zone)
        with self.store.transaction():
            item = self.get(item_id)
            amount = item.qty if qty is None else _check_qty(qty)
            if amount > item.qty:
                raise ValueError(f"Cannot move {amount}, only {item.qty} of {item.name} in {item.zone.value}")
            if to_zone == item.zone:
                return item

            item.qty -= amount
            if item.qty == 0:
                self.store.delete(ITEMS, item.id)
            else:
                self.store.put(ITEMS, item.to_dict())
            target = self._merge_into(to_zone, item.name, item.note, amount)

        logger.info(f"Moved {amount} x {item.name}: {item.zone.value} -> {to_zone.value}")
        return target

    def set_qty(self, item_id: str, qty: int) -> Optional[InventoryItem]:
        """Set the quantity; 0 removes the item"""
        _check_qty(qty, allow_zero=True)
        with self.store.transaction():
            item = self.get(item_id)
            if qty == 0:
                self.store.delete(ITEMS, item_id)
                return None
            item.qty = qty
            self.store.put(ITEMS, item.to_dict())
        return item

    def remove(self, item_id: str) -> bool:
        return self.store.delete(ITEMS, item_id)

    def items(self, zone: Optional[Union[BoardZone, str]] = None) -> List[InventoryItem]:
        if zone is None:
            records = self.store.all(ITEMS)
        else:
            records = self.store.query(ITEMS, "zone", equals=BoardZone(zone).value)
        items = [InventoryItem.from_dict(r) for r in records]
        return sorted(items, key=lambda i: (i.zone.get_order(), i.name.lower(), i.note))

    def totals(self) -> Dict[str, int]:
        """Total quantity per zone"""
        totals = {zone.value: 0 for zone in BoardZone}
        for item in self.items():
            totals[item.zone.value] += item.qty
        return totals
