"""Pick/shopping cart lines, kept in insertion order."""
import logging
from dataclasses import dataclass, asdict
from typing import List, Optional

from ..inbound.models import new_id
from ..storage.schema import CART
from ..storage.store_interface import RecordStore
from .board import InventoryBoard, _check_qty, _clean

logger = logging.getLogger(__name__)


@dataclass
class CartLine:
    id: str
    name: str
    qty: int
    note: str = ""

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'CartLine':
        return cls(**data)


class PickCart:
    """Ephemeral picking list. Lines with the same (name, note) are merged."""

    def __init__(self, store: RecordStore):
        self.store = store

    def add(self, name: str, qty: int = 1, note: str = "") -> CartLine:
        name, note = _clean(name, note)
        _check_qty(qty)
        with self.store.transaction():
            records = self.store.query(CART, "name_note", equals=(name, note))
            if records:
                line = CartLine.from_dict(records[0])
                line.qty += qty
                self.store.put(CART, line.to_dict())
            else:
                line = CartLine(id=new_id(), name=name, qty=qty, note=note)
                self.store.add(CART, line.to_dict())
        return line

    def from_board(self, board: InventoryBoard, item_id: str, qty: Optional[int] = None) -> CartLine:
        """Add a board item to the cart (the board itself is not changed)"""
        item = board.get(item_id)
        return self.add(item.name, item.qty if qty is None else qty, item.note)

    def set_qty(self, line_id: str, qty: int) -> Optional[CartLine]:
        """Set the quantity; 0 removes the line"""
        _check_qty(qty, allow_zero=True)
        with self.store.transaction():
            line = CartLine.from_dict(self.store.get_required(CART, line_id))
            if qty == 0:
                self.store.delete(CART, line_id)
                return None
            line.qty = qty
            self.store.put(CART, line.to_dict())
        return line

    def remove(self, line_id: str) -> bool:
        return self.store.delete(CART, line_id)

    def clear(self) -> int:
        removed = self.store.clear(CART)
        logger.info(f"Cart cleared ({removed} line(s))")
        return removed

    def lines(self) -> List[CartLine]:
        return [CartLine.from_dict(r) for r in self.store.all(CART)]
