"""
Inventory Layer

Movable-inventory board and pick cart.
"""

from .board import InventoryBoard, InventoryItem, BoardZone
from .cart import PickCart, CartLine

__all__ = [
    'InventoryBoard',
    'InventoryItem',
    'BoardZone',
    'PickCart',
    'CartLine',
]
