"""
Export

Read-only renderings of cart lines.
"""

from .cart_export import cart_to_csv, cart_to_html, export_cart

__all__ = [
    'cart_to_csv',
    'cart_to_html',
    'export_cart',
]
