from .catalog import Category, Size, Product, Variant, build_sku
from .inventory import (
    StockMovement,
    MOVEMENT_IN,
    MOVEMENT_OUT,
    MOVEMENT_RETURN,
    MOVEMENT_ADJUST,
    MOVEMENT_TYPES,
)
from .sales import Sale, SaleItem
from .documents import Return, ReturnItem, DocumentCounter
from .auth import User, SessionToken

__all__ = [
    'Category', 'Size', 'Product', 'Variant', 'build_sku',
    'StockMovement',
    'MOVEMENT_IN', 'MOVEMENT_OUT', 'MOVEMENT_RETURN', 'MOVEMENT_ADJUST', 'MOVEMENT_TYPES',
    'Sale', 'SaleItem',
    'Return', 'ReturnItem', 'DocumentCounter',
    'User', 'SessionToken',
]
