from .documents import Document
from .catalog import Category, Product, Supplier, DEFAULT_CATEGORY_COLOR, UNKNOWN_SUPPLIER, SUPPLIER_STATUSES
from .orders import (
    Customer,
    Order,
    OrderItem,
    OrderStatus,
    ORDER_STATUSES,
    TERMINAL_STATUSES,
    DELETE_BLOCKED_STATUSES,
    ACTIVE_STATUSES,
)

__all__ = [
    'Document',
    'Category', 'Product', 'Supplier',
    'DEFAULT_CATEGORY_COLOR', 'UNKNOWN_SUPPLIER', 'SUPPLIER_STATUSES',
    'Customer', 'Order', 'OrderItem', 'OrderStatus',
    'ORDER_STATUSES', 'TERMINAL_STATUSES', 'DELETE_BLOCKED_STATUSES', 'ACTIVE_STATUSES',
]
