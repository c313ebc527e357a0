from .inventory import Product, StockHistoryEntry, StockLocation, StockChangeReason
from .sales import Sale, SaleItem
from .deliveries import (
    Delivery, DeliveryItem, DeliveryTimelineEntry, DeliveryType, DeliveryStatus,
    DELIVERY_STATUS_ORDER, IncomingDelivery, IncomingItem, IncomingStatus,
)
from .auth import User, UserRole, SessionToken
from .audit import AuditLog, LogType, LogSeverity
from .settings import SystemConfig, Branch, DocumentSequence, DEFAULT_PAYMENT_METHODS
from .accounting import Expense, ExpenseCategory

__all__ = [
    'Product', 'StockHistoryEntry', 'StockLocation', 'StockChangeReason',
    'Sale', 'SaleItem',
    'Delivery', 'DeliveryItem', 'DeliveryTimelineEntry', 'DeliveryType', 'DeliveryStatus',
    'DELIVERY_STATUS_ORDER', 'IncomingDelivery', 'IncomingItem', 'IncomingStatus',
    'User', 'UserRole', 'SessionToken',
    'AuditLog', 'LogType', 'LogSeverity',
    'SystemConfig', 'Branch', 'DocumentSequence', 'DEFAULT_PAYMENT_METHODS',
    'Expense', 'ExpenseCategory',
]
