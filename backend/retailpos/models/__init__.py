from .base import LifecycleState
from .catalog import Category, Unit, Product, PriceHistory
from .parties import Customer, CustomerPayment, Supplier
from .sales import Sale, SaleItem, SalesReturn, SalesReturnItem, PAYMENT_METHODS
from .purchases import Purchase, PurchaseItem, PurchasePayment
from .inventory import StockMovement, StockAdjustment, MOVEMENT_TYPES
from .auth import Role, User
from .audit import ActivityLog
from .settings import StoreSettings

__all__ = [
    'LifecycleState',
    'Category', 'Unit', 'Product', 'PriceHistory',
    'Customer', 'CustomerPayment', 'Supplier',
    'Sale', 'SaleItem', 'SalesReturn', 'SalesReturnItem', 'PAYMENT_METHODS',
    'Purchase', 'PurchaseItem', 'PurchasePayment',
    'StockMovement', 'StockAdjustment', 'MOVEMENT_TYPES',
    'Role', 'User',
    'ActivityLog',
    'StoreSettings',
]
