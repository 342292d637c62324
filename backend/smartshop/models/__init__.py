from .auth import User, SessionToken
from .shops import Shop, ProductShortcut
from .inventory import Product, PriceHistory
from .customers import Customer, DebtTransaction
from .sales import Sale, SaleItem, PAYMENT_METHODS
from .closing import DailyClose

__all__ = [
    'User', 'SessionToken',
    'Shop', 'ProductShortcut',
    'Product', 'PriceHistory',
    'Customer', 'DebtTransaction',
    'Sale', 'SaleItem', 'PAYMENT_METHODS',
    'DailyClose',
]
