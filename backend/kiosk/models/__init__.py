from .auth import User, SessionToken
from .catalog import Category, Subcategory, Product, CashbackRule
from .customers import Customer, CustomerPointTransaction, PendingPoints
from .sales import Transaction, Counter, CryptoPayment
from .inventory import StockMovement, StockPurchasing
from .kiosk import KioskSession, KioskSetting, DailyVisit
from .builder import JointOption, PrerollType, PrerollSize, PrerollVariant

__all__ = [
    'User', 'SessionToken',
    'Category', 'Subcategory', 'Product', 'CashbackRule',
    'Customer', 'CustomerPointTransaction', 'PendingPoints',
    'Transaction', 'Counter', 'CryptoPayment',
    'StockMovement', 'StockPurchasing',
    'KioskSession', 'KioskSetting', 'DailyVisit',
    'JointOption', 'PrerollType', 'PrerollSize', 'PrerollVariant',
]
