from .catalog import Category, Product
from .payments import PaymentMethod
from .sales import Sale, SaleItem, SALE_STATUS_COMPLETED, SALE_STATUS_CANCELLED
from .cash import CashWithdrawal, CashIncome
from .settings import DiscountSettings, DISCOUNT_SETTINGS_ID

__all__ = [
    'Category', 'Product',
    'PaymentMethod',
    'Sale', 'SaleItem', 'SALE_STATUS_COMPLETED', 'SALE_STATUS_CANCELLED',
    'CashWithdrawal', 'CashIncome',
    'DiscountSettings', 'DISCOUNT_SETTINGS_ID',
]
