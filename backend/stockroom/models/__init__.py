from .inventory import InventoryItem
from .customers import Customer
from .sales import Sale, SaleLine, CashSale, CustomerSale, CASH_SALE_LABEL

__all__ = [
    'InventoryItem',
    'Customer',
    'Sale', 'SaleLine', 'CashSale', 'CustomerSale', 'CASH_SALE_LABEL',
]
