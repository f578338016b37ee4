from .catalog import Category, Product
from .sales import Transaction, TransactionItem

__all__ = [
    'Category', 'Product',
    'Transaction', 'TransactionItem',
]
