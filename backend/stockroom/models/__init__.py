from .accounts import User, Profile, SessionToken, ROLE_ADMIN, ROLE_STAFF, ROLES
from .catalog import Category, Product, MAX_QUANTITY
from .stock import StockTransaction, LedgerImmutableError, DIRECTION_IN, DIRECTION_OUT, DIRECTIONS

__all__ = [
    'User', 'Profile', 'SessionToken',
    'ROLE_ADMIN', 'ROLE_STAFF', 'ROLES',
    'Category', 'Product', 'MAX_QUANTITY',
    'StockTransaction', 'LedgerImmutableError',
    'DIRECTION_IN', 'DIRECTION_OUT', 'DIRECTIONS',
]
