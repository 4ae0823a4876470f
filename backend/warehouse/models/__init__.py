from .inventory import Product, Supplier, StockReceipt, StockTransfer
from .auth import AuthIdentity, Profile, SessionToken, PasswordResetToken

__all__ = [
    'Product', 'Supplier', 'StockReceipt', 'StockTransfer',
    'AuthIdentity', 'Profile', 'SessionToken', 'PasswordResetToken',
]
