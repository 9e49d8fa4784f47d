from .branches import Branch, User, UserBranchAssignment
from .inventory import Product, InventoryRecord
from .transfers import TransferRequest
from .notifications import Notification
from .security import SecurityEvent

__all__ = [
    'Branch', 'User', 'UserBranchAssignment',
    'Product', 'InventoryRecord',
    'TransferRequest',
    'Notification',
    'SecurityEvent',
]
