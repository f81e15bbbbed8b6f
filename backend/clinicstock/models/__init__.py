from .auth import User
from .security import SecurityEvent
from .documents import Counter
from .inventory import Supplier, Product, RestockBatch, InventoryMovement

__all__ = [
    'User', 'SecurityEvent', 'Counter',
    'Supplier', 'Product', 'RestockBatch', 'InventoryMovement',
]
