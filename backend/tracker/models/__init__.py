from .users import User
from .items import Item
from .pending import PendingRequest
from .history import HistoryEntry

__all__ = [
    'User',
    'Item',
    'PendingRequest',
    'HistoryEntry',
]
