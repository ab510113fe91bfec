from .inventory import InventoryItem, StockHistoryEntry
from .sales import Sale, SaleLineItem
from .members import MembershipTier, Member, PointsHistoryEntry

__all__ = [
    'InventoryItem', 'StockHistoryEntry',
    'Sale', 'SaleLineItem',
    'MembershipTier', 'Member', 'PointsHistoryEntry',
]
