"""
Stock service for the MediTrack inventory
- Stock tier classification
- Expiry risk
- Low-stock alerts
- Inventory summary figures
"""

from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from schemas import parse_date

OUT_OF_STOCK = 'Out of Stock'
LOW_STOCK = 'Low Stock'
IN_STOCK = 'In Stock'
EXPIRING_SOON = 'Expiring Soon'


class StockEvaluator:
    """Classifies medicines by stock level and expiry. Nothing is cached:
    every call reads the current field values."""

    def __init__(self, expiry_window_days: int = 30):
        self.expiry_window = timedelta(days=expiry_window_days)

    def stock_status(self, stock: int, min_threshold: int) -> str:
        if stock == 0:
            return OUT_OF_STOCK
        if stock <= min_threshold:
            return LOW_STOCK
        return IN_STOCK

    def is_low_stock(self, medicine) -> bool:
        # includes out-of-stock items
        return medicine.stock <= medicine.min_threshold

    def is_out_of_stock(self, medicine) -> bool:
        return medicine.stock == 0

    def is_expiring_soon(self, expiry, now: Optional[datetime] = None) -> bool:
        """True when ``expiry`` falls on or before ``now`` plus the expiry window.

        A missing or unparseable expiry date is never expiring.
        """
        expiry = parse_date(expiry)
        if expiry is None:
            return False
        now = now or datetime.now()
        return datetime.combine(expiry, datetime.min.time()) <= now + self.expiry_window

    def describe(self, medicine, now: Optional[datetime] = None) -> Dict:
        expiring = self.is_expiring_soon(medicine.expiry_date, now)
        return {
            'stock_status': self.stock_status(medicine.stock, medicine.min_threshold),
            'expiring_soon': expiring,
            'expiry_flag': EXPIRING_SOON if expiring else None,
        }

    def check_alerts(self, medicines: Iterable) -> List[Dict]:
        """Check for inventory alerts"""
        alerts = []

        for medicine in medicines:
            if self.is_out_of_stock(medicine):
                alerts.append({
                    'type': 'critical',
                    'medicine_id': medicine.id,
                    'item': medicine.name,
                    'stock': medicine.stock,
                    'message': f'CRITICAL: {medicine.name} is out of stock',
                    'priority': 'high',
                })
            elif self.is_low_stock(medicine):
                alerts.append({
                    'type': 'warning',
                    'medicine_id': medicine.id,
                    'item': medicine.name,
                    'stock': medicine.stock,
                    'message': f'WARNING: {medicine.name} is running low ({medicine.stock} remaining)',
                    'priority': 'medium',
                })

        return alerts

    def inventory_summary(self, medicines: List) -> Dict:
        categories = {m.category for m in medicines if m.category}
        return {
            'total_items': len(medicines),
            'low_stock_count': sum(1 for m in medicines if self.is_low_stock(m)),
            'out_of_stock_count': sum(1 for m in medicines if self.is_out_of_stock(m)),
            'total_value': sum(m.stock * m.price for m in medicines),
            'categories': sorted(categories),
        }


# Global instance
stock_evaluator = StockEvaluator()
