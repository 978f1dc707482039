"""Restore-order verification: FK introspection and order checks.

Usage:
    from backup_engine.schema import check_restore_order, sort_tables
    from backup_engine.schema import ForeignKeyIntrospector, OrderCheckResult
"""

from backup_engine.schema.introspector import ForeignKeyIntrospector
from backup_engine.schema.models import OrderCheckResult, OrderViolation
from backup_engine.schema.order import check_restore_order, sort_tables

__all__ = [
    "ForeignKeyIntrospector",
    "OrderCheckResult",
    "OrderViolation",
    "check_restore_order",
    "sort_tables",
]
