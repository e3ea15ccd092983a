"""
Storage Module

Store contracts for the relational collaborator and their SQLAlchemy
implementations.

Usage:
    from hotel_billing.services.storage import SqlAlchemyMenuStore, MenuFilter

    store = SqlAlchemyMenuStore(db)
    items = await store.list_items(MenuFilter(available_only=True))
"""

from hotel_billing.services.storage.base import (
    BaseBillStore,
    BaseMenuStore,
    BaseRoleStore,
    MenuFilter,
)
from hotel_billing.services.storage.sql import (
    SqlAlchemyBillStore,
    SqlAlchemyMenuStore,
    SqlAlchemyRoleStore,
)

__all__ = [
    "BaseBillStore",
    "BaseMenuStore",
    "BaseRoleStore",
    "MenuFilter",
    "SqlAlchemyBillStore",
    "SqlAlchemyMenuStore",
    "SqlAlchemyRoleStore",
]
