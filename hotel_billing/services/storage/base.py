"""
Store Abstract Base Classes

Contracts for the relational collaborator: the menu catalog, bills with
their items, and role lookup. SqlAlchemy*Store implements them against
the application database; tests plug in in-memory stores.

Every method may raise PersistenceError carrying a human-readable
message. Lookups of unknown ids raise NotFoundError.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from hotel_billing.billing.composer import BillDraft, BillItemDraft
from hotel_billing.models import Bill, BillItem, MenuItem


@dataclass
class MenuFilter:
    """
    Menu listing filter.

    Attributes:
        available_only: Skip items marked unavailable
        category: Only this category label (None for all)
        search: Case-insensitive substring of the item name
    """
    available_only: bool = False
    category: Optional[str] = None
    search: Optional[str] = None


class BaseMenuStore(ABC):
    """Menu catalog. Listings are ordered by category, then name."""

    @abstractmethod
    async def list_items(self, menu_filter: Optional[MenuFilter] = None) -> list[MenuItem]:
        pass

    @abstractmethod
    async def get(self, item_id: str) -> MenuItem:
        pass

    @abstractmethod
    async def create(self, fields: dict[str, Any]) -> MenuItem:
        pass

    @abstractmethod
    async def update(self, item_id: str, fields: dict[str, Any]) -> MenuItem:
        pass

    @abstractmethod
    async def delete(self, item_id: str) -> None:
        pass


class BaseBillStore(ABC):
    """
    Bill headers and their items.

    There is no update path. ``delete_bill`` exists only so a header whose
    items could not be written can be removed again.
    """

    @abstractmethod
    async def create_bill(self, header: BillDraft) -> Bill:
        pass

    @abstractmethod
    async def create_bill_items(self, bill_id: str, items: list[BillItemDraft]) -> list[BillItem]:
        pass

    @abstractmethod
    async def delete_bill(self, bill_id: str) -> None:
        pass

    @abstractmethod
    async def list_bills(
        self,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[int, list[Bill]]:
        """
        List bills newest first.

        Returns:
            (total matching bills, requested page)
        """
        pass

    @abstractmethod
    async def get_bill(self, bill_id: str) -> Bill:
        pass

    @abstractmethod
    async def list_bill_items(self, bill_id: str) -> list[BillItem]:
        pass


class BaseRoleStore(ABC):
    """Role label per user id; no row means no role."""

    @abstractmethod
    async def get_role(self, user_id: str) -> Optional[str]:
        pass

    @abstractmethod
    async def set_role(self, user_id: str, role: str) -> None:
        pass
