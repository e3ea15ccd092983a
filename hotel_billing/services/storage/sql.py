"""
SQLAlchemy Store Implementations

Async stores over the application database. Each store wraps one
AsyncSession (one per request, from get_db) and commits per operation.
SQLAlchemy failures are rolled back and re-raised as PersistenceError
with the driver's message.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from hotel_billing.billing.composer import BillDraft, BillItemDraft
from hotel_billing.core.exceptions import NotFoundError, PersistenceError
from hotel_billing.models import Bill, BillItem, MenuItem, UserRole
from hotel_billing.services.storage.base import (
    BaseBillStore,
    BaseMenuStore,
    BaseRoleStore,
    MenuFilter,
)

logger = logging.getLogger(__name__)

MENU_FIELDS = ("name", "description", "price", "category", "available")


def _driver_message(exc: SQLAlchemyError) -> str:
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else str(exc)


class _SqlStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    @asynccontextmanager
    async def _guard(self, action: str) -> AsyncIterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"{action} failed: {e}")
            raise PersistenceError(_driver_message(e)) from e


class SqlAlchemyMenuStore(_SqlStore, BaseMenuStore):
    """Menu catalog in the menu_items table."""

    async def list_items(self, menu_filter: Optional[MenuFilter] = None) -> list[MenuItem]:
        menu_filter = menu_filter or MenuFilter()
        query = select(MenuItem).order_by(MenuItem.category, MenuItem.name)

        if menu_filter.available_only:
            query = query.where(MenuItem.available.is_(True))
        if menu_filter.category:
            query = query.where(MenuItem.category == menu_filter.category)
        if menu_filter.search:
            query = query.where(MenuItem.name.ilike(f"%{menu_filter.search.strip()}%"))

        async with self._guard("Menu listing"):
            result = await self.db.execute(query)
            return list(result.scalars().all())

    async def get(self, item_id: str) -> MenuItem:
        async with self._guard("Menu lookup"):
            item = await self.db.get(MenuItem, item_id)
        if item is None:
            raise NotFoundError(f"Menu item {item_id} not found")
        return item

    async def create(self, fields: dict[str, Any]) -> MenuItem:
        item = MenuItem(**{k: v for k, v in fields.items() if k in MENU_FIELDS})
        async with self._guard("Menu create"):
            self.db.add(item)
            await self.db.commit()
            await self.db.refresh(item)
        logger.info(f"Menu item created: {item.name} ({item.category})")
        return item

    async def update(self, item_id: str, fields: dict[str, Any]) -> MenuItem:
        item = await self.get(item_id)
        for key, value in fields.items():
            if key in MENU_FIELDS:
                setattr(item, key, value)
        async with self._guard("Menu update"):
            await self.db.commit()
            await self.db.refresh(item)
        logger.info(f"Menu item updated: {item.name}")
        return item

    async def delete(self, item_id: str) -> None:
        item = await self.get(item_id)
        async with self._guard("Menu delete"):
            await self.db.delete(item)
            await self.db.commit()
        logger.info(f"Menu item deleted: {item_id}")


class SqlAlchemyBillStore(_SqlStore, BaseBillStore):
    """Bills and bill items in the bills / bill_items tables."""

    async def create_bill(self, header: BillDraft) -> Bill:
        bill = Bill(
            bill_number=header.bill_number,
            customer_name=header.customer_name,
            customer_phone=header.customer_phone,
            room_number=header.room_number,
            subtotal=header.subtotal,
            tax=header.tax,
            total=header.total,
            payment_method=header.payment_method,
            created_by=header.created_by,
        )
        async with self._guard(f"Bill {header.bill_number} header write"):
            self.db.add(bill)
            await self.db.commit()
            await self.db.refresh(bill)
        return bill

    async def create_bill_items(self, bill_id: str, items: list[BillItemDraft]) -> list[BillItem]:
        rows = [
            BillItem(
                bill_id=bill_id,
                line_number=position,
                menu_item_id=draft.menu_item_id,
                item_name=draft.item_name,
                quantity=draft.quantity,
                unit_price=draft.unit_price,
                total_price=draft.total_price,
            )
            for position, draft in enumerate(items, start=1)
        ]
        async with self._guard(f"Bill {bill_id} items write"):
            self.db.add_all(rows)
            await self.db.commit()
        return rows

    async def delete_bill(self, bill_id: str) -> None:
        async with self._guard(f"Bill {bill_id} delete"):
            await self.db.execute(delete(BillItem).where(BillItem.bill_id == bill_id))
            await self.db.execute(delete(Bill).where(Bill.id == bill_id))
            await self.db.commit()

    async def list_bills(
        self,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[int, list[Bill]]:
        query = select(Bill).order_by(Bill.created_at.desc())
        count_query = select(func.count(Bill.id))

        if search and search.strip():
            pattern = f"%{search.strip()}%"
            condition = or_(
                Bill.bill_number.ilike(pattern),
                Bill.customer_name.ilike(pattern),
                Bill.room_number.ilike(pattern),
            )
            query = query.where(condition)
            count_query = count_query.where(condition)

        async with self._guard("Bill listing"):
            total_result = await self.db.execute(count_query)
            total = total_result.scalar() or 0

            result = await self.db.execute(query.offset(skip).limit(limit))
            return total, list(result.scalars().all())

    async def get_bill(self, bill_id: str) -> Bill:
        async with self._guard("Bill lookup"):
            bill = await self.db.get(Bill, bill_id)
        if bill is None:
            raise NotFoundError(f"Bill {bill_id} not found")
        return bill

    async def list_bill_items(self, bill_id: str) -> list[BillItem]:
        query = (
            select(BillItem)
            .where(BillItem.bill_id == bill_id)
            .order_by(BillItem.line_number)
        )
        async with self._guard("Bill items listing"):
            result = await self.db.execute(query)
            return list(result.scalars().all())


class SqlAlchemyRoleStore(_SqlStore, BaseRoleStore):
    """Role lookup in the user_roles table."""

    async def get_role(self, user_id: str) -> Optional[str]:
        async with self._guard("Role lookup"):
            result = await self.db.execute(
                select(UserRole.role).where(UserRole.user_id == user_id)
            )
            return result.scalar_one_or_none()

    async def set_role(self, user_id: str, role: str) -> None:
        async with self._guard("Role update"):
            row = await self.db.get(UserRole, user_id)
            if row is None:
                self.db.add(UserRole(user_id=user_id, role=role))
            else:
                row.role = role
            await self.db.commit()
        logger.info(f"Role for {user_id} set to {role}")
