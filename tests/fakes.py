"""In-memory stores standing in for the SQLAlchemy stores."""

import asyncio
import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Optional

from hotel_billing.core.exceptions import NotFoundError, PersistenceError
from hotel_billing.services.storage.base import (
    BaseBillStore,
    BaseMenuStore,
    BaseRoleStore,
    MenuFilter,
)

_EPOCH = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


class InMemoryMenuStore(BaseMenuStore):
    def __init__(self, items=None):
        self.items = {}
        for data in items or []:
            self.items[data["id"]] = SimpleNamespace(created_at=_EPOCH, updated_at=None, **data)

    async def list_items(self, menu_filter: Optional[MenuFilter] = None):
        menu_filter = menu_filter or MenuFilter()
        result = []
        for item in self.items.values():
            if menu_filter.available_only and not item.available:
                continue
            if menu_filter.category and item.category != menu_filter.category:
                continue
            if menu_filter.search and menu_filter.search.strip().lower() not in item.name.lower():
                continue
            result.append(item)
        return sorted(result, key=lambda i: (i.category, i.name))

    async def get(self, item_id):
        if item_id not in self.items:
            raise NotFoundError(f"Menu item {item_id} not found")
        return self.items[item_id]

    async def create(self, fields):
        item = SimpleNamespace(id=str(uuid.uuid4()), created_at=_EPOCH, updated_at=None, **fields)
        self.items[item.id] = item
        return item

    async def update(self, item_id, fields):
        item = await self.get(item_id)
        for key, value in fields.items():
            setattr(item, key, value)
        item.updated_at = _EPOCH
        return item

    async def delete(self, item_id):
        await self.get(item_id)
        del self.items[item_id]


class InMemoryBillStore(BaseBillStore):
    """
    Bill store that records every call.

    ``fail_header`` / ``fail_items`` / ``fail_delete`` make the matching
    write raise PersistenceError; ``gate`` holds create_bill until set.
    """

    def __init__(self, fail_header=False, fail_items=False, fail_delete=False, gate: Optional[asyncio.Event] = None):
        self.fail_header = fail_header
        self.fail_items = fail_items
        self.fail_delete = fail_delete
        self.gate = gate
        self.bills = {}
        self.items = {}
        self.calls = []

    async def create_bill(self, header):
        self.calls.append(("create_bill", header.bill_number))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_header:
            raise PersistenceError("duplicate key value violates unique constraint")
        bill = SimpleNamespace(
            id=str(uuid.uuid4()),
            created_at=_EPOCH + timedelta(minutes=len(self.bills)),
            **vars(header),
        )
        self.bills[bill.id] = bill
        return bill

    async def create_bill_items(self, bill_id, items):
        self.calls.append(("create_bill_items", bill_id))
        if self.fail_items:
            raise PersistenceError("insert into bill_items failed")
        rows = [
            SimpleNamespace(id=str(uuid.uuid4()), bill_id=bill_id, line_number=n, **vars(draft))
            for n, draft in enumerate(items, start=1)
        ]
        self.items[bill_id] = rows
        return rows

    async def delete_bill(self, bill_id):
        self.calls.append(("delete_bill", bill_id))
        if self.fail_delete:
            raise PersistenceError("connection lost")
        self.items.pop(bill_id, None)
        self.bills.pop(bill_id, None)

    async def list_bills(self, search=None, skip=0, limit=50):
        bills = sorted(self.bills.values(), key=lambda b: b.created_at, reverse=True)
        if search and search.strip():
            needle = search.strip().lower()
            bills = [
                b for b in bills
                if any(needle in (value or "").lower() for value in (b.bill_number, b.customer_name, b.room_number))
            ]
        return len(bills), bills[skip:skip + limit]

    async def get_bill(self, bill_id):
        if bill_id not in self.bills:
            raise NotFoundError(f"Bill {bill_id} not found")
        return self.bills[bill_id]

    async def list_bill_items(self, bill_id):
        return list(self.items.get(bill_id, []))


class InMemoryRoleStore(BaseRoleStore):
    def __init__(self, roles=None):
        self.roles = dict(roles or {})
        self.lookups = 0

    async def get_role(self, user_id):
        self.lookups += 1
        return self.roles.get(user_id)

    async def set_role(self, user_id, role):
        self.roles[user_id] = role
