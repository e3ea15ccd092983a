"""
SQLAlchemy Database Models

Tables backing the billing service:
- menu_items: the catalog administrators maintain
- bills: one header row per issued bill
- bill_items: denormalized line snapshots owned by a bill
- user_roles: role label per authenticated user id
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Text, Numeric, Integer, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func

from hotel_billing.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MenuCategory(str, enum.Enum):
    """Fixed set of menu category labels."""
    BREAKFAST = "Breakfast"
    MAIN_COURSE = "Main Course"
    BREADS = "Breads"
    SIDES = "Sides"
    DESSERTS = "Desserts"
    BEVERAGES = "Beverages"

    @classmethod
    def values(cls) -> list[str]:
        return [c.value for c in cls]


class PaymentMethod(str, enum.Enum):
    """Payment method labels recorded on a bill. No payment is processed."""
    CASH = "Cash"
    CARD = "Card"
    UPI = "UPI"
    ROOM_CHARGE = "Room Charge"


class Role(str, enum.Enum):
    ADMIN = "admin"
    STAFF = "staff"


class MenuItem(Base):
    """
    A dish or drink that can be added to a bill.

    Edited only by administrators. Bills copy name and price at creation
    time, so later edits never alter issued bills.
    """
    __tablename__ = "menu_items"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    category = Column(String(50), nullable=False, index=True)
    available = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=_utcnow)

    def __repr__(self):
        return f"<MenuItem {self.name} - {self.category} - {self.price}>"


class Bill(Base):
    """
    Bill header - the persisted summary of one transaction.

    Immutable once created. Its line snapshots live in bill_items.
    """
    __tablename__ = "bills"

    id = Column(String(36), primary_key=True, default=_new_id)
    bill_number = Column(String(64), nullable=False, unique=True, index=True)

    # =========================================================================
    # CUSTOMER INFORMATION
    # =========================================================================
    customer_name = Column(String(100), nullable=True)
    customer_phone = Column(String(20), nullable=True)
    room_number = Column(String(20), nullable=True)

    # =========================================================================
    # PRICING
    # =========================================================================
    subtotal = Column(Numeric(10, 2), nullable=False)
    tax = Column(Numeric(10, 2), nullable=False)
    total = Column(Numeric(10, 2), nullable=False)

    payment_method = Column(String(20), nullable=True)

    created_by = Column(String(36), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), index=True)

    def __repr__(self):
        return f"<Bill {self.bill_number} - {self.total}>"


class BillItem(Base):
    """One cart line captured at bill-creation time."""
    __tablename__ = "bill_items"

    id = Column(String(36), primary_key=True, default=_new_id)
    bill_id = Column(String(36), ForeignKey("bills.id", ondelete="CASCADE"), nullable=False, index=True)
    line_number = Column(Integer, nullable=False, default=0)
    menu_item_id = Column(String(36), nullable=True)
    item_name = Column(String(100), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)

    def __repr__(self):
        return f"<BillItem {self.item_name} x{self.quantity}>"


class UserRole(Base):
    """Role label per user id. A user without a row is not an admin."""
    __tablename__ = "user_roles"

    user_id = Column(String(36), primary_key=True)
    role = Column(String(20), nullable=False, default=Role.STAFF.value)

    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now())

    def __repr__(self):
        return f"<UserRole {self.user_id} - {self.role}>"
