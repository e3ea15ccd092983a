"""
Bill Composer

Keeps the cart of the bill being composed in one session and turns it
into a persisted bill:

    composer = BillComposer()
    composer.add(MenuItemRef.from_model(item))
    composer.change_quantity(item.id, +1)
    submitted = await composer.submit(bill_store, created_by=user_id)

Money is handled as Decimal throughout. Totals are exact while the cart
is edited and rounded half-up to two places only when the bill header is
built for persistence.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import TYPE_CHECKING, Any, Optional

from hotel_billing.core.exceptions import (
    AuthError,
    PersistenceError,
    SubmissionInProgressError,
    ValidationError,
)

if TYPE_CHECKING:
    from hotel_billing.services.storage.base import BaseBillStore

logger = logging.getLogger(__name__)

TAX_RATE = Decimal("0.05")
CENTS = Decimal("0.01")

# Largest quantity a single cart line may hold
MAX_LINE_QUANTITY = 999
# Largest amount a Numeric(10, 2) bill column can store
MAX_BILL_AMOUNT = Decimal("99999999.99")


def to_money(value: Decimal) -> Decimal:
    """Round a currency amount half-up to two decimal places."""
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def generate_bill_number(prefix: str = "BILL", now_ms: Optional[int] = None) -> str:
    """
    Build a human-readable bill number: ``BILL-<epoch ms>-<6 hex chars>``.

    The millisecond prefix keeps numbers roughly time-ordered; the random
    suffix keeps two bills issued in the same millisecond apart.
    """
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    return f"{prefix}-{now_ms}-{uuid.uuid4().hex[:6].upper()}"


# =============================================================================
# VALUE TYPES
# =============================================================================

@dataclass(frozen=True)
class MenuItemRef:
    """The parts of a menu item a cart line needs."""
    id: str
    name: str
    price: Decimal
    category: Optional[str] = None

    @classmethod
    def from_model(cls, item: Any) -> "MenuItemRef":
        return cls(
            id=str(item.id),
            name=item.name,
            price=Decimal(str(item.price)),
            category=getattr(item, "category", None),
        )


@dataclass
class CartLine:
    item: MenuItemRef
    quantity: int

    @property
    def line_total(self) -> Decimal:
        return self.item.price * self.quantity


@dataclass
class CustomerDetails:
    """Optional customer fields typed in while composing a bill."""
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    room_number: Optional[str] = None

    def __post_init__(self):
        self.customer_name = _blank_to_none(self.customer_name)
        self.customer_phone = _blank_to_none(self.customer_phone)
        self.room_number = _blank_to_none(self.room_number)


@dataclass
class BillDraft:
    """Bill header as handed to the bill store."""
    bill_number: str
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    created_by: str
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    room_number: Optional[str] = None
    payment_method: Optional[str] = None


@dataclass
class BillItemDraft:
    """Snapshot of one cart line at the moment the bill is created."""
    menu_item_id: str
    item_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal


@dataclass
class SubmittedBill:
    bill: Any
    items: list = field(default_factory=list)


# =============================================================================
# COMPOSER
# =============================================================================

class BillComposer:
    """
    Cart and totals for one bill being composed.

    Invariants:
        - every line has quantity > 0
        - at most one line per menu item id
        - lines keep the order in which items were first added

    While ``submit`` is awaiting the store, ``is_submitting`` is set and any
    further submit or cart mutation raises SubmissionInProgressError.
    """

    def __init__(self, tax_rate: Decimal = TAX_RATE, bill_number_prefix: str = "BILL"):
        self.tax_rate = Decimal(str(tax_rate))
        self.bill_number_prefix = bill_number_prefix
        self.customer = CustomerDetails()
        self.payment_method: Optional[str] = None
        self.is_submitting = False
        self._lines: list[CartLine] = []

    # -------------------------------------------------------------------------
    # Cart state
    # -------------------------------------------------------------------------

    @property
    def lines(self) -> tuple[CartLine, ...]:
        return tuple(self._lines)

    @property
    def is_empty(self) -> bool:
        return not self._lines

    def _find(self, item_id: str) -> Optional[CartLine]:
        for line in self._lines:
            if line.item.id == item_id:
                return line
        return None

    def _ensure_idle(self) -> None:
        if self.is_submitting:
            raise SubmissionInProgressError("A bill is already being created for this cart")

    def add(self, item: MenuItemRef) -> CartLine:
        """Add one unit of ``item``, merging with an existing line."""
        self._ensure_idle()
        line = self._find(item.id)
        if line is not None:
            self._check_quantity(line.item, line.quantity + 1)
            line.quantity += 1
        else:
            line = CartLine(item=item, quantity=1)
            self._lines.append(line)
        logger.debug(f"Cart: {item.name} x{line.quantity}")
        return line

    def change_quantity(self, item_id: str, delta: int) -> Optional[CartLine]:
        """
        Shift a line's quantity by ``delta``, clamping at zero.

        A line that reaches zero is removed. Unknown ids are ignored.
        Returns the line if it is still in the cart.

        Raises:
            ValidationError: the new quantity exceeds MAX_LINE_QUANTITY;
                the cart is left unchanged
        """
        self._ensure_idle()
        line = self._find(item_id)
        if line is None:
            return None
        self._check_quantity(line.item, line.quantity + delta)
        line.quantity = max(0, line.quantity + delta)
        if line.quantity == 0:
            self._lines.remove(line)
            return None
        return line

    @staticmethod
    def _check_quantity(item: MenuItemRef, quantity: int) -> None:
        if quantity > MAX_LINE_QUANTITY:
            raise ValidationError(
                f"Quantity of {item.name} cannot exceed {MAX_LINE_QUANTITY}"
            )

    def remove(self, item_id: str) -> None:
        self._ensure_idle()
        self._lines = [line for line in self._lines if line.item.id != item_id]

    def set_customer(
        self,
        customer: Optional[CustomerDetails] = None,
        payment_method: Optional[str] = None,
    ) -> None:
        self._ensure_idle()
        self.customer = customer or CustomerDetails()
        self.payment_method = _blank_to_none(payment_method)

    def clear(self) -> None:
        """Drop every line and the customer fields (cancel the bill)."""
        self._ensure_idle()
        self._reset()

    def _reset(self) -> None:
        self._lines = []
        self.customer = CustomerDetails()
        self.payment_method = None

    # -------------------------------------------------------------------------
    # Totals
    # -------------------------------------------------------------------------

    def compute_subtotal(self) -> Decimal:
        return sum((line.line_total for line in self._lines), Decimal("0"))

    def compute_tax(self) -> Decimal:
        return self.compute_subtotal() * self.tax_rate

    def compute_total(self) -> Decimal:
        return self.compute_subtotal() + self.compute_tax()

    # -------------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------------

    def generate_bill_number(self) -> str:
        return generate_bill_number(self.bill_number_prefix)

    def build_bill(
        self,
        created_by: str,
        customer: Optional[CustomerDetails] = None,
        payment_method: Optional[str] = None,
    ) -> tuple[BillDraft, list[BillItemDraft]]:
        """Snapshot the cart into a bill header and its line items."""
        customer = customer or self.customer
        subtotal = self.compute_subtotal()
        tax = self.compute_tax()

        header = BillDraft(
            bill_number=self.generate_bill_number(),
            subtotal=to_money(subtotal),
            tax=to_money(tax),
            total=to_money(subtotal + tax),
            created_by=created_by,
            customer_name=customer.customer_name,
            customer_phone=customer.customer_phone,
            room_number=customer.room_number,
            payment_method=_blank_to_none(payment_method) or self.payment_method,
        )
        items = [
            BillItemDraft(
                menu_item_id=line.item.id,
                item_name=line.item.name,
                quantity=line.quantity,
                unit_price=to_money(line.item.price),
                total_price=to_money(line.line_total),
            )
            for line in self._lines
        ]
        return header, items

    async def submit(
        self,
        store: "BaseBillStore",
        created_by: Optional[str],
        customer: Optional[CustomerDetails] = None,
        payment_method: Optional[str] = None,
    ) -> SubmittedBill:
        """
        Persist the cart as a bill, then clear the cart.

        The header is written first, then its items. If the items write
        fails the header is deleted again, so no bill is left without
        items. The cart is only cleared once both writes succeeded.

        Raises:
            ValidationError: the cart is empty
            AuthError: no authenticated actor
            SubmissionInProgressError: another submit is still running
            PersistenceError: the header or items write failed
        """
        self._ensure_idle()
        if self.is_empty:
            raise ValidationError("Cart is empty. Please add items to create a bill")
        if not created_by:
            raise AuthError("User not authenticated")

        header, item_drafts = self.build_bill(created_by, customer, payment_method)
        if header.total > MAX_BILL_AMOUNT:
            raise ValidationError(f"Bill total cannot exceed {MAX_BILL_AMOUNT}")

        self.is_submitting = True
        try:
            bill = await store.create_bill(header)
            bill_id = bill.id

            try:
                items = await store.create_bill_items(bill_id, item_drafts)
            except Exception as e:
                await self._compensate(store, bill_id, header.bill_number)
                if isinstance(e, PersistenceError):
                    raise
                raise PersistenceError(str(e)) from e
        finally:
            self.is_submitting = False

        logger.info(
            f"Bill {header.bill_number} created by {created_by}: "
            f"{len(item_drafts)} line(s), total {header.total}"
        )
        self._reset()
        return SubmittedBill(bill=bill, items=list(items))

    async def _compensate(self, store: "BaseBillStore", bill_id: str, bill_number: str) -> None:
        """Delete a header whose items could not be written."""
        try:
            await store.delete_bill(bill_id)
            logger.warning(f"Bill {bill_number}: items write failed, header removed")
        except Exception:
            logger.exception(f"Bill {bill_number}: items write failed and header could not be removed (orphaned)")
