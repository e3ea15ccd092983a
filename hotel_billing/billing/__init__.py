"""
Billing core: cart bookkeeping, totals and bill submission.
"""

from hotel_billing.billing.composer import (
    MAX_BILL_AMOUNT,
    MAX_LINE_QUANTITY,
    TAX_RATE,
    BillComposer,
    BillDraft,
    BillItemDraft,
    CartLine,
    CustomerDetails,
    MenuItemRef,
    SubmittedBill,
    generate_bill_number,
    to_money,
)

__all__ = [
    "MAX_BILL_AMOUNT",
    "MAX_LINE_QUANTITY",
    "TAX_RATE",
    "BillComposer",
    "BillDraft",
    "BillItemDraft",
    "CartLine",
    "CustomerDetails",
    "MenuItemRef",
    "SubmittedBill",
    "generate_bill_number",
    "to_money",
]
