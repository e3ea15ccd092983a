import random
import re
from decimal import Decimal

import pytest

from hotel_billing.billing import (
    MAX_LINE_QUANTITY,
    BillComposer,
    CustomerDetails,
    MenuItemRef,
    generate_bill_number,
    to_money,
)
from hotel_billing.core.exceptions import SubmissionInProgressError, ValidationError

DOSA = MenuItemRef(id="a", name="Masala Dosa", price=Decimal("100.00"), category="Breakfast")
COFFEE = MenuItemRef(id="b", name="Filter Coffee", price=Decimal("50.00"), category="Beverages")


def test_adding_same_item_twice_merges_into_one_line():
    composer = BillComposer()

    composer.add(DOSA)
    composer.add(DOSA)

    assert len(composer.lines) == 1
    assert composer.lines[0].quantity == 2


def test_lines_keep_first_added_order():
    composer = BillComposer()

    composer.add(COFFEE)
    composer.add(DOSA)
    composer.add(COFFEE)

    assert [line.item.id for line in composer.lines] == ["b", "a"]


def test_totals_for_two_lines():
    composer = BillComposer()
    composer.add(DOSA)
    composer.add(DOSA)
    composer.add(COFFEE)

    assert composer.compute_subtotal() == Decimal("250.00")
    assert to_money(composer.compute_tax()) == Decimal("12.50")
    assert to_money(composer.compute_total()) == Decimal("262.50")


def test_empty_cart_totals_are_zero():
    composer = BillComposer()

    assert composer.is_empty
    assert composer.compute_subtotal() == 0
    assert composer.compute_total() == 0


def test_change_quantity_clamps_at_zero_and_removes_line():
    composer = BillComposer()
    composer.add(DOSA)
    composer.add(COFFEE)

    assert composer.change_quantity("a", -5) is None
    assert [line.item.id for line in composer.lines] == ["b"]


def test_change_quantity_increments_existing_line():
    composer = BillComposer()
    composer.add(DOSA)

    line = composer.change_quantity("a", 2)

    assert line.quantity == 3
    assert composer.compute_subtotal() == Decimal("300.00")


def test_change_quantity_of_unknown_item_is_ignored():
    composer = BillComposer()
    composer.add(DOSA)

    assert composer.change_quantity("missing", 1) is None
    assert composer.lines[0].quantity == 1


def test_remove_is_idempotent():
    composer = BillComposer()
    composer.add(DOSA)

    composer.remove("a")
    composer.remove("a")

    assert composer.is_empty


def test_clear_drops_lines_and_customer_fields():
    composer = BillComposer()
    composer.add(DOSA)
    composer.set_customer(CustomerDetails(customer_name="Meera"), payment_method="Cash")

    composer.clear()

    assert composer.is_empty
    assert composer.customer.customer_name is None
    assert composer.payment_method is None


def test_customer_blank_fields_become_none():
    details = CustomerDetails(customer_name="  ", customer_phone="", room_number=" 204 ")

    assert details.customer_name is None
    assert details.customer_phone is None
    assert details.room_number == "204"


def test_cart_mutations_rejected_while_submitting():
    composer = BillComposer()
    composer.add(DOSA)
    composer.is_submitting = True

    with pytest.raises(SubmissionInProgressError):
        composer.add(COFFEE)
    with pytest.raises(SubmissionInProgressError):
        composer.change_quantity("a", 1)
    with pytest.raises(SubmissionInProgressError):
        composer.remove("a")
    with pytest.raises(SubmissionInProgressError):
        composer.clear()

    assert composer.lines[0].quantity == 1


def test_build_bill_rounds_half_up_to_cents():
    composer = BillComposer()
    composer.add(MenuItemRef(id="c", name="Mint", price=Decimal("0.10")))

    header, items = composer.build_bill(created_by="user-1")

    assert header.subtotal == Decimal("0.10")
    assert header.tax == Decimal("0.01")
    assert header.total == Decimal("0.11")
    assert items[0].total_price == Decimal("0.10")


def test_build_bill_snapshots_lines():
    composer = BillComposer()
    composer.add(DOSA)
    composer.add(DOSA)
    composer.add(COFFEE)

    header, items = composer.build_bill(
        created_by="user-1",
        customer=CustomerDetails(customer_name="Meera", room_number="204"),
        payment_method="UPI",
    )

    assert header.created_by == "user-1"
    assert header.customer_name == "Meera"
    assert header.room_number == "204"
    assert header.payment_method == "UPI"
    assert [(i.item_name, i.quantity, i.unit_price, i.total_price) for i in items] == [
        ("Masala Dosa", 2, Decimal("100.00"), Decimal("200.00")),
        ("Filter Coffee", 1, Decimal("50.00"), Decimal("50.00")),
    ]


def test_custom_tax_rate():
    composer = BillComposer(tax_rate=Decimal("0.18"))
    composer.add(DOSA)

    assert to_money(composer.compute_tax()) == Decimal("18.00")


def test_bill_number_format():
    number = generate_bill_number(now_ms=1700000000123)

    assert re.fullmatch(r"BILL-1700000000123-[0-9A-F]{6}", number)


def test_bill_numbers_in_same_millisecond_are_distinct():
    first = generate_bill_number(now_ms=1700000000123)
    second = generate_bill_number(now_ms=1700000000123)

    assert first.startswith("BILL-1700000000123-")
    assert second.startswith("BILL-1700000000123-")
    assert first != second


def test_composer_uses_configured_prefix():
    composer = BillComposer(bill_number_prefix="HB")

    assert composer.generate_bill_number().startswith("HB-")


def test_change_quantity_past_limit_leaves_cart_unchanged():
    composer = BillComposer()
    composer.add(DOSA)

    with pytest.raises(ValidationError) as exc:
        composer.change_quantity("a", 10**30)

    assert "cannot exceed" in exc.value.message
    assert composer.lines[0].quantity == 1
    assert composer.compute_subtotal() == Decimal("100.00")


def test_adding_past_limit_is_rejected():
    composer = BillComposer()
    composer.add(DOSA)
    composer.change_quantity("a", MAX_LINE_QUANTITY - 1)

    with pytest.raises(ValidationError):
        composer.add(DOSA)

    assert composer.lines[0].quantity == MAX_LINE_QUANTITY


MENU = [
    DOSA,
    COFFEE,
    MenuItemRef(id="c", name="Butter Naan", price=Decimal("45.50")),
    MenuItemRef(id="d", name="Paneer Butter Masala", price=Decimal("240.00")),
]


@pytest.mark.parametrize("seed", range(20))
def test_random_edit_sequences_keep_cart_consistent(seed):
    rng = random.Random(seed)
    composer = BillComposer()
    expected = {}

    for _ in range(200):
        item = rng.choice(MENU)
        action = rng.choice(["add", "change", "remove"])
        if action == "add":
            composer.add(item)
            expected[item.id] = expected.get(item.id, 0) + 1
        elif action == "change":
            delta = rng.randint(-3, 3)
            composer.change_quantity(item.id, delta)
            if item.id in expected:
                expected[item.id] = max(0, expected[item.id] + delta)
                if expected[item.id] == 0:
                    del expected[item.id]
        else:
            composer.remove(item.id)
            expected.pop(item.id, None)

        ids = [line.item.id for line in composer.lines]
        assert len(ids) == len(set(ids))
        assert all(line.quantity > 0 for line in composer.lines)
        assert {line.item.id: line.quantity for line in composer.lines} == expected
        prices = {ref.id: ref.price for ref in MENU}
        assert composer.compute_subtotal() == sum(
            (prices[item_id] * qty for item_id, qty in expected.items()), Decimal("0")
        )
