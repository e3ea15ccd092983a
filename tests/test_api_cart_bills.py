import re

from tests.fixtures_data import CUSTOMER_PAYLOAD


def _add(api, headers, item_id, times=1):
    response = None
    for _ in range(times):
        response = api.client.post("/api/cart/items", json={"menu_item_id": item_id}, headers=headers)
    return response


def test_cart_totals(api, login):
    headers = login()
    _add(api, headers, "item-dosa", times=2)
    response = _add(api, headers, "item-coffee")

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Filter Coffee added"
    assert [(line["name"], line["quantity"], line["line_total"]) for line in body["lines"]] == [
        ("Masala Dosa", 2, "200.00"),
        ("Filter Coffee", 1, "50.00"),
    ]
    assert body["subtotal"] == "250.00"
    assert body["tax_rate"] == "0.05"
    assert body["tax"] == "12.50"
    assert body["total"] == "262.50"


def test_unavailable_item_cannot_be_added(api, login):
    response = _add(api, login(), "item-kheer")

    assert response.status_code == 400
    assert response.json()["detail"] == "Rice Kheer is not available"


def test_unknown_item_cannot_be_added(api, login):
    assert _add(api, login(), "missing").status_code == 404


def test_quantity_changes_and_removal(api, login):
    headers = login()
    _add(api, headers, "item-dosa")
    _add(api, headers, "item-coffee")

    up = api.client.patch("/api/cart/items/item-dosa", json={"delta": 2}, headers=headers).json()
    down = api.client.patch("/api/cart/items/item-coffee", json={"delta": -3}, headers=headers).json()
    removed = api.client.delete("/api/cart/items/item-dosa", headers=headers)
    removed_again = api.client.delete("/api/cart/items/item-dosa", headers=headers)

    assert up["lines"][0]["quantity"] == 3
    assert [line["menu_item_id"] for line in down["lines"]] == ["item-dosa"]
    assert removed.json()["lines"] == []
    assert removed_again.status_code == 200


def test_oversized_quantity_change_keeps_cart_usable(api, login):
    headers = login()
    _add(api, headers, "item-dosa")

    huge = api.client.patch("/api/cart/items/item-dosa", json={"delta": 10**30}, headers=headers)
    over_limit = api.client.patch("/api/cart/items/item-dosa", json={"delta": 1000}, headers=headers)
    cart = api.client.get("/api/cart", headers=headers)

    assert huge.status_code == 422
    assert over_limit.status_code == 400
    assert "cannot exceed" in over_limit.json()["detail"]
    assert cart.status_code == 200
    assert [(line["menu_item_id"], line["quantity"]) for line in cart.json()["lines"]] == [("item-dosa", 1)]
    assert api.client.post("/api/bills", headers=headers).status_code == 201


def test_carts_are_per_session(api, login):
    first = login()
    second = login()
    _add(api, first, "item-dosa")

    assert api.client.get("/api/cart", headers=second).json()["lines"] == []
    assert len(api.client.get("/api/cart", headers=first).json()["lines"]) == 1


def test_customer_fields_are_kept_with_cart(api, login):
    headers = login()

    response = api.client.put(
        "/api/cart/customer",
        json={"customer_name": "  ", "customer_phone": "9876543210", "room_number": "204", "payment_method": "UPI"},
        headers=headers,
    )

    body = response.json()
    assert body["customer_name"] is None
    assert body["customer_phone"] == "9876543210"
    assert body["room_number"] == "204"
    assert body["payment_method"] == "UPI"


def test_unknown_payment_method_is_rejected(api, login):
    response = api.client.put("/api/cart/customer", json={"payment_method": "Cheque"}, headers=login())

    assert response.status_code == 422


def test_cancel_bill_clears_cart(api, login):
    headers = login()
    _add(api, headers, "item-dosa")
    api.client.put("/api/cart/customer", json=CUSTOMER_PAYLOAD, headers=headers)

    body = api.client.delete("/api/cart", headers=headers).json()

    assert body["lines"] == []
    assert body["customer_name"] is None
    assert body["total"] == "0.00"


def test_submitting_empty_cart_is_rejected(api, login):
    response = api.client.post("/api/bills", headers=login())

    assert response.status_code == 400
    assert "Cart is empty" in response.json()["detail"]
    assert api.bills.calls == []


def test_submit_creates_bill_and_clears_cart(api, login):
    headers = login()
    _add(api, headers, "item-dosa", times=2)
    _add(api, headers, "item-coffee")
    api.client.put("/api/cart/customer", json=CUSTOMER_PAYLOAD, headers=headers)

    response = api.client.post("/api/bills", headers=headers)

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Bill created successfully!"
    assert re.fullmatch(r"BILL-\d+-[0-9A-F]{6}", body["bill_number"])
    bill = body["bill"]
    assert (bill["subtotal"], bill["tax"], bill["total"]) == ("250.00", "12.50", "262.50")
    assert bill["customer_name"] == "Meera Iyer"
    assert bill["payment_method"] == "Room Charge"
    assert [(item["item_name"], item["quantity"]) for item in bill["items"]] == [
        ("Masala Dosa", 2),
        ("Filter Coffee", 1),
    ]

    assert api.client.get("/api/cart", headers=headers).json()["lines"] == []
    assert [detail.bill_number for detail in api.exported] == [body["bill_number"]]


def test_submit_body_overrides_draft_customer(api, login):
    headers = login()
    _add(api, headers, "item-naan")
    api.client.put("/api/cart/customer", json=CUSTOMER_PAYLOAD, headers=headers)

    response = api.client.post(
        "/api/bills",
        json={"customer_name": "Walk-in", "payment_method": "Cash"},
        headers=headers,
    )

    bill = response.json()["bill"]
    assert bill["customer_name"] == "Walk-in"
    assert bill["room_number"] is None
    assert bill["payment_method"] == "Cash"
    assert bill["total"] == "47.78"


def test_failed_item_write_keeps_cart(api, login):
    headers = login()
    _add(api, headers, "item-dosa")
    api.bills.fail_items = True

    response = api.client.post("/api/bills", headers=headers)

    assert response.status_code == 502
    assert response.json()["detail"] == "insert into bill_items failed"
    assert api.bills.bills == {}
    assert api.exported == []
    assert len(api.client.get("/api/cart", headers=headers).json()["lines"]) == 1


def _create_bill(api, headers, item_id, **customer):
    _add(api, headers, item_id)
    response = api.client.post("/api/bills", json=customer or None, headers=headers)
    assert response.status_code == 201
    return response.json()


def test_bill_history_is_newest_first_and_searchable(api, login):
    headers = login()
    first = _create_bill(api, headers, "item-dosa", customer_name="Meera Iyer", room_number="204")
    second = _create_bill(api, headers, "item-coffee", customer_name="Kabir Rao", room_number="310")

    everything = api.client.get("/api/bills", headers=headers).json()
    by_name = api.client.get("/api/bills", params={"search": "meera"}, headers=headers).json()
    by_room = api.client.get("/api/bills", params={"search": "310"}, headers=headers).json()
    by_number = api.client.get("/api/bills", params={"search": first["bill_number"]}, headers=headers).json()

    assert everything["total"] == 2
    assert [b["bill_number"] for b in everything["bills"]] == [second["bill_number"], first["bill_number"]]
    assert [b["bill_number"] for b in by_name["bills"]] == [first["bill_number"]]
    assert [b["bill_number"] for b in by_room["bills"]] == [second["bill_number"]]
    assert by_number["total"] == 1


def test_bill_history_is_shared_across_users(api, login):
    _create_bill(api, login(), "item-dosa")

    other = api.client.get("/api/bills", headers=login()).json()

    assert other["total"] == 1


def test_bill_detail_lists_items(api, login):
    headers = login()
    created = _create_bill(api, headers, "item-paneer")

    response = api.client.get(f"/api/bills/{created['bill']['id']}", headers=headers)

    body = response.json()
    assert body["bill_number"] == created["bill_number"]
    assert [(item["item_name"], item["unit_price"]) for item in body["items"]] == [("Paneer Butter Masala", "240.00")]


def test_unknown_bill_is_not_found(api, login):
    assert api.client.get("/api/bills/missing", headers=login()).status_code == 404


def test_bill_history_requires_session(api):
    assert api.client.get("/api/bills").status_code == 401
