from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

from hotel_billing import main
from hotel_billing.schemas import BillDetailResponse
from hotel_billing.services.excel_manager import ExcelManager


def _bill_data(number="BILL-1-AAAAAA", **overrides):
    data = {
        "bill_number": number,
        "created_at": "2024-01-01T09:00:00+00:00",
        "customer_name": "Meera Iyer",
        "customer_phone": None,
        "room_number": "204",
        "subtotal": "250.00",
        "tax": "12.50",
        "total": "262.50",
        "payment_method": "Room Charge",
        "created_by": "user-1",
        "items": [
            {"item_name": "Masala Dosa", "quantity": 2},
            {"item_name": "Filter Coffee", "quantity": 1},
        ],
    }
    data.update(overrides)
    return data


def test_export_appends_rows(tmp_path):
    manager = ExcelManager(data_dir=tmp_path, filename="bills.xlsx", lock_timeout=5)

    first = manager.export_bill(_bill_data())
    second = manager.export_bill(_bill_data("BILL-2-BBBBBB", customer_name=None, items=[]))

    assert first["success"] and second["success"]
    rows = manager.get_all_bills()
    assert [row["bill_number"] for row in rows] == ["BILL-1-AAAAAA", "BILL-2-BBBBBB"]
    assert rows[0]["items"] == "Masala Dosa x2; Filter Coffee x1"
    assert rows[0]["item_count"] == 3
    assert rows[0]["total"] == 262.5


def test_missing_ledger_reads_empty(tmp_path):
    assert ExcelManager(data_dir=tmp_path / "nested", lock_timeout=5).get_all_bills() == []


def test_lock_timeout_is_reported(tmp_path):
    from filelock import FileLock

    manager = ExcelManager(data_dir=tmp_path, lock_timeout=0)
    manager._ensure_data_dir()

    with FileLock(str(manager.lock_file)):
        result = manager.export_bill(_bill_data())

    assert result["success"] is False
    assert "Lock timeout" in result["message"]


def test_clear_all_removes_ledger(tmp_path):
    manager = ExcelManager(data_dir=tmp_path, lock_timeout=5)
    manager.export_bill(_bill_data())

    assert manager.clear_all() is True
    assert manager.get_all_bills() == []


def _detail():
    return BillDetailResponse(
        id="bill-1",
        bill_number="BILL-1-AAAAAA",
        customer_name=None,
        customer_phone=None,
        room_number=None,
        subtotal=Decimal("50.00"),
        tax=Decimal("2.50"),
        total=Decimal("52.50"),
        payment_method=None,
        created_by="user-1",
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        items=[],
    )


def test_queue_sends_json_ready_payload(monkeypatch):
    sent = []
    monkeypatch.setattr(main.settings, "export_bills_to_excel", True)
    monkeypatch.setattr(main, "export_bill_to_excel", SimpleNamespace(delay=sent.append))

    main.queue_ledger_export(_detail())

    assert sent[0]["bill_number"] == "BILL-1-AAAAAA"
    assert sent[0]["total"] == "52.50"


def test_queue_failure_does_not_raise(monkeypatch, caplog):
    def broken(payload):
        raise ConnectionError("broker unreachable")

    monkeypatch.setattr(main.settings, "export_bills_to_excel", True)
    monkeypatch.setattr(main, "export_bill_to_excel", SimpleNamespace(delay=broken))

    main.queue_ledger_export(_detail())

    assert "Could not queue ledger export" in caplog.text


def test_export_disabled_skips_queue(monkeypatch):
    sent = []
    monkeypatch.setattr(main.settings, "export_bills_to_excel", False)
    monkeypatch.setattr(main, "export_bill_to_excel", SimpleNamespace(delay=sent.append))

    main.queue_ledger_export(_detail())

    assert sent == []


def test_export_task_retries_then_fails_while_ledger_is_locked(tmp_path, monkeypatch):
    from filelock import FileLock

    from hotel_billing import tasks

    attempts = []

    def locked_manager():
        attempts.append(1)
        return ExcelManager(data_dir=tmp_path, lock_timeout=0)

    monkeypatch.setattr(tasks, "ExcelManager", locked_manager)
    lock_file = ExcelManager(data_dir=tmp_path).lock_file

    with FileLock(str(lock_file)):
        result = tasks.export_bill_to_excel.apply(args=[_bill_data()])

    assert result.state == "FAILURE"
    assert isinstance(result.result, tasks.LedgerExportError)
    assert "Lock timeout" in str(result.result)
    assert len(attempts) == tasks.export_bill_to_excel.max_retries + 1


def test_export_task_succeeds_once_written(tmp_path, monkeypatch):
    from hotel_billing import tasks

    monkeypatch.setattr(tasks, "ExcelManager", lambda: ExcelManager(data_dir=tmp_path, lock_timeout=5))

    result = tasks.export_bill_to_excel.apply(args=[_bill_data()])

    assert result.state == "SUCCESS"
    assert result.result["success"] is True
    assert [row["bill_number"] for row in ExcelManager(data_dir=tmp_path).get_all_bills()] == ["BILL-1-AAAAAA"]


def test_worker_routes_tasks_to_ledger_queue():
    from hotel_billing import tasks
    from hotel_billing.celery_worker import LEDGER_QUEUE, celery_app

    conf = celery_app.conf

    assert conf.task_default_queue == LEDGER_QUEUE
    assert conf.task_time_limit > conf.task_soft_time_limit > main.settings.ledger_lock_timeout
    assert conf.beat_schedule["ledger-worker-health"]["task"] == tasks.health_check.name
    assert tasks.export_bill_to_excel.name in celery_app.tasks
