"""
Celery Tasks
Background export of issued bills to the Excel ledger.
"""

import logging
import time
from datetime import datetime

from hotel_billing.celery_worker import celery_app
from hotel_billing.services.excel_manager import ExcelManager

logger = logging.getLogger(__name__)


class LedgerExportError(Exception):
    """A bill could not be written to the ledger (e.g. lock timeout)."""


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=5,
    autoretry_for=(Exception,),
    retry_backoff=True
)
def export_bill_to_excel(self, bill_data: dict) -> dict:
    """
    Append a bill to the Excel ledger.
    This task runs asynchronously via Celery worker.

    A failed write raises LedgerExportError so the task is retried with
    backoff; after the last retry the task ends in FAILURE.

    Args:
        bill_data: Bill header fields plus an ``items`` list

    Returns:
        dict: Result of the export operation
    """
    task_id = self.request.id
    bill_number = bill_data.get('bill_number', 'unknown')

    logger.info(f"Task {task_id}: exporting bill {bill_number} (attempt {self.request.retries + 1})")
    start_time = time.time()

    result = ExcelManager().export_bill(bill_data)

    elapsed = round(time.time() - start_time, 3)
    result['task_id'] = task_id
    result['processing_time_seconds'] = elapsed

    if not result['success']:
        logger.warning(f"Task {task_id}: bill {bill_number} not exported - {result['message']}")
        raise LedgerExportError(f"Bill {bill_number}: {result['message']}")

    logger.info(f"Task {task_id}: bill {bill_number} exported in {elapsed}s")
    return result


@celery_app.task
def health_check() -> dict:
    """
    Simple health check task to verify Celery is working.
    """
    return {
        'status': 'healthy',
        'worker': 'celery',
        'timestamp': datetime.now().isoformat()
    }


@celery_app.task
def clear_ledger() -> dict:
    """
    Delete the Excel ledger (for testing/reset purposes).
    """
    success = ExcelManager().clear_all()
    return {
        'success': success,
        'message': 'Bill ledger cleared' if success else 'Failed to clear bill ledger',
        'timestamp': datetime.now().isoformat()
    }
