"""
Excel Bill Ledger with Concurrency Control

Appends one row per issued bill to an Excel workbook. Several Celery
workers may export at once, so every read-modify-write of the workbook
happens under a file lock.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import pandas as pd
from filelock import FileLock, Timeout

from hotel_billing.core.config import get_settings

logger = logging.getLogger(__name__)


class ExcelManager:
    """Lock-guarded Excel bill ledger."""

    LEDGER_COLUMNS = [
        "bill_number",
        "date_time",
        "customer_name",
        "customer_phone",
        "room_number",
        "items",
        "item_count",
        "subtotal",
        "tax",
        "total",
        "payment_method",
        "created_by",
        "exported_at",
    ]

    def __init__(self, data_dir: Optional[Path] = None, filename: Optional[str] = None, lock_timeout: Optional[int] = None):
        settings = get_settings()
        self.data_dir = Path(data_dir or settings.data_directory)
        self.ledger_file = self.data_dir / (filename or settings.ledger_filename)
        self.lock_file = self.data_dir / f"{self.ledger_file.name}.lock"
        self.lock_timeout = lock_timeout if lock_timeout is not None else settings.ledger_lock_timeout

    def _ensure_data_dir(self) -> None:
        """Create data directory if needed."""
        if not self.data_dir.exists():
            self.data_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created data directory: {self.data_dir}")

    def _load_or_create_df(self) -> pd.DataFrame:
        """Load the existing ledger or start an empty one."""
        if self.ledger_file.exists():
            try:
                return pd.read_excel(self.ledger_file, engine="openpyxl")
            except Exception as e:
                logger.warning(f"Error reading {self.ledger_file}: {e}")
        return pd.DataFrame(columns=self.LEDGER_COLUMNS)

    @staticmethod
    def summarize_items(items: list[dict[str, Any]]) -> str:
        """One-cell item summary, e.g. ``Masala Dosa x2; Filter Coffee x1``."""
        return "; ".join(f"{item.get('item_name')} x{item.get('quantity')}" for item in items)

    def export_bill(self, bill_data: dict[str, Any]) -> dict[str, Any]:
        """Append a bill to the ledger under the file lock."""
        self._ensure_data_dir()

        bill_number = bill_data.get("bill_number", "unknown")
        items = bill_data.get("items") or []
        result = {
            "success": False,
            "message": "",
            "bill_number": bill_number,
            "exported_at": None,
        }

        try:
            lock = FileLock(str(self.lock_file), timeout=self.lock_timeout)

            with lock:
                logger.debug(f"Lock acquired for bill {bill_number}")

                df = self._load_or_create_df()

                export_time = datetime.now().isoformat()
                new_row = {
                    "bill_number": bill_number,
                    "date_time": bill_data.get("created_at", export_time),
                    "customer_name": bill_data.get("customer_name"),
                    "customer_phone": bill_data.get("customer_phone"),
                    "room_number": bill_data.get("room_number"),
                    "items": self.summarize_items(items),
                    "item_count": sum(int(item.get("quantity", 0)) for item in items),
                    "subtotal": float(bill_data.get("subtotal", 0)),
                    "tax": float(bill_data.get("tax", 0)),
                    "total": float(bill_data.get("total", 0)),
                    "payment_method": bill_data.get("payment_method"),
                    "created_by": bill_data.get("created_by"),
                    "exported_at": export_time,
                }

                df = pd.concat([df, pd.DataFrame([new_row])], ignore_index=True)
                df.to_excel(str(self.ledger_file), index=False, engine="openpyxl")

                logger.info(f"Bill {bill_number} exported to Excel")

                result["success"] = True
                result["message"] = f"Bill {bill_number} exported"
                result["exported_at"] = export_time

            logger.debug(f"Lock released for bill {bill_number}")

        except Timeout:
            result["message"] = f"Lock timeout ({self.lock_timeout}s)"
            logger.error(f"Lock timeout for bill {bill_number}")

        except Exception as e:
            result["message"] = str(e)
            logger.exception(f"Error exporting bill {bill_number}")

        return result

    def get_all_bills(self) -> list[dict[str, Any]]:
        """Read every ledger row."""
        if not self.ledger_file.exists():
            return []

        try:
            df = pd.read_excel(self.ledger_file, engine="openpyxl")
            return df.to_dict("records")
        except Exception as e:
            logger.error(f"Error reading ledger: {e}")
            return []

    def clear_all(self) -> bool:
        """Delete the ledger and its lock file."""
        try:
            for f in [self.ledger_file, self.lock_file]:
                if f.exists():
                    f.unlink()
            logger.info("Bill ledger cleared")
            return True
        except OSError as e:
            logger.error(f"Error clearing ledger: {e}")
            return False
