"""
                        Services Module

Collaborators of the billing core, each behind an abstract base class.

Services:
    - auth: Mock (development) and hosted (staging/production) authentication
    - storage: SQLAlchemy menu, bill and role stores
    - excel_manager: Lock-guarded Excel bill ledger
"""

from hotel_billing.services.excel_manager import ExcelManager

__all__ = ["ExcelManager"]
