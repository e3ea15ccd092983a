import os

# Settings are read once at import time; keep tests off Postgres, Redis and the ledger
os.environ.setdefault("ENV_MODE", "development")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_hotel_billing.db")
os.environ.setdefault("EXPORT_BILLS_TO_EXCEL", "false")

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from hotel_billing import main
from hotel_billing.core.session import SessionRegistry
from hotel_billing.deps import (
    get_auth,
    get_bill_store,
    get_menu_store,
    get_role_store,
    get_session_registry,
)
from hotel_billing.services.auth import MockAuthService, mock_user_id
from tests.fakes import InMemoryBillStore, InMemoryMenuStore, InMemoryRoleStore
from tests.fixtures_data import ADMIN_EMAIL, MOCK_ACCOUNTS, SAMPLE_MENU, STAFF_EMAIL, STAFF_PASSWORD


@pytest.fixture
def api(monkeypatch):
    """The billing app wired to in-memory stores and the mock auth service."""
    menu = InMemoryMenuStore(SAMPLE_MENU)
    bills = InMemoryBillStore()
    roles = InMemoryRoleStore({
        mock_user_id(ADMIN_EMAIL): "admin",
        mock_user_id(STAFF_EMAIL): "staff",
    })
    auth = MockAuthService(MOCK_ACCOUNTS)
    registry = SessionRegistry()
    auth.on_session_change(registry.handle_session_change)

    exported = []
    monkeypatch.setattr(main, "queue_ledger_export", exported.append)

    app = main.app
    app.dependency_overrides[get_menu_store] = lambda: menu
    app.dependency_overrides[get_bill_store] = lambda: bills
    app.dependency_overrides[get_role_store] = lambda: roles
    app.dependency_overrides[get_auth] = lambda: auth
    app.dependency_overrides[get_session_registry] = lambda: registry

    yield SimpleNamespace(
        client=TestClient(app),
        menu=menu,
        bills=bills,
        roles=roles,
        auth=auth,
        registry=registry,
        exported=exported,
    )

    app.dependency_overrides.clear()


@pytest.fixture
def login(api):
    """Sign in through the API; returns the Authorization header of the new session."""
    def _login(email=STAFF_EMAIL, password=STAFF_PASSWORD):
        response = api.client.post("/auth/sign-in", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    return _login
