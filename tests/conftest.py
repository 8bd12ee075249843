import hashlib
import hmac
import json
import os
import time
from typing import Any, Dict, Generator, Optional
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

# Pas de Redis pendant les tests (lifespan)
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")

from codeskins.app_setup.factory import create_app
from codeskins.payments.client import PaymentClient
from codeskins.utils.security import get_optional_user, require_user
from tests.fakes import FakeStore

WEBHOOK_SECRET = "whsec_test_secret"

CUSTOMER: Dict[str, Any] = {"id": "u1", "email": "buyer@example.com", "role": "customer", "token": "fake-token"}
ADMIN: Dict[str, Any] = {"id": "admin-1", "email": "admin@example.com", "role": "admin", "token": "fake-admin-token"}

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)

def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """En-tête Stripe-Signature (t=...,v1=HMAC-SHA256(secret, 't.payload'))."""
    ts = int(timestamp if timestamp is not None else time.time())
    sig = hmac.new(secret.encode("utf-8"), f"{ts}.{payload}".encode("utf-8"), hashlib.sha256).hexdigest()
    return f"t={ts},v1={sig}"

def session_completed_event(
    payment_intent: Optional[str] = "pi_1",
    amount_total: int = 2500,
    currency: str = "usd",
    metadata: Optional[Dict[str, Any]] = None,
    email: Optional[str] = "buyer@example.com",
    session_id: str = "cs_test_1",
) -> Dict[str, Any]:
    return {
        "id": f"evt_{session_id}",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": session_id,
                "payment_intent": payment_intent,
                "amount_total": amount_total,
                "currency": currency,
                "customer_details": {"email": email},
                "metadata": metadata if metadata is not None else {},
            }
        },
    }

def metadata_for(user_id: str, product_ids, quantities=None) -> Dict[str, str]:
    meta = {"userId": user_id, "productIds": json.dumps(list(product_ids))}
    if quantities is not None:
        meta["quantities"] = json.dumps(quantities)
    return meta

@pytest.fixture()
def payment_client() -> PaymentClient:
    return PaymentClient(secret_key="sk_test_dummy", webhook_secret=WEBHOOK_SECRET, currency="usd", tolerance=300)

@pytest.fixture()
def app(payment_client):
    return create_app(payment_client=payment_client)

@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c

# Simuler un utilisateur authentifié pour les endpoints protégés
@pytest.fixture(autouse=True)
def _override_auth(request):
    if "app" not in request.fixturenames:
        yield
        return
    app = request.getfixturevalue("app")
    app.dependency_overrides[require_user] = lambda: CUSTOMER
    app.dependency_overrides[get_optional_user] = lambda: CUSTOMER
    try:
        yield
    finally:
        app.dependency_overrides.clear()

@pytest.fixture
def as_admin(app):
    app.dependency_overrides[require_user] = lambda: ADMIN
    app.dependency_overrides[get_optional_user] = lambda: ADMIN
    return ADMIN

@pytest.fixture
def anonymous(app):
    """Visiteur non connecté: panier porté par le cookie cart_session."""
    app.dependency_overrides[get_optional_user] = lambda: None
    return None

# Aucune requête Supabase réelle: les repositories sont servis par le store en mémoire
@pytest.fixture(autouse=True)
def store(monkeypatch) -> FakeStore:
    monkeypatch.setattr("codeskins.infra.supabase_client.get_supabase", lambda: MagicMock())
    monkeypatch.setattr("codeskins.infra.supabase_client.get_service_supabase", lambda: MagicMock())
    fake = FakeStore().install(monkeypatch)
    fake.add_license("lic-std", max_downloads=3, max_sales=-1, name="Standard", price=0)
    fake.add_user("u1", "buyer@example.com")
    return fake
