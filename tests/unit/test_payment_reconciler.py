import logging
import pytest
from codeskins.cart import service as cart_service
from codeskins.cart.models import CartOwner
from codeskins.orders import repository as orders_repo
from codeskins.orders.models import Order, OrderItem, OrderStatus
from codeskins.payments.reconciler import PaymentEventReconciler, ReconcileAction
from codeskins.payments.strategies import FALLBACK_TITLE
from tests.conftest import metadata_for, session_completed_event

OWNER = CartOwner(user_id="u1")

@pytest.fixture()
def reconciler(payment_client):
    return PaymentEventReconciler(payment_client)

def _orders(store):
    return list(store.orders.values())

def _seed_pending(store, payment_id="pi_1", product_id="p1"):
    return store.insert_order(Order(
        customer_id="u1",
        items=[OrderItem(product_id=product_id, title="T", unit_price=25.0)],
        total=25.0,
        currency="USD",
        payment_id=payment_id,
        session_id="cs_pending",
    ).to_row())

def _intent_event(event_type, payment_id):
    return {"type": event_type, "data": {"object": {"id": payment_id}}}

def test_session_completed_creates_completed_order(store, reconciler):
    store.add_template("p1", price=30.0)
    event = session_completed_event("pi_1", 2500, "usd", metadata_for("u1", ["p1"]))

    result = reconciler.handle_event(event)

    assert result.action == ReconcileAction.CREATED
    [order] = _orders(store)
    assert order["total"] == 25.0
    assert order["currency"] == "USD"
    assert order["status"] == "completed"
    assert order["payment_id"] == "pi_1"
    assert order["customer_id"] == "u1"
    # Le total vient de l'événement, pas du prix catalogue courant
    assert order["items"][0]["unitPrice"] == 30.0

def test_redelivery_creates_nothing_new(store, reconciler):
    store.add_template("p1")
    event = session_completed_event("pi_1", 2500, "usd", metadata_for("u1", ["p1"]))

    first = reconciler.handle_event(event)
    second = reconciler.handle_event(event)

    assert first.action == ReconcileAction.CREATED
    assert second.action == ReconcileAction.DUPLICATE
    assert second.order_id == first.order_id
    assert len(store.orders) == 1
    assert len(store.downloads) == 1
    assert store.templates["p1"]["sales"] == 1

def test_duplicate_key_race_is_success(store, reconciler, monkeypatch):
    store.add_template("p1")
    # Un livreur concurrent a inséré entre notre lecture et notre insert
    monkeypatch.setattr(orders_repo, "get_order_by_payment_id", lambda payment_id: None)
    store.insert_order({"payment_id": "pi_1", "customer_id": "u1", "items": [], "total": 25.0, "status": "completed"})

    result = reconciler.handle_event(session_completed_event("pi_1", 2500, "usd", metadata_for("u1", ["p1"])))

    assert result.action == ReconcileAction.DUPLICATE
    assert len(store.orders) == 1
    assert store.downloads == {}

def test_completion_grants_one_entitlement_per_product(store, reconciler):
    store.add_license("lic-pro", max_downloads=5, name="Pro")
    store.add_template("p1")
    store.add_template("p2", license_id="lic-pro")
    event = session_completed_event("pi_1", 4000, "usd", metadata_for("u1", ["p1", "p2"], {"p1": 1, "p2": 2}))

    result = reconciler.handle_event(event)

    records = {d["template_id"]: d for d in store.downloads.values()}
    assert records["p1"]["max_downloads"] == 3
    assert records["p2"]["max_downloads"] == 5
    assert records["p2"]["license_id"] == "lic-pro"
    assert all(r["download_count"] == 0 for r in records.values())
    assert all(r["order_id"] == result.order_id for r in records.values())
    items = store.orders[result.order_id]["items"]
    assert [(i["productId"], i["quantity"]) for i in items] == [("p1", 1), ("p2", 2)]

def test_existing_entitlement_is_not_recredited(store, reconciler):
    store.add_template("p1")
    store.add_entitlement("u1", "p1", "lic-std", download_count=3, max_downloads=3)

    reconciler.handle_event(session_completed_event("pi_2", 1000, "usd", metadata_for("u1", ["p1"])))

    [record] = store.downloads.values()
    assert record["download_count"] == 3

def test_oversell_is_logged_not_fatal(store, reconciler, caplog):
    store.add_license("lic-rare", max_sales=1)
    store.add_template("p1", license_id="lic-rare", sales=1)

    with caplog.at_level(logging.WARNING):
        result = reconciler.handle_event(session_completed_event("pi_1", 1000, "usd", metadata_for("u1", ["p1"])))

    assert result.action == ReconcileAction.CREATED
    assert store.templates["p1"]["sales"] == 1
    assert "oversell" in caplog.text

def test_customer_resolved_by_email(store, reconciler):
    store.add_template("p1")
    store.add_user("u7", "Late@Example.com")
    meta = {"productIds": '["p1"]'}

    result = reconciler.handle_event(session_completed_event("pi_1", 1000, "usd", meta, email="late@example.com"))

    assert result.action == ReconcileAction.CREATED
    assert store.orders[result.order_id]["customer_id"] == "u7"

def test_unknown_customer_is_dropped(store, reconciler, caplog):
    with caplog.at_level(logging.ERROR):
        result = reconciler.handle_event(session_completed_event("pi_1", 1000, "usd", {}, email="ghost@example.com"))
    assert result.action == ReconcileAction.DROPPED
    assert store.orders == {}
    assert "client introuvable" in caplog.text

def test_cart_fallback_then_cart_cleared(store, reconciler):
    store.add_template("p1", price=10.0)
    store.add_template("p2", price=5.0)
    cart_service.add_to_cart(OWNER, "p1", 2)
    cart_service.add_to_cart(OWNER, "p2", 1)

    result = reconciler.handle_event(session_completed_event("pi_1", 2500, "usd", {"userId": "u1"}))

    items = store.orders[result.order_id]["items"]
    assert [(i["productId"], i["quantity"]) for i in items] == [("p1", 2), ("p2", 1)]
    assert store.orders[result.order_id]["metadata"]["source"] == "cart"
    assert cart_service.get_cart(OWNER).items == []
    assert len(store.downloads) == 2

def test_metadata_purchase_only_removes_purchased_lines(store, reconciler):
    store.add_template("p1")
    store.add_template("p2")
    cart_service.add_to_cart(OWNER, "p1")
    cart_service.add_to_cart(OWNER, "p2")

    reconciler.handle_event(session_completed_event("pi_1", 1000, "usd", metadata_for("u1", ["p1"])))

    assert [i.product_id for i in cart_service.get_cart(OWNER).items] == ["p2"]

def test_payment_amount_fallback_single_line(store, reconciler):
    result = reconciler.handle_event(session_completed_event("pi_1", 4999, "eur", {"userId": "u1"}))

    order = store.orders[result.order_id]
    assert order["total"] == 49.99
    assert order["currency"] == "EUR"
    assert order["items"] == [{"productId": "", "title": FALLBACK_TITLE, "unitPrice": 49.99, "quantity": 1}]
    assert store.downloads == {}

def test_cart_kept_when_order_write_fails(store, reconciler, monkeypatch):
    store.add_template("p1")
    cart_service.add_to_cart(OWNER, "p1")

    def broken_insert(row):
        raise RuntimeError("db unavailable")

    monkeypatch.setattr(orders_repo, "insert_order", broken_insert)
    with pytest.raises(RuntimeError):
        reconciler.handle_event(session_completed_event("pi_1", 1000, "usd", {"userId": "u1"}))
    assert [i.product_id for i in cart_service.get_cart(OWNER).items] == ["p1"]

def test_session_id_used_when_no_payment_intent(store, reconciler):
    store.add_template("p1")
    result = reconciler.handle_event(
        session_completed_event(None, 1000, "usd", metadata_for("u1", ["p1"]), session_id="cs_free")
    )
    assert store.orders[result.order_id]["payment_id"] == "cs_free"

def test_session_completed_promotes_registered_pending_order(store, reconciler):
    store.add_template("p1")
    pending = _seed_pending(store)

    result = reconciler.handle_event(session_completed_event("pi_1", 2500, "usd", metadata_for("u1", ["p1"])))

    assert result.action == ReconcileAction.PROMOTED
    assert result.order_id == pending["id"]
    assert len(store.orders) == 1
    assert store.orders[pending["id"]]["status"] == "completed"
    assert len(store.downloads) == 1

def test_payment_succeeded_promotes_pending(store, reconciler):
    store.add_template("p1")
    pending = _seed_pending(store)

    first = reconciler.handle_event(_intent_event("payment_intent.succeeded", "pi_1"))
    again = reconciler.handle_event(_intent_event("payment_intent.succeeded", "pi_1"))

    assert first.action == ReconcileAction.PROMOTED
    assert again.action == ReconcileAction.NOOP
    assert store.orders[pending["id"]]["status"] == "completed"
    assert len(store.downloads) == 1

def test_payment_failed_without_order_creates_nothing(store, reconciler):
    result = reconciler.handle_event(_intent_event("payment_intent.payment_failed", "pi_404"))
    assert result.action == ReconcileAction.NOOP
    assert store.orders == {}

def test_payment_failed_marks_only_its_pending_order(store, reconciler):
    store.add_template("p1")
    pending = _seed_pending(store, payment_id="pi_pending")
    reconciler.handle_event(session_completed_event("pi_done", 1000, "usd", metadata_for("u1", ["p1"])))
    completed_id = next(o["id"] for o in store.orders.values() if o["payment_id"] == "pi_done")

    result = reconciler.handle_event(_intent_event("payment_intent.payment_failed", "pi_pending"))

    assert result.action == ReconcileAction.FAILED
    assert store.orders[pending["id"]]["status"] == "failed"
    assert store.orders[completed_id]["status"] == "completed"

def test_payment_failed_never_moves_completed_backward(store, reconciler):
    store.add_template("p1")
    reconciler.handle_event(session_completed_event("pi_1", 1000, "usd", metadata_for("u1", ["p1"])))
    result = reconciler.handle_event(_intent_event("payment_intent.payment_failed", "pi_1"))
    assert result.action == ReconcileAction.NOOP
    assert _orders(store)[0]["status"] == "completed"

def test_charge_refunded(store, reconciler):
    store.add_template("p1")
    reconciler.handle_event(session_completed_event("pi_1", 1000, "usd", metadata_for("u1", ["p1"])))
    refund = {"type": "charge.refunded", "data": {"object": {"id": "ch_1", "payment_intent": "pi_1"}}}

    assert reconciler.handle_event(refund).action == ReconcileAction.REFUNDED
    assert reconciler.handle_event(refund).action == ReconcileAction.NOOP
    assert _orders(store)[0]["status"] == "refunded"

def test_unhandled_event_type_is_ignored(store, reconciler):
    result = reconciler.handle_event({"type": "customer.created", "data": {"object": {"id": "cus_1"}}})
    assert result.action == ReconcileAction.IGNORED

def test_process_rejects_unsigned_payload(reconciler):
    from codeskins.errors import InvalidSignatureError
    with pytest.raises(InvalidSignatureError):
        reconciler.process(b'{"type": "checkout.session.completed"}', None)

def test_redelivery_repairs_a_failed_grant(store, reconciler, monkeypatch):
    from codeskins.entitlements import repository as entitlements_repo
    store.add_template("p1")
    event = session_completed_event("pi_1", 2500, "usd", metadata_for("u1", ["p1"]))

    def supabase_down(row):
        raise RuntimeError("connection reset")

    monkeypatch.setattr(entitlements_repo, "insert_entitlement", supabase_down)
    first = reconciler.handle_event(event)
    assert first.action == ReconcileAction.CREATED
    assert store.downloads == {}
    progress = store.orders[first.order_id]["metadata"]["fulfillment"]
    assert progress["complete"] is False
    assert progress["salesCounted"] == []

    monkeypatch.setattr(entitlements_repo, "insert_entitlement", store.insert_entitlement)
    second = reconciler.handle_event(event)

    assert second.action == ReconcileAction.REPAIRED
    assert second.order_id == first.order_id
    assert len(store.downloads) == 1
    assert store.templates["p1"]["sales"] == 1
    assert store.orders[first.order_id]["metadata"]["fulfillment"]["complete"] is True
    assert reconciler.handle_event(event).action == ReconcileAction.DUPLICATE

def test_repair_never_counts_a_sale_twice(store, reconciler):
    store.add_template("p1")
    store.add_template("p2")
    store.insert_order({
        "payment_id": "pi_1", "customer_id": "u1", "total": 20.0, "currency": "USD", "status": "completed",
        "items": [{"productId": "p1", "title": "T1", "unitPrice": 10.0},
                  {"productId": "p2", "title": "T2", "unitPrice": 10.0}],
        "metadata": {"source": "metadata",
                     "fulfillment": {"granted": ["p1"], "salesCounted": ["p1"], "complete": False}},
    })
    store.add_entitlement("u1", "p1", "lic-std", max_downloads=3)
    store.templates["p1"]["sales"] = 1

    result = reconciler.handle_event(session_completed_event("pi_1", 2000, "usd", metadata_for("u1", ["p1", "p2"])))

    assert result.action == ReconcileAction.REPAIRED
    assert (store.templates["p1"]["sales"], store.templates["p2"]["sales"]) == (1, 1)
    assert len(store.downloads) == 2
    progress = next(iter(store.orders.values()))["metadata"]["fulfillment"]
    assert progress["salesCounted"] == ["p1", "p2"]
    assert progress["complete"] is True
