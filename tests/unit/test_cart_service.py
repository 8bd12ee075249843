import pytest
from codeskins.cart import service as cart_service
from codeskins.cart.models import CartOwner
from codeskins.errors import ProductNotFoundError, QuotaExceededError

OWNER = CartOwner(user_id="u1")

def test_scenario_add_two_templates_total(store):
    store.add_template("p1", price=10.0)
    store.add_template("p2", price=5.5)

    cart_service.add_to_cart(OWNER, "p1", 2)
    cart = cart_service.add_to_cart(OWNER, "p2", 1)

    assert cart.total == 25.5
    assert [(i.product_id, i.quantity) for i in cart.items] == [("p1", 2), ("p2", 1)]
    # Le total persisté suit les lignes
    assert store.carts[("user_id", "u1")]["total"] == 25.5

def test_cart_is_created_lazily(store):
    assert cart_service.get_cart(OWNER).items == []
    assert store.carts == {}
    store.add_template("p1")
    cart_service.add_to_cart(OWNER, "p1")
    assert ("user_id", "u1") in store.carts

def test_snapshot_price_survives_catalog_change(store):
    store.add_template("p1", price=10.0)
    cart_service.add_to_cart(OWNER, "p1")
    store.templates["p1"]["price"] = 99.0
    assert cart_service.get_cart(OWNER).total == 10.0

def test_add_unknown_or_inactive_template(store):
    store.add_template("p-off", is_active=False)
    with pytest.raises(ProductNotFoundError):
        cart_service.add_to_cart(OWNER, "missing")
    with pytest.raises(ProductNotFoundError):
        cart_service.add_to_cart(OWNER, "p-off")

def test_add_sold_out_template(store):
    store.add_license("lic-rare", max_downloads=1, max_sales=2)
    store.add_template("p1", license_id="lic-rare", sales=2)
    with pytest.raises(QuotaExceededError) as exc:
        cart_service.add_to_cart(OWNER, "p1")
    assert exc.value.code == "sales_limit_reached"
    assert exc.value.status_code == 400

def test_update_cannot_exceed_license_max(store):
    store.add_template("p1")  # lic-std: max_downloads=3
    cart_service.add_to_cart(OWNER, "p1", 1)
    with pytest.raises(QuotaExceededError):
        cart_service.update_cart_item(OWNER, "p1", 4)
    assert cart_service.update_cart_item(OWNER, "p1", 3).count == 3

def test_remove_products_keeps_other_lines(store):
    for pid in ("p1", "p2", "p3"):
        store.add_template(pid)
        cart_service.add_to_cart(OWNER, pid)
    cart = cart_service.remove_products(OWNER, ["p1", "p3"])
    assert [i.product_id for i in cart.items] == ["p2"]

def test_clear_keeps_the_cart_row(store):
    store.add_template("p1")
    cart_service.add_to_cart(OWNER, "p1")
    cart = cart_service.clear_cart(OWNER)
    assert cart.items == [] and cart.total == 0
    assert store.carts[("user_id", "u1")]["items"] == []

def test_anonymous_and_user_carts_are_separate(store):
    store.add_template("p1")
    guest = CartOwner(session_id="sess-1")
    cart_service.add_to_cart(guest, "p1", 2)
    assert cart_service.cart_count(guest) == 2
    assert cart_service.cart_count(OWNER) == 0
