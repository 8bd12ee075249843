import pytest
from codeskins.cart import models as cart_logic
from codeskins.cart.models import Cart, CartOwner
from codeskins.catalog.models import LicenseTerms, Product
from codeskins.errors import CartItemNotFoundError, InvalidQuantityError, QuotaExceededError

def _product(pid="p1", price=10.0, **kw):
    return Product(id=pid, title=f"Template {pid}", price=price, active=True, category="blog", tags=["dark"], **kw)

def _cart():
    return Cart(owner=CartOwner(user_id="u1"))

def test_owner_requires_user_or_session():
    with pytest.raises(ValueError):
        CartOwner()
    assert CartOwner(session_id="s1").column == "session_id"
    assert CartOwner(user_id="u1", session_id="s1").column == "user_id"

def test_add_item_snapshots_product():
    cart = cart_logic.add_item(_cart(), _product(), 2)
    item = cart.find("p1")
    assert item.title == "Template p1"
    assert item.unit_price == 10.0
    assert item.category == "blog" and item.tags == ["dark"]
    assert cart.total == 20.0

def test_add_same_product_merges_quantity():
    cart = _cart()
    cart_logic.add_item(cart, _product(), 1)
    cart_logic.add_item(cart, _product(), 2)
    assert len(cart.items) == 1
    assert cart.find("p1").quantity == 3
    assert cart.count == 3

def test_total_is_sum_of_lines_after_every_mutation():
    cart = _cart()
    cart_logic.add_item(cart, _product("p1", 10.0), 2)
    cart_logic.add_item(cart, _product("p2", 5.5), 1)
    assert cart.total == 25.5
    cart_logic.update_quantity(cart, "p2", 3)
    assert cart.total == 36.5
    cart_logic.remove_item(cart, "p1")
    assert cart.total == 16.5
    cart_logic.clear(cart)
    assert cart.total == 0
    assert cart.items == []

def test_insertion_order_is_kept():
    cart = _cart()
    for pid in ("p3", "p1", "p2"):
        cart_logic.add_item(cart, _product(pid), 1)
    assert [i.product_id for i in cart.items] == ["p3", "p1", "p2"]

@pytest.mark.parametrize("qty", [0, -1])
def test_add_rejects_non_positive_quantity(qty):
    with pytest.raises(InvalidQuantityError):
        cart_logic.add_item(_cart(), _product(), qty)

def test_add_beyond_license_max_downloads():
    license = LicenseTerms(id="lic", name="Personal", active=True, price=0, max_downloads=2)
    cart = _cart()
    cart_logic.add_item(cart, _product(), 2, license)
    with pytest.raises(QuotaExceededError) as exc:
        cart_logic.add_item(cart, _product(), 1, license)
    assert exc.value.status_code == 400
    # Le panier n'est pas modifié par l'ajout refusé
    assert cart.find("p1").quantity == 2

def test_unlimited_license_does_not_cap_quantity():
    license = LicenseTerms(id="lic", name="Extended", active=True, price=0, max_downloads=-1)
    cart = cart_logic.add_item(_cart(), _product(), 50, license)
    assert cart.count == 50

def test_update_quantity_errors():
    cart = cart_logic.add_item(_cart(), _product(), 1)
    with pytest.raises(InvalidQuantityError):
        cart_logic.update_quantity(cart, "p1", 0)
    with pytest.raises(CartItemNotFoundError):
        cart_logic.update_quantity(cart, "missing", 2)

def test_remove_is_idempotent():
    cart = cart_logic.add_item(_cart(), _product(), 1)
    cart_logic.remove_item(cart, "missing")
    cart_logic.remove_item(cart, "p1")
    cart_logic.remove_item(cart, "p1")
    assert cart.items == []

def test_to_dict_round_trip_through_storage_shape():
    cart = cart_logic.add_item(_cart(), _product(), 2)
    data = cart.to_dict()
    assert data["items"][0]["templateId"] == "p1"
    assert data["items"][0]["price"] == 10.0
    assert data["total"] == 20.0 and data["count"] == 2
