"""
Cas d'usage 'cart': lecture fraîche, mutation, réécriture.
Le panier n'est jamais gardé en mémoire entre deux requêtes.
"""
from typing import Iterable
import logging

from codeskins.cart import repository
from codeskins.cart import models as cart_logic
from codeskins.cart.models import Cart, CartItem, CartOwner
from codeskins.catalog import service as catalog_service
from codeskins.errors import ProductNotFoundError, QuotaExceededError

logger = logging.getLogger(__name__)

def get_cart(owner: CartOwner) -> Cart:
    """Charge le panier du propriétaire; panier vide (non persisté) s'il n'existe pas encore."""
    row = repository.get_cart(owner)
    if not row:
        return Cart(owner=owner)
    items = [CartItem.from_dict(raw) for raw in (row.get("items") or [])]
    return Cart(owner=owner, items=[i for i in items if i.product_id and i.quantity > 0], id=row.get("id"))

def _save(cart: Cart) -> Cart:
    row = repository.save_cart(cart.owner, [i.to_dict() for i in cart.items], cart.total)
    if row and row.get("id"):
        cart.id = row.get("id")
    return cart

def add_to_cart(owner: CartOwner, template_id: str, quantity: int = 1) -> Cart:
    """
    Ajoute un template:
    - 404 si le template n'existe pas ou est inactif
    - 400 si le template a atteint sa limite de ventes (maxSales)
    - 400 si la quantité dépasse le maxDownloads de la licence
    """
    product, license, available = catalog_service.check_availability(template_id)
    if not product.active:
        raise ProductNotFoundError(template_id)
    if not available:
        raise QuotaExceededError(
            "Ce template a atteint sa limite de ventes et n'est plus disponible",
            code="sales_limit_reached",
            status_code=400,
            details={"templateId": product.id},
        )
    cart = get_cart(owner)
    cart_logic.add_item(cart, product, quantity, license)
    return _save(cart)

def update_cart_item(owner: CartOwner, template_id: str, quantity: int) -> Cart:
    cart = get_cart(owner)
    cart_logic.update_quantity(cart, template_id, quantity)
    item = cart.find(template_id)
    product = catalog_service.get_product(template_id)
    license = catalog_service.get_license(product.license_id) if product else None
    if item and license and not license.unlimited_downloads and item.quantity > license.max_downloads:
        raise QuotaExceededError(
            f"Quantité maximale atteinte pour ce template ({license.max_downloads})",
            status_code=400,
            details={"maxDownloads": license.max_downloads, "requested": item.quantity},
        )
    return _save(cart)

def remove_from_cart(owner: CartOwner, template_id: str) -> Cart:
    cart = get_cart(owner)
    if cart.find(template_id) is None:
        return cart
    cart_logic.remove_item(cart, template_id)
    return _save(cart)

def remove_products(owner: CartOwner, template_ids: Iterable[str]) -> Cart:
    """Retire plusieurs templates (ex: après un achat payé via metadata)."""
    ids = {str(t) for t in template_ids}
    cart = get_cart(owner)
    if not any(i.product_id in ids for i in cart.items):
        return cart
    cart.items = [i for i in cart.items if i.product_id not in ids]
    return _save(cart)

def clear_cart(owner: CartOwner) -> Cart:
    """Vide le panier (sans le supprimer). No-op si déjà vide ou inexistant."""
    cart = get_cart(owner)
    if not cart.items:
        return cart
    cart_logic.clear(cart)
    return _save(cart)

def cart_count(owner: CartOwner) -> int:
    return get_cart(owner).count
