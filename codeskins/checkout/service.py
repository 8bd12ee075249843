"""
Initiation du checkout Stripe.
1) Validation tout-ou-rien: chaque template doit exister, être actif et achetable;
   sinon ProductUnavailableError listant tous les IDs en échec (aucune session créée).
2) Requête Stripe: line_items au prix catalogue (centimes), email client,
   metadata {userId, productIds, quantities}, URLs de succès/annulation.
3) Retour {url, sessionId}. Aucune commande n'est créée à cette étape.
"""
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Mapping, Optional
import logging

from codeskins.cart import service as cart_service
from codeskins.cart.models import CartOwner
from codeskins.catalog import service as catalog_service
from codeskins.catalog.models import Product
from codeskins.config import CHECKOUT_CANCEL_PATH, CHECKOUT_SUCCESS_PATH, FRONTEND_URL
from codeskins.errors import InvalidQuantityError, ProductUnavailableError, ValidationError
from codeskins.payments import metadata as payments_metadata
from codeskins.payments.client import PaymentClient

logger = logging.getLogger(__name__)

def aggregate_quantities(items: Iterable[Mapping[str, Any]]) -> "OrderedDict[str, int]":
    """
    Agrège les quantités par templateId (ordre de première apparition conservé).
    Lève InvalidQuantityError pour une quantité non entière ou <= 0.
    """
    quantities: "OrderedDict[str, int]" = OrderedDict()
    for item in items:
        pid = str(item.get("templateId") or item.get("productId") or item.get("id") or "").strip()
        if not pid:
            continue
        raw = item.get("quantity", 1)
        try:
            qty = int(raw)
        except (TypeError, ValueError):
            raise InvalidQuantityError(raw)
        if qty <= 0:
            raise InvalidQuantityError(raw)
        quantities[pid] = quantities.get(pid, 0) + qty
    return quantities

def to_line_items(products: Mapping[str, Product], quantities: Mapping[str, int], currency: str) -> List[Dict[str, Any]]:
    """Lignes Stripe price_data; le prix vient toujours du catalogue, jamais du client."""
    return [
        {
            "price_data": {
                "currency": currency,
                "product_data": {"name": products[pid].title},
                "unit_amount": int(round(products[pid].price * 100)),
            },
            "quantity": qty,
        }
        for pid, qty in quantities.items()
    ]

def create_checkout_session(
    client: PaymentClient,
    user: Dict[str, Any],
    items: Optional[List[Mapping[str, Any]]] = None,
) -> Dict[str, Any]:
    """
    items: [{templateId, quantity, ...}]; si absent, le panier serveur de l'utilisateur.
    Erreurs: ValidationError (vide), ProductUnavailableError, UpstreamError (Stripe).
    """
    if items is None:
        cart = cart_service.get_cart(CartOwner(user_id=str(user.get("id"))))
        items = [{"templateId": i.product_id, "quantity": i.quantity} for i in cart.items]
    quantities = aggregate_quantities(items)
    if not quantities:
        raise ValidationError("Aucun article à payer", code="empty_cart")

    failed = catalog_service.unavailable_ids(quantities.keys())
    if failed:
        logger.info("checkout.unavailable user_id=%s ids=%s", user.get("id"), failed)
        raise ProductUnavailableError(failed)

    products = catalog_service.get_products(quantities.keys())
    session = client.create_checkout_session(
        line_items=to_line_items(products, quantities, client.currency),
        customer_email=user.get("email"),
        metadata=payments_metadata.make_metadata(str(user.get("id")), quantities),
        success_url=f"{FRONTEND_URL}{CHECKOUT_SUCCESS_PATH}",
        cancel_url=f"{FRONTEND_URL}{CHECKOUT_CANCEL_PATH}",
    )
    logger.info("checkout.session user_id=%s session_id=%s items=%s", user.get("id"), session.get("sessionId"), len(quantities))
    return session
