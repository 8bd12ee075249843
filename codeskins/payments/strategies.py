"""
Stratégie de construction d'une commande à partir d'un paiement confirmé.
Résolue une seule fois par événement, par ordre de préférence:
- METADATA: productIds portés par la session Stripe (ne dépend pas du panier)
- CART: contenu courant du panier du client
- PAYMENT_AMOUNT: une ligne unique issue du montant payé (aucun paiement non documenté)
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping
import logging

from codeskins.cart import service as cart_service
from codeskins.cart.models import CartOwner
from codeskins.catalog import service as catalog_service
from codeskins.orders.models import OrderItem

logger = logging.getLogger(__name__)

FALLBACK_TITLE = "Template Purchase"


class OrderSource(str, Enum):
    METADATA = "metadata"
    CART = "cart"
    PAYMENT_AMOUNT = "payment_amount"


@dataclass(frozen=True)
class OrderPlan:
    source: OrderSource
    items: List[OrderItem]
    quantities: Dict[str, int] = field(default_factory=dict)

    @property
    def product_ids(self) -> List[str]:
        return [i.product_id for i in self.items if i.product_id]


def _from_metadata(product_ids: List[str], quantities: Mapping[str, int]) -> OrderPlan:
    products = catalog_service.get_products(product_ids)
    items: List[OrderItem] = []
    resolved: Dict[str, int] = {}
    for pid in dict.fromkeys(product_ids):
        qty = int(quantities.get(pid) or 1)
        product = products.get(pid)
        if product is None:
            # Template supprimé depuis le checkout: la ligne reste documentée
            logger.warning("payments.strategies unknown product in metadata id=%s", pid)
            items.append(OrderItem(product_id=pid, title=pid, unit_price=0.0, quantity=qty))
        else:
            items.append(OrderItem(product_id=pid, title=product.title, unit_price=product.price, quantity=qty))
        resolved[pid] = qty
    return OrderPlan(OrderSource.METADATA, items, resolved)


def _from_cart(customer_id: str) -> OrderPlan:
    cart = cart_service.get_cart(CartOwner(user_id=customer_id))
    items = [
        OrderItem(product_id=i.product_id, title=i.title, unit_price=i.unit_price, quantity=i.quantity)
        for i in cart.items
    ]
    return OrderPlan(OrderSource.CART, items, {i.product_id: i.quantity for i in cart.items})


def _from_amount(total: float) -> OrderPlan:
    return OrderPlan(
        OrderSource.PAYMENT_AMOUNT,
        [OrderItem(product_id="", title=FALLBACK_TITLE, unit_price=total, quantity=1)],
    )


def resolve_plan(
    customer_id: str,
    product_ids: List[str],
    quantities: Mapping[str, int],
    total: float,
) -> OrderPlan:
    if product_ids:
        return _from_metadata(product_ids, quantities)
    plan = _from_cart(customer_id)
    if plan.items:
        return plan
    logger.warning("payments.strategies fallback single line customer_id=%s total=%s", customer_id, total)
    return _from_amount(total)
