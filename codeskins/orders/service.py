"""Couche service des commandes.
Rôles:
- Enregistrer une commande « pending » avant paiement (appel explicite authentifié).
- Lire les commandes (propriétaire ou admin), statistiques, lookup par session Stripe.
- Appliquer les transitions de statut: pending -> {completed, failed}, completed -> refunded.
Les commandes ne sont jamais supprimées; items et total ne changent jamais après création.
"""
from typing import Any, Dict, Iterable, Optional
import logging
import math

from codeskins.catalog import service as catalog_service
from codeskins.errors import (
    DuplicatePaymentError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    OrderNotFoundError,
    ValidationError,
)
from codeskins.orders import repository
from codeskins.orders.models import Order, OrderItem, OrderStatus, can_transition
from codeskins.utils.security import is_admin

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100

def _parse_status(value: Any) -> OrderStatus:
    try:
        return OrderStatus(str(value))
    except ValueError:
        raise ValidationError(f"Statut invalide: {value}", code="invalid_status")

def _check_access(user: Dict[str, Any], order: Order) -> None:
    if order.customer_id != str(user.get("id")) and not is_admin(user):
        raise ForbiddenError("Accès refusé à cette commande")

def find_by_payment_id(payment_id: str) -> Optional[Order]:
    row = repository.get_order_by_payment_id(payment_id)
    return Order.from_row(row) if row else None

def create_order(order: Order) -> Order:
    """Persiste une commande. DuplicatePaymentError remonte si payment_id existe déjà."""
    row = repository.insert_order(order.to_row())
    created = Order.from_row(row)
    logger.info("orders.create id=%s payment_id=%s status=%s", created.id, created.payment_id, created.status.value)
    return created

def register_order(
    user: Dict[str, Any],
    items: Iterable[Dict[str, Any]],
    total: float,
    currency: str,
    payment_id: str,
    session_id: Optional[str] = None,
    payment_method: str = "stripe",
) -> Order:
    """
    Enregistre une commande 'pending' avant confirmation du paiement.
    - 400 si aucun article
    - 404 si un template est introuvable/inactif (liste des IDs)
    - 409 si une commande existe déjà pour ce payment_id
    """
    lines = [OrderItem.from_dict(i) for i in items]
    lines = [i for i in lines if i.product_id]
    if not lines:
        raise ValidationError("La commande doit contenir au moins un article")
    if not payment_id:
        raise ValidationError("paymentId requis")

    products = catalog_service.get_products(i.product_id for i in lines)
    missing = [i.product_id for i in lines if i.product_id not in products or not products[i.product_id].active]
    if missing:
        raise NotFoundError(
            "Templates introuvables: " + ", ".join(missing),
            code="product_not_found",
            details={"productIds": missing},
        )

    if repository.get_order_by_payment_id(payment_id):
        raise DuplicatePaymentError(payment_id)

    order = Order(
        customer_id=str(user.get("id")),
        items=lines,
        total=round(float(total), 2),
        currency=(currency or "usd").upper(),
        payment_id=payment_id,
        session_id=session_id,
        status=OrderStatus.PENDING,
        payment_method=payment_method or "stripe",
        customer_email=user.get("email"),
    )
    return create_order(order)

def get_order(user: Dict[str, Any], order_id: str) -> Order:
    row = repository.get_order(order_id)
    if not row:
        raise OrderNotFoundError()
    order = Order.from_row(row)
    _check_access(user, order)
    return order

def get_order_by_session(user: Dict[str, Any], session_id: str) -> Order:
    row = repository.get_order_by_session_id(session_id)
    if not row:
        raise OrderNotFoundError("Commande introuvable pour cette session")
    order = Order.from_row(row)
    _check_access(user, order)
    return order

def list_orders(user: Dict[str, Any], status: Optional[str] = None, page: int = 1, limit: int = 10) -> Dict[str, Any]:
    """Les clients ne voient que leurs commandes; un admin voit tout."""
    page = max(int(page or 1), 1)
    limit = min(max(int(limit or 10), 1), MAX_PAGE_SIZE)
    status_value = _parse_status(status).value if status else None
    customer_id = None if is_admin(user) else str(user.get("id"))
    rows, count = repository.list_orders(customer_id, status_value, (page - 1) * limit, limit)
    return {
        "orders": [Order.from_row(r).to_dict() for r in rows],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": count,
            "pages": math.ceil(count / limit) if count else 0,
        },
    }

def order_stats(user: Dict[str, Any]) -> Dict[str, Any]:
    customer_id = None if is_admin(user) else str(user.get("id"))
    rows = repository.list_status_totals(customer_id)
    by_status = {s.value: 0 for s in OrderStatus}
    revenue = 0.0
    for row in rows:
        status = row.get("status")
        if status in by_status:
            by_status[status] += 1
        if status == OrderStatus.COMPLETED.value:
            revenue += float(row.get("total") or 0)
    return {"totalOrders": len(rows), "byStatus": by_status, "totalRevenue": round(revenue, 2)}

def transition(order: Order, target: OrderStatus) -> Optional[Order]:
    """
    Applique une transition autorisée par compare-and-set sur le statut courant.
    - InvalidTransitionError si la transition n'est pas permise depuis order.status
    - None si le statut a changé entre la lecture et l'écriture (un autre écrivain a gagné)
    """
    if not can_transition(order.status, target):
        raise InvalidTransitionError(order.status.value, target.value)
    row = repository.update_order_status(str(order.id), order.status.value, target.value)
    if not row:
        logger.info("orders.transition lost id=%s %s->%s", order.id, order.status.value, target.value)
        return None
    logger.info("orders.transition id=%s %s->%s", order.id, order.status.value, target.value)
    return Order.from_row(row)

def change_status(user: Dict[str, Any], order_id: str, status: Any) -> Order:
    """Changement de statut manuel (admin uniquement); 409 si la transition est invalide."""
    if not is_admin(user):
        raise ForbiddenError("Seul un administrateur peut modifier le statut d'une commande")
    target = _parse_status(status)
    row = repository.get_order(order_id)
    if not row:
        raise OrderNotFoundError()
    order = Order.from_row(row)
    updated = transition(order, target)
    if updated is None:
        fresh = repository.get_order(order_id) or row
        raise InvalidTransitionError(str(fresh.get("status")), target.value)
    return updated

def record_fulfillment(order: Order, progress: Dict[str, Any]) -> None:
    """Enregistre l'état du fulfillment dans metadata['fulfillment'] (les autres clés sont conservées)."""
    metadata = dict(order.metadata or {})
    metadata["fulfillment"] = progress
    repository.update_order_metadata(str(order.id), metadata)
