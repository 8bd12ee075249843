# module codeskins.orders.views
"""Endpoints des commandes.
- POST /api/v1/orders: enregistre une commande « pending » avant paiement.
- GET: liste paginée, statistiques, lookup par session Stripe, détail.
- PATCH /{id}: transition de statut (admin uniquement).
Aucun endpoint de suppression: une commande n'est jamais effacée.
"""
from typing import Any, Dict, List, Optional
import logging

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from codeskins.orders import service as orders_service
from codeskins.orders.models import OrderStatus
from codeskins.payments import fulfillment
from codeskins.utils.responses import ok
from codeskins.utils.security import require_user

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/orders", tags=["Orders"])


class OrderItemIn(BaseModel):
    templateId: str = Field(min_length=1)
    title: str = ""
    price: float = Field(ge=0)
    quantity: int = Field(default=1, ge=1)


class RegisterOrderRequest(BaseModel):
    items: List[OrderItemIn] = Field(min_length=1)
    total: float = Field(ge=0)
    currency: str = "USD"
    paymentId: str = Field(min_length=1)
    sessionId: Optional[str] = None
    paymentMethod: str = "stripe"


class UpdateOrderStatusRequest(BaseModel):
    status: str


@router.post("", status_code=201)
def register_order(body: RegisterOrderRequest, user: Dict[str, Any] = Depends(require_user)):
    order = orders_service.register_order(
        user,
        [i.model_dump() for i in body.items],
        body.total,
        body.currency,
        body.paymentId,
        session_id=body.sessionId,
        payment_method=body.paymentMethod,
    )
    return ok({"order": order.to_dict()}, message="Commande enregistrée")


@router.get("")
def list_orders(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: Dict[str, Any] = Depends(require_user),
):
    return ok(orders_service.list_orders(user, status, page, limit))


@router.get("/stats/summary")
def order_stats(user: Dict[str, Any] = Depends(require_user)):
    return ok(orders_service.order_stats(user))


@router.get("/session/{session_id}")
def get_order_by_session(session_id: str, user: Dict[str, Any] = Depends(require_user)):
    """Page de succès du checkout: le statut reste lisible même en « pending »."""
    order = orders_service.get_order_by_session(user, session_id)
    return ok({"order": order.to_dict()})


@router.get("/{order_id}")
def get_order(order_id: str, user: Dict[str, Any] = Depends(require_user)):
    order = orders_service.get_order(user, order_id)
    return ok({"order": order.to_dict()})


@router.patch("/{order_id}")
def update_order_status(order_id: str, body: UpdateOrderStatusRequest, user: Dict[str, Any] = Depends(require_user)):
    """
    Transition manuelle (admin). Une commande passée à 'completed' ici déclenche
    le même fulfillment que le webhook (droits de téléchargement + compteur de ventes).
    """
    order = orders_service.change_status(user, order_id, body.status)
    if order.status == OrderStatus.COMPLETED:
        fulfillment.fulfill(order)
    return ok({"order": order.to_dict()}, message="Statut mis à jour")
