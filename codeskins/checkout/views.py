# module codeskins.checkout.views
"""Endpoints du checkout.
- /create-checkout-session: session Stripe depuis le body ou le panier serveur (authentifié, rate-limité).
- /payment-intent/{id}: statut d'un PaymentIntent pour la page de confirmation.
"""
from typing import Any, Dict, List, Optional
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from codeskins.checkout import service as checkout_service
from codeskins.payments.client import PaymentClient, get_payment_client
from codeskins.utils.rate_limit import optional_rate_limit
from codeskins.utils.responses import ok
from codeskins.utils.security import require_user

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/checkout", tags=["Checkout"])


class CheckoutItem(BaseModel):
    templateId: str = Field(min_length=1)
    title: Optional[str] = None
    price: Optional[float] = None
    quantity: int = 1


class CheckoutRequest(BaseModel):
    items: Optional[List[CheckoutItem]] = None


@router.post("/create-checkout-session", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def create_checkout_session(
    body: Optional[CheckoutRequest] = None,
    user: Dict[str, Any] = Depends(require_user),
    client: PaymentClient = Depends(get_payment_client),
):
    """
    Retourne {url, sessionId}. title/price envoyés par le client sont ignorés:
    le montant facturé est toujours celui du catalogue.
    """
    items = [i.model_dump() for i in body.items] if body and body.items is not None else None
    session = checkout_service.create_checkout_session(client, user, items)
    return ok(session)


@router.get("/payment-intent/{payment_intent_id}")
def get_payment_intent(
    payment_intent_id: str,
    user: Dict[str, Any] = Depends(require_user),
    client: PaymentClient = Depends(get_payment_client),
):
    return ok(client.retrieve_payment_intent(payment_intent_id))
