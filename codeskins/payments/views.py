import logging

from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool

from codeskins.errors import InvalidSignatureError
from codeskins.payments.client import PaymentClient, get_payment_client
from codeskins.payments.reconciler import PaymentEventReconciler

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/payments", tags=["Payments API"])

# module codeskins.payments.views
@router.post("/webhook", include_in_schema=False)
async def webhook_stripe(request: Request, client: PaymentClient = Depends(get_payment_client)):
    """
    Webhook Stripe.
    - Signature: vérifiée avant tout traitement (400 si absente/invalide ou secret manquant)
    - Réconciliation: exécutée dans le threadpool (client Supabase synchrone)
    - Réponse: {"received": true} pour tout événement vérifié, y compris ceux ignorés,
      abandonnés ou en échec (journalisés), pour éviter les tempêtes de retry Stripe.
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")
    reconciler = PaymentEventReconciler(client)
    try:
        result = await run_in_threadpool(reconciler.process, payload, sig_header)
        logger.info("payments.webhook action=%s order_id=%s", result.action.value, result.order_id)
    except InvalidSignatureError:
        # Remonte au handler global (400)
        raise
    except Exception:
        logger.exception("Erreur webhook_stripe")
    return {"received": True}
