"""
Adaptateur Stripe: centralise les appels Stripe du cœur commerce.
- Aucune configuration globale (stripe.api_key): la clé est passée à chaque appel.
- L'instance est construite par la factory puis injectée (app.state.payment_client).
"""
import json
import logging
from typing import Any, Dict, List, Optional, Union

import stripe
from fastapi import Request

from codeskins.errors import InvalidSignatureError, NotFoundError, UpstreamError

logger = logging.getLogger(__name__)

# module codeskins.payments.client
class PaymentClient:
    def __init__(self, secret_key: str, webhook_secret: str, currency: str = "usd", tolerance: int = 300):
        self.secret_key = secret_key or ""
        self.webhook_secret = webhook_secret or ""
        self.currency = (currency or "usd").lower()
        self.tolerance = tolerance

    def create_checkout_session(
        self,
        *,
        line_items: List[Dict[str, Any]],
        customer_email: Optional[str],
        metadata: Dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> Dict[str, Any]:
        """
        Crée une session Stripe Checkout (mode payment).
        Retour: {"url": <redirect>, "sessionId": <cs_...>}.
        Les erreurs Stripe deviennent UpstreamError (500), sans retry synchrone.
        """
        if not self.secret_key:
            raise UpstreamError("Stripe n'est pas configuré (STRIPE_SECRET_KEY manquant)")
        params: Dict[str, Any] = {
            "line_items": line_items,
            "mode": "payment",
            "payment_method_types": ["card"],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
        }
        if customer_email:
            params["customer_email"] = customer_email
        try:
            session = stripe.checkout.Session.create(api_key=self.secret_key, **params)
        except stripe.StripeError as e:
            logger.error("payments.client.create_checkout_session failed: %s", e)
            raise UpstreamError("Le service de paiement est indisponible") from e
        return {"url": session.get("url"), "sessionId": session.get("id")}

    def retrieve_payment_intent(self, payment_intent_id: str) -> Dict[str, Any]:
        if not self.secret_key:
            raise UpstreamError("Stripe n'est pas configuré (STRIPE_SECRET_KEY manquant)")
        try:
            intent = stripe.PaymentIntent.retrieve(payment_intent_id, api_key=self.secret_key)
        except stripe.InvalidRequestError as e:
            raise NotFoundError("PaymentIntent introuvable", code="payment_intent_not_found") from e
        except stripe.StripeError as e:
            logger.error("payments.client.retrieve_payment_intent failed: %s", e)
            raise UpstreamError("Le service de paiement est indisponible") from e
        return {
            "id": intent.get("id"),
            "amount": intent.get("amount"),
            "currency": intent.get("currency"),
            "status": intent.get("status"),
            "created": intent.get("created"),
        }

    def verify_event(self, payload: Union[bytes, str], sig_header: Optional[str]) -> Dict[str, Any]:
        """
        Valide la signature Stripe-Signature (HMAC-SHA256 + tolérance d'horodatage)
        puis parse l'événement. Sans secret configuré, aucun événement n'est accepté.
        """
        if not self.webhook_secret:
            raise InvalidSignatureError("STRIPE_WEBHOOK_SECRET manquant: webhook refusé")
        if not sig_header:
            raise InvalidSignatureError("En-tête Stripe-Signature manquant")
        try:
            body = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        except UnicodeDecodeError as e:
            raise InvalidSignatureError("Payload Stripe invalide") from e
        try:
            stripe.WebhookSignature.verify_header(body, sig_header, self.webhook_secret, self.tolerance)
        except stripe.SignatureVerificationError as e:
            raise InvalidSignatureError("Signature Stripe invalide") from e
        try:
            event = json.loads(body)
        except ValueError as e:
            raise InvalidSignatureError("Payload Stripe invalide") from e
        if not isinstance(event, dict):
            raise InvalidSignatureError("Payload Stripe invalide")
        return event


def get_payment_client(request: Request) -> PaymentClient:
    """Dépendance FastAPI: client construit par la factory (app.state)."""
    return request.app.state.payment_client
