# module codeskins.payments.reconciler
"""
Réconciliation des événements Stripe (livraison au-moins-une-fois, désordre, doublons).

checkout.session.completed:
1) payment_id = payment_intent (sinon id de session): clé d'idempotence.
   Commande existante -> no-op (promotion si elle est encore 'pending',
   reprise du fulfillment si elle est 'completed' mais incomplète).
2) Client: metadata.userId, sinon lookup par customer_details.email; sinon drop + log.
3) Lignes: OrderPlan (metadata -> panier -> ligne unique depuis le montant).
4) Commande 'completed' avec le total/devise de l'événement (jamais recalculés).
5) Insert; un doublon (23505) signifie qu'un autre livreur a gagné: succès.
6) Après commit: droits de téléchargement + compteur de ventes, puis nettoyage du panier.

payment_intent.succeeded: pending -> completed.
payment_intent.payment_failed: pending -> failed (ne crée jamais de commande).
charge.refunded: completed -> refunded (ne crée jamais de commande).
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple, Union
import logging

from codeskins.cart import service as cart_service
from codeskins.cart.models import CartOwner
from codeskins.errors import DuplicatePaymentError
from codeskins.orders import service as orders_service
from codeskins.orders.models import Order, OrderStatus
from codeskins.payments import fulfillment
from codeskins.payments import metadata as payments_metadata
from codeskins.payments import strategies
from codeskins.payments.client import PaymentClient
from codeskins.payments.strategies import OrderPlan, OrderSource
from codeskins.users import repository as users_repository

logger = logging.getLogger(__name__)


class ReconcileAction(str, Enum):
    CREATED = "created"
    DUPLICATE = "duplicate"
    PROMOTED = "promoted"
    REPAIRED = "repaired"
    FAILED = "failed"
    REFUNDED = "refunded"
    NOOP = "noop"
    DROPPED = "dropped"
    IGNORED = "ignored"


@dataclass(frozen=True)
class ReconcileResult:
    action: ReconcileAction
    order_id: Optional[str] = None


def _event_object(event: Dict[str, Any]) -> Dict[str, Any]:
    return ((event or {}).get("data") or {}).get("object") or {}


class PaymentEventReconciler:
    def __init__(self, client: PaymentClient):
        self.client = client
        self._handlers: Dict[str, Callable[[Dict[str, Any]], ReconcileResult]] = {
            "checkout.session.completed": self._on_session_completed,
            "payment_intent.succeeded": self._on_payment_succeeded,
            "payment_intent.payment_failed": self._on_payment_failed,
            "charge.refunded": self._on_charge_refunded,
        }

    def process(self, payload: Union[bytes, str], sig_header: Optional[str]) -> ReconcileResult:
        """Vérifie la signature (InvalidSignatureError sinon) puis traite l'événement."""
        event = self.client.verify_event(payload, sig_header)
        return self.handle_event(event)

    def handle_event(self, event: Dict[str, Any]) -> ReconcileResult:
        event_type = (event or {}).get("type") or ""
        handler = self._handlers.get(event_type)
        if handler is None:
            logger.info("payments.reconciler ignored type=%s id=%s", event_type, (event or {}).get("id"))
            return ReconcileResult(ReconcileAction.IGNORED)
        result = handler(_event_object(event))
        logger.info("payments.reconciler type=%s action=%s order_id=%s", event_type, result.action.value, result.order_id)
        return result

    # --- checkout.session.completed ---
    def _resolve_customer(self, session: Dict[str, Any], user_id: Optional[str]) -> Optional[Tuple[str, Optional[str]]]:
        email = ((session.get("customer_details") or {}).get("email") or session.get("customer_email") or None)
        if user_id:
            return user_id, email
        user = users_repository.get_user_by_email(email) if email else None
        if user and user.get("id"):
            return str(user["id"]), email or user.get("email")
        return None

    def _on_session_completed(self, session: Dict[str, Any]) -> ReconcileResult:
        payment_id = session.get("payment_intent") or session.get("id")
        if not payment_id:
            logger.error("payments.reconciler drop: session sans payment_intent ni id")
            return ReconcileResult(ReconcileAction.DROPPED)
        payment_id = str(payment_id)

        existing = orders_service.find_by_payment_id(payment_id)
        if existing is not None:
            if existing.status == OrderStatus.PENDING:
                return self._promote(existing)
            if existing.status == OrderStatus.COMPLETED and not existing.fulfillment_complete:
                return self._repair(existing)
            return ReconcileResult(ReconcileAction.DUPLICATE, existing.id)

        user_id, product_ids, quantities = payments_metadata.extract_metadata(session)
        customer = self._resolve_customer(session, user_id)
        if customer is None:
            logger.error("payments.reconciler drop payment_id=%s: client introuvable (ni userId ni email connu)", payment_id)
            return ReconcileResult(ReconcileAction.DROPPED)
        customer_id, email = customer

        total = round(int(session.get("amount_total") or 0) / 100, 2)
        plan = strategies.resolve_plan(customer_id, product_ids, quantities, total)
        order = Order(
            customer_id=customer_id,
            items=plan.items,
            total=total,
            currency=str(session.get("currency") or "usd").upper(),
            payment_id=payment_id,
            session_id=session.get("id"),
            status=OrderStatus.COMPLETED,
            customer_email=email,
            metadata={"source": plan.source.value},
        )
        try:
            created = orders_service.create_order(order)
        except DuplicatePaymentError:
            logger.info("payments.reconciler duplicate race payment_id=%s", payment_id)
            return ReconcileResult(ReconcileAction.DUPLICATE)

        fulfillment.fulfill(created)
        self._cleanup_cart(customer_id, plan)
        return ReconcileResult(ReconcileAction.CREATED, created.id)

    def _cleanup_cart(self, customer_id: str, plan: OrderPlan) -> None:
        """Nettoyage post-commit: un échec ici n'invalide jamais la commande."""
        try:
            owner = CartOwner(user_id=customer_id)
            if plan.source == OrderSource.CART:
                cart_service.clear_cart(owner)
            elif plan.product_ids:
                cart_service.remove_products(owner, plan.product_ids)
        except Exception:
            logger.exception("payments.reconciler cart cleanup failed customer_id=%s", customer_id)

    def _promote(self, order: Order) -> ReconcileResult:
        updated = orders_service.transition(order, OrderStatus.COMPLETED)
        if updated is None:
            return ReconcileResult(ReconcileAction.NOOP, order.id)
        fulfillment.fulfill(updated)
        if updated.product_ids:
            self._cleanup_cart(updated.customer_id, OrderPlan(OrderSource.METADATA, updated.items))
        return ReconcileResult(ReconcileAction.PROMOTED, updated.id)

    def _repair(self, order: Order) -> ReconcileResult:
        """Relivraison d'une commande dont le fulfillment est incomplet: on rejoue les grants."""
        logger.warning("payments.reconciler repair order_id=%s progress=%s", order.id, order.fulfillment)
        fulfillment.fulfill(order)
        return ReconcileResult(ReconcileAction.REPAIRED, order.id)

    # --- payment_intent.* / charge.refunded ---
    def _on_payment_succeeded(self, intent: Dict[str, Any]) -> ReconcileResult:
        order = orders_service.find_by_payment_id(str(intent.get("id") or ""))
        if order is None or order.status != OrderStatus.PENDING:
            return ReconcileResult(ReconcileAction.NOOP, order.id if order else None)
        return self._promote(order)

    def _on_payment_failed(self, intent: Dict[str, Any]) -> ReconcileResult:
        order = orders_service.find_by_payment_id(str(intent.get("id") or ""))
        if order is None or order.status != OrderStatus.PENDING:
            return ReconcileResult(ReconcileAction.NOOP, order.id if order else None)
        updated = orders_service.transition(order, OrderStatus.FAILED)
        if updated is None:
            return ReconcileResult(ReconcileAction.NOOP, order.id)
        return ReconcileResult(ReconcileAction.FAILED, updated.id)

    def _on_charge_refunded(self, charge: Dict[str, Any]) -> ReconcileResult:
        payment_id = charge.get("payment_intent")
        order = orders_service.find_by_payment_id(str(payment_id)) if payment_id else None
        if order is None or order.status != OrderStatus.COMPLETED:
            return ReconcileResult(ReconcileAction.NOOP, order.id if order else None)
        updated = orders_service.transition(order, OrderStatus.REFUNDED)
        if updated is None:
            return ReconcileResult(ReconcileAction.NOOP, order.id)
        return ReconcileResult(ReconcileAction.REFUNDED, updated.id)
