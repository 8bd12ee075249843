# module codeskins.orders.models
"""Modèle des commandes.
- Une commande est immuable une fois créée, sauf son statut.
- Les lignes sont un snapshot {productId, title, unitPrice, quantity}, indépendant
  des changements de prix ultérieurs.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional


class OrderStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


ALLOWED_TRANSITIONS: Mapping[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.COMPLETED, OrderStatus.FAILED}),
    OrderStatus.COMPLETED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.FAILED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


@dataclass(frozen=True)
class OrderItem:
    product_id: str
    title: str
    unit_price: float
    quantity: int = 1

    @property
    def subtotal(self) -> float:
        return self.unit_price * self.quantity

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrderItem":
        return cls(
            product_id=str(data.get("productId") or data.get("templateId") or data.get("template_id") or ""),
            title=str(data.get("title") or ""),
            unit_price=float(data.get("unitPrice", data.get("price")) or 0),
            quantity=int(data.get("quantity") or 1),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "productId": self.product_id,
            "title": self.title,
            "unitPrice": self.unit_price,
            "quantity": self.quantity,
        }


@dataclass(frozen=True)
class Order:
    customer_id: str
    items: List[OrderItem]
    total: float
    currency: str
    payment_id: str
    status: OrderStatus = OrderStatus.PENDING
    session_id: Optional[str] = None
    payment_method: str = "stripe"
    customer_email: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def product_ids(self) -> List[str]:
        return [i.product_id for i in self.items if i.product_id]

    @property
    def fulfillment(self) -> Dict[str, Any]:
        return dict((self.metadata or {}).get("fulfillment") or {})

    @property
    def fulfillment_complete(self) -> bool:
        return bool(self.fulfillment.get("complete"))

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Order":
        return cls(
            id=str(row["id"]) if row.get("id") is not None else None,
            customer_id=str(row.get("customer_id") or ""),
            items=[OrderItem.from_dict(i) for i in (row.get("items") or [])],
            total=float(row.get("total") or 0),
            currency=str(row.get("currency") or "USD"),
            payment_id=str(row.get("payment_id") or ""),
            status=OrderStatus(row.get("status") or OrderStatus.PENDING.value),
            session_id=row.get("session_id"),
            payment_method=row.get("payment_method") or "stripe",
            customer_email=row.get("customer_email"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
            metadata=row.get("metadata") or {},
        )

    def to_row(self) -> Dict[str, Any]:
        """Ligne pour l'insert (sans id ni timestamps, gérés par la base)."""
        return {
            "customer_id": self.customer_id,
            "items": [i.to_dict() for i in self.items],
            "total": self.total,
            "currency": self.currency,
            "payment_id": self.payment_id,
            "session_id": self.session_id,
            "status": self.status.value,
            "payment_method": self.payment_method,
            "customer_email": self.customer_email,
            "metadata": self.metadata,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "customerId": self.customer_id,
            "items": [i.to_dict() for i in self.items],
            "total": self.total,
            "currency": self.currency,
            "paymentId": self.payment_id,
            "sessionId": self.session_id,
            "status": self.status.value,
            "paymentMethod": self.payment_method,
            "customerEmail": self.customer_email,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
