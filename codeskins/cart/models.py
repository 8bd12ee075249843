"""
Modèle du panier (logique pure, pas de DB).

Invariant: total == Σ(unit_price × quantity), re-dérivé des lignes à chaque
lecture; la valeur 'total' stockée en base n'est jamais relue.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from codeskins.catalog.models import LicenseTerms, Product
from codeskins.errors import CartItemNotFoundError, InvalidQuantityError, QuotaExceededError


@dataclass(frozen=True)
class CartOwner:
    """Propriétaire d'un panier: utilisateur authentifié ou jeton de session anonyme."""
    user_id: Optional[str] = None
    session_id: Optional[str] = None

    def __post_init__(self):
        if not self.user_id and not self.session_id:
            raise ValueError("CartOwner requiert user_id ou session_id")

    @property
    def column(self) -> str:
        return "user_id" if self.user_id else "session_id"

    @property
    def value(self) -> str:
        return str(self.user_id or self.session_id)


@dataclass
class CartItem:
    product_id: str
    title: str
    unit_price: float
    quantity: int
    category: Optional[str] = None
    tags: List[str] = field(default_factory=list)

    @property
    def subtotal(self) -> float:
        return self.unit_price * self.quantity

    @classmethod
    def snapshot(cls, product: Product, quantity: int) -> "CartItem":
        return cls(
            product_id=product.id,
            title=product.title,
            unit_price=product.price,
            quantity=quantity,
            category=product.category,
            tags=list(product.tags),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "templateId": self.product_id,
            "title": self.title,
            "price": self.unit_price,
            "quantity": self.quantity,
            "category": self.category,
            "tags": list(self.tags),
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "CartItem":
        return cls(
            product_id=str(raw.get("templateId") or raw.get("product_id") or ""),
            title=raw.get("title") or "",
            unit_price=float(raw.get("price") or 0),
            quantity=int(raw.get("quantity") or 0),
            category=raw.get("category"),
            tags=list(raw.get("tags") or []),
        )


@dataclass
class Cart:
    owner: CartOwner
    items: List[CartItem] = field(default_factory=list)
    id: Optional[str] = None

    @property
    def total(self) -> float:
        return round(sum(item.subtotal for item in self.items), 2)

    @property
    def count(self) -> int:
        return sum(item.quantity for item in self.items)

    def find(self, product_id: str) -> Optional[CartItem]:
        return next((i for i in self.items if i.product_id == str(product_id)), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "items": [i.to_dict() for i in self.items],
            "total": self.total,
            "count": self.count,
        }


def add_item(cart: Cart, product: Product, quantity: int = 1, license: Optional[LicenseTerms] = None) -> Cart:
    """
    Ajoute un template au panier.
    - Même product_id déjà présent: la quantité est cumulée.
    - Sinon: nouvelle ligne (snapshot titre/prix/catégorie/tags au moment de l'ajout).
    - QuotaExceededError si la quantité résultante dépasse le maxDownloads fini de la licence.
    """
    if quantity <= 0:
        raise InvalidQuantityError(quantity)
    existing = cart.find(product.id)
    resulting = quantity + (existing.quantity if existing else 0)
    if license is not None and not license.unlimited_downloads and resulting > license.max_downloads:
        raise QuotaExceededError(
            f"Quantité maximale atteinte pour ce template ({license.max_downloads} avec la licence {license.name})",
            status_code=400,
            details={"maxDownloads": license.max_downloads, "requested": resulting},
        )
    if existing:
        existing.quantity = resulting
    else:
        cart.items.append(CartItem.snapshot(product, quantity))
    return cart


def update_quantity(cart: Cart, product_id: str, quantity: int) -> Cart:
    if quantity <= 0:
        raise InvalidQuantityError(quantity)
    item = cart.find(product_id)
    if item is None:
        raise CartItemNotFoundError(product_id)
    item.quantity = quantity
    return cart


def remove_item(cart: Cart, product_id: str) -> Cart:
    """Idempotent: retirer un article absent ne lève pas d'erreur."""
    cart.items = [i for i in cart.items if i.product_id != str(product_id)]
    return cart


def clear(cart: Cart) -> Cart:
    cart.items = []
    return cart
