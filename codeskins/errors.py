"""
Taxonomie des erreurs du cœur commerce.

Chaque erreur porte un status HTTP et un code machine; le handler
(codeskins.app_setup.exceptions) les convertit en {success: false, message, code}.
Les services lèvent ces erreurs, les vues ne les attrapent pas.
"""
from typing import Any, Dict, Iterable, List, Optional


class CommerceError(Exception):
    status_code: int = 500
    code: str = "error"

    def __init__(self, message: str, code: Optional[str] = None, status_code: Optional[int] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.details = details or {}


# --- 400 ---
class ValidationError(CommerceError):
    status_code = 400
    code = "validation_error"


class InvalidQuantityError(ValidationError):
    code = "invalid_quantity"

    def __init__(self, quantity: Any):
        super().__init__(f"Quantité invalide: {quantity}", details={"quantity": quantity})


class ProductUnavailableError(ValidationError):
    """Un ou plusieurs templates ne sont plus achetables (checkout tout-ou-rien)."""
    code = "product_unavailable"

    def __init__(self, product_ids: Iterable[str]):
        self.product_ids: List[str] = [str(p) for p in product_ids]
        super().__init__(
            "Templates indisponibles: " + ", ".join(self.product_ids),
            details={"productIds": self.product_ids},
        )


class InvalidSignatureError(ValidationError):
    code = "invalid_signature"


# --- 403 ---
class ForbiddenError(CommerceError):
    status_code = 403
    code = "forbidden"


class NotEntitledError(ForbiddenError):
    code = "not_entitled"

    def __init__(self, message: str = "Vous devez acheter ce template avant de le télécharger."):
        super().__init__(message)


class QuotaExceededError(CommerceError):
    """Limite de téléchargements (403) ou de ventes/quantité panier (400)."""
    status_code = 403
    code = "quota_exceeded"


# --- 404 ---
class NotFoundError(CommerceError):
    status_code = 404
    code = "not_found"


class ProductNotFoundError(NotFoundError):
    code = "product_not_found"

    def __init__(self, product_id: Any):
        super().__init__("Template introuvable ou inactif", details={"productId": product_id})


class LicenseNotFoundError(NotFoundError):
    code = "license_not_found"

    def __init__(self, license_id: Any):
        super().__init__("Licence introuvable ou inactive", details={"licenseId": license_id})


class CartItemNotFoundError(NotFoundError):
    code = "cart_item_not_found"

    def __init__(self, product_id: Any):
        super().__init__("Article absent du panier", details={"productId": product_id})


class OrderNotFoundError(NotFoundError):
    code = "order_not_found"

    def __init__(self, message: str = "Commande introuvable"):
        super().__init__(message)


# --- 409 ---
class ConflictError(CommerceError):
    status_code = 409
    code = "conflict"


class DuplicatePaymentError(ConflictError):
    code = "duplicate_payment"

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__("Une commande existe déjà pour ce paiement", details={"paymentId": payment_id})


class InvalidTransitionError(ConflictError):
    code = "invalid_transition"

    def __init__(self, current: str, target: str):
        super().__init__(
            f"Transition de statut refusée: {current} -> {target}",
            details={"from": current, "to": target},
        )


# --- 500 ---
class UpstreamError(CommerceError):
    status_code = 500
    code = "upstream_error"
