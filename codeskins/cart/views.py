# module codeskins.cart.views
"""Endpoints du panier.
- Propriétaire: utilisateur authentifié, sinon panier anonyme via cookie 'cart_session'.
- Réponses: {success, data: {cart}} avec un total toujours recalculé depuis les lignes.
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, Field

from codeskins.cart import service as cart_service
from codeskins.cart.models import CartOwner
from codeskins.utils.responses import ok
from codeskins.utils.security import ensure_cart_session, get_optional_user

router = APIRouter(prefix="/api/v1/cart", tags=["Cart"])


class AddToCartRequest(BaseModel):
    templateId: str = Field(min_length=1)
    quantity: int = 1


class UpdateCartItemRequest(BaseModel):
    templateId: str = Field(min_length=1)
    quantity: int


def cart_owner(
    request: Request,
    response: Response,
    user: Optional[Dict[str, Any]] = Depends(get_optional_user),
) -> CartOwner:
    if user and user.get("id"):
        return CartOwner(user_id=str(user["id"]))
    return CartOwner(session_id=ensure_cart_session(request, response))


@router.get("")
def get_cart(owner: CartOwner = Depends(cart_owner)):
    cart = cart_service.get_cart(owner)
    return ok({"cart": cart.to_dict()})


@router.get("/count")
def get_cart_count(owner: CartOwner = Depends(cart_owner)):
    """Nombre d'articles (Σ quantités) pour l'affichage header."""
    return ok({"count": cart_service.cart_count(owner)})


@router.post("/add")
def add_to_cart(body: AddToCartRequest, owner: CartOwner = Depends(cart_owner)):
    """
    Ajoute un template (ou cumule la quantité s'il est déjà présent).
    Erreurs: 404 template introuvable/inactif, 400 quantité invalide ou limite atteinte.
    """
    cart = cart_service.add_to_cart(owner, body.templateId, body.quantity)
    return ok({"cart": cart.to_dict()}, message="Article ajouté au panier")


@router.put("/update")
def update_cart_item(body: UpdateCartItemRequest, owner: CartOwner = Depends(cart_owner)):
    cart = cart_service.update_cart_item(owner, body.templateId, body.quantity)
    return ok({"cart": cart.to_dict()})


@router.delete("/remove/{template_id}")
def remove_from_cart(template_id: str, owner: CartOwner = Depends(cart_owner)):
    cart = cart_service.remove_from_cart(owner, template_id)
    return ok({"cart": cart.to_dict()})


@router.delete("/clear")
def clear_cart(owner: CartOwner = Depends(cart_owner)):
    cart = cart_service.clear_cart(owner)
    return ok({"cart": cart.to_dict()})
