from fastapi import Request, HTTPException, Depends
from fastapi.responses import Response
from typing import Optional, Dict, Any
import secrets
from codeskins.config import COOKIE_SECURE

COOKIE_NAME = "sb_access"
CART_SESSION_COOKIE = "cart_session"

def _token_from_request(request: Request) -> Optional[str]:
    # Hybride: priorité au Bearer, fallback cookie
    token = None
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
    if not token:
        token = request.cookies.get(COOKIE_NAME)
    return token or None

def get_current_user(request: Request) -> Dict[str, Any]:
    token = _token_from_request(request)
    if not token:
        raise HTTPException(status_code=401, detail="Non authentifié")

    try:
        from codeskins.auth.service import get_user_from_token as _svc_get_user_from_token
        user = _svc_get_user_from_token(token)
        if not user.get("id"):
            raise HTTPException(status_code=401, detail="Session expirée, veuillez vous connecter")
        return user
    except HTTPException:
        raise
    except Exception:
        raise HTTPException(status_code=401, detail="Session expirée, veuillez vous connecter")

def get_optional_user(request: Request) -> Optional[Dict[str, Any]]:
    """resolveCurrentUser: l'utilisateur courant ou None (panier anonyme)."""
    if not _token_from_request(request):
        return None
    try:
        return get_current_user(request)
    except HTTPException:
        return None

def require_user(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return user

def is_admin(user: Optional[Dict[str, Any]]) -> bool:
    return (user or {}).get("role") == "admin"

def ensure_cart_session(request: Request, response: Response) -> str:
    """Jeton de panier anonyme: relu depuis le cookie ou créé (httponly)."""
    token = request.cookies.get(CART_SESSION_COOKIE)
    if token:
        return token
    token = secrets.token_urlsafe(24)
    response.set_cookie(
        key=CART_SESSION_COOKIE,
        value=token,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="Lax",
        max_age=60 * 60 * 24 * 30,
        path="/",
    )
    return token
