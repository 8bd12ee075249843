"""
Identité (collaborateur externe): résout un access token Supabase en utilisateur courant.
Forme retournée: {id, email, role, token}.
"""
from typing import Any, Dict, Optional
import logging
import codeskins.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

def determine_role(metadata: Optional[Dict[str, Any]]) -> str:
    role_lower = str((metadata or {}).get("role", "")).lower()
    if role_lower == "admin":
        return "admin"
    return "customer"

def get_user_from_token(access_token: str) -> Dict[str, Any]:
    """
    Normalise le user issu de supabase.auth.get_user(access_token).
    Lève une exception si le token est invalide/expiré (gérée par codeskins.utils.security).
    """
    res = supabase_client.get_supabase().auth.get_user(access_token)
    user = getattr(res, "user", None)
    if user is None:
        raise ValueError("Token invalide")
    metadata = getattr(user, "user_metadata", None) or {}
    return {
        "id": getattr(user, "id", None),
        "email": getattr(user, "email", None),
        "role": determine_role(metadata),
        "token": access_token,
    }
