"""
Accès aux données 'carts'.
- Un panier par propriétaire (index uniques user_id / session_id).
- save_cart fait un upsert sur la colonne propriétaire: dernier écrivain gagnant.
"""
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
import logging
import codeskins.infra.supabase_client as supabase_client
from codeskins.cart.models import CartOwner

logger = logging.getLogger(__name__)

# module codeskins.cart.repository
def get_cart(owner: CartOwner) -> Optional[dict]:
    res = (
        supabase_client.get_service_supabase()
        .table("carts")
        .select("*")
        .eq(owner.column, owner.value)
        .limit(1)
        .execute()
    )
    return supabase_client.first_row(res)

def save_cart(owner: CartOwner, items: List[Dict[str, Any]], total: float) -> Optional[dict]:
    """
    Écrit les lignes du panier (création paresseuse au premier ajout).
    'total' est stocké pour l'affichage mais n'est jamais relu comme source de vérité.
    """
    payload = {
        owner.column: owner.value,
        "items": items,
        "total": total,
        "updated_at": datetime.now(timezone.utc).isoformat(),
    }
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("carts")
            .upsert(payload, on_conflict=owner.column)
            .execute()
        )
        return supabase_client.first_row(res) or payload
    except Exception:
        logger.exception("cart.repository.save_cart failed %s=%s", owner.column, owner.value)
        raise
