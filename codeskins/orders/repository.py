"""Accès à la table 'orders' (client service-role).
- payment_id est unique: c'est la clé d'idempotence des webhooks.
- Aucune suppression: seules les transitions de statut modifient une ligne.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
import logging
from postgrest.exceptions import APIError
import codeskins.infra.supabase_client as supabase_client
from codeskins.errors import DuplicatePaymentError

logger = logging.getLogger(__name__)

def insert_order(row: Dict[str, Any]) -> dict:
    """Insère une commande. Lève DuplicatePaymentError si payment_id existe déjà (23505)."""
    try:
        res = supabase_client.get_service_supabase().table("orders").insert(row).execute()
    except APIError as e:
        if supabase_client.is_unique_violation(e):
            raise DuplicatePaymentError(row.get("payment_id") or "") from e
        raise
    return supabase_client.first_row(res) or row

def get_order(order_id: str) -> Optional[dict]:
    res = (
        supabase_client.get_service_supabase()
        .table("orders")
        .select("*")
        .eq("id", str(order_id))
        .limit(1)
        .execute()
    )
    return supabase_client.first_row(res)

def get_order_by_payment_id(payment_id: str) -> Optional[dict]:
    res = (
        supabase_client.get_service_supabase()
        .table("orders")
        .select("*")
        .eq("payment_id", str(payment_id))
        .limit(1)
        .execute()
    )
    return supabase_client.first_row(res)

def get_order_by_session_id(session_id: str) -> Optional[dict]:
    res = (
        supabase_client.get_service_supabase()
        .table("orders")
        .select("*")
        .eq("session_id", str(session_id))
        .limit(1)
        .execute()
    )
    return supabase_client.first_row(res)

def list_orders(customer_id: Optional[str] = None, status: Optional[str] = None,
                offset: int = 0, limit: int = 10) -> Tuple[List[dict], int]:
    """Commandes les plus récentes d'abord, avec le total (count exact) pour la pagination."""
    query = supabase_client.get_service_supabase().table("orders").select("*", count="exact")
    if customer_id:
        query = query.eq("customer_id", str(customer_id))
    if status:
        query = query.eq("status", status)
    res = query.order("created_at", desc=True).range(offset, offset + limit - 1).execute()
    rows = res.data or []
    return rows, int(getattr(res, "count", None) or len(rows))

def list_status_totals(customer_id: Optional[str] = None) -> List[dict]:
    """Lignes minimales {status, total} pour les statistiques."""
    query = supabase_client.get_service_supabase().table("orders").select("status, total")
    if customer_id:
        query = query.eq("customer_id", str(customer_id))
    return query.execute().data or []

def update_order_status(order_id: str, expected: str, target: str) -> Optional[dict]:
    """
    UPDATE orders SET status = target WHERE id = order_id AND status = expected.
    Retourne la ligne mise à jour, None si le statut courant n'était plus 'expected'.
    """
    res = (
        supabase_client.get_service_supabase()
        .table("orders")
        .update({"status": target, "updated_at": datetime.now(timezone.utc).isoformat()})
        .eq("id", str(order_id))
        .eq("status", expected)
        .execute()
    )
    return supabase_client.first_row(res)

def update_order_metadata(order_id: str, metadata: Dict[str, Any]) -> Optional[dict]:
    """Remplace la colonne metadata (suivi du fulfillment); le statut n'est pas touché."""
    res = (
        supabase_client.get_service_supabase()
        .table("orders")
        .update({"metadata": metadata, "updated_at": datetime.now(timezone.utc).isoformat()})
        .eq("id", str(order_id))
        .execute()
    )
    return supabase_client.first_row(res)
