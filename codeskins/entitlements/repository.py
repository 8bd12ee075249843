# module codeskins.entitlements.repository
"""
Accès au ledger de téléchargements (table 'downloads').
- Clé unique (user_id, template_id, license_id): un seul droit par triplet.
- L'incrément se fait par compare-and-set sur download_count (jamais lecture puis écriture).
"""
from typing import Any, Dict, List, Optional
import logging
from postgrest.exceptions import APIError
import codeskins.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

def get_entitlement(user_id: str, template_id: str, license_id: str) -> Optional[dict]:
    res = (
        supabase_client.get_service_supabase()
        .table("downloads")
        .select("*")
        .eq("user_id", str(user_id))
        .eq("template_id", str(template_id))
        .eq("license_id", str(license_id))
        .limit(1)
        .execute()
    )
    return supabase_client.first_row(res)

def list_entitlements(user_id: str) -> List[dict]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("downloads")
            .select("*, templates(title, description), licenses(name, max_downloads)")
            .eq("user_id", str(user_id))
            .order("last_download_at", desc=True)
            .execute()
        )
        return res.data or []
    except Exception:
        logger.exception("entitlements.repository.list_entitlements failed user_id=%s", user_id)
        return []

def insert_entitlement(row: Dict[str, Any]) -> Optional[dict]:
    """
    Crée un droit. Retourne None en cas de doublon (23505): le droit existe déjà,
    il n'est ni recrédité ni réinitialisé.
    """
    try:
        res = supabase_client.get_service_supabase().table("downloads").insert(row).execute()
        return supabase_client.first_row(res) or row
    except APIError as e:
        if supabase_client.is_unique_violation(e):
            return None
        raise

def increment_download_count(record_id: str, expected_count: int, last_download_at: str) -> Optional[dict]:
    """
    UPDATE downloads SET download_count = expected + 1, last_download_at = ...
    WHERE id = record_id AND download_count = expected.
    Retourne la ligne mise à jour, ou None si un autre écrivain est passé avant.
    """
    res = (
        supabase_client.get_service_supabase()
        .table("downloads")
        .update({"download_count": expected_count + 1, "last_download_at": last_download_at})
        .eq("id", str(record_id))
        .eq("download_count", expected_count)
        .execute()
    )
    return supabase_client.first_row(res)
