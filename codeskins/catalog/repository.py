"""
Accès aux données catalogue (tables 'templates' et 'licenses').
Les compteurs (sales, downloads) sont mis à jour par compare-and-set:
l'écriture n'aboutit que si la valeur lue n'a pas changé entre-temps.
"""
from typing import Any, Dict, Iterable, List, Optional
import logging
import codeskins.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

COUNTER_COLUMNS = ("sales", "downloads")

# module codeskins.catalog.repository
def get_template(template_id: str) -> Optional[dict]:
    if not template_id:
        return None
    try:
        res = (
            supabase_client.get_supabase()
            .table("templates")
            .select("*")
            .eq("id", str(template_id))
            .limit(1)
            .execute()
        )
        return supabase_client.first_row(res)
    except Exception:
        logger.exception("catalog.repository.get_template failed id=%s", template_id)
        return None

def get_templates_by_ids(ids: Iterable[str]) -> List[dict]:
    """
    Récupère les templates par leurs IDs.
    - Retourne [] si ids vide ou en cas d'erreur.
    """
    id_list = [str(i) for i in ids if i]
    if not id_list:
        return []
    try:
        res = (
            supabase_client.get_supabase()
            .table("templates")
            .select("*")
            .in_("id", id_list)
            .execute()
        )
        return res.data or []
    except Exception:
        logger.exception("catalog.repository.get_templates_by_ids failed ids=%s", id_list)
        return []

def get_license(license_id: str) -> Optional[dict]:
    if not license_id:
        return None
    try:
        res = (
            supabase_client.get_supabase()
            .table("licenses")
            .select("*")
            .eq("id", str(license_id))
            .limit(1)
            .execute()
        )
        return supabase_client.first_row(res)
    except Exception:
        logger.exception("catalog.repository.get_license failed id=%s", license_id)
        return None

def set_counter_if(template_id: str, column: str, expected: int, value: int) -> bool:
    """
    UPDATE templates SET <column> = value WHERE id = template_id AND <column> = expected.
    Retourne True si une ligne a été modifiée.
    """
    if column not in COUNTER_COLUMNS:
        raise ValueError(f"Compteur inconnu: {column}")
    res = (
        supabase_client.get_service_supabase()
        .table("templates")
        .update({column: value})
        .eq("id", str(template_id))
        .eq(column, expected)
        .execute()
    )
    return bool(res.data)

def read_counter(template_id: str, column: str) -> Optional[int]:
    if column not in COUNTER_COLUMNS:
        raise ValueError(f"Compteur inconnu: {column}")
    res = (
        supabase_client.get_service_supabase()
        .table("templates")
        .select(f"id, {column}")
        .eq("id", str(template_id))
        .limit(1)
        .execute()
    )
    row: Optional[Dict[str, Any]] = supabase_client.first_row(res)
    if row is None:
        return None
    return int(row.get(column) or 0)
