from typing import Optional
import logging
import codeskins.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

def get_user_by_id(user_id: str) -> Optional[dict]:
    if not user_id:
        return None
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("users")
            .select("id, email, role")
            .eq("id", str(user_id))
            .limit(1)
            .execute()
        )
        return supabase_client.first_row(res)
    except Exception:
        logger.exception("users.repository.get_user_by_id failed id=%s", user_id)
        return None

def get_user_by_email(email: str) -> Optional[dict]:
    """Lookup insensible à la casse (emails stockés en minuscules)."""
    cleaned = (email or "").strip().lower()
    if not cleaned:
        return None
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("users")
            .select("id, email, role")
            .eq("email", cleaned)
            .limit(1)
            .execute()
        )
        return supabase_client.first_row(res)
    except Exception:
        logger.exception("users.repository.get_user_by_email failed email=%s", cleaned)
        return None
