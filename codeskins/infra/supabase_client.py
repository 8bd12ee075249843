from typing import Any, Optional
from supabase import create_client, Client
from postgrest.exceptions import APIError
from codeskins.config import SUPABASE_URL, SUPABASE_ANON, SUPABASE_SERVICE_KEY

_supabase: Optional[Client] = None
_service_supabase: Optional[Client] = None

UNIQUE_VIOLATION = "23505"

def get_supabase() -> Client:
    global _supabase
    if _supabase is None:
        if not SUPABASE_URL or not SUPABASE_ANON:
            raise RuntimeError("SUPABASE_URL/SUPABASE_ANON_KEY manquants")
        _supabase = create_client(SUPABASE_URL, SUPABASE_ANON)
    return _supabase

def get_service_supabase() -> Client:
    """
    Client service-role (bypass RLS): utilisé pour toutes les écritures du cœur
    commerce (webhook, ledger, compteurs), qui ne s'exécutent pas au nom d'un utilisateur.
    """
    global _service_supabase
    if not SUPABASE_SERVICE_KEY:
        raise RuntimeError("SUPABASE_SERVICE_KEY manquant pour get_service_supabase()")
    if _service_supabase is None:
        _service_supabase = create_client(SUPABASE_URL, SUPABASE_SERVICE_KEY)
    return _service_supabase

def error_code(exc: BaseException) -> Optional[str]:
    """Code Postgres porté par une APIError PostgREST (ex: '23505'), sinon None."""
    if not isinstance(exc, APIError):
        return None
    code: Any = getattr(exc, "code", None)
    if not code and exc.args and isinstance(exc.args[0], dict):
        code = exc.args[0].get("code")
    return str(code) if code else None

def is_unique_violation(exc: BaseException) -> bool:
    return error_code(exc) == UNIQUE_VIOLATION

def first_row(res: Any) -> Optional[dict]:
    """Première ligne d'une réponse PostgREST (liste ou dict), None si vide."""
    rows = getattr(res, "data", None) or []
    if isinstance(rows, list):
        return rows[0] if rows else None
    if isinstance(rows, dict):
        return rows
    return None
