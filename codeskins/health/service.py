from urllib.parse import urlparse
import socket
from codeskins.config import SUPABASE_URL
from codeskins.infra.supabase_client import get_service_supabase

COMMERCE_TABLES = ["templates", "licenses", "carts", "orders", "downloads"]

def _check_table(client, name: str):
    try:
        res = client.table(name).select("id").limit(1).execute()
        return {"ok": True, "rows": len(res.data or [])}
    except Exception as e:
        return {"ok": False, "error": str(e)}

def health_supabase_info():
    parsed = urlparse(SUPABASE_URL) if SUPABASE_URL else None
    hostname = parsed.hostname if parsed else None
    dns_ok = None
    dns_error = None
    if hostname:
        try:
            socket.getaddrinfo(hostname, 443)
            dns_ok = True
        except OSError as e:
            dns_ok = False
            dns_error = str(e)

    info = {
        "supabase_url": SUPABASE_URL,
        "hostname": hostname,
        "dns_ok": dns_ok,
        "dns_error": dns_error,
        "connect_ok": False,
        "error": None,
        "tables": {},
    }
    try:
        client = get_service_supabase()
        for t in COMMERCE_TABLES:
            info["tables"][t] = _check_table(client, t)
        info["connect_ok"] = True
    except Exception as e:
        info["error"] = str(e)
    return info
