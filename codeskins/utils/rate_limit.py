from typing import Any, Dict
from urllib.parse import urlparse
import hashlib
import logging

from fastapi import Request, Response
from fastapi_limiter import FastAPILimiter
from fastapi_limiter.depends import RateLimiter

from codeskins.config import RATE_LIMIT_REDIS_URL
from codeskins.utils.security import COOKIE_NAME

logger = logging.getLogger(__name__)

def _key_from_request(req: Request) -> str:
    # Priorité: jeton Bearer/cookie (hashé) puis IP
    auth = req.headers.get("Authorization", "")
    token = auth[7:].strip() if auth.startswith("Bearer ") else req.cookies.get(COOKIE_NAME)
    path = req.url.path
    if token:
        h = hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]
        return f"user:{h}:{path}"
    ip = req.client.host if req.client else "local"
    return f"ip:{ip}:{path}"

def optional_rate_limit(times: int, seconds: int):
    """
    Dépendance de rate limiting (fastapi-limiter).
    - Inactive si app.state.rate_limit_enabled est False (tests, Redis indisponible au démarrage).
    - Un 429 est levé par RateLimiter au-delà de `times` requêtes par fenêtre.
    """
    async def _identifier(req: Request) -> str:
        return _key_from_request(req)

    limiter = RateLimiter(times=times, seconds=seconds, identifier=_identifier)

    async def _dep(request: Request, response: Response):
        if getattr(request.app.state, "rate_limit_enabled", None) is not True:
            return
        if getattr(FastAPILimiter, "redis", None) is None:
            return
        return await limiter(request, response)
    return _dep

def rate_limit_health_info(request: Request) -> Dict[str, Any]:
    enabled = getattr(request.app.state, "rate_limit_enabled", None)
    limiter_ready = getattr(FastAPILimiter, "redis", None) is not None
    info: Dict[str, Any] = {
        "enabled": (bool(enabled) if enabled is not None else None),
        "ready": limiter_ready,
        "backend": "redis" if limiter_ready else None,
    }
    if limiter_ready and RATE_LIMIT_REDIS_URL:
        p = urlparse(RATE_LIMIT_REDIS_URL)
        info["redis"] = {"scheme": p.scheme, "host": p.hostname, "port": p.port}
    return info
