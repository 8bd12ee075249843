"""
Lifespan FastAPI: initialisation/arrêt des ressources partagées.
- Initialise FastAPILimiter (Redis) avec options de test (fakeredis).
- Variables d'environnement supportées:
  - DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS=1: désactive complètement (tests)
  - USE_FAKE_REDIS_FOR_TESTS=1: utilise fakeredis (tests)
"""
import os
import logging
from contextlib import asynccontextmanager
import redis.asyncio as aioredis
from fastapi import FastAPI
from fastapi_limiter import FastAPILimiter

from codeskins.config import RATE_LIMIT_REDIS_URL

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Configure le rate limiting.
    - En cas d'échec de Redis, le rate limiting est désactivé proprement (l'API reste servie).
    - Les logs indiquent l'état effectif (enabled/disabled).
    """
    logger = logging.getLogger("uvicorn.error")
    if os.getenv("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS") == "1":
        app.state.rate_limit_enabled = False
        logger.info("Rate limiting disabled by DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS")
        yield
        return

    r = None
    try:
        if os.getenv("USE_FAKE_REDIS_FOR_TESTS") == "1":
            from fakeredis.aioredis import FakeRedis  # dépendance de test
            r = FakeRedis(decode_responses=True)
        else:
            r = aioredis.from_url(RATE_LIMIT_REDIS_URL, encoding="utf-8", decode_responses=True)
        await FastAPILimiter.init(r)
        app.state.rate_limit_enabled = True
        logger.info("Rate limiting enabled")
    except Exception as e:
        app.state.rate_limit_enabled = False
        logger.warning("Rate limiting disabled due to init error: %s", e)

    yield

    if app.state.rate_limit_enabled:
        await FastAPILimiter.close()
