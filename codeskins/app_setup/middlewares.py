"""
Middlewares transverses de l'application.
- register_basic_middlewares: CORS et TrustedHost.
- register_security_middleware: en-têtes de sécurité (API JSON uniquement, CSP stricte).
Le webhook Stripe n'utilise pas de cookie: il est authentifié par sa signature.
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware
from codeskins.config import COOKIE_SECURE, CORS_ORIGINS, ALLOWED_HOSTS

def register_basic_middlewares(app: FastAPI) -> None:
    """
    - CORSMiddleware: autorise les origines définies (front Next.js).
    - TrustedHostMiddleware: limite les hôtes acceptés (défense host header).
    """
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=ALLOWED_HOSTS + ["*"] if "*" in CORS_ORIGINS else ALLOWED_HOSTS,
    )

def register_security_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        response.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")
        if COOKIE_SECURE:
            response.headers.setdefault("Strict-Transport-Security", "max-age=63072000; includeSubDomains; preload")
        # Swagger (/docs) charge ses assets depuis jsdelivr
        if not request.url.path.startswith("/docs"):
            response.headers.setdefault("Content-Security-Policy", "default-src 'none'; frame-ancestors 'none'")
        return response
