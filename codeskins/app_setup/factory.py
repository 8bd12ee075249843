"""
Factory d'application pour les entrypoints (codeskins.asgi, tests).
Ordonne les étapes d'initialisation de manière lisible et testable.
"""
from typing import Optional
from fastapi import FastAPI
from codeskins.config import STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET, STRIPE_WEBHOOK_TOLERANCE, CHECKOUT_CURRENCY
from codeskins.payments.client import PaymentClient
from .lifespan import lifespan
from .middlewares import register_basic_middlewares, register_security_middleware
from .exceptions import register_exception_handlers
from .routers import register_routers

def create_app(payment_client: Optional[PaymentClient] = None) -> FastAPI:
    """
    Construit l'app FastAPI avec le lifespan et enregistre:
      - le client de paiement (app.state.payment_client), injecté dans les endpoints
      - middlewares de base et de sécurité
      - gestionnaires d'exceptions
      - tous les routers (API v1, health)
    payment_client: permet aux tests de fournir un client avec un secret connu.
    """
    app = FastAPI(title="CodeSkins Commerce API", lifespan=lifespan)
    app.state.payment_client = payment_client or PaymentClient(
        secret_key=STRIPE_SECRET_KEY,
        webhook_secret=STRIPE_WEBHOOK_SECRET,
        currency=CHECKOUT_CURRENCY,
        tolerance=STRIPE_WEBHOOK_TOLERANCE,
    )
    register_basic_middlewares(app)
    register_security_middleware(app)
    register_exception_handlers(app)
    register_routers(app)
    return app
