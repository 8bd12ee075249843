"""
Registre central des routers (API v1 commerce + health).
"""
from fastapi import FastAPI
from codeskins.cart import views as cart_views
from codeskins.catalog import views as catalog_views
from codeskins.checkout import views as checkout_views
from codeskins.downloads import views as downloads_views
from codeskins.orders import views as orders_views
from codeskins.payments import views as payments_views
from codeskins.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    """
    Agrège tous les routers de l'application.
    L'ordre n'a pas d'impact sauf conflits de chemins (évités par préfixes).
    """
    # API v1
    app.include_router(cart_views.router)
    app.include_router(catalog_views.router)
    app.include_router(checkout_views.router)
    app.include_router(payments_views.router)
    app.include_router(orders_views.router)
    app.include_router(downloads_views.router)
    # Health & monitoring
    app.include_router(health_router)
