"""
ASGI entrypoint: expose `app` pour les process managers / déploiements.

- En production, un process manager (ex: uvicorn, gunicorn -k uvicorn.workers.UvicornWorker)
  importe `codeskins.asgi:app`.
- Toute la configuration FastAPI est centralisée dans codeskins.app_setup.factory;
  ce fichier ne fait qu'exposer l'instance `app`.
"""

from codeskins.app import app

if __name__ == "__main__":
    import os
    import uvicorn
    uvicorn.run(
        "codeskins.asgi:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,     # rechargement automatique en dev
    )
