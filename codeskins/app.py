# module codeskins.app
"""Instance FastAPI unique construite par la factory (codeskins.app_setup.factory)."""
from codeskins.app_setup.factory import create_app

app = create_app()
