# Entry point: uvicorn storefront.server:app
from .main import create_app

app = create_app()
