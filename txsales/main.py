"""
FastAPI Production Application

Main entry point for the Texas Mixed Beverage Sales API.
"""

from txsales.config import get_settings
from txsales.serving.api import create_api_app

app = create_api_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
