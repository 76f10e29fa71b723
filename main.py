"""ASGI entrypoint: ``uvicorn main:app``."""

from src.main.web import get_application

app = get_application()
