"""
asgi.py -- Application assembly for QuizDesk.

This is the ONLY module that reads process configuration and builds the app.
get_settings() raises on a missing or short SECRET_KEY, so a misconfigured
deployment fails here, before the server accepts a single request.

Run with:  uvicorn asgi:app --reload
"""

from api.main import create_app
from core.config import get_settings

app = create_app(get_settings())
