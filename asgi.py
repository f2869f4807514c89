"""
asgi.py -- Application assembly for AuthGate.

The one place where process-wide Settings are loaded. Everything below
receives them from create_app().

Run with:  uvicorn asgi:app --reload
           python main.py
"""

from api.main import create_app
from core.config import get_settings

app = create_app(get_settings())
