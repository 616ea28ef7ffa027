"""
asgi.py -- ASGI entry point for AuthGate.

Run with:  uvicorn asgi:app --reload

The application itself is assembled in api/main.py; this module only gives
process managers a stable import path.
"""

from api.main import app

__all__ = ["app"]
