"""
asgi.py -- ASGI import path for Stockroom Auth.

Run with:  uvicorn asgi:app --reload
"""

from api.main import app

__all__ = ["app"]
