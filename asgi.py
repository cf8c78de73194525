"""
asgi.py -- ASGI entry point for the forum API.

api/main.py builds the app; this module only exposes it under the name the
server command expects, so deployment config never points into a package.

Run with:  uvicorn asgi:app --reload
           python main.py serve
"""

from api.main import app

__all__ = ["app"]
