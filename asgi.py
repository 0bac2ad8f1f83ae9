"""
asgi.py -- Application assembly for OAuthDash.

This is the ONLY file that imports from both api/ and web/. It joins the two
independent layers into a single ASGI app without coupling them to each other.

Run with:  uvicorn asgi:app --reload
"""

from api.main import app
from web.routes import router as web_router

# Mounted after api/main.py defined /health: the web router ends with a
# catch-all GET route.
app.include_router(web_router, tags=["Web UI"])
