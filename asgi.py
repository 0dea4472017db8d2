"""
asgi.py -- Application assembly for ExpenseGate.

Adds the built web client (FRONTEND_DIST_DIR) on top of the API app. The
static mount goes last so every /api route is matched first; html=True
serves index.html for the SPA's own paths.

Run with:  uvicorn asgi:app --reload
           python main.py serve
"""

import logging
from pathlib import Path

from fastapi.staticfiles import StaticFiles

from api.main import app
from core.config import get_settings

logger = logging.getLogger("expensegate.asgi")

_dist = get_settings().frontend_dist_dir
if _dist:
    if Path(_dist).is_dir():
        app.mount("/", StaticFiles(directory=_dist, html=True), name="frontend")
        logger.info("Serving web client from %s", _dist)
    else:
        logger.warning("FRONTEND_DIST_DIR %s does not exist -- web client not served", _dist)
