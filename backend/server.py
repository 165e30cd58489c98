from __future__ import annotations

import logging
import os

import uvicorn
from dotenv import load_dotenv

from app.main import create_app

# Load .env from backend dir (where server.py runs)
load_dotenv(os.path.join(os.path.dirname(__file__), ".env"))
logging.basicConfig(level=logging.INFO)

app = create_app()
for route in app.routes:
    if hasattr(route, "path") and hasattr(route, "methods"):
        logging.info("App route: %s %s", list(route.methods) if route.methods else "GET", route.path)


if __name__ == "__main__":
    uvicorn.run(
        app,
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "3001")),
    )
