# app/main.py

import logging
import os
from pathlib import Path
from dotenv import load_dotenv

# -------------------------------------------------------------------
# Load .env BEFORE importing anything that relies on environment vars
# -------------------------------------------------------------------
BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")

# -------------------------------------------------------------------
# FastAPI + CORS
# -------------------------------------------------------------------
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app import config
from app.tco.cache import ResultCache
from app.tco.router import router as tco_router

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("app")

# -------------------------------------------------------------------
# FastAPI APP CONFIG
# -------------------------------------------------------------------
app = FastAPI(
    title="Immersion Cooling TCO API",
    description="Air vs immersion cooling cost, energy and carbon comparison.",
)

# Externally owned result cache; injected into routes via dependency
app.state.result_cache = ResultCache(
    ttl_seconds=config.CACHE_TTL_SECONDS,
    max_entries=config.CACHE_MAX_ENTRIES,
)


# -------------------------------------------------------------------
# MIDDLEWARE
# -------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_allow_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -------------------------------------------------------------------
# ROUTES
# -------------------------------------------------------------------
app.include_router(
    tco_router,
    prefix="/api/v1/tco",
    tags=["TCO Calculator"],
)

logger.info(
    "TCO API ready (cache ttl=%ss, max=%s entries)",
    config.CACHE_TTL_SECONDS,
    config.CACHE_MAX_ENTRIES,
)


# -------------------------------------------------------------------
# ROOT PING / HEALTHCHECK
# -------------------------------------------------------------------
@app.get("/")
def read_root():
    return {
        "status": "ok",
        "service": "Immersion Cooling TCO API"
    }


# Local dev: python -m app.main  (or: uvicorn app.main:app --reload)
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        reload=True,
    )
