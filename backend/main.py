"""
FunFans Credits Service - FastAPI Backend
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import admin, auth, content, credits, social, store, webhooks
from repositories import close_db_pool

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(name)s] %(levelname)s: %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Shutdown
    await close_db_pool()
    logger.info("Database pool closed")


app = FastAPI(
    title="FunFans Credits Service",
    description="Credits ledger, paywalled content unlocks and creator earnings",
    version="1.0.0",
    lifespan=lifespan
)

# Enable CORS for webapp
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API endpoints - routers carry their own /api/* prefix
for module in (auth, credits, content, social, store, webhooks, admin):
    app.include_router(module.router)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/api/health")
async def api_health():
    return {"status": "ok", "service": "funfans_credits"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
