from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from loguru import logger

from app.api.v1 import auth
from app.api.v1 import dashboard
from app.api.v1 import dpp
from app.api.v1 import index
from app.api.v1 import project
from app.api.v1 import upload

from app.core.config import settings
from app.core.exceptions import register_exception_handlers
from app.core.logging import setup_logging
from app.db.core import init_db
from app.services.ledger import LedgerClient
from app.services.storage import IPFSStorageClient

setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    app.state.storage = IPFSStorageClient(settings)
    app.state.ledger = LedgerClient(settings)

    if not app.state.storage.configured:
        logger.warning("IPFS storage is not configured; metadata snapshots will be skipped")
    if not app.state.ledger.configured:
        logger.warning("Ledger is not configured; transactions will be skipped")

    logger.info(f"{settings.app_name} started ({settings.environment})")
    yield


app = FastAPI(title=settings.app_name, lifespan=lifespan)

# Middlewares
origins = []

if settings.allowed_hosts:
    origins = settings.allowed_hosts.split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.get("/health", tags=["Health"])
def health():
    return {
        "success": True,
        "message": "Server is running",
        "environment": settings.environment,
    }


# Register routes
app.include_router(index.router, prefix="/api", tags=["Health"])
app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
app.include_router(project.router, prefix="/api/projects", tags=["Projects"])
app.include_router(dpp.router, prefix="/api/dpp")
app.include_router(upload.router, prefix="/api/upload", tags=["Upload"])
app.include_router(dashboard.router, prefix="/api/dashboard", tags=["Dashboard"])

# Static files serving
app.mount("/static", StaticFiles(directory=settings.static_dir), name="static")

if __name__ == "__main__":
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_config=None,
        log_level=None,
    )
