"""FastAPI entry point for the ALS progress sync service."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.deps import register_error_handlers
from config.settings import get_settings
from services.api_client import get_api_client
from services.middleware import RequestIdMiddleware, SessionCookieMiddleware
from services.workspace import get_workspace

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle — start/stop shared resources."""
    client = get_api_client()
    await client.start()

    workspace = get_workspace()
    loaded = await workspace.load()
    logger.info("Initial load: %s", loaded)

    yield

    await workspace.close()
    await client.close()


app = FastAPI(
    title="ALS Progress Sync",
    description="Learner-progress synchronization service for the ALS literacy program",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Middleware stack (added innermost first) ───────────────────
# Request path: CORS → RequestId → SessionCookie → route handler
app.add_middleware(SessionCookieMiddleware)
app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# ── Register routers ────────────────────────────────────────
from api.health import router as health_router  # noqa: E402
from api.modules import router as modules_router  # noqa: E402
from api.students import router as students_router  # noqa: E402

app.include_router(health_router)
app.include_router(students_router)
app.include_router(modules_router)


if __name__ == "__main__":
    if settings.debug:
        uvicorn.run(
            "main:app",
            host="0.0.0.0",
            port=settings.service_port,
            reload=True,
        )
    else:
        uvicorn.run(
            "main:app",
            host="0.0.0.0",
            port=settings.service_port,
            workers=4,
            timeout_keep_alive=120,
        )
