import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from estateflow.api import (
    agents,
    analytics,
    auth,
    deals,
    documents,
    invite,
    organization,
    public_deals,
    signatures,
    steps,
    stripe,
    templates,
)
from estateflow.core.config import get_settings
from estateflow.core.logging import configure_logging
from estateflow.db.session import SessionLocal
from estateflow.services.data_migration import run_data_migrations

settings = get_settings()
configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Refuse to boot a production deployment with unsafe settings
    get_settings().validate_for_startup()

    if get_settings().RUN_DATA_MIGRATIONS_ON_STARTUP:
        db = SessionLocal()
        try:
            applied = run_data_migrations(db)
            if applied:
                logger.info("[STARTUP] Applied data migrations: %s", ", ".join(applied))
        finally:
            db.close()
    yield


app = FastAPI(title="EstateFlow API", version="1.0.0", lifespan=lifespan)

# CORS headers are added even on errors via the exception handler below
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Generic 500 that still carries CORS headers; details go to the log only."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)

    response = JSONResponse(status_code=500, content={"detail": "Internal server error"})

    origin = request.headers.get("origin")
    if origin and origin in get_settings().get_allowed_origins():
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Credentials"] = "true"
        response.headers["Access-Control-Allow-Methods"] = "*"
        response.headers["Access-Control-Allow-Headers"] = "*"

    return response


# Deal sub-resources share the /api/deals prefix; the literal /can-create
# route in deals is registered before the /{deal_id} routes of the others.
app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(agents.router, prefix="/api/agents", tags=["agents"])
app.include_router(deals.router, prefix="/api/deals", tags=["deals"])
app.include_router(steps.router, prefix="/api/deals", tags=["steps"])
app.include_router(documents.router, prefix="/api/deals", tags=["documents"])
app.include_router(signatures.router, prefix="/api/deals", tags=["signatures"])
app.include_router(analytics.router, prefix="/api/deals", tags=["analytics"])
app.include_router(public_deals.router, prefix="/api/public/deals", tags=["public"])
app.include_router(templates.router, prefix="/api/templates", tags=["templates"])
app.include_router(organization.router, prefix="/api/organization", tags=["organization"])
app.include_router(invite.router, prefix="/api/invite", tags=["invite"])
app.include_router(stripe.router, prefix="/api/stripe", tags=["stripe"])


@app.get("/")
async def root():
    return {"message": "EstateFlow API", "version": "1.0.0"}


@app.get("/health")
async def health():
    return {"status": "healthy"}
