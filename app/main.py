import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.database import engine
from app import models
from app.errors import AuthenticationError, ConfigurationError, PersistenceError

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create tables
    models.Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(
    title="JazzCash Payments API",
    description="Signed hosted-checkout initiation and callback reconciliation for plan subscriptions",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.error("Configuration error on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=500,
        content={"error": "Server misconfigured", "detail": str(exc)},
    )


@app.exception_handler(AuthenticationError)
async def authentication_error_handler(request: Request, exc: AuthenticationError):
    return JSONResponse(
        status_code=401,
        content={"error": "Unauthorized", "detail": str(exc)},
        headers={"WWW-Authenticate": "Bearer"},
    )


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    logger.exception("Persistence error on %s", request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": "Server error", "detail": str(exc)},
    )


@app.get("/health")
def health_check():
    return {"status": "ok", "service": "jazzcash-payments-api"}


from app.routers import payments, me  # noqa: E402
app.include_router(payments.router, prefix="/api/payments", tags=["payments"])
app.include_router(me.router, prefix="/api", tags=["profile"])
