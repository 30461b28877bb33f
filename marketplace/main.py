"""Main FastAPI application"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from marketplace.config import settings
from marketplace.core.errors import ExternalServiceFailure, InvalidStateTransition, MarketplaceError
from marketplace.database import connect_to_mongo, close_mongo_connection, database
from marketplace.api.v1 import orders, returns, coupons

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    await connect_to_mongo()
    logger.info(f"{settings.app_name} {API_VERSION} accepting requests")
    yield
    await close_mongo_connection()
    logger.info(f"{settings.app_name} stopped")


app = FastAPI(
    title=settings.app_name,
    version=API_VERSION,
    description=(
        "Orders, coupons and returns for a fresh grocery marketplace. "
        "Customer routes live under /api, staff routes under /api/admin. "
        "Send the session token as `Authorization: Bearer <token>`."
    ),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["Health"])
async def health_check():
    """Process is up"""
    return {"success": True, "status": "healthy", "version": API_VERSION}


@app.get("/readiness", tags=["Health"])
async def readiness_probe():
    """Ready once MongoDB answers a ping"""
    if database.db is None:
        return JSONResponse(status_code=503, content={"success": False, "database": "disconnected"})
    await database.db.command("ping")
    return {"success": True, "database": "connected"}


# Customer routes
app.include_router(orders.router, prefix="/api", tags=["Orders"])
app.include_router(coupons.router, prefix="/api", tags=["Coupons"])
app.include_router(returns.customer_router, prefix="/api", tags=["Returns"])

# Staff routes
app.include_router(orders.admin_router, prefix="/api/admin", tags=["Admin - Orders"])
app.include_router(coupons.admin_router, prefix="/api/admin", tags=["Admin - Coupons"])
app.include_router(returns.router, prefix="/api/admin", tags=["Admin - Returns"])


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    """Render business errors in the standard envelope"""
    where = f"{request.method} {request.url.path}"
    if isinstance(exc, ExternalServiceFailure):
        logger.error(f"{where}: {exc.detail}")
    elif isinstance(exc, InvalidStateTransition):
        logger.warning(f"{where}: {exc.detail}")
    else:
        logger.info(f"{where} rejected: {exc.code} {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(404)
async def not_found_handler(request, exc):
    return JSONResponse(
        status_code=404,
        content={"success": False, "error": "Not Found", "detail": getattr(exc, "detail", None) or "Not found"},
    )


@app.exception_handler(500)
async def internal_error_handler(request, exc):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Internal Server Error", "detail": "Unexpected error"},
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("marketplace.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
