"""
Storefront - Application Entry Point
======================================
FastAPI app initialization, middleware, error handlers, and router registration.
"""

import logging
import os
import time as _time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from config import settings
from config.database import Base, engine
from common.exceptions import StoreError

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
request_logger = logging.getLogger("storefront.request")
error_logger = logging.getLogger("storefront.errors")


# ==========================================
# Import ALL models so Alembic/Base can see them
# ==========================================
from modules.user.models import User  # noqa: F401,E402
from modules.catalog.models import Product  # noqa: F401,E402
from modules.cart.models import Cart, CartItem  # noqa: F401,E402
from modules.order.models import Order, OrderItem  # noqa: F401,E402

# ==========================================
# Import routers
# ==========================================
from modules.catalog.routes import router as catalog_router  # noqa: E402
from modules.catalog.admin_routes import router as catalog_admin_router  # noqa: E402
from modules.cart.routes import router as cart_router  # noqa: E402
from modules.order.admin_routes import router as order_admin_router  # noqa: E402
from modules.order.routes import router as order_router  # noqa: E402
from modules.user.routes import router as user_router  # noqa: E402


@asynccontextmanager
async def lifespan(app):
    # Auto-create any missing tables (safe for existing tables)
    Base.metadata.create_all(bind=engine)
    request_logger.info("Storefront %s started", settings.APP_VERSION)
    yield


# ==========================================
# Create App
# ==========================================
app = FastAPI(
    title="Storefront",
    description="Catalog, cart and order API",
    version=settings.APP_VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url=None,
    lifespan=lifespan,
)

# ==========================================
# Static Files (uploaded product images)
# ==========================================
os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
app.mount(settings.MEDIA_URL, StaticFiles(directory=settings.UPLOAD_DIR), name="media")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ==========================================
# Exception handlers
# ==========================================
@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    return JSONResponse(
        {"success": False, "code": exc.code, "message": exc.message},
        status_code=exc.status_code,
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{field}: {first.get('msg')}" if field else (first.get("msg") or "Invalid request")
    return JSONResponse(
        {"success": False, "code": "invalid_argument", "message": message},
        status_code=400,
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    error_logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        {"success": False, "code": "internal", "message": "Internal Server Error"},
        status_code=500,
    )


# ==========================================
# Middleware: Request Log
# ==========================================
_SKIP_PATHS = (settings.MEDIA_URL, "/health", "/favicon.ico")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log method, path, status and elapsed time for every API call."""
    path = request.url.path
    if any(path.startswith(p) for p in _SKIP_PATHS):
        return await call_next(request)

    start = _time.time()
    response = await call_next(request)
    elapsed_ms = int((_time.time() - start) * 1000)
    request_logger.info("%s %s -> %s (%d ms)", request.method, path, response.status_code, elapsed_ms)
    return response


# ==========================================
# Register Routers
# ==========================================
app.include_router(user_router)
app.include_router(catalog_router)
app.include_router(catalog_admin_router)
app.include_router(cart_router)
app.include_router(order_admin_router)
app.include_router(order_router)


# ==========================================
# Health check
# ==========================================
@app.get("/health")
async def health():
    return {"status": "ok", "version": settings.APP_VERSION}
