"""Marketplace FastAPI application.

Web server for checkout, order fulfillment and cancellation. Every request
runs inside the marketplace domain context.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

import uuid
from contextlib import asynccontextmanager

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay in domain.toml.
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from marketplace.domain import marketplace

marketplace.init()

from marketplace.api import (  # noqa: E402
    checkout_router,
    order_router,
    register_error_handlers,
    seller_router,
)
from marketplace.services import build_services  # noqa: E402
from marketplace.utils.logging import add_context, clear_context  # noqa: E402


@asynccontextmanager
async def lifespan(app: FastAPI):
    with marketplace.domain_context():
        app.state.services = build_services()
    yield
    app.state.services.shutdown()


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Marketplace API",
    description="Multi-vendor checkout and order fulfillment",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the marketplace domain context for each request."""
    clear_context()
    add_context(request_id=request.headers.get("x-request-id") or uuid.uuid4().hex, path=request.url.path)
    with marketplace.domain_context():
        response = await call_next(request)
    return response


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
app.include_router(checkout_router)
app.include_router(order_router)
app.include_router(seller_router)
register_error_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": marketplace.name})
