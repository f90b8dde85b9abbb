"""Courier dispatch FastAPI application.

Processes commands synchronously via HTTP and runs the reconciliation
scheduler in the background for the lifetime of the process.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

from contextlib import asynccontextmanager

from dispatch.domain import dispatch
from dispatch.utils.logging import configure_logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# PROTEAN_ENV controls which config overlay is applied:
#   - "test"        → testing = true
#   - "development" → debug = true
configure_logging()
dispatch.init()


@asynccontextmanager
async def lifespan(app: FastAPI):
    from dispatch.assignment import get_scheduler, reset_scheduler

    get_scheduler().start()
    yield
    reset_scheduler()


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Courier Dispatch API",
    description="Order dispatch — courier matching, delivery progress and settlement",
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
    """Push the dispatch domain context for each request."""
    with dispatch.domain_context():
        response = await call_next(request)
    return response


register_exception_handlers(app)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from dispatch.api import (  # noqa: E402
    courier_router,
    delivery_router,
    dispatch_router,
    order_router,
)

app.include_router(order_router)
app.include_router(courier_router)
app.include_router(delivery_router)
app.include_router(dispatch_router)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    from dispatch.assignment import get_scheduler

    return JSONResponse(
        content={
            "status": "ok",
            "domain": {"name": dispatch.name},
            "scheduler": {"running": get_scheduler().status()["running"]},
        }
    )
