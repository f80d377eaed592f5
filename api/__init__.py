"""REST API module for the pricing lifecycle.

This module provides HTTP endpoints for:
- Lifecycle status and admin transitions (advance, pause, resume)
- Phase duration and series growth configuration
- Recording completed sales
- Public price quotes and the tier table
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import pricing_settings
from lifecycle import (
    LifecycleController, LifecycleError, ValidationError, StateConflictError,
    NotFoundError, PersistenceError
)
from pricing import TierClassifier

logger = logging.getLogger(__name__)

# Most specific class first
ERROR_STATUS_CODES = (
    (ValidationError, 400),
    (NotFoundError, 404),
    (StateConflictError, 409),
    (PersistenceError, 503),
)

def status_code_for(error: LifecycleError) -> int:
    for error_class, status_code in ERROR_STATUS_CODES:
        if isinstance(error, error_class):
            return status_code
    return 500

# Lifecycle management
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the controller and seed the lifecycle on startup."""
    logger.info("Initializing API...")
    app.state.settings = getattr(app.state, 'settings', None) or pricing_settings
    if getattr(app.state, 'classifier', None) is None:
        app.state.classifier = TierClassifier.from_settings(app.state.settings)
    if getattr(app.state, 'controller', None) is None:
        app.state.controller = LifecycleController(settings=app.state.settings)
    await app.state.controller.initialize()

    yield

    logger.info("Shutting down API...")
    await app.state.controller.audit.flush()

# Create FastAPI app
app = FastAPI(
    title="Pricing Lifecycle API",
    description="Series and phase pricing lifecycle for the marketplace",
    version="1.0.0",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(LifecycleError)
async def lifecycle_error_handler(request: Request, exc: LifecycleError):
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc.code}: {exc.message}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())

# Root endpoint - register this BEFORE other routers
@app.get("/")
async def root():
    """Service banner."""
    return {
        'name': app.title,
        'version': app.version,
        'docs': app.docs_url
    }

# Import and include all routers
from .lifecycle import router as lifecycle_router
from .pricing import router as pricing_router

app.include_router(lifecycle_router)
app.include_router(pricing_router)
