# src/dealroom/main.py
"""Main entry point for the Dealroom application."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from dealroom.api.v1 import admin_router, conversations_router
from dealroom.core.settings import settings
from dealroom.services.errors import DealroomError

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Dealroom API",
    description="Brand/influencer negotiation and payment-release state machine",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(conversations_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")


@app.exception_handler(DealroomError)
async def dealroom_error_handler(request: Request, exc: DealroomError) -> JSONResponse:
    """Render core errors as ``{"success": false, "error": code, "detail": ...}``."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": "Brand/influencer negotiation and payment-release state machine",
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("dealroom.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
