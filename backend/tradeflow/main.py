"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tradeflow import __version__
from tradeflow.config import settings
from tradeflow.core.exceptions import MarketplaceError
from tradeflow.api import rfqs, quotes, negotiations, orders, ai, realtime

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    logger.info("🚀 TradeFlow Settlement API starting...")
    logger.info(f"📝 Environment: {settings.ENVIRONMENT}")
    if not settings.NEGOTIATION_LLM_API_KEY:
        logger.warning("NEGOTIATION_LLM_API_KEY not set - AI endpoints will answer 502")

    yield

    logger.info("👋 TradeFlow Settlement API shutting down...")


# Create FastAPI app
app = FastAPI(
    title="TradeFlow Settlement API",
    version=__version__,
    description="B2B marketplace engine: RFQ quotes, live price negotiation and order settlement",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(rfqs.router, prefix=settings.API_V1_PREFIX)
app.include_router(quotes.router, prefix=settings.API_V1_PREFIX)
app.include_router(negotiations.router, prefix=settings.API_V1_PREFIX)
app.include_router(orders.router, prefix=settings.API_V1_PREFIX)
app.include_router(ai.router, prefix=settings.API_V1_PREFIX)
app.include_router(realtime.router, prefix=settings.API_V1_PREFIX)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "TradeFlow Settlement API",
        "version": __version__,
        "docs": "/docs",
        "redoc": "/redoc",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
    }


# Global exception handlers
@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """Handle HTTP exceptions with consistent error format."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail}
    )


@app.exception_handler(MarketplaceError)
async def marketplace_exception_handler(request, exc: MarketplaceError):
    """Map domain errors to HTTP responses in the same envelope."""
    if exc.status_code >= 500:
        logger.error(f"{exc.error_code}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.to_detail()}
    )
