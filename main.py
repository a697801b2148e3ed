"""
Parks Concession Billing - FastAPI Backend

This is the main entry point for the Python backend that handles:
- Concession payment configurations and charge rules
- Monthly income reports from concessionaires
- Hybrid monthly payment calculation with minimum guarantees
"""

from dotenv import load_dotenv

# Load environment variables FIRST - before importing modules that need them
load_dotenv()

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from typing import Dict
import os
import logging

from api.concessions import router as concessions_router
from db.database import init_connection_pool, close_connection_pool
from middleware.rate_limiter import setup_rate_limiting, limit_default, limit_health

# Configure logging
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)


# Lifespan handler for startup/shutdown events
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: open the database pool
    try:
        init_connection_pool()
    except Exception as e:
        logger.warning(f"Database initialization failed: {e}")
    yield
    # Shutdown: release connections
    try:
        close_connection_pool()
    except Exception as e:
        logger.warning(f"Database pool shutdown error: {e}")


app = FastAPI(
    title="Parks Concession Billing API",
    description="Backend API for concession payment configuration, income reports and monthly payment calculation",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Setup rate limiting (before other middleware)
setup_rate_limiting(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
        if origin.strip()
    ],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(concessions_router)


@app.get("/", response_model=Dict[str, str])
@limit_default
async def root(request: Request) -> Dict[str, str]:
    """
    Root endpoint with API information.

    Returns:
        Dict containing API name, version, and documentation links
    """
    return {
        "service": "Parks Concession Billing API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "status": "running",
    }


@app.get("/health", response_model=Dict[str, str])
@limit_health
async def health_check(request: Request) -> Dict[str, str]:
    """
    Health check endpoint for monitoring and load balancers.

    Returns:
        Dict with health status and service information
    """
    return {
        "status": "healthy",
        "service": "concession-billing-backend",
        "version": "1.0.0",
    }


if __name__ == "__main__":
    import uvicorn

    # Run with: python main.py
    # Or use: uvicorn main:app --reload --port 8000
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )
