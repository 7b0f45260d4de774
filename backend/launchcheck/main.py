"""
Launch Checklist Engine - FastAPI Application

Main entry point for the Launch Checklist Engine backend.

Architecture:
- Catalog → ListingSnapshot (read-only input)
- ListingSnapshot + Checklist → AuditEngine → AuditResult (stored, replaced per run)
- Failed item → FixDispatcher → ONE catalog mutation → re-audit
- Many products → BatchProcessor → progress stream (SSE)
"""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .database import init_db
from .routers import audits_router, bulk_router, products_router, shop_router, webhooks_router

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    init_db()
    yield

# Create FastAPI app
app = FastAPI(
    lifespan=lifespan,
    title="Launch Checklist Engine",
    description="""
    Launch Checklist Engine - Product Listing Audit and Remediation

    Audits catalog listings against a per-shop checklist of weighted rules,
    and fixes failed items automatically, with AI generation, or in bulk.

    ## Pipeline
    1. **Audit**: ListingSnapshot + checklist → AuditResult (score, ready/incomplete)
    2. **Fix**: failed item → auto / ai / manual strategy → catalog mutation
    3. **Bulk**: operation × products → paced batches → progress stream

    ## Key Principles
    - Rules are pure functions of (listing, typed config)
    - One failing rule never stops the rest of the checklist
    - AI credits are consumed only after a fix succeeded
    - One product failing never stops a bulk run
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(shop_router)
app.include_router(audits_router)
app.include_router(products_router)
app.include_router(bulk_router)
app.include_router(webhooks_router)


@app.get("/")
async def root():
    """Root endpoint - API information."""
    return {
        "name": "Launch Checklist Engine",
        "version": __version__,
        "description": "Product listing audit and remediation",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}


# For running with: python -m launchcheck.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
