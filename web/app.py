"""
FastAPI application for the valuation engine.

Production deployment configuration via environment variables.
"""

import logging
import os
from typing import List, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from core.comp_engine.errors import InvalidValuationRequestError
from core.comp_engine.models import ValuationRequest
from core.comp_engine.valuation import ValuationOrchestrator
from utils.config import Config

logger = logging.getLogger(__name__)

# =============================================================================
# Environment Configuration
# =============================================================================

# Production mode detection
IS_PRODUCTION = os.getenv("PRODUCTION", "").lower() == "true"

# CORS configuration
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "").split(",") if os.getenv("ALLOWED_ORIGINS") else []
if not ALLOWED_ORIGINS and not IS_PRODUCTION:
    # Development fallback only
    ALLOWED_ORIGINS = ["http://localhost:8000", "http://127.0.0.1:8000"]


class ValuationInput(BaseModel):
    """Request body for a valuation."""
    address: str
    area_sqm: float
    age_years: int
    purpose: str  # sale, purchase, rental (or 売却 / 購入 / 賃貸)
    property_use: Optional[str] = None
    search_radius_km_override: Optional[float] = None
    lookback_months_override: Optional[int] = None


class ValidationErrorResponse(BaseModel):
    detail: str
    errors: List[str]


def create_app(
    config: Config = None,
    orchestrator: ValuationOrchestrator = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Application configuration (default: loaded from environment)
        orchestrator: Pre-built orchestrator (default: built from config)
    """
    config = config or Config.load()

    app = FastAPI(
        title="Comparable-Sales Valuation Engine",
        description="Property valuation from comparable transactions",
        version="1.0.0",
        docs_url=None if IS_PRODUCTION else "/docs",
        redoc_url=None if IS_PRODUCTION else "/redoc",
        openapi_url=None if IS_PRODUCTION else "/openapi.json",
        debug=config.debug and not IS_PRODUCTION,
    )

    # Healthchecks: synchronous, no IO
    @app.get("/", include_in_schema=False)
    def root():
        """Root healthcheck. No dependencies, no IO."""
        return {"status": "ok"}

    @app.get("/health", include_in_schema=False)
    def health():
        """Secondary health endpoint. No dependencies, no IO."""
        return {"status": "healthy"}

    if ALLOWED_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=ALLOWED_ORIGINS,
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )

    # One orchestrator per app; it holds no per-request state
    engine = orchestrator or ValuationOrchestrator.from_config(config)

    @app.post(
        "/api/valuation",
        responses={400: {"model": ValidationErrorResponse}},
    )
    def valuation(body: ValuationInput):
        """
        Value a property from comparable transactions.

        Runs in the threadpool: the live fetch stage blocks on HTTP calls.

        Returns:
            ValuationResult as JSON (money as integer yen, enums as tokens)
        """
        try:
            request = ValuationRequest.from_dict(body.model_dump())
        except InvalidValuationRequestError as exc:
            logger.info("Rejected valuation request: %s", "; ".join(exc.errors))
            return JSONResponse(
                status_code=400,
                content={"detail": "Invalid valuation request", "errors": exc.errors},
            )

        result = engine.evaluate(request)
        return result.to_dict()

    @app.get("/api/health")
    def api_health():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": "1.0.0",
            "environment": "production" if IS_PRODUCTION else "development",
            "live_source": bool(config.reinfolib_api_key),
        }

    return app


# Create app instance for uvicorn
app = create_app()
