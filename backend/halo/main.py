"""
Halo Backend - FastAPI Application

Protocol translation layer for agentic commerce: parses purchase intents,
builds ACP / UCP / x402 checkout payloads, normalizes them and gates
high-value submissions behind step-up verification.
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from .config import settings
from .exceptions import HaloError
from .db.init_db import initialize_database
from .mocks.card_vault import get_vault_status
from .mocks.catalog import lookup_product
from .mocks.payment_processor import get_processor_status
from .protocols import create_default_registry
from .services.checkout_orchestrator import CheckoutOrchestrator
from .services.risk_engine import RiskEngine
from .services.scheduler import SweepScheduler
from .services.step_up import StepUpVerificationService
from .api.intents import router as intents_router
from .api.protocols import router as protocols_router
from .api.checkout import router as checkout_router
from .api.verification import router as verification_router
from .api.cards import router as cards_router
from .api.payment_methods import router as payment_methods_router
from .api.orders import router as orders_router


# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def build_services(app: FastAPI) -> None:
    """Create the registry, step-up store, risk engine and orchestrator on app.state."""
    registry = create_default_registry()
    step_up = StepUpVerificationService()
    risk_engine = RiskEngine()

    app.state.registry = registry
    app.state.step_up = step_up
    app.state.risk_engine = risk_engine
    app.state.orchestrator = CheckoutOrchestrator(
        registry=registry,
        catalog_lookup=lookup_product,
        step_up=step_up,
        risk_engine=risk_engine,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    - Startup: initialize database, build services, start sweeps
    - Shutdown: stop the scheduler
    """
    logger.info("Starting Halo backend server...")
    logger.info(f"Demo mode: {settings.demo_mode}")

    try:
        initialize_database()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise

    build_services(app)
    logger.info(f"Protocols registered: {', '.join(e.protocol_name for e in app.state.registry.list())}")

    scheduler = None
    try:
        scheduler = SweepScheduler()
        scheduler.schedule_sweeps(app.state.step_up, risk_engine=app.state.risk_engine)
        scheduler.start()
        logger.info("APScheduler started for maintenance sweeps")
    except Exception as e:
        logger.error(f"Failed to start scheduler: {e}")
        if not settings.demo_mode:
            raise
        logger.warning("Continuing without scheduler in demo mode")

    logger.info("Server startup complete")

    yield

    logger.info("Shutting down Halo backend server...")
    if scheduler is not None:
        try:
            scheduler.shutdown(wait=True)
        except Exception as e:
            logger.error(f"Error during scheduler shutdown: {e}")


app = FastAPI(
    title="Halo API",
    description="Agentic commerce protocol translation and registry layer",
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(HaloError)
async def halo_error_handler(request: Request, exc: HaloError):
    """
    Handle Halo errors with the standardized response format.

    Status comes from the error class (400 by default).
    """
    logger.warning(f"Halo error: {exc.error_code} - {exc.message}", extra={"details": exc.details})

    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def general_error_handler(request: Request, exc: Exception):
    """
    Catch-all handler for unexpected errors.

    Logs full exception for debugging but returns generic message to client.
    """
    logger.error(f"Unexpected error: {str(exc)}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={
            "error_code": "internal_error",
            "message": "An unexpected error occurred",
            "details": {"error_type": type(exc).__name__} if settings.demo_mode else {}
        }
    )


@app.get("/api/health")
async def health_check():
    """Health check endpoint for monitoring and load balancers."""
    return {
        "status": "healthy",
        "version": "0.1.0",
        "demo_mode": settings.demo_mode,
        "protocols": [e.protocol_name for e in app.state.registry.list()],
        "card_vault": get_vault_status(),
        "payment_processor": get_processor_status(),
    }


app.include_router(intents_router, prefix="/halo", tags=["Intents"])
app.include_router(protocols_router, prefix="/halo", tags=["Protocols"])
app.include_router(checkout_router, prefix="/halo", tags=["Checkout"])
app.include_router(verification_router, prefix="/api/verification", tags=["Verification"])
app.include_router(cards_router, prefix="/api/cards", tags=["Cards"])
app.include_router(payment_methods_router, prefix="/api/payment-methods", tags=["Payment Methods"])
app.include_router(orders_router, prefix="/api/orders", tags=["Orders"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "halo.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.demo_mode,
        log_level=settings.log_level.lower()
    )
