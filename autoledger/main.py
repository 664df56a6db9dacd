"""autoledger API: main entry point."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from autoledger.config import settings
from autoledger.core.database import async_session_factory, engine
from autoledger.core.exceptions import PersistenceError, RulesFileError
from autoledger.core.middleware import RequestLoggingMiddleware
from autoledger.services.rule_cache import RuleCache
from autoledger.services.rule_engine import RuleEngine
from autoledger.services.rule_store import SqlRuleStore

logger = structlog.get_logger()


def build_rule_engine() -> RuleEngine:
    """One engine (and rule cache) per process."""
    cache = RuleCache(
        SqlRuleStore(async_session_factory),
        ttl_seconds=settings.rule_cache_ttl_seconds,
    )
    return RuleEngine(cache, progress_interval=settings.classification_progress_interval)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown events."""
    # Startup
    logger.info("Starting autoledger API", env=settings.app_env)
    app.state.rule_engine = build_rule_engine()
    yield
    # Shutdown
    logger.info("Shutting down autoledger API")
    await engine.dispose()


app = FastAPI(
    title="autoledger API",
    description="Rule-based bank transaction classification",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    redirect_slashes=False,
)

# ── Middleware ─────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)


# ── Domain error mapping ───────────────────────────
@app.exception_handler(RulesFileError)
async def rules_file_error_handler(request: Request, exc: RulesFileError):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    logger.error("persistence_error", path=request.url.path, error=str(exc), saved_count=exc.saved_count)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc), "saved_count": exc.saved_count},
    )


# ── Health Check ──────────────────────────────────
@app.get("/health", tags=["system"])
async def health_check():
    """Liveness probe: always returns healthy if the process is running."""
    return {"status": "healthy", "version": "0.1.0"}


@app.get("/ready", tags=["system"])
async def readiness_check():
    """Readiness probe: checks DB connectivity."""
    checks = {"database": "unknown", "api": "ok"}
    try:
        async with async_session_factory() as session:
            await session.execute(text("SELECT 1"))
            checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {e}"
        return {"status": "degraded", "checks": checks}

    return {"status": "ready", "checks": checks}


# ── API Routes ────────────────────────────────────
from autoledger.api.v1 import classification, rules, transactions  # noqa: E402

app.include_router(rules.router, prefix="/api/v1/rules", tags=["rules"])
app.include_router(classification.router, prefix="/api/v1/classification", tags=["classification"])
app.include_router(transactions.router, prefix="/api/v1/transactions", tags=["transactions"])
