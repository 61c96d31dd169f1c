from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from detachements.core.database import session_manager

from detachements.api.v1.endpoints.auth import router as auth_router
from detachements.api.v1.endpoints.requests import router as requests_router

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
import logging
from contextlib import asynccontextmanager
from detachements.core.config import settings
from detachements.core.errors import ServiceError, ValidationError
from detachements.core.limiter import limiter
from detachements.services.AdminUserStore import seed_admin_from_settings
from detachements.services.NotificationSink import drain_notification_sink

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Async context manager for app lifespan events"""

    try:
        logger.info("🚀 Starting Détachements API...")

        logger.info("🔌 Initializing database...")
        await session_manager.init()
        logger.info("✅ Database ready")

        async with session_manager.get_session() as db:
            await seed_admin_from_settings(db)
    except Exception as e:
        logger.critical(f"🔥 Application startup failed: {str(e)}")
        raise

    try:
        logger.info("🏁 Détachements API startup complete")
        yield
    finally:
        try:
            logger.info("🛑 Beginning application shutdown...")

            logger.info("📨 Waiting for queued emails...")
            await drain_notification_sink()

            logger.info("🔌 Closing database connections...")
            await session_manager.close()
            logger.info("✅ Database connections closed cleanly")
        except Exception as e:
            logger.error(f"⚠️ Error during shutdown: {str(e)}")
            raise
        finally:
            logger.info("👋 Application shutdown complete")


app = FastAPI(
    title="Détachements API",
    description="Submission, follow-up and validation of union leave (détachement) requests",
    version="1.0.0",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(f"Request: {request.method} {request.url}")
    response = await call_next(request)
    logger.info(f"Response status: {response.status_code}")
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    content = {"error": exc.message}
    if isinstance(exc, ValidationError):
        content["field"] = exc.field
    if exc.status_code >= 500:
        logger.error(f"Service error on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.__class__.__name__} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logging.error(f"Validation Error: {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content={"detail": exc.errors()},
    )


@app.get("/", response_class=HTMLResponse, include_in_schema=False)
async def home():
    return """
    <style>body{font-family:system-ui,Segoe UI,Roboto,Arial,sans-serif;padding:2rem;line-height:1.5}code{background:#f6f8fa;border-radius:6px;padding:.1rem .3rem}</style>
    <h1>Détachements API</h1>
    <p>Service en ligne ✅</p>
    <p>Healthcheck : <a href="/api/health">/api/health</a></p>
    <h3>Endpoints</h3>
    <ul>
      <li><code>POST /api/requests</code> — créer une demande</li>
      <li><code>POST /api/auth/login</code> — login admin</li>
      <li><code>GET /api/requests?status=pending|sent|refused|cancelled</code> — lister (admin)</li>
      <li><code>POST /api/requests/:id/validate</code> — valider &amp; envoyer</li>
      <li><code>POST /api/requests/:id/refuse</code> — refuser &amp; notifier le demandeur</li>
      <li><code>POST /api/requests/:id/cancel</code> — annuler &amp; notifier le demandeur</li>
      <li><code>GET /api/requests/export.csv</code> — export CSV complet (admin)</li>
    </ul>
    """


@app.get("/health", tags=["Health Check"])
@app.get("/api/health", tags=["Health Check"])
async def health_check():
    return {"ok": True}


app.include_router(auth_router, prefix="/api", tags=["Authentication"])
app.include_router(requests_router, prefix="/api", tags=["Requests"])

logger.info(f"✅ Loaded {len(app.routes)} routes")
