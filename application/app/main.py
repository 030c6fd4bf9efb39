import asyncio
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

from app.logging.utils import initialize_logging, get_app_logger
from app.middlewares.logging_middleware import AuditMiddleware

load_dotenv()

# Initialize Sentry (must be done early, before other imports)
from app.config.sentry import init_sentry
init_sentry()

# Initialize structured logging
initialize_logging()
logger = get_app_logger('app.main')

from app.config.settings import AuthConfigs
configs = AuthConfigs()

logger.info(f"Running in {'debug' if configs.DEBUG else 'production'} mode")

from app.dependencies import get_otp_store


async def reap_expired_otps(app: FastAPI, interval_seconds: int):
    """Periodically drop abandoned OTPs from the OTP store."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            store = app.dependency_overrides.get(get_otp_store, get_otp_store)()
            removed = store.reap(time.time())
            if removed:
                logger.info(f"otp_reaper | removed={removed}")
        except Exception as e:
            logger.error(f"otp_reaper_error | error={e}", exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting ChatAB auth service")
    reaper = None
    if configs.OTP_REAP_INTERVAL_SECONDS > 0:
        reaper = asyncio.create_task(reap_expired_otps(app, configs.OTP_REAP_INTERVAL_SECONDS))
    yield
    logger.info("Shutting down ChatAB auth service")
    if reaper:
        reaper.cancel()
        try:
            await reaper
        except asyncio.CancelledError:
            pass

# Disable docs in production (when DEBUG=false)
docs_url = "/docs" if configs.DEBUG else None
redoc_url = "/redoc" if configs.DEBUG else None

app = FastAPI(
    title="ChatAB Auth",
    version=configs.APP_VERSION,
    lifespan=lifespan,
    docs_url=docs_url,
    redoc_url=redoc_url
)

if configs.ALLOWED_ORIGINS:
    origins = [origin.strip() for origin in configs.ALLOWED_ORIGINS.split(",")]
else:
    origins = ["*"]

# Request/Audit logging middleware (place early)
app.add_middleware(AuditMiddleware)

logger.info(f"Configuring CORS with allowed origins: {origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register custom exception handlers
from app.middlewares.handlers import register_exception_handlers
register_exception_handlers(app)


# Routes
from app.routes.auth import router as auth_router
from app.routes.health import router as health_router

app.include_router(auth_router)
app.include_router(health_router, tags=["health"])


def run():
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=configs.PORT)


if __name__ == "__main__":
    run()
