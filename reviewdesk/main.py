import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from fastapi_users.password import PasswordHelper
from sqlalchemy import select

from .background import drain, spawn
from .database import async_session_maker, init_db
from .errors import ReviewDeskError
from .routers.comments import router as comments_router
from .routers.public import router as public_router
from .routers.reviews import router as reviews_router
from .services.retention import purge_expired_versions
from .services.scheduler import start_scheduler, stop_scheduler
from .settings.config import settings
from .users import UserRead, UserUpdate, auth_backend, fastapi_users

logging.basicConfig(level=settings.LOG_LEVEL.upper())
logger = logging.getLogger(__name__)

app = FastAPI(title="Review Desk")

# Compressed review files and comment screenshots
Path(settings.STORAGE_ROOT).mkdir(parents=True, exist_ok=True)
app.mount(settings.UPLOAD_URL_PREFIX, StaticFiles(directory=settings.STORAGE_ROOT), name="uploads")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ----------------------
# Route Includes
# ----------------------
app.include_router(reviews_router)
app.include_router(comments_router)
app.include_router(public_router)

# Authentication Routes
app.include_router(
    fastapi_users.get_auth_router(auth_backend),
    prefix="/auth/jwt",
    tags=["auth"]
)

app.include_router(
    fastapi_users.get_users_router(UserRead, UserUpdate),
    prefix="/users",
    tags=["users"]
)


# -----------------------------------------------------
# Domain errors -> {"detail": ...} with the mapped status
# -----------------------------------------------------
@app.exception_handler(ReviewDeskError)
async def _review_error_handler(request: Request, exc: ReviewDeskError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message, exc_info=exc)
    else:
        logger.info("%s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(RequestValidationError)
async def _request_validation_handler(request: Request, exc: RequestValidationError):
    logger.info("%s %s rejected: %s", request.method, request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"detail": "Invalid request", "errors": exc.errors()})


# ----------------------
# Auto-create admin user
# ----------------------
async def create_admin_user():
    from .models import User

    if not settings.ADMIN_EMAIL or not settings.ADMIN_PASSWORD:
        logger.warning("ADMIN_EMAIL or ADMIN_PASSWORD not set, skipping admin creation.")
        return

    async with async_session_maker() as session:
        result = await session.execute(select(User).where(User.email == settings.ADMIN_EMAIL))
        existing_admin = result.scalars().first()
        if not existing_admin:
            user = User(
                email=settings.ADMIN_EMAIL,
                hashed_password=PasswordHelper().hash(settings.ADMIN_PASSWORD),
                username=settings.ADMIN_USERNAME,
                is_superuser=True,
                is_active=True,
                is_verified=True,
            )
            session.add(user)
            await session.commit()
            logger.info("Admin user created: %s", settings.ADMIN_EMAIL)
        else:
            logger.info("Admin user already exists: %s", settings.ADMIN_EMAIL)


async def _startup_retention_sweep():
    async with async_session_maker() as db:
        await purge_expired_versions(db)


@app.on_event("startup")
async def on_startup():
    from . import models  # noqa: F401  Required for SQLAlchemy model detection
    await init_db()
    await create_admin_user()
    if settings.SCHEDULER_ENABLED:
        start_scheduler()
        # catch up on anything that expired while the service was down
        spawn(_startup_retention_sweep(), name="startup-retention-sweep")


@app.on_event("shutdown")
async def on_shutdown():
    stop_scheduler()
    await drain()


@app.get("/api/health")
async def health():
    return {"ok": True}
