from typing import Optional

from fastapi import Depends
from fastapi_users import FastAPIUsers, schemas
from fastapi_users.manager import BaseUserManager, IntegerIDMixin
from fastapi_users.authentication import CookieTransport, AuthenticationBackend, JWTStrategy
from fastapi_users.db import SQLAlchemyUserDatabase

from .models import User
from .database import get_db
from .settings.config import settings


SECRET = (settings.SECRET or "").strip()
if not SECRET or SECRET == "CHANGE_ME_SECRET":
    raise RuntimeError(
        "SECRET environment variable must be set to a strong value; the default placeholder is not allowed."
    )


# -------------------------
# Schemas
# -------------------------
class UserRead(schemas.BaseUser[int]):
    username: Optional[str] = None


class UserUpdate(schemas.BaseUserUpdate):
    username: Optional[str] = None


# -------------------------
# Database Dependency
# -------------------------
async def get_user_db(session=Depends(get_db)):
    yield SQLAlchemyUserDatabase(session, User)


# -------------------------
# User Manager
# -------------------------
class UserManager(IntegerIDMixin, BaseUserManager[User, int]):
    reset_password_token_secret = SECRET
    verification_token_secret = SECRET


async def get_user_manager(user_db=Depends(get_user_db)):
    yield UserManager(user_db)


# -------------------------
# Authentication Backend
# -------------------------
cookie_transport = CookieTransport(
    cookie_name="session",
    cookie_max_age=3600 * 24,
    cookie_secure=settings.COOKIE_SECURE,
    cookie_httponly=True,
)


def get_jwt_strategy() -> JWTStrategy:
    return JWTStrategy(secret=SECRET, lifetime_seconds=3600 * 24)


auth_backend = AuthenticationBackend(
    name="jwt",
    transport=cookie_transport,
    get_strategy=get_jwt_strategy,
)

# -------------------------
# FastAPI Users instance
# -------------------------
fastapi_users = FastAPIUsers[User, int](
    get_user_manager,
    [auth_backend],
)
