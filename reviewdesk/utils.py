import os
import re
from datetime import datetime, timezone

from fastapi import Depends, HTTPException, status
from fastapi_users import models

from .users import fastapi_users


def clean_filename(name: str) -> str:
    name = os.path.basename(name or "")
    name = re.sub(r"[^\w\-_.]", "_", name)
    return name or "document"


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def actor_label(user) -> str:
    if not user:
        return "System"
    return (getattr(user, "username", None) or getattr(user, "email", None) or "System").strip()


# Dependency to enforce authentication for internal routes
async def require_authenticated_user(
    user: models.UP = Depends(fastapi_users.current_user(active=True)),
):
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return user


async def require_admin_user(
    user: models.UP = Depends(fastapi_users.current_user(active=True)),
):
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    if not getattr(user, "is_superuser", False):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user
