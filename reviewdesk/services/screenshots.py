"""Reviewer screenshots attached to comments.

Browsers post them as base64 data URLs. They are decoded, verified and
re-encoded as PNG with Pillow so nothing but a real image ends up on disk.
"""
from __future__ import annotations

import base64
import binascii
import io
import logging
import uuid
from pathlib import Path
from typing import Optional

from PIL import Image, UnidentifiedImageError

from reviewdesk.errors import ValidationError
from reviewdesk.services.processor import ArtifactLayout

logger = logging.getLogger(__name__)

MAX_SCREENSHOT_BYTES = 8 * 1024 * 1024
MAX_SCREENSHOT_SIDE = 2400


def _decode(data_url: str) -> bytes:
    payload = data_url.split(",", 1)[1] if data_url.startswith("data:") else data_url
    try:
        raw = base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError("Screenshot is not valid base64") from exc
    if len(raw) > MAX_SCREENSHOT_BYTES:
        raise ValidationError("Screenshot is too large")
    return raw


def save_screenshot(data_url: Optional[str], layout: Optional[ArtifactLayout] = None) -> Optional[str]:
    """Store a data-URL screenshot and return its public URL (None when absent)."""
    if not data_url:
        return None
    layout = layout or ArtifactLayout()
    raw = _decode(data_url)
    try:
        with Image.open(io.BytesIO(raw)) as img:
            img.load()
            if img.mode not in ("RGB", "RGBA"):
                img = img.convert("RGBA")
            img.thumbnail((MAX_SCREENSHOT_SIDE, MAX_SCREENSHOT_SIDE))
            rel = Path("screenshots") / f"{uuid.uuid4().hex}.png"
            dst = layout.absolute(rel)
            dst.parent.mkdir(parents=True, exist_ok=True)
            img.save(dst, format="PNG", optimize=True)
    except (UnidentifiedImageError, OSError) as exc:
        raise ValidationError("Screenshot is not a readable image") from exc
    logger.debug("Saved screenshot %s", rel)
    return layout.url_for(rel)
