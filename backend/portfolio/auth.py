from __future__ import annotations

import hmac
import logging
import os
from typing import Optional

from .errors import ServiceNotConfigured, Unauthorized

logger = logging.getLogger(__name__)


def check_admin_password(password: Optional[str]) -> None:
    """Raise unless ``password`` matches ``ADMIN_PASSWORD``."""
    expected = os.getenv("ADMIN_PASSWORD", "")
    if not expected:
        logger.error("Admin password requested but ADMIN_PASSWORD is not configured")
        raise ServiceNotConfigured("Admin password not configured")
    if not password or not hmac.compare_digest(password.encode("utf-8"), expected.encode("utf-8")):
        logger.warning("Rejected admin authentication attempt")
        raise Unauthorized("Invalid password")
