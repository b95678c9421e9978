"""Runtime settings read from the environment."""

import logging
import os
from typing import Optional

from formengine.models import FORM_CATEGORIES

logger = logging.getLogger(__name__)


def _int_env(name: str, default: Optional[int]) -> Optional[int]:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r, using %r", name, value, default)
        return default


class Settings:
    """Engine settings.

    Environment variables:
        FORMENGINE_UPLOAD_PREFIX: Leading segment of upload scope keys
        FORMENGINE_MAX_CONCURRENT_UPLOADS: Uploads resolved at once per submit
        FORMENGINE_UPLOAD_MAX_BYTES: Size limit for the in-memory upload service
        FORMENGINE_DEFAULT_CATEGORY: Category given to new templates
        FORMENGINE_DEFAULT_OPTION_COUNT: Options seeded for new option fields
    """

    def __init__(self) -> None:
        self.upload_prefix = os.getenv("FORMENGINE_UPLOAD_PREFIX", "form_uploads").strip("/")
        self.max_concurrent_uploads = max(1, _int_env("FORMENGINE_MAX_CONCURRENT_UPLOADS", 4) or 1)
        self.upload_max_bytes = _int_env("FORMENGINE_UPLOAD_MAX_BYTES", None)
        self.default_category = os.getenv("FORMENGINE_DEFAULT_CATEGORY", FORM_CATEGORIES[0])
        self.default_option_count = max(0, _int_env("FORMENGINE_DEFAULT_OPTION_COUNT", 3) or 0)


SETTINGS = Settings()


__all__ = [
    "Settings",
    "SETTINGS",
]
