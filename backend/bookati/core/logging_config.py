"""Process-wide logging setup shared by the API and the Celery workers."""

import logging

from .config import settings
from .request_context import attach_request_id_filter

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"


def setup_logging(level: str | None = None) -> None:
    logging.basicConfig(level=level or settings.log_level, format=LOG_FORMAT)
    attach_request_id_filter()
