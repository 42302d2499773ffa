import logging
from typing import Optional

from .settings import load_settings


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(level_name: Optional[str] = None) -> None:
    """Set up root logging at `level_name`, or at FORMFLOW_LOG_LEVEL from the environment or .env."""
    level_name = (level_name or load_settings().log_level).upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
