import logging
import os

DATABASE_URL = os.environ.get("INTERVAL_LOG_DATABASE_URL", "sqlite:///./interval_log.db")
LOG_LEVEL = os.environ.get("INTERVAL_LOG_LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once for the process"""
    logging.basicConfig(level=(level or LOG_LEVEL).upper(), format=LOG_FORMAT)
