import logging
import os

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

def configure_logging() -> None:
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(level=level, format=_FORMAT)
