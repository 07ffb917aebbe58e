"""
Process logging configuration.

Services log through ``logging.getLogger(__name__)``; this module only wires
the root logger once, at application startup.
"""
import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """
    Configure the root logger with a single stdout handler.

    Calling it again replaces the handler instead of stacking a second one.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    # httpx logs every request at INFO, which drowns out sync outcomes.
    logging.getLogger("httpx").setLevel(logging.WARNING)
