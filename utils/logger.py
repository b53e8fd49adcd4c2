import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-22s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_configured = False

def setup_logging(level: str = "INFO"):
    """Configure the root logger once, stdout only."""
    global _configured
    root = logging.getLogger()
    root.setLevel(level.upper())
    if _configured:
        return root
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root.addHandler(handler)
    # third party noise
    logging.getLogger("pymongo").setLevel(logging.WARNING)
    logging.getLogger("twilio.http_client").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.ERROR)
    _configured = True
    return root

def get_logger(name: str) -> logging.Logger:
    if not _configured:
        setup_logging()
    return logging.getLogger(name)
