"""
Configuration & logging setup shared by the app and both proxies.

Values come from the environment (a local .env file is loaded first).
"""
import logging
import os
import sys

from dotenv import load_dotenv

load_dotenv()

CAD_API_URL = os.getenv("CAD_API_URL", "https://ssd-api.jpl.nasa.gov/cad.api")
ASTEROID_PROXY_URL = os.getenv("ASTEROID_PROXY_URL", "")
CAD_TIMEOUT = float(os.getenv("CAD_TIMEOUT", "30"))

PROXY_HOST = os.getenv("PROXY_HOST", "0.0.0.0")
PROXY_PORT = int(os.getenv("PROXY_PORT", "3000"))
EDGE_PORT = int(os.getenv("EDGE_PORT", "8787"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Fallback window used by the proxies when a date is missing from the query
DEFAULT_START_DATE = "2025-09-04"
DEFAULT_END_DATE = "2025-10-04"


def setup_logging(level=None):
    """
    Configure the root logger with a single stdout handler.

    Existing handlers are cleared so Streamlit reruns don't stack duplicates.
    """
    level = level or LOG_LEVEL
    root = logging.getLogger()
    root.setLevel(level)

    if root.hasHandlers():
        root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    ))
    root.addHandler(handler)
