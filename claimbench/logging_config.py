from __future__ import annotations
import logging, os, sys
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

def configure_logging(level: Optional[str] = None) -> None:
    """Configure stdlib logging for the CLI.
    Level falls back to CLAIMBENCH_LOG_LEVEL, then INFO.
    """
    level_str = level or os.getenv("CLAIMBENCH_LOG_LEVEL", "INFO")
    numeric = getattr(logging, level_str.upper(), logging.INFO)
    logging.basicConfig(level=numeric, format=LOG_FORMAT, stream=sys.stderr, force=True)
