"""Logging configuration for pyinflate entry points."""

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for CLI and server processes."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
    # uvicorn installs its own handlers; keep its access log quieter
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
