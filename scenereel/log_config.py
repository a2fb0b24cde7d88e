from __future__ import annotations

import logging


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for scripts that drive a pipeline."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    # httpx 每个请求都会打 INFO，除非调试否则压低
    if level.upper() != "DEBUG":
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
