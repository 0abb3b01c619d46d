from __future__ import annotations

import logging
import os


def configure_logging(level: str | None = None) -> None:
    """Simple, dev-friendly logging setup.

    Uvicorn config can override this, but this gives us sane defaults when running locally.
    """
    name = (level or os.getenv("LOG_LEVEL") or "INFO").upper().strip()
    logging.basicConfig(
        level=getattr(logging, name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
