"""
Logging setup for the EcoHunt reward engine.

stdout only: gunicorn / Railway / Render capture it automatically.
Modules log through `logging.getLogger(__name__)`; this only wires the root.
"""
import logging
import sys

from app.core.config import settings

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str | None = None) -> None:
    """Configure the root logger once. Safe to call repeatedly."""
    root = logging.getLogger()

    # Avoid adding handlers multiple times (uvicorn reload, tests)
    if any(getattr(h, "_ecohunt", False) for h in root.handlers):
        return

    root.setLevel((level or settings.LOG_LEVEL).upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT))
    handler._ecohunt = True  # type: ignore[attr-defined]
    root.addHandler(handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
