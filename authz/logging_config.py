from __future__ import annotations

import logging


def configure_app_logging(level: str = "INFO") -> None:
    """
    Apply `AUTHZ_LOG_LEVEL` to the `authz.*` loggers.

    Handlers belong to whoever hosts the app (uvicorn, a test runner). At
    DEBUG every access decision is logged with an `AUTHZ:` prefix; INFO covers
    catalog, role, assignment and override changes.
    """

    package_logger = logging.getLogger("authz")
    package_logger.setLevel(level.upper())
    package_logger.propagate = True
