from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy import Engine

from authz.db.base import Base
from authz.engine import AuthorizationService, apply_bootstrap, load_bootstrap_config
from authz.engine.bootstrap import BootstrapReport

# Register every table on Base.metadata.
from authz.models import directory as _directory  # noqa: F401
from authz.models import rbac as _rbac  # noqa: F401

logger = logging.getLogger(__name__)


def create_tables(engine: Engine) -> None:
    Base.metadata.create_all(bind=engine)


def init_db(engine: Engine, service: AuthorizationService, bootstrap_path: Path | None) -> BootstrapReport | None:
    """
    Create tables, then provision permissions and system roles from YAML.

    Safe to run on every startup: existing permissions and roles are skipped.
    """

    create_tables(engine)
    if bootstrap_path is None:
        return None
    if not bootstrap_path.exists():
        logger.warning("RBAC bootstrap file not found: %s", bootstrap_path)
        return None
    return apply_bootstrap(service, load_bootstrap_config(bootstrap_path))
