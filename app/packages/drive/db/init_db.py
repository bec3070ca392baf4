"""Database bootstrapping utilities."""

from __future__ import annotations

from app.packages.drive.core.config import get_settings
from app.packages.drive.core.logger import logger
from app.packages.drive.db import session as db_session
from app.packages.drive.models.base import Base
from app.packages.drive.models.record_item import RecordItem  # noqa: F401 - ensure table creation


def init_db() -> None:
    """Create the record table when the SQL record backend is in use."""
    if get_settings().record_backend.upper() != "SQL":
        return
    Base.metadata.create_all(bind=db_session.engine)
    logger.info("record_items table ready at %s", db_session.engine.url.render_as_string(hide_password=True))
