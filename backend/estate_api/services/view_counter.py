"""
Fire-and-forget view counters.

Scheduled through FastAPI BackgroundTasks after a detail read has been
answered. Each increment runs in its own session; a failure is logged and
dropped so it can never affect the response it followed. Concurrent
increments of the same row may race; losing a count is acceptable.
"""

import logging

from estate_api.core.database import get_session_local
from estate_api.models.property import Property
from estate_api.models.service import Service

logger = logging.getLogger(__name__)


def _increment(model, column, row_id: int) -> None:
    db = None
    try:
        db = get_session_local()()
        db.query(model).filter(model.id == row_id).update(
            {column: column + 1}, synchronize_session=False
        )
        db.commit()
        db.close()
    except Exception as e:
        logger.warning(f"Error incrementing views for {model.__tablename__} {row_id}: {e}")
        _discard(db)


def _discard(db) -> None:
    # The connection may already be dead; nothing here may escape the task
    if db is None:
        return
    try:
        db.rollback()
        db.close()
    except Exception as e:
        logger.warning(f"Error discarding view counter session: {e}")


def increment_property_views(property_id: int) -> None:
    _increment(Property, Property.views, property_id)


def increment_service_views(service_id: int) -> None:
    _increment(Service, Service.views, service_id)
