"""
Atomic unit-of-work helper.

Wraps a block of session mutations so that they are committed together or
not at all. A Request mutation and its RequestTransition (plus any
evaluation writes) always share one unit of work, so a status change can
never be persisted without its audit record.

Usage:
    with unit_of_work():
        req.status = "pending"
        record_transition(...)
"""

import logging
from contextlib import contextmanager

from reqflow.models import db

logger = logging.getLogger(__name__)


@contextmanager
def unit_of_work():
    """Commit on success; roll back and re-raise on any failure."""
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.debug("Unit of work rolled back", exc_info=True)
        raise
