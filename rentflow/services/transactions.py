"""Optimistic write discipline shared by the lifecycle engines.

Versioned models raise ``StaleDataError`` at flush time when another writer
committed first. Operations wrapped here re-read their rows by id on every
attempt, so a retry re-validates against the fresh state instead of
overwriting it.
"""
import logging
from functools import wraps

from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from rentflow import db
from rentflow.errors import ConcurrencyConflict, NotFound

logger = logging.getLogger(__name__)


def optimistic_transaction(on_integrity_error=None):
    """Commit the wrapped operation, retrying on version collisions.

    ``on_integrity_error(error, *args, **kwargs)`` builds the domain
    exception raised in place of a database uniqueness violation.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            max_attempts = current_app.config.get('CONCURRENCY_MAX_ATTEMPTS', 3)
            for attempt in range(1, max_attempts + 1):
                try:
                    result = fn(*args, **kwargs)
                    db.session.commit()
                    return result
                except StaleDataError:
                    db.session.rollback()
                    logger.warning(f'{fn.__name__}: stale write on attempt {attempt}/{max_attempts}, retrying')
                except IntegrityError as e:
                    db.session.rollback()
                    if on_integrity_error is None:
                        raise
                    raise on_integrity_error(e, *args, **kwargs) from e
                except Exception:
                    db.session.rollback()
                    raise

            logger.error(f'{fn.__name__}: gave up after {max_attempts} stale writes')
            raise ConcurrencyConflict(f'{fn.__name__} kept colliding with concurrent writers; reload and retry')
        return wrapper
    return decorator


def get_or_raise(model, entity_id, label=None):
    """Load a row by primary key or raise NotFound"""
    entity = db.session.get(model, entity_id)
    if entity is None:
        raise NotFound(f'{label or model.__name__} {entity_id} not found')
    return entity
