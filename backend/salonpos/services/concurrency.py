# Overview: Unit-of-work and row-locking helpers shared by the services.

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import PersistenceError, SalonPosError
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_atomic(func, *, description: str = "operation"):
    """
    Run func() as one unit of work: commit on success, roll back on any failure.

    Domain errors propagate unchanged. Storage failures (lock timeouts,
    optimistic-lock conflicts, constraint violations nobody handled) become
    PersistenceError so the caller can decide to retry. Nothing is retried
    here.
    """
    try:
        result = func()
        db.session.commit()
        return result
    except SalonPosError:
        db.session.rollback()
        raise
    except StaleDataError as exc:
        db.session.rollback()
        current_app.logger.warning("Write conflict during %s: %s", description, exc)
        raise PersistenceError(
            "The record was changed by someone else. Refresh and try again.",
            details={"operation": description, "conflict": True},
        ) from exc
    except (OperationalError, IntegrityError) as exc:
        db.session.rollback()
        current_app.logger.error("Storage failure during %s: %s", description, exc)
        raise PersistenceError(
            "Could not save changes. Please try again.",
            details={"operation": description},
        ) from exc
    except Exception:
        db.session.rollback()
        raise
