# Overview: Transaction, locking and retry helpers shared by every stock workflow.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


class ConcurrencyConflictError(Exception):
    """Raised when a workflow still collides with concurrent writers after all retries."""


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    Products and batches also carry version_id columns, so SQLite still gets
    optimistic conflict detection.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.1):
    """
    Execute a transactional unit of work, re-running it on concurrency failures.

    func must perform all reads, writes and the final commit itself.

    - OperationalError (deadlocks, locks) and StaleDataError (version_id conflicts):
      roll back, wait, re-run func from scratch
    - StaleDataError on the last attempt: ConcurrencyConflictError
    - Any other exception: roll back so no partial writes survive, then re-raise
    """
    if attempts is None:
        attempts = current_app.config.get("DB_RETRY_ATTEMPTS", 3)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                if isinstance(exc, StaleDataError):
                    raise ConcurrencyConflictError(
                        "Concurrent update conflict, retry the request"
                    ) from exc
                raise
            current_app.logger.warning(
                "Retrying after concurrency failure (attempt %d of %d): %s",
                attempt + 1,
                attempts,
                exc,
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
