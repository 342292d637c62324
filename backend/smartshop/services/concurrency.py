# Overview: Locking and retry for writes that move stock, debt or price aggregates.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

RETRYABLE = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    SELECT ... FOR UPDATE on Product/Customer rows.

    SQLite has no row locks; there the version_id_col on both models turns
    a lost update into StaleDataError, which run_with_retry absorbs.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run func (which commits) until it succeeds or attempts run out.

    Every failure rolls the session back first, so func must reload what it
    touches. Only RETRYABLE errors are tried again; the rest propagate.
    """
    attempt = 1
    while True:
        try:
            return func()
        except RETRYABLE as exc:
            db.session.rollback()
            if attempt >= attempts:
                raise
            current_app.logger.warning(
                "Write conflict (%s), retry %s/%s", type(exc).__name__, attempt, attempts - 1
            )
            time.sleep(backoff_base * (2 ** (attempt - 1)))
            attempt += 1
        except Exception:
            db.session.rollback()
            raise
