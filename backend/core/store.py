# core/store.py
#
# Multi-row writes against the database are the "atomic batch" of the system:
# the whole callable runs inside one transaction and is retried as a unit when
# the database reports a transient failure.  A batch is never partially applied.

import logging
import time

from django.conf import settings
from django.db import OperationalError, transaction

from .exceptions import TransientStoreError

logger = logging.getLogger(__name__)


def atomic_write(fn, *args, attempts=None, backoff=None, label="write", **kwargs):
    """
    Run ``fn(*args, **kwargs)`` inside ``transaction.atomic()``.

    OperationalError (lost connection, lock timeout, serialization failure)
    triggers a rollback and a retry with exponential back-off.  Domain errors
    raised by ``fn`` propagate immediately.
    """
    if attempts is None:
        attempts = settings.STORE_WRITE_ATTEMPTS
    if backoff is None:
        backoff = settings.STORE_RETRY_BACKOFF_SECONDS
    attempts = max(1, attempts)

    for attempt in range(1, attempts + 1):
        try:
            with transaction.atomic():
                return fn(*args, **kwargs)
        except OperationalError as exc:
            if attempt == attempts:
                logger.error("[Store] %s failed after %d attempts: %s", label, attempts, exc)
                raise TransientStoreError() from exc
            delay = backoff * (2 ** (attempt - 1))
            logger.warning(
                "[Store] %s attempt %d/%d failed (%s) - retrying in %.2fs",
                label, attempt, attempts, exc, delay,
            )
            if delay:
                time.sleep(delay)
