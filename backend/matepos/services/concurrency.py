# Overview: Retry, timeout and backend-error classification for service operations.

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError

from flask import current_app
from sqlalchemy.exc import DBAPIError, DisconnectionError, OperationalError

from ..extensions import db
from .errors import DOMAIN_ERRORS, BackendFailure, PermissionDenied, RateLimited


logger = logging.getLogger(__name__)

PERMISSION_SQLSTATE = "42501"
_PERMISSION_MARKERS = ("row-level security", "permission denied")


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


# =============================================================================
# ERROR INSPECTION
# =============================================================================

def _status_of(exc: BaseException) -> int | None:
    for attr in ("status", "status_code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    return None


def _sqlstate_of(exc: BaseException) -> str | None:
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        code = getattr(exc.orig, "pgcode", None) or getattr(exc.orig, "sqlstate", None)
        if code:
            return str(code)
    code = getattr(exc, "code", None)
    return str(code) if code else None


def is_permission_error(exc: BaseException) -> bool:
    if _status_of(exc) in (401, 403):
        return True
    if _sqlstate_of(exc) == PERMISSION_SQLSTATE:
        return True
    message = str(exc).lower()
    return any(marker in message for marker in _PERMISSION_MARKERS)


def is_transient_error(exc: BaseException) -> bool:
    """
    Decide whether a failed backend call is worth another attempt.

    Retryable: lost connections, lock/timeouts, 5xx and 429.
    Terminal: validation/domain errors, permission failures, integrity
    errors and every other 4xx.
    """
    if isinstance(exc, DOMAIN_ERRORS):
        return False
    if is_permission_error(exc):
        return False

    status = _status_of(exc)
    if status is not None:
        return status == 429 or status >= 500

    if isinstance(exc, DBAPIError):
        return isinstance(exc, OperationalError) or exc.connection_invalidated
    return isinstance(exc, (DisconnectionError, TimeoutError, ConnectionError))


def classify_backend_error(exc: BaseException, fallback: type[BackendFailure]) -> BackendFailure:
    """Map a raw backend exception to the user-facing failure taxonomy."""
    if isinstance(exc, BackendFailure):
        return exc
    if _status_of(exc) == 429:
        return RateLimited()
    if is_permission_error(exc):
        return PermissionDenied()
    return fallback()


# =============================================================================
# RETRY / TIMEOUT
# =============================================================================

def run_with_retry(func, *, attempts: int = 3, delay: float = 1.0, retry_if=is_transient_error):
    """
    Execute a DB operation with a bounded number of attempts.

    Waits a fixed ``delay`` between attempts and only retries errors for
    which ``retry_if`` returns True; anything else propagates on the first
    failure. The session is rolled back before every retry.
    """
    attempts = max(1, attempts)
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except Exception as exc:
            db.session.rollback()
            if attempt >= attempts or not retry_if(exc):
                raise
            logger.warning(
                "Attempt %s/%s failed with %s; retrying in %.2fs",
                attempt, attempts, type(exc).__name__, delay,
            )
            if delay > 0:
                time.sleep(delay)


def call_with_timeout(func, timeout_seconds: float | None):
    """
    Run a read operation with a deadline.

    The call runs in a worker thread inside its own app context (and
    therefore its own DB session); ``func`` should return plain data rather
    than ORM instances. Raises TimeoutError when the deadline passes.
    With no timeout configured the call runs inline.
    """
    if not timeout_seconds:
        return func()

    app = current_app._get_current_object()

    def _run():
        with app.app_context():
            return func()

    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="matepos-read")
    future = executor.submit(_run)
    try:
        return future.result(timeout=timeout_seconds)
    except FutureTimeoutError:
        future.cancel()
        raise TimeoutError(f"Read did not complete within {timeout_seconds:.1f}s")
    finally:
        executor.shutdown(wait=False)
