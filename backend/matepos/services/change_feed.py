# Overview: In-process change notifications for persisted rows, published after commit.

"""
Change Feed

WHY: Live consumers (the cash register screen, its SSE stream) must reload
whenever cash movements are written, by this request or any other one.

DESIGN:
- SQLAlchemy mapper events record (table, operation, id) on the session
  while a flush runs.
- Session.after_commit hands the recorded changes to the app's ChangeFeed.
  A rollback drops them, so subscribers never see uncommitted writes.
- The feed instance lives in app.extensions and is passed explicitly to
  consumers (see cash_register_service.CashRegisterView).

Callbacks run inside the committing thread while the session is finishing
its commit: they must not query the database. Consumers record that they
are stale and reload on their own schedule.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Iterable

from flask import current_app, has_app_context
from sqlalchemy import event
from sqlalchemy.orm import Session

from ..models import CashIncome, CashWithdrawal, Sale


logger = logging.getLogger(__name__)

EXTENSION_KEY = "matepos.change_feed"
_PENDING_KEY = "matepos.pending_changes"

TRACKED_MODELS = (CashWithdrawal, CashIncome, Sale)


@dataclass(frozen=True)
class Change:
    table: str
    operation: str  # insert | update | delete
    row_id: int | None


ChangeCallback = Callable[[Change], None]


class Subscription:
    def __init__(self, feed: "ChangeFeed", token: int, tables: frozenset[str]):
        self._feed = feed
        self._token = token
        self.tables = tables
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._feed._remove(self._token)
            self.active = False


class ChangeFeed:
    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: dict[int, tuple[frozenset[str], ChangeCallback]] = {}
        self._next_token = 0

    def subscribe(self, tables: Iterable[str], callback: ChangeCallback) -> Subscription:
        table_set = frozenset(tables)
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._subscribers[token] = (table_set, callback)
        return Subscription(self, token, table_set)

    def _remove(self, token: int) -> None:
        with self._lock:
            self._subscribers.pop(token, None)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, change: Change) -> None:
        with self._lock:
            targets = [cb for tables, cb in self._subscribers.values() if change.table in tables]
        for callback in targets:
            try:
                callback(change)
            except Exception:
                logger.exception("Change feed subscriber failed for %s %s", change.operation, change.table)


# =============================================================================
# SQLALCHEMY WIRING
# =============================================================================

def _recorder(operation: str):
    def record(mapper, connection, target):
        session = Session.object_session(target)
        if session is None:
            return
        session.info.setdefault(_PENDING_KEY, []).append(
            Change(table=mapper.local_table.name, operation=operation, row_id=getattr(target, "id", None))
        )
    return record


_record_insert = _recorder("insert")
_record_update = _recorder("update")
_record_delete = _recorder("delete")


def _after_commit(session):
    pending = session.info.pop(_PENDING_KEY, None)
    if not pending or not has_app_context():
        return
    feed = current_app.extensions.get(EXTENSION_KEY)
    if feed is None:
        return
    for change in pending:
        feed.publish(change)


def _after_rollback(session):
    session.info.pop(_PENDING_KEY, None)


def _listen_once(target, name, fn) -> None:
    if not event.contains(target, name, fn):
        event.listen(target, name, fn)


def init_app(app) -> ChangeFeed:
    """Attach a ChangeFeed to ``app`` and install the ORM listeners."""
    for model in TRACKED_MODELS:
        _listen_once(model, "after_insert", _record_insert)
        _listen_once(model, "after_update", _record_update)
        _listen_once(model, "after_delete", _record_delete)
    _listen_once(Session, "after_commit", _after_commit)
    _listen_once(Session, "after_rollback", _after_rollback)

    feed = app.extensions.get(EXTENSION_KEY)
    if feed is None:
        feed = ChangeFeed()
        app.extensions[EXTENSION_KEY] = feed
    return feed


def get_feed() -> ChangeFeed:
    return current_app.extensions[EXTENSION_KEY]
