"""
Local-first sync core for the POS edge cache.

This module provides the pieces every entity handler is built from:
- Serialization between remote JSON payloads and cached rows
- Read-through: serve the local cache, fall back to the remote API on a miss,
  persist what was fetched, then re-read with the same enrichment join
- Write-back: mutate locally first, then propagate to the remote API when the
  connectivity probe says the network is reachable
- Outbox: remote mutations that could not be delivered are kept in
  ``pending_sync`` and replayed by ``flush_outbox`` / the ``SyncWorker``
"""

import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from flask import current_app
from sqlalchemy import inspect
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

from pos_edge import db
from pos_edge.models import PendingSync, utcnow
from pos_edge.remote_api import RemoteApiError, MalformedResponseError
from pos_edge.results import Result, FailureKind

logger = logging.getLogger(__name__)


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _iso(dt) -> Optional[str]:
    """Convert datetime to ISO format string (UTC)."""
    if not dt:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc).isoformat()
    return dt.astimezone(timezone.utc).isoformat()


def _parse_iso(value) -> Optional[datetime]:
    """Parse an ISO string to a naive UTC datetime."""
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            iso_str = str(value)
            if iso_str.endswith('Z'):
                iso_str = iso_str[:-1] + '+00:00'
            parsed = datetime.fromisoformat(iso_str)
        except (ValueError, TypeError):
            return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _to_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return bool(value)


def _column_default(column):
    if column.default is not None and column.default.is_scalar:
        return column.default.arg
    return None


# ============================================================================
# SERIALIZATION - cached rows <-> remote payloads
# ============================================================================

def serialize_model(obj) -> Optional[Dict[str, Any]]:
    """Serialize a cached row to a dict keyed by its wire column names."""
    if obj is None:
        return None

    result = {}
    mapper = inspect(obj.__class__)
    for attr in mapper.column_attrs:
        column = attr.columns[0]
        value = getattr(obj, attr.key, None)
        if isinstance(value, datetime):
            value = _iso(value)
        result[column.name] = value
    return result


def row_from_payload(Model, record: Dict[str, Any], **overrides) -> Dict[str, Any]:
    """
    Build an insert row for ``Model`` from a remote record.

    Every column is present in the returned dict so a batch of rows can go
    through one executemany. Missing values fall back to the column default.
    """
    values = dict(record or {})
    values.update(overrides)

    row = {}
    for column in Model.__table__.columns:
        value = values.get(column.name)
        if value is None:
            value = _column_default(column)
        elif isinstance(column.type, db.DateTime):
            value = _parse_iso(value)
        elif isinstance(column.type, db.Boolean):
            value = _to_bool(value)
        elif isinstance(column.type, db.String) and isinstance(value, (list, dict)):
            value = json.dumps(value)
        row[column.key] = value
    return row


def bulk_insert(Model, rows: List[Dict[str, Any]]) -> int:
    """
    Insert rows in one all-or-nothing transaction.

    Rows whose key already exists are ignored, so two cold reads of the same
    scope racing each other both succeed.
    """
    if not rows:
        return 0
    stmt = sqlite_insert(Model.__table__).on_conflict_do_nothing()
    try:
        db.session.execute(stmt, rows)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return len(rows)


def bulk_upsert(Model, rows: List[Dict[str, Any]]) -> int:
    """Insert rows, overwriting cached copies with the remote values."""
    if not rows:
        return 0
    table = Model.__table__
    stmt = sqlite_insert(table)
    stmt = stmt.on_conflict_do_update(
        index_elements=[c for c in table.primary_key.columns],
        set_={c.key: stmt.excluded[c.key] for c in table.columns if not c.primary_key},
    )
    try:
        db.session.execute(stmt, rows)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return len(rows)


def insert_each(Model, rows: List[Dict[str, Any]], label: str) -> List[str]:
    """Insert rows one by one; a failing row is logged and skipped."""
    errors = []
    stmt = sqlite_insert(Model.__table__).on_conflict_do_nothing()
    for row in rows:
        try:
            db.session.execute(stmt, [row])
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            message = f"Failed to insert {label} '{row.get('id')}': {e.__class__.__name__}"
            logger.error(f"{message}: {e}")
            errors.append(message)
    return errors


# ============================================================================
# CONTEXT - collaborators injected into every handler
# ============================================================================

class SyncContext:

    def __init__(self, remote, probe, session_store, outbox_enabled=True,
                 fanout_workers=4, timezone='UTC', max_attempts=5):
        self.remote = remote
        self.probe = probe
        self.session = session_store
        self.outbox_enabled = outbox_enabled
        self.fanout_workers = max(1, int(fanout_workers or 1))
        self.timezone = timezone
        self.max_attempts = max(1, int(max_attempts or 1))


def get_sync_context() -> SyncContext:
    return current_app.extensions['pos_edge']


# ============================================================================
# READ-THROUGH
# ============================================================================

class ReadThrough:
    """
    How one entity is cached.

    ``is_cached(scope)`` tells whether the local store already holds the scope,
    ``fetch(scope)`` calls the remote API, ``store(records, scope)`` persists
    the fetched records and returns per-record error messages, and
    ``load(scope)`` runs the enrichment query used for hits and misses alike.
    """

    def __init__(self, name: str, is_cached: Callable, fetch: Callable,
                 store: Callable, load: Callable):
        self.name = name
        self.is_cached = is_cached
        self.fetch = fetch
        self.store = store
        self.load = load


def read_through(plan: ReadThrough, scope) -> Result:
    try:
        if plan.is_cached(scope):
            rows = plan.load(scope)
            logger.debug(f"Returning {len(rows)} local {plan.name} for {scope}")
            return Result.ok(rows)

        logger.info(f"No local {plan.name} found for {scope}, fetching from API...")
        records = plan.fetch(scope)

        if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
            logger.error(f"Invalid {plan.name} API response for {scope}: {str(records)[:200]}")
            return Result.fail(FailureKind.MALFORMED_REMOTE,
                               f'Invalid {plan.name} response from server', data=[])

        errors = plan.store(records, scope) or []
        result = Result.ok(plan.load(scope), errors=errors)
        if errors:
            result.failure = FailureKind.PARTIAL_INSERT
            logger.warning(f"{len(errors)} {plan.name} child records skipped for {scope}")
        else:
            logger.info(f"Synced {len(records)} {plan.name} to local DB for {scope}")
        return result

    except MalformedResponseError as e:
        return Result.fail(FailureKind.MALFORMED_REMOTE, e.message, data=[])
    except RemoteApiError as e:
        logger.error(f"Error fetching {plan.name} for {scope}: {e.message}")
        return Result.fail(FailureKind.REMOTE_UNREACHABLE, e.message, data=[])
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Local store error while reading {plan.name} for {scope}: {e}")
        return Result.fail(FailureKind.STORAGE, f'Local store error reading {plan.name}', data=[])
    except Exception as e:
        db.session.rollback()
        logger.exception(f"Unexpected error reading {plan.name} for {scope}: {e}")
        return Result.fail(FailureKind.STORAGE, f'Error fetching {plan.name}', data=[])


def fan_out(ctx: SyncContext, calls: Dict[Any, Callable[[], Any]]):
    """
    Run independent remote calls with at most ``ctx.fanout_workers`` in flight.

    Returns ``(results, errors)``: results keyed like ``calls`` for the calls
    that succeeded, and one message per failed call.
    """
    results, errors = {}, []
    if not calls:
        return results, errors

    with ThreadPoolExecutor(max_workers=ctx.fanout_workers) as pool:
        futures = {key: pool.submit(call) for key, call in calls.items()}
        for key, future in futures.items():
            try:
                results[key] = future.result()
            except RemoteApiError as e:
                logger.error(f"Remote fetch {key} failed: {e.message}")
                errors.append(f'{key}: {e.message}')
    return results, errors


# ============================================================================
# WRITE-BACK
# ============================================================================

# Outbox operation name -> remote call
REMOTE_OPERATIONS = {
    'category.delete': lambda remote, entity_id, payload: remote.delete_category(entity_id),
    'category.status': lambda remote, entity_id, payload: remote.update_category_status(
        entity_id, payload['status']),
    'dish.delete': lambda remote, entity_id, payload: remote.delete_dish(entity_id),
    'addon.delete': lambda remote, entity_id, payload: remote.delete_addon(entity_id),
}


def _call_remote(ctx: SyncContext, operation: str, entity_id: str, payload: Optional[dict]):
    call = REMOTE_OPERATIONS.get(operation)
    if call is None:
        raise RemoteApiError(f'Unknown sync operation {operation}')
    return call(ctx.remote, entity_id, payload or {})


def enqueue_pending(operation: str, entity_id: str, payload: Optional[dict] = None, error=None):
    try:
        db.session.add(PendingSync(
            operation=operation,
            entity_id=entity_id,
            payload=json.dumps(payload or {}),
            last_error=error,
        ))
        db.session.commit()
        logger.info(f"Queued {operation} for {entity_id} in outbox")
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Could not queue {operation} for {entity_id}: {e}")


def propagate(ctx: SyncContext, operation: str, entity_id: str, payload: Optional[dict] = None) -> bool:
    """Best-effort remote propagation of a mutation already applied locally."""
    if not ctx.probe.is_online():
        logger.info(f"Offline: skipping remote {operation} for {entity_id}")
        if ctx.outbox_enabled:
            enqueue_pending(operation, entity_id, payload, error='offline')
        return False

    try:
        _call_remote(ctx, operation, entity_id, payload)
        logger.info(f"Remote {operation} synced for {entity_id}")
        return True
    except RemoteApiError as e:
        logger.warning(f"Remote {operation} failed for {entity_id}: {e.message}")
        if ctx.outbox_enabled:
            enqueue_pending(operation, entity_id, payload, error=e.message)
        return False


def write_back(ctx: SyncContext, label: str, entity_id: str, apply_local: Callable[[], int],
               operation: str, message: str, payload: Optional[dict] = None) -> Result:
    """
    Apply ``apply_local`` (returns affected row count), then sync outward.

    The local mutation is never rolled back because of a remote failure.
    """
    try:
        affected = apply_local()
        if not affected:
            db.session.rollback()
            logger.warning(f"{label} {entity_id} not found locally")
            return Result.fail(FailureKind.LOCAL_MISS, f'{label} not found locally')
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Local store error updating {label} {entity_id}: {e}")
        return Result.fail(FailureKind.STORAGE, f'Failed to update {label.lower()} locally')

    propagate(ctx, operation, entity_id, payload)
    return Result.ok(message=message, id=entity_id)


def soft_delete(Model, entity_id: str) -> int:
    """Mark a live row deleted; returns the number of rows touched."""
    now = utcnow()
    return Model.query.filter(
        Model.id == entity_id, Model.deleted_at.is_(None)
    ).update({Model.deleted_at: now, Model.updated_at: now}, synchronize_session=False)


# ============================================================================
# OUTBOX REPLAY
# ============================================================================

# Client errors that are still worth retrying
RETRYABLE_STATUS_CODES = {408, 429}


def outbox_size() -> int:
    return PendingSync.query.filter(PendingSync.dead_at.is_(None)).count()


def dead_outbox_size() -> int:
    return PendingSync.query.filter(PendingSync.dead_at.isnot(None)).count()


def _is_permanent(error: RemoteApiError) -> bool:
    """The server answered and the answer will not change on retry."""
    if error.status_code is None:
        return False
    return error.status_code < 500 and error.status_code not in RETRYABLE_STATUS_CODES


def _retire(entry: PendingSync, reason: str):
    entry.dead_at = utcnow()
    logger.error(f"Outbox entry {entry.id} ({entry.operation} {entry.entity_id}) "
                 f"given up after {entry.attempts} attempts: {reason}")


def flush_outbox(ctx: SyncContext, limit: int = 50) -> Result:
    """
    Replay queued mutations in the order they were recorded.

    Entries the server refuses for good (a 4xx other than 408/429, an
    unsuccessful envelope, an unknown operation) or that the server still fails
    after ``ctx.max_attempts`` attempts are marked dead and no longer selected.
    """
    pending = PendingSync.query.filter(
        PendingSync.dead_at.is_(None)
    ).order_by(PendingSync.id.asc()).limit(limit).all()
    if not pending:
        return Result.ok({'replayed': 0, 'failed': 0, 'dead': 0, 'remaining': 0}, message='Nothing to sync')

    if not ctx.probe.is_online():
        return Result.fail(FailureKind.REMOTE_UNREACHABLE, 'Offline: pending changes kept for later',
                           data={'replayed': 0, 'failed': 0, 'dead': 0, 'remaining': outbox_size()})

    replayed, failed, dead = 0, 0, 0
    for entry in pending:
        entry.attempts = (entry.attempts or 0) + 1
        if entry.operation not in REMOTE_OPERATIONS:
            entry.last_error = f'Unknown sync operation {entry.operation}'
            _retire(entry, entry.last_error)
            db.session.commit()
            failed += 1
            dead += 1
            continue

        try:
            _call_remote(ctx, entry.operation, entry.entity_id, json.loads(entry.payload or '{}'))
            db.session.delete(entry)
            db.session.commit()
            replayed += 1
        except RemoteApiError as e:
            entry.last_error = e.message
            failed += 1
            if e.status_code is None:
                # Transport failure: later entries would fail the same way
                db.session.commit()
                break
            if _is_permanent(e) or entry.attempts >= ctx.max_attempts:
                _retire(entry, e.message)
                dead += 1
            db.session.commit()

    remaining = outbox_size()
    if replayed or dead:
        logger.info(f"Outbox replayed {replayed} changes ({failed} failed, {dead} given up, "
                    f"{remaining} remaining)")
    return Result.ok({'replayed': replayed, 'failed': failed, 'dead': dead, 'remaining': remaining},
                     message=f'Replayed {replayed} pending changes')


# ============================================================================
# BACKGROUND SYNC WORKER
# ============================================================================

class SyncWorker:
    """
    Background outbox replay running in a separate thread.
    Non-blocking, doesn't affect the request handlers.
    """

    def __init__(self, app, interval=30):
        self.app = app
        self.interval = interval
        self._stop_event = threading.Event()
        self._thread = None
        self._last_sync = None
        self._sync_count = 0
        self._error_count = 0

    def start(self):
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._worker_loop, daemon=True)
        self._thread.start()
        self.app.logger.info("Sync worker started")

    def stop(self):
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=5)
        self.app.logger.info("Sync worker stopped")

    def _worker_loop(self):
        with self.app.app_context():
            self.app.logger.info(f"Sync worker running (interval: {self.interval}s)")

            while not self._stop_event.is_set():
                try:
                    self.run_once()
                except Exception as e:
                    self._error_count += 1
                    db.session.rollback()
                    self.app.logger.warning(f"Sync cycle error: {e}")

                self._stop_event.wait(timeout=self.interval)

    def run_once(self):
        if outbox_size() == 0:
            return None

        result = flush_outbox(self.app.extensions['pos_edge'])
        self._last_sync = utcnow()
        self._sync_count += 1
        return result

    def get_status(self) -> Dict[str, Any]:
        return {
            'running': self._thread is not None and self._thread.is_alive(),
            'last_sync': _iso(self._last_sync),
            'sync_count': self._sync_count,
            'error_count': self._error_count,
            'interval_seconds': self.interval
        }


# Global sync worker instance
_sync_worker: Optional[SyncWorker] = None


def start_sync_worker(app):
    global _sync_worker

    if not app.config.get('SYNC_OUTBOX_ENABLED'):
        return None

    if _sync_worker is not None:
        return _sync_worker

    _sync_worker = SyncWorker(app, interval=app.config.get('SYNC_INTERVAL_SECONDS', 30))
    _sync_worker.start()
    return _sync_worker


def stop_sync_worker():
    global _sync_worker

    if _sync_worker:
        _sync_worker.stop()
        _sync_worker = None


def get_sync_status() -> Dict[str, Any]:
    if _sync_worker:
        return _sync_worker.get_status()
    return {'running': False}
