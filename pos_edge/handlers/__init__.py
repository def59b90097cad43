"""
Entity sync handlers.

Every handler takes the ``SyncContext`` first and returns a ``Result``;
nothing raises past this layer.
"""

from pos_edge import db
from pos_edge.results import Result, FailureKind


def is_blank(value):
    return not isinstance(value, str) or not value.strip()


def require_scope(value, label):
    """Validation failure for a missing scope key, or None when it is usable."""
    if is_blank(value):
        return Result.fail(FailureKind.VALIDATION, f'{label} is required', data=[])
    return None


def has_rows(Model, column, value):
    """True when the cache holds any row (live or soft-deleted) for the scope."""
    return db.session.query(Model.id).filter(column == value).first() is not None
