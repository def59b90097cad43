"""
Typed results returned by every entity sync handler.

Handlers never raise to their caller. They return a ``Result`` that the
process boundary renders either as a plain collection (read operations) or as
a ``{success, message, id?, data?}`` envelope (everything else).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional


class FailureKind(Enum):
    VALIDATION = 'validation'
    LOCAL_MISS = 'local_miss'
    MALFORMED_REMOTE = 'malformed_remote'
    REMOTE_UNREACHABLE = 'remote_unreachable'
    REJECTED = 'rejected'
    PARTIAL_INSERT = 'partial_insert'
    STORAGE = 'storage'
    NOT_AUTHENTICATED = 'not_authenticated'


@dataclass
class Result:
    success: bool
    data: Any = None
    message: str = ''
    id: Optional[str] = None
    failure: Optional[FailureKind] = None
    errors: List[str] = field(default_factory=list)

    @classmethod
    def ok(cls, data=None, message='', id=None, errors=None):
        return cls(success=True, data=data, message=message, id=id, errors=list(errors or []))

    @classmethod
    def fail(cls, failure, message, data=None, errors=None):
        return cls(success=False, data=data, message=message, failure=failure,
                   errors=list(errors or []))

    @property
    def partial(self):
        """True when the call succeeded but some child records were skipped."""
        return self.success and bool(self.errors)

    def collection(self):
        if not self.success or self.data is None:
            return []
        return list(self.data)

    def envelope(self):
        body = {'success': self.success, 'message': self.message}
        if self.id is not None:
            body['id'] = self.id
        if self.data is not None:
            body['data'] = self.data
        return body
