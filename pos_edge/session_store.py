"""
Persisted identity of the logged-in employee.

Set on login, cleared on logout, read on demand. There is no expiry at this
layer. The blob lives outside the cache database so that wiping the cache does
not log the cashier out.
"""

import json
import logging
import os
import threading

logger = logging.getLogger(__name__)


class MemorySessionStore:
    """Process-local session, used by tests and when no session file is set."""

    def __init__(self):
        self._employee = None

    def set(self, employee):
        self._employee = employee

    def get(self):
        return self._employee

    def clear(self):
        self._employee = None


class FileSessionStore:
    """Session persisted as a JSON file so it survives restarts."""

    def __init__(self, path):
        self.path = path
        self._lock = threading.Lock()

    def set(self, employee):
        with self._lock:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            tmp_path = f'{self.path}.tmp'
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump({'employee': employee}, f)
            os.replace(tmp_path, self.path)

    def get(self):
        with self._lock:
            if not os.path.exists(self.path):
                return None
            try:
                with open(self.path, 'r', encoding='utf-8') as f:
                    return json.load(f).get('employee')
            except (OSError, ValueError) as e:
                logger.warning(f"Unreadable session file {self.path}: {e}")
                return None

    def clear(self):
        with self._lock:
            try:
                os.remove(self.path)
            except FileNotFoundError:
                pass


def create_session_store(path):
    if not path:
        return MemorySessionStore()
    return FileSessionStore(path)
