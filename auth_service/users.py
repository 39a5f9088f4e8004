"""
In-memory user table for the auth service.

Users live only for the lifetime of the process. Lookups are by id, and
sign-in resolves an email to its user; every access goes through one lock so
the threaded server never sees a half-registered user.
"""

import datetime
import threading
import uuid
from typing import Dict, Optional


class UserStore:
    def __init__(self):
        self._users: Dict[str, dict] = {}
        self._ids_by_email: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, user_id: str) -> Optional[dict]:
        with self._lock:
            user = self._users.get(user_id)
            return dict(user) if user else None

    def get_or_create(self, email: str, name: Optional[str] = None):
        """Return (user, created) for an email, registering it when unknown"""
        key = email.strip().lower()
        with self._lock:
            user_id = self._ids_by_email.get(key)
            if user_id:
                return dict(self._users[user_id]), False

            user = {
                'id': str(uuid.uuid4()),
                'email': email.strip(),
                'name': name or email.split('@')[0],
                'photoUrl': None,
                'createdAt': datetime.datetime.now(datetime.timezone.utc).isoformat(),
            }
            self._users[user['id']] = user
            self._ids_by_email[key] = user['id']
            return dict(user), True

    def __len__(self):
        with self._lock:
            return len(self._users)
