import asyncio
import threading
from typing import Dict


class UserNotFoundError(LookupError):
    def __init__(self, user_id: int):
        super().__init__(f"User with ID {user_id} does not exist")
        self.user_id = user_id


SEED_USERS = (
    {"id": 1, "name": "John Doe", "email": "john@example.com"},
    {"id": 2, "name": "Jane Smith", "email": "jane@example.com"},
    {"id": 3, "name": "Alice Johnson", "email": "alice@example.com"},
)


class UserRepository:
    """
    In-memory user table standing in for a slow database.
    fetch() waits `delay_seconds` before answering to mimic a round trip.
    """

    def __init__(self, delay_seconds: float = 0.2, seed=SEED_USERS):
        self.delay_seconds = delay_seconds
        self._users: Dict[int, dict] = {u["id"]: dict(u) for u in seed}
        self._lock = threading.Lock()

    async def fetch(self, user_id: int) -> dict:
        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)
        with self._lock:
            user = self._users.get(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return dict(user)

    def create(self, name: str, email: str) -> dict:
        with self._lock:
            new_id = max(self._users, default=0) + 1
            user = {"id": new_id, "name": name, "email": email}
            self._users[new_id] = user
        return dict(user)
