"""Users whose events are kept permanently."""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Callable, Mapping


class PermanentUserStatus(IntEnum):
    IN_PROCESS = 0


def _now_micros() -> int:
    return time.time_ns() // 1000


@dataclass(frozen=True)
class PermanentUser:
    """A permanent user as stored in the users file."""

    user: str
    created: int
    status: int

    def to_dict(self) -> dict[str, Any]:
        return {"user": self.user, "created": self.created, "status": int(self.status)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PermanentUser:
        return cls(user=str(data["user"]), created=int(data["created"]), status=int(data["status"]))


class PermanentUsersList:
    """The set of permanent users, kept ordered by user id."""

    def __init__(self, clock: Callable[[], int] = _now_micros) -> None:
        self._clock = clock
        self._users: dict[str, PermanentUser] = {}

    def is_permanent(self, user_id: str) -> bool:
        return user_id in self._users

    def get_all(self) -> list[PermanentUser]:
        return [self._users[user] for user in sorted(self._users)]

    def add_permanent_user(self, user_id: str) -> list[PermanentUser]:
        """Add or re-add a user and return the whole list."""
        self._users[user_id] = PermanentUser(
            user=user_id, created=self._clock(), status=PermanentUserStatus.IN_PROCESS
        )
        return self.get_all()

    def remove_permanent_user(self, user_id: str) -> list[PermanentUser]:
        """Remove a user if present and return the whole list."""
        self._users.pop(user_id, None)
        return self.get_all()

    def __len__(self) -> int:
        return len(self._users)