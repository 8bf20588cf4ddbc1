"""Short-lived mapping from process ids to the user that started them."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

LINK_TTL_SECONDS = 20


@dataclass(frozen=True)
class ProcessIdUserIdLink:
    user_id: str
    created_at: float


class ProcessIdUserIdLinks:
    """Remembers which user a process id belongs to for a short time."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self.items: dict[int, ProcessIdUserIdLink] = {}

    def update(self, process_id: int, user_id: str) -> None:
        if process_id not in self.items:
            self.items[process_id] = ProcessIdUserIdLink(user_id, self._clock())

    def gc(self) -> None:
        now = self._clock()
        self.items = {
            process_id: link
            for process_id, link in self.items.items()
            if int(now - link.created_at) < LINK_TTL_SECONDS
        }

    def resolve_user_id(self, process_id: int) -> str | None:
        link = self.items.get(process_id)
        return link.user_id if link is not None else None

    def __len__(self) -> int:
        return len(self.items)