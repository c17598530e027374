"""In-memory action adapter used for dry runs and tests."""

import threading
from collections import Counter, defaultdict, deque
from dataclasses import dataclass
from typing import Iterable, Optional

from ..errors import ActionError, NotFoundError, PermissionDeniedError
from ..state.models import ActionName
from .base import BaseActionAdapter


@dataclass(frozen=True)
class DeliveredNotification:
    """A notification recorded by the in-memory directory."""
    account_id: str
    message: str
    key: str


class InMemoryActionAdapter(BaseActionAdapter):
    """
    Fake directory service holding members, markers and an inbox.

    Follows the same idempotency rules as the real adapter. Failures can be
    queued per action and account to simulate outages.
    """

    def __init__(
        self,
        members: Optional[Iterable[str]] = None,
        has_rank: bool = True,
        allow_unknown_members: bool = False
    ):
        super().__init__("memory")
        self.members: set[str] = set(members or [])
        self.has_rank = has_rank
        self.allow_unknown_members = allow_unknown_members
        self.markers: set[str] = set()
        self.inbox: list[DeliveredNotification] = []
        self.calls: Counter = Counter()
        self.effects: Counter = Counter()
        self._failures: dict[tuple[ActionName, str], deque] = defaultdict(deque)
        self._lock = threading.Lock()

    def add_member(self, account_id: str) -> None:
        self.members.add(str(account_id))

    def fail_next(
        self,
        action: ActionName,
        account_id: str,
        error: ActionError,
        times: int = 1
    ) -> None:
        """Queue ``error`` to be raised by the next ``times`` calls."""
        for _ in range(times):
            self._failures[(ActionName(action), str(account_id))].append(error)

    def apply_marker(self, account_id: str) -> None:
        with self._lock:
            self._enter(ActionName.APPLY_MARKER, account_id)
            if account_id in self.markers:
                self.logger.info("Account already has marker role", account_id=account_id)
                return
            self._check_rank(ActionName.APPLY_MARKER, account_id)
            self.markers.add(account_id)
            self.effects[ActionName.APPLY_MARKER] += 1

    def clear_marker(self, account_id: str) -> None:
        with self._lock:
            self._enter(ActionName.CLEAR_MARKER, account_id)
            if account_id not in self.markers:
                self.logger.info("Account does not have marker role", account_id=account_id)
                return
            self._check_rank(ActionName.CLEAR_MARKER, account_id)
            self.markers.discard(account_id)
            self.effects[ActionName.CLEAR_MARKER] += 1

    def _send_notification(self, account_id: str, message: str, key: str) -> None:
        with self._lock:
            self._enter(ActionName.NOTIFY, account_id)
            self.inbox.append(DeliveredNotification(account_id, message, key))
            self.effects[ActionName.NOTIFY] += 1
            self.logger.info("Sent DM", account_id=account_id)

    def messages_for(self, account_id: str) -> list[str]:
        return [n.message for n in self.inbox if n.account_id == account_id]

    def health_check(self) -> bool:
        return True

    def _enter(self, action: ActionName, account_id: str) -> None:
        self.calls[action] += 1

        queued = self._failures.get((action, account_id))
        if queued:
            raise queued.popleft()

        if not self.allow_unknown_members and account_id not in self.members:
            raise NotFoundError(
                f"User {account_id} not found in guild",
                account_id=account_id,
                action=action.value
            )

    def _check_rank(self, action: ActionName, account_id: str) -> None:
        if not self.has_rank:
            raise PermissionDeniedError(
                "Bot's highest role is not higher than the marker role",
                account_id=account_id,
                action=action.value
            )
