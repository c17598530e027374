"""Base class for directory-service action adapters."""

import hashlib
import threading
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, Callable, Optional

import structlog

from ..errors import ActionError
from ..state.models import ActionName, ActionOutcome


class BaseActionAdapter(ABC):
    """
    Base class for marker and notification adapters.

    Every operation is idempotent: calling it again with the same arguments
    after a success has no further effect and succeeds again. Marker
    operations get this from checking the current marker state before
    mutating; notifications get it from a ledger of delivered idempotency
    keys kept here. Failures are raised as ``ActionError`` subclasses.
    """

    def __init__(self, name: str, ledger_size: int = 10000):
        self.name = name
        self.logger = structlog.get_logger(f"actions.{name}")
        self._success_count = 0
        self._error_count = 0
        self._ledger_size = ledger_size
        self._delivered: OrderedDict[str, None] = OrderedDict()
        self._ledger_lock = threading.Lock()

    @abstractmethod
    def apply_marker(self, account_id: str) -> None:
        """
        Grant the "on leave" marker to an account.

        Succeeds without effect if the marker is already present.

        Raises:
            PermissionDeniedError: automation lacks the rights or rank
            NotFoundError: account is not a member
            TransientError: network or service failure
        """

    @abstractmethod
    def clear_marker(self, account_id: str) -> None:
        """Revoke the marker; succeeds without effect if it is absent."""

    @abstractmethod
    def _send_notification(self, account_id: str, message: str, key: str) -> None:
        """Deliver one notification. ``key`` identifies it for deduplication."""

    @abstractmethod
    def health_check(self) -> bool:
        """Check if the directory service is reachable."""

    def notify(
        self,
        account_id: str,
        message: str,
        idempotency_key: Optional[str] = None
    ) -> None:
        """
        Send a direct notification to an account at most once per key.

        Args:
            account_id: Target account
            message: Notification text
            idempotency_key: Identifies the logical notification; defaults to
                a digest of account and message

        Raises:
            NotFoundError: account unreachable or not a member
            TransientError: network or service failure
        """
        key = idempotency_key or self.notification_key(account_id, message)

        with self._ledger_lock:
            if key in self._delivered:
                self.logger.debug(
                    "Notification already delivered",
                    account_id=account_id,
                    idempotency_key=key
                )
                return

        self._send_notification(account_id, message, key)

        with self._ledger_lock:
            self._delivered[key] = None
            while len(self._delivered) > self._ledger_size:
                self._delivered.popitem(last=False)

    @staticmethod
    def notification_key(account_id: str, message: str) -> str:
        """Default idempotency key for a notification."""
        return hashlib.sha256(f"{account_id}:{message}".encode()).hexdigest()[:16]

    def attempt(self, action: ActionName, call: Callable[[], Any]) -> ActionOutcome:
        """
        Run one adapter call and capture its outcome.

        Only ``ActionError`` becomes a failed outcome; anything else
        propagates to the caller.
        """
        try:
            call()
        except ActionError as e:
            self._error_count += 1
            return ActionOutcome.failure(action, e)

        self._success_count += 1
        return ActionOutcome.success(action)

    def get_stats(self) -> dict[str, Any]:
        """Get action statistics."""
        total = self._success_count + self._error_count
        return {
            "name": self.name,
            "success_count": self._success_count,
            "error_count": self._error_count,
            "success_rate": self._success_count / total if total > 0 else 0.0,
            "delivered_notifications": len(self._delivered),
        }

    def reset_stats(self):
        """Reset action statistics."""
        self._success_count = 0
        self._error_count = 0
