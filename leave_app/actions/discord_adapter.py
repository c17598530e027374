"""Discord REST API action adapter."""

import hashlib
import json
import socket
from typing import Any, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import urlparse
from urllib.request import Request, urlopen

from ..errors import (
    NotFoundError,
    PermissionDeniedError,
    StartupError,
    TransientError,
)
from ..state.models import ActionName
from .base import BaseActionAdapter

ADMINISTRATOR = 1 << 3
MANAGE_ROLES = 1 << 28

# Discord JSON error codes
UNKNOWN_MEMBER = 10007
UNKNOWN_USER = 10013
CANNOT_MESSAGE_USER = 50007


class DiscordActionAdapter(BaseActionAdapter):
    """
    Grants and revokes the marker role in one guild and sends DMs.

    Each operation is a handful of synchronous REST calls. The current role
    state of the member is checked before any mutation so repeated calls are
    no-ops, and the bot's own rank is checked against the marker role before
    granting or revoking it.
    """

    def __init__(
        self,
        token: str,
        guild_id: str,
        marker_role_id: str,
        api_base_url: str = "https://discord.com/api/v10",
        timeout_seconds: float = 10,
        user_agent: str = "leave-app (https://github.com, 0.1.0)"
    ):
        super().__init__("discord")

        parsed = urlparse(api_base_url)
        if not parsed.scheme or not parsed.netloc:
            raise StartupError(f"Invalid API base URL: {api_base_url}", component="discord")
        if not token:
            raise StartupError("Discord bot token is not set", component="discord")

        self.token = token
        self.guild_id = str(guild_id)
        self.marker_role_id = str(marker_role_id)
        self.api_base_url = api_base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.user_agent = user_agent
        self._bot_user_id: Optional[str] = None

    # Session bootstrap

    def verify_connection(self) -> dict[str, Any]:
        """
        Authenticate and confirm the bot can see the guild.

        Raises:
            StartupError: on any failure; the process should not start
        """
        try:
            me = self._request("GET", "/users/@me", action="startup")
            self._bot_user_id = str(me["id"])
            self._request("GET", f"/guilds/{self.guild_id}", action="startup")
        except (TransientError, PermissionDeniedError, NotFoundError) as e:
            raise StartupError(
                f"Cannot authenticate to Discord: {e}", component="discord"
            ) from e

        self.logger.info(
            "Discord bot authenticated",
            bot_user=me.get("username"),
            guild_id=self.guild_id
        )
        return me

    def health_check(self) -> bool:
        """Check if the API answers for our token."""
        try:
            self._request("GET", "/users/@me", action="health_check")
            return True
        except (TransientError, PermissionDeniedError, NotFoundError) as e:
            self.logger.warning("Health check failed", error=str(e))
            return False

    # Marker actions

    def apply_marker(self, account_id: str) -> None:
        action = ActionName.APPLY_MARKER.value
        member = self._fetch_member(account_id, action)
        roles = self._fetch_roles(action)
        marker = self._find_marker_role(roles, account_id, action)

        if self.marker_role_id in member.get("roles", []):
            self.logger.info("Account already has marker role", account_id=account_id)
            return

        self._check_rank(roles, marker, account_id, action)
        self._request(
            "PUT",
            f"/guilds/{self.guild_id}/members/{account_id}/roles/{self.marker_role_id}",
            action=action,
            account_id=account_id
        )
        self.logger.info("Added marker role", account_id=account_id, role=marker.get("name"))

    def clear_marker(self, account_id: str) -> None:
        action = ActionName.CLEAR_MARKER.value
        member = self._fetch_member(account_id, action)
        roles = self._fetch_roles(action)
        marker = self._find_marker_role(roles, account_id, action)

        if self.marker_role_id not in member.get("roles", []):
            self.logger.info("Account does not have marker role", account_id=account_id)
            return

        self._check_rank(roles, marker, account_id, action)
        self._request(
            "DELETE",
            f"/guilds/{self.guild_id}/members/{account_id}/roles/{self.marker_role_id}",
            action=action,
            account_id=account_id
        )
        self.logger.info("Removed marker role", account_id=account_id, role=marker.get("name"))

    # Notification

    def _send_notification(self, account_id: str, message: str, key: str) -> None:
        action = ActionName.NOTIFY.value
        channel = self._request(
            "POST",
            "/users/@me/channels",
            body={"recipient_id": account_id},
            action=action,
            account_id=account_id
        )
        self._request(
            "POST",
            f"/channels/{channel['id']}/messages",
            # Discord drops a repeat of the same nonce sent shortly after
            body={"content": message, "nonce": self.message_nonce(key), "enforce_nonce": True},
            action=action,
            account_id=account_id
        )
        self.logger.info("Sent DM", account_id=account_id)

    @staticmethod
    def message_nonce(key: str) -> str:
        """Discord nonces are capped at 25 characters; hash the whole key to fit."""
        return hashlib.sha256(key.encode("utf-8")).hexdigest()[:25]

    # Helpers

    def _fetch_member(self, account_id: str, action: str) -> dict[str, Any]:
        return self._request(
            "GET",
            f"/guilds/{self.guild_id}/members/{account_id}",
            action=action,
            account_id=account_id
        )

    def _fetch_roles(self, action: str) -> list[dict[str, Any]]:
        return self._request("GET", f"/guilds/{self.guild_id}/roles", action=action)

    def _find_marker_role(
        self,
        roles: list[dict[str, Any]],
        account_id: str,
        action: str
    ) -> dict[str, Any]:
        for role in roles:
            if str(role.get("id")) == self.marker_role_id:
                return role

        self.logger.error(
            "Marker role not found in guild",
            role_id=self.marker_role_id,
            guild_id=self.guild_id
        )
        raise PermissionDeniedError(
            f"Role with ID {self.marker_role_id} not found in guild",
            account_id=account_id,
            action=action
        )

    def _get_bot_user_id(self, action: str) -> str:
        if self._bot_user_id is None:
            me = self._request("GET", "/users/@me", action=action)
            self._bot_user_id = str(me["id"])
        return self._bot_user_id

    def _check_rank(
        self,
        roles: list[dict[str, Any]],
        marker: dict[str, Any],
        account_id: str,
        action: str
    ) -> None:
        """
        The bot needs Manage Roles and a highest role strictly above the marker.

        Raises:
            PermissionDeniedError: if either condition fails
        """
        bot_member = self._fetch_member(self._get_bot_user_id(action), action)
        bot_role_ids = set(bot_member.get("roles", []))
        by_id = {str(role["id"]): role for role in roles}

        permissions = int(by_id.get(self.guild_id, {}).get("permissions", 0))
        highest_position = 0
        for role_id in bot_role_ids:
            role = by_id.get(str(role_id))
            if role is None:
                continue
            permissions |= int(role.get("permissions", 0))
            highest_position = max(highest_position, int(role.get("position", 0)))

        if not permissions & (MANAGE_ROLES | ADMINISTRATOR):
            self.logger.error("Bot does not have permissions to manage roles")
            raise PermissionDeniedError(
                "Bot does not have permissions to manage roles",
                account_id=account_id,
                action=action
            )

        if highest_position <= int(marker.get("position", 0)):
            self.logger.error(
                "Bot's highest role is not higher than the marker role",
                bot_position=highest_position,
                marker_position=marker.get("position"),
                role=marker.get("name")
            )
            raise PermissionDeniedError(
                f"Bot's highest role is not higher than the role it manages ({marker.get('name')})",
                account_id=account_id,
                action=action,
                context={"bot_position": highest_position,
                         "marker_position": marker.get("position")}
            )

    def _request(
        self,
        method: str,
        path: str,
        body: Optional[dict[str, Any]] = None,
        action: str = "request",
        account_id: Optional[str] = None
    ) -> Any:
        """
        Perform one REST call and decode the JSON response.

        Raises:
            TransientError: 5xx, 429 and network failures
            PermissionDeniedError: 401/403 on non-notification calls
            NotFoundError: 404, and refused DMs on notification calls
        """
        data = json.dumps(body).encode("utf-8") if body is not None else None
        headers = {
            "Authorization": f"Bot {self.token}",
            "User-Agent": self.user_agent,
        }
        if data is not None:
            headers["Content-Type"] = "application/json"

        req = Request(
            f"{self.api_base_url}{path}",
            data=data,
            headers=headers,
            method=method
        )

        try:
            with urlopen(req, timeout=self.timeout_seconds) as response:
                payload = response.read().decode("utf-8")
                return json.loads(payload) if payload else None

        except HTTPError as e:
            raise self._classify_http_error(e, action, account_id) from e

        except (OSError, URLError, socket.timeout) as e:
            self.logger.warning(
                "Discord network error",
                action=action,
                account_id=account_id,
                error=str(e)
            )
            raise TransientError(
                f"Network error: {e}", account_id=account_id, action=action
            ) from e

    def _classify_http_error(
        self,
        error: HTTPError,
        action: str,
        account_id: Optional[str]
    ):
        status = error.code
        code = None
        message = error.reason
        try:
            detail = json.loads(error.read().decode("utf-8") or "{}")
            code = detail.get("code")
            message = detail.get("message", message)
        except (ValueError, AttributeError, OSError):
            pass

        error_msg = f"HTTP {status}: {message}"
        self.logger.warning(
            "Discord API error",
            action=action,
            account_id=account_id,
            status_code=status,
            discord_code=code,
            error=error_msg
        )

        context = {"status_code": status, "discord_code": code}
        if status == 429 or status >= 500:
            return TransientError(error_msg, status_code=status, account_id=account_id,
                                  action=action, context=context)
        if status == 404 or code in (UNKNOWN_MEMBER, UNKNOWN_USER):
            return NotFoundError(error_msg, account_id=account_id, action=action,
                                 context=context)
        if action == ActionName.NOTIFY.value or code == CANNOT_MESSAGE_USER:
            # Closed DMs or no shared guild: the account cannot be reached
            return NotFoundError(error_msg, account_id=account_id, action=action,
                                 context=context)
        return PermissionDeniedError(error_msg, account_id=account_id, action=action,
                                     context=context)
