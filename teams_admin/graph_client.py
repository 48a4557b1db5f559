"""
Microsoft Graph client for directory, group and team operations.
"""

import asyncio
import logging
import re
from datetime import datetime
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote

import aiohttp

from .config import config


class GraphClient:
    """Thin REST wrapper over the Microsoft Graph API.

    Every call opens its own HTTP session and carries the caller's bearer
    token. A non-2xx answer or a transport error is reported as a failed
    operation (``None`` or ``False``); nothing is retried here.
    """

    def __init__(
        self,
        root_uri: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        invite_redirect_url: Optional[str] = None,
        invite_message: Optional[str] = None,
    ):
        """Initialize the client from explicit values or the global config."""
        self.root_uri = (root_uri or config.graph.root_uri).rstrip("/") + "/"
        self.timeout_seconds = timeout_seconds or config.graph.request_timeout_seconds
        self.invite_redirect_url = invite_redirect_url or config.graph.invite_redirect_url
        self.invite_message = invite_message or config.graph.invite_message
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def _headers(token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }

    async def _send(
        self,
        method: str,
        token: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Tuple[bool, Dict[str, Any]]:
        """Send one request; returns (succeeded, json body or empty dict)."""
        url = self.root_uri + path
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.request(
                    method, url, headers=self._headers(token), params=params, json=payload
                ) as response:
                    if 200 <= response.status < 300:
                        if not await response.read():
                            return True, {}
                        return True, await response.json()

                    error_text = await response.text()
                    self.logger.error(f"Graph {method} {path} failed: {response.status} - {error_text[:300]}")
                    return False, {}
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            self.logger.error(f"Graph {method} {path} failed: {e!r}")
            return False, {}

    @staticmethod
    def _extract_id(data: Dict[str, Any]) -> Optional[str]:
        value = data.get("id")
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None

    @staticmethod
    def _odata_literal(value: str) -> str:
        # OData string literals escape a single quote by doubling it
        return "'" + value.replace("'", "''") + "'"

    @staticmethod
    def mail_nickname(team_name: str) -> str:
        """Build a group mail alias from the team name."""
        base = re.sub(r"[^A-Za-z0-9]", "", team_name) or "team"
        return f"{base}{datetime.now().second}"

    async def get_user_id(self, token: str, email: str) -> Optional[str]:
        """Look up a directory user by email; None when there is no match."""
        ok, data = await self._send("GET", token, f"users/{quote(email, safe='@')}", params={"$select": "id"})
        if not ok:
            return None
        return self._extract_id(data)

    async def invite_guest(self, token: str, email: str) -> Optional[str]:
        """Invite an external user as a guest and return the invited user's id."""
        payload = {
            "invitedUserEmailAddress": email,
            "sendInvitationMessage": True,
            "inviteRedirectUrl": self.invite_redirect_url,
            "invitedUserMessageInfo": {"customizedMessageBody": self.invite_message},
        }
        ok, data = await self._send("POST", token, "invitations", payload=payload)
        if not ok:
            return None
        invited_user = data.get("invitedUser") or {}
        return self._extract_id(invited_user)

    async def create_group(self, token: str, team_name: str, owner_id: str) -> Optional[str]:
        """Create a unified group owned by owner_id."""
        payload = {
            "description": f"Team for {team_name}",
            "displayName": team_name,
            "groupTypes": ["Unified"],
            "mailEnabled": True,
            "mailNickname": self.mail_nickname(team_name),
            "securityEnabled": True,
            "owners@odata.bind": [f"{self.root_uri}users/{owner_id}"],
        }
        ok, data = await self._send("POST", token, "groups", payload=payload)
        return self._extract_id(data) if ok else None

    async def create_team(self, token: str, group_id: str) -> Optional[str]:
        """Team-enable an existing group. The group may not be ready yet right after creation."""
        payload = {
            "memberSettings": {"allowCreateUpdateChannels": True},
            "messagingSettings": {
                "allowUserEditMessages": True,
                "allowUserDeleteMessages": True,
            },
            "funSettings": {"allowGiphy": True, "giphyContentRating": "strict"},
        }
        ok, data = await self._send("PUT", token, f"groups/{group_id}/team", payload=payload)
        return self._extract_id(data) if ok else None

    async def create_channel(self, token: str, team_id: str, name: str, description: str) -> Optional[str]:
        payload = {"displayName": name, "description": description}
        ok, data = await self._send("POST", token, f"teams/{team_id}/channels", payload=payload)
        return self._extract_id(data) if ok else None

    async def add_member(self, token: str, team_id: str, user_id: str) -> bool:
        payload = {"@odata.id": f"{self.root_uri}directoryObjects/{user_id}"}
        ok, _ = await self._send("POST", token, f"groups/{team_id}/members/$ref", payload=payload)
        return ok

    async def get_group_id(self, token: str, display_name: str) -> Optional[str]:
        """Find a group by exact display name. The first match wins."""
        params = {
            "$filter": f"displayName eq {self._odata_literal(display_name)}",
            "$select": "id",
        }
        ok, data = await self._send("GET", token, "groups", params=params)
        if not ok:
            return None
        matches = data.get("value") or []
        if not matches:
            self.logger.info(f"No group found named '{display_name}'")
            return None
        return self._extract_id(matches[0])

