"""
Discord entitlement role grants.
Adds or removes the premium role on a guild member through the Discord REST API.
"""
import logging

import requests

from app.services.exceptions import RoleGrantError

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = 'https://discord.com/api/v10'


class DiscordRoleClient:
    """Thin client for the guild member role endpoints."""

    def __init__(self, token, guild_id, role_id, api_base=DEFAULT_API_BASE, timeout=10):
        self.guild_id = str(guild_id)
        self.role_id = str(role_id)
        self.api_base = api_base.rstrip('/')
        self.timeout = timeout
        self._headers = {
            'Authorization': f'Bot {token}',
            'User-Agent': 'PremiumCommunityBilling/1.0',
        }

    def _member_url(self, member_id):
        return f'{self.api_base}/guilds/{self.guild_id}/members/{member_id}'

    def _request(self, method, url, member_id):
        try:
            response = requests.request(method, url, headers=self._headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise RoleGrantError(f'Discord request failed: {e}', member_id=member_id)

        if response.status_code >= 400:
            raise RoleGrantError(
                f'Discord {method} {url} returned {response.status_code}',
                member_id=member_id,
                status=response.status_code,
            )
        return response

    def get_member(self, member_id) -> dict:
        """Fetch a guild member (includes its role ids)."""
        response = self._request('GET', self._member_url(member_id), member_id)
        try:
            member = response.json()
        except ValueError:
            raise RoleGrantError('Discord returned a non-JSON member', member_id=member_id)
        if not isinstance(member, dict):
            raise RoleGrantError('Discord returned a malformed member', member_id=member_id)
        return member

    def add_role(self, member_id):
        url = f'{self._member_url(member_id)}/roles/{self.role_id}'
        self._request('PUT', url, member_id)

    def remove_role(self, member_id):
        url = f'{self._member_url(member_id)}/roles/{self.role_id}'
        self._request('DELETE', url, member_id)


class RoleGrantService:
    """Keeps a member's entitlement role in line with subscription state."""

    def __init__(self, client: DiscordRoleClient):
        self.client = client

    def grant_role(self, member_id, should_grant: bool) -> bool:
        """Add or remove the entitlement role.

        Args:
            member_id: Discord user id of the guild member
            should_grant: True to add the role, False to remove it

        Returns:
            True if the role was changed, False if it was already in the
            requested state

        Raises:
            RoleGrantError: On any Discord-side failure
        """
        member = self.client.get_member(member_id)
        has_role = self.client.role_id in [str(r) for r in member.get('roles', [])]

        if should_grant and not has_role:
            self.client.add_role(member_id)
            logger.info(f'Granted role {self.client.role_id} to member {member_id}')
            return True
        if not should_grant and has_role:
            self.client.remove_role(member_id)
            logger.info(f'Removed role {self.client.role_id} from member {member_id}')
            return True
        return False


def build_role_grant_service(config):
    """Build the role grant service from app config. None when not configured."""
    token = config.get('DISCORD_BOT_TOKEN')
    guild_id = config.get('DISCORD_GUILD_ID')
    role_id = config.get('DISCORD_PREMIUM_ROLE_ID')
    if not (token and guild_id and role_id):
        return None

    client = DiscordRoleClient(
        token=token,
        guild_id=guild_id,
        role_id=role_id,
        api_base=config.get('DISCORD_API_BASE') or DEFAULT_API_BASE,
        timeout=config.get('DISCORD_TIMEOUT', 10),
    )
    return RoleGrantService(client)
