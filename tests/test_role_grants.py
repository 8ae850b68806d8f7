# =============================================================================
# Premium Billing - Discord Role Grant Tests
# =============================================================================
# Tests for app/services/role_grants.py - Discord guild member role updates

import pytest
from unittest.mock import patch, MagicMock
import requests

from app.services.exceptions import RoleGrantError
from app.services.role_grants import (
    DiscordRoleClient,
    RoleGrantService,
    build_role_grant_service,
)

MEMBER_ID = '112233445566778899'
ROLE_ID = '555000111222333444'


def _response(status_code=200, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload if payload is not None else {}
    return response


@pytest.fixture
def client():
    return DiscordRoleClient('bot-token', '42', ROLE_ID, api_base='https://discord.test/api/v10/')


# =============================================================================
# DiscordRoleClient Tests
# =============================================================================

class TestDiscordRoleClient:
    """Tests for the REST client."""

    @patch('app.services.role_grants.requests.request')
    def test_get_member(self, mock_request, client):
        """Fetching a member hits the guild member endpoint with bot auth."""
        mock_request.return_value = _response(payload={'roles': [ROLE_ID]})

        member = client.get_member(MEMBER_ID)

        assert member == {'roles': [ROLE_ID]}
        args, kwargs = mock_request.call_args
        assert args == ('GET', f'https://discord.test/api/v10/guilds/42/members/{MEMBER_ID}')
        assert kwargs['headers']['Authorization'] == 'Bot bot-token'
        assert kwargs['timeout'] == 10

    @patch('app.services.role_grants.requests.request')
    def test_add_role(self, mock_request, client):
        mock_request.return_value = _response(204)

        client.add_role(MEMBER_ID)

        args, _ = mock_request.call_args
        assert args == ('PUT', f'https://discord.test/api/v10/guilds/42/members/{MEMBER_ID}/roles/{ROLE_ID}')

    @patch('app.services.role_grants.requests.request')
    def test_remove_role(self, mock_request, client):
        mock_request.return_value = _response(204)

        client.remove_role(MEMBER_ID)

        args, _ = mock_request.call_args
        assert args[0] == 'DELETE'

    @patch('app.services.role_grants.requests.request')
    def test_http_error(self, mock_request, client):
        """4xx/5xx responses become RoleGrantError with the status."""
        mock_request.return_value = _response(403)

        with pytest.raises(RoleGrantError) as exc_info:
            client.add_role(MEMBER_ID)

        assert exc_info.value.status == 403
        assert exc_info.value.member_id == MEMBER_ID

    @patch('app.services.role_grants.requests.request')
    def test_network_error(self, mock_request, client):
        """Timeouts and connection errors become RoleGrantError."""
        mock_request.side_effect = requests.Timeout('timed out')

        with pytest.raises(RoleGrantError):
            client.get_member(MEMBER_ID)

    @pytest.mark.parametrize('payload', [None, ['not', 'a', 'member'], 'text'])
    @patch('app.services.role_grants.requests.request')
    def test_member_body_not_an_object(self, mock_request, client, payload):
        """A 200 response whose JSON is not an object is a grant failure."""
        response = MagicMock(status_code=200)
        response.json.return_value = payload
        mock_request.return_value = response

        with pytest.raises(RoleGrantError) as exc_info:
            client.get_member(MEMBER_ID)

        assert exc_info.value.member_id == MEMBER_ID

    @patch('app.services.role_grants.requests.request')
    def test_non_json_member(self, mock_request, client):
        response = _response()
        response.json.side_effect = ValueError('no json')
        mock_request.return_value = response

        with pytest.raises(RoleGrantError):
            client.get_member(MEMBER_ID)


# =============================================================================
# RoleGrantService Tests
# =============================================================================

class TestRoleGrantService:
    """Tests for grant/revoke decisions."""

    @pytest.fixture
    def role_client(self):
        role_client = MagicMock(spec=DiscordRoleClient)
        role_client.role_id = ROLE_ID
        return role_client

    def test_grant_when_missing(self, role_client):
        role_client.get_member.return_value = {'roles': []}

        assert RoleGrantService(role_client).grant_role(MEMBER_ID, True) is True
        role_client.add_role.assert_called_once_with(MEMBER_ID)

    def test_grant_when_present_is_noop(self, role_client):
        role_client.get_member.return_value = {'roles': [ROLE_ID]}

        assert RoleGrantService(role_client).grant_role(MEMBER_ID, True) is False
        role_client.add_role.assert_not_called()

    def test_revoke_when_present(self, role_client):
        role_client.get_member.return_value = {'roles': ['1', ROLE_ID]}

        assert RoleGrantService(role_client).grant_role(MEMBER_ID, False) is True
        role_client.remove_role.assert_called_once_with(MEMBER_ID)

    def test_revoke_when_missing_is_noop(self, role_client):
        role_client.get_member.return_value = {'roles': ['1']}

        assert RoleGrantService(role_client).grant_role(MEMBER_ID, False) is False
        role_client.remove_role.assert_not_called()

    def test_errors_propagate(self, role_client):
        role_client.get_member.side_effect = RoleGrantError('not in guild', status=404)

        with pytest.raises(RoleGrantError):
            RoleGrantService(role_client).grant_role(MEMBER_ID, True)


# =============================================================================
# build_role_grant_service Tests
# =============================================================================

class TestBuildRoleGrantService:
    """Tests for config-driven construction."""

    def test_disabled_without_config(self):
        assert build_role_grant_service({}) is None

    def test_disabled_when_partial(self):
        assert build_role_grant_service({'DISCORD_BOT_TOKEN': 't', 'DISCORD_GUILD_ID': '42'}) is None

    def test_enabled_with_all_keys(self):
        service = build_role_grant_service({
            'DISCORD_BOT_TOKEN': 't',
            'DISCORD_GUILD_ID': 42,
            'DISCORD_PREMIUM_ROLE_ID': ROLE_ID,
            'DISCORD_TIMEOUT': 5,
        })

        assert isinstance(service, RoleGrantService)
        assert service.client.guild_id == '42'
        assert service.client.timeout == 5
        assert service.client.api_base == 'https://discord.com/api/v10'
