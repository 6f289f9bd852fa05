"""
Tests for the policyserv REST client.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from policybot.errors import PolicyBackendError
from policybot.policyserv import Community, PolicyservClient


def _response(status_code=200, data=None, text=""):
    content = b"" if data is None else b"{}"
    return MagicMock(
        status_code=status_code,
        content=content,
        text=text,
        json=lambda: data,
    )


@pytest.fixture
def api():
    return PolicyservClient("https://policyserv.example.org/", "secret-key", timeout=5.0)


class TestRequest:
    """Tests for request construction and status handling."""

    @pytest.mark.asyncio
    async def test_bearer_auth_and_prefix(self, api):
        with patch("httpx.AsyncClient") as mock_client:
            mock_request = AsyncMock(return_value=_response(data={}))
            mock_client.return_value.__aenter__.return_value.request = mock_request

            await api.get_instance_community_config()

            mock_client.assert_called_once_with(timeout=5.0)
            args, kwargs = mock_request.call_args
            assert args == ("GET", "https://policyserv.example.org/api/v1/instance/community_config")
            assert kwargs["headers"]["Authorization"] == "Bearer secret-key"

    @pytest.mark.asyncio
    async def test_non_200_raises_with_status(self, api):
        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.request = AsyncMock(
                return_value=_response(status_code=500, text="boom")
            )

            with pytest.raises(PolicyBackendError) as exc_info:
                await api.get_instance_community_config()

            assert exc_info.value.status_code == 500
            assert "boom" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_transport_error(self, api):
        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.request = AsyncMock(
                side_effect=httpx.ConnectError("refused")
            )

            with pytest.raises(PolicyBackendError) as exc_info:
                await api.get_instance_community_config()

            assert exc_info.value.status_code is None


class TestCommunities:
    """Tests for community endpoints."""

    @pytest.mark.asyncio
    async def test_create_community(self, api):
        payload = {"community_id": "c1", "name": "Foo", "config": {"spam_threshold": 0.5}}
        with patch("httpx.AsyncClient") as mock_client:
            mock_request = AsyncMock(return_value=_response(data=payload))
            mock_client.return_value.__aenter__.return_value.request = mock_request

            community = await api.create_community("Foo")

            assert community == Community("c1", "Foo", {"spam_threshold": 0.5})
            args, kwargs = mock_request.call_args
            assert args == ("POST", "https://policyserv.example.org/api/v1/communities/new")
            assert kwargs["json"] == {"name": "Foo"}

    @pytest.mark.asyncio
    async def test_create_community_rejected(self, api):
        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.request = AsyncMock(
                return_value=_response(status_code=400, text="name too short")
            )

            with pytest.raises(PolicyBackendError) as exc_info:
                await api.create_community("F")

            assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_get_community_not_found(self, api):
        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.request = AsyncMock(
                return_value=_response(status_code=404)
            )

            assert await api.get_community("missing") is None

    @pytest.mark.asyncio
    async def test_set_community_config(self, api):
        with patch("httpx.AsyncClient") as mock_client:
            mock_request = AsyncMock(return_value=_response())
            mock_client.return_value.__aenter__.return_value.request = mock_request

            result = await api.set_community_config("c/1", {"spam_threshold": 0.9})

            assert result is None
            args, kwargs = mock_request.call_args
            assert args[1].endswith("/api/v1/communities/c%2F1/config")
            assert kwargs["json"] == {"config": {"spam_threshold": 0.9}}


class TestRooms:
    """Tests for room endpoints."""

    @pytest.mark.asyncio
    async def test_get_room(self, api):
        with patch("httpx.AsyncClient") as mock_client:
            mock_request = AsyncMock(return_value=_response(
                data={"room_id": "!abc:example.org", "community_id": "c1"}
            ))
            mock_client.return_value.__aenter__.return_value.request = mock_request

            room = await api.get_room("!abc:example.org")

            assert room.community_id == "c1"
            assert mock_request.call_args[0][1].endswith("/api/v1/rooms/%21abc%3Aexample.org")

    @pytest.mark.asyncio
    async def test_get_room_not_found(self, api):
        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.request = AsyncMock(
                return_value=_response(status_code=404)
            )

            assert await api.get_room("!abc:example.org") is None

    @pytest.mark.asyncio
    async def test_get_room_other_error_propagates(self, api):
        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.request = AsyncMock(
                return_value=_response(status_code=502)
            )

            with pytest.raises(PolicyBackendError):
                await api.get_room("!abc:example.org")

    @pytest.mark.asyncio
    async def test_add_room(self, api):
        with patch("httpx.AsyncClient") as mock_client:
            mock_request = AsyncMock(return_value=_response())
            mock_client.return_value.__aenter__.return_value.request = mock_request

            await api.add_room("!abc:example.org", "c1")

            args, kwargs = mock_request.call_args
            assert args[0] == "POST"
            assert args[1].endswith("/rooms/%21abc%3Aexample.org/join")
            assert kwargs["json"] == {"community_id": "c1"}
