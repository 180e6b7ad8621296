import pytest
import httpx

from project_sync.core.config import ClientCredentials
from project_sync.core.exceptions import ConfigurationError, TransientNetworkError
from project_sync.services.commerce.auth import CommerceAuthManager

CREDENTIALS = ClientCredentials(
    project_key="source-project",
    client_id="id",
    client_secret="secret",
    auth_url="https://auth.example.com/",
    api_url="https://api.example.com",
)


def token_response(mocker, status_code=200, body=None):
    response = mocker.MagicMock()
    response.status_code = status_code
    response.json.return_value = body or {"access_token": "abc", "expires_in": 3600}
    response.text = "error"
    return response


@pytest.mark.asyncio
async def test_token_is_requested_and_cached(mocker):
    mock_client = mocker.patch("httpx.AsyncClient")
    mock_client.return_value.__aenter__.return_value.post.return_value = token_response(mocker)
    auth = CommerceAuthManager(CREDENTIALS)

    assert await auth.get_access_token() == "abc"
    assert await auth.get_access_token() == "abc"

    post = mock_client.return_value.__aenter__.return_value.post
    assert post.call_count == 1
    args, kwargs = post.call_args
    assert args[0] == "https://auth.example.com/oauth/token"
    assert kwargs["data"] == {"grant_type": "client_credentials", "scope": "manage_project:source-project"}
    assert kwargs["auth"] == ("id", "secret")


@pytest.mark.asyncio
async def test_clear_token_forces_new_request(mocker):
    mock_client = mocker.patch("httpx.AsyncClient")
    mock_client.return_value.__aenter__.return_value.post.return_value = token_response(mocker)
    auth = CommerceAuthManager(CREDENTIALS)

    await auth.get_access_token()
    auth.clear_token()
    await auth.get_access_token()

    assert mock_client.return_value.__aenter__.return_value.post.call_count == 2


@pytest.mark.asyncio
async def test_rejected_credentials_are_a_configuration_error(mocker):
    mock_client = mocker.patch("httpx.AsyncClient")
    mock_client.return_value.__aenter__.return_value.post.return_value = token_response(mocker, 401)

    with pytest.raises(ConfigurationError):
        await CommerceAuthManager(CREDENTIALS).get_access_token()


@pytest.mark.asyncio
async def test_unreachable_auth_server_is_transient(mocker):
    mock_client = mocker.patch("httpx.AsyncClient")
    mock_client.return_value.__aenter__.return_value.post.side_effect = \
        httpx.ConnectError("refused", request=httpx.Request("POST", "https://auth.example.com"))

    with pytest.raises(TransientNetworkError):
        await CommerceAuthManager(CREDENTIALS).get_access_token()
