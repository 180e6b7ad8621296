# API client unit tests
import pytest
import httpx

from project_sync.core.config import ClientCredentials
from project_sync.core.exceptions import (
    PlatformAPIError,
    ResourceNotFoundError,
    TransientNetworkError,
    ValidationError,
    VersionConflictError
)
from project_sync.integrations.base import NamespacedKey
from project_sync.services.commerce import CommerceClient, CustomObjectStore

CREDENTIALS = ClientCredentials(
    project_key="target-project",
    client_id="id",
    client_secret="secret",
    auth_url="https://auth.example.com",
    api_url="https://api.example.com/",
)


@pytest.fixture
def auth(mocker):
    fake_auth = mocker.Mock()
    fake_auth.get_access_token = mocker.AsyncMock(return_value="test-token")
    return fake_auth


@pytest.fixture
def client(auth):
    return CommerceClient(CREDENTIALS, auth=auth)


def mock_response(mocker, status_code, body=None, text=""):
    response = mocker.MagicMock()
    response.status_code = status_code
    response.json.return_value = body if body is not None else {}
    response.text = text
    return response


"""
1. Request handling
"""

@pytest.mark.asyncio
async def test_make_request_sends_bearer_token(mocker, client):
    """Test that requests go to the project URL with the access token"""
    mock_client = mocker.patch("httpx.AsyncClient")
    mock_client.return_value.__aenter__.return_value.request.return_value = mock_response(mocker, 200, {"ok": True})

    result = await client._make_request("GET", "/products", params={"limit": 1})

    _, kwargs = mock_client.return_value.__aenter__.return_value.request.call_args
    assert kwargs["url"] == "https://api.example.com/target-project/products"
    assert kwargs["headers"]["Authorization"] == "Bearer test-token"
    assert kwargs["params"] == {"limit": 1}
    assert result == {"ok": True}


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code, error_class", [
    (400, ValidationError),
    (404, ResourceNotFoundError),
    (409, VersionConflictError),
    (429, TransientNetworkError),
    (503, TransientNetworkError),
    (403, PlatformAPIError),
])
async def test_error_responses_are_mapped(mocker, client, status_code, error_class):
    """Test that HTTP errors map onto the exception hierarchy"""
    mock_client = mocker.patch("httpx.AsyncClient")
    body = {"message": "Something went wrong", "errors": [{"code": "Error"}]}
    mock_client.return_value.__aenter__.return_value.request.return_value = mock_response(mocker, status_code, body)

    with pytest.raises(error_class) as exc_info:
        await client._make_request("GET", "/products")

    assert exc_info.value.status_code == status_code
    assert exc_info.value.errors == [{"code": "Error"}]
    assert "Something went wrong" in str(exc_info.value)


@pytest.mark.asyncio
async def test_network_error_is_transient(mocker, client):
    """Test handling of network errors"""
    mock_client = mocker.patch("httpx.AsyncClient")
    mock_client.return_value.__aenter__.return_value.request.side_effect = \
        httpx.RequestError("Connection error", request=httpx.Request("GET", "https://api.example.com"))

    with pytest.raises(TransientNetworkError, match="Network error"):
        await client._make_request("GET", "/products")


@pytest.mark.asyncio
async def test_timeout_is_transient(mocker, client):
    """Test handling of timeout errors"""
    mock_client = mocker.patch("httpx.AsyncClient")
    mock_client.return_value.__aenter__.return_value.request.side_effect = \
        httpx.TimeoutException("Timeout", request=httpx.Request("GET", "https://api.example.com"))

    with pytest.raises(TransientNetworkError, match="timed out"):
        await client._make_request("GET", "/products")


@pytest.mark.asyncio
async def test_unauthorized_refreshes_token_once(mocker, client, auth):
    """Test that a 401 clears the token and retries exactly once"""
    mock_client = mocker.patch("httpx.AsyncClient")
    mock_client.return_value.__aenter__.return_value.request.side_effect = [
        mock_response(mocker, 401, text="invalid_token"),
        mock_response(mocker, 200, {"id": "1"}),
    ]

    result = await client._make_request("GET", "/products/1")

    assert result == {"id": "1"}
    auth.clear_token.assert_called_once()
    assert auth.get_access_token.await_count == 2


"""
2. Resource operations
"""

@pytest.mark.asyncio
async def test_update_by_key(mocker, client):
    mock_make_request = mocker.patch.object(CommerceClient, "_make_request", return_value={"version": 5})

    await client.update_by_key("products", "shoe 1", 4, [{"action": "publish"}])

    mock_make_request.assert_called_once_with(
        "POST", "/products/key=shoe%201", data={"version": 4, "actions": [{"action": "publish"}]}
    )


@pytest.mark.asyncio
async def test_get_by_key_and_query(mocker, client):
    mock_make_request = mocker.patch.object(CommerceClient, "_make_request", return_value={"results": []})

    await client.get_by_key("categories", "shoes")
    await client.query("product-projections", params={"staged": "true"})

    assert mock_make_request.call_args_list[0].args == ("GET", "/categories/key=shoes")
    assert mock_make_request.call_args_list[1].args == ("GET", "/product-projections")
    assert mock_make_request.call_args_list[1].kwargs == {"params": {"staged": "true"}}


"""
3. Custom objects
"""

@pytest.mark.asyncio
async def test_custom_object_store_missing_object(mocker, client):
    mocker.patch.object(CommerceClient, "_make_request", side_effect=ResourceNotFoundError("missing", 404))
    store = CustomObjectStore(client)

    assert await store.get(NamespacedKey("project-sync.runner.products", "source")) is None


@pytest.mark.asyncio
async def test_custom_object_store_create_only_uses_version_zero(mocker, client):
    mock_make_request = mocker.patch.object(
        CommerceClient, "_make_request", return_value={"version": 1, "value": {"a": 1}}
    )
    store = CustomObjectStore(client)

    stored = await store.set(NamespacedKey("container", "key"), {"a": 1})

    assert stored.version == 1
    mock_make_request.assert_called_once_with(
        "POST", "/custom-objects",
        data={"container": "container", "key": "key", "value": {"a": 1}, "version": 0}
    )


@pytest.mark.asyncio
async def test_custom_object_store_get(mocker, client):
    mocker.patch.object(CommerceClient, "_make_request", return_value={"version": 3, "value": {"a": 1}})
    store = CustomObjectStore(client)

    stored = await store.get(NamespacedKey("container", "key"))

    assert stored.version == 3
    assert stored.value == {"a": 1}
