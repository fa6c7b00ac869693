"""
Tests for the directory API client.
"""

import json

import httpx
import pytest

from contact_sync.models.domain.contact_domain import Contact, PendingUpdate
from contact_sync.services.directory_client import (
    DirectoryAuthError,
    DirectoryClient,
    DirectoryError,
)

BASE_URL = "https://directory.test/v1"


def _client(handler) -> DirectoryClient:
    return DirectoryClient(BASE_URL, "test-key", transport=httpx.MockTransport(handler))


class TestSearchContact:
    """Tests for search by phone number."""

    @pytest.mark.asyncio
    async def test_returns_first_match_id(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["api_key"] = request.headers["api-key"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"data": [{"contact_id": 321, "mobile": "9100000000"}]})

        async with _client(handler) as client:
            result = await client.search_contact("9100000000")

        assert result == "321"
        assert seen["url"] == f"{BASE_URL}/contact/search"
        assert seen["api_key"] == "test-key"
        condition = seen["body"]["filtering_criteria"][0]["condition_details"][0]
        assert condition == {
            "field": "MOBILE",
            "field_category": "config",
            "operation": "equals",
            "value": ["9100000000"],
        }
        assert seen["body"]["output"] == {
            "get_count": False,
            "fields": ["mobile", "email", "contact_id"],
        }

    @pytest.mark.asyncio
    async def test_returns_none_when_not_found(self):
        async with _client(lambda request: httpx.Response(200, json={"data": []})) as client:
            assert await client.search_contact("9100000000") is None

    @pytest.mark.asyncio
    async def test_unauthorized_raises_auth_error(self):
        async with _client(lambda request: httpx.Response(401, text="bad key")) as client:
            with pytest.raises(DirectoryAuthError) as exc_info:
                await client.search_contact("9100000000")

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_non_ok_status_raises(self):
        async with _client(lambda request: httpx.Response(429, text="slow down")) as client:
            with pytest.raises(DirectoryError) as exc_info:
                await client.search_contact("9100000000")

        assert exc_info.value.status_code == 429
        assert not isinstance(exc_info.value, DirectoryAuthError)

    @pytest.mark.asyncio
    async def test_malformed_body_raises(self):
        async with _client(lambda request: httpx.Response(200, text="<html>")) as client:
            with pytest.raises(DirectoryError, match="Invalid search response"):
                await client.search_contact("9100000000")

    @pytest.mark.asyncio
    async def test_transport_error_is_wrapped(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(DirectoryError) as exc_info:
                await client.search_contact("9100000000")

        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


class TestBulkCalls:
    """Tests for bulk create and bulk update."""

    @pytest.mark.asyncio
    async def test_bulk_create_payload(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(202, json={"status": "accepted"})

        contacts = [
            Contact(phone="9100000000", first_name="Asha", rashi="Mesha"),
            Contact(phone="9100000001"),
        ]
        async with _client(handler) as client:
            await client.bulk_create(contacts)

        assert seen["path"] == "/v1/contact/create"
        assert seen["body"] == {
            "data": {
                "contact_type": "identified",
                "contacts": [
                    {
                        "mobile": "9100000000",
                        "identity": "9100000000",
                        "attributes": {"FIRST_NAME": "Asha", "RASHI": "Mesha"},
                    },
                    {"mobile": "9100000001", "identity": "9100000001"},
                ],
            }
        }

    @pytest.mark.asyncio
    async def test_bulk_update_payload(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={})

        updates = [PendingUpdate(remote_id="55", contact=Contact(phone="9100000000", age="34"))]
        async with _client(handler) as client:
            await client.bulk_update(updates)

        assert seen["path"] == "/v1/contact/update"
        assert seen["body"]["data"]["contacts"] == [
            {"contact_id": 55, "mobile": "9100000000", "attributes": {"AGE": "34"}}
        ]

    @pytest.mark.asyncio
    async def test_bulk_error_status_raises(self):
        async with _client(lambda request: httpx.Response(500, text="boom")) as client:
            with pytest.raises(DirectoryError) as exc_info:
                await client.bulk_create([Contact(phone="9100000000")])

        assert exc_info.value.operation == "bulk_create"
        assert exc_info.value.status_code == 500
