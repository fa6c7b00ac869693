"""
Remote contact directory API client.
Handles search by phone number and the bulk create/update endpoints.
Low-level HTTP client; batching and rate pacing live in the pipeline.
"""

import time
from collections.abc import Sequence
from typing import Any

import httpx

from contact_sync.infrastructure.observability.logging import get_logger, log_remote_call
from contact_sync.models.domain.contact_domain import Contact, PendingUpdate, bulk_payload

logger = get_logger(__name__)

# Directory API configuration
SEARCH_PATH = "/contact/search"
CREATE_PATH = "/contact/create"
UPDATE_PATH = "/contact/update"
SEARCH_FIELDS = ["mobile", "email", "contact_id"]

REQUEST_TIMEOUT = 15  # seconds


class DirectoryError(Exception):
    """Custom exception for directory API errors."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        status_code: int | None = None,
        response_text: str | None = None,
    ):
        super().__init__(message)
        self.operation = operation
        self.status_code = status_code
        self.response_text = response_text


class DirectoryAuthError(DirectoryError):
    """The directory rejected the API key."""


def build_search_body(phone: str) -> dict[str, Any]:
    """Search filter matching a single mobile number exactly."""
    return {
        "output": {"get_count": False, "fields": SEARCH_FIELDS},
        "filtering_criteria": [
            {
                "condition_details": [
                    {
                        "field": "MOBILE",
                        "field_category": "config",
                        "operation": "equals",
                        "value": [phone],
                    }
                ]
            }
        ],
    }


class DirectoryClient:
    """
    Client for the contact directory API.

    Every call is a single attempt: transport failures, auth rejections and
    non-success statuses surface as DirectoryError for the caller to log.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = REQUEST_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "api-key": api_key,
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "DirectoryClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _post(self, operation: str, path: str, payload: dict, **context) -> httpx.Response:
        """POST a JSON payload, wrapping transport failures as DirectoryError."""
        start_time = time.monotonic()
        try:
            response = await self._client.post(path, json=payload)
        except httpx.RequestError as e:
            duration_ms = (time.monotonic() - start_time) * 1000
            log_remote_call(operation, None, duration_ms, error=str(e), **context)
            raise DirectoryError(
                f"Directory {operation} request failed: {e}", operation=operation
            ) from e

        duration_ms = (time.monotonic() - start_time) * 1000
        log_remote_call(operation, response.status_code, duration_ms, **context)

        if response.status_code == 401:
            logger.error("Directory rejected credentials, check DIRECTORY_API_KEY", operation=operation)
            raise DirectoryAuthError(
                "Unauthorized (401)", operation=operation, status_code=401, response_text=response.text
            )
        return response

    async def search_contact(self, phone: str) -> str | None:
        """
        Look up a contact by mobile number.

        Args:
            phone: Mobile number to match exactly

        Returns:
            The remote contact id of the first match, or None when not found

        Raises:
            DirectoryError: On transport failure, non-200 status or a malformed body
        """
        response = await self._post("search", SEARCH_PATH, build_search_body(phone), phone=phone)

        if response.status_code != 200:
            raise DirectoryError(
                f"Search failed with status: {response.status_code}",
                operation="search",
                status_code=response.status_code,
                response_text=response.text[:200] if response.text else "",
            )

        try:
            matches = response.json().get("data") or []
            if not matches:
                logger.debug("Contact not found in directory", phone=phone)
                return None
            contact_id = matches[0]["contact_id"]
        except (ValueError, AttributeError, KeyError, TypeError, IndexError) as e:
            logger.error("Failed to decode search response", phone=phone, error=str(e))
            raise DirectoryError(
                f"Invalid search response format: {e}", operation="search", status_code=200
            ) from e

        logger.debug("Contact found in directory", phone=phone, contact_id=contact_id)
        return str(contact_id)

    async def bulk_create(self, contacts: Sequence[Contact]) -> None:
        """Create a batch of contacts that were not found in the directory."""
        payload = bulk_payload(c.to_create_entry() for c in contacts)
        await self._send_bulk("bulk_create", CREATE_PATH, payload, len(contacts))

    async def bulk_update(self, updates: Sequence[PendingUpdate]) -> None:
        """Update a batch of contacts by their remote ids."""
        payload = bulk_payload(u.to_update_entry() for u in updates)
        await self._send_bulk("bulk_update", UPDATE_PATH, payload, len(updates))

    async def _send_bulk(self, operation: str, path: str, payload: dict, count: int) -> None:
        logger.debug(f"Directory {operation} payload", payload=payload)
        response = await self._post(operation, path, payload, record_count=count)

        if response.status_code >= 300:
            raise DirectoryError(
                f"{operation} failed with status: {response.status_code}",
                operation=operation,
                status_code=response.status_code,
                response_text=response.text[:200] if response.text else "",
            )
