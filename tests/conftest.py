import asyncio

import pytest

from contact_sync.models.domain.contact_domain import Contact
from contact_sync.services.directory_client import DirectoryError


class FakeDirectory:
    """In-memory stand-in for DirectoryClient that records every call."""

    def __init__(self, known: dict[str, str] | None = None, failing: set[str] | None = None):
        self.known = known or {}
        self.failing = failing or set()
        self.lookup_delay = 0.0
        self.lookups: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.create_calls: list[list] = []
        self.update_calls: list[list] = []
        self.fail_bulk = False

    async def search_contact(self, phone: str) -> str | None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.lookup_delay)
            self.lookups.append(phone)
            if phone in self.failing:
                raise DirectoryError("Search failed with status: 500", operation="search", status_code=500)
            return self.known.get(phone)
        finally:
            self.in_flight -= 1

    async def bulk_create(self, contacts) -> None:
        self.create_calls.append(list(contacts))
        if self.fail_bulk:
            raise DirectoryError("bulk_create failed with status: 502", status_code=502)

    async def bulk_update(self, updates) -> None:
        self.update_calls.append(list(updates))
        if self.fail_bulk:
            raise DirectoryError("bulk_update failed with status: 502", status_code=502)


@pytest.fixture
def fake_directory():
    return FakeDirectory()


@pytest.fixture
def make_contacts():
    def _make(count: int, prefix: str = "9100000") -> list[Contact]:
        return [Contact(phone=f"{prefix}{i:03d}", first_name=f"Name{i}") for i in range(count)]

    return _make
