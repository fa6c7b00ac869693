"""
Tests for the classifier pool: routing, serialized lookups and drop-on-error.
"""

import asyncio
import time

import pytest
from structlog.testing import capture_logs

from contact_sync.models.domain.contact_domain import Contact, PendingUpdate
from contact_sync.pipeline.channel import Channel
from contact_sync.pipeline.classifier import ClassifierPool
from contact_sync.services.directory_client import DirectoryAuthError


async def _run_pool(pool: ClassifierPool, contacts: list[Contact]):
    intake, create_out, update_out = Channel(100), Channel(100), Channel(100)
    pool.start(intake, create_out, update_out)
    for contact in contacts:
        await intake.put(contact)
    intake.close()
    await asyncio.wait_for(pool.wait(), timeout=5)
    create_out.close()
    update_out.close()
    return [c async for c in create_out], [u async for u in update_out]


@pytest.mark.asyncio
async def test_routes_found_to_update_and_missing_to_create(fake_directory):
    fake_directory.known = {"9100000001": "4711"}
    pool = ClassifierPool(fake_directory.search_contact, workers=3)
    contacts = [Contact(phone="9100000000"), Contact(phone="9100000001", first_name="Asha")]

    created, updated = await _run_pool(pool, contacts)

    assert created == [Contact(phone="9100000000")]
    assert updated == [PendingUpdate(remote_id="4711", contact=contacts[1])]
    assert pool.stats.to_dict() == {"processed": 2, "created": 1, "updated": 1, "dropped": 0}


@pytest.mark.asyncio
async def test_lookups_never_overlap(fake_directory, make_contacts):
    fake_directory.lookup_delay = 0.01
    pool = ClassifierPool(fake_directory.search_contact, workers=8)

    created, _ = await _run_pool(pool, make_contacts(20))

    assert fake_directory.max_in_flight == 1
    assert len(fake_directory.lookups) == 20
    assert len(created) == 20


@pytest.mark.asyncio
async def test_lookup_error_drops_only_that_contact(fake_directory, make_contacts):
    contacts = make_contacts(5)
    fake_directory.known = {contacts[1].phone: "77"}
    fake_directory.failing = {contacts[3].phone}
    pool = ClassifierPool(fake_directory.search_contact, workers=2)

    with capture_logs() as logs:
        created, updated = await _run_pool(pool, contacts)

    assert len(created) == 3
    assert len(updated) == 1
    assert pool.stats.dropped == 1
    assert len(created) + len(updated) + pool.stats.dropped == len(contacts)
    assert contacts[3] not in created

    errors = [entry for entry in logs if entry["log_level"] == "error"]
    assert len(errors) == 1
    assert errors[0]["phone"] == contacts[3].phone
    assert errors[0]["status_code"] == 500


@pytest.mark.asyncio
async def test_unauthorized_lookup_is_logged_distinctly():
    async def reject(phone):
        raise DirectoryAuthError("Unauthorized (401)", operation="search", status_code=401)

    pool = ClassifierPool(reject, workers=1)
    with capture_logs() as logs:
        created, updated = await _run_pool(pool, [Contact(phone="9100000000")])

    assert created == [] and updated == []
    assert pool.stats.dropped == 1
    assert any(entry["event"] == "Lookup unauthorized, dropping contact" for entry in logs)


@pytest.mark.asyncio
async def test_lookup_interval_paces_calls(fake_directory, make_contacts):
    pool = ClassifierPool(fake_directory.search_contact, workers=4, lookup_interval=0.05)

    start = time.monotonic()
    await _run_pool(pool, make_contacts(4))
    elapsed = time.monotonic() - start

    # Three gaps between four lookups
    assert elapsed >= 0.14


@pytest.mark.asyncio
async def test_workers_drain_intake_before_exiting(fake_directory, make_contacts):
    fake_directory.lookup_delay = 0.005
    pool = ClassifierPool(fake_directory.search_contact, workers=2)
    intake, create_out, update_out = Channel(50), Channel(50), Channel(50)
    contacts = make_contacts(10)
    for contact in contacts:
        await intake.put(contact)
    intake.close()

    pool.start(intake, create_out, update_out)
    await asyncio.wait_for(pool.wait(), timeout=5)

    assert create_out.qsize() == 10
    assert pool.stats.processed == 10


@pytest.mark.asyncio
async def test_start_twice_raises(fake_directory):
    pool = ClassifierPool(fake_directory.search_contact, workers=1)
    channels = (Channel(1), Channel(1), Channel(1))
    pool.start(*channels)

    with pytest.raises(RuntimeError):
        pool.start(*channels)

    await pool.cancel()


def test_rejects_invalid_pool_size(fake_directory):
    with pytest.raises(ValueError):
        ClassifierPool(fake_directory.search_contact, workers=0)
