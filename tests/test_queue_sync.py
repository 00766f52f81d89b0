import asyncio
from datetime import timedelta

import pytest

from app.core.cache import QueryCache
from app.core.queue_sync import QueueSyncService, evict_previous_days, visits_key
from app.core.realtime import ChangeFeed
from app.core.telemetry import TelemetryStore
from app.models.change import ChangeEvent
from app.services.patients import get_patient_detail
from app.services.visits import list_visits
from app.utils.parsing import today_in


def _change(type_="UPDATE"):
    return ChangeEvent(type=type_, table="visits", record={"id": "V1"})


def test_activate_opens_single_channel(clinic):
    async def scenario():
        feed = ChangeFeed()
        sync = QueueSyncService(feed, QueryCache(), clinic)
        first = await sync.activate()
        second = await sync.activate()
        return feed, first, second

    feed, first, second = asyncio.run(scenario())
    assert first is second
    assert len(feed.channels) == 1
    assert first.table == "visits"
    assert first.event == "*"


def test_notifications_invalidate_today_once_per_read(clinic, gateway):
    """알림 N건 사이의 재조회는 한 번만 발생"""
    today = today_in(clinic.timezone)
    patient = gateway.add_patient()
    gateway.add_visit(patient_id=patient["id"], visit_date=today.isoformat(), queue_number=1)

    async def scenario():
        feed = ChangeFeed()
        cache = QueryCache()
        async with QueueSyncService(feed, cache, clinic) as sync:
            await list_visits(gateway, cache, day=today)
            for type_ in ("INSERT", "UPDATE", "DELETE"):
                feed.publish(_change(type_))
            await list_visits(gateway, cache, day=today)
            await list_visits(gateway, cache, day=today)
            return sync.invalidation_count

    invalidations = asyncio.run(scenario())
    assert invalidations == 3
    assert gateway.count("select", "visits") == 2


def test_notification_leaves_other_days_cached(clinic, gateway):
    today = today_in(clinic.timezone)
    yesterday = today - timedelta(days=1)

    async def scenario():
        feed = ChangeFeed()
        cache = QueryCache()
        async with QueueSyncService(feed, cache, clinic):
            await list_visits(gateway, cache, day=today)
            await list_visits(gateway, cache, day=yesterday)
            feed.publish(_change())
        return cache

    cache = asyncio.run(scenario())
    assert not cache.is_fresh(("visits", today.isoformat(), ()))
    assert cache.is_fresh(("visits", yesterday.isoformat(), ()))


def test_deactivate_twice_and_no_invalidation_after_close(clinic):
    async def scenario():
        feed = ChangeFeed()
        cache = QueryCache()
        sync = QueueSyncService(feed, cache, clinic)
        channel = await sync.activate()
        await sync.deactivate()
        await sync.deactivate()
        channel.dispatch(_change())
        feed.publish(_change())
        return sync, channel, feed

    sync, channel, feed = asyncio.run(scenario())
    assert not sync.active
    assert channel.closed
    assert sync.invalidation_count == 0
    assert feed.channels == []


def test_context_exit_closes_channel_on_error(clinic):
    feed = ChangeFeed()
    sync = QueueSyncService(feed, QueryCache(), clinic)

    async def scenario():
        async with sync:
            raise RuntimeError("view crashed")

    with pytest.raises(RuntimeError):
        asyncio.run(scenario())
    assert not sync.active
    assert feed.channels == []


def test_sync_status_recorded(clinic):
    async def scenario():
        feed = ChangeFeed()
        async with QueueSyncService(feed, QueryCache(), clinic):
            feed.publish(_change("INSERT"))

    asyncio.run(scenario())
    rows = TelemetryStore().query_sync_status()
    assert len(rows) == 1
    assert rows[0]["channel"] == "visits-queue"
    assert rows[0]["state"] == "closed"
    assert rows[0]["invalidation_count"] == 1
    opened = TelemetryStore().query_logs("queue_sync_opened")
    assert len(opened) == 1
    assert opened[0]["clinic_id"] == "TEST_CLINIC"


def test_evict_previous_days(clinic):
    today = today_in(clinic.timezone)
    yesterday = today - timedelta(days=1)

    async def loader():
        return []

    async def scenario():
        cache = QueryCache()
        await cache.fetch(visits_key(yesterday) + ((),), loader)
        await cache.fetch(visits_key(today) + ((),), loader)
        await cache.fetch(("visits", None, ()), loader)
        return cache, evict_previous_days(cache, clinic)

    cache, removed = asyncio.run(scenario())
    assert removed == 1
    assert sorted(cache.keys(), key=str) == sorted(
        [("visits", today.isoformat(), ()), ("visits", None, ())], key=str
    )


def test_notification_refreshes_patient_detail(clinic, gateway):
    today = today_in(clinic.timezone)
    patient = gateway.add_patient()
    visit = gateway.add_visit(
        patient_id=patient["id"], visit_date=today.isoformat(), queue_number=1
    )

    async def scenario():
        feed = ChangeFeed()
        cache = QueryCache()
        async with QueueSyncService(feed, cache, clinic):
            before = await get_patient_detail(gateway, cache, patient["id"])
            visit["status"] = "VitalSigns"
            feed.publish(
                ChangeEvent(
                    type="UPDATE",
                    table="visits",
                    record={"id": visit["id"], "patient_id": patient["id"], "status": "VitalSigns"},
                    old_record={"id": visit["id"], "patient_id": patient["id"]},
                )
            )
            after = await get_patient_detail(gateway, cache, patient["id"])
        return before, after

    before, after = asyncio.run(scenario())
    assert before.visits[0].status == "InQueue"
    assert after.visits[0].status == "VitalSigns"


def test_notification_is_logged(clinic):
    async def scenario():
        feed = ChangeFeed()
        async with QueueSyncService(feed, QueryCache(), clinic):
            feed.publish(_change("DELETE"))

    asyncio.run(scenario())
    logs = TelemetryStore().query_logs("queue_invalidated")
    assert len(logs) == 1
    assert logs[0]["level"] == "DEBUG"
    assert logs[0]["stage"] == "realtime"


def test_reconfigure_applies_new_timezone_and_channel(clinic):
    moved = clinic.model_copy(update={"timezone": "Pacific/Kiritimati", "queue_channel": "queue-2"})

    async def loader():
        return []

    async def scenario():
        feed = ChangeFeed()
        cache = QueryCache()
        async with QueueSyncService(feed, cache, clinic) as sync:
            await cache.fetch(("visits", sync.today().isoformat(), ()), loader)
            await sync.reconfigure(moved)
            names = [channel.name for channel in feed.channels]
            return sync, cache, names

    sync, cache, names = asyncio.run(scenario())
    assert names == ["queue-2"]
    assert sync.clinic.timezone == "Pacific/Kiritimati"
    assert sync.today() == today_in("Pacific/Kiritimati")
    assert not any(cache.is_fresh(key) for key in cache.keys())


def test_evict_previous_days_clears_per_patient_keys(clinic):
    async def loader():
        return None

    async def scenario():
        cache = QueryCache()
        await cache.fetch(("patient-detail", "P1"), loader)
        await cache.fetch(("patient-account", "U1"), loader)
        await cache.fetch(visits_key(today_in(clinic.timezone)) + ((),), loader)
        return cache, evict_previous_days(cache, clinic)

    cache, removed = asyncio.run(scenario())
    assert removed == 2
    assert [key[0] for key in cache.keys()] == ["visits"]
