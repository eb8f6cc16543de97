"""Mission lifecycle coordination tests."""

import asyncio
import random
from datetime import datetime, timedelta, timezone

import pytest
from fakes import RecordingHandle

from libs.core.application.errors import (
    MissionAlreadyCompletedError,
    MissionNotFoundError,
)
from libs.core.application.mission_service import MissionService
from libs.core.application.subscriber_registry import SubscriberRegistry
from libs.core.application.telemetry_scheduler import TelemetryScheduler
from libs.core.domain.entities import Mission, MissionStatus
from services.api_gateway.infrastructure.memory_store import (
    InMemoryDatabase,
    InMemoryMissionRepository,
    InMemoryTelemetryRepository,
)

TICK_SEC = 0.02


class _Harness:
    def __init__(self) -> None:
        db = InMemoryDatabase()
        self.missions = InMemoryMissionRepository(db)
        self.telemetry = InMemoryTelemetryRepository(db)
        self.subscribers = SubscriberRegistry(send_timeout_sec=0.5)
        self.scheduler = TelemetryScheduler(
            telemetry_repository=self.telemetry,
            subscribers=self.subscribers,
            interval_sec=TICK_SEC,
            rng=random.Random(1),
        )
        self.service = MissionService(
            mission_repository=self.missions,
            telemetry_repository=self.telemetry,
            subscribers=self.subscribers,
            scheduler=self.scheduler,
            rng=random.Random(2),
        )


def test_start_mission_registers_active_mission_with_timer() -> None:
    harness = _Harness()

    async def scenario() -> Mission:
        mission = await harness.service.start_mission()
        assert harness.scheduler.is_running(mission.mission_id)
        await harness.service.shutdown()
        return mission

    mission = asyncio.run(scenario())

    assert mission.mission_id.startswith("MISSION_")
    assert mission.status == MissionStatus.ACTIVE
    assert mission.end_time is None
    assert mission.total_flight_time == 0
    assert harness.missions.get(mission.mission_id) == mission


def test_missions_get_distinct_ids() -> None:
    harness = _Harness()

    async def scenario() -> set[str]:
        ids = {(await harness.service.start_mission()).mission_id for _ in range(5)}
        await harness.service.shutdown()
        return ids

    assert len(asyncio.run(scenario())) == 5


def test_end_mission_completes_and_stops_generation() -> None:
    harness = _Harness()

    async def scenario() -> tuple[Mission, int, int]:
        mission = await harness.service.start_mission()
        await asyncio.sleep(TICK_SEC * 4)
        ended = await harness.service.end_mission(mission.mission_id)
        at_end = harness.telemetry.count(mission.mission_id)
        await asyncio.sleep(TICK_SEC * 4)
        return ended, at_end, harness.telemetry.count(mission.mission_id)

    ended, at_end, later = asyncio.run(scenario())

    assert ended.status == MissionStatus.COMPLETED
    assert ended.end_time is not None
    assert ended.total_flight_time == int(
        (ended.end_time - ended.start_time).total_seconds()
    )
    assert at_end == later
    assert harness.scheduler.is_running(ended.mission_id) is False


def test_ending_completed_mission_is_rejected_without_changes() -> None:
    harness = _Harness()

    async def scenario() -> tuple[Mission, Mission]:
        mission = await harness.service.start_mission()
        ended = await harness.service.end_mission(mission.mission_id)
        with pytest.raises(MissionAlreadyCompletedError):
            await harness.service.end_mission(mission.mission_id)
        return ended, await harness.service.get_mission(mission.mission_id)

    ended, reloaded = asyncio.run(scenario())

    assert reloaded.end_time == ended.end_time
    assert reloaded.total_flight_time == ended.total_flight_time


def test_end_unknown_mission_raises_not_found() -> None:
    harness = _Harness()

    with pytest.raises(MissionNotFoundError) as error:
        asyncio.run(harness.service.end_mission("MISSION_missing"))
    assert error.value.message == "Mission not found"


def test_concurrent_end_requests_complete_once() -> None:
    harness = _Harness()

    async def scenario() -> list[object]:
        mission = await harness.service.start_mission()
        return await asyncio.gather(
            harness.service.end_mission(mission.mission_id),
            harness.service.end_mission(mission.mission_id),
            return_exceptions=True,
        )

    results = asyncio.run(scenario())

    completed = [item for item in results if isinstance(item, Mission)]
    rejected = [
        item for item in results if isinstance(item, MissionAlreadyCompletedError)
    ]
    assert len(completed) == 1
    assert len(rejected) == 1


def test_subscribe_unknown_mission_sends_error_and_registers_nothing() -> None:
    harness = _Harness()
    handle = RecordingHandle()

    subscribed = asyncio.run(harness.service.subscribe("MISSION_missing", handle))

    assert subscribed is False
    assert handle.messages == [
        {
            "type": "error",
            "message": "Mission not found",
            "missionId": "MISSION_missing",
        }
    ]
    assert harness.service.connected_clients() == 0


def test_unknown_ids_leave_no_mission_locks_behind() -> None:
    harness = _Harness()
    handle = RecordingHandle()

    async def scenario() -> None:
        for index in range(50):
            await harness.service.subscribe(f"MISSION_bogus_{index}", handle)
            with pytest.raises(MissionNotFoundError):
                await harness.service.end_mission(f"MISSION_bogus_{index}")

    asyncio.run(scenario())

    assert harness.service._locks == {}
    assert harness.service.connected_clients() == 0


def test_mission_lock_is_released_when_mission_ends() -> None:
    harness = _Harness()

    async def scenario() -> tuple[bool, bool]:
        mission = await harness.service.start_mission()
        held_while_active = mission.mission_id in harness.service._locks
        await harness.service.end_mission(mission.mission_id)
        return held_while_active, mission.mission_id in harness.service._locks

    held_while_active, held_after_end = asyncio.run(scenario())

    assert held_while_active is True
    assert held_after_end is False


def test_subscribe_completed_mission_sends_error() -> None:
    harness = _Harness()
    handle = RecordingHandle()

    async def scenario() -> bool:
        mission = await harness.service.start_mission()
        await harness.service.end_mission(mission.mission_id)
        return await harness.service.subscribe(mission.mission_id, handle)

    assert asyncio.run(scenario()) is False
    assert handle.messages[0]["type"] == "error"
    assert handle.messages[0]["message"] == "Mission already completed"
    assert harness.service.connected_clients() == 0


def test_subscriber_gets_ack_snapshot_then_telemetry() -> None:
    harness = _Harness()
    handle = RecordingHandle()

    async def scenario() -> str:
        mission = await harness.service.start_mission()
        assert await harness.service.subscribe(mission.mission_id, handle)
        await asyncio.sleep(TICK_SEC * 3)
        await harness.service.shutdown()
        return mission.mission_id

    mission_id = asyncio.run(scenario())

    assert handle.messages[0] == {
        "type": "subscribed",
        "message": "Successfully subscribed to mission",
        "missionId": mission_id,
    }
    assert handle.messages[1]["type"] == "mission"
    assert handle.messages[1]["status"] == "IN_MISSION"
    telemetry = handle.of_type("telemetry")
    assert telemetry
    assert all(message["missionId"] == mission_id for message in telemetry)
    assert all(message["data"]["battery"] <= 100 for message in telemetry)


def test_subscriptions_survive_mission_completion() -> None:
    harness = _Harness()
    handle = RecordingHandle()

    async def scenario() -> str:
        mission = await harness.service.start_mission()
        await harness.service.subscribe(mission.mission_id, handle)
        await harness.service.end_mission(mission.mission_id)
        return mission.mission_id

    mission_id = asyncio.run(scenario())

    assert harness.service.connected_clients(mission_id) == 1
    harness.service.disconnect(handle)
    assert harness.service.connected_clients(mission_id) == 0


def test_history_is_newest_first_with_draining_battery() -> None:
    harness = _Harness()

    async def scenario() -> list:
        mission = await harness.service.start_mission()
        await asyncio.sleep(TICK_SEC * 10)
        await harness.service.end_mission(mission.mission_id)
        return await harness.service.get_telemetry_history(mission.mission_id, limit=3)

    history = asyncio.run(scenario())

    assert len(history) == 3
    timestamps = [sample.timestamp for sample in history]
    assert timestamps == sorted(timestamps, reverse=True)
    batteries = [sample.reading.battery for sample in history]
    assert batteries == sorted(batteries)


def test_history_for_unknown_mission_raises_not_found() -> None:
    harness = _Harness()
    with pytest.raises(MissionNotFoundError):
        asyncio.run(harness.service.get_telemetry_history("MISSION_missing"))


def test_status_counts_missions_and_clients() -> None:
    harness = _Harness()
    handle = RecordingHandle()

    async def scenario() -> dict[str, int]:
        first = await harness.service.start_mission()
        second = await harness.service.start_mission()
        await harness.service.end_mission(first.mission_id)
        await harness.service.subscribe(second.mission_id, handle)
        status = await harness.service.get_status()
        await harness.service.shutdown()
        return status

    assert asyncio.run(scenario()) == {
        "totalMissions": 2,
        "activeMissions": 1,
        "connectedClients": 1,
    }


def test_shutdown_stops_timers_and_drops_subscribers() -> None:
    harness = _Harness()
    handle = RecordingHandle()

    async def scenario() -> list[str]:
        ids = [(await harness.service.start_mission()).mission_id for _ in range(3)]
        await harness.service.subscribe(ids[0], handle)
        await harness.service.shutdown()
        return ids

    ids = asyncio.run(scenario())

    assert not any(harness.scheduler.is_running(mission_id) for mission_id in ids)
    assert harness.service.connected_clients() == 0


def test_repository_complete_keeps_first_end_time() -> None:
    repository = InMemoryMissionRepository(InMemoryDatabase())
    started = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
    repository.create(
        Mission(
            mission_id="MISSION_1",
            status=MissionStatus.ACTIVE,
            start_time=started,
            created_at=started,
        )
    )

    first = repository.complete("MISSION_1", started + timedelta(seconds=90.7))
    second = repository.complete("MISSION_1", started + timedelta(seconds=300))

    assert first.total_flight_time == 90
    assert second.end_time == started + timedelta(seconds=90.7)
    assert second.total_flight_time == 90
    assert repository.complete("MISSION_missing", started) is None


def test_repository_lists_newest_first() -> None:
    repository = InMemoryMissionRepository(InMemoryDatabase())
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    for index in range(3):
        created = base + timedelta(minutes=index)
        repository.create(
            Mission(
                mission_id=f"MISSION_{index}",
                status=MissionStatus.ACTIVE,
                start_time=created,
                created_at=created,
            )
        )

    ids = [mission.mission_id for mission in repository.list_all()]

    assert ids == ["MISSION_2", "MISSION_1", "MISSION_0"]
