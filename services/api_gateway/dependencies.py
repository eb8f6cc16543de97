from libs.core.application.contracts import MissionRepository, TelemetryRepository
from libs.core.application.mission_service import MissionService
from libs.core.application.subscriber_registry import SubscriberRegistry
from libs.core.application.telemetry_scheduler import TelemetryScheduler
from libs.infra.mongo.repositories import MongoStore
from services.api_gateway.config.settings import settings
from services.api_gateway.infrastructure.memory_store import (
    InMemoryDatabase,
    InMemoryMissionRepository,
    InMemoryTelemetryRepository,
)

mongo_store: MongoStore | None = None
mission_repository: MissionRepository
telemetry_repository: TelemetryRepository

if settings.storage_backend == "mongo":
    mongo_store = MongoStore(settings.mongo_uri, settings.mongo_db_name)
    mission_repository = mongo_store.missions
    telemetry_repository = mongo_store.telemetry
else:
    db = InMemoryDatabase()
    mission_repository = InMemoryMissionRepository(db)
    telemetry_repository = InMemoryTelemetryRepository(db)

subscriber_registry = SubscriberRegistry(
    send_timeout_sec=settings.broadcast_timeout_sec,
)
telemetry_scheduler = TelemetryScheduler(
    telemetry_repository=telemetry_repository,
    subscribers=subscriber_registry,
    interval_sec=settings.tick_interval_sec,
)
mission_service = MissionService(
    mission_repository=mission_repository,
    telemetry_repository=telemetry_repository,
    subscribers=subscriber_registry,
    scheduler=telemetry_scheduler,
)


def get_mission_service() -> MissionService:
    return mission_service


def get_mongo_store() -> MongoStore | None:
    return mongo_store


def reset_state() -> None:
    mission_repository.clear()
    telemetry_repository.clear()
    subscriber_registry.clear()
