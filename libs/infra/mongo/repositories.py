"""MongoDB document store for missions and telemetry history."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError, PyMongoError

from libs.core.application.errors import (
    DuplicateMissionError,
    TelemetryPersistenceError,
)
from libs.core.domain.entities import (
    Mission,
    MissionStatus,
    TelemetryReading,
    TelemetrySample,
    flight_seconds,
)

logger = logging.getLogger(__name__)

MISSIONS_COLLECTION = "missions"
TELEMETRY_COLLECTION = "telemetry_history"


class MongoMissionRepository:
    """Mongo implementation of mission repository."""

    def __init__(self, collection: Collection) -> None:
        self._collection = collection

    def ensure_indexes(self) -> None:
        self._collection.create_index([("mission_id", ASCENDING)], unique=True)
        self._collection.create_index([("created_at", DESCENDING)])

    def create(self, mission: Mission) -> None:
        try:
            self._collection.insert_one(mission_to_document(mission))
        except DuplicateKeyError as error:
            raise DuplicateMissionError(mission.mission_id) from error

    def get(self, mission_id: str) -> Mission | None:
        document = self._collection.find_one({"mission_id": mission_id})
        return document_to_mission(document) if document is not None else None

    def list_all(self) -> list[Mission]:
        cursor = self._collection.find().sort(
            [("created_at", DESCENDING), ("_id", DESCENDING)]
        )
        return [document_to_mission(document) for document in cursor]

    def complete(self, mission_id: str, ended_at: datetime) -> Mission | None:
        mission = self.get(mission_id)
        if mission is None or mission.status != MissionStatus.ACTIVE:
            return mission

        self._collection.update_one(
            {"mission_id": mission_id, "status": MissionStatus.ACTIVE.value},
            {
                "$set": {
                    "status": MissionStatus.COMPLETED.value,
                    "end_time": ended_at,
                    "total_flight_time": flight_seconds(mission.start_time, ended_at),
                }
            },
        )
        return self.get(mission_id)

    def clear(self) -> None:
        self._collection.delete_many({})


class MongoTelemetryRepository:
    """Mongo implementation of the append-only telemetry log."""

    def __init__(self, collection: Collection) -> None:
        self._collection = collection

    def ensure_indexes(self) -> None:
        self._collection.create_index(
            [("mission_id", ASCENDING), ("timestamp", DESCENDING)]
        )

    def append(self, sample: TelemetrySample) -> None:
        try:
            self._collection.insert_one(sample_to_document(sample))
        except PyMongoError as error:
            raise TelemetryPersistenceError(str(error)) from error

    def history(self, mission_id: str, limit: int = 100) -> list[TelemetrySample]:
        if limit <= 0:
            return []
        cursor = (
            self._collection.find({"mission_id": mission_id})
            .sort("timestamp", DESCENDING)
            .limit(limit)
        )
        return [document_to_sample(document) for document in cursor]

    def count(self, mission_id: str) -> int:
        return self._collection.count_documents({"mission_id": mission_id})

    def clear(self) -> None:
        self._collection.delete_many({})


class MongoStore:
    """Owns the client and both repositories for one database."""

    def __init__(self, uri: str, db_name: str) -> None:
        self.client: MongoClient = MongoClient(uri, tz_aware=True)
        database = self.client[db_name]
        self.missions = MongoMissionRepository(database[MISSIONS_COLLECTION])
        self.telemetry = MongoTelemetryRepository(database[TELEMETRY_COLLECTION])

    def ensure_indexes(self) -> None:
        self.missions.ensure_indexes()
        self.telemetry.ensure_indexes()
        logger.info("MongoDB indexes ready")

    def close(self) -> None:
        self.client.close()
        logger.info("MongoDB connection closed")


def mission_to_document(mission: Mission) -> dict[str, Any]:
    return {
        "mission_id": mission.mission_id,
        "status": mission.status.value,
        "start_time": mission.start_time,
        "end_time": mission.end_time,
        "total_flight_time": mission.total_flight_time,
        "created_at": mission.created_at,
    }


def document_to_mission(document: dict[str, Any]) -> Mission:
    return Mission(
        mission_id=document["mission_id"],
        status=MissionStatus(document["status"]),
        start_time=document["start_time"],
        created_at=document.get("created_at", document["start_time"]),
        end_time=document.get("end_time"),
        total_flight_time=document.get("total_flight_time", 0),
    )


def sample_to_document(sample: TelemetrySample) -> dict[str, Any]:
    return {
        "mission_id": sample.mission_id,
        "timestamp": sample.timestamp,
        "battery": sample.reading.battery,
        "latitude": sample.reading.latitude,
        "longitude": sample.reading.longitude,
        "altitude": sample.reading.altitude,
    }


def document_to_sample(document: dict[str, Any]) -> TelemetrySample:
    return TelemetrySample(
        mission_id=document["mission_id"],
        timestamp=document["timestamp"],
        reading=TelemetryReading(
            battery=document["battery"],
            latitude=document["latitude"],
            longitude=document["longitude"],
            altitude=document["altitude"],
        ),
    )
