"""Simulated drone telemetry: battery drain and random-walk position/altitude."""

from __future__ import annotations

import random
from dataclasses import dataclass

from libs.core.domain.entities import TelemetryReading

DEFAULT_ORIGIN_LATITUDE = 18.5914
DEFAULT_ORIGIN_LONGITUDE = 73.7381


@dataclass(frozen=True)
class GeneratorConfig:
    """Constants for one simulated flight."""

    origin_latitude: float = DEFAULT_ORIGIN_LATITUDE
    origin_longitude: float = DEFAULT_ORIGIN_LONGITUDE
    origin_jitter: float = 0.005
    base_altitude: float = 100.0
    altitude_jitter: float = 50.0
    battery_drain: float = 0.1
    position_step: float = 0.0005
    altitude_step: float = 1.0
    altitude_floor: float = 10.0


def initial_reading(
    rng: random.Random,
    config: GeneratorConfig = GeneratorConfig(),
) -> TelemetryReading:
    """Seed reading for a freshly created mission."""
    return TelemetryReading(
        battery=100.0,
        latitude=config.origin_latitude
        + rng.uniform(-config.origin_jitter, config.origin_jitter),
        longitude=config.origin_longitude
        + rng.uniform(-config.origin_jitter, config.origin_jitter),
        altitude=max(
            config.altitude_floor,
            config.base_altitude
            + rng.uniform(-config.altitude_jitter, config.altitude_jitter),
        ),
    )


def next_reading(
    reading: TelemetryReading,
    rng: random.Random,
    config: GeneratorConfig = GeneratorConfig(),
) -> TelemetryReading:
    """Advance the simulation by exactly one tick."""
    return TelemetryReading(
        battery=max(0.0, reading.battery - config.battery_drain),
        latitude=reading.latitude
        + rng.uniform(-config.position_step, config.position_step),
        longitude=reading.longitude
        + rng.uniform(-config.position_step, config.position_step),
        altitude=max(
            config.altitude_floor,
            reading.altitude + rng.uniform(-config.altitude_step, config.altitude_step),
        ),
    )
