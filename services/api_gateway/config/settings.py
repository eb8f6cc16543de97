"""
Configuration Management
Loads environment variables and provides application settings
"""
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    """Application settings loaded from DRONE_* environment variables"""

    model_config = SettingsConfigDict(
        env_prefix="DRONE_",
        env_file=".env",
        extra="ignore",
    )

    # Application
    app_name: str = "Drone Telemetry API"
    app_version: str = "0.1.0"
    api_prefix: str = "/api"
    log_level: str = "INFO"

    # Service
    host: str = "0.0.0.0"
    port: int = 3001
    cors_origins: list[str] = ["http://localhost:5173"]

    # Storage
    storage_backend: Literal["memory", "mongo"] = "memory"
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db_name: str = "live-telemetry"

    # Telemetry fan-out
    tick_interval_sec: float = Field(default=2.0, gt=0.0)
    broadcast_timeout_sec: float = Field(default=5.0, gt=0.0)


settings = Settings()
