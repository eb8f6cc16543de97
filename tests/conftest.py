"""Test settings applied before the application modules are imported."""

import os

os.environ.setdefault("DRONE_STORAGE_BACKEND", "memory")
os.environ.setdefault("DRONE_TICK_INTERVAL_SEC", "0.05")
os.environ.setdefault("DRONE_BROADCAST_TIMEOUT_SEC", "1.0")
