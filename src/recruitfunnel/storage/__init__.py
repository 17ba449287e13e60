"""Record stores reachable through the repository contracts."""

from __future__ import annotations

from .base import (
    ApplicationRepository,
    ProfileProvider,
    ProjectRepository,
    SlotReservation,
    SnapshotStore,
    UserRepository,
)
from .memory import InMemoryStore
from .seed import SeedData, SeedLoadError, apply_seed, load_seed, parse_seed
from .sql import SqlStore, create_store_engine

__all__ = [
    "ApplicationRepository",
    "InMemoryStore",
    "ProfileProvider",
    "ProjectRepository",
    "SeedData",
    "SeedLoadError",
    "SlotReservation",
    "SnapshotStore",
    "SqlStore",
    "UserRepository",
    "apply_seed",
    "create_store_engine",
    "load_seed",
    "parse_seed",
]
