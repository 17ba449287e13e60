"""Seed document loading for stores."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

import structlog
from pydantic import BaseModel, ValidationError

from ..schemas.records import Application, CandidateProfile, Project, User


class SeedableStore(Protocol):
    def add_users(self, users: list[User]) -> None: ...

    def add_projects(self, projects: list[Project]) -> None: ...

    def add_profiles(self, profiles: list[CandidateProfile]) -> None: ...

    def add_applications(self, applications: list[Application]) -> None: ...


@dataclass
class SeedData:
    users: list[User] = field(default_factory=list)
    projects: list[Project] = field(default_factory=list)
    profiles: list[CandidateProfile] = field(default_factory=list)
    applications: list[Application] = field(default_factory=list)

    def counts(self) -> dict[str, int]:
        return {
            "users": len(self.users),
            "projects": len(self.projects),
            "profiles": len(self.profiles),
            "applications": len(self.applications),
        }


class SeedLoadError(ValueError):
    """Raised when a seed document contains invalid records."""

    def __init__(self, errors: list[str], partial: SeedData):
        super().__init__("Seed loading failed")
        self.errors = errors
        self.partial = partial

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"Seed loading failed: {self.errors}"


_SECTIONS: dict[str, type[BaseModel]] = {
    "users": User,
    "projects": Project,
    "profiles": CandidateProfile,
    "applications": Application,
}


def parse_seed(document: Any) -> SeedData:
    """Validate a seed mapping; collect every invalid record before failing."""
    if not isinstance(document, dict):
        raise SeedLoadError(["seed document must be a JSON object"], SeedData())

    data = SeedData()
    errors: list[str] = []
    for section, model in _SECTIONS.items():
        records = document.get(section) or []
        if not isinstance(records, list):
            errors.append(f"{section}: expected a list")
            continue
        for idx, raw in enumerate(records):
            try:
                getattr(data, section).append(model.model_validate(raw))
            except ValidationError as exc:
                errors.append(f"{section}[{idx}]: {exc.errors(include_url=False)}")
    if errors:
        raise SeedLoadError(errors, data)
    return data


def load_seed(path: Path) -> SeedData:
    with path.open("r", encoding="utf-8") as handle:
        try:
            document = json.load(handle)
        except json.JSONDecodeError as exc:
            raise SeedLoadError([f"invalid JSON ({exc})"], SeedData()) from exc
    return parse_seed(document)


def apply_seed(store: SeedableStore, data: SeedData) -> dict[str, int]:
    store.add_users(data.users)
    store.add_projects(data.projects)
    store.add_profiles(data.profiles)
    store.add_applications(data.applications)
    counts = data.counts()
    structlog.get_logger(__name__).info("seed.applied", **counts)
    return counts
