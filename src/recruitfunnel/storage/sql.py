"""Relational record store built on SQLAlchemy Core.

Each conditional update is a single ``UPDATE ... WHERE`` statement, so the
guarantees hold across processes sharing the database.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable

import structlog
from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    func,
    insert,
    or_,
    select,
    update,
)
from sqlalchemy.engine import Engine, RowMapping
from sqlalchemy.exc import IntegrityError
from sqlalchemy.pool import StaticPool

from ..core.errors import DuplicateApplication
from ..schemas.records import (
    Application,
    ApplicationStatus,
    CandidateProfile,
    Project,
    User,
)
from ..schemas.shortlist import ShortlistSnapshot
from ..timeutils import to_naive_utc, to_utc
from .base import SlotReservation

metadata = MetaData()

users_table = Table(
    "users",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("role", String(16), nullable=False),
    Column("name", String(255), nullable=True),
    Column("subscription_plan", String(64), nullable=False, default="FREE"),
    Column("subscription_status", String(32), nullable=False, default="ACTIVE"),
    Column("applications_this_month", Integer, nullable=False, default=0),
    Column("last_monthly_reset", DateTime, nullable=True),
)

projects_table = Table(
    "projects",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("company_id", String(64), nullable=False, index=True),
    Column("title", String(255), nullable=False, default=""),
    Column("status", String(32), nullable=False),
    Column("category", String(128), nullable=True),
    Column("skills_required", JSON, nullable=False, default=list),
    Column("skills_preferred", JSON, nullable=False, default=list),
    Column("experience_level", String(64), nullable=True),
    Column("duration_months", Integer, nullable=True),
    Column("created_at", DateTime, nullable=True),
)

applications_table = Table(
    "applications",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("user_id", String(64), nullable=False, index=True),
    Column("project_id", String(64), nullable=False, index=True),
    Column("status", String(32), nullable=False),
    Column("compatibility_score", Float, nullable=True),
    Column("score_fingerprint", String(64), nullable=True),
    Column("strengths", JSON, nullable=False, default=list),
    Column("concerns", JSON, nullable=False, default=list),
    Column("cover_letter", Text, nullable=True),
    Column("motivation", Text, nullable=True),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=True),
    UniqueConstraint("user_id", "project_id", name="uq_applications_user_project"),
)

profiles_table = Table(
    "candidate_profiles",
    metadata,
    Column("user_id", String(64), primary_key=True),
    Column("payload", JSON, nullable=False),
)

snapshots_table = Table(
    "shortlist_snapshots",
    metadata,
    Column("project_id", String(64), primary_key=True),
    Column("snapshot_id", String(64), nullable=False, unique=True),
    Column("generated_at", DateTime, nullable=False),
    Column("payload", JSON, nullable=False),
)


def create_store_engine(url: str, *, echo: bool = False) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across threads."""
    if url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(url, echo=echo, pool_pre_ping=True)


class SqlStore:
    """Implements every repository contract against a SQL database."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._logger = structlog.get_logger(__name__)

    @classmethod
    def from_url(cls, url: str, *, create_schema: bool = True) -> "SqlStore":
        store = cls(create_store_engine(url))
        if create_schema:
            store.create_schema()
        return store

    def create_schema(self) -> None:
        metadata.create_all(self._engine)

    def dispose(self) -> None:
        self._engine.dispose()

    # seeding -----------------------------------------------------------------

    def add_users(self, users: Iterable[User]) -> None:
        rows = [_user_row(user) for user in users]
        if rows:
            with self._engine.begin() as conn:
                conn.execute(insert(users_table), rows)

    def add_projects(self, projects: Iterable[Project]) -> None:
        rows = [_project_row(project) for project in projects]
        if rows:
            with self._engine.begin() as conn:
                conn.execute(insert(projects_table), rows)

    def add_profiles(self, profiles: Iterable[CandidateProfile]) -> None:
        rows = [
            {"user_id": profile.user_id, "payload": profile.model_dump(mode="json")}
            for profile in profiles
        ]
        if rows:
            with self._engine.begin() as conn:
                conn.execute(insert(profiles_table), rows)

    def add_applications(self, applications: Iterable[Application]) -> None:
        for application in applications:
            self.create_application(application)

    # projects ----------------------------------------------------------------

    def get_project(self, project_id: str) -> Project | None:
        with self._engine.connect() as conn:
            row = conn.execute(
                select(projects_table).where(projects_table.c.id == project_id)
            ).mappings().one_or_none()
        return _project_from_row(row) if row else None

    def count_active_applications(self, project_id: str) -> int:
        stmt = (
            select(func.count())
            .select_from(applications_table)
            .where(applications_table.c.project_id == project_id)
            .where(applications_table.c.status != ApplicationStatus.REJECTED.value)
        )
        with self._engine.connect() as conn:
            return int(conn.execute(stmt).scalar_one())

    # applications ------------------------------------------------------------

    def get_application(self, application_id: str) -> Application | None:
        with self._engine.connect() as conn:
            row = conn.execute(
                select(applications_table).where(applications_table.c.id == application_id)
            ).mappings().one_or_none()
        return _application_from_row(row) if row else None

    def find_application(self, user_id: str, project_id: str) -> Application | None:
        stmt = (
            select(applications_table)
            .where(applications_table.c.user_id == user_id)
            .where(applications_table.c.project_id == project_id)
        )
        with self._engine.connect() as conn:
            row = conn.execute(stmt).mappings().one_or_none()
        return _application_from_row(row) if row else None

    def list_applications(self, project_id: str) -> list[Application]:
        stmt = (
            select(applications_table)
            .where(applications_table.c.project_id == project_id)
            .order_by(applications_table.c.created_at, applications_table.c.id)
        )
        with self._engine.connect() as conn:
            rows = conn.execute(stmt).mappings().all()
        return [_application_from_row(row) for row in rows]

    def create_application(self, application: Application) -> Application:
        try:
            with self._engine.begin() as conn:
                conn.execute(insert(applications_table), _application_row(application))
        except IntegrityError as exc:
            raise DuplicateApplication(
                "You have already applied to this project.",
                user_id=application.user_id,
                project_id=application.project_id,
            ) from exc
        return application

    def compare_and_set_status(
        self,
        application_id: str,
        expected: ApplicationStatus,
        new: ApplicationStatus,
        *,
        updated_at: datetime,
    ) -> Application | None:
        stmt = (
            update(applications_table)
            .where(applications_table.c.id == application_id)
            .where(applications_table.c.status == expected.value)
            .values(status=new.value, updated_at=to_naive_utc(updated_at))
        )
        with self._engine.begin() as conn:
            if conn.execute(stmt).rowcount != 1:
                return None
            row = conn.execute(
                select(applications_table).where(applications_table.c.id == application_id)
            ).mappings().one()
        return _application_from_row(row)

    def update_score_cache(
        self,
        application_id: str,
        *,
        score: float,
        fingerprint: str,
        strengths: list[str],
        concerns: list[str],
    ) -> None:
        stmt = (
            update(applications_table)
            .where(applications_table.c.id == application_id)
            .values(
                compatibility_score=score,
                score_fingerprint=fingerprint,
                strengths=list(strengths),
                concerns=list(concerns),
            )
        )
        with self._engine.begin() as conn:
            conn.execute(stmt)

    # users -------------------------------------------------------------------

    def get_user(self, user_id: str) -> User | None:
        with self._engine.connect() as conn:
            row = conn.execute(
                select(users_table).where(users_table.c.id == user_id)
            ).mappings().one_or_none()
        return _user_from_row(row) if row else None

    def reserve_application_slot(
        self,
        user_id: str,
        *,
        period_start: datetime,
        now: datetime,
        limit: int | None,
        application: Application | None = None,
    ) -> SlotReservation:
        counter = users_table.c.applications_this_month
        reset_stmt = (
            update(users_table)
            .where(users_table.c.id == user_id)
            .where(
                or_(
                    users_table.c.last_monthly_reset.is_(None),
                    users_table.c.last_monthly_reset < to_naive_utc(period_start),
                )
            )
            .values(applications_this_month=0, last_monthly_reset=to_naive_utc(now))
        )
        increment_stmt = update(users_table).where(users_table.c.id == user_id)
        if limit is not None:
            increment_stmt = increment_stmt.where(counter < limit)
        increment_stmt = increment_stmt.values(applications_this_month=counter + 1)

        try:
            with self._engine.begin() as conn:
                reset_applied = conn.execute(reset_stmt).rowcount == 1
                granted = conn.execute(increment_stmt).rowcount == 1
                if granted and application is not None:
                    conn.execute(insert(applications_table), _application_row(application))
                row = conn.execute(
                    select(counter, users_table.c.last_monthly_reset).where(users_table.c.id == user_id)
                ).one_or_none()
        except IntegrityError as exc:
            # The whole transaction rolled back, counter included.
            raise DuplicateApplication(
                "You have already applied to this project.",
                user_id=application.user_id if application else user_id,
                project_id=application.project_id if application else None,
            ) from exc

        if row is None:
            raise KeyError(f"Unknown user: {user_id!r}")
        return SlotReservation(
            granted=granted,
            used=int(row[0]),
            last_monthly_reset=to_utc(row[1]),
            reset_applied=reset_applied,
        )

    # profiles ----------------------------------------------------------------

    def get_profile(self, user_id: str) -> CandidateProfile | None:
        with self._engine.connect() as conn:
            payload = conn.execute(
                select(profiles_table.c.payload).where(profiles_table.c.user_id == user_id)
            ).scalar_one_or_none()
        return CandidateProfile.model_validate(payload) if payload is not None else None

    # snapshots ---------------------------------------------------------------

    def current_snapshot(self, project_id: str) -> ShortlistSnapshot | None:
        with self._engine.connect() as conn:
            payload = conn.execute(
                select(snapshots_table.c.payload).where(snapshots_table.c.project_id == project_id)
            ).scalar_one_or_none()
        return ShortlistSnapshot.model_validate(payload) if payload is not None else None

    def replace_snapshot(
        self,
        snapshot: ShortlistSnapshot,
        *,
        expected_snapshot_id: str | None,
    ) -> bool:
        values = {
            "snapshot_id": snapshot.snapshot_id,
            "generated_at": to_naive_utc(snapshot.generated_at),
            "payload": snapshot.model_dump(mode="json"),
        }
        if expected_snapshot_id is None:
            try:
                with self._engine.begin() as conn:
                    conn.execute(insert(snapshots_table).values(project_id=snapshot.project_id, **values))
            except IntegrityError:
                self._logger.info("snapshots.insert_conflict", project_id=snapshot.project_id)
                return False
            return True

        stmt = (
            update(snapshots_table)
            .where(snapshots_table.c.project_id == snapshot.project_id)
            .where(snapshots_table.c.snapshot_id == expected_snapshot_id)
            .values(**values)
        )
        with self._engine.begin() as conn:
            return conn.execute(stmt).rowcount == 1


def _optional_utc(value: datetime | None) -> datetime | None:
    return to_utc(value) if value is not None else None


def _optional_naive(value: datetime | None) -> datetime | None:
    return to_naive_utc(value) if value is not None else None


def _user_row(user: User) -> dict[str, Any]:
    row = user.model_dump(mode="python")
    row["role"] = user.role.value
    row["last_monthly_reset"] = _optional_naive(user.last_monthly_reset)
    return row


def _user_from_row(row: RowMapping) -> User:
    data = dict(row)
    data["last_monthly_reset"] = _optional_utc(data.get("last_monthly_reset"))
    return User.model_validate(data)


def _project_row(project: Project) -> dict[str, Any]:
    row = project.model_dump(mode="python")
    row["status"] = project.status.value
    row["created_at"] = _optional_naive(project.created_at)
    return row


def _project_from_row(row: RowMapping) -> Project:
    data = dict(row)
    data["created_at"] = _optional_utc(data.get("created_at"))
    return Project.model_validate(data)


def _application_row(application: Application) -> dict[str, Any]:
    row = application.model_dump(mode="python")
    row["status"] = application.status.value
    row["created_at"] = to_naive_utc(application.created_at)
    row["updated_at"] = _optional_naive(application.updated_at)
    return row


def _application_from_row(row: RowMapping) -> Application:
    data = dict(row)
    data["created_at"] = to_utc(data["created_at"])
    data["updated_at"] = _optional_utc(data.get("updated_at"))
    data["strengths"] = list(data.get("strengths") or [])
    data["concerns"] = list(data.get("concerns") or [])
    return Application.model_validate(data)
