"""Typer CLI entrypoint for the recruitment funnel engine."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, List, Optional

import typer
import yaml

from .audit import AuditLogger
from .container import FunnelContainer, create_container
from .core import Err
from .logging import configure_logging
from .schemas.records import ApplicationStatus
from .storage import SeedLoadError, apply_seed, load_seed

app = typer.Typer(help="Recruitment funnel engine CLI.")

DatabaseOption = typer.Option(None, "--database", help="SQLAlchemy database URL (default from config).")
ConfigOption = typer.Option(None, exists=True, readable=True, dir_okay=False, help="YAML config path.")
LogLevelOption = typer.Option("INFO", help="Log level for structured logging.")
AuditLogOption = typer.Option(None, dir_okay=False, help="Audit log output (JSONL).")


def _load_settings(config: Optional[Path]) -> dict[str, Any]:
    if not config:
        return {}
    with config.open("r", encoding="utf-8") as handle:
        loaded = yaml.safe_load(handle) or {}
    if not isinstance(loaded, dict):
        raise typer.BadParameter("Config file must be a YAML object", param_name="config")
    return loaded


def _build(
    database: Optional[str],
    config: Optional[Path],
    log_level: str,
    audit_log: Optional[Path],
) -> FunnelContainer:
    settings = _load_settings(config)
    if database:
        settings.setdefault("storage", {})["url"] = database

    configure_logging(log_level)
    audit_logger = AuditLogger(audit_log) if audit_log else None
    return create_container(settings=settings, audit_logger=audit_logger)


def _jsonable(value: Any) -> Any:
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_jsonable(item) for item in value]
    return value


def _emit(result: Any) -> None:
    if isinstance(result, Err):
        typer.echo(json.dumps(result.error.to_body().model_dump(mode="json"), ensure_ascii=False, indent=2))
        raise typer.Exit(code=1)
    typer.echo(json.dumps(_jsonable(result.value), ensure_ascii=False, indent=2))


@app.command()
def seed(
    file: Path = typer.Argument(..., exists=True, readable=True, dir_okay=False, help="Seed JSON document."),
    database: Optional[str] = DatabaseOption,
    config: Optional[Path] = ConfigOption,
    log_level: str = LogLevelOption,
    audit_log: Optional[Path] = AuditLogOption,
) -> None:
    """Create tables and load users, projects, profiles and applications."""
    container = _build(database, config, log_level, audit_log)
    try:
        data = load_seed(file)
    except SeedLoadError as exc:
        typer.echo(json.dumps({"error": "SeedLoadError", "errors": exc.errors}, ensure_ascii=False, indent=2))
        raise typer.Exit(code=1) from exc
    counts = apply_seed(container.store(), data)
    typer.echo(json.dumps({"loaded": counts}, indent=2))


@app.command()
def shortlist(
    project_id: str = typer.Argument(..., help="Project identifier."),
    company: str = typer.Option(..., help="Requesting company user id."),
    database: Optional[str] = DatabaseOption,
    config: Optional[Path] = ConfigOption,
    log_level: str = LogLevelOption,
    audit_log: Optional[Path] = AuditLogOption,
) -> None:
    """Show eligibility and the current redacted shortlist."""
    engine = _build(database, config, log_level, audit_log).engine()
    _emit(engine.get_shortlist(project_id, company))


@app.command()
def generate(
    project_id: str = typer.Argument(..., help="Project identifier."),
    company: str = typer.Option(..., help="Requesting company user id."),
    database: Optional[str] = DatabaseOption,
    config: Optional[Path] = ConfigOption,
    log_level: str = LogLevelOption,
    audit_log: Optional[Path] = AuditLogOption,
) -> None:
    """Generate a new shortlist snapshot."""
    engine = _build(database, config, log_level, audit_log).engine()
    _emit(engine.generate_shortlist(project_id, company))


@app.command()
def override(
    project_id: str = typer.Argument(..., help="Project identifier."),
    company: str = typer.Option(..., help="Requesting company user id."),
    candidate: List[str] = typer.Option(..., help="Application id to pin; repeat in rank order."),
    database: Optional[str] = DatabaseOption,
    config: Optional[Path] = ConfigOption,
    log_level: str = LogLevelOption,
    audit_log: Optional[Path] = AuditLogOption,
) -> None:
    """Replace the shortlist with an explicit selection."""
    engine = _build(database, config, log_level, audit_log).engine()
    _emit(engine.manual_override(project_id, company, candidate))


@app.command()
def bulk(
    application_ids: List[str] = typer.Argument(..., help="Application ids to move."),
    actor: str = typer.Option(..., help="Acting company or admin user id."),
    status: ApplicationStatus = typer.Option(..., help="Target application status."),
    database: Optional[str] = DatabaseOption,
    config: Optional[Path] = ConfigOption,
    log_level: str = LogLevelOption,
    audit_log: Optional[Path] = AuditLogOption,
) -> None:
    """Move several applications to one status; failures are reported per item."""
    engine = _build(database, config, log_level, audit_log).engine()
    _emit(engine.bulk_transition(actor, application_ids, status))


@app.command()
def apply(
    user_id: str = typer.Argument(..., help="Applying student id."),
    project_id: str = typer.Argument(..., help="Project identifier."),
    cover_letter: Optional[str] = typer.Option(None, help="Cover letter text."),
    motivation: Optional[str] = typer.Option(None, help="Motivation text."),
    database: Optional[str] = DatabaseOption,
    config: Optional[Path] = ConfigOption,
    log_level: str = LogLevelOption,
    audit_log: Optional[Path] = AuditLogOption,
) -> None:
    """Record an application after reserving a monthly quota slot."""
    engine = _build(database, config, log_level, audit_log).engine()
    _emit(
        engine.record_application(
            user_id,
            project_id,
            cover_letter=cover_letter,
            motivation=motivation,
        )
    )


@app.command()
def limits(
    user_id: str = typer.Argument(..., help="Student id."),
    project_id: Optional[str] = typer.Argument(None, help="Project to check for an existing application."),
    database: Optional[str] = DatabaseOption,
    config: Optional[Path] = ConfigOption,
    log_level: str = LogLevelOption,
    audit_log: Optional[Path] = AuditLogOption,
) -> None:
    """Show the student's monthly application allowance."""
    engine = _build(database, config, log_level, audit_log).engine()
    _emit(engine.check_limits(user_id, project_id))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
