from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from recruitfunnel.cli import app


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def write_json(path: Path, payload: object) -> None:
    path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")


def build_seed(applicants: int) -> dict:
    students = [f"student-{idx:02d}" for idx in range(applicants + 1)]
    return {
        "users": [
            {"id": "company-1", "role": "COMPANY", "subscription_plan": "COMPANY_PREMIUM"},
            *({"id": student, "role": "STUDENT"} for student in students),
        ],
        "projects": [
            {
                "id": "project-1",
                "company_id": "company-1",
                "title": "Data platform",
                "status": "LIVE",
                "skills_required": ["Python"],
            }
        ],
        "profiles": [
            {"user_id": student, "name": student, "email": f"{student}@example.edu", "skills": ["Python"]}
            for student in students
        ],
        "applications": [
            {
                "id": f"app-{idx:02d}",
                "user_id": students[idx],
                "project_id": "project-1",
                "created_at": f"2025-03-01T{idx % 24:02d}:00:00Z",
            }
            for idx in range(applicants)
        ],
    }


def invoke(runner: CliRunner, database: str, *args: str):
    return runner.invoke(app, [*args, "--database", database, "--log-level", "ERROR"])


def test_cli_seed_apply_generate_and_bulk(tmp_path: Path, runner: CliRunner) -> None:
    seed_path = tmp_path / "seed.json"
    audit_path = tmp_path / "audit.jsonl"
    database = f"sqlite:///{tmp_path / 'funnel.db'}"
    write_json(seed_path, build_seed(5))
    config_path = tmp_path / "config.yaml"
    config_path.write_text("funnel:\n  eligibility_threshold: 6\n  shortlist_size: 3\n", encoding="utf-8")

    seeded = invoke(runner, database, "seed", str(seed_path))
    assert seeded.exit_code == 0, seeded.output
    assert json.loads(seeded.stdout)["loaded"]["applications"] == 5

    early = invoke(runner, database, "generate", "project-1", "--company", "company-1", "--config", str(config_path))
    assert early.exit_code == 1
    assert json.loads(early.stdout)["error"] == "NotEligible"

    applied = invoke(
        runner,
        database,
        "apply",
        "student-05",
        "project-1",
        "--motivation",
        "Love data",
        "--audit-log",
        str(audit_path),
    )
    assert applied.exit_code == 0, applied.output
    assert json.loads(applied.stdout)["status"] == "PENDING"

    generated = invoke(runner, database, "generate", "project-1", "--company", "company-1", "--config", str(config_path))
    assert generated.exit_code == 0, generated.output
    shortlist = json.loads(generated.stdout)
    assert len(shortlist["candidates"]) == 3
    assert shortlist["visibility_level"] == "complete_transparency"

    read = invoke(runner, database, "shortlist", "project-1", "--company", "company-1", "--config", str(config_path))
    assert read.exit_code == 0, read.output
    assert json.loads(read.stdout)["shortlist"]["snapshot_id"] == shortlist["snapshot_id"]

    bulk = invoke(runner, database, "bulk", "app-00", "app-01", "--actor", "company-1", "--status", "REJECTED")
    assert bulk.exit_code == 0, bulk.output
    assert [item["success"] for item in json.loads(bulk.stdout)] == [True, True]

    assert "application.recorded" in audit_path.read_text(encoding="utf-8")


def test_cli_limits_and_duplicate_apply(tmp_path: Path, runner: CliRunner) -> None:
    seed_path = tmp_path / "seed.json"
    database = f"sqlite:///{tmp_path / 'funnel.db'}"
    write_json(seed_path, build_seed(1))
    assert invoke(runner, database, "seed", str(seed_path)).exit_code == 0

    limits = invoke(runner, database, "limits", "student-00", "project-1")
    assert limits.exit_code == 0, limits.output
    body = json.loads(limits.stdout)
    assert body["already_applied"] is True
    assert body["max_applications"] == 4

    duplicate = invoke(runner, database, "apply", "student-00", "project-1")
    assert duplicate.exit_code == 1
    error = json.loads(duplicate.stdout)
    assert error["error"] == "DuplicateApplication"
    assert error["status_code"] == 409


def test_cli_override_requires_entitled_plan(tmp_path: Path, runner: CliRunner) -> None:
    seed = build_seed(2)
    seed["users"][0]["subscription_plan"] = "COMPANY_BASIC"
    seed_path = tmp_path / "seed.json"
    database = f"sqlite:///{tmp_path / 'funnel.db'}"
    write_json(seed_path, seed)
    assert invoke(runner, database, "seed", str(seed_path)).exit_code == 0

    result = invoke(runner, database, "override", "project-1", "--company", "company-1", "--candidate", "app-01")

    assert result.exit_code == 1
    body = json.loads(result.stdout)
    assert body["error"] == "UpgradeRequired"
    assert body["details"]["required_plan"] == "COMPANY_PREMIUM"


def test_cli_rejects_invalid_seed(tmp_path: Path, runner: CliRunner) -> None:
    seed_path = tmp_path / "seed.json"
    write_json(seed_path, {"users": [{"id": "x", "role": "ROBOT"}]})

    result = invoke(runner, f"sqlite:///{tmp_path / 'funnel.db'}", "seed", str(seed_path))

    assert result.exit_code == 1
    assert json.loads(result.stdout)["errors"][0].startswith("users[0]")
