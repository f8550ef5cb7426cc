"""robotctl -- Typer-based operator interface for the WhizRobot platform.

Runs the licensing, entitlement and sync services directly against a local
SQLite store, which makes it the quickest way to seed a demo fleet, issue
licenses, and preview what a robot would receive on its next sync.
Human-readable output goes to *stderr* via Rich; ``--json`` writes
machine-readable results to *stdout* instead.
"""

from __future__ import annotations

import asyncio
import json
import sys
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any, TypeVar

import typer
from pydantic import BaseModel
from rich.console import Console
from sqlalchemy.ext.asyncio import AsyncSession

from cli.display import (
    display_course_access,
    display_license,
    display_license_status,
    display_robot_list,
    display_sync_response,
)
from robot_core.config import load_settings
from robot_core.entitlements import CourseAccessService
from robot_core.errors import RobotCoreError
from robot_core.fleet import FleetService
from robot_core.licensing import LicenseIssuanceService, LicenseStatusEngine
from robot_core.models.identity import CallerIdentity, TokenType
from robot_core.state.repository import CourseRepository
from robot_core.state.database import create_all_tables, get_session
from robot_core.state.sqlite_adapter import get_local_engine
from robot_core.sync import RobotSyncOrchestrator

T = TypeVar("T")

# ---------------------------------------------------------------------------
# App & global state
# ---------------------------------------------------------------------------

app = typer.Typer(
    name="robotctl",
    help="WhizRobot platform - licensing, course access and robot sync administration",
    no_args_is_help=True,
)
console = Console(stderr=True)

org_app = typer.Typer(name="org", help="Manage organizations.", no_args_is_help=True)
robot_app = typer.Typer(name="robot", help="Register, list and sync robots.", no_args_is_help=True)
license_app = typer.Typer(name="license", help="Issue, revoke and inspect licenses.", no_args_is_help=True)
course_app = typer.Typer(name="course", help="Assign courses to organizations.", no_args_is_help=True)
app.add_typer(org_app, name="org")
app.add_typer(robot_app, name="robot")
app.add_typer(license_app, name="license")
app.add_typer(course_app, name="course")

# Mutable global options populated by the Typer callback.
_json_output: bool = False
_db_path: Path = load_settings().local_db_path


# ---------------------------------------------------------------------------
# Callback -- global options
# ---------------------------------------------------------------------------


@app.callback()
def _global_options(
    json_mode: bool = typer.Option(
        False,
        "--json/--no-json",
        help="Emit structured JSON to stdout instead of human-readable output.",
    ),
    db: Path | None = typer.Option(
        None,
        "--db",
        help="Path to the local SQLite state database.",
        envvar="PLATFORM_LOCAL_DB_PATH",
    ),
) -> None:
    """Global options applied to every command."""
    global _json_output, _db_path  # noqa: PLW0603
    _json_output = json_mode
    if db is not None:
        _db_path = db


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(operation: Callable[[AsyncSession], Awaitable[T]], *, commit: bool = True) -> T:
    """Run *operation* in one session against the local store.

    The session commits when *commit* is set and the operation succeeds;
    otherwise it rolls back.  Core errors are printed in red and end the
    command with exit code 1.
    """

    async def _main() -> T:
        engine = get_local_engine(_db_path)
        try:
            await create_all_tables(engine)
            async with get_session(engine, commit=commit) as session:
                return await operation(session)
        finally:
            await engine.dispose()

    try:
        return asyncio.run(_main())
    except RobotCoreError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        raise typer.Exit(code=1) from exc


def _emit_json(payload: BaseModel | list[BaseModel] | dict[str, Any]) -> None:
    if isinstance(payload, BaseModel):
        data: Any = payload.model_dump(mode="json")
    elif isinstance(payload, list):
        data = [item.model_dump(mode="json") for item in payload]
    else:
        data = payload
    sys.stdout.write(json.dumps(data, indent=2, default=str) + "\n")


def _parse_datetime(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise typer.BadParameter(f"Invalid timestamp '{value}'") from exc
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _parse_levels(value: str) -> list[int]:
    try:
        return [int(part) for part in value.split(",") if part.strip()]
    except ValueError as exc:
        raise typer.BadParameter(f"Levels must be comma-separated integers, got '{value}'") from exc


def _operator(org_id: int | None) -> CallerIdentity:
    """Identity used for fleet listings: one org, or the whole fleet."""
    return CallerIdentity(
        subject_id=0,
        org_id=org_id,
        token_type=TokenType.USER,
        is_superadmin=org_id is None,
    )


# ---------------------------------------------------------------------------
# init-db / seed-demo
# ---------------------------------------------------------------------------


@app.command("init-db")
def init_db() -> None:
    """Create the local state database and its tables."""

    async def _noop(session: AsyncSession) -> None:
        return None

    _run(_noop)
    console.print(f"[green]Database ready:[/green] {_db_path}")


@app.command("seed-demo")
def seed_demo(
    days: int = typer.Option(365, "--days", min=1, help="License length for the demo robot."),
) -> None:
    """Seed one school, one licensed robot, and a small course catalog."""

    async def _seed(session: AsyncSession) -> dict[str, Any]:
        fleet = FleetService(session)
        org = await fleet.create_organization("Demo School", "IN-KA", "SCHOOL")
        robot = await fleet.register_robot(org.id, "WR-DEMO-1")

        now = datetime.now(UTC)
        license_view = await LicenseIssuanceService(session).issue_license(
            org.id, robot.id, now - timedelta(minutes=1), now + timedelta(days=days)
        )

        courses = CourseRepository(session)
        course = await courses.create_course("DEMO-101", "Robotics Foundations")
        for seq, topic in enumerate(("Motors", "Sensors", "Programs"), start=1):
            level = await courses.add_level(course.id, seq, topic)
            await courses.add_lesson(
                level.id, f"{topic} overview", "VIDEO", f"https://cdn.whizrobot.example/demo/{seq}.mp4", is_public=True
            )
            await courses.add_lesson(level.id, f"{topic} lab", "TEXT", f"https://cdn.whizrobot.example/demo/{seq}.md")

        preview = await courses.create_course("PREVIEW-1", "Meet Your Robot", is_public=True)
        preview_level = await courses.add_level(preview.id, 1, "Hello")
        await courses.add_lesson(
            preview_level.id, "Say hello", "IMAGE", "https://cdn.whizrobot.example/hello.png", is_public=True
        )

        await CourseAccessService(session).assign_course(org.id, course.id, [1, 2])
        return {
            "org_id": org.id,
            "robot_id": robot.id,
            "license_id": license_view.id,
            "course_id": course.id,
            "public_course_id": preview.id,
        }

    ids = _run(_seed)
    if _json_output:
        _emit_json(ids)
        return
    console.print("[green]Demo data seeded.[/green]")
    for key, value in ids.items():
        console.print(f"  {key}: [bold]{value}[/bold]")


# ---------------------------------------------------------------------------
# org
# ---------------------------------------------------------------------------


@org_app.command("create")
def org_create(
    name: str = typer.Argument(..., help="Organization name."),
    region: str = typer.Option("IN-KA", "--region", help="Region code."),
    org_type: str = typer.Option("SCHOOL", "--type", help="Organization type."),
) -> None:
    """Create an organization."""
    org = _run(lambda session: FleetService(session).create_organization(name, region, org_type))
    if _json_output:
        _emit_json(org)
        return
    console.print(f"[green]Organization created:[/green] id={org.id} name={org.name}")


# ---------------------------------------------------------------------------
# robot
# ---------------------------------------------------------------------------


@robot_app.command("register")
def robot_register(
    org_id: int = typer.Argument(..., help="Owning organization id."),
    robot_code: str = typer.Argument(..., help="Globally unique robot code."),
) -> None:
    """Register a robot under an organization."""
    robot = _run(lambda session: FleetService(session).register_robot(org_id, robot_code))
    if _json_output:
        _emit_json(robot)
        return
    console.print(f"[green]Robot registered:[/green] id={robot.id} code={robot.robot_code} org={robot.org_id}")


@robot_app.command("list")
def robot_list(
    org_id: int | None = typer.Option(None, "--org", help="Only robots of this organization."),
) -> None:
    """List robots with their current license status."""
    robots = _run(lambda session: FleetService(session).list_robots(_operator(org_id)))
    if _json_output:
        _emit_json(robots)
        return
    display_robot_list(console, robots)


@robot_app.command("sync")
def robot_sync(
    robot_id: int = typer.Argument(..., help="Robot to preview."),
) -> None:
    """Preview the sync decision and content for a robot.

    Nothing is written: notifications and the last-sync timestamp are rolled
    back after the preview.
    """

    async def _preview(session: AsyncSession) -> Any:
        robot = await FleetService(session).get_robot(robot_id)
        caller = CallerIdentity(subject_id=robot.id, org_id=robot.org_id, token_type=TokenType.ROBOT)
        return await RobotSyncOrchestrator(session).sync(caller)

    response = _run(_preview, commit=False)
    if _json_output:
        _emit_json(response)
        return
    display_sync_response(console, robot_id, response)


# ---------------------------------------------------------------------------
# license
# ---------------------------------------------------------------------------


@license_app.command("issue")
def license_issue(
    org_id: int = typer.Argument(..., help="Organization that owns the robot."),
    robot_id: int = typer.Argument(..., help="Robot to license."),
    days: int = typer.Option(365, "--days", min=1, help="Length of the validity window."),
    starts: str | None = typer.Option(None, "--starts", help="ISO-8601 start (default: now)."),
) -> None:
    """Issue a new active license."""
    valid_from = _parse_datetime(starts) if starts else datetime.now(UTC)
    valid_until = valid_from + timedelta(days=days)
    license_view = _run(
        lambda session: LicenseIssuanceService(session).issue_license(org_id, robot_id, valid_from, valid_until)
    )
    if _json_output:
        _emit_json(license_view)
        return
    display_license(console, license_view)


@license_app.command("revoke")
def license_revoke(
    license_id: int = typer.Argument(..., help="License to revoke."),
) -> None:
    """Revoke a license; the robot locks on its next sync."""
    license_view = _run(lambda session: LicenseIssuanceService(session).revoke_license(license_id))
    if _json_output:
        _emit_json(license_view)
        return
    console.print(f"[yellow]License {license_view.id} revoked.[/yellow]")


@license_app.command("status")
def license_status(
    license_id: int = typer.Argument(..., help="License to inspect."),
) -> None:
    """Show the derived status of a license, recording crossed thresholds."""
    result = _run(lambda session: LicenseStatusEngine(session).resolve_status_for_license(license_id))
    if _json_output:
        _emit_json(result)
        return
    display_license_status(console, result)


# ---------------------------------------------------------------------------
# course
# ---------------------------------------------------------------------------


@course_app.command("assign")
def course_assign(
    org_id: int = typer.Argument(..., help="Organization receiving the course."),
    course_id: int = typer.Argument(..., help="Course to grant."),
    levels: str = typer.Option(..., "--levels", help="Comma-separated level numbers, e.g. 1,2,3."),
) -> None:
    """Grant a course to an organization, replacing any earlier level set."""
    allowed = _parse_levels(levels)
    grant = _run(lambda session: CourseAccessService(session).assign_course(org_id, course_id, allowed))
    if _json_output:
        _emit_json(grant)
        return
    verb = "assigned" if grant.created else "updated"
    console.print(f"[green]Course {course_id} {verb}[/green] for org {org_id}: levels {grant.allowed_levels}")


@course_app.command("list")
def course_list(
    org_id: int = typer.Argument(..., help="Organization to list."),
) -> None:
    """List the courses granted to an organization."""
    grants = _run(lambda session: CourseAccessService(session).list_courses(org_id))
    if _json_output:
        _emit_json(grants)
        return
    display_course_access(console, grants)


@course_app.command("remove")
def course_remove(
    org_id: int = typer.Argument(..., help="Organization losing the course."),
    course_id: int = typer.Argument(..., help="Course to withdraw."),
) -> None:
    """Withdraw a course grant; robots lock once no grants remain."""

    _run(lambda session: CourseAccessService(session).remove_course(org_id, course_id))
    console.print(f"[yellow]Course {course_id} removed from org {org_id}.[/yellow]")
