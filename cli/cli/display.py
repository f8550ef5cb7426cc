"""Rich output formatting for the robotctl CLI.

All functions write to a :class:`rich.console.Console` instance (typically
bound to *stderr*) so that machine-readable output on *stdout* is never
polluted with human-readable decoration.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

if TYPE_CHECKING:
    from robot_core.models.catalog import CourseAccessView, CourseView
    from robot_core.models.fleet import RobotStatusItem
    from robot_core.models.license import LicenseStatusResult, LicenseView
    from robot_core.models.sync import SyncResponse


# ---------------------------------------------------------------------------
# Status colour mapping
# ---------------------------------------------------------------------------

_STATUS_COLOURS: dict[str, str] = {
    "ACTIVE": "green",
    "OK": "green",
    "EXPIRING_SOON": "yellow",
    "EXPIRED": "red",
    "REVOKED": "red",
    "LOCKED": "bold red",
}


def _coloured_status(status: str) -> str:
    """Return a Rich markup string with the status colour-coded."""
    colour = _STATUS_COLOURS.get(status, "white")
    return f"[{colour}]{status}[/{colour}]"


def _days(days_remaining: int | None) -> str:
    return "-" if days_remaining is None else str(days_remaining)


# ---------------------------------------------------------------------------
# Licenses
# ---------------------------------------------------------------------------


def display_license(console: Console, license_view: LicenseView) -> None:
    """Render one issued license as a panel."""
    lines = [
        f"[bold]License ID:[/bold]  {license_view.id}",
        f"[bold]Robot:[/bold]       {license_view.robot_id}",
        f"[bold]Org:[/bold]         {license_view.org_id}",
        f"[bold]Key:[/bold]         {license_view.license_key}",
        f"[bold]From:[/bold]        {license_view.valid_from:%Y-%m-%d %H:%M}",
        f"[bold]Until:[/bold]       {license_view.valid_until:%Y-%m-%d %H:%M}",
        f"[bold]Active:[/bold]      {'yes' if license_view.is_active else '[red]no[/red]'}",
    ]
    console.print(Panel("\n".join(lines), title="License", border_style="blue"))


def display_license_status(console: Console, result: LicenseStatusResult) -> None:
    """Render a derived license status with its notification history.

    Parameters
    ----------
    console:
        Rich console to write to.
    result:
        The status engine's answer for one license.
    """
    console.print(
        f"License [bold]{result.license_id}[/bold] (robot {result.robot_id}): "
        f"{_coloured_status(result.status.value)}, days remaining: {_days(result.days_remaining)}"
    )
    if not result.notifications:
        console.print("[dim]No notifications.[/dim]")
        return

    table = Table(title="Notifications")
    table.add_column("Type", style="bold")
    table.add_column("Message")
    table.add_column("Created")
    for note in result.notifications:
        table.add_row(note.type.value, note.message, f"{note.created_at:%Y-%m-%d %H:%M}")
    console.print(table)


# ---------------------------------------------------------------------------
# Fleet
# ---------------------------------------------------------------------------


def display_robot_list(console: Console, robots: list[RobotStatusItem]) -> None:
    """Render the fleet with each robot's license status."""
    if not robots:
        console.print("[dim]No robots registered.[/dim]")
        return

    table = Table(title="Robots")
    table.add_column("ID", justify="right")
    table.add_column("Code", style="bold")
    table.add_column("License")
    table.add_column("Days Left", justify="right")
    table.add_column("Last Sync")

    for robot in robots:
        table.add_row(
            str(robot.robot_id),
            robot.robot_code,
            _coloured_status(robot.license_status.value),
            _days(robot.days_remaining),
            f"{robot.last_sync_at:%Y-%m-%d %H:%M}" if robot.last_sync_at else "never",
        )
    console.print(table)


# ---------------------------------------------------------------------------
# Courses
# ---------------------------------------------------------------------------


def display_course_access(console: Console, grants: list[CourseAccessView]) -> None:
    """Render an organization's course grants."""
    if not grants:
        console.print("[dim]No courses assigned.[/dim]")
        return

    table = Table(title="Assigned Courses")
    table.add_column("Course ID", justify="right")
    table.add_column("Code", style="bold")
    table.add_column("Name")
    table.add_column("Levels")
    table.add_column("Assigned")

    for grant in grants:
        table.add_row(
            str(grant.course_id),
            grant.course.course_code if grant.course else "?",
            grant.course.course_name if grant.course else "?",
            ", ".join(str(level) for level in grant.allowed_levels),
            f"{grant.assigned_at:%Y-%m-%d %H:%M}",
        )
    console.print(table)


def _add_catalog(tree: Tree, courses: list[CourseView]) -> None:
    for course in courses:
        course_node = tree.add(f"[bold]{course.course_code}[/bold] {course.course_name}")
        for level in course.levels:
            level_node = course_node.add(f"Level {level.sequence_no}: {level.level_name}")
            for lesson in level.lessons:
                marker = "" if lesson.is_public else " [dim](private)[/dim]"
                level_node.add(f"{lesson.content_type.value} {lesson.lesson_name}{marker}")


# ---------------------------------------------------------------------------
# Sync
# ---------------------------------------------------------------------------


def display_sync_response(console: Console, robot_id: int, response: SyncResponse) -> None:
    """Render a sync decision and the content tree a robot would receive."""
    header = f"Robot [bold]{robot_id}[/bold]: {_coloured_status(response.status.value)}"
    if response.lock_reason is not None:
        header += f" ({response.lock_reason.value})"
    license_status = _coloured_status(response.license_status.value)
    header += f" | license {license_status}, days remaining: {_days(response.days_remaining)}"
    console.print(header)

    for note in response.notifications:
        console.print(f"  [yellow]![/yellow] {note.message}")

    if response.is_locked:
        return

    tree = Tree("Entitled content")
    _add_catalog(tree, response.courses)
    console.print(tree)

    if response.public_courses:
        public_tree = Tree("Public content")
        _add_catalog(public_tree, response.public_courses)
        console.print(public_tree)
