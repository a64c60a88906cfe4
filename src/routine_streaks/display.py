"""Rich terminal display for routine-streaks."""

from __future__ import annotations

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from routine_streaks.classifier import DayStatus
from routine_streaks.digest import GLYPHS, WeeklyDigest
from routine_streaks.milestones import Milestone, MilestoneType
from routine_streaks.models import RoutineItem

console = Console()

_STATUS_COLORS: dict[DayStatus, str] = {
    DayStatus.GREEN: "green",
    DayStatus.YELLOW: "yellow",
    DayStatus.RED: "red",
    DayStatus.EMPTY: "grey50",
}

_EMPTY_GLYPH = "⚪"


def _glyph(status: DayStatus) -> str:
    return GLYPHS.get(status, _EMPTY_GLYPH)


def format_number(n: float) -> str:
    """Format totals: 421543 -> '421.5K', 1200 -> '1,200', 2.5 -> '2.5'."""
    if n >= 1_000_000:
        return f"{n / 1_000_000:.1f}M"
    if n >= 10_000:
        return f"{n / 1_000:.1f}K"
    if n == int(n):
        return f"{int(n):,}"
    return f"{n:,.1f}"


def _progress_bar(ratio: float, width: int = 20) -> str:
    """Render a progress bar as text: [████████░░░░░░░░░░░░]."""
    ratio = max(0.0, min(ratio, 1.0))
    filled = int(ratio * width)
    return "[" + "█" * filled + "░" * (width - filled) + "]"


def print_today(view) -> None:
    """Print today's checklist, day status and streak line."""
    color = _STATUS_COLORS[view.status]
    lines: list[str] = [""]
    lines.append(f"  {_glyph(view.status)} [bold {color}]{view.status.value.upper()}[/]  {view.date}")
    if view.day_mode.value != "normal":
        lines.append(f"  Day mode: [bold]{view.day_mode.value}[/]")
    elif view.is_rest_day:
        lines.append("  Rest day")

    lines.append("")
    if not view.items:
        lines.append("  Nothing scheduled today.")
    for item, done in view.items:
        mark = "✅" if done else "⬜"
        core = " [bold]CORE[/]" if item.is_core else ""
        label = f"{item.emoji} {item.label}" if item.emoji else item.label
        lines.append(f"  {mark} {label}{core}")

    if view.core_total:
        lines.append("")
        lines.append(
            f"  Core: {view.core_done}/{view.core_total}  "
            f"{_progress_bar(view.core_done / view.core_total, width=14)}"
        )

    lines.append("")
    lines.append(
        f"  \U0001f525 Streak: {view.current_streak} days  |  Best: {view.best_streak} days"
    )
    if view.streak_at_risk:
        lines.append(
            f"  [yellow]⚠️  {view.active_streak}-day streak at risk, finish your core items[/]"
        )
    if view.next_streak_milestone is not None:
        m = view.next_streak_milestone
        lines.append(f"  Next: {m.emoji} {m.title} at {m.threshold} days")
    if view.pending_celebration is not None:
        lines.append("")
        lines.append("  [bold]\U0001f389 New milestone waiting![/] Run: routine-streaks celebrate")
    lines.append("")

    console.print(Panel(
        "\n".join(lines),
        title="[bold]TODAY[/]",
        box=box.ROUNDED,
        border_style=color,
        width=56,
    ))


def print_progress(view) -> None:
    """Print the last 7 days, streaks, rollups, habits and activity totals."""
    strip = " ".join(_glyph(s) for _, s in view.last7)
    lines: list[str] = [""]
    lines.append(f"  Last 7 days: {strip}")
    lines.append("")
    lines.append(
        f"  \U0001f525 Current: {view.current_streak}  |  "
        f"\U0001f3c6 Best: {view.best_streak}  |  "
        f"\U0001f7e2 Total: {view.total_green_days}"
    )
    if view.days_since_last_green:
        lines.append(f"  Last green day: {view.days_since_last_green} days ago")
    lines.append(
        f"  This week: {view.green_this_week} green  |  Last week: {view.green_last_week}  |  "
        f"This month: {view.green_this_month}"
    )
    lines.append(f"  Core hit rate this week: {view.core_hit_rate_this_week}%")
    if any(view.category_streaks.values()):
        parts = [f"{name.title()}: {n}" for name, n in view.category_streaks.items()]
        lines.append("  Category streaks: " + "  |  ".join(parts))
    lines.append("")
    console.print(Panel(
        "\n".join(lines),
        title="[bold]PROGRESS[/]",
        box=box.ROUNDED,
        border_style="green",
        width=64,
    ))

    if view.habits:
        table = Table(title="Habits", box=box.ROUNDED, show_header=True, header_style="bold")
        table.add_column("", width=2)
        table.add_column("Habit", min_width=16)
        table.add_column("Streak", justify="right")
        table.add_column("Best", justify="right")
        table.add_column("Week", justify="right")
        table.add_column("Month", justify="right")
        table.add_column("Rate", justify="right")
        table.add_column("Last 30", min_width=30)
        for h in view.habits:
            pin = "\U0001f4cc" if h.pinned else ""
            label = f"{h.emoji or ''} {h.label}".strip()
            last30 = "".join("█" if d else "·" for d in h.last30)
            table.add_row(
                pin, label, str(h.current_streak), str(h.best_streak),
                str(h.wtd), str(h.mtd), f"{h.completion_pct}%", last30,
            )
        console.print(table)

    totals = {k: t for k, t in view.activity_totals.items() if t.all_time}
    if totals:
        table = Table(title="Activity", box=box.ROUNDED, show_header=True, header_style="bold")
        table.add_column("Activity", style="bold")
        table.add_column("Week", justify="right")
        table.add_column("Month", justify="right")
        table.add_column("Year", justify="right")
        table.add_column("All time", justify="right")
        for key, t in totals.items():
            activity, unit = key.split(":", 1)
            table.add_row(
                f"{activity} ({unit})",
                format_number(t.wtd), format_number(t.mtd),
                format_number(t.ytd), format_number(t.all_time),
            )
        console.print(table)


def print_trophies(case) -> None:
    """Print every ladder rung with unlock state and progress."""
    table = Table(
        title=f"Trophy Case ({case.achieved_count} earned)",
        box=box.ROUNDED,
        show_header=True,
        header_style="bold",
    )
    table.add_column("", width=2)
    table.add_column("Milestone", min_width=20)
    table.add_column("Ladder", width=12)
    table.add_column("Progress", min_width=18)

    for status in case.ladder:
        m = status.definition
        icon = m.emoji if status.unlocked else "\U0001f512"
        ladder = "streak" if m.type == MilestoneType.STREAK else "green days"
        name_text = f"[bold]{m.title}[/]\n{m.message}" if status.unlocked else m.title
        progress_text = f"{_progress_bar(status.progress, width=10)} {int(status.progress * 100)}%"
        table.add_row(icon, name_text, ladder, progress_text)

    console.print(table)
    if case.habit_ids:
        console.print(f"  Habit milestones earned: {len(case.habit_ids)}")


def print_celebration(milestone: Milestone | None) -> None:
    if milestone is None:
        console.print("[grey50]No celebrations waiting.[/]")
        return
    console.print(Panel(
        f"\n  [bold]{milestone.emoji} {milestone.title}[/]\n\n  {milestone.message}\n",
        title="[bold]\U0001f389 MILESTONE[/]",
        box=box.DOUBLE,
        border_style="gold1",
        width=56,
    ))


def print_new_milestones(events: list[Milestone]) -> None:
    for m in events:
        console.print(f"  \U0001f3c6 [bold]{m.title}[/] {m.emoji}")


def print_digest(digest: WeeklyDigest, week_of: str) -> None:
    if digest.tracked_count == 0:
        console.print(f"[grey50]No tracked days in the week of {week_of}.[/]")
        return
    lines = [
        "",
        f"  [bold]{digest.headline}[/]",
        f"  {digest.glyph_line}",
        f"  {digest.green_count}/{digest.tracked_count} green days ({digest.green_pct}%)",
        "",
    ]
    console.print(Panel(
        "\n".join(lines),
        title=f"[bold]Week of {week_of}[/]",
        box=box.ROUNDED,
        border_style="green",
        width=50,
    ))


def print_items(items: list[RoutineItem]) -> None:
    table = Table(title="Routine Items", box=box.ROUNDED, show_header=True, header_style="bold")
    table.add_column("Id", style="bold")
    table.add_column("Item")
    table.add_column("Section")
    table.add_column("Core", justify="center")
    table.add_column("Days")
    table.add_column("Active", justify="center")
    for item in items:
        days = ",".join(str(d) for d in item.days_of_week) if item.days_of_week else "every day"
        table.add_row(
            item.id,
            f"{item.emoji or ''} {item.label}".strip(),
            item.section,
            "✓" if item.is_core else "",
            days,
            "✓" if item.active else "",
        )
    console.print(table)


def print_job_result(name: str, result: dict) -> None:
    if not result.get("ok"):
        console.print(f"[red]{name} skipped: {result.get('reason', 'unknown')}[/]")
        return
    console.print(
        f"[green]{name}[/]: sent {result.get('sent', 0)}, "
        f"failed {result.get('failed', 0)}, removed {result.get('removed', 0)}"
    )
