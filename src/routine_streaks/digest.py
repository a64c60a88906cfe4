"""Weekly digest: one week's day statuses -> headline and glyph line.

Runs inside the scheduled job with nothing but the fetched week, so it is
a pure function of its input.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from routine_streaks.classifier import DayStatus
from routine_streaks.periods import round_half_up

GLYPHS: dict[DayStatus, str] = {
    DayStatus.GREEN: "🟢",
    DayStatus.YELLOW: "🟡",
    DayStatus.RED: "🔴",
}

HEADLINE_EMOJI: dict[str, str] = {
    "Perfect week": "🏆",
    "Strong week": "💪",
    "Building momentum": "",
    "Room to grow": "🌱",
}

DIGEST_TAG = "weekly-summary"
DIGEST_URL = "/app/routines/progress"


@dataclass
class WeeklyDigest:
    green_count: int
    yellow_count: int
    red_count: int
    tracked_count: int  # green + yellow + red; empty days excluded
    green_pct: int
    headline: str
    glyph_line: str


def headline_for(green_count: int) -> str:
    if green_count >= 7:
        return "Perfect week"
    if green_count >= 5:
        return "Strong week"
    if green_count >= 3:
        return "Building momentum"
    return "Room to grow"


def build_weekly_digest(statuses: Sequence[DayStatus | str]) -> WeeklyDigest:
    """Summarize the Monday..Sunday statuses of one week.

    The glyph line lists every green day, then yellow, then red.
    """
    normalized = [DayStatus(s) for s in statuses]
    green = normalized.count(DayStatus.GREEN)
    yellow = normalized.count(DayStatus.YELLOW)
    red = normalized.count(DayStatus.RED)
    tracked = green + yellow + red
    pct = round_half_up(100 * green / tracked) if tracked else 0

    glyph_line = (
        GLYPHS[DayStatus.GREEN] * green
        + GLYPHS[DayStatus.YELLOW] * yellow
        + GLYPHS[DayStatus.RED] * red
    )
    return WeeklyDigest(
        green_count=green,
        yellow_count=yellow,
        red_count=red,
        tracked_count=tracked,
        green_pct=pct,
        headline=headline_for(green),
        glyph_line=glyph_line,
    )


def digest_payload(digest: WeeklyDigest) -> dict[str, str] | None:
    """Push notification payload for a digest, or None for an untracked week."""
    if digest.tracked_count == 0:
        return None
    emoji = HEADLINE_EMOJI.get(digest.headline, "")
    headline = f"{digest.headline}! {emoji}".strip() if emoji else digest.headline
    return {
        "title": f"📊 {headline}",
        "body": (
            f"{digest.glyph_line}\n"
            f"{digest.green_count}/{digest.tracked_count} green days ({digest.green_pct}%)"
        ),
        "tag": DIGEST_TAG,
        "url": DIGEST_URL,
    }
