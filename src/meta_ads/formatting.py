"""Display helpers for Graph API values in rich tables and panels."""

from __future__ import annotations

from datetime import datetime
from typing import Any

GRAPH_TIME_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


def format_money(minor_units: Any, empty: str = "-") -> str:
    """Format a Graph API amount (in cents, as a string) as dollars."""
    if minor_units in (None, ""):
        return empty
    try:
        return f"${int(minor_units) / 100:.2f}"
    except (TypeError, ValueError):
        return str(minor_units)


def format_number(value: Any) -> str:
    try:
        return f"{int(float(value or 0)):,}"
    except (TypeError, ValueError):
        return str(value)


def format_decimal(value: Any, prefix: str = "", suffix: str = "") -> str:
    try:
        return f"{prefix}{float(value or 0):.2f}{suffix}"
    except (TypeError, ValueError):
        return str(value)


def truncate(text: str | None, width: int) -> str:
    """Cut ``text`` to ``width`` characters, marking the cut with '..'."""
    text = text or ""
    if len(text) <= width:
        return text
    return text[: width - 2] + ".."


def _parse_time(value: str) -> datetime | None:
    try:
        return datetime.strptime(value, GRAPH_TIME_FORMAT)
    except (TypeError, ValueError):
        return None


def format_date(value: str | None, empty: str = "-") -> str:
    if not value:
        return empty
    parsed = _parse_time(value)
    return parsed.strftime("%Y-%m-%d") if parsed else value


def format_datetime(value: str | None, empty: str = "-") -> str:
    if not value:
        return empty
    parsed = _parse_time(value)
    return parsed.strftime("%Y-%m-%d %H:%M %Z").strip() if parsed else value


def status_markup(status: str | None) -> str:
    """Colour a campaign/ad set delivery status."""
    if status == "ACTIVE":
        return "[green]ACTIVE[/green]"
    if status == "PAUSED":
        return "[yellow]PAUSED[/yellow]"
    return f"[dim]{status or '-'}[/dim]"


def account_status_markup(account_status: Any) -> str:
    # account_status 1 means ACTIVE in the Graph API
    return "[green]Active[/green]" if account_status == 1 else "[red]Inactive[/red]"


def budget(item: dict[str, Any]) -> str:
    """Daily budget, or lifetime budget marked (LT), or '-'."""
    if item.get("daily_budget"):
        return format_money(item["daily_budget"])
    if item.get("lifetime_budget"):
        return f"{format_money(item['lifetime_budget'])} (LT)"
    return "-"
