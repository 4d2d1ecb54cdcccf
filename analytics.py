from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping


def _utc(ts: int) -> datetime:
    return datetime.fromtimestamp(int(ts), tz=timezone.utc)


def session_minutes(s: Mapping[str, Any]) -> int:
    """Whole minutes between start and end; 0 while a session has no end."""
    if s.get("end_time") is None:
        return 0
    return max(0, (int(s["end_time"]) - int(s["start_time"])) // 60)


def daily_focus(sessions: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    minutes: Dict[str, int] = {}
    counts: Dict[str, int] = {}
    for s in sessions:
        key = _utc(s["start_time"]).date().isoformat()
        minutes[key] = minutes.get(key, 0) + session_minutes(s)
        counts[key] = counts.get(key, 0) + 1
    return [{"date": d, "minutes": minutes[d], "sessions": counts[d]} for d in sorted(minutes)]


def task_stats(tasks: Iterable[Mapping[str, Any]]) -> Dict[str, int]:
    tasks = list(tasks)

    def count(field: str, value: str) -> int:
        return sum(1 for t in tasks if t[field] == value)

    return {
        "total": len(tasks),
        "todo": count("status", "todo"),
        "inProgress": count("status", "in-progress"),
        "completed": count("status", "completed"),
        "highPriority": count("priority", "high"),
        "mediumPriority": count("priority", "medium"),
        "lowPriority": count("priority", "low"),
    }


def session_stats(sessions: Iterable[Mapping[str, Any]]) -> Dict[str, int]:
    sessions = list(sessions)
    return {
        "total": len(sessions),
        "completed": sum(1 for s in sessions if s["status"] == "completed"),
        "cancelled": sum(1 for s in sessions if s["status"] == "cancelled"),
        "totalMinutes": sum(session_minutes(s) for s in sessions),
    }


def peak_hours(sessions: Iterable[Mapping[str, Any]], limit: int = 5) -> List[Dict[str, int]]:
    """Busiest start hours (UTC) among completed sessions."""
    hourly: Dict[int, int] = {}
    for s in sessions:
        if s["status"] != "completed":
            continue
        h = _utc(s["start_time"]).hour
        hourly[h] = hourly.get(h, 0) + 1
    ranked = sorted(hourly.items(), key=lambda kv: (-kv[1], kv[0]))
    return [{"hour": h, "count": c} for h, c in ranked[:limit]]


def format_minutes(minutes: int) -> str:
    hours, mins = divmod(int(minutes), 60)
    return f"{hours}h {mins}m" if hours > 0 else f"{mins}m"


def completion_rate(stats: Mapping[str, int]) -> int:
    if not stats["total"]:
        return 0
    # round half up, percentages are never negative
    return int(stats["completed"] * 100 / stats["total"] + 0.5)


def summarize(sessions: Iterable[Mapping[str, Any]], tasks: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    sessions = list(sessions)
    ts = task_stats(tasks)
    ss = session_stats(sessions)
    return {
        "dailyData": daily_focus(sessions),
        "taskStats": ts,
        "sessionStats": ss,
        "peakHours": peak_hours(sessions),
        "summary": {
            "focusTime": format_minutes(ss["totalMinutes"]),
            "completionRate": completion_rate(ts),
        },
    }
