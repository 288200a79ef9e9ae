"""Listening aggregates behind the activity charts."""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone, tzinfo
from typing import Any, Dict, List, Sequence

from diary.models import RecentlyPlayedItem

TOP_ARTISTS = 8
OTHERS_LABEL = "Others"

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def sort_recent(items: Sequence[RecentlyPlayedItem]) -> List[RecentlyPlayedItem]:
    """Newest first. Items with an unparseable ``played_at`` go last."""
    return sorted(items, key=lambda item: item.played_at_dt or _OLDEST, reverse=True)


def daily_counts(items: Sequence[RecentlyPlayedItem], tz: tzinfo = timezone.utc) -> List[Dict[str, Any]]:
    counts: Counter = Counter()
    for item in items:
        played_at = item.played_at_dt
        if played_at is None:
            continue
        counts[played_at.astimezone(tz).date()] += 1
    return [{"date": day.isoformat(), "count": counts[day]} for day in sorted(counts)]


def artist_counts(items: Sequence[RecentlyPlayedItem], top: int = TOP_ARTISTS) -> List[Dict[str, Any]]:
    counts = Counter(item.track.artist_label for item in items)
    # Counter.most_common keeps first-seen order among ties
    ranked = counts.most_common()
    result = [{"name": name, "count": count} for name, count in ranked[:top]]
    rest = ranked[top:]
    if rest:
        result.append({"name": OTHERS_LABEL, "count": sum(count for _, count in rest)})
    return result


def summarize(items: Sequence[RecentlyPlayedItem]) -> Dict[str, Any]:
    dated = [item for item in sort_recent(items) if item.played_at_dt is not None]
    return {
        "total": len(items),
        "first_played_at": dated[-1].played_at if dated else None,
        "last_played_at": dated[0].played_at if dated else None,
        "liked": sum(1 for item in items if item.liked),
        "days": daily_counts(items),
        "artists": artist_counts(items),
    }
