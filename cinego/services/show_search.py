"""
Natural-language show search.

Turns a free-text query such as "sci-fi tomorrow after 6pm under 300" into
structured filters: a date window, a time-of-day window, a price cap, genres
and title keywords. Dates and times are read in the display timezone.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

from cinego.config import settings
from cinego.models.base import as_utc

DEFAULT_WINDOW = timedelta(days=14)

DAY_NAMES = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

KNOWN_GENRES = [
    "action", "adventure", "animation", "comedy", "crime", "drama", "family",
    "fantasy", "history", "horror", "mystery", "romance", "science fiction",
    "sci-fi", "thriller", "war", "western",
]

STOP_WORDS = {
    "movie", "movies", "after", "before", "today", "tomorrow", "this", "near",
    "under", "below", "less", "than", "pm", "am", "post", "inr", "show", "shows",
}

ISO_DATE_RE = re.compile(r"\b(\d{4}-\d{2}-\d{2})\b")
DAY_RE = re.compile(r"\b(today|tomorrow|" + "|".join(DAY_NAMES) + r")\b")
AFTER_RE = re.compile(r"\b(?:after|post)\s*(\d{1,2})(?::(\d{2}))?\s*(am|pm)?\b")
BEFORE_RE = re.compile(r"\bbefore\s*(\d{1,2})(?::(\d{2}))?\s*(am|pm)?\b")
PRICE_RE = re.compile(
    r"(?:under|below|less\s*than|<=|near)\s*(?:₹|rs\.?|inr)?\s*(\d{2,5})|(?:₹|rs\.?|inr)\s*(\d{2,5})"
)


@dataclass
class SearchFilters:
    start: datetime
    end: datetime
    after_min: Optional[int] = None
    before_min: Optional[int] = None
    max_price: Optional[int] = None
    genres: List[str] = field(default_factory=list)
    title_tokens: List[str] = field(default_factory=list)

    def applied(self) -> Dict[str, Any]:
        return {
            "from": self.start,
            "to": self.end,
            "after_min": self.after_min,
            "before_min": self.before_min,
            "max_price": self.max_price,
            "genres": self.genres,
        }


def to_minutes(hour: str, minute: Optional[str], meridiem: Optional[str]) -> int:
    hh = int(hour)
    mm = int(minute) if minute else 0
    if meridiem == "pm" and hh != 12:
        hh += 12
    elif meridiem == "am" and hh == 12:
        hh = 0
    return hh * 60 + mm


def normalize_genre(genre: str) -> str:
    if genre in ("sci-fi", "science fiction"):
        return "Science Fiction"
    return genre.title()


def _day_window(day, tz) -> tuple:
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day, time.max, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def _time_filter(match) -> Optional[int]:
    if not match:
        return None
    return to_minutes(*match.groups())


def parse_query(q: str, now: Optional[datetime] = None, tz_name: str = None) -> SearchFilters:
    """
    Parse a search box query into filters. Words that only drive a filter
    (dates, times, prices, genres, stop words) are not used as title keywords.
    """
    q = (q or "").lower().strip()
    tz = ZoneInfo(tz_name or settings.DISPLAY_TIMEZONE)
    now = now or datetime.now(timezone.utc)
    local_now = now.astimezone(tz)

    start, end = now, now + DEFAULT_WINDOW

    iso_match = ISO_DATE_RE.search(q)
    if iso_match:
        try:
            start, end = _day_window(datetime.strptime(iso_match.group(1), "%Y-%m-%d").date(), tz)
        except ValueError:
            # Not a real calendar date; keep the default window
            pass
    else:
        day_match = DAY_RE.search(q)
        if day_match:
            word = day_match.group(1)
            if word == "today":
                day = local_now.date()
            elif word == "tomorrow":
                day = local_now.date() + timedelta(days=1)
            else:
                diff = (DAY_NAMES.index(word) - local_now.weekday()) % 7
                day = local_now.date() + timedelta(days=diff)
            start, end = _day_window(day, tz)

    price_match = PRICE_RE.search(q)
    max_price = int(price_match.group(1) or price_match.group(2)) if price_match else None

    wanted = [genre for genre in KNOWN_GENRES if genre in q]
    genres = []
    for genre in wanted:
        normalized = normalize_genre(genre)
        if normalized not in genres:
            genres.append(normalized)

    # Strip everything a filter consumed before extracting title keywords
    remainder = ISO_DATE_RE.sub(" ", q)
    for pattern in (AFTER_RE, BEFORE_RE, PRICE_RE):
        remainder = pattern.sub(" ", remainder)
    for genre in wanted:
        remainder = remainder.replace(genre, " ")
    tokens = re.sub(r"[^\w\s]", " ", remainder).split()
    title_tokens = [
        token for token in tokens
        if len(token) > 2
        and token not in STOP_WORDS
        and token not in DAY_NAMES
        and not token.isdigit()
    ]

    return SearchFilters(
        start=start,
        end=end,
        after_min=_time_filter(AFTER_RE.search(q)),
        before_min=_time_filter(BEFORE_RE.search(q)),
        max_price=max_price,
        genres=genres,
        title_tokens=title_tokens,
    )


def matches(show, filters: SearchFilters, tz_name: str = None) -> bool:
    """
    Apply the in-memory part of the filters to a show with its movie loaded.
    The date window and price cap are expected to be applied by the query.
    """
    if filters.after_min is not None or filters.before_min is not None:
        local = as_utc(show.start_time).astimezone(ZoneInfo(tz_name or settings.DISPLAY_TIMEZONE))
        minutes = local.hour * 60 + local.minute
        if filters.after_min is not None and minutes < filters.after_min:
            return False
        if filters.before_min is not None and minutes > filters.before_min:
            return False

    movie = show.movie
    if filters.genres:
        if movie is None or not set(movie.genres or []) & set(filters.genres):
            return False

    if filters.title_tokens:
        title = (movie.title if movie else "").lower()
        if not all(token in title for token in filters.title_tokens):
            return False

    return True
