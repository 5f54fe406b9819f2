"""Service for locating and resolving the first date/time expression in text.

The resolver scans a message for expression components (relative offsets,
casual days, weekdays, calendar dates, clock times and parts of the day),
picks the earliest one, merges it with an adjacent complementary component
("Friday" + "at 2:30pm") and turns the result into an absolute instant
relative to a caller-supplied reference instant.

Clock-only expressions that land before the reference roll forward one
calendar day.  Expressions with an explicit day are returned literally,
even when they are in the past.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Callable

from dateparser.date import DateDataParser
from dateparser.search import search_dates
from dateutil.relativedelta import FR, MO, SA, SU, TH, TU, WE, relativedelta

DEFAULT_TIME = time(12, 0)

_DAY_MAP = {
    "monday": MO,
    "tuesday": TU,
    "wednesday": WE,
    "thursday": TH,
    "friday": FR,
    "saturday": SA,
    "sunday": SU,
}

_MONTHS = {
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}

_UNITS = {
    "one": 1,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
    "seven": 7,
    "eight": 8,
    "nine": 9,
}

_NUMBER_WORDS = {
    **_UNITS,
    "ten": 10,
    "eleven": 11,
    "twelve": 12,
    "thirteen": 13,
    "fourteen": 14,
    "fifteen": 15,
    "sixteen": 16,
    "seventeen": 17,
    "eighteen": 18,
    "nineteen": 19,
    "a couple of": 2,
    "a few": 3,
    "an": 1,
    "a": 1,
}

_TENS = {
    "twenty": 20,
    "thirty": 30,
    "forty": 40,
    "fifty": 50,
    "sixty": 60,
    "seventy": 70,
    "eighty": 80,
    "ninety": 90,
}

_HOUR_WORDS = {word: n for word, n in _NUMBER_WORDS.items() if word.isalpha() and n <= 12}
del _HOUR_WORDS["an"], _HOUR_WORDS["a"]

# Fallback hits outside this window around the reference year are discarded.
_YEARS_BACK = 1
_YEARS_AHEAD = 10

# (part of day) -> (clock, overridable by an explicit clock, turns bare hours into PM)
_PARTS_OF_DAY = {
    "noon": (time(12, 0), False, False),
    "midday": (time(12, 0), False, False),
    "midnight": (time(0, 0), False, False),
    "morning": (time(6, 0), True, False),
    "afternoon": (time(15, 0), True, True),
    "evening": (time(20, 0), True, True),
    "night": (time(22, 0), True, True),
}

_TONIGHT = time(22, 0)


@dataclass(frozen=True)
class Span:
    start: int
    end: int
    text: str


@dataclass(frozen=True)
class Found:
    span: Span
    instant: datetime
    explicit_day: bool


@dataclass(frozen=True)
class NotFound:
    pass


NOT_FOUND = NotFound()


def to_24_hour(hour: int, meridiem: str) -> int:
    """Normalise a 12-hour clock reading: 12am is 0, 12pm is 12."""
    pm = meridiem.lower().startswith("p")
    if hour == 12:
        return 12 if pm else 0
    return hour + 12 if pm else hour


# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _Component:
    start: int
    end: int
    day: date | None = None
    clock: time | None = None
    offset: timedelta | None = None
    soft: bool = False  # clock is a default that an explicit clock replaces
    bare: bool = False  # hour given without am/pm
    pm_hint: bool = False
    upcoming: bool = False  # bare weekday: move a week ahead if already past


_Builder = Callable[[re.Match, datetime], "_Component | None"]


def _amount(raw: str) -> int:
    """'30' -> 30, 'twenty five' -> 25, 'a couple of' -> 2."""
    raw = " ".join(raw.lower().replace("-", " ").split())
    if raw.isdigit():
        return int(raw)
    tens, _, unit = raw.partition(" ")
    if tens in _TENS:
        return _TENS[tens] + (_UNITS[unit] if unit else 0)
    return _NUMBER_WORDS[raw]


def _unit(raw: str) -> str:
    raw = raw.lower()
    if raw.startswith("s"):
        return "seconds"
    if raw.startswith("mi"):
        return "minutes"
    if raw.startswith("h"):
        return "hours"
    if raw.startswith("d"):
        return "days"
    if raw.startswith("w"):
        return "weeks"
    if raw.startswith("mo"):
        return "months"
    return "years"


def _relative(m: re.Match, ref: datetime) -> _Component | None:
    """Sum every ``N unit`` part of the offset ("1 hour and 30 minutes")."""
    elapsed = timedelta()
    calendar = relativedelta()
    for part in _OFFSET_PART.finditer(m.group("chain")):
        n = _amount(part.group("amount"))
        unit = _unit(part.group("unit"))
        if unit in ("seconds", "minutes", "hours"):
            elapsed += timedelta(**{unit: n})
        else:
            calendar += relativedelta(**{unit: n})

    if not calendar:
        return _Component(m.start(), m.end(), offset=elapsed)
    shifted = (ref + calendar).astimezone(timezone.utc) + elapsed
    shifted = shifted.astimezone(ref.tzinfo)
    return _Component(
        m.start(), m.end(), day=shifted.date(), clock=shifted.time(), soft=True
    )


def _half_hour(m: re.Match, ref: datetime) -> _Component | None:
    return _Component(m.start(), m.end(), offset=timedelta(minutes=30))


def _casual(m: re.Match, ref: datetime) -> _Component | None:
    word = " ".join(m.group("word").lower().split())
    today = ref.date()
    if word.endswith("day after tomorrow"):
        return _Component(m.start(), m.end(), day=today + timedelta(days=2))
    if word in ("tomorrow", "tmrw", "tmr"):
        return _Component(m.start(), m.end(), day=today + timedelta(days=1))
    if word == "tonight":
        return _Component(
            m.start(), m.end(), day=today, clock=_TONIGHT, soft=True, pm_hint=True
        )
    return _Component(m.start(), m.end(), day=today)


def _weekday(m: re.Match, ref: datetime) -> _Component | None:
    target = _DAY_MAP[m.group("weekday").lower()]
    modifier = (m.group("modifier") or "").lower()
    if modifier == "next":
        day = ref.date() + relativedelta(days=1, weekday=target)
    else:
        day = ref.date() + relativedelta(weekday=target)
    return _Component(m.start(), m.end(), day=day, upcoming=not modifier)


def _calendar_day(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _named_month(m: re.Match, ref: datetime) -> _Component | None:
    year = int(m.group("year")) if m.group("year") else ref.year
    month = _MONTHS[m.group("month")[:3].lower()]
    day = _calendar_day(year, month, int(m.group("day")))
    if day is None:
        return None
    return _Component(m.start(), m.end(), day=day)


def _iso_date(m: re.Match, ref: datetime) -> _Component | None:
    day = _calendar_day(int(m.group("year")), int(m.group("month")), int(m.group("day")))
    if day is None:
        return None
    return _Component(m.start(), m.end(), day=day)


def _slash_date(m: re.Match, ref: datetime) -> _Component | None:
    raw_year = m.group("year")
    if raw_year is None:
        year = ref.year
    elif len(raw_year) == 2:
        year = 2000 + int(raw_year)
    else:
        year = int(raw_year)
    day = _calendar_day(year, int(m.group("month")), int(m.group("day")))
    if day is None:
        return None
    return _Component(m.start(), m.end(), day=day)


def _meridiem_clock(m: re.Match, ref: datetime) -> _Component | None:
    raw = m.group("hour").lower()
    hour = int(raw) if raw.isdigit() else _HOUR_WORDS[raw]
    minute = int(m.group("minute") or 0)
    if not 1 <= hour <= 12 or minute > 59:
        return None
    clock = time(to_24_hour(hour, m.group("meridiem")), minute)
    return _Component(m.start(), m.end(), clock=clock)


def _24h_clock(m: re.Match, ref: datetime) -> _Component | None:
    hour = int(m.group("hour"))
    minute = int(m.group("minute"))
    if hour > 23 or minute > 59:
        return None
    return _Component(m.start(), m.end(), clock=time(hour, minute))


def _bare_hour(m: re.Match, ref: datetime) -> _Component | None:
    hour = int(m.group("hour"))
    if hour > 23:
        return None
    return _Component(m.start(), m.end(), clock=time(hour, 0), bare=True)


def _part_of_day(m: re.Match, ref: datetime) -> _Component | None:
    clock, soft, pm_hint = _PARTS_OF_DAY[m.group("part").lower()]
    return _Component(m.start(), m.end(), clock=clock, soft=soft, pm_hint=pm_hint)


# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

def _alternation(words) -> str:
    # Longest first so "seventeen" is not read as "seven".
    return "|".join(w.replace(" ", r"\s+") for w in sorted(words, key=len, reverse=True))


_AMOUNT = (
    rf"(?:\d+|(?:{_alternation(_TENS)})(?:[\s-]+(?:{_alternation(_UNITS)}))?"
    rf"|{_alternation(_NUMBER_WORDS)})"
)
_UNIT = r"(?:seconds?|secs?|minutes?|mins?|hours?|hrs?|days?|weeks?|months?|years?)"
_OFFSET = rf"{_AMOUNT}\s*{_UNIT}\b"
# "1 hour and 30 minutes", "2 days, 3 hours", "1 hour 30 minutes"
_OFFSET_CHAIN = (
    rf"(?P<chain>{_OFFSET}(?:(?:\s*,\s*(?:and\s+)?|\s+and\s+|\s+(?=\d)){_OFFSET})*)"
)
_OFFSET_PART = re.compile(
    rf"(?P<amount>{_AMOUNT})\s*(?P<unit>{_UNIT})\b", re.IGNORECASE
)
_HOUR = rf"(?P<hour>\d{{1,2}}|{_alternation(_HOUR_WORDS)})"
_MONTH = (
    r"(?P<month>jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?"
    r"|aug(?:ust)?|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)\.?"
)
_YEAR = r"(?:,?\s+(?P<year>\d{4})\b)?"
_ON = r"(?:\bon\s+)?"
_AT = r"(?:\bat\s+)?"


def _compile(pattern: str) -> re.Pattern:
    return re.compile(pattern, re.IGNORECASE)


_MATCHERS: list[tuple[re.Pattern, _Builder]] = [
    (_compile(rf"\bin\s+{_OFFSET_CHAIN}"), _relative),
    (_compile(rf"\b{_OFFSET_CHAIN}\s+from\s+now\b"), _relative),
    (_compile(r"\bin\s+(?:half\s+an|a\s+half)\s+hour\b"), _half_hour),
    (
        _compile(
            r"\b(?P<word>(?:the\s+)?day\s+after\s+tomorrow|today|tonight|tomorrow|tmrw|tmr)\b"
        ),
        _casual,
    ),
    (
        _compile(
            rf"{_ON}\b(?:(?P<modifier>this|next|coming)\s+)?"
            r"(?P<weekday>monday|tuesday|wednesday|thursday|friday|saturday|sunday)\b"
        ),
        _weekday,
    ),
    (
        _compile(rf"{_ON}\b{_MONTH}\s+(?P<day>\d{{1,2}})(?:st|nd|rd|th)?\b{_YEAR}"),
        _named_month,
    ),
    (
        _compile(
            rf"{_ON}\b(?:the\s+)?(?P<day>\d{{1,2}})(?:st|nd|rd|th)?\s+(?:of\s+)?"
            rf"{_MONTH}(?![a-z]){_YEAR}"
        ),
        _named_month,
    ),
    (
        _compile(rf"{_ON}\b(?P<year>\d{{4}})-(?P<month>\d{{1,2}})-(?P<day>\d{{1,2}})\b"),
        _iso_date,
    ),
    (
        _compile(
            rf"{_ON}\b(?P<month>\d{{1,2}})/(?P<day>\d{{1,2}})(?:/(?P<year>\d{{4}}|\d{{2}}))?\b"
        ),
        _slash_date,
    ),
    (
        _compile(
            rf"{_AT}\b{_HOUR}(?:[:.](?P<minute>\d{{2}}))?\s*"
            r"(?P<meridiem>a\.?m\.?|p\.?m\.?)(?![a-z])"
        ),
        _meridiem_clock,
    ),
    (_compile(rf"{_AT}\b(?P<hour>\d{{1,2}}):(?P<minute>\d{{2}})\b"), _24h_clock),
    (
        _compile(r"\bat\s+(?P<hour>\d{1,2})(?:\s*o'?clock)?(?![\d:./])\b"),
        _bare_hour,
    ),
    (
        _compile(
            r"(?<!good )\b(?:(?:this|in\s+the|at)\s+)?"
            r"(?P<part>morning|afternoon|evening|night|noon|midday|midnight)\b"
        ),
        _part_of_day,
    ),
]

_GAP = re.compile(r"\s*,?\s*")


def _components(text: str, ref: datetime) -> list[_Component]:
    found: list[_Component] = []
    for pattern, build in _MATCHERS:
        for m in pattern.finditer(text):
            component = build(m, ref)
            if component is not None:
                found.append(component)
    found.sort(key=lambda c: (c.start, c.start - c.end))
    return found


def _merge(a: _Component, b: _Component) -> _Component | None:
    """Combine a day-bearing and a clock-bearing component, or return None."""
    if a.offset is not None or b.offset is not None:
        return None
    if a.day is not None and b.day is not None:
        return None

    clock = a.clock or b.clock
    soft = a.soft if a.clock else b.soft
    bare = a.bare if a.clock else b.bare
    if a.clock is not None and b.clock is not None:
        if a.soft == b.soft:
            return None
        hard = b if a.soft else a
        clock, soft, bare = hard.clock, False, hard.bare

    return _Component(
        start=a.start,
        end=b.end,
        day=a.day or b.day,
        clock=clock,
        soft=soft,
        bare=bare,
        pm_hint=a.pm_hint or b.pm_hint,
        upcoming=a.upcoming or b.upcoming,
    )


def _extend(current: _Component, found: list[_Component], text: str) -> _Component:
    while True:
        merged = None
        for candidate in found:
            if candidate.start < current.end:
                continue
            if not _GAP.fullmatch(text, current.end, candidate.start):
                break
            merged = _merge(current, candidate)
            if merged is not None:
                break
        if merged is None:
            return current
        current = merged


def _at(day: date, clock: time, tz: tzinfo) -> datetime:
    return datetime.combine(day, clock).replace(tzinfo=tz)


def _instant(c: _Component, ref: datetime) -> datetime:
    tz = ref.tzinfo
    if c.offset is not None:
        return (ref.astimezone(timezone.utc) + c.offset).astimezone(tz)

    day = c.day if c.day is not None else ref.date()
    clock = c.clock if c.clock is not None else DEFAULT_TIME
    if c.bare and c.pm_hint and clock.hour < 12:
        clock = clock.replace(hour=clock.hour + 12)

    instant = _at(day, clock, tz)
    if c.upcoming and instant < ref:
        day += timedelta(days=7)
        instant = _at(day, clock, tz)
    if c.day is None and instant < ref:
        instant = _at(day + timedelta(days=1), clock, tz)
    return instant


_DATEPARSER_HINT = re.compile(
    r"\d|\b(?:next|this|coming)\s+(?:week|month|year)\b", re.IGNORECASE
)


def _dateparser_settings(ref: datetime, **extra) -> dict:
    return {
        "PREFER_DATES_FROM": "future",
        "RELATIVE_BASE": ref.replace(tzinfo=None),
        "RETURN_AS_TIMEZONE_AWARE": False,
        **extra,
    }


def _plausible_phrase(phrase: str) -> bool:
    """Reject hits like "may", "the sat" or a bare "0900".

    A usable phrase carries a digit that is not the whole phrase, or a
    relative "next week" style expression.
    """
    stripped = phrase.strip()
    if not _DATEPARSER_HINT.search(stripped):
        return False
    return not stripped.isdigit()


def _search_fallback(text: str, ref: datetime) -> Found | None:
    results = search_dates(text, languages=["en"], settings=_dateparser_settings(ref))
    parser = DateDataParser(
        languages=["en"],
        settings=_dateparser_settings(ref, RETURN_TIME_AS_PERIOD=True),
    )
    for phrase, _ in results or []:
        if not _plausible_phrase(phrase):
            continue
        data = parser.get_date_data(phrase)
        if data.date_obj is None:
            continue
        value = data.date_obj
        if not ref.year - _YEARS_BACK <= value.year <= ref.year + _YEARS_AHEAD:
            continue
        start = text.find(phrase)
        if start < 0:
            continue

        has_clock = data.period == "time"
        clock = value.time() if has_clock else DEFAULT_TIME
        explicit_day = not has_clock or value.date() != ref.date()
        instant = _at(value.date(), clock, ref.tzinfo)
        if not explicit_day and instant < ref:
            instant = _at(value.date() + timedelta(days=1), clock, ref.tzinfo)
        return Found(
            span=Span(start, start + len(phrase), phrase),
            instant=instant,
            explicit_day=explicit_day,
        )
    return None


def resolve(text: str, reference: datetime, *, fallback: bool = True) -> Found | NotFound:
    """Find the first date/time expression in *text* and resolve it.

    *reference* anchors every relative reading; a naive value is taken as
    UTC.  The returned instant carries the reference's time zone.  With
    *fallback* enabled, ``dateparser`` gets a chance at messages none of
    the built-in patterns recognise.  Its hits follow the same rules as
    built-in ones (12:00 when no clock was given, rollover for clock-only
    times) and are dropped when the phrase carries no digit or the year
    lands far from the reference.
    """
    if reference.tzinfo is None:
        reference = reference.replace(tzinfo=timezone.utc)
    if not text or not text.strip():
        return NOT_FOUND

    found = _components(text, reference)
    if found:
        expression = _extend(found[0], found, text)
        return Found(
            span=Span(expression.start, expression.end, text[expression.start : expression.end]),
            instant=_instant(expression, reference),
            explicit_day=expression.day is not None,
        )

    if fallback:
        hit = _search_fallback(text, reference)
        if hit is not None:
            return hit
    return NOT_FOUND
