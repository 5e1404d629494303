from __future__ import annotations

from dataclasses import dataclass

_MINUTE_MS = 60_000


@dataclass(frozen=True)
class LocaleStrings:
    """Phrases used to render a relative time in one locale."""

    past: str
    future: str
    seconds: str
    minute: str
    minutes: str
    hour: str
    hours: str
    day: str
    days: str
    month: str
    months: str
    year: str
    years: str


LOCALES: dict[str, LocaleStrings] = {
    "zh-cn": LocaleStrings(
        past="{}前",
        future="{}后",
        seconds="几秒",
        minute="1 分钟",
        minutes="{} 分钟",
        hour="1 小时",
        hours="{} 小时",
        day="1 天",
        days="{} 天",
        month="1 个月",
        months="{} 个月",
        year="1 年",
        years="{} 年",
    ),
    "en": LocaleStrings(
        past="{} ago",
        future="in {}",
        seconds="a few seconds",
        minute="a minute",
        minutes="{} minutes",
        hour="an hour",
        hours="{} hours",
        day="a day",
        days="{} days",
        month="a month",
        months="{} months",
        year="a year",
        years="{} years",
    ),
}


def start_of_minute(timestamp_ms: int) -> int:
    """Truncate an epoch-millisecond timestamp to the start of its minute."""

    return timestamp_ms - timestamp_ms % _MINUTE_MS


def humanize_since(timestamp_ms: int, now_ms: int, locale: str = "zh-cn") -> str:
    """Render `timestamp_ms` relative to `now_ms`, e.g. "3 分钟前".

    The timestamp is truncated to its minute first, so labels never move
    faster than once per minute.
    """

    strings = LOCALES.get(locale.lower())
    if strings is None:
        raise ValueError(f"Unsupported time locale: {locale}")

    delta_ms = now_ms - start_of_minute(int(timestamp_ms))
    phrase = _duration_phrase(abs(delta_ms) / 1000.0, strings)
    template = strings.past if delta_ms >= 0 else strings.future
    return template.format(phrase)


def _duration_phrase(seconds: float, strings: LocaleStrings) -> str:
    minutes = round(seconds / 60)
    hours = round(seconds / 3600)
    days = round(seconds / 86400)
    if seconds < 45:
        return strings.seconds
    if seconds < 90:
        return strings.minute
    if minutes < 45:
        return strings.minutes.format(minutes)
    if minutes < 90:
        return strings.hour
    if hours < 22:
        return strings.hours.format(hours)
    if hours < 36:
        return strings.day
    if days < 26:
        return strings.days.format(days)
    if days < 45:
        return strings.month
    if days < 320:
        return strings.months.format(max(round(days / 30.4), 2))
    if days < 548:
        return strings.year
    return strings.years.format(max(round(days / 365), 2))
