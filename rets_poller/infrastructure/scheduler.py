"""
Tick scheduling on top of APScheduler.

`PollScheduler` runs one job on a `BackgroundScheduler` whose executor has a
single worker thread and whose job allows one running instance, so ticks are
serialized: a tick that comes due while the previous one is still running is
coalesced/skipped by APScheduler rather than run concurrently.

Trigger values follow the familiar rufus-style grammar:

    {"cron": "0 9 * * 1-5 UTC"}   5 or 6 cron fields, optional timezone,
                                  weekdays counted from Sunday = 0 (or 7)
    {"every": "1h30m"}            interval, first tick right after start
    {"in": "10m"}                 one shot, relative to start
    {"at": "2026-01-01 08:00:00 Europe/Paris"}
                                  one shot, absolute, optional timezone
"""

from __future__ import annotations

import re
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from apscheduler.events import EVENT_JOB_REMOVED, JobEvent
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.base import BaseTrigger
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from rets_poller.domain.errors import ConfigurationError
from rets_poller.domain.models import TriggerSpec
from rets_poller.utils.logging import get_logger

log = get_logger(__name__)

JOB_ID = "rets-poll"
# Interval triggers fire this long after start instead of a full period later.
FIRST_TICK_DELAY_SECONDS = 0.01

_DURATION_UNITS = {
    "y": 365 * 86400,
    "M": 30 * 86400,
    "w": 7 * 86400,
    "d": 86400,
    "h": 3600,
    "m": 60,
    "s": 1,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|[yMwdhms])")


def parse_duration(text: str) -> timedelta:
    """
    Parse durations such as ``"1h"``, ``"1h30m"``, ``"1.5s"``, ``"500ms"`` or ``"90"``.

    A bare number is read as seconds. Raises ValueError on anything else.
    """
    raw = str(text).strip()
    if not raw:
        raise ValueError("empty duration")
    try:
        return timedelta(seconds=float(raw))
    except ValueError:
        pass

    total = 0.0
    position = 0
    for match in _DURATION_PART.finditer(raw):
        if match.start() != position:
            break
        amount, unit = match.groups()
        total += float(amount) / 1000.0 if unit == "ms" else float(amount) * _DURATION_UNITS[unit]
        position = match.end()
    if position != len(raw):
        raise ValueError(f"invalid duration '{text}'")
    return timedelta(seconds=total)


_CRONTAB_WEEKDAYS = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")
_NUMERIC_WEEKDAY = re.compile(r"^(\*|\d+(?:-\d+)?)(?:/(\d+))?$")


def _split_timezone(tokens: list[str]) -> tuple[list[str], Optional[ZoneInfo]]:
    """A trailing token that names a timezone (`UTC`, `America/Chicago`) is split off."""
    if len(tokens) > 1:
        try:
            return tokens[:-1], ZoneInfo(tokens[-1])
        except (ZoneInfoNotFoundError, ValueError, OSError):
            pass
    return tokens, None


def _crontab_day_of_week(field: str) -> str:
    """
    Rewrite a crontab day-of-week field with weekday names.

    Crontab numbers weekdays from Sunday (0, and 7 again); APScheduler numbers
    them from Monday. Names mean the same thing to both, so numeric elements
    (``0``, ``1-5``, ``*/2``, ``0,6``) are expanded to names and anything
    else is left alone.
    """
    days: list[str] = []
    for element in field.split(","):
        match = _NUMERIC_WEEKDAY.match(element)
        if element == "*" or match is None:
            days.append(element)
            continue
        span, step = match.groups()
        if span == "*":
            first, last = 0, 6
        else:
            low, _, high = span.partition("-")
            first = int(low)
            last = int(high) if high else (6 if step else first)
        if not 0 <= first <= last <= 7 or step == "0":
            raise ValueError(f"invalid day of week '{element}'")
        days.extend(_CRONTAB_WEEKDAYS[day % 7] for day in range(first, last + 1, int(step or 1)))
    return ",".join(dict.fromkeys(days))


def _cron_trigger(expression: str) -> CronTrigger:
    fields = expression.split()
    tz = None
    if len(fields) in (6, 7):
        fields, tz = _split_timezone(fields)

    if len(fields) == 5:
        minute, hour, day, month, day_of_week = fields
        second = "0"
    elif len(fields) == 6:
        second, minute, hour, day, month, day_of_week = fields
    else:
        raise ValueError(f"cron expression '{expression}' must have 5 or 6 fields")
    return CronTrigger(
        second=second,
        minute=minute,
        hour=hour,
        day=day,
        month=month,
        day_of_week=_crontab_day_of_week(day_of_week),
        timezone=tz,
    )


def _date_trigger(value: str) -> DateTrigger:
    """`2026-01-01 08:00:00`, optionally followed by a timezone name."""
    tokens, tz = _split_timezone(value.split())
    return DateTrigger(run_date=" ".join(tokens), timezone=tz)


def build_trigger(spec: TriggerSpec, now: Optional[datetime] = None) -> BaseTrigger:
    """
    Build the APScheduler trigger for a validated TriggerSpec.

    Raises
    ------
    ConfigurationError
        If the trigger value cannot be parsed.
    """
    now = now or datetime.now(timezone.utc)
    try:
        if spec.kind == "cron":
            return _cron_trigger(spec.value)
        if spec.kind == "every":
            interval = parse_duration(spec.value)
            if interval <= timedelta(0):
                raise ValueError("interval must be positive")
            return IntervalTrigger(seconds=interval.total_seconds(), start_date=now)
        if spec.kind == "in":
            return DateTrigger(run_date=now + parse_duration(spec.value))
        if spec.kind == "at":
            return _date_trigger(spec.value)
    except (ValueError, TypeError) as exc:
        raise ConfigurationError(f"Invalid schedule {spec.as_dict()}: {exc}") from exc
    raise ConfigurationError(f"Unsupported schedule kind '{spec.kind}'")


class PollScheduler:
    """
    Fires one callback according to a TriggerSpec, never concurrently.
    """

    def __init__(self, trigger: TriggerSpec) -> None:
        self.trigger = trigger
        self._scheduler = BackgroundScheduler(
            executors={"default": ThreadPoolExecutor(max_workers=1)},
            job_defaults={"coalesce": True, "max_instances": 1, "misfire_grace_time": None},
            timezone=timezone.utc,
        )
        self._finished = threading.Event()

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self, callback: Callable[[], None]) -> None:
        """
        Schedule `callback` and start the worker thread.

        Raises ConfigurationError for a malformed trigger value, before
        anything is scheduled.
        """
        now = datetime.now(timezone.utc)
        trigger = build_trigger(self.trigger, now=now)
        job_options = {}
        if self.trigger.kind == "every":
            job_options["next_run_time"] = now + timedelta(seconds=FIRST_TICK_DELAY_SECONDS)

        self._finished.clear()
        self._scheduler.add_listener(self._on_job_removed, EVENT_JOB_REMOVED)
        self._scheduler.add_job(callback, trigger, id=JOB_ID, name=JOB_ID, **job_options)
        self._scheduler.start()
        log.info("Scheduler started", extra={"schedule": self.trigger.as_dict()})

    def _on_job_removed(self, event: JobEvent) -> None:
        # One-shot triggers are removed once dispatched.
        if event.job_id == JOB_ID:
            self._finished.set()

    def stop(self, wait: bool = False) -> None:
        """
        Stop firing ticks. An in-flight tick is not interrupted; with
        ``wait=True`` this blocks until it returns.
        """
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
            log.info("Scheduler stopped")
        self._finished.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until stopped or the last one-shot tick was dispatched."""
        return self._finished.wait(timeout)


__all__ = [
    "FIRST_TICK_DELAY_SECONDS",
    "PollScheduler",
    "build_trigger",
    "parse_duration",
]
