"""
Schedule validation.

Only the "exactly one trigger kind" rule lives here. Whether the value itself
is a valid cron line, duration or timestamp is decided by the scheduler when
the trigger is built.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from rets_poller.domain.errors import ConfigurationError
from rets_poller.domain.models import TRIGGER_KINDS, TriggerSpec

INVALID_SCHEDULE_MESSAGE = (
    "Invalid config. schedule must contain exactly one of the following keys - "
    "cron, at, every or in"
)


def parse_trigger(spec: Any) -> TriggerSpec:
    """
    Validate a raw schedule mapping such as ``{"every": "1h"}``.

    Raises
    ------
    ConfigurationError
        If the mapping has zero or several keys, or an unrecognized key.
    """
    if not isinstance(spec, Mapping) or len(spec) != 1:
        raise ConfigurationError(INVALID_SCHEDULE_MESSAGE)

    ((raw_kind, raw_value),) = spec.items()
    kind = str(raw_kind).strip()
    if kind not in TRIGGER_KINDS:
        raise ConfigurationError(INVALID_SCHEDULE_MESSAGE)

    return TriggerSpec(kind=kind, value=str(raw_value))  # type: ignore[arg-type]


__all__ = ["INVALID_SCHEDULE_MESSAGE", "parse_trigger"]
