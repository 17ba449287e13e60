"""Clock helpers; every timestamp the engine compares is UTC-aware."""

from __future__ import annotations

from datetime import datetime
from typing import Callable

import pendulum

Clock = Callable[[], datetime]


def utc_now() -> pendulum.DateTime:
    return pendulum.now("UTC")


def to_utc(value: datetime) -> pendulum.DateTime:
    """Interpret naive datetimes as UTC and convert aware ones to UTC."""
    return pendulum.instance(value, tz="UTC").in_tz("UTC")


def to_naive_utc(value: datetime) -> datetime:
    return to_utc(value).naive()
