"""Rotating multi-slot timestamp resource.

The resource keeps ``count`` timestamps and a cursor (``index``) into them::

    ["2023-02-21T11:08:46.000Z", "2024-02-21T11:08:46.000Z"]
                                  ^ index

When the timestamp under the cursor is older than ``rotation_period_days``,
the cursor moves to the next slot (round-robin) and only that slot is
refreshed. Consumers derive credentials from ``current_timestamp`` so that
the previous credential stays valid for a full period after rotation.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from datetime import timedelta
from datetime import timezone
from typing import Any

from stack_foundation.protocol import CheckFailure
from stack_foundation.protocol import CheckResult
from stack_foundation.protocol import CreateResult
from stack_foundation.protocol import DiffResult
from stack_foundation.protocol import UpdateResult

logger = logging.getLogger(__name__)

DEFAULT_COUNT = 1
DEFAULT_ROTATION_PERIOD_DAYS = 60

INPUT_DEFAULTS = {
    "count": DEFAULT_COUNT,
    "rotation_period_days": DEFAULT_ROTATION_PERIOD_DAYS,
}

STATE_FIELDS = ("index", "rotation_period_days", "timestamps", "current_timestamp")


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """Serialize as ISO-8601 UTC with millisecond precision and a ``Z`` suffix."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    text = moment.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def parse_timestamp(text: str) -> datetime:
    """Parse a timestamp written by :func:`format_timestamp` (or any ISO-8601 instant).

    Naive values are taken as UTC.

    Raises:
        ValueError: If ``text`` is not an ISO-8601 instant.
    """
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    moment = datetime.fromisoformat(text)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def expires_at(timestamp: str, rotation_period_days: int) -> datetime:
    """Instant at which a slot refreshed at ``timestamp`` expires."""
    return parse_timestamp(timestamp) + timedelta(days=rotation_period_days)


def _is_index(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _positive_int(value: Any) -> int | None:
    """``value`` as an int if it is a positive integer, else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 1 else None
    if isinstance(value, float) and value.is_integer() and value >= 1:
        return int(value)
    return None


class MultiRotateProvider:
    """Provider for the rotating timestamp resource.

    Inputs: ``count`` and ``rotation_period_days``.
    Outputs: ``index``, ``rotation_period_days``, ``timestamps`` and
    ``current_timestamp``.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        """Initialize the provider.

        Args:
            clock: Returns the current time. Injected by tests.
        """
        self._clock = clock

    def _now(self) -> datetime:
        return self._clock()

    def validate(self, olds: dict[str, Any], news: dict[str, Any]) -> CheckResult:
        """Fill in defaults and report invalid fields.

        Fields that are missing (or None) take their default. Invalid fields
        are reported as failures and left as given; valid ones are normalized
        to ``int``.

        Args:
            olds: Previous inputs (unused).
            news: Desired inputs.

        Returns:
            Normalized inputs with one failure per invalid field.
        """
        inputs = dict(news)
        failures = []

        for key, default in INPUT_DEFAULTS.items():
            value = inputs.get(key)
            if value is None:
                inputs[key] = default
                continue
            normalized = _positive_int(value)
            if normalized is None:
                failures.append(CheckFailure(property=key, reason="Must be a positive integer"))
            else:
                inputs[key] = normalized

        return CheckResult(inputs=inputs, failures=failures)

    def create(self, inputs: dict[str, Any]) -> CreateResult:
        """Create the state with every slot set to now.

        The resource id is the creation timestamp.
        """
        now = format_timestamp(self._now())
        timestamps = [now] * inputs["count"]
        outs = {
            "index": 0,
            "rotation_period_days": inputs["rotation_period_days"],
            "timestamps": timestamps,
            "current_timestamp": timestamps[0],
        }
        logger.info(f"Created rotation with {len(timestamps)} slot(s) at {now}")
        return CreateResult(id=now, outs=outs)

    def diff(self, id: str, olds: dict[str, Any], news: dict[str, Any]) -> DiffResult:
        """Decide whether ``update`` must run.

        Changes are reported when the stored state is incomplete or
        unreadable, when the slot count differs from ``news["count"]``, or
        when the current slot is older than the stored rotation period.
        """
        if any(olds.get(key) is None for key in STATE_FIELDS):
            logger.debug(f"Rotation {id}: incomplete state")
            return DiffResult(changes=True)

        timestamps = olds["timestamps"]
        index = olds["index"]
        if len(timestamps) != news.get("count"):
            logger.debug(f"Rotation {id}: slot count {len(timestamps)} -> {news.get('count')}")
            return DiffResult(changes=True)

        if not _is_index(index) or not 0 <= index < len(timestamps):
            logger.debug(f"Rotation {id}: index {index!r} out of range")
            return DiffResult(changes=True)

        try:
            expiry = expires_at(timestamps[index], olds["rotation_period_days"])
        except (TypeError, ValueError):
            logger.debug(f"Rotation {id}: unreadable timestamp {timestamps[index]!r}")
            return DiffResult(changes=True)

        if self._now() > expiry:
            logger.debug(f"Rotation {id}: slot {index} expired at {format_timestamp(expiry)}")
            return DiffResult(changes=True)
        return DiffResult(changes=False)

    def update(self, id: str, olds: dict[str, Any], news: dict[str, Any]) -> UpdateResult:
        """Converge the stored state toward ``news``.

        Resizes the slot list, then rotates to the next slot if the current
        one has expired. At most one existing slot is refreshed per call.
        """
        count = news["count"]
        period = news["rotation_period_days"]
        now = self._now()

        timestamps = list(olds.get("timestamps") or [])
        index = olds.get("index")
        if not _is_index(index):
            index = 0

        while len(timestamps) < count:
            timestamps.append(format_timestamp(now))
        if len(timestamps) > count:
            timestamps = timestamps[:count]
        index %= len(timestamps)

        try:
            expired = now > expires_at(timestamps[index], period)
        except (TypeError, ValueError):
            expired = True

        if expired:
            index = (index + 1) % len(timestamps)
            timestamps[index] = format_timestamp(now)
            logger.info(f"Rotation {id}: rotated to slot {index}")

        outs = {
            **olds,
            "index": index,
            "rotation_period_days": period,
            "timestamps": timestamps,
            "current_timestamp": timestamps[index],
        }
        return UpdateResult(outs=outs)
