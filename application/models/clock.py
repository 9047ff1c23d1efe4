"""Datetime convention for scheduled data.

Every stored datetime is naive local wall-clock time, the same form
``datetime.combine`` produces when an occurrence is materialized.
Timezone-aware input is converted to local time and stripped of its tzinfo
before it is stored or compared.
"""

from datetime import datetime
from typing import Optional


def naive_local(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def naive_local_or_none(value: Optional[datetime]) -> Optional[datetime]:
    return naive_local(value) if value is not None else None


def local_now(now: Optional[datetime] = None) -> datetime:
    """``now`` in the stored convention, defaulting to the current time."""
    return naive_local(now) if now is not None else datetime.now()
