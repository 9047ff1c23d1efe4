"""Recurrence rules for molecule templates.

A RecurrenceRule is an immutable value: a repeat policy (daily, weekly,
monthly or a custom set of weekdays), an anchor date the sequence is counted
from, and a termination condition. ``occurrences()`` expands it lazily into
concrete dates using dateutil's rrule engine.

Weekday numbers follow the app convention: 0 = Sunday ... 6 = Saturday.
"""

from __future__ import annotations

from datetime import date, datetime, time
from enum import Enum
from typing import FrozenSet, Iterable, Iterator, Optional

from dateutil.rrule import DAILY, FR, MO, MONTHLY, SA, SU, TH, TU, WE, WEEKLY, rrule
from pydantic import BaseModel, ConfigDict, Field, field_validator


DAY_SHORT_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


class RecurrenceFrequency(str, Enum):
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"
    custom = "custom"

    @property
    def display_name(self) -> str:
        return {
            RecurrenceFrequency.daily: "Every Day",
            RecurrenceFrequency.weekly: "Every Week",
            RecurrenceFrequency.monthly: "Every Month",
            RecurrenceFrequency.custom: "Custom",
        }[self]


class EndRuleType(str, Enum):
    never = "never"
    on_date = "onDate"
    after_occurrences = "afterOccurrences"


class EndRule(BaseModel):
    """When a recurring sequence stops producing occurrences."""

    model_config = ConfigDict(frozen=True)

    kind: EndRuleType = EndRuleType.never
    end_date: Optional[date] = None
    count: Optional[int] = None

    @classmethod
    def never(cls) -> "EndRule":
        return cls(kind=EndRuleType.never)

    @classmethod
    def on(cls, end_date: date) -> "EndRule":
        return cls(kind=EndRuleType.on_date, end_date=end_date)

    @classmethod
    def after(cls, count: int) -> "EndRule":
        return cls(kind=EndRuleType.after_occurrences, count=count)

    @property
    def is_degenerate(self) -> bool:
        """True when the rule can never admit an occurrence."""
        if self.kind == EndRuleType.after_occurrences:
            return self.count is None or self.count < 1
        return False


def days_description(days: Iterable[int]) -> str:
    """[1, 3, 5] -> "Mon, Wed, Fri". Out-of-range values are dropped."""
    return ", ".join(DAY_SHORT_NAMES[d] for d in sorted(set(days)) if 0 <= d <= 6)


# Indexed by app weekday number (0 = Sunday).
_RRULE_WEEKDAYS = (SU, MO, TU, WE, TH, FR, SA)


class RecurrenceRule(BaseModel):
    """Immutable repeat policy anchored at a reference date."""

    model_config = ConfigDict(frozen=True)

    frequency: RecurrenceFrequency = RecurrenceFrequency.daily
    anchor: date
    weekdays: FrozenSet[int] = Field(default_factory=frozenset)
    end_rule: EndRule = Field(default_factory=EndRule.never)

    @field_validator("weekdays")
    @classmethod
    def _weekdays_in_range(cls, value: FrozenSet[int]) -> FrozenSet[int]:
        bad = sorted(d for d in value if not 0 <= d <= 6)
        if bad:
            raise ValueError(f"weekday values must be 0-6, got {bad}")
        return value

    @field_validator("anchor", mode="before")
    @classmethod
    def _anchor_to_date(cls, value):
        if isinstance(value, datetime):
            return value.date()
        return value

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    @property
    def sorted_weekdays(self) -> list[int]:
        return sorted(self.weekdays)

    @property
    def description(self) -> str:
        text = self.frequency.display_name
        if self.frequency == RecurrenceFrequency.custom and self.weekdays:
            text = f"Every {days_description(self.weekdays)}"

        if self.end_rule.kind == EndRuleType.on_date and self.end_rule.end_date:
            text += f" until {self.end_rule.end_date.isoformat()}"
        elif self.end_rule.kind == EndRuleType.after_occurrences and self.end_rule.count:
            text += f" ({self.end_rule.count}x)"
        return text

    @property
    def is_configured(self) -> bool:
        if self.frequency == RecurrenceFrequency.custom:
            return bool(self.weekdays)
        return True

    # ------------------------------------------------------------------
    # Expansion
    # ------------------------------------------------------------------

    def _build_rrule(self) -> Optional[rrule]:
        """Build a fresh rrule for this rule, or None if it yields nothing."""
        if not self.is_configured or self.end_rule.is_degenerate:
            return None

        dtstart = datetime.combine(self.anchor, time.min)
        kwargs = {"dtstart": dtstart, "cache": False}

        # Termination is counted from the anchor, never from a query window.
        if self.end_rule.kind == EndRuleType.after_occurrences:
            kwargs["count"] = self.end_rule.count
        elif self.end_rule.kind == EndRuleType.on_date and self.end_rule.end_date:
            if self.end_rule.end_date < self.anchor:
                return None
            kwargs["until"] = datetime.combine(self.end_rule.end_date, time.max)

        if self.frequency == RecurrenceFrequency.daily:
            return rrule(DAILY, **kwargs)
        if self.frequency == RecurrenceFrequency.weekly:
            return rrule(WEEKLY, **kwargs)
        if self.frequency == RecurrenceFrequency.monthly:
            day = self.anchor.day
            if day <= 28:
                return rrule(MONTHLY, bymonthday=day, **kwargs)
            # Clamp to the last valid day: take the latest of 28..day in each month.
            return rrule(
                MONTHLY,
                bymonthday=tuple(range(28, day + 1)),
                bysetpos=-1,
                **kwargs,
            )
        if self.frequency == RecurrenceFrequency.custom:
            byweekday = tuple(_RRULE_WEEKDAYS[d] for d in self.sorted_weekdays)
            return rrule(DAILY, byweekday=byweekday, **kwargs)
        raise AssertionError(f"unhandled frequency {self.frequency!r}")

    def occurrences(self, start: date, end: Optional[date] = None) -> Iterator[date]:
        """Yield occurrence dates in ``[start, end)`` in ascending order.

        ``end=None`` leaves the range open; for a ``never`` rule the
        generator is then infinite and the caller must bound it. Each call
        starts from a new iterator, so repeated calls yield the same dates.
        """
        if isinstance(start, datetime):
            start = start.date()
        if isinstance(end, datetime):
            end = end.date()
        if end is not None and end <= start:
            return

        rule = self._build_rrule()
        if rule is None:
            return

        previous: Optional[date] = None
        for occurrence in rule:
            day = occurrence.date()
            if end is not None and day >= end:
                return
            if day < start or day == previous:
                continue
            previous = day
            yield day

    def occurrence_count(self, start: date, end: date) -> int:
        return sum(1 for _ in self.occurrences(start, end))
