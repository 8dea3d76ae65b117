from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta

_SEARCH_FIELDS = ("name", "email", "company", "whatsapp")


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def _as_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@dataclass(frozen=True)
class LeadFilters:
    """Search and creation-date window applied before projecting the board."""

    search: str | None = None
    created_from: date | None = None
    created_to: date | None = None

    @classmethod
    def last_days(cls, days: int, search: str | None = None, now: datetime | None = None) -> LeadFilters:
        now = now or datetime.now(UTC)
        return cls(search=search, created_from=(now - timedelta(days=days)).date(), created_to=now.date())

    def window(self) -> tuple[datetime, datetime] | None:
        if self.created_from is None:
            return None
        start = datetime.combine(_as_date(self.created_from), time.min, tzinfo=UTC)
        end_day = _as_date(self.created_to) if self.created_to else _as_date(self.created_from)
        end = datetime.combine(end_day, time.max, tzinfo=UTC)
        return start, end

    def matches_search(self, lead) -> bool:
        if not (self.search or "").strip():
            return True
        query = self.search.lower()
        for field_name in _SEARCH_FIELDS:
            value = getattr(lead, field_name, None)
            if value and query in value.lower():
                return True
        return False

    def matches_window(self, lead) -> bool:
        window = self.window()
        if window is None:
            return True
        start, end = window
        created = _as_aware(lead.created_at)
        return start <= created <= end

    def apply(self, leads: Iterable) -> list:
        return [lead for lead in leads if self.matches_search(lead) and self.matches_window(lead)]
