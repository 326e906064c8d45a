"""
Ride Service — 時計

日付の検証(未来日・90日以内)や age_in_days の計算は
datetime.now() を直接呼ばず、注入された Clock を使う。
テストでは FixedClock で「今日」を固定する。
"""

from datetime import date, datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        """タイムゾーン付き UTC の現在時刻"""
        ...

    def today(self) -> date:
        ...


class SystemClock:
    """実時間"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def today(self) -> date:
        return self.now().date()


class FixedClock:
    """固定時刻(テスト用)。advance で明示的に進める。"""

    def __init__(self, at: datetime | None = None) -> None:
        self._now = at or datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def today(self) -> date:
        return self._now.date()

    def advance(self, **kwargs: float) -> None:
        self._now = self._now + timedelta(**kwargs)


def as_utc(value: datetime) -> datetime:
    """DB から戻った naive な datetime を UTC として扱う(SQLite はタイムゾーンを保持しない)。"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
