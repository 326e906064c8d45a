"""
Ride Service — イベント定義

Event Sourcing では、ドメインで発生した事実(イベント)を定義する。
イベントは過去形で命名し、不変(immutable)として扱う。

すべてのイベントは共通のエンベロープ(event_id, aggregate_id, version ...)を持ち、
event_type を判別子 (discriminator) として永続化する。
復元時はこの判別子でクラスを引き当てる — 実行時の型推測には頼らない。
"""

import datetime as dt
import json
from decimal import Decimal
from typing import Literal, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from .weather import Weather

RIDE_AGGREGATE = "Ride"
DEFAULT_SOURCE_API = "NOAA"


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class DomainEvent(BaseModel):
    """全イベント共通のエンベロープ"""
    model_config = ConfigDict(frozen=True)

    event_id: UUID = Field(default_factory=uuid4)
    aggregate_id: UUID
    aggregate_type: str = RIDE_AGGREGATE
    timestamp: dt.datetime = Field(default_factory=_utcnow)
    version: int
    user_id: str


class RideCreated(DomainEvent):
    """ライドが記録された"""
    event_type: Literal["RideCreated"] = "RideCreated"
    date: dt.date
    hour: int
    distance: Decimal
    distance_unit: str
    ride_name: str
    start_location: str
    end_location: str
    notes: str | None = None
    weather: Weather | None = None


class RideEdited(DomainEvent):
    """ライドが編集された — 変更された項目だけ新しい値を持つ"""
    event_type: Literal["RideEdited"] = "RideEdited"
    changed_fields: tuple[str, ...]
    new_date: dt.date | None = None
    new_hour: int | None = None
    new_distance: Decimal | None = None
    new_distance_unit: str | None = None
    new_ride_name: str | None = None
    new_start_location: str | None = None
    new_end_location: str | None = None
    new_notes: str | None = None
    new_weather: Weather | None = None


class WeatherFetched(DomainEvent):
    """天気を取得できた"""
    event_type: Literal["WeatherFetched"] = "WeatherFetched"
    weather: Weather
    source_api: str = DEFAULT_SOURCE_API


class WeatherFetchFailed(DomainEvent):
    """天気を取得できなかった(ライドの記録自体は成功している)"""
    event_type: Literal["WeatherFetchFailed"] = "WeatherFetchFailed"
    error_message: str | None = None
    source_api: str = DEFAULT_SOURCE_API


class RideDeleted(DomainEvent):
    """ライドが削除された。イベント自体は監査記録として残る。"""
    event_type: Literal["RideDeleted"] = "RideDeleted"
    deletion_type: str = "manual_3m"


RideEvent = Union[RideCreated, RideEdited, WeatherFetched, WeatherFetchFailed, RideDeleted]

EVENT_TYPES: dict[str, type[DomainEvent]] = {
    "RideCreated": RideCreated,
    "RideEdited": RideEdited,
    "WeatherFetched": WeatherFetched,
    "WeatherFetchFailed": WeatherFetchFailed,
    "RideDeleted": RideDeleted,
}


# ── シリアライズ ─────────────────────────────────

def event_to_dict(event: DomainEvent) -> dict:
    """JSON にそのまま載せられる dict (Decimal は文字列、日時は ISO 形式)"""
    return event.model_dump(mode="json")


def serialize_event(event: DomainEvent) -> tuple[str, str]:
    """(event_type, JSON 文字列) を返す。"""
    return event.event_type, json.dumps(event_to_dict(event))


def deserialize_event(event_type: str, data: str | dict) -> RideEvent:
    """永続化された判別子に従ってイベントを復元する。"""
    cls = EVENT_TYPES.get(event_type)
    if cls is None:
        raise ValueError(f"Unknown event type: {event_type!r}")
    if isinstance(data, str):
        data = json.loads(data)
    return cls.model_validate(data)
