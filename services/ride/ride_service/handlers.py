"""
Ride Service — コマンドハンドラ (純粋な意思決定部分)

コマンド(作成・編集・削除)を検証済みのドメインイベントに変換する。
ハンドラ自身は永続化しない。イベントストアへの追記と
リードモデルの更新は呼び出し側 (commands.py) の責務。

天気の取得はグレースフル・デグラデーション:
取得に失敗してもライドの作成・編集は失敗させない。
失敗は WeatherFetchFailed イベントとして「データ」で記録する。

バージョン番号はイベント種別ごとの固定タグ:
    RideCreated = 0, RideEdited = 1, RideDeleted = 3
    作成時: WeatherFetched = 1, WeatherFetchFailed = 2
    編集時: WeatherFetched / WeatherFetchFailed = 2
"""

import datetime as dt
import logging
from decimal import Decimal
from uuid import UUID

from .clock import Clock, SystemClock
from .entities import RIDE_WINDOW_DAYS, Ride, RideProjection, validate_ride
from .events import (
    DomainEvent,
    RideCreated,
    RideDeleted,
    RideEdited,
    WeatherFetched,
    WeatherFetchFailed,
)
from .results import Error, Failure, Result, Success
from .weather import Weather, WeatherService

logger = logging.getLogger(__name__)

CREATED_VERSION = 0
EDITED_VERSION = 1
DELETED_VERSION = 3

UNAVAILABLE_ON_CREATE = "Weather data unavailable - API returned null values"
UNAVAILABLE_ON_EDIT = "Updated weather data unavailable"

# (監査用の項目名, RideProjection の属性名)
EDITABLE_FIELDS = (
    ("Date", "date"),
    ("Hour", "hour"),
    ("Distance", "distance"),
    ("DistanceUnit", "distance_unit"),
    ("RideName", "ride_name"),
    ("StartLocation", "start_location"),
    ("EndLocation", "end_location"),
    ("Notes", "notes"),
)


async def _fetch_weather(
    weather_service: WeatherService,
    ride_id: UUID,
    user_id: str,
    latitude: Decimal,
    longitude: Decimal,
    ride_date: dt.date,
    hour: int,
    fetched_version: int,
    failed_version: int,
    unavailable_message: str,
    clock: Clock,
) -> tuple[Weather | None, DomainEvent]:
    """
    天気を取得し、結果を表すイベントを 1 つ返す。

    3 通りの結果:
        取得成功       → (weather, WeatherFetched)
        全項目が欠損   → (None, WeatherFetchFailed)
        例外           → (None, WeatherFetchFailed) — 例外は外に出さない

    asyncio.CancelledError は Exception ではないのでそのまま伝播する(キャンセル優先)。
    """
    try:
        weather = await weather_service.get_historical_weather(
            latitude, longitude, ride_date, hour
        )
    except Exception as exc:
        logger.warning(
            "Weather fetch failed for ride %s (%s, %s): %s",
            ride_id, latitude, longitude, exc,
        )
        return None, WeatherFetchFailed(
            aggregate_id=ride_id,
            timestamp=clock.now(),
            version=failed_version,
            user_id=user_id,
            error_message=f"Weather fetch error: {exc}",
        )

    if weather is None or weather.is_unavailable:
        logger.info("Weather unavailable for ride %s", ride_id)
        return None, WeatherFetchFailed(
            aggregate_id=ride_id,
            timestamp=clock.now(),
            version=failed_version,
            user_id=user_id,
            error_message=unavailable_message,
        )

    return weather, WeatherFetched(
        aggregate_id=ride_id,
        timestamp=clock.now(),
        version=fetched_version,
        user_id=user_id,
        weather=weather,
    )


def _require_weather_service(weather_service: WeatherService | None) -> WeatherService:
    if weather_service is None:
        raise ValueError("weather_service is required")
    return weather_service


async def handle_create_ride(
    weather_service: WeatherService,
    ride_id: UUID,
    user_id: str,
    date: dt.date,
    hour: int,
    distance: Decimal,
    distance_unit: str,
    ride_name: str,
    start_location: str,
    end_location: str,
    notes: str | None = None,
    latitude: Decimal | None = None,
    longitude: Decimal | None = None,
    clock: Clock | None = None,
) -> Result[tuple[RideCreated, list[DomainEvent]]]:
    """
    ライド作成コマンド

    1. 候補の Ride を組み立てて検証(失敗ならイベントは出さない)
    2. 緯度・経度が両方あれば天気を取得
    3. RideCreated イベントを生成
    """
    weather_service = _require_weather_service(weather_service)
    clock = clock or SystemClock()

    ride = Ride(
        ride_id=ride_id,
        user_id=user_id,
        date=date,
        hour=hour,
        distance=distance,
        distance_unit=distance_unit,
        ride_name=ride_name,
        start_location=start_location,
        end_location=end_location,
        notes=notes,
        created_timestamp=clock.now(),
    )
    validation = validate_ride(ride, clock)
    if isinstance(validation, Failure):
        return validation

    weather: Weather | None = None
    additional_events: list[DomainEvent] = []

    if latitude is not None and longitude is not None:
        weather, weather_event = await _fetch_weather(
            weather_service, ride_id, user_id, latitude, longitude, date, hour,
            fetched_version=1,
            failed_version=2,
            unavailable_message=UNAVAILABLE_ON_CREATE,
            clock=clock,
        )
        additional_events.append(weather_event)

    ride_created = RideCreated(
        aggregate_id=ride_id,
        timestamp=clock.now(),
        version=CREATED_VERSION,
        user_id=user_id,
        date=date,
        hour=hour,
        distance=distance,
        distance_unit=distance_unit,
        ride_name=ride_name,
        start_location=start_location,
        end_location=end_location,
        notes=notes,
        weather=weather,
    )
    return Success((ride_created, additional_events))


def changed_fields(current: RideProjection, new_values: dict) -> list[str]:
    """
    変更された項目名の一覧。

    新しい値が与えられ、かつ現在値と異なる項目だけが「変更」。
    None (未指定) は常に「変更なし」。
    """
    changed = []
    for field_name, attr in EDITABLE_FIELDS:
        new_value = new_values.get(attr)
        if new_value is not None and new_value != getattr(current, attr):
            changed.append(field_name)
    return changed


async def handle_edit_ride(
    weather_service: WeatherService,
    ride_id: UUID,
    user_id: str,
    current: RideProjection | None,
    new_date: dt.date | None = None,
    new_hour: int | None = None,
    new_distance: Decimal | None = None,
    new_distance_unit: str | None = None,
    new_ride_name: str | None = None,
    new_start_location: str | None = None,
    new_end_location: str | None = None,
    new_notes: str | None = None,
    latitude: Decimal | None = None,
    longitude: Decimal | None = None,
    clock: Clock | None = None,
) -> Result[tuple[RideEdited, list[DomainEvent]]]:
    """
    ライド編集コマンド

    1. 変更された項目を検出(監査用に記録)
    2. 編集後の Ride を組み立てて検証
    3. 日付か時刻が変わり、座標があれば天気を再取得
    4. RideEdited イベントを生成
    """
    weather_service = _require_weather_service(weather_service)
    clock = clock or SystemClock()

    if current is None:
        return Failure(Error.not_found(f"Ride {ride_id} was not found."))

    new_values = {
        "date": new_date,
        "hour": new_hour,
        "distance": new_distance,
        "distance_unit": new_distance_unit,
        "ride_name": new_ride_name,
        "start_location": new_start_location,
        "end_location": new_end_location,
        "notes": new_notes,
    }
    changed = changed_fields(current, new_values)

    merged = {
        attr: value if value is not None else getattr(current, attr)
        for attr, value in new_values.items()
    }
    updated = Ride(
        ride_id=ride_id,
        user_id=user_id,
        created_timestamp=current.created_timestamp,
        modified_timestamp=clock.now(),
        **merged,
    )
    validation = validate_ride(updated, clock)
    if isinstance(validation, Failure):
        return validation

    new_weather: Weather | None = None
    additional_events: list[DomainEvent] = []

    date_or_hour_changed = "Date" in changed or "Hour" in changed
    if date_or_hour_changed and latitude is not None and longitude is not None:
        new_weather, weather_event = await _fetch_weather(
            weather_service, ride_id, user_id, latitude, longitude,
            updated.date, updated.hour,
            fetched_version=2,
            failed_version=2,
            unavailable_message=UNAVAILABLE_ON_EDIT,
            clock=clock,
        )
        additional_events.append(weather_event)

    changed_values = {
        f"new_{attr}": new_values[attr]
        for field_name, attr in EDITABLE_FIELDS
        if field_name in changed
    }
    ride_edited = RideEdited(
        aggregate_id=ride_id,
        timestamp=clock.now(),
        version=EDITED_VERSION,
        user_id=user_id,
        changed_fields=changed,
        new_weather=new_weather,
        **changed_values,
    )
    return Success((ride_edited, additional_events))


def handle_delete_ride(
    ride_id: UUID,
    user_id: str,
    current: RideProjection | None,
    deletion_type: str = "manual_3m",
    clock: Clock | None = None,
) -> Result[RideDeleted]:
    """
    ライド削除コマンド

    作成から 90 日以内のライドだけ削除できる。
    RideDeleted イベント自体はログに永久に残る。
    """
    clock = clock or SystemClock()

    if current is None:
        return Failure(Error.not_found(f"Ride {ride_id} was not found."))

    age = current.with_age(clock).age_in_days
    if age > RIDE_WINDOW_DAYS:
        return Failure(
            Error.validation_failed("Rides older than 90 days cannot be deleted.")
        )

    return Success(
        RideDeleted(
            aggregate_id=ride_id,
            timestamp=clock.now(),
            version=DELETED_VERSION,
            user_id=user_id,
            deletion_type=deletion_type,
        )
    )
