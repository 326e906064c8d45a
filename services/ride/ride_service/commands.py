"""
Ride Service — コマンド (CQRS の Write 側)

ハンドラが生成したイベントを:
1. イベントストアに追記
2. リードモデルに反映
3. Redis Pub/Sub で発行(他サービスへの通知)

ハンドラの Result はそのまま返す。検証エラーや権限エラーは Failure、
永続化の例外は呼び出し元(FastAPI)まで伝播させる。

イベント追記とリードモデル更新は別々にコミットする。
間で落ちた場合は projections.rebuild_projection で復旧する。
"""

import datetime as dt
import json
import logging
from decimal import Decimal
from uuid import UUID

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import AsyncSession

from . import config, event_store, handlers, queries
from .clock import Clock, SystemClock
from .entities import RideProjection
from .events import DomainEvent, event_to_dict
from .projections import apply_edit, projection_from_created
from .results import Error, Failure, Result, Success
from .weather import WeatherService

logger = logging.getLogger(__name__)


async def _publish(redis: aioredis.Redis | None, events: list[DomainEvent]) -> None:
    """追記済みのイベントを通知する(fire-and-forget)。"""
    if redis is None:
        return
    for event in events:
        await redis.publish(config.RIDE_EVENTS_CHANNEL, json.dumps({
            "event_type": event.event_type,
            "data": event_to_dict(event),
        }))


async def _append_all(session: AsyncSession, events: list[DomainEvent]) -> None:
    for event in events:
        await event_store.append_event(session, event)


async def _load_owned(
    session: AsyncSession, ride_id: UUID, user_id: str, clock: Clock
) -> Result[RideProjection]:
    current = await queries.get_projection(session, ride_id, clock)
    if current is None:
        return Failure(Error.not_found(f"Ride {ride_id} was not found."))
    if current.user_id != user_id:
        return Failure(Error.forbidden("You do not have access to this ride."))
    return Success(current)


async def create_ride(
    session: AsyncSession,
    redis: aioredis.Redis | None,
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
) -> Result[RideProjection]:
    """
    ライド作成

    1. ハンドラで RideCreated (+ 天気イベント) を生成
    2. イベントストアに追記(RideCreated が先)
    3. リードモデルを作成
    4. Redis で発行
    """
    clock = clock or SystemClock()
    result = await handlers.handle_create_ride(
        weather_service, ride_id, user_id, date, hour, distance, distance_unit,
        ride_name, start_location, end_location, notes, latitude, longitude,
        clock=clock,
    )
    if isinstance(result, Failure):
        return result

    ride_created, additional_events = result.value
    events = [ride_created, *additional_events]
    await _append_all(session, events)

    created = await queries.create_projection(
        session, projection_from_created(ride_created), clock
    )
    await _publish(redis, events)
    return Success(created)


async def edit_ride(
    session: AsyncSession,
    redis: aioredis.Redis | None,
    weather_service: WeatherService,
    ride_id: UUID,
    user_id: str,
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
) -> Result[RideProjection]:
    """
    ライド編集

    現在のリードモデルと比較して変更点を決める。集約バージョンの
    チェックはしないので、同時編集はリードモデル上は後勝ちになる
    (イベントログには両方残る)。
    """
    clock = clock or SystemClock()
    owned = await _load_owned(session, ride_id, user_id, clock)
    if isinstance(owned, Failure):
        return owned
    current = owned.value

    result = await handlers.handle_edit_ride(
        weather_service, ride_id, user_id, current,
        new_date=new_date,
        new_hour=new_hour,
        new_distance=new_distance,
        new_distance_unit=new_distance_unit,
        new_ride_name=new_ride_name,
        new_start_location=new_start_location,
        new_end_location=new_end_location,
        new_notes=new_notes,
        latitude=latitude,
        longitude=longitude,
        clock=clock,
    )
    if isinstance(result, Failure):
        return result

    ride_edited, additional_events = result.value
    events = [ride_edited, *additional_events]
    await _append_all(session, events)

    updated = await queries.update_projection(
        session, apply_edit(current, ride_edited), clock
    )
    await _publish(redis, events)
    return Success(updated)


async def delete_ride(
    session: AsyncSession,
    redis: aioredis.Redis | None,
    ride_id: UUID,
    user_id: str,
    clock: Clock | None = None,
) -> Result[UUID]:
    """
    ライド削除(作成から 90 日以内のみ)

    リードモデルは物理削除する。RideDeleted を含むイベントは残る。
    """
    clock = clock or SystemClock()
    owned = await _load_owned(session, ride_id, user_id, clock)
    if isinstance(owned, Failure):
        return owned

    result = handlers.handle_delete_ride(ride_id, user_id, owned.value, clock=clock)
    if isinstance(result, Failure):
        return result

    await event_store.append_event(session, result.value)
    await queries.delete_projection(session, ride_id)
    await _publish(redis, [result.value])
    return Success(ride_id)
