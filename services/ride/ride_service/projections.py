"""
Ride Service — イベント投影 (Projection)

ハンドラが返したイベントをリードモデル (RideProjection) に反映する。

通常はコマンドの呼び出し側がその場で反映する(呼び出し側駆動の同期)。
イベント追記の後、リードモデル更新の前にプロセスが落ちると
ログの方が先に進んだ状態になるので、rebuild_projection で
イベントログからリードモデルを作り直せるようにしておく。
"""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from . import event_store, queries
from .clock import Clock, SystemClock
from .entities import RideProjection
from .events import DomainEvent, RideCreated, RideDeleted, RideEdited

logger = logging.getLogger(__name__)


def projection_from_created(event: RideCreated) -> RideProjection:
    return RideProjection(
        ride_id=event.aggregate_id,
        user_id=event.user_id,
        date=event.date,
        hour=event.hour,
        distance=event.distance,
        distance_unit=event.distance_unit,
        ride_name=event.ride_name,
        start_location=event.start_location,
        end_location=event.end_location,
        notes=event.notes,
        weather=event.weather,
        created_timestamp=event.timestamp,
    )


def apply_edit(projection: RideProjection, event: RideEdited) -> RideProjection:
    """
    変更された項目だけ上書きしたコピーを返す。

    日付か時刻が変わったのに新しい天気が無い場合(座標なし・取得失敗)、
    古い天気は別の日時のものなので消す。
    """
    changes = {
        attr: getattr(event, f"new_{attr}")
        for attr in (
            "date", "hour", "distance", "distance_unit",
            "ride_name", "start_location", "end_location", "notes",
        )
        if getattr(event, f"new_{attr}") is not None
    }
    if event.new_weather is not None:
        changes["weather"] = event.new_weather
    elif "Date" in event.changed_fields or "Hour" in event.changed_fields:
        changes["weather"] = None
    changes["modified_timestamp"] = event.timestamp
    return projection.model_copy(update=changes)


def _apply_created(projection: RideProjection | None, event: RideCreated) -> RideProjection:
    return projection_from_created(event)


def _apply_edited(projection: RideProjection | None, event: RideEdited) -> RideProjection | None:
    if projection is None:
        return None
    return apply_edit(projection, event)


def _apply_deleted(projection: RideProjection | None, event: RideDeleted) -> None:
    return None


def apply_event(
    projection: RideProjection | None, event: DomainEvent
) -> RideProjection | None:
    """
    イベントタイプに応じた投影ハンドラを呼び出す。

    WeatherFetched / WeatherFetchFailed は記録用。天気は
    RideCreated / RideEdited 側にも載っているので投影では使わない。
    """
    handler = {
        "RideCreated": _apply_created,
        "RideEdited": _apply_edited,
        "RideDeleted": _apply_deleted,
    }.get(event.event_type)
    if handler:
        return handler(projection, event)
    return projection


def replay(events: list[DomainEvent]) -> RideProjection | None:
    """イベント列からリードモデルを再構築する(時系列順に適用)。"""
    projection: RideProjection | None = None
    for event in sorted(events, key=lambda e: (e.timestamp, e.version)):
        projection = apply_event(projection, event)
    return projection


async def rebuild_projection(
    session: AsyncSession,
    ride_id: UUID,
    clock: Clock | None = None,
) -> RideProjection | None:
    """
    保守用: イベントログから 1 件のリードモデルを作り直す。

    ログに RideCreated が無い、または RideDeleted で終わっている場合は
    リードモデルを削除して None を返す。
    """
    clock = clock or SystemClock()
    events = await event_store.load_events(session, ride_id)
    rebuilt = replay(events)
    existing = await queries.get_projection(session, ride_id, clock)

    if rebuilt is None:
        if existing is not None:
            await queries.delete_projection(session, ride_id)
        logger.info("Rebuilt ride %s from %d events: removed", ride_id, len(events))
        return None

    # ログに現れない状態(削除予定・公開設定)は既存の値を引き継ぐ
    if existing is not None:
        rebuilt = rebuilt.model_copy(update={
            "deletion_status": existing.deletion_status,
            "community_status": existing.community_status,
        })
        saved = await queries.update_projection(session, rebuilt, clock)
    else:
        saved = await queries.create_projection(session, rebuilt, clock)

    logger.info("Rebuilt ride %s from %d events", ride_id, len(events))
    return saved
