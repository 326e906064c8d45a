"""
Ride Service — イベントストア

Event Sourcing の中核コンポーネント。
イベントを追記し、集約やユーザー単位で時系列に読み出す。

イベントは一度追記したら更新も削除もしない。
ライド(リードモデル)が削除されても、監査記録としてイベントは残る。

event_data にはエンベロープを含むイベント全体を JSON で保存し、
event_type 列の判別子で元のクラスに復元する。
"""

import logging
from uuid import UUID

from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from .events import DomainEvent, RideEvent, deserialize_event, serialize_event
from .schema import event_store

logger = logging.getLogger(__name__)


async def append_event(session: AsyncSession, event: DomainEvent) -> None:
    """
    イベントを 1 件追記してコミットする。

    1 件ずつコミットするので、途中でプロセスが落ちても
    それまでに追記したイベントは残る。
    """
    event_type, event_data = serialize_event(event)
    await session.execute(
        insert(event_store).values(
            event_id=event.event_id,
            aggregate_id=event.aggregate_id,
            aggregate_type=event.aggregate_type,
            event_type=event_type,
            event_data=event_data,
            timestamp=event.timestamp,
            version=event.version,
            user_id=event.user_id,
        )
    )
    await session.commit()
    logger.info(
        "Appended %s v%d for aggregate %s", event_type, event.version, event.aggregate_id
    )


def _decode(rows) -> list[RideEvent]:
    return [deserialize_event(row.event_type, row.event_data) for row in rows]


async def load_events(session: AsyncSession, aggregate_id: UUID) -> list[RideEvent]:
    """指定した集約の全イベントをバージョン順に読み出す。"""
    result = await session.execute(
        select(event_store.c.event_type, event_store.c.event_data)
        .where(event_store.c.aggregate_id == aggregate_id)
        .order_by(event_store.c.version.asc(), event_store.c.timestamp.asc())
    )
    return _decode(result.fetchall())


async def load_events_by_user(session: AsyncSession, user_id: str) -> list[RideEvent]:
    """指定ユーザーの全イベントを時系列順に読み出す。"""
    result = await session.execute(
        select(event_store.c.event_type, event_store.c.event_data)
        .where(event_store.c.user_id == user_id)
        .order_by(event_store.c.timestamp.asc())
    )
    return _decode(result.fetchall())


async def load_all_events(session: AsyncSession) -> list[RideEvent]:
    """すべてのイベントを時系列順に返す(デバッグ・保守用)。"""
    result = await session.execute(
        select(event_store.c.event_type, event_store.c.event_data)
        .order_by(event_store.c.timestamp.asc(), event_store.c.version.asc())
    )
    return _decode(result.fetchall())
