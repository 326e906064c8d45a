"""
Ride Service — リードモデルのストア (CQRS の Read 側)

ride_projections テーブルに対する CRUD。
バックグラウンドでイベントから投影するプロセスは無い —
コマンドの呼び出し側 (commands.py) がハンドラの結果を明示的に反映する。

書き込みは 1 回ごとにコミットする。イベント追記とリードモデル更新を
1 つのトランザクションにはまとめない。
"""

from uuid import UUID

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .clock import Clock, SystemClock, as_utc
from .entities import RideProjection
from .schema import ride_projections
from .weather import Weather

ACTIVE = "active"


def _to_row(projection: RideProjection) -> dict:
    return {
        "ride_id": projection.ride_id,
        "user_id": projection.user_id,
        "date": projection.date,
        "hour": projection.hour,
        "distance": projection.distance,
        "distance_unit": projection.distance_unit,
        "ride_name": projection.ride_name,
        "start_location": projection.start_location,
        "end_location": projection.end_location,
        "notes": projection.notes,
        "weather": projection.weather.model_dump(mode="json") if projection.weather else None,
        "created_timestamp": projection.created_timestamp,
        "modified_timestamp": projection.modified_timestamp,
        "deletion_status": projection.deletion_status,
        "community_status": projection.community_status,
    }


def _from_row(row, clock: Clock) -> RideProjection:
    projection = RideProjection(
        ride_id=row.ride_id,
        user_id=row.user_id,
        date=row.date,
        hour=row.hour,
        distance=row.distance,
        distance_unit=row.distance_unit,
        ride_name=row.ride_name,
        start_location=row.start_location,
        end_location=row.end_location,
        notes=row.notes,
        weather=Weather.model_validate(row.weather) if row.weather else None,
        created_timestamp=as_utc(row.created_timestamp),
        modified_timestamp=as_utc(row.modified_timestamp) if row.modified_timestamp else None,
        deletion_status=row.deletion_status,
        community_status=row.community_status,
    )
    return projection.with_age(clock)


async def create_projection(
    session: AsyncSession,
    projection: RideProjection,
    clock: Clock | None = None,
) -> RideProjection:
    await session.execute(insert(ride_projections).values(**_to_row(projection)))
    await session.commit()
    return projection.with_age(clock or SystemClock())


async def get_projection(
    session: AsyncSession,
    ride_id: UUID,
    clock: Clock | None = None,
) -> RideProjection | None:
    """リードモデルからライドを 1 件取得する(削除予定のものも含む)。"""
    result = await session.execute(
        select(ride_projections).where(ride_projections.c.ride_id == ride_id)
    )
    row = result.fetchone()
    if not row:
        return None
    return _from_row(row, clock or SystemClock())


async def list_projections(
    session: AsyncSession,
    user_id: str,
    page_number: int = 1,
    page_size: int = 50,
    clock: Clock | None = None,
) -> list[RideProjection]:
    """ユーザーの有効なライドを新しい順にページ単位で返す。"""
    if page_number < 1 or page_size < 1:
        raise ValueError("page_number and page_size must be positive")
    clock = clock or SystemClock()
    result = await session.execute(
        select(ride_projections)
        .where(
            ride_projections.c.user_id == user_id,
            ride_projections.c.deletion_status == ACTIVE,
        )
        .order_by(ride_projections.c.created_timestamp.desc())
        .offset((page_number - 1) * page_size)
        .limit(page_size)
    )
    return [_from_row(row, clock) for row in result.fetchall()]


async def count_projections(session: AsyncSession, user_id: str) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(ride_projections)
        .where(
            ride_projections.c.user_id == user_id,
            ride_projections.c.deletion_status == ACTIVE,
        )
    )
    return result.scalar_one()


async def update_projection(
    session: AsyncSession,
    projection: RideProjection,
    clock: Clock | None = None,
) -> RideProjection:
    """最後に書いたものが勝つ(楽観ロックなし)。"""
    row = _to_row(projection)
    ride_id = row.pop("ride_id")
    await session.execute(
        update(ride_projections)
        .where(ride_projections.c.ride_id == ride_id)
        .values(**row)
    )
    await session.commit()
    return projection.with_age(clock or SystemClock())


async def delete_projection(session: AsyncSession, ride_id: UUID) -> None:
    await session.execute(
        delete(ride_projections).where(ride_projections.c.ride_id == ride_id)
    )
    await session.commit()
