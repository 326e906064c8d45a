"""
Ride Service — FastAPI エントリーポイント

CQRS パターンに従い、Command と Query のエンドポイントを分離。
Event Sourcing により、すべての状態変更をイベントとして記録する。

ユーザーの識別は X-User-Id ヘッダで受け取る(認証は前段のゲートウェイの責務)。
コマンドの Failure は Error の重大度から HTTP ステータスに変換する。
"""

import datetime as dt
import logging
from contextlib import asynccontextmanager
from decimal import Decimal
from uuid import UUID, uuid4

import redis.asyncio as aioredis
from fastapi import Depends, FastAPI, Header, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from . import commands, config, event_store, queries
from .clock import Clock, SystemClock
from .entities import MAX_NOTES_LENGTH
from .events import event_to_dict
from .projections import rebuild_projection
from .results import Error, Failure, http_status
from .schema import create_schema
from .weather import WeatherService
from .weather_client import OpenMeteoWeatherService

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

engine = create_async_engine(config.DATABASE_URL, echo=config.SQL_ECHO)
async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
redis_pool: aioredis.Redis | None = None
weather_service = OpenMeteoWeatherService()


@asynccontextmanager
async def lifespan(app: FastAPI):
    global redis_pool
    await create_schema(engine)
    redis_pool = aioredis.from_url(config.REDIS_URL, decode_responses=True)
    yield
    await redis_pool.aclose()
    await engine.dispose()


app = FastAPI(title="Ride Service", lifespan=lifespan)


# ── 依存関係 ────────────────────────────────────

async def get_session():
    async with async_session() as session:
        yield session


def get_redis() -> aioredis.Redis | None:
    return redis_pool


def get_weather_service() -> WeatherService:
    return weather_service


def get_clock() -> Clock:
    return SystemClock()


# ── Request Models ───────────────────────────────

class CreateRideRequest(BaseModel):
    date: dt.date
    hour: int
    distance: Decimal
    distance_unit: str = "miles"
    ride_name: str
    start_location: str
    end_location: str
    notes: str | None = Field(default=None, max_length=MAX_NOTES_LENGTH)
    latitude: Decimal | None = None
    longitude: Decimal | None = None


class EditRideRequest(BaseModel):
    date: dt.date | None = None
    hour: int | None = None
    distance: Decimal | None = None
    distance_unit: str | None = None
    ride_name: str | None = None
    start_location: str | None = None
    end_location: str | None = None
    notes: str | None = Field(default=None, max_length=MAX_NOTES_LENGTH)
    latitude: Decimal | None = None
    longitude: Decimal | None = None


def _error_response(error: Error) -> JSONResponse:
    return JSONResponse(
        status_code=http_status(error),
        content={"code": error.code, "message": error.message},
    )


def _missing_user() -> JSONResponse:
    return _error_response(Error.unauthorized("User ID not found"))


# ── Command Endpoints (Write 側) ─────────────────

@app.post("/commands/rides", status_code=201)
async def cmd_create_ride(
    req: CreateRideRequest,
    x_user_id: str | None = Header(default=None),
    session: AsyncSession = Depends(get_session),
    redis: aioredis.Redis | None = Depends(get_redis),
    weather: WeatherService = Depends(get_weather_service),
    clock: Clock = Depends(get_clock),
):
    """ライド作成コマンド"""
    if not x_user_id:
        return _missing_user()
    result = await commands.create_ride(
        session, redis, weather,
        uuid4(), x_user_id,
        req.date, req.hour, req.distance, req.distance_unit,
        req.ride_name, req.start_location, req.end_location,
        req.notes, req.latitude, req.longitude,
        clock=clock,
    )
    if isinstance(result, Failure):
        return _error_response(result.error)
    return result.value.model_dump(mode="json")


@app.put("/commands/rides/{ride_id}")
async def cmd_edit_ride(
    ride_id: UUID,
    req: EditRideRequest,
    x_user_id: str | None = Header(default=None),
    session: AsyncSession = Depends(get_session),
    redis: aioredis.Redis | None = Depends(get_redis),
    weather: WeatherService = Depends(get_weather_service),
    clock: Clock = Depends(get_clock),
):
    """ライド編集コマンド(日付・時刻が変われば天気を再取得)"""
    if not x_user_id:
        return _missing_user()
    result = await commands.edit_ride(
        session, redis, weather, ride_id, x_user_id,
        new_date=req.date,
        new_hour=req.hour,
        new_distance=req.distance,
        new_distance_unit=req.distance_unit,
        new_ride_name=req.ride_name,
        new_start_location=req.start_location,
        new_end_location=req.end_location,
        new_notes=req.notes,
        latitude=req.latitude,
        longitude=req.longitude,
        clock=clock,
    )
    if isinstance(result, Failure):
        return _error_response(result.error)
    return result.value.model_dump(mode="json")


@app.delete("/commands/rides/{ride_id}")
async def cmd_delete_ride(
    ride_id: UUID,
    x_user_id: str | None = Header(default=None),
    session: AsyncSession = Depends(get_session),
    redis: aioredis.Redis | None = Depends(get_redis),
    clock: Clock = Depends(get_clock),
):
    """ライド削除コマンド(作成から 90 日以内)"""
    if not x_user_id:
        return _missing_user()
    result = await commands.delete_ride(session, redis, ride_id, x_user_id, clock=clock)
    if isinstance(result, Failure):
        return _error_response(result.error)
    return {"ride_id": str(result.value), "deleted": True}


# ── Query Endpoints (Read 側) ────────────────────

@app.get("/queries/rides")
async def query_list_rides(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=200),
    x_user_id: str | None = Header(default=None),
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    """ユーザーのライド一覧をリードモデルから取得"""
    if not x_user_id:
        return _missing_user()
    rides = await queries.list_projections(session, x_user_id, page, page_size, clock)
    total = await queries.count_projections(session, x_user_id)
    return {
        "data": [ride.model_dump(mode="json") for ride in rides],
        "total": total,
        "page": page,
        "page_size": page_size,
    }


@app.get("/queries/rides/{ride_id}")
async def query_get_ride(
    ride_id: UUID,
    x_user_id: str | None = Header(default=None),
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    """指定ライドをリードモデルから取得"""
    if not x_user_id:
        return _missing_user()
    ride = await queries.get_projection(session, ride_id, clock)
    if ride is None:
        return _error_response(Error.not_found("Ride not found"))
    if ride.user_id != x_user_id:
        return _error_response(Error.forbidden("You do not have access to this ride."))
    return ride.model_dump(mode="json")


# ── Event Store / 保守 ──────────────────────────

@app.get("/events")
async def get_all_events(session: AsyncSession = Depends(get_session)):
    """イベントストアの全イベントを返す(デバッグ用)"""
    events = await event_store.load_all_events(session)
    return [event_to_dict(e) for e in events]


@app.get("/events/{aggregate_id}")
async def get_aggregate_events(
    aggregate_id: UUID, session: AsyncSession = Depends(get_session)
):
    """指定集約のイベントを返す"""
    events = await event_store.load_events(session, aggregate_id)
    return [event_to_dict(e) for e in events]


@app.post("/maintenance/rides/{ride_id}/rebuild")
async def rebuild_ride(
    ride_id: UUID,
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    """イベントログからリードモデルを作り直す"""
    rebuilt = await rebuild_projection(session, ride_id, clock)
    if rebuilt is None:
        return {"ride_id": str(ride_id), "projection": None}
    return {"ride_id": str(ride_id), "projection": rebuilt.model_dump(mode="json")}


@app.get("/health")
async def health():
    return {"status": "ok", "service": "ride-service"}
