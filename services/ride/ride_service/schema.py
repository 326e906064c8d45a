"""
Ride Service — テーブル定義

event_store:      すべてのドメインイベント(追記のみ・更新/削除しない)
ride_projections: ライドのリードモデル(現在の状態)

PostgreSQL (asyncpg) と SQLite (aiosqlite, テスト用) の両方で動くよう
SQLAlchemy の型で定義する。
"""

from sqlalchemy import (
    JSON,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    Uuid,
)
from sqlalchemy.ext.asyncio import AsyncEngine

metadata = MetaData()

event_store = Table(
    "event_store",
    metadata,
    Column("event_id", Uuid, primary_key=True),
    Column("aggregate_id", Uuid, nullable=False),
    Column("aggregate_type", String(64), nullable=False),
    Column("event_type", String(64), nullable=False),
    Column("event_data", Text, nullable=False),
    Column("timestamp", DateTime(timezone=True), nullable=False),
    Column("version", Integer, nullable=False),
    Column("user_id", String(450), nullable=False),
    Index("ix_event_store_aggregate", "aggregate_id", "aggregate_type"),
    Index("ix_event_store_user", "user_id", "timestamp"),
)

ride_projections = Table(
    "ride_projections",
    metadata,
    Column("ride_id", Uuid, primary_key=True),
    Column("user_id", String(450), nullable=False),
    Column("date", Date, nullable=False),
    Column("hour", Integer, nullable=False),
    Column("distance", Numeric(18, 2), nullable=False),
    Column("distance_unit", String(16), nullable=False),
    Column("ride_name", String(200), nullable=False),
    Column("start_location", String(200), nullable=False),
    Column("end_location", String(200), nullable=False),
    Column("notes", Text, nullable=True),
    Column("weather", JSON, nullable=True),
    Column("created_timestamp", DateTime(timezone=True), nullable=False),
    Column("modified_timestamp", DateTime(timezone=True), nullable=True),
    Column("deletion_status", String(32), nullable=False, default="active"),
    Column("community_status", String(32), nullable=False, default="private"),
    Index("ix_ride_projections_user_created", "user_id", "created_timestamp"),
)


async def create_schema(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
