"""
Ride Service — 設定

環境変数から読み込む。未設定ならローカル開発用の値を使う。
"""

import os

DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite+aiosqlite:///./rides.db")
REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379")
RIDE_EVENTS_CHANNEL = os.environ.get("RIDE_EVENTS_CHANNEL", "ride_events")

WEATHER_API_URL = os.environ.get(
    "WEATHER_API_URL", "https://archive-api.open-meteo.com/v1/archive"
)
WEATHER_TIMEOUT_SECONDS = float(os.environ.get("WEATHER_TIMEOUT_SECONDS", "10"))

SQL_ECHO = os.environ.get("SQL_ECHO", "false").lower() in ("1", "true", "yes")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
