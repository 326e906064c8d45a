"""
Ride Service — 天気 (値オブジェクト) と天気取得の契約

Weather は不変。6 項目はすべて任意で、すべて欠けている状態を
「取得不可 (unavailable)」として扱う(グレースフル・デグラデーション)。

コマンドハンドラは WeatherService プロトコルだけを知っている。
実装は weather_client.OpenMeteoWeatherService。
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Weather(BaseModel):
    """ライド時点の天気"""
    model_config = ConfigDict(frozen=True)

    temperature: Decimal | None = None
    conditions: str | None = None
    wind_speed: Decimal | None = None
    wind_direction: str | None = None
    humidity: Decimal | None = None
    pressure: Decimal | None = None
    captured_at: datetime = Field(default_factory=_utcnow)

    @property
    def is_unavailable(self) -> bool:
        return (
            self.temperature is None
            and self.conditions is None
            and self.wind_speed is None
            and self.wind_direction is None
            and self.humidity is None
            and self.pressure is None
        )

    @classmethod
    def unavailable(cls, captured_at: datetime | None = None) -> "Weather":
        if captured_at is None:
            return cls()
        return cls(captured_at=captured_at)


class WeatherService(Protocol):
    async def get_historical_weather(
        self,
        latitude: Decimal,
        longitude: Decimal,
        ride_date: date,
        hour: int,
    ) -> Weather | None:
        """
        指定地点・日付・時刻の過去の天気を返す。

        データが無ければ Weather.unavailable() (または None) を返す。
        通信エラーなどは例外として送出してよい — 呼び出し側が吸収する。
        """
        ...
