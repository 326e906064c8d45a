"""
Ride Service — 天気 API クライアント (Open-Meteo Archive)

WeatherService プロトコルの実装。指定日の時間別データを取得し、
指定時刻の値だけを Weather に詰める。

HTTP エラーやタイムアウトは例外のまま送出する。
ハンドラ側で WeatherFetchFailed イベントに変換されるので、
ここで握りつぶす必要はない。
"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal

import httpx

from . import config
from .weather import Weather

logger = logging.getLogger(__name__)

HOURLY_VARIABLES = (
    "temperature_2m",
    "relative_humidity_2m",
    "weather_code",
    "surface_pressure",
    "wind_speed_10m",
    "wind_direction_10m",
)

# WMO weather interpretation codes
WEATHER_CODES = {
    0: "Clear",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Fog",
    48: "Rime fog",
    51: "Light drizzle",
    53: "Drizzle",
    55: "Dense drizzle",
    61: "Light rain",
    63: "Rain",
    65: "Heavy rain",
    71: "Light snow",
    73: "Snow",
    75: "Heavy snow",
    80: "Rain showers",
    81: "Rain showers",
    82: "Violent rain showers",
    95: "Thunderstorm",
    96: "Thunderstorm with hail",
    99: "Thunderstorm with hail",
}

COMPASS_POINTS = (
    "N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
    "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW",
)


def compass_direction(degrees: float) -> str:
    index = int((degrees % 360) / 22.5 + 0.5) % 16
    return COMPASS_POINTS[index]


def _decimal(value) -> Decimal | None:
    if value is None:
        return None
    return Decimal(str(value))


def parse_hourly(payload: dict, ride_date: date, hour: int) -> Weather:
    """Archive API のレスポンスから指定時刻の天気を取り出す。無ければ unavailable。"""
    hourly = payload.get("hourly") or {}
    times = hourly.get("time") or []
    target = f"{ride_date.isoformat()}T{hour:02d}:00"
    try:
        index = times.index(target)
    except ValueError:
        return Weather.unavailable()

    def pick(name: str):
        values = hourly.get(name) or []
        return values[index] if index < len(values) else None

    code = pick("weather_code")
    direction = pick("wind_direction_10m")
    return Weather(
        temperature=_decimal(pick("temperature_2m")),
        conditions=WEATHER_CODES.get(code, f"Code {code}") if code is not None else None,
        wind_speed=_decimal(pick("wind_speed_10m")),
        wind_direction=compass_direction(direction) if direction is not None else None,
        humidity=_decimal(pick("relative_humidity_2m")),
        pressure=_decimal(pick("surface_pressure")),
        captured_at=datetime.now(timezone.utc),
    )


class OpenMeteoWeatherService:
    def __init__(
        self,
        base_url: str = config.WEATHER_API_URL,
        timeout: float = config.WEATHER_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self._client = client

    async def get_historical_weather(
        self,
        latitude: Decimal,
        longitude: Decimal,
        ride_date: date,
        hour: int,
    ) -> Weather:
        params = {
            "latitude": str(latitude),
            "longitude": str(longitude),
            "start_date": ride_date.isoformat(),
            "end_date": ride_date.isoformat(),
            "hourly": ",".join(HOURLY_VARIABLES),
            "temperature_unit": "fahrenheit",
            "wind_speed_unit": "mph",
            "timezone": "auto",
        }
        if self._client is not None:
            resp = await self._client.get(self.base_url, params=params)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.get(self.base_url, params=params)
        resp.raise_for_status()
        weather = parse_hourly(resp.json(), ride_date, hour)
        logger.debug("Weather for %s %s@%02d: %s", latitude, longitude, hour, weather)
        return weather
