"""
Ride Service — エンティティ

Ride: ライド集約。イベントを発行する前に validate_ride を必ず通す。
RideProjection: リードモデル。イベントログから導出されるビューで、
                正はあくまでイベントログ側。

検証はルールを順番に評価し、最初に違反したものを返す(エラーは蓄積しない)。
"""

import datetime as dt
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel

from .clock import Clock
from .results import Error, Result, combine, require
from .weather import Weather

DISTANCE_UNITS = ("miles", "kilometers")
DeletionStatus = Literal["active", "marked_for_deletion"]
CommunityStatus = Literal["private", "shareable", "public"]

# ride_projections.distance は Numeric(18, 2)
DISTANCE_PLACES = 2
MAX_TEXT_LENGTH = 200
MAX_NOTES_LENGTH = 1000
RIDE_WINDOW_DAYS = 90


class Ride(BaseModel):
    """ライド集約"""
    ride_id: UUID
    user_id: str
    date: dt.date
    hour: int
    distance: Decimal
    distance_unit: str = "miles"
    ride_name: str
    start_location: str
    end_location: str
    notes: str | None = None
    weather: Weather | None = None
    created_timestamp: dt.datetime
    modified_timestamp: dt.datetime | None = None
    deletion_status: DeletionStatus = "active"
    community_status: CommunityStatus = "private"

    def validate_rules(self, clock: Clock) -> Result[None]:
        return validate_ride(self, clock)


class RideProjection(BaseModel):
    """
    ライドのリードモデル(非正規化)

    age_in_days は保存せず、読み出し時に Clock から計算する。
    """
    ride_id: UUID
    user_id: str
    date: dt.date
    hour: int
    distance: Decimal
    distance_unit: str
    ride_name: str
    start_location: str
    end_location: str
    notes: str | None = None
    weather: Weather | None = None
    created_timestamp: dt.datetime
    modified_timestamp: dt.datetime | None = None
    deletion_status: DeletionStatus = "active"
    community_status: CommunityStatus = "private"
    age_in_days: int = 0

    def with_age(self, clock: Clock) -> "RideProjection":
        age = (clock.today() - self.created_timestamp.date()).days
        return self.model_copy(update={"age_in_days": age})


def _invalid(message: str) -> Error:
    return Error.validation_failed(message)


def _fits_places(value: Decimal, places: int) -> bool:
    return value.normalize().as_tuple().exponent >= -places


def validate_ride(ride: Ride, clock: Clock) -> Result[None]:
    """ライドの業務ルールを検証する。最初に違反したルールの Failure を返す。"""
    today = clock.today()
    min_date = today - dt.timedelta(days=RIDE_WINDOW_DAYS)

    labelled = (
        ("Ride name", ride.ride_name),
        ("Start location", ride.start_location),
        ("End location", ride.end_location),
    )
    return combine(
        require(ride.date <= today, _invalid("Date cannot be in the future.")),
        require(ride.date >= min_date, _invalid("Ride date must be within the last 90 days.")),
        require(0 <= ride.hour <= 23, _invalid("Hour must be between 0 and 23.")),
        require(ride.distance > 0, _invalid("Distance must be greater than zero.")),
        require(
            _fits_places(ride.distance, DISTANCE_PLACES),
            _invalid("Distance cannot have more than two decimal places."),
        ),
        require(
            ride.distance_unit in DISTANCE_UNITS,
            _invalid("Distance unit must be 'miles' or 'kilometers'."),
        ),
        *(
            require(bool(value and value.strip()), _invalid(f"{label} is required."))
            for label, value in labelled
        ),
        *(
            require(
                len(value) <= MAX_TEXT_LENGTH,
                _invalid(f"{label} cannot exceed {MAX_TEXT_LENGTH} characters."),
            )
            for label, value in labelled
        ),
    )
