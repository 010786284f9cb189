import datetime as dt
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from railfare.routes import Direction, direction_from_key, direction_towards

UPSTREAM_DATE_FORMAT = "%d.%m.%Y"
UPSTREAM_TIME_FORMAT = "%H:%M"


class TimeBand(str, Enum):
    EARLY_MORNING = "early_morning"
    MORNING = "morning"
    DAYTIME = "daytime"
    EVENING = "evening"

    @property
    def hours(self) -> Tuple[int, int]:
        """Half-open [start, end) clock-hour interval."""
        return TIME_BAND_HOURS[self]


# Bands must not overlap
TIME_BAND_HOURS: Dict[TimeBand, Tuple[int, int]] = {
    TimeBand.EARLY_MORNING: (0, 7),
    TimeBand.MORNING: (7, 12),
    TimeBand.DAYTIME: (12, 17),
    TimeBand.EVENING: (17, 24),
}

OUTBOUND_BANDS = (TimeBand.EARLY_MORNING, TimeBand.MORNING, TimeBand.DAYTIME)
RETURN_BAND = TimeBand.EVENING


class WeekdayClass(str, Enum):
    ANY = "any"
    WEEKEND = "weekend"
    WEEKDAY = "weekday"


class RawFare(BaseModel):
    """One fare as listed by the upstream source."""

    model_config = ConfigDict(frozen=True)

    origin_station: str
    destination_station: str
    departure_date: str  # DD.MM.YYYY
    departure_time: str  # HH:MM
    brand: str = ""
    price: int
    id: Optional[int] = None
    collected_at: Optional[datetime] = None

    @field_validator("departure_date")
    @classmethod
    def _check_date(cls, v: str) -> str:
        datetime.strptime(v, UPSTREAM_DATE_FORMAT)
        return v

    @field_validator("departure_time")
    @classmethod
    def _check_time(cls, v: str) -> str:
        datetime.strptime(v, UPSTREAM_TIME_FORMAT)
        return v

    @property
    def departure(self) -> datetime:
        return datetime.strptime(
            f"{self.departure_date} {self.departure_time}",
            f"{UPSTREAM_DATE_FORMAT} {UPSTREAM_TIME_FORMAT}",
        )

    @property
    def day(self) -> dt.date:
        return datetime.strptime(self.departure_date, UPSTREAM_DATE_FORMAT).date()

    @property
    def summary(self) -> str:
        return f"{self.departure_date} {self.origin_station} {self.destination_station} {self.price}"


class IndexedFareEntry(BaseModel):
    """Cheapest fare of one (date, direction, band) cell."""

    model_config = ConfigDict(frozen=True)

    date: dt.date
    direction: Direction
    band: TimeBand
    departure: datetime
    price: int
    fare: RawFare


class RoundTrip(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    outbound: IndexedFareEntry
    inbound: IndexedFareEntry
    total_cost: int
    weekday_class: WeekdayClass
    band: TimeBand
    month: int = Field(ge=1, le=12)

    @model_validator(mode="after")
    def _check_pairing(self) -> "RoundTrip":
        if self.inbound.date != self.outbound.date + timedelta(days=1):
            raise ValueError("return leg must depart one day after the outbound leg")
        if self.inbound.direction != self.outbound.direction.reverse():
            raise ValueError("return leg must run in the reverse direction")
        if self.total_cost != self.outbound.price + self.inbound.price:
            raise ValueError("total cost must equal the sum of both legs")
        return self

    @classmethod
    def pair(cls, outbound: IndexedFareEntry, inbound: IndexedFareEntry) -> "RoundTrip":
        return cls(
            id=f"{outbound.date.isoformat()}:{outbound.direction.key}:{outbound.band.value}",
            outbound=outbound,
            inbound=inbound,
            total_cost=outbound.price + inbound.price,
            weekday_class=WeekdayClass.WEEKEND if outbound.date.weekday() == 5 else WeekdayClass.WEEKDAY,
            band=outbound.band,
            month=outbound.date.month,
        )

    @property
    def direction(self) -> Direction:
        return self.outbound.direction


def _coerce_direction(value: Any) -> Any:
    # Front-ends send "spb-mow" keys or a bare destination alias ("mow")
    if isinstance(value, str):
        if "-" in value:
            return direction_from_key(value)
        return direction_towards(value.lower())
    return value


class QueryConstraint(BaseModel):
    direction: Optional[Direction] = None
    band: Optional[TimeBand] = None
    weekday_class: WeekdayClass = WeekdayClass.ANY
    total_cost: Optional[int] = Field(None, gt=0, description="Price ceiling for the pair")
    date: Optional[dt.date] = Field(None, description="Outbound date")
    month: Optional[int] = Field(None, ge=1, le=12)
    segment: int = Field(0, ge=0)
    more: bool = False

    @field_validator("direction", mode="before")
    @classmethod
    def _parse_direction(cls, v: Any) -> Any:
        return _coerce_direction(v)

    @model_validator(mode="after")
    def _date_xor_month(self) -> "QueryConstraint":
        if self.date is not None and self.month is not None:
            raise ValueError("date and month are mutually exclusive")
        return self


class FarePredicate(BaseModel):
    """Sparse AND of optional clauses; unset clauses are not evaluated."""

    brand: Optional[str] = None
    origin_station: Optional[str] = None
    day: Optional[dt.date] = None
    band: Optional[TimeBand] = None


class SessionCookie(BaseModel):
    name: str
    value: str


class Credentials(BaseModel):
    token: str
    session_cookie: Optional[SessionCookie] = None

    @property
    def cookie_header(self) -> Optional[str]:
        if not self.session_cookie:
            return None
        return f"{self.session_cookie.name}={self.session_cookie.value};"


class MessageKind(str, Enum):
    MORE_TICKETS = "more_tickets"
    LAST_PAIR = "last_pair"
    ONE_PER_DAY = "one_per_day"
    NO_MORE = "no_more"
    OVER_PRICE = "over_price"
    MONTH_EMPTY = "month_empty"
    MONTH_BEYOND_WINDOW = "month_beyond_window"
    DATE_EMPTY = "date_empty"
    DATE_BEYOND_WINDOW = "date_beyond_window"
    NO_TICKETS = "no_tickets"


class SelectionMessage(BaseModel):
    kind: MessageKind
    text: str
    params: Dict[str, Any] = Field(default_factory=dict)


class SelectionResult(BaseModel):
    results: List[RoundTrip] = Field(default_factory=list)
    message: Optional[SelectionMessage] = None
