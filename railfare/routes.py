"""The two fixed cities and the directions between them."""

from typing import Dict, Tuple
from pydantic import BaseModel, ConfigDict


class City(BaseModel):
    model_config = ConfigDict(frozen=True)

    alias: str
    code: int            # upstream station code
    name: str            # canonical upstream name, used for matching fares
    display_name: str


class Direction(BaseModel):
    """Ordered (origin, destination) pair, compared structurally."""

    model_config = ConfigDict(frozen=True)

    origin: City
    destination: City

    def reverse(self) -> "Direction":
        return Direction(origin=self.destination, destination=self.origin)

    @property
    def key(self) -> str:
        return f"{self.origin.alias}-{self.destination.alias}"

    @property
    def summary(self) -> str:
        return f"{self.origin.name} → {self.destination.name}"


MOW = City(alias="mow", code=2000000, name="МОСКВА", display_name="Moscow")
SPB = City(alias="spb", code=2004000, name="САНКТ-ПЕТЕРБУРГ", display_name="Saint Petersburg")

CITIES: Dict[str, City] = {MOW.alias: MOW, SPB.alias: SPB}


def direction_towards(alias: str) -> Direction:
    """Direction ending in the city with the given alias; unknown aliases go to SPB."""
    to = CITIES.get(alias, SPB)
    origin = MOW if to.alias == SPB.alias else SPB
    return Direction(origin=origin, destination=to)


def to_moscow() -> Direction:
    return direction_towards(MOW.alias)


def to_spb() -> Direction:
    return direction_towards(SPB.alias)


def direction_from_key(key: str) -> Direction:
    """Parse "spb-mow" style keys as produced by Direction.key."""
    parts = key.lower().split("-")
    if len(parts) != 2 or parts[0] not in CITIES or parts[1] not in CITIES or parts[0] == parts[1]:
        raise ValueError(f"Unknown direction: {key!r}")
    return Direction(origin=CITIES[parts[0]], destination=CITIES[parts[1]])


DEFAULT_DIRECTION = to_moscow()
ALL_DIRECTIONS: Tuple[Direction, Direction] = (to_moscow(), to_spb())
