# starmap/sim/catalog.py
from __future__ import annotations

import re
from enum import Enum
from typing import Dict, List, Optional, Tuple, Type, TypeVar


class StarType(Enum):
    RED = 0
    ORANGE = 1
    YELLOW = 2
    BLUE = 3
    NEUTRON = 4
    BLACK_HOLE = 5
    ASTEROID_FIELD = 6
    ROGUE_PLANET = 7


class PlanetType(Enum):
    TERRA = 0
    EARTH_LIKE = 1
    DESERT = 2
    OCEAN = 3
    TUNDRA = 4
    FOREST = 5
    EXOTIC = 6
    BARREN = 7
    GAS = 8
    ROBOT_DEPOT = 9
    ROBOT_FACTORY = 10


class PlanetMaterial(Enum):
    GRASS = 0
    SAND = 1
    SNOW = 2
    ROCK1 = 3
    ROCK2 = 4


class Resource(Enum):
    IRON = 0
    COPPER = 1
    COAL = 2
    LEAD = 3
    TITANIUM = 4
    URANIUM = 5
    JADE = 6
    GOLD = 7
    DIAMOND = 8
    BERYLLIUM = 9
    ALUMINUM = 10


class RingType(Enum):
    ICE = 0
    STONE = 1


class SearchMode(Enum):
    STARTS_WITH = 0
    CONTAINS = 1
    ENDS_WITH = 2


class Tri(Enum):
    """
    Three-way filter state.
    For type filters YES means "include" and NO means "exclude".
    """
    ANY = "any"
    YES = "yes"
    NO = "no"


# ----------------------------
# Wire tables (index -> name, in file order)
# ----------------------------

STAR_TYPE_NAMES: List[str] = [
    "Red", "Orange", "Yellow", "Blue", "Neutron", "BlackHole", "AsteroidField", "RoguePlanet",
]

PLANET_TYPE_NAMES: List[str] = [
    "Terra", "EarthLike", "Desert", "Ocean", "Tundra", "Forest",
    "Exotic", "Barren", "Gas", "RobotDepot", "RobotFactory",
]

PLANET_MATERIAL_NAMES: List[str] = ["Grass", "Sand", "Snow", "Rock1", "Rock2"]

RESOURCE_NAMES: List[str] = [
    "Iron", "Copper", "Coal", "Lead", "Titanium", "Uranium",
    "Jade", "Gold", "Diamond", "Beryllium", "Aluminum",
]

RING_TYPE_NAMES: List[str] = ["Ice", "Stone"]

# Packed ring bits -> ring name. Not the RingType order: this is the file format.
RING_CODES: Dict[int, str] = {1: "Stone", 2: "Ice"}


E = TypeVar("E", bound=Enum)


def _by_name(names: List[str], enum_cls: Type[E]) -> Dict[str, E]:
    return {name: enum_cls(i) for i, name in enumerate(names)}


_STAR_TYPES = _by_name(STAR_TYPE_NAMES, StarType)
_PLANET_TYPES = _by_name(PLANET_TYPE_NAMES, PlanetType)
_PLANET_MATERIALS = _by_name(PLANET_MATERIAL_NAMES, PlanetMaterial)
_RESOURCES = _by_name(RESOURCE_NAMES, Resource)
_RING_TYPES = _by_name(RING_TYPE_NAMES, RingType)


def parse_star_type(name: str) -> Optional[StarType]:
    return _STAR_TYPES.get(name)


def parse_planet_type(name: str) -> Optional[PlanetType]:
    return _PLANET_TYPES.get(name)


def parse_planet_material(name: str) -> Optional[PlanetMaterial]:
    return _PLANET_MATERIALS.get(name)


def parse_resource(name: str) -> Optional[Resource]:
    return _RESOURCES.get(name)


def parse_ring_type(name: str) -> Optional[RingType]:
    return _RING_TYPES.get(name)


def display_name(value: Enum) -> str:
    """Wire/display name of any catalog enum member ("EarthLike", "Rock1", ...)."""
    tables = {
        StarType: STAR_TYPE_NAMES,
        PlanetType: PLANET_TYPE_NAMES,
        PlanetMaterial: PLANET_MATERIAL_NAMES,
        Resource: RESOURCE_NAMES,
        RingType: RING_TYPE_NAMES,
    }
    names = tables.get(type(value))
    if names is None:
        return value.name
    return names[value.value]


# ----------------------------
# Colors
# ----------------------------

RGB = Tuple[int, int, int]

STAR_COLORS: Dict[StarType, RGB] = {
    StarType.RED: (255, 68, 68),
    StarType.ORANGE: (255, 136, 68),
    StarType.YELLOW: (255, 255, 102),
    StarType.BLUE: (50, 50, 255),
    StarType.NEUTRON: (187, 204, 255),
    StarType.BLACK_HOLE: (255, 93, 0),
    StarType.ASTEROID_FIELD: (136, 136, 136),
    StarType.ROGUE_PLANET: (100, 100, 100),
}

_HEX_RE = re.compile(r"^([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


def star_color(star_type: StarType) -> RGB:
    return STAR_COLORS[star_type]


def hex_to_rgb(text: str) -> Optional[RGB]:
    """
    Parse "#rrggbb" / "#rgb" (leading # optional).
    Returns None when the text is not a hex color.
    """
    m = _HEX_RE.match(text.strip().replace("#", ""))
    if not m:
        return None
    h = m.group(1)
    if len(h) == 3:
        h = "".join(c + c for c in h)
    num = int(h, 16)
    return (num >> 16) & 255, (num >> 8) & 255, num & 255


# ----------------------------
# Coordinates
# ----------------------------

NullableCoordinate = Tuple[Optional[int], Optional[int], Optional[int], Optional[int]]

_COORD_SPLIT_RE = re.compile(r",\s|,|\s")


def coordinate_key(x: int, y: int, z: int, w: int) -> str:
    """Canonical lookup key. Other lookup maps join on this exact format."""
    return f"{x}, {y}, {z}, {w}"


def normalize_coordinate_key(text: str) -> Optional[str]:
    """
    "1,2,3,4" / " 1 , 2,3, 4" -> "1, 2, 3, 4".
    Returns None unless the text holds exactly four integers.
    """
    parts = text.split(",")
    if len(parts) != 4:
        return None
    try:
        x, y, z, w = (int(p.strip()) for p in parts)
    except ValueError:
        return None
    return coordinate_key(x, y, z, w)


_LEADING_INT_RE = re.compile(r"\s*([+-]?\d+)")


def _parse_axis(token: str) -> Optional[int]:
    # leading digits count ("5abc" -> 5); "?" or no digits is a wildcard
    m = _LEADING_INT_RE.match(token)
    return int(m.group(1)) if m else None


def parse_coordinate_query(text: str) -> NullableCoordinate:
    """
    Parse a user coordinate pattern such as "-10, 5, ?, 2".
    "?" (or a token without leading digits) is a wildcard for that axis;
    missing trailing axes are wildcards too.
    """
    axes = [_parse_axis(t) for t in _COORD_SPLIT_RE.split(text.strip())]
    axes += [None] * (4 - len(axes))
    return axes[0], axes[1], axes[2], axes[3]
