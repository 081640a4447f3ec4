# starmap/sim/bodies.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union

from starmap.sim.catalog import (
    PlanetMaterial,
    PlanetType,
    Resource,
    RingType,
    StarType,
    coordinate_key,
    display_name,
)


@dataclass(frozen=True)
class Coordinate:
    """
    x, y: universe coordinates (which solar system)
    z, w: solar coordinates (position inside the system, roughly -10..10)
    """
    x: int
    y: int
    z: int
    w: int

    @property
    def key(self) -> str:
        return coordinate_key(self.x, self.y, self.z, self.w)

    @property
    def system(self) -> Tuple[int, int]:
        return self.x, self.y

    @property
    def is_system_center(self) -> bool:
        return self.z == 0 and self.w == 0

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class RGBColor:
    r: int
    g: int
    b: int

    def distance_sq(self, other: "RGBColor") -> int:
        dr = self.r - other.r
        dg = self.g - other.g
        db = self.b - other.b
        return dr * dr + dg * dg + db * db

    def to_list(self) -> list[int]:
        return [self.r, self.g, self.b]


@dataclass(frozen=True)
class PlanetResource:
    resource: Resource
    # The file format only flags presence (always 1), other sources may carry real amounts.
    amount: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {"resource": display_name(self.resource), "amount": self.amount}


@dataclass(frozen=True)
class PlanetRing:
    type: RingType
    # Asteroid count and radii are not in the file format.
    amount: int = 0
    start: float = 0.0
    end: float = 0.0


@dataclass(frozen=True)
class Star:
    coordinate: Coordinate
    type: StarType
    size: int
    color: RGBColor

    kind = "star"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "coordinate": self.coordinate.key,
            "type": display_name(self.type),
            "size": self.size,
            "color": self.color.to_list(),
        }


@dataclass(frozen=True)
class Planet:
    coordinate: Coordinate
    type: PlanetType
    name: str
    primary_color: RGBColor
    secondary_color: RGBColor
    material: PlanetMaterial
    atmosphere: bool
    temperature: int
    gravity: float
    daycycle_increment: int
    resources: Tuple[PlanetResource, ...] = ()
    random_material: Optional[str] = None
    ring: Optional[PlanetRing] = None

    kind = "planet"

    @property
    def tidally_locked(self) -> bool:
        return self.daycycle_increment == 0

    def resource_amount(self, resource: Resource) -> int:
        for pr in self.resources:
            if pr.resource is resource:
                return pr.amount
        return 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "coordinate": self.coordinate.key,
            "type": display_name(self.type),
            "name": self.name,
            "random_material": self.random_material,
            "primary_color": self.primary_color.to_list(),
            "secondary_color": self.secondary_color.to_list(),
            "material": display_name(self.material),
            "atmosphere": self.atmosphere,
            "tidally_locked": self.tidally_locked,
            "temperature": self.temperature,
            "gravity": self.gravity,
            "resources": [r.to_dict() for r in self.resources],
            "ring": display_name(self.ring.type) if self.ring else None,
        }


Body = Union[Star, Planet]


@dataclass(frozen=True)
class SolarSystem:
    """
    All bodies sharing (x, y). A computed grouping, never stored in the file.
    resources = flattened resources of `planets` (duplicates kept).
    """
    x: int
    y: int
    stars: Tuple[Star, ...]
    planets: Tuple[Planet, ...]
    resources: Tuple[PlanetResource, ...]

    @staticmethod
    def of(x: int, y: int, stars, planets) -> "SolarSystem":
        planets = tuple(planets)
        resources = tuple(r for p in planets for r in p.resources)
        return SolarSystem(x=x, y=y, stars=tuple(stars), planets=planets, resources=resources)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "x": self.x,
            "y": self.y,
            "stars": [s.to_dict() for s in self.stars],
            "planets": [p.to_dict() for p in self.planets],
            "resources": [r.to_dict() for r in self.resources],
        }
