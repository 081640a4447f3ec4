# starmap/sim/universe.py
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from starmap.config import StarmapConfig
from starmap.sim.assets import UniverseUnavailable, decompress, fetch_asset
from starmap.sim.bodies import (
    Body,
    Coordinate,
    Planet,
    PlanetResource,
    PlanetRing,
    RGBColor,
    SolarSystem,
    Star,
)
from starmap.sim.catalog import (
    StarType,
    normalize_coordinate_key,
    parse_planet_material,
    parse_planet_type,
    parse_resource,
    parse_ring_type,
    parse_star_type,
    star_color,
)
from starmap.sim.decoder import DecodeError, Entry, EntryKind, PlanetEntry, StarEntry, decode

logger = logging.getLogger("starmap.universe")

DEFAULT_STAR_SIZE = 1000
ROGUE_STAR_SIZE = 0


class ModelBuildWarning(UserWarning):
    """One entry could not be translated into the model and was dropped."""


@dataclass(frozen=True)
class Universe:
    """
    Everything decoded from one universe asset. Built once, never mutated;
    a reload builds a new Universe and swaps it in.
    """
    planets: Tuple[Planet, ...]
    stars: Tuple[Star, ...]
    systems: Tuple[SolarSystem, ...]
    # coordinate keys of entries the builder had to drop
    dropped: Tuple[str, ...] = ()
    index: Mapping[str, Body] = field(default_factory=dict, compare=False, repr=False)
    system_index: Mapping[Tuple[int, int], SolarSystem] = field(default_factory=dict, compare=False, repr=False)

    def body_at(self, coordinate: str) -> Optional[Body]:
        key = normalize_coordinate_key(coordinate)
        if key is None:
            return None
        return self.index.get(key)

    def system_at(self, x: int, y: int) -> Optional[SolarSystem]:
        return self.system_index.get((x, y))

    def find_planet_by_random_material(self, prefix: str) -> Optional[Planet]:
        """First planet (in universe order) whose random material starts with prefix, ignoring case."""
        prefix = prefix.strip().lower()
        if not prefix:
            return None
        for p in self.planets:
            if p.random_material and p.random_material.lower().startswith(prefix):
                return p
        return None

    def summary(self) -> Dict[str, Any]:
        return {
            "planets": len(self.planets),
            "stars": len(self.stars),
            "systems": len(self.systems),
            "dropped": len(self.dropped),
        }


# ----------------------------
# Building
# ----------------------------

def _drop(coord: Coordinate, reason: str, dropped: List[str]) -> None:
    logger.warning(f"{ModelBuildWarning.__name__}: dropping {coord.key}: {reason}")
    dropped.append(coord.key)


def _star_from_entry(coord: Coordinate, entry: StarEntry) -> Optional[Star]:
    if entry.kind is EntryKind.ASTEROID_FIELD:
        star_type = StarType.ASTEROID_FIELD
    elif entry.kind is EntryKind.BLACK_HOLE:
        star_type = StarType.BLACK_HOLE
    else:
        star_type = parse_star_type(entry.subtype)
    if star_type is None:
        return None

    r, g, b = star_color(star_type)
    return Star(
        coordinate=coord,
        type=star_type,
        size=entry.size or DEFAULT_STAR_SIZE,
        color=RGBColor(r, g, b),
    )


def _planet_from_entry(coord: Coordinate, entry: PlanetEntry) -> Tuple[Optional[Planet], str]:
    """Returns (planet, "") or (None, reason)."""
    planet_type = parse_planet_type(entry.subtype)
    if planet_type is None:
        return None, f"unknown planet type {entry.subtype!r}"

    material = parse_planet_material(entry.material)
    if material is None:
        return None, f"unknown material {entry.material!r}"

    resources: List[PlanetResource] = []
    for name, amount in entry.resources.items():
        res = parse_resource(name)
        if res is None:
            return None, f"unknown resource {name!r}"
        resources.append(PlanetResource(resource=res, amount=int(amount)))

    ring = None
    if entry.ring is not None:
        ring_type = parse_ring_type(entry.ring)
        if ring_type is None:
            return None, f"unknown ring type {entry.ring!r}"
        ring = PlanetRing(type=ring_type)

    planet = Planet(
        coordinate=coord,
        type=planet_type,
        name=entry.name,
        primary_color=RGBColor(*entry.primary_color),
        secondary_color=RGBColor(*entry.secondary_color),
        material=material,
        atmosphere=entry.atmosphere,
        temperature=entry.temperature,
        gravity=entry.gravity,
        daycycle_increment=entry.daycycle_increment,
        resources=tuple(resources),
        random_material=entry.random_material or None,
        ring=ring,
    )
    return planet, ""


def _rogue_star(planet: Planet) -> Star:
    r, g, b = star_color(StarType.ROGUE_PLANET)
    return Star(
        coordinate=planet.coordinate,
        type=StarType.ROGUE_PLANET,
        size=ROGUE_STAR_SIZE,
        color=RGBColor(r, g, b),
    )


def build(entries: Mapping[Coordinate, Entry]) -> Universe:
    """
    Single pass over decoded entries:
    - translate names into catalog enums (bad entries are logged and dropped)
    - group bodies into solar systems by (x, y), first-seen order
    - give every starless system with a planet at (0, 0) a RoguePlanet star
    """
    planets: List[Planet] = []
    stars: List[Star] = []
    dropped: List[str] = []
    grouped: Dict[Tuple[int, int], Tuple[List[Star], List[Planet]]] = {}

    for coord, entry in entries.items():
        if isinstance(entry, PlanetEntry):
            planet, reason = _planet_from_entry(coord, entry)
            if planet is None:
                _drop(coord, reason, dropped)
                continue
            planets.append(planet)
            grouped.setdefault(coord.system, ([], []))[1].append(planet)
        else:
            star = _star_from_entry(coord, entry)
            if star is None:
                _drop(coord, f"unknown star type {entry.subtype!r}", dropped)
                continue
            stars.append(star)
            grouped.setdefault(coord.system, ([], []))[0].append(star)

    # Rogue planets: runs once, after grouping
    for sys_stars, sys_planets in grouped.values():
        if sys_stars:
            continue
        center = next((p for p in sys_planets if p.coordinate.is_system_center), None)
        if center is not None:
            star = _rogue_star(center)
            sys_stars.append(star)
            stars.append(star)

    systems = [SolarSystem.of(x, y, s, p) for (x, y), (s, p) in grouped.items()]

    index: Dict[str, Body] = {}
    for star in stars:
        index[star.coordinate.key] = star
    # a rogue star shares its planet's coordinate; the planet wins the lookup
    for planet in planets:
        index[planet.coordinate.key] = planet

    return Universe(
        planets=tuple(planets),
        stars=tuple(stars),
        systems=tuple(systems),
        dropped=tuple(dropped),
        index=MappingProxyType(index),
        system_index=MappingProxyType({(s.x, s.y): s for s in systems}),
    )


def load_universe(cfg: StarmapConfig) -> Universe:
    """Fetch, decompress, decode and build. Blocking."""
    started = time.time()
    raw = decompress(fetch_asset(cfg.universe_source, cfg.fetch_timeout), cfg.max_decompressed_size)
    try:
        entries = decode(raw)
    except DecodeError as e:
        raise UniverseUnavailable(f"universe decode failed: {e}") from e

    universe = build(entries)
    logger.info(
        f"Loaded universe from {cfg.universe_source}: {len(universe.planets)} planets, "
        f"{len(universe.stars)} stars, {len(universe.systems)} systems "
        f"({len(universe.dropped)} dropped) in {time.time() - started:.2f}s"
    )
    return universe


# ----------------------------
# Process-wide cache
# ----------------------------

class UniverseStore:
    """
    Holds the one Universe for the process.

    get() decodes on first use. Concurrent callers during that first load
    all await the same task; the result is then cached. A failed load is
    not cached, so the next get() retries.
    """

    def __init__(self, cfg: StarmapConfig | None = None, loader=None):
        self.cfg = cfg or StarmapConfig()
        self._loader = loader or load_universe
        self._universe: Optional[Universe] = None
        self._pending: Optional[asyncio.Task] = None

    @property
    def loaded(self) -> bool:
        return self._universe is not None

    def put(self, universe: Universe) -> None:
        self._universe = universe

    async def get(self) -> Universe:
        if self._universe is not None:
            return self._universe

        if self._pending is None:
            self._pending = asyncio.ensure_future(self._load())
        # shield: one impatient caller must not cancel everyone's load
        return await asyncio.shield(self._pending)

    async def reload(self) -> Universe:
        """Decode a fresh universe and swap it in. Readers keep their old reference."""
        universe = await asyncio.to_thread(self._loader, self.cfg)
        self._universe = universe
        return universe

    async def _load(self) -> Universe:
        try:
            universe = await asyncio.to_thread(self._loader, self.cfg)
        except UniverseUnavailable as e:
            logger.error(f"Universe unavailable: {e}")
            raise
        finally:
            self._pending = None
        # a reload() that finished first holds the newer universe
        if self._universe is None:
            self._universe = universe
        return self._universe
