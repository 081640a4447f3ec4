# starmap/sim/search.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from starmap.sim.bodies import Body, Coordinate, Planet, RGBColor, SolarSystem
from starmap.sim.catalog import (
    NullableCoordinate,
    PlanetType,
    Resource,
    SearchMode,
    StarType,
    Tri,
    hex_to_rgb,
    normalize_coordinate_key,
    parse_coordinate_query,
    parse_planet_type,
    parse_resource,
    parse_star_type,
)
from starmap.sim.universe import Universe

TEMPERATURE_RANGE: Tuple[float, float] = (-350, 350)
GRAVITY_RANGE: Tuple[float, float] = (0, 350)

MAX_COLOR_DISTANCE = 255.0


@dataclass(frozen=True)
class TextFilter:
    query: str = ""
    mode: SearchMode = SearchMode.STARTS_WITH

    @property
    def needle(self) -> str:
        return self.query.strip().lower()

    @property
    def active(self) -> bool:
        return self.needle != ""

    def matches(self, text: Optional[str]) -> bool:
        if not text:
            return False
        text = text.lower()
        needle = self.needle
        if self.mode is SearchMode.STARTS_WITH:
            return text.startswith(needle)
        if self.mode is SearchMode.CONTAINS:
            return needle in text
        return text.endswith(needle)


@dataclass(frozen=True)
class ColorFilter:
    """
    similarity is a 0-100 percentage of the 0-255 RGB distance ceiling.
    Matching compares squared distances so no sqrt runs per planet.
    """
    color: RGBColor
    similarity: float

    @property
    def tolerance(self) -> float:
        pct = max(0.0, min(100.0, float(self.similarity)))
        return max(1.0, pct / 100.0 * MAX_COLOR_DISTANCE)

    @property
    def tolerance_sq(self) -> float:
        return self.tolerance * self.tolerance


@dataclass(frozen=True)
class Query:
    """Every field defaults to "no filter". An all-default Query is a no-op."""
    name: TextFilter = TextFilter()
    random_material: TextFilter = TextFilter()
    coordinate: Optional[NullableCoordinate] = None
    resources: Mapping[Resource, int] = field(default_factory=dict)
    resources_tri: Mapping[Resource, Tri] = field(default_factory=dict)
    planet_types: Mapping[PlanetType, Tri] = field(default_factory=dict)
    star_types: Mapping[StarType, Tri] = field(default_factory=dict)
    rings: Tri = Tri.ANY
    atmosphere: Tri = Tri.ANY
    tidally_locked: Tri = Tri.ANY
    temperature_range: Tuple[float, float] = TEMPERATURE_RANGE
    gravity_range: Tuple[float, float] = GRAVITY_RANGE
    primary_color: Optional[ColorFilter] = None
    secondary_color: Optional[ColorFilter] = None
    earthlikes_in_system: Tri = Tri.ANY

    def is_noop(self) -> bool:
        return (
            not self.name.active
            and not self.random_material.active
            and self.coordinate is None
            and not self.resources
            and all(v is Tri.ANY for v in self.resources_tri.values())
            and all(v is Tri.ANY for v in self.planet_types.values())
            and all(v is Tri.ANY for v in self.star_types.values())
            and self.rings is Tri.ANY
            and self.atmosphere is Tri.ANY
            and self.tidally_locked is Tri.ANY
            and tuple(self.temperature_range) == TEMPERATURE_RANGE
            and tuple(self.gravity_range) == GRAVITY_RANGE
            and self.primary_color is None
            and self.secondary_color is None
            and self.earthlikes_in_system is Tri.ANY
        )

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Query":
        """
        Build a Query from a JSON payload. Unknown names and malformed values
        raise ValueError with a stable short code (invalid_color, unknown_resource, ...).
        """
        coords = d.get("coords")
        coordinate = None
        # whitespace-only text is an active all-wildcard pattern
        if coords is not None and str(coords) != "":
            coordinate = parse_coordinate_query(str(coords))

        return Query(
            name=_text_filter(d.get("name")),
            random_material=_text_filter(d.get("random_material")),
            coordinate=coordinate,
            resources={
                _resource(k): _resource_amount(v) for k, v in _mapping(d, "resources").items()
            },
            resources_tri={
                _resource(k): _tri(v) for k, v in _mapping(d, "resources_tri").items()
            },
            planet_types={
                _named(parse_planet_type, k, "unknown_planet_type"): _tri(v)
                for k, v in _mapping(d, "planet_types").items()
            },
            star_types={
                _named(parse_star_type, k, "unknown_star_type"): _tri(v)
                for k, v in _mapping(d, "star_types").items()
            },
            rings=_tri(d.get("rings")),
            atmosphere=_tri(d.get("atmosphere")),
            tidally_locked=_tri(d.get("tidally_locked")),
            temperature_range=_range(d.get("temperature_range"), TEMPERATURE_RANGE),
            gravity_range=_range(d.get("gravity_range"), GRAVITY_RANGE),
            primary_color=_color_filter(d.get("primary_color")),
            secondary_color=_color_filter(d.get("secondary_color")),
            earthlikes_in_system=_tri(d.get("earthlikes_in_system")),
        )


@dataclass(frozen=True)
class SearchResult:
    """
    systems: matching systems, each with only its matching planets but all its stars.
    planets: the same matches flattened, in result order.
    index: coordinate key -> body, for every planet and star in `systems`.
    """
    systems: Tuple[SolarSystem, ...]
    planets: Tuple[Planet, ...]
    index: Mapping[str, Body]

    def lookup(self, coordinate: Union[Coordinate, str]) -> Optional[Body]:
        if isinstance(coordinate, Coordinate):
            return self.index.get(coordinate.key)
        key = normalize_coordinate_key(coordinate)
        return self.index.get(key) if key else None

    def to_dict(self, limit: Optional[int] = None) -> Dict[str, Any]:
        systems = self.systems if limit is None else self.systems[:limit]
        return {
            "total_systems": len(self.systems),
            "total_planets": len(self.planets),
            "truncated": len(systems) < len(self.systems),
            "systems": [s.to_dict() for s in systems],
            "keys": list(self.index.keys()),
        }


# ----------------------------
# Payload parsing helpers
# ----------------------------

_TRI_ALIASES = {
    "any": Tri.ANY, "": Tri.ANY, "0": Tri.ANY,
    "yes": Tri.YES, "has": Tri.YES, "include": Tri.YES, "1": Tri.YES, "true": Tri.YES,
    "no": Tri.NO, "exclude": Tri.NO, "-1": Tri.NO, "false": Tri.NO,
}

_MODE_ALIASES = {
    "starts_with": SearchMode.STARTS_WITH, "startswith": SearchMode.STARTS_WITH, "0": SearchMode.STARTS_WITH,
    "contains": SearchMode.CONTAINS, "1": SearchMode.CONTAINS,
    "ends_with": SearchMode.ENDS_WITH, "endswith": SearchMode.ENDS_WITH, "2": SearchMode.ENDS_WITH,
}


def _mapping(d: Dict[str, Any], key: str) -> Dict[Any, Any]:
    value = d.get(key) or {}
    if not isinstance(value, dict):
        raise ValueError(f"invalid_{key}: expected an object")
    return value


def _tri(value: Any) -> Tri:
    if value is None:
        return Tri.ANY
    if isinstance(value, Tri):
        return value
    tri = _TRI_ALIASES.get(str(value).strip().lower())
    if tri is None:
        raise ValueError(f"invalid_tri: {value}")
    return tri


def _text_filter(value: Any) -> TextFilter:
    if not value:
        return TextFilter()
    if isinstance(value, str):
        return TextFilter(query=value)
    if not isinstance(value, dict):
        raise ValueError(f"invalid_text_filter: {value}")
    mode = _MODE_ALIASES.get(str(value.get("mode", 0)).strip().lower())
    if mode is None:
        raise ValueError(f"invalid_mode: {value.get('mode')}")
    return TextFilter(query=str(value.get("query") or ""), mode=mode)


def _named(parse, name: Any, code: str):
    v = parse(str(name))
    if v is None:
        raise ValueError(f"{code}: {name}")
    return v


def _resource(name: Any) -> Resource:
    return _named(parse_resource, name, "unknown_resource")


def _resource_amount(value: Any) -> int:
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"invalid_resource_amount: {value}")
    if not amount.is_integer():
        raise ValueError(f"invalid_resource_amount: {value}")
    return int(amount)


def _range(value: Any, default: Tuple[float, float]) -> Tuple[float, float]:
    if value is None:
        return default
    try:
        lo, hi = value
        return float(lo), float(hi)
    except (TypeError, ValueError):
        raise ValueError(f"invalid_range: {value}")


def _color_filter(value: Any) -> Optional[ColorFilter]:
    if not value:
        return None
    if not isinstance(value, dict):
        raise ValueError(f"invalid_color_filter: {value}")
    color = str(value.get("color") or "").strip()
    try:
        similarity = float(value.get("similarity") or 0)
    except (TypeError, ValueError):
        raise ValueError(f"invalid_similarity: {value.get('similarity')}")
    # an empty color or a zero similarity slider means the filter is off
    if color == "" or similarity <= 0:
        return None
    rgb = hex_to_rgb(color)
    if rgb is None:
        raise ValueError(f"invalid_color: {color}")
    return ColorFilter(color=RGBColor(*rgb), similarity=similarity)


# ----------------------------
# Predicates
# ----------------------------

def _type_allowed(filters: Mapping[Any, Tri], has_includes: bool, value: Any) -> bool:
    """
    Exclude always wins. When anything is marked include, only included
    types pass; otherwise everything not excluded passes.
    """
    state = filters.get(value, Tri.ANY)
    if state is Tri.NO:
        return False
    if has_includes and state is not Tri.YES:
        return False
    return True


def _tri_allows(tri: Tri, flag: bool) -> bool:
    if tri is Tri.YES:
        return flag
    if tri is Tri.NO:
        return not flag
    return True


def _coordinate_matches(coord: Coordinate, pattern: NullableCoordinate) -> bool:
    for want, have in zip(pattern, (coord.x, coord.y, coord.z, coord.w)):
        if want is not None and want != have:
            return False
    return True


def _system_allowed(system: SolarSystem, query: Query, star_includes: bool, star_filter: bool) -> bool:
    if query.earthlikes_in_system is not Tri.ANY:
        has_earthlike = any(p.type is PlanetType.EARTH_LIKE for p in system.planets)
        if not _tri_allows(query.earthlikes_in_system, has_earthlike):
            return False

    if star_filter:
        states = [query.star_types.get(s.type, Tri.ANY) for s in system.stars]
        if Tri.NO in states:
            return False
        if star_includes and Tri.YES not in states:
            return False

    return True


# ----------------------------
# Search
# ----------------------------

def search(universe: Universe, query: Query) -> Optional[SearchResult]:
    """
    Filter the universe. Returns None for a no-op query (nothing to filter),
    which is different from a SearchResult with no systems (filtered to empty).

    One pass over each system's planets. When a color filter is active the
    matches are ranked by summed squared color distance and systems follow
    their best-ranked planet; otherwise universe order is kept.
    """
    if query.is_noop():
        return None

    planet_filter = any(v is not Tri.ANY for v in query.planet_types.values())
    planet_includes = any(v is Tri.YES for v in query.planet_types.values())
    star_filter = any(v is not Tri.ANY for v in query.star_types.values())
    star_includes = any(v is Tri.YES for v in query.star_types.values())
    tri_resources = [(r, t) for r, t in query.resources_tri.items() if t is not Tri.ANY]
    min_resources = list(query.resources.items())

    t_lo, t_hi = query.temperature_range
    temperature_filter = tuple(query.temperature_range) != TEMPERATURE_RANGE
    g_lo, g_hi = query.gravity_range
    gravity_filter = tuple(query.gravity_range) != GRAVITY_RANGE

    name = query.name if query.name.active else None
    ranmat = query.random_material if query.random_material.active else None
    primary = query.primary_color
    secondary = query.secondary_color
    ranked = primary is not None or secondary is not None

    # (rank key, system slot, planet) in universe order
    matches: List[Tuple[float, int, Planet]] = []
    sources: List[SolarSystem] = []

    for system in universe.systems:
        if not _system_allowed(system, query, star_includes, star_filter):
            continue

        slot = len(sources)
        hit = False

        for planet in system.planets:
            if planet_filter and not _type_allowed(query.planet_types, planet_includes, planet.type):
                continue
            if not _tri_allows(query.rings, planet.ring is not None):
                continue
            if not _tri_allows(query.atmosphere, planet.atmosphere):
                continue
            if not _tri_allows(query.tidally_locked, planet.tidally_locked):
                continue
            if temperature_filter and not (t_lo <= planet.temperature <= t_hi):
                continue
            if gravity_filter and not (g_lo <= planet.gravity <= g_hi):
                continue
            if name is not None and not name.matches(planet.name):
                continue
            if ranmat is not None and not ranmat.matches(planet.random_material):
                continue
            if query.coordinate is not None and not _coordinate_matches(planet.coordinate, query.coordinate):
                continue
            if min_resources and any(planet.resource_amount(r) < amount for r, amount in min_resources):
                continue
            if tri_resources and not all(_tri_allows(t, planet.resource_amount(r) > 0) for r, t in tri_resources):
                continue

            rank = 0.0
            if primary is not None:
                d = planet.primary_color.distance_sq(primary.color)
                if d > primary.tolerance_sq:
                    continue
                rank += d
            if secondary is not None:
                d = planet.secondary_color.distance_sq(secondary.color)
                if d > secondary.tolerance_sq:
                    continue
                rank += d

            matches.append((rank, slot, planet))
            hit = True

        if hit:
            sources.append(system)

    if ranked:
        # sort is stable, so ties keep universe order
        matches.sort(key=lambda m: m[0])

    grouped: Dict[int, List[Planet]] = {}
    for _, slot, planet in matches:
        grouped.setdefault(slot, []).append(planet)

    systems: List[SolarSystem] = []
    index: Dict[str, Body] = {}
    for slot, planets in grouped.items():
        src = sources[slot]
        systems.append(SolarSystem.of(src.x, src.y, src.stars, planets))
        for star in src.stars:
            index[star.coordinate.key] = star
        for planet in planets:
            index[planet.coordinate.key] = planet

    return SearchResult(
        systems=tuple(systems),
        planets=tuple(p for _, _, p in matches),
        index=index,
    )
