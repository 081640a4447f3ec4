import asyncio
import logging
import threading

import pytest

from starmap.config import StarmapConfig
from starmap.sim.assets import UniverseUnavailable, compress
from starmap.sim.bodies import Coordinate, Planet, Star
from starmap.sim.catalog import PlanetMaterial, PlanetType, Resource, RingType, StarType
from starmap.sim.decoder import EntryKind, StarEntry, encode
from starmap.sim.universe import (
    DEFAULT_STAR_SIZE,
    UniverseStore,
    build,
    load_universe,
)


def test_groups_bodies_by_system(make_universe, planet, star):
    u = make_universe({
        (0, 0, 0, 0): star("Red"),
        (0, 0, 1, 2): planet(name="A"),
        (5, 5, 0, 0): star("Blue"),
        (0, 0, -3, 4): planet(name="B"),
        (5, 5, 2, 2): planet(name="C", resources={"Iron": 1, "Gold": 1}),
    })

    assert [(s.x, s.y) for s in u.systems] == [(0, 0), (5, 5)]
    first, second = u.systems
    assert [p.name for p in first.planets] == ["A", "B"]
    assert [s.type for s in first.stars] == [StarType.RED]
    assert [r.resource for r in second.resources] == [Resource.IRON, Resource.GOLD]
    assert len(u.planets) == 3
    assert len(u.stars) == 2


def test_planet_fields_become_enums(make_universe, planet):
    u = make_universe({
        (1, 1, 1, 1): planet(
            subtype="Exotic", material="Sand", ring="Stone",
            resources={"Uranium": 1}, random_material="Obsidian", daycycle_increment=0,
        ),
    })
    (p,) = u.planets
    assert isinstance(p, Planet)
    assert p.type is PlanetType.EXOTIC
    assert p.material is PlanetMaterial.SAND
    assert p.ring.type is RingType.STONE
    assert p.resource_amount(Resource.URANIUM) == 1
    assert p.resource_amount(Resource.IRON) == 0
    assert p.random_material == "Obsidian"
    assert p.tidally_locked


def test_empty_random_material_becomes_none(make_universe, planet):
    u = make_universe({(1, 1, 1, 1): planet(random_material="")})
    assert u.planets[0].random_material is None


def test_star_sizes_and_colors(make_universe, star):
    u = make_universe({
        (0, 0, 0, 0): star("AsteroidField"),
        (0, 0, 1, 0): star("BlackHole", 400),
        (0, 0, 2, 0): star("Neutron", 0),
    })
    field, hole, neutron = u.stars
    assert field.type is StarType.ASTEROID_FIELD
    assert field.size == DEFAULT_STAR_SIZE
    assert hole.type is StarType.BLACK_HOLE
    assert hole.size == 400
    assert neutron.size == DEFAULT_STAR_SIZE
    assert (neutron.color.r, neutron.color.g, neutron.color.b) == (187, 204, 255)


def test_rogue_planet_gets_a_synthetic_star(make_universe, planet):
    u = make_universe({(7, 8, 0, 0): planet(name="Drifter")})

    (system,) = u.systems
    assert len(system.stars) == 1
    rogue = system.stars[0]
    assert isinstance(rogue, Star)
    assert rogue.type is StarType.ROGUE_PLANET
    assert rogue.coordinate == Coordinate(7, 8, 0, 0)
    assert u.stars == (rogue,)


def test_no_synthetic_star_when_system_has_a_star(make_universe, planet, star):
    u = make_universe({
        (7, 8, 0, 0): planet(),
        (7, 8, 1, 0): star("Red"),
    })
    assert [s.type for s in u.systems[0].stars] == [StarType.RED]


def test_no_synthetic_star_without_center_planet(make_universe, planet):
    u = make_universe({(7, 8, 1, 0): planet()})
    assert u.systems[0].stars == ()
    assert u.stars == ()


def test_bad_entries_are_dropped_and_logged(planet, star, caplog):
    entries = {
        Coordinate(0, 0, 1, 1): planet(name="Good"),
        Coordinate(0, 0, 2, 2): planet(subtype="Lava"),
        Coordinate(0, 0, 3, 3): planet(material="Mud"),
        Coordinate(0, 0, 4, 4): planet(resources={"Unobtainium": 1}),
        Coordinate(0, 0, 5, 5): planet(ring="Dust"),
        Coordinate(0, 0, 0, 0): StarEntry(kind=EntryKind.STAR, subtype="White", size=10),
    }

    with caplog.at_level(logging.WARNING, logger="starmap.universe"):
        u = build(entries)

    assert [p.name for p in u.planets] == ["Good"]
    assert u.dropped == ("0, 0, 2, 2", "0, 0, 3, 3", "0, 0, 4, 4", "0, 0, 5, 5", "0, 0, 0, 0")
    assert len([r for r in caplog.records if "ModelBuildWarning" in r.message]) == 5


def test_build_is_reproducible(make_universe, planet, star):
    entries = {
        (0, 0, 0, 0): star("Red"),
        (0, 0, 1, 2): planet(name="A"),
        (3, 3, 0, 0): planet(name="Rogue"),
    }
    assert make_universe(entries) == make_universe(entries)


def test_lookup_helpers(make_universe, planet, star):
    u = make_universe({
        (0, 0, 0, 0): star("Red"),
        (0, 0, 1, 2): planet(name="A", random_material="Basalt"),
        (9, 9, 0, 0): planet(name="Rogue", random_material="basilisk"),
    })

    assert u.body_at("0,0,1,2").name == "A"
    assert u.body_at("0, 0, 0, 0").type is StarType.RED
    # the rogue star shares the planet's coordinate, the planet wins
    assert isinstance(u.body_at("9, 9, 0, 0"), Planet)
    assert u.body_at("1, 1, 1, 1") is None
    assert u.body_at("nonsense") is None

    assert u.system_at(9, 9).planets[0].name == "Rogue"
    assert u.system_at(4, 4) is None

    assert u.find_planet_by_random_material("BAS").name == "A"
    assert u.find_planet_by_random_material("basi").name == "Rogue"
    assert u.find_planet_by_random_material("zzz") is None
    assert u.find_planet_by_random_material("  ") is None

    assert u.summary() == {"planets": 2, "stars": 2, "systems": 2, "dropped": 0}


# ----------------------------
# Loading
# ----------------------------

def _write_asset(tmp_path, planet, star) -> str:
    raw = encode({
        Coordinate(0, 0, 0, 0): star("Yellow"),
        Coordinate(0, 0, 1, 1): planet(name="Home"),
    })
    path = tmp_path / "Universe.gab.zst"
    path.write_bytes(compress(raw))
    return str(path)


def test_load_universe_from_file(tmp_path, planet, star):
    u = load_universe(StarmapConfig(universe_source=_write_asset(tmp_path, planet, star)))
    assert [p.name for p in u.planets] == ["Home"]


def test_load_universe_missing_file(tmp_path):
    with pytest.raises(UniverseUnavailable):
        load_universe(StarmapConfig(universe_source=str(tmp_path / "nope.zst")))


def test_load_universe_corrupt_asset(tmp_path):
    path = tmp_path / "bad.zst"
    path.write_bytes(b"definitely not zstd")
    with pytest.raises(UniverseUnavailable):
        load_universe(StarmapConfig(universe_source=str(path)))


def test_load_universe_undecodable_payload(tmp_path):
    path = tmp_path / "truncated.zst"
    path.write_bytes(compress(bytes([0, 0, 0, 0, 0, 2])))
    with pytest.raises(UniverseUnavailable):
        load_universe(StarmapConfig(universe_source=str(path)))


def test_store_loads_once_for_concurrent_callers(make_universe, planet):
    universe = make_universe({(0, 0, 1, 1): planet()})
    calls = []

    def loader(cfg):
        calls.append(cfg)
        return universe

    store = UniverseStore(StarmapConfig(), loader=loader)

    async def run():
        results = await asyncio.gather(store.get(), store.get(), store.get())
        again = await store.get()
        return results, again

    results, again = asyncio.run(run())

    assert len(calls) == 1
    assert all(r is universe for r in results)
    assert again is universe
    assert store.loaded


def test_store_does_not_cache_failures(make_universe, planet):
    universe = make_universe({(0, 0, 1, 1): planet()})
    attempts = []

    def loader(cfg):
        attempts.append(1)
        if len(attempts) == 1:
            raise UniverseUnavailable("offline")
        return universe

    store = UniverseStore(StarmapConfig(), loader=loader)

    async def run():
        with pytest.raises(UniverseUnavailable):
            await store.get()
        assert not store.loaded
        return await store.get()

    assert asyncio.run(run()) is universe
    assert len(attempts) == 2


def test_store_reload_swaps_universe(make_universe, planet):
    first = make_universe({(0, 0, 1, 1): planet(name="Old")})
    second = make_universe({(0, 0, 1, 1): planet(name="New")})
    store = UniverseStore(StarmapConfig(), loader=lambda cfg: second)
    store.put(first)

    async def run():
        held = await store.get()
        fresh = await store.reload()
        return held, fresh, await store.get()

    held, fresh, current = asyncio.run(run())
    assert held.planets[0].name == "Old"
    assert fresh is second
    assert current is second


def test_store_reload_wins_over_slower_first_load(make_universe, planet):
    stale = make_universe({(0, 0, 1, 1): planet(name="Stale")})
    fresh = make_universe({(0, 0, 1, 1): planet(name="Fresh")})
    started = threading.Event()
    release = threading.Event()
    calls = []
    lock = threading.Lock()

    def loader(cfg):
        with lock:
            calls.append(cfg)
            first = len(calls) == 1
        if first:
            started.set()
            release.wait(5)
            return stale
        return fresh

    store = UniverseStore(StarmapConfig(), loader=loader)

    async def run():
        pending = asyncio.ensure_future(store.get())
        await asyncio.to_thread(started.wait, 5)
        reloaded = await store.reload()
        release.set()
        late = await pending
        return reloaded, late, await store.get()

    reloaded, late, current = asyncio.run(run())
    assert reloaded is fresh
    assert late is fresh
    assert current is fresh
