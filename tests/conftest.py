import pytest

from starmap.sim.bodies import Coordinate
from starmap.sim.decoder import EntryKind, PlanetEntry, StarEntry, decode, encode
from starmap.sim.universe import build


def _planet(**kw) -> PlanetEntry:
    fields = dict(
        subtype="Terra",
        name="Planet",
        random_material="",
        primary_color=(128, 128, 128),
        secondary_color=(64, 64, 64),
        material="Grass",
        atmosphere=False,
        daycycle_increment=1,
        temperature=20,
        gravity=9.5,
        resources={},
        ring=None,
    )
    fields.update(kw)
    return PlanetEntry(**fields)


def _star(subtype: str = "Yellow", size: int = 1200) -> StarEntry:
    if subtype == "AsteroidField":
        return StarEntry(kind=EntryKind.ASTEROID_FIELD, subtype=subtype)
    if subtype == "BlackHole":
        return StarEntry(kind=EntryKind.BLACK_HOLE, subtype=subtype, size=size)
    return StarEntry(kind=EntryKind.STAR, subtype=subtype, size=size)


def _universe(entries):
    """Entries keyed by (x, y, z, w) tuples, packed and decoded through the real format."""
    coords = {Coordinate(*k): v for k, v in entries.items()}
    return build(decode(encode(coords)))


@pytest.fixture
def planet():
    return _planet


@pytest.fixture
def star():
    return _star


@pytest.fixture
def make_universe():
    return _universe
