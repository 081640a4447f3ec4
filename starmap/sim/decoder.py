# starmap/sim/decoder.py
"""
Binary universe format (".gab", stored zstd-compressed on disk).

A flat run of variable-length records until end of buffer, little-endian,
no padding, no header:

    int8 x, y, z, w
    uint8 kind                      0 = star family, anything else = planet

  star family:
    uint8 subtype                   index into STAR_TYPE_NAMES
    uint16 size

  planet:
    uint8 subtype                   index into PLANET_TYPE_NAMES
    cstring name
    cstring random_material         may be empty, terminator always present
    uint8[3] primary rgb
    uint8[3] secondary rgb
    uint8 packed                    bits 0-2 material, 3 atmosphere,
                                    4 day cycle, 5-6 ring code
    int16 temperature
    float32 gravity
    uint16 resources                bit i -> RESOURCE_NAMES[i]
"""
from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Mapping, Optional, Tuple, Union

from starmap.sim.bodies import Coordinate
from starmap.sim.catalog import (
    PLANET_MATERIAL_NAMES,
    PLANET_TYPE_NAMES,
    RESOURCE_NAMES,
    RING_CODES,
    STAR_TYPE_NAMES,
)

EARTHLIKE_GRAVITY = 196.2

_STAR_ASTEROID_FIELD = 6
_STAR_BLACK_HOLE = 5

_HEAD = struct.Struct("<4bB")
_BYTE = struct.Struct("<B")
_STAR = struct.Struct("<BH")
_COLORS = struct.Struct("<6B")
_PLANET_TAIL = struct.Struct("<BhfH")


class DecodeError(ValueError):
    """Malformed universe buffer. Nothing is returned for a partial decode."""

    def __init__(self, message: str, offset: int):
        super().__init__(f"{message} (offset {offset})")
        self.offset = offset


class EntryKind(Enum):
    STAR = "Star"
    ASTEROID_FIELD = "AsteroidField"
    BLACK_HOLE = "BlackHole"
    PLANET = "Planet"


@dataclass(frozen=True)
class StarEntry:
    kind: EntryKind
    subtype: str
    size: Optional[int] = None


@dataclass(frozen=True)
class PlanetEntry:
    subtype: str
    name: str
    random_material: str
    primary_color: Tuple[int, int, int]
    secondary_color: Tuple[int, int, int]
    material: str
    atmosphere: bool
    daycycle_increment: int
    temperature: int
    gravity: float
    resources: Dict[str, int] = field(default_factory=dict)
    ring: Optional[str] = None

    kind = EntryKind.PLANET


Entry = Union[StarEntry, PlanetEntry]


class _Reader:
    def __init__(self, buf: bytes):
        self.buf = buf
        self.offset = 0

    def remaining(self) -> int:
        return len(self.buf) - self.offset

    def unpack(self, fmt: struct.Struct, what: str) -> tuple:
        if self.remaining() < fmt.size:
            raise DecodeError(f"truncated record: need {fmt.size} bytes for {what}", self.offset)
        values = fmt.unpack_from(self.buf, self.offset)
        self.offset += fmt.size
        return values

    def cstring(self, what: str) -> str:
        end = self.buf.find(b"\x00", self.offset)
        if end < 0:
            raise DecodeError(f"truncated record: unterminated {what}", self.offset)
        try:
            s = self.buf[self.offset:end].decode("utf-8")
        except UnicodeDecodeError:
            raise DecodeError(f"invalid utf-8 in {what}", self.offset)
        self.offset = end + 1
        return s


def _lookup(table, index: int, what: str, offset: int) -> str:
    if index >= len(table):
        raise DecodeError(f"unknown {what} index {index}", offset)
    return table[index]


def _read_star(r: _Reader) -> StarEntry:
    at = r.offset
    subtype_idx, size = r.unpack(_STAR, "star")
    subtype = _lookup(STAR_TYPE_NAMES, subtype_idx, "star type", at)

    if subtype_idx == _STAR_ASTEROID_FIELD:
        return StarEntry(kind=EntryKind.ASTEROID_FIELD, subtype=subtype)
    if subtype_idx == _STAR_BLACK_HOLE:
        return StarEntry(kind=EntryKind.BLACK_HOLE, subtype=subtype, size=size)
    # RoguePlanet (7) stays a plain star tagged with its subtype
    return StarEntry(kind=EntryKind.STAR, subtype=subtype, size=size)


def _read_planet(r: _Reader) -> PlanetEntry:
    at = r.offset
    (subtype_idx,) = r.unpack(_BYTE, "planet type")
    subtype = _lookup(PLANET_TYPE_NAMES, subtype_idx, "planet type", at)

    name = r.cstring("planet name")
    random_material = r.cstring("random material")

    colors = r.unpack(_COLORS, "colors")

    at = r.offset
    packed, temperature, gravity, res_bits = r.unpack(_PLANET_TAIL, "planet attributes")

    material = _lookup(PLANET_MATERIAL_NAMES, packed & 0x7, "material", at)
    atmosphere = bool((packed >> 3) & 1)
    day_cycle = (packed >> 4) & 1
    ring_code = (packed >> 5) & 0x3
    if ring_code and ring_code not in RING_CODES:
        raise DecodeError(f"unknown ring code {ring_code}", at)

    resources = {name_: 1 for i, name_ in enumerate(RESOURCE_NAMES) if res_bits & (1 << i)}

    return PlanetEntry(
        subtype=subtype,
        name=name,
        random_material=random_material,
        primary_color=(colors[0], colors[1], colors[2]),
        secondary_color=(colors[3], colors[4], colors[5]),
        material=material,
        atmosphere=atmosphere,
        daycycle_increment=1 if day_cycle else 0,
        temperature=temperature,
        gravity=EARTHLIKE_GRAVITY if subtype == "EarthLike" else gravity,
        resources=resources,
        ring=RING_CODES.get(ring_code),
    )


def decode(buf: bytes) -> Dict[Coordinate, Entry]:
    """
    Decode a decompressed universe buffer into {Coordinate: entry}.
    Dict order is file order. Raises DecodeError on any malformed record.
    """
    r = _Reader(bytes(buf))
    out: Dict[Coordinate, Entry] = {}

    while r.remaining() > 0:
        x, y, z, w, kind = r.unpack(_HEAD, "record header")
        coord = Coordinate(x, y, z, w)
        if kind == 0:
            out[coord] = _read_star(r)
        else:
            out[coord] = _read_planet(r)

    return out


# ----------------------------
# Encoding
# ----------------------------

def _index(table, name: str, what: str) -> int:
    try:
        return table.index(name)
    except ValueError:
        raise ValueError(f"unknown {what}: {name}")


def _encode_star(entry: StarEntry) -> bytes:
    if entry.kind is EntryKind.ASTEROID_FIELD:
        subtype = "AsteroidField"
    elif entry.kind is EntryKind.BLACK_HOLE:
        subtype = "BlackHole"
    else:
        subtype = entry.subtype
    size = entry.size if entry.size is not None else 0
    return _STAR.pack(_index(STAR_TYPE_NAMES, subtype, "star type"), size)


def _encode_planet(entry: PlanetEntry) -> bytes:
    ring_code = 0
    if entry.ring is not None:
        ring_code = next((code for code, name in RING_CODES.items() if name == entry.ring), None)
        if ring_code is None:
            raise ValueError(f"unknown ring type: {entry.ring}")

    packed = (
        _index(PLANET_MATERIAL_NAMES, entry.material, "material")
        | (int(entry.atmosphere) << 3)
        | ((1 if entry.daycycle_increment else 0) << 4)
        | (ring_code << 5)
    )

    res_bits = 0
    for name, amount in entry.resources.items():
        if amount > 0:
            res_bits |= 1 << _index(RESOURCE_NAMES, name, "resource")

    return b"".join([
        bytes([_index(PLANET_TYPE_NAMES, entry.subtype, "planet type")]),
        entry.name.encode("utf-8") + b"\x00",
        entry.random_material.encode("utf-8") + b"\x00",
        _COLORS.pack(*entry.primary_color, *entry.secondary_color),
        _PLANET_TAIL.pack(packed, entry.temperature, entry.gravity, res_bits),
    ])


def encode(entries: Mapping[Coordinate, Entry]) -> bytes:
    """
    Inverse of decode(). Resource amounts collapse to presence bits and
    EarthLike gravity is written as given (decode overrides it).
    """
    chunks = []
    for coord, entry in entries.items():
        if isinstance(entry, PlanetEntry):
            chunks.append(_HEAD.pack(coord.x, coord.y, coord.z, coord.w, 1))
            chunks.append(_encode_planet(entry))
        else:
            chunks.append(_HEAD.pack(coord.x, coord.y, coord.z, coord.w, 0))
            chunks.append(_encode_star(entry))
    return b"".join(chunks)
