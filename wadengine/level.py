"""Reading levels from a WAD archive: map geometry, GL nodes and sector lookup."""

from __future__ import annotations

import logging
import math
import struct
from dataclasses import dataclass, field
from typing import Iterator, Optional, Sequence

from wadengine.names import compare_nocase_n
from wadengine.vector import Vec2
from wadengine.wad import Lump, Wad, WallTexture

logger = logging.getLogger(__name__)

VERT_IS_GL = 0x8000
SUBSECTOR_FLAG = 0x8000
INDEX_MASK = 0x7FFF
NO_INDEX = 0xFFFF
GL_MAGIC = b"gNd2"
GL_MAGIC_V3 = b"gNd3"

_THINGS, _LINEDEFS, _SIDEDEFS, _VERTEXES = 1, 2, 3, 4
_SECTORS = 8
_GL_VERT, _GL_SEGS, _GL_SSECT, _GL_NODES = 1, 2, 3, 4

_VERTEX = struct.Struct("<hh")
_LINEDEF = struct.Struct("<7H")
_THING = struct.Struct("<hhhHH")
_SIDEDEF = struct.Struct("<hh8s8s8sH")
_SECTOR = struct.Struct("<hh8s8shHH")
_GL_VERTEX = struct.Struct("<ii")
_GL_SEGMENT = struct.Struct("<5H")
_GL_SUBSECTOR = struct.Struct("<HH")
_GL_NODE = struct.Struct("<4h4h4hHH")
_FIXED_ONE = 1 << 16


class LevelError(Exception):
    """Raised when a level cannot be read from a WAD archive."""


@dataclass(frozen=True)
class Thing:
    """A map object: its position, facing in radians and type number."""

    position: Vec2
    angle: float
    type: int


@dataclass(frozen=True)
class Linedef:
    """A line between two vertices with up to two sidedefs."""

    start: int
    end: int
    flags: int
    front_sidedef: int
    back_sidedef: int


@dataclass(frozen=True)
class Sidedef:
    """One side of a linedef; texture fields index the wall texture list or are None."""

    x_offset: int
    y_offset: int
    upper: Optional[int]
    lower: Optional[int]
    middle: Optional[int]
    sector: int


@dataclass(frozen=True)
class Sector:
    """A region with floor and ceiling heights; textures index the flat list or are None."""

    floor: int
    ceiling: int
    floor_texture: Optional[int]
    ceiling_texture: Optional[int]
    light_level: int


def _infinite_min() -> Vec2:
    return Vec2(math.inf, math.inf)


def _infinite_max() -> Vec2:
    return Vec2(-math.inf, -math.inf)


@dataclass
class Level:
    """The geometry and objects of one map."""

    vertices: list[Vec2] = field(default_factory=list)
    linedefs: list[Linedef] = field(default_factory=list)
    things: list[Thing] = field(default_factory=list)
    sidedefs: list[Sidedef] = field(default_factory=list)
    sectors: list[Sector] = field(default_factory=list)
    min: Vec2 = field(default_factory=_infinite_min)
    max: Vec2 = field(default_factory=_infinite_max)


@dataclass(frozen=True)
class GLSegment:
    """A piece of a linedef bounding a GL subsector.

    Vertex indices with VERT_IS_GL set refer to the GL vertices.
    """

    start_vertex: int
    end_vertex: int
    linedef: int
    side: int


@dataclass(frozen=True)
class GLSubsector:
    """A convex region made of consecutive segments."""

    num_segs: int
    first_seg: int


@dataclass(frozen=True)
class GLNode:
    """A BSP node splitting space along a partition line."""

    partition: Vec2
    delta: Vec2
    front_bbox: tuple[int, int, int, int]
    back_bbox: tuple[int, int, int, int]
    front_child: int
    back_child: int


@dataclass
class GLLevel:
    """The GL node data built for one map."""

    vertices: list[Vec2] = field(default_factory=list)
    segments: list[GLSegment] = field(default_factory=list)
    subsectors: list[GLSubsector] = field(default_factory=list)
    nodes: list[GLNode] = field(default_factory=list)
    min: Vec2 = field(default_factory=_infinite_min)
    max: Vec2 = field(default_factory=_infinite_max)


def _decode(raw: bytes) -> str:
    return raw.decode("latin-1").split("\0", 1)[0]


def _records(data: bytes, layout: struct.Struct) -> Iterator[tuple]:
    whole = len(data) - len(data) % layout.size
    return layout.iter_unpack(data[:whole])


def _bounds(vertices: Sequence[Vec2]) -> tuple[Vec2, Vec2]:
    if not vertices:
        return _infinite_min(), _infinite_max()
    xs = [v.x for v in vertices]
    ys = [v.y for v in vertices]
    return Vec2(min(xs), min(ys)), Vec2(max(xs), max(ys))


def _lump_after(wad: Wad, marker: int, offset: int, name: str) -> Lump:
    position = marker + offset
    if position >= len(wad):
        raise LevelError(f"level {name!r} is missing lump {offset} after its marker")
    return wad[position]


def _wall_index(raw: bytes, textures: Sequence[WallTexture]) -> Optional[int]:
    return next(
        (
            index
            for index, texture in enumerate(textures)
            if compare_nocase_n(raw, texture.name, 8) == 0
        ),
        None,
    )


def _flat_index(wad: Wad, raw: bytes, f_start: int, f_end: int) -> Optional[int]:
    index = wad.find_lump(_decode(raw))
    if index is None or index <= f_start or index >= f_end - 1:
        return None
    return index - f_start - 1


def read_level(wad: Wad, name: str, textures: Sequence[WallTexture]) -> Level:
    """Read the map with this marker name, resolving names against the given textures."""
    marker = wad.find_lump(name)
    if marker is None:
        raise LevelError(f"level {name!r} not found")

    vertices = [
        Vec2(float(x), float(y))
        for x, y in _records(_lump_after(wad, marker, _VERTEXES, name).data, _VERTEX)
    ]
    linedefs = [
        Linedef(start, end, flags, front, back)
        for start, end, flags, _special, _tag, front, back in _records(
            _lump_after(wad, marker, _LINEDEFS, name).data, _LINEDEF
        )
    ]
    things = [
        Thing(Vec2(float(x), float(y)), math.radians(angle), kind)
        for x, y, angle, kind, _flags in _records(
            _lump_after(wad, marker, _THINGS, name).data, _THING
        )
    ]
    sidedefs = [
        Sidedef(
            x_off,
            y_off,
            _wall_index(upper, textures),
            _wall_index(lower, textures),
            _wall_index(middle, textures),
            sector,
        )
        for x_off, y_off, upper, lower, middle, sector in _records(
            _lump_after(wad, marker, _SIDEDEFS, name).data, _SIDEDEF
        )
    ]

    f_start = wad.find_lump("F_START")
    f_end = wad.find_lump("F_END")
    start = -1 if f_start is None else f_start
    end = -1 if f_end is None else f_end
    sectors = [
        Sector(
            floor,
            ceiling,
            _flat_index(wad, floor_name, start, end),
            _flat_index(wad, ceiling_name, start, end),
            light,
        )
        for floor, ceiling, floor_name, ceiling_name, light, _special, _tag in _records(
            _lump_after(wad, marker, _SECTORS, name).data, _SECTOR
        )
    ]

    low, high = _bounds(vertices)
    return Level(vertices, linedefs, things, sidedefs, sectors, low, high)


def read_gl_level(wad: Wad, name: str) -> GLLevel:
    """Read the version 2 GL nodes stored under this marker name."""
    marker = wad.find_lump(name)
    if marker is None:
        raise LevelError(f"GL level {name!r} not found")

    vertex_data = _lump_after(wad, marker, _GL_VERT, name).data
    if vertex_data[:4] != GL_MAGIC:
        raise LevelError(f"GL level {name!r} does not hold version 2 vertices")
    segment_data = _lump_after(wad, marker, _GL_SEGS, name).data
    if segment_data[:4] == GL_MAGIC_V3:
        raise LevelError(f"GL level {name!r} uses unsupported version 3 segments")

    vertices = [
        Vec2(x / _FIXED_ONE, y / _FIXED_ONE)
        for x, y in _records(vertex_data[4:], _GL_VERTEX)
    ]
    segments = [
        GLSegment(start, end, linedef, side)
        for start, end, linedef, side, _partner in _records(segment_data, _GL_SEGMENT)
    ]
    subsectors = [
        GLSubsector(count, first)
        for count, first in _records(
            _lump_after(wad, marker, _GL_SSECT, name).data, _GL_SUBSECTOR
        )
    ]
    nodes = [
        GLNode(
            Vec2(float(values[0]), float(values[1])),
            Vec2(float(values[2]), float(values[3])),
            tuple(values[4:8]),
            tuple(values[8:12]),
            values[12],
            values[13],
        )
        for values in _records(_lump_after(wad, marker, _GL_NODES, name).data, _GL_NODE)
    ]

    low, high = _bounds(vertices)
    return GLLevel(vertices, segments, subsectors, nodes, low, high)


def find_sector(level: Level, gl_level: GLLevel, position: Vec2) -> Optional[Sector]:
    """Return the sector containing position, or None if the BSP data leads nowhere valid."""
    node_id = (len(gl_level.nodes) - 1) & 0xFFFF
    steps = 0
    while not node_id & SUBSECTOR_FLAG:
        if node_id >= len(gl_level.nodes) or steps > len(gl_level.nodes):
            logger.debug("invalid node id %d", node_id)
            return None
        steps += 1
        node = gl_level.nodes[node_id]
        delta = position - node.partition
        on_back = delta.x * node.delta.y - delta.y * node.delta.x <= 0.0
        node_id = node.back_child if on_back else node.front_child

    subsector_index = node_id & INDEX_MASK
    if subsector_index >= len(gl_level.subsectors):
        logger.debug("invalid subsector index %d", subsector_index)
        return None
    subsector = gl_level.subsectors[subsector_index]

    if subsector.first_seg >= len(gl_level.segments):
        logger.debug("invalid first segment %d", subsector.first_seg)
        return None
    segment = gl_level.segments[subsector.first_seg]

    if segment.linedef >= len(level.linedefs):
        logger.debug("invalid linedef index %d", segment.linedef)
        return None
    if segment.side not in (0, 1):
        logger.debug("invalid segment side %d", segment.side)
        return None

    linedef = level.linedefs[segment.linedef]
    sidedef_index = linedef.front_sidedef if segment.side == 0 else linedef.back_sidedef
    if sidedef_index >= len(level.sidedefs):
        logger.debug("invalid sidedef index %d", sidedef_index)
        return None

    sector_index = level.sidedefs[sidedef_index].sector
    if sector_index >= len(level.sectors):
        logger.debug("invalid sector index %d", sector_index)
        return None
    return level.sectors[sector_index]