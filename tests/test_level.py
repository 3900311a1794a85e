import math
import struct

import pytest

from wadengine.level import (
    GLLevel,
    GLNode,
    GLSegment,
    GLSubsector,
    Level,
    LevelError,
    Linedef,
    Sector,
    Sidedef,
    find_sector,
    read_gl_level,
    read_level,
)
from wadengine.vector import Vec2
from wadengine.wad import Lump, Wad, WallTexture

TEXTURES = [
    WallTexture("STARTAN3", 1, 1, b"\x00"),
    WallTexture("DOOR1", 1, 1, b"\x00"),
]


def _map_lumps(vertexes=None):
    if vertexes is None:
        vertexes = struct.pack("<6h", 0, 0, 64, -32, -16, 128)
    linedefs = struct.pack("<7H", 0, 1, 4, 0, 0, 0, 1) + struct.pack(
        "<7H", 1, 2, 1, 0, 0, 1, 0xFFFF
    )
    things = struct.pack("<hhhHH", 32, -48, 90, 1, 7) + struct.pack(
        "<hhhHH", 0, 0, 180, 3001, 7
    )
    sidedefs = struct.pack("<hh8s8s8sH", 4, -8, b"startan3", b"-", b"DOOR1", 0)
    sidedefs += struct.pack("<hh8s8s8sH", 0, 0, b"-", b"-", b"-", 1)
    sectors = struct.pack("<hh8s8shHH", 0, 128, b"FLOOR1", b"FLAT3", 160, 0, 0)
    sectors += struct.pack("<hh8s8shHH", -24, 72, b"floor2", b"MISSING", 255, 0, 0)
    return [
        Lump("E1M1", b""),
        Lump("THINGS", things),
        Lump("LINEDEFS", linedefs),
        Lump("SIDEDEFS", sidedefs),
        Lump("VERTEXES", vertexes),
        Lump("SEGS", b""),
        Lump("SSECTORS", b""),
        Lump("NODES", b""),
        Lump("SECTORS", sectors),
        Lump("F_START", b""),
        Lump("FLOOR1", b"\x00" * 4096),
        Lump("FLOOR2", b"\x00" * 4096),
        Lump("FLAT3", b"\x00" * 4096),
        Lump("F_END", b""),
    ]


def _gl_lumps(vertex_magic=b"gNd2", segs_prefix=b""):
    vertices = vertex_magic + struct.pack("<ii", 229376, -131072)
    vertices += struct.pack("<ii", 16384, 65536)
    segs = segs_prefix + struct.pack("<5H", 0x8000, 1, 0, 1, 0xFFFF)
    ssect = struct.pack("<HH", 3, 0)
    node = struct.pack("<4h4h4hHH", 10, 20, 0, -5, 1, 2, 3, 4, -1, -2, -3, -4, 0x8000, 0x8001)
    return [
        Lump("GL_E1M1", b""),
        Lump("GL_VERT", vertices),
        Lump("GL_SEGS", segs),
        Lump("GL_SSECT", ssect),
        Lump("GL_NODES", node),
    ]


def test_vertices_and_bounds():
    level = read_level(Wad("PWAD", _map_lumps()), "e1m1", TEXTURES)
    assert level.vertices == [Vec2(0, 0), Vec2(64, -32), Vec2(-16, 128)]
    assert level.min == Vec2(-16, -32)
    assert level.max == Vec2(64, 128)


def test_trailing_partial_record_is_ignored():
    vertexes = struct.pack("<4h", 1, 2, 3, 4) + b"\x01\x02"
    level = read_level(Wad("PWAD", _map_lumps(vertexes)), "E1M1", TEXTURES)
    assert level.vertices == [Vec2(1, 2), Vec2(3, 4)]


def test_linedefs():
    level = read_level(Wad("PWAD", _map_lumps()), "E1M1", TEXTURES)
    assert level.linedefs[0] == Linedef(0, 1, 4, 0, 1)
    assert level.linedefs[1].back_sidedef == 0xFFFF


def test_things_convert_angle_to_radians():
    level = read_level(Wad("PWAD", _map_lumps()), "E1M1", TEXTURES)
    assert level.things[0].position == Vec2(32, -48)
    assert level.things[0].angle == pytest.approx(math.radians(90))
    assert level.things[1].type == 3001


def test_sidedef_textures_resolved_case_insensitively():
    level = read_level(Wad("PWAD", _map_lumps()), "E1M1", TEXTURES)
    assert level.sidedefs[0] == Sidedef(4, -8, 0, None, 1, 0)
    assert level.sidedefs[1] == Sidedef(0, 0, None, None, None, 1)


def test_sector_flats_exclude_the_last_flat_before_end_marker():
    level = read_level(Wad("PWAD", _map_lumps()), "E1M1", TEXTURES)
    assert level.sectors[0] == Sector(0, 128, 0, None, 160)
    assert level.sectors[1] == Sector(-24, 72, 1, None, 255)


def test_missing_level_raises():
    with pytest.raises(LevelError):
        read_level(Wad("PWAD", _map_lumps()), "E9M9", TEXTURES)


def test_truncated_level_raises():
    lumps = _map_lumps()[:5]
    with pytest.raises(LevelError):
        read_level(Wad("PWAD", lumps), "E1M1", TEXTURES)


def test_gl_vertices_are_fixed_point():
    gl = read_gl_level(Wad("PWAD", _gl_lumps()), "GL_E1M1")
    assert gl.vertices == [Vec2(3.5, -2.0), Vec2(0.25, 1.0)]
    assert gl.min == Vec2(0.25, -2.0)
    assert gl.max == Vec2(3.5, 1.0)


def test_gl_segments_subsectors_nodes():
    gl = read_gl_level(Wad("PWAD", _gl_lumps()), "GL_E1M1")
    assert gl.segments == [GLSegment(0x8000, 1, 0, 1)]
    assert gl.subsectors == [GLSubsector(3, 0)]
    node = gl.nodes[0]
    assert node.partition == Vec2(10, 20)
    assert node.delta == Vec2(0, -5)
    assert node.front_bbox == (1, 2, 3, 4)
    assert node.back_bbox == (-1, -2, -3, -4)
    assert (node.front_child, node.back_child) == (0x8000, 0x8001)


def test_gl_wrong_vertex_magic_raises():
    with pytest.raises(LevelError):
        read_gl_level(Wad("PWAD", _gl_lumps(vertex_magic=b"gNd5")), "GL_E1M1")


def test_gl_version_three_segments_rejected():
    with pytest.raises(LevelError):
        read_gl_level(Wad("PWAD", _gl_lumps(segs_prefix=b"gNd3")), "GL_E1M1")


def test_gl_missing_level_raises():
    with pytest.raises(LevelError):
        read_gl_level(Wad("PWAD", _gl_lumps()), "GL_E2M1")


def _split_world():
    level = Level(
        linedefs=[Linedef(0, 1, 4, 0, 1)],
        sidedefs=[Sidedef(0, 0, None, None, None, 0), Sidedef(0, 0, None, None, None, 1)],
        sectors=[Sector(0, 100, None, None, 160), Sector(8, 90, None, None, 200)],
    )
    gl = GLLevel(
        segments=[GLSegment(0, 1, 0, 0), GLSegment(1, 0, 0, 1)],
        subsectors=[GLSubsector(1, 0), GLSubsector(1, 1)],
        nodes=[
            GLNode(Vec2(0, 0), Vec2(0, 1), (0, 0, 0, 0), (0, 0, 0, 0), 0x8000, 0x8001)
        ],
    )
    return level, gl


def test_find_sector_front_side():
    level, gl = _split_world()
    assert find_sector(level, gl, Vec2(5, 0)) is level.sectors[0]


def test_find_sector_back_side_and_on_line():
    level, gl = _split_world()
    assert find_sector(level, gl, Vec2(-5, 3)) is level.sectors[1]
    assert find_sector(level, gl, Vec2(0, 7)) is level.sectors[1]


def test_find_sector_invalid_linedef_returns_none():
    level, gl = _split_world()
    gl.segments[0] = GLSegment(0, 1, 9, 0)
    assert find_sector(level, gl, Vec2(5, 0)) is None


def test_find_sector_invalid_sector_returns_none():
    level, gl = _split_world()
    level.sidedefs[0] = Sidedef(0, 0, None, None, None, 42)
    assert find_sector(level, gl, Vec2(5, 0)) is None


def test_find_sector_without_nodes_returns_none():
    level, _ = _split_world()
    assert find_sector(level, GLLevel(), Vec2(0, 0)) is None