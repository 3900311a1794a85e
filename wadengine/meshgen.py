"""Building renderable meshes for every BSP subsector of a level."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Optional, Sequence

from wadengine.level import (
    INDEX_MASK,
    NO_INDEX,
    SUBSECTOR_FLAG,
    VERT_IS_GL,
    GLLevel,
    GLSegment,
    Level,
    Linedef,
    Sector,
    Sidedef,
)
from wadengine.matrix import Mat4, rotate, scale, translate
from wadengine.textures import wall_max_coords
from wadengine.vector import Vec2, Vec3
from wadengine.wad import FLAT_SIZE, WallTexture

LINEDEF_TWO_SIDED = 0x0004
LINEDEF_UPPER_UNPEGGED = 0x0008
LINEDEF_LOWER_UNPEGGED = 0x0010

TEXTURE_TYPE_COLOR = 0
TEXTURE_TYPE_FLAT = 1
TEXTURE_TYPE_WALL = 2
NO_TEXTURE = -1

_QUAD_INDICES = (0, 1, 3, 1, 2, 3)


@dataclass(frozen=True)
class Vertex:
    """One vertex of the full vertex layout."""

    position: Vec3
    tex_coords: Vec2 = Vec2()
    texture_index: int = 0
    texture_type: int = TEXTURE_TYPE_COLOR
    light: float = 0.0
    max_coords: Vec2 = Vec2()


@dataclass(frozen=True)
class TexAnimDef:
    """A texture animation running through the textures from start to end."""

    start_name: str
    end_name: str
    start: int
    end: int


@dataclass(frozen=True)
class TexAnimRange:
    """Vertices [first_vertex, last_vertex) of a mesh that cycle through an animation."""

    first_vertex: int
    last_vertex: int
    start: int
    end: int


@dataclass
class Mesh:
    """Indexed triangle geometry with the texture animations it takes part in."""

    vertices: list[Vertex] = field(default_factory=list)
    indices: list[int] = field(default_factory=list)
    animations: list[TexAnimRange] = field(default_factory=list)


@dataclass
class DrawNode:
    """A node of the draw tree: a leaf holds a mesh, an inner node two children."""

    mesh: Optional[Mesh] = None
    front: Optional[DrawNode] = None
    back: Optional[DrawNode] = None


@dataclass(frozen=True)
class TextureSet:
    """The textures a level is drawn with.

    max_coords defaults to the texture-array coverage of wall_textures.
    """

    wall_textures: Sequence[WallTexture]
    num_flats: int
    sky_flat: Optional[int] = None
    animations: Sequence[TexAnimDef] = ()
    max_coords: Optional[Sequence[Vec2]] = None

    def __post_init__(self) -> None:
        if self.max_coords is None:
            object.__setattr__(self, "max_coords", wall_max_coords(self.wall_textures))


@dataclass
class Scene:
    """The generated draw tree and the quads that mark where the sky shows."""

    root: DrawNode
    stencil_quads: list[Mat4] = field(default_factory=list)
    max_sector_height: float = 0.0


def _quad_model(width: float, height: float, origin: Vec3, axis: Vec3, angle: float) -> Mat4:
    return scale(Vec3(width, height, 1.0)) @ (rotate(axis, angle) @ translate(origin))


class _Builder:
    def __init__(
        self, level: Level, gl_level: GLLevel, textures: TextureSet, max_height: float
    ) -> None:
        self.level = level
        self.gl_level = gl_level
        self.textures = textures
        self.max_height = max_height
        self.stencils: list[Mat4] = []

    def node(self, node_id: int) -> DrawNode:
        if node_id & SUBSECTOR_FLAG:
            return DrawNode(mesh=self.subsector(node_id & INDEX_MASK))
        if node_id >= len(self.gl_level.nodes):
            raise ValueError(f"invalid BSP node {node_id}")
        node = self.gl_level.nodes[node_id]
        return DrawNode(front=self.node(node.front_child), back=self.node(node.back_child))

    def vertex(self, index: int) -> Vec2:
        if index & VERT_IS_GL:
            return self.gl_level.vertices[index & INDEX_MASK]
        return self.level.vertices[index]

    def owning_sector(self, segment: GLSegment) -> Sector:
        linedef = self.level.linedefs[segment.linedef]
        if linedef.flags & LINEDEF_TWO_SIDED and segment.side == 1:
            sidedef_index = linedef.back_sidedef
        else:
            sidedef_index = linedef.front_sidedef
        return self.level.sectors[self.level.sidedefs[sidedef_index].sector]

    def subsector(self, index: int) -> Optional[Mesh]:
        if index >= len(self.gl_level.subsectors):
            raise ValueError(f"invalid subsector {index}")
        subsector = self.gl_level.subsectors[index]
        count = subsector.num_segs
        if count < 3:
            return None

        mesh = Mesh()
        sector: Optional[Sector] = None
        outline: list[Vertex] = []
        segments = self.gl_level.segments[subsector.first_seg : subsector.first_seg + count]
        if len(segments) != count:
            raise ValueError(f"subsector {index} refers to missing segments")

        for segment in segments:
            start = self.vertex(segment.start_vertex)
            end = self.vertex(segment.end_vertex)
            if sector is None and segment.linedef != NO_INDEX:
                sector = self.owning_sector(segment)
            outline.append(
                Vertex(
                    position=Vec3(start.x, 0.0, start.y),
                    tex_coords=Vec2(start.x / FLAT_SIZE, -start.y / FLAT_SIZE),
                    texture_type=TEXTURE_TYPE_FLAT,
                )
            )
            if segment.linedef != NO_INDEX:
                self.walls(mesh, segment, start, end)

        if sector is None:
            raise ValueError(f"subsector {index} has no segment on a linedef")
        self.flats(mesh, sector, outline)
        return mesh

    def walls(self, mesh: Mesh, segment: GLSegment, start: Vec2, end: Vec2) -> None:
        level = self.level
        linedef = level.linedefs[segment.linedef]
        front_side: Optional[Sidedef] = level.sidedefs[linedef.front_sidedef]
        back_side: Optional[Sidedef] = None
        if linedef.back_sidedef < len(level.sidedefs):
            back_side = level.sidedefs[linedef.back_sidedef]
        if segment.side:
            front_side, back_side = back_side, front_side
        if front_side is None:
            raise ValueError(f"segment on linedef {segment.linedef} has no sidedef")

        front = level.sectors[front_side.sector]
        back: Optional[Sector] = None
        if back_side is not None and back_side.sector < len(level.sectors):
            back = level.sectors[back_side.sector]

        if not linedef.flags & LINEDEF_TWO_SIDED:
            self.middle_wall(mesh, linedef, front_side, front, start, end)
            return
        if back is None:
            raise ValueError(f"two-sided linedef {segment.linedef} has no back sector")
        if front_side.lower is not None and front.floor < back.floor:
            self.lower_wall(mesh, linedef, front_side, front, back, start, end)
        sky = self.textures.sky_flat
        if (
            front_side.upper is not None
            and front.ceiling > back.ceiling
            and not (front.ceiling_texture == sky and back.ceiling_texture == sky)
        ):
            self.upper_wall(mesh, linedef, front_side, front, back, start, end)

    def texture_size(self, texture: int) -> tuple[float, float]:
        wall = self.textures.wall_textures[texture]
        return float(wall.width), float(wall.height)

    def add_quad(
        self,
        mesh: Mesh,
        corners: tuple[Vec3, Vec3, Vec3, Vec3],
        span: tuple[float, float, float, float],
        texture: int,
        light: float,
    ) -> None:
        max_coords = self.textures.max_coords[texture]
        tx0, ty0, tx1, ty1 = span
        tx0, tx1 = tx0 * max_coords.x, tx1 * max_coords.x
        ty0, ty1 = ty0 * max_coords.y, ty1 * max_coords.y
        coords = (Vec2(tx0, ty0), Vec2(tx1, ty0), Vec2(tx1, ty1), Vec2(tx0, ty1))
        base = len(mesh.vertices)
        mesh.vertices.extend(
            Vertex(point, uv, texture, TEXTURE_TYPE_WALL, light, max_coords)
            for point, uv in zip(corners, coords)
        )
        mesh.indices.extend(base + offset for offset in _QUAD_INDICES)

    def sky_stencil(self, sector: Sector, width: float, top: Vec3, dx: float, dz: float) -> None:
        if sector.ceiling_texture == self.textures.sky_flat:
            self.stencils.append(
                _quad_model(
                    width, self.max_height - top.y, top, Vec3(0.0, 1.0, 0.0), math.atan2(dz, dx)
                )
            )

    def lower_wall(
        self,
        mesh: Mesh,
        linedef: Linedef,
        side: Sidedef,
        front: Sector,
        back: Sector,
        start: Vec2,
        end: Vec2,
    ) -> None:
        texture = side.lower
        corners = (
            Vec3(start.x, front.floor, start.y),
            Vec3(end.x, front.floor, end.y),
            Vec3(end.x, back.floor, end.y),
            Vec3(start.x, back.floor, start.y),
        )
        width = math.hypot(end.x - start.x, end.y - start.y)
        height = abs(corners[3].y - corners[0].y)
        tw, th = self.texture_size(texture)
        w, h = width / tw, height / th
        x_off, y_off = side.x_offset / tw, side.y_offset / th
        if linedef.flags & LINEDEF_LOWER_UNPEGGED:
            y_off += (front.ceiling - back.floor) / th
        span = (x_off, y_off + h, x_off + w, y_off)
        self.add_quad(mesh, corners, span, texture, front.light_level / 256.0)

    def upper_wall(
        self,
        mesh: Mesh,
        linedef: Linedef,
        side: Sidedef,
        front: Sector,
        back: Sector,
        start: Vec2,
        end: Vec2,
    ) -> None:
        texture = side.upper
        corners = (
            Vec3(start.x, back.ceiling, start.y),
            Vec3(end.x, back.ceiling, end.y),
            Vec3(end.x, front.ceiling, end.y),
            Vec3(start.x, front.ceiling, start.y),
        )
        dx, dz = end.x - start.x, end.y - start.y
        width = math.hypot(dx, dz)
        height = -abs(corners[3].y - corners[0].y)
        tw, th = self.texture_size(texture)
        w, h = width / tw, height / th
        x_off, y_off = side.x_offset / tw, side.y_offset / th
        if linedef.flags & LINEDEF_UPPER_UNPEGGED:
            y_off -= h
        span = (x_off, y_off, x_off + w, y_off + h)
        self.add_quad(mesh, corners, span, texture, front.light_level / 256.0)
        self.sky_stencil(front, width, corners[3], dx, dz)

    def middle_wall(
        self,
        mesh: Mesh,
        linedef: Linedef,
        side: Sidedef,
        sector: Sector,
        start: Vec2,
        end: Vec2,
    ) -> None:
        corners = (
            Vec3(start.x, sector.floor, start.y),
            Vec3(end.x, sector.floor, end.y),
            Vec3(end.x, sector.ceiling, end.y),
            Vec3(start.x, sector.ceiling, start.y),
        )
        dx, dz = end.x - start.x, end.y - start.y
        width = math.hypot(dx, dz)
        texture = side.middle
        if texture is not None:
            height = corners[3].y - corners[0].y
            tw, th = self.texture_size(texture)
            w, h = width / tw, height / th
            x_off, y_off = side.x_offset / tw, side.y_offset / th
            if linedef.flags & LINEDEF_LOWER_UNPEGGED:
                y_off -= h
            span = (x_off, y_off + h, x_off + w, y_off)
            self.add_quad(mesh, corners, span, texture, sector.light_level / 256.0)
        self.sky_stencil(sector, width, corners[3], dx, dz)

    def flat_index(self, texture: Optional[int]) -> int:
        if texture is not None and 0 <= texture < self.textures.num_flats:
            return texture
        return NO_TEXTURE

    def flats(self, mesh: Mesh, sector: Sector, outline: list[Vertex]) -> None:
        count = len(outline)
        light = sector.light_level / 256.0
        floor_index = self.flat_index(sector.floor_texture)
        ceiling_index = self.flat_index(sector.ceiling_texture)

        base = len(mesh.vertices)
        mesh.vertices.extend(
            replace(
                vertex,
                position=replace(vertex.position, y=float(sector.floor)),
                texture_index=floor_index,
                light=light,
            )
            for vertex in outline
        )
        mesh.vertices.extend(
            replace(
                vertex,
                position=replace(vertex.position, y=float(sector.ceiling)),
                texture_index=ceiling_index,
                light=light,
            )
            for vertex in outline
        )

        for anim in self.textures.animations:
            if sector.floor_texture is not None and anim.start <= sector.floor_texture <= anim.end:
                mesh.animations.append(TexAnimRange(base, base + count, anim.start, anim.end))
            if (
                sector.ceiling_texture is not None
                and anim.start <= sector.ceiling_texture <= anim.end
            ):
                mesh.animations.append(
                    TexAnimRange(base + count, base + 2 * count, anim.start, anim.end)
                )

        ceiling = base + count
        for k in range(1, count - 1):
            mesh.indices.extend((base, base + k + 1, base + k))
            mesh.indices.extend((ceiling, ceiling + k, ceiling + k + 1))


def generate_meshes(level: Level, gl_level: GLLevel, textures: TextureSet) -> Scene:
    """Build a mesh for every subsector and the sky stencil quads of a level."""
    if not gl_level.nodes:
        raise ValueError("the GL level has no BSP nodes")
    max_height = max([0.0, *(float(sector.ceiling) for sector in level.sectors)]) + 1.0

    builder = _Builder(level, gl_level, textures, max_height)
    width = level.max.x - level.min.x
    height = level.max.y - level.min.y
    builder.stencils.append(
        _quad_model(
            width,
            height,
            Vec3(level.min.x, max_height, level.max.y),
            Vec3(1.0, 0.0, 0.0),
            math.pi / 2.0,
        )
    )
    root = builder.node((len(gl_level.nodes) - 1) & 0xFFFF)
    return Scene(root=root, stencil_quads=builder.stencils, max_sector_height=max_height)