"""Layout of wall textures in a texture array and of the sky cube map."""

from __future__ import annotations

import enum
from typing import Sequence

from wadengine.vector import Vec2
from wadengine.wad import WallTexture


class CubeFace(enum.Enum):
    """The six faces of a cube map."""

    POSITIVE_X = "+x"
    NEGATIVE_X = "-x"
    POSITIVE_Y = "+y"
    NEGATIVE_Y = "-y"
    POSITIVE_Z = "+z"
    NEGATIVE_Z = "-z"


def array_size(textures: Sequence[WallTexture]) -> tuple[int, int]:
    """Return the layer width and height needed to hold every texture."""
    width = max((texture.width for texture in textures), default=0)
    height = max((texture.height for texture in textures), default=0)
    return width, height


def wall_max_coords(textures: Sequence[WallTexture]) -> list[Vec2]:
    """Return, per texture, the fraction of an array layer its pixels cover."""
    width, height = array_size(textures)
    return [Vec2(texture.width / width, texture.height / height) for texture in textures]


def cubemap_faces(texture: WallTexture) -> dict[CubeFace, bytes]:
    """Build square faces for a sky cube map from one wall texture.

    The four side faces hold the texture placed a third of the way into
    the padding, with the padding before it filled by the first pixel.
    The top face is filled with the first pixel, the bottom with zeros.
    """
    if not texture.data:
        raise ValueError("a sky texture needs at least one pixel")
    size = max(texture.width, texture.height)
    area = size * size
    pixels = texture.width * texture.height
    padding = (area - pixels) // 3
    first = texture.data[0]

    side = bytearray(area)
    side[:padding] = bytes([first]) * padding
    side[padding : padding + pixels] = texture.data[:pixels]
    side_bytes = bytes(side)

    return {
        CubeFace.POSITIVE_X: side_bytes,
        CubeFace.NEGATIVE_X: side_bytes,
        CubeFace.POSITIVE_Z: side_bytes,
        CubeFace.NEGATIVE_Z: side_bytes,
        CubeFace.POSITIVE_Y: bytes([first]) * area,
        CubeFace.NEGATIVE_Y: bytes(area),
    }